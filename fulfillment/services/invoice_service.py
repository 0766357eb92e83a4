"""
Invoice Service.

Transport invoices are created when a client accepts a transport quote.
A shipment has at most one transport invoice: the service checks first and
the unique shipment_order_id column backs the check at the storage level.
"""
import logging
import uuid
from datetime import datetime, timezone, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment.config import settings
from fulfillment.core.exceptions import NotFoundError, StateConflictError, ValidationError
from fulfillment.database import begin_write
from fulfillment.models.billing import Invoice, InvoiceType, InvoiceStatus
from fulfillment.models.client import Client
from fulfillment.models.shipment import ShipmentOrder, ShipmentStatus
from fulfillment.services.numbering import generate_invoice_number

if TYPE_CHECKING:
    from fulfillment.services.subscription_pricing import SubscriptionQuote


logger = logging.getLogger(__name__)


def _due_date():
    return (datetime.now(timezone.utc) + timedelta(days=settings.INVOICE_DUE_DAYS)).date()


class InvoiceService:
    """Service for issuing and settling invoices."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_invoice(self, invoice_id: uuid.UUID) -> Optional[Invoice]:
        return await self.db.get(Invoice, invoice_id)

    async def get_transport_invoice(self, shipment_id: uuid.UUID) -> Optional[Invoice]:
        stmt = select(Invoice).where(Invoice.shipment_order_id == shipment_id)
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def build_transport_invoice(
        self,
        shipment: ShipmentOrder,
        payment_method: Optional[str] = None,
    ) -> Tuple[Invoice, bool]:
        """
        Add a transport invoice for the shipment to the session (no commit).

        Returns (invoice, created). An existing invoice is returned unchanged.
        """
        existing = await self.get_transport_invoice(shipment.id)
        if existing:
            logger.info(f"Shipment {shipment.id} already invoiced as {existing.invoice_number}")
            return existing, False

        amount = shipment.proposed_price_eur or shipment.calculated_price_eur
        if amount is None:
            raise StateConflictError(
                "Shipment has no price to invoice",
                current_status=shipment.status,
            )

        invoice = Invoice(
            invoice_number=await generate_invoice_number(self.db),
            client_id=shipment.client_id,
            shipment_order_id=shipment.id,
            invoice_type=InvoiceType.TRANSPORT.value,
            status=InvoiceStatus.ISSUED.value,
            amount_eur=Decimal(amount),
            due_date=_due_date(),
            payment_method=payment_method,
            description=f"Transport for shipment {shipment.id}",
        )
        self.db.add(invoice)
        await self.db.flush()
        return invoice, True

    async def build_subscription_invoice(
        self,
        client: Client,
        quote: "SubscriptionQuote",
        payment_method: Optional[str] = None,
    ) -> Invoice:
        """Add a subscription invoice to the session (no commit)."""
        invoice = Invoice(
            invoice_number=await generate_invoice_number(self.db),
            client_id=client.id,
            invoice_type=InvoiceType.SUBSCRIPTION.value,
            status=InvoiceStatus.ISSUED.value,
            amount_eur=quote.total_eur,
            due_date=_due_date(),
            payment_method=payment_method,
            plan_id=client.plan_id,
            subscription_period_months=quote.period_months,
            voucher_id=quote.voucher_id,
            description=f"{client.plan.name} subscription, {quote.period_months} month(s)",
        )
        self.db.add(invoice)
        await self.db.flush()
        return invoice

    async def mark_paid(self, invoice_id: uuid.UUID) -> Invoice:
        """
        Record payment. A paid transport invoice releases its shipment for loading.

        Paying an already paid invoice is a no-op.
        """
        await begin_write(self.db)
        invoice = await self.get_invoice(invoice_id)
        if not invoice:
            raise NotFoundError("Invoice", invoice_id)

        if invoice.status == InvoiceStatus.PAID.value:
            return invoice
        if invoice.status != InvoiceStatus.ISSUED.value:
            raise StateConflictError(
                f"Cannot pay invoice in status {invoice.status}",
                current_status=invoice.status,
            )

        invoice.status = InvoiceStatus.PAID.value
        invoice.paid_at = datetime.now(timezone.utc)

        if invoice.invoice_type == InvoiceType.TRANSPORT.value and invoice.shipment_order_id:
            shipment = await self.db.get(ShipmentOrder, invoice.shipment_order_id)
            if shipment is None:
                raise ValidationError("Invoice references a missing shipment", field="shipment_order_id")
            if shipment.status == ShipmentStatus.AWAITING_PAYMENT.value:
                shipment.status = ShipmentStatus.READY_FOR_LOADING.value
                logger.info(f"Shipment {shipment.id} paid, ready for loading")

        await self.db.commit()
        await self.db.refresh(invoice)

        logger.info(f"Invoice {invoice.invoice_number} marked paid")
        return invoice
