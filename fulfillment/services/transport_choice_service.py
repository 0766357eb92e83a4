"""
Transport Choice Resolver.

Applies the client's answer to a transport quote:
- ACCEPT: AWAITING_ACCEPTANCE -> AWAITING_PAYMENT, one transport invoice
- REQUEST_CUSTOM: flag for sales follow-up, status and price unchanged
- OWN_TRANSPORT: -> READY_FOR_LOADING with the client's carrier; details may be
  attached by a later call while the shipment waits for loading
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment.core.exceptions import ValidationError, StateConflictError
from fulfillment.core.side_effects import SideEffectQueue
from fulfillment.database import begin_write
from fulfillment.models.billing import Invoice
from fulfillment.models.shipment import (
    ShipmentOrder, ShipmentStatus, TransportChoice, TransportMode, PaymentMethod,
)
from fulfillment.models.warehouse_order import UnitType
from fulfillment.services.invoice_service import InvoiceService
from fulfillment.services.notification_service import notify_custom_quote_requested
from fulfillment.services.payment_link_service import create_payment_link_for_invoice
from fulfillment.services.shipment_service import ShipmentService


logger = logging.getLogger(__name__)

# Statuses from which a first choice can be made
CHOICE_OPEN_STATUSES = (ShipmentStatus.REQUESTED.value, ShipmentStatus.AWAITING_ACCEPTANCE.value)

# Statuses an accepted shipment moves through afterwards
ACCEPTED_STATUSES = (
    ShipmentStatus.AWAITING_PAYMENT.value,
    ShipmentStatus.READY_FOR_LOADING.value,
    ShipmentStatus.IN_TRANSIT.value,
)


class OwnTransportDetails:
    """Carrier details supplied with an OWN_TRANSPORT choice; every field optional."""
    def __init__(
        self,
        vehicle_reg: Optional[str] = None,
        trailer_reg: Optional[str] = None,
        carrier: Optional[str] = None,
        tracking_number: Optional[str] = None,
        planned_loading_date: Optional[datetime] = None,
    ):
        self.vehicle_reg = (vehicle_reg or "").strip() or None
        self.trailer_reg = (trailer_reg or "").strip() or None
        self.carrier = (carrier or "").strip() or None
        self.tracking_number = (tracking_number or "").strip() or None
        self.planned_loading_date = planned_loading_date

    @property
    def is_empty(self) -> bool:
        return not any([
            self.vehicle_reg, self.trailer_reg, self.carrier,
            self.tracking_number, self.planned_loading_date,
        ])

    def validate_for(self, shipment_type: Optional[str]) -> None:
        """Package shipments need carrier and tracking number together, or neither."""
        if shipment_type == UnitType.PALLET.value:
            return
        if bool(self.carrier) != bool(self.tracking_number):
            missing = "tracking_number" if self.carrier else "carrier"
            raise ValidationError(
                "Package shipments need both carrier and tracking number",
                field=missing,
            )

    def apply_to(self, shipment: ShipmentOrder) -> None:
        """Write supplied fields; absent fields keep their stored value."""
        if self.vehicle_reg:
            shipment.own_transport_vehicle_reg = self.vehicle_reg
        if self.trailer_reg:
            shipment.own_transport_trailer_reg = self.trailer_reg
        if self.carrier:
            shipment.own_transport_carrier = self.carrier
        if self.tracking_number:
            shipment.own_transport_tracking_number = self.tracking_number
        if self.planned_loading_date:
            shipment.own_transport_planned_loading_date = self.planned_loading_date


class TransportChoiceService:
    """Service applying client transport decisions."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.shipments = ShipmentService(db)

    async def apply_choice(
        self,
        shipment_id: uuid.UUID,
        choice: str,
        payment_method: Optional[str] = None,
        own_transport: Optional[OwnTransportDetails] = None,
        side_effects: Optional[SideEffectQueue] = None,
    ) -> Tuple[ShipmentOrder, Optional[Invoice]]:
        """
        Apply a transport choice.

        Returns (shipment, invoice); the invoice is set for ACCEPT only.

        Raises:
            NotFoundError: unknown shipment
            ValidationError: bad choice, payment method or own-transport details
            StateConflictError: choice not allowed in the current status
        """
        try:
            choice = TransportChoice(choice).value
        except ValueError:
            raise ValidationError("Invalid transport choice", field="transport_choice")
        if payment_method is not None:
            try:
                payment_method = PaymentMethod(payment_method).value
            except ValueError:
                raise ValidationError("Payment method must be online or bank_transfer", field="payment_method")

        await begin_write(self.db)
        shipment = await self.shipments.get_shipment_or_404(shipment_id, for_update=True)

        if choice == TransportChoice.ACCEPT.value:
            return await self._accept(shipment, payment_method, side_effects)
        if choice == TransportChoice.REQUEST_CUSTOM.value:
            return await self._request_custom(shipment, side_effects), None
        return await self._own_transport(shipment, own_transport or OwnTransportDetails()), None

    async def _accept(
        self,
        shipment: ShipmentOrder,
        payment_method: Optional[str],
        side_effects: Optional[SideEffectQueue],
    ) -> Tuple[ShipmentOrder, Invoice]:
        invoices = InvoiceService(self.db)

        # Repeated ACCEPT returns the existing invoice
        if (shipment.client_transport_choice == TransportChoice.ACCEPT.value
                and shipment.status in ACCEPTED_STATUSES):
            invoice = await invoices.get_transport_invoice(shipment.id)
            if invoice is None:
                invoice, _ = await invoices.build_transport_invoice(shipment, shipment.payment_method)
                await self.db.commit()
            return shipment, invoice

        if shipment.status != ShipmentStatus.AWAITING_ACCEPTANCE.value:
            raise StateConflictError(
                f"Shipment cannot be accepted in status {shipment.status}",
                current_status=shipment.status,
            )
        price = shipment.offered_price_eur
        if price is None:
            raise StateConflictError("Shipment has no price to accept", current_status=shipment.status)

        shipment.client_transport_choice = TransportChoice.ACCEPT.value
        shipment.transport_mode = TransportMode.MAK.value
        shipment.proposed_price_eur = price
        shipment.payment_method = payment_method or PaymentMethod.ONLINE.value
        shipment.accepted_at = datetime.now(timezone.utc)
        shipment.custom_quote_requested_at = None
        shipment.needs_manual_quote = False
        shipment.status = ShipmentStatus.AWAITING_PAYMENT.value

        shipment_id = shipment.id
        try:
            invoice, created = await invoices.build_transport_invoice(shipment, shipment.payment_method)
            await self.db.commit()
        except IntegrityError:
            # A concurrent ACCEPT stored the invoice first
            await self.db.rollback()
            invoice = await invoices.get_transport_invoice(shipment_id)
            if invoice is None:
                raise
            logger.info(f"Shipment {shipment_id} already accepted, returning invoice {invoice.invoice_number}")
            shipment = await self.shipments.get_shipment_or_404(shipment_id)
            await self.db.refresh(shipment)
            return shipment, invoice
        await self.db.refresh(shipment)

        logger.info(f"Shipment {shipment.id} accepted at {price} EUR, invoice {invoice.invoice_number}")

        if created and side_effects is not None and shipment.payment_method == PaymentMethod.ONLINE.value:
            side_effects.enqueue("payment_link", create_payment_link_for_invoice, invoice.id)

        return shipment, invoice

    async def _request_custom(
        self,
        shipment: ShipmentOrder,
        side_effects: Optional[SideEffectQueue],
    ) -> ShipmentOrder:
        if shipment.status not in CHOICE_OPEN_STATUSES:
            raise StateConflictError(
                f"Custom quote cannot be requested in status {shipment.status}",
                current_status=shipment.status,
            )

        if (shipment.client_transport_choice == TransportChoice.REQUEST_CUSTOM.value
                and shipment.custom_quote_requested_at is not None):
            return shipment

        shipment.client_transport_choice = TransportChoice.REQUEST_CUSTOM.value
        shipment.custom_quote_requested_at = datetime.now(timezone.utc)
        shipment.needs_manual_quote = True

        await self.db.commit()
        await self.db.refresh(shipment)

        logger.info(f"Custom transport quote requested for shipment {shipment.id}")

        if side_effects is not None:
            side_effects.enqueue("custom_quote_email", notify_custom_quote_requested, shipment.id)

        return shipment

    async def _own_transport(self, shipment: ShipmentOrder, details: OwnTransportDetails) -> ShipmentOrder:
        attaching = (
            shipment.status == ShipmentStatus.READY_FOR_LOADING.value
            and shipment.client_transport_choice == TransportChoice.OWN_TRANSPORT.value
        )
        if not attaching and shipment.status not in CHOICE_OPEN_STATUSES:
            raise StateConflictError(
                f"Own transport cannot be chosen in status {shipment.status}",
                current_status=shipment.status,
            )

        details.validate_for(await self.shipments.resolve_shipment_type(shipment))

        details.apply_to(shipment)
        if not attaching:
            shipment.client_transport_choice = TransportChoice.OWN_TRANSPORT.value
            shipment.transport_mode = TransportMode.CLIENT_OWN.value
            shipment.custom_quote_requested_at = None
            shipment.needs_manual_quote = False
            shipment.status = ShipmentStatus.READY_FOR_LOADING.value

        await self.db.commit()
        await self.db.refresh(shipment)

        if attaching:
            logger.info(f"Own transport details updated for shipment {shipment.id}")
        else:
            logger.info(
                f"Shipment {shipment.id} set to own transport"
                f"{'' if details.is_empty else ' with details'}"
            )
        return shipment
