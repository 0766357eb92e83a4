"""
Subscription Pricing.

amount = base_rate * period_multiplier * (1 - discount/100) + setup_fee - voucher
floored at zero.

Period multipliers are fixed promotional values. An invalid or missing
voucher contributes nothing instead of failing the calculation.
"""
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment.config import settings
from fulfillment.core.exceptions import ValidationError, NotFoundError
from fulfillment.core.side_effects import SideEffectQueue
from fulfillment.database import begin_write
from fulfillment.models.billing import Voucher, SetupFee, Invoice, InvoiceType
from fulfillment.models.client import Client
from fulfillment.services.invoice_service import InvoiceService
from fulfillment.services.payment_link_service import create_payment_link_for_invoice


logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")

PERIOD_MULTIPLIERS = {
    1: Decimal("1"),
    3: Decimal("3") * Decimal("0.9"),
    6: Decimal("6") * Decimal("0.85"),
}


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; they were stored as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def period_multiplier(period_months: int) -> Decimal:
    try:
        return PERIOD_MULTIPLIERS[period_months]
    except KeyError:
        raise ValidationError(
            f"Unsupported subscription period {period_months}; choose 1, 3 or 6 months",
            field="period_months",
        )


def voucher_is_valid(voucher: Optional[Voucher], now: Optional[datetime] = None) -> bool:
    """Not yet used and not expired."""
    if voucher is None:
        return False
    if voucher.used_by_client_id is not None or voucher.used_at is not None:
        return False
    expires_at = _aware(voucher.expires_at)
    if expires_at is not None and expires_at <= (now or datetime.now(timezone.utc)):
        return False
    return True


class SubscriptionQuote:
    """Breakdown of one subscription amount."""
    def __init__(
        self,
        base_rate_eur: Decimal,
        period_months: int,
        multiplier: Decimal,
        discount_percent: Decimal,
        period_amount_eur: Decimal,
        setup_fee_eur: Decimal,
        voucher_discount_eur: Decimal,
        total_eur: Decimal,
        voucher_id: Optional[uuid.UUID] = None,
    ):
        self.base_rate_eur = base_rate_eur
        self.period_months = period_months
        self.multiplier = multiplier
        self.discount_percent = discount_percent
        self.period_amount_eur = period_amount_eur
        self.setup_fee_eur = setup_fee_eur
        self.voucher_discount_eur = voucher_discount_eur
        self.total_eur = total_eur
        self.voucher_id = voucher_id

    @property
    def voucher_applied(self) -> bool:
        return self.voucher_id is not None

    def to_dict(self) -> dict:
        return {
            "base_rate_eur": float(self.base_rate_eur),
            "period_months": self.period_months,
            "multiplier": float(self.multiplier),
            "discount_percent": float(self.discount_percent),
            "period_amount_eur": float(self.period_amount_eur),
            "setup_fee_eur": float(self.setup_fee_eur),
            "voucher_discount_eur": float(self.voucher_discount_eur),
            "voucher_applied": self.voucher_applied,
            "total_eur": float(self.total_eur),
        }


def calculate_subscription_amount(
    base_rate_eur,
    period_months: int,
    discount_percent=0,
    setup_fee_eur=0,
    voucher: Optional[Voucher] = None,
    now: Optional[datetime] = None,
) -> SubscriptionQuote:
    """Pure calculation; numbers may be given as Decimal, int, float or str."""
    base = Decimal(str(base_rate_eur))
    discount = Decimal(str(discount_percent or 0))
    setup_fee = Decimal(str(setup_fee_eur or 0))
    if discount < 0 or discount > 100:
        raise ValidationError("Discount must be between 0 and 100 percent", field="discount_percent")

    multiplier = period_multiplier(period_months)
    period_amount = base * multiplier * (Decimal("1") - discount / Decimal("100"))

    voucher_amount = Decimal("0")
    voucher_id = None
    if voucher_is_valid(voucher, now):
        voucher_amount = Decimal(str(voucher.amount_eur))
        voucher_id = voucher.id

    total = max(period_amount + setup_fee - voucher_amount, Decimal("0"))

    return SubscriptionQuote(
        base_rate_eur=base,
        period_months=period_months,
        multiplier=multiplier,
        discount_percent=discount,
        period_amount_eur=period_amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP),
        setup_fee_eur=setup_fee.quantize(TWO_PLACES, rounding=ROUND_HALF_UP),
        voucher_discount_eur=voucher_amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP),
        total_eur=total.quantize(TWO_PLACES, rounding=ROUND_HALF_UP),
        voucher_id=voucher_id,
    )


class SubscriptionService:
    """Setup fee, vouchers and subscription checkout."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== SETUP FEE ====================

    async def get_current_setup_fee(self) -> Tuple[Decimal, Optional[SetupFee]]:
        """Promotional amount while valid, then the suggested amount, then the configured default."""
        stmt = select(SetupFee).order_by(SetupFee.created_at.desc()).limit(1)
        fee = (await self.db.execute(stmt)).scalar_one_or_none()
        if fee is None:
            return Decimal(str(settings.DEFAULT_SETUP_FEE_EUR)).quantize(TWO_PLACES), None

        valid_until = _aware(fee.valid_until)
        if valid_until is None or valid_until > datetime.now(timezone.utc):
            return Decimal(fee.current_amount_eur), fee
        return Decimal(fee.suggested_amount_eur), fee

    # ==================== VOUCHERS ====================

    async def get_voucher_by_code(self, code: str) -> Optional[Voucher]:
        stmt = select(Voucher).where(Voucher.code == code.strip().upper())
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def create_voucher(
        self,
        code: str,
        amount_eur,
        is_one_time: bool = True,
        expires_at: Optional[datetime] = None,
    ) -> Voucher:
        normalized = (code or "").strip().upper()
        if not normalized:
            raise ValidationError("Voucher code is required", field="code")
        amount = Decimal(str(amount_eur))
        if amount <= 0:
            raise ValidationError("Voucher amount must be greater than 0", field="amount_eur")
        if await self.get_voucher_by_code(normalized):
            raise ValidationError(f"Voucher code {normalized} already exists", field="code")

        voucher = Voucher(
            code=normalized,
            amount_eur=amount,
            is_one_time=is_one_time,
            expires_at=expires_at,
        )
        self.db.add(voucher)
        await self.db.commit()
        await self.db.refresh(voucher)

        logger.info(f"Voucher {voucher.code} created for {voucher.amount_eur} EUR")
        return voucher

    async def validate_voucher(self, code: str) -> Voucher:
        """Strict check used by the checkout form; the calculator itself never fails on vouchers."""
        voucher = await self.get_voucher_by_code(code)
        if voucher is None:
            raise NotFoundError("Voucher", code.strip().upper())
        if voucher.used_by_client_id is not None or voucher.used_at is not None:
            raise ValidationError("Voucher has already been used", field="code")
        if not voucher_is_valid(voucher):
            raise ValidationError("Voucher has expired", field="code")
        return voucher

    # ==================== QUOTE / CHECKOUT ====================

    async def _get_client(self, client_id: uuid.UUID) -> Client:
        client = await self.db.get(Client, client_id)
        if client is None:
            raise NotFoundError("Client", client_id)
        if client.plan is None:
            raise ValidationError("Client has no subscription plan", field="client_id")
        return client

    async def _has_subscription_invoice(self, client_id: uuid.UUID) -> bool:
        stmt = select(func.count(Invoice.id)).where(
            Invoice.client_id == client_id,
            Invoice.invoice_type == InvoiceType.SUBSCRIPTION.value,
        )
        return ((await self.db.execute(stmt)).scalar() or 0) > 0

    async def quote(
        self,
        client_id: uuid.UUID,
        period_months: int,
        voucher_code: Optional[str] = None,
    ) -> SubscriptionQuote:
        client = await self._get_client(client_id)

        # Setup fee is charged on the first subscription only
        setup_fee = Decimal("0")
        if not await self._has_subscription_invoice(client.id):
            setup_fee, _ = await self.get_current_setup_fee()

        voucher = await self.get_voucher_by_code(voucher_code) if voucher_code else None
        if voucher_code and not voucher_is_valid(voucher):
            logger.info(f"Voucher {voucher_code} ignored for client {client.id}: not valid")

        return calculate_subscription_amount(
            base_rate_eur=client.plan.operations_rate_eur,
            period_months=period_months,
            discount_percent=client.subscription_discount_percent or 0,
            setup_fee_eur=setup_fee,
            voucher=voucher,
        )

    async def checkout(
        self,
        client_id: uuid.UUID,
        period_months: int,
        voucher_code: Optional[str] = None,
        payment_method: Optional[str] = None,
        side_effects: Optional[SideEffectQueue] = None,
    ) -> Tuple[Invoice, SubscriptionQuote]:
        """Issue a SUBSCRIPTION invoice and consume the voucher if one applied."""
        await begin_write(self.db)
        quote = await self.quote(client_id, period_months, voucher_code)
        client = await self._get_client(client_id)

        invoice = await InvoiceService(self.db).build_subscription_invoice(
            client=client,
            quote=quote,
            payment_method=payment_method,
        )

        if quote.voucher_applied:
            voucher = await self.db.get(Voucher, quote.voucher_id)
            if voucher.is_one_time:
                voucher.used_by_client_id = client.id
                voucher.used_at = datetime.now(timezone.utc)

        await self.db.commit()
        await self.db.refresh(invoice)

        logger.info(
            f"Subscription invoice {invoice.invoice_number} issued to client {client.id}: "
            f"{invoice.amount_eur} EUR for {period_months} months"
        )

        if side_effects is not None:
            side_effects.enqueue("payment_link", create_payment_link_for_invoice, invoice.id)

        return invoice, quote
