"""Billing API endpoints: invoices, setup fee, vouchers and subscription checkout."""
import uuid

from fastapi import APIRouter, BackgroundTasks, status

from fulfillment.api.deps import DB, SideEffects, http_error
from fulfillment.core.exceptions import FulfillmentError
from fulfillment.services.invoice_service import InvoiceService
from fulfillment.services.subscription_pricing import SubscriptionService
from fulfillment.schemas.billing import (
    InvoiceResponse,
    SetupFeeResponse,
    VoucherCreate,
    VoucherResponse,
    VoucherValidateRequest,
    SubscriptionQuoteRequest,
    SubscriptionQuoteResponse,
    SubscriptionCheckoutRequest,
    SubscriptionCheckoutResponse,
)


invoices_router = APIRouter()
router = APIRouter()


@invoices_router.post("/{invoice_id}/mark-paid", response_model=InvoiceResponse)
async def mark_invoice_paid(invoice_id: uuid.UUID, db: DB):
    """Confirm payment. A paid transport invoice makes its shipment ready for loading."""
    service = InvoiceService(db)
    try:
        invoice = await service.mark_paid(invoice_id)
    except FulfillmentError as e:
        raise http_error(e)
    return InvoiceResponse.model_validate(invoice)


@router.get("/setup-fee", response_model=SetupFeeResponse)
async def get_setup_fee(db: DB):
    """Current one-off setup fee."""
    service = SubscriptionService(db)
    amount, fee = await service.get_current_setup_fee()
    return SetupFeeResponse(
        amount_eur=amount,
        suggested_amount_eur=fee.suggested_amount_eur if fee else None,
        valid_until=fee.valid_until if fee else None,
        is_promotional=bool(fee and amount == fee.current_amount_eur and amount != fee.suggested_amount_eur),
    )


@router.post(
    "/vouchers",
    response_model=VoucherResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_voucher(data: VoucherCreate, db: DB):
    service = SubscriptionService(db)
    try:
        voucher = await service.create_voucher(
            code=data.code,
            amount_eur=data.amount_eur,
            is_one_time=data.is_one_time,
            expires_at=data.expires_at,
        )
    except FulfillmentError as e:
        raise http_error(e)
    return VoucherResponse.model_validate(voucher)


@router.post("/vouchers/validate", response_model=VoucherResponse)
async def validate_voucher(data: VoucherValidateRequest, db: DB):
    """Check a voucher code before checkout."""
    service = SubscriptionService(db)
    try:
        voucher = await service.validate_voucher(data.code)
    except FulfillmentError as e:
        raise http_error(e)
    return VoucherResponse.model_validate(voucher)


@router.post("/subscription/quote", response_model=SubscriptionQuoteResponse)
async def quote_subscription(data: SubscriptionQuoteRequest, db: DB):
    """Subscription amount for a period; an unusable voucher is ignored."""
    service = SubscriptionService(db)
    try:
        quote = await service.quote(data.client_id, data.period_months, data.voucher_code)
    except FulfillmentError as e:
        raise http_error(e)
    return SubscriptionQuoteResponse.model_validate(quote)


@router.post(
    "/subscription/checkout",
    response_model=SubscriptionCheckoutResponse,
    status_code=status.HTTP_201_CREATED,
)
async def checkout_subscription(
    data: SubscriptionCheckoutRequest,
    db: DB,
    side_effects: SideEffects,
    background_tasks: BackgroundTasks,
):
    """Issue a subscription invoice and request a payment link."""
    service = SubscriptionService(db)
    try:
        invoice, quote = await service.checkout(
            data.client_id,
            data.period_months,
            voucher_code=data.voucher_code,
            payment_method=data.payment_method,
            side_effects=side_effects,
        )
    except FulfillmentError as e:
        raise http_error(e)

    side_effects.schedule(background_tasks)
    return SubscriptionCheckoutResponse(
        invoice=InvoiceResponse.model_validate(invoice),
        quote=SubscriptionQuoteResponse.model_validate(quote),
    )
