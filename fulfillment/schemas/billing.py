"""Pydantic schemas for invoices, vouchers and subscription checkout."""
from pydantic import Field

from fulfillment.schemas.base import BaseResponseSchema, BaseCreateSchema
from typing import Optional
from datetime import datetime, date
from decimal import Decimal
import uuid


class InvoiceResponse(BaseResponseSchema):
    id: uuid.UUID
    invoice_number: str
    client_id: uuid.UUID
    shipment_order_id: Optional[uuid.UUID] = None
    invoice_type: str
    status: str
    amount_eur: Decimal
    currency: str
    due_date: date
    payment_method: Optional[str] = None
    payment_link: Optional[str] = None
    paid_at: Optional[datetime] = None
    plan_id: Optional[uuid.UUID] = None
    subscription_period_months: Optional[int] = None
    voucher_id: Optional[uuid.UUID] = None
    description: Optional[str] = None
    created_at: datetime


class SetupFeeResponse(BaseResponseSchema):
    amount_eur: Decimal
    suggested_amount_eur: Optional[Decimal] = None
    valid_until: Optional[datetime] = None
    is_promotional: bool


class VoucherCreate(BaseCreateSchema):
    code: str = Field(..., min_length=1, max_length=50)
    amount_eur: Decimal = Field(..., gt=0)
    is_one_time: bool = True
    expires_at: Optional[datetime] = None


class VoucherResponse(BaseResponseSchema):
    id: uuid.UUID
    code: str
    amount_eur: Decimal
    is_one_time: bool
    expires_at: Optional[datetime] = None
    used_by_client_id: Optional[uuid.UUID] = None
    used_at: Optional[datetime] = None
    created_at: datetime


class VoucherValidateRequest(BaseCreateSchema):
    code: str = Field(..., min_length=1, max_length=50)


class SubscriptionQuoteRequest(BaseCreateSchema):
    client_id: uuid.UUID
    period_months: int = 1
    voucher_code: Optional[str] = None


class SubscriptionCheckoutRequest(SubscriptionQuoteRequest):
    payment_method: Optional[str] = None


class SubscriptionQuoteResponse(BaseResponseSchema):
    base_rate_eur: Decimal
    period_months: int
    multiplier: Decimal
    discount_percent: Decimal
    period_amount_eur: Decimal
    setup_fee_eur: Decimal
    voucher_discount_eur: Decimal
    voucher_applied: bool
    total_eur: Decimal


class SubscriptionCheckoutResponse(BaseResponseSchema):
    invoice: InvoiceResponse
    quote: SubscriptionQuoteResponse
