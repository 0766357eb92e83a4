"""Pydantic schemas for transport pricing rules and quotes."""
from pydantic import Field, model_validator

from fulfillment.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
import uuid

from fulfillment.models.transport_pricing import PricingType
from fulfillment.models.warehouse_order import UnitType


BOUND_PAIRS = (
    ("weight_min_kg", "weight_max_kg"),
    ("volume_min_cbm", "volume_max_cbm"),
    ("pallet_count_min", "pallet_count_max"),
)


def _check_bounds(values) -> None:
    for low_name, high_name in BOUND_PAIRS:
        low, high = getattr(values, low_name, None), getattr(values, high_name, None)
        if low is not None and high is not None and low > high:
            raise ValueError(f"{low_name} must not exceed {high_name}")


class TransportPricingRuleBase(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=200)
    transport_type: UnitType
    type: PricingType = PricingType.FIXED_PER_UNIT
    weight_min_kg: Optional[float] = Field(None, ge=0)
    weight_max_kg: Optional[float] = Field(None, ge=0)
    volume_min_cbm: Optional[float] = Field(None, ge=0)
    volume_max_cbm: Optional[float] = Field(None, ge=0)
    pallet_count_min: Optional[int] = Field(None, ge=0)
    pallet_count_max: Optional[int] = Field(None, ge=0)
    price_eur: Decimal = Field(..., ge=0)
    priority: int = 0
    is_active: bool = True


class TransportPricingRuleCreate(TransportPricingRuleBase):
    """Create schema for a pricing rule."""

    @model_validator(mode="after")
    def validate_bounds(self):
        _check_bounds(self)
        return self


class TransportPricingRuleUpdate(BaseUpdateSchema):
    """Partial update; bounds may be cleared by sending null."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    transport_type: Optional[UnitType] = None
    type: Optional[PricingType] = None
    weight_min_kg: Optional[float] = Field(None, ge=0)
    weight_max_kg: Optional[float] = Field(None, ge=0)
    volume_min_cbm: Optional[float] = Field(None, ge=0)
    volume_max_cbm: Optional[float] = Field(None, ge=0)
    pallet_count_min: Optional[int] = Field(None, ge=0)
    pallet_count_max: Optional[int] = Field(None, ge=0)
    price_eur: Optional[Decimal] = Field(None, ge=0)
    priority: Optional[int] = None
    is_active: Optional[bool] = None


class TransportPricingRuleResponse(BaseResponseSchema):
    """Response schema for a pricing rule."""
    id: uuid.UUID
    name: str
    transport_type: str
    type: str
    weight_min_kg: Optional[float] = None
    weight_max_kg: Optional[float] = None
    volume_min_cbm: Optional[float] = None
    volume_max_cbm: Optional[float] = None
    pallet_count_min: Optional[int] = None
    pallet_count_max: Optional[int] = None
    price_eur: Decimal
    priority: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


class TransportPricingRuleListResponse(BaseResponseSchema):
    items: List[TransportPricingRuleResponse]
    total: int
    page: int
    size: int
    pages: int


class PalletFootprint(BaseCreateSchema):
    """Pallet base; a missing footprint counts as one standard position."""
    width_cm: Optional[float] = Field(None, gt=0)
    length_cm: Optional[float] = Field(None, gt=0)
    height_cm: Optional[float] = Field(None, gt=0)


class TransportQuoteRequest(BaseCreateSchema):
    """Inputs for matching a rule: pallet count for PALLET, volume for PACKAGE.

    PALLET quotes may list the pallets instead of a count.
    """
    transport_type: UnitType
    weight_kg: float = Field(..., ge=0)
    pallet_count: Optional[int] = Field(None, ge=0)
    volume_cbm: Optional[float] = Field(None, ge=0)
    pallets: Optional[List[PalletFootprint]] = None


class TransportQuoteResponse(BaseResponseSchema):
    matched: bool
    transport_pricing_id: Optional[uuid.UUID] = None
    pricing_type: Optional[str] = None
    unit_price_eur: Optional[Decimal] = None
    unit_count: Optional[int] = None
    price_eur: Optional[Decimal] = None
    needs_manual_quote: bool
    pricing_positions: Optional[float] = Field(
        None,
        description="Standard 120x80 positions the listed pallets bill as"
    )
