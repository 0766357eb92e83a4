"""Pydantic schemas for deliveries, receipt and packing."""
from pydantic import Field, model_validator

from fulfillment.schemas.base import BaseResponseSchema, BaseCreateSchema
from typing import Annotated, List, Literal, Optional, Union
from datetime import datetime
from decimal import Decimal
import uuid

from fulfillment.models.delivery import DeliveryCondition
from fulfillment.models.warehouse_order import UnitType


# ============================================
# EXPECTED DELIVERIES
# ============================================

class DeliveryCreate(BaseCreateSchema):
    """Client announcement of an incoming delivery."""
    client_id: uuid.UUID
    supplier_name: str = Field(..., min_length=1, max_length=200)
    tracking_number: Optional[str] = Field(None, max_length=100)
    expected_at: Optional[datetime] = None
    quantity: Optional[int] = Field(None, gt=0)
    notes: Optional[str] = None


class DeliveryResponse(BaseResponseSchema):
    id: uuid.UUID
    client_id: uuid.UUID
    supplier_name: str
    tracking_number: Optional[str] = None
    expected_at: Optional[datetime] = None
    status: str
    condition: Optional[str] = None
    delivery_number: Optional[str] = None
    quantity: Optional[int] = None
    warehouse_location: Optional[str] = None
    notes: Optional[str] = None
    received_at: Optional[datetime] = None
    created_at: datetime


# ============================================
# RECEIPT
# ============================================

class ReceivedUnit(BaseCreateSchema):
    """One physical unit taken in. Pallets may omit dimensions."""
    type: UnitType
    width_cm: Optional[float] = None
    length_cm: Optional[float] = None
    height_cm: Optional[float] = None
    weight_kg: Optional[float] = None


class ReceiveDeliveryRequest(BaseCreateSchema):
    units: List[ReceivedUnit] = Field(default_factory=list)
    condition: DeliveryCondition = DeliveryCondition.OK
    warehouse_location: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class PackageResponse(BaseResponseSchema):
    id: uuid.UUID
    type: str
    unit_count: int
    width_cm: Optional[float] = None
    length_cm: Optional[float] = None
    height_cm: Optional[float] = None
    weight_kg: float
    volume_cbm: float


class WarehouseOrderResponse(BaseResponseSchema):
    id: uuid.UUID
    client_id: uuid.UUID
    source_delivery_id: Optional[uuid.UUID] = None
    internal_tracking_number: str
    status: str
    warehouse_location: Optional[str] = None
    notes: Optional[str] = None
    packing_notes: Optional[str] = None
    shipment_type: Optional[str] = None
    packed_weight_kg: Optional[float] = None
    packed_volume_cbm: Optional[float] = None
    packed_pallet_count: Optional[int] = None
    packed_length_cm: Optional[float] = None
    packed_width_cm: Optional[float] = None
    packed_height_cm: Optional[float] = None
    received_at: Optional[datetime] = None
    packed_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    packages: List[PackageResponse] = []


class ReceiveDeliveryResponse(BaseResponseSchema):
    delivery: DeliveryResponse
    warehouse_order: WarehouseOrderResponse


# ============================================
# PACKING
# ============================================

class PalletItem(BaseCreateSchema):
    """Pallets: count and total weight; dimensions do not apply."""
    type: Literal["PALLET"] = "PALLET"
    count: Optional[int] = None
    total_weight_kg: Optional[float] = None


class PackageItem(BaseCreateSchema):
    """Parcels: full dimensions and weight."""
    type: Literal["PACKAGE"] = "PACKAGE"
    width_cm: Optional[float] = None
    length_cm: Optional[float] = None
    height_cm: Optional[float] = None
    weight_kg: Optional[float] = None


PackItem = Annotated[Union[PalletItem, PackageItem], Field(discriminator="type")]


class PackOrderRequest(BaseCreateSchema):
    order_id: uuid.UUID
    shipment_type: UnitType
    items: List[PackItem] = Field(default_factory=list)
    notes: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def default_item_type(cls, data):
        """Items without a type take the order's shipment type."""
        if isinstance(data, dict) and isinstance(data.get("items"), list):
            shipment_type = data.get("shipment_type")
            if hasattr(shipment_type, "value"):
                shipment_type = shipment_type.value
            if shipment_type in (UnitType.PALLET.value, UnitType.PACKAGE.value):
                data = dict(data)
                data["items"] = [
                    {**item, "type": shipment_type} if isinstance(item, dict) and "type" not in item else item
                    for item in data["items"]
                ]
        return data


class PackOrderResponse(BaseResponseSchema):
    order_id: uuid.UUID
    internal_tracking_number: str
    status: str
    shipment_type: str
    total_weight_kg: float
    total_volume_cbm: Optional[float] = None
    pallet_count: Optional[int] = None
    transport_price_eur: Optional[Decimal] = None
    transport_pricing_id: Optional[uuid.UUID] = None
    needs_manual_quote: bool
    shipment_id: Optional[uuid.UUID] = None
    shipment_status: Optional[str] = None
    shipment_price_eur: Optional[Decimal] = None
