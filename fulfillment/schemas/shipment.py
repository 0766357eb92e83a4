"""Pydantic schemas for shipment orders and transport choices."""
from pydantic import Field

from fulfillment.schemas.base import BaseResponseSchema, BaseCreateSchema
from fulfillment.schemas.billing import InvoiceResponse
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
import uuid


class ShipmentCreate(BaseCreateSchema):
    """Client request to ship warehouse orders together."""
    client_id: uuid.UUID
    warehouse_order_ids: List[uuid.UUID] = Field(default_factory=list)
    delivery_address: Optional[dict] = None


class ShipmentItemResponse(BaseResponseSchema):
    id: uuid.UUID
    warehouse_order_id: uuid.UUID


class ShipmentResponse(BaseResponseSchema):
    id: uuid.UUID
    client_id: uuid.UUID
    status: str
    transport_mode: str
    delivery_address: Optional[dict] = None
    shipment_type: Optional[str] = None
    total_volume_cbm: Optional[float] = None
    total_weight_kg: Optional[float] = None
    total_pallet_count: Optional[int] = None
    calculated_price_eur: Optional[Decimal] = None
    transport_pricing_id: Optional[uuid.UUID] = None
    proposed_price_eur: Optional[Decimal] = None
    needs_manual_quote: bool
    priced_at: Optional[datetime] = None
    quoted_at: Optional[datetime] = None
    quote_notes: Optional[str] = None
    client_transport_choice: Optional[str] = None
    payment_method: Optional[str] = None
    accepted_at: Optional[datetime] = None
    custom_quote_requested_at: Optional[datetime] = None
    own_transport_vehicle_reg: Optional[str] = None
    own_transport_trailer_reg: Optional[str] = None
    own_transport_carrier: Optional[str] = None
    own_transport_tracking_number: Optional[str] = None
    own_transport_planned_loading_date: Optional[datetime] = None
    released_at: Optional[datetime] = None
    released_vehicle_reg: Optional[str] = None
    created_at: datetime
    items: List[ShipmentItemResponse] = []


class ConsolidationResponse(BaseResponseSchema):
    ready: bool
    priced: bool
    shipment: ShipmentResponse


class TransportChoiceRequest(BaseCreateSchema):
    """ACCEPT, REQUEST_CUSTOM or OWN_TRANSPORT, with optional carrier details."""
    transport_choice: str
    payment_method: Optional[str] = None
    own_transport_vehicle_reg: Optional[str] = Field(None, max_length=20)
    own_transport_trailer_reg: Optional[str] = Field(None, max_length=20)
    own_transport_carrier: Optional[str] = Field(None, max_length=100)
    own_transport_tracking_number: Optional[str] = Field(None, max_length=100)
    own_transport_planned_loading_date: Optional[datetime] = None


class TransportChoiceResponse(BaseResponseSchema):
    shipment: ShipmentResponse
    invoice: Optional[InvoiceResponse] = None


class ReleaseShipmentRequest(BaseCreateSchema):
    vehicle_reg: Optional[str] = Field(None, max_length=20)


class ManualQuoteRequest(BaseCreateSchema):
    """Transport price set by sales for a shipment without a usable rule price."""
    price_eur: Decimal
    notes: Optional[str] = Field(None, max_length=2000)
