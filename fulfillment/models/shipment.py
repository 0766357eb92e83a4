"""Shipment order models: a client request to ship warehouse orders together."""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Integer, Float, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fulfillment.database import Base
from fulfillment.db_types import UUIDType, MoneyType, JSONType

if TYPE_CHECKING:
    from fulfillment.models.warehouse_order import WarehouseOrder


class ShipmentStatus(str, Enum):
    """Shipment order status enumeration."""
    REQUESTED = "REQUESTED"                       # Created by client, members being packed
    AWAITING_ACCEPTANCE = "AWAITING_ACCEPTANCE"   # Priced, waiting for the client's choice
    AWAITING_PAYMENT = "AWAITING_PAYMENT"         # Price accepted, invoice issued
    READY_FOR_LOADING = "READY_FOR_LOADING"       # Paid, or client brings own transport
    IN_TRANSIT = "IN_TRANSIT"                     # Released from the warehouse


class TransportChoice(str, Enum):
    """Client decision after a quote."""
    ACCEPT = "ACCEPT"
    REQUEST_CUSTOM = "REQUEST_CUSTOM"
    OWN_TRANSPORT = "OWN_TRANSPORT"


class TransportMode(str, Enum):
    """Who moves the goods."""
    MAK = "MAK"                  # Warehouse-arranged transport
    CLIENT_OWN = "CLIENT_OWN"    # Client's own carrier


class PaymentMethod(str, Enum):
    ONLINE = "online"
    BANK_TRANSFER = "bank_transfer"


class ShipmentOrder(Base):
    """A client-initiated request to ship one or more warehouse orders."""
    __tablename__ = "shipment_orders"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    client_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    status: Mapped[str] = mapped_column(
        String(30),
        default=ShipmentStatus.REQUESTED.value,
        nullable=False,
        index=True,
        comment="REQUESTED, AWAITING_ACCEPTANCE, AWAITING_PAYMENT, READY_FOR_LOADING, IN_TRANSIT"
    )
    transport_mode: Mapped[str] = mapped_column(String(20), default=TransportMode.MAK.value, nullable=False)
    delivery_address: Mapped[Optional[dict]] = mapped_column(
        JSONType,
        nullable=True,
        comment="Destination address snapshot"
    )

    # Aggregate computed by consolidation
    shipment_type: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        comment="Dominant type PALLET or PACKAGE"
    )
    total_volume_cbm: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    total_weight_kg: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    total_pallet_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Pricing
    calculated_price_eur: Mapped[Optional[Decimal]] = mapped_column(MoneyType, nullable=True)
    transport_pricing_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        nullable=True,
        comment="Rule that produced the price; historical reference, not a foreign key"
    )
    proposed_price_eur: Mapped[Optional[Decimal]] = mapped_column(
        MoneyType,
        nullable=True,
        comment="Price the client accepted or sales quoted manually"
    )
    needs_manual_quote: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    priced_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    quoted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When sales set proposed_price_eur by hand"
    )
    quote_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Client decision
    client_transport_choice: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        comment="ACCEPT, REQUEST_CUSTOM, OWN_TRANSPORT"
    )
    payment_method: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    custom_quote_requested_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Own transport details
    own_transport_vehicle_reg: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    own_transport_trailer_reg: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    own_transport_carrier: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    own_transport_tracking_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    own_transport_planned_loading_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    # Release
    released_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    released_vehicle_reg: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    items: Mapped[List["ShipmentItem"]] = relationship(
        "ShipmentItem",
        back_populates="shipment",
        cascade="all, delete-orphan",
        lazy="selectin"
    )

    @property
    def warehouse_order_ids(self) -> List[uuid.UUID]:
        return [item.warehouse_order_id for item in self.items]

    @property
    def offered_price_eur(self) -> Optional[Decimal]:
        """Price the client is asked to accept; a sales quote overrides the rule price."""
        if self.proposed_price_eur is not None:
            return self.proposed_price_eur
        return self.calculated_price_eur

    def __repr__(self) -> str:
        return f"<ShipmentOrder {self.id}: {self.status}>"


class ShipmentItem(Base):
    """Join row: one warehouse order inside one shipment."""
    __tablename__ = "shipment_items"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    shipment_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("shipment_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    warehouse_order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("warehouse_orders.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
        comment="A warehouse order belongs to at most one shipment"
    )

    shipment: Mapped["ShipmentOrder"] = relationship("ShipmentOrder", back_populates="items")
    warehouse_order: Mapped["WarehouseOrder"] = relationship("WarehouseOrder", lazy="selectin")
