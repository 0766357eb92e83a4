"""Warehouse order and package models.

A WarehouseOrder is one physical consignment held for a client. Its Package
rows are the physical units (pallets or parcels) the warehouse recorded.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, DateTime, ForeignKey, Integer, Text, Float
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fulfillment.database import Base
from fulfillment.db_types import UUIDType

if TYPE_CHECKING:
    from fulfillment.models.client import Client


class WarehouseOrderStatus(str, Enum):
    """Warehouse order status enumeration."""
    AT_WAREHOUSE = "AT_WAREHOUSE"     # Received, stored
    TO_PACK = "TO_PACK"               # Selected for a shipment, awaiting packing
    READY_TO_SHIP = "READY_TO_SHIP"   # Packed
    SHIPPED = "SHIPPED"               # Released to transport


# Both creation paths leave an order waiting for packing in one of these
PACKABLE_STATUSES = (WarehouseOrderStatus.AT_WAREHOUSE.value, WarehouseOrderStatus.TO_PACK.value)

# Orders whose packages still occupy warehouse space
IN_WAREHOUSE_STATUSES = (
    WarehouseOrderStatus.AT_WAREHOUSE.value,
    WarehouseOrderStatus.TO_PACK.value,
    WarehouseOrderStatus.READY_TO_SHIP.value,
)


class UnitType(str, Enum):
    """Physical unit type, shared by packages and pricing rules."""
    PALLET = "PALLET"
    PACKAGE = "PACKAGE"


class WarehouseOrder(Base):
    """A received consignment owned by exactly one client."""
    __tablename__ = "warehouse_orders"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    client_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    source_delivery_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("deliveries_expected.id", ondelete="SET NULL"),
        nullable=True,
        comment="Null for orders created by the local collection flow"
    )
    internal_tracking_number: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        index=True,
        comment="Warehouse-internal number e.g., INT-2025-001"
    )

    status: Mapped[str] = mapped_column(
        String(30),
        default=WarehouseOrderStatus.AT_WAREHOUSE.value,
        nullable=False,
        index=True,
        comment="AT_WAREHOUSE, TO_PACK, READY_TO_SHIP, SHIPPED"
    )
    warehouse_location: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    packing_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Packing result
    shipment_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, comment="PALLET, PACKAGE")
    packed_weight_kg: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    packed_volume_cbm: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    packed_pallet_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    # Dimensions only meaningful for single-package orders
    packed_length_cm: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    packed_width_cm: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    packed_height_cm: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    received_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    packed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    shipped_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
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

    # Relationships
    client: Mapped["Client"] = relationship("Client", back_populates="warehouse_orders")
    packages: Mapped[List["Package"]] = relationship(
        "Package",
        back_populates="warehouse_order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="Package.created_at"
    )

    @property
    def is_packable(self) -> bool:
        return self.status in PACKABLE_STATUSES

    def __repr__(self) -> str:
        return f"<WarehouseOrder {self.internal_tracking_number}: {self.status}>"


class Package(Base):
    """One physical unit (pallet or parcel) of a warehouse order."""
    __tablename__ = "packages"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    warehouse_order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("warehouse_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    type: Mapped[str] = mapped_column(String(20), nullable=False, comment="PALLET, PACKAGE")
    unit_count: Mapped[int] = mapped_column(
        Integer,
        default=1,
        nullable=False,
        comment="Pallet positions this row stands for; always 1 for parcels"
    )

    # Dimensions (in cm); pallets may omit them
    width_cm: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    length_cm: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    height_cm: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    weight_kg: Mapped[float] = mapped_column(Float, nullable=False)
    volume_cbm: Mapped[float] = mapped_column(
        Float,
        default=0.0,
        nullable=False,
        comment="Derived volume including the packaging buffer"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    warehouse_order: Mapped["WarehouseOrder"] = relationship("WarehouseOrder", back_populates="packages")

    def __repr__(self) -> str:
        return f"<Package {self.type} {self.weight_kg}kg>"
