"""Expected delivery model: goods announced by a client before arrival."""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import String, DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from fulfillment.database import Base
from fulfillment.db_types import UUIDType


class DeliveryStatus(str, Enum):
    """Expected delivery status enumeration."""
    EXPECTED = "EXPECTED"   # Announced by the client
    RECEIVED = "RECEIVED"   # Taken in by the warehouse


class DeliveryCondition(str, Enum):
    """Condition of goods recorded at receipt."""
    OK = "OK"
    DAMAGED = "DAMAGED"


class DeliveryExpected(Base):
    """A promise of incoming goods for one client."""
    __tablename__ = "deliveries_expected"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    client_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    supplier_name: Mapped[str] = mapped_column(String(200), nullable=False)
    tracking_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    expected_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        default=DeliveryStatus.EXPECTED.value,
        nullable=False,
        index=True,
        comment="EXPECTED, RECEIVED"
    )
    condition: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, comment="OK, DAMAGED")

    delivery_number: Mapped[Optional[str]] = mapped_column(
        String(20),
        unique=True,
        nullable=True,
        index=True,
        comment="Assigned at receipt e.g., DEL-2025-001"
    )
    quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    warehouse_location: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    received_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
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

    def __repr__(self) -> str:
        return f"<DeliveryExpected {self.delivery_number or self.id}: {self.status}>"
