"""Transport pricing rule model."""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, Integer, Float
from sqlalchemy.orm import Mapped, mapped_column

from fulfillment.database import Base
from fulfillment.db_types import UUIDType, MoneyType


class PricingType(str, Enum):
    """How a matched rule turns into a price."""
    FIXED_PER_UNIT = "FIXED_PER_UNIT"         # price x pallet positions
    DYNAMIC_M3_WEIGHT = "DYNAMIC_M3_WEIGHT"   # flat banded price


class TransportPricingRule(Base):
    """
    A priced band for one transport type.

    Null bounds are unbounded on that side. Rules with higher priority are
    evaluated first; the first rule whose bounds admit the input wins.
    """
    __tablename__ = "transport_pricing_rules"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    transport_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True, comment="PALLET, PACKAGE")
    type: Mapped[str] = mapped_column(
        String(30),
        default=PricingType.FIXED_PER_UNIT.value,
        nullable=False,
        comment="FIXED_PER_UNIT, DYNAMIC_M3_WEIGHT"
    )

    # Bounds
    weight_min_kg: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    weight_max_kg: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    volume_min_cbm: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    volume_max_cbm: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    pallet_count_min: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    pallet_count_max: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    price_eur: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

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
        return f"<TransportPricingRule {self.name} p={self.priority}>"
