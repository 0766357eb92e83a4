"""Client and subscription plan models."""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Float
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fulfillment.database import Base
from fulfillment.db_types import UUIDType, MoneyType

if TYPE_CHECKING:
    from fulfillment.models.warehouse_order import WarehouseOrder


class Plan(Base):
    """Recurring subscription plan (storage + operations)."""
    __tablename__ = "plans"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    operations_rate_eur: Mapped[Decimal] = mapped_column(
        MoneyType,
        nullable=False,
        comment="Monthly base rate before period and client discounts"
    )
    capacity_cbm: Mapped[float] = mapped_column(Float, default=0.0, comment="Included storage in m3")
    buffer_cbm: Mapped[float] = mapped_column(Float, default=0.0, comment="Free space above the limit")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<Plan {self.name}>"


class Client(Base):
    """A customer storing goods in the warehouse."""
    __tablename__ = "clients"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    display_name: Mapped[str] = mapped_column(String(200), nullable=False)

    plan_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("plans.id", ondelete="SET NULL"),
        nullable=True
    )
    subscription_discount_percent: Mapped[float] = mapped_column(
        Float,
        default=0.0,
        comment="Negotiated discount applied to the plan rate, 0-100"
    )

    # Warehouse capacity (m3)
    used_capacity_cbm: Mapped[float] = mapped_column(Float, default=0.0)
    capacity_updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    weekly_overspace_charge_eur: Mapped[Decimal] = mapped_column(
        MoneyType,
        default=Decimal("0.00"),
        comment="Charge per week for space above plan limit + buffer, at current usage"
    )
    space_warning: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        comment="Usage between 90% and 120% of the plan limit"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    plan: Mapped[Optional["Plan"]] = relationship("Plan", lazy="selectin")
    warehouse_orders: Mapped[List["WarehouseOrder"]] = relationship(
        "WarehouseOrder",
        back_populates="client"
    )

    def __repr__(self) -> str:
        return f"<Client {self.email}>"
