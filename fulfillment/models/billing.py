"""Billing models: invoices, vouchers and the subscription setup fee.

The pricing core only emits amounts; these rows are what it references.
"""
import uuid
from datetime import datetime, date, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, Date, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from fulfillment.database import Base
from fulfillment.db_types import UUIDType, MoneyType


class InvoiceType(str, Enum):
    """Invoice type enumeration."""
    TRANSPORT = "TRANSPORT"
    SUBSCRIPTION = "SUBSCRIPTION"


class InvoiceStatus(str, Enum):
    """Invoice status enumeration."""
    ISSUED = "ISSUED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class Invoice(Base):
    """Invoice issued to a client."""
    __tablename__ = "invoices"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    invoice_number: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        index=True,
        comment="e.g., INV-2025-001"
    )

    client_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    shipment_order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("shipment_orders.id", ondelete="RESTRICT"),
        nullable=True,
        unique=True,
        comment="At most one transport invoice per shipment"
    )

    invoice_type: Mapped[str] = mapped_column(String(20), nullable=False, comment="TRANSPORT, SUBSCRIPTION")
    status: Mapped[str] = mapped_column(String(20), default=InvoiceStatus.ISSUED.value, nullable=False, index=True)
    amount_eur: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="EUR", nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)

    payment_method: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    payment_link: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Subscription invoices
    plan_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)
    subscription_period_months: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    voucher_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_number}: {self.amount_eur} {self.currency}>"


class Voucher(Base):
    """One-time discount code for subscription checkout."""
    __tablename__ = "vouchers"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    amount_eur: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    is_one_time: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    used_by_client_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("clients.id", ondelete="SET NULL"),
        nullable=True
    )
    used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<Voucher {self.code}>"


class SetupFee(Base):
    """One-off onboarding fee; the newest row is the one in force."""
    __tablename__ = "setup_fees"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    suggested_amount_eur: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    current_amount_eur: Mapped[Decimal] = mapped_column(
        MoneyType,
        nullable=False,
        comment="Promotional amount while valid_until has not passed"
    )
    valid_until: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
