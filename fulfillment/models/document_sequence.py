"""Per-year counters for document numbers."""
import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fulfillment.database import Base
from fulfillment.db_types import UUIDType


class DocumentSequence(Base):
    """
    Document sequence for atomic number generation.

    One row per prefix and calendar year, locked while the next number is
    taken so concurrent requests never hand out the same number.

    Example:
        prefix = "INV", year = 2026, current_number = 41
        -> next invoice number: INV-2026-042
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        UniqueConstraint("prefix", "year", name="uq_document_sequence_prefix_year"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    prefix: Mapped[str] = mapped_column(String(10), nullable=False, comment="DEL, INT, INV")
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    current_number: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Last number handed out"
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<DocumentSequence {self.prefix}-{self.year}: {self.current_number}>"
