"""
Document number generation.

Formats (monotonic per calendar year):
- Delivery numbers:          DEL-YYYY-NNN
- Internal tracking numbers: INT-YYYY-NNN
- Invoice numbers:           INV-YYYY-NNN

NNN is zero padded to three digits and keeps growing past 999.

Each prefix and year has a DocumentSequence row that is locked while the next
number is taken. A missing row is seeded from the highest number already
stored, so numbers continue across existing data.
"""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment.models.billing import Invoice
from fulfillment.models.delivery import DeliveryExpected
from fulfillment.models.document_sequence import DocumentSequence
from fulfillment.models.warehouse_order import WarehouseOrder


DELIVERY_PREFIX = "DEL"
INTERNAL_TRACKING_PREFIX = "INT"
INVOICE_PREFIX = "INV"


def format_document_number(prefix: str, year: int, sequence: int) -> str:
    return f"{prefix}-{year}-{sequence:03d}"


def parse_sequence(number: Optional[str]) -> int:
    """Trailing sequence of a document number; 0 for anything unparseable."""
    if not number:
        return 0
    try:
        return int(number.rsplit("-", 1)[1])
    except (IndexError, ValueError):
        return 0


async def _highest_stored(db: AsyncSession, column, year_prefix: str) -> int:
    # Longer numbers sort after shorter ones once the sequence passes 999
    stmt = (
        select(column)
        .where(column.like(f"{year_prefix}%"))
        .order_by(func.length(column).desc(), column.desc())
        .limit(1)
    )
    return parse_sequence((await db.execute(stmt)).scalar_one_or_none())


async def _locked_sequence(db: AsyncSession, prefix: str, year: int) -> Optional[DocumentSequence]:
    stmt = (
        select(DocumentSequence)
        .where(DocumentSequence.prefix == prefix, DocumentSequence.year == year)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def _next_number(db: AsyncSession, column, prefix: str, year: Optional[int] = None) -> str:
    year = year or datetime.now(timezone.utc).year

    sequence = await _locked_sequence(db, prefix, year)
    if sequence is None:
        seeded = DocumentSequence(
            prefix=prefix,
            year=year,
            current_number=await _highest_stored(db, column, f"{prefix}-{year}-"),
        )
        await db.flush()
        try:
            async with db.begin_nested():
                db.add(seeded)
            sequence = seeded
        except IntegrityError:
            # Another transaction created the row first
            sequence = await _locked_sequence(db, prefix, year)

    sequence.current_number += 1
    await db.flush()
    return format_document_number(prefix, year, sequence.current_number)


async def generate_delivery_number(db: AsyncSession, year: Optional[int] = None) -> str:
    return await _next_number(db, DeliveryExpected.delivery_number, DELIVERY_PREFIX, year)


async def generate_internal_tracking_number(db: AsyncSession, year: Optional[int] = None) -> str:
    return await _next_number(db, WarehouseOrder.internal_tracking_number, INTERNAL_TRACKING_PREFIX, year)


async def generate_invoice_number(db: AsyncSession, year: Optional[int] = None) -> str:
    return await _next_number(db, Invoice.invoice_number, INVOICE_PREFIX, year)
