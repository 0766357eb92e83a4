"""
Warehouse capacity.

A client's used capacity is the summed Package.volume_cbm of its warehouse
orders still in the warehouse. Recalculation is a best-effort side effect of
receiving and packing, and a periodic job repairs any run that failed.
"""
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from math import ceil
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment.config import settings
from fulfillment.core.exceptions import NotFoundError
from fulfillment.database import begin_write, get_db_session
from fulfillment.models.client import Client, Plan
from fulfillment.models.warehouse_order import WarehouseOrder, Package, IN_WAREHOUSE_STATUSES


logger = logging.getLogger(__name__)

SECONDS_PER_WEEK = 7 * 24 * 3600


def weekly_overspace_charge(
    used_cbm: float,
    limit_cbm: float,
    buffer_cbm: float = 0.0,
    rate_eur_per_week: Optional[float] = None,
    period_start: Optional[datetime] = None,
    period_end: Optional[datetime] = None,
) -> Decimal:
    """
    Charge for space above limit + buffer: rate per m3 per started week.

    Without a period, one week is charged.
    """
    rate = Decimal(str(settings.OVERSPACE_RATE_EUR_PER_WEEK if rate_eur_per_week is None else rate_eur_per_week))
    over = used_cbm - (limit_cbm + buffer_cbm)
    if over <= 0:
        return Decimal("0.00")

    weeks = 1
    if period_start and period_end:
        seconds = (period_end - period_start).total_seconds()
        weeks = max(1, ceil(seconds / SECONDS_PER_WEEK))

    return (Decimal(str(over)) * rate * weeks).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def space_warning(used_cbm: float, limit_cbm: float) -> bool:
    """Usage between 90% and 120% of the limit."""
    if limit_cbm <= 0:
        return False
    usage_percent = used_cbm / limit_cbm * 100
    return 90 <= usage_percent <= 120


class CapacityService:
    """Service for warehouse space accounting."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def used_capacity(self, client_id: uuid.UUID) -> float:
        stmt = (
            select(func.coalesce(func.sum(Package.volume_cbm), 0.0))
            .join(WarehouseOrder, Package.warehouse_order_id == WarehouseOrder.id)
            .where(
                WarehouseOrder.client_id == client_id,
                WarehouseOrder.status.in_(IN_WAREHOUSE_STATUSES),
            )
        )
        return float((await self.db.execute(stmt)).scalar() or 0.0)

    async def recalculate_client(self, client_id: uuid.UUID) -> float:
        """Refresh used capacity, the weekly over-space charge and the space warning."""
        await begin_write(self.db)
        client = await self.db.get(Client, client_id)
        if client is None:
            raise NotFoundError("Client", client_id)

        used = await self.used_capacity(client_id)
        plan = await self.db.get(Plan, client.plan_id) if client.plan_id else None

        client.used_capacity_cbm = used
        client.weekly_overspace_charge_eur = self._charge_for(used, plan)
        client.space_warning = space_warning(used, plan.capacity_cbm or 0.0) if plan else False
        client.capacity_updated_at = datetime.now(timezone.utc)
        await self.db.commit()

        if client.space_warning:
            logger.warning(f"Client {client_id} is near its space limit: {used:.3f} m3")
        logger.info(f"Client {client_id} uses {used:.3f} m3")
        return used

    @staticmethod
    def _charge_for(used_cbm: float, plan: Optional[Plan]) -> Decimal:
        if plan is None:
            return Decimal("0.00")
        return weekly_overspace_charge(
            used_cbm=used_cbm,
            limit_cbm=plan.capacity_cbm or 0.0,
            buffer_cbm=plan.buffer_cbm or 0.0,
        )

    async def recalculate_all(self) -> int:
        await begin_write(self.db)
        client_ids: List[uuid.UUID] = list((await self.db.execute(select(Client.id))).scalars().all())
        for client_id in client_ids:
            await self.recalculate_client(client_id)
        return len(client_ids)


async def recalculate_client_capacity(client_id: uuid.UUID) -> float:
    """Background task entry point."""
    async with get_db_session() as db:
        return await CapacityService(db).recalculate_client(client_id)
