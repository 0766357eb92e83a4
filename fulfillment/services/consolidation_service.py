"""
Shipment Consolidation.

Triggered after every packing of a shipment member (and on demand). When all
member warehouse orders are READY_TO_SHIP the packages of every member are
aggregated and priced as one shipment.

Re-entrant: every trigger recomputes the same aggregate from the same rows.
Once a shipment carries a rule price or a sales quote, or has left the pricing
states, further runs change nothing, so rule edits never reprice it and the
priced notification goes out once.

The shipment row is locked while it is priced. Two members packed at the same
time are consolidated one after the other, and the second run sees the first
member committed.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment.core.exceptions import NotFoundError
from fulfillment.core.side_effects import SideEffectQueue
from fulfillment.database import begin_write
from fulfillment.models.shipment import ShipmentOrder, ShipmentItem, ShipmentStatus
from fulfillment.models.warehouse_order import WarehouseOrder, WarehouseOrderStatus, UnitType
from fulfillment.services.notification_service import notify_shipment_priced
from fulfillment.services.pricing_engine import PricingEngine, PricingRequest, PriceQuote, match_rule


logger = logging.getLogger(__name__)

# Statuses in which consolidation may still write a price
PRICING_STATUSES = (ShipmentStatus.REQUESTED.value, ShipmentStatus.AWAITING_ACCEPTANCE.value)


class ShipmentAggregate:
    """Summed physical measurements of every package in a shipment."""
    def __init__(self, volume_cbm: float = 0.0, weight_kg: float = 0.0, pallet_count: int = 0,
                 has_pallets: bool = False, package_count: int = 0):
        self.volume_cbm = volume_cbm
        self.weight_kg = weight_kg
        self.pallet_count = pallet_count
        self.has_pallets = has_pallets
        self.package_count = package_count

    @property
    def dominant_type(self) -> str:
        # Any pallet makes the whole shipment a pallet shipment
        return UnitType.PALLET.value if self.has_pallets else UnitType.PACKAGE.value

    @classmethod
    def from_orders(cls, orders: List[WarehouseOrder]) -> "ShipmentAggregate":
        aggregate = cls()
        for order in orders:
            for package in order.packages:
                aggregate.volume_cbm += package.volume_cbm or 0.0
                aggregate.weight_kg += package.weight_kg or 0.0
                if package.type == UnitType.PALLET.value:
                    aggregate.has_pallets = True
                    aggregate.pallet_count += package.unit_count or 1
                else:
                    aggregate.package_count += 1
        return aggregate

    def to_pricing_request(self) -> PricingRequest:
        return PricingRequest(
            transport_type=self.dominant_type,
            weight_kg=self.weight_kg,
            pallet_count=self.pallet_count,
            volume_cbm=self.volume_cbm,
        )


class ConsolidationResult:
    """Outcome of one consolidation run."""
    def __init__(
        self,
        shipment: ShipmentOrder,
        ready: bool,
        quote: Optional[PriceQuote] = None,
        newly_priced: bool = False,
        aggregate: Optional[ShipmentAggregate] = None,
    ):
        self.shipment = shipment
        self.ready = ready
        self.quote = quote
        self.newly_priced = newly_priced
        self.aggregate = aggregate

    @property
    def priced(self) -> bool:
        return self.shipment.calculated_price_eur is not None


class ConsolidationService:
    """Service for aggregating and pricing multi-order shipments."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_shipment_for_order(self, warehouse_order_id: uuid.UUID) -> Optional[ShipmentOrder]:
        """Owning shipment, locked until the transaction ends."""
        stmt = (
            select(ShipmentOrder)
            .join(ShipmentItem, ShipmentItem.shipment_id == ShipmentOrder.id)
            .where(ShipmentItem.warehouse_order_id == warehouse_order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def get_shipment_for_update(self, shipment_id: uuid.UUID) -> Optional[ShipmentOrder]:
        stmt = (
            select(ShipmentOrder)
            .where(ShipmentOrder.id == shipment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def load_members(self, shipment: ShipmentOrder) -> List[WarehouseOrder]:
        """Member orders re-read from the database."""
        ids = shipment.warehouse_order_ids
        if not ids:
            return []
        stmt = (
            select(WarehouseOrder)
            .where(WarehouseOrder.id.in_(ids))
            .execution_options(populate_existing=True)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def consolidate(
        self,
        shipment: ShipmentOrder,
        side_effects: Optional[SideEffectQueue] = None,
    ) -> ConsolidationResult:
        """
        Price the shipment if every member is packed. Does not commit.

        Returns a result whose `ready` is False when some member is still
        awaiting packing (nothing written in that case).
        """
        if (shipment.status not in PRICING_STATUSES or shipment.calculated_price_eur is not None
                or shipment.quoted_at is not None):
            return ConsolidationResult(shipment, ready=True)

        members = await self.load_members(shipment)
        if not members or any(m.status != WarehouseOrderStatus.READY_TO_SHIP.value for m in members):
            logger.debug(f"Shipment {shipment.id} not ready for pricing")
            return ConsolidationResult(shipment, ready=False)

        aggregate = ShipmentAggregate.from_orders(members)
        shipment.shipment_type = aggregate.dominant_type
        shipment.total_volume_cbm = aggregate.volume_cbm
        shipment.total_weight_kg = aggregate.weight_kg
        shipment.total_pallet_count = aggregate.pallet_count

        rules = await PricingEngine(self.db).load_active_rules(aggregate.dominant_type)
        quote = match_rule(rules, aggregate.to_pricing_request())

        if quote is None:
            shipment.needs_manual_quote = True
            await self.db.flush()
            logger.info(
                f"No transport rule for shipment {shipment.id} "
                f"({aggregate.dominant_type}, {aggregate.weight_kg} kg); manual quote needed"
            )
            return ConsolidationResult(shipment, ready=True, aggregate=aggregate)

        shipment.calculated_price_eur = quote.price_eur
        shipment.transport_pricing_id = quote.rule_id
        shipment.priced_at = datetime.now(timezone.utc)
        shipment.status = ShipmentStatus.AWAITING_ACCEPTANCE.value
        # A pending custom quote request keeps the manual follow-up flag
        shipment.needs_manual_quote = shipment.custom_quote_requested_at is not None
        await self.db.flush()

        logger.info(f"Shipment {shipment.id} priced at {quote.price_eur} EUR by rule {quote.rule_id}")

        if side_effects is not None:
            side_effects.enqueue("shipment_priced_email", notify_shipment_priced, shipment.id)

        return ConsolidationResult(shipment, ready=True, quote=quote, newly_priced=True, aggregate=aggregate)

    async def consolidate_for_order(
        self,
        warehouse_order_id: uuid.UUID,
        side_effects: Optional[SideEffectQueue] = None,
    ) -> Optional[ConsolidationResult]:
        """Consolidate the shipment owning the order, if any."""
        shipment = await self.find_shipment_for_order(warehouse_order_id)
        if shipment is None:
            return None
        return await self.consolidate(shipment, side_effects)

    async def run(
        self,
        shipment_id: uuid.UUID,
        side_effects: Optional[SideEffectQueue] = None,
    ) -> ConsolidationResult:
        """Explicit re-run for one shipment, committed."""
        await begin_write(self.db)
        shipment = await self.get_shipment_for_update(shipment_id)
        if shipment is None:
            raise NotFoundError("Shipment", shipment_id)

        result = await self.consolidate(shipment, side_effects)
        await self.db.commit()
        await self.db.refresh(shipment)
        return result
