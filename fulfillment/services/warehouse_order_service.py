"""
Warehouse Order Service.

Lifecycle: AT_WAREHOUSE / TO_PACK -> READY_TO_SHIP -> SHIPPED.

Packing is the single transition into READY_TO_SHIP. Every item is validated
before anything is written; the new Package rows and the order status are
committed together. Consolidation of the owning shipment runs in a savepoint
and capacity recalculation runs after the response; neither can undo a
successful packing.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment.core.exceptions import ValidationError, NotFoundError, StateConflictError
from fulfillment.core.side_effects import SideEffectQueue
from fulfillment.database import begin_write
from fulfillment.models.warehouse_order import (
    WarehouseOrder, WarehouseOrderStatus, Package, UnitType, PACKABLE_STATUSES,
)
from fulfillment.services.capacity_service import recalculate_client_capacity
from fulfillment.services.consolidation_service import ConsolidationService, ConsolidationResult
from fulfillment.services.numbering import generate_internal_tracking_number
from fulfillment.services.pricing_engine import PricingRequest, PriceQuote, PricingEngine, match_rule
from fulfillment.services.volume import volume_cbm


logger = logging.getLogger(__name__)


def _positive(value: Any) -> bool:
    return value is not None and value > 0


def build_packages(shipment_type: str, items: Sequence[Any]) -> List[Package]:
    """
    Validate packing items and turn them into unsaved Package rows.

    PACKAGE items need width, length, height and weight, all > 0.
    PALLET items need count and total weight > 0; one row per item, with the
    count kept as unit_count.
    Raises ValidationError on the first invalid item; nothing is built then.
    """
    try:
        shipment_type = UnitType(shipment_type).value
    except ValueError:
        raise ValidationError("shipmentType must be PALLET or PACKAGE", field="shipment_type")

    if not items:
        raise ValidationError("At least one item is required", field="items")

    packages = []
    for index, item in enumerate(items):
        item_type = getattr(item, "type", None) or shipment_type
        if item_type != shipment_type:
            raise ValidationError(
                f"Item {index + 1} is {item_type} but the order is packed as {shipment_type}",
                field=f"items[{index}].type",
            )

        if shipment_type == UnitType.PACKAGE.value:
            for attr in ("width_cm", "length_cm", "height_cm", "weight_kg"):
                if not _positive(getattr(item, attr, None)):
                    raise ValidationError(
                        f"Package {index + 1}: {attr} must be greater than 0",
                        field=f"items[{index}].{attr}",
                    )
            packages.append(Package(
                type=UnitType.PACKAGE.value,
                unit_count=1,
                width_cm=item.width_cm,
                length_cm=item.length_cm,
                height_cm=item.height_cm,
                weight_kg=item.weight_kg,
                volume_cbm=volume_cbm(item.width_cm, item.length_cm, item.height_cm),
            ))
        else:
            count = getattr(item, "count", None)
            total_weight = getattr(item, "total_weight_kg", None)
            if not _positive(count):
                raise ValidationError(
                    f"Pallet {index + 1}: count must be greater than 0",
                    field=f"items[{index}].count",
                )
            if not _positive(total_weight):
                raise ValidationError(
                    f"Pallet {index + 1}: total_weight_kg must be greater than 0",
                    field=f"items[{index}].total_weight_kg",
                )
            packages.append(Package(
                type=UnitType.PALLET.value,
                unit_count=int(count),
                weight_kg=total_weight,
                volume_cbm=0.0,
            ))

    return packages


class PackingResult:
    """What the warehouse sees after packing one order."""
    def __init__(
        self,
        order: WarehouseOrder,
        quote: Optional[PriceQuote],
        consolidation: Optional[ConsolidationResult],
    ):
        self.order = order
        self.quote = quote
        self.consolidation = consolidation

    @property
    def needs_manual_quote(self) -> bool:
        return self.quote is None


class WarehouseOrderService:
    """Service for warehouse order lifecycle."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_order(self, order_id: uuid.UUID) -> Optional[WarehouseOrder]:
        return await self.db.get(WarehouseOrder, order_id)

    async def get_order_or_404(self, order_id: uuid.UUID, for_update: bool = False) -> WarehouseOrder:
        if for_update:
            stmt = (
                select(WarehouseOrder)
                .where(WarehouseOrder.id == order_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            order = (await self.db.execute(stmt)).scalar_one_or_none()
        else:
            order = await self.get_order(order_id)
        if not order:
            raise NotFoundError("Warehouse order", order_id)
        return order

    async def create_order(
        self,
        client_id: uuid.UUID,
        source_delivery_id: Optional[uuid.UUID] = None,
        warehouse_location: Optional[str] = None,
        notes: Optional[str] = None,
        packages: Optional[List[Package]] = None,
    ) -> WarehouseOrder:
        """Add a new AT_WAREHOUSE order to the session (no commit)."""
        order = WarehouseOrder(
            client_id=client_id,
            source_delivery_id=source_delivery_id,
            internal_tracking_number=await generate_internal_tracking_number(self.db),
            status=WarehouseOrderStatus.AT_WAREHOUSE.value,
            warehouse_location=warehouse_location,
            notes=notes,
            received_at=datetime.now(timezone.utc),
        )
        order.packages = list(packages or [])
        self.db.add(order)
        await self.db.flush()
        return order

    async def pack_order(
        self,
        order_id: uuid.UUID,
        shipment_type: str,
        items: Sequence[Any],
        notes: Optional[str] = None,
        side_effects: Optional[SideEffectQueue] = None,
    ) -> PackingResult:
        """
        Pack an order: record its physical units and mark it READY_TO_SHIP.

        Args:
            order_id: Warehouse order to pack
            shipment_type: PALLET or PACKAGE
            items: Pallet items (count, total_weight_kg) or package items
                (width_cm, length_cm, height_cm, weight_kg)
            notes: Packing notes
            side_effects: Queue for capacity recalculation and notifications

        Raises:
            NotFoundError: unknown order
            StateConflictError: order is not awaiting packing
            ValidationError: missing or non-positive item field
        """
        await begin_write(self.db)
        order = await self.get_order_or_404(order_id, for_update=True)
        if not order.is_packable:
            raise StateConflictError(
                f"Order {order.internal_tracking_number} cannot be packed in status {order.status}; "
                f"expected one of {', '.join(PACKABLE_STATUSES)}",
                current_status=order.status,
            )

        packages = build_packages(shipment_type, items)
        shipment_type = packages[0].type

        # Packed units replace whatever was recorded at receipt
        order.packages.clear()
        order.packages.extend(packages)

        total_weight = sum(p.weight_kg for p in packages)
        total_volume = sum(p.volume_cbm for p in packages)
        pallet_count = sum(p.unit_count for p in packages if p.type == UnitType.PALLET.value)

        order.shipment_type = shipment_type
        order.packed_weight_kg = total_weight
        order.packed_volume_cbm = total_volume
        order.packed_pallet_count = pallet_count if shipment_type == UnitType.PALLET.value else None
        if shipment_type == UnitType.PACKAGE.value and len(packages) == 1:
            order.packed_width_cm = packages[0].width_cm
            order.packed_length_cm = packages[0].length_cm
            order.packed_height_cm = packages[0].height_cm
        else:
            order.packed_width_cm = order.packed_length_cm = order.packed_height_cm = None
        if notes:
            order.packing_notes = notes
        order.status = WarehouseOrderStatus.READY_TO_SHIP.value
        order.packed_at = datetime.now(timezone.utc)
        await self.db.flush()

        # Order-level quote shown to the warehouse
        rules = await PricingEngine(self.db).load_active_rules(shipment_type)
        quote = match_rule(rules, PricingRequest(
            transport_type=shipment_type,
            weight_kg=total_weight,
            pallet_count=pallet_count,
            volume_cbm=total_volume,
        ))

        consolidation = None
        try:
            async with self.db.begin_nested():
                consolidation = await ConsolidationService(self.db).consolidate_for_order(
                    order.id, side_effects
                )
        except Exception as e:
            logger.error(f"Consolidation after packing order {order.id} failed: {e}", exc_info=True)
            consolidation = None

        await self.db.commit()
        await self.db.refresh(order)

        logger.info(
            f"Order {order.internal_tracking_number} packed: {len(packages)} {shipment_type} item(s), "
            f"{total_weight} kg, {total_volume:.3f} m3"
        )

        if side_effects is not None:
            side_effects.enqueue("capacity_recalculation", recalculate_client_capacity, order.client_id)

        return PackingResult(order, quote, consolidation)
