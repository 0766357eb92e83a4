"""
Shipment Service.

Status flow:
REQUESTED -> AWAITING_ACCEPTANCE -> AWAITING_PAYMENT -> READY_FOR_LOADING -> IN_TRANSIT
                                 \\-> READY_FOR_LOADING (own transport)
"""
import logging
import re
import uuid
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment.core.exceptions import ValidationError, NotFoundError, StateConflictError
from fulfillment.core.side_effects import SideEffectQueue
from fulfillment.database import begin_write
from fulfillment.models.shipment import (
    ShipmentOrder, ShipmentItem, ShipmentStatus, TransportMode,
)
from fulfillment.models.warehouse_order import (
    WarehouseOrder, WarehouseOrderStatus, UnitType, IN_WAREHOUSE_STATUSES,
)
from fulfillment.services.capacity_service import recalculate_client_capacity
from fulfillment.services.consolidation_service import (
    ConsolidationService, ShipmentAggregate, PRICING_STATUSES,
)
from fulfillment.services.notification_service import notify_shipment_priced


logger = logging.getLogger(__name__)


def normalize_registration(value: Optional[str]) -> str:
    """Registration plates compare case- and whitespace-insensitively."""
    return re.sub(r"\s+", "", value or "").upper()


class ShipmentService:
    """Service for shipment requests and release."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_shipment(self, shipment_id: uuid.UUID) -> Optional[ShipmentOrder]:
        return await self.db.get(ShipmentOrder, shipment_id)

    async def get_shipment_or_404(self, shipment_id: uuid.UUID, for_update: bool = False) -> ShipmentOrder:
        if for_update:
            shipment = await ConsolidationService(self.db).get_shipment_for_update(shipment_id)
        else:
            shipment = await self.get_shipment(shipment_id)
        if not shipment:
            raise NotFoundError("Shipment", shipment_id)
        return shipment

    async def get_members(self, shipment: ShipmentOrder) -> List[WarehouseOrder]:
        return await ConsolidationService(self.db).load_members(shipment)

    @staticmethod
    def shipment_type_of(shipment: ShipmentOrder, members: List[WarehouseOrder]) -> Optional[str]:
        """
        Dominant unit type of a shipment.

        Consolidation stores it when pricing. A shipment that left the pricing
        states before all members were packed (own transport) gets it from the
        members' packages.
        """
        if shipment.shipment_type:
            return shipment.shipment_type
        aggregate = ShipmentAggregate.from_orders(members)
        # Unpacked members still carry the units recorded at receipt
        if aggregate.has_pallets or aggregate.package_count:
            return aggregate.dominant_type
        return None

    async def resolve_shipment_type(self, shipment: ShipmentOrder) -> Optional[str]:
        if shipment.shipment_type:
            return shipment.shipment_type
        return self.shipment_type_of(shipment, await self.get_members(shipment))

    async def create_shipment(
        self,
        client_id: uuid.UUID,
        warehouse_order_ids: List[uuid.UUID],
        delivery_address: Optional[dict] = None,
        side_effects: Optional[SideEffectQueue] = None,
    ) -> ShipmentOrder:
        """
        Request shipment of warehouse orders owned by the client.

        Members still AT_WAREHOUSE move to TO_PACK. When every member is
        already packed the shipment is priced straight away.
        """
        order_ids = list(dict.fromkeys(warehouse_order_ids or []))
        if not order_ids:
            raise ValidationError("Select at least one warehouse order", field="warehouse_order_ids")

        await begin_write(self.db)
        result = await self.db.execute(
            select(WarehouseOrder)
            .where(WarehouseOrder.id.in_(order_ids))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        orders = {order.id: order for order in result.scalars().all()}

        for order_id in order_ids:
            order = orders.get(order_id)
            if order is None:
                raise NotFoundError("Warehouse order", order_id)
            if order.client_id != client_id:
                raise ValidationError(
                    f"Warehouse order {order.internal_tracking_number} belongs to another client",
                    field="warehouse_order_ids",
                )
            if order.status not in IN_WAREHOUSE_STATUSES:
                raise StateConflictError(
                    f"Warehouse order {order.internal_tracking_number} is {order.status}",
                    current_status=order.status,
                )

        taken = await self.db.execute(
            select(ShipmentItem.warehouse_order_id).where(ShipmentItem.warehouse_order_id.in_(order_ids))
        )
        taken_ids = set(taken.scalars().all())
        if taken_ids:
            numbers = ", ".join(sorted(orders[i].internal_tracking_number for i in taken_ids))
            raise StateConflictError(f"Already part of a shipment: {numbers}")

        shipment = ShipmentOrder(
            client_id=client_id,
            status=ShipmentStatus.REQUESTED.value,
            transport_mode=TransportMode.MAK.value,
            delivery_address=delivery_address,
        )
        shipment.items = [ShipmentItem(warehouse_order_id=order_id) for order_id in order_ids]
        self.db.add(shipment)

        for order in orders.values():
            if order.status == WarehouseOrderStatus.AT_WAREHOUSE.value:
                order.status = WarehouseOrderStatus.TO_PACK.value
        await self.db.flush()

        await ConsolidationService(self.db).consolidate(shipment, side_effects)

        await self.db.commit()
        await self.db.refresh(shipment)

        logger.info(f"Shipment {shipment.id} requested for {len(order_ids)} order(s), status {shipment.status}")
        return shipment

    async def release_shipment(
        self,
        shipment_id: uuid.UUID,
        vehicle_reg: Optional[str] = None,
        side_effects: Optional[SideEffectQueue] = None,
    ) -> ShipmentOrder:
        """
        Hand a READY_FOR_LOADING shipment over to transport.

        Own-transport pickups are released only to the registered vehicle.
        Pallet pickups always need one; package pickups may instead name a
        carrier.
        """
        await begin_write(self.db)
        shipment = await self.get_shipment_or_404(shipment_id, for_update=True)
        if shipment.status != ShipmentStatus.READY_FOR_LOADING.value:
            raise StateConflictError(
                f"Shipment cannot be released in status {shipment.status}",
                current_status=shipment.status,
            )

        members = await self.get_members(shipment)
        unpacked = [m.internal_tracking_number for m in members
                    if m.status != WarehouseOrderStatus.READY_TO_SHIP.value]
        if unpacked:
            raise StateConflictError(f"Orders not packed yet: {', '.join(sorted(unpacked))}")

        presented = normalize_registration(vehicle_reg)
        if shipment.transport_mode == TransportMode.CLIENT_OWN.value:
            registered = normalize_registration(shipment.own_transport_vehicle_reg)
            if registered:
                if not presented:
                    raise ValidationError("Vehicle registration is required for pickup", field="vehicle_reg")
                if presented != registered:
                    logger.warning(
                        f"Release of shipment {shipment.id} refused: vehicle {presented} "
                        f"does not match registered {registered}"
                    )
                    raise StateConflictError(
                        "Vehicle registration does not match the registered pickup vehicle",
                        current_status=shipment.status,
                    )
            elif self.shipment_type_of(shipment, members) == UnitType.PALLET.value \
                    or not shipment.own_transport_carrier:
                raise StateConflictError(
                    "No pickup vehicle or carrier registered for this shipment",
                    current_status=shipment.status,
                )

        now = datetime.now(timezone.utc)
        shipment.shipment_type = self.shipment_type_of(shipment, members)
        shipment.status = ShipmentStatus.IN_TRANSIT.value
        shipment.released_at = now
        shipment.released_vehicle_reg = presented or None
        for member in members:
            member.status = WarehouseOrderStatus.SHIPPED.value
            member.shipped_at = now

        await self.db.commit()
        await self.db.refresh(shipment)

        logger.info(f"Shipment {shipment.id} released, {len(members)} order(s) shipped")

        if side_effects is not None:
            side_effects.enqueue("capacity_recalculation", recalculate_client_capacity, shipment.client_id)

        return shipment

    # ==================== MANUAL QUOTES ====================

    async def list_manual_quote_queue(self) -> List[ShipmentOrder]:
        """Shipments waiting for a sales quote, oldest request first."""
        stmt = (
            select(ShipmentOrder)
            .where(
                ShipmentOrder.needs_manual_quote.is_(True),
                ShipmentOrder.status.in_(PRICING_STATUSES),
            )
            .order_by(func.coalesce(ShipmentOrder.custom_quote_requested_at, ShipmentOrder.created_at))
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def set_manual_quote(
        self,
        shipment_id: uuid.UUID,
        price_eur,
        notes: Optional[str] = None,
        side_effects: Optional[SideEffectQueue] = None,
    ) -> ShipmentOrder:
        """
        Record a sales quote and ask the client to accept it.

        The quoted price takes precedence over any rule price and is never
        overwritten by later consolidation runs.

        Raises:
            NotFoundError: unknown shipment
            ValidationError: price missing or not positive
            StateConflictError: the client already decided on transport
        """
        try:
            price = Decimal(str(price_eur))
        except (InvalidOperation, ValueError):
            raise ValidationError("Quoted price must be a number", field="price_eur")
        if not price.is_finite() or price <= 0:
            raise ValidationError("Quoted price must be greater than 0", field="price_eur")

        await begin_write(self.db)
        shipment = await self.get_shipment_or_404(shipment_id, for_update=True)
        if shipment.status not in PRICING_STATUSES:
            raise StateConflictError(
                f"Shipment cannot be quoted in status {shipment.status}",
                current_status=shipment.status,
            )

        shipment.proposed_price_eur = price.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        shipment.quoted_at = datetime.now(timezone.utc)
        if notes:
            shipment.quote_notes = notes
        shipment.needs_manual_quote = False
        # The client answers the quote with a fresh choice
        shipment.client_transport_choice = None
        shipment.status = ShipmentStatus.AWAITING_ACCEPTANCE.value

        await self.db.commit()
        await self.db.refresh(shipment)

        logger.info(f"Shipment {shipment.id} quoted manually at {shipment.proposed_price_eur} EUR")

        if side_effects is not None:
            side_effects.enqueue("shipment_priced_email", notify_shipment_priced, shipment.id)

        return shipment
