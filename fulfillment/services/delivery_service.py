"""
Delivery Service.

Clients announce expected deliveries; the warehouse receives them. Receipt
assigns the DEL number, records the condition of the goods and opens a
WarehouseOrder holding the received units.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment.core.exceptions import ValidationError, NotFoundError, StateConflictError
from fulfillment.core.side_effects import SideEffectQueue
from fulfillment.database import begin_write
from fulfillment.models.client import Client
from fulfillment.models.delivery import DeliveryExpected, DeliveryStatus, DeliveryCondition
from fulfillment.models.warehouse_order import WarehouseOrder, Package, UnitType
from fulfillment.services.capacity_service import recalculate_client_capacity
from fulfillment.services.notification_service import notify_delivery_received
from fulfillment.services.numbering import generate_delivery_number
from fulfillment.services.volume import volume_cbm
from fulfillment.services.warehouse_order_service import WarehouseOrderService


logger = logging.getLogger(__name__)


def build_received_packages(units: Sequence[Any]) -> List[Package]:
    """
    Package rows for received units.

    PACKAGE units need all three dimensions; PALLET units may omit them and
    then contribute no volume. Every unit needs a weight > 0.
    """
    if not units:
        raise ValidationError("At least one unit is required", field="units")

    packages = []
    for index, unit in enumerate(units):
        unit_type = getattr(unit, "type", None)
        if unit_type not in (UnitType.PALLET.value, UnitType.PACKAGE.value):
            raise ValidationError("Unit type must be PALLET or PACKAGE", field=f"units[{index}].type")

        weight = getattr(unit, "weight_kg", None)
        if weight is None or weight <= 0:
            raise ValidationError("weight_kg must be greater than 0", field=f"units[{index}].weight_kg")

        dims = [getattr(unit, attr, None) for attr in ("width_cm", "length_cm", "height_cm")]
        if any(d is not None and d <= 0 for d in dims):
            raise ValidationError("Dimensions must be greater than 0", field=f"units[{index}]")
        fully_dimensioned = all(d is not None for d in dims)
        if unit_type == UnitType.PACKAGE.value and not fully_dimensioned:
            raise ValidationError(
                "Packages need width_cm, length_cm and height_cm",
                field=f"units[{index}]",
            )

        width, length, height = dims
        packages.append(Package(
            type=unit_type,
            unit_count=1,
            width_cm=width,
            length_cm=length,
            height_cm=height,
            weight_kg=weight,
            volume_cbm=volume_cbm(width, length, height) if fully_dimensioned else 0.0,
        ))

    return packages


class DeliveryService:
    """Service for expected deliveries and warehouse receipt."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_delivery(self, delivery_id: uuid.UUID) -> Optional[DeliveryExpected]:
        return await self.db.get(DeliveryExpected, delivery_id)

    async def register_delivery(
        self,
        client_id: uuid.UUID,
        supplier_name: str,
        tracking_number: Optional[str] = None,
        expected_at: Optional[datetime] = None,
        quantity: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> DeliveryExpected:
        if not await self.db.get(Client, client_id):
            raise NotFoundError("Client", client_id)
        if not supplier_name or not supplier_name.strip():
            raise ValidationError("Supplier name is required", field="supplier_name")

        delivery = DeliveryExpected(
            client_id=client_id,
            supplier_name=supplier_name.strip(),
            tracking_number=tracking_number,
            expected_at=expected_at,
            quantity=quantity,
            notes=notes,
            status=DeliveryStatus.EXPECTED.value,
        )
        self.db.add(delivery)
        await self.db.commit()
        await self.db.refresh(delivery)

        logger.info(f"Delivery {delivery.id} expected for client {client_id} from {delivery.supplier_name}")
        return delivery

    async def receive_delivery(
        self,
        delivery_id: uuid.UUID,
        units: Sequence[Any],
        condition: str = DeliveryCondition.OK.value,
        warehouse_location: Optional[str] = None,
        notes: Optional[str] = None,
        side_effects: Optional[SideEffectQueue] = None,
    ) -> Tuple[DeliveryExpected, WarehouseOrder]:
        """
        Receive an EXPECTED delivery into the warehouse.

        Raises:
            NotFoundError: unknown delivery
            StateConflictError: delivery already received
            ValidationError: invalid unit data or condition
        """
        await begin_write(self.db)
        delivery = await self.get_delivery(delivery_id)
        if not delivery:
            raise NotFoundError("Delivery", delivery_id)
        if delivery.status != DeliveryStatus.EXPECTED.value:
            raise StateConflictError(
                f"Delivery cannot be received in status {delivery.status}",
                current_status=delivery.status,
            )
        try:
            condition = DeliveryCondition(condition).value
        except ValueError:
            raise ValidationError("Condition must be OK or DAMAGED", field="condition")

        packages = build_received_packages(units)

        delivery.status = DeliveryStatus.RECEIVED.value
        delivery.condition = condition
        delivery.delivery_number = await generate_delivery_number(self.db)
        delivery.received_at = datetime.now(timezone.utc)
        delivery.quantity = len(packages)
        if warehouse_location:
            delivery.warehouse_location = warehouse_location

        order = await WarehouseOrderService(self.db).create_order(
            client_id=delivery.client_id,
            source_delivery_id=delivery.id,
            warehouse_location=warehouse_location,
            notes=notes,
            packages=packages,
        )

        await self.db.commit()
        await self.db.refresh(delivery)
        await self.db.refresh(order)

        logger.info(
            f"Delivery {delivery.delivery_number} received ({condition}) as order "
            f"{order.internal_tracking_number} with {len(packages)} unit(s)"
        )

        if side_effects is not None:
            side_effects.enqueue("capacity_recalculation", recalculate_client_capacity, delivery.client_id)
            side_effects.enqueue("delivery_received_email", notify_delivery_received, delivery.id)

        return delivery, order
