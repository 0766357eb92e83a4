"""Warehouse API endpoints: expected deliveries, receipt and packing."""
import uuid

from fastapi import APIRouter, BackgroundTasks, status

from fulfillment.api.deps import DB, SideEffects, http_error
from fulfillment.core.exceptions import FulfillmentError
from fulfillment.services.delivery_service import DeliveryService
from fulfillment.services.warehouse_order_service import WarehouseOrderService
from fulfillment.schemas.warehouse import (
    DeliveryCreate,
    DeliveryResponse,
    ReceiveDeliveryRequest,
    ReceiveDeliveryResponse,
    WarehouseOrderResponse,
    PackOrderRequest,
    PackOrderResponse,
)


router = APIRouter()


@router.post(
    "/deliveries",
    response_model=DeliveryResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register_delivery(data: DeliveryCreate, db: DB):
    """Announce an incoming delivery (status EXPECTED)."""
    service = DeliveryService(db)
    try:
        delivery = await service.register_delivery(
            client_id=data.client_id,
            supplier_name=data.supplier_name,
            tracking_number=data.tracking_number,
            expected_at=data.expected_at,
            quantity=data.quantity,
            notes=data.notes,
        )
    except FulfillmentError as e:
        raise http_error(e)
    return DeliveryResponse.model_validate(delivery)


@router.post(
    "/warehouse/deliveries/{delivery_id}/receive",
    response_model=ReceiveDeliveryResponse,
)
async def receive_delivery(
    delivery_id: uuid.UUID,
    data: ReceiveDeliveryRequest,
    db: DB,
    side_effects: SideEffects,
    background_tasks: BackgroundTasks,
):
    """
    Receive an expected delivery.

    Creates a warehouse order holding the received units and assigns the
    delivery number. Capacity and client e-mail run in the background.
    """
    service = DeliveryService(db)
    try:
        delivery, order = await service.receive_delivery(
            delivery_id,
            units=data.units,
            condition=data.condition.value,
            warehouse_location=data.warehouse_location,
            notes=data.notes,
            side_effects=side_effects,
        )
    except FulfillmentError as e:
        raise http_error(e)

    side_effects.schedule(background_tasks)
    return ReceiveDeliveryResponse(
        delivery=DeliveryResponse.model_validate(delivery),
        warehouse_order=WarehouseOrderResponse.model_validate(order),
    )


@router.get(
    "/warehouse-orders/{order_id}",
    response_model=WarehouseOrderResponse,
)
async def get_warehouse_order(order_id: uuid.UUID, db: DB):
    """Get a warehouse order with its packages."""
    service = WarehouseOrderService(db)
    try:
        order = await service.get_order_or_404(order_id)
    except FulfillmentError as e:
        raise http_error(e)
    return WarehouseOrderResponse.model_validate(order)


@router.post(
    "/warehouse/pack-order",
    response_model=PackOrderResponse,
)
async def pack_order(
    data: PackOrderRequest,
    db: DB,
    side_effects: SideEffects,
    background_tasks: BackgroundTasks,
):
    """
    Pack a warehouse order and mark it READY_TO_SHIP.

    - PACKAGE items: width_cm, length_cm, height_cm, weight_kg (all > 0)
    - PALLET items: count, total_weight_kg (both > 0)

    When the order belongs to a shipment whose members are now all packed,
    the shipment is priced in the same request.
    """
    service = WarehouseOrderService(db)
    try:
        result = await service.pack_order(
            data.order_id,
            shipment_type=data.shipment_type.value,
            items=data.items,
            notes=data.notes,
            side_effects=side_effects,
        )
    except FulfillmentError as e:
        raise http_error(e)

    side_effects.schedule(background_tasks)

    order = result.order
    shipment = result.consolidation.shipment if result.consolidation else None
    return PackOrderResponse(
        order_id=order.id,
        internal_tracking_number=order.internal_tracking_number,
        status=order.status,
        shipment_type=order.shipment_type,
        total_weight_kg=order.packed_weight_kg,
        total_volume_cbm=order.packed_volume_cbm,
        pallet_count=order.packed_pallet_count,
        transport_price_eur=result.quote.price_eur if result.quote else None,
        transport_pricing_id=result.quote.rule_id if result.quote else None,
        needs_manual_quote=result.needs_manual_quote,
        shipment_id=shipment.id if shipment else None,
        shipment_status=shipment.status if shipment else None,
        shipment_price_eur=shipment.calculated_price_eur if shipment else None,
    )
