"""Shipment API endpoints: request, consolidation, transport choice, release."""
import uuid
from typing import List

from fastapi import APIRouter, BackgroundTasks, status

from fulfillment.api.deps import DB, SideEffects, http_error
from fulfillment.core.exceptions import FulfillmentError
from fulfillment.services.consolidation_service import ConsolidationService
from fulfillment.services.shipment_service import ShipmentService
from fulfillment.services.transport_choice_service import TransportChoiceService, OwnTransportDetails
from fulfillment.schemas.billing import InvoiceResponse
from fulfillment.schemas.shipment import (
    ShipmentCreate,
    ShipmentResponse,
    ConsolidationResponse,
    TransportChoiceRequest,
    TransportChoiceResponse,
    ReleaseShipmentRequest,
    ManualQuoteRequest,
)


router = APIRouter()


@router.post(
    "",
    response_model=ShipmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_shipment(
    data: ShipmentCreate,
    db: DB,
    side_effects: SideEffects,
    background_tasks: BackgroundTasks,
):
    """Request shipment of one or more warehouse orders."""
    service = ShipmentService(db)
    try:
        shipment = await service.create_shipment(
            client_id=data.client_id,
            warehouse_order_ids=data.warehouse_order_ids,
            delivery_address=data.delivery_address,
            side_effects=side_effects,
        )
    except FulfillmentError as e:
        raise http_error(e)

    side_effects.schedule(background_tasks)
    return ShipmentResponse.model_validate(shipment)


@router.get("/manual-quotes", response_model=List[ShipmentResponse])
async def list_manual_quotes(db: DB):
    """Shipments waiting for a sales quote, oldest request first."""
    shipments = await ShipmentService(db).list_manual_quote_queue()
    return [ShipmentResponse.model_validate(s) for s in shipments]


@router.get("/{shipment_id}", response_model=ShipmentResponse)
async def get_shipment(shipment_id: uuid.UUID, db: DB):
    """Get shipment details."""
    service = ShipmentService(db)
    try:
        shipment = await service.get_shipment_or_404(shipment_id)
    except FulfillmentError as e:
        raise http_error(e)
    return ShipmentResponse.model_validate(shipment)


@router.post("/{shipment_id}/consolidate", response_model=ConsolidationResponse)
async def consolidate_shipment(
    shipment_id: uuid.UUID,
    db: DB,
    side_effects: SideEffects,
    background_tasks: BackgroundTasks,
):
    """Re-run consolidation. Safe to call repeatedly."""
    service = ConsolidationService(db)
    try:
        result = await service.run(shipment_id, side_effects)
    except FulfillmentError as e:
        raise http_error(e)

    side_effects.schedule(background_tasks)
    return ConsolidationResponse(
        ready=result.ready,
        priced=result.priced,
        shipment=ShipmentResponse.model_validate(result.shipment),
    )


@router.post("/{shipment_id}/transport-choice", response_model=TransportChoiceResponse)
async def choose_transport(
    shipment_id: uuid.UUID,
    data: TransportChoiceRequest,
    db: DB,
    side_effects: SideEffects,
    background_tasks: BackgroundTasks,
):
    """
    Apply the client's transport decision.

    - ACCEPT: invoice issued, shipment awaits payment
    - REQUEST_CUSTOM: sales prepares a manual quote
    - OWN_TRANSPORT: client collects; package shipments need carrier and
      tracking number together
    """
    service = TransportChoiceService(db)
    details = OwnTransportDetails(
        vehicle_reg=data.own_transport_vehicle_reg,
        trailer_reg=data.own_transport_trailer_reg,
        carrier=data.own_transport_carrier,
        tracking_number=data.own_transport_tracking_number,
        planned_loading_date=data.own_transport_planned_loading_date,
    )
    try:
        shipment, invoice = await service.apply_choice(
            shipment_id,
            data.transport_choice,
            payment_method=data.payment_method,
            own_transport=details,
            side_effects=side_effects,
        )
    except FulfillmentError as e:
        raise http_error(e)

    side_effects.schedule(background_tasks)
    return TransportChoiceResponse(
        shipment=ShipmentResponse.model_validate(shipment),
        invoice=InvoiceResponse.model_validate(invoice) if invoice else None,
    )


@router.post("/{shipment_id}/release", response_model=ShipmentResponse)
async def release_shipment(
    shipment_id: uuid.UUID,
    data: ReleaseShipmentRequest,
    db: DB,
    side_effects: SideEffects,
    background_tasks: BackgroundTasks,
):
    """Release a shipment at loading; own-transport vehicles must match the registration."""
    service = ShipmentService(db)
    try:
        shipment = await service.release_shipment(
            shipment_id,
            vehicle_reg=data.vehicle_reg,
            side_effects=side_effects,
        )
    except FulfillmentError as e:
        raise http_error(e)

    side_effects.schedule(background_tasks)
    return ShipmentResponse.model_validate(shipment)


@router.post("/{shipment_id}/manual-quote", response_model=ShipmentResponse)
async def set_manual_quote(
    shipment_id: uuid.UUID,
    data: ManualQuoteRequest,
    db: DB,
    side_effects: SideEffects,
    background_tasks: BackgroundTasks,
):
    """Sales quote: the client is asked to accept this price."""
    service = ShipmentService(db)
    try:
        shipment = await service.set_manual_quote(
            shipment_id,
            data.price_eur,
            notes=data.notes,
            side_effects=side_effects,
        )
    except FulfillmentError as e:
        raise http_error(e)

    side_effects.schedule(background_tasks)
    return ShipmentResponse.model_validate(shipment)
