"""Transport pricing rule API endpoints."""
from typing import Optional
import uuid
from math import ceil

from fastapi import APIRouter, Query, status

from fulfillment.api.deps import DB, http_error
from fulfillment.core.exceptions import FulfillmentError
from fulfillment.models.warehouse_order import UnitType
from fulfillment.services.pricing_engine import PricingEngine
from fulfillment.services.transport_pricing_service import TransportPricingService
from fulfillment.services.volume import total_pricing_positions
from fulfillment.schemas.transport_pricing import (
    TransportPricingRuleCreate,
    TransportPricingRuleUpdate,
    TransportPricingRuleResponse,
    TransportPricingRuleListResponse,
    TransportQuoteRequest,
    TransportQuoteResponse,
)


router = APIRouter()


@router.get("", response_model=TransportPricingRuleListResponse)
async def list_rules(
    db: DB,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=200),
    transport_type: Optional[UnitType] = Query(None),
    is_active: Optional[bool] = Query(None),
):
    """List pricing rules in evaluation order."""
    service = TransportPricingService(db)
    skip = (page - 1) * size

    items, total = await service.list_rules(
        transport_type=transport_type.value if transport_type else None,
        is_active=is_active,
        skip=skip,
        limit=size,
    )

    return TransportPricingRuleListResponse(
        items=[TransportPricingRuleResponse.model_validate(item) for item in items],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.post(
    "",
    response_model=TransportPricingRuleResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_rule(data: TransportPricingRuleCreate, db: DB):
    """Create a pricing rule."""
    service = TransportPricingService(db)
    rule = await service.create_rule(data)
    return TransportPricingRuleResponse.model_validate(rule)


@router.post("/quote", response_model=TransportQuoteResponse)
async def quote(data: TransportQuoteRequest, db: DB):
    """Match the active rules against the given measurements."""
    pallet_count = data.pallet_count
    positions = None
    if data.transport_type == UnitType.PALLET and data.pallets:
        positions = total_pricing_positions(data.pallets)
        if pallet_count is None:
            pallet_count = len(data.pallets)

    engine = PricingEngine(db)
    try:
        result = await engine.quote(
            transport_type=data.transport_type.value,
            weight_kg=data.weight_kg,
            pallet_count=pallet_count,
            volume_cbm=data.volume_cbm,
        )
    except FulfillmentError as e:
        raise http_error(e)

    if result is None:
        return TransportQuoteResponse(matched=False, needs_manual_quote=True, pricing_positions=positions)
    return TransportQuoteResponse(
        matched=True,
        transport_pricing_id=result.rule_id,
        pricing_type=result.pricing_type,
        unit_price_eur=result.unit_price_eur,
        unit_count=result.unit_count,
        price_eur=result.price_eur,
        needs_manual_quote=False,
        pricing_positions=positions,
    )


@router.get("/{rule_id}", response_model=TransportPricingRuleResponse)
async def get_rule(rule_id: uuid.UUID, db: DB):
    service = TransportPricingService(db)
    try:
        rule = await service.get_rule_or_404(rule_id)
    except FulfillmentError as e:
        raise http_error(e)
    return TransportPricingRuleResponse.model_validate(rule)


@router.put("/{rule_id}", response_model=TransportPricingRuleResponse)
async def update_rule(rule_id: uuid.UUID, data: TransportPricingRuleUpdate, db: DB):
    """Update a pricing rule. Already priced shipments keep their price."""
    service = TransportPricingService(db)
    try:
        rule = await service.update_rule(rule_id, data)
    except FulfillmentError as e:
        raise http_error(e)
    return TransportPricingRuleResponse.model_validate(rule)


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rule(
    rule_id: uuid.UUID,
    db: DB,
    hard_delete: bool = Query(True, description="False only deactivates the rule"),
):
    service = TransportPricingService(db)
    try:
        await service.delete_rule(rule_id, hard_delete=hard_delete)
    except FulfillmentError as e:
        raise http_error(e)
