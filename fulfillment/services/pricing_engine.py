"""
Transport Pricing Engine.

This service handles:
1. Rule selection: active rules of the requested transport type, highest
   priority first, first rule whose bounds admit the input wins
2. Price computation for the matched rule
3. Loading the rule set from the database

A missing match is a valid outcome (the shipment stays unpriced and needs a
manual quote), so the matcher returns None instead of raising.
"""
from typing import Iterable, List, Optional, Protocol
from decimal import Decimal, ROUND_HALF_UP
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment.core.exceptions import ValidationError
from fulfillment.models.transport_pricing import TransportPricingRule, PricingType
from fulfillment.models.warehouse_order import UnitType


TWO_PLACES = Decimal("0.01")


class PricingRule(Protocol):
    id: uuid.UUID
    transport_type: str
    type: str
    weight_min_kg: Optional[float]
    weight_max_kg: Optional[float]
    volume_min_cbm: Optional[float]
    volume_max_cbm: Optional[float]
    pallet_count_min: Optional[int]
    pallet_count_max: Optional[int]
    price_eur: Decimal
    priority: int
    is_active: bool


class PricingRequest:
    """Aggregate physical measurements to be priced."""
    def __init__(
        self,
        transport_type: str,
        weight_kg: float,
        pallet_count: Optional[int] = None,
        volume_cbm: Optional[float] = None,
    ):
        self.transport_type = UnitType(transport_type).value
        self.weight_kg = weight_kg
        self.pallet_count = pallet_count
        self.volume_cbm = volume_cbm

        if self.transport_type == UnitType.PALLET.value and pallet_count is None:
            raise ValidationError("Pallet pricing requires a pallet count", field="pallet_count")
        if self.transport_type == UnitType.PACKAGE.value and volume_cbm is None:
            raise ValidationError("Package pricing requires a volume", field="volume_cbm")


class PriceQuote:
    """Result of a successful match."""
    def __init__(
        self,
        rule_id: uuid.UUID,
        pricing_type: str,
        transport_type: str,
        unit_price_eur: Decimal,
        unit_count: int,
        price_eur: Decimal,
    ):
        self.rule_id = rule_id
        self.pricing_type = pricing_type
        self.transport_type = transport_type
        self.unit_price_eur = unit_price_eur
        self.unit_count = unit_count
        self.price_eur = price_eur

    def __eq__(self, other) -> bool:
        if not isinstance(other, PriceQuote):
            return NotImplemented
        return (self.rule_id, self.price_eur) == (other.rule_id, other.price_eur)

    def __repr__(self) -> str:
        return f"<PriceQuote rule={self.rule_id} price={self.price_eur}>"

    def to_dict(self) -> dict:
        return {
            "transport_pricing_id": str(self.rule_id),
            "pricing_type": self.pricing_type,
            "transport_type": self.transport_type,
            "unit_price_eur": float(self.unit_price_eur),
            "unit_count": self.unit_count,
            "price_eur": float(self.price_eur),
        }


def _within(value: float, low: Optional[float], high: Optional[float]) -> bool:
    """Range check where a None bound is unbounded on that side."""
    if low is not None and value < low:
        return False
    if high is not None and value > high:
        return False
    return True


def rule_admits(rule: PricingRule, request: PricingRequest) -> bool:
    """Do the rule's bounds admit the request? Transport type is checked by the caller."""
    if not _within(request.weight_kg, rule.weight_min_kg, rule.weight_max_kg):
        return False
    if request.transport_type == UnitType.PALLET.value:
        return _within(request.pallet_count, rule.pallet_count_min, rule.pallet_count_max)
    return _within(request.volume_cbm, rule.volume_min_cbm, rule.volume_max_cbm)


def candidate_rules(rules: Iterable[PricingRule], transport_type: str) -> List[PricingRule]:
    """Active rules of one transport type, highest priority first.

    sorted() is stable, so equal priorities keep their encounter order.
    """
    active = [r for r in rules if r.is_active and r.transport_type == transport_type]
    return sorted(active, key=lambda r: r.priority, reverse=True)


def compute_price(rule: PricingRule, request: PricingRequest) -> PriceQuote:
    """FIXED_PER_UNIT multiplies by pallet positions; anything else is the flat band price."""
    unit_price = Decimal(rule.price_eur)
    unit_count = 1
    if rule.type == PricingType.FIXED_PER_UNIT.value and request.transport_type == UnitType.PALLET.value:
        unit_count = request.pallet_count
    price = (unit_price * unit_count).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    return PriceQuote(
        rule_id=rule.id,
        pricing_type=rule.type,
        transport_type=request.transport_type,
        unit_price_eur=unit_price,
        unit_count=unit_count,
        price_eur=price,
    )


def match_rule(rules: Iterable[PricingRule], request: PricingRequest) -> Optional[PriceQuote]:
    """Return the quote of the first admitting rule, or None when nothing matches."""
    for rule in candidate_rules(rules, request.transport_type):
        if rule_admits(rule, request):
            return compute_price(rule, request)
    return None


class PricingEngine:
    """Database-backed front end to the rule matcher."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def load_active_rules(self, transport_type: Optional[str] = None) -> List[TransportPricingRule]:
        """Active rules ordered by priority desc, then creation order."""
        stmt = (
            select(TransportPricingRule)
            .where(TransportPricingRule.is_active.is_(True))
            .order_by(
                TransportPricingRule.priority.desc(),
                TransportPricingRule.created_at.asc(),
            )
        )
        if transport_type:
            stmt = stmt.where(TransportPricingRule.transport_type == transport_type)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def quote(
        self,
        transport_type: str,
        weight_kg: float,
        pallet_count: Optional[int] = None,
        volume_cbm: Optional[float] = None,
    ) -> Optional[PriceQuote]:
        request = PricingRequest(
            transport_type=transport_type,
            weight_kg=weight_kg,
            pallet_count=pallet_count,
            volume_cbm=volume_cbm,
        )
        rules = await self.load_active_rules(request.transport_type)
        return match_rule(rules, request)
