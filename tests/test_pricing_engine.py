"""Transport pricing rule matcher."""
import uuid
from decimal import Decimal

import pytest

from fulfillment.core.exceptions import ValidationError
from fulfillment.models import TransportPricingRule, PricingType, UnitType
from fulfillment.services.pricing_engine import (
    PricingRequest,
    candidate_rules,
    match_rule,
    rule_admits,
)


def make_rule(transport_type=UnitType.PALLET, price="100", priority=0,
              type=PricingType.DYNAMIC_M3_WEIGHT, is_active=True, **bounds):
    return TransportPricingRule(
        id=uuid.uuid4(),
        name="band",
        transport_type=transport_type.value,
        type=type.value,
        price_eur=Decimal(price),
        priority=priority,
        is_active=is_active,
        **bounds,
    )


def pallets(count, weight=100.0):
    return PricingRequest(UnitType.PALLET.value, weight_kg=weight, pallet_count=count)


def parcels(volume, weight=10.0):
    return PricingRequest(UnitType.PACKAGE.value, weight_kg=weight, volume_cbm=volume)


def test_package_band_matches_reference_parcel():
    rule = make_rule(UnitType.PACKAGE, price="35", volume_max_cbm=0.1, weight_max_kg=20)

    quote = match_rule([rule], parcels(0.063, weight=10))

    assert quote.rule_id == rule.id
    assert quote.price_eur == Decimal("35.00")


def test_higher_priority_wins_over_declaration_order():
    dynamic = make_rule(price="120", priority=5, pallet_count_min=1, pallet_count_max=4)
    fixed = make_rule(price="40", priority=1, type=PricingType.FIXED_PER_UNIT, pallet_count_min=1)

    for rules in ([dynamic, fixed], [fixed, dynamic]):
        quote = match_rule(rules, pallets(3, weight=450))
        assert quote.rule_id == dynamic.id
        assert quote.price_eur == Decimal("120.00")


def test_equal_priority_keeps_encounter_order():
    first = make_rule(price="10", priority=3)
    second = make_rule(price="20", priority=3)

    assert match_rule([first, second], pallets(1)).rule_id == first.id
    assert match_rule([second, first], pallets(1)).rule_id == second.id


def test_fixed_per_unit_is_linear_in_pallet_count():
    rule = make_rule(price="40", type=PricingType.FIXED_PER_UNIT, pallet_count_min=1)

    one = match_rule([rule], pallets(1)).price_eur
    for count in (2, 3, 7):
        assert match_rule([rule], pallets(count)).price_eur == one * count


def test_dynamic_rule_is_a_flat_band_price():
    rule = make_rule(price="120", pallet_count_min=1, pallet_count_max=4)

    assert match_rule([rule], pallets(1)).price_eur == Decimal("120.00")
    assert match_rule([rule], pallets(4)).price_eur == Decimal("120.00")


def test_matcher_is_deterministic():
    rules = [
        make_rule(UnitType.PACKAGE, price="35", priority=2, volume_max_cbm=0.1),
        make_rule(UnitType.PACKAGE, price="60", priority=1, volume_max_cbm=1.0),
    ]
    request = parcels(0.5)

    assert match_rule(rules, request) == match_rule(rules, request)
    assert match_rule(rules, request).price_eur == Decimal("60.00")


def test_missing_bounds_are_unbounded():
    rule = make_rule(pallet_count_min=5)

    assert match_rule([rule], pallets(500, weight=100000)) is not None
    assert match_rule([rule], pallets(4)) is None


def test_bounds_are_inclusive():
    rule = make_rule(UnitType.PACKAGE, volume_min_cbm=0.1, volume_max_cbm=0.2,
                     weight_min_kg=5, weight_max_kg=20)

    assert rule_admits(rule, parcels(0.1, weight=5))
    assert rule_admits(rule, parcels(0.2, weight=20))
    assert not rule_admits(rule, parcels(0.21, weight=20))
    assert not rule_admits(rule, parcels(0.2, weight=20.5))


def test_inactive_and_other_type_rules_are_skipped():
    inactive = make_rule(price="1", priority=10, is_active=False)
    parcel_rule = make_rule(UnitType.PACKAGE, price="2", priority=9)
    pallet_rule = make_rule(price="3", priority=0)

    assert candidate_rules([inactive, parcel_rule, pallet_rule], UnitType.PALLET.value) == [pallet_rule]
    assert match_rule([inactive, parcel_rule, pallet_rule], pallets(1)).rule_id == pallet_rule.id


def test_no_match_returns_none():
    rule = make_rule(UnitType.PACKAGE, volume_max_cbm=0.1)

    assert match_rule([rule], parcels(0.5)) is None
    assert match_rule([], parcels(0.05)) is None


def test_pallet_request_needs_count():
    with pytest.raises(ValidationError) as exc:
        PricingRequest(UnitType.PALLET.value, weight_kg=100)
    assert exc.value.field == "pallet_count"


def test_package_request_needs_volume():
    with pytest.raises(ValidationError) as exc:
        PricingRequest(UnitType.PACKAGE.value, weight_kg=10)
    assert exc.value.field == "volume_cbm"
