"""Transport pricing rule CRUD and quoting over HTTP."""
import uuid
from decimal import Decimal

import pytest

from fulfillment.models import PricingType, TransportPricingRule, UnitType

from tests.factories import create_rule, reload


def money(value):
    return Decimal(str(value))


RULE = {
    "name": "Parcels up to 0.1 m3",
    "transport_type": "PACKAGE",
    "type": "DYNAMIC_M3_WEIGHT",
    "volume_max_cbm": 0.1,
    "weight_max_kg": 20,
    "price_eur": "35.00",
    "priority": 5,
}


async def test_create_and_get_rule(client):
    created = await client.post("/api/v1/transport-pricing", json=RULE)

    assert created.status_code == 201, created.text
    body = created.json()
    assert body["transport_type"] == "PACKAGE"
    assert body["volume_min_cbm"] is None
    assert body["is_active"] is True

    fetched = await client.get(f"/api/v1/transport-pricing/{body['id']}")
    assert fetched.status_code == 200
    assert money(fetched.json()["price_eur"]) == Decimal("35.00")


async def test_create_rule_with_inverted_bounds_is_rejected(client):
    response = await client.post("/api/v1/transport-pricing", json={
        **RULE, "volume_min_cbm": 0.5, "volume_max_cbm": 0.1,
    })
    assert response.status_code == 422


async def test_create_rule_with_unknown_type_is_rejected(client):
    response = await client.post("/api/v1/transport-pricing", json={**RULE, "transport_type": "TRUCK"})
    assert response.status_code == 422


async def test_list_rules_in_evaluation_order(client, db):
    low = await create_rule(db, UnitType.PALLET, 40, priority=1)
    high = await create_rule(db, UnitType.PALLET, 120, priority=5)
    parcel = await create_rule(db, UnitType.PACKAGE, 35, priority=9)
    await create_rule(db, UnitType.PALLET, 10, priority=3, is_active=False)

    everything = (await client.get("/api/v1/transport-pricing")).json()
    active_pallets = (await client.get(
        "/api/v1/transport-pricing", params={"transport_type": "PALLET", "is_active": "true"},
    )).json()

    assert everything["total"] == 4
    assert everything["items"][0]["id"] == str(parcel.id)
    assert [item["id"] for item in active_pallets["items"]] == [str(high.id), str(low.id)]


async def test_update_rule(client, db):
    rule = await create_rule(db, UnitType.PALLET, 40, pallet_count_min=1, pallet_count_max=4)

    response = await client.put(f"/api/v1/transport-pricing/{rule.id}", json={
        "price_eur": "45.50",
        "pallet_count_max": None,
        "is_active": False,
    })

    assert response.status_code == 200, response.text
    body = response.json()
    assert money(body["price_eur"]) == Decimal("45.50")
    assert body["pallet_count_max"] is None
    assert body["pallet_count_min"] == 1
    assert body["is_active"] is False


async def test_update_rule_bounds_are_checked_against_stored_values(client, db):
    rule = await create_rule(db, UnitType.PALLET, 40, pallet_count_max=4)

    response = await client.put(f"/api/v1/transport-pricing/{rule.id}", json={"pallet_count_min": 6})

    assert response.status_code == 400
    assert response.json()["detail"].startswith("pallet_count_min:")


async def test_update_rule_rejects_null_price(client, db):
    rule = await create_rule(db, UnitType.PALLET, 40)

    response = await client.put(f"/api/v1/transport-pricing/{rule.id}", json={"price_eur": None})

    assert response.status_code == 400


async def test_deactivate_and_delete_rule(client, db):
    rule = await create_rule(db, UnitType.PALLET, 40)

    deactivated = await client.delete(f"/api/v1/transport-pricing/{rule.id}", params={"hard_delete": "false"})
    assert deactivated.status_code == 204
    assert (await reload(TransportPricingRule, rule.id)).is_active is False

    deleted = await client.delete(f"/api/v1/transport-pricing/{rule.id}")
    assert deleted.status_code == 204
    assert (await client.get(f"/api/v1/transport-pricing/{rule.id}")).status_code == 404
    assert (await client.delete(f"/api/v1/transport-pricing/{rule.id}")).status_code == 404


async def test_quote_matches_active_rules(client, db):
    await create_rule(db, UnitType.PALLET, 120, priority=5, pallet_count_min=1, pallet_count_max=4)
    fixed = await create_rule(db, UnitType.PALLET, 40, priority=1, type=PricingType.FIXED_PER_UNIT,
                              pallet_count_min=1)

    within_band = (await client.post("/api/v1/transport-pricing/quote", json={
        "transport_type": "PALLET", "weight_kg": 450, "pallet_count": 3,
    })).json()
    above_band = (await client.post("/api/v1/transport-pricing/quote", json={
        "transport_type": "PALLET", "weight_kg": 900, "pallet_count": 6,
    })).json()

    assert within_band["matched"] is True
    assert money(within_band["price_eur"]) == Decimal("120.00")
    assert above_band["transport_pricing_id"] == str(fixed.id)
    assert above_band["unit_count"] == 6
    assert money(above_band["price_eur"]) == Decimal("240.00")


async def test_quote_without_match_needs_manual_quote(client):
    body = (await client.post("/api/v1/transport-pricing/quote", json={
        "transport_type": "PACKAGE", "weight_kg": 10, "volume_cbm": 0.063,
    })).json()

    assert body["matched"] is False
    assert body["price_eur"] is None
    assert body["needs_manual_quote"] is True


async def test_pallet_quote_counts_listed_pallets(client, db):
    rule = await create_rule(db, UnitType.PALLET, 40, type=PricingType.FIXED_PER_UNIT, pallet_count_min=1)

    body = (await client.post("/api/v1/transport-pricing/quote", json={
        "transport_type": "PALLET", "weight_kg": 500,
        "pallets": [{"width_cm": 240, "length_cm": 80}, {"width_cm": 100, "length_cm": 80}, {}],
    })).json()

    assert body["transport_pricing_id"] == str(rule.id)
    assert body["unit_count"] == 3
    assert money(body["price_eur"]) == Decimal("120.00")
    # 2 positions, 1.33 for the small pallet, 1 without a footprint
    assert body["pricing_positions"] == pytest.approx(2.0 + 1.33 + 1.0)


async def test_quote_needs_the_measure_of_its_type(client):
    response = await client.post("/api/v1/transport-pricing/quote", json={
        "transport_type": "PALLET", "weight_kg": 100,
    })
    assert response.status_code == 400


async def test_unknown_rule(client):
    rule_id = uuid.uuid4()
    assert (await client.get(f"/api/v1/transport-pricing/{rule_id}")).status_code == 404
    assert (await client.put(f"/api/v1/transport-pricing/{rule_id}", json={"priority": 1})).status_code == 404
