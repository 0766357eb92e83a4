"""Expected deliveries, receipt and packing over HTTP."""
import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from fulfillment.models import (
    Client, DeliveryExpected, ShipmentOrder, WarehouseOrder, WarehouseOrderStatus, UnitType, PricingType,
)

from tests.factories import create_client, create_order, create_rule, create_shipment, package_unit, reload


def money(value):
    return Decimal(str(value))


async def register(client, customer, **extra):
    payload = {"client_id": str(customer.id), "supplier_name": "Nordic Textiles", **extra}
    response = await client.post("/api/v1/deliveries", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


# ==================== DELIVERIES ====================

async def test_register_expected_delivery(client, db):
    customer = await create_client(db)

    body = await register(client, customer, tracking_number="TRK-1")

    assert body["status"] == "EXPECTED"
    assert body["delivery_number"] is None
    assert body["tracking_number"] == "TRK-1"


async def test_register_delivery_for_unknown_client(client):
    response = await client.post(
        "/api/v1/deliveries",
        json={"client_id": str(uuid.uuid4()), "supplier_name": "Nordic Textiles"},
    )
    assert response.status_code == 404


async def test_receive_delivery_creates_warehouse_order(client, db):
    customer = await create_client(db)
    delivery = await register(client, customer)

    response = await client.post(
        f"/api/v1/warehouse/deliveries/{delivery['id']}/receive",
        json={
            "units": [
                {"type": "PACKAGE", "width_cm": 50, "length_cm": 40, "height_cm": 30, "weight_kg": 10},
                {"type": "PALLET", "weight_kg": 250},
            ],
            "condition": "DAMAGED",
            "warehouse_location": "A-01-03",
        },
    )

    assert response.status_code == 200, response.text
    body = response.json()
    year = datetime.now(timezone.utc).year
    assert body["delivery"]["status"] == "RECEIVED"
    assert body["delivery"]["condition"] == "DAMAGED"
    assert body["delivery"]["delivery_number"] == f"DEL-{year}-001"
    assert body["delivery"]["quantity"] == 2

    order = body["warehouse_order"]
    assert order["status"] == "AT_WAREHOUSE"
    assert order["source_delivery_id"] == delivery["id"]
    assert order["internal_tracking_number"] == f"INT-{year}-001"
    assert order["warehouse_location"] == "A-01-03"
    volumes = sorted(p["volume_cbm"] for p in order["packages"])
    assert volumes[0] == 0.0
    assert volumes[1] == pytest.approx(0.063)

    # Capacity recalculation ran as a background task
    stored = await reload(Client, customer.id)
    assert stored.used_capacity_cbm == pytest.approx(0.063)


async def test_receive_delivery_twice_is_rejected(client, db):
    customer = await create_client(db)
    delivery = await register(client, customer)
    url = f"/api/v1/warehouse/deliveries/{delivery['id']}/receive"
    units = {"units": [{"type": "PALLET", "weight_kg": 300}]}

    assert (await client.post(url, json=units)).status_code == 200
    response = await client.post(url, json=units)

    assert response.status_code == 400
    assert "RECEIVED" in response.json()["detail"]


async def test_receive_unknown_delivery(client):
    response = await client.post(
        f"/api/v1/warehouse/deliveries/{uuid.uuid4()}/receive",
        json={"units": [{"type": "PALLET", "weight_kg": 300}]},
    )
    assert response.status_code == 404


async def test_receive_package_without_dimensions_changes_nothing(client, db):
    customer = await create_client(db)
    delivery = await register(client, customer)

    response = await client.post(
        f"/api/v1/warehouse/deliveries/{delivery['id']}/receive",
        json={"units": [{"type": "PACKAGE", "width_cm": 50, "weight_kg": 10}]},
    )

    assert response.status_code == 400
    stored = await reload(DeliveryExpected, uuid.UUID(delivery["id"]))
    assert stored.status == "EXPECTED"
    assert stored.delivery_number is None


# ==================== PACKING ====================

async def test_pack_single_parcel_is_priced(client, db):
    customer = await create_client(db)
    order = await create_order(db, customer)
    rule = await create_rule(db, UnitType.PACKAGE, 35, volume_max_cbm=0.1, weight_max_kg=20)

    response = await client.post("/api/v1/warehouse/pack-order", json={
        "order_id": str(order.id),
        "shipment_type": "PACKAGE",
        "items": [{"width_cm": 50, "length_cm": 40, "height_cm": 30, "weight_kg": 10}],
        "notes": "fragile",
    })

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["status"] == "READY_TO_SHIP"
    assert body["total_volume_cbm"] == pytest.approx(0.063)
    assert body["total_weight_kg"] == 10
    assert money(body["transport_price_eur"]) == Decimal("35.00")
    assert body["transport_pricing_id"] == str(rule.id)
    assert body["needs_manual_quote"] is False
    assert body["shipment_id"] is None

    stored = await reload(WarehouseOrder, order.id)
    assert stored.packed_at is not None
    assert stored.packing_notes == "fragile"
    assert (stored.packed_width_cm, stored.packed_length_cm, stored.packed_height_cm) == (50, 40, 30)
    assert len(stored.packages) == 1


async def test_pack_pallets_uses_highest_priority_rule(client, db):
    customer = await create_client(db)
    order = await create_order(db, customer, status=WarehouseOrderStatus.TO_PACK)
    dynamic = await create_rule(db, UnitType.PALLET, 120, priority=5, pallet_count_min=1, pallet_count_max=4)
    await create_rule(db, UnitType.PALLET, 40, priority=1, type=PricingType.FIXED_PER_UNIT, pallet_count_min=1)

    response = await client.post("/api/v1/warehouse/pack-order", json={
        "order_id": str(order.id),
        "shipment_type": "PALLET",
        "items": [{"count": 3, "total_weight_kg": 450}],
    })

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["status"] == "READY_TO_SHIP"
    assert body["pallet_count"] == 3
    assert body["total_weight_kg"] == 450
    assert money(body["transport_price_eur"]) == Decimal("120.00")
    assert body["transport_pricing_id"] == str(dynamic.id)


async def test_pack_without_matching_rule_needs_manual_quote(client, db):
    customer = await create_client(db)
    order = await create_order(db, customer)
    await create_rule(db, UnitType.PACKAGE, 35, volume_max_cbm=0.01)

    response = await client.post("/api/v1/warehouse/pack-order", json={
        "order_id": str(order.id),
        "shipment_type": "PACKAGE",
        "items": [{"width_cm": 50, "length_cm": 40, "height_cm": 30, "weight_kg": 10}],
    })

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "READY_TO_SHIP"
    assert body["transport_price_eur"] is None
    assert body["needs_manual_quote"] is True


@pytest.mark.parametrize("item", [
    {"width_cm": 50, "length_cm": 40, "weight_kg": 10},
    {"width_cm": 50, "length_cm": 40, "height_cm": 30},
    {"width_cm": 0, "length_cm": 40, "height_cm": 30, "weight_kg": 10},
    {"width_cm": 50, "length_cm": 40, "height_cm": 30, "weight_kg": -1},
])
async def test_pack_incomplete_parcel_is_rejected_without_changes(client, db, item):
    customer = await create_client(db)
    order = await create_order(db, customer, packages=[package_unit(60, 40, 40, 12)])
    complete = {"width_cm": 50, "length_cm": 40, "height_cm": 30, "weight_kg": 10}

    response = await client.post("/api/v1/warehouse/pack-order", json={
        "order_id": str(order.id),
        "shipment_type": "PACKAGE",
        "items": [complete, item],
    })

    assert response.status_code == 400
    assert response.json()["detail"].startswith("items[1].")
    stored = await reload(WarehouseOrder, order.id)
    assert stored.status == "AT_WAREHOUSE"
    assert stored.packed_at is None
    assert [(p.width_cm, p.weight_kg) for p in stored.packages] == [(60, 12)]


@pytest.mark.parametrize("item", [
    {"count": 0, "total_weight_kg": 300},
    {"count": 2},
    {"total_weight_kg": 300},
])
async def test_pack_incomplete_pallet_is_rejected(client, db, item):
    customer = await create_client(db)
    order = await create_order(db, customer)

    response = await client.post("/api/v1/warehouse/pack-order", json={
        "order_id": str(order.id),
        "shipment_type": "PALLET",
        "items": [item],
    })

    assert response.status_code == 400
    assert (await reload(WarehouseOrder, order.id)).status == "AT_WAREHOUSE"


async def test_pack_requires_items(client, db):
    customer = await create_client(db)
    order = await create_order(db, customer)

    response = await client.post("/api/v1/warehouse/pack-order", json={
        "order_id": str(order.id),
        "shipment_type": "PACKAGE",
        "items": [],
    })

    assert response.status_code == 400
    assert response.json()["detail"].startswith("items:")


async def test_pack_rejects_items_of_the_other_type(client, db):
    customer = await create_client(db)
    order = await create_order(db, customer)

    response = await client.post("/api/v1/warehouse/pack-order", json={
        "order_id": str(order.id),
        "shipment_type": "PALLET",
        "items": [{"type": "PACKAGE", "width_cm": 50, "length_cm": 40, "height_cm": 30, "weight_kg": 10}],
    })

    assert response.status_code == 400


async def test_pack_unknown_order(client):
    response = await client.post("/api/v1/warehouse/pack-order", json={
        "order_id": str(uuid.uuid4()),
        "shipment_type": "PALLET",
        "items": [{"count": 1, "total_weight_kg": 100}],
    })
    assert response.status_code == 404


async def test_pack_already_packed_order_is_a_state_conflict(client, db):
    customer = await create_client(db)
    order = await create_order(db, customer, status=WarehouseOrderStatus.READY_TO_SHIP)

    response = await client.post("/api/v1/warehouse/pack-order", json={
        "order_id": str(order.id),
        "shipment_type": "PALLET",
        "items": [{"count": 1, "total_weight_kg": 100}],
    })

    assert response.status_code == 400
    assert "READY_TO_SHIP" in response.json()["detail"]


async def test_capacity_failure_does_not_undo_packing(client, db, monkeypatch):
    from fulfillment.services import warehouse_order_service

    async def broken_recalculation(client_id):
        raise RuntimeError("capacity store unavailable")

    monkeypatch.setattr(warehouse_order_service, "recalculate_client_capacity", broken_recalculation)
    customer = await create_client(db)
    order = await create_order(db, customer)

    response = await client.post("/api/v1/warehouse/pack-order", json={
        "order_id": str(order.id),
        "shipment_type": "PALLET",
        "items": [{"count": 2, "total_weight_kg": 600}],
    })

    assert response.status_code == 200
    assert (await reload(WarehouseOrder, order.id)).status == "READY_TO_SHIP"


async def test_consolidation_failure_keeps_the_packing(client, db, monkeypatch):
    from fulfillment.services.consolidation_service import ConsolidationService

    async def broken_consolidation(self, shipment, side_effects=None):
        shipment.calculated_price_eur = Decimal("1.00")
        await self.db.flush()
        raise RuntimeError("pricing rules unreadable")

    monkeypatch.setattr(ConsolidationService, "consolidate", broken_consolidation)
    customer = await create_client(db)
    order = await create_order(db, customer, status=WarehouseOrderStatus.TO_PACK)
    shipment = await create_shipment(db, customer, [order])

    response = await client.post("/api/v1/warehouse/pack-order", json={
        "order_id": str(order.id),
        "shipment_type": "PACKAGE",
        "items": [{"width_cm": 50, "length_cm": 40, "height_cm": 30, "weight_kg": 10}],
    })

    assert response.status_code == 200, response.text
    assert (await reload(WarehouseOrder, order.id)).status == "READY_TO_SHIP"
    stored = await reload(ShipmentOrder, shipment.id)
    assert stored.calculated_price_eur is None
    assert stored.status == "REQUESTED"


async def test_get_warehouse_order(client, db):
    customer = await create_client(db)
    order = await create_order(db, customer, packages=[package_unit(50, 40, 30, 10)])

    response = await client.get(f"/api/v1/warehouse-orders/{order.id}")

    assert response.status_code == 200
    assert response.json()["packages"][0]["volume_cbm"] == pytest.approx(0.063)
    assert (await client.get(f"/api/v1/warehouse-orders/{uuid.uuid4()}")).status_code == 404
