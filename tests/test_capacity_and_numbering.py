"""Warehouse capacity, over-space charge and document numbers."""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select

from fulfillment.models import Client, DeliveryExpected, DocumentSequence, WarehouseOrderStatus
from fulfillment.services.capacity_service import CapacityService, weekly_overspace_charge, space_warning
from fulfillment.services.numbering import (
    format_document_number,
    parse_sequence,
    generate_delivery_number,
    generate_internal_tracking_number,
    generate_invoice_number,
)

from tests.factories import create_client, create_order, create_plan, package_unit, pallet_unit, reload


def test_no_charge_within_limit_and_buffer():
    assert weekly_overspace_charge(10.5, limit_cbm=10, buffer_cbm=1, rate_eur_per_week=5) == Decimal("0.00")


def test_one_week_charged_without_period():
    assert weekly_overspace_charge(13, limit_cbm=10, buffer_cbm=1, rate_eur_per_week=5) == Decimal("10.00")


def test_started_weeks_are_charged():
    start = datetime(2026, 1, 1, tzinfo=timezone.utc)
    charge = weekly_overspace_charge(
        12, limit_cbm=10, buffer_cbm=1, rate_eur_per_week=5,
        period_start=start, period_end=start + timedelta(days=8),
    )
    assert charge == Decimal("10.00")


def test_space_warning_band():
    assert not space_warning(8, 10)
    assert space_warning(9, 10)
    assert space_warning(12, 10)
    assert not space_warning(12.5, 10)
    assert not space_warning(5, 0)


def test_document_number_format():
    assert format_document_number("DEL", 2026, 7) == "DEL-2026-007"
    assert format_document_number("INT", 2026, 1234) == "INT-2026-1234"
    assert parse_sequence("DEL-2026-042") == 42
    assert parse_sequence("garbage") == 0
    assert parse_sequence(None) == 0


async def test_numbers_continue_from_highest_existing(db):
    client = await create_client(db)
    db.add_all([
        DeliveryExpected(client_id=client.id, supplier_name="A", delivery_number="DEL-2026-999"),
        DeliveryExpected(client_id=client.id, supplier_name="B", delivery_number="DEL-2026-1000"),
        DeliveryExpected(client_id=client.id, supplier_name="C", delivery_number="DEL-2025-500"),
    ])
    await db.commit()

    assert await generate_delivery_number(db, year=2026) == "DEL-2026-1001"
    assert await generate_delivery_number(db, year=2027) == "DEL-2027-001"
    assert await generate_internal_tracking_number(db, year=2026) == "INT-2026-001"


async def test_used_capacity_sums_packages_still_in_warehouse(db):
    client = await create_client(db)
    await create_order(db, client, packages=[package_unit(50, 40, 30, 10), pallet_unit(2, 400)])
    await create_order(db, client, status=WarehouseOrderStatus.READY_TO_SHIP,
                       packages=[package_unit(100, 100, 100, 50)])
    await create_order(db, client, status=WarehouseOrderStatus.SHIPPED,
                       packages=[package_unit(200, 200, 200, 500)])

    used = await CapacityService(db).recalculate_client(client.id)

    assert used == pytest.approx(0.063 + 1.05)
    assert (await reload(Client, client.id)).used_capacity_cbm == pytest.approx(0.063 + 1.05)


async def test_recalculation_stores_overspace_charge(db):
    plan = await create_plan(db, capacity_cbm=1.0, buffer_cbm=0.5)
    client = await create_client(db, plan=plan)
    await create_order(db, client, packages=[package_unit(100, 100, 200, 80)])
    await CapacityService(db).recalculate_client(client.id)

    # 2.1 m3 used, 0.6 m3 over at 5 EUR per week
    stored = await reload(Client, client.id)
    assert stored.weekly_overspace_charge_eur == Decimal("3.00")
    assert stored.space_warning is False


async def test_recalculation_flags_client_near_limit(db):
    plan = await create_plan(db, capacity_cbm=1.0, buffer_cbm=0.5)
    client = await create_client(db, plan=plan)
    await create_order(db, client, packages=[package_unit(100, 100, 95, 80)])
    await CapacityService(db).recalculate_client(client.id)

    stored = await reload(Client, client.id)
    assert stored.space_warning is True
    assert stored.weekly_overspace_charge_eur == Decimal("0.00")


async def test_client_without_plan_has_no_charge(db):
    client = await create_client(db)
    await create_order(db, client, packages=[pallet_unit(3, 600)])
    await CapacityService(db).recalculate_client(client.id)

    stored = await reload(Client, client.id)
    assert stored.weekly_overspace_charge_eur == Decimal("0.00")
    assert stored.space_warning is False


async def test_consecutive_numbers_share_one_sequence(db):
    assert await generate_invoice_number(db, year=2026) == "INV-2026-001"
    assert await generate_invoice_number(db, year=2026) == "INV-2026-002"
    await db.commit()

    sequences = (await db.execute(select(DocumentSequence))).scalars().all()
    assert [(s.prefix, s.year, s.current_number) for s in sequences] == [("INV", 2026, 2)]
