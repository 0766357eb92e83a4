"""Setup fee, vouchers and subscription checkout over HTTP."""
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from fulfillment.models import SetupFee, Voucher, Invoice

from tests.factories import create_client, create_plan, reload


def money(value):
    return Decimal(str(value))


async def subscriber(db, rate="100.00", discount=10.0):
    plan = await create_plan(db, rate=rate)
    return await create_client(db, plan=plan, discount=discount)


# ==================== SETUP FEE ====================

async def test_default_setup_fee(client):
    body = (await client.get("/api/v1/billing/setup-fee")).json()

    assert money(body["amount_eur"]) == Decimal("119.00")
    assert body["is_promotional"] is False


async def test_promotional_setup_fee_until_it_expires(client, db):
    db.add(SetupFee(
        suggested_amount_eur=Decimal("199.00"),
        current_amount_eur=Decimal("99.00"),
        valid_until=datetime.now(timezone.utc) + timedelta(days=3),
    ))
    await db.commit()

    body = (await client.get("/api/v1/billing/setup-fee")).json()

    assert money(body["amount_eur"]) == Decimal("99.00")
    assert body["is_promotional"] is True


async def test_expired_promotion_falls_back_to_suggested_fee(client, db):
    db.add(SetupFee(
        suggested_amount_eur=Decimal("199.00"),
        current_amount_eur=Decimal("99.00"),
        valid_until=datetime.now(timezone.utc) - timedelta(days=1),
    ))
    await db.commit()

    body = (await client.get("/api/v1/billing/setup-fee")).json()

    assert money(body["amount_eur"]) == Decimal("199.00")
    assert body["is_promotional"] is False


# ==================== VOUCHERS ====================

async def test_create_voucher_normalizes_code(client):
    response = await client.post("/api/v1/billing/vouchers", json={"code": " welcome50 ", "amount_eur": "50"})

    assert response.status_code == 201, response.text
    assert response.json()["code"] == "WELCOME50"

    duplicate = await client.post("/api/v1/billing/vouchers", json={"code": "Welcome50", "amount_eur": "10"})
    assert duplicate.status_code == 400


async def test_create_voucher_needs_positive_amount(client):
    response = await client.post("/api/v1/billing/vouchers", json={"code": "FREE", "amount_eur": "0"})
    assert response.status_code == 422


async def test_validate_voucher(client, db):
    used_by = await create_client(db)
    db.add_all([
        Voucher(code="FRESH", amount_eur=Decimal("20")),
        Voucher(code="SPENT", amount_eur=Decimal("20"), used_by_client_id=used_by.id),
        Voucher(code="OLD", amount_eur=Decimal("20"), expires_at=datetime.now(timezone.utc) - timedelta(days=1)),
    ])
    await db.commit()

    fresh = await client.post("/api/v1/billing/vouchers/validate", json={"code": "fresh"})
    spent = await client.post("/api/v1/billing/vouchers/validate", json={"code": "SPENT"})
    old = await client.post("/api/v1/billing/vouchers/validate", json={"code": "OLD"})
    unknown = await client.post("/api/v1/billing/vouchers/validate", json={"code": "NOPE"})

    assert fresh.status_code == 200
    assert fresh.json()["code"] == "FRESH"
    assert spent.status_code == 400
    assert "already been used" in spent.json()["detail"]
    assert old.status_code == 400
    assert unknown.status_code == 404


# ==================== SUBSCRIPTION ====================

async def test_subscription_quote(client, db):
    customer = await subscriber(db)

    response = await client.post("/api/v1/billing/subscription/quote", json={
        "client_id": str(customer.id),
        "period_months": 3,
    })

    assert response.status_code == 200, response.text
    body = response.json()
    assert money(body["period_amount_eur"]) == Decimal("243.00")
    assert money(body["setup_fee_eur"]) == Decimal("119.00")
    assert money(body["total_eur"]) == Decimal("362.00")


async def test_used_voucher_is_ignored_in_quote(client, db):
    customer = await subscriber(db, discount=0.0)
    db.add(Voucher(code="TAKEN", amount_eur=Decimal("30"), used_by_client_id=customer.id))
    await db.commit()

    response = await client.post("/api/v1/billing/subscription/quote", json={
        "client_id": str(customer.id),
        "period_months": 1,
        "voucher_code": "TAKEN",
    })

    assert response.status_code == 200
    body = response.json()
    assert body["voucher_applied"] is False
    assert money(body["voucher_discount_eur"]) == Decimal("0.00")
    assert money(body["total_eur"]) == Decimal("219.00")


async def test_unknown_voucher_is_ignored_in_quote(client, db):
    customer = await subscriber(db, discount=0.0)

    body = (await client.post("/api/v1/billing/subscription/quote", json={
        "client_id": str(customer.id),
        "period_months": 1,
        "voucher_code": "MISSING",
    })).json()

    assert body["voucher_applied"] is False
    assert money(body["total_eur"]) == Decimal("219.00")


async def test_checkout_consumes_voucher_and_setup_fee_once(client, db):
    customer = await subscriber(db)
    await client.post("/api/v1/billing/vouchers", json={"code": "WELCOME50", "amount_eur": "50"})

    response = await client.post("/api/v1/billing/subscription/checkout", json={
        "client_id": str(customer.id),
        "period_months": 3,
        "voucher_code": "welcome50",
        "payment_method": "online",
    })

    assert response.status_code == 201, response.text
    body = response.json()
    assert body["quote"]["voucher_applied"] is True
    assert money(body["invoice"]["amount_eur"]) == Decimal("312.00")
    assert body["invoice"]["invoice_type"] == "SUBSCRIPTION"
    assert body["invoice"]["subscription_period_months"] == 3

    invoice = await reload(Invoice, uuid.UUID(body["invoice"]["id"]))
    voucher = await reload(Voucher, invoice.voucher_id)
    assert voucher.used_by_client_id == customer.id

    renewal = (await client.post("/api/v1/billing/subscription/quote", json={
        "client_id": str(customer.id),
        "period_months": 3,
        "voucher_code": "WELCOME50",
    })).json()

    assert money(renewal["setup_fee_eur"]) == Decimal("0.00")
    assert renewal["voucher_applied"] is False
    assert money(renewal["total_eur"]) == Decimal("243.00")


async def test_failing_payment_link_does_not_undo_checkout(client, db, monkeypatch):
    from fulfillment.services import subscription_pricing

    async def broken_link(invoice_id):
        raise RuntimeError("payment provider down")

    monkeypatch.setattr(subscription_pricing, "create_payment_link_for_invoice", broken_link)
    customer = await subscriber(db)

    response = await client.post("/api/v1/billing/subscription/checkout", json={
        "client_id": str(customer.id),
        "period_months": 1,
        "payment_method": "online",
    })

    assert response.status_code == 201, response.text
    invoice = await reload(Invoice, uuid.UUID(response.json()["invoice"]["id"]))
    assert invoice.status == "ISSUED"
    assert invoice.payment_link is None


async def test_subscription_errors(client, db):
    customer = await subscriber(db)
    planless = await create_client(db)

    bad_period = await client.post("/api/v1/billing/subscription/quote", json={
        "client_id": str(customer.id), "period_months": 12,
    })
    no_plan = await client.post("/api/v1/billing/subscription/quote", json={
        "client_id": str(planless.id), "period_months": 1,
    })
    unknown = await client.post("/api/v1/billing/subscription/quote", json={
        "client_id": str(uuid.uuid4()), "period_months": 1,
    })

    assert bad_period.status_code == 400
    assert no_plan.status_code == 400
    assert unknown.status_code == 404


async def test_mark_unknown_invoice_paid(client):
    assert (await client.post(f"/api/v1/invoices/{uuid.uuid4()}/mark-paid")).status_code == 404
