"""Payment link API client and the background task storing links."""
import json
import uuid
from datetime import date
from decimal import Decimal

import httpx
import pytest

from fulfillment.models import Invoice, InvoiceType
from fulfillment.services import payment_link_service
from fulfillment.services.payment_link_service import PaymentLinkClient, create_payment_link_for_invoice

from tests.factories import create_client, reload

API_URL = "https://pay.example.com/api/links"


def link_client(handler):
    return PaymentLinkClient(API_URL, api_key="secret", transport=httpx.MockTransport(handler))


async def create_invoice(db, customer, amount="35.50"):
    invoice = Invoice(
        invoice_number="INV-2026-900",
        client_id=customer.id,
        invoice_type=InvoiceType.TRANSPORT.value,
        amount_eur=Decimal(amount),
        due_date=date(2026, 11, 1),
    )
    db.add(invoice)
    await db.commit()
    return invoice


async def test_create_link_posts_amount_in_cents():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"short_url": "https://pay.example.com/l/abc"})

    invoice_id, client_id = uuid.uuid4(), uuid.uuid4()
    link = await link_client(handler).create_link(invoice_id, client_id, "INV-2026-001", Decimal("35.50"))

    assert link == "https://pay.example.com/l/abc"
    assert seen["auth"] == "Bearer secret"
    assert seen["body"]["amount"] == 3550
    assert seen["body"]["currency"] == "EUR"
    assert seen["body"]["metadata"] == {"invoice_id": str(invoice_id), "client_id": str(client_id)}


async def test_create_link_raises_on_error_status():
    def handler(request):
        return httpx.Response(502, json={"error": "upstream"})

    with pytest.raises(httpx.HTTPStatusError):
        await link_client(handler).create_link(uuid.uuid4(), uuid.uuid4(), "INV-2026-002", Decimal("10"))


async def test_create_link_without_url_in_response():
    def handler(request):
        return httpx.Response(200, json={"id": "lnk_1"})

    with pytest.raises(ValueError, match="no URL"):
        await link_client(handler).create_link(uuid.uuid4(), uuid.uuid4(), "INV-2026-003", Decimal("10"))


async def test_unconfigured_api_leaves_invoice_without_link(db, monkeypatch):
    monkeypatch.setattr(payment_link_service, "get_payment_link_client", lambda: PaymentLinkClient(None))
    invoice = await create_invoice(db, await create_client(db))

    assert await create_payment_link_for_invoice(invoice.id) is None
    assert (await reload(Invoice, invoice.id)).payment_link is None


async def test_link_is_stored_on_invoice(db, monkeypatch):
    def handler(request):
        return httpx.Response(201, json={"public_url": "https://pay.example.com/l/xyz"})

    monkeypatch.setattr(payment_link_service, "get_payment_link_client", lambda: link_client(handler))
    invoice = await create_invoice(db, await create_client(db))

    assert await create_payment_link_for_invoice(invoice.id) == "https://pay.example.com/l/xyz"
    assert (await reload(Invoice, invoice.id)).payment_link == "https://pay.example.com/l/xyz"


async def test_failed_request_leaves_invoice_unchanged(db, monkeypatch):
    def handler(request):
        return httpx.Response(500)

    monkeypatch.setattr(payment_link_service, "get_payment_link_client", lambda: link_client(handler))
    invoice = await create_invoice(db, await create_client(db))

    with pytest.raises(httpx.HTTPStatusError):
        await create_payment_link_for_invoice(invoice.id)

    stored = await reload(Invoice, invoice.id)
    assert stored.payment_link is None
    assert stored.status == "ISSUED"
