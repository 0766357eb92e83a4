"""Notification tasks: message content and recipients."""
from decimal import Decimal

import pytest

from fulfillment.config import settings
from fulfillment.models import DeliveryExpected, ShipmentStatus, UnitType
from fulfillment.services import notification_service
from fulfillment.services.notification_service import (
    EmailService,
    notify_custom_quote_requested,
    notify_delivery_received,
    notify_shipment_priced,
)

from tests.factories import create_client, create_order, create_shipment, pallet_unit


@pytest.fixture
def outbox(monkeypatch):
    sent = []

    def send_email(self, to_email, subject, html_content, text_content=None):
        sent.append({"to": to_email, "subject": subject, "html": html_content, "text": text_content})
        return True

    monkeypatch.setattr(EmailService, "send_email", send_email)
    return sent


async def test_delivery_received_mails_the_client(db, outbox):
    customer = await create_client(db, email="buyer@example.com")
    delivery = DeliveryExpected(
        client_id=customer.id, supplier_name="Nordic Textiles", delivery_number="DEL-2026-007",
    )
    db.add(delivery)
    await db.commit()

    assert await notify_delivery_received(delivery.id) is True

    assert len(outbox) == 1
    assert outbox[0]["to"] == "buyer@example.com"
    assert outbox[0]["subject"] == "Delivery DEL-2026-007 received"
    assert "Nordic Textiles" in outbox[0]["text"]


async def test_shipment_priced_mail_uses_sales_quote_over_rule_price(db, outbox):
    customer = await create_client(db, email="buyer@example.com")
    order = await create_order(db, customer, packages=[pallet_unit(2, 500)])
    shipment = await create_shipment(
        db, customer, [order],
        status=ShipmentStatus.AWAITING_ACCEPTANCE,
        calculated_price_eur=Decimal("120.00"),
        proposed_price_eur=Decimal("95.00"),
    )

    assert await notify_shipment_priced(shipment.id) is True

    assert outbox[0]["to"] == "buyer@example.com"
    assert "95.00 EUR" in outbox[0]["text"]


async def test_unpriced_shipment_sends_nothing(db, outbox):
    customer = await create_client(db)
    order = await create_order(db, customer)
    shipment = await create_shipment(db, customer, [order])

    assert await notify_shipment_priced(shipment.id) is False
    assert outbox == []


async def test_custom_quote_request_goes_to_sales(db, outbox, monkeypatch):
    monkeypatch.setattr(settings, "SALES_NOTIFICATION_EMAIL", "sales@example.com")
    customer = await create_client(db)
    order = await create_order(db, customer, packages=[pallet_unit(2, 500)])
    shipment = await create_shipment(
        db, customer, [order], shipment_type=UnitType.PALLET.value, total_pallet_count=2,
    )

    assert await notify_custom_quote_requested(shipment.id) is True

    assert outbox[0]["to"] == "sales@example.com"
    assert customer.display_name in outbox[0]["subject"]
    assert "not priced" in outbox[0]["html"]


async def test_custom_quote_request_without_sales_address(db, outbox, monkeypatch):
    monkeypatch.setattr(settings, "SALES_NOTIFICATION_EMAIL", "")
    customer = await create_client(db)
    shipment = await create_shipment(db, customer, [await create_order(db, customer)])

    assert await notify_custom_quote_requested(shipment.id) is False
    assert outbox == []


async def test_unconfigured_smtp_reports_failure(db, caplog):
    customer = await create_client(db)
    shipment = await create_shipment(
        db, customer, [await create_order(db, customer)],
        status=ShipmentStatus.AWAITING_ACCEPTANCE,
        calculated_price_eur=Decimal("35.00"),
    )

    assert notification_service.get_email_service().is_configured is False
    assert await notify_shipment_priced(shipment.id) is False
    assert "SMTP credentials missing" in caplog.text
