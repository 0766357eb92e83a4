"""
Payment link collaborator.

Creates a hosted payment link for an invoice through an external HTTP API.
Runs as a best-effort background task: errors propagate to the side-effect
runner, which logs them; the invoice itself is never affected.
"""
import logging
import uuid
from decimal import Decimal
from typing import Optional

import httpx

from fulfillment.config import settings
from fulfillment.database import get_db_session
from fulfillment.models.billing import Invoice


logger = logging.getLogger(__name__)


class PaymentLinkClient:
    """Thin httpx client for the payment-link API."""

    def __init__(
        self,
        api_url: Optional[str],
        api_key: str = "",
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_url and self.api_key)

    async def create_link(
        self,
        invoice_id: uuid.UUID,
        client_id: uuid.UUID,
        invoice_number: str,
        amount_eur: Decimal,
        currency: str = "EUR",
    ) -> str:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "amount": int((Decimal(amount_eur) * 100).to_integral_value()),  # cents
            "currency": currency,
            "description": f"Invoice {invoice_number}",
            "metadata": {
                "invoice_id": str(invoice_id),
                "client_id": str(client_id),
            },
        }

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(self.api_url, json=payload, headers=headers)
            response.raise_for_status()
            data = response.json()

        link = data.get("public_url") or data.get("short_url") or data.get("url")
        if not link:
            raise ValueError(f"Payment link API returned no URL for invoice {invoice_number}")
        return link


def get_payment_link_client() -> PaymentLinkClient:
    return PaymentLinkClient(
        api_url=settings.PAYMENT_LINK_API_URL,
        api_key=settings.PAYMENT_LINK_API_KEY,
        timeout=settings.PAYMENT_LINK_TIMEOUT_SECONDS,
    )


async def create_payment_link_for_invoice(invoice_id: uuid.UUID) -> Optional[str]:
    """Background task: request a link and store it on the invoice."""
    link_client = get_payment_link_client()
    if not link_client.is_configured:
        logger.warning(f"Payment link API not configured, invoice {invoice_id} has no link")
        return None

    async with get_db_session() as db:
        invoice = await db.get(Invoice, invoice_id)
        if invoice is None:
            logger.warning(f"Invoice {invoice_id} vanished before payment link creation")
            return None

        link = await link_client.create_link(
            invoice_id=invoice.id,
            client_id=invoice.client_id,
            invoice_number=invoice.invoice_number,
            amount_eur=invoice.amount_eur,
            currency=invoice.currency,
        )
        invoice.payment_link = link

    logger.info(f"Payment link stored for invoice {invoice_id}")
    return link
