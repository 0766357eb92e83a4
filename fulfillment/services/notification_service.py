"""
Outbound e-mail notifications.

EmailService sends through SMTP and reports failure by returning False.
The notify_* coroutines are best-effort background tasks: each opens its own
session, loads what it needs and sends one message.
"""
import smtplib
import logging
import uuid
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional

from fastapi.concurrency import run_in_threadpool

from fulfillment.config import settings
from fulfillment.database import get_db_session
from fulfillment.models.client import Client
from fulfillment.models.delivery import DeliveryExpected
from fulfillment.models.shipment import ShipmentOrder


logger = logging.getLogger(__name__)


class EmailService:
    """Email service for transactional emails via SMTP."""

    def __init__(
        self,
        smtp_host: str = "smtp.gmail.com",
        smtp_port: int = 587,
        smtp_user: str = "",
        smtp_password: str = "",
        from_email: str = "",
        from_name: str = "MAK Warehouse"
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.from_email = from_email or smtp_user
        self.from_name = from_name

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_user and self.smtp_password)

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """
        Send an email.

        Args:
            to_email: Recipient email address
            subject: Email subject
            html_content: HTML body of the email
            text_content: Plain text body (optional fallback)

        Returns:
            True if email sent successfully, False otherwise
        """
        if not self.is_configured:
            logger.warning("Email not configured. SMTP credentials missing.")
            return False

        try:
            msg = MIMEMultipart('alternative')
            msg['Subject'] = subject
            msg['From'] = f"{self.from_name} <{self.from_email}>"
            msg['To'] = to_email

            if text_content:
                msg.attach(MIMEText(text_content, 'plain'))
            msg.attach(MIMEText(html_content, 'html'))

            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=10) as server:
                server.starttls()
                server.login(self.smtp_user, self.smtp_password)
                server.sendmail(self.from_email, to_email, msg.as_string())

            logger.info(f"Email sent successfully to {to_email}")
            return True

        except smtplib.SMTPAuthenticationError:
            logger.error("SMTP Authentication failed. Check email credentials.")
            return False
        except smtplib.SMTPException as e:
            logger.error(f"SMTP error: {e}")
            return False
        except OSError as e:
            logger.error(f"Network error sending email: {e}")
            return False


def get_email_service() -> EmailService:
    """Get configured email service instance."""
    return EmailService(
        smtp_host=settings.SMTP_HOST,
        smtp_port=settings.SMTP_PORT,
        smtp_user=settings.SMTP_USER,
        smtp_password=settings.SMTP_PASSWORD,
        from_email=settings.SMTP_FROM_EMAIL,
        from_name=settings.SMTP_FROM_NAME,
    )


async def send_email_async(
    to_email: str,
    subject: str,
    html_content: str,
    text_content: Optional[str] = None
) -> bool:
    """Send from a worker thread; smtplib blocks."""
    return await run_in_threadpool(
        get_email_service().send_email, to_email, subject, html_content, text_content
    )


def _wrap_html(title: str, body: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
        <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
            <h2>{title}</h2>
            {body}
            <p>Best regards,<br>{settings.SMTP_FROM_NAME}</p>
        </div>
    </body>
    </html>
    """


# ==================== NOTIFICATION TASKS ====================

async def notify_delivery_received(delivery_id: uuid.UUID) -> bool:
    async with get_db_session() as db:
        delivery = await db.get(DeliveryExpected, delivery_id)
        if delivery is None:
            return False
        client = await db.get(Client, delivery.client_id)

    subject = f"Delivery {delivery.delivery_number} received"
    body = (
        f"<p>Your delivery from <strong>{delivery.supplier_name}</strong> has arrived at the warehouse.</p>"
        f"<p>Delivery number: {delivery.delivery_number}<br>Condition: {delivery.condition}</p>"
        f"<p><a href=\"{settings.FRONTEND_URL}/client/deliveries\">View deliveries</a></p>"
    )
    text = (
        f"Your delivery from {delivery.supplier_name} has arrived.\n"
        f"Delivery number: {delivery.delivery_number}\nCondition: {delivery.condition}"
    )
    return await send_email_async(client.email, subject, _wrap_html(subject, body), text)


async def notify_shipment_priced(shipment_id: uuid.UUID) -> bool:
    async with get_db_session() as db:
        shipment = await db.get(ShipmentOrder, shipment_id)
        if shipment is None or shipment.offered_price_eur is None:
            return False
        client = await db.get(Client, shipment.client_id)

    subject = "Your transport quote is ready"
    body = (
        f"<p>Transport price for your shipment: <strong>{shipment.offered_price_eur} EUR</strong>.</p>"
        "<p>Accept the price, request a custom quote or arrange your own transport.</p>"
        f"<p><a href=\"{settings.FRONTEND_URL}/client/shipments/{shipment.id}\">Choose transport</a></p>"
    )
    text = f"Transport price for your shipment: {shipment.offered_price_eur} EUR"
    return await send_email_async(client.email, subject, _wrap_html(subject, body), text)


async def notify_custom_quote_requested(shipment_id: uuid.UUID) -> bool:
    if not settings.SALES_NOTIFICATION_EMAIL:
        logger.warning("SALES_NOTIFICATION_EMAIL not set, custom quote request not forwarded")
        return False

    async with get_db_session() as db:
        shipment = await db.get(ShipmentOrder, shipment_id)
        if shipment is None:
            return False
        client = await db.get(Client, shipment.client_id)

    subject = f"Custom transport quote requested by {client.display_name}"
    price = shipment.calculated_price_eur if shipment.calculated_price_eur is not None else "not priced"
    body = (
        f"<p>Client {client.display_name} ({client.email}) asked for a custom transport quote.</p>"
        f"<p>Shipment: {shipment.id}<br>Type: {shipment.shipment_type}<br>"
        f"Volume: {shipment.total_volume_cbm} m³<br>Weight: {shipment.total_weight_kg} kg<br>"
        f"Pallets: {shipment.total_pallet_count}<br>Calculated price: {price}</p>"
    )
    return await send_email_async(
        settings.SALES_NOTIFICATION_EMAIL, subject, _wrap_html(subject, body)
    )
