"""
Outgoing email over SMTP.
"""
from email.message import EmailMessage

import aiosmtplib
import structlog

from shopfront.core.config import settings

logger = structlog.get_logger()


class EmailDeliveryError(Exception):
    """Raised when the SMTP server rejects or cannot take a message."""


class EmailService:
    """Async SMTP sender."""

    async def send(self, to: str, subject: str, html: str) -> None:
        """
        Send an HTML email.

        Args:
            to: Recipient address
            subject: Subject line
            html: HTML body

        Raises:
            EmailDeliveryError: If delivery fails
        """
        if not settings.EMAIL_ENABLED:
            logger.info("email_skipped", to=to, subject=subject)
            return

        message = EmailMessage()
        message["From"] = settings.EMAIL_FROM
        message["To"] = to
        message["Subject"] = subject
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(html, subtype="html")

        try:
            await aiosmtplib.send(
                message,
                hostname=settings.SMTP_HOST,
                port=settings.SMTP_PORT,
                username=settings.SMTP_USERNAME,
                password=settings.SMTP_PASSWORD,
                start_tls=settings.SMTP_START_TLS,
            )
        except aiosmtplib.SMTPException as e:
            logger.error("email_failed", to=to, subject=subject, error=str(e))
            raise EmailDeliveryError(str(e)) from e

        logger.info("email_sent", to=to, subject=subject)


# Global email service instance
email_service = EmailService()
