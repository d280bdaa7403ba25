"""
Email templates and delivery helpers for account and order events.
"""
from typing import Iterable, Tuple

import structlog

from shopfront.core.config import settings
from shopfront.core.email import email_service, EmailDeliveryError

logger = structlog.get_logger()

# (title, quantity, unit price)
OrderLine = Tuple[str, int, float]


def _layout(heading: str, body: str) -> str:
    return (
        "<div style=\"font-family: Arial, sans-serif; max-width: 600px; margin: auto;\">"
        f"<h2>{heading}</h2>{body}"
        f"<p style=\"color: #888;\">{settings.APP_NAME}</p>"
        "</div>"
    )


def _lines_table(lines: Iterable[OrderLine]) -> str:
    rows = "".join(
        f"<tr><td>{title}</td><td>{quantity}</td><td>{price:.2f}</td></tr>"
        for title, quantity, price in lines
    )
    return (
        "<table><tr><th>Product</th><th>Qty</th><th>Price</th></tr>"
        f"{rows}</table>"
    )


async def send_email(to: str, subject: str, html: str) -> None:
    """Deliver a notification, logging failures instead of raising."""
    try:
        await email_service.send(to, subject, html)
    except EmailDeliveryError as e:
        logger.warning("notification_failed", to=to, subject=subject, error=str(e))


async def send_otp(to: str, name: str, code: str) -> None:
    """Send a role assignment passcode. Delivery errors propagate."""
    html = _layout(
        "Your verification code",
        f"<p>Hi {name},</p>"
        f"<p>Your one-time passcode is <strong>{code}</strong>.</p>"
        f"<p>It expires in {settings.OTP_EXPIRE_MINUTES} minutes.</p>",
    )
    await email_service.send(to, "Your verification code", html)


async def send_password_reset(to: str, name: str, token: str) -> None:
    link = f"{settings.FRONTEND_URL}/reset-password/{token}"
    html = _layout(
        "Reset your password",
        f"<p>Hi {name},</p>"
        f"<p><a href=\"{link}\">Reset your password</a>. "
        f"The link expires in {settings.PASSWORD_RESET_EXPIRE_MINUTES} minutes.</p>",
    )
    await send_email(to, "Password reset", html)


async def send_email_verification(to: str, name: str, token: str) -> None:
    link = f"{settings.FRONTEND_URL}/verify-email/{token}"
    html = _layout(
        "Verify your email",
        f"<p>Hi {name},</p><p><a href=\"{link}\">Confirm your email address</a>.</p>",
    )
    await email_service.send(to, "Verify your email", html)


async def send_buyer_welcome(to: str, name: str) -> None:
    html = _layout(
        "Welcome aboard",
        f"<p>Hi {name},</p><p>Your buyer account is active. Happy shopping!</p>",
    )
    await send_email(to, "Your buyer account is ready", html)


async def send_seller_under_review(to: str, name: str, store_name: str) -> None:
    html = _layout(
        "Seller application received",
        f"<p>Hi {name},</p>"
        f"<p>Your store <strong>{store_name}</strong> is under review. "
        "We will email you once an admin verifies it.</p>",
    )
    await send_email(to, "Seller application under review", html)


async def send_seller_verified(to: str, name: str, store_name: str) -> None:
    html = _layout(
        "Your store is verified",
        f"<p>Hi {name},</p><p><strong>{store_name}</strong> can now sell on the marketplace.</p>",
    )
    await send_email(to, "Seller account verified", html)


async def send_order_placed(to: str, name: str, order_ids: Iterable[str], lines: Iterable[OrderLine], total: float) -> None:
    ids = ", ".join(order_ids)
    html = _layout(
        "Thanks for your order",
        f"<p>Hi {name},</p><p>Order(s) {ids} have been placed.</p>"
        f"{_lines_table(lines)}<p><strong>Total: {total:.2f}</strong></p>",
    )
    await send_email(to, "Order confirmation", html)


async def send_order_received(to: str, store_name: str, order_id: str, lines: Iterable[OrderLine], total: float) -> None:
    html = _layout(
        "New order received",
        f"<p>{store_name} received order {order_id}.</p>"
        f"{_lines_table(lines)}<p><strong>Total: {total:.2f}</strong></p>",
    )
    await send_email(to, "New order received", html)


async def send_order_status(to: str, name: str, order_id: str, status: str) -> None:
    html = _layout(
        "Order update",
        f"<p>Hi {name},</p><p>Your order {order_id} is now <strong>{status}</strong>.</p>",
    )
    await send_email(to, f"Order {status.lower()}", html)
