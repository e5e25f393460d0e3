"""Outbound e-mail through the Resend HTTP API.

Sending is best effort everywhere: ``Mailer.send`` and ``dispatch`` report
failure in a ``DispatchResult`` and never raise, so a route can hand them to
``BackgroundTasks`` and forget about them.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from html import escape
from typing import Any, Dict, List, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)

BRAND = "sneakslab"

STATUS_SUBJECTS = {
    "Processing": "Your Order Is Processing",
    "Shipped": "Your Order Has Shipped!",
    "Delivered": "Your Order Has Been Delivered",
    "Cancelled": "Your Order Has Been Cancelled",
}


@dataclass(frozen=True)
class DispatchResult:
    ok: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class Mailer:
    """Client for the Resend ``/emails`` endpoint."""

    BASE_URL = "https://api.resend.com"

    def __init__(self, api_key: Optional[str], from_email: str, timeout: float = 10.0) -> None:
        self.api_key = api_key
        self.from_email = from_email
        self.client = httpx.Client(
            base_url=self.BASE_URL,
            timeout=timeout,
            headers={"Authorization": f"Bearer {api_key or ''}"},
        )

    def send(self, to: str, subject: str, html: str) -> DispatchResult:
        if not self.api_key:
            logger.warning("RESEND_API_KEY not set, dropping e-mail to %s (%s)", to, subject)
            return DispatchResult(ok=False, error="mailer not configured")
        try:
            response = self.client.post(
                "/emails",
                json={"from": self.from_email, "to": to, "subject": subject, "html": html},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("Failed to send e-mail to %s (%s): %s", to, subject, exc)
            return DispatchResult(ok=False, error=str(exc))
        message_id = None
        try:
            message_id = response.json().get("id")
        except ValueError:
            pass
        logger.info("E-mail sent to %s: %s", to, subject)
        return DispatchResult(ok=True, message_id=message_id)


def dispatch(mailer: Any, to: str, subject: str, html: str) -> DispatchResult:
    """Send and swallow anything the transport throws; a lost e-mail never fails a request."""
    try:
        return mailer.send(to, subject, html)
    except Exception as exc:
        logger.exception("Unexpected error sending e-mail to %s", to)
        return DispatchResult(ok=False, error=str(exc))


def format_money(amount: float, currency: str) -> str:
    return f"{currency} {amount:,.2f}"


def short_ref(order_id: Any, length: int = 7) -> str:
    return str(order_id)[-length:].upper()


def _page(body: str) -> str:
    year = datetime.now().year
    return (
        "<!DOCTYPE html><html><body style=\"font-family: Helvetica, Arial, sans-serif; "
        "background-color: #f5f5f7; color: #1d1d1f;\">"
        "<div style=\"max-width: 640px; margin: 20px auto; background: #ffffff; "
        "border-radius: 12px; padding: 40px;\">"
        f"{body}"
        f"<p style=\"text-align: center; color: #86868b; font-size: 0.8em;\">&copy; {year} Sneakslab. All rights reserved.</p>"
        "</div></body></html>"
    )


def _address_block(order: Dict[str, Any]) -> str:
    customer = order.get("customer") or {}
    shipping = order.get("shipping_address") or {}
    return (
        "<h3>Shipping to:</h3><p style=\"color: #6e6e73;\">"
        f"{escape(customer.get('first_name', ''))} {escape(customer.get('last_name', ''))}<br>"
        f"{escape(shipping.get('address', ''))}<br>"
        f"{escape(shipping.get('state', ''))}, {escape(shipping.get('zip', ''))}</p>"
    )


def order_confirmation_email(
    order_id: Any,
    order: Dict[str, Any],
    item_prices: List[float],
    converted_total: float,
    currency: str,
) -> Tuple[str, str]:
    """Subject and HTML for the confirmation sent right after checkout.

    ``item_prices`` holds each line's price already converted to ``currency``.
    """
    rows = "".join(
        "<tr>"
        f"<td>{escape(item['name'])} (Size: {escape(item['size'])})</td>"
        f"<td style=\"text-align: center;\">{item['qty']}</td>"
        f"<td style=\"text-align: right;\">{format_money(price, currency)}</td>"
        "</tr>"
        for item, price in zip(order["items"], item_prices)
    )
    body = (
        f"<h1 style=\"text-align: center;\">{BRAND}</h1>"
        "<p style=\"text-align: center;\">Thank you for your order!</p>"
        f"<p><strong>Order ID:</strong> {order_id}</p>"
    )
    order_date = order.get("order_date")
    if order_date:
        body += f"<p><strong>Order Date:</strong> {order_date:%Y-%m-%d}</p>"
    body += (
        "<table style=\"width: 100%;\"><thead><tr><th>Item</th><th>Qty</th><th>Price</th></tr></thead>"
        f"<tbody>{rows}</tbody>"
        f"<tfoot><tr><td colspan=\"2\"><strong>Total</strong></td>"
        f"<td style=\"text-align: right;\"><strong>{format_money(converted_total, currency)}</strong></td></tr></tfoot>"
        "</table>"
        + _address_block(order)
    )
    subject = f"Your {BRAND} Order Confirmation #{str(order_id)[-6:]}"
    return subject, _page(body)


def order_status_email(order: Dict[str, Any]) -> Optional[Tuple[str, str]]:
    """Subject and HTML telling the customer about ``order['status']``.

    None for statuses customers are not notified about.
    """
    status = order.get("status")
    subject = STATUS_SUBJECTS.get(status)
    if subject is None:
        return None

    ref = short_ref(order["_id"])
    header = "Your order has been updated."
    sub = f"Order #{ref}"
    if status == "Processing":
        header = "Thank you for your order."
        sub = f"Your order #{ref} is confirmed and will be shipping soon."
    elif status == "Shipped":
        header = "Good news! Your order has shipped."
    elif status == "Delivered":
        header = "Your order has been delivered."
    elif status == "Cancelled":
        header = "Your order has been cancelled."
        sub = f"Your order #{ref} has been successfully cancelled. You have not been charged."

    rows = "".join(
        "<tr>"
        f"<td><p style=\"margin: 0; font-weight: 600;\">{escape(item.get('name', ''))}</p>"
        f"<p style=\"margin: 0; color: #6e6e73;\">Size: {escape(str(item.get('size', '')))}</p></td>"
        f"<td style=\"text-align: center;\">{item.get('qty')}</td>"
        f"<td style=\"text-align: right;\">{format_money(item.get('price', 0), 'USD')}</td>"
        "</tr>"
        for item in order.get("items", [])
    )
    body = (
        f"<div style=\"text-align: center;\"><h1>{header}</h1><p>{sub}</p></div>"
        f"<table style=\"width: 100%;\">{rows}</table>"
        f"<p><strong>Total:</strong> {format_money(order.get('total', 0), 'USD')}</p>"
        + _address_block(order)
    )
    return f"{subject} (Order #{ref})", _page(body)


def new_ticket_email(ticket_id: str, name: str, email: str, subject: str, message: str) -> Tuple[str, str]:
    body = (
        f"<p>A new support ticket has been created by {escape(name)} ({escape(email)}).</p>"
        f"<p><strong>Message:</strong></p><p>{escape(message)}</p>"
    )
    return f"New Support Ticket [{ticket_id}]: {subject}", _page(body)


def ticket_update_email(ticket: Dict[str, Any], ticket_url: str, reply: Optional[str] = None) -> Tuple[str, str]:
    if reply is None:
        lead = f"<p>An agent has updated the status of your ticket to: <strong>{escape(ticket['status'])}</strong>.</p>"
    else:
        lead = f"<p>An agent replied to your ticket:</p><blockquote>{escape(reply)}</blockquote>"
    body = (
        lead
        + "<p>You can view the full conversation and reply by clicking the link below:</p>"
        f"<a href=\"{escape(ticket_url)}\">View Your Ticket</a>"
    )
    return f"Your Support Ticket [{ticket['ticket_id']}] has been updated", _page(body)


def password_reset_email(reset_url: str) -> Tuple[str, str]:
    body = (
        "<h2>Password Reset</h2>"
        "<p>You requested a password reset. Click the link below to create a new password:</p>"
        f"<a href=\"{escape(reset_url)}\">{escape(reset_url)}</a>"
        "<p>This link will expire in one hour.</p>"
    )
    return "Password Reset Request", _page(body)
