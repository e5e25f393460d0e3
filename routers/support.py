from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Form
from pymongo.database import Database

import notifications
import orders
import tickets
from config import get_settings
from currency import CurrencyConverter
from database import to_str_id
from deps import current_user, get_converter, get_currency, get_db, get_mailer, redirect
from errors import NotFoundError
from notifications import Mailer

router = APIRouter(prefix="/support")


@router.get("")
def support_home():
    return {"title": "Support"}


@router.get("/contact")
def contact_page(error: Optional[str] = None, user: Optional[Dict[str, Any]] = Depends(current_user)):
    return {"title": "Contact Us", "user": user, "error": error}


@router.post("/contact")
def contact(
    background_tasks: BackgroundTasks,
    name: str = Form(""),
    email: str = Form(""),
    subject: str = Form(""),
    message: str = Form(""),
    db: Database = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    user: Optional[Dict[str, Any]] = Depends(current_user),
):
    if not all(v.strip() for v in (name, email, subject, message)):
        return redirect("/support/contact", error="Please fill in all fields.")

    ticket = tickets.open_ticket(db, name, email, subject, message, user_id=user and user["user_id"])
    mail_subject, html = notifications.new_ticket_email(
        ticket["ticket_id"], name.strip(), ticket["user_email"], ticket["subject"], message.strip()
    )
    background_tasks.add_task(notifications.dispatch, mailer, get_settings().support_inbox_email, mail_subject, html)
    return {
        "title": "Ticket Submitted",
        "ticket_id": ticket["ticket_id"],
        "email": ticket["user_email"],
    }


@router.post("/tickets/find")
def find_ticket(ticket_id: str = Form(""), email: str = Form("")):
    return redirect(f"/support/tickets/{ticket_id.strip().upper()}", email=email.strip())


@router.get("/tickets/{ticket_id}")
def view_ticket(ticket_id: str, email: str = "", db: Database = Depends(get_db)):
    ticket = tickets.find_ticket(db, ticket_id, email)
    if ticket is None:
        raise NotFoundError("Ticket", ticket_id)
    return {"title": f"Ticket {ticket['ticket_id']}", "ticket": to_str_id(ticket)}


@router.post("/tickets/{ticket_id}/reply")
def reply(
    ticket_id: str,
    message: str = Form(""),
    user_email: str = Form(""),
    db: Database = Depends(get_db),
):
    ticket = tickets.find_ticket(db, ticket_id, user_email)
    if ticket is None:
        raise NotFoundError("Ticket", ticket_id)
    if message.strip():
        name = ticket["messages"][0]["name"] if ticket.get("messages") else ticket["user_email"]
        tickets.add_message(db, ticket["ticket_id"], "user", name, message)
    return redirect(f"/support/tickets/{ticket['ticket_id']}", email=ticket["user_email"])


@router.get("/order-status")
def order_status_page():
    return {"title": "Order Status"}


@router.post("/order-status")
def order_status(
    order_id: str = Form(""),
    email: str = Form(""),
    db: Database = Depends(get_db),
    converter: CurrencyConverter = Depends(get_converter),
    currency: str = Depends(get_currency),
):
    order = orders.find_by_reference(db, email, order_id.lstrip("#"))
    if order is None:
        return {
            "title": "Order Status",
            "error": "We couldn't find an order with that ID and email address.",
        }
    view = to_str_id(order)
    for item in view["items"]:
        item["converted_price"] = converter.amount(item["price"], currency)
    view["converted_total"] = converter.amount(order["total"], currency)
    return {"title": "Order Status", "order": view, "currency": currency}


@router.get("/shipping")
def shipping_info():
    return {
        "title": "Shipping Information",
        "shipping_cost": orders.SHIPPING_COST_BASE,
        "free_shipping_threshold": orders.FREE_SHIPPING_THRESHOLD_BASE,
    }


@router.get("/returns")
def returns_info():
    return {"title": "Returns & Exchanges"}
