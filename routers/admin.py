import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from fastapi import APIRouter, BackgroundTasks, Depends, Form
from pymongo.database import Database

import notifications
import orders
import sales
import tickets
from config import get_settings
from database import ensure_object_id, to_str_id
from deps import get_db, get_mailer, redirect, require_admin
from errors import NotFoundError, ValidationError
from notifications import Mailer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/account/admin", dependencies=[Depends(require_admin)])


def _notify_status(background_tasks: BackgroundTasks, mailer: Mailer, order: Dict[str, Any]) -> None:
    email = notifications.order_status_email(order)
    if email is None:
        return
    to = (order.get("customer") or {}).get("email")
    if not to:
        logger.warning("Order %s has no customer e-mail; status mail skipped", order["_id"])
        return
    subject, html = email
    background_tasks.add_task(notifications.dispatch, mailer, to, subject, html)


def _ticket_url(ticket: Dict[str, Any]) -> str:
    base = get_settings().base_url.rstrip("/")
    return f"{base}/support/tickets/{ticket['ticket_id']}?email={quote(ticket['user_email'])}"


@router.get("/dashboard")
def dashboard(db: Database = Depends(get_db), admin: Dict[str, Any] = Depends(require_admin)):
    return {
        "title": "Admin Dashboard",
        "user": admin,
        "stats": {
            "user_count": db["users"].count_documents({}),
            "product_count": db["products"].count_documents({}),
            "order_count": db["orders"].count_documents({}),
            "total_revenue": orders.total_revenue(db),
        },
        "recent_activity": to_str_id(orders.recent_activity(db)),
        "new_order_count": db["orders"].count_documents({"is_new": True}),
        "new_ticket_count": tickets.open_count(db),
    }


# ----- Orders -----


@router.get("/orders")
def order_list(message: Optional[str] = None, db: Database = Depends(get_db)):
    all_orders = list(db["orders"].find().sort("order_date", -1))
    # Viewing the list clears the "new" badge
    orders.mark_seen(db)
    return {"title": "Manage Orders", "orders": to_str_id(all_orders), "message": message}


@router.get("/orders/{order_id}")
def order_detail(order_id: str, message: Optional[str] = None, db: Database = Depends(get_db)):
    order = db["orders"].find_one({"_id": ensure_object_id(order_id, "Order")})
    if not order:
        raise NotFoundError("Order", order_id)
    return {
        "title": f"Order #{notifications.short_ref(order['_id'])}",
        "order": to_str_id(order),
        "statuses": list(orders.ORDER_STATUSES),
        "message": message,
    }


@router.post("/orders/update-status/{order_id}")
def update_order_status(
    order_id: str,
    background_tasks: BackgroundTasks,
    new_status: str = Form(...),
    db: Database = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    updated = orders.set_status(db, ensure_object_id(order_id, "Order"), new_status.strip())
    if updated is None:
        raise NotFoundError("Order", order_id)
    _notify_status(background_tasks, mailer, updated)
    return redirect(f"/account/admin/orders/{order_id}", message="Order status updated successfully!")


@router.post("/orders/cancel/{order_id}")
def cancel_order(
    order_id: str,
    background_tasks: BackgroundTasks,
    db: Database = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    admin: Dict[str, Any] = Depends(require_admin),
):
    updated = orders.cancel_order(db, ensure_object_id(order_id, "Order"), admin)
    if updated is None:
        raise NotFoundError("Order", order_id)
    _notify_status(background_tasks, mailer, updated)
    return redirect(f"/account/admin/orders/{order_id}", message="Order cancelled.")


# ----- Users -----


@router.get("/users")
def user_list(db: Database = Depends(get_db)):
    users = list(db["users"].find({}, {"password_hash": 0, "reset_token": 0, "reset_expiry": 0}))
    return {"title": "Manage Users", "users": to_str_id(users)}


# ----- Support inbox -----


@router.get("/inbox")
def inbox(db: Database = Depends(get_db)):
    return {"title": "Support Inbox", "tickets": to_str_id(tickets.inbox(db))}


@router.get("/tickets/{ticket_id}")
def ticket_detail(ticket_id: str, message: Optional[str] = None, db: Database = Depends(get_db)):
    ticket = tickets.find_ticket(db, ticket_id)
    if not ticket:
        raise NotFoundError("Ticket", ticket_id)
    return {"title": f"Ticket {ticket['ticket_id']}", "ticket": to_str_id(ticket), "message": message}


@router.post("/tickets/{ticket_id}/update-status")
def update_ticket_status(
    ticket_id: str,
    background_tasks: BackgroundTasks,
    status: str = Form(...),
    db: Database = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    ticket = tickets.set_status(db, ticket_id, status.strip())
    if ticket is None:
        raise NotFoundError("Ticket", ticket_id)
    subject, html = notifications.ticket_update_email(ticket, _ticket_url(ticket))
    background_tasks.add_task(notifications.dispatch, mailer, ticket["user_email"], subject, html)
    return redirect(f"/account/admin/tickets/{ticket['ticket_id']}", message="Ticket status updated.")


@router.post("/tickets/{ticket_id}/reply")
def reply_to_ticket(
    ticket_id: str,
    background_tasks: BackgroundTasks,
    message: str = Form(""),
    db: Database = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    admin: Dict[str, Any] = Depends(require_admin),
):
    ticket = tickets.find_ticket(db, ticket_id)
    if ticket is None:
        raise NotFoundError("Ticket", ticket_id)
    if not message.strip():
        return redirect(f"/account/admin/tickets/{ticket['ticket_id']}")

    tickets.add_message(
        db,
        ticket["ticket_id"],
        "admin",
        "Support",
        message,
        admin_name=admin.get("first_name"),
        reopen=False,
    )
    subject, html = notifications.ticket_update_email(ticket, _ticket_url(ticket), reply=message.strip())
    background_tasks.add_task(notifications.dispatch, mailer, ticket["user_email"], subject, html)
    return redirect(f"/account/admin/tickets/{ticket['ticket_id']}", message="Reply sent.")


# ----- Sales -----


@router.get("/sales")
def sale_list(
    message: Optional[str] = None,
    error: Optional[str] = None,
    db: Database = Depends(get_db),
):
    products = list(db["products"].find({}, {"name": 1, "sku": 1}).sort("name", 1))
    return {
        "title": "Manage Sales",
        "sales": to_str_id(sales.list_sales(db)),
        "products": to_str_id(products),
        "message": message,
        "error": error,
    }


@router.post("/sales/create")
def create_sale(
    name: str = Form(""),
    discount_percentage: str = Form(""),
    start_date: str = Form(""),
    end_date: str = Form(""),
    product_ids: List[str] = Form(default=[]),
    db: Database = Depends(get_db),
):
    try:
        sales.create_sale(db, name, discount_percentage, start_date, end_date, product_ids)
    except ValidationError as exc:
        return redirect("/account/admin/sales", error=exc.message)
    return redirect("/account/admin/sales", message="Sale created successfully!")
