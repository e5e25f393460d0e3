from datetime import date, timedelta
from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Form
from pymongo.database import Database

import notifications
import orders
from cart import SessionCartStore
from currency import CurrencyConverter
from database import ensure_object_id, to_str_id
from deps import current_user, get_cart_store, get_converter, get_currency, get_db, get_mailer, redirect
from errors import NotFoundError
from notifications import Mailer
from routers.cart import cart_view
from schemas import Customer, ShippingAddress

router = APIRouter(prefix="/checkout")


def arrival_window(today: date) -> str:
    start, end = today + timedelta(days=5), today + timedelta(days=7)
    return f"Arrives {start:%a}, {start:%b} {start.day} - {end:%a}, {end:%b} {end.day}"


@router.get("")
def checkout_page(
    error: Optional[str] = None,
    store: SessionCartStore = Depends(get_cart_store),
    converter: CurrencyConverter = Depends(get_converter),
    currency: str = Depends(get_currency),
):
    cart = store.get()
    if not cart.items:
        return redirect("/cart")

    subtotal = cart.total_price
    shipping_cost = orders.shipping_cost_for(subtotal)
    threshold = orders.FREE_SHIPPING_THRESHOLD_BASE
    progress = min(subtotal / threshold * 100, 100)
    return {
        "title": "Checkout",
        "cart": cart_view(cart, converter, currency),
        "shipping": {
            "cost": converter.amount(shipping_cost, currency),
            "threshold": converter.amount(threshold, currency),
            "amount_needed": converter.amount(max(threshold - subtotal, 0), currency),
            "progress": progress,
        },
        "total_with_shipping": converter.amount(subtotal + shipping_cost, currency),
        "arrival_date": arrival_window(date.today()),
        "currency": currency,
        "error": error,
    }


@router.post("/place-order")
def place_order(
    background_tasks: BackgroundTasks,
    first_name: str = Form(""),
    last_name: str = Form(""),
    email: str = Form(""),
    address: str = Form(""),
    country: str = Form(""),
    state: str = Form(""),
    zip_code: str = Form("", alias="zip"),
    db: Database = Depends(get_db),
    store: SessionCartStore = Depends(get_cart_store),
    converter: CurrencyConverter = Depends(get_converter),
    currency: str = Depends(get_currency),
    mailer: Mailer = Depends(get_mailer),
    user: Optional[Dict[str, Any]] = Depends(current_user),
):
    cart = store.get()
    if cart.items and not all(v.strip() for v in (first_name, last_name, email, address, country)):
        return redirect("/checkout", error="Please fill in your name, email and shipping address.")

    placed = orders.place_order(
        db,
        cart,
        Customer(first_name=first_name.strip(), last_name=last_name.strip(), email=email.strip()),
        ShippingAddress(address=address.strip(), country=country.strip(), state=state.strip(), zip=zip_code.strip()),
        currency=currency,
        converter=converter,
        user_id=user and user["user_id"],
    )

    order_doc = placed.order.model_dump()
    item_prices = [converter.amount(item.price, placed.order.currency) for item in placed.order.items]
    subject, html = notifications.order_confirmation_email(
        placed.order_id, order_doc, item_prices, placed.order.converted_total, placed.order.currency
    )
    background_tasks.add_task(notifications.dispatch, mailer, placed.order.customer.email, subject, html)

    store.clear()
    return redirect(f"/checkout/success/{placed.order_id}")


@router.get("/success/{order_id}")
def order_success(order_id: str, db: Database = Depends(get_db)):
    order = db["orders"].find_one({"_id": ensure_object_id(order_id, "Order")})
    if not order:
        raise NotFoundError("Order", order_id)
    return {"title": "Order Confirmation", "order": to_str_id(order)}
