"""
Order placement and status management.

Placing an order snapshots the cart into the ``orders`` collection and then
decrements stock. The two steps are not one transaction: a failed stock
update is logged and reported but never undoes the order.
"""
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database

import activity
import stock
from currency import CurrencyConverter
from database import create_document, get_documents, utcnow
from errors import EmptyCartError
from schemas import Cart, Customer, Order, ShippingAddress

logger = logging.getLogger(__name__)

SHIPPING_COST_BASE = 5.0
FREE_SHIPPING_THRESHOLD_BASE = 150.0

PROCESSING = "Processing"
SHIPPED = "Shipped"
DELIVERED = "Delivered"
CANCELLED = "Cancelled"
ORDER_STATUSES = (PROCESSING, SHIPPED, DELIVERED, CANCELLED)


def shipping_cost_for(subtotal: float) -> float:
    return 0.0 if subtotal >= FREE_SHIPPING_THRESHOLD_BASE else SHIPPING_COST_BASE


@dataclass
class PlacedOrder:
    order_id: str
    order: Order
    stock_updates: List[stock.StockAdjustment]

    @property
    def stock_failures(self) -> List[stock.StockAdjustment]:
        return [adj for adj in self.stock_updates if not adj.ok]


def place_order(
    db: Database,
    cart: Cart,
    customer: Customer,
    shipping_address: ShippingAddress,
    currency: str,
    converter: CurrencyConverter,
    user_id: Optional[str] = None,
) -> PlacedOrder:
    if not cart.items:
        raise EmptyCartError()

    subtotal = cart.total_price
    shipping_cost = shipping_cost_for(subtotal)
    total = subtotal + shipping_cost
    # Falls back to the USD amount and label when no rate is known
    conversion = converter.convert(total, currency)
    order = Order(
        items=[item.model_copy() for item in cart.items],
        subtotal=subtotal,
        shipping_cost=shipping_cost,
        total=total,
        currency=conversion.currency,
        converted_total=conversion.amount,
        customer=customer,
        shipping_address=shipping_address,
        order_date=utcnow(),
        status=PROCESSING,
        is_new=True,
        user_id=user_id,
    )
    order_id = create_document(db, "orders", order)
    logger.info("Order %s placed: %d items, total %.2f USD", order_id, cart.total_qty, total)

    updates = stock.decrement_for_items(db, order.items)
    placed = PlacedOrder(order_id=order_id, order=order, stock_updates=updates)
    if placed.stock_failures:
        logger.warning("Order %s left %d stock updates unapplied", order_id, len(placed.stock_failures))
    return placed


def set_status(db: Database, order_id: ObjectId, new_status: str) -> Optional[Dict[str, Any]]:
    """Persist ``new_status`` and return the updated order, or None if it doesn't exist.

    Any string is accepted; transitions are not checked.
    """
    updated = db["orders"].find_one_and_update(
        {"_id": order_id},
        {"$set": {"status": new_status, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is not None:
        logger.info("Order %s status set to %s", order_id, new_status)
    return updated


def cancel_order(db: Database, order_id: ObjectId, admin: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    updated = set_status(db, order_id, CANCELLED)
    if updated is not None:
        customer = updated.get("customer") or {}
        activity.record(
            db,
            admin,
            activity.ORDER_CANCEL,
            {
                "order_id": updated["_id"],
                "customer_name": f"{customer.get('first_name', '')} {customer.get('last_name', '')}".strip(),
            },
        )
    return updated


def find_by_reference(db: Database, email: str, reference: str) -> Optional[Dict[str, Any]]:
    """Find a customer's order by e-mail (any case) and the tail of its id."""
    pattern = f"^{re.escape(email.strip())}$"
    reference = reference.strip().lower()
    if not reference:
        return None
    for order in db["orders"].find({"customer.email": {"$regex": pattern, "$options": "i"}}):
        if str(order["_id"]).lower().endswith(reference):
            return order
    return None


def orders_for_user(db: Database, user_id: str) -> List[Dict[str, Any]]:
    return get_documents(db, "orders", {"user_id": user_id}, sort=[("order_date", -1)])


def mark_seen(db: Database) -> int:
    result = db["orders"].update_many({"is_new": True}, {"$set": {"is_new": False}})
    return result.modified_count


def total_revenue(db: Database) -> float:
    rows = list(db["orders"].aggregate([{"$group": {"_id": None, "total_revenue": {"$sum": "$total"}}}]))
    return rows[0]["total_revenue"] if rows else 0


def recent_activity(db: Database, limit: int = 5) -> List[Dict[str, Any]]:
    """Latest orders and admin actions merged into one timeline, newest first."""
    events = [
        {"type": "ORDER", "timestamp": order["order_date"], "data": order}
        for order in db["orders"].find().sort("order_date", -1).limit(10)
    ]
    events.extend(
        {"type": entry["action_type"], "timestamp": entry["timestamp"], "data": entry}
        for entry in activity.recent(db, 10)
    )
    events.sort(key=lambda e: e["timestamp"], reverse=True)
    return events[:limit]
