"""
Shopping cart

The cart is a value object. Every mutation below returns a new Cart and
leaves its input untouched; totals are computed properties of the items so
they can never drift from them. ``SessionCartStore`` is the only place that
reads or writes a stored cart.
"""
import uuid
from typing import Any, Dict, MutableMapping, Optional

from pymongo.database import Database

from database import utcnow
from schemas import Cart, LineItem

CART_ID_KEY = "cart_id"


def make_item_id(sku: str, size: str) -> str:
    return f"{sku}_{size}"


def find_item(cart: Cart, item_id: str) -> Optional[LineItem]:
    for item in cart.items:
        if item.item_id == item_id:
            return item
    return None


def add_item(cart: Cart, product: Dict[str, Any], size: str, qty: int = 1) -> Cart:
    """Add ``qty`` of ``product`` in ``size``.

    An existing line with the same sku and size has its quantity bumped;
    otherwise a new line is appended.
    """
    item_id = make_item_id(product["sku"], size)
    items = []
    found = False
    for item in cart.items:
        if item.item_id == item_id:
            new_qty = item.qty + qty
            item = item.model_copy(update={"qty": new_qty, "price": new_qty * item.unit_price})
            found = True
        items.append(item)

    if not found:
        unit_price = float(product["retail_price"])
        items.append(
            LineItem(
                item_id=item_id,
                product_id=str(product["_id"]),
                sku=product["sku"],
                name=product["name"],
                brand=product.get("brand"),
                thumbnail_url=product.get("thumbnail_url"),
                size=size,
                unit_price=unit_price,
                qty=qty,
                price=qty * unit_price,
            )
        )
    return Cart(items=items)


def remove_item(cart: Cart, item_id: str) -> Cart:
    return Cart(items=[item for item in cart.items if item.item_id != item_id])


def update_quantity(cart: Cart, item_id: str, delta: int) -> Cart:
    """Shift a line's quantity by ``delta``; dropping to zero or below removes it."""
    items = []
    for item in cart.items:
        if item.item_id == item_id:
            new_qty = item.qty + delta
            if new_qty <= 0:
                continue
            item = item.model_copy(update={"qty": new_qty, "price": new_qty * item.unit_price})
        items.append(item)
    return Cart(items=items)


class SessionCartStore:
    """Per-visitor cart persistence.

    The session only holds an opaque cart id. Lines are kept in the
    ``carts`` collection, so the signed session cookie stays the same size
    however many lines the cart has.
    """

    collection = "carts"

    def __init__(self, session: MutableMapping[str, Any], db: Database):
        self.session = session
        self.db = db

    def get(self) -> Cart:
        cart_id = self.session.get(CART_ID_KEY)
        if not cart_id:
            return Cart()
        doc = self.db[self.collection].find_one({"cart_id": cart_id})
        if not doc:
            return Cart()
        return Cart.model_validate({"items": doc.get("items", [])})

    def set(self, cart: Cart) -> None:
        cart_id = self.session.get(CART_ID_KEY)
        if not cart_id:
            cart_id = uuid.uuid4().hex
            self.session[CART_ID_KEY] = cart_id
        self.db[self.collection].update_one(
            {"cart_id": cart_id},
            {"$set": {"items": [item.model_dump(mode="json") for item in cart.items], "updated_at": utcnow()}},
            upsert=True,
        )

    def clear(self) -> None:
        cart_id = self.session.pop(CART_ID_KEY, None)
        if cart_id:
            self.db[self.collection].delete_one({"cart_id": cart_id})
