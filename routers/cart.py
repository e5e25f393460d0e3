from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Form
from pymongo.database import Database

import cart as carts
import orders
import wishlist
from cart import SessionCartStore
from currency import CurrencyConverter, with_converted_prices
from database import ensure_object_id, to_str_id
from deps import current_user, get_cart_store, get_converter, get_currency, get_db, redirect, require_user
from errors import NotFoundError
from schemas import Cart

router = APIRouter(prefix="/cart")


def cart_view(cart: Cart, converter: CurrencyConverter, currency: str) -> Dict[str, Any]:
    """Cart as a dict with each price also given in the display currency."""
    view = cart.model_dump(mode="json")
    for item in view["items"]:
        item["converted_price"] = converter.amount(item["price"], currency)
    view["converted_total_price"] = converter.amount(cart.total_price, currency)
    return view


@router.get("")
def view_cart(
    message: Optional[str] = None,
    db: Database = Depends(get_db),
    store: SessionCartStore = Depends(get_cart_store),
    converter: CurrencyConverter = Depends(get_converter),
    currency: str = Depends(get_currency),
    user: Optional[Dict[str, Any]] = Depends(current_user),
):
    cart = store.get()
    user_id = user and user["user_id"]
    wishlist_products = wishlist.products_for(db, user_id, limit=4)
    shipping_cost = orders.shipping_cost_for(cart.total_price)
    return {
        "title": "Your Cart",
        "cart": cart_view(cart, converter, currency),
        "wishlist_products": to_str_id(with_converted_prices(wishlist_products, converter, currency)),
        "wishlist": to_str_id(wishlist.ids_for(db, user_id)),
        "message": message,
        "shipping_cost": converter.amount(shipping_cost, currency),
        "total_with_shipping": converter.amount(cart.total_price + shipping_cost, currency),
        "currency": currency,
    }


@router.post("/add")
def add_to_cart(
    product_id: str = Form(...),
    size: str = Form(...),
    db: Database = Depends(get_db),
    store: SessionCartStore = Depends(get_cart_store),
    converter: CurrencyConverter = Depends(get_converter),
    currency: str = Depends(get_currency),
):
    product = db["products"].find_one({"_id": ensure_object_id(product_id, "Product")})
    if not product:
        raise NotFoundError("Product", product_id)

    size = size.strip()
    cart = carts.add_item(store.get(), product, size)
    store.set(cart)

    added = carts.find_item(cart, carts.make_item_id(product["sku"], size))
    added_view = added.model_dump(mode="json")
    added_view["converted_price"] = converter.amount(added.price, currency)
    return {
        "success": True,
        "message": "Item added to cart!",
        "cart": cart.model_dump(mode="json"),
        "added_item": added_view,
    }


@router.post("/remove")
def remove_from_cart(
    item_id: str = Form(...),
    store: SessionCartStore = Depends(get_cart_store),
):
    store.set(carts.remove_item(store.get(), item_id))
    return redirect("/cart")


@router.post("/update-quantity")
def update_quantity(
    item_id: str = Form(...),
    change: str = Form(...),
    store: SessionCartStore = Depends(get_cart_store),
):
    try:
        delta = int(change)
    except ValueError:
        return redirect("/cart")
    store.set(carts.update_quantity(store.get(), item_id, delta))
    return redirect("/cart")


@router.post("/move-to-wishlist")
def move_to_wishlist(
    item_id: str = Form(...),
    product_id: str = Form(...),
    db: Database = Depends(get_db),
    store: SessionCartStore = Depends(get_cart_store),
    user: Dict[str, Any] = Depends(require_user),
):
    # Two separate writes: if the cart update is lost the item sits in both places
    wishlist.add(db, user["user_id"], ensure_object_id(product_id, "Product"))
    store.set(carts.remove_item(store.get(), item_id))
    return redirect("/cart", message="Item moved to your wishlist.")


@router.post("/add-to-wishlist-from-cart")
def add_to_wishlist_from_cart(
    product_id: str = Form(...),
    db: Database = Depends(get_db),
    user: Dict[str, Any] = Depends(require_user),
):
    wishlist.add(db, user["user_id"], ensure_object_id(product_id, "Product"))
    return redirect("/cart")


@router.post("/remove-from-wishlist")
def remove_from_wishlist(
    product_id: str = Form(...),
    db: Database = Depends(get_db),
    user: Dict[str, Any] = Depends(require_user),
):
    wishlist.remove(db, user["user_id"], ensure_object_id(product_id, "Product"))
    return redirect("/cart")
