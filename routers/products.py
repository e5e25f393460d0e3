import logging
import re
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, Form, Request
from pymongo.database import Database
from starlette.concurrency import run_in_threadpool

import activity
import catalog
import reviews
import stock
import wishlist
from catalog import SneakerCatalogClient
from currency import CurrencyConverter, with_converted_prices
from database import ensure_object_id, to_str_id
from deps import current_user, get_catalog, get_converter, get_currency, get_db, redirect, require_admin, require_user
from errors import ForbiddenError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products")

MANAGE_SORTS = {
    "date-asc": [("imported_at", 1)],
    "name-asc": [("name", 1)],
    "name-desc": [("name", -1)],
    "price-asc": [("retail_price", 1)],
    "price-desc": [("retail_price", -1)],
}
RESERVED_SKUS = {"men", "women", "search"}


def _shop_page(db, converter, currency, user, title: str, products: List[Dict[str, Any]]):
    return {
        "title": title,
        "page_title": title,
        "products": to_str_id(with_converted_prices(products, converter, currency)),
        "wishlist": to_str_id(wishlist.ids_for(db, user and user["user_id"])),
        "currency": currency,
    }


@router.get("")
def shop(
    category: Optional[str] = None,
    brand: Optional[str] = None,
    new: Optional[str] = None,
    db: Database = Depends(get_db),
    converter: CurrencyConverter = Depends(get_converter),
    currency: str = Depends(get_currency),
    user: Optional[Dict[str, Any]] = Depends(current_user),
):
    query: Dict[str, Any] = {}
    sort = None
    title = "Shop All"
    if category:
        query["gender"] = category
        title = f"{category.capitalize()}'s Collection"
    if brand:
        query["brand"] = brand
        title = f"{brand} Collection"
    if new == "true":
        sort = [("imported_at", -1)]
        title = "New Arrivals"

    cursor = db["products"].find(query)
    if sort:
        cursor = cursor.sort(sort)
    return _shop_page(db, converter, currency, user, title, list(cursor))


@router.get("/search")
def search(
    q: str = "",
    db: Database = Depends(get_db),
    converter: CurrencyConverter = Depends(get_converter),
    currency: str = Depends(get_currency),
    user: Optional[Dict[str, Any]] = Depends(current_user),
):
    pattern = re.escape(q.strip())
    query = {
        "$or": [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"brand": {"$regex": pattern, "$options": "i"}},
        ]
    }
    products = list(db["products"].find(query))
    return _shop_page(db, converter, currency, user, f'Search results for "{q}"', products)


# ----- Admin: catalog management -----


@router.get("/manage")
def manage(
    q: Optional[str] = None,
    brand: Optional[str] = None,
    sort: Optional[str] = None,
    db: Database = Depends(get_db),
    client: SneakerCatalogClient = Depends(get_catalog),
    admin: Dict[str, Any] = Depends(require_admin),
):
    query: Dict[str, Any] = {}
    if q:
        pattern = re.escape(q.strip())
        query["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"sku": {"$regex": pattern, "$options": "i"}},
        ]
    if brand:
        query["brand"] = brand
    order = MANAGE_SORTS.get(sort or "", [("imported_at", -1)])

    local_products = list(db["products"].find(query).sort(order))
    api_products = catalog.search_external(client, "Popular", limit=20)
    return {
        "title": "Manage Products",
        "local_products": to_str_id(local_products),
        "api_products": api_products,
        "filters": {"q": q, "brand": brand, "sort": sort},
    }


@router.post("/search")
def search_catalog(
    query: str = Form(""),
    brand: str = Form(""),
    gender: str = Form(""),
    has_description: str = Form(""),
    db: Database = Depends(get_db),
    client: SneakerCatalogClient = Depends(get_catalog),
    admin: Dict[str, Any] = Depends(require_admin),
):
    results = catalog.search_external(client, query.strip(), brand.strip() or None, gender.strip() or None)
    new_products = catalog.filter_new(db, results, has_description=has_description == "true")
    return {"products": new_products, "count": len(new_products)}


@router.post("/import-multiple")
def import_multiple(
    selected_products: List[str] = Form(default=[]),
    db: Database = Depends(get_db),
    client: SneakerCatalogClient = Depends(get_catalog),
    admin: Dict[str, Any] = Depends(require_admin),
):
    if not selected_products:
        return redirect("/products/manage")
    report = catalog.import_products(db, client, selected_products, admin)
    message = f"Imported {len(report.imported)} products."
    if report.skipped:
        message += f" {len(report.skipped)} already in the catalog."
    if report.rejected:
        message += f" {len(report.rejected)} could not be imported."
    return redirect("/products/manage", message=message)


@router.post("/delete")
def delete_product(
    product_id: str = Form(...),
    db: Database = Depends(get_db),
    admin: Dict[str, Any] = Depends(require_admin),
):
    pid = ensure_object_id(product_id, "Product")
    product = db["products"].find_one({"_id": pid})
    if product:
        db["products"].delete_one({"_id": pid})
        activity.record(
            db, admin, activity.PRODUCT_DELETE, {"product_name": product["name"], "product_sku": product["sku"]}
        )
        logger.info("Product %s deleted by %s", product["sku"], admin["user_id"])
    return redirect("/products/manage")


@router.post("/delete-multiple")
def delete_multiple(
    product_ids: List[str] = Form(default=[]),
    db: Database = Depends(get_db),
    admin: Dict[str, Any] = Depends(require_admin),
):
    if not product_ids:
        return redirect("/products/manage")
    ids = [ensure_object_id(pid, "Product") for pid in product_ids]
    doomed = list(db["products"].find({"_id": {"$in": ids}}))
    if doomed:
        db["products"].delete_many({"_id": {"$in": ids}})
        activity.record(
            db,
            admin,
            activity.PRODUCT_DELETE_MULTIPLE,
            {
                "product_count": len(doomed),
                "deleted_products": [{"name": p["name"], "sku": p["sku"]} for p in doomed],
            },
        )
    return redirect("/products/manage")


@router.get("/stock/{product_id}")
def edit_stock_page(
    product_id: str,
    db: Database = Depends(get_db),
    admin: Dict[str, Any] = Depends(require_admin),
):
    product = db["products"].find_one({"_id": ensure_object_id(product_id, "Product")})
    if not product:
        raise NotFoundError("Product", product_id)
    sizes = {stock.size_label(key): qty for key, qty in (product.get("stock") or {}).items()}
    return {"title": "Edit Stock", "product": to_str_id(product), "sizes": sizes}


def _apply_stock_form(
    db: Database, pid: ObjectId, admin: Dict[str, Any], raw_levels: Dict[str, str], raw_price: str
) -> None:
    product = db["products"].find_one({"_id": pid})
    if not product:
        raise NotFoundError("Product", str(pid))

    stock.set_levels(db, pid, stock.parse_levels(raw_levels))

    if not raw_price:
        return
    try:
        new_price = float(raw_price)
    except ValueError:
        return
    if new_price < 0:
        return
    db["products"].update_one({"_id": pid}, {"$set": {"retail_price": new_price}})
    if product.get("retail_price") != new_price:
        activity.record(
            db,
            admin,
            activity.PRICE_UPDATE,
            {
                "product_id": pid,
                "product_name": product["name"],
                "old_price": product.get("retail_price"),
                "new_price": new_price,
            },
        )


@router.post("/stock/{product_id}")
async def update_stock(
    product_id: str,
    request: Request,
    db: Database = Depends(get_db),
    admin: Dict[str, Any] = Depends(require_admin),
):
    """Form fields: ``retail_price`` and one ``stock[<size>]`` per size."""
    pid = ensure_object_id(product_id, "Product")
    form = await request.form()
    raw_levels = {
        key[len("stock["):-1]: str(value)
        for key, value in form.items()
        if key.startswith("stock[") and key.endswith("]")
    }
    raw_price = str(form.get("retail_price") or "").strip()
    # pymongo blocks; keep it off the event loop
    await run_in_threadpool(_apply_stock_form, db, pid, admin, raw_levels, raw_price)
    return redirect("/products/manage")


# ----- Reviews -----


def _product_by_sku(db: Database, sku: str) -> Dict[str, Any]:
    product = db["products"].find_one({"sku": sku})
    if not product:
        raise NotFoundError("Product", sku)
    return product


@router.get("/{sku}/review")
def review_page(
    sku: str,
    db: Database = Depends(get_db),
    user: Dict[str, Any] = Depends(require_user),
):
    product = _product_by_sku(db, sku)
    if not reviews.has_delivered_purchase(db, user["user_id"], sku):
        raise ForbiddenError(
            "You can only write a review for products you have purchased and that have been delivered."
        )
    return {"title": f"Review {product['name']}", "product": to_str_id(product)}


@router.post("/{sku}/review")
def submit_review(
    sku: str,
    rating: str = Form(""),
    comment: str = Form(""),
    db: Database = Depends(get_db),
    user: Dict[str, Any] = Depends(require_user),
):
    product = _product_by_sku(db, sku)
    if not reviews.has_delivered_purchase(db, user["user_id"], sku):
        raise ForbiddenError(
            "You can only write a review for products you have purchased and that have been delivered."
        )
    try:
        reviews.add_review(db, product["_id"], user["user_id"], rating, comment)
    except ValidationError as exc:
        return redirect(f"/products/{sku}/review", error=exc.message)
    return redirect(f"/products/{sku}")


@router.get("/{sku}")
def product_detail(
    sku: str,
    db: Database = Depends(get_db),
    converter: CurrencyConverter = Depends(get_converter),
    currency: str = Depends(get_currency),
    user: Optional[Dict[str, Any]] = Depends(current_user),
):
    if sku.lower() in RESERVED_SKUS:
        raise NotFoundError("Page")
    product = _product_by_sku(db, sku)

    related = list(db["products"].find({"brand": product["brand"], "_id": {"$ne": product["_id"]}}).limit(8))
    user_wishlist = wishlist.ids_for(db, user and user["user_id"])

    product = with_converted_prices([product], converter, currency)[0]
    return {
        "title": product["name"],
        "product": to_str_id(product),
        "is_wishlisted": product["_id"] in user_wishlist,
        "reviews": to_str_id(reviews.reviews_for(db, product["_id"])),
        "related_products": to_str_id(with_converted_prices(related, converter, currency)),
        "wishlist": to_str_id(user_wishlist),
        "currency": currency,
    }
