"""
Per-size stock counters stored on each product (``product.stock``).

Size labels contain dots ("9.5") which MongoDB treats as path separators, so
every size is stored under a sanitized key ("9_5").
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.database import Database
from pymongo.errors import PyMongoError

from schemas import LineItem

logger = logging.getLogger(__name__)

STANDARD_SIZES = ["8", "8.5", "9", "9.5", "10", "10.5", "11", "12"]
INITIAL_STOCK_PER_SIZE = 10
MAX_PARALLEL_UPDATES = 8


def size_key(size: str) -> str:
    return str(size).strip().replace(".", "_")


def size_label(key: str) -> str:
    return key.replace("_", ".")


def initial_stock(sizes: Iterable[str] = STANDARD_SIZES, qty: int = INITIAL_STOCK_PER_SIZE) -> Dict[str, int]:
    return {size_key(size): qty for size in sizes}


@dataclass
class StockAdjustment:
    product_id: str
    size_key: str
    delta: int
    ok: bool = True
    error: Optional[str] = None


def _apply(db: Database, adjustment: StockAdjustment) -> StockAdjustment:
    try:
        pid = ObjectId(adjustment.product_id)
    except (InvalidId, TypeError):
        adjustment.ok = False
        adjustment.error = "invalid product id"
    else:
        try:
            result = db["products"].update_one(
                {"_id": pid},
                {"$inc": {f"stock.{adjustment.size_key}": adjustment.delta}},
            )
            if result.matched_count == 0:
                adjustment.ok = False
                adjustment.error = "product not found"
        except PyMongoError as exc:
            adjustment.ok = False
            adjustment.error = str(exc)

    if not adjustment.ok:
        logger.error(
            "Stock update failed for product %s size %s (%+d): %s",
            adjustment.product_id,
            adjustment.size_key,
            adjustment.delta,
            adjustment.error,
        )
    return adjustment


def decrement_for_items(db: Database, items: Iterable[LineItem]) -> List[StockAdjustment]:
    """
    Take each line's quantity off its product's size counter.

    The updates run in parallel and independently: one failing leaves the
    others applied, and nothing is rolled back. No floor is enforced, so a
    counter can go negative when stock was oversold.
    """
    adjustments = [
        StockAdjustment(product_id=item.product_id, size_key=size_key(item.size), delta=-item.qty)
        for item in items
    ]
    if not adjustments:
        return []
    workers = min(len(adjustments), MAX_PARALLEL_UPDATES)
    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(lambda adj: _apply(db, adj), adjustments))


def parse_levels(form_levels: Mapping[str, str]) -> Dict[str, int]:
    """Size -> quantity from an admin form; blanks, non-numbers and negatives are dropped."""
    levels = {}
    for size, raw in form_levels.items():
        try:
            qty = int(str(raw).strip())
        except ValueError:
            continue
        if qty >= 0:
            levels[size_key(size)] = qty
    return levels


def set_levels(db: Database, product_id: ObjectId, levels: Mapping[str, int]) -> bool:
    if not levels:
        return False
    update = {f"stock.{key}": qty for key, qty in levels.items()}
    result = db["products"].update_one({"_id": product_id}, {"$set": update})
    return result.matched_count > 0
