"""Per-user wishlist: a set of product ObjectIds on the user document."""

import logging
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo.database import Database

logger = logging.getLogger(__name__)

ADDED = "added"
REMOVED = "removed"


def ids_for(db: Database, user_id: Optional[str]) -> List[ObjectId]:
    if not user_id:
        return []
    user = db["users"].find_one({"user_id": user_id}, {"wishlist": 1})
    return list((user or {}).get("wishlist") or [])


def contains(db: Database, user_id: str, product_id: ObjectId) -> bool:
    return product_id in ids_for(db, user_id)


def add(db: Database, user_id: str, product_id: ObjectId) -> None:
    db["users"].update_one({"user_id": user_id}, {"$addToSet": {"wishlist": product_id}})


def remove(db: Database, user_id: str, product_id: ObjectId) -> None:
    db["users"].update_one({"user_id": user_id}, {"$pull": {"wishlist": product_id}})


def toggle(db: Database, user_id: str, product_id: ObjectId) -> str:
    """Flip membership and say which way it went.

    Read then write; two concurrent toggles for the same pair can lose one.
    """
    if contains(db, user_id, product_id):
        remove(db, user_id, product_id)
        status = REMOVED
    else:
        add(db, user_id, product_id)
        status = ADDED
    logger.debug("Wishlist %s: product %s %s", user_id, product_id, status)
    return status


def products_for(db: Database, user_id: Optional[str], limit: int = 0) -> List[Dict[str, Any]]:
    ids = ids_for(db, user_id)
    if not ids:
        return []
    cursor = db["products"].find({"_id": {"$in": ids}})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)
