"""Admin audit trail (``activity_log`` collection)."""

import logging
from typing import Any, Dict, Optional

from pymongo.database import Database
from pymongo.errors import PyMongoError

from database import utcnow
from schemas import ActivityEntry

logger = logging.getLogger(__name__)

PRODUCT_IMPORT = "PRODUCT_IMPORT"
PRODUCT_DELETE = "PRODUCT_DELETE"
PRODUCT_DELETE_MULTIPLE = "PRODUCT_DELETE_MULTIPLE"
PRICE_UPDATE = "PRICE_UPDATE"
ORDER_CANCEL = "ORDER_CANCEL"


def record(db: Database, actor: Optional[Dict[str, Any]], action_type: str, details: Dict[str, Any]) -> bool:
    """Append an entry. A failed write is logged and reported, not raised."""
    actor = actor or {}
    entry = ActivityEntry(
        user_id=actor.get("user_id"),
        user_first_name=actor.get("first_name"),
        user_role=actor.get("role"),
        action_type=action_type,
        details=details,
        timestamp=utcnow(),
    )
    try:
        db["activity_log"].insert_one(entry.model_dump())
    except PyMongoError as exc:
        logger.error("Could not record %s activity: %s", action_type, exc)
        return False
    return True


def recent(db: Database, limit: int = 10):
    return list(db["activity_log"].find().sort("timestamp", -1).limit(limit))
