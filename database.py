"""
Database helpers

MongoDB connection plus the small document helpers every module uses.
The client is created at import time when DATABASE_URL is set; otherwise
``db`` stays None and routes fail with a PersistenceError.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from config import get_settings
from errors import NotFoundError

logger = logging.getLogger(__name__)

_settings = get_settings()

db: Optional[Database] = None
if _settings.database_url:
    _client = MongoClient(_settings.database_url)
    db = _client[_settings.database_name]


def utcnow() -> datetime:
    """Naive UTC timestamp, the form pymongo hands back from the server."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def ensure_indexes(database: Database) -> None:
    database["users"].create_index([("email", ASCENDING)], unique=True)
    database["users"].create_index([("user_id", ASCENDING)], unique=True)
    database["products"].create_index([("sku", ASCENDING)], unique=True)
    database["products"].create_index([("imported_at", DESCENDING)])
    database["orders"].create_index([("order_date", DESCENDING)])
    database["support_tickets"].create_index([("ticket_id", ASCENDING)], unique=True)
    database["carts"].create_index([("cart_id", ASCENDING)], unique=True)
    # Expire with the session cookie
    database["carts"].create_index([("updated_at", ASCENDING)], expireAfterSeconds=_settings.session_max_age)
    logger.info("Indexes ensured on %s", database.name)


def create_document(database: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    """Insert a document and return its id as a string."""
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    now = utcnow()
    doc.setdefault("created_at", now)
    doc.setdefault("updated_at", now)
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(
    database: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    sort: Optional[List[tuple]] = None,
) -> List[Dict[str, Any]]:
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def ensure_object_id(id_str: Any, kind: str = "Document") -> ObjectId:
    if isinstance(id_str, ObjectId):
        return id_str
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise NotFoundError(kind, str(id_str))


def to_str_id(doc: Any) -> Any:
    """Make a document JSON friendly: ``_id`` becomes ``id`` and ObjectIds become strings."""
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, list):
        return [to_str_id(v) for v in doc]
    if isinstance(doc, dict):
        d = {}
        for key, value in doc.items():
            if key == "_id":
                d["id"] = to_str_id(value)
            else:
                d[key] = to_str_id(value)
        return d
    return doc
