"""Product reviews, limited to customers who received the product."""

import logging
from typing import Any, Dict, List

from bson import ObjectId
from pymongo.database import Database

from database import create_document, utcnow
from errors import ValidationError
from schemas import Review

logger = logging.getLogger(__name__)


def has_delivered_purchase(db: Database, user_id: str, sku: str) -> bool:
    order = db["orders"].find_one({"user_id": user_id, "items.sku": sku, "status": "Delivered"}, {"_id": 1})
    return order is not None


def add_review(db: Database, product_id: ObjectId, user_id: str, rating: Any, comment: str) -> str:
    try:
        rating = int(rating)
    except (TypeError, ValueError):
        raise ValidationError("Rating must be a number from 1 to 5.")
    if not 1 <= rating <= 5:
        raise ValidationError("Rating must be a number from 1 to 5.")
    review = Review(product_id=product_id, user_id=user_id, rating=rating, comment=(comment or "").strip())
    doc = review.model_dump()
    doc["created_at"] = utcnow()
    review_id = create_document(db, "reviews", doc)
    logger.info("Review %s (%d stars) by %s on product %s", review_id, rating, user_id, product_id)
    return review_id


def reviews_for(db: Database, product_id: ObjectId) -> List[Dict[str, Any]]:
    """Reviews newest first, each with the author's first name attached."""
    reviews = list(db["reviews"].find({"product_id": product_id}).sort("created_at", -1))
    user_ids = list({r["user_id"] for r in reviews})
    authors = {
        u["user_id"]: u
        for u in db["users"].find({"user_id": {"$in": user_ids}}, {"user_id": 1, "first_name": 1, "last_name": 1})
    }
    out = []
    for review in reviews:
        author = authors.get(review["user_id"])
        if author is None:
            continue
        review["author"] = {"first_name": author.get("first_name"), "last_name": author.get("last_name")}
        out.append(review)
    return out
