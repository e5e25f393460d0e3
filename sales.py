"""Admin-defined sale campaigns."""

import logging
from datetime import datetime, time
from typing import Any, Dict, Iterable, List

from pydantic import ValidationError as SchemaError
from pymongo.database import Database

from database import create_document, ensure_object_id, get_documents
from errors import ValidationError
from schemas import Sale

logger = logging.getLogger(__name__)


def list_sales(db: Database) -> List[Dict[str, Any]]:
    return get_documents(db, "sales", sort=[("start_date", -1)])


def create_sale(
    db: Database,
    name: str,
    discount_percentage: str,
    start_date: str,
    end_date: str,
    product_ids: Iterable[str],
) -> str:
    product_ids = [pid for pid in product_ids if pid]
    if not name.strip() or not discount_percentage or not start_date or not end_date or not product_ids:
        raise ValidationError("All fields are required.")
    try:
        start = datetime.fromisoformat(start_date)
        # The sale runs through the whole last day
        end = datetime.combine(datetime.fromisoformat(end_date).date(), time(23, 59, 59, 999000))
        sale = Sale(
            name=name.strip(),
            discount_percentage=int(discount_percentage),
            start_date=start,
            end_date=end,
            product_ids=[ensure_object_id(pid, "Product") for pid in product_ids],
        )
    except (ValueError, SchemaError):
        raise ValidationError("Please check the discount and dates.")
    if sale.end_date < sale.start_date:
        raise ValidationError("The sale must end after it starts.")
    sale_id = create_document(db, "sales", sale)
    logger.info("Sale %r created for %d products", sale.name, len(sale.product_ids))
    return sale_id
