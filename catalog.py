"""
Admin product import from The Sneaker Database (RapidAPI).

Search results are deduplicated against local SKUs before they are shown,
and again right before insert since an admin may sit on the results page
while someone else imports the same sneaker.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pymongo.database import Database
from pymongo.errors import BulkWriteError

import activity
import stock
from database import utcnow
from errors import UpstreamError
from schemas import Product

logger = logging.getLogger(__name__)


class SneakerCatalogClient:
    """Client for the-sneaker-database.p.rapidapi.com."""

    def __init__(self, api_key: Optional[str], host: str, timeout: float = 15.0) -> None:
        self.api_key = api_key
        self.client = httpx.Client(
            base_url=f"https://{host}",
            timeout=timeout,
            headers={"X-RapidAPI-Key": api_key or "", "X-RapidAPI-Host": host},
        )

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if not self.api_key:
            raise UpstreamError("sneaker-db", "SNEAKER_DB_API_KEY is not set")
        try:
            response = self.client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise UpstreamError("sneaker-db", str(exc))

    def search(self, query: str, limit: int = 50) -> List[Dict[str, Any]]:
        data = self._get("/search", params={"limit": str(limit), "query": query})
        return list(data.get("results") or [])

    def get_sneaker(self, sneaker_id: str) -> Optional[Dict[str, Any]]:
        data = self._get(f"/sneakers/{sneaker_id}")
        results = data.get("results") or []
        return results[0] if results else None


class SneakerImage(BaseModel):
    original: str = Field(..., min_length=1)
    thumbnail: Optional[str] = None


class CatalogSneaker(BaseModel):
    """The fields an imported record must carry, coerced from the API's loose shape."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    sku: str
    name: str
    brand: str
    gender: Optional[str] = None
    retail_price: float = Field(..., alias="retailPrice", ge=0)
    colorway: Optional[str] = None
    release_date: Optional[str] = Field(None, alias="releaseDate")
    story: Optional[str] = None
    image: SneakerImage

    @field_validator("sku", "name", "brand")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    def to_product(self) -> Product:
        return Product(
            sku=self.sku,
            name=self.name,
            brand=self.brand,
            gender=self.gender,
            retail_price=self.retail_price,
            image_url=self.image.original,
            thumbnail_url=self.image.thumbnail,
            description=(self.story or "").strip() or "No description available.",
            colorway=self.colorway,
            release_date=self.release_date,
            imported_at=utcnow(),
            stock=stock.initial_stock(),
        )


@dataclass
class ImportReport:
    imported: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    rejected: List[str] = field(default_factory=list)


def search_external(
    client: SneakerCatalogClient,
    query: str,
    brand: Optional[str] = None,
    gender: Optional[str] = None,
    limit: int = 50,
) -> List[Dict[str, Any]]:
    """Raw catalog results, or an empty list when the API fails."""
    full_query = " ".join(part for part in (query, brand, gender) if part)
    try:
        return client.search(full_query, limit=limit)
    except UpstreamError as exc:
        logger.error("Catalog search for %r failed: %s", full_query, exc)
        return []


def existing_skus(db: Database, skus: Optional[Iterable[str]] = None) -> set:
    filter_dict = {}
    if skus is not None:
        filter_dict = {"sku": {"$in": list(skus)}}
    return {doc["sku"] for doc in db["products"].find(filter_dict, {"sku": 1, "_id": 0})}


def filter_new(db: Database, candidates: List[Dict[str, Any]], has_description: bool = False) -> List[Dict[str, Any]]:
    """Candidates whose SKU is not already in the local catalog (exact match)."""
    if has_description:
        candidates = [c for c in candidates if (c.get("story") or "").strip()]
    local = existing_skus(db)
    return [c for c in candidates if c.get("sku") not in local]


def import_products(
    db: Database,
    client: SneakerCatalogClient,
    sneaker_ids: Iterable[str],
    admin: Dict[str, Any],
) -> ImportReport:
    """
    Fetch each selected sneaker, validate it and insert the ones whose SKU
    is still new. Records that fail validation are skipped and reported as
    rejected rather than inserted half-filled.
    """
    report = ImportReport()
    products: List[Product] = []
    for sneaker_id in sneaker_ids:
        try:
            raw = client.get_sneaker(sneaker_id)
        except UpstreamError as exc:
            logger.warning("Could not fetch details for ID %s. Skipping import. Error: %s", sneaker_id, exc)
            report.rejected.append(sneaker_id)
            continue
        if not raw:
            report.rejected.append(sneaker_id)
            continue
        try:
            products.append(CatalogSneaker.model_validate(raw).to_product())
        except ValidationError as exc:
            logger.warning("Rejecting catalog record %s: %s", sneaker_id, exc.errors()[:3])
            report.rejected.append(sneaker_id)

    taken = existing_skus(db, [p.sku for p in products])
    to_insert = []
    for product in products:
        if product.sku in taken:
            report.skipped.append(product.sku)
            continue
        taken.add(product.sku)
        to_insert.append(product)

    if to_insert:
        docs = [p.model_dump() for p in to_insert]
        try:
            db["products"].insert_many(docs, ordered=False)
            report.imported.extend(p.sku for p in to_insert)
        except BulkWriteError as exc:
            # Unique index on sku caught a concurrent import
            failed = {err["index"] for err in exc.details.get("writeErrors", [])}
            for index, product in enumerate(to_insert):
                if index in failed:
                    report.skipped.append(product.sku)
                else:
                    report.imported.append(product.sku)

    if report.imported:
        activity.record(db, admin, activity.PRODUCT_IMPORT, {"product_count": len(report.imported)})
    logger.info(
        "Catalog import: %d imported, %d already present, %d rejected",
        len(report.imported),
        len(report.skipped),
        len(report.rejected),
    )
    return report
