from typing import Any, Dict, Optional
from urllib.parse import urlparse

from fastapi import APIRouter, Depends, Form, Request
from pymongo.database import Database

import wishlist
from currency import CurrencyConverter, with_converted_prices
from database import to_str_id
from deps import current_user, get_converter, get_currency, get_db, get_locale, redirect
from localization import COUNTRY_CURRENCIES, OVERRIDE_KEY, Locale

router = APIRouter()


@router.get("/")
def home(
    db: Database = Depends(get_db),
    converter: CurrencyConverter = Depends(get_converter),
    locale: Locale = Depends(get_locale),
    currency: str = Depends(get_currency),
    user: Optional[Dict[str, Any]] = Depends(current_user),
):
    products = db["products"]
    new_arrivals = list(products.find().sort("imported_at", -1).limit(8))
    top_kicks = list(products.find().sort("imported_at", -1).skip(8).limit(8))
    jordan = list(products.find({"brand": "Jordan"}).limit(8))

    def convert(docs):
        return to_str_id(with_converted_prices(docs, converter, currency))

    return {
        "title": "Find Your Perfect Pair",
        "new_arrivals": convert(new_arrivals),
        "top_kicks": convert(top_kicks),
        "jordan_collection": convert(jordan),
        "wishlist": to_str_id(wishlist.ids_for(db, user and user["user_id"])),
        "currency": currency,
        "country": locale.country,
    }


@router.post("/currency/change")
def change_currency(request: Request, country: str = Form("")):
    country = country.strip().upper()
    if country in COUNTRY_CURRENCIES:
        request.session[OVERRIDE_KEY] = country
    # Only follow the referer back onto this site
    referer = urlparse(request.headers.get("referer") or "")
    target = referer.path or "/"
    if referer.query:
        target = f"{target}?{referer.query}"
    return redirect(target)
