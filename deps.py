"""FastAPI dependencies shared by the routers."""

from functools import lru_cache
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from fastapi import Depends, Request
from fastapi.responses import RedirectResponse
from pymongo.database import Database

import database
from captcha import TurnstileVerifier
from cart import SessionCartStore
from catalog import SneakerCatalogClient
from config import get_settings
from currency import CurrencyConverter, ExchangeRateClient
from errors import ForbiddenError, PersistenceError, UnauthorizedError
from localization import GeoIPClient, Locale, resolve_locale
from notifications import Mailer


def get_db() -> Database:
    if database.db is None:
        raise PersistenceError("Database not configured (DATABASE_URL is not set)")
    return database.db


@lru_cache
def get_converter() -> CurrencyConverter:
    settings = get_settings()
    provider = ExchangeRateClient(settings.currency_api_key, settings.currency_api_url)
    return CurrencyConverter(provider, ttl_seconds=settings.rates_ttl_seconds)


@lru_cache
def get_mailer() -> Mailer:
    settings = get_settings()
    return Mailer(settings.resend_api_key, settings.resend_from_email)


@lru_cache
def get_catalog() -> SneakerCatalogClient:
    settings = get_settings()
    return SneakerCatalogClient(settings.sneaker_db_api_key, settings.sneaker_db_host)


@lru_cache
def get_captcha() -> TurnstileVerifier:
    return TurnstileVerifier(get_settings().turnstile_secret)


@lru_cache
def get_geo() -> GeoIPClient:
    return GeoIPClient(get_settings().geoip_url)


def get_locale(request: Request, geo: GeoIPClient = Depends(get_geo)) -> Locale:
    host = request.client.host if request.client else None
    return resolve_locale(request.session, host, geo, get_settings().default_country)


def get_currency(
    locale: Locale = Depends(get_locale),
    converter: CurrencyConverter = Depends(get_converter),
) -> str:
    """Display currency for the visitor; USD while no rate for theirs is known."""
    return converter.effective_currency(locale.currency)


def get_cart_store(request: Request, db: Database = Depends(get_db)) -> SessionCartStore:
    return SessionCartStore(request.session, db)


def current_user(request: Request) -> Optional[Dict[str, Any]]:
    return request.session.get("user")


def require_user(user: Optional[Dict[str, Any]] = Depends(current_user)) -> Dict[str, Any]:
    if not user:
        raise UnauthorizedError()
    return user


def require_admin(user: Optional[Dict[str, Any]] = Depends(current_user)) -> Dict[str, Any]:
    if not user or user.get("role") != "admin":
        raise ForbiddenError()
    return user


def client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def redirect(url: str, **query: Any) -> RedirectResponse:
    """303 to ``url`` with any non-empty keyword arguments as query parameters."""
    params = {k: v for k, v in query.items() if v is not None}
    if params:
        url = f"{url}{'&' if '?' in url else '?'}{urlencode(params)}"
    return RedirectResponse(url, status_code=303)
