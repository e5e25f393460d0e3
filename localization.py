"""Country and display-currency resolution for a visitor."""

import ipaddress
import logging
from dataclasses import dataclass
from typing import Any, MutableMapping, Optional

import httpx

logger = logging.getLogger(__name__)

COUNTRY_CURRENCIES = {
    "US": "USD",
    "PH": "PHP",
    "ID": "IDR",
    "MY": "MYR",
    "TH": "THB",
    "SG": "SGD",
    "VN": "VND",
    "CA": "CAD",
    "GB": "GBP",
    "AU": "AUD",
    "JP": "JPY",
    "DE": "EUR",
    "FR": "EUR",
    "GR": "EUR",
    "RU": "RUB",
    "CN": "CNY",
    "IN": "INR",
    "KR": "KRW",
    "AE": "AED",
    "MX": "MXN",
    "SE": "SEK",
    "CH": "CHF",
    "NZ": "NZD",
    "BR": "BRL",
    "ZA": "ZAR",
}

OVERRIDE_KEY = "country_override"
GEO_KEY = "geo_country"


def currency_for(country: str) -> str:
    return COUNTRY_CURRENCIES.get(country, "USD")


@dataclass(frozen=True)
class Locale:
    country: str
    currency: str


class GeoIPClient:
    """Looks up the country code of a public IP (ipapi.co style ``/{ip}/country/``)."""

    def __init__(self, base_url: str, timeout: float = 3.0) -> None:
        self.client = httpx.Client(base_url=base_url, timeout=timeout)

    def country_for(self, ip: str) -> Optional[str]:
        try:
            response = self.client.get(f"/{ip}/country/")
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Geo-IP lookup failed for %s: %s", ip, exc)
            return None
        code = response.text.strip().upper()
        return code if len(code) == 2 else None


def is_public_ip(host: Optional[str]) -> bool:
    if not host:
        return False
    try:
        return ipaddress.ip_address(host).is_global
    except ValueError:
        return False


def resolve_locale(
    session: MutableMapping[str, Any],
    client_host: Optional[str],
    geo: Any,
    default_country: str,
) -> Locale:
    """
    Pick the visitor's country: an explicit override first, then the
    geo-IP answer remembered in the session, then a fresh lookup for public
    addresses, then the configured default.
    """
    country = session.get(OVERRIDE_KEY) or session.get(GEO_KEY)
    if not country:
        country = default_country
        if is_public_ip(client_host):
            country = geo.country_for(client_host) or default_country
        session[GEO_KEY] = country
    return Locale(country=country, currency=currency_for(country))
