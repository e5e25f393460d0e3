"""Foreign-exchange rates and price conversion.

Prices are stored in USD. ``CurrencyConverter`` keeps one process-wide rate
table and refreshes it from the provider once it is older than the TTL. A
failed refresh hands back the previous table, so conversion degrades to old
rates (or to 1:1) instead of failing the request.
"""

import logging
import time
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Optional

import httpx

from errors import UpstreamError

logger = logging.getLogger(__name__)

BASE_CURRENCY = "USD"


class ExchangeRateClient:
    """Client for the exchangerate-api.com v6 endpoint."""

    def __init__(self, api_key: Optional[str], base_url: str, timeout: float = 10.0) -> None:
        self.api_key = api_key
        self.client = httpx.Client(base_url=base_url, timeout=timeout)

    def latest(self, base: str = BASE_CURRENCY) -> Dict[str, float]:
        """
        Fetch the latest rates against ``base``.

        Raises:
            UpstreamError: the API is unreachable or answered with something
                other than a ``conversion_rates`` mapping
        """
        if not self.api_key:
            raise UpstreamError("exchange-rate", "CURRENCY_API_KEY is not set")
        try:
            response = self.client.get(f"/{self.api_key}/latest/{base}")
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise UpstreamError("exchange-rate", str(exc))

        rates = data.get("conversion_rates") if isinstance(data, dict) else None
        if not rates:
            raise UpstreamError("exchange-rate", f"invalid response: {str(data)[:80]}")
        return rates


class Conversion(NamedTuple):
    amount: float
    currency: str
    fallback: bool  # True when no rate was known and the USD amount came back as-is


class CurrencyConverter:
    def __init__(
        self,
        provider: Any,
        ttl_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.provider = provider
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.rates: Optional[Dict[str, float]] = None
        self.fetched_at: Optional[float] = None

    def is_fresh(self) -> bool:
        if self.rates is None or self.fetched_at is None:
            return False
        return self.clock() - self.fetched_at < self.ttl_seconds

    def get_rates(self) -> Optional[Dict[str, float]]:
        """Rates keyed by currency code, possibly stale, or None if never fetched."""
        if self.is_fresh():
            return self.rates
        try:
            rates = self.provider.latest(BASE_CURRENCY)
        except UpstreamError as exc:
            if self.rates is not None:
                logger.error("Error fetching currency rates, serving stale cache: %s", exc)
            else:
                logger.error("Error fetching currency rates: %s", exc)
            return self.rates
        self.rates = dict(rates)
        self.fetched_at = self.clock()
        logger.debug("Currency rates refreshed (%d codes)", len(self.rates))
        return self.rates

    def convert(self, amount: float, currency: str) -> Conversion:
        rates = self.get_rates()
        rate = rates.get(currency) if rates else None
        if rate is None:
            if currency != BASE_CURRENCY:
                logger.warning("Conversion rate for %s not found", currency)
            return Conversion(amount, BASE_CURRENCY, currency != BASE_CURRENCY)
        return Conversion(amount * rate, currency, False)

    def amount(self, amount: float, currency: str) -> float:
        return self.convert(amount, currency).amount

    def effective_currency(self, currency: str) -> str:
        """``currency`` when a rate for it is known, otherwise the base currency."""
        rates = self.get_rates()
        if rates and currency in rates:
            return currency
        return BASE_CURRENCY


def with_converted_prices(
    docs: Iterable[Dict[str, Any]],
    converter: CurrencyConverter,
    currency: str,
    field: str = "retail_price",
) -> List[Dict[str, Any]]:
    """Copy each document adding ``converted_price`` from ``field``."""
    out = []
    for doc in docs:
        d = dict(doc)
        d["converted_price"] = converter.amount(d.get(field) or 0, currency)
        out.append(d)
    return out
