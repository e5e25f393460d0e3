"""Tests for rate caching and conversion."""

import httpx
import pytest

from currency import CurrencyConverter, ExchangeRateClient, with_converted_prices
from errors import UpstreamError


class Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestConvert:
    def test_known_currency(self, converter):
        result = converter.convert(100, "PHP")
        assert result.amount == 5600
        assert result.currency == "PHP"
        assert result.fallback is False

    def test_unknown_currency_falls_back_to_usd(self, converter):
        result = converter.convert(100, "XYZ")
        assert result.amount == 100
        assert result.currency == "USD"
        assert result.fallback is True

    def test_base_currency_is_not_a_fallback(self, converter):
        assert converter.convert(42, "USD").fallback is False

    def test_no_rates_at_all(self, rates):
        rates.fail = True
        converter = CurrencyConverter(rates)
        assert converter.get_rates() is None
        result = converter.convert(100, "PHP")
        assert (result.amount, result.currency, result.fallback) == (100, "USD", True)

    def test_effective_currency(self, converter, rates):
        assert converter.effective_currency("PHP") == "PHP"
        assert converter.effective_currency("XYZ") == "USD"

        rates.fail = True
        assert CurrencyConverter(rates).effective_currency("PHP") == "USD"

    def test_with_converted_prices_adds_field(self, converter):
        docs = [{"sku": "A", "retail_price": 10.0}]
        out = with_converted_prices(docs, converter, "PHP")
        assert out[0]["converted_price"] == 560
        assert "converted_price" not in docs[0]


class TestRateCache:
    def test_fresh_cache_is_reused(self, rates):
        clock = Clock()
        converter = CurrencyConverter(rates, ttl_seconds=3600, clock=clock)
        converter.get_rates()
        clock.now += 3599
        converter.get_rates()
        assert rates.calls == 1

    def test_expired_cache_is_refreshed(self, rates):
        clock = Clock()
        converter = CurrencyConverter(rates, ttl_seconds=3600, clock=clock)
        converter.get_rates()
        rates.rates["PHP"] = 57.0
        clock.now += 3600
        assert converter.convert(1, "PHP").amount == 57.0
        assert rates.calls == 2

    def test_failed_refresh_serves_stale_rates(self, rates):
        clock = Clock()
        converter = CurrencyConverter(rates, ttl_seconds=3600, clock=clock)
        converter.get_rates()
        rates.fail = True
        clock.now += 7200
        assert converter.get_rates()["PHP"] == 56.0
        assert converter.convert(2, "PHP").amount == 112


class TestExchangeRateClient:
    def make_client(self, handler, api_key="key"):
        client = ExchangeRateClient(api_key, "https://rates.test/v6")
        client.client = httpx.Client(base_url="https://rates.test/v6", transport=httpx.MockTransport(handler))
        return client

    def test_latest(self):
        def handler(request):
            assert request.url.path == "/v6/key/latest/USD"
            return httpx.Response(200, json={"result": "success", "conversion_rates": {"USD": 1, "PHP": 56}})

        assert self.make_client(handler).latest() == {"USD": 1, "PHP": 56}

    def test_error_status_raises_upstream_error(self):
        client = self.make_client(lambda request: httpx.Response(500))
        with pytest.raises(UpstreamError):
            client.latest()

    def test_missing_rates_raises_upstream_error(self):
        client = self.make_client(lambda request: httpx.Response(200, json={"result": "error"}))
        with pytest.raises(UpstreamError):
            client.latest()

    def test_missing_key_raises_without_calling(self):
        def handler(request):
            raise AssertionError("should not be called")

        with pytest.raises(UpstreamError):
            self.make_client(handler, api_key=None).latest()
