"""
Unit tests for the exchange rate cache, client and HTTP provider.
"""

from decimal import Decimal

import pytest
import requests

from agency_kernel.domain.currency import Currency
from agency_kernel.exceptions import RateFetchError
from agency_kernel.services.exchange_rates import (
    DEFAULT_CACHE_TTL_SECONDS,
    ExchangeRateCache,
    ExchangeRateClient,
    HttpRateProvider,
    get_default_rate_client,
    reset_default_rate_client,
)


class FakeResponse:
    def __init__(self, payload=None, status=200, json_error=False):
        self._payload = payload
        self.status_code = status
        self._json_error = json_error

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if self._json_error:
            raise ValueError("not json")
        return self._payload


class FakeHttp:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.requests = []

    def get(self, url, timeout=None):
        self.requests.append((url, timeout))
        if self.exc is not None:
            raise self.exc
        return self.response


class TestExchangeRateCache:
    def test_fresh_entry_is_served(self, clock):
        cache = ExchangeRateCache(clock)
        cache.put(Currency.EGP, {"USD": Decimal("0.02")})
        assert cache.get(Currency.EGP) == {"USD": Decimal("0.02")}

    def test_entry_expires_after_ttl(self, clock):
        cache = ExchangeRateCache(clock, ttl_seconds=60)
        cache.put(Currency.EGP, {"USD": Decimal("0.02")})
        clock.advance(59)
        assert cache.get(Currency.EGP) is not None
        clock.advance(1)
        assert cache.get(Currency.EGP) is None

    def test_default_ttl_is_twelve_hours(self):
        assert DEFAULT_CACHE_TTL_SECONDS == 43200

    def test_single_slot_other_base_misses(self, clock):
        cache = ExchangeRateCache(clock)
        cache.put(Currency.EGP, {"USD": Decimal("0.02")})
        assert cache.get(Currency.USD) is None

    def test_put_replaces_previous_base(self, clock):
        cache = ExchangeRateCache(clock)
        cache.put(Currency.EGP, {"USD": Decimal("0.02")})
        cache.put(Currency.USD, {"EGP": Decimal("50")})
        assert cache.get(Currency.EGP) is None
        assert cache.entry.base is Currency.USD


class TestExchangeRateClient:
    def test_second_call_hits_cache(self, clock, rate_provider):
        provider = rate_provider
        client = ExchangeRateClient(provider, ExchangeRateCache(clock))
        first = client.get_rates("EGP")
        second = client.get_rates(Currency.EGP)
        assert first == second
        assert provider.calls == [Currency.EGP]

    def test_base_switch_refetches(self, clock, rate_provider):
        provider = rate_provider
        client = ExchangeRateClient(provider, ExchangeRateCache(clock))
        client.get_rates("EGP")
        client.get_rates("USD")
        client.get_rates("EGP")
        assert provider.calls == [Currency.EGP, Currency.USD, Currency.EGP]

    def test_expiry_refetches(self, clock, rate_provider):
        provider = rate_provider
        client = ExchangeRateClient(provider, ExchangeRateCache(clock, ttl_seconds=10))
        client.get_rates("EGP")
        clock.advance(10)
        client.get_rates("EGP")
        assert len(provider.calls) == 2

    def test_failure_propagates_and_is_not_cached(self, clock, rate_provider, captured_logs):
        provider = rate_provider
        provider.fail = True
        cache = ExchangeRateCache(clock)
        client = ExchangeRateClient(provider, cache)

        with pytest.raises(RateFetchError):
            client.get_rates("EGP")
        assert cache.entry is None
        assert any(r["message"] == "rate_fetch_failed" for r in captured_logs())

        provider.fail = False
        assert client.get_rates("EGP")["USD"] == Decimal("0.02")


class TestHttpRateProvider:
    def test_parses_lower_case_table(self):
        http = FakeHttp(FakeResponse({"date": "2024-06-15", "egp": {"usd": 0.02, "eur": "0.018"}}))
        provider = HttpRateProvider(base_url="https://rates.test/currencies/", timeout=3, http=http)

        rates = provider.fetch_rates(Currency.EGP)

        assert rates == {"USD": Decimal("0.02"), "EUR": Decimal("0.018")}
        assert http.requests == [("https://rates.test/currencies/egp.json", 3)]

    def test_timeout_maps_to_rate_fetch_error(self):
        provider = HttpRateProvider(http=FakeHttp(exc=requests.Timeout("slow")), timeout=2)
        with pytest.raises(RateFetchError, match="timed out"):
            provider.fetch_rates(Currency.USD)

    def test_http_error_maps_to_rate_fetch_error(self):
        provider = HttpRateProvider(http=FakeHttp(FakeResponse(status=503)))
        with pytest.raises(RateFetchError):
            provider.fetch_rates(Currency.USD)

    def test_invalid_json_maps_to_rate_fetch_error(self):
        provider = HttpRateProvider(http=FakeHttp(FakeResponse(json_error=True)))
        with pytest.raises(RateFetchError, match="not valid JSON"):
            provider.fetch_rates(Currency.USD)

    def test_missing_base_table_maps_to_rate_fetch_error(self):
        provider = HttpRateProvider(http=FakeHttp(FakeResponse({"usd": {"egp": 50}})))
        with pytest.raises(RateFetchError, match="'eur'"):
            provider.fetch_rates(Currency.EUR)

    def test_unparseable_rates_are_skipped(self):
        http = FakeHttp(FakeResponse({"usd": {"egp": 50, "xyz": "n/a"}}))
        rates = HttpRateProvider(http=http).fetch_rates(Currency.USD)
        assert rates == {"EGP": Decimal("50")}


class TestDefaultRateClient:
    @pytest.fixture(autouse=True)
    def _reset(self):
        reset_default_rate_client()
        yield
        reset_default_rate_client()

    def test_shared_until_reset(self):
        first = get_default_rate_client()
        assert get_default_rate_client() is first
        reset_default_rate_client()
        assert get_default_rate_client() is not first

    def test_first_construction_arguments_win(self):
        client = get_default_rate_client(ttl_seconds=60)
        assert get_default_rate_client(ttl_seconds=3600) is client
        assert client.cache.get(Currency.USD) is None
