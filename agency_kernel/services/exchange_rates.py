"""
ExchangeRateClient -- cached access to live exchange rates.

Responsibility:
    Fetches current conversion rates for a base currency from the external
    rate source and keeps the last result in a time-boxed cache.

Architecture position:
    Kernel > Services.  The only module in the kernel that performs network
    I/O.  Consumed by CurrencyConversionService.

Invariants enforced:
    - The cache holds a single base-currency slot.  Asking for a different
      base replaces the slot on the next successful fetch.
    - Entries expire ``ttl_seconds`` (default 12 hours) after they were
      fetched, measured with the injected Clock.
    - A failed fetch raises RateFetchError and leaves the cache untouched.
      A stale entry is never served in place of a failed fetch.

Failure modes:
    - RateFetchError on non-success status, network error, timeout, or a
      response body without the base currency's rate table.

Concurrency:
    The cache is not locked.  Two concurrent refreshes both write and the
    last writer wins; both values are valid for the same TTL window.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Protocol

import requests

from agency_kernel.domain.clock import Clock, SystemClock
from agency_kernel.domain.currency import Currency, parse_currency
from agency_kernel.exceptions import RateFetchError
from agency_kernel.logging_config import get_logger

logger = get_logger("services.exchange_rates")

DEFAULT_RATES_BASE_URL = (
    "https://cdn.jsdelivr.net/npm/@fawazahmed0/currency-api@latest/v1/currencies"
)
DEFAULT_CACHE_TTL_SECONDS = 12 * 60 * 60
DEFAULT_TIMEOUT_SECONDS = 10.0


class RateProvider(Protocol):
    """Source of current exchange rates for one base currency."""

    def fetch_rates(self, base: Currency) -> dict[str, Decimal]:
        """Return ``{"USD": Decimal(...), ...}`` keyed by upper-case code."""
        ...


class HttpRateProvider:
    """
    Rate provider backed by the public currency-api JSON endpoint.

    ``GET {base_url}/{base}.json`` returns ``{"<base>": {"<code>": rate}}``
    with lower-case codes.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_RATES_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        http: Any = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._http = http or requests

    def fetch_rates(self, base: Currency) -> dict[str, Decimal]:
        base_lower = base.value.lower()
        url = f"{self._base_url}/{base_lower}.json"
        try:
            response = self._http.get(url, timeout=self._timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.exceptions.Timeout as exc:
            raise RateFetchError(base.value, f"timed out after {self._timeout}s") from exc
        except requests.exceptions.RequestException as exc:
            raise RateFetchError(base.value, str(exc)) from exc
        except ValueError as exc:
            raise RateFetchError(base.value, "response is not valid JSON") from exc

        table = payload.get(base_lower) if isinstance(payload, dict) else None
        if not isinstance(table, dict):
            raise RateFetchError(base.value, f"response has no '{base_lower}' rate table")

        rates: dict[str, Decimal] = {}
        for code, value in table.items():
            try:
                rates[str(code).upper()] = Decimal(str(value))
            except InvalidOperation:
                continue
        return rates


@dataclass(frozen=True)
class CachedRates:
    base: Currency
    rates: Mapping[str, Decimal]
    fetched_at: datetime


class ExchangeRateCache:
    """Single-slot rate cache with a clock-driven TTL."""

    def __init__(
        self,
        clock: Clock | None = None,
        ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
    ):
        self._clock = clock or SystemClock()
        self._ttl = timedelta(seconds=ttl_seconds)
        self._entry: CachedRates | None = None

    @property
    def entry(self) -> CachedRates | None:
        return self._entry

    def get(self, base: Currency) -> Mapping[str, Decimal] | None:
        """Return cached rates for ``base`` if present and fresh."""
        entry = self._entry
        if entry is None or entry.base != base:
            return None
        if self._clock.now() - entry.fetched_at >= self._ttl:
            return None
        return entry.rates

    def put(self, base: Currency, rates: Mapping[str, Decimal]) -> None:
        self._entry = CachedRates(base=base, rates=dict(rates), fetched_at=self._clock.now())

    def clear(self) -> None:
        self._entry = None


class ExchangeRateClient:
    """
    ``get_rates(base)`` contract used by currency conversion.

    Serves from the cache while fresh; otherwise fetches, stores and returns.
    """

    def __init__(self, provider: RateProvider, cache: ExchangeRateCache):
        self._provider = provider
        self._cache = cache

    @property
    def cache(self) -> ExchangeRateCache:
        return self._cache

    def get_rates(self, base: Currency | str) -> Mapping[str, Decimal]:
        base_currency = parse_currency(base)

        cached = self._cache.get(base_currency)
        if cached is not None:
            logger.debug("rate_cache_hit", extra={"base_currency": base_currency.value})
            return cached

        logger.debug("rate_cache_miss", extra={"base_currency": base_currency.value})
        try:
            rates = self._provider.fetch_rates(base_currency)
        except RateFetchError:
            logger.error(
                "rate_fetch_failed",
                extra={"base_currency": base_currency.value},
                exc_info=True,
            )
            raise

        self._cache.put(base_currency, rates)
        logger.info(
            "rates_fetched",
            extra={"base_currency": base_currency.value, "rate_count": len(rates)},
        )
        return rates


_default_client: ExchangeRateClient | None = None


def get_default_rate_client(
    base_url: str = DEFAULT_RATES_BASE_URL,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
) -> ExchangeRateClient:
    """
    Process-wide client shared by every request.

    Arguments are only used on first construction.
    """
    global _default_client
    if _default_client is None:
        _default_client = ExchangeRateClient(
            HttpRateProvider(base_url=base_url, timeout=timeout),
            ExchangeRateCache(ttl_seconds=ttl_seconds),
        )
    return _default_client


def reset_default_rate_client() -> None:
    """Drop the shared client. FOR TESTING ONLY."""
    global _default_client
    _default_client = None
