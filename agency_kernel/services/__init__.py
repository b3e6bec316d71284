"""Kernel services (flush-only writes and currency infrastructure)."""

from agency_kernel.services.currency_conversion import CurrencyConversionService
from agency_kernel.services.exchange_rates import (
    ExchangeRateCache,
    ExchangeRateClient,
    HttpRateProvider,
    RateProvider,
    get_default_rate_client,
    reset_default_rate_client,
)

__all__ = [
    "CurrencyConversionService",
    "ExchangeRateCache",
    "ExchangeRateClient",
    "HttpRateProvider",
    "RateProvider",
    "get_default_rate_client",
    "reset_default_rate_client",
]
