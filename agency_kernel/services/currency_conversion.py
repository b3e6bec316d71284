"""
CurrencyConversionService -- express an amount in every supported currency.

Responsibility:
    Turns an origin pair (amount, currency) into the ConvertedAmounts map that
    every monetary record persists next to its origin fields.

Architecture position:
    Kernel > Services.  Pure computation over rates supplied by
    ExchangeRateClient; performs no database access.

Invariants enforced:
    - Identity conversion is exact: ``result[source] == round(amount)``,
      never ``round(amount * 1.0)`` through a rate.
    - Every value in the result is a whole number (half away from zero).
    - A missing or non-positive target rate raises MissingRateError.  There
      is no partial map.

Failure modes:
    - InvalidCurrencyError for an unsupported source currency.
    - DomainValidationError for a negative or non-numeric amount.
    - RateFetchError propagated from the rate client.
    - MissingRateError when the rate table lacks a supported target.
"""

from typing import Any

from agency_kernel.db.types import round_whole, to_decimal
from agency_kernel.domain.currency import ConvertedAmounts, Currency, parse_currency
from agency_kernel.exceptions import DomainValidationError, MissingRateError
from agency_kernel.logging_config import get_logger
from agency_kernel.services.exchange_rates import ExchangeRateClient

logger = get_logger("services.currency_conversion")


class CurrencyConversionService:
    def __init__(self, rate_client: ExchangeRateClient):
        self._rate_client = rate_client

    def convert_to_all(self, amount: Any, source_currency: Currency | str) -> ConvertedAmounts:
        """
        Convert ``amount`` in ``source_currency`` to all supported currencies.

        Returns:
            ConvertedAmounts with a whole-number value for every currency.
        """
        try:
            value = to_decimal(amount)
        except ValueError as exc:
            raise DomainValidationError("amount", str(exc)) from exc
        if value < 0:
            raise DomainValidationError("amount", "must be zero or greater")

        source = parse_currency(source_currency)
        rates = self._rate_client.get_rates(source)

        converted: dict[Currency, int | None] = {}
        for target in Currency:
            if target == source:
                converted[target] = round_whole(value)
                continue
            rate = rates.get(target.value)
            if rate is None or rate <= 0:
                raise MissingRateError(source.value, target.value)
            converted[target] = round_whole(value * to_decimal(rate))

        logger.debug(
            "amount_converted",
            extra={"source_currency": source.value, "amount": value},
        )
        return ConvertedAmounts(converted)
