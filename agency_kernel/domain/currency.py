"""
Currency -- supported currency set and the converted-amount value object.

Every monetary record stores its origin pair (amount, currency) and a
``ConvertedAmounts`` map holding the same amount, rounded to whole units, in
each of the five supported currencies.  The map is computed once at write
time and never recomputed on read.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping

from agency_kernel.db.types import round_whole, to_decimal
from agency_kernel.exceptions import InvalidCurrencyError


class Currency(str, Enum):
    """Closed set of supported currencies."""

    EGP = "EGP"
    SAR = "SAR"
    AED = "AED"
    USD = "USD"
    EUR = "EUR"


DEFAULT_CURRENCY = Currency.EGP

SUPPORTED_CURRENCIES: tuple[Currency, ...] = tuple(Currency)


def parse_currency(value: Any) -> Currency:
    """
    Resolve a currency code to the supported enum.

    Accepts enum members and case-insensitive strings with surrounding
    whitespace.

    Raises:
        InvalidCurrencyError: If value is not one of the supported codes.
    """
    if isinstance(value, Currency):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidCurrencyError(value)
    try:
        return Currency(value.strip().upper())
    except ValueError as exc:
        raise InvalidCurrencyError(value) from exc


def is_supported_currency(value: Any) -> bool:
    try:
        parse_currency(value)
        return True
    except InvalidCurrencyError:
        return False


@dataclass(frozen=True)
class ConvertedAmounts:
    """
    Amount expressed in every supported currency.

    Values are whole numbers, or None where a conversion was never stored.
    Lookups are enum-indexed; a currency outside the supported set can never
    reach the underlying mapping.
    """

    values: Mapping[Currency, int | None] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "ConvertedAmounts":
        return cls({c: None for c in Currency})

    @classmethod
    def from_json(cls, data: Mapping[str, Any] | None) -> "ConvertedAmounts":
        """Load from a persisted ``{"EGP": 123, ...}`` column value."""
        data = data or {}
        values: dict[Currency, int | None] = {}
        for currency in Currency:
            raw = data.get(currency.value)
            values[currency] = None if raw is None else round_whole(raw)
        return cls(values)

    def to_json(self) -> dict[str, int | None]:
        return {c.value: self.values.get(c) for c in Currency}

    def get(self, currency: Currency | str) -> int | None:
        return self.values.get(parse_currency(currency))

    def display_value(self, currency: Currency | str, raw_amount: Any) -> Decimal:
        """
        Value to aggregate when displaying in ``currency``.

        The converted value is used when it is positive; a missing or
        non-positive converted value falls back to the raw origin amount.
        """
        converted = self.get(currency)
        if converted is not None and converted > 0:
            return Decimal(converted)
        return to_decimal(raw_amount or 0)


def display_amount(
    converted: Mapping[str, Any] | None,
    currency: Currency | str,
    raw_amount: Any,
) -> Decimal:
    """Shortcut for ``ConvertedAmounts.from_json(converted).display_value(...)``."""
    return ConvertedAmounts.from_json(converted).display_value(currency, raw_amount)
