"""
Unit tests for CurrencyConversionService.

Verifies:
- Identity conversion is exact (no rate applied)
- Every converted value is rounded half away from zero
- A missing target rate fails the whole conversion
- Invalid amounts and currencies are rejected before any fetch
"""

from decimal import Decimal

import pytest

from agency_kernel.domain.currency import Currency
from agency_kernel.exceptions import (
    DomainValidationError,
    InvalidCurrencyError,
    MissingRateError,
    RateFetchError,
)


class TestConvertToAll:
    def test_converts_to_every_supported_currency(self, conversion):
        result = conversion.convert_to_all(Decimal("1000"), "EGP")
        assert result.to_json() == {
            "EGP": 1000,
            "SAR": 75,
            "AED": 73,
            "USD": 20,
            "EUR": 18,
        }

    def test_identity_is_rounded_amount_not_rate_product(self, conversion):
        result = conversion.convert_to_all(Decimal("1234.5"), Currency.EGP)
        assert result.get("EGP") == 1235

    def test_half_units_round_up(self, conversion):
        result = conversion.convert_to_all("2.5", "usd")
        assert result.get("USD") == 3
        assert result.get("EGP") == 125

    def test_zero_amount(self, conversion):
        result = conversion.convert_to_all(0, "SAR")
        assert set(result.to_json().values()) == {0}

    def test_missing_target_rate_fails_whole_conversion(self, conversion, rate_provider):
        del rate_provider.units_per_usd["EUR"]
        with pytest.raises(MissingRateError) as exc_info:
            conversion.convert_to_all(100, "EGP")
        assert exc_info.value.from_currency == "EGP"
        assert exc_info.value.to_currency == "EUR"

    def test_rate_fetch_failure_propagates(self, conversion, rate_provider):
        rate_provider.fail = True
        with pytest.raises(RateFetchError):
            conversion.convert_to_all(100, "EGP")

    def test_negative_amount_rejected(self, conversion, rate_provider):
        with pytest.raises(DomainValidationError):
            conversion.convert_to_all(Decimal("-1"), "EGP")
        assert rate_provider.calls == []

    def test_non_numeric_amount_rejected(self, conversion):
        with pytest.raises(DomainValidationError):
            conversion.convert_to_all("abc", "EGP")

    def test_unsupported_currency_rejected(self, conversion, rate_provider):
        with pytest.raises(InvalidCurrencyError):
            conversion.convert_to_all(100, "GBP")
        assert rate_provider.calls == []
