"""
Unit tests for the supported currency set, converted-amount maps and the
whole-unit rounding helper.
"""

from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from agency_kernel.db.types import round_whole, to_decimal
from agency_kernel.domain.currency import (
    DEFAULT_CURRENCY,
    ConvertedAmounts,
    Currency,
    display_amount,
    is_supported_currency,
    parse_currency,
)
from agency_kernel.exceptions import InvalidCurrencyError


class TestParseCurrency:
    def test_default_is_egp(self):
        assert DEFAULT_CURRENCY is Currency.EGP

    @pytest.mark.parametrize("raw", ["usd", " USD ", "Usd", Currency.USD])
    def test_case_and_whitespace_insensitive(self, raw):
        assert parse_currency(raw) is Currency.USD

    @pytest.mark.parametrize("raw", ["GBP", "", "   ", None, 42, "US"])
    def test_unsupported_codes_rejected(self, raw):
        with pytest.raises(InvalidCurrencyError):
            parse_currency(raw)

    def test_is_supported_currency(self):
        assert is_supported_currency("aed")
        assert not is_supported_currency("JPY")


class TestConvertedAmounts:
    def test_from_json_fills_every_currency(self):
        amounts = ConvertedAmounts.from_json({"EGP": 1000, "USD": 20})
        assert amounts.get("EGP") == 1000
        assert amounts.get(Currency.USD) == 20
        assert amounts.get("EUR") is None

    def test_from_json_accepts_none(self):
        assert ConvertedAmounts.from_json(None).to_json() == {c.value: None for c in Currency}

    def test_to_json_uses_upper_case_codes(self):
        amounts = ConvertedAmounts({Currency.SAR: 75})
        assert set(amounts.to_json()) == {"EGP", "SAR", "AED", "USD", "EUR"}

    def test_get_rejects_unsupported_currency(self):
        with pytest.raises(InvalidCurrencyError):
            ConvertedAmounts.empty().get("GBP")


class TestDisplayAmount:
    """A positive converted value wins; otherwise the raw origin amount is used."""

    def test_uses_converted_value(self):
        assert display_amount({"USD": 20}, "USD", Decimal("1000")) == Decimal("20")

    def test_zero_converted_falls_back_to_raw(self):
        assert display_amount({"USD": 0}, "USD", Decimal("500")) == Decimal("500")

    def test_missing_converted_falls_back_to_raw(self):
        assert display_amount({}, Currency.EUR, 12) == Decimal("12")

    def test_missing_raw_is_zero(self):
        assert display_amount(None, "EGP", None) == Decimal("0")


class TestRounding:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (Decimal("0.5"), 1),
            (Decimal("1.5"), 2),
            (Decimal("2.5"), 3),
            (Decimal("2.4999"), 2),
            (Decimal("-2.5"), -3),
            ("73.4", 73),
            (0.1, 0),
        ],
    )
    def test_half_away_from_zero(self, value, expected):
        assert round_whole(value) == expected

    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")

    @pytest.mark.parametrize("bad", [True, "abc", None, object(), "NaN", float("inf")])
    def test_non_numeric_rejected(self, bad):
        with pytest.raises(ValueError):
            to_decimal(bad)

    @given(st.decimals(min_value=-10**12, max_value=10**12, allow_nan=False, places=4))
    def test_rounding_stays_within_half_unit(self, value):
        assert abs(Decimal(round_whole(value)) - value) <= Decimal("0.5")
