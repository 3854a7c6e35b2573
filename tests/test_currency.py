"""
tests/test_currency.py

Currency conversion, rate-table validation and display formatting.
"""

from __future__ import annotations

import math

import pandas as pd
import pytest

from royalties.currency import convert, convert_series, format_currency, format_number, validate_rates
from royalties.exceptions import InvalidSettingsError, MissingExchangeRateError
from royalties.models import DEFAULT_EXCHANGE_RATES, SUPPORTED_CURRENCIES


# ---------------------------------------------------------------------------
# convert
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("currency", SUPPORTED_CURRENCIES)
def test_same_currency_is_identity(currency: str) -> None:
    assert convert(123.456, currency, currency, {}) == 123.456


def test_converts_through_anchor(rates: dict) -> None:
    assert convert(100, "USD", "EUR", rates) == pytest.approx(85.0)
    assert convert(85, "EUR", "USD", rates) == pytest.approx(100.0)
    assert convert(73, "GBP", "EUR", rates) == pytest.approx(85.0)


@pytest.mark.parametrize("pair", [("USD", "JPY"), ("EUR", "GBP"), ("AUD", "CAD")])
def test_round_trip(pair, rates: dict) -> None:
    a, b = pair
    assert convert(convert(987.65, a, b, rates), b, a, rates) == pytest.approx(987.65)


def test_missing_rate_raises() -> None:
    with pytest.raises(MissingExchangeRateError) as info:
        convert(10, "EUR", "USD", {"USD": 1.0})
    assert info.value.currency == "EUR"
    assert str(info.value) == "No exchange rate for currency 'EUR'"
    assert isinstance(info.value, KeyError)


def test_missing_target_rate_raises() -> None:
    with pytest.raises(MissingExchangeRateError):
        convert(10, "USD", "GBP", {"USD": 1.0})


# ---------------------------------------------------------------------------
# convert_series
# ---------------------------------------------------------------------------


def test_convert_series_matches_scalar(rates: dict) -> None:
    amounts = pd.Series([100.0, 85.0, 110.0])
    currencies = pd.Series(["USD", "EUR", "JPY"])
    out = convert_series(amounts, currencies, "USD", rates)
    assert out.tolist() == pytest.approx([100.0, 100.0, 1.0])


def test_convert_series_passes_target_currency_through(rates: dict) -> None:
    amounts = pd.Series([0.1, 0.2])
    out = convert_series(amounts, pd.Series(["EUR", "EUR"]), "EUR", rates)
    assert out.tolist() == [0.1, 0.2]


def test_convert_series_missing_rate_raises() -> None:
    with pytest.raises(MissingExchangeRateError):
        convert_series(pd.Series([1.0]), pd.Series(["CAD"]), "USD", {"USD": 1.0})


# ---------------------------------------------------------------------------
# validate_rates
# ---------------------------------------------------------------------------


def test_default_rates_are_valid() -> None:
    assert validate_rates(DEFAULT_EXCHANGE_RATES) == DEFAULT_EXCHANGE_RATES


def test_numeric_strings_are_coerced(rates: dict) -> None:
    rates["EUR"] = "0.9"
    assert validate_rates(rates)["EUR"] == 0.9


@pytest.mark.parametrize("bad", [0, -1, math.nan, math.inf, "abc", None])
def test_invalid_rate_values(bad, rates: dict) -> None:
    rates["GBP"] = bad
    with pytest.raises(InvalidSettingsError):
        validate_rates(rates)


def test_missing_currency_is_rejected(rates: dict) -> None:
    del rates["JPY"]
    with pytest.raises(InvalidSettingsError, match="JPY"):
        validate_rates(rates)


def test_anchor_must_stay_one(rates: dict) -> None:
    rates["USD"] = 2.0
    with pytest.raises(InvalidSettingsError):
        validate_rates(rates)


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def test_format_currency() -> None:
    assert format_currency(1234.5, "USD") == "$1,234.50"
    assert format_currency(12.3, "EUR") == "€12.30"
    assert format_currency(1234.4, "JPY") == "¥1,234"
    assert format_currency(-5, "USD") == "-$5.00"
    assert format_currency(None) == "N/A"


def test_format_number() -> None:
    assert format_number(1250000) == "1,250,000"
    assert format_number(None) == "N/A"
