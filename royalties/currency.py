from __future__ import annotations

import math
from typing import Dict, Mapping, Optional

import pandas as pd

from royalties.exceptions import InvalidSettingsError, MissingExchangeRateError
from royalties.models import ANCHOR_CURRENCY, SUPPORTED_CURRENCIES


def convert(amount: float, from_currency: str, to_currency: str, rates: Mapping[str, float]) -> float:
    """Convert through the anchor currency: amount / rate[from] * rate[to]."""
    if from_currency == to_currency:
        return amount
    if from_currency not in rates:
        raise MissingExchangeRateError(from_currency)
    if to_currency not in rates:
        raise MissingExchangeRateError(to_currency)
    return amount / rates[from_currency] * rates[to_currency]


def convert_series(amounts: pd.Series, currencies: pd.Series, to_currency: str, rates: Mapping[str, float]) -> pd.Series:
    """Vectorized `convert`; rows already in `to_currency` pass through untouched."""
    if amounts.empty:
        return amounts.astype(float)
    missing = sorted(set(currencies.dropna().astype(str)) - set(rates))
    if missing:
        raise MissingExchangeRateError(missing[0])
    if to_currency not in rates:
        raise MissingExchangeRateError(to_currency)
    from_rates = currencies.map(rates).astype(float)
    converted = amounts.astype(float) / from_rates * float(rates[to_currency])
    return converted.where(currencies != to_currency, amounts.astype(float))


def validate_rates(rates: Mapping[str, object]) -> Dict[str, float]:
    out: Dict[str, float] = {}
    for code, raw in rates.items():
        try:
            value = float(raw)  # type: ignore[arg-type]
        except (TypeError, ValueError) as exc:
            raise InvalidSettingsError(f"Exchange rate for {code} is not a number") from exc
        if not math.isfinite(value) or value <= 0:
            raise InvalidSettingsError(f"Exchange rate for {code} must be greater than 0")
        out[str(code)] = value
    missing = [c for c in SUPPORTED_CURRENCIES if c not in out]
    if missing:
        raise InvalidSettingsError(f"Missing exchange rates for: {', '.join(missing)}")
    if out[ANCHOR_CURRENCY] != 1.0:
        raise InvalidSettingsError(f"{ANCHOR_CURRENCY} is the anchor currency and must have a rate of 1")
    return out


def format_currency(value: Optional[float], currency: str = "USD") -> str:
    if value is None or pd.isna(value):
        return "N/A"
    symbols = {"USD": "$", "EUR": "€", "GBP": "£", "CAD": "CA$", "AUD": "A$", "JPY": "¥"}
    decimals = 0 if currency == "JPY" else 2
    sign = "-" if value < 0 else ""
    symbol = symbols.get(currency, f"{currency} ")
    return f"{sign}{symbol}{abs(float(value)):,.{decimals}f}"


def format_number(value: Optional[float]) -> str:
    if value is None or pd.isna(value):
        return "N/A"
    return f"{value:,.0f}"
