"""
Currency conversion and budget rounding.

Rates are expressed as "1 unit of currency = X DKK". Conversions go through
DKK. Unknown currency codes convert as identity so that display paths never
fail on an unexpected code.
"""
import math
from typing import Union

Number = Union[int, float]

REFERENCE_CURRENCY = "DKK"

RATES_TO_DKK = {
    "DKK": 1.0,
    "USD": 6.85,
    "EUR": 7.46,
    "GBP": 8.68,
    "SEK": 0.64,
    "NOK": 0.65,
}

SUPPORTED_CURRENCIES = ("DKK", "USD", "EUR", "GBP", "SEK", "NOK")

_SYMBOL_PREFIX = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
}

# (upper bound of |amount|, step)
_ROUNDING_STEPS = (
    (100, 1),
    (1_000, 5),
    (10_000, 50),
    (100_000, 500),
)
_TOP_STEP = 1_000


def convert_currency(amount: Number, from_currency: str, to_currency: str) -> Number:
    if from_currency == to_currency:
        return amount

    from_rate = RATES_TO_DKK.get(from_currency)
    to_rate = RATES_TO_DKK.get(to_currency)
    if not from_rate or not to_rate:
        return amount

    return amount * from_rate / to_rate


def _step_for(magnitude: float) -> int:
    for upper, step in _ROUNDING_STEPS:
        if magnitude < upper:
            return step
    return _TOP_STEP


def smart_round(amount: Number) -> int:
    """Round to a clean number whose step grows with the magnitude; halves round away from zero."""
    magnitude = abs(amount)
    step = _step_for(magnitude)
    rounded = math.floor(magnitude / step + 0.5) * step
    return int(-rounded if amount < 0 else rounded)


def convert_and_round(amount: Number, from_currency: str, to_currency: str) -> Number:
    if from_currency == to_currency:
        return amount
    return smart_round(convert_currency(amount, from_currency, to_currency))


def format_currency(amount: Number, currency: str, decimals: int = 2) -> str:
    rounded = round(amount, decimals)
    text = f"{abs(rounded):,.{decimals}f}"
    sign = "-" if rounded < 0 else ""

    symbol = _SYMBOL_PREFIX.get(currency)
    if symbol is not None:
        return f"{sign}{symbol}{text}"
    return f"{sign}{text} {currency}"


def convert_and_format(amount: Number, from_currency: str, to_currency: str) -> str:
    return format_currency(convert_currency(amount, from_currency, to_currency), to_currency)


def convert_and_format_budget(amount: Number, from_currency: str, to_currency: str) -> str:
    return format_currency(convert_currency(amount, from_currency, to_currency), to_currency, decimals=0)
