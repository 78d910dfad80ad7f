"""Currency conversion and display helpers."""
from __future__ import annotations

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional, Protocol, Union

from babel.core import UnknownLocaleError
from babel.numbers import format_currency as babel_format_currency

from .models import CurrencyCode, ExchangeRateResult

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = "en_GH"
GLOBE_FLAG = "\U0001F30D"

Amount = Union[int, float, Decimal]

CURRENCY_SYMBOLS: Dict[CurrencyCode, str] = {
    CurrencyCode.GHS: "₵",
    CurrencyCode.USD: "$",
    CurrencyCode.GBP: "£",
    CurrencyCode.EUR: "€",
    CurrencyCode.CAD: "C$",
    CurrencyCode.AUD: "A$",
}

CURRENCY_FLAGS: Dict[CurrencyCode, str] = {
    CurrencyCode.GHS: "\U0001F1EC\U0001F1ED",
    CurrencyCode.USD: "\U0001F1FA\U0001F1F8",
    CurrencyCode.GBP: "\U0001F1EC\U0001F1E7",
    CurrencyCode.EUR: "\U0001F1EA\U0001F1FA",
    CurrencyCode.CAD: "\U0001F1E8\U0001F1E6",
    CurrencyCode.AUD: "\U0001F1E6\U0001F1FA",
}


class RateResolver(Protocol):
    def resolve(self, from_currency: object, to_currency: object) -> ExchangeRateResult:
        ...


def convert(amount: Amount, from_currency: object, to_currency: object, resolver: RateResolver) -> float:
    """Convert ``amount`` using whatever rate the resolver currently yields."""

    return apply_rate(amount, resolver.resolve(from_currency, to_currency).rate)


def apply_rate(amount: Amount, rate: float) -> float:
    return float(amount) * float(rate)


def round_money(amount: Amount) -> float:
    """Round half-up to two decimal places via the decimal representation."""

    return float(Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _lookup(code: object) -> Optional[CurrencyCode]:
    if isinstance(code, CurrencyCode):
        return code
    try:
        return CurrencyCode(str(code).strip().upper())
    except ValueError:
        return None


def get_currency_symbol(currency: object) -> str:
    code = _lookup(currency)
    if code is None:
        return str(currency)
    return CURRENCY_SYMBOLS[code]


def get_currency_flag(currency: object) -> str:
    code = _lookup(currency)
    if code is None:
        return GLOBE_FLAG
    return CURRENCY_FLAGS[code]


def format_amount(amount: Amount, currency: object, locale: str = DEFAULT_LOCALE) -> str:
    """Render ``amount`` for display; never raises.

    Babel handles locale-aware output. When it rejects the locale or the code
    the amount is rendered as the table symbol followed by a fixed
    two-decimal number.
    """

    code = currency.value if isinstance(currency, CurrencyCode) else str(currency).strip().upper()
    try:
        if len(code) != 3 or not code.isalpha():
            raise ValueError(f"Invalid currency code {currency!r}")
        return babel_format_currency(
            Decimal(str(amount)),
            code,
            locale=(locale or DEFAULT_LOCALE).replace("-", "_"),
        )
    except (UnknownLocaleError, ValueError, TypeError, ArithmeticError) as exc:
        logger.debug("Falling back to symbol formatting for %s: %s", code, exc)
        return f"{get_currency_symbol(code)}{_fixed_two_places(amount)}"


def _fixed_two_places(amount: Amount) -> str:
    try:
        return f"{Decimal(str(amount)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)}"
    except ArithmeticError:
        return "0.00"


__all__ = [
    "CURRENCY_FLAGS",
    "CURRENCY_SYMBOLS",
    "DEFAULT_LOCALE",
    "GLOBE_FLAG",
    "apply_rate",
    "convert",
    "format_amount",
    "get_currency_flag",
    "get_currency_symbol",
    "round_money",
]
