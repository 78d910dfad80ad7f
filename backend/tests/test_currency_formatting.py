"""Tests for currency symbols, flags, rounding and display formatting."""
from __future__ import annotations

import pytest

from backend.app.currency import (
    CURRENCY_SYMBOLS,
    CurrencyCode,
    format_amount,
    get_currency_flag,
    get_currency_symbol,
    round_money,
)
from backend.app.currency.formatting import GLOBE_FLAG


@pytest.mark.parametrize(
    "code, symbol",
    [("GHS", "₵"), ("USD", "$"), ("GBP", "£"), ("EUR", "€"), ("CAD", "C$"), ("AUD", "A$")],
)
def test_symbols_for_supported_codes(code: str, symbol: str) -> None:
    assert get_currency_symbol(code) == symbol


def test_unknown_code_symbol_is_the_code_itself() -> None:
    assert get_currency_symbol("JPY") == "JPY"


def test_flags() -> None:
    assert get_currency_flag(CurrencyCode.GHS) == "\U0001F1EC\U0001F1ED"
    assert get_currency_flag("usd") == "\U0001F1FA\U0001F1F8"
    assert get_currency_flag("ZZZ") == GLOBE_FLAG


def test_every_supported_code_has_a_symbol() -> None:
    assert set(CURRENCY_SYMBOLS) == set(CurrencyCode)


def test_format_amount_uses_locale_rules() -> None:
    assert format_amount(1234.5, "USD", "en_US") == "$1,234.50"
    assert format_amount(1234.5, CurrencyCode.USD, "en-US") == "$1,234.50"
    assert "1,234.50" in format_amount(1234.5, "GHS")


def test_format_amount_falls_back_on_unknown_locale() -> None:
    assert format_amount(1234.5, "GHS", "xx_YY") == "₵1234.50"


def test_format_amount_falls_back_on_malformed_code() -> None:
    assert format_amount(10, "C$", "en_US") == "C$10.00"


@pytest.mark.parametrize(
    "value, expected",
    [(19.995, 20.0), (0.125, 0.13), (2.675, 2.68), (100, 100.0), (0.004, 0.0)],
)
def test_round_money_is_half_up(value, expected) -> None:
    assert round_money(value) == expected
