"""Currency domain: supported codes, rate cache, resolver and display helpers."""

from .cache import DEFAULT_RATE_TTL_SECONDS, InMemoryRateCache, RateCache, RateCacheEntry
from .formatting import (
    CURRENCY_FLAGS,
    CURRENCY_SYMBOLS,
    apply_rate,
    convert,
    format_amount,
    get_currency_flag,
    get_currency_symbol,
    round_money,
)
from .models import (
    DEFAULT_SETTLEMENT_CURRENCY,
    CurrencyCode,
    ExchangeRateResult,
    RateRefreshSummary,
    coerce_currency,
    parse_currency,
)
from .provider import ExchangeRateProvider, ExchangeRateProviderError, HTTPExchangeRateProvider
from .resolver import ExchangeRateResolver

__all__ = [
    "CURRENCY_FLAGS",
    "CURRENCY_SYMBOLS",
    "DEFAULT_RATE_TTL_SECONDS",
    "DEFAULT_SETTLEMENT_CURRENCY",
    "CurrencyCode",
    "ExchangeRateProvider",
    "ExchangeRateProviderError",
    "ExchangeRateResolver",
    "ExchangeRateResult",
    "HTTPExchangeRateProvider",
    "InMemoryRateCache",
    "RateCache",
    "RateCacheEntry",
    "RateRefreshSummary",
    "apply_rate",
    "coerce_currency",
    "convert",
    "format_amount",
    "get_currency_flag",
    "get_currency_symbol",
    "parse_currency",
    "round_money",
]
