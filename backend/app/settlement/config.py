"""Settlement configuration helpers."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional
import os

from ..currency.models import CurrencyCode, DEFAULT_SETTLEMENT_CURRENCY, coerce_currency
from ..currency.provider import DEFAULT_EXCHANGE_RATE_API_BASE
from ..payments.client import DEFAULT_PAYSTACK_BASE_URL


@dataclass(frozen=True)
class SettlementConfig:
    """Configuration for the rate provider, payment gateway and settlement."""

    paystack_secret_key: Optional[str]
    paystack_public_key: Optional[str]
    paystack_base_url: str
    exchange_rate_api_base: str
    exchange_rate_api_key: Optional[str]
    rate_cache_ttl_seconds: int
    http_timeout_seconds: float
    settlement_currency: CurrencyCode
    app_base_url: str

    @property
    def gateway_configured(self) -> bool:
        return bool(self.paystack_secret_key)


def _to_int(value: Optional[str], *, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected integer value, got {value!r}") from exc


def _to_float(value: Optional[str], *, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected float value, got {value!r}") from exc


def load_settlement_config(env: Optional[Mapping[str, str]] = None) -> SettlementConfig:
    """Load :class:`SettlementConfig` from environment variables."""

    env_mapping = os.environ if env is None else env

    secret_key = (env_mapping.get("PAYSTACK_SECRET_KEY") or "").strip() or None
    public_key = (env_mapping.get("PAYSTACK_PUBLIC_KEY") or "").strip() or None
    paystack_base_url = env_mapping.get("PAYSTACK_BASE_URL") or DEFAULT_PAYSTACK_BASE_URL

    rate_api_base = env_mapping.get("EXCHANGE_RATE_API_BASE") or DEFAULT_EXCHANGE_RATE_API_BASE
    rate_api_key = (env_mapping.get("EXCHANGE_RATE_API_KEY") or "").strip() or None
    ttl_seconds = max(60, _to_int(env_mapping.get("EXCHANGE_RATE_CACHE_TTL"), default=3600))

    timeout = _to_float(env_mapping.get("HTTP_TIMEOUT_SECONDS"), default=15.0)
    timeout = min(30.0, max(1.0, timeout))

    settlement_currency = coerce_currency(
        env_mapping.get("SETTLEMENT_CURRENCY") or DEFAULT_SETTLEMENT_CURRENCY.value
    )
    app_base_url = env_mapping.get("APP_BASE_URL", "http://localhost:3000")

    return SettlementConfig(
        paystack_secret_key=secret_key,
        paystack_public_key=public_key,
        paystack_base_url=paystack_base_url.rstrip("/"),
        exchange_rate_api_base=rate_api_base.rstrip("/"),
        exchange_rate_api_key=rate_api_key,
        rate_cache_ttl_seconds=ttl_seconds,
        http_timeout_seconds=timeout,
        settlement_currency=settlement_currency,
        app_base_url=app_base_url.rstrip("/"),
    )
