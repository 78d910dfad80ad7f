"""Exchange rate provider integrations."""
from __future__ import annotations

import http.client as http_client
import json
import logging
from typing import Any, Dict, Optional, Protocol
from urllib import error as urllib_error, parse as urllib_parse, request as urllib_request

from .models import CurrencyCode

logger = logging.getLogger(__name__)

DEFAULT_EXCHANGE_RATE_API_BASE = "https://api.exchangerate-api.com/v4"
USER_AGENT = "ArdentInvoicing/1.0"


class ExchangeRateProviderError(Exception):
    """Raised when the provider cannot supply a usable rate table."""


class ExchangeRateProvider(Protocol):
    """Source of the latest rate table rooted at a base currency."""

    def fetch_latest(self, base: CurrencyCode) -> Dict[str, Any]:
        ...


class HTTPExchangeRateProvider:
    """Fetches ``{base}/latest/{currency}`` from an exchangerate-api compatible host."""

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_EXCHANGE_RATE_API_BASE,
        api_key: Optional[str] = None,
        timeout: float = 15.0,
    ) -> None:
        if timeout <= 0:
            raise ValueError("timeout must be > 0")
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key or None
        self.timeout = timeout

    def build_url(self, base: CurrencyCode) -> str:
        url = f"{self.base_url}/latest/{urllib_parse.quote(base.value)}"
        if self.api_key:
            url = f"{url}?{urllib_parse.urlencode({'access_key': self.api_key})}"
        return url

    def fetch_latest(self, base: CurrencyCode) -> Dict[str, Any]:
        request = urllib_request.Request(
            self.build_url(base),
            method="GET",
            headers={"Accept": "application/json", "User-Agent": USER_AGENT},
        )
        try:
            with urllib_request.urlopen(request, timeout=self.timeout) as response:
                body = response.read()
            payload = json.loads(body.decode("utf-8"))
        except urllib_error.HTTPError as exc:
            raise ExchangeRateProviderError(f"Exchange rate API error: {exc.code}") from exc
        except (OSError, http_client.HTTPException, json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ExchangeRateProviderError(f"Exchange rate API unreachable: {exc}") from exc

        if not isinstance(payload, dict):
            raise ExchangeRateProviderError("Invalid exchange rate response format")
        logger.debug(
            "Fetched exchange rate table",
            extra={"rate_base": base.value, "rate_count": len(payload.get("rates") or {})},
        )
        return payload


__all__ = [
    "DEFAULT_EXCHANGE_RATE_API_BASE",
    "ExchangeRateProvider",
    "ExchangeRateProviderError",
    "HTTPExchangeRateProvider",
]
