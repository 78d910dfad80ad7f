"""HTTP client for the Paystack REST API."""
from __future__ import annotations

import http.client as http_client
import json
import logging
from typing import Any, Dict, Mapping, Optional, Protocol
from urllib import error as urllib_error, parse as urllib_parse, request as urllib_request

logger = logging.getLogger(__name__)

DEFAULT_PAYSTACK_BASE_URL = "https://api.paystack.co"


class PaystackAPIError(Exception):
    """Raised for transport failures and rejected gateway requests."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class GatewayClient(Protocol):
    """Minimal request surface the orchestrator depends on."""

    def request(
        self,
        method: str,
        path: str,
        *,
        payload: Optional[Mapping[str, Any]] = None,
        query: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        ...


class PaystackClient:
    """Bearer-authenticated JSON client returning the ``data`` member of responses."""

    def __init__(
        self,
        secret_key: str,
        *,
        base_url: str = DEFAULT_PAYSTACK_BASE_URL,
        timeout: float = 15.0,
    ) -> None:
        if not secret_key:
            raise ValueError("secret_key must be provided")
        if timeout <= 0:
            raise ValueError("timeout must be > 0")
        self._secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _build_url(self, path: str, query: Optional[Mapping[str, Any]]) -> str:
        url = f"{self.base_url}/{path.lstrip('/')}"
        if query:
            filtered = {key: value for key, value in query.items() if value is not None}
            if filtered:
                url = f"{url}?{urllib_parse.urlencode(filtered)}"
        return url

    def request(
        self,
        method: str,
        path: str,
        *,
        payload: Optional[Mapping[str, Any]] = None,
        query: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        body = None
        if payload is not None:
            body = json.dumps({k: v for k, v in payload.items() if v is not None}).encode("utf-8")
        request = urllib_request.Request(
            self._build_url(path, query),
            data=body,
            method=method.upper(),
            headers={
                "Authorization": f"Bearer {self._secret_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
        )
        logger.debug("Paystack request %s %s", method.upper(), path)
        try:
            with urllib_request.urlopen(request, timeout=self.timeout) as response:
                raw = response.read()
        except urllib_error.HTTPError as exc:
            message = _error_message(exc) or f"Paystack request failed with status {exc.code}"
            raise PaystackAPIError(message, status_code=exc.code) from exc
        except (OSError, http_client.HTTPException) as exc:
            # URLError, timeouts and connections dropped while reading the response.
            raise PaystackAPIError(f"Paystack unreachable: {exc}") from exc

        try:
            envelope = json.loads(raw.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise PaystackAPIError("Invalid Paystack response payload") from exc

        if not isinstance(envelope, dict):
            raise PaystackAPIError("Invalid Paystack response payload")
        if envelope.get("status") is False:
            raise PaystackAPIError(str(envelope.get("message") or "Paystack request rejected"))

        data = envelope.get("data")
        if isinstance(data, list):
            return {"items": data}
        return data if isinstance(data, dict) else {}


def _error_message(exc: urllib_error.HTTPError) -> Optional[str]:
    try:
        payload = json.loads(exc.read().decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError, OSError, AttributeError):
        return None
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return None


__all__ = ["DEFAULT_PAYSTACK_BASE_URL", "GatewayClient", "PaystackAPIError", "PaystackClient"]
