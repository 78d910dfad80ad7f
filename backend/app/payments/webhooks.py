"""Signature verification for inbound gateway webhooks."""
from __future__ import annotations

import hashlib
import hmac
import json
from typing import Optional, Union

from pydantic import ValidationError

from .models import WebhookEvent

SIGNATURE_HEADER = "x-paystack-signature"


class WebhookSignatureError(Exception):
    """Raised when a webhook cannot be trusted."""


class WebhookVerifier:
    """HMAC-SHA512 over the raw request body, keyed with the gateway secret."""

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("secret must be provided")
        self._secret = secret.encode("utf-8")

    def sign(self, payload: Union[bytes, str]) -> str:
        body = payload.encode("utf-8") if isinstance(payload, str) else payload
        return hmac.new(self._secret, body, hashlib.sha512).hexdigest()

    def verify(self, payload: Union[bytes, str], signature: Optional[str]) -> bool:
        if not signature:
            return False
        expected = self.sign(payload).encode("ascii")
        return hmac.compare_digest(expected, signature.strip().lower().encode("utf-8"))

    def parse(self, payload: Union[bytes, str], signature: Optional[str]) -> WebhookEvent:
        """Verify ``payload`` and decode it; nothing is decoded before verification."""

        if not signature:
            raise WebhookSignatureError("Missing signature")
        if not self.verify(payload, signature):
            raise WebhookSignatureError("Invalid signature")

        body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        try:
            raw = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise WebhookSignatureError("Webhook payload is not valid JSON") from exc
        if not isinstance(raw, dict):
            raise WebhookSignatureError("Webhook payload must be an object")

        event_type = raw.get("event") or raw.get("type")
        data = raw.get("data") or {}
        try:
            return WebhookEvent(event=event_type, data=data if isinstance(data, dict) else {})
        except ValidationError as exc:
            raise WebhookSignatureError("Webhook payload is missing an event type") from exc


__all__ = ["SIGNATURE_HEADER", "WebhookSignatureError", "WebhookVerifier"]
