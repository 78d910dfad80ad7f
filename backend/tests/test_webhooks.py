"""Tests for webhook signature verification."""
from __future__ import annotations

import hashlib
import hmac
import json

import pytest

from backend.app.payments import WebhookEventType, WebhookSignatureError, WebhookVerifier

SECRET = "sk_test_secret"


def _sign(body: bytes) -> str:
    return hmac.new(SECRET.encode("utf-8"), body, hashlib.sha512).hexdigest()


def test_valid_signature_yields_event() -> None:
    body = json.dumps({"event": "charge.success", "data": {"reference": "INV_1"}}).encode("utf-8")
    verifier = WebhookVerifier(SECRET)

    event = verifier.parse(body, _sign(body))

    assert event.known_type == WebhookEventType.CHARGE_SUCCESS
    assert event.data == {"reference": "INV_1"}


def test_sign_matches_hmac_sha512() -> None:
    assert WebhookVerifier(SECRET).sign(b"payload") == _sign(b"payload")


def test_missing_signature_is_rejected() -> None:
    with pytest.raises(WebhookSignatureError, match="Missing signature"):
        WebhookVerifier(SECRET).parse(b"{}", None)


def test_tampered_body_is_rejected() -> None:
    body = json.dumps({"event": "charge.success", "data": {"amount": 100}}).encode("utf-8")
    signature = _sign(body)
    tampered = body.replace(b"100", b"999")

    with pytest.raises(WebhookSignatureError, match="Invalid signature"):
        WebhookVerifier(SECRET).parse(tampered, signature)


def test_signature_from_other_secret_is_rejected() -> None:
    body = b'{"event": "charge.success"}'
    other = hmac.new(b"other", body, hashlib.sha512).hexdigest()

    assert not WebhookVerifier(SECRET).verify(body, other)


def test_invalid_json_after_valid_signature() -> None:
    body = b"not json"

    with pytest.raises(WebhookSignatureError, match="not valid JSON"):
        WebhookVerifier(SECRET).parse(body, _sign(body))


def test_unknown_event_type_is_preserved() -> None:
    body = b'{"event": "transfer.success", "data": {}}'

    event = WebhookVerifier(SECRET).parse(body, _sign(body))

    assert event.event_type == "transfer.success"
    assert event.known_type is None


def test_non_ascii_signature_is_rejected_not_crashed() -> None:
    body = b'{"event": "charge.success"}'
    verifier = WebhookVerifier(SECRET)

    assert not verifier.verify(body, "é" * 128)
    with pytest.raises(WebhookSignatureError, match="Invalid signature"):
        verifier.parse(body, "é" * 128)
