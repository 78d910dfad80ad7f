"""Orchestrates payment gateway transactions and customer identities."""
from __future__ import annotations

import logging
import secrets
import string
import time
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Callable, Dict, Optional, Union
from urllib import parse as urllib_parse

from .client import GatewayClient, PaystackAPIError
from .models import (
    GatewayResult,
    PaymentCustomer,
    PaymentTransactionRequest,
    TransactionInitialization,
    WebhookEvent,
)
from .webhooks import WebhookSignatureError, WebhookVerifier

logger = logging.getLogger("payments")

NOT_CONFIGURED_ERROR = "Paystack not configured"
DEFAULT_REFERENCE_PREFIX = "ARD"
_REFERENCE_ALPHABET = string.ascii_uppercase + string.digits


def to_minor_units(amount: Union[int, float, Decimal]) -> int:
    """Major units to the gateway's integer minor unit, rounding half-up.

    The decimal representation is used so that ``19.995`` becomes ``2000``
    rather than the ``1999`` a binary float product would give.
    """

    try:
        value = Decimal(str(amount))
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {amount!r}") from exc
    if not value.is_finite() or value < 0:
        raise ValueError(f"Invalid amount: {amount!r}")
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_major_units(minor_units: int) -> float:
    return minor_units / 100


def generate_reference(
    prefix: str = DEFAULT_REFERENCE_PREFIX,
    *,
    clock: Callable[[], float] = time.time,
) -> str:
    """``{prefix}_{epoch millis}_{6 random chars}``; uniqueness is not checked against history."""

    timestamp = int(clock() * 1000)
    suffix = "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(6))
    return f"{prefix}_{timestamp}_{suffix}"


class PaymentOrchestrator:
    """Wraps the gateway client; every operation returns a :class:`GatewayResult`.

    Without a client (no secret key configured) each call fails fast with
    ``"Paystack not configured"`` and performs no I/O.
    """

    def __init__(
        self,
        client: Optional[GatewayClient],
        *,
        webhook_secret: Optional[str] = None,
    ) -> None:
        self._client = client
        self._verifier = WebhookVerifier(webhook_secret) if webhook_secret else None

    @property
    def configured(self) -> bool:
        return self._client is not None

    generate_reference = staticmethod(generate_reference)
    to_minor_units = staticmethod(to_minor_units)
    to_major_units = staticmethod(to_major_units)

    def _call(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        payload: Optional[Dict[str, Any]] = None,
        query: Optional[Dict[str, Any]] = None,
    ) -> GatewayResult:
        if self._client is None:
            return GatewayResult.failure(NOT_CONFIGURED_ERROR)
        try:
            data = self._client.request(method, path, payload=payload, query=query)
        except PaystackAPIError as exc:
            logger.warning(
                "Paystack %s failed: %s",
                operation,
                exc.message,
                extra={"gateway_operation": operation, "gateway_status": exc.status_code},
            )
            return GatewayResult.failure(exc.message, status_code=exc.status_code)
        return GatewayResult.ok(data)

    def get_customer_by_email(self, email: str) -> GatewayResult:
        if not email or "@" not in email:
            return GatewayResult.failure("A valid email is required", status_code=400)
        result = self._call("customer lookup", "GET", f"customer/{urllib_parse.quote(email.strip())}")
        if result.success and not result.data:
            return GatewayResult.failure("Customer not found", status_code=404)
        return result

    def create_customer(
        self,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> GatewayResult:
        if not email or "@" not in email:
            return GatewayResult.failure("A valid email is required", status_code=400)
        return self._call(
            "customer creation",
            "POST",
            "customer",
            payload={"email": email.strip(), "first_name": first_name, "last_name": last_name},
        )

    def get_or_create_customer(
        self,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> GatewayResult:
        """Look the payer up first; create only when the gateway reports "not found"."""

        lookup = self.get_customer_by_email(email)
        if lookup.success:
            return lookup
        if not lookup.not_found:
            return lookup
        logger.info("Creating Paystack customer for new payer")
        return self.create_customer(email, first_name, last_name)

    def initialize_transaction(self, request: PaymentTransactionRequest) -> GatewayResult:
        if self._client is None:
            return GatewayResult.failure(NOT_CONFIGURED_ERROR)
        amount_minor = to_minor_units(request.amount)
        if amount_minor <= 0:
            return GatewayResult.failure("Amount must be at least one minor unit", status_code=400)

        result = self._call(
            "transaction initialization",
            "POST",
            "transaction/initialize",
            payload={
                "email": request.payer_email,
                "amount": amount_minor,
                "currency": request.currency.value,
                "reference": request.reference,
                "callback_url": request.callback_url,
                "metadata": request.metadata or None,
            },
        )
        if not result.success:
            return result

        authorization_url = result.data.get("authorization_url")
        if not authorization_url:
            return GatewayResult.failure("Paystack response missing authorization_url")
        initialization = TransactionInitialization(
            reference=str(result.data.get("reference") or request.reference),
            authorization_url=str(authorization_url),
            access_code=result.data.get("access_code"),
            amount_minor=amount_minor,
            currency=request.currency,
        )
        logger.info(
            "Initialized transaction %s amount=%s %s",
            initialization.reference,
            amount_minor,
            request.currency.value,
        )
        return GatewayResult.ok(initialization.model_dump(mode="json"))

    def verify_transaction(self, reference: str) -> GatewayResult:
        if not reference or not reference.strip():
            return GatewayResult.failure("A transaction reference is required", status_code=400)
        return self._call(
            "transaction verification",
            "GET",
            f"transaction/verify/{urllib_parse.quote(reference.strip())}",
        )

    def create_subscription(self, customer: str, plan: str, authorization: Optional[str] = None) -> GatewayResult:
        if not customer or not plan:
            return GatewayResult.failure("customer and plan are required", status_code=400)
        return self._call(
            "subscription creation",
            "POST",
            "subscription",
            payload={"customer": customer, "plan": plan, "authorization": authorization},
        )

    def disable_subscription(self, code: str, token: str) -> GatewayResult:
        if not code or not token:
            return GatewayResult.failure("subscription code and email token are required", status_code=400)
        return self._call(
            "subscription disable",
            "POST",
            "subscription/disable",
            payload={"code": code, "token": token},
        )

    def parse_webhook(self, payload: Union[bytes, str], signature: Optional[str]) -> WebhookEvent:
        """Return the verified event or raise :class:`WebhookSignatureError`."""

        if self._verifier is None:
            raise WebhookSignatureError(NOT_CONFIGURED_ERROR)
        return self._verifier.parse(payload, signature)


def customer_from_result(result: GatewayResult) -> Optional[PaymentCustomer]:
    if not result.success:
        return None
    return PaymentCustomer.from_gateway(result.data)


__all__ = [
    "DEFAULT_REFERENCE_PREFIX",
    "NOT_CONFIGURED_ERROR",
    "PaymentOrchestrator",
    "customer_from_result",
    "generate_reference",
    "to_major_units",
    "to_minor_units",
]
