"""Domain models for payment gateway interactions."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..currency.models import CurrencyCode, parse_currency


class WebhookEventType(str, Enum):
    """Gateway webhook events that the settlement flow reacts to."""

    SUBSCRIPTION_CREATE = "subscription.create"
    SUBSCRIPTION_UPDATE = "subscription.update"
    SUBSCRIPTION_DISABLE = "subscription.disable"
    CHARGE_SUCCESS = "charge.success"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"


class PaymentTransactionRequest(BaseModel):
    """A single checkout attempt. ``amount`` is in major units."""

    reference: str = Field(min_length=1)
    amount: float = Field(gt=0, allow_inf_nan=False)
    payer_email: str = Field(alias="email", min_length=3)
    currency: CurrencyCode
    callback_url: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("currency", mode="before")
    @classmethod
    def _normalize_currency(cls, value: object) -> CurrencyCode:
        return parse_currency(value)

    @field_validator("payer_email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        cleaned = value.strip()
        if "@" not in cleaned or cleaned.startswith("@") or cleaned.endswith("@"):
            raise ValueError("payer email must be a valid address")
        return cleaned


class PaymentCustomer(BaseModel):
    """Gateway-side identity of a payer, keyed by email."""

    id: str
    email: str
    customer_code: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @classmethod
    def from_gateway(cls, data: Dict[str, Any]) -> "PaymentCustomer":
        return cls(
            id=str(data.get("id", "")),
            email=str(data.get("email", "")),
            customer_code=data.get("customer_code") and str(data.get("customer_code")),
            first_name=data.get("first_name") or None,
            last_name=data.get("last_name") or None,
        )


class GatewayResult(BaseModel):
    """Structured outcome of every gateway operation; failures are never raised."""

    success: bool
    data: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    status_code: Optional[int] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @classmethod
    def ok(cls, data: Optional[Dict[str, Any]] = None) -> "GatewayResult":
        return cls(success=True, data=data or {})

    @classmethod
    def failure(cls, error: str, *, status_code: Optional[int] = None) -> "GatewayResult":
        return cls(success=False, error=error, status_code=status_code)

    @property
    def not_found(self) -> bool:
        return not self.success and self.status_code == 404


class TransactionInitialization(BaseModel):
    """Redirect handle returned after a transaction is initialized."""

    reference: str
    authorization_url: str
    access_code: Optional[str] = None
    amount_minor: int = Field(ge=0)
    currency: CurrencyCode

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class WebhookEvent(BaseModel):
    """A gateway webhook whose signature has already been verified."""

    event_type: str = Field(alias="event")
    data: Dict[str, Any] = Field(default_factory=dict)
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def known_type(self) -> Optional[WebhookEventType]:
        try:
            return WebhookEventType(self.event_type)
        except ValueError:
            return None
