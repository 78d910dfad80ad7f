"""Domain models for invoice and subscription settlement."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from fastapi import HTTPException, status
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..currency.models import CurrencyCode, parse_currency
from ..subscriptions.models import BillingInterval, PlanKey, SubscriptionStatus


class InvoiceStatus(str, Enum):
    """Status of an invoice as far as settlement is concerned."""

    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class SettlementInvoice(BaseModel):
    """The invoice fields read and written by the settlement flow.

    ``exchange_rate`` is the pinned rate from ``currency`` into the
    settlement currency; once set it is reused for every payment attempt.
    """

    invoice_id: str
    amount: float = Field(gt=0)
    currency: CurrencyCode
    status: InvoiceStatus = InvoiceStatus.SENT
    exchange_rate: Optional[float] = Field(default=None, gt=0)
    invoice_number: Optional[str] = None
    business_name: Optional[str] = None
    client_name: Optional[str] = None
    payment_reference: Optional[str] = None
    paid_at: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("currency", mode="before")
    @classmethod
    def _normalize_currency(cls, value: object) -> CurrencyCode:
        return parse_currency(value)

    @property
    def is_paid(self) -> bool:
        return self.status == InvoiceStatus.PAID


class SubscriptionRecord(BaseModel):
    """Locally tracked subscription, created pending at checkout."""

    subscription_id: str
    user_id: str
    plan_key: PlanKey
    billing_interval: BillingInterval
    amount: float = Field(ge=0)
    currency: CurrencyCode
    status: SubscriptionStatus = SubscriptionStatus.PENDING
    gateway_reference: Optional[str] = None
    gateway_customer_id: Optional[str] = None
    gateway_subscription_id: Optional[str] = None
    next_billing_date: Optional[date] = None
    started_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class InvoiceCheckout(BaseModel):
    """Redirect handle plus the amounts charged for an invoice payment."""

    reference: str
    authorization_url: str
    payment_amount: float
    payment_currency: CurrencyCode
    original_amount: float
    original_currency: CurrencyCode
    exchange_rate: float = 1.0

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class SubscriptionCheckout(BaseModel):
    """Result of a subscription request; free plans carry no redirect."""

    plan_key: PlanKey
    plan_name: str
    message: str = ""
    amount: float = 0
    currency: CurrencyCode
    reference: Optional[str] = None
    authorization_url: Optional[str] = None
    subscription: Optional[SubscriptionRecord] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def requires_payment(self) -> bool:
        return self.authorization_url is not None


@dataclass
class SettlementError(Exception):
    """Actionable settlement failure surfaced to API callers."""

    code: str
    message: str
    status_code: int = status.HTTP_400_BAD_REQUEST
    detail: Optional[Mapping[str, Any]] = None

    def __post_init__(self) -> None:
        payload: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.detail:
            payload.update(self.detail)
        object.__setattr__(self, "_payload", payload)
        super().__init__(self.message)

    @property
    def payload(self) -> Mapping[str, Any]:
        return self._payload

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=dict(self.payload))
