"""API schemas for payment, subscription and exchange rate endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..currency import CurrencyCode, ExchangeRateResult
from ..settlement import InvoiceCheckout, SubscriptionCheckout
from ..subscriptions import (
    BILLING_INTERVALS,
    BillingInterval,
    SubscriptionPlan,
    calculate_price,
    get_discount_amount,
)


class InvoicePaymentRequest(BaseModel):
    invoice_id: str = Field(alias="invoiceId", min_length=1)
    client_email: str = Field(alias="clientEmail", min_length=3)
    client_name: Optional[str] = Field(alias="clientName", default=None)

    model_config = ConfigDict(populate_by_name=True)


class InvoicePaymentResponse(BaseModel):
    success: bool = True
    authorization_url: str = Field(alias="authorizationUrl")
    reference: str
    payment_amount: float = Field(alias="paymentAmount")
    payment_currency: CurrencyCode = Field(alias="paymentCurrency")
    original_amount: float = Field(alias="originalAmount")
    original_currency: CurrencyCode = Field(alias="originalCurrency")
    exchange_rate: float = Field(alias="exchangeRate")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_checkout(cls, checkout: InvoiceCheckout) -> "InvoicePaymentResponse":
        return cls(
            authorization_url=checkout.authorization_url,
            reference=checkout.reference,
            payment_amount=checkout.payment_amount,
            payment_currency=checkout.payment_currency,
            original_amount=checkout.original_amount,
            original_currency=checkout.original_currency,
            exchange_rate=checkout.exchange_rate,
        )


class SubscriptionRequest(BaseModel):
    plan_id: str = Field(alias="planId", min_length=1)
    interval: str = Field(min_length=1)
    user_email: str = Field(alias="userEmail", min_length=3)
    user_id: str = Field(alias="userId", min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class SubscriptionResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    plan_id: str = Field(alias="planId")
    plan_name: str = Field(alias="planName")
    amount: float = 0
    currency: CurrencyCode
    authorization_url: Optional[str] = Field(alias="authorizationUrl", default=None)
    reference: Optional[str] = None
    subscription_id: Optional[str] = Field(alias="subscriptionId", default=None)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_checkout(cls, checkout: SubscriptionCheckout) -> "SubscriptionResponse":
        return cls(
            message=checkout.message or None,
            plan_id=checkout.plan_key.value,
            plan_name=checkout.plan_name,
            amount=checkout.amount,
            currency=checkout.currency,
            authorization_url=checkout.authorization_url,
            reference=checkout.reference,
            subscription_id=checkout.subscription.subscription_id if checkout.subscription else None,
        )


class PaymentVerificationResponse(BaseModel):
    success: bool = True
    data: Dict[str, object]


class WebhookAckResponse(BaseModel):
    received: bool = True
    event: Optional[str] = None


class ExchangeRateResponse(BaseModel):
    from_currency: CurrencyCode = Field(alias="from")
    to_currency: CurrencyCode = Field(alias="to")
    rate: float
    timestamp: datetime
    degraded: bool = False

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_result(cls, result: ExchangeRateResult) -> "ExchangeRateResponse":
        return cls(
            from_currency=result.from_currency,
            to_currency=result.to_currency,
            rate=result.rate,
            timestamp=result.timestamp,
            degraded=result.degraded,
        )


class ExchangeRateListResponse(BaseModel):
    base: CurrencyCode
    rates: List[ExchangeRateResponse]


class PlanPriceOut(BaseModel):
    interval: BillingInterval
    label: str
    price: int
    discount_percent: int = Field(alias="discountPercent")
    savings: int

    model_config = ConfigDict(populate_by_name=True)


class PlanOut(BaseModel):
    id: str
    name: str
    description: str
    invoice_limit: int = Field(alias="invoiceLimit")
    features: List[str]
    popular: bool = False
    prices: List[PlanPriceOut]

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_plan(cls, plan: SubscriptionPlan) -> "PlanOut":
        prices = [
            PlanPriceOut(
                interval=definition.interval,
                label=definition.label,
                price=calculate_price(plan, definition.interval),
                discount_percent=definition.discount_percent,
                savings=get_discount_amount(plan, definition.interval),
            )
            for definition in BILLING_INTERVALS.values()
        ]
        return cls(
            id=plan.id,
            name=plan.name,
            description=plan.description,
            invoice_limit=plan.invoice_limit,
            features=list(plan.features),
            popular=plan.popular,
            prices=prices,
        )


class PlanListResponse(BaseModel):
    currency: CurrencyCode
    plans: List[PlanOut]


__all__ = [
    "ExchangeRateListResponse",
    "ExchangeRateResponse",
    "InvoicePaymentRequest",
    "InvoicePaymentResponse",
    "PaymentVerificationResponse",
    "PlanListResponse",
    "PlanOut",
    "SubscriptionRequest",
    "SubscriptionResponse",
    "WebhookAckResponse",
]
