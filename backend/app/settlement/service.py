"""Prices and pays invoices and subscriptions in the settlement currency."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional, Protocol, Tuple, Union
from uuid import uuid4

from fastapi import status

from ..currency.formatting import round_money
from ..currency.models import CurrencyCode, DEFAULT_SETTLEMENT_CURRENCY, ExchangeRateResult
from ..payments.models import (
    GatewayResult,
    PaymentTransactionRequest,
    WebhookEvent,
    WebhookEventType,
)
from ..payments.service import NOT_CONFIGURED_ERROR, PaymentOrchestrator, customer_from_result
from ..payments.webhooks import WebhookSignatureError
from ..subscriptions.catalog import (
    SubscriptionPlan,
    advance_billing_date,
    calculate_price,
    get_plan_by_id,
    parse_interval,
)
from ..subscriptions.models import BillingInterval, PlanKey, SubscriptionStatus
from .models import (
    InvoiceCheckout,
    SettlementError,
    SettlementInvoice,
    SubscriptionCheckout,
    SubscriptionRecord,
)
from .repository import SettlementRepository

logger = logging.getLogger("settlement")

# Catalog prices are quoted in cedis.
PLAN_PRICE_CURRENCY = CurrencyCode.GHS


class RateResolver(Protocol):
    def resolve(self, from_currency: object, to_currency: object) -> ExchangeRateResult:
        ...


class SettlementNotifier(Protocol):
    """Dispatches settlement related notifications to end users."""

    def notify_payment_received(self, invoice: SettlementInvoice, reference: str) -> None:
        ...

    def notify_subscription_confirmed(self, subscription: SubscriptionRecord, plan: SubscriptionPlan) -> None:
        ...

    def notify_subscription_past_due(self, subscription: SubscriptionRecord) -> None:
        ...


@dataclass
class SettlementService:
    """Coordinates rate pinning, plan pricing and gateway checkout."""

    repository: SettlementRepository
    resolver: RateResolver
    orchestrator: PaymentOrchestrator
    notifier: SettlementNotifier
    settlement_currency: CurrencyCode = DEFAULT_SETTLEMENT_CURRENCY
    app_base_url: str = "http://localhost:3000"

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def _callback_url(self, path: str, reference: str) -> str:
        return f"{self.app_base_url.rstrip('/')}/{path.lstrip('/')}?reference={reference}"

    def pay_invoice(
        self,
        invoice_id: str,
        client_email: str,
        client_name: Optional[str] = None,
    ) -> InvoiceCheckout:
        if not invoice_id or not client_email:
            raise SettlementError("missing_fields", "Missing required fields")

        invoice = self.repository.get_invoice(invoice_id)
        if invoice is None:
            raise SettlementError("invoice_not_found", "Invoice not found", status.HTTP_404_NOT_FOUND)
        if invoice.is_paid:
            raise SettlementError("invoice_paid", "Invoice is already paid")

        payment_amount, rate = self.invoice_settlement_amount(invoice)
        reference = self.orchestrator.generate_reference("INV")

        first_name, last_name = _split_name(client_name)
        self._resolve_customer(client_email, first_name, last_name)

        request = self._build_request(
            reference=reference,
            amount=payment_amount,
            email=client_email,
            callback_url=self._callback_url("client/pay/success", reference),
            metadata={
                "type": "invoice",
                "invoiceId": invoice.invoice_id,
                "originalAmount": invoice.amount,
                "originalCurrency": invoice.currency.value,
                "exchangeRate": rate,
                "businessName": invoice.business_name,
            },
        )
        initialization = self._initialize(request)
        logger.info(
            "Invoice %s checkout %s amount=%s %s rate=%s",
            invoice.invoice_id,
            reference,
            payment_amount,
            self.settlement_currency.value,
            rate,
        )
        return InvoiceCheckout(
            reference=reference,
            authorization_url=str(initialization["authorization_url"]),
            payment_amount=payment_amount,
            payment_currency=self.settlement_currency,
            original_amount=invoice.amount,
            original_currency=invoice.currency,
            exchange_rate=rate,
        )

    def invoice_settlement_amount(self, invoice: SettlementInvoice) -> Tuple[float, float]:
        """Return ``(amount in settlement currency, rate used)``.

        A rate already recorded on the invoice is always reused. Otherwise a
        fresh rate is resolved and pinned before the amount is computed, so
        every later attempt on the same invoice charges the same amount.
        """

        if invoice.currency == self.settlement_currency:
            return round_money(invoice.amount), 1.0

        if invoice.exchange_rate is not None:
            rate = invoice.exchange_rate
        else:
            result = self._trusted_rate(invoice.currency, self.settlement_currency)
            pinned = self.repository.pin_exchange_rate(invoice.invoice_id, result.rate)
            if pinned is None:
                raise SettlementError("invoice_not_found", "Invoice not found", status.HTTP_404_NOT_FOUND)
            # Another attempt may have pinned first; its rate wins.
            rate = pinned.exchange_rate if pinned.exchange_rate is not None else result.rate
            logger.info("Pinned exchange rate %s for invoice %s", rate, invoice.invoice_id)

        return round_money(invoice.amount * rate), rate

    def subscribe(
        self,
        plan_id: str,
        interval: Union[str, BillingInterval],
        user_email: str,
        user_id: str,
    ) -> SubscriptionCheckout:
        if not plan_id or not interval or not user_email or not user_id:
            raise SettlementError("missing_fields", "Missing required fields")

        plan = get_plan_by_id(plan_id)
        if plan is None:
            raise SettlementError("invalid_plan", "Invalid subscription plan")
        try:
            billing_interval = parse_interval(interval)
        except ValueError as exc:
            raise SettlementError("invalid_interval", str(exc)) from exc

        if plan.is_free:
            try:
                self.repository.update_user_plan(
                    user_id, PlanKey.FREE, SubscriptionStatus.ACTIVE, reset_quota=True
                )
            except LookupError as exc:
                raise SettlementError("user_not_found", str(exc), status.HTTP_404_NOT_FOUND) from exc
            logger.info("User %s moved to the free plan", user_id)
            return SubscriptionCheckout(
                plan_key=plan.key,
                plan_name=plan.name,
                message="Successfully upgraded to free plan",
                currency=self.settlement_currency,
            )

        amount = self.plan_settlement_amount(plan, billing_interval)
        reference = self.orchestrator.generate_reference("SUB")
        customer = self._resolve_customer(user_email)

        request = self._build_request(
            reference=reference,
            amount=amount,
            email=user_email,
            callback_url=self._callback_url("dashboard/subscribe/success", reference),
            metadata={
                "type": "subscription",
                "userId": user_id,
                "planId": plan.id,
                "interval": billing_interval.value,
                "customerId": customer.id,
            },
        )
        initialization = self._initialize(request)

        record = self.repository.save_subscription(
            SubscriptionRecord(
                subscription_id=f"sub_{uuid4().hex}",
                user_id=user_id,
                plan_key=plan.key,
                billing_interval=billing_interval,
                amount=amount,
                currency=self.settlement_currency,
                status=SubscriptionStatus.PENDING,
                gateway_reference=reference,
                gateway_customer_id=customer.id,
            )
        )
        logger.info("Subscription checkout %s plan=%s interval=%s", reference, plan.id, billing_interval.value)
        return SubscriptionCheckout(
            plan_key=plan.key,
            plan_name=plan.name,
            amount=amount,
            currency=self.settlement_currency,
            reference=reference,
            authorization_url=str(initialization["authorization_url"]),
            subscription=record,
        )

    def plan_settlement_amount(self, plan: SubscriptionPlan, interval: BillingInterval) -> float:
        price = calculate_price(plan, interval)
        if self.settlement_currency == PLAN_PRICE_CURRENCY:
            return float(price)
        result = self._trusted_rate(PLAN_PRICE_CURRENCY, self.settlement_currency)
        return round_money(price * result.rate)

    def verify_payment(self, reference: str) -> Dict[str, Any]:
        result = self.orchestrator.verify_transaction(reference)
        if not result.success:
            raise _gateway_error(result, "verification_failed")
        return result.data

    def handle_webhook(self, payload: Union[bytes, str], signature: Optional[str]) -> WebhookEvent:
        try:
            event = self.orchestrator.parse_webhook(payload, signature)
        except WebhookSignatureError as exc:
            logger.warning("Rejected webhook: %s", exc)
            raise SettlementError("invalid_signature", str(exc)) from exc

        logger.info("Paystack webhook event %s", event.event_type)
        handlers = {
            WebhookEventType.SUBSCRIPTION_CREATE: self._on_subscription_create,
            WebhookEventType.SUBSCRIPTION_UPDATE: self._on_subscription_update,
            WebhookEventType.SUBSCRIPTION_DISABLE: self._on_subscription_disable,
            WebhookEventType.CHARGE_SUCCESS: self._on_charge_success,
            WebhookEventType.INVOICE_PAYMENT_FAILED: self._on_payment_failed,
        }
        handler = handlers.get(event.known_type)
        if handler is None:
            logger.info("Unhandled webhook event type %s", event.event_type)
            return event
        handler(event.data)
        return event

    def _on_subscription_create(self, data: Dict[str, Any]) -> None:
        customer_id = _nested_id(data.get("customer"))
        if not customer_id:
            logger.warning("subscription.create without customer id")
            return
        pending = self.repository.get_pending_subscription_by_customer(customer_id)
        if pending is None:
            logger.warning("No pending subscription for customer %s", customer_id)
            return
        plan = get_plan_by_id(pending.plan_key)
        if plan is None:  # pragma: no cover - plan keys are a closed enum
            return

        next_billing = _parse_date(data.get("next_payment_date")) or advance_billing_date(
            self._now().date(), pending.billing_interval
        )
        activated = self.repository.save_subscription(
            pending.model_copy(
                update={
                    "status": SubscriptionStatus.ACTIVE,
                    "gateway_subscription_id": str(data.get("subscription_code") or data.get("id") or ""),
                    "next_billing_date": next_billing,
                    "started_at": self._now(),
                    "updated_at": self._now(),
                }
            )
        )
        self.repository.update_user_plan(
            activated.user_id, activated.plan_key, SubscriptionStatus.ACTIVE, reset_quota=True
        )
        self.notifier.notify_subscription_confirmed(activated, plan)

    def _on_subscription_update(self, data: Dict[str, Any]) -> None:
        code = _subscription_code(data)
        if not code:
            return
        new_status = SubscriptionStatus.ACTIVE if data.get("status") == "active" else SubscriptionStatus.INACTIVE
        if self.repository.update_subscription_status(code, new_status) is None:
            logger.warning("subscription.update for unknown subscription %s", code)

    def _on_subscription_disable(self, data: Dict[str, Any]) -> None:
        code = _subscription_code(data)
        if not code:
            return
        cancelled = self.repository.update_subscription_status(code, SubscriptionStatus.CANCELLED)
        if cancelled is None:
            logger.warning("subscription.disable for unknown subscription %s", code)
            return
        self.repository.update_user_plan(cancelled.user_id, PlanKey.FREE, SubscriptionStatus.CANCELLED)

    def _on_charge_success(self, data: Dict[str, Any]) -> None:
        metadata = _metadata(data)
        reference = str(data.get("reference") or "")
        if metadata.get("type") != "invoice" or not metadata.get("invoiceId"):
            logger.info("Charge successful %s", reference)
            return
        invoice = self.repository.mark_invoice_paid(str(metadata["invoiceId"]), reference)
        if invoice is None:
            logger.warning("charge.success for unknown invoice %s", metadata["invoiceId"])
            return
        self.notifier.notify_payment_received(invoice, reference)

    def _on_payment_failed(self, data: Dict[str, Any]) -> None:
        metadata = _metadata(data)
        code = metadata.get("subscriptionId") or _subscription_code(data)
        if not code:
            logger.info("Payment failed %s", data.get("reference"))
            return
        updated = self.repository.update_subscription_status(str(code), SubscriptionStatus.PAST_DUE)
        if updated is not None:
            self.notifier.notify_subscription_past_due(updated)

    def _trusted_rate(self, from_currency: CurrencyCode, to_currency: CurrencyCode) -> ExchangeRateResult:
        result = self.resolver.resolve(from_currency, to_currency)
        # Degraded rate 1 across different currencies is the identity fallback.
        if result.degraded and result.rate == 1 and from_currency != to_currency:
            raise SettlementError(
                "exchange_rate_unavailable",
                "Unable to process payment due to currency conversion error",
                status.HTTP_503_SERVICE_UNAVAILABLE,
            )
        if result.degraded:
            logger.warning(
                "Settling with stale exchange rate %s->%s=%s",
                from_currency.value,
                to_currency.value,
                result.rate,
            )
        return result

    def _resolve_customer(self, email: str, first_name: Optional[str] = None, last_name: Optional[str] = None):
        result = self.orchestrator.get_or_create_customer(email, first_name, last_name)
        customer = customer_from_result(result)
        if customer is None:
            raise _gateway_error(result, "customer_failed", "Failed to create customer")
        return customer

    def _build_request(self, *, reference: str, amount: float, email: str, callback_url: str, metadata: Dict[str, Any]):
        try:
            return PaymentTransactionRequest(
                reference=reference,
                amount=amount,
                email=email,
                currency=self.settlement_currency,
                callback_url=callback_url,
                metadata=metadata,
            )
        except ValueError as exc:
            raise SettlementError("invalid_payment", str(exc)) from exc

    def _initialize(self, request: PaymentTransactionRequest) -> Dict[str, Any]:
        result = self.orchestrator.initialize_transaction(request)
        if not result.success:
            raise _gateway_error(result, "gateway_error")
        return result.data


def _gateway_error(result: GatewayResult, code: str, message: Optional[str] = None) -> SettlementError:
    if result.error == NOT_CONFIGURED_ERROR:
        return SettlementError("not_configured", NOT_CONFIGURED_ERROR, status.HTTP_503_SERVICE_UNAVAILABLE)
    if result.status_code == status.HTTP_400_BAD_REQUEST:
        return SettlementError(code, result.error or "Invalid request")
    return SettlementError(
        code,
        message or result.error or "Payment gateway error",
        status.HTTP_502_BAD_GATEWAY,
        detail={"gateway_error": result.error} if message and result.error else None,
    )


def _split_name(name: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    parts = (name or "").split()
    if not parts:
        return None, None
    return parts[0], " ".join(parts[1:]) or None


def _nested_id(value: object) -> Optional[str]:
    if isinstance(value, dict):
        value = value.get("id")
    return str(value) if value not in (None, "") else None


def _metadata(data: Dict[str, Any]) -> Dict[str, Any]:
    # Paystack echoes metadata back either as an object or as a JSON string.
    value = data.get("metadata")
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return {}
    return value if isinstance(value, dict) else {}


def _subscription_code(data: Dict[str, Any]) -> Optional[str]:
    code = data.get("subscription_code") or data.get("id")
    return str(code) if code else None


def _parse_date(value: object) -> Optional[date]:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        return None


__all__ = ["PLAN_PRICE_CURRENCY", "SettlementNotifier", "SettlementService"]
