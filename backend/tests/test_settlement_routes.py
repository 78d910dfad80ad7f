from __future__ import annotations

from types import SimpleNamespace
from typing import Dict

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from backend.app.currency import CurrencyCode, ExchangeRateResult
from backend.app.payments import WebhookEvent
from backend.app.routes import settlement as settlement_routes
from backend.app.schemas.settlement import InvoicePaymentRequest, SubscriptionRequest
from backend.app.settlement import InvoiceCheckout, SettlementError, SubscriptionCheckout
from backend.app.subscriptions import PlanKey


def _install_service(monkeypatch, **methods) -> None:
    service = SimpleNamespace(**methods)
    monkeypatch.setattr(settlement_routes, "get_settlement_service", lambda: service)


def _client() -> TestClient:
    app = FastAPI()
    app.include_router(settlement_routes.router)
    return TestClient(app)


def test_pay_invoice_returns_checkout(monkeypatch):
    captured: Dict[str, object] = {}

    def fake_pay_invoice(invoice_id, client_email, client_name=None):
        captured.update(invoice_id=invoice_id, client_email=client_email, client_name=client_name)
        return InvoiceCheckout(
            reference="INV_1_ABCDEF",
            authorization_url="https://checkout.paystack.com/abc",
            payment_amount=1250.0,
            payment_currency=CurrencyCode.GHS,
            original_amount=100,
            original_currency=CurrencyCode.USD,
            exchange_rate=12.5,
        )

    _install_service(monkeypatch, pay_invoice=fake_pay_invoice)

    response = settlement_routes.pay_invoice(
        InvoicePaymentRequest(invoiceId="inv_1", clientEmail="payer@example.com", clientName="Ama")
    )

    assert response.authorization_url == "https://checkout.paystack.com/abc"
    assert response.payment_amount == 1250.0
    assert response.model_dump(by_alias=True)["paymentCurrency"] == CurrencyCode.GHS
    assert captured == {"invoice_id": "inv_1", "client_email": "payer@example.com", "client_name": "Ama"}


def test_pay_invoice_maps_settlement_errors(monkeypatch):
    def fake_pay_invoice(invoice_id, client_email, client_name=None):
        raise SettlementError("invoice_not_found", "Invoice not found", 404)

    _install_service(monkeypatch, pay_invoice=fake_pay_invoice)

    with pytest.raises(HTTPException) as excinfo:
        settlement_routes.pay_invoice(InvoicePaymentRequest(invoiceId="missing", clientEmail="payer@example.com"))

    assert excinfo.value.status_code == 404
    assert excinfo.value.detail == {"error": "invoice_not_found", "message": "Invoice not found"}


def test_free_subscription_has_no_redirect(monkeypatch):
    def fake_subscribe(plan_id, interval, user_email, user_id):
        return SubscriptionCheckout(
            plan_key=PlanKey.FREE,
            plan_name="Free",
            message="Successfully upgraded to free plan",
            currency=CurrencyCode.GHS,
        )

    _install_service(monkeypatch, subscribe=fake_subscribe)

    response = settlement_routes.create_subscription(
        SubscriptionRequest(planId="free", interval="monthly", userEmail="payer@example.com", userId="user_1")
    )

    assert response.authorization_url is None
    assert response.message == "Successfully upgraded to free plan"
    assert response.plan_id == "free"


def test_verify_payment_wraps_gateway_data(monkeypatch):
    _install_service(monkeypatch, verify_payment=lambda reference: {"reference": reference, "status": "success"})

    response = settlement_routes.verify_payment("INV_1")

    assert response.data == {"reference": "INV_1", "status": "success"}


def test_webhook_passes_raw_body_and_signature(monkeypatch):
    captured: Dict[str, object] = {}

    def fake_handle_webhook(body, signature):
        captured.update(body=body, signature=signature)
        return WebhookEvent(event="charge.success")

    _install_service(monkeypatch, handle_webhook=fake_handle_webhook)
    raw = b'{"event":  "charge.success", "data": {}}'

    response = _client().post(
        "/api/webhook/paystack",
        content=raw,
        headers={"x-paystack-signature": "abc123", "content-type": "application/json"},
    )

    assert response.status_code == 200
    assert response.json() == {"received": True, "event": "charge.success"}
    assert captured == {"body": raw, "signature": "abc123"}


def test_webhook_rejection_is_bad_request(monkeypatch):
    def fake_handle_webhook(body, signature):
        raise SettlementError("invalid_signature", "Missing signature")

    _install_service(monkeypatch, handle_webhook=fake_handle_webhook)

    response = _client().post("/api/webhook/paystack", content=b"{}")

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "invalid_signature"


def test_exchange_rates_endpoint(monkeypatch):
    class StubResolver:
        def resolve_many(self, base, targets):
            return {
                target: ExchangeRateResult(from_currency=base, to_currency=target, rate=0.08)
                for target in targets
            }

    monkeypatch.setattr(settlement_routes, "get_exchange_rate_resolver", lambda: StubResolver())

    response = _client().get("/api/exchange-rates", params={"from": "ghs", "to": "USD,EUR,GHS"})

    assert response.status_code == 200
    body = response.json()
    assert body["base"] == "GHS"
    assert [rate["to"] for rate in body["rates"]] == ["USD", "EUR"]
    assert body["rates"][0]["from"] == "GHS"


def test_exchange_rates_rejects_unsupported_currency():
    response = _client().get("/api/exchange-rates", params={"from": "NGN"})

    assert response.status_code == 400


def test_plan_listing_includes_discounted_prices():
    response = settlement_routes.list_subscription_plans()

    starter = next(plan for plan in response.plans if plan.id == "starter")
    annual = next(price for price in starter.prices if price.interval.value == "annual")
    assert response.currency == CurrencyCode.GHS
    assert annual.price == 1238
    assert annual.savings == 310
    assert annual.discount_percent == 20
