"""API routes for invoice payments, subscriptions and exchange rates."""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Header, HTTPException, Query, Request, status
from fastapi.concurrency import run_in_threadpool

from ..currency import CurrencyCode, parse_currency
from ..payments import SIGNATURE_HEADER
from ..schemas.settlement import (
    ExchangeRateListResponse,
    ExchangeRateResponse,
    InvoicePaymentRequest,
    InvoicePaymentResponse,
    PaymentVerificationResponse,
    PlanListResponse,
    PlanOut,
    SubscriptionRequest,
    SubscriptionResponse,
    WebhookAckResponse,
)
from ..services.settlement import get_exchange_rate_resolver, get_settlement_service
from ..settlement import PLAN_PRICE_CURRENCY, SettlementError
from ..subscriptions import PLAN_CATALOG


router = APIRouter(prefix="/api", tags=["settlement"])


def _parse_currency_list(raw: Optional[str]) -> List[CurrencyCode]:
    if not raw:
        return [code for code in CurrencyCode]
    try:
        return [parse_currency(part) for part in raw.split(",") if part.strip()]
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.post("/pay/invoice", response_model=InvoicePaymentResponse)
def pay_invoice(payload: InvoicePaymentRequest) -> InvoicePaymentResponse:
    service = get_settlement_service()
    try:
        checkout = service.pay_invoice(payload.invoice_id, payload.client_email, payload.client_name)
    except SettlementError as exc:
        raise exc.to_http_exception() from exc
    return InvoicePaymentResponse.from_checkout(checkout)


@router.post("/subscribe/create", response_model=SubscriptionResponse)
def create_subscription(payload: SubscriptionRequest) -> SubscriptionResponse:
    service = get_settlement_service()
    try:
        checkout = service.subscribe(payload.plan_id, payload.interval, payload.user_email, payload.user_id)
    except SettlementError as exc:
        raise exc.to_http_exception() from exc
    return SubscriptionResponse.from_checkout(checkout)


@router.get("/pay/verify/{reference}", response_model=PaymentVerificationResponse)
def verify_payment(reference: str) -> PaymentVerificationResponse:
    service = get_settlement_service()
    try:
        data = service.verify_payment(reference)
    except SettlementError as exc:
        raise exc.to_http_exception() from exc
    return PaymentVerificationResponse(data=data)


@router.post("/webhook/paystack", response_model=WebhookAckResponse)
async def receive_paystack_webhook(
    request: Request,
    signature: Optional[str] = Header(None, alias=SIGNATURE_HEADER),
) -> WebhookAckResponse:
    # The signature covers the exact bytes sent, so the body is read raw.
    body = await request.body()
    service = get_settlement_service()
    try:
        event = await run_in_threadpool(service.handle_webhook, body, signature)
    except SettlementError as exc:
        raise exc.to_http_exception() from exc
    return WebhookAckResponse(event=event.event_type)


@router.get("/exchange-rates", response_model=ExchangeRateListResponse)
def list_exchange_rates(
    from_currency: str = Query(CurrencyCode.GHS.value, alias="from"),
    to_currency: Optional[str] = Query(None, alias="to"),
) -> ExchangeRateListResponse:
    try:
        base = parse_currency(from_currency)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    targets = [code for code in _parse_currency_list(to_currency) if code != base]
    results = get_exchange_rate_resolver().resolve_many(base, targets)
    return ExchangeRateListResponse(
        base=base,
        rates=[ExchangeRateResponse.from_result(result) for result in results.values()],
    )


@router.get("/subscriptions/plans", response_model=PlanListResponse)
def list_subscription_plans() -> PlanListResponse:
    return PlanListResponse(
        currency=PLAN_PRICE_CURRENCY,
        plans=[PlanOut.from_plan(plan) for plan in PLAN_CATALOG.values()],
    )


__all__ = ["router"]
