"""Application wiring for exchange rates, the payment gateway and settlement."""
from __future__ import annotations

import logging
from functools import lru_cache

from ..currency import ExchangeRateResolver, HTTPExchangeRateProvider, InMemoryRateCache
from ..payments import PaymentOrchestrator, PaystackClient
from ..settlement import (
    PostgresSettlementRepository,
    SettlementConfig,
    SettlementInvoice,
    SettlementNotifier,
    SettlementService,
    SubscriptionRecord,
    load_settlement_config,
)
from ..subscriptions import SubscriptionPlan


logger = logging.getLogger("settlement")


class LoggingSettlementNotifier(SettlementNotifier):
    """Notifier that records settlement notifications to the application logger."""

    def notify_payment_received(self, invoice: SettlementInvoice, reference: str) -> None:
        logger.info(
            "Payment received for invoice %s reference=%s amount=%s %s",
            invoice.invoice_number or invoice.invoice_id,
            reference,
            invoice.amount,
            invoice.currency.value,
        )

    def notify_subscription_confirmed(self, subscription: SubscriptionRecord, plan: SubscriptionPlan) -> None:
        logger.info(
            "Subscription %s confirmed user=%s plan=%s next_billing=%s",
            subscription.subscription_id,
            subscription.user_id,
            plan.name,
            subscription.next_billing_date,
        )

    def notify_subscription_past_due(self, subscription: SubscriptionRecord) -> None:
        logger.warning(
            "Subscription %s past due user=%s",
            subscription.subscription_id,
            subscription.user_id,
        )


@lru_cache(maxsize=1)
def get_settlement_config() -> SettlementConfig:
    return load_settlement_config()


@lru_cache(maxsize=1)
def get_exchange_rate_resolver() -> ExchangeRateResolver:
    config = get_settlement_config()
    provider = HTTPExchangeRateProvider(
        base_url=config.exchange_rate_api_base,
        api_key=config.exchange_rate_api_key,
        timeout=config.http_timeout_seconds,
    )
    cache = InMemoryRateCache(ttl_seconds=config.rate_cache_ttl_seconds)
    return ExchangeRateResolver(provider, cache, default_currency=config.settlement_currency)


@lru_cache(maxsize=1)
def get_settlement_service() -> SettlementService:
    config = get_settlement_config()
    client = None
    if config.gateway_configured:
        client = PaystackClient(
            config.paystack_secret_key,
            base_url=config.paystack_base_url,
            timeout=config.http_timeout_seconds,
        )
    else:
        logger.warning("PAYSTACK_SECRET_KEY is not set; payment endpoints will be unavailable")
    orchestrator = PaymentOrchestrator(client, webhook_secret=config.paystack_secret_key)
    service = SettlementService(
        repository=PostgresSettlementRepository(),
        resolver=get_exchange_rate_resolver(),
        orchestrator=orchestrator,
        notifier=LoggingSettlementNotifier(),
        settlement_currency=config.settlement_currency,
        app_base_url=config.app_base_url,
    )
    return service


__all__ = [
    "LoggingSettlementNotifier",
    "get_exchange_rate_resolver",
    "get_settlement_config",
    "get_settlement_service",
]
