"""Invoice and subscription settlement through the payment gateway."""

from .config import SettlementConfig, load_settlement_config
from .models import (
    InvoiceCheckout,
    InvoiceStatus,
    SettlementError,
    SettlementInvoice,
    SubscriptionCheckout,
    SubscriptionRecord,
)
from .repository import PostgresSettlementRepository, SettlementRepository
from .service import PLAN_PRICE_CURRENCY, SettlementNotifier, SettlementService

__all__ = [
    "InvoiceCheckout",
    "InvoiceStatus",
    "PLAN_PRICE_CURRENCY",
    "PostgresSettlementRepository",
    "SettlementConfig",
    "SettlementError",
    "SettlementInvoice",
    "SettlementNotifier",
    "SettlementRepository",
    "SettlementService",
    "SubscriptionCheckout",
    "SubscriptionRecord",
    "load_settlement_config",
]
