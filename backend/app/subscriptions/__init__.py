"""Subscription plan catalog and pricing."""

from .catalog import (
    BILLING_INTERVALS,
    PLAN_CATALOG,
    BillingIntervalDefinition,
    SubscriptionPlan,
    advance_billing_date,
    calculate_price,
    get_discount_amount,
    get_interval_definition,
    get_plan_by_id,
    parse_interval,
)
from .models import BillingInterval, PlanKey, SubscriptionStatus

__all__ = [
    "BILLING_INTERVALS",
    "PLAN_CATALOG",
    "BillingInterval",
    "BillingIntervalDefinition",
    "PlanKey",
    "SubscriptionPlan",
    "SubscriptionStatus",
    "advance_billing_date",
    "calculate_price",
    "get_discount_amount",
    "get_interval_definition",
    "get_plan_by_id",
    "parse_interval",
]
