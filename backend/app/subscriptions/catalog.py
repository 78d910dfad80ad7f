"""Static catalog definitions for plans, billing intervals and pricing."""
from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Mapping, Optional, Tuple

from .models import BillingInterval, PlanKey


@dataclass(frozen=True)
class BillingIntervalDefinition:
    """Describes a billing frequency and the discount it carries."""

    interval: BillingInterval
    label: str
    discount_percent: int
    months: int


@dataclass(frozen=True)
class SubscriptionPlan:
    """Describes a subscription plan, its per-interval price table and quota."""

    key: PlanKey
    name: str
    description: str
    prices: Mapping[BillingInterval, int]
    invoice_limit: int
    features: Tuple[str, ...] = ()
    popular: bool = False
    gateway_plan_codes: Mapping[BillingInterval, str] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return self.key.value

    @property
    def is_free(self) -> bool:
        return self.key == PlanKey.FREE

    def base_price(self, interval: BillingInterval) -> int:
        try:
            return self.prices[interval]
        except KeyError as exc:
            raise KeyError(f"Plan {self.id} has no price for {interval.value}") from exc

    def plan_code(self, interval: BillingInterval) -> Optional[str]:
        return self.gateway_plan_codes.get(interval)


BILLING_INTERVALS: Dict[BillingInterval, BillingIntervalDefinition] = {
    BillingInterval.MONTHLY: BillingIntervalDefinition(BillingInterval.MONTHLY, "Monthly", 0, 1),
    BillingInterval.QUARTERLY: BillingIntervalDefinition(BillingInterval.QUARTERLY, "Quarterly", 5, 3),
    BillingInterval.BIANNUAL: BillingIntervalDefinition(BillingInterval.BIANNUAL, "Bi-annual", 10, 6),
    BillingInterval.ANNUAL: BillingIntervalDefinition(BillingInterval.ANNUAL, "Annual", 20, 12),
}


def _price_table(monthly: int) -> Dict[BillingInterval, int]:
    return {interval: monthly * definition.months for interval, definition in BILLING_INTERVALS.items()}


def _plan_codes(prefix: str) -> Dict[BillingInterval, str]:
    return {interval: f"{prefix}_{interval.value}" for interval in BillingInterval}


PLAN_CATALOG: Dict[PlanKey, SubscriptionPlan] = {
    PlanKey.FREE: SubscriptionPlan(
        key=PlanKey.FREE,
        name="Free",
        description="Perfect for getting started",
        prices=_price_table(0),
        invoice_limit=2,
        features=(
            "2 invoices per month",
            "Basic expense tracking",
            "GHS currency support",
            "Mobile app access",
            "Email support",
        ),
    ),
    PlanKey.STARTER: SubscriptionPlan(
        key=PlanKey.STARTER,
        name="Starter",
        description="For growing businesses",
        prices=_price_table(129),
        invoice_limit=20,
        features=(
            "20 invoices per month",
            "Advanced expense tracking",
            "Multi-currency support",
            "PDF invoice generation",
            "Basic analytics",
            "Email support",
        ),
        popular=True,
        gateway_plan_codes=_plan_codes("starter"),
    ),
    PlanKey.PRO: SubscriptionPlan(
        key=PlanKey.PRO,
        name="Pro",
        description="For established businesses",
        prices=_price_table(489),
        invoice_limit=400,
        features=(
            "400 invoices per month",
            "Advanced analytics & reporting",
            "Custom invoice templates",
            "Team collaboration (up to 5 users)",
            "API access",
            "Priority support",
            "Recurring invoices",
            "Client portal",
        ),
        gateway_plan_codes=_plan_codes("pro"),
    ),
    PlanKey.ENTERPRISE: SubscriptionPlan(
        key=PlanKey.ENTERPRISE,
        name="Enterprise",
        description="For large organizations",
        prices=_price_table(999),
        invoice_limit=999999,
        features=(
            "Unlimited invoices",
            "Advanced reporting & analytics",
            "Custom branding & white-label",
            "Unlimited team members",
            "Full API access",
            "Dedicated support",
            "Custom integrations",
            "Advanced automation",
            "Priority feature requests",
        ),
        gateway_plan_codes=_plan_codes("enterprise"),
    ),
}


def get_plan_by_id(plan_id: object) -> Optional[SubscriptionPlan]:
    """Return the plan for ``plan_id`` or ``None`` when it is not in the catalog."""

    try:
        key = plan_id if isinstance(plan_id, PlanKey) else PlanKey(str(plan_id).strip().lower())
    except ValueError:
        return None
    return PLAN_CATALOG.get(key)


def parse_interval(value: object) -> BillingInterval:
    if isinstance(value, BillingInterval):
        return value
    try:
        return BillingInterval(str(value).strip().lower())
    except ValueError as exc:
        raise ValueError(f"Unsupported billing interval: {value!r}") from exc


def get_interval_definition(interval: BillingInterval) -> BillingIntervalDefinition:
    return BILLING_INTERVALS[interval]


def calculate_price(plan: SubscriptionPlan, interval: BillingInterval) -> int:
    """Billing amount for one interval, after the interval discount.

    For multi-month intervals this is the discounted total for the whole
    period, which is also the amount the gateway charges on renewal.
    """

    definition = get_interval_definition(interval)
    base = Decimal(plan.base_price(interval))
    discounted = base * (Decimal(100 - definition.discount_percent) / Decimal(100))
    return int(discounted.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def get_discount_amount(plan: SubscriptionPlan, interval: BillingInterval) -> int:
    """Savings against paying monthly for the same number of months."""

    definition = get_interval_definition(interval)
    if definition.months == 1:
        return 0
    return plan.base_price(BillingInterval.MONTHLY) * definition.months - calculate_price(plan, interval)


def advance_billing_date(current: date, interval: BillingInterval) -> date:
    """Next billing date, clamping the day to the end of shorter months."""

    months = get_interval_definition(interval).months
    month_index = current.month - 1 + months
    year = current.year + month_index // 12
    month = month_index % 12 + 1
    day = min(current.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


__all__ = [
    "BILLING_INTERVALS",
    "PLAN_CATALOG",
    "BillingIntervalDefinition",
    "SubscriptionPlan",
    "advance_billing_date",
    "calculate_price",
    "get_discount_amount",
    "get_interval_definition",
    "get_plan_by_id",
    "parse_interval",
]
