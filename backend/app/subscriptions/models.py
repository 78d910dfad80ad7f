"""Closed identifiers for subscription plans and billing intervals."""
from __future__ import annotations

from enum import Enum


class PlanKey(str, Enum):
    """Canonical identifiers for subscription plans."""

    FREE = "free"
    STARTER = "starter"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class BillingInterval(str, Enum):
    """Supported billing frequencies."""

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    BIANNUAL = "biannual"
    ANNUAL = "annual"


class SubscriptionStatus(str, Enum):
    """Lifecycle of a locally tracked subscription."""

    PENDING = "pending"
    ACTIVE = "active"
    INACTIVE = "inactive"
    PAST_DUE = "past_due"
    CANCELLED = "cancelled"
