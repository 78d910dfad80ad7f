"""Domain models for supported currencies and resolved exchange rates."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CurrencyCode(str, Enum):
    """Currencies accepted for invoices, expenses and settlement."""

    GHS = "GHS"
    USD = "USD"
    GBP = "GBP"
    EUR = "EUR"
    CAD = "CAD"
    AUD = "AUD"


DEFAULT_SETTLEMENT_CURRENCY = CurrencyCode.GHS

CurrencyPair = Tuple[CurrencyCode, CurrencyCode]


def parse_currency(value: object) -> CurrencyCode:
    """Return the :class:`CurrencyCode` for ``value`` or raise ``ValueError``."""

    if isinstance(value, CurrencyCode):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Unsupported currency: {value!r}")
    try:
        return CurrencyCode(value.strip().upper())
    except ValueError as exc:
        raise ValueError(f"Unsupported currency: {value!r}") from exc


def coerce_currency(value: object, default: CurrencyCode = DEFAULT_SETTLEMENT_CURRENCY) -> CurrencyCode:
    """Like :func:`parse_currency` but falls back to ``default`` for unknown codes."""

    try:
        return parse_currency(value)
    except ValueError:
        return default


class ExchangeRateResult(BaseModel):
    """A resolved rate for one ordered currency pair."""

    from_currency: CurrencyCode = Field(alias="from")
    to_currency: CurrencyCode = Field(alias="to")
    rate: float = Field(gt=0)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    degraded: bool = False

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("from_currency", "to_currency", mode="before")
    @classmethod
    def _normalize_code(cls, value: object) -> CurrencyCode:
        return parse_currency(value)

    @property
    def pair(self) -> CurrencyPair:
        return (self.from_currency, self.to_currency)

    @property
    def is_identity(self) -> bool:
        return self.from_currency == self.to_currency

    def as_degraded(self) -> "ExchangeRateResult":
        """Return a copy flagged as served from a fallback path."""

        return self.model_copy(update={"degraded": True})


class RateRefreshSummary(BaseModel):
    """Outcome of a bulk cache refresh against the rate provider."""

    processed: int = 0
    updated: int = 0
    errors: int = 0
    pairs: list[str] = Field(default_factory=list)
    failed_pairs: list[str] = Field(default_factory=list)
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True)

    @property
    def needs_attention(self) -> bool:
        """``True`` when more than half of the processed pairs failed."""

        return self.processed > 0 and self.errors > self.processed * 0.5


def pair_label(from_currency: CurrencyCode, to_currency: CurrencyCode) -> str:
    return f"{from_currency.value}_{to_currency.value}"
