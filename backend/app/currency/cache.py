"""Time-bounded storage for resolved exchange rates."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Protocol

from .models import CurrencyPair, ExchangeRateResult

DEFAULT_RATE_TTL_SECONDS = 60 * 60


@dataclass(frozen=True)
class RateCacheEntry:
    value: ExchangeRateResult
    stored_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class RateCache(Protocol):
    """Cache operations used by the exchange rate resolver."""

    def get(self, pair: CurrencyPair) -> Optional[RateCacheEntry]:
        ...

    def get_fresh(self, pair: CurrencyPair) -> Optional[ExchangeRateResult]:
        ...

    def set(self, result: ExchangeRateResult) -> RateCacheEntry:
        ...


class InMemoryRateCache:
    """Process-local rate cache.

    Entries are only ever replaced, never evicted, so an expired entry stays
    readable through :meth:`get` for stale-while-error fallbacks. Freshness is
    judged against the injected ``clock``.
    """

    def __init__(
        self,
        *,
        ttl_seconds: int = DEFAULT_RATE_TTL_SECONDS,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._entries: Dict[CurrencyPair, RateCacheEntry] = {}

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def now(self) -> datetime:
        return self._clock()

    def get(self, pair: CurrencyPair) -> Optional[RateCacheEntry]:
        return self._entries.get(pair)

    def get_fresh(self, pair: CurrencyPair) -> Optional[ExchangeRateResult]:
        entry = self._entries.get(pair)
        if entry is None or entry.is_expired(self._clock()):
            return None
        return entry.value

    def set(self, result: ExchangeRateResult) -> RateCacheEntry:
        now = self._clock()
        entry = RateCacheEntry(value=result, stored_at=now, expires_at=now + self._ttl)
        self._entries[result.pair] = entry
        return entry

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()
