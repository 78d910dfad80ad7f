"""Tests for the in-memory exchange rate cache."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from backend.app.currency import CurrencyCode, ExchangeRateResult, InMemoryRateCache


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def _rate(value: float = 0.08) -> ExchangeRateResult:
    return ExchangeRateResult(
        from_currency=CurrencyCode.GHS,
        to_currency=CurrencyCode.USD,
        rate=value,
    )


PAIR = (CurrencyCode.GHS, CurrencyCode.USD)


def test_entry_is_fresh_until_ttl_elapses() -> None:
    clock = FakeClock(datetime(2024, 5, 1, tzinfo=timezone.utc))
    cache = InMemoryRateCache(ttl_seconds=3600, clock=clock)
    stored = _rate()
    cache.set(stored)

    clock.advance(minutes=59, seconds=59)
    assert cache.get_fresh(PAIR) == stored

    clock.advance(seconds=1)
    assert cache.get_fresh(PAIR) is None


def test_expired_entry_remains_readable_for_fallback() -> None:
    clock = FakeClock(datetime(2024, 5, 1, tzinfo=timezone.utc))
    cache = InMemoryRateCache(ttl_seconds=60, clock=clock)
    cache.set(_rate(0.081))

    clock.advance(hours=5)

    entry = cache.get(PAIR)
    assert entry is not None
    assert entry.is_expired(clock())
    assert entry.value.rate == pytest.approx(0.081)
    assert len(cache) == 1


def test_set_replaces_entry_and_restarts_ttl() -> None:
    clock = FakeClock(datetime(2024, 5, 1, tzinfo=timezone.utc))
    cache = InMemoryRateCache(ttl_seconds=60, clock=clock)
    cache.set(_rate(0.08))
    clock.advance(seconds=90)
    cache.set(_rate(0.09))

    fresh = cache.get_fresh(PAIR)
    assert fresh is not None
    assert fresh.rate == pytest.approx(0.09)
    assert cache.get(PAIR).expires_at == clock() + timedelta(seconds=60)


def test_pairs_are_directional() -> None:
    cache = InMemoryRateCache()
    cache.set(_rate())

    assert cache.get_fresh((CurrencyCode.USD, CurrencyCode.GHS)) is None


def test_ttl_must_be_positive() -> None:
    with pytest.raises(ValueError):
        InMemoryRateCache(ttl_seconds=0)
