"""Tests for the exchange rate resolver fallback cascade."""
from __future__ import annotations

import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

import pytest

from backend.app.currency import (
    CurrencyCode,
    ExchangeRateProviderError,
    ExchangeRateResolver,
    InMemoryRateCache,
    convert,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeRateProvider:
    def __init__(self, tables: Dict[CurrencyCode, Dict[str, Any]]) -> None:
        self.tables = tables
        self.calls: List[CurrencyCode] = []
        self.fail = False
        self.delay = 0.0

    def fetch_latest(self, base: CurrencyCode) -> Dict[str, Any]:
        self.calls.append(base)
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            raise ExchangeRateProviderError("provider unavailable")
        return {"base": base.value, "rates": dict(self.tables.get(base, {}))}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def provider() -> FakeRateProvider:
    return FakeRateProvider(
        {
            CurrencyCode.GHS: {"USD": 0.08, "GBP": 0.065, "EUR": 0.075},
            CurrencyCode.USD: {"GHS": 12.5, "EUR": 0.92},
        }
    )


@pytest.fixture
def resolver(provider: FakeRateProvider, clock: FakeClock) -> ExchangeRateResolver:
    cache = InMemoryRateCache(ttl_seconds=3600, clock=clock)
    return ExchangeRateResolver(provider, cache, clock=clock)


def test_same_currency_is_identity_without_provider_call(resolver, provider) -> None:
    result = resolver.resolve("USD", "USD")

    assert result.rate == 1.0
    assert not result.degraded
    assert provider.calls == []


def test_fresh_cache_hit_skips_provider(resolver, provider, clock) -> None:
    first = resolver.resolve(CurrencyCode.GHS, CurrencyCode.USD)
    clock.advance(minutes=30)
    second = resolver.resolve(CurrencyCode.GHS, CurrencyCode.USD)

    assert first.rate == pytest.approx(0.08)
    assert second.rate == pytest.approx(0.08)
    assert provider.calls == [CurrencyCode.GHS]


def test_expired_entry_triggers_refetch(resolver, provider, clock) -> None:
    resolver.resolve(CurrencyCode.GHS, CurrencyCode.USD)
    provider.tables[CurrencyCode.GHS]["USD"] = 0.081
    clock.advance(hours=1, seconds=1)

    result = resolver.resolve(CurrencyCode.GHS, CurrencyCode.USD)

    assert result.rate == pytest.approx(0.081)
    assert not result.degraded
    assert len(provider.calls) == 2


def test_provider_failure_serves_stale_rate(resolver, provider, clock) -> None:
    resolver.resolve(CurrencyCode.GHS, CurrencyCode.USD)
    clock.advance(hours=3)
    provider.fail = True

    result = resolver.resolve(CurrencyCode.GHS, CurrencyCode.USD)

    assert result.rate == pytest.approx(0.08)
    assert result.degraded


def test_provider_failure_without_cache_falls_back_to_identity(resolver, provider, caplog) -> None:
    provider.fail = True

    with caplog.at_level("WARNING", logger="exchange_rates"):
        result = resolver.resolve(CurrencyCode.GHS, CurrencyCode.GBP)

    assert result.rate == 1.0
    assert result.degraded
    assert result.from_currency == CurrencyCode.GHS
    assert result.to_currency == CurrencyCode.GBP
    assert "fallback exchange rate of 1" in caplog.text


def test_malformed_payloads_are_absorbed(provider, clock) -> None:
    cache = InMemoryRateCache(clock=clock)
    resolver = ExchangeRateResolver(provider, cache, clock=clock)

    provider.tables[CurrencyCode.EUR] = {"GHS": "13.4"}
    assert resolver.resolve(CurrencyCode.EUR, CurrencyCode.GHS).degraded

    provider.tables[CurrencyCode.CAD] = {"GHS": 0}
    assert resolver.resolve(CurrencyCode.CAD, CurrencyCode.GHS).degraded

    assert resolver.resolve(CurrencyCode.USD, CurrencyCode.AUD).degraded
    assert len(cache) == 0


def test_unsupported_code_is_treated_as_default(resolver, provider) -> None:
    result = resolver.resolve("XYZ", "USD")

    assert result.from_currency == CurrencyCode.GHS
    assert result.rate == pytest.approx(0.08)


def test_concurrent_misses_share_one_provider_call(resolver, provider) -> None:
    provider.delay = 0.05
    results = []

    def worker() -> None:
        results.append(resolver.resolve(CurrencyCode.GHS, CurrencyCode.USD))

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert provider.calls == [CurrencyCode.GHS]
    assert {result.rate for result in results} == {0.08}


def test_resolve_many_returns_rate_per_target(resolver) -> None:
    results = resolver.resolve_many(CurrencyCode.GHS, ["USD", "GBP", "GHS"])

    assert results[CurrencyCode.USD].rate == pytest.approx(0.08)
    assert results[CurrencyCode.GBP].rate == pytest.approx(0.065)
    assert results[CurrencyCode.GHS].rate == 1.0


def test_refresh_rates_summarizes_outcome(resolver, provider) -> None:
    summary = resolver.refresh_rates(CurrencyCode.GHS, [CurrencyCode.USD, CurrencyCode.EUR])

    # GHS->USD, GHS->EUR and USD->GHS resolve; EUR->GHS has no table.
    assert summary.processed == 4
    assert summary.updated == 3
    assert summary.errors == 1
    assert summary.failed_pairs == ["EUR_GHS"]
    assert "USD_GHS" in summary.pairs
    assert summary.completed_at is not None
    assert not summary.needs_attention


def test_refresh_rates_flags_majority_failure(resolver, provider) -> None:
    provider.fail = True

    summary = resolver.refresh_rates(CurrencyCode.GHS, [CurrencyCode.USD])

    assert summary.errors == 2
    assert summary.updated == 0
    assert summary.needs_attention


def test_refresh_rates_bypasses_fresh_cache(resolver, provider) -> None:
    resolver.resolve(CurrencyCode.GHS, CurrencyCode.USD)
    provider.tables[CurrencyCode.GHS]["USD"] = 0.09

    resolver.refresh_rates(CurrencyCode.GHS, [CurrencyCode.USD])

    assert resolver.resolve(CurrencyCode.GHS, CurrencyCode.USD).rate == pytest.approx(0.09)


def test_convert_round_trip_within_tolerance() -> None:
    provider = FakeRateProvider(
        {
            CurrencyCode.GHS: {"USD": 0.08},
            CurrencyCode.USD: {"GHS": 12.5},
        }
    )
    resolver = ExchangeRateResolver(provider, InMemoryRateCache())

    usd = convert(1000, "GHS", "USD", resolver)
    back = convert(usd, "USD", "GHS", resolver)

    assert usd == pytest.approx(80.0)
    assert back == pytest.approx(1000, rel=0.01)
