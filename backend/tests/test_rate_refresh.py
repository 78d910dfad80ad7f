"""Tests for the exchange rate warm-up job."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from backend import rate_refresh
from backend.app.currency import CurrencyCode, RateRefreshSummary
from backend.app.settlement import load_settlement_config


class StubResolver:
    def __init__(self, summary: RateRefreshSummary = None, error: Exception = None) -> None:
        self.summary = summary
        self.error = error
        self.bases = []

    def refresh_rates(self, base):
        self.bases.append(base)
        if self.error is not None:
            raise self.error
        return self.summary


@pytest.fixture(autouse=True)
def _reset_metrics(monkeypatch):
    rate_refresh._reset_metrics_for_testing()
    monkeypatch.setattr(rate_refresh, "get_settlement_config", lambda: load_settlement_config({}))
    yield
    rate_refresh._reset_metrics_for_testing()


def test_successful_run_updates_metrics(monkeypatch):
    now = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
    summary = RateRefreshSummary(processed=10, updated=10, completed_at=now)
    resolver = StubResolver(summary)
    monkeypatch.setattr(rate_refresh, "get_exchange_rate_resolver", lambda: resolver)

    assert rate_refresh.run_rate_refresh_job(now=now) is summary

    metrics = rate_refresh.get_rate_refresh_metrics()
    assert resolver.bases == [CurrencyCode.GHS]
    assert metrics["runs"] == 1
    assert metrics["pairs_updated"] == 10
    assert metrics["last_success_at"] == now.isoformat()
    assert metrics["needs_attention"] is False


def test_majority_failure_needs_attention(monkeypatch, caplog):
    summary = RateRefreshSummary(processed=10, updated=4, errors=6)
    monkeypatch.setattr(rate_refresh, "get_exchange_rate_resolver", lambda: StubResolver(summary))

    with caplog.at_level("ERROR", logger="backend.rate_refresh"):
        rate_refresh.run_rate_refresh_job()

    metrics = rate_refresh.get_rate_refresh_metrics()
    assert metrics["needs_attention"] is True
    assert metrics["last_error"] == "6 of 10 pairs failed"
    assert metrics["last_success_at"] is None
    assert "needs attention" in caplog.text


def test_unexpected_error_is_recorded_and_raised(monkeypatch):
    monkeypatch.setattr(
        rate_refresh,
        "get_exchange_rate_resolver",
        lambda: StubResolver(error=RuntimeError("boom")),
    )

    with pytest.raises(RuntimeError):
        rate_refresh.run_rate_refresh_job()

    metrics = rate_refresh.get_rate_refresh_metrics()
    assert metrics["last_error"] == "RuntimeError: boom"
    assert metrics["runs"] == 1
