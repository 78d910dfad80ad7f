"""Scheduler integration for the exchange rate warm-up job."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from threading import Event, Lock, Thread
from typing import Dict, Optional

from backend.app.currency import RateRefreshSummary
from backend.app.services.settlement import get_exchange_rate_resolver, get_settlement_config

logger = logging.getLogger(__name__)

_scheduler_lock = Lock()
_worker: Optional["_RateRefreshWorker"] = None

_REFRESH_METRICS: Dict[str, object] = {
    "runs": 0,
    "pairs_updated": 0,
    "errors": 0,
    "last_run_at": None,
    "last_success_at": None,
    "last_error": None,
    "needs_attention": False,
}
_metrics_lock = Lock()


def _record_run(started_at: datetime, summary: RateRefreshSummary) -> None:
    with _metrics_lock:
        _REFRESH_METRICS["runs"] = int(_REFRESH_METRICS.get("runs", 0)) + 1
        _REFRESH_METRICS["pairs_updated"] = int(_REFRESH_METRICS.get("pairs_updated", 0)) + summary.updated
        _REFRESH_METRICS["errors"] = int(_REFRESH_METRICS.get("errors", 0)) + summary.errors
        _REFRESH_METRICS["last_run_at"] = started_at
        _REFRESH_METRICS["needs_attention"] = summary.needs_attention
        if summary.needs_attention:
            _REFRESH_METRICS["last_error"] = f"{summary.errors} of {summary.processed} pairs failed"
        else:
            _REFRESH_METRICS["last_success_at"] = summary.completed_at or started_at
            _REFRESH_METRICS["last_error"] = None


def _record_failure(started_at: datetime, error: Exception) -> None:
    with _metrics_lock:
        _REFRESH_METRICS["runs"] = int(_REFRESH_METRICS.get("runs", 0)) + 1
        _REFRESH_METRICS["last_run_at"] = started_at
        _REFRESH_METRICS["last_error"] = f"{type(error).__name__}: {error}"
        _REFRESH_METRICS["needs_attention"] = True


def run_rate_refresh_job(*, now: Optional[datetime] = None) -> RateRefreshSummary:
    current_time = now or datetime.now(timezone.utc)
    resolver = get_exchange_rate_resolver()
    base = get_settlement_config().settlement_currency
    try:
        summary = resolver.refresh_rates(base)
    except Exception as exc:
        _record_failure(current_time, exc)
        logger.exception("Exchange rate refresh job failed", extra={"base_currency": base.value})
        raise
    _record_run(current_time, summary)
    if summary.needs_attention:
        logger.error(
            "Exchange rate refresh needs attention",
            extra={
                "base_currency": base.value,
                "failed_pairs": summary.failed_pairs,
                "errors": summary.errors,
                "processed": summary.processed,
            },
        )
    return summary


class _RateRefreshWorker(Thread):
    def __init__(self, *, initial_delay: float, interval: float):
        super().__init__(daemon=True)
        self._initial_delay = max(0.0, initial_delay)
        self._interval = max(60.0, interval)
        self._stop = Event()

    def stop(self) -> None:
        self._stop.set()

    def run(self) -> None:  # pragma: no cover - thread execution
        if self._stop.wait(self._initial_delay):
            return
        while not self._stop.is_set():
            try:
                run_rate_refresh_job()
            except Exception:
                # Logged inside run_rate_refresh_job; keep the schedule.
                pass
            if self._stop.wait(self._interval):
                break


def start_rate_refresh_scheduler(*, initial_delay: float = 5.0) -> None:
    global _worker
    with _scheduler_lock:
        if _worker is not None:
            return
        interval = float(get_settlement_config().rate_cache_ttl_seconds)
        _worker = _RateRefreshWorker(initial_delay=initial_delay, interval=interval)
        _worker.start()
        logger.info(
            "Exchange rate refresh scheduler started",
            extra={"interval_seconds": interval, "initial_delay_seconds": initial_delay},
        )


def shutdown_rate_refresh_scheduler() -> None:
    global _worker
    with _scheduler_lock:
        if _worker is None:
            return
        _worker.stop()
        _worker.join(timeout=1.0)
        _worker = None
        logger.info("Exchange rate refresh scheduler stopped")


def get_rate_refresh_metrics() -> Dict[str, object]:
    with _metrics_lock:
        snapshot = dict(_REFRESH_METRICS)
    for key in ("last_run_at", "last_success_at"):
        value = snapshot.get(key)
        snapshot[key] = value.isoformat() if isinstance(value, datetime) else None
    return snapshot


def _reset_metrics_for_testing() -> None:
    with _metrics_lock:
        _REFRESH_METRICS.update(
            {
                "runs": 0,
                "pairs_updated": 0,
                "errors": 0,
                "last_run_at": None,
                "last_success_at": None,
                "last_error": None,
                "needs_attention": False,
            }
        )
