"""Exchange rate resolution with caching and degraded-mode fallback."""
from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from .cache import RateCache
from .models import (
    CurrencyCode,
    CurrencyPair,
    DEFAULT_SETTLEMENT_CURRENCY,
    ExchangeRateResult,
    RateRefreshSummary,
    coerce_currency,
    pair_label,
)
from .provider import ExchangeRateProvider, ExchangeRateProviderError

logger = logging.getLogger("exchange_rates")


class ExchangeRateResolver:
    """Resolves rates through cache, provider, stale cache and identity, in that order.

    :meth:`resolve` never raises. A result flagged ``degraded`` came from an
    expired cache entry or is the synthetic identity rate; with mismatched
    currencies and ``rate == 1`` the caller should treat the conversion as
    unverified.
    """

    def __init__(
        self,
        provider: ExchangeRateProvider,
        cache: RateCache,
        *,
        default_currency: CurrencyCode = DEFAULT_SETTLEMENT_CURRENCY,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._provider = provider
        self._cache = cache
        self._default_currency = default_currency
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._locks_guard = threading.Lock()
        self._pair_locks: Dict[CurrencyPair, threading.Lock] = {}

    def resolve(self, from_currency: object, to_currency: object) -> ExchangeRateResult:
        source = self._coerce(from_currency)
        target = self._coerce(to_currency)
        if source == target:
            return ExchangeRateResult(
                from_currency=source,
                to_currency=target,
                rate=1.0,
                timestamp=self._clock(),
            )

        pair = (source, target)
        cached = self._cache.get_fresh(pair)
        if cached is not None:
            logger.debug("Exchange rate cache hit %s", pair_label(*pair))
            return cached

        # Concurrent misses for one pair queue here; later callers find the
        # entry stored by the first and skip the provider call.
        with self._pair_lock(pair):
            cached = self._cache.get_fresh(pair)
            if cached is not None:
                return cached
            try:
                return self._fetch_and_store(pair)
            except Exception as exc:  # provider failures are absorbed below
                return self._fallback(pair, exc)

    def resolve_many(
        self,
        from_currency: object,
        targets: Iterable[object],
    ) -> Dict[CurrencyCode, ExchangeRateResult]:
        results: Dict[CurrencyCode, ExchangeRateResult] = {}
        for target in targets:
            result = self.resolve(from_currency, target)
            results[result.to_currency] = result
        return results

    def refresh_rates(
        self,
        base: CurrencyCode = DEFAULT_SETTLEMENT_CURRENCY,
        currencies: Optional[Iterable[CurrencyCode]] = None,
    ) -> RateRefreshSummary:
        """Force-fetch ``base -> c`` and ``c -> base`` for each currency.

        Used by the scheduled warm-up job. Failed pairs keep whatever entry
        the cache already holds.
        """

        summary = RateRefreshSummary()
        targets = [c for c in (currencies or list(CurrencyCode)) if c != base]
        pairs = [(base, c) for c in targets] + [(c, base) for c in targets]
        for pair in pairs:
            summary.processed += 1
            label = pair_label(*pair)
            with self._pair_lock(pair):
                try:
                    self._fetch_and_store(pair)
                except Exception as exc:
                    summary.errors += 1
                    summary.failed_pairs.append(label)
                    logger.warning("Exchange rate refresh failed for %s: %s", label, exc)
                    continue
            summary.updated += 1
            summary.pairs.append(label)

        summary.completed_at = self._clock()
        log = logger.warning if summary.needs_attention else logger.info
        log(
            "Exchange rate refresh completed updated=%s processed=%s errors=%s",
            summary.updated,
            summary.processed,
            summary.errors,
        )
        return summary

    def _fetch_and_store(self, pair: CurrencyPair) -> ExchangeRateResult:
        source, target = pair
        payload = self._provider.fetch_latest(source)
        rate = _extract_rate(payload, target)
        result = ExchangeRateResult(
            from_currency=source,
            to_currency=target,
            rate=rate,
            timestamp=_parse_provider_date(payload.get("date")) or self._clock(),
        )
        self._cache.set(result)
        logger.info("Resolved exchange rate %s=%s", pair_label(*pair), rate)
        return result

    def _fallback(self, pair: CurrencyPair, exc: Exception) -> ExchangeRateResult:
        label = pair_label(*pair)
        entry = self._cache.get(pair)
        if entry is not None:
            logger.warning(
                "Using expired cached exchange rate for %s after provider failure: %s",
                label,
                exc,
                extra={"rate_pair": label, "rate_stored_at": entry.stored_at.isoformat()},
            )
            return entry.value.as_degraded()

        logger.warning(
            "Using fallback exchange rate of 1 for %s after provider failure: %s",
            label,
            exc,
            extra={"rate_pair": label},
        )
        return ExchangeRateResult(
            from_currency=pair[0],
            to_currency=pair[1],
            rate=1.0,
            timestamp=self._clock(),
            degraded=True,
        )

    def _pair_lock(self, pair: CurrencyPair) -> threading.Lock:
        with self._locks_guard:
            lock = self._pair_locks.get(pair)
            if lock is None:
                lock = self._pair_locks[pair] = threading.Lock()
            return lock

    def _coerce(self, value: object) -> CurrencyCode:
        code = coerce_currency(value, self._default_currency)
        if not isinstance(value, CurrencyCode) and str(value).strip().upper() != code.value:
            logger.warning("Unsupported currency %r treated as %s", value, code.value)
        return code


def _extract_rate(payload: Mapping[str, Any], target: CurrencyCode) -> float:
    rates = payload.get("rates") if isinstance(payload, Mapping) else None
    if not isinstance(rates, Mapping):
        raise ExchangeRateProviderError("Invalid exchange rate response format")
    rate = rates.get(target.value)
    if isinstance(rate, bool) or not isinstance(rate, (int, float)):
        raise ExchangeRateProviderError(f"Exchange rate not found for {target.value}")
    if rate <= 0:
        raise ExchangeRateProviderError(f"Exchange rate for {target.value} must be positive")
    return float(rate)


def _parse_provider_date(value: object) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


__all__ = ["ExchangeRateResolver"]
