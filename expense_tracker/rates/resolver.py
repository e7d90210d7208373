"""
Exchange Rate Resolver

Answers "what is 1 unit of X worth in Y, as of day D?" from a sparse local
cache, and keeps that cache fresh.

DESIGN DECISION: The cache only ever holds complete rate sets for
whichever base currencies were refreshed (one API call per base returns
every target). Any other pair is derived from those sets. Resolution tries,
in order:

1. direct        cached (from -> to)
2. reverse       1 / cached (to -> from)
3. preferred     (U -> to) / (U -> from), U = the user's preferred base
4. any base      same triangulation through every other cached base

Each lookup first tries the requested day and then falls back to the most
recent day cached for that pair. The first strategy that produces a value
wins.

CRITICAL: A pair that cannot be resolved returns None. Callers must show
"rate unavailable"; 1.0 or 0.0 are never substituted.
"""

from datetime import date, datetime, timedelta
from typing import Awaitable, Callable, Optional, Union

import structlog
from pydantic import ValidationError

from expense_tracker.audit import AuditLogger, create_correlation_id
from expense_tracker.config import get_settings, normalize_currency_code
from expense_tracker.models.rates import CachedRate, RefreshErrorType, RefreshResult
from expense_tracker.services.rates import (
    InvalidInputError,
    RemoteFailureError,
    RemoteRateSource,
)
from expense_tracker.services.settings import SettingsProvider
from expense_tracker.services.storage import RateCacheStorageInterface


logger = structlog.get_logger(__name__)

DateLike = Union[date, datetime, None]

# (from_currency, to_currency, day) -> rate or None
RateStrategy = Callable[[str, str, Optional[date]], Awaitable[Optional[float]]]


def _as_date(value: DateLike) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    return value


class RateResolver:
    """
    Resolves conversion factors from the rate cache and manages its
    freshness.

    Holds no state of its own beyond its collaborators; concurrent calls
    are safe as long as the cache store's upsert is atomic per key.
    """

    def __init__(
        self,
        cache: RateCacheStorageInterface,
        settings: SettingsProvider,
        remote: Optional[RemoteRateSource] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = datetime.now,
        refresh_interval_hours: Optional[int] = None,
        retention_days: Optional[int] = None,
    ):
        rate_settings = get_settings().exchange_rate

        self._cache = cache
        self._settings = settings
        self._remote = remote
        self._audit_logger = audit_logger
        self._clock = clock
        self._refresh_interval_hours = (
            refresh_interval_hours
            if refresh_interval_hours is not None
            else rate_settings.refresh_interval_hours
        )
        self._retention_days = (
            retention_days if retention_days is not None else rate_settings.retention_days
        )

        self._strategies: list[tuple[str, RateStrategy]] = [
            ("direct", self._direct),
            ("reverse", self._reverse),
            ("preferred_base", self._via_preferred_base),
            ("any_cached_base", self._via_any_cached_base),
        ]

    # =========================================================================
    # RESOLUTION
    # =========================================================================

    async def resolve_rate(
        self,
        from_currency: str,
        to_currency: str,
        on: DateLike = None,
    ) -> Optional[float]:
        """
        Rate to multiply an amount in from_currency by to get to_currency.

        Args:
            from_currency: ISO code of the source currency
            to_currency: ISO code of the target currency
            on: Day (or datetime) the rate should apply to; None = latest

        Returns:
            The rate, or None when no strategy can produce one
        """
        src = normalize_currency_code(from_currency)
        dst = normalize_currency_code(to_currency)
        if src == dst:
            return 1.0

        day = _as_date(on)
        for name, strategy in self._strategies:
            rate = await strategy(src, dst, day)
            if rate is not None:
                logger.debug(
                    "rate_resolved",
                    from_currency=src,
                    to_currency=dst,
                    date=day.isoformat() if day else None,
                    strategy=name,
                    rate=rate,
                )
                return rate

        logger.info(
            "rate_not_found",
            from_currency=src,
            to_currency=dst,
            date=day.isoformat() if day else None,
        )
        if self._audit_logger:
            await self._audit_logger.log_rate_not_found(
                from_currency=src,
                to_currency=dst,
                on_date=day.isoformat() if day else None,
            )
        return None

    async def _lookup(
        self,
        base: str,
        target: str,
        day: Optional[date],
    ) -> Optional[CachedRate]:
        """Rate for the exact day, else the most recent day cached."""
        rate = await self._cache.get(base, target, day)
        if rate is None and day is not None:
            rate = await self._cache.get(base, target, None)
        return rate

    async def _direct(self, src: str, dst: str, day: Optional[date]) -> Optional[float]:
        cached = await self._lookup(src, dst, day)
        if cached is None or cached.rate <= 0:
            return None
        return cached.rate

    async def _reverse(self, src: str, dst: str, day: Optional[date]) -> Optional[float]:
        cached = await self._lookup(dst, src, day)
        if cached is None or cached.rate == 0:
            return None
        return 1.0 / cached.rate

    async def _triangulate(
        self,
        pivot: str,
        src: str,
        dst: str,
        day: Optional[date],
    ) -> Optional[float]:
        """(pivot -> dst) / (pivot -> src)."""
        to_src = await self._lookup(pivot, src, day)
        if to_src is None or to_src.rate == 0:
            return None
        to_dst = await self._lookup(pivot, dst, day)
        if to_dst is None:
            return None
        return to_dst.rate / to_src.rate

    async def _via_preferred_base(
        self,
        src: str,
        dst: str,
        day: Optional[date],
    ) -> Optional[float]:
        preferred = await self._settings.get_base_currency()
        if preferred in (src, dst):
            return None
        return await self._triangulate(preferred, src, dst, day)

    async def _via_any_cached_base(
        self,
        src: str,
        dst: str,
        day: Optional[date],
    ) -> Optional[float]:
        # Bases are tried in the order the store reports them; the first
        # complete pair wins.
        preferred = await self._settings.get_base_currency()
        for pivot in await self._cache.distinct_base_currencies():
            if pivot in (src, dst, preferred):
                continue
            rate = await self._triangulate(pivot, src, dst, day)
            if rate is not None:
                return rate
        return None

    async def get_all_rates_for_base(
        self,
        base_currency: str,
        on: DateLike = None,
    ) -> dict[str, float]:
        """Target code -> rate for one base (given day, or latest day cached)."""
        rates = await self._cache.rates_for_base(
            normalize_currency_code(base_currency), _as_date(on)
        )
        return {r.target_currency: r.rate for r in rates}

    async def get_latest_rates(self, base_currency: str) -> list[CachedRate]:
        return await self._cache.rates_for_base(normalize_currency_code(base_currency))

    # =========================================================================
    # FRESHNESS
    # =========================================================================

    async def is_stale(self, base_currency: str) -> bool:
        """
        True when the cached rates for this base should be refreshed.

        Stale when nothing is cached, when the latest fetch time cannot be
        parsed, or when roughly a refresh interval has passed. The age is
        whole days * 24 plus the difference of the hour fields, so minutes
        are ignored.
        """
        latest = await self._cache.most_recent_by_base(
            normalize_currency_code(base_currency)
        )
        if latest is None:
            return True

        fetched = latest.fetched_at()
        if fetched is None:
            logger.warning(
                "rate_timestamp_unparseable",
                base_currency=latest.base_currency,
                last_fetched_at=latest.last_fetched_at,
            )
            return True

        now = self._clock()
        days_diff = (now.date() - fetched.date()).days
        stale_hours = days_diff * 24 + (now.hour - fetched.hour)
        return stale_hours >= self._refresh_interval_hours

    async def prune_older_than(self, days: Optional[int] = None) -> int:
        """
        Delete cached rates dated before today minus `days`.

        Maintenance only: failures are logged and swallowed.

        Returns:
            Number of rates deleted (0 on failure)
        """
        if days is None:
            days = self._retention_days
        cutoff = self._clock().date() - timedelta(days=days)
        try:
            deleted = await self._cache.delete_older_than(cutoff)
        except Exception as e:
            logger.error("rates_prune_failed", cutoff=cutoff.isoformat(), error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_rates_prune_failed(
                    cutoff=cutoff.isoformat(),
                    error_message=str(e),
                )
            return 0

        if deleted and self._audit_logger:
            await self._audit_logger.log_rates_pruned(
                cutoff=cutoff.isoformat(),
                deleted=deleted,
            )
        return deleted

    # =========================================================================
    # REFRESH
    # =========================================================================

    async def refresh(self, base_currency: Optional[str] = None) -> RefreshResult:
        """
        Fetch every rate for a base currency and cache it under today's date.

        Uses the preferred base currency when none is given. Never raises
        for remote problems; they come back as a failed RefreshResult and
        the cache is left untouched.
        """
        raw_base = base_currency if base_currency is not None else (
            await self._settings.get_base_currency()
        )
        if not raw_base or not raw_base.strip():
            return RefreshResult.failure(
                base_currency="",
                error_type=RefreshErrorType.INVALID_INPUT,
                error_message="Base currency cannot be empty",
            )
        try:
            base = normalize_currency_code(raw_base)
        except ValueError as e:
            return RefreshResult.failure(
                base_currency=raw_base,
                error_type=RefreshErrorType.INVALID_INPUT,
                error_message=str(e),
            )

        correlation_id = create_correlation_id()
        if self._audit_logger:
            await self._audit_logger.log_rates_refresh_started(base, correlation_id)

        api_key = await self._settings.get_api_key()
        api_base_url = await self._settings.get_api_base_url()
        if self._remote is None:
            self._remote = RemoteRateSource()

        try:
            latest = await self._remote.fetch_latest(api_key, base, api_base_url)
        except InvalidInputError as e:
            return await self._refresh_failed(
                base, RefreshErrorType.INVALID_INPUT, str(e), correlation_id
            )
        except RemoteFailureError as e:
            return await self._refresh_failed(
                base, RefreshErrorType.REMOTE_FAILURE, str(e), correlation_id
            )

        if latest.base_currency != base:
            logger.warning(
                "rate_base_mismatch",
                requested=base,
                returned=latest.base_currency,
            )

        now = self._clock()
        today = now.date()
        fetched_at = now.isoformat()
        try:
            rates = [
                CachedRate(
                    base_currency=base,
                    target_currency=code,
                    rate=rate,
                    date=today,
                    last_fetched_at=fetched_at,
                )
                for code, rate in latest.rates.items()
            ]
        except ValidationError as e:
            return await self._refresh_failed(
                base, RefreshErrorType.REMOTE_FAILURE, f"Malformed rate payload: {e}", correlation_id
            )
        stored = await self._cache.upsert_many(rates)
        await self._settings.update_last_exchange_rate_update(now)

        logger.info("rates_refreshed", base_currency=base, rates_stored=stored)
        if self._audit_logger:
            await self._audit_logger.log_rates_refreshed(base, stored, correlation_id)

        return RefreshResult.ok(base_currency=base, rates_stored=stored, refreshed_at=now)

    async def _refresh_failed(
        self,
        base: str,
        error_type: RefreshErrorType,
        message: str,
        correlation_id,
    ) -> RefreshResult:
        logger.warning(
            "rates_refresh_failed",
            base_currency=base,
            error_type=error_type.value,
            error=message,
        )
        if self._audit_logger:
            await self._audit_logger.log_rates_refresh_failed(
                base_currency=base,
                error_type=error_type.value,
                error_message=message,
                correlation_id=correlation_id,
            )
        return RefreshResult.failure(base, error_type, message)

    async def refresh_if_stale(
        self,
        base_currency: Optional[str] = None,
    ) -> Optional[RefreshResult]:
        """
        Refresh only when the cached rates are stale.

        Returns:
            The refresh outcome, or None when the cache was fresh enough
        """
        base = base_currency or await self._settings.get_base_currency()
        if not await self.is_stale(base):
            logger.debug("rates_fresh", base_currency=base)
            return None
        return await self.refresh(base)
