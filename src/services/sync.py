"""
Month-by-month booking sync from MS Graph into the booking store.

Buckets are refreshed when their metadata is older than a month-relative
age (current month 1h, future 6h, past 24h). Months are synced one after
another to stay under the Bookings API rate limits; the businesses of a
single month are fetched in parallel.
"""

import asyncio
import logging
from datetime import date, datetime, timedelta, tzinfo
from typing import Any, Awaitable, Callable

from core.config import (
    BOOKING_BUSINESS_ID,
    MAX_AGE_CURRENT_MONTH_HOURS,
    MAX_AGE_FUTURE_MONTH_HOURS,
    MAX_AGE_PAST_MONTH_HOURS,
    SYNC_INTERVAL_SECONDS,
    SYNC_MONTHS_AHEAD,
    SYNC_MONTHS_BEHIND,
    SYNC_WARMUP_SECONDS,
)
from core.database import BookingStore
from core.dates import (
    display_zone,
    month_key_for,
    month_range,
    months_window,
    parse_instant,
    parse_iso,
    parse_month_key,
    utc_now,
)
from core.exceptions import MissingCredentialsError, RemoteUnavailableError, StoreWriteError
from core.graph_client import get_graph_client
from models.events import BookingBusiness, BookingRecord, MonthSyncResult, SyncProgress, SyncResult
from services.bookings import fetch_booking_records, list_booking_businesses

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[SyncProgress], None]


class BookingSyncService:
    """
    Keeps the booking store's month buckets fresh.

    One instance per process. Only one full pass (sync_all_needed or
    force_full_sync) runs at a time; concurrent callers await the running
    pass and receive its result.
    """

    def __init__(
        self,
        store: BookingStore,
        graph_provider: Callable[[], Any] = get_graph_client,
        clock: Callable[[], datetime] = utc_now,
        zone: tzinfo | None = None,
        business_id: str = BOOKING_BUSINESS_ID,
    ):
        self.store = store
        self._graph_provider = graph_provider
        self._clock = clock
        self._zone = zone or display_zone()
        self._business_id = business_id
        self._full_sync: asyncio.Task | None = None

    @property
    def is_syncing(self) -> bool:
        return self._full_sync is not None and not self._full_sync.done()

    # =========================================================================
    # STALENESS
    # =========================================================================

    def max_age(self, month_key: str, now: datetime) -> timedelta:
        """Allowed bucket age: current month 1h, future months 6h, past months 24h."""
        current = month_key_for(now, self._zone)
        if month_key == current:
            return timedelta(hours=MAX_AGE_CURRENT_MONTH_HOURS)
        if month_key > current:
            return timedelta(hours=MAX_AGE_FUTURE_MONTH_HOURS)
        return timedelta(hours=MAX_AGE_PAST_MONTH_HOURS)

    def month_needs_sync(self, month_key: str) -> bool:
        """True if the bucket was never synced or is older than its max age."""
        parse_month_key(month_key)
        metadata = self.store.get_month_metadata(month_key)
        if metadata is None:
            logger.debug("Month %s never synced", month_key)
            return True

        now = self._clock()
        age = now - parse_iso(metadata["last_synced_at"])
        limit = self.max_age(month_key, now)
        if age > limit:
            logger.debug("Month %s needs sync (%s old, max %s)", month_key, age, limit)
            return True
        return False

    def list_stale_months(
        self, months_ahead: int = SYNC_MONTHS_AHEAD, months_behind: int = SYNC_MONTHS_BEHIND
    ) -> list[str]:
        """Stale month keys in the window around the current month, oldest first."""
        window = months_window(self._clock(), months_behind, months_ahead, self._zone)
        return [month_key for month_key in window if self.month_needs_sync(month_key)]

    # =========================================================================
    # SINGLE MONTH
    # =========================================================================

    async def resolve_businesses(self, graph) -> list[BookingBusiness]:
        """
        Booking businesses to sync from.

        Raises:
            RemoteUnavailableError: if the business listing fails
        """
        businesses = await list_booking_businesses(graph)
        if not self._business_id:
            return businesses
        for business in businesses:
            if business["id"] == self._business_id:
                return [business]
        # Configured business may be hidden from the listing
        return [{"id": self._business_id, "display_name": self._business_id}]

    async def sync_month(
        self, month_key: str, businesses: list[BookingBusiness] | None = None
    ) -> MonthSyncResult:
        """
        Refetch one month from every business and replace its bucket.

        A failing business is skipped; the bucket is left untouched only if
        every business failed or the store write failed.

        Raises:
            MissingCredentialsError: if no Graph client can be built
            RemoteUnavailableError: if businesses is None and listing fails
        """
        parse_month_key(month_key)
        graph = self._graph_provider()
        if businesses is None:
            businesses = await self.resolve_businesses(graph)

        start, end = month_range(month_key, self._zone)
        logger.info("Syncing month %s: %s to %s", month_key, start.isoformat(), end.isoformat())

        records: list[BookingRecord] = []
        if businesses:
            results = await asyncio.gather(
                *(fetch_booking_records(graph, b["id"], start, end) for b in businesses),
                return_exceptions=True,
            )
            failures = 0
            for business, result in zip(businesses, results):
                if isinstance(result, BaseException):
                    failures += 1
                    logger.error(
                        "Failed to fetch %s for %s: %s", business["display_name"], month_key, result
                    )
                    continue
                records.extend(result)
            if failures == len(businesses):
                return {"success": False, "count": 0, "error": f"All booking sources failed for {month_key}"}
        else:
            logger.warning("No booking businesses found")

        # The calendar view range is advisory; keep only bookings starting in this month
        month_records = [r for r in records if self._month_of(r) == month_key]

        try:
            count = await asyncio.to_thread(
                self.store.replace_month, month_key, month_records, self._clock()
            )
        except StoreWriteError as e:
            logger.error("Failed to store month %s: %s", month_key, e)
            return {"success": False, "count": 0, "error": str(e)}

        logger.info("Month %s: stored %d bookings", month_key, count)
        return {"success": True, "count": count, "error": None}

    async def force_sync_month(self, month_key: str) -> MonthSyncResult:
        """Sync one month regardless of its age."""
        logger.info("Force syncing month %s", month_key)
        return await self.sync_month(month_key)

    async def ensure_month_synced(self, day: date | datetime) -> MonthSyncResult | None:
        """Sync the month containing day if it is stale. Returns None when fresh."""
        if isinstance(day, datetime):
            month_key = month_key_for(day, self._zone)
        else:
            month_key = f"{day.year:04d}-{day.month:02d}"
        if not self.month_needs_sync(month_key):
            return None
        return await self.sync_month(month_key)

    def _month_of(self, record: BookingRecord) -> str | None:
        try:
            return month_key_for(parse_instant(record["start"]), self._zone)
        except (KeyError, TypeError, ValueError):
            return None

    # =========================================================================
    # FULL PASSES
    # =========================================================================

    async def sync_all_needed(
        self,
        months_ahead: int = SYNC_MONTHS_AHEAD,
        months_behind: int = SYNC_MONTHS_BEHIND,
        on_progress: ProgressCallback | None = None,
        full_window: bool = False,
    ) -> SyncResult:
        """
        Sync every stale month in the window, one month at a time.

        With full_window, every month in the window is synced regardless of age.
        """
        return await self._run_exclusive(
            lambda: self._sync_window(months_ahead, months_behind, on_progress, full_window)
        )

    async def force_full_sync(self, on_progress: ProgressCallback | None = None) -> SyncResult:
        """
        Resync the whole window (6 behind, current, 12 ahead) and drop buckets outside it.

        Each bucket is replaced only when its month synced; if no month syncs,
        nothing is removed.
        """
        return await self._run_exclusive(lambda: self._rebuild(on_progress))

    async def _run_exclusive(self, operation: Callable[[], Awaitable[SyncResult]]) -> SyncResult:
        if self.is_syncing:
            logger.info("Sync already in progress, waiting for it")
            return await asyncio.shield(self._full_sync)

        task = asyncio.create_task(operation())
        self._full_sync = task
        task.add_done_callback(self._clear_full_sync)
        # Shielded so an abandoned caller doesn't stop the pass
        return await asyncio.shield(task)

    def _clear_full_sync(self, task: asyncio.Task) -> None:
        if self._full_sync is task:
            self._full_sync = None

    async def _prepare(self) -> tuple[Any, list[BookingBusiness]]:
        graph = self._graph_provider()
        businesses = await self.resolve_businesses(graph)
        return graph, businesses

    async def _sync_window(
        self,
        months_ahead: int,
        months_behind: int,
        on_progress: ProgressCallback | None,
        full_window: bool,
    ) -> SyncResult:
        try:
            _, businesses = await self._prepare()
        except (MissingCredentialsError, RemoteUnavailableError) as e:
            logger.error("Sync aborted: %s", e)
            return _failure(str(e))

        if full_window:
            months = months_window(self._clock(), months_behind, months_ahead, self._zone)
        else:
            months = self.list_stale_months(months_ahead, months_behind)

        if not months:
            logger.info("All months are up to date")
            return {"success": True, "total_count": 0, "months_synced": 0, "error": None}

        logger.info("Need to sync %d months: %s", len(months), ", ".join(months))
        return await self._sync_months(months, businesses, on_progress)

    async def _rebuild(self, on_progress: ProgressCallback | None) -> SyncResult:
        try:
            _, businesses = await self._prepare()
        except (MissingCredentialsError, RemoteUnavailableError) as e:
            logger.error("Full sync aborted, existing data kept: %s", e)
            return _failure(str(e))

        months = months_window(self._clock(), SYNC_MONTHS_BEHIND, SYNC_MONTHS_AHEAD, self._zone)
        logger.info("Starting full sync of %d months", len(months))
        result = await self._sync_months(months, businesses, on_progress)
        if not result["success"]:
            logger.error("Full sync failed, existing data kept: %s", result["error"])
            return result

        # Window buckets were replaced one by one; only data outside it is dropped
        try:
            removed = await asyncio.to_thread(self.store.delete_months_except, months)
        except StoreWriteError as e:
            logger.error("Failed to remove bookings outside the sync window: %s", e)
            return _failure(str(e))
        if removed:
            logger.info("Removed %d buckets outside the sync window", removed)
        return result

    async def _sync_months(
        self,
        months: list[str],
        businesses: list[BookingBusiness],
        on_progress: ProgressCallback | None,
    ) -> SyncResult:
        total_count = 0
        months_synced = 0

        for index, month_key in enumerate(months, start=1):
            if on_progress:
                try:
                    on_progress({"current": index, "total": len(months), "month_key": month_key})
                except Exception:
                    logger.exception("Progress callback failed")

            try:
                result = await self.sync_month(month_key, businesses)
            except Exception:
                logger.exception("Failed to sync month %s", month_key)
                continue

            if result["success"]:
                total_count += result["count"]
                months_synced += 1

        logger.info(
            "Sync complete: %d/%d months, %d bookings", months_synced, len(months), total_count
        )
        if months and months_synced == 0:
            return _failure(f"None of the {len(months)} months could be synced")
        return {
            "success": True,
            "total_count": total_count,
            "months_synced": months_synced,
            "error": None,
        }

    def get_sync_status(self) -> dict:
        return self.store.get_sync_status()


def _failure(message: str) -> SyncResult:
    return {"success": False, "total_count": 0, "months_synced": 0, "error": message}


async def run_periodic_sync(
    service: BookingSyncService,
    warmup: float = SYNC_WARMUP_SECONDS,
    interval: float = SYNC_INTERVAL_SECONDS,
) -> None:
    """
    Background loop: one full-window sync after warmup, then every interval.

    Runs until cancelled.
    """
    await asyncio.sleep(warmup)
    while True:
        try:
            result = await service.sync_all_needed(full_window=True)
            if not result["success"]:
                logger.warning("Scheduled sync failed: %s", result["error"])
        except Exception:
            logger.exception("Scheduled sync crashed")
        await asyncio.sleep(interval)
