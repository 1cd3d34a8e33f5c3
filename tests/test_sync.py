"""
Tests for the month-bucket sync service.
"""

import asyncio
from datetime import date, timedelta, timezone

import pytest

from conftest import FakeGraph, FakeStatusError, make_booking, sdk_appointment
from core.database import BookingStore
from core.exceptions import InvalidMonthKeyError, MissingCredentialsError, StoreWriteError
from services.sync import BookingSyncService, run_periodic_sync


def june(appointment_id, day=10):
    return sdk_appointment(
        appointment_id, f"2025-06-{day:02d}T09:00:00Z", f"2025-06-{day:02d}T10:00:00Z"
    )


def make_service(store, clock, graph=None, business_id=""):
    graph = graph or FakeGraph()
    return BookingSyncService(
        store,
        graph_provider=lambda: graph,
        clock=clock,
        zone=timezone.utc,
        business_id=business_id,
    )


def no_credentials():
    raise MissingCredentialsError("Microsoft Graph credentials are not configured")


class TestStaleness:
    def test_max_age_by_month_position(self, store, clock):
        service = make_service(store, clock)

        assert service.max_age("2025-06", clock.now) == timedelta(hours=1)
        assert service.max_age("2025-09", clock.now) == timedelta(hours=6)
        assert service.max_age("2025-02", clock.now) == timedelta(hours=24)

    def test_never_synced_month_is_stale(self, store, clock):
        assert make_service(store, clock).month_needs_sync("2025-06")

    @pytest.mark.parametrize(
        "month_key, fresh_hours, stale_hours",
        [("2025-06", 0.9, 1.1), ("2025-08", 5, 7), ("2025-03", 23, 25)],
    )
    def test_staleness_thresholds(self, store, clock, month_key, fresh_hours, stale_hours):
        service = make_service(store, clock)
        store.replace_month(month_key, [], clock.now)
        synced_at = clock.now

        clock.now = synced_at + timedelta(hours=fresh_hours)
        assert not service.month_needs_sync(month_key)

        clock.now = synced_at + timedelta(hours=stale_hours)
        assert service.month_needs_sync(month_key)

    def test_invalid_month_key(self, store, clock):
        with pytest.raises(InvalidMonthKeyError):
            make_service(store, clock).month_needs_sync("June")

    def test_list_stale_months_oldest_first(self, store, clock):
        service = make_service(store, clock)
        store.replace_month("2025-06", [], clock.now)

        stale = service.list_stale_months(months_ahead=2, months_behind=1)

        assert stale == ["2025-05", "2025-07", "2025-08"]


class TestSyncMonth:
    async def test_stores_only_bookings_starting_in_month(self, store, clock):
        july = sdk_appointment("jul", "2025-07-01T09:00:00Z", "2025-07-01T10:00:00Z")
        graph = FakeGraph(businesses=["biz"], pages_by_business={"biz": [[june("a"), june("b", 20), july]]})
        service = make_service(store, clock, graph)

        result = await service.sync_month("2025-06")

        assert result == {"success": True, "count": 2, "error": None}
        assert [b["id"] for b in store.get_bookings_for_month("2025-06")] == ["a", "b"]
        assert store.get_month_metadata("2025-06")["last_synced_at"] == clock.now.isoformat()

    async def test_partial_business_failure_still_succeeds(self, store, clock):
        graph = FakeGraph(
            businesses=["broken", "ok"],
            pages_by_business={"broken": [FakeStatusError(500)], "ok": [[june("a")]]},
        )
        service = make_service(store, clock, graph)

        result = await service.sync_month("2025-06")

        assert result["success"]
        assert [b["id"] for b in store.get_bookings_for_month("2025-06")] == ["a"]

    async def test_all_businesses_failing_leaves_bucket_untouched(self, store, clock):
        previous = make_booking(booking_id="old")
        store.replace_month("2025-06", [previous], clock.now - timedelta(days=1))
        graph = FakeGraph(
            businesses=["b1", "b2"],
            pages_by_business={"b1": [FakeStatusError(500)], "b2": [FakeStatusError(503)]},
        )
        service = make_service(store, clock, graph)

        result = await service.sync_month("2025-06")

        assert not result["success"]
        assert result["error"]
        assert store.get_bookings_for_month("2025-06") == [previous]
        assert service.month_needs_sync("2025-06")

    async def test_configured_business_only(self, store, clock):
        graph = FakeGraph(
            businesses=["other", "mine"],
            pages_by_business={"other": [[june("x")]], "mine": [[june("a")]]},
        )
        service = make_service(store, clock, graph, business_id="mine")

        await service.sync_month("2025-06")

        assert [b["id"] for b in store.get_bookings_for_month("2025-06")] == ["a"]

    async def test_configured_business_missing_from_listing(self, store, clock):
        graph = FakeGraph(businesses=[], pages_by_business={"hidden": [[june("a")]]})
        service = make_service(store, clock, graph, business_id="hidden")

        result = await service.sync_month("2025-06")

        assert result["count"] == 1

    async def test_store_failure_reported(self, tmp_path, clock):
        class BrokenStore(BookingStore):
            def replace_month(self, month_key, records, synced_at=None):
                raise StoreWriteError("disk full")

        store = BrokenStore(tmp_path / "bookings.db")
        store.init_schema()
        graph = FakeGraph(businesses=["biz"], pages_by_business={"biz": [[june("a")]]})

        result = await make_service(store, clock, graph).sync_month("2025-06")

        assert result == {"success": False, "count": 0, "error": "disk full"}

    async def test_ensure_month_synced_skips_fresh_month(self, store, clock):
        store.replace_month("2025-06", [], clock.now)
        service = make_service(store, clock)

        assert await service.ensure_month_synced(date(2025, 6, 20)) is None

    async def test_ensure_month_synced_refreshes_stale_month(self, store, clock):
        graph = FakeGraph(businesses=["biz"], pages_by_business={"biz": [[june("a")]]})
        service = make_service(store, clock, graph)

        result = await service.ensure_month_synced(date(2025, 6, 20))

        assert result["success"]
        assert store.get_month_metadata("2025-06")["record_count"] == 1

    async def test_force_sync_month_ignores_age(self, store, clock):
        store.replace_month("2025-06", [], clock.now)
        graph = FakeGraph(businesses=["biz"], pages_by_business={"biz": [[june("a")]]})

        result = await make_service(store, clock, graph).force_sync_month("2025-06")

        assert result["count"] == 1


class TestFullPasses:
    async def test_sync_all_needed_only_stale_months(self, store, clock):
        store.replace_month("2025-06", [], clock.now)
        service = make_service(store, clock)
        progress = []

        result = await service.sync_all_needed(months_ahead=1, months_behind=1, on_progress=progress.append)

        assert result == {"success": True, "total_count": 0, "months_synced": 2, "error": None}
        assert [p["month_key"] for p in progress] == ["2025-05", "2025-07"]
        assert [(p["current"], p["total"]) for p in progress] == [(1, 2), (2, 2)]

    async def test_full_window_ignores_age(self, store, clock):
        store.replace_month("2025-06", [], clock.now)
        service = make_service(store, clock)

        result = await service.sync_all_needed(months_ahead=1, months_behind=1, full_window=True)

        assert result["months_synced"] == 3

    async def test_nothing_stale(self, store, clock):
        for key in ("2025-05", "2025-06", "2025-07"):
            store.replace_month(key, [], clock.now)

        result = await make_service(store, clock).sync_all_needed(months_ahead=1, months_behind=1)

        assert result["months_synced"] == 0
        assert result["success"]

    async def test_force_full_sync_rebuilds_window(self, store, clock):
        store.replace_month("2020-01", [make_booking(booking_id="ancient", start="2020-01-05T09:00:00Z")], clock.now)
        graph = FakeGraph(businesses=["biz"], pages_by_business={"biz": [[june("a")]]})
        service = make_service(store, clock, graph)
        progress = []

        result = await service.force_full_sync(on_progress=progress.append)

        months = [m["month_key"] for m in store.list_month_metadata()]
        assert len(months) == 19
        assert months[0] == "2024-12"
        assert months[-1] == "2026-06"
        assert "2020-01" not in months
        assert result["success"]
        assert result["months_synced"] == 19
        assert result["total_count"] == 1
        assert len(progress) == 19

    async def test_force_full_sync_outage_keeps_existing_data(self, store, clock):
        store.replace_month("2025-06", [make_booking()], clock.now - timedelta(days=2))
        graph = FakeGraph(businesses=["biz"], pages_by_business={"biz": [FakeStatusError(503)]})
        service = make_service(store, clock, graph)

        result = await service.force_full_sync()

        assert not result["success"]
        assert result["months_synced"] == 0
        assert result["error"]
        assert store.count_bookings() == 1
        assert [m["month_key"] for m in store.list_month_metadata()] == ["2025-06"]

    async def test_sync_all_needed_outage_reports_failure(self, store, clock):
        graph = FakeGraph(businesses=["biz"], pages_by_business={"biz": [FakeStatusError(503)]})
        service = make_service(store, clock, graph)

        result = await service.sync_all_needed(months_ahead=1, months_behind=1)

        assert not result["success"]
        assert store.list_month_metadata() == []

    async def test_partial_outage_still_succeeds(self, store, clock):
        graph = FakeGraph(businesses=["biz"], pages_by_business={"biz": [[june("a")]]})
        service = make_service(store, clock, graph)
        calls = []
        original = service.sync_month

        async def failing_except_june(month_key, businesses=None):
            calls.append(month_key)
            if month_key != "2025-06":
                return {"success": False, "count": 0, "error": "unavailable"}
            return await original(month_key, businesses)

        service.sync_month = failing_except_june

        result = await service.sync_all_needed(months_ahead=1, months_behind=1)

        assert result == {"success": True, "total_count": 1, "months_synced": 1, "error": None}
        assert calls == ["2025-05", "2025-06", "2025-07"]

    async def test_missing_credentials_writes_nothing(self, store, clock):
        store.replace_month("2025-06", [make_booking()], clock.now - timedelta(days=2))
        service = BookingSyncService(store, graph_provider=no_credentials, clock=clock, zone=timezone.utc)

        result = await service.force_full_sync()

        assert not result["success"]
        assert "credentials" in result["error"]
        assert store.count_bookings() == 1
        assert [m["month_key"] for m in store.list_month_metadata()] == ["2025-06"]

    async def test_business_listing_failure_writes_nothing(self, store, clock):
        graph = FakeGraph(businesses=FakeStatusError(503))
        service = make_service(store, clock, graph)

        result = await service.sync_all_needed()

        assert not result["success"]
        assert store.list_month_metadata() == []

    async def test_failing_progress_callback_does_not_stop_pass(self, store, clock):
        def explode(progress):
            raise RuntimeError("ui gone")

        result = await make_service(store, clock).sync_all_needed(
            months_ahead=0, months_behind=0, on_progress=explode
        )

        assert result["months_synced"] == 1

    async def test_concurrent_callers_share_one_pass(self, store, clock):
        graph = FakeGraph(businesses=["biz"], pages_by_business={"biz": [[june("a")]]})
        service = make_service(store, clock, graph)

        first, second = await asyncio.gather(
            service.sync_all_needed(months_ahead=1, months_behind=1),
            service.sync_all_needed(months_ahead=1, months_behind=1),
        )

        assert first == second
        assert len(graph.solutions.booking_businesses._list.calls) == 1
        assert not service.is_syncing

    async def test_sync_status(self, store, clock):
        store.replace_month("2025-06", [make_booking()], clock.now)

        status = make_service(store, clock).get_sync_status()

        assert status["total_bookings"] == 1
        assert status["months"][0]["record_count"] == 1


class TestPeriodicSync:
    async def test_runs_full_window_repeatedly_and_survives_errors(self):
        calls = []
        done = asyncio.Event()

        class FakeService:
            async def sync_all_needed(self, **kwargs):
                calls.append(kwargs)
                if len(calls) == 1:
                    raise RuntimeError("boom")
                if len(calls) >= 3:
                    done.set()
                return {"success": True, "total_count": 0, "months_synced": 0, "error": None}

        task = asyncio.create_task(run_periodic_sync(FakeService(), warmup=0, interval=0))
        try:
            await asyncio.wait_for(done.wait(), timeout=5)
        finally:
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        assert all(call == {"full_window": True} for call in calls)
