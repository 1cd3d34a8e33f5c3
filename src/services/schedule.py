"""
Enriched room schedule: live calendar events joined with stored bookings.
"""

import asyncio
import logging
from datetime import date, datetime, timedelta, timezone

from core.database import BookingStore
from core.dates import display_zone, months_between, parse_instant, parse_month_key
from models.events import EnrichedEvent, Room
from services.calendar import fetch_room_events
from services.matching import reconcile
from services.sync import BookingSyncService

logger = logging.getLogger(__name__)

# Bookings just outside the window can still share a local day with an event
BOOKING_WINDOW_PADDING = timedelta(days=1)


async def load_enriched_events(
    graph,
    store: BookingStore,
    rooms: list[Room],
    start: datetime,
    end: datetime,
    sync_service: BookingSyncService | None = None,
) -> list[EnrichedEvent]:
    """
    Fetch room events for [start, end] and attach booking data.

    When sync_service is given, stale months touching the window are
    refreshed first. A failed refresh falls back to whatever is stored.
    """
    if sync_service is not None:
        zone = display_zone()
        for month_key in months_between(start.astimezone(zone).date(), end.astimezone(zone).date()):
            year, month = parse_month_key(month_key)
            try:
                await sync_service.ensure_month_synced(date(year, month, 1))
            except Exception as e:
                logger.warning("Could not refresh bookings for %s: %s", month_key, e)

    events, bookings = await asyncio.gather(
        fetch_room_events(graph, rooms, start, end),
        asyncio.to_thread(
            store.get_bookings, start - BOOKING_WINDOW_PADDING, end + BOOKING_WINDOW_PADDING
        ),
    )

    enriched = reconcile(events, bookings)
    enriched.sort(key=_start_key)
    return enriched


def _start_key(event: EnrichedEvent) -> datetime:
    try:
        return parse_instant(event["start"])
    except (KeyError, TypeError, ValueError):
        return datetime.max.replace(tzinfo=timezone.utc)
