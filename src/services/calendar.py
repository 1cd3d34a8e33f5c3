"""
Room calendar event fetching from MS Graph.
"""

import asyncio
import logging
from datetime import datetime

from core.config import CALENDAR_PAGE_SIZE
from core.dates import to_utc_iso
from models.events import CalendarEvent, DateTimeZone, Room

logger = logging.getLogger(__name__)

EVENT_FIELDS = [
    "id",
    "subject",
    "start",
    "end",
    "organizer",
    "bodyPreview",
    "showAs",
    "location",
    "isAllDay",
    "webLink",
    "categories",
    "isCancelled",
]


def status_code_of(error: Exception) -> int | None:
    """HTTP status carried by a Graph SDK error, if any."""
    return getattr(error, "response_status_code", None)


async def fetch_calendar_events(
    graph, room: Room, start: datetime, end: datetime
) -> list[CalendarEvent]:
    """
    Fetch a room's calendar view within [start, end].

    A 429 is logged and yields no events for this room. Other errors
    propagate to the caller.
    """
    from msgraph.generated.users.item.calendar.calendar_view.calendar_view_request_builder import (
        CalendarViewRequestBuilder,
    )

    query_params = CalendarViewRequestBuilder.CalendarViewRequestBuilderGetQueryParameters(
        start_date_time=to_utc_iso(start),
        end_date_time=to_utc_iso(end),
        select=EVENT_FIELDS,
        orderby=["start/dateTime"],
        top=CALENDAR_PAGE_SIZE,
    )
    config = CalendarViewRequestBuilder.CalendarViewRequestBuilderGetRequestConfiguration(
        query_parameters=query_params
    )

    try:
        response = await graph.users.by_user_id(room["email"]).calendar.calendar_view.get(
            request_configuration=config
        )
    except Exception as e:
        if status_code_of(e) == 429:
            logger.warning("Rate limit hit for %s, skipping this round", room["email"])
            return []
        raise

    raw_events = response.value if response and response.value else []
    return [parse_event(event, room) for event in raw_events]


async def fetch_room_events(
    graph, rooms: list[Room], start: datetime, end: datetime
) -> list[CalendarEvent]:
    """
    Fetch events for all rooms in parallel.

    A failing room is logged and contributes no events; the others are
    still returned.
    """
    results = await asyncio.gather(
        *(fetch_calendar_events(graph, room, start, end) for room in rooms),
        return_exceptions=True,
    )

    events: list[CalendarEvent] = []
    for room, result in zip(rooms, results):
        if isinstance(result, BaseException):
            logger.error("Failed to fetch calendar for %s: %s", room["name"], result)
            continue
        events.extend(result)

    logger.info("Fetched %d events from %d rooms", len(events), len(rooms))
    return events


def parse_date_time_zone(value) -> DateTimeZone:
    """Convert an SDK DateTimeTimeZone into our dict."""
    return {
        "date_time": getattr(value, "date_time", None) or "",
        "time_zone": getattr(value, "time_zone", None) or "UTC",
    }


def parse_event(event, room: Room) -> CalendarEvent:
    """Parse MS Graph event into our format, tagged with the room it came from."""
    location = getattr(event, "location", None)
    location_name = getattr(location, "display_name", None) or room["name"]

    organizer_name = None
    organizer_email = None
    organizer = getattr(event, "organizer", None)
    if organizer and getattr(organizer, "email_address", None):
        organizer_name = organizer.email_address.name
        organizer_email = organizer.email_address.address

    show_as = getattr(event, "show_as", None)
    if show_as is not None:
        show_as = getattr(show_as, "value", str(show_as))

    return {
        "id": event.id or "",
        "subject": event.subject or "",
        "start": parse_date_time_zone(event.start),
        "end": parse_date_time_zone(event.end),
        "room_id": room["id"],
        "location_name": location_name,
        "body_preview": getattr(event, "body_preview", None),
        "organizer_name": organizer_name,
        "organizer_email": organizer_email,
        "is_all_day": bool(getattr(event, "is_all_day", False)),
        "is_cancelled": bool(getattr(event, "is_cancelled", False)),
        "show_as": show_as,
        "web_link": getattr(event, "web_link", None),
        "categories": list(getattr(event, "categories", None) or []),
        "color": room.get("color"),
    }
