"""
Pytest configuration and shared fixtures.
"""

import sys
from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from core.database import BookingStore  # noqa: E402


# =============================================================================
# RECORD BUILDERS
# =============================================================================


def make_event(
    room_id="sala.mare@rotineret.ro",
    start="2025-06-10T10:00:00Z",
    end="2025-06-10T11:00:00Z",
    location_name="Sala Mare",
    event_id="evt-1",
    subject="Rezervare",
):
    return {
        "id": event_id,
        "subject": subject,
        "start": {"date_time": start, "time_zone": "UTC"},
        "end": {"date_time": end, "time_zone": "UTC"},
        "room_id": room_id,
        "location_name": location_name,
        "body_preview": None,
        "organizer_name": None,
        "organizer_email": None,
        "is_all_day": False,
        "is_cancelled": False,
        "show_as": "busy",
        "web_link": None,
        "categories": [],
        "color": "#3B82F6",
    }


def make_booking(
    booking_id="bk-1",
    start="2025-06-10T10:00:00Z",
    end="2025-06-10T11:00:00Z",
    location=None,
    customer_name="Ana",
    answers=None,
    service_notes=None,
    customer_notes=None,
    time_zone="UTC",
):
    if location is None:
        location = {
            "display_name": "Sala Mare",
            "email_address": "sala.mare@rotineret.ro",
            "uri": None,
        }
    return {
        "id": booking_id,
        "service_id": "svc-1",
        "service_name": "Rezervare sală",
        "customer_name": customer_name,
        "customer_email": "ana@example.com",
        "customer_phone": "0700000000",
        "customer_notes": customer_notes,
        "service_notes": service_notes,
        "start": {"date_time": start, "time_zone": time_zone},
        "end": {"date_time": end, "time_zone": time_zone},
        "location": location or None,
        "customers": [
            {
                "customer_id": "cust-1",
                "name": customer_name,
                "email_address": "ana@example.com",
                "phone": "0700000000",
                "notes": None,
                "custom_question_answers": answers or [],
            }
        ],
    }


def sdk_appointment(
    appointment_id,
    start,
    end,
    location_name="Sala Mare",
    location_email="sala.mare@rotineret.ro",
    customer_name="Ana",
    answers=(),
):
    """Object shaped like msgraph's BookingAppointment."""
    return SimpleNamespace(
        id=appointment_id,
        service_id="svc-1",
        service_name="Rezervare sală",
        customer_name=customer_name,
        customer_email_address="ana@example.com",
        customer_phone="0700000000",
        customer_notes=None,
        service_notes=None,
        start_date_time=SimpleNamespace(date_time=start, time_zone="UTC"),
        end_date_time=SimpleNamespace(date_time=end, time_zone="UTC"),
        service_location=SimpleNamespace(
            display_name=location_name,
            location_email_address=location_email,
            location_uri=None,
        ),
        customers=[
            SimpleNamespace(
                customer_id="cust-1",
                name=customer_name,
                email_address="ana@example.com",
                phone="0700000000",
                notes=None,
                custom_question_answers=[
                    SimpleNamespace(question=q, answer=a) for q, a in answers
                ],
            )
        ],
    )


def sdk_event(event_id, start, end, subject="Ședință", location_name=None):
    """Object shaped like msgraph's Event."""
    return SimpleNamespace(
        id=event_id,
        subject=subject,
        start=SimpleNamespace(date_time=start, time_zone="UTC"),
        end=SimpleNamespace(date_time=end, time_zone="UTC"),
        location=SimpleNamespace(display_name=location_name) if location_name else None,
        body_preview="",
        organizer=SimpleNamespace(
            email_address=SimpleNamespace(name="Organizer", address="org@rotineret.ro")
        ),
        is_all_day=False,
        is_cancelled=False,
        show_as=SimpleNamespace(value="busy"),
        web_link=None,
        categories=[],
    )


# =============================================================================
# FAKE MS GRAPH CLIENT
# =============================================================================


class FakeStatusError(Exception):
    """Error carrying an HTTP status like kiota's APIError."""

    def __init__(self, status_code, message="request failed"):
        super().__init__(message)
        self.response_status_code = status_code


class FakeGetter:
    """Request builder whose get() returns a response or raises."""

    def __init__(self, result):
        self.result = result
        self.calls = []

    async def get(self, request_configuration=None):
        self.calls.append(request_configuration)
        if isinstance(self.result, BaseException):
            raise self.result
        return self.result


class FakePagedView:
    """
    calendarView builder returning pages linked by odata_next_link.

    pages is a list whose items are lists of appointments or exceptions.
    """

    def __init__(self, pages):
        self.pages = pages
        self.calls = []
        self.urls = []

    def _page(self, index):
        page = self.pages[index]
        if isinstance(page, BaseException):
            raise page
        next_link = f"https://graph.test/next/{index + 1}" if index + 1 < len(self.pages) else None
        return SimpleNamespace(value=page, odata_next_link=next_link)

    async def get(self, request_configuration=None):
        self.calls.append(request_configuration)
        return self._page(0)

    def with_url(self, url):
        self.urls.append(url)
        index = int(url.rsplit("/", 1)[1])
        view = self

        class _Next:
            async def get(self, request_configuration=None):
                return view._page(index)

        return _Next()


class FakeBookingBusinesses:
    def __init__(self, businesses, pages_by_business):
        if isinstance(businesses, BaseException):
            self._list = FakeGetter(businesses)
        else:
            self._list = FakeGetter(
                SimpleNamespace(
                    value=[SimpleNamespace(id=b, display_name=f"Business {b}") for b in businesses]
                )
            )
        self.views = {bid: FakePagedView(pages) for bid, pages in pages_by_business.items()}

    async def get(self, request_configuration=None):
        return await self._list.get(request_configuration)

    def by_booking_business_id(self, business_id):
        view = self.views.setdefault(business_id, FakePagedView([[]]))
        return SimpleNamespace(calendar_view=view)


class FakeUsers:
    def __init__(self, events_by_room):
        self.getters = {room: FakeGetter(result) for room, result in events_by_room.items()}

    def by_user_id(self, user_id):
        getter = self.getters.setdefault(user_id, FakeGetter(SimpleNamespace(value=[])))
        return SimpleNamespace(calendar=SimpleNamespace(calendar_view=getter))


class FakeGraph:
    def __init__(self, businesses=(), pages_by_business=None, events_by_room=None, rooms=None):
        self.solutions = SimpleNamespace(
            booking_businesses=FakeBookingBusinesses(businesses, pages_by_business or {})
        )
        self.users = FakeUsers(events_by_room or {})
        if rooms is None:
            rooms = SimpleNamespace(value=[])
        self.places = SimpleNamespace(graph_room=FakeGetter(rooms))


class FakeClock:
    """Mutable 'now' for staleness tests."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def store(tmp_path):
    """Empty booking store on a temporary SQLite file."""
    booking_store = BookingStore(tmp_path / "bookings.db")
    booking_store.init_schema()
    return booking_store


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc))

