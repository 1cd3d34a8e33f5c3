"""
Data models for rooms, calendar events and booking records.

TypedDicts describe the internal dictionaries passed between the fetchers,
the booking store and the matcher. Wire formats live in api.models.
"""

from typing import NotRequired, TypedDict


class DateTimeZone(TypedDict):
    """Remote timestamp with its declared time zone label."""
    date_time: str
    time_zone: str


class Room(TypedDict):
    """Bookable room."""
    id: str
    name: str
    email: str
    capacity: int
    color: str
    floor: str
    amenities: list[str]


class CalendarEvent(TypedDict):
    """Room calendar entry fetched live from MS Graph."""
    id: str
    subject: str
    start: DateTimeZone
    end: DateTimeZone
    room_id: str
    location_name: str | None
    body_preview: str | None
    organizer_name: str | None
    organizer_email: str | None
    is_all_day: bool
    is_cancelled: bool
    show_as: str | None
    web_link: str | None
    categories: list[str]
    color: str | None


class LocationReference(TypedDict):
    """Service location attached to a booking."""
    display_name: str
    email_address: str | None
    uri: str | None


class QuestionAnswer(TypedDict):
    question: str
    answer: str


class BookingCustomer(TypedDict):
    customer_id: str | None
    name: str | None
    email_address: str | None
    phone: str | None
    notes: str | None
    custom_question_answers: list[QuestionAnswer]


class BookingRecord(TypedDict):
    """Booking appointment as stored in the booking store."""
    id: str
    service_id: str | None
    service_name: str | None
    customer_name: str | None
    customer_email: str | None
    customer_phone: str | None
    customer_notes: str | None
    service_notes: str | None
    start: DateTimeZone
    end: DateTimeZone
    location: LocationReference | None
    customers: list[BookingCustomer]


class EnrichedEvent(CalendarEvent):
    """Calendar event with data copied from its matching booking."""
    booker_name: NotRequired[str | None]
    booker_email: NotRequired[str | None]
    booker_phone: NotRequired[str | None]
    answers: NotRequired[list[QuestionAnswer]]
    service_notes: NotRequired[str | None]


class BookingBusiness(TypedDict):
    id: str
    display_name: str


class MonthMetadata(TypedDict):
    """Sync bookkeeping for one month bucket."""
    month_key: str
    last_synced_at: str  # ISO 8601 UTC
    record_count: int


class SyncProgress(TypedDict):
    current: int
    total: int
    month_key: str


class MonthSyncResult(TypedDict):
    success: bool
    count: int
    error: str | None


class SyncResult(TypedDict):
    success: bool
    total_count: int
    months_synced: int
    error: str | None
