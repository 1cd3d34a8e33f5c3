"""
Calendar event / booking reconciliation.

Room calendars and the booking system share no identifier, so each event is
matched to the booking that most likely created it:

1. the booking starts on the same local calendar day as the event
2. the booking's service location refers to the event's room
   (LOCATION_MATCHERS, first match wins)
3. the start times are at most MATCH_TOLERANCE_MINUTES apart, or the
   two intervals overlap
4. among those, the booking with the nearest start wins; ties keep the
   earlier booking

The matched booking's customer data is copied onto a new event dict. Input
events and bookings are never mutated.
"""

import logging
import re
import unicodedata
from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Callable

from core.config import MATCH_TOLERANCE_MINUTES, MIN_LOCATION_WORD_LENGTH
from core.dates import display_zone, parse_instant
from models.events import (
    BookingRecord,
    CalendarEvent,
    EnrichedEvent,
    LocationReference,
    QuestionAnswer,
)

logger = logging.getLogger(__name__)

_WORD_SEPARATORS = re.compile(r"[\s._-]+")


# =============================================================================
# NAME NORMALIZATION
# =============================================================================


def normalize_name(value: str | None) -> str:
    """Lowercase, drop accents and every non-alphanumeric character (any script)."""
    if not value:
        return ""
    return "".join(ch for ch in _fold(value) if ch.isalnum())


def resource_local_part(resource_id: str | None) -> str:
    """Text before '@' of an address-like resource id."""
    if not resource_id:
        return ""
    return resource_id.split("@", 1)[0]


def _fold(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _words(value: str | None, pattern: re.Pattern = _WORD_SEPARATORS) -> list[str]:
    if not value:
        return []
    return [word for word in pattern.split(_fold(value)) if word]


# =============================================================================
# LOCATION MATCHERS
# =============================================================================


def uri_matches_resource(location: LocationReference, event: CalendarEvent) -> bool:
    uri = (location.get("uri") or "").strip().lower()
    return bool(uri) and uri == (event.get("room_id") or "").strip().lower()


def email_matches_resource(location: LocationReference, event: CalendarEvent) -> bool:
    email = (location.get("email_address") or "").strip().lower()
    return bool(email) and email == (event.get("room_id") or "").strip().lower()


def names_equal(location: LocationReference, event: CalendarEvent) -> bool:
    booking_name = normalize_name(location.get("display_name"))
    event_name = normalize_name(event.get("location_name"))
    return bool(booking_name) and booking_name == event_name


def names_contain(location: LocationReference, event: CalendarEvent) -> bool:
    booking_name = normalize_name(location.get("display_name"))
    event_name = normalize_name(event.get("location_name"))
    if not booking_name or not event_name:
        return False
    return booking_name in event_name or event_name in booking_name


def name_contains_local_part(location: LocationReference, event: CalendarEvent) -> bool:
    booking_name = normalize_name(location.get("display_name"))
    local_part = normalize_name(resource_local_part(event.get("room_id")))
    if not booking_name or not local_part:
        return False
    return booking_name in local_part or local_part in booking_name


def words_overlap(location: LocationReference, event: CalendarEvent) -> bool:
    """
    Every significant word of the booking location relates to some word of
    the event location or the resource id's local part.

    "Sala Mare Etaj" matches resource "sala.mare-etaj1@..."
    """
    booking_words = [
        word
        for word in (location.get("display_name") or "").split()
        if len(word) >= MIN_LOCATION_WORD_LENGTH
    ]
    if not booking_words:
        return False
    booking_words = [_fold(word) for word in booking_words]

    target_words = _words(event.get("location_name")) + _words(
        resource_local_part(event.get("room_id"))
    )
    if not target_words:
        return False

    return all(
        any(word in target or target in word for target in target_words)
        for word in booking_words
    )


LocationMatcher = Callable[[LocationReference, CalendarEvent], bool]

LOCATION_MATCHERS: tuple[tuple[str, LocationMatcher], ...] = (
    ("uri", uri_matches_resource),
    ("email", email_matches_resource),
    ("name_equal", names_equal),
    ("name_contains", names_contain),
    ("local_part", name_contains_local_part),
    ("words", words_overlap),
)


def match_location(location: LocationReference | None, event: CalendarEvent) -> str | None:
    """Name of the first matcher that ties the location to the event's room."""
    if not location:
        return None
    for name, matcher in LOCATION_MATCHERS:
        if matcher(location, event):
            return name
    return None


# =============================================================================
# TEMPORAL SCORING
# =============================================================================


@dataclass
class _ParsedBooking:
    index: int
    booking: BookingRecord
    start: datetime
    end: datetime | None


@dataclass
class Candidate:
    """A booking that passed the day and resource filters for one event."""

    index: int
    booking: BookingRecord
    start_diff_minutes: float
    overlaps: bool

    @property
    def accepted(self) -> bool:
        return self.start_diff_minutes <= MATCH_TOLERANCE_MINUTES or self.overlaps


def same_local_day(first: datetime, second: datetime, zone: tzinfo) -> bool:
    return first.astimezone(zone).date() == second.astimezone(zone).date()


def score_candidate(
    event_start: datetime,
    event_end: datetime | None,
    parsed: _ParsedBooking,
) -> Candidate:
    start_diff = abs((event_start - parsed.start).total_seconds()) / 60
    overlaps = (
        event_end is not None
        and parsed.end is not None
        and event_start < parsed.end
        and event_end > parsed.start
    )
    return Candidate(parsed.index, parsed.booking, start_diff, overlaps)


def select_booking(candidates: list[Candidate]) -> Candidate | None:
    """Accepted candidate with the smallest start difference; first one wins ties."""
    best = None
    for candidate in candidates:
        if not candidate.accepted:
            continue
        if best is None or candidate.start_diff_minutes < best.start_diff_minutes:
            best = candidate
    return best


# =============================================================================
# PROJECTION
# =============================================================================


def collect_answers(booking: BookingRecord) -> list[QuestionAnswer]:
    """Non-blank custom answers of every customer, in booking order."""
    answers: list[QuestionAnswer] = []
    for customer in booking.get("customers") or []:
        for qa in customer.get("custom_question_answers") or []:
            answer = qa.get("answer")
            if isinstance(answer, str) and answer.strip():
                answers.append({"question": qa.get("question") or "", "answer": answer})
    return answers


def project_booking(event: CalendarEvent, booking: BookingRecord) -> EnrichedEvent:
    customers = booking.get("customers") or []
    first_customer = customers[0] if customers else {}

    customer_notes = booking.get("customer_notes") or first_customer.get("notes")

    return {
        **event,
        "booker_name": booking.get("customer_name") or first_customer.get("name"),
        "booker_email": booking.get("customer_email") or first_customer.get("email_address"),
        "booker_phone": booking.get("customer_phone") or first_customer.get("phone"),
        "answers": collect_answers(booking),
        "service_notes": booking.get("service_notes") or customer_notes or None,
    }


# =============================================================================
# RECONCILIATION
# =============================================================================


def _parse_bookings(bookings: list[BookingRecord]) -> list[_ParsedBooking]:
    parsed = []
    for index, booking in enumerate(bookings):
        if not booking.get("location"):
            continue
        try:
            start = parse_instant(booking["start"])
        except (KeyError, TypeError, ValueError):
            logger.debug("Skipping booking %r with unreadable start", booking.get("id"))
            continue
        try:
            end = parse_instant(booking["end"])
        except (KeyError, TypeError, ValueError):
            end = None
        parsed.append(_ParsedBooking(index, booking, start, end))
    return parsed


def find_match(
    event: CalendarEvent,
    bookings: list[_ParsedBooking],
    zone: tzinfo,
) -> Candidate | None:
    """Best booking for one event, or None."""
    try:
        event_start = parse_instant(event["start"])
    except (KeyError, TypeError, ValueError):
        return None
    try:
        event_end = parse_instant(event["end"])
    except (KeyError, TypeError, ValueError):
        event_end = None

    candidates = []
    for parsed in bookings:
        if not same_local_day(event_start, parsed.start, zone):
            continue
        if match_location(parsed.booking.get("location"), event) is None:
            continue
        candidates.append(score_candidate(event_start, event_end, parsed))

    return select_booking(candidates)


def reconcile(
    events: list[CalendarEvent],
    bookings: list[BookingRecord],
    zone: tzinfo | None = None,
) -> list[EnrichedEvent]:
    """
    Attach the best-matching booking's customer data to each event.

    Unmatched events are returned as-is. A booking may enrich several events.

    Args:
        events: Live calendar events with room_id assigned
        bookings: Stored booking records covering the same window
        zone: Zone whose calendar days are compared (display zone by default)
    """
    if not bookings:
        return list(events)

    zone = zone or display_zone()
    parsed = _parse_bookings(bookings)

    enriched: list[EnrichedEvent] = []
    matched = 0
    for event in events:
        match = find_match(event, parsed, zone)
        if match is None:
            enriched.append(event)
            continue
        matched += 1
        enriched.append(project_booking(event, match.booking))

    logger.debug("Matched %d of %d events against %d bookings", matched, len(events), len(bookings))
    return enriched
