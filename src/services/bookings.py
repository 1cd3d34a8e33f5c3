"""
Booking appointment fetching from MS Graph (Microsoft Bookings).
"""

import logging
from datetime import datetime

from core.config import BOOKINGS_PAGE_SIZE
from core.dates import to_utc_iso
from core.exceptions import RemoteUnavailableError
from models.events import (
    BookingBusiness,
    BookingCustomer,
    BookingRecord,
    LocationReference,
    QuestionAnswer,
)
from services.calendar import parse_date_time_zone

logger = logging.getLogger(__name__)

APPOINTMENT_FIELDS = [
    "id",
    "serviceId",
    "serviceName",
    "customerName",
    "customerEmailAddress",
    "customerPhone",
    "customerNotes",
    "serviceNotes",
    "startDateTime",
    "endDateTime",
    "customers",
    "serviceLocation",
]


async def list_booking_businesses(graph) -> list[BookingBusiness]:
    """
    List booking businesses visible to the app.

    Raises:
        RemoteUnavailableError: if the listing call fails
    """
    try:
        response = await graph.solutions.booking_businesses.get()
    except Exception as e:
        raise RemoteUnavailableError(f"Failed to list booking businesses: {e}") from e

    businesses = response.value if response and response.value else []
    return [
        {"id": business.id, "display_name": business.display_name or business.id}
        for business in businesses
        if business.id
    ]


async def fetch_booking_records(
    graph, business_id: str, start: datetime, end: datetime
) -> list[BookingRecord]:
    """
    Fetch all appointments of a business within [start, end].

    Follows the @odata.nextLink continuation until it is exhausted. If the
    first page fails the error propagates; a later failure is logged and
    the pages collected so far are returned.
    """
    from msgraph.generated.solutions.booking_businesses.item.calendar_view.calendar_view_request_builder import (
        CalendarViewRequestBuilder,
    )

    query_params = CalendarViewRequestBuilder.CalendarViewRequestBuilderGetQueryParameters(
        start=to_utc_iso(start),
        end=to_utc_iso(end),
        select=APPOINTMENT_FIELDS,
        top=BOOKINGS_PAGE_SIZE,
    )
    config = CalendarViewRequestBuilder.CalendarViewRequestBuilderGetRequestConfiguration(
        query_parameters=query_params
    )
    calendar_view = graph.solutions.booking_businesses.by_booking_business_id(
        business_id
    ).calendar_view

    records: list[BookingRecord] = []
    next_link: str | None = None
    page_count = 0

    while True:
        page_count += 1
        try:
            if next_link is None:
                response = await calendar_view.get(request_configuration=config)
            else:
                response = await calendar_view.with_url(next_link).get()
        except Exception as e:
            if page_count == 1:
                raise
            logger.error(
                "Page %d for %s failed, keeping %d appointments: %s",
                page_count, business_id, len(records), e,
            )
            break

        appointments = response.value if response and response.value else []
        for appointment in appointments:
            records.append(parse_appointment(appointment))
        logger.debug(
            "Page %d for %s: %d appointments (total %d)",
            page_count, business_id, len(appointments), len(records),
        )

        next_link = getattr(response, "odata_next_link", None) or None
        if next_link is None:
            break

    logger.info(
        "Fetched %d appointments for %s from %d page(s)", len(records), business_id, page_count
    )
    return records


def parse_location(location) -> LocationReference | None:
    """Convert an SDK Location into our dict; None when it names nothing."""
    if location is None:
        return None
    display_name = getattr(location, "display_name", None) or ""
    email_address = getattr(location, "location_email_address", None)
    uri = getattr(location, "location_uri", None)
    if not (display_name or email_address or uri):
        return None
    return {"display_name": display_name, "email_address": email_address, "uri": uri}


def parse_customer(customer) -> BookingCustomer:
    answers: list[QuestionAnswer] = []
    for qa in getattr(customer, "custom_question_answers", None) or []:
        answers.append({
            "question": getattr(qa, "question", None) or "",
            "answer": getattr(qa, "answer", None) or "",
        })
    return {
        "customer_id": getattr(customer, "customer_id", None),
        "name": getattr(customer, "name", None),
        "email_address": getattr(customer, "email_address", None),
        "phone": getattr(customer, "phone", None),
        "notes": getattr(customer, "notes", None),
        "custom_question_answers": answers,
    }


def parse_appointment(appointment) -> BookingRecord:
    """Parse MS Graph booking appointment into our format."""
    return {
        "id": appointment.id or "",
        "service_id": getattr(appointment, "service_id", None),
        "service_name": getattr(appointment, "service_name", None),
        "customer_name": getattr(appointment, "customer_name", None),
        "customer_email": getattr(appointment, "customer_email_address", None),
        "customer_phone": getattr(appointment, "customer_phone", None),
        "customer_notes": getattr(appointment, "customer_notes", None),
        "service_notes": getattr(appointment, "service_notes", None),
        "start": parse_date_time_zone(getattr(appointment, "start_date_time", None)),
        "end": parse_date_time_zone(getattr(appointment, "end_date_time", None)),
        "location": parse_location(getattr(appointment, "service_location", None)),
        "customers": [
            parse_customer(c) for c in getattr(appointment, "customers", None) or []
        ],
    }
