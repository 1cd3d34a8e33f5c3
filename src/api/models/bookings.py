"""
Wire models in the MS Graph appointment shape.

Browser clients push raw Graph responses to the sync endpoints, so field
names follow Graph's camelCase JSON. Each model converts to and from the
internal TypedDicts.
"""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from models.events import BookingRecord, EnrichedEvent, Room


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class DateTimeTimeZoneModel(WireModel):
    date_time: str
    time_zone: str | None = "UTC"


class LocationModel(WireModel):
    display_name: str | None = None
    location_email_address: str | None = None
    location_uri: str | None = None


class QuestionAnswerModel(WireModel):
    question_id: str | None = None
    question: str | None = ""
    answer: str | None = ""


class CustomerModel(WireModel):
    customer_id: str | None = None
    name: str | None = None
    email_address: str | None = None
    phone: str | None = None
    notes: str | None = None
    custom_question_answers: list[QuestionAnswerModel] = []


class AppointmentModel(WireModel):
    """Booking appointment as returned by the Bookings calendarView."""

    id: str
    service_id: str | None = None
    service_name: str | None = None
    customer_name: str | None = None
    customer_email_address: str | None = None
    customer_phone: str | None = None
    customer_notes: str | None = None
    service_notes: str | None = None
    start_date_time: DateTimeTimeZoneModel
    end_date_time: DateTimeTimeZoneModel
    service_location: LocationModel | None = None
    customers: list[CustomerModel] = []

    def to_record(self) -> BookingRecord:
        location = None
        if self.service_location and (
            self.service_location.display_name
            or self.service_location.location_email_address
            or self.service_location.location_uri
        ):
            location = {
                "display_name": self.service_location.display_name or "",
                "email_address": self.service_location.location_email_address,
                "uri": self.service_location.location_uri,
            }
        return {
            "id": self.id,
            "service_id": self.service_id,
            "service_name": self.service_name,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email_address,
            "customer_phone": self.customer_phone,
            "customer_notes": self.customer_notes,
            "service_notes": self.service_notes,
            "start": {
                "date_time": self.start_date_time.date_time,
                "time_zone": self.start_date_time.time_zone or "UTC",
            },
            "end": {
                "date_time": self.end_date_time.date_time,
                "time_zone": self.end_date_time.time_zone or "UTC",
            },
            "location": location,
            "customers": [
                {
                    "customer_id": customer.customer_id,
                    "name": customer.name,
                    "email_address": customer.email_address,
                    "phone": customer.phone,
                    "notes": customer.notes,
                    "custom_question_answers": [
                        {"question": qa.question or "", "answer": qa.answer or ""}
                        for qa in customer.custom_question_answers
                    ],
                }
                for customer in self.customers
            ],
        }

    @classmethod
    def from_record(cls, record: BookingRecord) -> "AppointmentModel":
        location = record.get("location")
        return cls(
            id=record["id"],
            service_id=record.get("service_id"),
            service_name=record.get("service_name"),
            customer_name=record.get("customer_name"),
            customer_email_address=record.get("customer_email"),
            customer_phone=record.get("customer_phone"),
            customer_notes=record.get("customer_notes"),
            service_notes=record.get("service_notes"),
            start_date_time=DateTimeTimeZoneModel(**record["start"]),
            end_date_time=DateTimeTimeZoneModel(**record["end"]),
            service_location=LocationModel(
                display_name=location.get("display_name"),
                location_email_address=location.get("email_address"),
                location_uri=location.get("uri"),
            ) if location else None,
            customers=[
                CustomerModel(
                    customer_id=c.get("customer_id"),
                    name=c.get("name"),
                    email_address=c.get("email_address"),
                    phone=c.get("phone"),
                    notes=c.get("notes"),
                    custom_question_answers=[
                        QuestionAnswerModel(question=qa.get("question"), answer=qa.get("answer"))
                        for qa in c.get("custom_question_answers") or []
                    ],
                )
                for c in record.get("customers") or []
            ],
        )


class MonthBookingsRequest(WireModel):
    """One bucket pushed by a client that fetched it from MS Graph itself."""

    month_key: str = Field(validation_alias=AliasChoices("monthKey", "bucketKey", "month_key"))
    bookings: list[AppointmentModel]


class BatchSyncRequest(WireModel):
    months: list[MonthBookingsRequest]


class RoomModel(WireModel):
    id: str
    name: str
    email: str
    capacity: int = 0
    color: str
    floor: str = "N/A"
    amenities: list[str] = []

    @classmethod
    def from_room(cls, room: Room) -> "RoomModel":
        return cls(**room)


class QuestionModel(WireModel):
    question: str
    answer: str


class EnrichedEventModel(WireModel):
    """Room calendar event with booking details when a booking matched."""

    id: str
    subject: str
    start: DateTimeTimeZoneModel
    end: DateTimeTimeZoneModel
    room_id: str
    location_name: str | None = None
    body_preview: str | None = None
    organizer_name: str | None = None
    organizer_email: str | None = None
    is_all_day: bool = False
    is_cancelled: bool = False
    show_as: str | None = None
    web_link: str | None = None
    categories: list[str] = []
    color: str | None = None
    booker_name: str | None = None
    booker_email: str | None = None
    booker_phone: str | None = None
    answers: list[QuestionModel] = []
    service_notes: str | None = None

    @classmethod
    def from_event(cls, event: EnrichedEvent) -> "EnrichedEventModel":
        return cls(**event)
