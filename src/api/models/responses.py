"""Pydantic response models for API endpoints."""

from pydantic import BaseModel

from api.models.bookings import WireModel


class HealthResponse(BaseModel):
    """Health check response."""

    status: str  # "ok"
    timestamp: str  # ISO 8601 UTC


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    code: str
    details: list[str] = []


class ErrorCodes:
    """Error code constants."""

    INVALID_REQUEST = "INVALID_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    MISSING_CREDENTIALS = "MISSING_CREDENTIALS"
    REMOTE_UNAVAILABLE = "REMOTE_UNAVAILABLE"
    STORE_ERROR = "STORE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class MonthStatus(WireModel):
    month_key: str
    last_sync: str
    booking_count: int


class SyncStatusResponse(WireModel):
    total_bookings: int
    last_full_sync: int | None  # epoch milliseconds
    is_syncing: bool = False
    months: list[MonthStatus]


class SyncTriggerResponse(WireModel):
    success: bool
    months_synced: int | None = None
    total_bookings: int | None = None
    error: str | None = None


class MonthSyncResponse(WireModel):
    success: bool
    month_key: str
    count: int
    error: str | None = None


class StoreMonthResponse(WireModel):
    success: bool
    stored: int
    month_key: str


class BatchSyncResponse(WireModel):
    success: bool
    total_stored: int
    months_processed: int


class SettingsRequest(WireModel):
    hidden_room_ids: list[str]
    updated_by: str | None = None


class SettingsResponse(WireModel):
    hidden_room_ids: list[str] = []
    last_updated: str | None = None
    updated_by: str | None = None
