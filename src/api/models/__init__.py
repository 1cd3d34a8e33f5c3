"""API Pydantic models."""

from .bookings import (
    AppointmentModel,
    BatchSyncRequest,
    EnrichedEventModel,
    MonthBookingsRequest,
    RoomModel,
)
from .responses import (
    BatchSyncResponse,
    ErrorCodes,
    ErrorResponse,
    HealthResponse,
    MonthSyncResponse,
    SettingsRequest,
    SettingsResponse,
    StoreMonthResponse,
    SyncStatusResponse,
    SyncTriggerResponse,
)

__all__ = [
    "AppointmentModel",
    "BatchSyncRequest",
    "BatchSyncResponse",
    "EnrichedEventModel",
    "ErrorCodes",
    "ErrorResponse",
    "HealthResponse",
    "MonthBookingsRequest",
    "MonthSyncResponse",
    "RoomModel",
    "SettingsRequest",
    "SettingsResponse",
    "StoreMonthResponse",
    "SyncStatusResponse",
    "SyncTriggerResponse",
]
