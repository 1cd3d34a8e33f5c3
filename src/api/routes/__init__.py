"""API route modules."""

from .bookings import router as bookings_router
from .health import router as health_router
from .schedule import router as schedule_router
from .settings import router as settings_router
from .sync import router as sync_router

__all__ = [
    "bookings_router",
    "health_router",
    "schedule_router",
    "settings_router",
    "sync_router",
]
