"""Custom exceptions for the room calendar service."""


class RoomCalendarError(Exception):
    """Base exception for room calendar errors."""


class MissingCredentialsError(RoomCalendarError):
    """Raised when MS Graph credentials are not configured."""


class RemoteUnavailableError(RoomCalendarError):
    """Raised when the booking source cannot be reached at all."""


class StoreWriteError(RoomCalendarError):
    """Raised when a bucket replacement could not be committed."""


class InvalidMonthKeyError(RoomCalendarError, ValueError):
    """Raised when a month key is not in YYYY-MM format."""
