"""
Date and time zone helpers shared by the fetchers, the store and the matcher.
"""

import calendar
import logging
import re
from datetime import date, datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from core.config import DISPLAY_TIMEZONE
from core.exceptions import InvalidMonthKeyError
from models.events import DateTimeZone

logger = logging.getLogger(__name__)

MONTH_KEY_PATTERN = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")

# Graph emits 7 fractional digits, datetime accepts at most 6
_FRACTION_PATTERN = re.compile(r"(\.\d{6})\d+")

# Windows zone names returned by Graph when no Prefer header is sent
WINDOWS_ZONES = {
    "GTB Standard Time": "Europe/Bucharest",
    "E. Europe Standard Time": "Europe/Chisinau",
    "FLE Standard Time": "Europe/Kiev",
    "W. Europe Standard Time": "Europe/Berlin",
    "Central Europe Standard Time": "Europe/Budapest",
    "Romance Standard Time": "Europe/Paris",
    "GMT Standard Time": "Europe/London",
    "Greenwich Standard Time": "Atlantic/Reykjavik",
    "Coordinated Universal Time": "UTC",
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def display_zone() -> tzinfo:
    """Zone used as the observer's local time."""
    return resolve_zone(DISPLAY_TIMEZONE)


def resolve_zone(label: str | None) -> tzinfo:
    """
    Map a declared zone label to a tzinfo.

    Unknown or missing labels are treated as UTC.
    """
    if not label or label.upper() in ("UTC", "Z", "ETC/UTC"):
        return timezone.utc
    name = WINDOWS_ZONES.get(label, label)
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.debug("Unknown time zone %r, assuming UTC", label)
        return timezone.utc


def parse_iso(value: str, default_zone: tzinfo = timezone.utc) -> datetime:
    """Parse an ISO 8601 string, attaching default_zone when it carries no offset."""
    raw = value.strip()
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    raw = _FRACTION_PATTERN.sub(r"\1", raw)
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=default_zone)
    return parsed


def parse_instant(value: DateTimeZone) -> datetime:
    """
    Convert a remote {date_time, time_zone} pair into an aware datetime.

    An explicit offset or trailing Z in the string wins over the label.
    A naive string is read in its declared zone.
    """
    return parse_iso(value["date_time"], resolve_zone(value.get("time_zone")))


def to_utc_iso(moment: datetime) -> str:
    """Format an aware datetime as YYYY-MM-DDTHH:MM:SSZ."""
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


# =============================================================================
# MONTH BUCKETS
# =============================================================================


def parse_month_key(month_key: str) -> tuple[int, int]:
    """Split 'YYYY-MM' into (year, month)."""
    match = MONTH_KEY_PATTERN.match(month_key or "")
    if not match:
        raise InvalidMonthKeyError(f"Invalid month key '{month_key}', expected YYYY-MM")
    return int(match.group(1)), int(match.group(2))


def month_key_for(moment: datetime, zone: tzinfo | None = None) -> str:
    """Bucket key of the local month containing moment."""
    return moment.astimezone(zone or display_zone()).strftime("%Y-%m")


def shift_month(month_key: str, offset: int) -> str:
    year, month = parse_month_key(month_key)
    index = year * 12 + (month - 1) + offset
    return f"{index // 12:04d}-{index % 12 + 1:02d}"


def month_range(month_key: str, zone: tzinfo | None = None) -> tuple[datetime, datetime]:
    """
    First instant and last second of a month in local time.

    Example: '2025-02' -> (2025-02-01 00:00:00, 2025-02-28 23:59:59)
    """
    zone = zone or display_zone()
    year, month = parse_month_key(month_key)
    last_day = calendar.monthrange(year, month)[1]
    start = datetime(year, month, 1, tzinfo=zone)
    end = datetime(year, month, last_day, 23, 59, 59, tzinfo=zone)
    return start, end


def months_window(
    now: datetime, months_behind: int, months_ahead: int, zone: tzinfo | None = None
) -> list[str]:
    """Month keys from months_behind before now's month through months_ahead after."""
    current = month_key_for(now, zone)
    return [shift_month(current, offset) for offset in range(-months_behind, months_ahead + 1)]


def months_between(start: date, end: date) -> list[str]:
    """Month keys touched by an inclusive date range."""
    keys = []
    key = f"{start.year:04d}-{start.month:02d}"
    last = f"{end.year:04d}-{end.month:02d}"
    while key <= last:
        keys.append(key)
        key = shift_month(key, 1)
    return keys
