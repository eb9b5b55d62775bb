# File: utils/dt_utils.py
"""Date and time utilities for CareScheduler.

Pure Python date/time functions with ZERO Home Assistant dependencies.
All functions here can be unit tested without Home Assistant mocking.

Timezone policy:
    Every comparison and interval addition happens on UTC-normalized instants.
    The configured facility timezone is used only to interpret naive inputs
    and to decide where a calendar day starts and ends.

Functions:
    - dt_now_utc / dt_now_iso: Current time helpers
    - dt_today_local: Today's date in the facility timezone
    - as_utc / as_local: Timezone conversion
    - start_of_local_day / end_of_local_day: Calendar day boundaries
    - dt_parse_date: Parse date strings
    - dt_parse: Normalize datetime inputs
    - dt_to_utc: Parse and convert to UTC
    - dt_format: Format datetime to various output types
    - minutes_between: Whole minutes between two instants
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
import logging
from typing import TYPE_CHECKING, cast
from zoneinfo import ZoneInfo

if TYPE_CHECKING:
    from datetime import tzinfo

_LOGGER = logging.getLogger(__name__)

# ==============================================================================
# Constants (local copies to keep utils free of const.py imports)
# ==============================================================================

DEFAULT_TIME_ZONE: ZoneInfo = ZoneInfo("UTC")

HELPER_RETURN_DATETIME = "datetime"
HELPER_RETURN_DATETIME_UTC = "datetime_utc"
HELPER_RETURN_DATETIME_LOCAL = "datetime_local"
HELPER_RETURN_DATE = "date"
HELPER_RETURN_ISO_DATETIME = "iso_datetime"
HELPER_RETURN_ISO_DATE = "iso_date"


# ==============================================================================
# Timezone Configuration
# ==============================================================================


def set_default_timezone(tz: ZoneInfo) -> None:
    """Set the facility timezone used for naive inputs and day boundaries.

    Call this during integration setup with the Home Assistant configured zone.

    Args:
        tz: ZoneInfo object representing the facility timezone
    """
    global DEFAULT_TIME_ZONE  # noqa: PLW0603
    DEFAULT_TIME_ZONE = tz


def get_default_timezone() -> ZoneInfo:
    """Return the configured facility timezone."""
    return DEFAULT_TIME_ZONE


# ==============================================================================
# Current Date/Time Functions
# ==============================================================================


def dt_now_utc() -> datetime:
    """Return the current datetime in UTC (timezone-aware)."""
    return datetime.now(UTC)


def dt_now_iso() -> str:
    """Return the current UTC datetime as an ISO string."""
    return dt_now_utc().isoformat()


def dt_today_local(tz: ZoneInfo | None = None) -> date:
    """Return today's date in the facility timezone.

    Args:
        tz: Optional timezone override. Uses DEFAULT_TIME_ZONE if not provided.
    """
    return datetime.now(tz or DEFAULT_TIME_ZONE).date()


# ==============================================================================
# Timezone Conversion
# ==============================================================================


def as_utc(dt_obj: datetime) -> datetime:
    """Convert a datetime to UTC.

    Naive datetimes are interpreted in the facility timezone.

    Args:
        dt_obj: Datetime object

    Returns:
        Datetime in UTC timezone
    """
    if dt_obj.tzinfo is None:
        dt_obj = dt_obj.replace(tzinfo=DEFAULT_TIME_ZONE)
    return dt_obj.astimezone(UTC)


def as_local(dt_obj: datetime, tz: ZoneInfo | None = None) -> datetime:
    """Convert a datetime to the facility timezone.

    Args:
        dt_obj: Datetime object (naive values are assumed to be UTC)
        tz: Optional timezone override. Uses DEFAULT_TIME_ZONE if not provided.

    Returns:
        Datetime in local timezone
    """
    tz_info = tz or DEFAULT_TIME_ZONE
    if dt_obj.tzinfo is None:
        dt_obj = dt_obj.replace(tzinfo=UTC)
    return dt_obj.astimezone(tz_info)


def start_of_local_day(day: date, tz: ZoneInfo | None = None) -> datetime:
    """Return 00:00 local time of a calendar date as a UTC datetime.

    Args:
        day: Calendar date
        tz: Optional timezone override. Uses DEFAULT_TIME_ZONE if not provided.
    """
    tz_info = tz or DEFAULT_TIME_ZONE
    local_midnight = datetime.combine(day, datetime.min.time()).replace(
        tzinfo=tz_info
    )
    return local_midnight.astimezone(UTC)


def end_of_local_day(day: date, tz: ZoneInfo | None = None) -> datetime:
    """Return the first instant after a calendar date (next local midnight) in UTC.

    Computed from the next date's midnight so 23h and 25h DST days are exact.
    """
    return start_of_local_day(day + timedelta(days=1), tz)


# ==============================================================================
# Date/Time Parsing
# ==============================================================================


def dt_parse_date(date_input: str | date | None) -> date | None:
    """Safely parse a date into a `datetime.date`.

    Accepts ISO strings ("2025-04-07"), date and datetime objects.

    Returns:
        datetime.date or None if parsing fails.
    """
    if not date_input:
        return None
    if isinstance(date_input, datetime):
        return date_input.date()
    if isinstance(date_input, date):
        return date_input
    if not isinstance(date_input, str):
        return None

    try:
        return date.fromisoformat(date_input.strip())
    except ValueError:
        pass

    for fmt in ("%Y/%m/%d", "%d/%m/%Y"):
        try:
            return datetime.strptime(date_input.strip(), fmt).date()
        except ValueError:
            continue

    return None


def dt_parse(
    dt_input: str | date | datetime | None,
    default_tzinfo: tzinfo | None = None,
    return_type: str | None = HELPER_RETURN_DATETIME,
) -> datetime | date | str | None:
    """Normalize various datetime input formats to a consistent format.

    Args:
        dt_input: String, date or datetime to normalize, or None
        default_tzinfo: Timezone to use if the input is naive
                        (defaults to DEFAULT_TIME_ZONE if None)
        return_type: One of the HELPER_RETURN_* constants

    Returns:
        Normalized value, or None if the input could not be parsed.
    """
    if not dt_input:
        return None

    tz_info = default_tzinfo or DEFAULT_TIME_ZONE
    result: datetime | None = None

    if isinstance(dt_input, str):
        try:
            result = datetime.fromisoformat(dt_input.strip())
        except ValueError:
            parsed_date = dt_parse_date(dt_input)
            if parsed_date is None:
                _LOGGER.debug("dt_parse: could not parse '%s'", dt_input)
                return None
            result = datetime.combine(parsed_date, datetime.min.time())
    elif isinstance(dt_input, datetime):
        result = dt_input
    elif isinstance(dt_input, date):
        result = datetime.combine(dt_input, datetime.min.time())
    else:
        return None

    if result.tzinfo is None:
        result = result.replace(tzinfo=tz_info)

    return dt_format(result, return_type)


def dt_to_utc(dt_input: str | datetime | None) -> datetime | None:
    """Parse a datetime (string or object), apply timezone if naive, convert to UTC.

    Example:
        "2025-04-07T14:30:00+02:00" -> datetime(2025, 4, 7, 12, 30, tzinfo=UTC)
    """
    if not dt_input:
        return None

    result = dt_parse(
        dt_input,
        default_tzinfo=DEFAULT_TIME_ZONE,
        return_type=HELPER_RETURN_DATETIME_UTC,
    )
    return cast("datetime | None", result)


# ==============================================================================
# Formatting / Arithmetic
# ==============================================================================


def dt_format(
    dt_obj: datetime,
    return_type: str | None = HELPER_RETURN_DATETIME,
) -> datetime | date | str:
    """Format a datetime object according to the specified return_type."""
    if return_type == HELPER_RETURN_DATETIME:
        return dt_obj
    if return_type == HELPER_RETURN_DATETIME_UTC:
        return as_utc(dt_obj)
    if return_type == HELPER_RETURN_DATETIME_LOCAL:
        return as_local(dt_obj)
    if return_type == HELPER_RETURN_DATE:
        return dt_obj.date()
    if return_type == HELPER_RETURN_ISO_DATETIME:
        return dt_obj.isoformat()
    if return_type == HELPER_RETURN_ISO_DATE:
        return dt_obj.date().isoformat()
    return dt_obj


def minutes_between(start: datetime, end: datetime) -> int:
    """Return whole minutes from start to end (negative if end is earlier).

    Examples:
        10:00 -> 10:45 = 45
        10:45 -> 10:00 = -45
    """
    # int() truncates toward zero so the sign never shifts the magnitude
    return int((as_utc(end) - as_utc(start)).total_seconds() / 60)
