"""
Deep-link and title helpers for Skedda bookings.

Times are local wall-clock strings throughout; nothing here converts
timezones.
"""

import re
from datetime import date, datetime
from urllib.parse import quote

from parkhurst_booking.exceptions import ValidationError

MINUTES_PER_DAY = 24 * 60

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def is_valid_date(value: str) -> bool:
    """Strict YYYY-MM-DD check that also rejects impossible dates."""
    if not value or not _DATE_PATTERN.match(value):
        return False
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return False
    return True


def is_valid_time(value: str) -> bool:
    """Strict 24-hour HH:MM check."""
    return bool(value) and _TIME_PATTERN.match(value) is not None


def parse_minutes(value: str) -> int:
    """Convert HH:MM to minutes past midnight."""
    match = _TIME_PATTERN.match(value or "")
    if match is None:
        raise ValidationError(f"Invalid time format '{value}'. Use HH:MM")
    return int(match.group(1)) * 60 + int(match.group(2))


def is_valid_time_range(start_time: str, end_time: str) -> bool:
    return parse_minutes(start_time) < parse_minutes(end_time)


def is_valid_booking_date(booking_date: date, today: date) -> bool:
    return booking_date >= today


def to_iso_local(booking_date: date | str, time_str: str) -> str:
    """Join a date and HH:MM into an ISO-8601 local timestamp with seconds."""
    date_str = booking_date.isoformat() if isinstance(booking_date, date) else booking_date
    return f"{date_str}T{time_str}:00"


def build_booking_url(
    base_url: str,
    space_id: str,
    booking_date: date | str,
    start_time: str,
    end_time: str,
) -> str:
    """
    Build the deep link that pre-fills the Skedda booking form.

    Args:
        base_url: The booking page URL, without a query string
        space_id: Site-assigned identifier of the facility
        booking_date: The booking date
        start_time: Local start time, HH:MM
        end_time: Local end time, HH:MM

    Returns:
        URL with nbend, nbspaces and nbstart query parameters, each
        percent-encoded (':' becomes '%3A').
    """
    start_iso = quote(to_iso_local(booking_date, start_time), safe="")
    end_iso = quote(to_iso_local(booking_date, end_time), safe="")
    space = quote(str(space_id), safe="")
    return f"{base_url}?nbend={end_iso}&nbspaces={space}&nbstart={start_iso}"


def _format_12h(minutes_of_day: int) -> str:
    hours, minutes = divmod(minutes_of_day % MINUTES_PER_DAY, 60)
    suffix = "AM" if hours < 12 else "PM"
    display_hour = hours % 12 or 12
    return f"{display_hour}:{minutes:02d}{suffix}"


def format_booking_title(start_time: str, end_time: str, buffer_minutes: int = 15) -> str:
    """
    Title shown on the booking: the slot widened by the buffer on both sides.

    >>> format_booking_title("12:00", "13:00")
    '11:45AM - 1:15PM'
    """
    if buffer_minutes < 0:
        raise ValidationError("Buffer minutes must be zero or greater")
    start = parse_minutes(start_time) - buffer_minutes
    end = parse_minutes(end_time) + buffer_minutes
    return f"{_format_12h(start)} - {_format_12h(end)}"
