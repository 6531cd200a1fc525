"""
Booking service for resolving and executing facility reservations.

This module turns raw command-line input plus config defaults into a validated
BookingRequest, and runs it through a reservation provider. All validation
happens here, before any browser is started.
"""

import logging
from collections.abc import Callable
from datetime import date, datetime, timedelta

import pytz

from parkhurst_booking.config import get_facility, settings
from parkhurst_booking.exceptions import ValidationError
from parkhurst_booking.models.schemas import (
    DEFAULT_BOOK_IN_ADVANCE_DAYS,
    BookingConfig,
    BookingRequest,
)
from parkhurst_booking.providers.base import BookingResult, ReservationProvider
from parkhurst_booking.providers.skedda_provider import SkeddaProvider
from parkhurst_booking.services.link_builder import (
    is_valid_booking_date,
    is_valid_date,
    is_valid_time,
    is_valid_time_range,
)

logger = logging.getLogger(__name__)

# Value of --book-in-advance-days when the flag is given without a number
ADVANCE_DAYS_FROM_CONFIG = -1

ProviderFactory = Callable[[BookingConfig], ReservationProvider]


def local_today(timezone: str | None = None) -> date:
    """Today's date in the configured timezone, or in local time if none is set."""
    tz_name = settings.booking_timezone if timezone is None else timezone
    if tz_name:
        return datetime.now(pytz.timezone(tz_name)).date()
    return date.today()


def resolve_booking_date(
    explicit_date: str | None,
    advance_days: int | None,
    config_default: int | None,
    today: date,
) -> str:
    """
    Decide which date to book.

    Args:
        explicit_date: --date value (YYYY-MM-DD), validated later
        advance_days: --book-in-advance-days value; ADVANCE_DAYS_FROM_CONFIG
            when the flag was given without a number, None when absent
        config_default: defaults.bookInAdvanceDays from the config file
        today: The reference date

    Returns:
        The booking date as YYYY-MM-DD
    """
    if explicit_date and advance_days is not None:
        raise ValidationError("Use either --date or --book-in-advance-days, not both")

    if explicit_date:
        return explicit_date

    if advance_days is None or advance_days == ADVANCE_DAYS_FROM_CONFIG:
        days = config_default if config_default is not None else DEFAULT_BOOK_IN_ADVANCE_DAYS
    elif advance_days < 0:
        raise ValidationError("--book-in-advance-days must be zero or greater")
    else:
        days = advance_days

    resolved = today + timedelta(days=days)
    logger.info(f"Booking {days} day(s) in advance: {resolved.isoformat()}")
    return resolved.isoformat()


def validate_booking_params(
    date_str: str,
    start_time: str,
    end_time: str,
    today: date,
    force_date: bool = False,
) -> date:
    """
    Check date and time inputs, collecting every problem into one error.

    Returns:
        The parsed booking date

    Raises:
        ValidationError: Messages joined with '; '
    """
    errors = []
    booking_date: date | None = None

    if not is_valid_date(date_str):
        errors.append("Invalid date format. Use YYYY-MM-DD")
    else:
        booking_date = date.fromisoformat(date_str)
        if not force_date and not is_valid_booking_date(booking_date, today):
            errors.append("Booking date cannot be in the past")

    start_ok = is_valid_time(start_time)
    end_ok = is_valid_time(end_time)
    if not start_ok:
        errors.append("Invalid start time format. Use HH:MM")
    if not end_ok:
        errors.append("Invalid end time format. Use HH:MM")
    if start_ok and end_ok and not is_valid_time_range(start_time, end_time):
        errors.append("Start time must be before end time")

    if errors or booking_date is None:
        raise ValidationError("; ".join(errors))

    if force_date and booking_date < today:
        logger.warning(f"Booking a past date ({booking_date.isoformat()}) because --force-date was given")

    return booking_date


class BookingService:
    """
    Builds booking requests and executes them through a reservation provider.

    Attributes:
        _provider_factory: Creates a provider for a loaded config.
    """

    def __init__(self, provider_factory: ProviderFactory | None = None) -> None:
        self._provider_factory: ProviderFactory = provider_factory or SkeddaProvider

    def build_request(
        self,
        config: BookingConfig,
        facility_key: str,
        start_time: str,
        end_time: str,
        explicit_date: str | None = None,
        advance_days: int | None = None,
        signature: str | None = None,
        title: str | None = None,
        headless: bool | None = None,
        force_date: bool = False,
        today: date | None = None,
    ) -> BookingRequest:
        """
        Resolve and validate a booking request.

        The signature comes from the command line if given, otherwise from the
        config (which already reflects profile and environment overrides).
        Headless mode follows the same precedence.
        """
        today = today or local_today()
        date_str = resolve_booking_date(
            explicit_date, advance_days, config.defaults.book_in_advance_days, today
        )
        booking_date = validate_booking_params(date_str, start_time, end_time, today, force_date)
        facility = get_facility(config, facility_key)

        return BookingRequest(
            facility_key=facility_key,
            facility=facility,
            booking_date=booking_date,
            start_time=start_time,
            end_time=end_time,
            signature=signature or config.defaults.signature,
            title=title or None,
            headless=config.defaults.headless if headless is None else headless,
        )

    async def execute(self, config: BookingConfig, request: BookingRequest) -> BookingResult:
        """
        Run one booking attempt. BookingError subclasses propagate to the caller.
        """
        provider = self._provider_factory(config)
        try:
            result = await provider.book(request)
        finally:
            await provider.close()

        logger.info(
            f"Booked {request.facility.name} on {request.booking_date.isoformat()} "
            f"{request.start_time}-{request.end_time}"
        )
        return result


booking_service = BookingService()
