from abc import ABC, abstractmethod
from dataclasses import dataclass

from parkhurst_booking.models.schemas import BookingRequest


@dataclass
class BookingResult:
    success: bool
    booking_url: str | None = None
    booking_title: str | None = None
    final_url: str | None = None
    error_message: str | None = None


class ReservationProvider(ABC):
    """Abstract base class for facility reservation providers."""

    @abstractmethod
    async def book(self, request: BookingRequest) -> BookingResult:
        """
        Submit one booking. Raises a BookingError subclass on failure.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        pass
