import logging
from datetime import UTC, datetime
from pathlib import Path

from parkhurst_booking.config import settings

logger = logging.getLogger(__name__)


class FailureLog:
    """Append-only text log with one line per failed booking attempt."""

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path or settings.booking_failure_log)

    def record(self, message: str) -> bool:
        """
        Append `<ISO timestamp> - <message>` to the log.

        A failed write is logged as a warning and reported by returning False;
        it never raises, so it cannot mask the failure being recorded.
        """
        timestamp = datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
        line = f"{timestamp} - {message}\n"
        try:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line)
        except OSError as e:
            logger.warning(f"Failed to write to failure log {self.path}: {e}")
            return False
        logger.info(f"Error logged to {self.path}")
        return True
