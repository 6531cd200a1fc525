"""
Error taxonomy for a booking attempt.

Every error is terminal for the current attempt. Errors raised while a browser
page is open carry the page URL and title so the CLI can report where the
attempt stopped.
"""


class BookingError(Exception):
    """Base class for all booking failures."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        page_title: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.url = url
        self.page_title = page_title

    def with_context(self, url: str | None, page_title: str | None) -> "BookingError":
        """Attach page context if the error does not already carry it."""
        if self.url is None:
            self.url = url
        if self.page_title is None:
            self.page_title = page_title
        return self

    def describe(self) -> str:
        """Message plus whatever page context is known."""
        parts = [self.message]
        if self.url:
            parts.append(f"URL: {self.url}")
        if self.page_title:
            parts.append(f"Page title: {self.page_title}")
        return " | ".join(parts)


class ConfigError(BookingError):
    """Missing or malformed configuration, or an unknown facility key."""


class ValidationError(BookingError):
    """Bad booking parameters (date/time format, past date, start >= end)."""


class LoginFormNotFound(BookingError):
    """The login form did not appear before the timeout."""


class NavigationTimeout(BookingError):
    """A page transition did not complete before the timeout."""


class ConfirmButtonNotFound(BookingError):
    """No visible, enabled confirmation control could be located."""


class BookingVerificationFailed(BookingError):
    """The submission was not confirmed by a redirect to the booking page."""

    EXPLICIT = "explicit"
    AMBIGUOUS = "ambiguous"

    def __init__(
        self,
        message: str,
        reason: str,
        kind: str,
        url: str | None = None,
        page_title: str | None = None,
    ) -> None:
        super().__init__(message, url=url, page_title=page_title)
        self.reason = reason
        self.kind = kind


class ClickFailed(Exception):
    """A native click could not be delivered to the element."""
