"""
Centralized DOM schema for the Parkhurst Skedda booking site.

All CSS selectors and text keywords used by SkeddaProvider are defined here as
named constants, grouped by functional area. Fallback chains (tried in
priority order, first match wins) are tuples of strings.

When the site changes its markup, update selectors ONLY in this file and run
scripts/validate_selectors.py against fresh snapshots.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class SessionSelectors:
    """Selectors for detecting an authenticated session and for the login form."""

    # Any of these present means the booking form rendered, i.e. already logged in
    logged_in_markers: tuple[str, ...] = (
        ".booking-form",
        "#booking-form",
        'form[action*="booking"]',
    )
    email_inputs: tuple[str, ...] = (
        'input[type="email"]',
        'input[name="email"]',
        "#email",
    )
    password_inputs: tuple[str, ...] = (
        'input[type="password"]',
        'input[name="password"]',
        "#password",
    )
    # Falls back to pressing Enter when none match
    submit_buttons: tuple[str, ...] = (
        'button[type="submit"]',
        'input[type="submit"]',
        ".btn-primary",
    )


@dataclass(frozen=True)
class BookingFormSelectors:
    """Selectors for the booking form fields."""

    # Wait for any form control before filling
    form_controls: str = "input, textarea, select"
    title_inputs: tuple[str, ...] = (
        'input[name*="title"]',
        'input[placeholder*="title"]',
        'textarea[name*="title"]',
        "#booking-title",
        ".booking-title input",
    )
    signature_inputs: tuple[str, ...] = (
        'input[name*="signature"]',
        'input[placeholder*="signature"]',
        'input[placeholder*="initial"]',
        "#signature",
        ".signature input",
    )


@dataclass(frozen=True)
class ConfirmButtonSelectors:
    """Selectors for the confirm-booking control, most specific first."""

    structural: tuple[str, ...] = (
        ".row.pt-5 .col-12 button.btn.btn-success",
        "button.btn.btn-success",
        'button[type="submit"]',
        ".btn-success",
        ".confirm-booking",
    )
    # Fallback: button text contains one of these (case-insensitive), in order
    text_tag: str = "button"
    text_keywords: tuple[str, ...] = ("confirm", "book", "submit")


@dataclass(frozen=True)
class DialogSelectors:
    """Selectors for a confirmation dialog shown after submitting."""

    structural: tuple[str, ...] = (
        ".modal button.btn-success",
        ".modal button.btn-primary",
        '.popup button[type="submit"]',
        ".dialog .confirm",
    )
    text_tag: str = "button"
    text_keywords: tuple[str, ...] = ("ok", "confirm")
    # Text matches only count inside one of these containers
    containers: tuple[str, ...] = (".modal", ".popup", ".dialog")


@dataclass(frozen=True)
class ErrorMessageSelectors:
    """Selectors for error/alert banners, checked in order."""

    containers: tuple[str, ...] = (
        ".alert-danger",
        ".error-message",
        ".booking-error",
        '[class*="error"]',
        ".alert",
        '[role="alert"]',
    )
    # The transient success banner is sometimes styled as an alert
    success_banner_text: str = (
        "Too easy...your booking is in! A confirmation email will hit your inbox shortly."
    )


# ---- Module-level singleton instance ----
# Import and use as: from parkhurst_booking.providers.skedda_dom_schema import DOM
# Then reference: DOM.SESSION.email_inputs, DOM.CONFIRM.structural, etc.


@dataclass(frozen=True)
class SkeddaDOMSchema:
    """Top-level container grouping all selector categories."""

    SESSION: SessionSelectors = SessionSelectors()
    FORM: BookingFormSelectors = BookingFormSelectors()
    CONFIRM: ConfirmButtonSelectors = ConfirmButtonSelectors()
    DIALOG: DialogSelectors = DialogSelectors()
    ERROR_MESSAGES: ErrorMessageSelectors = ErrorMessageSelectors()


DOM = SkeddaDOMSchema()
