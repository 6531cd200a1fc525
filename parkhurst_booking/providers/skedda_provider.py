import asyncio
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path

from selenium import webdriver
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from webdriver_manager.chrome import ChromeDriverManager

from parkhurst_booking.config import settings
from parkhurst_booking.exceptions import (
    BookingError,
    BookingVerificationFailed,
    ClickFailed,
    ConfirmButtonNotFound,
    LoginFormNotFound,
    NavigationTimeout,
)
from parkhurst_booking.models.schemas import BookingConfig, BookingRequest
from parkhurst_booking.providers.base import BookingResult, ReservationProvider
from parkhurst_booking.providers.page import Element, Page, SeleniumPage
from parkhurst_booking.providers.selector_chain import (
    Match,
    clickable,
    clickable_in_viewport,
    css_chain,
    first_match,
    in_viewport,
    text_chain,
)
from parkhurst_booking.providers.skedda_dom_schema import DOM
from parkhurst_booking.providers.wait_helper import WaitStrategy
from parkhurst_booking.services.failure_log import FailureLog
from parkhurst_booking.services.link_builder import build_booking_url, format_booking_title

logger = logging.getLogger(__name__)


class SkeddaProvider(ReservationProvider):
    """
    Selenium-based provider for booking community facilities on Skedda.

    The booking site accepts a deep link that pre-fills the booking form with
    the space, start and end. This provider automates the rest of the flow:
    1. Load the deep link and log in if the booking form is not shown
    2. Fill the title and signature fields
    3. Click the confirm button (and a follow-up confirmation dialog, if any)
    4. Verify the outcome from the final URL and any visible error banner

    Implementation Note:
        book() runs the blocking Selenium flow in a background thread via
        asyncio.to_thread(). Each booking creates its own WebDriver and quits
        it when the attempt ends, whatever the outcome.
    """

    LOGIN_FORM_TIMEOUT = 10.0
    NAVIGATION_TIMEOUT = 15.0
    FORM_READY_TIMEOUT = 10.0
    WINDOW_SIZE = (1280, 720)

    def __init__(
        self,
        config: BookingConfig,
        failure_log: FailureLog | None = None,
        wait_strategy: WaitStrategy | None = None,
    ) -> None:
        self.config = config
        self.failure_log = failure_log or FailureLog()
        self.wait = wait_strategy or WaitStrategy()

    @property
    def success_url(self) -> str:
        """The booking page without a query string; the site redirects here on success."""
        return self.config.urls.base_url

    def _create_driver(self, headless: bool) -> webdriver.Chrome:
        """Create a Chrome WebDriver instance."""
        options = Options()
        if headless:
            options.add_argument("--headless=new")
        options.add_argument("--no-sandbox")
        options.add_argument("--disable-setuid-sandbox")
        options.add_argument("--disable-dev-shm-usage")
        options.add_argument("--disable-gpu")
        options.add_argument(f"--window-size={self.WINDOW_SIZE[0]},{self.WINDOW_SIZE[1]}")

        # Check for ChromeDriver path from settings first,
        # then fall back to ChromeDriverManager for automatic version management
        chromedriver_path = settings.chromedriver_path
        if chromedriver_path and os.path.exists(chromedriver_path):
            service = Service(chromedriver_path)
        else:
            service = Service(ChromeDriverManager().install())
        driver = webdriver.Chrome(service=service, options=options)
        try:
            driver.set_page_load_timeout(self.config.defaults.timeout / 1000)
        except WebDriverException:
            driver.quit()
            raise
        return driver

    def _create_page(self, driver: webdriver.Chrome) -> Page:
        return SeleniumPage(driver, self.wait)

    async def book(self, request: BookingRequest) -> BookingResult:
        """
        Book a facility slot.

        Runs the whole attempt in a background thread:
        1. Creates a new WebDriver instance
        2. Navigates to the deep link, logging in if needed
        3. Fills the form, submits it and verifies the outcome
        4. Quits the WebDriver

        Args:
            request: The resolved booking request

        Returns:
            BookingResult describing the successful booking

        Raises:
            BookingError: Any failure; errors raised while the page was open
                carry its URL and title.
        """
        return await asyncio.to_thread(self._book_sync, request)

    def _start_browser(self, headless: bool) -> webdriver.Chrome:
        """Create the driver, reporting startup failures as BookingError."""
        try:
            return self._create_driver(headless)
        except WebDriverException as e:
            raise BookingError(f"Browser error: {e.msg or e}") from e
        except (ValueError, OSError) as e:
            # webdriver-manager download or version lookup failures
            raise BookingError(f"Browser error: could not start Chrome: {e}") from e

    def _book_sync(self, request: BookingRequest) -> BookingResult:
        """Synchronous booking implementation with full driver lifecycle."""
        logger.info("Initializing browser...")
        driver = self._start_browser(request.headless)
        page = self._create_page(driver)
        logger.info("Browser initialized successfully")
        try:
            return self.run_booking(page, request)
        except BookingError as e:
            url, title = self._page_context(page)
            self._log_failure_context(e, url, title)
            self._capture_diagnostic_info(driver, type(e).__name__)
            raise e.with_context(url, title)
        except WebDriverException as e:
            url, title = self._page_context(page)
            error = BookingError(f"Browser error: {e.msg or e}", url=url, page_title=title)
            self._log_failure_context(error, url, title)
            self._capture_diagnostic_info(driver, "webdriver_error")
            raise error from e
        finally:
            driver.quit()
            logger.info("Browser closed")

    def run_booking(self, page: Page, request: BookingRequest) -> BookingResult:
        """Drive one booking attempt on an open page."""
        booking_url = build_booking_url(
            base_url=self.config.urls.base_url,
            space_id=request.facility.space_id,
            booking_date=request.booking_date,
            start_time=request.start_time,
            end_time=request.end_time,
        )
        booking_title = request.title or format_booking_title(
            request.start_time,
            request.end_time,
            self.config.defaults.buffer_minutes,
        )
        logger.info(
            f"Booking details: {request.facility.name} on {request.booking_date.isoformat()} "
            f"from {request.start_time} to {request.end_time}"
        )

        logger.debug("Step 1/4 - Navigating and logging in")
        self.navigate_and_login(page, booking_url)

        logger.debug("Step 2/4 - Filling booking form")
        self.fill_booking_form(page, booking_title, request.signature)

        logger.debug("Step 3/4 - Submitting booking")
        self.submit_booking(page)

        logger.debug("Step 4/4 - Verifying booking")
        final_url = self.verify_booking_success(page)

        logger.info("Booking process completed successfully!")
        return BookingResult(
            success=True,
            booking_url=booking_url,
            booking_title=booking_title,
            final_url=final_url,
        )

    # ---- Session ----

    def is_logged_in(self, page: Page) -> bool:
        return first_match(page, css_chain(DOM.SESSION.logged_in_markers)) is not None

    def navigate_and_login(self, page: Page, booking_url: str) -> None:
        logger.info(f"Navigating to: {booking_url}")
        page.goto(booking_url)

        if self.is_logged_in(page):
            logger.info("Already logged in, proceeding to booking form")
            return

        self.perform_login(page)

    def perform_login(self, page: Page) -> None:
        """
        Fill and submit the login form, then wait for the page transition.

        The booking form is not re-checked after the transition; a login that
        lands somewhere unexpected surfaces later as a missing confirm button
        or a failed verification.

        Raises:
            LoginFormNotFound: The email/password fields did not appear in time.
            NavigationTimeout: No page transition followed the submit.
        """
        logger.info("Performing login...")
        credentials = self.config.credentials

        if not page.wait_for_selector(", ".join(DOM.SESSION.email_inputs), self.LOGIN_FORM_TIMEOUT):
            raise LoginFormNotFound(
                f"Login form not found: no email field appeared within {self.LOGIN_FORM_TIMEOUT:.0f}s"
            )

        email_match = first_match(page, css_chain(DOM.SESSION.email_inputs))
        password_match = first_match(page, css_chain(DOM.SESSION.password_inputs))
        if email_match is None or password_match is None:
            raise LoginFormNotFound("Login form not found")

        email_match.element.type_text(credentials.email)
        password_match.element.type_text(credentials.password)

        previous_url = page.url
        submit_match = first_match(page, css_chain(DOM.SESSION.submit_buttons))
        if submit_match is not None:
            self.click_with_fallback(submit_match.element, submit_match.strategy.description)
        else:
            logger.debug("No login submit control found, pressing Enter")
            page.press_enter()

        if not page.wait_for_navigation(previous_url, self.NAVIGATION_TIMEOUT):
            raise NavigationTimeout(
                f"Login did not complete: no page transition within {self.NAVIGATION_TIMEOUT:.0f}s"
            )
        logger.info("Login completed successfully")

    # ---- Form ----

    def fill_booking_form(self, page: Page, booking_title: str, signature: str) -> None:
        """
        Best-effort fill of the title and signature fields.

        A field with no matching input is left blank; submission and
        verification decide whether the booking went through.
        """
        logger.info("Filling booking form...")

        if not page.wait_for_selector(DOM.FORM.form_controls, self.FORM_READY_TIMEOUT):
            logger.warning("No form controls appeared; continuing without them")

        if self._fill_field(page, DOM.FORM.title_inputs, booking_title):
            logger.info(f"Booking title filled: {booking_title}")
        else:
            logger.warning("Booking title field not found; leaving it blank")

        if self._fill_field(page, DOM.FORM.signature_inputs, signature):
            logger.info(f"Signature filled: {signature}")
        else:
            logger.warning("Signature field not found; leaving it blank")

        self.wait.settle(self.wait.delays.after_fill, "form validation")

    def _fill_field(self, page: Page, selectors: tuple[str, ...], value: str) -> bool:
        match = first_match(page, css_chain(selectors))
        if match is None:
            return False
        match.element.replace_text(value)
        logger.debug(f"Filled field matched by {match.strategy.description}")
        return True

    # ---- Submission ----

    def find_confirm_button(self, page: Page) -> Match:
        """
        Locate the confirm control.

        Structural selectors are tried first (element must be in the viewport
        and enabled); if none qualifies, buttons are matched by text keyword
        (element must be rendered and enabled).

        Raises:
            ConfirmButtonNotFound: Neither phase produced a candidate.
        """
        match = first_match(page, css_chain(DOM.CONFIRM.structural), clickable_in_viewport)
        if match is not None:
            logger.info(f"Found confirm button with selector: {match.strategy.description}")
            return match

        match = first_match(
            page,
            text_chain(DOM.CONFIRM.text_keywords, tag=DOM.CONFIRM.text_tag),
            clickable,
        )
        if match is not None:
            logger.info(f"Found confirm button with {match.strategy.description}")
            return match

        raise ConfirmButtonNotFound("Confirm booking button not found or not clickable")

    def click_with_fallback(self, element: Element, description: str = "") -> str:
        """
        Click natively; if the native click is refused, dispatch a script click.

        Returns:
            "native" or "script", whichever delivered the click
        """
        try:
            element.click()
            logger.debug(f"Native click on {description or 'element'}")
            return "native"
        except ClickFailed as e:
            logger.info(f"Standard click failed ({e}), trying JavaScript click")
            element.script_click()
            return "script"

    def submit_booking(self, page: Page) -> None:
        logger.info("Submitting booking...")
        match = self.find_confirm_button(page)

        match.element.scroll_into_view()
        self.wait.settle(self.wait.delays.before_click, "scroll")

        method = self.click_with_fallback(match.element, match.strategy.description)
        logger.info(f"Booking submitted with {method} click")

        self.wait.settle(self.wait.delays.after_submit, "submission")
        self.handle_post_submission_dialog(page)

    def handle_post_submission_dialog(self, page: Page) -> bool:
        """
        Click the confirmation control of a follow-up dialog, if one is shown.

        At most one dialog is handled per attempt.

        Returns:
            True if a dialog control was clicked
        """
        logger.info("Checking for post-submission dialogs...")

        match = first_match(page, css_chain(DOM.DIALOG.structural), in_viewport)
        if match is None:
            match = first_match(
                page,
                text_chain(
                    DOM.DIALOG.text_keywords,
                    tag=DOM.DIALOG.text_tag,
                    containers=DOM.DIALOG.containers,
                ),
                clickable,
            )

        if match is None:
            logger.debug("No post-submission dialog found")
            return False

        self.click_with_fallback(match.element, match.strategy.description)
        logger.info(f"Clicked modal confirmation: {match.strategy.description}")
        self.wait.settle(self.wait.delays.after_dialog, "dialog")
        return True

    # ---- Verification ----

    def _error_banner_text(self, element: Element) -> str | None:
        """Text of a visible error banner; None for anything else or on inspection failure."""
        try:
            if not element.is_in_viewport():
                return None
            text = element.text()
        except WebDriverException as e:
            logger.warning(f"Error while inspecting error element: {e}")
            return None
        if not text or DOM.ERROR_MESSAGES.success_banner_text in text:
            return None
        return text

    def find_error_message(self, page: Page) -> str | None:
        """Text of the first visible error banner, or None."""
        for selector in DOM.ERROR_MESSAGES.containers:
            try:
                candidates = page.query_all(selector)
            except WebDriverException as e:
                logger.warning(f"Error while checking selector {selector}: {e}")
                continue
            for element in candidates:
                text = self._error_banner_text(element)
                if text:
                    return text
        return None

    def verify_booking_success(self, page: Page) -> str:
        """
        Classify the attempt after the submission has settled.

        Success is a redirect to exactly the booking page URL with no query
        string. Anything else is a failure, reported with the first visible
        error banner text if there is one.

        Returns:
            The final URL on success

        Raises:
            BookingVerificationFailed: With kind "explicit" when an error banner
                was found, "ambiguous" otherwise. A failure-log line is written
                first.
        """
        logger.info("Verifying booking success...")
        self.wait.settle(self.wait.delays.before_verify, "redirect")

        current_url = page.url
        if current_url == self.success_url:
            logger.info(f"Success detected: Navigated to {current_url}")
            return current_url

        logger.info(
            f"Not redirected to exact success URL. Current URL: {current_url}. "
            "Checking for errors."
        )

        error_text = self.find_error_message(page)
        if error_text:
            message = f"Booking failed: {error_text}"
            logger.error(message)
            self.failure_log.record(message)
            raise BookingVerificationFailed(
                message,
                reason=error_text,
                kind=BookingVerificationFailed.EXPLICIT,
                url=current_url,
            )

        page_title = page.title
        message = (
            f"Booking status unclear. Not on success URL. "
            f"Current URL: {current_url}, Page Title: {page_title}"
        )
        logger.error(message)
        self.failure_log.record(message)
        raise BookingVerificationFailed(
            message,
            reason=message,
            kind=BookingVerificationFailed.AMBIGUOUS,
            url=current_url,
            page_title=page_title,
        )

    # ---- Diagnostics ----

    def _page_context(self, page: Page) -> tuple[str | None, str | None]:
        try:
            return page.url, page.title
        except WebDriverException as e:
            logger.warning(f"Could not retrieve page information: {e}")
            return None, None

    def _log_failure_context(self, error: BookingError, url: str | None, title: str | None) -> None:
        logger.error(f"Booking failed: {error.message}")
        if url:
            logger.error(f"Error occurred on page: {url}")
        if title:
            logger.error(f"Page title: {title}")

    def _capture_diagnostic_info(self, driver: webdriver.Chrome, context: str) -> None:
        """
        Capture diagnostic information (screenshot and page source) on failure.

        Args:
            driver: The WebDriver instance
            context: Description of what operation failed
        """
        try:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            base = Path(tempfile.gettempdir()) / f"skedda_debug_{context}_{timestamp}"

            driver.save_screenshot(f"{base}.png")
            logger.info(f"Saved debug screenshot to {base}.png")

            Path(f"{base}.html").write_text(driver.page_source, encoding="utf-8")
            logger.info(f"Saved debug HTML to {base}.html")

        except (WebDriverException, OSError) as e:
            logger.warning(f"Failed to capture diagnostic info: {e}")

    async def close(self) -> None:
        """
        Each booking manages its own WebDriver, so there is nothing to release
        here. Kept for interface compatibility.
        """
        pass
