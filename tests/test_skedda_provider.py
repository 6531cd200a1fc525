"""
Tests for SkeddaProvider.

The step methods run against FakePage, so the selector fallbacks, click
fallback and outcome verification are exercised without a browser. The full
book() lifecycle is checked with a mocked WebDriver.
"""

from datetime import date
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from selenium.common.exceptions import SessionNotCreatedException, WebDriverException

from parkhurst_booking.exceptions import (
    BookingError,
    BookingVerificationFailed,
    ConfirmButtonNotFound,
    LoginFormNotFound,
    NavigationTimeout,
)
from parkhurst_booking.models.schemas import (
    BookingConfig,
    BookingRequest,
    Credentials,
    Facility,
)
from parkhurst_booking.providers.skedda_provider import SkeddaProvider
from parkhurst_booking.providers.wait_helper import SettleDelays, WaitStrategy
from parkhurst_booking.services.failure_log import FailureLog
from tests.fixtures.fake_page import FakeElement, FakePage

SUCCESS_URL = "https://parkhurst.skedda.com/booking"
DEEP_LINK = (
    "https://parkhurst.skedda.com/booking"
    "?nbend=2025-06-15T13%3A00%3A00&nbspaces=1244466&nbstart=2025-06-15T12%3A00%3A00"
)


@pytest.fixture
def config() -> BookingConfig:
    facility = Facility(space_id="1244466", name="Tennis - Lower Court Whole")
    return BookingConfig(
        credentials=Credentials(email="member@example.com", password="secret"),
        facilities={"tennis_lower": facility},
    )


@pytest.fixture
def log_path(tmp_path: Path) -> Path:
    return tmp_path / "booking_errors.log"


@pytest.fixture
def provider(config: BookingConfig, log_path: Path) -> SkeddaProvider:
    """A provider with zero settle delays and a temporary failure log."""
    return SkeddaProvider(
        config,
        failure_log=FailureLog(log_path),
        wait_strategy=WaitStrategy(SettleDelays.none()),
    )


@pytest.fixture
def request_(config: BookingConfig) -> BookingRequest:
    return BookingRequest(
        facility_key="tennis_lower",
        facility=config.facilities["tennis_lower"],
        booking_date=date(2025, 6, 15),
        start_time="12:00",
        end_time="13:00",
        signature="ZZ",
    )


class DetachedElement(FakeElement):
    """An element removed from the DOM between query and inspection."""

    def is_in_viewport(self) -> bool:
        raise WebDriverException("stale element reference")


def log_lines(path: Path) -> list[str]:
    if not path.exists():
        return []
    return path.read_text(encoding="utf-8").splitlines()


class TestNavigateAndLogin:
    """Tests for session detection and the login flow."""

    def test_skips_login_when_booking_form_present(self, provider: SkeddaProvider) -> None:
        page = FakePage(elements={"#booking-form": [FakeElement()]})

        provider.navigate_and_login(page, DEEP_LINK)

        assert page.visited == [DEEP_LINK]
        assert page.waited_for == []

    def test_logs_in_when_unauthenticated(self, provider: SkeddaProvider) -> None:
        email = FakeElement()
        password = FakeElement()
        submit = FakeElement(text="Log in")
        page = FakePage(
            elements={
                'input[type="email"]': [email],
                'input[type="password"]': [password],
                'button[type="submit"]': [submit],
            },
            navigates_to=DEEP_LINK,
        )

        provider.navigate_and_login(page, DEEP_LINK)

        assert email.value == "member@example.com"
        assert password.value == "secret"
        assert submit.native_clicks == 1
        assert page.enter_pressed is False

    def test_falls_back_to_later_input_selectors(self, provider: SkeddaProvider) -> None:
        email = FakeElement()
        password = FakeElement()
        page = FakePage(
            elements={"#email": [email], "#password": [password], ".btn-primary": [FakeElement()]},
            navigates_to=DEEP_LINK,
        )

        provider.perform_login(page)

        assert email.value == "member@example.com"
        assert password.value == "secret"

    def test_presses_enter_without_submit_control(self, provider: SkeddaProvider) -> None:
        page = FakePage(
            elements={'input[name="email"]': [FakeElement()], 'input[name="password"]': [FakeElement()]},
            navigates_to=DEEP_LINK,
        )

        provider.perform_login(page)

        assert page.enter_pressed is True

    def test_login_form_timeout(self, provider: SkeddaProvider) -> None:
        page = FakePage()

        with pytest.raises(LoginFormNotFound):
            provider.perform_login(page)

        selector, timeout = page.waited_for[0]
        assert 'input[type="email"]' in selector
        assert timeout == SkeddaProvider.LOGIN_FORM_TIMEOUT

    def test_missing_password_field(self, provider: SkeddaProvider) -> None:
        page = FakePage(elements={'input[type="email"]': [FakeElement()]})

        with pytest.raises(LoginFormNotFound):
            provider.perform_login(page)

    def test_navigation_timeout(self, provider: SkeddaProvider) -> None:
        page = FakePage(
            elements={'input[type="email"]': [FakeElement()], 'input[type="password"]': [FakeElement()]},
            navigates_to=None,
        )

        with pytest.raises(NavigationTimeout):
            provider.perform_login(page)


class TestFillBookingForm:
    """Tests for best-effort form filling."""

    def test_fills_title_and_signature(self, provider: SkeddaProvider) -> None:
        title = FakeElement()
        signature = FakeElement()
        signature.value = "old"
        page = FakePage(
            elements={'input[name*="title"]': [title], 'input[placeholder*="initial"]': [signature]}
        )

        provider.fill_booking_form(page, "11:45AM - 1:15PM", "ZZ")

        assert title.value == "11:45AM - 1:15PM"
        assert signature.value == "ZZ"

    def test_uses_first_matching_selector_only(self, provider: SkeddaProvider) -> None:
        preferred = FakeElement()
        fallback = FakeElement()
        page = FakePage(
            elements={'input[name*="title"]': [preferred], "#booking-title": [fallback]}
        )

        provider.fill_booking_form(page, "Practice", "ZZ")

        assert preferred.value == "Practice"
        assert fallback.typed == []

    def test_missing_fields_are_left_blank(
        self, provider: SkeddaProvider, caplog: pytest.LogCaptureFixture
    ) -> None:
        page = FakePage(elements={"input": [FakeElement()]})

        provider.fill_booking_form(page, "Practice", "ZZ")

        assert "title field not found" in caplog.text
        assert "Signature field not found" in caplog.text

    def test_settles_after_filling(self, config: BookingConfig) -> None:
        provider = SkeddaProvider(config, failure_log=MagicMock())
        page = FakePage()

        with patch("parkhurst_booking.providers.wait_helper.time_module.sleep") as mock_sleep:
            provider.fill_booking_form(page, "Practice", "ZZ")

        mock_sleep.assert_called_once_with(SettleDelays().after_fill)


class TestFindConfirmButton:
    """Tests for the two-phase confirm button lookup."""

    def test_prefers_layout_scoped_selector(self, provider: SkeddaProvider) -> None:
        scoped = FakeElement(text="Confirm booking")
        generic = FakeElement(text="Confirm booking")
        page = FakePage(
            elements={
                ".row.pt-5 .col-12 button.btn.btn-success": [scoped],
                "button.btn.btn-success": [generic, scoped],
            }
        )

        match = provider.find_confirm_button(page)

        assert match.element is scoped

    def test_skips_disabled_and_offscreen_buttons(self, provider: SkeddaProvider) -> None:
        disabled = FakeElement(enabled=False)
        offscreen = FakeElement(in_viewport=False)
        submit = FakeElement()
        page = FakePage(
            elements={
                "button.btn.btn-success": [disabled, offscreen],
                'button[type="submit"]': [submit],
            }
        )

        match = provider.find_confirm_button(page)

        assert match.element is submit

    def test_text_phase_when_structural_phase_empty(self, provider: SkeddaProvider) -> None:
        cancel = FakeElement(text="Cancel")
        book = FakeElement(text="Book it")
        page = FakePage(elements={"button": [cancel, book]})

        match = provider.find_confirm_button(page)

        assert match.element is book

    def test_text_phase_accepts_below_the_fold(self, provider: SkeddaProvider) -> None:
        """Text matches need only be rendered, not inside the viewport."""
        confirm = FakeElement(text="Confirm", in_viewport=False)
        page = FakePage(elements={"button": [confirm]})

        assert provider.find_confirm_button(page).element is confirm

    def test_text_phase_skips_disabled(self, provider: SkeddaProvider) -> None:
        page = FakePage(elements={"button": [FakeElement(text="Confirm", enabled=False)]})

        with pytest.raises(ConfirmButtonNotFound):
            provider.find_confirm_button(page)

    def test_not_found(self, provider: SkeddaProvider) -> None:
        with pytest.raises(ConfirmButtonNotFound):
            provider.find_confirm_button(FakePage())


class TestSubmitBooking:
    """Tests for clicking the confirm button and the follow-up dialog."""

    def test_native_click(self, provider: SkeddaProvider) -> None:
        button = FakeElement()
        page = FakePage(elements={"button.btn.btn-success": [button]})

        provider.submit_booking(page)

        assert button.scrolled is True
        assert button.native_clicks == 1
        assert button.script_clicks == 0

    def test_script_click_fallback(self, provider: SkeddaProvider) -> None:
        button = FakeElement(click_error="element click intercepted")
        page = FakePage(elements={"button.btn.btn-success": [button]})

        provider.submit_booking(page)

        assert button.native_clicks == 0
        assert button.script_clicks == 1

    def test_click_with_fallback_reports_method(self, provider: SkeddaProvider) -> None:
        assert provider.click_with_fallback(FakeElement()) == "native"
        assert provider.click_with_fallback(FakeElement(click_error="not interactable")) == "script"

    def test_structural_dialog_button_clicked(self, provider: SkeddaProvider) -> None:
        ok = FakeElement(text="OK")
        page = FakePage(elements={".modal button.btn-primary": [ok]})

        assert provider.handle_post_submission_dialog(page) is True
        assert ok.native_clicks == 1

    def test_dialog_text_match_requires_container(self, provider: SkeddaProvider) -> None:
        stray = FakeElement(text="OK")
        in_popup = FakeElement(text="Confirm", ancestors=(".popup",))
        page = FakePage(elements={"button": [stray, in_popup]})

        assert provider.handle_post_submission_dialog(page) is True
        assert stray.clicked is False
        assert in_popup.native_clicks == 1

    def test_at_most_one_dialog_click(self, provider: SkeddaProvider) -> None:
        first = FakeElement(text="OK")
        second = FakeElement(text="OK", ancestors=(".dialog",))
        page = FakePage(elements={".modal button.btn-success": [first], "button": [second]})

        provider.handle_post_submission_dialog(page)

        assert first.native_clicks == 1
        assert second.clicked is False

    def test_no_dialog(self, provider: SkeddaProvider) -> None:
        assert provider.handle_post_submission_dialog(FakePage()) is False

    def test_submit_handles_dialog(self, provider: SkeddaProvider) -> None:
        confirm = FakeElement(text="Confirm")
        ok = FakeElement(text="OK", ancestors=(".modal",))
        page = FakePage(elements={"button.btn.btn-success": [confirm], "button": [confirm, ok]})

        provider.submit_booking(page)

        assert confirm.native_clicks == 1
        assert ok.native_clicks == 1


class TestVerifyBookingSuccess:
    """Tests for outcome classification."""

    def test_exact_base_url_is_success(self, provider: SkeddaProvider, log_path: Path) -> None:
        page = FakePage(url=SUCCESS_URL)

        assert provider.verify_booking_success(page) == SUCCESS_URL
        assert log_lines(log_path) == []

    def test_base_url_with_query_is_failure(self, provider: SkeddaProvider, log_path: Path) -> None:
        page = FakePage(url=DEEP_LINK, title="Parkhurst - Skedda")

        with pytest.raises(BookingVerificationFailed) as exc_info:
            provider.verify_booking_success(page)

        assert exc_info.value.kind == BookingVerificationFailed.AMBIGUOUS
        assert DEEP_LINK in exc_info.value.message
        assert "Parkhurst - Skedda" in exc_info.value.message
        assert len(log_lines(log_path)) == 1

    def test_explicit_error_banner(self, provider: SkeddaProvider, log_path: Path) -> None:
        banner = FakeElement(text="Space is already booked")
        page = FakePage(url=DEEP_LINK, elements={".alert-danger": [banner]})

        with pytest.raises(BookingVerificationFailed) as exc_info:
            provider.verify_booking_success(page)

        assert exc_info.value.kind == BookingVerificationFailed.EXPLICIT
        assert exc_info.value.reason == "Space is already booked"
        assert "Space is already booked" in str(exc_info.value)
        lines = log_lines(log_path)
        assert len(lines) == 1
        assert lines[0].endswith(" - Booking failed: Space is already booked")

    def test_skips_hidden_and_empty_banners(self, provider: SkeddaProvider) -> None:
        hidden = FakeElement(text="Old error", visible=False)
        empty = FakeElement(text="   ")
        real = FakeElement(text="Outside booking window")
        page = FakePage(
            url=DEEP_LINK,
            elements={".alert-danger": [hidden, empty], '[role="alert"]': [real]},
        )

        with pytest.raises(BookingVerificationFailed) as exc_info:
            provider.verify_booking_success(page)

        assert exc_info.value.reason == "Outside booking window"

    def test_success_banner_is_not_an_error(self, provider: SkeddaProvider) -> None:
        banner = FakeElement(
            text="Too easy...your booking is in! A confirmation email will hit your inbox shortly."
        )
        page = FakePage(url=DEEP_LINK, title="Booking", elements={".alert": [banner]})

        with pytest.raises(BookingVerificationFailed) as exc_info:
            provider.verify_booking_success(page)

        assert exc_info.value.kind == BookingVerificationFailed.AMBIGUOUS

    def test_unreadable_element_does_not_hide_later_error(self, provider: SkeddaProvider) -> None:
        elements = {".alert-danger": [DetachedElement(text="gone"), FakeElement(text="Slot taken")]}
        page = FakePage(url=DEEP_LINK, title="Booking", elements=elements)

        with pytest.raises(BookingVerificationFailed) as exc_info:
            provider.verify_booking_success(page)

        assert exc_info.value.reason == "Slot taken"

    def test_log_write_failure_does_not_mask_error(self, config: BookingConfig) -> None:
        failure_log = MagicMock()
        failure_log.record.return_value = False
        provider = SkeddaProvider(
            config, failure_log=failure_log, wait_strategy=WaitStrategy(SettleDelays.none())
        )
        page = FakePage(url=DEEP_LINK, elements={".alert-danger": [FakeElement(text="Nope")]})

        with pytest.raises(BookingVerificationFailed):
            provider.verify_booking_success(page)

        failure_log.record.assert_called_once_with("Booking failed: Nope")

    def test_waits_before_checking(self, config: BookingConfig) -> None:
        provider = SkeddaProvider(config, failure_log=MagicMock())

        with patch("parkhurst_booking.providers.wait_helper.time_module.sleep") as mock_sleep:
            provider.verify_booking_success(FakePage(url=SUCCESS_URL))

        mock_sleep.assert_called_once_with(SettleDelays().before_verify)

    def test_success_url_follows_config(self, config: BookingConfig) -> None:
        config.urls.base_url = "https://example.skedda.com/booking"
        provider = SkeddaProvider(
            config, failure_log=MagicMock(), wait_strategy=WaitStrategy(SettleDelays.none())
        )

        assert provider.verify_booking_success(FakePage(url="https://example.skedda.com/booking"))


class TestRunBooking:
    """Tests for the full flow on a fake page."""

    def test_successful_booking(self, provider: SkeddaProvider, request_: BookingRequest) -> None:
        page = FakePage(elements={".booking-form": [FakeElement()]})
        title = FakeElement()
        signature = FakeElement()
        confirm = FakeElement(on_click=lambda: setattr(page, "url", SUCCESS_URL))
        page.add('input[name*="title"]', title)
        page.add('input[name*="signature"]', signature)
        page.add("button.btn.btn-success", confirm)

        result = provider.run_booking(page, request_)

        assert page.visited == [DEEP_LINK]
        assert title.value == "11:45AM - 1:15PM"
        assert signature.value == "ZZ"
        assert result.success is True
        assert result.booking_url == DEEP_LINK
        assert result.final_url == SUCCESS_URL

    def test_custom_title_overrides_generated(
        self, provider: SkeddaProvider, request_: BookingRequest
    ) -> None:
        page = FakePage(elements={".booking-form": [FakeElement()]})
        title = FakeElement()
        page.add('input[name*="title"]', title)
        page.add("button.btn.btn-success", FakeElement(on_click=lambda: setattr(page, "url", SUCCESS_URL)))

        result = provider.run_booking(page, request_.model_copy(update={"title": "Tournament Practice"}))

        assert title.value == "Tournament Practice"
        assert result.booking_title == "Tournament Practice"

    def test_stops_when_confirm_button_missing(
        self, provider: SkeddaProvider, request_: BookingRequest, log_path: Path
    ) -> None:
        page = FakePage(elements={".booking-form": [FakeElement()]})

        with pytest.raises(ConfirmButtonNotFound):
            provider.run_booking(page, request_)

        assert log_lines(log_path) == []


class TestBookLifecycle:
    """Tests for driver creation and guaranteed cleanup in book()."""

    @pytest.mark.asyncio
    async def test_driver_quit_after_success(
        self, provider: SkeddaProvider, request_: BookingRequest
    ) -> None:
        driver = MagicMock()
        expected = MagicMock()
        with (
            patch.object(provider, "_create_driver", return_value=driver),
            patch.object(provider, "_create_page", return_value=FakePage()),
            patch.object(provider, "run_booking", return_value=expected),
        ):
            result = await provider.book(request_)

        assert result is expected
        driver.quit.assert_called_once()

    @pytest.mark.asyncio
    async def test_driver_quit_and_context_attached_on_failure(
        self, provider: SkeddaProvider, request_: BookingRequest
    ) -> None:
        driver = MagicMock()
        page = FakePage(url=DEEP_LINK, title="Parkhurst - Skedda")
        with (
            patch.object(provider, "_create_driver", return_value=driver),
            patch.object(provider, "_create_page", return_value=page),
            patch.object(provider, "_capture_diagnostic_info"),
            patch.object(
                provider, "run_booking", side_effect=ConfirmButtonNotFound("Confirm booking button not found")
            ),
        ):
            with pytest.raises(ConfirmButtonNotFound) as exc_info:
                await provider.book(request_)

        driver.quit.assert_called_once()
        assert exc_info.value.url == DEEP_LINK
        assert exc_info.value.page_title == "Parkhurst - Skedda"

    @pytest.mark.asyncio
    async def test_webdriver_errors_are_wrapped(
        self, provider: SkeddaProvider, request_: BookingRequest
    ) -> None:
        driver = MagicMock()
        with (
            patch.object(provider, "_create_driver", return_value=driver),
            patch.object(provider, "_create_page", return_value=FakePage(url=DEEP_LINK)),
            patch.object(provider, "_capture_diagnostic_info"),
            patch.object(provider, "run_booking", side_effect=WebDriverException("chrome not reachable")),
        ):
            with pytest.raises(BookingError) as exc_info:
                await provider.book(request_)

        driver.quit.assert_called_once()
        assert "chrome not reachable" in exc_info.value.message
        assert exc_info.value.url == DEEP_LINK

    def test_headless_flag_controls_chrome_options(self, provider: SkeddaProvider) -> None:
        with (
            patch("parkhurst_booking.providers.skedda_provider.webdriver.Chrome") as mock_chrome,
            patch("parkhurst_booking.providers.skedda_provider.ChromeDriverManager"),
            patch("parkhurst_booking.providers.skedda_provider.Service"),
        ):
            provider._create_driver(headless=False)
            options = mock_chrome.call_args.kwargs["options"]
            assert "--headless=new" not in options.arguments

            provider._create_driver(headless=True)
            options = mock_chrome.call_args.kwargs["options"]
            assert "--headless=new" in options.arguments
            mock_chrome.return_value.set_page_load_timeout.assert_called_with(30.0)

    @pytest.mark.asyncio
    async def test_driver_startup_failure_becomes_booking_error(
        self, provider: SkeddaProvider, request_: BookingRequest
    ) -> None:
        with (
            patch.object(
                provider,
                "_create_driver",
                side_effect=SessionNotCreatedException("chrome version mismatch"),
            ),
            patch.object(provider, "run_booking") as mock_run,
        ):
            with pytest.raises(BookingError) as exc_info:
                await provider.book(request_)

        assert "chrome version mismatch" in exc_info.value.message
        mock_run.assert_not_called()

    @pytest.mark.asyncio
    async def test_driver_download_failure_becomes_booking_error(
        self, provider: SkeddaProvider, request_: BookingRequest
    ) -> None:
        with patch.object(provider, "_create_driver", side_effect=ValueError("no matching driver")):
            with pytest.raises(BookingError) as exc_info:
                await provider.book(request_)

        assert "could not start Chrome" in exc_info.value.message
        assert "no matching driver" in exc_info.value.message

    def test_driver_quit_when_timeout_setup_fails(self, provider: SkeddaProvider) -> None:
        with (
            patch("parkhurst_booking.providers.skedda_provider.webdriver.Chrome") as mock_chrome,
            patch("parkhurst_booking.providers.skedda_provider.ChromeDriverManager"),
            patch("parkhurst_booking.providers.skedda_provider.Service"),
        ):
            driver = mock_chrome.return_value
            driver.set_page_load_timeout.side_effect = WebDriverException("session deleted")

            with pytest.raises(WebDriverException):
                provider._create_driver(headless=True)

        driver.quit.assert_called_once()
