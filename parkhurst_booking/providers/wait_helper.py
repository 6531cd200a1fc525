"""
Wait helpers for the booking flow.

Two kinds of waits are used:
- Bounded waits: poll the page until an element appears or the URL changes,
  giving up after a timeout.
- Settle delays: fixed pauses that let the page finish asynchronous updates
  (client-side validation, re-renders, server redirects) before the next step.

Settle durations are grouped in SettleDelays so tests can run with zero delays.
"""

import logging
import time as time_module
from dataclasses import dataclass
from typing import Any

from selenium.common.exceptions import TimeoutException
from selenium.webdriver.chrome.webdriver import WebDriver
from selenium.webdriver.common.by import By
from selenium.webdriver.support import expected_conditions
from selenium.webdriver.support.ui import WebDriverWait

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettleDelays:
    """Fixed pauses, in seconds, between booking steps."""

    after_fill: float = 1.0
    before_click: float = 0.5
    after_submit: float = 2.0
    after_dialog: float = 1.0
    # Long enough for the post-booking redirect to complete
    before_verify: float = 5.0

    @classmethod
    def none(cls) -> "SettleDelays":
        return cls(after_fill=0, before_click=0, after_submit=0, after_dialog=0, before_verify=0)


class WaitStrategy:
    """
    Bounded element/navigation waits and fixed settle delays.

    Usage:
        wait_strategy = WaitStrategy()
        wait_strategy.wait_for_element(driver, "input[type='email'], #email", timeout=10.0)
        wait_strategy.settle(wait_strategy.delays.after_fill, "form fill")
    """

    def __init__(self, delays: SettleDelays | None = None) -> None:
        self.delays = delays or SettleDelays()

    def wait_for_element(
        self,
        driver: WebDriver,
        selector: str,
        timeout: float = 10.0,
    ) -> Any | None:
        """
        Wait for an element matching a CSS selector to be present in the DOM.

        Args:
            driver: The WebDriver instance
            selector: CSS selector (a comma-separated group matches any member)
            timeout: Maximum wait time in seconds

        Returns:
            The element if found before the timeout, None otherwise
        """
        locator = (By.CSS_SELECTOR, selector)
        wait = WebDriverWait(driver, timeout)

        try:
            element = wait.until(expected_conditions.presence_of_element_located(locator))
        except TimeoutException:
            logger.warning(f"Timeout after {timeout}s waiting for element {selector!r}")
            return None

        logger.debug(f"Element {selector!r} found")
        return element

    def wait_for_navigation(self, driver: WebDriver, previous_url: str, timeout: float = 15.0) -> bool:
        """
        Wait for the URL to change away from `previous_url` and the new
        document to finish loading.

        Returns:
            True if the navigation completed before the timeout, False otherwise
        """
        wait = WebDriverWait(driver, timeout)
        try:
            wait.until(expected_conditions.url_changes(previous_url))
            wait.until(lambda d: d.execute_script("return document.readyState") == "complete")
        except TimeoutException:
            logger.warning(f"Timeout after {timeout}s waiting for navigation from {previous_url}")
            return False

        logger.debug(f"Navigated to {driver.current_url}")
        return True

    def settle(self, duration: float, reason: str = "") -> None:
        """Pause for a fixed duration so the page can finish updating."""
        if duration <= 0:
            return
        logger.debug(f"Settling {duration}s{f' ({reason})' if reason else ''}")
        time_module.sleep(duration)
