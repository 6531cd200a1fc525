"""
Browser page abstraction used by the booking flow.

The flow only needs a handful of page operations (navigate, query by CSS,
inspect and click elements), so they are expressed as two small interfaces.
SeleniumPage/SeleniumElement implement them on top of a Chrome WebDriver;
tests implement them with in-memory fakes.
"""

from abc import ABC, abstractmethod

from selenium.common.exceptions import (
    ElementClickInterceptedException,
    ElementNotInteractableException,
    NoSuchElementException,
    StaleElementReferenceException,
)
from selenium.webdriver.chrome.webdriver import WebDriver
from selenium.webdriver.common.by import By
from selenium.webdriver.common.keys import Keys
from selenium.webdriver.remote.webelement import WebElement

from parkhurst_booking.exceptions import ClickFailed
from parkhurst_booking.providers.wait_helper import WaitStrategy

# Native click failures that a script-dispatched click can get around
NATIVE_CLICK_FAILURES = (
    ElementClickInterceptedException,
    ElementNotInteractableException,
)

_IN_VIEWPORT_SCRIPT = """
const rect = arguments[0].getBoundingClientRect();
if (rect.width === 0 && rect.height === 0) return false;
return rect.bottom > 0 && rect.right > 0 &&
    rect.top < (window.innerHeight || document.documentElement.clientHeight) &&
    rect.left < (window.innerWidth || document.documentElement.clientWidth);
"""


class Element(ABC):
    """A single DOM element."""

    @abstractmethod
    def is_visible(self) -> bool:
        """Rendered (has a layout box), regardless of scroll position."""

    @abstractmethod
    def is_in_viewport(self) -> bool:
        """Rendered and intersecting the current viewport."""

    @abstractmethod
    def is_enabled(self) -> bool:
        pass

    @abstractmethod
    def text(self) -> str:
        """Trimmed text content."""

    @abstractmethod
    def is_within(self, selector: str) -> bool:
        """True if the element or one of its ancestors matches `selector`."""

    @abstractmethod
    def scroll_into_view(self) -> None:
        pass

    @abstractmethod
    def click(self) -> None:
        """Native click. Raises ClickFailed when the click cannot be delivered."""

    @abstractmethod
    def script_click(self) -> None:
        """Dispatch a click from page script."""

    @abstractmethod
    def type_text(self, value: str) -> None:
        pass

    @abstractmethod
    def replace_text(self, value: str) -> None:
        """Select all existing content and overwrite it with `value`."""


class Page(ABC):
    """A browser tab the booking flow drives."""

    @property
    @abstractmethod
    def url(self) -> str:
        pass

    @property
    @abstractmethod
    def title(self) -> str:
        pass

    @abstractmethod
    def goto(self, url: str) -> None:
        pass

    @abstractmethod
    def query_all(self, selector: str) -> list[Element]:
        pass

    @abstractmethod
    def wait_for_selector(self, selector: str, timeout: float) -> bool:
        """Wait until `selector` matches something. False on timeout."""

    @abstractmethod
    def wait_for_navigation(self, previous_url: str, timeout: float) -> bool:
        """Wait for a page transition away from `previous_url`. False on timeout."""

    @abstractmethod
    def press_enter(self) -> None:
        pass


class SeleniumElement(Element):
    def __init__(self, driver: WebDriver, element: WebElement) -> None:
        self._driver = driver
        self._element = element

    def is_visible(self) -> bool:
        try:
            return self._element.is_displayed()
        except StaleElementReferenceException:
            return False

    def is_in_viewport(self) -> bool:
        if not self.is_visible():
            return False
        try:
            return bool(self._driver.execute_script(_IN_VIEWPORT_SCRIPT, self._element))
        except StaleElementReferenceException:
            return False

    def is_enabled(self) -> bool:
        try:
            return self._element.is_enabled()
        except StaleElementReferenceException:
            return False

    def text(self) -> str:
        try:
            content = self._driver.execute_script("return arguments[0].textContent;", self._element)
        except StaleElementReferenceException:
            return ""
        return (content or "").strip()

    def is_within(self, selector: str) -> bool:
        try:
            return bool(
                self._driver.execute_script(
                    "return arguments[0].closest(arguments[1]) !== null;", self._element, selector
                )
            )
        except StaleElementReferenceException:
            return False

    def scroll_into_view(self) -> None:
        self._driver.execute_script("arguments[0].scrollIntoView({block: 'center'});", self._element)

    def click(self) -> None:
        try:
            self._element.click()
        except NATIVE_CLICK_FAILURES as e:
            raise ClickFailed(str(e)) from e

    def script_click(self) -> None:
        self._driver.execute_script("arguments[0].click();", self._element)

    def type_text(self, value: str) -> None:
        self._element.send_keys(value)

    def replace_text(self, value: str) -> None:
        self._element.click()
        self._element.send_keys(Keys.CONTROL, "a")
        self._element.send_keys(value)


class SeleniumPage(Page):
    def __init__(self, driver: WebDriver, wait_strategy: WaitStrategy | None = None) -> None:
        self._driver = driver
        self._wait = wait_strategy or WaitStrategy()

    @property
    def url(self) -> str:
        return self._driver.current_url

    @property
    def title(self) -> str:
        return self._driver.title

    def goto(self, url: str) -> None:
        self._driver.get(url)

    def query_all(self, selector: str) -> list[Element]:
        return [
            SeleniumElement(self._driver, element)
            for element in self._driver.find_elements(By.CSS_SELECTOR, selector)
        ]

    def wait_for_selector(self, selector: str, timeout: float) -> bool:
        return self._wait.wait_for_element(self._driver, selector, timeout=timeout) is not None

    def wait_for_navigation(self, previous_url: str, timeout: float) -> bool:
        return self._wait.wait_for_navigation(self._driver, previous_url, timeout=timeout)

    def press_enter(self) -> None:
        try:
            target = self._driver.switch_to.active_element
        except NoSuchElementException:
            target = self._driver.find_element(By.TAG_NAME, "body")
        target.send_keys(Keys.ENTER)
