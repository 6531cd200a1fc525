"""
Ordered selector-strategy matching.

A strategy list is an ordered sequence of (matcher, description) pairs. Each
matcher lazily yields candidate elements from a Page; the first candidate that
passes the caller's acceptance predicate wins. Order encodes priority.
"""

import logging
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass

from parkhurst_booking.providers.page import Element, Page

logger = logging.getLogger(__name__)

Matcher = Callable[[Page], Iterable[Element]]
Accept = Callable[[Element], bool]


@dataclass(frozen=True)
class SelectorStrategy:
    matcher: Matcher
    description: str

    def candidates(self, page: Page) -> Iterator[Element]:
        yield from self.matcher(page)


@dataclass(frozen=True)
class Match:
    element: Element
    strategy: SelectorStrategy


def css(selector: str) -> SelectorStrategy:
    """Structural query: every element matching `selector`, in document order."""
    return SelectorStrategy(matcher=lambda page: page.query_all(selector), description=selector)


def text_contains(
    keyword: str,
    tag: str = "button",
    containers: Sequence[str] = (),
) -> SelectorStrategy:
    """
    Text predicate: `tag` elements whose trimmed text contains `keyword`,
    case-insensitively. With `containers`, only elements inside one of them count.
    """
    needle = keyword.strip().lower()

    def matcher(page: Page) -> Iterator[Element]:
        for element in page.query_all(tag):
            if needle not in element.text().lower():
                continue
            if containers and not any(element.is_within(c) for c in containers):
                continue
            yield element

    scope = f" within {', '.join(containers)}" if containers else ""
    return SelectorStrategy(matcher=matcher, description=f"{tag} text '{keyword}'{scope}")


def css_chain(selectors: Iterable[str]) -> list[SelectorStrategy]:
    return [css(selector) for selector in selectors]


def text_chain(
    keywords: Iterable[str], tag: str = "button", containers: Sequence[str] = ()
) -> list[SelectorStrategy]:
    return [text_contains(keyword, tag, containers) for keyword in keywords]


# ---- Acceptance predicates ----


def any_element(element: Element) -> bool:
    return True


def in_viewport(element: Element) -> bool:
    return element.is_in_viewport()


def clickable_in_viewport(element: Element) -> bool:
    return element.is_in_viewport() and element.is_enabled()


def clickable(element: Element) -> bool:
    return element.is_visible() and element.is_enabled()


def first_match(
    page: Page,
    strategies: Iterable[SelectorStrategy],
    accept: Accept = any_element,
) -> Match | None:
    """
    Evaluate strategies in order and return the first accepted element.

    Candidates are produced lazily, so later strategies are never queried once
    an earlier one yields an accepted element.
    """
    for strategy in strategies:
        for element in strategy.candidates(page):
            if accept(element):
                logger.debug(f"Matched {strategy.description}")
                return Match(element=element, strategy=strategy)
    return None
