"""Retrying ``expect`` assertions on locators and pages."""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from typing import Any

from autowait import aria
from autowait.exceptions import ExpectationError, NodeDetachedError
from autowait.locator import Locator
from autowait.logger import get_logger
from autowait.models import ActionKind, TextMatcher, normalize_whitespace
from autowait.page import Page
from autowait.scheduler import ElementWait, Probe
from autowait.snapshot import Candidate, DocumentSnapshot

log = get_logger(__name__)


def _text_matches(expected: str | re.Pattern[str], actual: str | None, *, full: bool) -> bool:
    if actual is None:
        return False
    if isinstance(expected, re.Pattern):
        return expected.search(actual) is not None
    return TextMatcher(value=expected, exact=full, ignore_case=False).matches(actual)


class _Assertions:
    """Shared retry loop: poll until the check passes (or fails, when negated)."""

    def __init__(self, page: Page, target: str, is_not: bool, message: str | None) -> None:
        self._page_ref = page
        self._target = target
        self._is_not = is_not
        self._message = message

    async def _retry(
        self,
        name: str,
        check: Callable[[DocumentSnapshot], Awaitable[tuple[bool, Any]]],
        expected: Any,
        timeout: float | None,
    ) -> None:
        page = self._page_ref
        last_actual: list[Any] = [None]
        assertion = f"not {name}" if self._is_not else name
        wait = ElementWait(
            description=f"expect({self._target}).{assertion}",
            timeout_ms=page.config.assertion_timeout_ms if timeout is None else timeout,
            poll_interval_ms=page.config.poll_interval_ms,
        )

        async def probe(snapshot: DocumentSnapshot) -> Probe:
            passed, actual = await check(snapshot)
            last_actual[0] = actual
            return Probe(passed != self._is_not)

        def failed(w: ElementWait) -> ExpectationError:
            detail = self._message or (
                f"expected {'not ' if self._is_not else ''}{expected!r}, "
                f"actual {last_actual[0]!r} after {w.elapsed_ms:.0f}ms"
            )
            log.info("expectation_failed", assertion=assertion, target=self._target)
            return ExpectationError(assertion, self._target, detail)

        await page.scheduler.poll(wait, probe, failed)


class LocatorAssertions(_Assertions):
    """``expect(locator)``: each check retries until the assertion timeout."""

    def __init__(self, locator: Locator, is_not: bool = False, message: str | None = None) -> None:
        super().__init__(locator.page, str(locator.selector), is_not, message)
        self.locator = locator

    @property
    def not_(self) -> LocatorAssertions:
        return LocatorAssertions(self.locator, not self._is_not, self._message)

    def _candidates(self, snapshot: DocumentSnapshot) -> list[Candidate]:
        return self.locator.page.resolver.resolve(self.locator.selector, snapshot)

    async def _read(self, candidate: Candidate, action: ActionKind, **payload: Any) -> Any:
        try:
            return await self.locator.page.driver.read(candidate.node_id, action, payload)
        except NodeDetachedError:
            return None

    async def _visible(self, snapshot: DocumentSnapshot) -> tuple[bool, Any]:
        found = self._candidates(snapshot)
        visible = bool(found) and await self.locator.page.checker.is_visible(found[0])
        return visible, "visible" if visible else "hidden"

    async def to_be_visible(self, *, timeout: float | None = None) -> None:
        await self._retry("to_be_visible", self._visible, "visible", timeout)

    async def to_be_hidden(self, *, timeout: float | None = None) -> None:
        async def check(snapshot: DocumentSnapshot) -> tuple[bool, Any]:
            visible, actual = await self._visible(snapshot)
            return not visible, actual

        await self._retry("to_be_hidden", check, "hidden", timeout)

    async def to_be_attached(self, *, timeout: float | None = None) -> None:
        async def check(snapshot: DocumentSnapshot) -> tuple[bool, Any]:
            found = self._candidates(snapshot)
            return bool(found), "attached" if found else "detached"

        await self._retry("to_be_attached", check, "attached", timeout)

    async def _state(
        self, name: str, predicate: Callable[[Candidate], bool], expected: str, timeout: float | None
    ) -> None:
        async def check(snapshot: DocumentSnapshot) -> tuple[bool, Any]:
            found = self._candidates(snapshot)
            if not found:
                return False, "<element not found>"
            passed = predicate(found[0])
            return passed, expected if passed else f"not {expected}"

        await self._retry(name, check, expected, timeout)

    async def to_be_enabled(self, *, timeout: float | None = None) -> None:
        await self._state(
            "to_be_enabled",
            lambda c: not aria.is_disabled(c.document, c.element),
            "enabled",
            timeout,
        )

    async def to_be_disabled(self, *, timeout: float | None = None) -> None:
        await self._state(
            "to_be_disabled",
            lambda c: aria.is_disabled(c.document, c.element),
            "disabled",
            timeout,
        )

    async def to_be_editable(self, *, timeout: float | None = None) -> None:
        await self._state(
            "to_be_editable",
            lambda c: aria.is_editable(c.document, c.element),
            "editable",
            timeout,
        )

    async def to_be_checked(self, *, checked: bool = True, timeout: float | None = None) -> None:
        await self._state(
            "to_be_checked",
            lambda c: (aria.checked_state(c.element) is True) == checked,
            "checked" if checked else "unchecked",
            timeout,
        )

    async def to_have_count(self, count: int, *, timeout: float | None = None) -> None:
        async def check(snapshot: DocumentSnapshot) -> tuple[bool, Any]:
            actual = len(self._candidates(snapshot))
            return actual == count, actual

        await self._retry("to_have_count", check, count, timeout)

    async def to_have_value(
        self, value: str | re.Pattern[str], *, timeout: float | None = None
    ) -> None:
        async def check(snapshot: DocumentSnapshot) -> tuple[bool, Any]:
            found = self._candidates(snapshot)
            if not found:
                return False, None
            actual = await self._read(found[0], ActionKind.INPUT_VALUE)
            if isinstance(value, re.Pattern):
                return actual is not None and value.search(actual) is not None, actual
            return actual == value, actual

        await self._retry("to_have_value", check, value, timeout)

    async def to_have_attribute(
        self, name: str, value: str | re.Pattern[str], *, timeout: float | None = None
    ) -> None:
        async def check(snapshot: DocumentSnapshot) -> tuple[bool, Any]:
            found = self._candidates(snapshot)
            if not found:
                return False, None
            actual = found[0].element.get(name)
            if isinstance(value, re.Pattern):
                return actual is not None and value.search(actual) is not None, actual
            return actual == value, actual

        await self._retry("to_have_attribute", check, value, timeout)

    async def _texts(
        self,
        name: str,
        expected: str | re.Pattern[str] | list[str | re.Pattern[str]],
        full: bool,
        timeout: float | None,
    ) -> None:
        async def check(snapshot: DocumentSnapshot) -> tuple[bool, Any]:
            found = self._candidates(snapshot)
            texts = [
                normalize_whitespace(await self._read(c, ActionKind.TEXT_CONTENT) or "")
                for c in found
            ]
            if isinstance(expected, list):
                passed = len(texts) == len(expected) and all(
                    _text_matches(e, t, full=full) for e, t in zip(expected, texts)
                )
                return passed, texts
            if not texts:
                return False, None
            return _text_matches(expected, texts[0], full=full), texts[0]

        await self._retry(name, check, expected, timeout)

    async def to_have_text(
        self,
        expected: str | re.Pattern[str] | list[str | re.Pattern[str]],
        *,
        timeout: float | None = None,
    ) -> None:
        """Full text match (whitespace-normalised); a list compares every match in order."""
        await self._texts("to_have_text", expected, True, timeout)

    async def to_contain_text(
        self,
        expected: str | re.Pattern[str] | list[str | re.Pattern[str]],
        *,
        timeout: float | None = None,
    ) -> None:
        await self._texts("to_contain_text", expected, False, timeout)


class PageAssertions(_Assertions):
    """``expect(page)``."""

    def __init__(self, page: Page, is_not: bool = False, message: str | None = None) -> None:
        super().__init__(page, "page", is_not, message)
        self.page = page

    @property
    def not_(self) -> PageAssertions:
        return PageAssertions(self.page, not self._is_not, self._message)

    async def to_have_url(
        self, url: str | re.Pattern[str], *, timeout: float | None = None
    ) -> None:
        async def check(snapshot: DocumentSnapshot) -> tuple[bool, Any]:
            actual = self.page.url
            if isinstance(url, re.Pattern):
                return url.search(actual) is not None, actual
            return actual == url, actual

        await self._retry("to_have_url", check, url, timeout)

    async def to_have_title(
        self, title: str | re.Pattern[str], *, timeout: float | None = None
    ) -> None:
        async def check(snapshot: DocumentSnapshot) -> tuple[bool, Any]:
            actual = await self.page.title()
            return _text_matches(title, actual, full=True), actual

        await self._retry("to_have_title", check, title, timeout)


def expect(
    target: Locator | Page, message: str | None = None
) -> LocatorAssertions | PageAssertions:
    """Retrying assertions; failures raise ``ExpectationError`` (an ``AssertionError``)."""
    if isinstance(target, Locator):
        return LocatorAssertions(target, message=message)
    if isinstance(target, Page):
        return PageAssertions(target, message=message)
    raise TypeError(f"expect() takes a Locator or a Page, got {type(target).__name__}")
