"""Locators: lazy, restartable element queries bound to a page."""

from __future__ import annotations

import re
from pathlib import Path
from typing import TYPE_CHECKING, Any

from autowait import aria
from autowait.models import ActionKind, Filter, FilterKind, Selector, SelectorKind
from autowait.selectors import (
    parse_selector,
    role_selector,
    testid_selector,
    text_filter,
    text_selector,
)

if TYPE_CHECKING:
    from autowait.page import Page
    from autowait.snapshot import Candidate


class LocatorBuilder:
    """``locator``/``get_by_*`` builders shared by pages, locators and root locators.

    Building never touches the document: it only composes selectors.
    """

    def _build(self, selector: Selector) -> Locator:
        raise NotImplementedError

    def _page(self) -> Page:
        raise NotImplementedError

    def locator(self, selector: str | Locator) -> Locator:
        if isinstance(selector, Locator):
            return self._build(selector.selector)
        return self._build(parse_selector(selector))

    def get_by_role(
        self,
        role: str,
        *,
        name: str | re.Pattern[str] | None = None,
        exact: bool = False,
        level: int | None = None,
        checked: bool | None = None,
        disabled: bool | None = None,
        expanded: bool | None = None,
        pressed: bool | None = None,
        selected: bool | None = None,
        include_hidden: bool = False,
    ) -> Locator:
        return self._build(
            role_selector(
                role,
                name=name,
                exact=exact,
                level=level,
                checked=checked,
                disabled=disabled,
                expanded=expanded,
                pressed=pressed,
                selected=selected,
                include_hidden=include_hidden,
            )
        )

    def get_by_text(self, text: str | re.Pattern[str], *, exact: bool = False) -> Locator:
        return self._build(text_selector(SelectorKind.TEXT, text, exact=exact))

    def get_by_label(self, text: str | re.Pattern[str], *, exact: bool = False) -> Locator:
        return self._build(text_selector(SelectorKind.LABEL, text, exact=exact))

    def get_by_placeholder(self, text: str | re.Pattern[str], *, exact: bool = False) -> Locator:
        return self._build(text_selector(SelectorKind.PLACEHOLDER, text, exact=exact))

    def get_by_alt_text(self, text: str | re.Pattern[str], *, exact: bool = False) -> Locator:
        return self._build(text_selector(SelectorKind.ALT_TEXT, text, exact=exact))

    def get_by_title(self, text: str | re.Pattern[str], *, exact: bool = False) -> Locator:
        return self._build(text_selector(SelectorKind.TITLE, text, exact=exact))

    def get_by_test_id(self, test_id: str | re.Pattern[str]) -> Locator:
        return self._build(testid_selector(test_id))

    def frame_locator(self, selector: str) -> RootLocator:
        """Scope into the document of the frame whose name, id or CSS selector matches."""
        frame = Selector(kind=SelectorKind.FRAME, value=selector)
        return RootLocator(self._page(), self._root_selector(frame))

    def _root_selector(self, step: Selector) -> Selector:
        return step


class RootLocator(LocatorBuilder):
    """A substituted root (frame document or shadow root). Builders only."""

    def __init__(self, page: Page, selector: Selector) -> None:
        self.page = page
        self.selector = selector

    def _page(self) -> Page:
        return self.page

    def _build(self, selector: Selector) -> Locator:
        return Locator(self.page, self.selector.chain(selector))

    def _root_selector(self, step: Selector) -> Selector:
        return self.selector.chain(step)

    def __repr__(self) -> str:
        return f"<RootLocator selector='{self.selector}'>"


class Locator(LocatorBuilder):
    """A selector bound to a page.

    Nothing is resolved until an action or read runs, and every run resolves
    again from scratch. Actions and reads wait for the single match to be
    actionable; ``count``, ``all_*`` and ``is_*`` answer immediately.
    """

    def __init__(self, page: Page, selector: Selector) -> None:
        self.page = page
        self.selector = selector

    def __repr__(self) -> str:
        return f"<Locator selector='{self.selector}'>"

    def _page(self) -> Page:
        return self.page

    def _build(self, selector: Selector) -> Locator:
        return Locator(self.page, self.selector.chain(selector))

    def _root_selector(self, step: Selector) -> Selector:
        return self.selector.chain(step)

    # --- Refinement ---

    def filter(
        self,
        *,
        has_text: str | re.Pattern[str] | None = None,
        has_not_text: str | re.Pattern[str] | None = None,
        has: Locator | None = None,
        has_not: Locator | None = None,
        ignore_case: bool = False,
    ) -> Locator:
        """Keep matches by text (case-sensitive substring by default) or by descendants."""
        selector = self.selector
        if has_text is not None:
            selector = selector.with_filter(
                text_filter(FilterKind.HAS_TEXT, has_text, ignore_case=ignore_case)
            )
        if has_not_text is not None:
            selector = selector.with_filter(
                text_filter(FilterKind.HAS_NOT_TEXT, has_not_text, ignore_case=ignore_case)
            )
        for kind, inner in ((FilterKind.HAS, has), (FilterKind.HAS_NOT, has_not)):
            if inner is not None:
                selector = selector.with_filter(Filter(kind=kind, selector=inner.selector))
        return Locator(self.page, selector)

    @property
    def first(self) -> Locator:
        return self.nth(0)

    @property
    def last(self) -> Locator:
        return self.nth(-1)

    def nth(self, index: int) -> Locator:
        """Zero-based; negative counts from the end. Out of range matches nothing."""
        return Locator(self.page, self.selector.with_index(index))

    def or_(self, other: Locator) -> Locator:
        return Locator(self.page, self.selector.union(other.selector))

    def shadow_root(self) -> RootLocator:
        return RootLocator(self.page, self.selector.chain(Selector(kind=SelectorKind.SHADOW)))

    async def all(self) -> list[Locator]:
        return [self.nth(i) for i in range(await self.count())]

    # --- Auto-waiting actions ---

    async def _act(
        self,
        action: ActionKind,
        payload: dict[str, Any] | None = None,
        timeout: float | None = None,
        force: bool = False,
    ) -> Any:
        return await self.page.perform(self.selector, action, payload, timeout, force)

    async def click(self, *, timeout: float | None = None, force: bool = False) -> None:
        await self._act(ActionKind.CLICK, timeout=timeout, force=force)

    async def dblclick(self, *, timeout: float | None = None, force: bool = False) -> None:
        await self._act(ActionKind.DBLCLICK, timeout=timeout, force=force)

    async def tap(self, *, timeout: float | None = None, force: bool = False) -> None:
        await self._act(ActionKind.TAP, timeout=timeout, force=force)

    async def hover(self, *, timeout: float | None = None, force: bool = False) -> None:
        await self._act(ActionKind.HOVER, timeout=timeout, force=force)

    async def focus(self, *, timeout: float | None = None) -> None:
        await self._act(ActionKind.FOCUS, timeout=timeout)

    async def fill(self, value: str, *, timeout: float | None = None, force: bool = False) -> None:
        await self._act(ActionKind.FILL, {"value": value}, timeout, force)

    async def clear(self, *, timeout: float | None = None, force: bool = False) -> None:
        await self._act(ActionKind.CLEAR, timeout=timeout, force=force)

    async def press(self, key: str, *, timeout: float | None = None) -> None:
        await self._act(ActionKind.PRESS, {"key": key}, timeout)

    async def press_sequentially(self, text: str, *, timeout: float | None = None) -> None:
        await self._act(ActionKind.TYPE, {"text": text}, timeout)

    async def check(self, *, timeout: float | None = None, force: bool = False) -> None:
        await self._act(ActionKind.CHECK, timeout=timeout, force=force)

    async def uncheck(self, *, timeout: float | None = None, force: bool = False) -> None:
        await self._act(ActionKind.UNCHECK, timeout=timeout, force=force)

    async def set_checked(self, checked: bool, *, timeout: float | None = None) -> None:
        await self._act(ActionKind.CHECK if checked else ActionKind.UNCHECK, timeout=timeout)

    async def select_option(
        self,
        value: str | list[str] | None = None,
        *,
        label: str | list[str] | None = None,
        index: int | list[int] | None = None,
        timeout: float | None = None,
    ) -> list[str]:
        """Select options by value, label or index; returns the selected values."""
        values: list[Any] = []
        for kind, given in (("value", value), ("label", label), ("index", index)):
            if given is None:
                continue
            for item in given if isinstance(given, list) else [given]:
                values.append({kind: item} if kind != "value" else item)
        return await self._act(ActionKind.SELECT_OPTION, {"values": values}, timeout)

    async def set_input_files(
        self,
        files: str | Path | dict[str, Any] | list[str | Path | dict[str, Any]],
        *,
        timeout: float | None = None,
    ) -> None:
        items = files if isinstance(files, list) else [files]
        await self._act(ActionKind.SET_INPUT_FILES, {"files": items}, timeout)

    async def scroll_into_view_if_needed(self, *, timeout: float | None = None) -> None:
        await self._act(ActionKind.SCROLL_INTO_VIEW, timeout=timeout)

    # --- Auto-waiting reads ---

    async def inner_text(self, *, timeout: float | None = None) -> str:
        return await self._act(ActionKind.INNER_TEXT, timeout=timeout)

    async def inner_html(self, *, timeout: float | None = None) -> str:
        return await self._act(ActionKind.INNER_HTML, timeout=timeout)

    async def text_content(self, *, timeout: float | None = None) -> str | None:
        return await self._act(ActionKind.TEXT_CONTENT, timeout=timeout)

    async def input_value(self, *, timeout: float | None = None) -> str:
        return await self._act(ActionKind.INPUT_VALUE, timeout=timeout)

    async def get_attribute(self, name: str, *, timeout: float | None = None) -> str | None:
        return await self._act(ActionKind.GET_ATTRIBUTE, {"name": name}, timeout)

    async def wait_for(self, *, state: str = "visible", timeout: float | None = None) -> None:
        await self.page.wait_for_state(self.selector, state, timeout)

    # --- Immediate reads ---

    async def _resolve_now(self) -> list[Candidate]:
        return await self.page.query(self.selector)

    async def count(self) -> int:
        return len(await self._resolve_now())

    async def all_text_contents(self) -> list[str]:
        return [
            await self.page.driver.read(c.node_id, ActionKind.TEXT_CONTENT, {})
            for c in await self._resolve_now()
        ]

    async def all_inner_texts(self) -> list[str]:
        return [
            await self.page.driver.read(c.node_id, ActionKind.INNER_TEXT, {})
            for c in await self._resolve_now()
        ]

    async def is_visible(self) -> bool:
        found = await self._resolve_now()
        return bool(found) and await self.page.checker.is_visible(found[0])

    async def is_hidden(self) -> bool:
        return not await self.is_visible()

    async def is_enabled(self) -> bool:
        found = await self._resolve_now()
        return bool(found) and not aria.is_disabled(found[0].document, found[0].element)

    async def is_disabled(self) -> bool:
        found = await self._resolve_now()
        return bool(found) and aria.is_disabled(found[0].document, found[0].element)

    async def is_editable(self) -> bool:
        found = await self._resolve_now()
        return bool(found) and aria.is_editable(found[0].document, found[0].element)

    async def is_checked(self) -> bool:
        found = await self._resolve_now()
        return bool(found) and aria.checked_state(found[0].element) is True
