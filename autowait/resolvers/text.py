"""Text content resolver."""

from __future__ import annotations

from typing import TYPE_CHECKING

from autowait.resolvers import BaseResolver
from autowait.snapshot import NON_TEXT_TAGS, is_element, text_content

if TYPE_CHECKING:
    from lxml import etree

    from autowait.models import Selector, TextMatcher
    from autowait.snapshot import DocumentSnapshot

_BUTTON_INPUT_TYPES = ("button", "submit", "reset")


def element_text(el: etree._Element) -> str:
    """Text an element is matched on: its content, or the value of a button input."""
    if el.tag == "input" and (el.get("type") or "").lower() in _BUTTON_INPUT_TYPES:
        return el.get("value") or ""
    return text_content(el)


class TextResolver(BaseResolver):
    """Resolve the smallest elements whose text matches.

    An element matches when its text matches and none of its element
    children match on their own.
    """

    @property
    def name(self) -> str:
        return "text"

    def query(
        self, document: DocumentSnapshot, scope: etree._Element, selector: Selector
    ) -> list[etree._Element]:
        matcher = selector.text
        if matcher is None:
            return []
        return [
            el
            for el in document.elements(scope)
            if _searchable(el) and self._matches_smallest(el, matcher)
        ]

    @staticmethod
    def _matches_smallest(el: etree._Element, matcher: TextMatcher) -> bool:
        if not matcher.matches(element_text(el)):
            return False
        for child in el:
            if is_element(child) and child.tag not in NON_TEXT_TAGS:
                if matcher.matches(element_text(child)):
                    return False
        return True


def _searchable(el: etree._Element) -> bool:
    if el.tag in NON_TEXT_TAGS:
        return False
    return not any(a.tag in NON_TEXT_TAGS for a in el.iterancestors())
