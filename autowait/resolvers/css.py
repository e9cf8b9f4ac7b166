"""CSS selector resolver."""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING

from cssselect import HTMLTranslator, SelectorError
from lxml import etree

from autowait.exceptions import SelectorSyntaxError
from autowait.resolvers import BaseResolver
from autowait.snapshot import is_element

if TYPE_CHECKING:
    from autowait.models import Selector
    from autowait.snapshot import DocumentSnapshot

_translator = HTMLTranslator()

DOCUMENT_PREFIX = "descendant-or-self::"
ELEMENT_PREFIX = "descendant::"


@lru_cache(maxsize=512)
def compile_css(css: str, prefix: str = DOCUMENT_PREFIX) -> etree.XPath:
    """Translate ``css`` to a compiled XPath evaluated relative to a scope element."""
    try:
        expression = _translator.css_to_xpath(css, prefix=prefix)
    except SelectorError as exc:
        raise SelectorSyntaxError(css, str(exc)) from exc
    try:
        return etree.XPath(expression)
    except etree.XPathSyntaxError as exc:
        raise SelectorSyntaxError(css, str(exc)) from exc


class CSSResolver(BaseResolver):
    """Resolve elements using CSS selectors."""

    @property
    def name(self) -> str:
        return "css"

    def query(
        self, document: DocumentSnapshot, scope: etree._Element, selector: Selector
    ) -> list[etree._Element]:
        prefix = DOCUMENT_PREFIX if scope is document.root else ELEMENT_PREFIX
        return [el for el in compile_css(selector.value, prefix)(scope) if is_element(el)]
