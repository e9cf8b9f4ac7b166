"""Attribute-valued resolvers: placeholder, alt text, title and test id."""

from __future__ import annotations

from typing import TYPE_CHECKING

from autowait.resolvers import BaseResolver

if TYPE_CHECKING:
    from lxml import etree

    from autowait.models import Selector
    from autowait.snapshot import DocumentSnapshot


class AttributeResolver(BaseResolver):
    """Resolve elements whose ``attribute`` value matches the selector's text."""

    def __init__(self, attribute: str, name: str | None = None) -> None:
        self.attribute = attribute
        self._name = name or attribute

    @property
    def name(self) -> str:
        return self._name

    def query(
        self, document: DocumentSnapshot, scope: etree._Element, selector: Selector
    ) -> list[etree._Element]:
        matcher = selector.text
        if matcher is None:
            return []
        return [
            el
            for el in document.elements(scope)
            if matcher.matches(el.get(self.attribute))
        ]
