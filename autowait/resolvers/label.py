"""Form label resolver."""

from __future__ import annotations

from typing import TYPE_CHECKING

from autowait import aria
from autowait.models import normalize_whitespace
from autowait.resolvers import BaseResolver
from autowait.snapshot import text_content

if TYPE_CHECKING:
    from lxml import etree

    from autowait.models import Selector
    from autowait.snapshot import DocumentSnapshot


class LabelResolver(BaseResolver):
    """Resolve controls by ``<label>`` text, ``aria-labelledby`` or ``aria-label``."""

    @property
    def name(self) -> str:
        return "label"

    def query(
        self, document: DocumentSnapshot, scope: etree._Element, selector: Selector
    ) -> list[etree._Element]:
        matcher = selector.text
        if matcher is None:
            return []
        return [
            el
            for el in document.elements(scope)
            if any(matcher.matches(label) for label in self._labels(document, el))
        ]

    @staticmethod
    def _labels(document: DocumentSnapshot, el: etree._Element) -> list[str]:
        labels = [text_content(lbl) for lbl in aria.native_labels(document, el)]
        for html_id in (el.get("aria-labelledby") or "").split():
            target = document.by_html_id(el, html_id)
            if target is not None:
                labels.append(text_content(target))
        aria_label = el.get("aria-label")
        if aria_label:
            labels.append(aria_label)
        return [normalize_whitespace(text) for text in labels]
