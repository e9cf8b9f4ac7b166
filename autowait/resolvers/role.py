"""ARIA role resolver."""

from __future__ import annotations

from typing import TYPE_CHECKING

from autowait import aria
from autowait.resolvers import BaseResolver

if TYPE_CHECKING:
    from lxml import etree

    from autowait.models import RoleOptions, Selector
    from autowait.snapshot import DocumentSnapshot


class RoleResolver(BaseResolver):
    """Resolve elements by implicit or explicit ARIA role plus state predicates."""

    @property
    def name(self) -> str:
        return "role"

    def query(
        self, document: DocumentSnapshot, scope: etree._Element, selector: Selector
    ) -> list[etree._Element]:
        role = selector.value.lower()
        options = selector.role
        return [
            el
            for el in document.elements(scope)
            if aria.role_of(el) == role and self._matches(document, el, options)
        ]

    @staticmethod
    def _matches(
        document: DocumentSnapshot, el: etree._Element, options: RoleOptions | None
    ) -> bool:
        include_hidden = options.include_hidden if options else False
        if not include_hidden and aria.is_hidden(document, el):
            return False
        if options is None:
            return True
        if options.level is not None and aria.heading_level(el) != options.level:
            return False
        if options.checked is not None and aria.checked_state(el) != options.checked:
            return False
        if options.disabled is not None and aria.is_disabled(document, el) != options.disabled:
            return False
        if options.expanded is not None and aria.expanded_state(el) != options.expanded:
            return False
        if options.pressed is not None and aria.pressed_state(el) != options.pressed:
            return False
        if options.selected is not None and aria.selected_state(el) != options.selected:
            return False
        if options.name is not None:
            return options.name.matches(aria.accessible_name(document, el))
        return True
