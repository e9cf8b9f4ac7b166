"""Query resolution: selectors evaluated against document snapshots."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from autowait.config import EngineConfig
from autowait.exceptions import SelectorSyntaxError
from autowait.logger import get_logger
from autowait.models import FilterKind, SelectorKind
from autowait.resolvers.attribute import AttributeResolver
from autowait.resolvers.css import CSSResolver, compile_css
from autowait.resolvers.label import LabelResolver
from autowait.resolvers.role import RoleResolver
from autowait.resolvers.text import TextResolver
from autowait.resolvers.xpath import XPathResolver
from autowait.snapshot import Candidate, text_content

if TYPE_CHECKING:
    from lxml import etree

    from autowait.models import Filter, Selector
    from autowait.resolvers import BaseResolver
    from autowait.snapshot import DocumentSnapshot

log = get_logger(__name__)

Evaluation = Callable[["DocumentSnapshot"], list[Candidate]]

_FRAME_TAGS = ("iframe", "frame")


class QueryResolver:
    """Evaluates selectors against snapshots.

    Resolution is a pure read of the snapshot it is given: nothing is cached
    between calls, and "no match" is an empty list, never an exception.
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self.config = config or EngineConfig()
        self.resolvers: dict[SelectorKind, BaseResolver] = {
            SelectorKind.CSS: CSSResolver(),
            SelectorKind.XPATH: XPathResolver(),
            SelectorKind.TEXT: TextResolver(),
            SelectorKind.ROLE: RoleResolver(),
            SelectorKind.LABEL: LabelResolver(),
            SelectorKind.PLACEHOLDER: AttributeResolver("placeholder"),
            SelectorKind.ALT_TEXT: AttributeResolver("alt"),
            SelectorKind.TITLE: AttributeResolver("title"),
            SelectorKind.TEST_ID: AttributeResolver(self.config.test_id_attribute, "testid"),
        }

    def compile(self, selector: Selector, root: Selector | None = None) -> Evaluation:
        """Bind ``selector`` (under an optional root selector) into ``(snapshot) -> candidates``."""
        full = root.chain(selector) if root is not None else selector

        def evaluate(snapshot: DocumentSnapshot) -> list[Candidate]:
            return self.resolve(full, snapshot)

        return evaluate

    def resolve(
        self,
        selector: Selector,
        snapshot: DocumentSnapshot,
        scope: Candidate | None = None,
    ) -> list[Candidate]:
        found = self._evaluate(selector, [scope or Candidate(snapshot)])
        log.debug("selector_resolved", selector=str(selector), matches=len(found))
        return found

    # --- Evaluation ---

    def _evaluate(self, selector: Selector, scopes: list[Candidate]) -> list[Candidate]:
        kind = selector.kind
        if kind == SelectorKind.CHAIN:
            found = scopes
            for part in selector.parts:
                found = self._evaluate(part, found)
        elif kind == SelectorKind.UNION:
            found = _document_order(
                [c for part in selector.parts for c in self._evaluate(part, scopes)]
            )
        elif kind == SelectorKind.FRAME:
            found = _dedupe([f for scope in scopes for f in self._frames(scope, selector.value)])
        elif kind == SelectorKind.SHADOW:
            found = []
            for scope in scopes:
                if scope.element is None:
                    continue
                shadow = scope.document.shadow_root(scope.element)
                if shadow is not None:
                    found.append(Candidate(scope.document, shadow))
        else:
            resolver = self.resolvers[kind]
            found = _dedupe(
                [
                    Candidate(scope.document, el)
                    for scope in scopes
                    for el in resolver.query(scope.document, scope.scope, selector)
                ]
            )

        for flt in selector.filters:
            found = [c for c in found if self._passes(c, flt)]
        if selector.index is not None:
            found = _pick(found, selector.index)
        return found

    def _passes(self, candidate: Candidate, flt: Filter) -> bool:
        if flt.kind in (FilterKind.HAS_TEXT, FilterKind.HAS_NOT_TEXT):
            matched = flt.text is not None and flt.text.matches(text_content(candidate.scope))
            return matched if flt.kind == FilterKind.HAS_TEXT else not matched
        inner = bool(flt.selector and self._evaluate(flt.selector, [candidate]))
        return inner if flt.kind == FilterKind.HAS else not inner

    @staticmethod
    def _frames(scope: Candidate, key: str) -> list[Candidate]:
        doc = scope.document
        hosts = [
            el
            for el in doc.elements(scope.scope)
            if el.tag in _FRAME_TAGS and key in (el.get("name"), el.get("id"))
        ]
        if not hosts:
            try:
                hosts = [
                    el for el in compile_css(key)(scope.scope) if el.tag in _FRAME_TAGS
                ]
            except SelectorSyntaxError:
                # Plain frame names need not be valid CSS.
                hosts = []
        found = []
        for host in hosts:
            frame = doc.frame_for(host)
            if frame is not None:
                found.append(Candidate(frame))
        return found


def _key(candidate: Candidate) -> tuple[int, etree._Element | None]:
    return id(candidate.document), candidate.element


def _dedupe(candidates: list[Candidate]) -> list[Candidate]:
    seen: set[tuple[int, etree._Element | None]] = set()
    out = []
    for candidate in candidates:
        key = _key(candidate)
        if key not in seen:
            seen.add(key)
            out.append(candidate)
    return out


def _document_order(candidates: list[Candidate]) -> list[Candidate]:
    unique = _dedupe(candidates)
    rank: dict[int, int] = {}
    for candidate in unique:
        rank.setdefault(id(candidate.document), len(rank))
    return sorted(
        unique,
        key=lambda c: (rank[id(c.document)], c.document.position(c.scope)),
    )


def _pick(candidates: list[Candidate], index: int) -> list[Candidate]:
    if index < 0:
        index += len(candidates)
    if 0 <= index < len(candidates):
        return [candidates[index]]
    return []
