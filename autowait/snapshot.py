"""Point-in-time document snapshots evaluated by the query resolver."""

from __future__ import annotations

import copy
from collections.abc import Iterator
from dataclasses import dataclass

import lxml.html
from lxml import etree

# Attributes drivers stamp onto snapshot elements. Never part of page markup.
NODE_ID_ATTR = "_aw_id"
HIDDEN_ATTR = "_aw_hidden"
INTERNAL_ATTRS = (NODE_ID_ATTR, HIDDEN_ATTR)

SHADOW_ROOT_TAG = "shadow-root"
NON_TEXT_TAGS = frozenset({"script", "style", "noscript", "template", "head"})


def is_element(node: object) -> bool:
    """True for element nodes (lxml also yields comments and PIs)."""
    return isinstance(node, etree._Element) and isinstance(node.tag, str)


def text_content(el: etree._Element) -> str:
    """Concatenated text of ``el`` and its descendants, skipping non-text tags."""
    parts: list[str] = []

    def walk(node: etree._Element) -> None:
        if node.text:
            parts.append(node.text)
        for child in node:
            if is_element(child) and child.tag not in NON_TEXT_TAGS:
                walk(child)
            if child.tail:
                parts.append(child.tail)

    if el.tag not in NON_TEXT_TAGS:
        walk(el)
    return "".join(parts)


def strip_internal(el: etree._Element) -> etree._Element:
    """Deep copy of ``el`` without the driver's bookkeeping attributes."""
    clone = copy.deepcopy(el)
    for node in clone.iter():
        if is_element(node):
            for attr in INTERNAL_ATTRS:
                node.attrib.pop(attr, None)
    return clone


def to_html(el: etree._Element) -> str:
    """Serialize an element as page markup."""
    return lxml.html.tostring(strip_internal(el), encoding="unicode")


@dataclass(frozen=True, eq=False)
class Candidate:
    """A resolved node (or a document/shadow scope) inside one snapshot."""

    document: DocumentSnapshot
    element: etree._Element | None = None

    @property
    def node_id(self) -> str | None:
        if self.element is None:
            return None
        return self.element.get(NODE_ID_ATTR)

    @property
    def scope(self) -> etree._Element:
        return self.element if self.element is not None else self.document.root


class DocumentSnapshot:
    """Immutable view of one document (plus its shadow roots and frames).

    Drivers build a fresh snapshot for every poll tick; the resolver only
    reads from it, so evaluating a selector twice against the same snapshot
    always gives the same answer.
    """

    def __init__(
        self,
        root: etree._Element,
        *,
        url: str = "",
        navigation_id: int = 0,
        frames: dict[str, DocumentSnapshot] | None = None,
        shadow_roots: dict[str, etree._Element] | None = None,
    ) -> None:
        self.root = root
        self.url = url
        self.navigation_id = navigation_id
        self.frames = dict(frames or {})
        self.shadow_roots = dict(shadow_roots or {})
        self._order: dict[etree._Element, int] = {}
        self._by_node_id: dict[str, etree._Element] = {}
        self._hosts: dict[etree._Element, etree._Element] = {}
        self._html_ids: dict[etree._Element, dict[str, etree._Element]] = {}
        self._index()

    def _index(self) -> None:
        stack = [self.root]
        while stack:
            node = stack.pop()
            self._order[node] = len(self._order)
            nid = node.get(NODE_ID_ATTR)
            if nid is not None:
                self._by_node_id[nid] = node
            children = [c for c in node if is_element(c)]
            shadow = self.shadow_roots.get(nid) if nid is not None else None
            if shadow is not None:
                self._hosts[shadow] = node
                children.insert(0, shadow)
            stack.extend(reversed(children))

    # --- Lookup ---

    def find(self, node_id: str) -> etree._Element | None:
        return self._by_node_id.get(node_id)

    def frame_for(self, host: etree._Element) -> DocumentSnapshot | None:
        """Content document of an ``<iframe>`` element (frames are keyed by host node id)."""
        nid = host.get(NODE_ID_ATTR)
        return self.frames.get(nid) if nid is not None else None

    def shadow_root(self, host: etree._Element) -> etree._Element | None:
        nid = host.get(NODE_ID_ATTR)
        return self.shadow_roots.get(nid) if nid is not None else None

    def by_html_id(self, context: etree._Element, html_id: str) -> etree._Element | None:
        """Find ``#html_id`` in the same tree (document or shadow root) as ``context``."""
        tree_root = context
        while tree_root.getparent() is not None:
            tree_root = tree_root.getparent()
        ids = self._html_ids.get(tree_root)
        if ids is None:
            ids = {}
            for el in tree_root.iter():
                if is_element(el) and el.get("id") and el.get("id") not in ids:
                    ids[el.get("id")] = el
            self._html_ids[tree_root] = ids
        return ids.get(html_id)

    # --- Structure ---

    def parent(self, el: etree._Element) -> etree._Element | None:
        """Composed-tree parent: crosses from a shadow root to its host."""
        parent = el.getparent()
        if parent is None:
            return self._hosts.get(el)
        return parent

    def ancestors(self, el: etree._Element) -> Iterator[etree._Element]:
        node = self.parent(el)
        while node is not None:
            yield node
            node = self.parent(node)

    def contains(self, ancestor: etree._Element, el: etree._Element) -> bool:
        if ancestor is el:
            return True
        return any(a is ancestor for a in self.ancestors(el))

    def position(self, el: etree._Element) -> int:
        return self._order.get(el, len(self._order))

    def elements(self, scope: etree._Element | None = None) -> Iterator[etree._Element]:
        """Elements searchable from ``scope`` in document order.

        The document scope includes the root element itself; an element scope
        yields descendants only. Shadow roots are not pierced.
        """
        if scope is None or scope is self.root:
            yield from (e for e in self.root.iter() if is_element(e))
            return
        yield from (e for e in scope.iterdescendants() if is_element(e))

    def to_html(self) -> str:
        return to_html(self.root)
