"""In-process browsing context backed by a live lxml document.

``MemoryDriver`` is a small scripted browser: pages are HTML strings,
elements get a synthetic layout (``data-box="x,y,w,h"`` or one 20px row per
element in document order), scripts are Python callbacks registered with
:meth:`MemoryDriver.on` or scheduled with :meth:`MemoryDriver.schedule`, and
the network is a table of canned responses. Declarative shadow roots
(``<template shadowrootmode="open">``) and ``<iframe srcdoc>`` frames are
supported.
"""

from __future__ import annotations

import asyncio
import copy
import html as htmllib
import inspect
import itertools
import json as jsonlib
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urljoin

import lxml.html
from lxml import etree

from autowait import aria
from autowait.dialogs import Dialog, default_dialog_policy
from autowait.drivers import LOAD_STATES, BaseDriver
from autowait.events import EventKind
from autowait.exceptions import ContextClosedError, DriverError, NodeDetachedError
from autowait.logger import get_logger
from autowait.models import (
    ActionKind,
    DialogKind,
    Navigation,
    Rect,
    Request,
    Response,
    RouteAction,
    normalize_whitespace,
)
from autowait.resolvers.css import compile_css
from autowait.routing import URLPattern, url_matcher
from autowait.snapshot import (
    NODE_ID_ATTR,
    SHADOW_ROOT_TAG,
    DocumentSnapshot,
    is_element,
    strip_internal,
    text_content,
    to_html,
)

log = get_logger(__name__)

EMPTY_PAGE = "<html><head></head><body></body></html>"
ROW_HEIGHT = 20
ROW_WIDTH = 200

_UNRENDERED_TAGS = frozenset({"head", "script", "style", "template", "noscript", "title", "meta"})
_DISPLAY_NONE = re.compile(r"display\s*:\s*none", re.IGNORECASE)
_VISIBILITY_HIDDEN = re.compile(r"visibility\s*:\s*hidden", re.IGNORECASE)
_NO_POINTER = re.compile(r"pointer-events\s*:\s*none", re.IGNORECASE)


@dataclass
class DomEvent:
    """What a scripted listener receives."""

    type: str
    target: etree._Element
    driver: MemoryDriver
    key: str | None = None

    @property
    def value(self) -> str:
        return self.driver.value_of(self.target)


@dataclass
class _Listener:
    selector: str
    event: str
    callback: Callable[[DomEvent], Any]


@dataclass
class _Served:
    matches: Callable[[str], bool]
    status: int
    body: bytes
    headers: dict[str, str]
    delay_ms: float


@dataclass
class _Document:
    root: etree._Element
    url: str
    shadows: dict[etree._Element, etree._Element] = field(default_factory=dict)
    frames: dict[etree._Element, _Document] = field(default_factory=dict)

    def host_of(self, shadow: etree._Element) -> etree._Element | None:
        for host, root in self.shadows.items():
            if root is shadow:
                return host
        return None

    def parent(self, el: etree._Element) -> etree._Element | None:
        parent = el.getparent()
        return parent if parent is not None else self.host_of(el)

    def ancestors(self, el: etree._Element) -> Iterator[etree._Element]:
        node = self.parent(el)
        while node is not None:
            yield node
            node = self.parent(node)

    def composed(self) -> Iterator[etree._Element]:
        """Elements in composed order (shadow content right after its host)."""
        stack = [self.root]
        while stack:
            node = stack.pop()
            yield node
            children = [c for c in node if is_element(c)]
            shadow = self.shadows.get(node)
            if shadow is not None:
                children.insert(0, shadow)
            stack.extend(reversed(children))


def _remove_keeping_tail(el: etree._Element) -> None:
    parent = el.getparent()
    if el.tail:
        previous = el.getprevious()
        if previous is not None:
            previous.tail = (previous.tail or "") + el.tail
        else:
            parent.text = (parent.text or "") + el.tail
    parent.remove(el)


def parse_document(html: str, url: str = "about:blank") -> _Document:
    root = lxml.html.document_fromstring(html if html.strip() else EMPTY_PAGE)
    doc = _Document(root=root, url=url)
    for template in list(root.iter("template")):
        if not (template.get("shadowrootmode") or template.get("shadowroot")):
            continue
        host = template.getparent()
        shadow = etree.Element(SHADOW_ROOT_TAG)
        shadow.text = template.text
        for child in list(template):
            shadow.append(child)
        _remove_keeping_tail(template)
        doc.shadows[host] = shadow
    for iframe in root.iter("iframe"):
        srcdoc = iframe.get("srcdoc")
        if srcdoc is not None:
            doc.frames[iframe] = parse_document(srcdoc, url="about:srcdoc")
    return doc


def _tree_root(el: etree._Element) -> etree._Element:
    while el.getparent() is not None:
        el = el.getparent()
    return el


def _matches(el: etree._Element, css: str) -> bool:
    return any(found is el for found in compile_css(css)(_tree_root(el)))


def _parse_box(value: str) -> Rect:
    try:
        x, y, width, height = (float(part) for part in value.split(","))
    except ValueError as exc:
        raise DriverError(f"Bad data-box value '{value}'") from exc
    return Rect(x=x, y=y, width=width, height=height)


class MemoryDriver(BaseDriver):
    """A scripted, in-memory browsing context."""

    def __init__(
        self,
        html: str = "",
        *,
        url: str = "about:blank",
        storage_state: dict[str, Any] | None = None,
    ) -> None:
        self._ids = itertools.count(1)
        self._doc = parse_document(html, url)
        self._navigation_id = 0
        self._closed = False
        self._focused: etree._Element | None = None
        self._listeners: list[_Listener] = []
        self._served: list[_Served] = []
        self._files: dict[str, list[str]] = {}
        self._tasks: set[asyncio.Task[Any]] = set()
        self._intercepting = False
        self._loaded = asyncio.Event()
        self._loaded.set()
        self._idle = asyncio.Event()
        self._idle.set()
        self._inflight = 0
        self.storage = copy.deepcopy(storage_state) if storage_state else {"cookies": [], "origins": []}
        self.opener: MemoryDriver | None = None
        self.dialogs: list[Dialog] = []

    # --- State ---

    @property
    def url(self) -> str:
        return self._doc.url

    @property
    def navigation_id(self) -> int:
        return self._navigation_id

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise ContextClosedError("Target page has been closed")

    # --- Documents and node ids ---

    def _documents(self, doc: _Document | None = None) -> Iterator[_Document]:
        doc = doc or self._doc
        yield doc
        for frame in doc.frames.values():
            yield from self._documents(frame)

    def _stamp(self) -> None:
        for doc in self._documents():
            for el in doc.composed():
                if el.get(NODE_ID_ATTR) is None:
                    el.set(NODE_ID_ATTR, f"n{next(self._ids)}")

    def _node(self, node_id: str) -> tuple[_Document, etree._Element]:
        for doc in self._documents():
            for el in doc.composed():
                if el.get(NODE_ID_ATTR) == node_id:
                    return doc, el
        raise NodeDetachedError(node_id)

    def _capture(self, doc: _Document) -> DocumentSnapshot:
        root = copy.deepcopy(doc.root)
        shadows = {host.get(NODE_ID_ATTR): copy.deepcopy(s) for host, s in doc.shadows.items()}
        frames = {host.get(NODE_ID_ATTR): self._capture(f) for host, f in doc.frames.items()}
        return DocumentSnapshot(
            root,
            url=doc.url,
            navigation_id=self._navigation_id,
            frames=frames,
            shadow_roots=shadows,
        )

    async def snapshot(self) -> DocumentSnapshot:
        self._ensure_open()
        self._stamp()
        return self._capture(self._doc)

    # --- Layout ---

    def _hidden(self, doc: _Document, el: etree._Element) -> bool:
        for node in itertools.chain([el], doc.ancestors(el)):
            if node.tag in _UNRENDERED_TAGS or node.get("hidden") is not None:
                return True
            if node.tag == "input" and (node.get("type") or "").lower() == "hidden":
                return True
            style = node.get("style") or ""
            if _DISPLAY_NONE.search(style) or _VISIBILITY_HIDDEN.search(style):
                return True
        return False

    def _box(self, doc: _Document, el: etree._Element) -> Rect | None:
        if self._hidden(doc, el):
            return None
        explicit = el.get("data-box")
        if explicit is not None:
            return _parse_box(explicit)
        for row, node in enumerate(doc.composed()):
            if node is el:
                return Rect(x=0, y=row * ROW_HEIGHT, width=ROW_WIDTH, height=ROW_HEIGHT)
        return None

    async def bounding_box(self, node_id: str) -> Rect | None:
        self._ensure_open()
        doc, el = self._node(node_id)
        return self._box(doc, el)

    async def hit_test(self, node_id: str) -> str | None:
        """Topmost element at the target's centre.

        Only elements with an explicit ``data-box`` can cover others; the
        later one in document order is on top.
        """
        self._ensure_open()
        doc, el = self._node(node_id)
        box = self._box(doc, el)
        if box is None:
            return None
        x, y = box.center
        top = el
        seen_target = False
        for other in doc.composed():
            if other is el:
                seen_target = True
                continue
            if not seen_target or other.get("data-box") is None:
                continue
            if _NO_POINTER.search(other.get("style") or ""):
                continue
            if any(a is el for a in doc.ancestors(other)):
                continue
            other_box = self._box(doc, other)
            if other_box is not None and other_box.contains(x, y):
                top = other
        return top.get(NODE_ID_ATTR)

    # --- Scripting ---

    def on(self, selector: str, event: str, callback: Callable[[DomEvent], Any]) -> None:
        """Run ``callback`` when ``event`` fires on (or bubbles through) ``selector``."""
        compile_css(selector)
        self._listeners.append(_Listener(selector, event, callback))

    def schedule(self, delay_ms: float, callback: Callable[[MemoryDriver], Any]) -> asyncio.Task[Any]:
        """Run ``callback(driver)`` after ``delay_ms``, like a page timer."""

        async def run() -> None:
            await asyncio.sleep(delay_ms / 1000)
            if self._closed:
                return
            result = callback(self)
            if inspect.isawaitable(result):
                await result

        return self._spawn(run())

    def _spawn(self, coro: Any) -> asyncio.Task[Any]:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            log.error("page_script_failed", url=self.url, error=str(task.exception()))

    async def _fire(self, el: etree._Element, event: str, key: str | None = None) -> None:
        doc = self._doc_of(el)
        chain = [el, *doc.ancestors(el)] if doc is not None else [el]
        for listener in list(self._listeners):
            if listener.event != event:
                continue
            if any(is_element(node) and _matches(node, listener.selector) for node in chain):
                result = listener.callback(DomEvent(event, el, self, key))
                if inspect.isawaitable(result):
                    await result

    def _doc_of(self, el: etree._Element) -> _Document | None:
        root = _tree_root(el)
        for doc in self._documents():
            if root is doc.root or any(root is s for s in doc.shadows.values()):
                return doc
        return None

    # --- Mutation helpers for page scripts ---

    def query(self, selector: str) -> list[etree._Element]:
        """Live elements of the main document matching a CSS selector."""
        return [el for el in compile_css(selector)(self._doc.root) if is_element(el)]

    def _first(self, selector: str) -> etree._Element:
        found = self.query(selector)
        if not found:
            raise DriverError(f"No element matches '{selector}'")
        return found[0]

    def append_html(self, selector: str, html: str) -> None:
        parent = self._first(selector)
        for fragment in lxml.html.fragments_fromstring(html):
            if isinstance(fragment, str):
                last = parent[-1] if len(parent) else None
                if last is not None:
                    last.tail = (last.tail or "") + fragment
                else:
                    parent.text = (parent.text or "") + fragment
            else:
                parent.append(fragment)

    def remove(self, selector: str) -> None:
        for el in self.query(selector):
            if el.getparent() is not None:
                _remove_keeping_tail(el)

    def set_attribute(self, selector: str, name: str, value: str | None) -> None:
        for el in self.query(selector):
            if value is None:
                el.attrib.pop(name, None)
            else:
                el.set(name, value)

    def set_text(self, selector: str, text: str) -> None:
        for el in self.query(selector):
            for child in list(el):
                el.remove(child)
            el.text = text

    def value_of(self, el: etree._Element) -> str:
        if el.tag == "textarea":
            return el.text or ""
        if el.tag == "select":
            selected = [o for o in el.iter("option") if o.get("selected") is not None]
            options = selected or list(el.iter("option"))[:1]
            return self._option_value(options[0]) if options else ""
        if el.get("contenteditable") is not None and el.tag != "input":
            return text_content(el)
        return el.get("value") or ""

    def _set_value(self, el: etree._Element, value: str) -> None:
        if el.tag == "textarea" or (el.get("contenteditable") is not None and el.tag != "input"):
            for child in list(el):
                el.remove(child)
            el.text = value
        else:
            el.set("value", value)

    @staticmethod
    def _option_value(option: etree._Element) -> str:
        value = option.get("value")
        return value if value is not None else normalize_whitespace(text_content(option))

    # --- Input ---

    async def dispatch_input(
        self, node_id: str, action: ActionKind, payload: dict[str, Any]
    ) -> Any:
        self._ensure_open()
        _, el = self._node(node_id)
        log.debug("memory_dispatch", action=action.value, node=node_id, tag=el.tag)
        if action in (ActionKind.CLICK, ActionKind.TAP):
            await self._click(el)
        elif action == ActionKind.DBLCLICK:
            await self._click(el)
            await self._click(el)
            await self._fire(el, "dblclick")
        elif action == ActionKind.HOVER:
            await self._fire(el, "mouseover")
        elif action == ActionKind.FOCUS:
            await self._focus(el)
        elif action in (ActionKind.FILL, ActionKind.CLEAR):
            await self._focus(el)
            self._set_value(el, payload.get("value", "") if action == ActionKind.FILL else "")
            await self._fire(el, "input")
            await self._fire(el, "change")
        elif action == ActionKind.TYPE:
            await self._focus(el)
            for char in payload.get("text", ""):
                await self._fire(el, "keydown", char)
                self._set_value(el, self.value_of(el) + char)
                await self._fire(el, "input", char)
                await self._fire(el, "keyup", char)
        elif action == ActionKind.PRESS:
            await self._focus(el)
            await self._press(el, payload["key"])
        elif action in (ActionKind.CHECK, ActionKind.UNCHECK):
            await self._set_checked(el, action == ActionKind.CHECK)
        elif action == ActionKind.SELECT_OPTION:
            return await self._select(el, payload.get("values", []))
        elif action == ActionKind.SET_INPUT_FILES:
            await self._set_files(el, payload.get("files", []))
        elif action == ActionKind.SCROLL_INTO_VIEW:
            return None
        else:
            raise DriverError(f"Unsupported input action '{action.value}'")
        return None

    async def _focus(self, el: etree._Element) -> None:
        if self._focused is not el:
            self._focused = el
            await self._fire(el, "focus")

    async def _click(self, el: etree._Element) -> None:
        await self._fire(el, "click")
        doc = self._doc_of(el)
        chain = [el, *(doc.ancestors(el) if doc else [])]
        kind = (el.get("type") or "").lower()

        if el.tag == "input" and kind in ("checkbox", "radio"):
            await self._toggle(el)
            return
        label = next((n for n in chain if n.tag == "label"), None)
        if label is not None and el.tag not in aria.LABELABLE_TAGS:
            control = aria.label_control(label)
            if control is not None:
                await self._click(control)
                return
        link = next((n for n in chain if n.tag == "a" and n.get("href") is not None), None)
        if link is not None:
            await self._follow(link)
            return
        if (el.tag == "button" and kind in ("", "submit")) or (
            el.tag == "input" and kind in ("submit", "image")
        ):
            form = next((n for n in chain if n.tag == "form"), None)
            if form is not None:
                await self._fire(form, "submit")

    async def _toggle(self, el: etree._Element) -> None:
        if (el.get("type") or "").lower() == "radio":
            if el.get("checked") is not None:
                return
            name = el.get("name")
            if name:
                for other in _tree_root(el).iter("input"):
                    if other.get("type", "").lower() == "radio" and other.get("name") == name:
                        other.attrib.pop("checked", None)
            el.set("checked", "")
        elif el.get("checked") is not None:
            el.attrib.pop("checked", None)
        else:
            el.set("checked", "")
        await self._fire(el, "input")
        await self._fire(el, "change")

    def _is_checked(self, el: etree._Element) -> bool:
        aria = el.get("aria-checked")
        if aria is not None:
            return aria.lower() == "true"
        return el.get("checked") is not None

    async def _set_checked(self, el: etree._Element, state: bool) -> None:
        if self._is_checked(el) == state:
            return
        await self._click(el)
        if self._is_checked(el) != state:
            raise DriverError("Clicking the checkbox did not change its state")

    async def _follow(self, link: etree._Element) -> None:
        href = link.get("href") or ""
        if href.startswith("#") or href.startswith("javascript:"):
            return
        url = urljoin(self.url, href)
        if link.get("target") == "_blank":
            await self.open_popup(url)
        else:
            await self.navigate(url)

    async def _press(self, el: etree._Element, key: str) -> None:
        await self._fire(el, "keydown", key)
        if len(key) == 1 and el.tag in ("input", "textarea"):
            self._set_value(el, self.value_of(el) + key)
            await self._fire(el, "input", key)
        await self._fire(el, "keyup", key)
        if key == "Enter" and el.tag == "input":
            form = next((n for n in el.iterancestors() if n.tag == "form"), None)
            if form is not None:
                await self._fire(form, "submit")

    async def _select(self, el: etree._Element, values: list[Any]) -> list[str]:
        if el.tag != "select":
            raise DriverError("Element is not a <select> element")
        options = list(el.iter("option"))
        chosen: list[etree._Element] = []
        for wanted in values:
            match = self._find_option(options, wanted)
            if match is None:
                raise DriverError(f"No option matching {wanted!r}")
            chosen.append(match)
        if len(chosen) > 1 and el.get("multiple") is None:
            chosen = chosen[:1]
        for option in options:
            if any(option is c for c in chosen):
                option.set("selected", "")
            else:
                option.attrib.pop("selected", None)
        await self._fire(el, "input")
        await self._fire(el, "change")
        return [self._option_value(o) for o in chosen]

    def _find_option(self, options: list[etree._Element], wanted: Any) -> etree._Element | None:
        if isinstance(wanted, dict):
            if "index" in wanted:
                index = wanted["index"]
                return options[index] if 0 <= index < len(options) else None
            if "value" in wanted:
                return next((o for o in options if self._option_value(o) == wanted["value"]), None)
            label = wanted.get("label")
            return next(
                (o for o in options if normalize_whitespace(text_content(o)) == label), None
            )
        by_value = next((o for o in options if self._option_value(o) == wanted), None)
        if by_value is not None:
            return by_value
        return next((o for o in options if normalize_whitespace(text_content(o)) == wanted), None)

    async def _set_files(self, el: etree._Element, files: list[Any]) -> None:
        if el.tag != "input" or (el.get("type") or "").lower() != "file":
            raise DriverError("Node is not an HTMLInputElement of type file")
        names = []
        for item in files:
            if isinstance(item, dict):
                names.append(item["name"])
            else:
                names.append(Path(item).name)
        self._files[el.get(NODE_ID_ATTR)] = names
        el.set("value", f"C:\\fakepath\\{names[0]}" if names else "")
        await self._fire(el, "input")
        await self._fire(el, "change")

    # --- Reads ---

    async def read(self, node_id: str, action: ActionKind, payload: dict[str, Any]) -> Any:
        self._ensure_open()
        _, el = self._node(node_id)
        if action == ActionKind.INNER_TEXT:
            return normalize_whitespace(text_content(el))
        if action == ActionKind.TEXT_CONTENT:
            return text_content(el)
        if action == ActionKind.INNER_HTML:
            clone = strip_internal(el)
            head = htmllib.escape(clone.text or "", quote=False)
            return head + "".join(
                lxml.html.tostring(child, encoding="unicode") for child in clone
            )
        if action == ActionKind.INPUT_VALUE:
            if el.tag not in ("input", "textarea", "select"):
                raise DriverError("Node is not an <input>, <textarea> or <select> element")
            return self.value_of(el)
        if action == ActionKind.GET_ATTRIBUTE:
            return el.get(payload["name"])
        raise DriverError(f"Unsupported read '{action.value}'")

    # --- Network ---

    async def enable_interception(self) -> None:
        self._intercepting = True

    def serve(
        self,
        pattern: URLPattern,
        body: str | bytes = "",
        *,
        status: int = 200,
        headers: dict[str, str] | None = None,
        delay_ms: float = 0,
        json: Any = None,
    ) -> None:
        """Answer requests matching ``pattern`` with a canned response."""
        headers = dict(headers or {})
        if json is not None:
            body = jsonlib.dumps(json)
            headers.setdefault("content-type", "application/json")
        if isinstance(body, str):
            body = body.encode("utf-8")
        headers.setdefault("content-type", "text/html")
        self._served.append(_Served(url_matcher(pattern), status, body, headers, delay_ms))

    async def fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        post_data: str | None = None,
        resource_type: str = "fetch",
    ) -> Response:
        """Issue a request the way page script would; routes see it first."""
        self._ensure_open()
        request = Request(
            url=urljoin(self.url, url),
            method=method,
            headers=headers or {},
            post_data=post_data,
            resource_type=resource_type,
        )
        self._emit(EventKind.REQUEST, request)
        self._inflight += 1
        self._idle.clear()
        try:
            return await self._complete(request)
        finally:
            self._inflight -= 1
            if not self._inflight:
                self._idle.set()

    async def _complete(self, request: Request) -> Response:
        decision = None
        if self._intercepting and self.hooks is not None:
            decision = await self.hooks.intercept(request)

        if decision is not None and decision.action == RouteAction.ABORT:
            self._emit(EventKind.REQUEST_FAILED, request)
            raise DriverError(f"net::ERR_{decision.error_code.upper()} at {request.url}")
        if decision is not None and decision.action == RouteAction.FULFILL:
            response = Response(
                url=request.url,
                status=decision.status,
                headers=decision.headers,
                body=decision.body,
                request=request,
            )
        else:
            sent = request
            if decision is not None:
                sent = request.model_copy(
                    update={
                        "url": decision.url or request.url,
                        "method": decision.method or request.method,
                        "headers": {**request.headers, **decision.headers},
                        "post_data": decision.post_data or request.post_data,
                    }
                )
            response = await self._network(sent)
        self._emit(EventKind.RESPONSE, response)
        return response

    async def _network(self, request: Request) -> Response:
        for served in self._served:
            if served.matches(request.url):
                if served.delay_ms:
                    await asyncio.sleep(served.delay_ms / 1000)
                self._ensure_open()
                return Response(
                    url=request.url,
                    status=served.status,
                    headers=served.headers,
                    body=served.body,
                    request=request,
                )
        return Response(url=request.url, status=404, body=b"", request=request)

    async def navigate(self, url: str) -> Response | None:
        self._ensure_open()
        target = urljoin(self.url, url)
        if target == "about:blank":
            self.load(EMPTY_PAGE, url=target)
            return None
        self._loaded.clear()
        try:
            response = await self.fetch(target, resource_type="document")
            self.load(response.text(), url=target)
        finally:
            self._loaded.set()
        return response

    async def wait_for_load_state(self, state: str) -> None:
        if state not in LOAD_STATES:
            raise ValueError(f"state must be one of {', '.join(LOAD_STATES)}, got '{state}'")
        self._ensure_open()
        await self._loaded.wait()
        if state == "networkidle":
            await self._idle.wait()

    def load(self, html: str, url: str | None = None) -> None:
        """Replace the document, counting as a main-frame navigation."""
        self._doc = parse_document(html, url or self.url)
        self._focused = None
        self._navigation_id += 1
        self._emit(EventKind.NAVIGATION, Navigation(url=self.url, navigation_id=self._navigation_id))

    def _emit(self, kind: EventKind, payload: Any) -> None:
        if self.hooks is not None:
            self.hooks.emit(kind, payload)

    # --- Dialogs and popups ---

    async def open_dialog(
        self, kind: DialogKind | str, message: str, default_value: str = ""
    ) -> bool | str | None:
        """Show a native dialog from page script and return what it resolved to."""
        self._ensure_open()
        dialog = Dialog(kind, message, default_value)
        self.dialogs.append(dialog)
        if self.hooks is not None:
            await self.hooks.dialog(dialog)
        else:
            await default_dialog_policy(dialog)
        if dialog.kind == DialogKind.PROMPT:
            return dialog.prompt_text if dialog.accepted else None
        if dialog.kind == DialogKind.ALERT:
            return None
        return bool(dialog.accepted)

    async def open_popup(self, url: str | None = None, html: str | None = None) -> MemoryDriver:
        """Open a new page in the same context (``window.open`` / ``target=_blank``)."""
        popup = MemoryDriver(html or "", url=url if html is not None and url else "about:blank")
        popup.opener = self
        popup._served = self._served
        popup.storage = self.storage
        if html is None and url is not None:
            popup._loaded.clear()
        if self.hooks is not None:
            await self.hooks.popup(popup)
        if html is None and url is not None:
            popup._spawn(popup.navigate(url))
        return popup

    # --- Page-level ---

    async def title(self) -> str:
        self._ensure_open()
        title = self._doc.root.find(".//title")
        return normalize_whitespace(text_content(title)) if title is not None else ""

    async def content(self) -> str:
        self._ensure_open()
        return "<!DOCTYPE html>" + to_html(self._doc.root)

    async def set_content(self, html: str) -> None:
        self._ensure_open()
        self.load(html)

    async def storage_state(self) -> dict[str, Any]:
        return copy.deepcopy(self.storage)

    def files_of(self, selector: str) -> list[str]:
        """File names set on a file input (by CSS selector)."""
        el = self._first(selector)
        return list(self._files.get(el.get(NODE_ID_ATTR) or "", []))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for task in list(self._tasks):
            task.cancel()
        if self.hooks is not None:
            self.hooks.closed()
        log.debug("memory_page_closed", url=self.url)
