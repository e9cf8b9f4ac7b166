"""Driver backed by a live Playwright page."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Any

import lxml.html
from lxml import etree
from playwright.async_api import Error as PlaywrightError

from autowait.dialogs import Dialog
from autowait.drivers import BaseDriver, DriverHooks
from autowait.events import EventKind
from autowait.exceptions import ContextClosedError, DriverError, NodeDetachedError
from autowait.logger import get_logger
from autowait.models import (
    ActionKind,
    Navigation,
    Rect,
    Request,
    Response,
    RouteAction,
)
from autowait.snapshot import HIDDEN_ATTR, NODE_ID_ATTR, SHADOW_ROOT_TAG, DocumentSnapshot

if TYPE_CHECKING:
    from playwright.async_api import BrowserContext, ElementHandle
    from playwright.async_api import Dialog as PlaywrightDialog
    from playwright.async_api import Page as PlaywrightPage
    from playwright.async_api import Request as PlaywrightRequest
    from playwright.async_api import Response as PlaywrightResponse
    from playwright.async_api import Route as PlaywrightRoute

log = get_logger(__name__)

# Node ids live in a page-side registry so that they survive between
# snapshots of the same document without touching page markup.
_REGISTRY_JS = """
const registry = window.__autowait || (window.__autowait = {
  ids: new WeakMap(), nodes: new Map(), next: 1,
});
const idOf = (el) => {
  let id = registry.ids.get(el);
  if (id === undefined) {
    id = 'p' + registry.next++;
    registry.ids.set(el, id);
    registry.nodes.set(id, new WeakRef(el));
  }
  return id;
};
const lookup = (id) => {
  const ref = registry.nodes.get(id);
  const el = ref && ref.deref();
  return el && el.isConnected ? el : null;
};
"""

SNAPSHOT_JS = (
    "() => {"
    + _REGISTRY_JS
    + """
  const serialize = (el) => {
    const attrs = {};
    for (const a of el.attributes) attrs[a.name] = a.value;
    const view = el.ownerDocument.defaultView;
    const style = view ? view.getComputedStyle(el) : null;
    if (style && (style.display === 'none' || style.visibility === 'hidden')) {
      attrs['%(hidden)s'] = '';
    }
    const tag = el.localName;
    if (tag === 'input' || tag === 'textarea') {
      attrs.value = el.value;
      if (el.type === 'checkbox' || el.type === 'radio') {
        if (el.checked) attrs.checked = ''; else delete attrs.checked;
      }
      if (el.indeterminate) attrs['aria-checked'] = 'mixed';
    }
    if (tag === 'option') {
      if (el.selected) attrs.selected = ''; else delete attrs.selected;
    }
    attrs['%(node_id)s'] = idOf(el);
    const node = {tag, attrs: Object.entries(attrs), children: []};
    for (const child of el.childNodes) {
      if (child.nodeType === 1) node.children.push(serialize(child));
      else if (child.nodeType === 3) node.children.push(child.data);
    }
    if (el.shadowRoot) {
      node.shadow = [];
      for (const child of el.shadowRoot.childNodes) {
        if (child.nodeType === 1) node.shadow.push(serialize(child));
        else if (child.nodeType === 3) node.shadow.push(child.data);
      }
    }
    if (tag === 'iframe' || tag === 'frame') {
      try {
        const doc = el.contentDocument;
        if (doc && doc.documentElement) {
          node.frame = {url: doc.URL, root: serialize(doc.documentElement)};
        }
      } catch (e) {}
    }
    return node;
  };
  return {url: document.URL, root: serialize(document.documentElement)};
}"""
    % {"hidden": HIDDEN_ATTR, "node_id": NODE_ID_ATTR}
)

RESOLVE_JS = "(id) => {" + _REGISTRY_JS + "return lookup(id); }"

HIT_TEST_JS = (
    "(id) => {"
    + _REGISTRY_JS
    + """
  const el = lookup(id);
  if (!el) return {detached: true};
  const rect = el.getBoundingClientRect();
  let root = el.ownerDocument;
  let hit = root.elementFromPoint(rect.x + rect.width / 2, rect.y + rect.height / 2);
  while (hit && hit.shadowRoot) {
    const inner = hit.shadowRoot.elementFromPoint(rect.x + rect.width / 2, rect.y + rect.height / 2);
    if (!inner || inner === hit) break;
    hit = inner;
  }
  return {hit: hit ? idOf(hit) : null};
}"""
)

_DETACHED_MARKERS = (
    "not attached to the DOM",
    "Execution context was destroyed",
    "Element is not attached",
    "JSHandle is disposed",
)
_CLOSED_MARKERS = ("Target page, context or browser has been closed", "Target closed")
_SNAPSHOT_RETRIES = 3


def _build_element(
    node: dict[str, Any],
    shadows: dict[str, etree._Element],
    frames: dict[str, DocumentSnapshot],
    navigation_id: int,
) -> etree._Element:
    el = lxml.html.html_parser.makeelement(node["tag"])
    for name, value in node["attrs"]:
        try:
            el.set(name, value)
        except ValueError:
            # Framework attributes such as "@click" are not valid XML names.
            continue
    _append_children(el, node["children"], shadows, frames, navigation_id)
    node_id = el.get(NODE_ID_ATTR)
    if "shadow" in node:
        shadow = lxml.html.html_parser.makeelement(SHADOW_ROOT_TAG)
        _append_children(shadow, node["shadow"], shadows, frames, navigation_id)
        shadows[node_id] = shadow
    if "frame" in node:
        frames[node_id] = build_snapshot(node["frame"], navigation_id)
    return el


def _append_children(
    parent: etree._Element,
    children: list[Any],
    shadows: dict[str, etree._Element],
    frames: dict[str, DocumentSnapshot],
    navigation_id: int,
) -> None:
    for child in children:
        if isinstance(child, str):
            if len(parent):
                last = parent[-1]
                last.tail = (last.tail or "") + child
            else:
                parent.text = (parent.text or "") + child
        else:
            parent.append(_build_element(child, shadows, frames, navigation_id))


def build_snapshot(payload: dict[str, Any], navigation_id: int) -> DocumentSnapshot:
    """Turn the page-side serialization into a ``DocumentSnapshot``."""
    shadows: dict[str, etree._Element] = {}
    frames: dict[str, DocumentSnapshot] = {}
    root = _build_element(payload["root"], shadows, frames, navigation_id)
    return DocumentSnapshot(
        root,
        url=payload.get("url", ""),
        navigation_id=navigation_id,
        frames=frames,
        shadow_roots=shadows,
    )


def _to_request(request: PlaywrightRequest) -> Request:
    return Request(
        url=request.url,
        method=request.method,
        headers=dict(request.headers),
        post_data=request.post_data,
        resource_type=request.resource_type,
    )


class PlaywrightDriver(BaseDriver):
    """Adapts one Playwright page to the engine's driver interface.

    Playwright's own auto-waiting is bypassed: every input is dispatched
    with ``force=True`` because the engine has already checked
    actionability against its snapshot.
    """

    def __init__(self, page: PlaywrightPage, context: BrowserContext | None = None) -> None:
        self.page = page
        self.context = context or page.context
        self._navigation_id = 0
        # Main-frame document requested, and whether its commit already counted.
        self._document_requested = False
        self._document_counted = False
        self._closed = False
        self._tasks: set[asyncio.Task[Any]] = set()

    async def connect(self, hooks: DriverHooks) -> None:
        await super().connect(hooks)
        self.page.on("request", self._on_request)
        self.page.on("response", self._on_response)
        self.page.on("requestfailed", self._on_request_failed)
        self.page.on("framenavigated", self._on_frame_navigated)
        self.page.on("domcontentloaded", self._on_dom_content_loaded)
        self.page.on("dialog", self._on_dialog)
        self.page.on("popup", self._on_popup)
        self.page.on("close", self._on_close)

    # --- State ---

    @property
    def url(self) -> str:
        return self.page.url

    @property
    def navigation_id(self) -> int:
        return self._navigation_id

    @property
    def is_closed(self) -> bool:
        return self._closed or self.page.is_closed()

    def _ensure_open(self) -> None:
        if self.is_closed:
            raise ContextClosedError("Target page has been closed")

    def _translate(self, exc: PlaywrightError, node_id: str | None = None) -> Exception:
        message = str(exc)
        if any(marker in message for marker in _CLOSED_MARKERS):
            return ContextClosedError("Target page has been closed")
        if node_id is not None and any(marker in message for marker in _DETACHED_MARKERS):
            return NodeDetachedError(node_id)
        return DriverError(message)

    # --- Snapshots ---

    async def snapshot(self) -> DocumentSnapshot:
        self._ensure_open()
        for attempt in range(_SNAPSHOT_RETRIES):
            navigation_id = self._navigation_id
            try:
                payload = await self.page.evaluate(SNAPSHOT_JS)
            except PlaywrightError as exc:
                # A navigation can tear down the context mid-capture; try the new document.
                if "Execution context was destroyed" in str(exc) and attempt + 1 < _SNAPSHOT_RETRIES:
                    continue
                raise self._translate(exc) from exc
            return build_snapshot(payload, navigation_id)
        raise DriverError("Could not capture a snapshot")

    async def _handle(self, node_id: str) -> ElementHandle:
        self._ensure_open()
        try:
            handle = await self.page.evaluate_handle(RESOLVE_JS, node_id)
        except PlaywrightError as exc:
            raise self._translate(exc, node_id) from exc
        element = handle.as_element()
        if element is None:
            await handle.dispose()
            raise NodeDetachedError(node_id)
        return element

    # --- Layout ---

    async def bounding_box(self, node_id: str) -> Rect | None:
        element = await self._handle(node_id)
        try:
            box = await element.bounding_box()
        except PlaywrightError as exc:
            raise self._translate(exc, node_id) from exc
        finally:
            await element.dispose()
        if box is None:
            return None
        return Rect(x=box["x"], y=box["y"], width=box["width"], height=box["height"])

    async def hit_test(self, node_id: str) -> str | None:
        self._ensure_open()
        try:
            result = await self.page.evaluate(HIT_TEST_JS, node_id)
        except PlaywrightError as exc:
            raise self._translate(exc, node_id) from exc
        if result.get("detached"):
            raise NodeDetachedError(node_id)
        return result.get("hit")

    # --- Input and reads ---

    async def dispatch_input(
        self, node_id: str, action: ActionKind, payload: dict[str, Any]
    ) -> Any:
        element = await self._handle(node_id)
        try:
            return await self._dispatch(element, action, payload)
        except PlaywrightError as exc:
            raise self._translate(exc, node_id) from exc
        finally:
            await element.dispose()

    async def _dispatch(
        self, element: ElementHandle, action: ActionKind, payload: dict[str, Any]
    ) -> Any:
        if action == ActionKind.CLICK:
            await element.click(force=True)
        elif action == ActionKind.DBLCLICK:
            await element.dblclick(force=True)
        elif action == ActionKind.TAP:
            await element.tap(force=True)
        elif action == ActionKind.HOVER:
            await element.hover(force=True)
        elif action == ActionKind.FOCUS:
            await element.focus()
        elif action == ActionKind.FILL:
            await element.fill(payload.get("value", ""), force=True)
        elif action == ActionKind.CLEAR:
            await element.fill("", force=True)
        elif action == ActionKind.TYPE:
            await element.type(payload["text"])
        elif action == ActionKind.PRESS:
            await element.press(payload["key"])
        elif action == ActionKind.CHECK:
            await element.check(force=True)
        elif action == ActionKind.UNCHECK:
            await element.uncheck(force=True)
        elif action == ActionKind.SELECT_OPTION:
            return await element.select_option(
                **self._options(payload.get("values", [])), force=True
            )
        elif action == ActionKind.SET_INPUT_FILES:
            await element.set_input_files(
                [f if isinstance(f, dict) else str(f) for f in payload["files"]]
            )
        elif action == ActionKind.SCROLL_INTO_VIEW:
            await element.scroll_into_view_if_needed()
        else:
            raise DriverError(f"Unsupported action '{action.value}'")
        return None

    @staticmethod
    def _options(values: list[Any]) -> dict[str, list[Any]]:
        grouped: dict[str, list[Any]] = {}
        for item in values:
            if isinstance(item, dict):
                for key, value in item.items():
                    grouped.setdefault(key, []).append(value)
            else:
                grouped.setdefault("value", []).append(item)
        return grouped

    async def read(self, node_id: str, action: ActionKind, payload: dict[str, Any]) -> Any:
        element = await self._handle(node_id)
        try:
            if action == ActionKind.INNER_TEXT:
                return await element.inner_text()
            if action == ActionKind.TEXT_CONTENT:
                return await element.text_content()
            if action == ActionKind.INNER_HTML:
                return await element.inner_html()
            if action == ActionKind.INPUT_VALUE:
                return await element.input_value()
            if action == ActionKind.GET_ATTRIBUTE:
                return await element.get_attribute(payload["name"])
        except PlaywrightError as exc:
            raise self._translate(exc, node_id) from exc
        finally:
            await element.dispose()
        raise DriverError(f"Unsupported read '{action.value}'")

    # --- Page-level ---

    async def navigate(self, url: str) -> Response | None:
        self._ensure_open()
        try:
            response = await self.page.goto(url)
        except PlaywrightError as exc:
            raise self._translate(exc) from exc
        if response is None:
            return None
        return Response(
            url=response.url,
            status=response.status,
            headers=dict(response.headers),
            request=_to_request(response.request),
        )

    async def wait_for_load_state(self, state: str) -> None:
        self._ensure_open()
        try:
            # The engine owns the deadline; timeout=0 disables Playwright's own.
            await self.page.wait_for_load_state(state, timeout=0)
        except PlaywrightError as exc:
            raise self._translate(exc) from exc

    async def title(self) -> str:
        self._ensure_open()
        return await self.page.title()

    async def content(self) -> str:
        self._ensure_open()
        return await self.page.content()

    async def set_content(self, html: str) -> None:
        self._ensure_open()
        await self.page.set_content(html)
        # set_content replaces the document without always reporting a navigation.
        self._navigation_id += 1

    async def storage_state(self) -> dict[str, Any]:
        return await self.context.storage_state()

    async def close(self) -> None:
        if self._closed:
            return
        if not self.page.is_closed():
            await self.page.close()
        self._on_close()

    # --- Network ---

    async def enable_interception(self) -> None:
        await self.page.route("**/*", self._on_route)

    async def _on_route(self, route: PlaywrightRoute, request: PlaywrightRequest) -> None:
        if self.hooks is None:
            await route.continue_()
            return
        decision = await self.hooks.intercept(_to_request(request))
        if decision.action == RouteAction.FULFILL:
            await route.fulfill(
                status=decision.status, headers=decision.headers, body=decision.body or b""
            )
        elif decision.action == RouteAction.ABORT:
            await route.abort(decision.error_code)
        else:
            overrides: dict[str, Any] = {}
            if decision.url:
                overrides["url"] = decision.url
            if decision.method:
                overrides["method"] = decision.method
            if decision.headers:
                overrides["headers"] = {**request.headers, **decision.headers}
            if decision.post_data is not None:
                overrides["post_data"] = decision.post_data
            await route.continue_(**overrides)

    # --- Browser events ---

    def _emit(self, kind: EventKind, payload: Any) -> None:
        if self.hooks is not None:
            self.hooks.emit(kind, payload)

    def _on_request(self, request: PlaywrightRequest) -> None:
        if request.is_navigation_request() and request.frame == self.page.main_frame:
            self._document_requested = True
        self._emit(EventKind.REQUEST, _to_request(request))

    def _on_request_failed(self, request: PlaywrightRequest) -> None:
        if request.is_navigation_request() and request.frame == self.page.main_frame:
            self._document_requested = False
        self._emit(EventKind.REQUEST_FAILED, _to_request(request))

    def _on_response(self, response: PlaywrightResponse) -> None:
        task = asyncio.ensure_future(self._emit_response(response))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _emit_response(self, response: PlaywrightResponse) -> None:
        body: bytes | None = None
        try:
            body = await response.body()
        except PlaywrightError:
            # Redirects and evicted resources have no body.
            body = None
        self._emit(
            EventKind.RESPONSE,
            Response(
                url=response.url,
                status=response.status,
                headers=dict(response.headers),
                body=body,
                request=_to_request(response.request),
            ),
        )

    def _on_frame_navigated(self, frame: Any) -> None:
        if frame != self.page.main_frame:
            return
        # Hash changes and pushState navigate without a document request.
        if self._document_requested:
            self._document_requested = False
            self._document_counted = True
            self._navigation_id += 1
        self._emit(EventKind.NAVIGATION, Navigation(url=frame.url, navigation_id=self._navigation_id))

    def _on_dom_content_loaded(self, *_: Any) -> None:
        # New documents that never hit the network (about:blank, history restores).
        if not self._document_counted:
            self._navigation_id += 1
        self._document_counted = False

    async def _on_dialog(self, native: PlaywrightDialog) -> None:
        dialog = Dialog(native.type, native.message, native.default_value)
        if self.hooks is not None:
            await self.hooks.dialog(dialog)
        if dialog.accepted:
            await native.accept(dialog.prompt_text or "")
        else:
            await native.dismiss()
        log.debug("native_dialog_closed", kind=dialog.type, accepted=bool(dialog.accepted))

    async def _on_popup(self, popup: PlaywrightPage) -> None:
        if self.hooks is not None:
            await self.hooks.popup(PlaywrightDriver(popup, self.context))

    def _on_close(self, *_: Any) -> None:
        if self._closed:
            return
        self._closed = True
        for task in list(self._tasks):
            task.cancel()
        if self.hooks is not None:
            self.hooks.closed()

    # --- Tracing ---

    async def start_tracing(self, *, screenshots: bool, snapshots: bool) -> None:
        await self.context.tracing.start(screenshots=screenshots, snapshots=snapshots)

    async def stop_tracing(self, path: Path | None) -> Path | None:
        await self.context.tracing.stop(path=str(path) if path else None)
        return path
