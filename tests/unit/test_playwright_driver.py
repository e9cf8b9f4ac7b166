"""Tests for the Playwright driver's translation layer (no browser needed)."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError

from autowait.config import EngineConfig
from autowait.drivers import DriverHooks
from autowait.drivers.playwright import PlaywrightDriver, build_snapshot
from autowait.exceptions import ContextClosedError, DriverError, NodeDetachedError
from autowait.models import ActionKind, RouteAction, RouteDecision
from autowait.resolver import QueryResolver
from autowait.selectors import parse_selector
from autowait.snapshot import HIDDEN_ATTR, NODE_ID_ATTR


def _node(tag: str, node_id: str, *children, attrs=(), **extra) -> dict:
    return {
        "tag": tag,
        "attrs": [[NODE_ID_ATTR, node_id], *attrs],
        "children": list(children),
        **extra,
    }


@pytest.fixture
def payload() -> dict:
    return {
        "url": "https://shop.test/",
        "root": _node(
            "html",
            "n1",
            _node(
                "body",
                "n2",
                _node("button", "n3", "Add to cart", attrs=[["@click", "add()"]]),
                " tail ",
                _node("div", "n4", attrs=[[HIDDEN_ATTR, ""]]),
                _node(
                    "my-widget",
                    "n5",
                    shadow=[_node("button", "n6", "Inside")],
                ),
                _node(
                    "iframe",
                    "n7",
                    attrs=[["name", "pay"]],
                    frame={"url": "https://pay.test/", "root": _node("html", "f1", _node("input", "f2"))},
                ),
            ),
        ),
    }


def _driver() -> tuple[PlaywrightDriver, MagicMock]:
    page = MagicMock()
    page.is_closed.return_value = False
    page.url = "https://shop.test/"
    return PlaywrightDriver(page, context=AsyncMock()), page


class TestBuildSnapshot:
    def test_structure_and_node_ids(self, payload) -> None:
        snapshot = build_snapshot(payload, navigation_id=4)
        assert snapshot.url == "https://shop.test/"
        assert snapshot.navigation_id == 4
        button = snapshot.find("n3")
        assert button.text == "Add to cart"
        assert button.tail == " tail "
        assert button.get("@click") is None

    def test_shadow_and_frame(self, payload) -> None:
        snapshot = build_snapshot(payload, navigation_id=0)
        host = snapshot.find("n5")
        assert snapshot.shadow_root(host)[0].text == "Inside"
        frame = snapshot.frame_for(snapshot.find("n7"))
        assert frame.url == "https://pay.test/"
        assert frame.find("f2").tag == "input"

    def test_resolver_runs_on_built_snapshot(self, payload) -> None:
        snapshot = build_snapshot(payload, navigation_id=0)
        resolver = QueryResolver(EngineConfig())
        found = resolver.resolve(parse_selector("role=button"), snapshot)
        assert [c.node_id for c in found] == ["n3"]
        framed = resolver.resolve(parse_selector("frame=pay >> input"), snapshot)
        assert [c.node_id for c in framed] == ["f2"]


class TestTranslate:
    def test_closed(self) -> None:
        driver, _ = _driver()
        exc = driver._translate(PlaywrightError("Target page, context or browser has been closed"))
        assert isinstance(exc, ContextClosedError)

    def test_detached_only_with_node(self) -> None:
        driver, _ = _driver()
        error = PlaywrightError("Element is not attached to the DOM")
        assert isinstance(driver._translate(error, "n3"), NodeDetachedError)
        assert isinstance(driver._translate(error), DriverError)


class TestOptions:
    def test_groups_values_labels_and_indexes(self) -> None:
        grouped = PlaywrightDriver._options(["fr", {"label": "India"}, {"index": 0}, "de"])
        assert grouped == {"value": ["fr", "de"], "label": ["India"], "index": [0]}


class TestDriverCalls:
    async def test_snapshot_retries_destroyed_context(self, payload) -> None:
        driver, page = _driver()
        page.evaluate = AsyncMock(
            side_effect=[PlaywrightError("Execution context was destroyed"), payload]
        )
        snapshot = await driver.snapshot()
        assert snapshot.find("n3") is not None
        assert page.evaluate.await_count == 2

    async def test_detached_handle(self) -> None:
        driver, page = _driver()
        handle = AsyncMock()
        handle.as_element = MagicMock(return_value=None)
        page.evaluate_handle = AsyncMock(return_value=handle)
        with pytest.raises(NodeDetachedError):
            await driver.bounding_box("n9")
        handle.dispose.assert_awaited_once()

    async def test_click_is_forced(self) -> None:
        driver, page = _driver()
        element = AsyncMock()
        handle = MagicMock()
        handle.as_element = MagicMock(return_value=element)
        page.evaluate_handle = AsyncMock(return_value=handle)
        await driver.dispatch_input("n3", ActionKind.CLICK, {})
        element.click.assert_awaited_once_with(force=True)
        element.dispose.assert_awaited_once()

    async def test_hit_test_reports_detached(self) -> None:
        driver, page = _driver()
        page.evaluate = AsyncMock(return_value={"detached": True})
        with pytest.raises(NodeDetachedError):
            await driver.hit_test("n3")

    async def test_closed_page_raises(self) -> None:
        driver, page = _driver()
        page.is_closed.return_value = True
        with pytest.raises(ContextClosedError):
            await driver.snapshot()

    async def test_close_fires_hook_once(self) -> None:
        driver, page = _driver()
        page.close = AsyncMock()
        closed = MagicMock()
        await driver.connect(
            DriverHooks(
                emit=MagicMock(), intercept=AsyncMock(), dialog=AsyncMock(),
                popup=AsyncMock(), closed=closed,
            )
        )
        await driver.close()
        await driver.close()
        closed.assert_called_once()
        assert driver.is_closed


class TestRouting:
    async def _route(self, decision: RouteDecision):
        driver, _ = _driver()
        await driver.connect(
            DriverHooks(
                emit=MagicMock(),
                intercept=AsyncMock(return_value=decision),
                dialog=AsyncMock(),
                popup=AsyncMock(),
                closed=MagicMock(),
            )
        )
        route = AsyncMock()
        request = MagicMock(
            url="https://shop.test/api", method="GET", headers={"accept": "*/*"},
            post_data=None, resource_type="fetch",
        )
        await driver._on_route(route, request)
        return route

    async def test_fulfill(self) -> None:
        route = await self._route(
            RouteDecision(action=RouteAction.FULFILL, status=201, body=b"ok")
        )
        route.fulfill.assert_awaited_once_with(status=201, headers={}, body=b"ok")

    async def test_abort(self) -> None:
        route = await self._route(RouteDecision(action=RouteAction.ABORT, error_code="aborted"))
        route.abort.assert_awaited_once_with("aborted")

    async def test_continue_merges_headers(self) -> None:
        route = await self._route(RouteDecision(headers={"x-test": "1"}, method="POST"))
        route.continue_.assert_awaited_once_with(
            method="POST", headers={"accept": "*/*", "x-test": "1"}
        )


class TestNavigationTracking:
    async def _connected(self) -> tuple[PlaywrightDriver, MagicMock, MagicMock]:
        driver, page = _driver()
        page.main_frame.url = "https://shop.test/next"
        emit = MagicMock()
        await driver.connect(
            DriverHooks(
                emit=emit,
                intercept=AsyncMock(),
                dialog=AsyncMock(),
                popup=AsyncMock(),
                closed=MagicMock(),
            )
        )
        return driver, page, emit

    @staticmethod
    def _document_request(frame) -> MagicMock:
        request = MagicMock(
            url="https://shop.test/next", method="GET", headers={},
            post_data=None, resource_type="document", frame=frame,
        )
        request.is_navigation_request.return_value = True
        return request

    async def test_same_document_navigation_keeps_id(self) -> None:
        driver, page, emit = await self._connected()
        driver._on_frame_navigated(page.main_frame)
        assert driver.navigation_id == 0
        kind, navigation = emit.call_args.args
        assert navigation.url == "https://shop.test/next"
        assert navigation.navigation_id == 0

    async def test_new_document_counts_once(self) -> None:
        driver, page, _ = await self._connected()
        driver._on_request(self._document_request(page.main_frame))
        driver._on_frame_navigated(page.main_frame)
        assert driver.navigation_id == 1
        driver._on_dom_content_loaded(page)
        assert driver.navigation_id == 1
        driver._on_frame_navigated(page.main_frame)
        assert driver.navigation_id == 1

    async def test_document_without_request_counts_on_load(self) -> None:
        driver, page, _ = await self._connected()
        driver._on_frame_navigated(page.main_frame)
        driver._on_dom_content_loaded(page)
        assert driver.navigation_id == 1

    async def test_subframe_and_failed_requests_ignored(self) -> None:
        driver, page, _ = await self._connected()
        request = self._document_request(page.main_frame)
        driver._on_request(request)
        driver._on_request_failed(request)
        driver._on_frame_navigated(MagicMock())
        driver._on_frame_navigated(page.main_frame)
        assert driver.navigation_id == 0

    async def test_wait_for_load_state_defers_deadline_to_engine(self) -> None:
        driver, page = _driver()
        page.wait_for_load_state = AsyncMock()
        await driver.wait_for_load_state("networkidle")
        page.wait_for_load_state.assert_awaited_once_with("networkidle", timeout=0)
