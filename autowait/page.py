"""Page: the public entry point wiring every engine component to one driver."""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from autowait.actionability import ActionabilityChecker
from autowait.cancellation import CancellationToken
from autowait.config import EngineConfig
from autowait.dialogs import Dialog, DialogController, DialogHandler
from autowait.drivers import LOAD_STATES, BaseDriver, DriverHooks
from autowait.events import EventBus, EventKind, EventWaitGate, Trigger
from autowait.exceptions import ActionTimeoutError, ContextClosedError, EventWaitTimeoutError
from autowait.locator import Locator, LocatorBuilder
from autowait.logger import get_logger
from autowait.models import ActionKind, ActionRecord, Request, Response, Selector
from autowait.resolver import QueryResolver
from autowait.routing import RouteHandler, RouteInterceptor, URLPattern, url_matcher
from autowait.scheduler import AutoWaitScheduler
from autowait.snapshot import Candidate
from autowait.tracing import Tracer

log = get_logger(__name__)


def _network_predicate(
    matcher: URLPattern | None,
) -> Callable[[Request | Response], bool] | None:
    """Glob or regex match on the URL; a callable receives the event itself."""
    if matcher is None:
        return None
    if callable(matcher):
        return matcher
    matches = url_matcher(matcher)
    return lambda event: matches(event.url)


class Page(LocatorBuilder):
    """One browsing context driven through the auto-waiting engine.

    Create it with :meth:`Page.connect`, which subscribes the engine to the
    driver's events. Closing the page cancels every wait still in flight.
    """

    def __init__(self, driver: BaseDriver, config: EngineConfig | None = None) -> None:
        self.driver = driver
        self.config = config or EngineConfig()
        self.default_timeout_ms: float = self.config.action_timeout_ms
        self.token = CancellationToken()
        self.events = EventBus()
        self.resolver = QueryResolver(self.config)
        self.checker = ActionabilityChecker(driver)
        self.scheduler = AutoWaitScheduler(driver, self.checker, self.config, self.token)
        self.gate = EventWaitGate(self.events, self.token)
        self.routes = RouteInterceptor()
        self.dialogs = DialogController()
        self.tracing = Tracer(self.events, driver, self.config.trace_dir)
        self.popups: list[Page] = []
        self._intercepting = False

    @classmethod
    async def connect(cls, driver: BaseDriver, config: EngineConfig | None = None) -> Page:
        page = cls(driver, config)
        await driver.connect(
            DriverHooks(
                emit=page.events.emit,
                intercept=page.routes.handle,
                dialog=page._on_dialog,
                popup=page._on_popup,
                closed=page._on_closed,
            )
        )
        log.debug("page_connected", url=driver.url)
        return page

    # --- Driver callbacks ---

    async def _on_dialog(self, dialog: Dialog) -> None:
        self.events.emit(EventKind.DIALOG, dialog)
        await self.dialogs.handle(dialog)

    async def _on_popup(self, driver: BaseDriver) -> None:
        popup = await Page.connect(driver, self.config)
        popup.default_timeout_ms = self.default_timeout_ms
        self.popups.append(popup)
        log.info("popup_opened", opener=self.url)
        self.events.emit(EventKind.POPUP, popup)

    def _on_closed(self) -> None:
        self.token.cancel("Target page has been closed")
        self.events.emit(EventKind.CLOSE, self)

    # --- LocatorBuilder ---

    def _build(self, selector: Selector) -> Locator:
        return Locator(self, selector)

    def _page(self) -> Page:
        return self

    # --- Navigation and content ---

    @property
    def url(self) -> str:
        return self.driver.url

    @property
    def is_closed(self) -> bool:
        return self.driver.is_closed

    async def goto(self, url: str) -> Response | None:
        self.token.raise_if_cancelled()
        response = await self.driver.navigate(url)
        log.info("page_navigated", url=self.url, status=response.status if response else None)
        return response

    async def title(self) -> str:
        return await self.driver.title()

    async def content(self) -> str:
        return await self.driver.content()

    async def set_content(self, html: str) -> None:
        await self.driver.set_content(html)

    def set_default_timeout(self, timeout: float) -> None:
        """Default for actions, reads and selector waits, in milliseconds."""
        self.default_timeout_ms = timeout

    # --- Engine plumbing used by locators ---

    def _timeout(self, timeout: float | None) -> float:
        return self.default_timeout_ms if timeout is None else timeout

    async def perform(
        self,
        selector: Selector,
        action: ActionKind,
        payload: dict[str, Any] | None = None,
        timeout: float | None = None,
        force: bool = False,
    ) -> Any:
        """Run an action or read through the scheduler and record it."""
        started_at = datetime.now(timezone.utc)
        start = time.monotonic()
        status, error = "failed", None
        try:
            value = await self.scheduler.run_action(
                self.resolver.compile(selector),
                str(selector),
                action,
                payload,
                self._timeout(timeout),
                force,
            )
            status = "succeeded"
            return value
        except ActionTimeoutError as exc:
            status, error = "timed_out", str(exc)
            raise
        except ContextClosedError as exc:
            status, error = "cancelled", str(exc)
            raise
        except Exception as exc:
            error = str(exc)
            raise
        finally:
            record = ActionRecord(
                action=action.value,
                selector=str(selector),
                status=status,
                started_at=started_at,
                duration_ms=(time.monotonic() - start) * 1000,
                error=error,
            )
            self.events.emit(EventKind.ACTION, record)
            await self.tracing.record_action(record)

    async def query(self, selector: Selector) -> list[Candidate]:
        """Resolve once, without waiting."""
        return await self.scheduler.query(self.resolver.compile(selector))

    async def wait_for_state(
        self, selector: Selector, state: str = "visible", timeout: float | None = None
    ) -> Candidate | None:
        return await self.scheduler.wait_for_state(
            self.resolver.compile(selector), str(selector), state, self._timeout(timeout)
        )

    # --- Selector shortcuts ---

    async def click(self, selector: str, **kwargs: Any) -> None:
        await self.locator(selector).click(**kwargs)

    async def fill(self, selector: str, value: str, **kwargs: Any) -> None:
        await self.locator(selector).fill(value, **kwargs)

    async def check(self, selector: str, **kwargs: Any) -> None:
        await self.locator(selector).check(**kwargs)

    async def text_content(self, selector: str, **kwargs: Any) -> str | None:
        return await self.locator(selector).text_content(**kwargs)

    async def inner_text(self, selector: str, **kwargs: Any) -> str:
        return await self.locator(selector).inner_text(**kwargs)

    async def input_value(self, selector: str, **kwargs: Any) -> str:
        return await self.locator(selector).input_value(**kwargs)

    async def get_attribute(self, selector: str, name: str, **kwargs: Any) -> str | None:
        return await self.locator(selector).get_attribute(name, **kwargs)

    async def select_option(self, selector: str, value: Any = None, **kwargs: Any) -> list[str]:
        return await self.locator(selector).select_option(value, **kwargs)

    async def set_input_files(self, selector: str, files: Any, **kwargs: Any) -> None:
        await self.locator(selector).set_input_files(files, **kwargs)

    # --- Waits ---

    async def wait_for_selector(
        self, selector: str, *, state: str = "visible", timeout: float | None = None
    ) -> Locator | None:
        """Wait for ``selector`` to reach ``state``; returns its locator unless waiting it away."""
        locator = self.locator(selector)
        await self.wait_for_state(locator.selector, state, timeout)
        return locator if state in ("attached", "visible") else None

    async def wait_for_load_state(self, state: str = "load", *, timeout: float | None = None) -> None:
        """Wait until the main frame reached ``state``; returns at once if it already has."""
        if state not in LOAD_STATES:
            raise ValueError(f"state must be one of {', '.join(LOAD_STATES)}, got '{state}'")
        timeout = self._timeout(timeout)
        try:
            await self.token.wait(
                self.driver.wait_for_load_state(state), timeout / 1000 if timeout else None
            )
        except asyncio.TimeoutError:
            raise EventWaitTimeoutError(f"load state '{state}'", timeout) from None
        log.debug("load_state_reached", state=state, url=self.url)

    async def wait_for_timeout(self, timeout: float) -> None:
        await self.token.sleep(timeout / 1000)

    async def wait_for_event(
        self,
        event: EventKind | str,
        predicate: Callable[[Any], bool] | None = None,
        *,
        timeout: float | None = None,
        trigger: Trigger | None = None,
    ) -> Any:
        """Wait for the next ``event``; ``trigger`` runs after the waiter is registered."""
        return await self.gate.await_event(EventKind(event), predicate, timeout, trigger)

    async def wait_for_response(
        self,
        url_or_predicate: URLPattern | None = None,
        *,
        timeout: float | None = None,
        trigger: Trigger | None = None,
    ) -> Response:
        return await self.gate.await_event(
            EventKind.RESPONSE, _network_predicate(url_or_predicate), timeout, trigger
        )

    async def wait_for_request(
        self,
        url_or_predicate: URLPattern | None = None,
        *,
        timeout: float | None = None,
        trigger: Trigger | None = None,
    ) -> Request:
        return await self.gate.await_event(
            EventKind.REQUEST, _network_predicate(url_or_predicate), timeout, trigger
        )

    async def wait_for_popup(
        self,
        predicate: Callable[[Page], bool] | None = None,
        *,
        timeout: float | None = None,
        trigger: Trigger | None = None,
    ) -> Page:
        return await self.gate.await_event(EventKind.POPUP, predicate, timeout, trigger)

    # --- Routes and dialogs ---

    async def route(
        self, pattern: URLPattern, handler: RouteHandler, *, times: int | None = None
    ) -> None:
        self.routes.add(pattern, handler, times)
        if not self._intercepting:
            await self.driver.enable_interception()
            self._intercepting = True

    async def unroute(self, pattern: URLPattern, handler: RouteHandler | None = None) -> None:
        self.routes.remove(pattern, handler)

    def on_dialog(self, handler: DialogHandler) -> None:
        self.dialogs.on(handler)

    def remove_dialog_handler(self, handler: DialogHandler) -> None:
        self.dialogs.remove(handler)

    # --- Storage and lifecycle ---

    async def storage_state(self, path: str | Path | None = None) -> dict[str, Any]:
        """Cookies and local storage, passed through unmodified (and saved to ``path``)."""
        state = await self.driver.storage_state()
        if path is not None:
            target = Path(path)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(json.dumps(state, indent=2))
            log.info("storage_state_saved", path=str(target))
        return state

    async def close(self) -> None:
        if self.driver.is_closed:
            self.token.cancel("Target page has been closed")
            return
        await self.driver.close()
        self.token.cancel("Target page has been closed")
        log.info("page_closed", url=self.url)

    async def __aenter__(self) -> Page:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"<Page url='{self.url}'>"
