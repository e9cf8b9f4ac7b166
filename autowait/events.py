"""Event bus and the Event-Wait Gate."""

from __future__ import annotations

import asyncio
import inspect
import time
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from autowait.cancellation import CancellationToken
from autowait.exceptions import EventWaitTimeoutError
from autowait.logger import get_logger

log = get_logger(__name__)

Listener = Callable[[Any], None]
Predicate = Callable[[Any], bool]
Trigger = Callable[[], Any]


class EventKind(str, Enum):
    """Events a browsing context publishes."""

    REQUEST = "request"
    RESPONSE = "response"
    REQUEST_FAILED = "requestfailed"
    NAVIGATION = "navigation"
    POPUP = "popup"
    DIALOG = "dialog"
    ACTION = "action"
    CLOSE = "close"


class EventBus:
    """Synchronous fan-out of driver events to subscribers."""

    def __init__(self) -> None:
        self._listeners: dict[EventKind, list[Listener]] = defaultdict(list)

    def subscribe(self, kind: EventKind, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a function that unregisters it."""
        self._listeners[kind].append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners[kind]:
                self._listeners[kind].remove(listener)

        return unsubscribe

    def emit(self, kind: EventKind, payload: Any = None) -> None:
        for listener in list(self._listeners[kind]):
            try:
                listener(payload)
            except Exception as exc:
                log.warning("event_listener_failed", event_kind=kind.value, error=str(exc))

    def listener_count(self, kind: EventKind) -> int:
        return len(self._listeners[kind])


@dataclass
class EventWait:
    """One pending event wait: what it waits for and for how long."""

    kind: EventKind
    predicate: Predicate | None
    timeout_ms: float | None
    registered_at: float = field(default_factory=time.monotonic)

    def remaining(self) -> float | None:
        """Seconds left before the deadline, None when unbounded."""
        if self.timeout_ms is None:
            return None
        elapsed = time.monotonic() - self.registered_at
        return max(self.timeout_ms / 1000 - elapsed, 0.0)


class EventWaitGate:
    """Correlates a triggering action with a later event.

    The waiter is registered before the trigger runs, so an event fired by
    the trigger (however quickly) is never missed. Gate waits share nothing
    with element waits; both can be in flight at once.
    """

    def __init__(self, bus: EventBus, token: CancellationToken) -> None:
        self.bus = bus
        self.token = token

    async def await_event(
        self,
        kind: EventKind,
        predicate: Predicate | None = None,
        timeout_ms: float | None = None,
        trigger: Trigger | None = None,
    ) -> Any:
        """Wait for the first ``kind`` event satisfying ``predicate``.

        ``timeout_ms`` of None (or 0) waits without a deadline; closing the
        context still cancels the wait. The deadline starts at registration.
        """
        self.token.raise_if_cancelled()
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()
        wait = EventWait(kind, predicate, timeout_ms or None)

        def on_event(payload: Any) -> None:
            if future.done():
                return
            try:
                matched = predicate is None or predicate(payload)
            except Exception as exc:
                future.set_exception(exc)
                return
            if matched:
                future.set_result(payload)

        unsubscribe = self.bus.subscribe(kind, on_event)
        log.debug("event_wait_registered", event_kind=kind.value, timeout_ms=wait.timeout_ms)
        try:
            if trigger is not None:
                result = trigger()
                if inspect.isawaitable(result):
                    await result
            try:
                payload = await self.token.wait(future, wait.remaining())
            except asyncio.TimeoutError:
                log.info("event_wait_timed_out", event_kind=kind.value, timeout_ms=timeout_ms)
                raise EventWaitTimeoutError(kind.value, timeout_ms or 0) from None
            log.debug("event_wait_matched", event_kind=kind.value)
            return payload
        finally:
            unsubscribe()
            if not future.done():
                future.cancel()
