"""autowait exception hierarchy."""

from __future__ import annotations

from collections.abc import Iterable


class AutoWaitError(Exception):
    """Base exception for all autowait errors."""


class SelectorSyntaxError(AutoWaitError, ValueError):
    """Raised when selector text cannot be parsed."""

    def __init__(self, selector: str, detail: str) -> None:
        self.selector = selector
        self.detail = detail
        super().__init__(f"Malformed selector '{selector}': {detail}")


class ActionTimeoutError(AutoWaitError, TimeoutError):
    """Raised when an action's target never became actionable in time."""

    def __init__(
        self,
        action: str,
        selector: str,
        timeout_ms: float,
        elapsed_ms: float,
        unmet: Iterable[str] = (),
        detail: str = "",
    ) -> None:
        self.action = action
        self.selector = selector
        self.timeout_ms = timeout_ms
        self.elapsed_ms = elapsed_ms
        self.unmet = sorted(str(c) for c in unmet)
        self.detail = detail
        msg = (
            f"{action} on '{selector}' timed out after {elapsed_ms:.0f}ms "
            f"(timeout {timeout_ms:.0f}ms)"
        )
        if self.unmet:
            msg += f"; unmet: {', '.join(self.unmet)}"
        if detail:
            msg += f" ({detail})"
        super().__init__(msg)


class EventWaitTimeoutError(AutoWaitError, TimeoutError):
    """Raised when no event satisfied the predicate before the timeout."""

    def __init__(self, event: str, timeout_ms: float) -> None:
        self.event = event
        self.timeout_ms = timeout_ms
        super().__init__(f"Timed out after {timeout_ms:.0f}ms waiting for {event}")


class NavigationInterruptedError(AutoWaitError):
    """Raised when the page navigated away while an action was in flight."""

    def __init__(self, action: str, selector: str) -> None:
        self.action = action
        self.selector = selector
        super().__init__(
            f"{action} on '{selector}' abandoned: page navigated away"
        )


class ContextClosedError(AutoWaitError):
    """Raised for every in-flight wait when its browsing context closes."""

    def __init__(self, detail: str = "Browsing context closed") -> None:
        self.detail = detail
        super().__init__(detail)


class ExpectationError(AutoWaitError, AssertionError):
    """Raised when a retrying ``expect`` check never passes."""

    def __init__(self, assertion: str, target: str, detail: str) -> None:
        self.assertion = assertion
        self.target = target
        self.detail = detail
        super().__init__(f"expect({target}).{assertion} failed: {detail}")


class NodeDetachedError(AutoWaitError):
    """Raised by drivers when a node disappeared before it could be used."""

    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(f"Node {node_id} is not attached to the document")


class DriverError(AutoWaitError):
    """Raised when the underlying driver rejects an operation."""


class BrowserError(AutoWaitError):
    """Raised on browser lifecycle errors."""


class APIResponseError(AutoWaitError):
    """Raised when ``fail_on_status_code`` is set and the response is not ok."""

    def __init__(self, url: str, status: int, detail: str = "") -> None:
        self.url = url
        self.status = status
        msg = f"{status} response from {url}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)
