"""Auto-Wait Scheduler: poll resolver + checker until actionable, then act."""

from __future__ import annotations

import math
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from autowait.actionability import ActionabilityChecker, StabilityTracker, conditions_for
from autowait.exceptions import (
    ActionTimeoutError,
    ContextClosedError,
    NavigationInterruptedError,
    NodeDetachedError,
)
from autowait.logger import get_logger
from autowait.models import READ_ACTIONS, ActionKind, Condition

if TYPE_CHECKING:
    from autowait.cancellation import CancellationToken
    from autowait.config import EngineConfig
    from autowait.drivers import BaseDriver
    from autowait.resolver import Evaluation
    from autowait.snapshot import Candidate, DocumentSnapshot

log = get_logger(__name__)

_WAIT_STATES = ("attached", "detached", "visible", "hidden")


class WaitState(str, Enum):
    """Lifecycle of one invoked action."""

    IDLE = "idle"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass
class Probe:
    """Outcome of one poll tick."""

    done: bool
    value: Any = None
    unmet: frozenset[Condition] = frozenset()


@dataclass
class ElementWait:
    """An element wait in flight: what it waits for and where it stands."""

    description: str
    timeout_ms: float
    poll_interval_ms: float
    state: WaitState = WaitState.IDLE
    attempts: int = 0
    started_at: float = field(default_factory=time.monotonic)
    last_unmet: frozenset[Condition] = frozenset()

    @property
    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.started_at) * 1000

    @property
    def deadline(self) -> float:
        # A timeout of 0 disables the deadline.
        if not self.timeout_ms:
            return math.inf
        return self.started_at + self.timeout_ms / 1000


class AutoWaitScheduler:
    """Drives element waits on a fixed poll cadence.

    Every tick takes a fresh snapshot and re-resolves from scratch; nothing
    from a previous tick is trusted except the box history used for the
    stability check. The deadline is checked after each attempt, so a wait
    never fails before its timeout has fully elapsed.
    """

    def __init__(
        self,
        driver: BaseDriver,
        checker: ActionabilityChecker,
        config: EngineConfig,
        token: CancellationToken,
    ) -> None:
        self.driver = driver
        self.checker = checker
        self.config = config
        self.token = token

    async def poll(
        self,
        wait: ElementWait,
        probe: Callable[[DocumentSnapshot], Awaitable[Probe]],
        on_timeout: Callable[[ElementWait], Exception],
    ) -> Any:
        """Run ``probe`` against fresh snapshots until it reports done."""
        wait.state = WaitState.POLLING
        wait.started_at = time.monotonic()
        try:
            while True:
                self.token.raise_if_cancelled()
                snapshot = await self.driver.snapshot()
                wait.attempts += 1
                result = await probe(snapshot)
                if result.done:
                    wait.state = WaitState.SUCCEEDED
                    return result.value
                wait.last_unmet = result.unmet
                now = time.monotonic()
                if now >= wait.deadline:
                    wait.state = WaitState.TIMED_OUT
                    raise on_timeout(wait)
                await self.token.sleep(
                    min(wait.poll_interval_ms / 1000, wait.deadline - now)
                )
        except ContextClosedError:
            wait.state = WaitState.CANCELLED
            log.info("wait_cancelled", target=wait.description, elapsed_ms=round(wait.elapsed_ms))
            raise

    def new_wait(self, description: str, timeout_ms: float | None) -> ElementWait:
        return ElementWait(
            description=description,
            timeout_ms=self.config.action_timeout_ms if timeout_ms is None else timeout_ms,
            poll_interval_ms=self.config.poll_interval_ms,
        )

    async def run_action(
        self,
        evaluate: Evaluation,
        selector: str,
        action: ActionKind,
        payload: dict[str, Any] | None = None,
        timeout_ms: float | None = None,
        force: bool = False,
    ) -> Any:
        """Wait for the single match of ``evaluate`` to be actionable, then act or read."""
        payload = payload or {}
        conditions = conditions_for(action, force)
        tracker = StabilityTracker()
        wait = self.new_wait(selector, timeout_ms)
        is_read = action in READ_ACTIONS

        async def probe(snapshot: DocumentSnapshot) -> Probe:
            candidates = evaluate(snapshot)
            if not candidates:
                return Probe(False, unmet=frozenset({Condition.ATTACHED}))
            if len(candidates) > 1:
                return Probe(False, unmet=frozenset({Condition.UNIQUE}))
            target = candidates[0]
            try:
                check = await self.checker.check(target, conditions, tracker)
            except NodeDetachedError:
                return Probe(False, unmet=frozenset({Condition.ATTACHED}))
            if not check.satisfied:
                return Probe(False, unmet=check.unmet)
            if self.driver.navigation_id != snapshot.navigation_id:
                raise NavigationInterruptedError(action.value, selector)
            try:
                if is_read:
                    value = await self.driver.read(target.node_id, action, payload)
                else:
                    value = await self.driver.dispatch_input(target.node_id, action, payload)
            except NodeDetachedError:
                return Probe(False, unmet=frozenset({Condition.ATTACHED}))
            return Probe(True, value)

        def timed_out(w: ElementWait) -> ActionTimeoutError:
            log.info(
                "action_timed_out",
                action=action.value,
                selector=selector,
                elapsed_ms=round(w.elapsed_ms),
                unmet=sorted(str(c) for c in w.last_unmet),
            )
            return ActionTimeoutError(
                action.value, selector, w.timeout_ms, w.elapsed_ms, w.last_unmet
            )

        value = await self.poll(wait, probe, timed_out)
        log.debug(
            "action_succeeded",
            action=action.value,
            selector=selector,
            elapsed_ms=round(wait.elapsed_ms),
            attempts=wait.attempts,
        )
        return value

    async def wait_for_state(
        self,
        evaluate: Evaluation,
        selector: str,
        state: str = "visible",
        timeout_ms: float | None = None,
    ) -> Candidate | None:
        """Wait until the selector is attached, detached, visible or hidden."""
        if state not in _WAIT_STATES:
            raise ValueError(f"state must be one of {', '.join(_WAIT_STATES)}, got '{state}'")
        wait = self.new_wait(selector, timeout_ms)

        async def probe(snapshot: DocumentSnapshot) -> Probe:
            candidates = evaluate(snapshot)
            if state == "attached":
                return Probe(bool(candidates), candidates[0] if candidates else None,
                             frozenset({Condition.ATTACHED}))
            if state == "detached":
                return Probe(not candidates)
            visible = [c for c in candidates if await self.checker.is_visible(c)]
            if state == "visible":
                return Probe(bool(visible), visible[0] if visible else None,
                             frozenset({Condition.VISIBLE}))
            return Probe(not visible)

        def timed_out(w: ElementWait) -> ActionTimeoutError:
            return ActionTimeoutError(
                f"wait_for({state})", selector, w.timeout_ms, w.elapsed_ms, w.last_unmet
            )

        return await self.poll(wait, probe, timed_out)

    async def query(self, evaluate: Evaluation) -> list[Candidate]:
        """Resolve once against the current document, without waiting."""
        self.token.raise_if_cancelled()
        return evaluate(await self.driver.snapshot())
