"""Actionability checks run on every poll tick before an action dispatches."""

from __future__ import annotations

from typing import TYPE_CHECKING

from autowait import aria
from autowait.exceptions import NodeDetachedError
from autowait.models import ActionKind, CheckResult, Condition, Rect

if TYPE_CHECKING:
    from autowait.drivers import BaseDriver
    from autowait.snapshot import Candidate

_POINTER = frozenset(
    {
        Condition.ATTACHED,
        Condition.VISIBLE,
        Condition.STABLE,
        Condition.RECEIVES_EVENTS,
        Condition.ENABLED,
    }
)
_ATTACHED = frozenset({Condition.ATTACHED})

ACTION_CONDITIONS: dict[ActionKind, frozenset[Condition]] = {
    ActionKind.CLICK: _POINTER,
    ActionKind.DBLCLICK: _POINTER,
    ActionKind.TAP: _POINTER,
    ActionKind.CHECK: _POINTER,
    ActionKind.UNCHECK: _POINTER,
    ActionKind.HOVER: _POINTER - {Condition.ENABLED},
    ActionKind.FILL: _POINTER | {Condition.EDITABLE},
    ActionKind.CLEAR: _POINTER | {Condition.EDITABLE},
    ActionKind.TYPE: _POINTER | {Condition.EDITABLE},
    ActionKind.SELECT_OPTION: frozenset(
        {Condition.ATTACHED, Condition.VISIBLE, Condition.ENABLED}
    ),
    ActionKind.SCROLL_INTO_VIEW: frozenset(
        {Condition.ATTACHED, Condition.VISIBLE, Condition.STABLE}
    ),
    ActionKind.FOCUS: _ATTACHED,
    ActionKind.PRESS: _ATTACHED,
    ActionKind.SET_INPUT_FILES: _ATTACHED,
}


def conditions_for(action: ActionKind, force: bool = False) -> frozenset[Condition]:
    """Preconditions for ``action``. Reads and forced actions only need the node."""
    if force:
        return _ATTACHED
    return ACTION_CONDITIONS.get(action, _ATTACHED)


class StabilityTracker:
    """Remembers the last box seen per node across poll ticks of one wait."""

    def __init__(self) -> None:
        self._boxes: dict[str, Rect] = {}

    def observe(self, node_id: str, box: Rect) -> bool:
        """Record ``box``; stable when it equals the box of the previous tick."""
        previous = self._boxes.get(node_id)
        self._boxes[node_id] = box
        return previous is not None and previous == box


class ActionabilityChecker:
    """Evaluates the precondition set of an action against one candidate."""

    def __init__(self, driver: BaseDriver) -> None:
        self.driver = driver

    async def check(
        self,
        candidate: Candidate,
        conditions: frozenset[Condition],
        tracker: StabilityTracker | None = None,
    ) -> CheckResult:
        node_id = candidate.node_id
        if candidate.element is None or node_id is None:
            return CheckResult(satisfied=False, unmet=frozenset({Condition.ATTACHED}))

        doc, el = candidate.document, candidate.element
        unmet: set[Condition] = set()
        if Condition.ENABLED in conditions and aria.is_disabled(doc, el):
            unmet.add(Condition.ENABLED)
        if Condition.EDITABLE in conditions and not aria.is_editable(doc, el):
            unmet.add(Condition.EDITABLE)

        box: Rect | None = None
        needs_box = conditions & {Condition.VISIBLE, Condition.STABLE, Condition.RECEIVES_EVENTS}
        if needs_box:
            box = await self.driver.bounding_box(node_id)
            if box is None or box.is_empty:
                unmet.add(Condition.VISIBLE)
            else:
                if Condition.STABLE in conditions:
                    tracker = tracker or StabilityTracker()
                    if not tracker.observe(node_id, box):
                        unmet.add(Condition.STABLE)
                if Condition.RECEIVES_EVENTS in conditions and not unmet:
                    if not await self._receives_events(candidate):
                        unmet.add(Condition.RECEIVES_EVENTS)

        return CheckResult(satisfied=not unmet, unmet=frozenset(unmet), box=box)

    async def is_visible(self, candidate: Candidate) -> bool:
        if candidate.node_id is None:
            return False
        try:
            box = await self.driver.bounding_box(candidate.node_id)
        except NodeDetachedError:
            return False
        return box is not None and not box.is_empty

    async def _receives_events(self, candidate: Candidate) -> bool:
        hit = await self.driver.hit_test(candidate.node_id)
        if hit is None:
            return False
        if hit == candidate.node_id:
            return True
        hit_el = candidate.document.find(hit)
        return hit_el is not None and candidate.document.contains(candidate.element, hit_el)
