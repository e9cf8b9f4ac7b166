"""Browser collaborator interface consumed by the engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from autowait.dialogs import Dialog
    from autowait.events import EventKind
    from autowait.models import ActionKind, Rect, Request, Response, RouteDecision
    from autowait.snapshot import DocumentSnapshot


LOAD_STATES = ("load", "domcontentloaded", "networkidle")


@dataclass
class DriverHooks:
    """Callbacks through which a driver pushes browser activity into the engine."""

    emit: Callable[[EventKind, Any], None]
    intercept: Callable[[Request], Awaitable[RouteDecision]]
    dialog: Callable[[Dialog], Awaitable[None]]
    popup: Callable[[BaseDriver], Awaitable[None]]
    closed: Callable[[], None]


class BaseDriver(ABC):
    """One browsing context (a page) as seen by the engine.

    The engine only reads snapshots, measures boxes, hit-tests and
    dispatches input. Nodes are addressed by the node ids stamped into
    snapshots; a driver raises ``NodeDetachedError`` when an id no longer
    refers to a live node.
    """

    hooks: DriverHooks | None = None

    async def connect(self, hooks: DriverHooks) -> None:
        """Start delivering events, dialogs and intercepted requests to ``hooks``."""
        self.hooks = hooks

    @property
    @abstractmethod
    def url(self) -> str:
        """Current main-frame URL."""

    @property
    @abstractmethod
    def navigation_id(self) -> int:
        """Counter bumped on every main-frame navigation."""

    @property
    @abstractmethod
    def is_closed(self) -> bool:
        """True once the context has been closed."""

    @abstractmethod
    async def snapshot(self) -> DocumentSnapshot:
        """Capture the current document (frames and shadow roots included)."""

    @abstractmethod
    async def bounding_box(self, node_id: str) -> Rect | None:
        """Box of a node, or None when it is not rendered."""

    @abstractmethod
    async def hit_test(self, node_id: str) -> str | None:
        """Node id of the element hit at the centre of ``node_id``'s box."""

    @abstractmethod
    async def dispatch_input(
        self, node_id: str, action: ActionKind, payload: dict[str, Any]
    ) -> None:
        """Perform an input action. Actionability has already been checked."""

    @abstractmethod
    async def read(self, node_id: str, action: ActionKind, payload: dict[str, Any]) -> Any:
        """Read committed state from a node."""

    @abstractmethod
    async def navigate(self, url: str) -> Response | None:
        """Load ``url`` in the main frame."""

    @abstractmethod
    async def wait_for_load_state(self, state: str) -> None:
        """Return once the main frame reached ``state``: load, domcontentloaded or networkidle."""

    @abstractmethod
    async def title(self) -> str:
        """Document title."""

    @abstractmethod
    async def content(self) -> str:
        """Serialized document markup."""

    @abstractmethod
    async def set_content(self, html: str) -> None:
        """Replace the document with ``html``."""

    @abstractmethod
    async def storage_state(self) -> dict[str, Any]:
        """Cookies and local storage as an opaque blob."""

    @abstractmethod
    async def close(self) -> None:
        """Close the context. Must fire ``hooks.closed``."""

    async def enable_interception(self) -> None:
        """Route every request through ``hooks.intercept``."""

    async def start_tracing(self, *, screenshots: bool, snapshots: bool) -> None:
        """Start native tracing, when the driver has one."""

    async def stop_tracing(self, path: Path | None) -> Path | None:
        """Stop native tracing and write it to ``path``."""
        return None
