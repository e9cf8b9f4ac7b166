"""Execution tracing: a start/stop bracket that records engine activity."""

from __future__ import annotations

import json
import zipfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from autowait.dialogs import Dialog
from autowait.events import EventKind
from autowait.exceptions import DriverError
from autowait.logger import get_logger

if TYPE_CHECKING:
    from autowait.drivers import BaseDriver
    from autowait.events import EventBus
    from autowait.models import ActionRecord

log = get_logger(__name__)

_RECORDED = (
    EventKind.REQUEST,
    EventKind.RESPONSE,
    EventKind.REQUEST_FAILED,
    EventKind.NAVIGATION,
    EventKind.DIALOG,
    EventKind.POPUP,
    EventKind.CLOSE,
)


def _jsonable(payload: Any) -> Any:
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json", exclude={"body"})
    if payload is None or isinstance(payload, (str, int, float, bool)):
        return payload
    if isinstance(payload, Dialog):
        return {"kind": payload.kind.value, "message": payload.message}
    return repr(payload)


class Tracer:
    """Records events and actions between :meth:`start` and :meth:`stop`.

    The archive holds ``trace.jsonl`` (one entry per event or action) and,
    with snapshots enabled, the page markup after every action. Drivers with
    native tracing write their own archive next to it.
    """

    def __init__(
        self, bus: EventBus, driver: BaseDriver, trace_dir: Path | None = None
    ) -> None:
        self.bus = bus
        self.driver = driver
        self.trace_dir = trace_dir
        self.entries: list[dict[str, Any]] = []
        self.snapshots: list[str] = []
        self._active = False
        self._capture_snapshots = False
        self._unsubscribers: list[Any] = []

    @property
    def active(self) -> bool:
        return self._active

    async def start(
        self, *, screenshots: bool = False, snapshots: bool = True, title: str | None = None
    ) -> None:
        if self._active:
            raise DriverError("Tracing has been already started")
        await self.driver.start_tracing(screenshots=screenshots, snapshots=snapshots)
        self.entries, self.snapshots = [], []
        self._capture_snapshots = snapshots
        self._active = True
        for kind in _RECORDED:
            self._unsubscribers.append(
                self.bus.subscribe(kind, lambda payload, k=kind: self._record(k.value, payload))
            )
        self._record("trace_started", {"title": title})
        log.info("tracing_started", screenshots=screenshots, snapshots=snapshots)

    async def record_action(self, record: ActionRecord) -> None:
        if not self._active:
            return
        entry = self._record("action", record.model_dump(mode="json"))
        if self._capture_snapshots and not self.driver.is_closed:
            entry["snapshot"] = len(self.snapshots)
            self.snapshots.append(await self.driver.content())

    async def stop(self, path: str | Path | None = None) -> Path | None:
        """Stop recording and write the archive to ``path``.

        Without ``path`` the archive goes to ``trace_dir`` when one is
        configured and is discarded otherwise.
        """
        if not self._active:
            raise DriverError("Tracing is not started")
        self._record("trace_stopped", None)
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self._active = False

        if path is None and self.trace_dir is not None:
            stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S-%f")
            path = self.trace_dir / f"trace-{stamp}.zip"
        target = Path(path) if path is not None else None
        native = target.with_name(f"{target.stem}-native.zip") if target else None
        await self.driver.stop_tracing(native)
        if target is None:
            log.info("tracing_discarded", entries=len(self.entries))
            return None

        target.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(target, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            archive.writestr(
                "trace.jsonl", "".join(json.dumps(e) + "\n" for e in self.entries)
            )
            for index, html in enumerate(self.snapshots):
                archive.writestr(f"snapshots/{index:04d}.html", html)
        log.info("tracing_stopped", path=str(target), entries=len(self.entries))
        return target

    @asynccontextmanager
    async def recording(
        self, path: str | Path | None = None, **options: Any
    ) -> AsyncIterator[Tracer]:
        """``async with tracer.recording("trace.zip"):`` stops even when the body fails."""
        await self.start(**options)
        try:
            yield self
        finally:
            await self.stop(path)

    def _record(self, kind: str, payload: Any) -> dict[str, Any]:
        entry = {
            "type": kind,
            "time": datetime.now(timezone.utc).isoformat(),
            "data": _jsonable(payload),
        }
        self.entries.append(entry)
        return entry
