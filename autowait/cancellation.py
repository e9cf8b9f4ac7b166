"""Cancellation shared by every wait bound to one browsing context."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import Any, TypeVar

from autowait.exceptions import ContextClosedError

T = TypeVar("T")


class CancellationToken:
    """Cancelled once, when the owning context closes.

    Every suspension point in the engine (poll sleeps, event waits) goes
    through the token, so closing a page wakes all of them with
    ``ContextClosedError`` instead of leaving them to hang.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason = ""

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "Browsing context closed") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ContextClosedError(self.reason)

    async def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds`` unless cancelled first."""
        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=max(seconds, 0))
        except asyncio.TimeoutError:
            return
        raise ContextClosedError(self.reason)

    async def wait(self, awaitable: Awaitable[T], timeout: float | None = None) -> T:
        """Await ``awaitable`` racing cancellation.

        Raises ``asyncio.TimeoutError`` when ``timeout`` (seconds) elapses first
        and ``ContextClosedError`` when the token is cancelled first.
        """
        self.raise_if_cancelled()
        target: asyncio.Future[Any] = asyncio.ensure_future(awaitable)
        stopper = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {target, stopper},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if target in done:
                return target.result()
            if stopper in done:
                raise ContextClosedError(self.reason)
            raise asyncio.TimeoutError()
        finally:
            stopper.cancel()
            if not target.done():
                target.cancel()
