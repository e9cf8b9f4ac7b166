"""Native dialog handling."""

from __future__ import annotations

import inspect
from collections.abc import Callable
from typing import Any

from autowait.exceptions import DriverError
from autowait.logger import get_logger
from autowait.models import DialogKind

log = get_logger(__name__)

DialogHandler = Callable[["Dialog"], Any]


class Dialog:
    """An alert, confirm, prompt or beforeunload dialog awaiting a decision."""

    def __init__(self, kind: DialogKind | str, message: str, default_value: str = "") -> None:
        self.kind = DialogKind(kind)
        self.message = message
        self.default_value = default_value
        self.accepted: bool | None = None
        self.prompt_text: str | None = None

    @property
    def type(self) -> str:
        return self.kind.value

    @property
    def handled(self) -> bool:
        return self.accepted is not None

    async def accept(self, prompt_text: str | None = None) -> None:
        if self.handled:
            raise DriverError("Dialog is already handled")
        self.accepted = True
        if self.kind == DialogKind.PROMPT:
            self.prompt_text = prompt_text if prompt_text is not None else self.default_value

    async def dismiss(self) -> None:
        if self.handled:
            raise DriverError("Dialog is already handled")
        self.accepted = False

    def __repr__(self) -> str:
        return f"Dialog(kind={self.kind.value!r}, message={self.message!r})"


async def default_dialog_policy(dialog: Dialog) -> None:
    """Accept alerts and beforeunload, dismiss confirms and prompts."""
    if dialog.kind in (DialogKind.ALERT, DialogKind.BEFOREUNLOAD):
        await dialog.accept()
    else:
        await dialog.dismiss()


class DialogController:
    """Routes dialogs to registered handlers, falling back to a default policy.

    The default policy is registered when the controller is created; explicit
    handlers take precedence. A dialog nobody decides still gets the default
    decision, so no wait is ever left blocked behind it.
    """

    def __init__(self, default: DialogHandler = default_dialog_policy) -> None:
        self.default = default
        self._handlers: list[DialogHandler] = []

    def on(self, handler: DialogHandler) -> None:
        self._handlers.append(handler)

    def remove(self, handler: DialogHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    @property
    def handlers(self) -> list[DialogHandler]:
        return list(self._handlers)

    async def handle(self, dialog: Dialog) -> Dialog:
        try:
            for handler in list(self._handlers):
                result = handler(dialog)
                if inspect.isawaitable(result):
                    await result
                if dialog.handled:
                    break
        except Exception as exc:
            log.error(
                "dialog_handler_failed",
                kind=dialog.kind.value,
                message=dialog.message,
                error=str(exc),
            )
        if not dialog.handled:
            result = self.default(dialog)
            if inspect.isawaitable(result):
                await result
        log.info(
            "dialog_handled",
            kind=dialog.kind.value,
            message=dialog.message,
            accepted=dialog.accepted,
        )
        return dialog
