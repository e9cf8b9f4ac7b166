"""Tests for dialog handling."""

import pytest

from autowait.dialogs import Dialog, DialogController, default_dialog_policy
from autowait.exceptions import DriverError
from autowait.models import DialogKind


class TestDialog:
    async def test_prompt_accept_uses_default_value(self) -> None:
        dialog = Dialog("prompt", "Name?", default_value="guest")
        await dialog.accept()
        assert dialog.prompt_text == "guest"
        assert dialog.type == "prompt"

    async def test_second_decision_raises(self) -> None:
        dialog = Dialog(DialogKind.CONFIRM, "Sure?")
        await dialog.dismiss()
        with pytest.raises(DriverError, match="already handled"):
            await dialog.accept()

    async def test_unknown_kind_rejected(self) -> None:
        with pytest.raises(ValueError):
            Dialog("toast", "hi")


class TestDefaultPolicy:
    @pytest.mark.parametrize(
        "kind, accepted",
        [("alert", True), ("beforeunload", True), ("confirm", False), ("prompt", False)],
    )
    async def test_default_decisions(self, kind: str, accepted: bool) -> None:
        dialog = Dialog(kind, "message")
        await default_dialog_policy(dialog)
        assert dialog.accepted is accepted


class TestDialogController:
    async def test_handler_decides(self) -> None:
        controller = DialogController()

        async def accept_all(dialog: Dialog) -> None:
            await dialog.accept("Ada")

        controller.on(accept_all)
        dialog = await controller.handle(Dialog("prompt", "Name?"))
        assert dialog.accepted
        assert dialog.prompt_text == "Ada"

    async def test_undecided_dialog_gets_default_policy(self) -> None:
        controller = DialogController()
        seen: list[str] = []
        controller.on(lambda dialog: seen.append(dialog.message))
        dialog = await controller.handle(Dialog("confirm", "Delete item?"))
        assert seen == ["Delete item?"]
        assert dialog.accepted is False

    async def test_failing_handler_still_gets_default_policy(self) -> None:
        controller = DialogController()

        def broken(dialog: Dialog) -> None:
            raise RuntimeError("handler bug")

        controller.on(broken)
        dialog = await controller.handle(Dialog("confirm", "x"))
        assert dialog.handled
        assert dialog.accepted is False

    async def test_handler_failing_after_deciding_keeps_decision(self) -> None:
        controller = DialogController()

        async def accept_then_fail(dialog: Dialog) -> None:
            await dialog.accept()
            raise RuntimeError("late failure")

        controller.on(accept_then_fail)
        dialog = await controller.handle(Dialog("confirm", "Proceed?"))
        assert dialog.accepted

    async def test_first_deciding_handler_wins(self) -> None:
        controller = DialogController()
        later = []
        controller.on(lambda dialog: dialog.accept())
        controller.on(lambda dialog: later.append(dialog))
        dialog = await controller.handle(Dialog("confirm", "Proceed?"))
        assert dialog.accepted
        assert later == []

    async def test_removed_handler_is_not_called(self) -> None:
        controller = DialogController()

        def handler(dialog):
            return dialog.accept()

        controller.on(handler)
        controller.remove(handler)
        controller.remove(handler)
        assert controller.handlers == []
        dialog = await controller.handle(Dialog("confirm", "x"))
        assert dialog.accepted is False


class TestPageDialogs:
    async def test_confirm_dismissed_by_default(self, make_page) -> None:
        page = await make_page("<p>hi</p>")
        assert await page.driver.open_dialog("confirm", "Leave?") is False
        assert await page.driver.open_dialog("alert", "Saved") is None

    async def test_registered_handler_answers_prompt(self, make_page) -> None:
        page = await make_page("<p>hi</p>")
        page.on_dialog(lambda dialog: dialog.accept("42"))
        assert await page.driver.open_dialog("prompt", "Quantity?", "1") == "42"

    async def test_dialog_event_reaches_waiters(self, make_page) -> None:
        page = await make_page("<button id='del'>Delete</button>")
        page.driver.on("#del", "click", lambda e: e.driver.open_dialog("confirm", "Delete item?"))
        dialog = await page.wait_for_event(
            "dialog", trigger=lambda: page.locator("#del").click(), timeout=1000
        )
        assert dialog.message == "Delete item?"
        assert dialog.accepted is False
