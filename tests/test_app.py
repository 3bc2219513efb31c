"""Tests for the Textual shell: bindings, timestamps and a runtime pass."""

from __future__ import annotations

import asyncio
from copy import deepcopy
from datetime import UTC, datetime, timedelta
import unittest

from textual.widgets import Button, Input, OptionList, Static

from assistant_chat.app import AssistantChatApp, format_timestamp
from assistant_chat.config import DEFAULT_CONFIG
from assistant_chat.controller import SelectConversation, SessionController, SubmitMessage
from assistant_chat.models import Role
from assistant_chat.screens import ConfirmScreen

from fakes import FakeGateway, make_conversation, make_message

NOW = datetime(2026, 3, 12, 15, 30, tzinfo=UTC)


class FormatTimestampTests(unittest.TestCase):
    """Validate relative sidebar timestamps."""

    def test_same_day_shows_clock_time(self) -> None:
        self.assertEqual(format_timestamp(NOW - timedelta(hours=2), NOW), "13:30")

    def test_previous_day(self) -> None:
        self.assertEqual(format_timestamp(NOW - timedelta(hours=30), NOW), "Yesterday")

    def test_within_week_shows_weekday(self) -> None:
        moment = NOW - timedelta(days=4)
        self.assertEqual(format_timestamp(moment, NOW), moment.strftime("%A"))

    def test_older_shows_day_and_month(self) -> None:
        self.assertEqual(format_timestamp(NOW - timedelta(days=30), NOW), "10/02")

    def test_naive_values_are_treated_as_utc(self) -> None:
        naive = datetime(2026, 3, 12, 9, 5)
        self.assertEqual(format_timestamp(naive, NOW), "09:05")


class AppBindingTests(unittest.TestCase):
    """Validate binding derivation from config."""

    def test_binding_specs_created_from_keybinds(self) -> None:
        bindings = AssistantChatApp._binding_specs_from_config(DEFAULT_CONFIG)
        self.assertEqual(
            [binding.action for binding in bindings],
            list(AssistantChatApp.DEFAULT_ACTION_DESCRIPTIONS),
        )
        self.assertEqual(bindings[0].key, "ctrl+n")

    def test_blank_keybind_is_not_registered(self) -> None:
        config = {
            **DEFAULT_CONFIG,
            "keybinds": {**DEFAULT_CONFIG["keybinds"], "refresh_conversations": " "},
        }
        actions = {b.action for b in AssistantChatApp._binding_specs_from_config(config)}
        self.assertNotIn("refresh_conversations", actions)
        self.assertIn("new_conversation", actions)


class AppRuntimeTests(unittest.IsolatedAsyncioTestCase):
    """Drive the real app against an in-memory gateway."""

    def _build_app(self) -> AssistantChatApp:
        self.gateway = FakeGateway(
            [make_conversation("c1", "Alpha"), make_conversation("c2", "Beta")]
        )
        self.gateway.messages["c1"] = [
            make_message("m1", "c1", Role.USER, "question"),
            make_message("m2", "c1", Role.ASSISTANT, "answer"),
        ]
        controller = SessionController(self.gateway)
        return AssistantChatApp(controller=controller, config=deepcopy(DEFAULT_CONFIG))

    async def test_startup_lists_conversations_without_selecting(self) -> None:
        app = self._build_app()
        async with app.run_test() as pilot:
            await app.workers.wait_for_complete()
            await pilot.pause()
            self.assertEqual(app.query_one("#conversation_list", OptionList).option_count, 2)
            self.assertIsNone(app.store.active_conversation)
            self.assertTrue(app.query_one("#welcome", Static).display)
            self.assertFalse(app.query_one("#transcript").display)

    async def test_select_and_send_through_input(self) -> None:
        app = self._build_app()
        async with app.run_test() as pilot:
            await app.workers.wait_for_complete()
            await app.controller.dispatch(SelectConversation("c1"))
            await pilot.pause()
            self.assertTrue(app.query_one("#transcript").display)
            self.assertFalse(app.query_one("#welcome", Static).display)

            input_widget = app.query_one("#message_input", Input)
            input_widget.focus()
            input_widget.value = "follow up"
            await pilot.press("enter")
            await pilot.pause()
            await app.workers.wait_for_complete()
            await pilot.pause()

            self.assertEqual(input_widget.value, "")
            self.assertEqual(
                [m.content for m in app.store.transcript][-2:],
                ["follow up", "echo: follow up"],
            )
            self.assertFalse(input_widget.disabled)

    async def test_delete_requires_confirmation(self) -> None:
        app = self._build_app()
        async with app.run_test() as pilot:
            await app.workers.wait_for_complete()
            await app.controller.dispatch(SelectConversation("c1"))
            await pilot.pause()

            app.action_delete_conversation()
            await pilot.pause()
            self.assertIsInstance(app.screen, ConfirmScreen)
            app.screen.query_one("#confirm-ok", Button).press()
            await pilot.pause()
            await app.workers.wait_for_complete()
            await pilot.pause()

            self.assertIn(("delete_conversation", "c1"), self.gateway.calls)
            self.assertEqual([c.id for c in app.store.conversations], ["c2"])
            self.assertIsNone(app.store.active_conversation)

    async def test_cancelled_delete_keeps_conversation(self) -> None:
        app = self._build_app()
        async with app.run_test() as pilot:
            await app.workers.wait_for_complete()
            await app.controller.dispatch(SelectConversation("c1"))
            await pilot.pause()

            app.action_delete_conversation()
            await pilot.pause()
            app.screen.query_one("#confirm-cancel", Button).press()
            await pilot.pause()

            self.assertNotIn("delete_conversation", self.gateway.call_names())
            self.assertEqual(app.store.active_conversation_id, "c1")

    async def test_delete_targets_highlighted_conversation(self) -> None:
        app = self._build_app()
        async with app.run_test() as pilot:
            await app.workers.wait_for_complete()
            await app.controller.dispatch(SelectConversation("c1"))
            await pilot.pause()

            app.query_one("#conversation_list", OptionList).highlighted = 1
            app.action_delete_conversation()
            await pilot.pause()
            app.screen.query_one("#confirm-ok", Button).press()
            await pilot.pause()
            await app.workers.wait_for_complete()
            await pilot.pause()

            self.assertIn(("delete_conversation", "c2"), self.gateway.calls)
            self.assertNotIn(("delete_conversation", "c1"), self.gateway.calls)
            self.assertEqual([c.id for c in app.store.conversations], ["c1"])
            self.assertEqual(app.store.active_conversation_id, "c1")

    async def test_rejected_send_restores_typed_text(self) -> None:
        app = self._build_app()
        async with app.run_test() as pilot:
            await app.workers.wait_for_complete()
            gate = asyncio.Event()
            self.gateway.gates["create_conversation"] = gate
            pending = asyncio.create_task(app.controller.dispatch(SubmitMessage("first")))
            await pilot.pause()

            input_widget = app.query_one("#message_input", Input)
            input_widget.focus()
            input_widget.value = "second"
            await pilot.press("enter")
            await pilot.pause()
            await app.workers.wait_for_complete()
            await pilot.pause()

            self.assertEqual(input_widget.value, "second")

            gate.set()
            await pending
            self.assertEqual(
                [m.content for m in app.store.transcript], ["first", "echo: first"]
            )


if __name__ == "__main__":
    unittest.main()
