"""Tests for conversation listing, selection, creation and deletion."""

from __future__ import annotations

import asyncio
import unittest

from assistant_chat.exceptions import GatewayError
from assistant_chat.managers import ConversationManager
from assistant_chat.models import Role
from assistant_chat.state import DisplayMode, SessionStore

from fakes import FakeGateway, make_conversation, make_message, settle


class ConversationManagerTests(unittest.IsolatedAsyncioTestCase):
    """Validate the conversation lifecycle against a fake remote store."""

    def setUp(self) -> None:
        self.alpha = make_conversation("c1", "Alpha", minutes=2)
        self.beta = make_conversation("c2", "Beta", minutes=1)
        self.gateway = FakeGateway([self.alpha, self.beta])
        self.gateway.messages["c1"] = [
            make_message("m1", "c1", Role.USER, "question"),
            make_message("m2", "c1", Role.ASSISTANT, "answer"),
        ]
        self.store = SessionStore()
        self.manager = ConversationManager(self.store, self.gateway)

    async def test_empty_remote_leaves_welcome_state(self) -> None:
        self.gateway.conversations = []
        await self.manager.list_conversations()
        self.assertEqual(self.store.conversations, [])
        self.assertIsNone(self.store.active_conversation)
        self.assertIs(self.store.display_mode, DisplayMode.WELCOME)
        self.assertNotIn("create_conversation", self.gateway.call_names())

    async def test_list_never_selects_and_is_idempotent(self) -> None:
        await self.manager.list_conversations()
        first = self.store.snapshot()
        self.assertIsNone(first.active_conversation)
        self.assertEqual([c.id for c in first.conversations], ["c1", "c2"])

        await self.manager.list_conversations()
        self.assertEqual(self.store.snapshot(), first)
        self.assertNotIn("get_messages", self.gateway.call_names())

    async def test_list_keeps_current_selection(self) -> None:
        await self.manager.list_conversations()
        await self.manager.select_conversation(self.beta)
        await self.manager.list_conversations()
        self.assertEqual(self.store.active_conversation_id, "c2")

    async def test_list_failure_leaves_conversations_unchanged(self) -> None:
        await self.manager.list_conversations()
        self.gateway.fail.add("list_conversations")
        with self.assertRaises(GatewayError):
            await self.manager.list_conversations()
        self.assertEqual([c.id for c in self.store.conversations], ["c1", "c2"])

    async def test_select_loads_transcript_through_loading_phase(self) -> None:
        await self.manager.list_conversations()
        modes: list[DisplayMode] = []
        self.store.subscribe(lambda snapshot: modes.append(snapshot.display_mode))

        applied = await self.manager.select_conversation(self.alpha)

        self.assertTrue(applied)
        self.assertIn(DisplayMode.LOADING, modes)
        self.assertIs(self.store.display_mode, DisplayMode.TRANSCRIPT)
        self.assertEqual([m.id for m in self.store.transcript], ["m1", "m2"])

    async def test_select_failure_keeps_conversation_active_and_empty(self) -> None:
        await self.manager.list_conversations()
        self.gateway.fail.add("get_messages")
        with self.assertRaises(GatewayError):
            await self.manager.select_conversation(self.alpha)
        self.assertEqual(self.store.active_conversation_id, "c1")
        self.assertEqual(self.store.transcript, [])
        self.assertIs(self.store.display_mode, DisplayMode.WELCOME)

    async def test_newer_selection_wins_over_slow_fetch(self) -> None:
        await self.manager.list_conversations()
        gate = asyncio.Event()
        self.gateway.gates[("get_messages", "c1")] = gate
        slow = asyncio.create_task(self.manager.select_conversation(self.alpha))
        await settle()

        await self.manager.select_conversation(self.beta)
        gate.set()
        self.assertFalse(await slow)

        self.assertEqual(self.store.active_conversation_id, "c2")
        self.assertEqual(self.store.transcript, [])
        self.assertIs(self.store.display_mode, DisplayMode.WELCOME)

    async def test_create_prepends_and_activates_in_welcome_mode(self) -> None:
        await self.manager.list_conversations()
        created = await self.manager.create_conversation()
        self.assertEqual(created.title, "New Conversation")
        self.assertEqual(self.store.conversations[0], created)
        self.assertEqual(self.store.active_conversation, created)
        self.assertEqual(self.store.transcript, [])
        self.assertIs(self.store.display_mode, DisplayMode.WELCOME)
        self.assertIn(("create_conversation", None, "New Conversation"), self.gateway.calls)

    async def test_create_uses_configured_default_title(self) -> None:
        manager = ConversationManager(self.store, self.gateway, default_title="Nova Conversa")
        created = await manager.create_conversation()
        self.assertEqual(created.title, "Nova Conversa")

    async def test_create_failure_mutates_nothing(self) -> None:
        await self.manager.list_conversations()
        before = self.store.snapshot()
        self.gateway.fail.add("create_conversation")
        with self.assertRaises(GatewayError):
            await self.manager.create_conversation()
        self.assertEqual(self.store.snapshot(), before)

    async def test_delete_active_with_others_remaining_falls_back_to_welcome(self) -> None:
        await self.manager.list_conversations()
        await self.manager.select_conversation(self.alpha)
        await self.manager.delete_conversation("c1")
        self.assertEqual([c.id for c in self.store.conversations], ["c2"])
        self.assertIsNone(self.store.active_conversation)
        self.assertEqual(self.store.transcript, [])
        self.assertIs(self.store.display_mode, DisplayMode.WELCOME)
        self.assertNotIn(("get_messages", "c2"), self.gateway.calls)

    async def test_delete_last_active_conversation_returns_to_initial_state(self) -> None:
        self.gateway.conversations = [self.alpha]
        await self.manager.list_conversations()
        await self.manager.select_conversation(self.alpha)
        await self.manager.delete_conversation("c1")
        snapshot = self.store.snapshot()
        self.assertEqual(snapshot.conversations, ())
        self.assertIsNone(snapshot.active_conversation)
        self.assertEqual(snapshot.transcript, ())
        self.assertIs(snapshot.display_mode, DisplayMode.WELCOME)
        self.assertNotIn("create_conversation", self.gateway.call_names())

    async def test_delete_inactive_keeps_selection(self) -> None:
        await self.manager.list_conversations()
        await self.manager.select_conversation(self.alpha)
        await self.manager.delete_conversation("c2")
        self.assertEqual(self.store.active_conversation_id, "c1")
        self.assertEqual(len(self.store.transcript), 2)

    async def test_delete_failure_keeps_conversation_listed(self) -> None:
        await self.manager.list_conversations()
        await self.manager.select_conversation(self.alpha)
        self.gateway.fail.add("delete_conversation")
        with self.assertRaises(GatewayError):
            await self.manager.delete_conversation("c1")
        self.assertEqual([c.id for c in self.store.conversations], ["c1", "c2"])
        self.assertEqual(self.store.active_conversation_id, "c1")

    async def test_delete_during_select_discards_fetch(self) -> None:
        await self.manager.list_conversations()
        gate = asyncio.Event()
        self.gateway.gates[("get_messages", "c1")] = gate
        select = asyncio.create_task(self.manager.select_conversation(self.alpha))
        await settle()

        await self.manager.delete_conversation("c1")
        gate.set()
        self.assertFalse(await select)
        self.assertIsNone(self.store.active_conversation)
        self.assertEqual(self.store.transcript, [])

    async def test_rename_is_best_effort(self) -> None:
        await self.manager.list_conversations()
        self.gateway.fail.add("rename_conversation")
        with self.assertLogs("assistant_chat.managers.conversation", level="WARNING"):
            persisted = await self.manager.rename_conversation("c2", "  Renamed  ")
        self.assertFalse(persisted)
        self.assertEqual(self.store.get_conversation("c2").title, "Renamed")

    async def test_rename_ignores_blank_titles(self) -> None:
        await self.manager.list_conversations()
        self.assertFalse(await self.manager.rename_conversation("c2", "   "))
        self.assertNotIn("rename_conversation", self.gateway.call_names())


if __name__ == "__main__":
    unittest.main()
