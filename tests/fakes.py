"""In-memory gateway double and record builders shared by the session tests."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

from assistant_chat.exceptions import GatewayError
from assistant_chat.models import Conversation, Message, Role, SendResult

BASE_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


def at(minutes: int = 0) -> datetime:
    return BASE_TIME + timedelta(minutes=minutes)


def make_conversation(
    conversation_id: str, title: str = "New Conversation", minutes: int = 0
) -> Conversation:
    return Conversation(
        id=conversation_id, title=title, created_at=at(minutes), updated_at=at(minutes)
    )


def make_message(
    message_id: str,
    conversation_id: str,
    role: Role = Role.USER,
    content: str = "hello",
    minutes: int = 0,
) -> Message:
    return Message(
        id=message_id,
        conversation_id=conversation_id,
        role=role,
        content=content,
        created_at=at(minutes),
    )


async def settle(rounds: int = 5) -> None:
    """Let scheduled tasks run until they block."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeGateway:
    """Remote store double with per-operation failure switches and gates.

    ``gates`` maps an operation name, or an ``(operation, conversation_id)``
    pair, to an event the call waits on before completing.
    """

    def __init__(self, conversations: list[Conversation] | None = None) -> None:
        self.conversations: list[Conversation] = list(conversations or [])
        self.messages: dict[str, list[Message]] = {}
        self.fail: set[str] = set()
        self.gates: dict[object, asyncio.Event] = {}
        self.calls: list[tuple[object, ...]] = []
        self._counter = 0

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}{self._counter}"

    async def _enter(self, operation: str, key: str | None = None, *args: object) -> None:
        self.calls.append((operation, key, *args))
        gate = self.gates.get((operation, key)) or self.gates.get(operation)
        if gate is not None:
            await gate.wait()
        if operation in self.fail:
            raise GatewayError(f"{operation} failed", operation)

    def call_names(self) -> list[object]:
        return [call[0] for call in self.calls]

    async def list_conversations(self) -> list[Conversation]:
        await self._enter("list_conversations")
        return list(self.conversations)

    async def create_conversation(self, title: str) -> Conversation:
        await self._enter("create_conversation", None, title)
        conversation = make_conversation(self._next_id("n"), title=title)
        self.conversations.insert(0, conversation)
        return conversation

    async def delete_conversation(self, conversation_id: str) -> None:
        await self._enter("delete_conversation", conversation_id)
        self.conversations = [c for c in self.conversations if c.id != conversation_id]
        self.messages.pop(conversation_id, None)

    async def get_messages(self, conversation_id: str) -> list[Message]:
        await self._enter("get_messages", conversation_id)
        return list(self.messages.get(conversation_id, []))

    async def send_message(self, conversation_id: str, content: str) -> SendResult:
        await self._enter("send_message", conversation_id, content)
        user = make_message(self._next_id("u"), conversation_id, Role.USER, content)
        reply = make_message(
            self._next_id("a"), conversation_id, Role.ASSISTANT, f"echo: {content}"
        )
        self.messages.setdefault(conversation_id, []).extend([user, reply])
        return SendResult(user_message=user, assistant_message=reply)

    async def rename_conversation(self, conversation_id: str, title: str) -> None:
        await self._enter("rename_conversation", conversation_id, title)
        self.conversations = [
            c.with_title(title) if c.id == conversation_id else c
            for c in self.conversations
        ]
