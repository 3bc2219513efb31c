"""Session controller: the single entry point the presentation layer talks to.

User actions arrive as commands; ``dispatch`` routes each one to the
conversation manager or the send pipeline, which mutate the store.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any

from .gateway import ConversationGateway, HttpConversationGateway
from .managers import ConversationManager, MessageSendPipeline, SendOutcome
from .models import Conversation
from .state import SessionStore

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadConversations:
    pass


@dataclass(frozen=True)
class SelectConversation:
    conversation_id: str


@dataclass(frozen=True)
class NewConversation:
    pass


@dataclass(frozen=True)
class DeleteConversation:
    conversation_id: str


@dataclass(frozen=True)
class RenameConversation:
    conversation_id: str
    title: str


@dataclass(frozen=True)
class SubmitMessage:
    content: str


SessionCommand = (
    LoadConversations
    | SelectConversation
    | NewConversation
    | DeleteConversation
    | RenameConversation
    | SubmitMessage
)


class SessionController:
    """Owns the session store and the managers that keep it in sync."""

    def __init__(
        self,
        gateway: ConversationGateway,
        store: SessionStore | None = None,
        default_title: str = "New Conversation",
        title_max_words: int = 5,
    ) -> None:
        self.gateway = gateway
        self.store = store or SessionStore()
        self.conversations = ConversationManager(
            self.store, gateway, default_title=default_title
        )
        self.messages = MessageSendPipeline(
            self.store, gateway, self.conversations, title_max_words=title_max_words
        )

    @classmethod
    def from_config(cls, config: dict[str, dict[str, Any]], token: str) -> SessionController:
        """Build a controller talking HTTP to the configured API."""
        api = config["api"]
        conversations = config["conversations"]
        gateway = HttpConversationGateway(
            base_url=api["base_url"],
            token=token,
            timeout=float(api["timeout_seconds"]),
        )
        return cls(
            gateway,
            default_title=conversations["default_title"],
            title_max_words=int(conversations["title_max_words"]),
        )

    async def aclose(self) -> None:
        close = getattr(self.gateway, "aclose", None)
        if close is not None:
            await close()

    async def list_conversations(self) -> list[Conversation]:
        return await self.conversations.list_conversations()

    async def select_conversation(self, conversation: Conversation | str) -> bool:
        if isinstance(conversation, str):
            found = self.store.get_conversation(conversation)
            if found is None:
                LOGGER.warning(
                    "session.select.unknown",
                    extra={"event": "session.select.unknown", "conversation_id": conversation},
                )
                return False
            conversation = found
        return await self.conversations.select_conversation(conversation)

    async def create_conversation(self) -> Conversation:
        return await self.conversations.create_conversation()

    async def delete_conversation(self, conversation_id: str) -> None:
        await self.conversations.delete_conversation(conversation_id)

    async def rename_conversation(self, conversation_id: str, title: str) -> bool:
        return await self.conversations.rename_conversation(conversation_id, title)

    async def send_message(self, content: str) -> SendOutcome:
        return await self.messages.send_message(content)

    async def dispatch(self, command: SessionCommand) -> Any:
        """Run the operation behind ``command`` and return its result."""
        LOGGER.debug(
            "session.command",
            extra={"event": "session.command", "command": type(command).__name__},
        )
        if isinstance(command, LoadConversations):
            return await self.list_conversations()
        if isinstance(command, SelectConversation):
            return await self.select_conversation(command.conversation_id)
        if isinstance(command, NewConversation):
            return await self.create_conversation()
        if isinstance(command, DeleteConversation):
            return await self.delete_conversation(command.conversation_id)
        if isinstance(command, RenameConversation):
            return await self.rename_conversation(command.conversation_id, command.title)
        if isinstance(command, SubmitMessage):
            return await self.send_message(command.content)
        raise TypeError(f"Unsupported session command {type(command).__name__}")
