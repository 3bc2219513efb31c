"""Conversation lifecycle: list, select, create, delete and rename.

Every remote result is turned into an event and applied through
``apply_event`` so stale results are discarded in one place.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..events import (
    ConversationCreated,
    ConversationDeleted,
    ConversationRenamed,
    ConversationsLoaded,
    MessagesLoaded,
    MessagesLoadFailed,
    apply_event,
)
from ..exceptions import GatewayError
from ..state import DisplayMode

if TYPE_CHECKING:
    from ..gateway import ConversationGateway
    from ..models import Conversation
    from ..state import SessionStore

LOGGER = logging.getLogger(__name__)

DEFAULT_TITLE = "New Conversation"


class ConversationManager:
    """Keeps the conversation list and active conversation in sync with the remote store.

    Responsibilities:
    - Load the conversation list without selecting anything
    - Select a conversation and load its transcript
    - Create and delete conversations
    - Best-effort title persistence
    """

    def __init__(
        self,
        store: SessionStore,
        gateway: ConversationGateway,
        default_title: str = DEFAULT_TITLE,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.default_title = default_title

    async def list_conversations(self) -> list[Conversation]:
        """Replace the conversation list from the remote store.

        The active conversation is left untouched, so a fresh session stays
        on the welcome screen until the user picks or starts a conversation.

        Raises:
            GatewayError: the list could not be fetched; state is unchanged.
        """
        try:
            conversations = await self.gateway.list_conversations()
        except GatewayError as exc:
            LOGGER.error(
                "conversation.list.failed",
                extra={"event": "conversation.list.failed", "reason": str(exc)},
            )
            raise
        apply_event(self.store, ConversationsLoaded(tuple(conversations)))
        LOGGER.info(
            "conversation.list.loaded",
            extra={"event": "conversation.list.loaded", "count": len(conversations)},
        )
        return conversations

    async def select_conversation(self, conversation: Conversation) -> bool:
        """Make ``conversation`` active and load its messages.

        Returns:
            False when a newer selection or a deletion superseded this one
            and the fetched messages were discarded.

        Raises:
            GatewayError: messages could not be fetched. The conversation
            stays active with an empty transcript.
        """
        self.store.set_active_conversation(conversation)
        self.store.set_display_mode(DisplayMode.LOADING)
        generation = self.store.fetch_generation
        try:
            messages = await self.gateway.get_messages(conversation.id)
        except GatewayError as exc:
            apply_event(self.store, MessagesLoadFailed(conversation.id, generation))
            LOGGER.error(
                "conversation.select.failed",
                extra={
                    "event": "conversation.select.failed",
                    "conversation_id": conversation.id,
                    "reason": str(exc),
                },
            )
            raise
        return apply_event(
            self.store, MessagesLoaded(conversation.id, generation, tuple(messages))
        )

    async def create_conversation(self) -> Conversation:
        """Create a conversation remotely, prepend it and make it active.

        Raises:
            GatewayError: creation failed; no state was mutated.
        """
        try:
            conversation = await self.gateway.create_conversation(self.default_title)
        except GatewayError as exc:
            LOGGER.error(
                "conversation.create.failed",
                extra={"event": "conversation.create.failed", "reason": str(exc)},
            )
            raise
        apply_event(self.store, ConversationCreated(conversation))
        LOGGER.info(
            "conversation.created",
            extra={"event": "conversation.created", "conversation_id": conversation.id},
        )
        return conversation

    async def delete_conversation(self, conversation_id: str) -> None:
        """Delete remotely, then drop the conversation locally.

        Deleting the active conversation returns the session to the
        no-selection state, whether or not other conversations remain.

        Raises:
            GatewayError: deletion failed; the conversation stays listed.
        """
        try:
            await self.gateway.delete_conversation(conversation_id)
        except GatewayError as exc:
            LOGGER.error(
                "conversation.delete.failed",
                extra={
                    "event": "conversation.delete.failed",
                    "conversation_id": conversation_id,
                    "reason": str(exc),
                },
            )
            raise
        apply_event(self.store, ConversationDeleted(conversation_id))
        LOGGER.info(
            "conversation.deleted",
            extra={"event": "conversation.deleted", "conversation_id": conversation_id},
        )

    async def rename_conversation(self, conversation_id: str, title: str) -> bool:
        """Rename locally and persist the title on a best-effort basis.

        Returns:
            True when the remote store accepted the title. A failed persist
            is logged and the local title is kept.
        """
        normalized = title.strip()
        if not normalized:
            return False
        if not apply_event(self.store, ConversationRenamed(conversation_id, normalized)):
            return False
        return await self.persist_title(conversation_id, normalized)

    async def persist_title(self, conversation_id: str, title: str) -> bool:
        try:
            await self.gateway.rename_conversation(conversation_id, title)
        except GatewayError as exc:
            LOGGER.warning(
                "conversation.title.persist_failed",
                extra={
                    "event": "conversation.title.persist_failed",
                    "conversation_id": conversation_id,
                    "reason": str(exc),
                },
            )
            return False
        return True
