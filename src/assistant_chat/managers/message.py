"""Message send pipeline: optimistic insert, round-trip, reconciliation, rollback."""

from __future__ import annotations

import asyncio
from enum import Enum
import logging
from typing import TYPE_CHECKING

from ..events import SendConfirmed, SendFailed, apply_event
from ..models import ProvisionalMessage
from ..state import DisplayMode

if TYPE_CHECKING:
    from ..gateway import ConversationGateway
    from ..state import SessionStore
    from .conversation import ConversationManager

LOGGER = logging.getLogger(__name__)

TITLE_MAX_WORDS = 5


class SendOutcome(str, Enum):
    """How a ``send_message`` call ended when it did not raise."""

    SENT = "sent"
    IGNORED = "ignored"
    REJECTED = "rejected"
    STALE = "stale"


def derive_title(content: str, max_words: int = TITLE_MAX_WORDS) -> str:
    """Return the first ``max_words`` whitespace-separated tokens of ``content``."""
    return " ".join(content.split()[: max(1, max_words)])


class MessageSendPipeline:
    """Sends user messages with an optimistic transcript entry.

    Sends are serialized per conversation: while one is outstanding, another
    submit for the same conversation is rejected. The conversation id is
    captured at send time, so a reply that arrives after the user switched
    conversations only updates the conversation it was sent to.
    """

    def __init__(
        self,
        store: SessionStore,
        gateway: ConversationGateway,
        conversations: ConversationManager,
        title_max_words: int = TITLE_MAX_WORDS,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.conversations = conversations
        self.title_max_words = title_max_words
        self._creating = False

    async def send_message(self, content: str) -> SendOutcome:
        """Send ``content`` in the active conversation, creating one if needed.

        Returns:
            ``IGNORED`` for blank input, ``REJECTED`` while a send for the
            conversation is outstanding, ``STALE`` when the reply arrived
            after the user switched away, ``SENT`` otherwise.

        Raises:
            GatewayError: conversation creation or the send failed. The
            transcript is restored to its state before the call.
        """
        text = content.strip()
        if not text:
            return SendOutcome.IGNORED

        conversation = self.store.active_conversation
        if conversation is None:
            if self._creating:
                return SendOutcome.REJECTED
            self._creating = True
            try:
                conversation = await self.conversations.create_conversation()
            finally:
                self._creating = False
        elif self.store.is_sending(conversation.id):
            LOGGER.info(
                "message.send.rejected",
                extra={"event": "message.send.rejected", "conversation_id": conversation.id},
            )
            return SendOutcome.REJECTED

        conversation_id = conversation.id
        is_first_message = (
            not self.store.stored_transcript(conversation_id)
            and self.store.display_mode is not DisplayMode.LOADING
        )
        title = derive_title(text, self.title_max_words) if is_first_message else None

        provisional = ProvisionalMessage(conversation_id=conversation_id, content=text)
        self.store.append_message(provisional)
        self.store.set_sending(conversation_id, True)
        LOGGER.info(
            "message.send.start",
            extra={"event": "message.send.start", "conversation_id": conversation_id},
        )

        try:
            try:
                result = await self.gateway.send_message(conversation_id, text)
            except (Exception, asyncio.CancelledError) as exc:
                apply_event(self.store, SendFailed(conversation_id, provisional.id))
                LOGGER.error(
                    "message.send.failed",
                    extra={
                        "event": "message.send.failed",
                        "conversation_id": conversation_id,
                        "reason": str(exc),
                    },
                )
                raise
            stale = self.store.active_conversation_id != conversation_id
            applied = apply_event(
                self.store,
                SendConfirmed(conversation_id, provisional.id, result, title),
            )
        finally:
            self.store.set_sending(conversation_id, False)

        if applied and title:
            await self.conversations.persist_title(conversation_id, title)

        LOGGER.info(
            "message.send.complete",
            extra={
                "event": "message.send.complete",
                "conversation_id": conversation_id,
                "stale": stale,
            },
        )
        return SendOutcome.STALE if stale or not applied else SendOutcome.SENT
