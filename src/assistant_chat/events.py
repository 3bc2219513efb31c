"""Remote-resolution events and the reducer that applies them to the store.

Every event is stamped with the conversation it targets. ``apply_event``
checks that stamp against the current session and discards stale events
instead of letting them touch another conversation's transcript.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging

from .models import Conversation, Message, SendResult
from .state import DisplayMode, SessionStore

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConversationsLoaded:
    conversations: tuple[Conversation, ...]


@dataclass(frozen=True)
class ConversationCreated:
    conversation: Conversation


@dataclass(frozen=True)
class ConversationDeleted:
    conversation_id: str


@dataclass(frozen=True)
class ConversationRenamed:
    conversation_id: str
    title: str


@dataclass(frozen=True)
class MessagesLoaded:
    conversation_id: str
    generation: int
    messages: tuple[Message, ...]


@dataclass(frozen=True)
class MessagesLoadFailed:
    conversation_id: str
    generation: int


@dataclass(frozen=True)
class SendConfirmed:
    conversation_id: str
    provisional_id: str
    result: SendResult
    title: str | None = None


@dataclass(frozen=True)
class SendFailed:
    conversation_id: str
    provisional_id: str


SessionEvent = (
    ConversationsLoaded
    | ConversationCreated
    | ConversationDeleted
    | ConversationRenamed
    | MessagesLoaded
    | MessagesLoadFailed
    | SendConfirmed
    | SendFailed
)


def _discard(event: SessionEvent, reason: str) -> bool:
    LOGGER.debug(
        "session.event.discarded",
        extra={
            "event": "session.event.discarded",
            "kind": type(event).__name__,
            "reason": reason,
        },
    )
    return False


def _is_current_fetch(
    store: SessionStore, event: MessagesLoaded | MessagesLoadFailed
) -> bool:
    return (
        store.active_conversation_id == event.conversation_id
        and store.fetch_generation == event.generation
    )


def apply_event(store: SessionStore, event: SessionEvent) -> bool:
    """Apply ``event`` to ``store``; return False when it was discarded as stale."""
    if isinstance(event, ConversationsLoaded):
        store.set_conversations(event.conversations)
        return True

    if isinstance(event, ConversationCreated):
        others = [c for c in store.conversations if c.id != event.conversation.id]
        store.set_conversations([event.conversation, *others])
        store.set_active_conversation(event.conversation)
        return True

    if isinstance(event, ConversationDeleted):
        was_active = store.active_conversation_id == event.conversation_id
        store.set_conversations(
            c for c in store.conversations if c.id != event.conversation_id
        )
        if was_active:
            store.set_active_conversation(None)
        return True

    if isinstance(event, ConversationRenamed):
        if not store.has_conversation(event.conversation_id):
            return _discard(event, "conversation gone")
        store.rename_conversation(event.conversation_id, event.title)
        return True

    if isinstance(event, MessagesLoaded):
        if not _is_current_fetch(store, event):
            return _discard(event, "superseded fetch")
        store.set_transcript(event.conversation_id, event.messages)
        store.set_display_mode(DisplayMode.TRANSCRIPT)
        return True

    if isinstance(event, MessagesLoadFailed):
        if not _is_current_fetch(store, event):
            return _discard(event, "superseded fetch")
        store.set_display_mode(DisplayMode.WELCOME)
        return True

    if isinstance(event, SendConfirmed):
        if not store.has_conversation(event.conversation_id):
            return _discard(event, "conversation gone")
        # Both turns belong to the conversation captured at send time.
        turns = [
            message
            if message.conversation_id == event.conversation_id
            else message.model_copy(update={"conversation_id": event.conversation_id})
            for message in (event.result.user_message, event.result.assistant_message)
        ]
        store.remove_message(event.conversation_id, event.provisional_id)
        for message in turns:
            if store.contains_message(event.conversation_id, message.id):
                store.replace_message(message.id, message)
            else:
                store.append_message(message)
        if event.title:
            store.rename_conversation(event.conversation_id, event.title)
        return True

    if isinstance(event, SendFailed):
        if not store.has_conversation(event.conversation_id):
            return _discard(event, "conversation gone")
        store.remove_message(event.conversation_id, event.provisional_id)
        return True

    raise TypeError(f"Unsupported session event {type(event).__name__}")
