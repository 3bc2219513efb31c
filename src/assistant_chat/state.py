"""Session state store with invariant-preserving mutation primitives."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
import logging

from .exceptions import InvariantViolation
from .models import Conversation, TranscriptEntry

LOGGER = logging.getLogger(__name__)


class DisplayMode(str, Enum):
    """What the transcript area shows."""

    WELCOME = "welcome"
    LOADING = "loading"
    TRANSCRIPT = "transcript"


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable view of the session handed to observers."""

    conversations: tuple[Conversation, ...]
    active_conversation: Conversation | None
    transcript: tuple[TranscriptEntry, ...]
    display_mode: DisplayMode
    sending: bool


SessionObserver = Callable[[SessionSnapshot], None]


class SessionStore:
    """Hold the conversation list, active conversation and transcript.

    The store carries no business rules. Every primitive is synchronous and
    keeps these invariants, checked in ``check_invariants`` after each
    mutation:

    - every displayed message belongs to the active conversation;
    - a transcript holds at most one provisional message;
    - conversation ids are unique;
    - with no active conversation the transcript is empty and the display
      mode is ``welcome``.

    Transcripts are stored per conversation id. Only the active one is
    displayed; another conversation's transcript is kept while a send for it
    is outstanding, so the eventual response lands where it belongs.
    """

    def __init__(self) -> None:
        self._conversations: list[Conversation] = []
        self._active: Conversation | None = None
        self._transcripts: dict[str, list[TranscriptEntry]] = {}
        self._sending: set[str] = set()
        self._loading = False
        self._fetch_generation = 0
        self._observers: list[SessionObserver] = []

    # -- read access -----------------------------------------------------

    @property
    def conversations(self) -> list[Conversation]:
        return list(self._conversations)

    @property
    def active_conversation(self) -> Conversation | None:
        return self._active

    @property
    def active_conversation_id(self) -> str | None:
        return self._active.id if self._active is not None else None

    @property
    def transcript(self) -> list[TranscriptEntry]:
        """Messages of the active conversation, oldest first."""
        if self._active is None:
            return []
        return list(self._transcripts.get(self._active.id, []))

    @property
    def sending(self) -> bool:
        """True while a send for the active conversation is outstanding."""
        return self._active is not None and self._active.id in self._sending

    @property
    def fetch_generation(self) -> int:
        """Counter bumped each time a message fetch starts."""
        return self._fetch_generation

    @property
    def display_mode(self) -> DisplayMode:
        if self._active is None:
            return DisplayMode.WELCOME
        if self._loading:
            return DisplayMode.LOADING
        if self._transcripts.get(self._active.id):
            return DisplayMode.TRANSCRIPT
        return DisplayMode.WELCOME

    def is_sending(self, conversation_id: str) -> bool:
        return conversation_id in self._sending

    def has_conversation(self, conversation_id: str) -> bool:
        if self._active is not None and self._active.id == conversation_id:
            return True
        return any(item.id == conversation_id for item in self._conversations)

    def get_conversation(self, conversation_id: str) -> Conversation | None:
        for item in self._conversations:
            if item.id == conversation_id:
                return item
        if self._active is not None and self._active.id == conversation_id:
            return self._active
        return None

    def stored_transcript(self, conversation_id: str) -> list[TranscriptEntry]:
        """Return the kept transcript for any conversation, displayed or not."""
        return list(self._transcripts.get(conversation_id, []))

    def provisional_message(self, conversation_id: str) -> TranscriptEntry | None:
        for entry in self._transcripts.get(conversation_id, []):
            if entry.is_provisional:
                return entry
        return None

    def contains_message(self, conversation_id: str, message_id: str) -> bool:
        return any(
            entry.id == message_id
            for entry in self._transcripts.get(conversation_id, [])
        )

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            conversations=tuple(self._conversations),
            active_conversation=self._active,
            transcript=tuple(self.transcript),
            display_mode=self.display_mode,
            sending=self.sending,
        )

    # -- observers -------------------------------------------------------

    def subscribe(self, observer: SessionObserver) -> None:
        """Register a callback invoked with a snapshot after every mutation."""
        self._observers.append(observer)

    def unsubscribe(self, observer: SessionObserver) -> None:
        try:
            self._observers.remove(observer)
        except ValueError:
            pass

    def _changed(self) -> None:
        self.check_invariants()
        if not self._observers:
            return
        snapshot = self.snapshot()
        for observer in list(self._observers):
            try:
                observer(snapshot)
            except Exception as exc:
                LOGGER.error(
                    "session.observer.failed",
                    extra={"event": "session.observer.failed", "reason": str(exc)},
                )

    # -- mutation primitives --------------------------------------------

    def set_conversations(self, conversations: Iterable[Conversation]) -> None:
        """Replace the conversation list, keeping the first entry per id."""
        seen: set[str] = set()
        deduped: list[Conversation] = []
        for item in conversations:
            if item.id in seen:
                LOGGER.warning(
                    "session.conversation.duplicate",
                    extra={"event": "session.conversation.duplicate", "id": item.id},
                )
                continue
            seen.add(item.id)
            deduped.append(item)
        self._conversations = deduped
        if self._active is not None:
            refreshed = self.get_conversation(self._active.id)
            if refreshed is not None:
                self._active = refreshed
        self._prune_transcripts()
        self._changed()

    def set_active_conversation(self, conversation: Conversation | None) -> None:
        """Make ``conversation`` active, or return to the no-selection state.

        The displayed transcript starts empty; only a provisional message of
        an outstanding send for that conversation is carried over.
        """
        self._loading = False
        self._active = conversation
        if conversation is not None:
            pending = self.provisional_message(conversation.id)
            self._transcripts[conversation.id] = [pending] if pending else []
        self._prune_transcripts()
        self._changed()

    def set_transcript(
        self, conversation_id: str, messages: Iterable[TranscriptEntry]
    ) -> None:
        """Install a fetched message list for a conversation.

        Duplicate ids are dropped. Confirmed messages already shown but
        missing from the fetched list (an exchange that resolved while the
        fetch was in flight) are kept after it, and a provisional message of
        a send still in flight stays at the tail.
        """
        self._require_known(conversation_id)
        current = self._transcripts.get(conversation_id, [])
        installed: list[TranscriptEntry] = []
        seen: set[str] = set()
        for entry in messages:
            self._require_owner(conversation_id, entry)
            if entry.is_provisional or entry.id in seen:
                continue
            seen.add(entry.id)
            installed.append(entry)
        for entry in current:
            if not entry.is_provisional and entry.id not in seen:
                seen.add(entry.id)
                installed.append(entry)
        pending = self.provisional_message(conversation_id)
        if pending is not None:
            installed.append(pending)
        self._transcripts[conversation_id] = installed
        self._changed()

    def append_message(self, message: TranscriptEntry) -> None:
        """Append to the transcript of the message's own conversation."""
        conversation_id = message.conversation_id
        self._require_known(conversation_id)
        transcript = self._transcripts.setdefault(conversation_id, [])
        if any(entry.id == message.id for entry in transcript):
            raise InvariantViolation(
                f"Message {message.id!r} is already in conversation {conversation_id!r}."
            )
        if message.is_provisional and any(e.is_provisional for e in transcript):
            raise InvariantViolation(
                f"Conversation {conversation_id!r} already has a provisional message."
            )
        transcript.append(message)
        self._changed()

    def replace_message(self, message_id: str, message: TranscriptEntry) -> bool:
        """Swap the entry ``message_id`` for ``message`` in place."""
        transcript = self._transcripts.get(message.conversation_id)
        if not transcript:
            return False
        for index, entry in enumerate(transcript):
            if entry.id == message_id:
                transcript[index] = message
                self._changed()
                return True
        return False

    def remove_message(self, conversation_id: str, message_id: str) -> bool:
        transcript = self._transcripts.get(conversation_id)
        if not transcript:
            return False
        remaining = [entry for entry in transcript if entry.id != message_id]
        if len(remaining) == len(transcript):
            return False
        self._transcripts[conversation_id] = remaining
        self._changed()
        return True

    def rename_conversation(self, conversation_id: str, title: str) -> None:
        self._conversations = [
            item.with_title(title) if item.id == conversation_id else item
            for item in self._conversations
        ]
        if self._active is not None and self._active.id == conversation_id:
            self._active = self._active.with_title(title)
        self._changed()

    def set_sending(self, conversation_id: str, sending: bool) -> None:
        if sending:
            self._sending.add(conversation_id)
        else:
            self._sending.discard(conversation_id)
        self._changed()

    def set_display_mode(self, mode: DisplayMode) -> None:
        """Start or end the transient loading phase.

        Only ``LOADING`` can be forced. Any other value ends the loading
        phase, after which the mode derived from state applies again.
        """
        if mode is DisplayMode.LOADING:
            if self._active is None:
                raise InvariantViolation("Cannot load without an active conversation.")
            self._loading = True
            self._fetch_generation += 1
        else:
            self._loading = False
        self._changed()

    # -- invariants ------------------------------------------------------

    def check_invariants(self) -> None:
        ids = [item.id for item in self._conversations]
        if len(ids) != len(set(ids)):
            raise InvariantViolation("Conversation ids must be unique.")
        if self._active is None and self._loading:
            raise InvariantViolation("Loading requires an active conversation.")
        for conversation_id, transcript in self._transcripts.items():
            if sum(1 for entry in transcript if entry.is_provisional) > 1:
                raise InvariantViolation(
                    f"Conversation {conversation_id!r} has several provisional messages."
                )
            for entry in transcript:
                if entry.conversation_id != conversation_id:
                    raise InvariantViolation(
                        f"Message {entry.id!r} is filed under the wrong conversation."
                    )

    def _require_known(self, conversation_id: str) -> None:
        if not self.has_conversation(conversation_id):
            raise InvariantViolation(f"Unknown conversation {conversation_id!r}.")

    @staticmethod
    def _require_owner(conversation_id: str, entry: TranscriptEntry) -> None:
        if entry.conversation_id != conversation_id:
            raise InvariantViolation(
                f"Message {entry.id!r} does not belong to conversation {conversation_id!r}."
            )

    def _prune_transcripts(self) -> None:
        """Drop transcripts nobody displays and no send is waiting on."""
        keep = set(self._sending)
        if self._active is not None:
            keep.add(self._active.id)
        for conversation_id in list(self._transcripts):
            if conversation_id not in keep:
                del self._transcripts[conversation_id]
