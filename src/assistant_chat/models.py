"""Typed conversation and message records exchanged with the remote store."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

PROVISIONAL_PREFIX = "local-"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_local_id() -> str:
    return f"{PROVISIONAL_PREFIX}{uuid4().hex}"


def _normalize_id(value: Any) -> str:
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ValueError("Identifier must be a string or integer.")
    normalized = str(value).strip()
    if not normalized:
        raise ValueError("Identifier must not be empty.")
    return normalized


class Role(str, Enum):
    """Author of a conversation turn."""

    USER = "user"
    ASSISTANT = "assistant"


class Conversation(BaseModel):
    """A titled thread of messages owned by the signed-in user."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    title: str
    created_at: datetime
    updated_at: datetime
    user_id: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _validate_id(cls, value: Any) -> str:
        return _normalize_id(value)

    @field_validator("user_id", mode="before")
    @classmethod
    def _validate_user_id(cls, value: Any) -> str | None:
        if value is None:
            return None
        return _normalize_id(value)

    def with_title(self, title: str) -> Conversation:
        """Return a copy of this conversation carrying ``title``."""
        return self.model_copy(update={"title": title})


class Message(BaseModel):
    """A persisted message whose identity was assigned by the remote store."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    conversation_id: str
    role: Role
    content: str
    created_at: datetime

    @field_validator("id", mode="before")
    @classmethod
    def _validate_id(cls, value: Any) -> str:
        normalized = _normalize_id(value)
        if normalized.startswith(PROVISIONAL_PREFIX):
            raise ValueError("Confirmed message ids must not use the local prefix.")
        return normalized

    @field_validator("conversation_id", mode="before")
    @classmethod
    def _validate_conversation_id(cls, value: Any) -> str:
        return _normalize_id(value)

    @property
    def is_provisional(self) -> bool:
        return False


class ProvisionalMessage(BaseModel):
    """A user message shown optimistically until its send resolves."""

    model_config = ConfigDict(frozen=True)

    local_id: str = Field(default_factory=_new_local_id)
    conversation_id: str
    role: Role = Role.USER
    content: str
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def id(self) -> str:
        return self.local_id

    @property
    def is_provisional(self) -> bool:
        return True


TranscriptEntry = Message | ProvisionalMessage


class SendResult(BaseModel):
    """Confirmed user turn and assistant reply for one exchange."""

    model_config = ConfigDict(frozen=True)

    user_message: Message
    assistant_message: Message
