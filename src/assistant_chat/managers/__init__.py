"""Manager classes driving the session store.

Available managers:
- ConversationManager: conversation list, selection, creation and deletion
- MessageSendPipeline: optimistic message sends and reconciliation
"""

from __future__ import annotations

from .conversation import DEFAULT_TITLE, ConversationManager
from .message import TITLE_MAX_WORDS, MessageSendPipeline, SendOutcome, derive_title

__all__ = [
    "ConversationManager",
    "MessageSendPipeline",
    "SendOutcome",
    "DEFAULT_TITLE",
    "TITLE_MAX_WORDS",
    "derive_title",
]
