"""Top-level package for assistant-chat."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .app import AssistantChatApp
    from .config import ensure_config_dir, load_config
    from .controller import SessionController
    from .exceptions import (
        AssistantChatError,
        ConfigValidationError,
        GatewayError,
        InvariantViolation,
    )
    from .gateway import ConversationGateway, HttpConversationGateway
    from .managers import SendOutcome
    from .models import Conversation, Message, ProvisionalMessage, Role, SendResult
    from .state import DisplayMode, SessionSnapshot, SessionStore

__all__ = [
    "AssistantChatApp",
    "AssistantChatError",
    "ConfigValidationError",
    "Conversation",
    "ConversationGateway",
    "DisplayMode",
    "GatewayError",
    "HttpConversationGateway",
    "InvariantViolation",
    "Message",
    "ProvisionalMessage",
    "Role",
    "SendOutcome",
    "SendResult",
    "SessionController",
    "SessionSnapshot",
    "SessionStore",
    "ensure_config_dir",
    "load_config",
]

_LAZY_EXPORTS: dict[str, str] = {
    "AssistantChatApp": ".app",
    "ensure_config_dir": ".config",
    "load_config": ".config",
    "SessionController": ".controller",
    "AssistantChatError": ".exceptions",
    "ConfigValidationError": ".exceptions",
    "GatewayError": ".exceptions",
    "InvariantViolation": ".exceptions",
    "ConversationGateway": ".gateway",
    "HttpConversationGateway": ".gateway",
    "SendOutcome": ".managers",
    "Conversation": ".models",
    "Message": ".models",
    "ProvisionalMessage": ".models",
    "Role": ".models",
    "SendResult": ".models",
    "DisplayMode": ".state",
    "SessionSnapshot": ".state",
    "SessionStore": ".state",
}


def __getattr__(name: str) -> Any:
    """Lazily import symbols so the Textual UI loads only when it is used."""
    module_name = _LAZY_EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    from importlib import import_module

    return getattr(import_module(module_name, __name__), name)
