"""Domain exception hierarchy for the assistant chat client."""

from __future__ import annotations


class AssistantChatError(RuntimeError):
    """Base class for all domain-level chat errors."""


class GatewayError(AssistantChatError):
    """Raised when any remote conversation/message operation fails.

    The session core does not distinguish HTTP status codes; every remote
    failure surfaces as this one kind with a human-readable description.
    """

    def __init__(self, message: str, operation: str = "") -> None:
        super().__init__(message)
        self.operation = operation


class InvariantViolation(AssistantChatError):
    """Raised when a store mutation would break a session invariant."""


class ConfigValidationError(AssistantChatError):
    """Raised when configuration cannot be validated safely."""
