"""Remote Gateway: typed access to the conversation/message HTTP API."""

from __future__ import annotations

from datetime import UTC, datetime
import logging
from typing import Any, Protocol
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from .exceptions import GatewayError
from .models import Conversation, Message, Role, SendResult

LOGGER = logging.getLogger(__name__)

TOKEN_MISSING_MESSAGE = "No valid session token. Please log in again."


class ConversationGateway(Protocol):
    """Operations the session core needs from the remote store.

    Every method raises ``GatewayError`` on failure.
    """

    async def list_conversations(self) -> list[Conversation]: ...

    async def create_conversation(self, title: str) -> Conversation: ...

    async def delete_conversation(self, conversation_id: str) -> None: ...

    async def get_messages(self, conversation_id: str) -> list[Message]: ...

    async def send_message(self, conversation_id: str, content: str) -> SendResult: ...

    async def rename_conversation(self, conversation_id: str, title: str) -> None: ...


class HttpConversationGateway:
    """``ConversationGateway`` over the chat REST API using httpx."""

    def __init__(
        self,
        base_url: str,
        token: str | None,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._token = (token or "").strip()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url, timeout=timeout
        )

    async def __aenter__(self) -> HttpConversationGateway:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _auth_headers(self, operation: str) -> dict[str, str]:
        # A session token is a JWT; anything without a dot cannot be one.
        if not self._token or "." not in self._token:
            raise GatewayError(TOKEN_MISSING_MESSAGE, operation)
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._token}",
        }

    @staticmethod
    def _conversation_path(conversation_id: str) -> str:
        return f"/chat/conversations/{quote(conversation_id, safe='')}"

    @staticmethod
    def _error_detail(response: httpx.Response, fallback: str) -> str:
        try:
            payload = response.json()
        except ValueError:
            return fallback
        if isinstance(payload, dict):
            detail = payload.get("detail") or payload.get("message")
            if isinstance(detail, str) and detail.strip():
                return detail.strip()
        return fallback

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        fallback: str,
        payload: dict[str, Any] | None = None,
    ) -> httpx.Response:
        headers = self._auth_headers(operation)
        try:
            response = await self._client.request(
                method, path, headers=headers, json=payload
            )
        except httpx.HTTPError as exc:
            LOGGER.warning(
                "gateway.request.transport_error",
                extra={
                    "event": "gateway.request.transport_error",
                    "operation": operation,
                    "reason": str(exc),
                },
            )
            if isinstance(exc, httpx.TimeoutException):
                raise GatewayError(f"{fallback} (request timed out)", operation) from exc
            raise GatewayError(
                f"{fallback} (unable to reach {self.base_url})", operation
            ) from exc

        if response.is_error:
            LOGGER.warning(
                "gateway.request.failed",
                extra={
                    "event": "gateway.request.failed",
                    "operation": operation,
                    "status": response.status_code,
                },
            )
            raise GatewayError(self._error_detail(response, fallback), operation)

        LOGGER.debug(
            "gateway.request.ok",
            extra={
                "event": "gateway.request.ok",
                "operation": operation,
                "status": response.status_code,
            },
        )
        return response

    @staticmethod
    def _json(response: httpx.Response, operation: str, fallback: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise GatewayError(f"{fallback} (invalid response body)", operation) from exc

    async def list_conversations(self) -> list[Conversation]:
        fallback = "Could not load conversations."
        response = await self._request(
            "list_conversations", "GET", "/chat/conversations", fallback
        )
        payload = self._json(response, "list_conversations", fallback)
        if not isinstance(payload, list):
            raise GatewayError(f"{fallback} (unexpected response)", "list_conversations")
        try:
            return [Conversation.model_validate(item) for item in payload]
        except ValidationError as exc:
            raise GatewayError(
                f"{fallback} (malformed conversation)", "list_conversations"
            ) from exc

    async def create_conversation(self, title: str) -> Conversation:
        fallback = "Could not create a conversation."
        response = await self._request(
            "create_conversation",
            "POST",
            "/chat/conversations",
            fallback,
            {"title": title},
        )
        try:
            return Conversation.model_validate(
                self._json(response, "create_conversation", fallback)
            )
        except ValidationError as exc:
            raise GatewayError(
                f"{fallback} (malformed conversation)", "create_conversation"
            ) from exc

    async def delete_conversation(self, conversation_id: str) -> None:
        await self._request(
            "delete_conversation",
            "DELETE",
            self._conversation_path(conversation_id),
            "Could not delete the conversation.",
        )

    async def get_messages(self, conversation_id: str) -> list[Message]:
        fallback = "Could not load messages."
        response = await self._request(
            "get_messages",
            "GET",
            f"{self._conversation_path(conversation_id)}/messages",
            fallback,
        )
        payload = self._json(response, "get_messages", fallback)
        if not isinstance(payload, list):
            raise GatewayError(f"{fallback} (unexpected response)", "get_messages")
        try:
            return [Message.model_validate(item) for item in payload]
        except ValidationError as exc:
            raise GatewayError(f"{fallback} (malformed message)", "get_messages") from exc

    async def send_message(self, conversation_id: str, content: str) -> SendResult:
        """Send ``content`` and return the confirmed user turn and reply.

        The API may answer with both messages or with the assistant reply
        only; in the latter case the user turn is rebuilt from the request
        and keyed off the reply id.
        """
        fallback = "Could not send the message."
        sent_at = datetime.now(UTC)
        response = await self._request(
            "send_message",
            "POST",
            "/chat/message",
            fallback,
            {"conversation_id": conversation_id, "message": content},
        )
        payload = self._json(response, "send_message", fallback)
        if not isinstance(payload, dict):
            raise GatewayError(f"{fallback} (unexpected response)", "send_message")
        try:
            if "assistant_message" in payload:
                assistant = Message.model_validate(payload["assistant_message"])
                raw_user = payload.get("user_message")
                user = Message.model_validate(raw_user) if raw_user else None
            else:
                assistant = Message.model_validate(payload)
                user = None
        except ValidationError as exc:
            raise GatewayError(f"{fallback} (malformed reply)", "send_message") from exc

        for turn in (assistant, user):
            if turn is not None and turn.conversation_id != conversation_id:
                raise GatewayError(
                    f"{fallback} (reply for another conversation)", "send_message"
                )

        if user is None:
            user = Message(
                id=f"{assistant.id}-prompt",
                conversation_id=conversation_id,
                role=Role.USER,
                content=content,
                created_at=sent_at,
            )
        return SendResult(user_message=user, assistant_message=assistant)

    async def rename_conversation(self, conversation_id: str, title: str) -> None:
        await self._request(
            "rename_conversation",
            "PATCH",
            self._conversation_path(conversation_id),
            "Could not update the conversation title.",
            {"title": title},
        )
