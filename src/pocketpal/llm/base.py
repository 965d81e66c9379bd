from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from ..storage.models import Message
from .models import ChatMessage, CompletionResult


def build_chat_messages(
    history: Sequence[Message],
    new_message: str,
    system_context: str | None = None
) -> list[ChatMessage]:
    """Convert a conversation into the ordered request message list.

    Args:
        history: Previous messages, oldest first
        new_message: The new user message
        system_context: Optional system prompt; skipped when blank

    Returns:
        [system] + one message per history entry + the new user message
    """
    chat_messages: list[ChatMessage] = []

    if system_context and system_context.strip():
        chat_messages.append(ChatMessage(role="system", content=system_context))

    for message in history:
        chat_messages.append(ChatMessage(
            role="user" if message.is_user_message else "assistant",
            content=message.content
        ))

    chat_messages.append(ChatMessage(role="user", content=new_message))
    return chat_messages


class CompletionClient(ABC):
    """Abstract base class for chat completion clients.

    This module hides the design decision of which completion service is
    used. Implementations must handle:
    - HTTP transport and authentication
    - Request/response format conversion
    - Mapping every failure onto the CompletionError taxonomy

    A single call makes a single request; clients never retry.

    Supports async context manager protocol for proper resource cleanup:
        async with client:
            result = await client.complete(api_key, history, "Hello")
    """

    @abstractmethod
    async def complete(
        self,
        api_key: str,
        history: Sequence[Message],
        new_message: str,
        system_context: str | None = None
    ) -> CompletionResult:
        """Request a reply to new_message given the conversation so far.

        Args:
            api_key: Bearer token for the completion service
            history: Previous messages, oldest first
            new_message: The new user message
            system_context: Optional system prompt

        Returns:
            CompletionResult holding the assistant Message on success, or
            an ApiError, EmptyResponseError or TransportError. Never raises.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections or resources."""
        pass

    async def __aenter__(self) -> "CompletionClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit with automatic cleanup.

        Note: Suppresses "Event loop is closed" errors during cleanup.
        This is a known harmless race condition in httpx/anyio cleanup:
        https://github.com/encode/httpx/issues/914
        """
        try:
            await self.close()
        except RuntimeError as e:
            if "Event loop is closed" not in str(e):
                raise
