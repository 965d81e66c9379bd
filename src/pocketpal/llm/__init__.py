from .base import CompletionClient, build_chat_messages
from .factory import create_completion_client
from .models import (
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessage,
    Choice,
    CompletionResult,
    Usage,
)
from .providers import OpenAICompletionClient

__all__ = [
    "CompletionClient",
    "build_chat_messages",
    "create_completion_client",
    "ChatCompletionRequest",
    "ChatCompletionResponse",
    "ChatMessage",
    "Choice",
    "CompletionResult",
    "Usage",
    "OpenAICompletionClient",
]
