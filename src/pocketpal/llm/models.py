"""Wire models for the chat completion API and the client result type."""

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config import DEFAULT_CHAT_MODEL, DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE
from ..errors import CompletionError
from ..storage.models import Message


class ChatMessage(BaseModel):
    """Represents a chat message in a completion request or response."""

    model_config = ConfigDict(frozen=True)

    role: str = Field(description="Role of the message sender: 'user', 'assistant', or 'system'")
    content: str = Field(description="Content of the message")

    @field_validator("content", mode="before")
    @classmethod
    def null_content_as_empty(cls, v: str | None) -> str:
        """Treat a null content (e.g. tool-call replies) as empty text."""
        return "" if v is None else v


class ChatCompletionRequest(BaseModel):
    """Request body for POST /chat/completions."""

    model: str = DEFAULT_CHAT_MODEL
    messages: list[ChatMessage]
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, ge=1)
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0)


class Choice(BaseModel):
    """One generated alternative."""

    index: int = 0
    message: ChatMessage
    finish_reason: str | None = None


class Usage(BaseModel):
    """Token usage information."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatCompletionResponse(BaseModel):
    """Response body of POST /chat/completions."""

    id: str = ""
    created: int = 0
    model: str = ""
    choices: list[Choice] = Field(default_factory=list)
    usage: Usage | None = None


@dataclass(frozen=True)
class CompletionResult:
    """Outcome of a completion call: exactly one of message or error is set."""

    message: Message | None = None
    error: CompletionError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, message: Message) -> "CompletionResult":
        return cls(message=message)

    @classmethod
    def failure(cls, error: CompletionError) -> "CompletionResult":
        return cls(error=error)

    def unwrap(self) -> Message:
        """Return the message or raise the stored error."""
        if self.error is not None:
            raise self.error
        return self.message
