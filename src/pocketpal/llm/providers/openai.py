import logging
from collections.abc import Sequence
from typing import Any

import httpx
import openai
from openai import AsyncOpenAI

from ...config import (
    DEFAULT_BASE_URL,
    DEFAULT_CHAT_MODEL,
    DEFAULT_MAX_TOKENS,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_TEMPERATURE,
)
from ...errors import ApiError, CompletionError, EmptyResponseError, TransportError
from ...storage.models import Message
from ..base import CompletionClient, build_chat_messages
from ..models import ChatCompletionRequest, ChatCompletionResponse, CompletionResult

logger = logging.getLogger(__name__)

# The SDK refuses to start without a key; the real key is supplied per call.
_PLACEHOLDER_KEY = "not-set"


class OpenAICompletionClient(CompletionClient):
    """Chat completion client for OpenAI and OpenAI-compatible endpoints.

    Hidden design decisions:
    - OpenAI SDK client initialization over an injectable httpx transport
    - Per-call API key via client copies sharing one connection pool
    - Raw response handling so empty bodies are detected before parsing
    - Mapping SDK and transport exceptions onto CompletionError types
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_CHAT_MODEL,
        base_url: str | None = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
        **client_kwargs: Any
    ):
        """Initialize the client.

        Args:
            api_key: Default API key, used when complete() gets a blank one
            model: Model to request
            base_url: API base URL (default: https://api.openai.com/v1)
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature
            timeout: Request timeout in seconds
            http_client: Optional httpx client (custom transport, proxies, tests)
            **client_kwargs: Additional kwargs for AsyncOpenAI client
        """
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._client = AsyncOpenAI(
            api_key=api_key or _PLACEHOLDER_KEY,
            base_url=base_url or DEFAULT_BASE_URL,
            timeout=timeout,
            max_retries=0,
            http_client=http_client,
            **client_kwargs
        )

    @property
    def model(self) -> str:
        """Get the model name."""
        return self._model

    def build_request(
        self,
        history: Sequence[Message],
        new_message: str,
        system_context: str | None = None
    ) -> ChatCompletionRequest:
        """Build the request body for a completion call."""
        return ChatCompletionRequest(
            model=self._model,
            messages=build_chat_messages(history, new_message, system_context),
            max_tokens=self._max_tokens,
            temperature=self._temperature,
        )

    async def complete(
        self,
        api_key: str,
        history: Sequence[Message],
        new_message: str,
        system_context: str | None = None
    ) -> CompletionResult:
        """Send the conversation to the chat completions endpoint.

        Args:
            api_key: Bearer token for this call
            history: Previous messages, oldest first
            new_message: The new user message
            system_context: Optional system prompt

        Returns:
            CompletionResult with the assistant reply or the failure
        """
        try:
            request = self.build_request(history, new_message, system_context)
            client = self._client.with_options(api_key=api_key) if api_key else self._client
            raw = await client.chat.completions.with_raw_response.create(**request.model_dump())
            body = raw.http_response.content

            if not body.strip():
                return self._fail(EmptyResponseError())

            parsed = ChatCompletionResponse.model_validate_json(body)
            if not parsed.choices:
                return self._fail(EmptyResponseError("No response choices received"))

            return CompletionResult.success(Message(
                content=parsed.choices[0].message.content,
                is_user_message=False,
            ))

        except openai.APIStatusError as e:
            return self._fail(ApiError(e.status_code, e.response.text))
        except Exception as e:
            # Timeouts, connection failures, malformed bodies
            return self._fail(TransportError(e))

    @staticmethod
    def _fail(error: CompletionError) -> CompletionResult:
        logger.warning("Completion request failed: %s", error)
        return CompletionResult.failure(error)

    async def close(self) -> None:
        """Close the OpenAI client and its HTTP connection pool."""
        await self._client.close()
