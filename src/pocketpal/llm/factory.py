from typing import Any

from .base import CompletionClient
from .providers import OpenAICompletionClient


def create_completion_client(provider: str = "openai", **config: Any) -> CompletionClient:
    """Create a completion client instance.

    This factory function hides the instantiation logic for different providers.

    Args:
        provider: Provider type ('openai'; any OpenAI-compatible endpoint
            is reached through base_url)
        **config: Provider-specific configuration
            For OpenAI:
                - api_key: str | None (default key when a call passes none)
                - model: str (default: 'gpt-3.5-turbo')
                - base_url: str | None
                - max_tokens: int (default: 150)
                - temperature: float (default: 0.7)
                - timeout: float (default: 60.0)
                - http_client: httpx.AsyncClient | None

    Returns:
        Initialized completion client

    Raises:
        ValueError: If provider type is not supported

    Examples:
        >>> client = create_completion_client(
        ...     "openai",
        ...     model="gpt-4o-mini",
        ...     base_url="http://localhost:8000/v1"
        ... )
    """
    provider_lower = provider.lower()

    if provider_lower == "openai":
        return OpenAICompletionClient(**config)

    raise ValueError(
        f"Unsupported provider: {provider}. "
        f"Supported providers: 'openai'"
    )
