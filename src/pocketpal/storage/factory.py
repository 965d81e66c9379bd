"""Factory for creating assistant store backends."""

from typing import Any

from .base import AssistantStore


def create_assistant_store(
    backend: str = "memory",
    **kwargs: Any
) -> AssistantStore:
    """Create an assistant store backend.

    Args:
        backend: Backend type ("memory" or "sqlite")
        **kwargs: Backend-specific configuration
            For sqlite:
                - path: str | Path (database file)

    Returns:
        AssistantStore instance (call connect() before use)

    Raises:
        ValueError: If backend type is not supported
    """
    if backend == "memory":
        from .in_memory import InMemoryAssistantStore
        return InMemoryAssistantStore(**kwargs)

    elif backend == "sqlite":
        from .sqlite import SQLiteAssistantStore
        return SQLiteAssistantStore(**kwargs)

    raise ValueError(
        f"Unsupported store backend: {backend}. "
        f"Supported backends: memory, sqlite"
    )
