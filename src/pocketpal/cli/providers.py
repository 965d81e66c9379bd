"""Provider factory functions for CLI.

Centralizes creation of the store, completion client, calendar sink and
credential store from environment variables.
Hides configuration details from command implementations.
"""

import logging
import os
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from ..config import (
    DEFAULT_BASE_URL,
    DEFAULT_CHAT_MODEL,
    DEFAULT_DB_PATH,
    DEFAULT_MAX_TOKENS,
    DEFAULT_STORE_BACKEND,
    DEFAULT_TEMPERATURE,
)
from ..integrations import (
    CalendarSink,
    CredentialStore,
    DotenvCredentialStore,
    IcsCalendarSink,
    NullCalendarSink,
)
from ..llm import CompletionClient, create_completion_client
from ..storage import AssistantStore, create_assistant_store

# Default console for output
_console = Console()


def configure_logging(console: Console | None = None) -> None:
    """Route package logging through Rich.

    Environment variables:
        POCKETPAL_LOG_LEVEL: Log level name (default: WARNING)
    """
    level = os.getenv("POCKETPAL_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console or _console, rich_tracebacks=True)],
    )


def get_store() -> AssistantStore:
    """Create store backend from environment variables.

    Returns:
        Store backend instance (call connect() before use)

    Environment variables:
        POCKETPAL_STORE: Backend type (memory, sqlite; default: sqlite)
        POCKETPAL_DB_PATH: SQLite database file (default: ~/.pocketpal/pocketpal.db)
    """
    backend = os.getenv("POCKETPAL_STORE", DEFAULT_STORE_BACKEND).lower()
    if backend == "sqlite":
        path = os.getenv("POCKETPAL_DB_PATH") or DEFAULT_DB_PATH
        return create_assistant_store("sqlite", path=Path(path).expanduser())
    return create_assistant_store(backend)


def get_credentials() -> CredentialStore:
    """Create the API key store.

    The key is read from the environment (including a loaded .env file).

    Environment variables:
        OPENAI_API_KEY: OpenAI API key
        POCKETPAL_ENV_FILE: .env file `key set` writes to (default: ./.env)
    """
    return DotenvCredentialStore(path=os.getenv("POCKETPAL_ENV_FILE", ".env"))


def get_completion_client() -> CompletionClient:
    """Create completion client from environment variables.

    Returns:
        Completion client; the API key is supplied per call

    Environment variables:
        OPENAI_BASE_URL: API base URL (default: https://api.openai.com/v1)
        OPENAI_CHAT_MODEL: Model (default: gpt-3.5-turbo)
        POCKETPAL_MAX_TOKENS: Maximum tokens per reply (default: 150)
        POCKETPAL_TEMPERATURE: Sampling temperature (default: 0.7)
    """
    return create_completion_client(
        "openai",
        base_url=os.getenv("OPENAI_BASE_URL", DEFAULT_BASE_URL),
        model=os.getenv("OPENAI_CHAT_MODEL", DEFAULT_CHAT_MODEL),
        max_tokens=int(os.getenv("POCKETPAL_MAX_TOKENS", str(DEFAULT_MAX_TOKENS))),
        temperature=float(os.getenv("POCKETPAL_TEMPERATURE", str(DEFAULT_TEMPERATURE)))
    )


def get_calendar() -> CalendarSink:
    """Create calendar sink from environment variables.

    Environment variables:
        POCKETPAL_CALENDAR_PATH: .ics file new schedule items are added to
            (default: unset, calendar integration disabled)
    """
    path = os.getenv("POCKETPAL_CALENDAR_PATH")
    if not path:
        return NullCalendarSink()
    return IcsCalendarSink(Path(path).expanduser())


def require_api_key(console: Console | None = None) -> CredentialStore:
    """Get the credential store, raising error if no key is configured.

    Raises:
        SystemExit: If OPENAI_API_KEY is not set
    """
    import typer

    con = console or _console
    credentials = get_credentials()
    if not credentials.has():
        con.print("[red]Error: OPENAI_API_KEY not set in environment[/red]")
        raise typer.Exit(code=1)
    return credentials
