"""Configuration constants.

Centralizes magic numbers and defaults shared across the package.
Runtime configuration comes from environment variables (see cli/providers.py).
"""

from pathlib import Path

# Completion API defaults
DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_CHAT_MODEL = "gpt-3.5-turbo"
DEFAULT_MAX_TOKENS = 150
DEFAULT_TEMPERATURE = 0.7
DEFAULT_REQUEST_TIMEOUT = 60.0  # Seconds

# Storage defaults
DEFAULT_STORE_BACKEND = "sqlite"
DEFAULT_DB_PATH = Path.home() / ".pocketpal" / "pocketpal.db"

# Session titles
SESSION_TITLE_MAX_CHARS = 30  # Characters kept before the "..." suffix
NEW_CHAT_TITLE_PREFIX = "New Chat"

# Context building
UPCOMING_ITEMS_LIMIT = 3  # Schedule items included in the system context

# Calendar integration
DEFAULT_EVENT_DURATION_MINUTES = 60
DEFAULT_REMINDER_MINUTES = 15
