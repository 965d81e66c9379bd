"""API key storage.

The core treats the key as an opaque string read once at start-up.
"""

import os
from abc import ABC, abstractmethod
from pathlib import Path

from dotenv import get_key, set_key, unset_key

DEFAULT_KEY_NAME = "OPENAI_API_KEY"


class CredentialStore(ABC):
    """Abstract store holding a single API key."""

    @abstractmethod
    def get(self) -> str:
        """Get the key, or "" if none is stored."""

    @abstractmethod
    def set(self, value: str) -> None:
        """Store the key."""

    @abstractmethod
    def clear(self) -> None:
        """Remove the stored key."""

    def has(self) -> bool:
        return bool(self.get().strip())


class InMemoryCredentialStore(CredentialStore):
    """Key held in memory only."""

    def __init__(self, value: str = ""):
        self._value = value

    def get(self) -> str:
        return self._value

    def set(self, value: str) -> None:
        self._value = value

    def clear(self) -> None:
        self._value = ""


class DotenvCredentialStore(CredentialStore):
    """Key read from the environment and optionally persisted to a .env file.

    Lookup order: process environment, then the .env file.
    """

    def __init__(self, path: str | Path | None = None, key_name: str = DEFAULT_KEY_NAME):
        self._path = Path(path) if path else None
        self._key_name = key_name

    def get(self) -> str:
        value = os.getenv(self._key_name)
        if value:
            return value
        if self._path and self._path.exists():
            return get_key(self._path, self._key_name) or ""
        return ""

    def set(self, value: str) -> None:
        os.environ[self._key_name] = value
        if self._path:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.touch(exist_ok=True)
            set_key(self._path, self._key_name, value)

    def clear(self) -> None:
        os.environ.pop(self._key_name, None)
        if self._path and self._path.exists():
            unset_key(self._path, self._key_name)
