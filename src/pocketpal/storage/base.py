"""Abstract base classes for the assistant's persistent stores.

This module defines the interfaces the conversation core consumes.
The abstraction hides:
- Storage format (rows, JSON documents, in-memory objects)
- Persistence mechanism (file, database, in-memory)
- Connection management
- How change notifications are produced
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any

from .live import Listener, Subscription
from .models import ChatSession, Message, ScheduleItem, UserProfile


class SessionStore(ABC):
    """Persisted chat sessions."""

    @abstractmethod
    async def create_session(self, messages: list[Message]) -> str:
        """Create a session from the given messages.

        The title is derived from the first user message.

        Returns:
            The new session ID, or "" if messages is empty (nothing is stored)
        """

    @abstractmethod
    async def update_session(self, session_id: str, messages: list[Message]) -> None:
        """Replace a session's messages and bump its updated_at.

        Unknown session IDs are ignored.
        """

    @abstractmethod
    async def delete_session(self, session_id: str) -> None:
        """Delete a session by ID."""

    @abstractmethod
    async def get_session(self, session_id: str) -> ChatSession | None:
        """Get a session by ID."""

    @abstractmethod
    async def list_sessions(self) -> list[ChatSession]:
        """List all sessions, most recently updated first."""

    @abstractmethod
    async def subscribe_sessions(self, listener: Listener[list[ChatSession]]) -> Subscription:
        """Subscribe to the session list."""


class ScheduleStore(ABC):
    """Persisted schedule items."""

    @abstractmethod
    async def create_item(self, title: str, description: str, date_time: datetime) -> str:
        """Create a schedule item and return its ID."""

    @abstractmethod
    async def update_item(self, item: ScheduleItem) -> None:
        """Replace a schedule item. Unknown IDs are ignored."""

    @abstractmethod
    async def set_item_completed(self, item_id: str, completed: bool) -> None:
        """Mark a schedule item as completed or not completed."""

    @abstractmethod
    async def delete_item(self, item_id: str) -> None:
        """Delete a schedule item by ID."""

    @abstractmethod
    async def get_item(self, item_id: str) -> ScheduleItem | None:
        """Get a schedule item by ID."""

    @abstractmethod
    async def list_items(self) -> list[ScheduleItem]:
        """List all schedule items ordered by date_time ascending."""

    @abstractmethod
    async def list_upcoming(self, now: datetime | None = None) -> list[ScheduleItem]:
        """List items that are not completed and due at or after now."""

    @abstractmethod
    async def list_items_for_date(self, day: date) -> list[ScheduleItem]:
        """List items due on the given calendar day."""

    @abstractmethod
    async def subscribe_items(self, listener: Listener[list[ScheduleItem]]) -> Subscription:
        """Subscribe to the schedule list."""


class ProfileStore(ABC):
    """The singleton user profile."""

    @abstractmethod
    async def get_profile(self) -> UserProfile:
        """Get the profile, or a default profile if none is stored."""

    @abstractmethod
    async def create_profile_if_missing(self) -> None:
        """Store a default profile if none exists yet."""

    @abstractmethod
    async def update_profile(
        self,
        name: str,
        birthday: str,
        occupation: str,
        hobbies: str
    ) -> None:
        """Update the basic profile fields."""

    @abstractmethod
    async def set_preference(self, key: str, value: str) -> None:
        """Set one key in the preferences JSON."""

    async def get_preference(self, key: str, default: str = "") -> str:
        """Get one key from the preferences JSON."""
        profile = await self.get_profile()
        return profile.preference_map().get(key, default)

    @abstractmethod
    async def subscribe_profile(self, listener: Listener[UserProfile]) -> Subscription:
        """Subscribe to the profile."""


class AssistantStore(SessionStore, ScheduleStore, ProfileStore):
    """Combined store backend owned by the composition root.

    Supports async context manager protocol:
        async with store:
            await store.create_item(...)
    """

    @abstractmethod
    async def connect(self) -> None:
        """Initialize the backend."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the backend gracefully."""

    @property
    @abstractmethod
    def backend_type(self) -> str:
        """Get the backend type identifier."""

    async def __aenter__(self) -> "AssistantStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.disconnect()
