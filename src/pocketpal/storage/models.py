"""Data models for the storage layer.

These models define the persisted records (messages, chat sessions,
schedule items, user profile), independent of the storage backend used.
"""

import json
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from uuid_extensions import uuid7

from ..config import NEW_CHAT_TITLE_PREFIX, SESSION_TITLE_MAX_CHARS


def new_id() -> str:
    """Generate a time-ordered record identifier."""
    return str(uuid7())


class Message(BaseModel):
    """A single chat message. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    content: str = Field(description="Message text")
    is_user_message: bool = Field(description="True if sent by the user, False if by the assistant")
    timestamp: datetime = Field(default_factory=datetime.now)

    @field_serializer("timestamp")
    def serialize_datetime(self, value: datetime) -> str:
        """Serialize datetime to ISO format."""
        return value.isoformat()


class ChatSession(BaseModel):
    """A persisted, titled, linear conversation."""

    id: str = Field(default_factory=new_id)
    title: str
    messages: list[Message] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @field_serializer("created_at", "updated_at")
    def serialize_datetime(self, value: datetime) -> str:
        """Serialize datetime to ISO format."""
        return value.isoformat()


class ScheduleItem(BaseModel):
    """A titled, timestamped, completable reminder or task."""

    id: str = Field(default_factory=new_id)
    title: str
    description: str = ""
    date_time: datetime = Field(description="When the item is due; sole ordering key")
    is_completed: bool = False
    created_at: datetime = Field(default_factory=datetime.now)

    def is_upcoming(self, now: datetime) -> bool:
        """Check if the item is still pending and not in the past."""
        return not self.is_completed and self.date_time >= now

    @field_serializer("date_time", "created_at")
    def serialize_datetime(self, value: datetime) -> str:
        """Serialize datetime to ISO format."""
        return value.isoformat()


class UserProfile(BaseModel):
    """The singleton user profile.

    Preferences are kept as a JSON object string so that arbitrary
    key/value pairs can be stored without schema changes.
    """

    name: str = ""
    birthday: str = ""
    occupation: str = ""
    hobbies: str = ""
    preferences: str = ""
    last_updated: datetime = Field(default_factory=datetime.now)

    def preference_map(self) -> dict[str, str]:
        """Decode the preferences JSON, treating malformed data as empty."""
        if not self.preferences:
            return {}
        try:
            decoded = json.loads(self.preferences)
        except ValueError:
            return {}
        if not isinstance(decoded, dict):
            return {}
        return {str(k): str(v) for k, v in decoded.items()}

    def with_preference(self, key: str, value: str) -> "UserProfile":
        """Return a copy of the profile with one preference set."""
        prefs = self.preference_map()
        prefs[key] = value
        return self.model_copy(update={
            "preferences": json.dumps(prefs),
            "last_updated": datetime.now(),
        })

    @field_serializer("last_updated")
    def serialize_datetime(self, value: datetime) -> str:
        """Serialize datetime to ISO format."""
        return value.isoformat()


def derive_session_title(messages: list[Message], now: datetime | None = None) -> str:
    """Derive a session title from the first user message.

    Args:
        messages: Conversation messages in append order
        now: Timestamp used for the fallback title

    Returns:
        The first user message, cut to 30 characters plus "..." if longer,
        or "New Chat <timestamp>" when there is no user message
    """
    first_user = next((m for m in messages if m.is_user_message), None)
    if first_user is None:
        stamp = (now or datetime.now()).strftime("%Y-%m-%d %H:%M")
        return f"{NEW_CHAT_TITLE_PREFIX} {stamp}"

    content = first_user.content
    if len(content) > SESSION_TITLE_MAX_CHARS:
        return f"{content[:SESSION_TITLE_MAX_CHARS]}..."
    return content
