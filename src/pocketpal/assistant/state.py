"""Screen-facing state owned by the orchestrator.

All state models are frozen: every change produces a new instance, so
readers never observe a partially applied update.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ..storage.models import Message, ScheduleItem


class ChatUiState(BaseModel):
    """State of the conversation screen."""

    model_config = ConfigDict(frozen=True)

    messages: list[Message] = Field(default_factory=list)
    is_loading: bool = False
    input_enabled: bool = True
    error: str | None = None
    current_session_id: str | None = Field(
        default=None,
        description="Persisted session backing this conversation, if saved yet"
    )


class ProfileState(BaseModel):
    """State of the profile screen."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    birthday: str = ""
    occupation: str = ""
    hobbies: str = ""
    is_loading: bool = False
    error: str | None = None


class ScheduleState(BaseModel):
    """State of the schedule screen."""

    model_config = ConfigDict(frozen=True)

    items: list[ScheduleItem] = Field(default_factory=list)
    is_loading: bool = False
    error: str | None = None


class SendOutcome(str, Enum):
    """What happened to a submitted message."""

    IGNORED = "ignored"  # Blank input
    REJECTED = "rejected"  # Another message is still being sent
    LOCAL_COMMAND = "local_command"  # Handled by the command extractor
    REPLIED = "replied"  # Completion succeeded
    FAILED = "failed"  # Error recorded in state
    DISCARDED = "discarded"  # Conversation changed before the result arrived
