"""Conversation orchestration."""

from .orchestrator import ChatOrchestrator
from .state import ChatUiState, ProfileState, ScheduleState, SendOutcome

__all__ = [
    "ChatOrchestrator",
    "ChatUiState",
    "ProfileState",
    "ScheduleState",
    "SendOutcome",
]
