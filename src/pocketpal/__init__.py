"""
PocketPal: a personal-assistant chat engine.

Conversations are augmented with the user's profile and upcoming schedule,
and reminder requests are parsed locally into schedule items without a
round-trip to the completion API.
"""

__version__ = "0.1.0"

from .assistant import ChatOrchestrator, SendOutcome
from .commands import ScheduleCommand, extract_schedule_command
from .llm import CompletionClient, create_completion_client
from .storage import AssistantStore, create_assistant_store

__all__ = [
    "ChatOrchestrator",
    "SendOutcome",
    "ScheduleCommand",
    "extract_schedule_command",
    "CompletionClient",
    "create_completion_client",
    "AssistantStore",
    "create_assistant_store",
]
