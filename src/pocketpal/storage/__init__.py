"""Persistence layer for sessions, schedule items and the user profile."""

from .base import AssistantStore, ProfileStore, ScheduleStore, SessionStore
from .factory import create_assistant_store
from .live import LiveQuery, Subscription
from .models import ChatSession, Message, ScheduleItem, UserProfile, derive_session_title

__all__ = [
    "AssistantStore",
    "ProfileStore",
    "ScheduleStore",
    "SessionStore",
    "create_assistant_store",
    "LiveQuery",
    "Subscription",
    "ChatSession",
    "Message",
    "ScheduleItem",
    "UserProfile",
    "derive_session_title",
]
