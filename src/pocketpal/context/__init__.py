"""System context built from the user's profile and schedule."""

from .builder import BASE_CONTEXT, build_user_context, format_schedule_datetime, select_upcoming

__all__ = [
    "BASE_CONTEXT",
    "build_user_context",
    "format_schedule_datetime",
    "select_upcoming",
]
