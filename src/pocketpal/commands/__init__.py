"""Local command parsing.

Recognizes schedule and reminder requests in user input so they can be
handled without a round-trip to the completion API.
"""

from .extractor import extract_schedule_command, is_schedule_intent
from .models import ScheduleCommand

__all__ = [
    "ScheduleCommand",
    "extract_schedule_command",
    "is_schedule_intent",
]
