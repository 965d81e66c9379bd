"""System context construction.

Builds the system-role prompt segment that is prepended to every
completion request, from the stored profile and upcoming schedule.
"""

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Protocol

from ..config import UPCOMING_ITEMS_LIMIT
from ..storage.models import ScheduleItem

BASE_CONTEXT = "You are a personal assistant chatbot. "


class ProfileFields(Protocol):
    """Profile attributes used in the system context."""

    name: str
    birthday: str
    occupation: str
    hobbies: str


def format_schedule_datetime(value: datetime) -> str:
    """Format a due time for display, e.g. "Mon, Jan 5, 2026 at 3:00 PM"."""
    hour = value.hour % 12 or 12
    meridiem = "AM" if value.hour < 12 else "PM"
    return f"{value:%a, %b} {value.day}, {value.year} at {hour}:{value.minute:02d} {meridiem}"


def select_upcoming(
    items: Iterable[ScheduleItem],
    now: datetime,
    limit: int = UPCOMING_ITEMS_LIMIT
) -> list[ScheduleItem]:
    """Pick the soonest pending items that are not in the past.

    Args:
        items: Schedule items in any order
        now: Reference time
        limit: Maximum number of items to return

    Returns:
        Up to limit items, ordered by date_time ascending
    """
    upcoming = [item for item in items if item.is_upcoming(now)]
    upcoming.sort(key=lambda item: item.date_time)
    return upcoming[:limit]


def build_user_context(profile: ProfileFields, upcoming_items: Sequence[ScheduleItem]) -> str:
    """Build the system context message.

    Profile clauses are appended only for non-blank fields, in a fixed
    order. Upcoming items are listed in the order given; the caller is
    expected to pass them date-ascending and already limited.

    Args:
        profile: Profile with name, occupation, birthday and hobbies
        upcoming_items: Upcoming schedule items

    Returns:
        The context string; just the base sentence when there is nothing
        to add
    """
    parts = [BASE_CONTEXT]

    if profile.name.strip():
        parts.append(f"The user's name is {profile.name}. ")
    if profile.occupation.strip():
        parts.append(f"They work as {profile.occupation}. ")
    if profile.birthday.strip():
        parts.append(f"Their birthday is {profile.birthday}. ")
    if profile.hobbies.strip():
        parts.append(f"Their interests include {profile.hobbies}. ")

    if upcoming_items:
        parts.append("\n\nUpcoming schedule: ")
        for item in upcoming_items:
            parts.append(f"\n- {item.title} on {format_schedule_datetime(item.date_time)}")

    return "".join(parts)
