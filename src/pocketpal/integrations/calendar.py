"""Calendar sinks.

Schedule items are mirrored into an external calendar on a best-effort
basis: a sink reports failure by returning False and never raises.
"""

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from pathlib import Path

from ..config import DEFAULT_EVENT_DURATION_MINUTES, DEFAULT_REMINDER_MINUTES
from ..errors import CalendarWriteFailure
from ..storage.models import new_id

logger = logging.getLogger(__name__)


class CalendarSink(ABC):
    """Abstract calendar the assistant can add events to."""

    @abstractmethod
    def has_permission(self) -> bool:
        """Check whether events can currently be written."""

    @abstractmethod
    async def add_event(
        self,
        title: str,
        description: str,
        start: datetime,
        end: datetime | None = None
    ) -> bool:
        """Add an event; end defaults to one hour after start.

        Returns:
            True if the event was written
        """


class NullCalendarSink(CalendarSink):
    """Calendar that is never writable."""

    def has_permission(self) -> bool:
        return False

    async def add_event(
        self,
        title: str,
        description: str,
        start: datetime,
        end: datetime | None = None
    ) -> bool:
        return False


class IcsCalendarSink(CalendarSink):
    """Appends events to a local iCalendar (.ics) file.

    The file can be subscribed to or imported by desktop calendar apps.
    Each event carries a display alarm reminder_minutes before the start.
    """

    def __init__(self, path: str | Path, reminder_minutes: int = DEFAULT_REMINDER_MINUTES):
        self._path = Path(path)
        self._reminder_minutes = reminder_minutes
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def has_permission(self) -> bool:
        if self._path.exists():
            return os.access(self._path, os.W_OK)
        parent = self._path.parent
        while not parent.exists() and parent != parent.parent:
            parent = parent.parent
        return os.access(parent, os.W_OK)

    async def add_event(
        self,
        title: str,
        description: str,
        start: datetime,
        end: datetime | None = None
    ) -> bool:
        if not self.has_permission():
            logger.warning("Calendar file %s is not writable", self._path)
            return False

        end = end or start + timedelta(minutes=DEFAULT_EVENT_DURATION_MINUTES)
        event = self._render_event(title, description, start, end)

        try:
            async with self._lock:
                await asyncio.to_thread(self._append_event, event)
        except (OSError, CalendarWriteFailure) as e:
            logger.warning("Failed to add event to calendar: %s", e)
            return False

        logger.debug("Event %r added to %s", title, self._path)
        return True

    def _render_event(self, title: str, description: str, start: datetime, end: datetime) -> list[str]:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        return [
            "BEGIN:VEVENT",
            f"UID:{new_id()}@pocketpal",
            f"DTSTAMP:{stamp}",
            f"DTSTART:{_format_local(start)}",
            f"DTEND:{_format_local(end)}",
            f"SUMMARY:{_escape(title)}",
            f"DESCRIPTION:{_escape(description)}",
            "TRANSP:OPAQUE",
            "BEGIN:VALARM",
            "ACTION:DISPLAY",
            f"DESCRIPTION:{_escape(title)}",
            f"TRIGGER:-PT{self._reminder_minutes}M",
            "END:VALARM",
            "END:VEVENT",
        ]

    def _append_event(self, event: list[str]) -> None:
        if self._path.exists():
            lines = self._path.read_text(encoding="utf-8").splitlines()
            if not lines or lines[-1] != "END:VCALENDAR":
                raise CalendarWriteFailure(f"{self._path} is not an iCalendar file")
            lines = lines[:-1] + event + ["END:VCALENDAR"]
        else:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            lines = [
                "BEGIN:VCALENDAR",
                "VERSION:2.0",
                "PRODID:-//pocketpal//schedule//EN",
                *event,
                "END:VCALENDAR",
            ]
        self._path.write_text("\r\n".join(lines) + "\r\n", encoding="utf-8")


def _format_local(value: datetime) -> str:
    # Floating local time, matching how schedule items are stored
    return value.strftime("%Y%m%dT%H%M%S")


def _escape(text: str) -> str:
    return (
        text.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\n", "\\n")
    )
