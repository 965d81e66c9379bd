"""Side-effect collaborators: calendar sinks and credential stores."""

from .calendar import CalendarSink, IcsCalendarSink, NullCalendarSink
from .credentials import CredentialStore, DotenvCredentialStore, InMemoryCredentialStore

__all__ = [
    "CalendarSink",
    "IcsCalendarSink",
    "NullCalendarSink",
    "CredentialStore",
    "DotenvCredentialStore",
    "InMemoryCredentialStore",
]
