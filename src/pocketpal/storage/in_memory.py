"""In-memory store backend.

Simple dict-based storage for session-only use.
Data is lost when the application exits.
"""

import logging
from datetime import date, datetime, timedelta

from .base import AssistantStore
from .live import Listener, LiveQuery, Subscription
from .models import ChatSession, Message, ScheduleItem, UserProfile, derive_session_title, new_id

logger = logging.getLogger(__name__)


class InMemoryAssistantStore(AssistantStore):
    """In-memory assistant store (session-only).

    Suitable for single-session use or testing.
    """

    def __init__(self):
        self._sessions: dict[str, ChatSession] = {}
        self._items: dict[str, ScheduleItem] = {}
        self._profile: UserProfile | None = None
        self._sessions_query = LiveQuery(self.list_sessions, "sessions")
        self._items_query = LiveQuery(self.list_items, "schedule items")
        self._profile_query = LiveQuery(self.get_profile, "profile")

    async def connect(self) -> None:
        """Initialize memory (no-op for in-memory)."""
        pass

    async def disconnect(self) -> None:
        """Close memory (no-op for in-memory)."""
        pass

    # Sessions

    async def create_session(self, messages: list[Message]) -> str:
        if not messages:
            return ""
        now = datetime.now()
        session = ChatSession(
            id=new_id(),
            title=derive_session_title(messages, now),
            messages=list(messages),
            created_at=now,
            updated_at=now,
        )
        self._sessions[session.id] = session
        logger.debug("Created session %s", session.id)
        await self._sessions_query.notify()
        return session.id

    async def update_session(self, session_id: str, messages: list[Message]) -> None:
        existing = self._sessions.get(session_id)
        if existing is None:
            return
        self._sessions[session_id] = existing.model_copy(update={
            "messages": list(messages),
            "updated_at": datetime.now(),
        })
        await self._sessions_query.notify()

    async def delete_session(self, session_id: str) -> None:
        if self._sessions.pop(session_id, None) is not None:
            await self._sessions_query.notify()

    async def get_session(self, session_id: str) -> ChatSession | None:
        return self._sessions.get(session_id)

    async def list_sessions(self) -> list[ChatSession]:
        return sorted(self._sessions.values(), key=lambda s: s.updated_at, reverse=True)

    async def subscribe_sessions(self, listener: Listener[list[ChatSession]]) -> Subscription:
        return await self._sessions_query.subscribe(listener)

    # Schedule

    async def create_item(self, title: str, description: str, date_time: datetime) -> str:
        item = ScheduleItem(title=title, description=description, date_time=date_time)
        self._items[item.id] = item
        logger.debug("Created schedule item %s at %s", item.id, date_time)
        await self._items_query.notify()
        return item.id

    async def update_item(self, item: ScheduleItem) -> None:
        if item.id not in self._items:
            return
        self._items[item.id] = item
        await self._items_query.notify()

    async def set_item_completed(self, item_id: str, completed: bool) -> None:
        existing = self._items.get(item_id)
        if existing is None:
            return
        self._items[item_id] = existing.model_copy(update={"is_completed": completed})
        await self._items_query.notify()

    async def delete_item(self, item_id: str) -> None:
        if self._items.pop(item_id, None) is not None:
            await self._items_query.notify()

    async def get_item(self, item_id: str) -> ScheduleItem | None:
        return self._items.get(item_id)

    async def list_items(self) -> list[ScheduleItem]:
        return sorted(self._items.values(), key=lambda i: i.date_time)

    async def list_upcoming(self, now: datetime | None = None) -> list[ScheduleItem]:
        now = now or datetime.now()
        return [item for item in await self.list_items() if item.is_upcoming(now)]

    async def list_items_for_date(self, day: date) -> list[ScheduleItem]:
        start = datetime.combine(day, datetime.min.time())
        end = start + timedelta(days=1)
        return [item for item in await self.list_items() if start <= item.date_time < end]

    async def subscribe_items(self, listener: Listener[list[ScheduleItem]]) -> Subscription:
        return await self._items_query.subscribe(listener)

    # Profile

    async def get_profile(self) -> UserProfile:
        return self._profile or UserProfile()

    async def create_profile_if_missing(self) -> None:
        if self._profile is None:
            self._profile = UserProfile()
            await self._profile_query.notify()

    async def update_profile(
        self,
        name: str,
        birthday: str,
        occupation: str,
        hobbies: str
    ) -> None:
        current = await self.get_profile()
        self._profile = current.model_copy(update={
            "name": name,
            "birthday": birthday,
            "occupation": occupation,
            "hobbies": hobbies,
            "last_updated": datetime.now(),
        })
        await self._profile_query.notify()

    async def set_preference(self, key: str, value: str) -> None:
        current = await self.get_profile()
        self._profile = current.with_preference(key, value)
        await self._profile_query.notify()

    async def subscribe_profile(self, listener: Listener[UserProfile]) -> Subscription:
        return await self._profile_query.subscribe(listener)

    @property
    def backend_type(self) -> str:
        return "memory"
