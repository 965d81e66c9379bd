"""SQLite store backend.

Provides persistent storage of sessions, schedule items and the user
profile using a SQLite database file. Uses aiosqlite for async access.
"""

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta
from pathlib import Path

import aiosqlite
from pydantic import ValidationError

from ..errors import PersistenceError
from .base import AssistantStore
from .live import Listener, LiveQuery, Subscription
from .models import ChatSession, Message, ScheduleItem, UserProfile, derive_session_title, new_id

logger = logging.getLogger(__name__)

_PROFILE_ID = 1  # Single profile per installation


class SQLiteAssistantStore(AssistantStore):
    """SQLite-backed assistant store.

    Messages of a session are stored as one JSON document per session,
    replaced wholesale on update.
    """

    def __init__(self, path: str | Path = "./pocketpal.db"):
        self._db_path = Path(path)
        self._connection: aiosqlite.Connection | None = None
        self._sessions_query = LiveQuery(self.list_sessions, "sessions")
        self._items_query = LiveQuery(self.list_items, "schedule items")
        self._profile_query = LiveQuery(self.get_profile, "profile")

    async def connect(self) -> None:
        """Open the database connection and create the schema."""
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = await aiosqlite.connect(self._db_path)
            await self._create_schema()
        except (OSError, aiosqlite.Error) as e:
            raise PersistenceError(e) from e
        logger.debug("Connected to %s", self._db_path)

    async def _create_schema(self) -> None:
        """Create database tables."""
        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS chat_sessions (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                messages TEXT NOT NULL DEFAULT '[]',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS schedule_items (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                date_time TEXT NOT NULL,
                is_completed INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL
            )
        """)

        await self._connection.execute("""
            CREATE INDEX IF NOT EXISTS idx_schedule_items_date_time
            ON schedule_items(date_time)
        """)

        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS user_profile (
                id INTEGER PRIMARY KEY,
                name TEXT NOT NULL DEFAULT '',
                birthday TEXT NOT NULL DEFAULT '',
                occupation TEXT NOT NULL DEFAULT '',
                hobbies TEXT NOT NULL DEFAULT '',
                preferences TEXT NOT NULL DEFAULT '',
                last_updated TEXT NOT NULL
            )
        """)

        await self._connection.commit()

    async def disconnect(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    @asynccontextmanager
    async def _db(self) -> AsyncIterator[aiosqlite.Connection]:
        """Yield the open connection, wrapping database faults."""
        if self._connection is None:
            raise PersistenceError("Store is not connected")
        try:
            yield self._connection
        except (aiosqlite.Error, ValidationError, ValueError) as e:
            raise PersistenceError(e) from e

    # Sessions

    async def create_session(self, messages: list[Message]) -> str:
        if not messages:
            return ""
        now = datetime.now()
        session_id = new_id()
        async with self._db() as db:
            await db.execute(
                """
                INSERT INTO chat_sessions (id, title, messages, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    session_id,
                    derive_session_title(messages, now),
                    _dump_messages(messages),
                    now.isoformat(),
                    now.isoformat(),
                )
            )
            await db.commit()
        logger.debug("Created session %s", session_id)
        await self._sessions_query.notify()
        return session_id

    async def update_session(self, session_id: str, messages: list[Message]) -> None:
        async with self._db() as db:
            cursor = await db.execute(
                "UPDATE chat_sessions SET messages = ?, updated_at = ? WHERE id = ?",
                (_dump_messages(messages), datetime.now().isoformat(), session_id)
            )
            await db.commit()
            changed = cursor.rowcount
        if changed:
            await self._sessions_query.notify()

    async def delete_session(self, session_id: str) -> None:
        async with self._db() as db:
            cursor = await db.execute("DELETE FROM chat_sessions WHERE id = ?", (session_id,))
            await db.commit()
            changed = cursor.rowcount
        if changed:
            await self._sessions_query.notify()

    async def get_session(self, session_id: str) -> ChatSession | None:
        async with self._db() as db:
            async with db.execute(
                """
                SELECT id, title, messages, created_at, updated_at
                FROM chat_sessions WHERE id = ?
                """,
                (session_id,)
            ) as cursor:
                row = await cursor.fetchone()
            return _row_to_session(row) if row else None

    async def list_sessions(self) -> list[ChatSession]:
        async with self._db() as db:
            async with db.execute(
                """
                SELECT id, title, messages, created_at, updated_at
                FROM chat_sessions
                ORDER BY updated_at DESC
                """
            ) as cursor:
                rows = await cursor.fetchall()
            return [_row_to_session(row) for row in rows]

    async def subscribe_sessions(self, listener: Listener[list[ChatSession]]) -> Subscription:
        return await self._sessions_query.subscribe(listener)

    # Schedule

    async def create_item(self, title: str, description: str, date_time: datetime) -> str:
        item = ScheduleItem(title=title, description=description, date_time=date_time)
        async with self._db() as db:
            await db.execute(
                """
                INSERT INTO schedule_items
                (id, title, description, date_time, is_completed, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    item.id,
                    item.title,
                    item.description,
                    item.date_time.isoformat(),
                    int(item.is_completed),
                    item.created_at.isoformat(),
                )
            )
            await db.commit()
        logger.debug("Created schedule item %s at %s", item.id, date_time)
        await self._items_query.notify()
        return item.id

    async def update_item(self, item: ScheduleItem) -> None:
        async with self._db() as db:
            cursor = await db.execute(
                """
                UPDATE schedule_items
                SET title = ?, description = ?, date_time = ?, is_completed = ?
                WHERE id = ?
                """,
                (
                    item.title,
                    item.description,
                    item.date_time.isoformat(),
                    int(item.is_completed),
                    item.id,
                )
            )
            await db.commit()
            changed = cursor.rowcount
        if changed:
            await self._items_query.notify()

    async def set_item_completed(self, item_id: str, completed: bool) -> None:
        async with self._db() as db:
            cursor = await db.execute(
                "UPDATE schedule_items SET is_completed = ? WHERE id = ?",
                (int(completed), item_id)
            )
            await db.commit()
            changed = cursor.rowcount
        if changed:
            await self._items_query.notify()

    async def delete_item(self, item_id: str) -> None:
        async with self._db() as db:
            cursor = await db.execute("DELETE FROM schedule_items WHERE id = ?", (item_id,))
            await db.commit()
            changed = cursor.rowcount
        if changed:
            await self._items_query.notify()

    async def get_item(self, item_id: str) -> ScheduleItem | None:
        rows = await self._select_items("WHERE id = ?", (item_id,))
        return rows[0] if rows else None

    async def list_items(self) -> list[ScheduleItem]:
        return await self._select_items("", ())

    async def list_upcoming(self, now: datetime | None = None) -> list[ScheduleItem]:
        now = now or datetime.now()
        return await self._select_items(
            "WHERE is_completed = 0 AND date_time >= ?",
            (now.isoformat(),)
        )

    async def list_items_for_date(self, day: date) -> list[ScheduleItem]:
        start = datetime.combine(day, datetime.min.time())
        end = start + timedelta(days=1)
        return await self._select_items(
            "WHERE date_time >= ? AND date_time < ?",
            (start.isoformat(), end.isoformat())
        )

    async def _select_items(self, where: str, params: tuple) -> list[ScheduleItem]:
        async with self._db() as db:
            async with db.execute(
                f"""
                SELECT id, title, description, date_time, is_completed, created_at
                FROM schedule_items
                {where}
                ORDER BY date_time ASC
                """,
                params
            ) as cursor:
                rows = await cursor.fetchall()
            return [
                ScheduleItem(
                    id=item_id,
                    title=title,
                    description=description,
                    date_time=datetime.fromisoformat(date_time),
                    is_completed=bool(is_completed),
                    created_at=datetime.fromisoformat(created_at),
                )
                for item_id, title, description, date_time, is_completed, created_at in rows
            ]

    async def subscribe_items(self, listener: Listener[list[ScheduleItem]]) -> Subscription:
        return await self._items_query.subscribe(listener)

    # Profile

    async def get_profile(self) -> UserProfile:
        async with self._db() as db:
            async with db.execute(
                """
                SELECT name, birthday, occupation, hobbies, preferences, last_updated
                FROM user_profile WHERE id = ?
                """,
                (_PROFILE_ID,)
            ) as cursor:
                row = await cursor.fetchone()
            if row is None:
                return UserProfile()
            name, birthday, occupation, hobbies, preferences, last_updated = row
            return UserProfile(
                name=name,
                birthday=birthday,
                occupation=occupation,
                hobbies=hobbies,
                preferences=preferences,
                last_updated=datetime.fromisoformat(last_updated),
            )

    async def create_profile_if_missing(self) -> None:
        async with self._db() as db:
            cursor = await db.execute(
                "INSERT OR IGNORE INTO user_profile (id, last_updated) VALUES (?, ?)",
                (_PROFILE_ID, datetime.now().isoformat())
            )
            await db.commit()
            changed = cursor.rowcount
        if changed:
            await self._profile_query.notify()

    async def update_profile(
        self,
        name: str,
        birthday: str,
        occupation: str,
        hobbies: str
    ) -> None:
        async with self._db() as db:
            await db.execute(
                """
                INSERT INTO user_profile (id, name, birthday, occupation, hobbies, last_updated)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    birthday = excluded.birthday,
                    occupation = excluded.occupation,
                    hobbies = excluded.hobbies,
                    last_updated = excluded.last_updated
                """,
                (_PROFILE_ID, name, birthday, occupation, hobbies, datetime.now().isoformat())
            )
            await db.commit()
        await self._profile_query.notify()

    async def set_preference(self, key: str, value: str) -> None:
        profile = (await self.get_profile()).with_preference(key, value)
        async with self._db() as db:
            await db.execute(
                """
                INSERT INTO user_profile (id, preferences, last_updated)
                VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    preferences = excluded.preferences,
                    last_updated = excluded.last_updated
                """,
                (_PROFILE_ID, profile.preferences, profile.last_updated.isoformat())
            )
            await db.commit()
        await self._profile_query.notify()

    async def subscribe_profile(self, listener: Listener[UserProfile]) -> Subscription:
        return await self._profile_query.subscribe(listener)

    @property
    def backend_type(self) -> str:
        return "sqlite"

    @property
    def db_path(self) -> Path:
        return self._db_path


def _dump_messages(messages: list[Message]) -> str:
    return json.dumps([message.model_dump() for message in messages])


def _row_to_session(row: tuple) -> ChatSession:
    session_id, title, messages_json, created_at, updated_at = row
    return ChatSession(
        id=session_id,
        title=title,
        messages=[Message.model_validate(m) for m in json.loads(messages_json)],
        created_at=datetime.fromisoformat(created_at),
        updated_at=datetime.fromisoformat(updated_at),
    )
