"""Unit tests for the conversation orchestrator."""
import asyncio
from collections.abc import Sequence
from datetime import datetime, timedelta

import pytest

from pocketpal.assistant import ChatOrchestrator, ChatUiState, SendOutcome
from pocketpal.context import BASE_CONTEXT
from pocketpal.errors import ApiError, PersistenceError
from pocketpal.integrations import CalendarSink, InMemoryCredentialStore
from pocketpal.llm import CompletionClient, CompletionResult
from pocketpal.storage import Message
from pocketpal.storage.in_memory import InMemoryAssistantStore


class FakeCompletionClient(CompletionClient):
    """Completion client that records calls and answers from its settings."""

    def __init__(self):
        self.calls: list[dict] = []
        self.reply = "Sure thing!"
        self.error = None
        self.raises: Exception | None = None
        self.gate: asyncio.Event | None = None

    async def complete(
        self,
        api_key: str,
        history: Sequence[Message],
        new_message: str,
        system_context: str | None = None
    ) -> CompletionResult:
        self.calls.append({
            "api_key": api_key,
            "history": list(history),
            "new_message": new_message,
            "system_context": system_context,
        })
        gate = self.gate
        if gate is not None:
            await gate.wait()
        if self.raises is not None:
            raise self.raises
        if self.error is not None:
            return CompletionResult.failure(self.error)
        return CompletionResult.success(Message(content=self.reply, is_user_message=False))

    async def close(self) -> None:
        pass


class RecordingCalendar(CalendarSink):
    """Calendar that remembers the events it was given."""

    def __init__(self, permitted: bool = True):
        self.permitted = permitted
        self.events: list[tuple[str, datetime]] = []

    def has_permission(self) -> bool:
        return self.permitted

    async def add_event(self, title, description, start, end=None) -> bool:
        self.events.append((title, start))
        return True


class FailingItemStore(InMemoryAssistantStore):
    async def create_item(self, title, description, date_time):
        raise PersistenceError("disk full")


class FailingSessionStore(InMemoryAssistantStore):
    async def create_session(self, messages):
        raise PersistenceError("database is locked")


class FlakyItemStore(InMemoryAssistantStore):
    """Fails the first item write, then recovers."""

    def __init__(self):
        super().__init__()
        self.failures_left = 1

    async def create_item(self, title, description, date_time):
        if self.failures_left:
            self.failures_left -= 1
            raise PersistenceError("disk full")
        return await super().create_item(title, description, date_time)


class BrokenProfileStore(InMemoryAssistantStore):
    """Profile reads blow up with a non-persistence error once broken is set."""

    broken = False

    async def get_profile(self):
        if self.broken:
            raise RuntimeError("profile row is unreadable")
        return await super().get_profile()


@pytest.fixture
def client():
    return FakeCompletionClient()


@pytest.fixture
def calendar():
    return RecordingCalendar()


@pytest.fixture
async def assistant(memory_store, client, calendar, now):
    async with ChatOrchestrator(
        memory_store,
        client,
        calendar=calendar,
        credentials=InMemoryCredentialStore("sk-test"),
        clock=lambda: now
    ) as orchestrator:
        yield orchestrator


async def _wait_for_call(client: FakeCompletionClient, count: int = 1) -> None:
    while len(client.calls) < count:
        await asyncio.sleep(0)


class TestLocalCommands:
    """Schedule requests handled without the completion API."""

    @pytest.mark.asyncio
    async def test_reminder_creates_item_without_remote_call(self, assistant, client, calendar, memory_store):
        outcome = await assistant.send_message("remind me to call mom at 3pm tomorrow")

        assert outcome == SendOutcome.LOCAL_COMMAND
        assert client.calls == []

        messages = assistant.ui_state.messages
        assert [m.is_user_message for m in messages] == [True, False]
        assert messages[0].content == "remind me to call mom at 3pm tomorrow"
        assert messages[1].content == (
            'I\'ve added "call mom" to your schedule for Wed, Mar 11, 2026 at 3:00 PM.'
        )

        items = await memory_store.list_items()
        assert [(i.title, i.date_time) for i in items] == [("call mom", datetime(2026, 3, 11, 15, 0))]
        assert [i.title for i in assistant.schedule_state.items] == ["call mom"]
        assert calendar.events == [("call mom", datetime(2026, 3, 11, 15, 0))]

        sessions = await memory_store.list_sessions()
        assert len(sessions) == 1
        assert assistant.current_session_id == sessions[0].id

    @pytest.mark.asyncio
    async def test_calendar_without_permission_is_skipped(self, memory_store, client, now):
        calendar = RecordingCalendar(permitted=False)

        async with ChatOrchestrator(memory_store, client, calendar=calendar, clock=lambda: now) as assistant:
            outcome = await assistant.send_message("remind me to call mom at 3pm tomorrow")

            assert outcome == SendOutcome.LOCAL_COMMAND
            assert calendar.events == []
            assert len(await memory_store.list_items()) == 1
            assert not assistant.has_calendar_permission()

    @pytest.mark.asyncio
    async def test_store_failure_surfaces_in_schedule_state(self, client, now):
        store = FailingItemStore()

        async with ChatOrchestrator(store, client, clock=lambda: now) as assistant:
            outcome = await assistant.send_message("remind me to call mom at 3pm tomorrow")

            assert outcome == SendOutcome.FAILED
            assert assistant.schedule_state.error == "disk full"
            assert assistant.ui_state.messages == []
            assert client.calls == []

    @pytest.mark.asyncio
    async def test_unparseable_reminder_goes_to_completion(self, assistant, client):
        outcome = await assistant.send_message("remind me to buy milk")

        assert outcome == SendOutcome.REPLIED
        assert len(client.calls) == 1


class TestCompletion:
    """Chat messages answered by the completion API."""

    @pytest.mark.asyncio
    async def test_first_exchange_creates_session(self, assistant, client, memory_store):
        outcome = await assistant.send_message("Hello")

        assert outcome == SendOutcome.REPLIED
        assert client.calls == [{
            "api_key": "sk-test",
            "history": [],
            "new_message": "Hello",
            "system_context": BASE_CONTEXT,
        }]

        state = assistant.ui_state
        assert [(m.content, m.is_user_message) for m in state.messages] == [
            ("Hello", True),
            ("Sure thing!", False),
        ]
        assert not state.is_loading
        assert state.input_enabled
        assert state.error is None

        sessions = await memory_store.list_sessions()
        assert [s.title for s in sessions] == ["Hello"]
        assert state.current_session_id == sessions[0].id

    @pytest.mark.asyncio
    async def test_later_exchange_updates_session(self, assistant, client, memory_store):
        await assistant.send_message("Hello")
        await assistant.send_message("How are you?")

        second_call = client.calls[1]
        assert [m.content for m in second_call["history"]] == ["Hello", "Sure thing!"]
        assert second_call["new_message"] == "How are you?"

        sessions = await memory_store.list_sessions()
        assert len(sessions) == 1
        assert len(sessions[0].messages) == 4

    @pytest.mark.asyncio
    async def test_context_uses_profile_and_upcoming_schedule(self, assistant, client, now):
        await assistant.update_profile(name="Ada", birthday="", occupation="an engineer", hobbies="")
        await assistant.add_schedule_item("Dentist", "", now + timedelta(days=1))
        await assistant.add_schedule_item("Old thing", "", now - timedelta(days=1))

        await assistant.send_message("What should I do today?")

        context = client.calls[0]["system_context"]
        assert context == (
            "You are a personal assistant chatbot. The user's name is Ada. "
            "They work as an engineer. "
            "\n\nUpcoming schedule: "
            "\n- Dentist on Wed, Mar 11, 2026 at 9:00 AM"
        )

    @pytest.mark.asyncio
    async def test_failure_keeps_message_and_skips_persistence(self, assistant, client, memory_store):
        client.error = ApiError(500, "boom")

        outcome = await assistant.send_message("Hello")

        assert outcome == SendOutcome.FAILED
        state = assistant.ui_state
        assert [m.content for m in state.messages] == ["Hello"]
        assert state.error == "API Error: 500 - boom"
        assert not state.is_loading
        assert state.input_enabled
        assert state.current_session_id is None
        assert await memory_store.list_sessions() == []

        await assistant.clear_error()
        assert assistant.ui_state.error is None

    @pytest.mark.asyncio
    async def test_raising_client_is_reported_as_failure(self, assistant, client):
        client.raises = ConnectionError("network unreachable")

        outcome = await assistant.send_message("Hello")

        assert outcome == SendOutcome.FAILED
        assert assistant.ui_state.error == "network unreachable"

    @pytest.mark.asyncio
    async def test_blank_message_is_ignored(self, assistant, client):
        assert await assistant.send_message("   ") == SendOutcome.IGNORED
        assert client.calls == []
        assert assistant.ui_state.messages == []

    @pytest.mark.asyncio
    async def test_missing_credentials_send_blank_key(self, memory_store, client, now):
        async with ChatOrchestrator(memory_store, client, clock=lambda: now) as assistant:
            await assistant.send_message("Hello")

        assert client.calls[0]["api_key"] == ""

    @pytest.mark.asyncio
    async def test_session_save_failure_surfaces_in_state(self, client, now):
        async with ChatOrchestrator(FailingSessionStore(), client, clock=lambda: now) as assistant:
            outcome = await assistant.send_message("Hello")

            assert outcome == SendOutcome.REPLIED
            assert assistant.ui_state.error == "database is locked"
            assert assistant.ui_state.current_session_id is None

    @pytest.mark.asyncio
    async def test_unexpected_context_error_returns_to_idle(self, client, now):
        store = BrokenProfileStore()
        async with ChatOrchestrator(store, client, clock=lambda: now) as assistant:
            store.broken = True

            outcome = await assistant.send_message("hello there")

            assert outcome == SendOutcome.FAILED
            assert client.calls == []
            assert not assistant.ui_state.is_loading
            assert assistant.ui_state.input_enabled
            assert assistant.ui_state.error == "profile row is unreadable"
            assert assistant.ui_state.messages[-1].content == "hello there"
            assert not assistant.is_sending


class TestConcurrency:
    """Single in-flight message and conversation switches."""

    @pytest.mark.asyncio
    async def test_second_send_is_rejected_while_in_flight(self, assistant, client):
        client.gate = asyncio.Event()
        first = asyncio.create_task(assistant.send_message("first"))
        await _wait_for_call(client)

        assert assistant.is_sending
        assert assistant.ui_state.is_loading
        assert not assistant.ui_state.input_enabled
        assert await assistant.send_message("second") == SendOutcome.REJECTED

        client.gate.set()
        assert await first == SendOutcome.REPLIED
        assert len(client.calls) == 1
        assert not assistant.is_sending

    @pytest.mark.asyncio
    async def test_reply_for_abandoned_conversation_is_discarded(self, assistant, client, memory_store):
        gate = asyncio.Event()
        client.gate = gate
        stale = asyncio.create_task(assistant.send_message("old question"))
        await _wait_for_call(client)

        await assistant.create_new_chat()
        client.gate = None
        assert not assistant.is_sending
        assert await assistant.send_message("new question") == SendOutcome.REPLIED

        gate.set()
        assert await stale == SendOutcome.DISCARDED

        assert [m.content for m in assistant.ui_state.messages] == ["new question", "Sure thing!"]
        sessions = await memory_store.list_sessions()
        assert [s.title for s in sessions] == ["new question"]


class TestSessions:
    """Loading, creating and deleting conversations."""

    @pytest.mark.asyncio
    async def test_load_saved_session(self, assistant):
        await assistant.send_message("Hello")
        session_id = assistant.current_session_id
        await assistant.create_new_chat()

        assert assistant.ui_state == ChatUiState()
        assert await assistant.load_chat_session(session_id)
        assert assistant.current_session_id == session_id
        assert [m.content for m in assistant.ui_state.messages] == ["Hello", "Sure thing!"]

    @pytest.mark.asyncio
    async def test_load_unknown_session(self, assistant):
        await assistant.send_message("Hello")

        assert not await assistant.load_chat_session("missing")
        assert len(assistant.ui_state.messages) == 2

    @pytest.mark.asyncio
    async def test_deleting_active_session_starts_new_chat(self, assistant, memory_store):
        await assistant.send_message("Hello")

        await assistant.delete_chat_session(assistant.current_session_id)

        assert assistant.ui_state == ChatUiState()
        assert await memory_store.list_sessions() == []

    @pytest.mark.asyncio
    async def test_deleting_other_session_keeps_conversation(self, assistant):
        await assistant.send_message("First conversation")
        other = assistant.current_session_id
        await assistant.create_new_chat()
        await assistant.send_message("Second conversation")

        await assistant.delete_chat_session(other)

        assert [m.content for m in assistant.ui_state.messages] == ["Second conversation", "Sure thing!"]
        assert [s.title for s in assistant.chat_history] == ["Second conversation"]

    @pytest.mark.asyncio
    async def test_chat_history_follows_store(self, assistant):
        assert assistant.chat_history == []

        await assistant.send_message("Hello")

        assert [s.title for s in assistant.chat_history] == ["Hello"]

    @pytest.mark.asyncio
    async def test_state_subscribers_see_sending_state(self, assistant):
        states: list[ChatUiState] = []
        subscription = await assistant.subscribe_state(states.append)

        await assistant.send_message("Hello")
        subscription.unsubscribe()

        assert states[0] == ChatUiState()
        assert any(s.is_loading and not s.input_enabled for s in states)
        assert states[-1].messages == assistant.ui_state.messages
        assert not states[-1].is_loading


class TestProfileAndSchedule:
    """Profile and schedule operations."""

    @pytest.mark.asyncio
    async def test_profile_created_on_start(self, assistant, memory_store):
        assert await memory_store.get_profile() is not None
        assert assistant.profile_state.name == ""

    @pytest.mark.asyncio
    async def test_update_profile(self, assistant, memory_store):
        await assistant.update_profile(name="Ada", birthday="Dec 10", occupation="", hobbies="chess")

        assert assistant.profile_state.name == "Ada"
        assert assistant.profile_state.hobbies == "chess"
        assert (await memory_store.get_profile()).birthday == "Dec 10"

    @pytest.mark.asyncio
    async def test_preferences(self, assistant):
        await assistant.set_user_preference("units", "metric")

        assert await assistant.get_user_preference("units") == "metric"
        assert await assistant.get_user_preference("tone", "casual") == "casual"

    @pytest.mark.asyncio
    async def test_add_complete_and_delete_item(self, assistant, calendar, now):
        item_id = await assistant.add_schedule_item("Dentist", "checkup", now + timedelta(days=1))

        assert item_id is not None
        assert calendar.events == [("Dentist", now + timedelta(days=1))]
        assert [i.id for i in assistant.schedule_state.items] == [item_id]

        await assistant.mark_schedule_item_completed(item_id, True)
        assert assistant.schedule_state.items[0].is_completed

        await assistant.delete_schedule_item(item_id)
        assert assistant.schedule_state.items == []

    @pytest.mark.asyncio
    async def test_add_item_failure(self, client, now):
        async with ChatOrchestrator(FailingItemStore(), client, clock=lambda: now) as assistant:
            assert await assistant.add_schedule_item("Dentist", "", now) is None
            assert assistant.schedule_state.error == "disk full"

    @pytest.mark.asyncio
    async def test_successful_add_clears_previous_error(self, client, now):
        async with ChatOrchestrator(FlakyItemStore(), client, clock=lambda: now) as assistant:
            assert await assistant.add_schedule_item("Dentist", "", now) is None
            assert assistant.schedule_state.error == "disk full"

            assert await assistant.add_schedule_item("Dentist", "", now) is not None
            assert assistant.schedule_state.error is None
            assert [item.title for item in assistant.schedule_state.items] == ["Dentist"]
