"""Conversation orchestrator.

Owns the in-memory conversation state and decides, for every user
message, whether it is a local schedule command or a chat message for the
completion API. Results are reconciled into state and persisted sessions.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from ..commands import ScheduleCommand, extract_schedule_command
from ..config import UPCOMING_ITEMS_LIMIT
from ..context import build_user_context, format_schedule_datetime, select_upcoming
from ..errors import PersistenceError, TransportError
from ..integrations import CalendarSink, CredentialStore, NullCalendarSink
from ..llm import CompletionClient, CompletionResult
from ..storage import (
    AssistantStore,
    ChatSession,
    LiveQuery,
    Message,
    ScheduleItem,
    Subscription,
    UserProfile,
)
from ..storage.live import Listener
from .state import ChatUiState, ProfileState, ScheduleState, SendOutcome

logger = logging.getLogger(__name__)


class ChatOrchestrator:
    """Central state machine of a conversation.

    Hidden design decisions:
    - Local command detection before any network call
    - System context assembly from profile and upcoming schedule
    - When conversations are persisted (after each successful exchange)
    - Single in-flight message per conversation; results that arrive after
      the user switched conversations are dropped

    States: Idle (input enabled) -> Sending (loading, input disabled) -> Idle.

    Usage:
        async with ChatOrchestrator(store, client, calendar, credentials) as chat:
            outcome = await chat.send_message("remind me to call mom at 3pm tomorrow")
            print(chat.ui_state.messages)
    """

    def __init__(
        self,
        store: AssistantStore,
        completion_client: CompletionClient,
        calendar: CalendarSink | None = None,
        credentials: CredentialStore | None = None,
        clock: Callable[[], datetime] = datetime.now,
        upcoming_limit: int = UPCOMING_ITEMS_LIMIT
    ):
        """Initialize the orchestrator.

        Args:
            store: Store for sessions, schedule items and the profile
            completion_client: Client for the chat completion API
            calendar: Calendar sink for new schedule items (default: none)
            credentials: Source of the API key, read on start()
            clock: Current local time provider
            upcoming_limit: Upcoming items included in the system context
        """
        self._store = store
        self._completion = completion_client
        self._calendar = calendar or NullCalendarSink()
        self._credentials = credentials
        self._clock = clock
        self._upcoming_limit = upcoming_limit

        self._api_key = ""
        self._ui_state = ChatUiState()
        self._profile_state = ProfileState()
        self._schedule_state = ScheduleState()
        self._sessions: list[ChatSession] = []
        self._subscriptions: list[Subscription] = []
        self._ui_query = LiveQuery(self._current_ui_state, "chat state")

        # Bumped whenever the active conversation is replaced
        self._conversation_epoch = 0
        self._in_flight_epoch: int | None = None

    # Lifecycle

    async def start(self) -> None:
        """Read the API key, ensure the profile exists and subscribe to the store."""
        if self._credentials is not None:
            self._api_key = self._credentials.get()

        try:
            await self._store.create_profile_if_missing()
        except PersistenceError as e:
            logger.error("Failed to create user profile: %s", e)
            self._profile_state = self._profile_state.model_copy(update={"error": str(e)})

        self._subscriptions = [
            await self._store.subscribe_sessions(self._on_sessions),
            await self._store.subscribe_profile(self._on_profile),
            await self._store.subscribe_items(self._on_items),
        ]

    async def close(self) -> None:
        """Unsubscribe from the store."""
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []

    async def __aenter__(self) -> "ChatOrchestrator":
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # State access

    @property
    def ui_state(self) -> ChatUiState:
        return self._ui_state

    @property
    def profile_state(self) -> ProfileState:
        return self._profile_state

    @property
    def schedule_state(self) -> ScheduleState:
        return self._schedule_state

    @property
    def chat_history(self) -> list[ChatSession]:
        """Saved sessions, most recently updated first."""
        return self._sessions

    @property
    def current_session_id(self) -> str | None:
        return self._ui_state.current_session_id

    @property
    def is_sending(self) -> bool:
        return self._in_flight_epoch == self._conversation_epoch

    async def subscribe_state(self, listener: Listener[ChatUiState]) -> Subscription:
        """Receive every new conversation state, starting with the current one."""
        return await self._ui_query.subscribe(listener)

    # Messages

    async def send_message(self, content: str) -> SendOutcome:
        """Handle a message submitted by the user.

        Schedule requests are handled locally without any network call.
        Everything else goes to the completion API with the profile and
        upcoming schedule as system context.

        Args:
            content: Raw user input

        Returns:
            SendOutcome describing how the message was handled
        """
        if not content.strip():
            return SendOutcome.IGNORED
        if self.is_sending:
            logger.info("Rejected message while another one is in flight")
            return SendOutcome.REJECTED

        epoch = self._conversation_epoch
        self._in_flight_epoch = epoch
        try:
            command = extract_schedule_command(content, now=self._clock())
            if command is not None:
                return await self._run_local_command(command, epoch)
            return await self._run_completion(content, epoch)
        finally:
            if self._in_flight_epoch == epoch:
                self._in_flight_epoch = None

    async def _run_local_command(self, command: ScheduleCommand, epoch: int) -> SendOutcome:
        logger.info("Creating schedule item %r at %s", command.title, command.date_time)
        item_id = await self._create_schedule_item(command.title, command.description, command.date_time)
        if item_id is None:
            return SendOutcome.FAILED

        if epoch != self._conversation_epoch:
            logger.info("Conversation changed; not echoing schedule confirmation")
            return SendOutcome.DISCARDED

        confirmation = (
            f'I\'ve added "{command.title}" to your schedule for '
            f"{format_schedule_datetime(command.date_time)}."
        )
        await self._update_ui(messages=[
            *self._ui_state.messages,
            Message(content=command.source_text, is_user_message=True),
            Message(content=confirmation, is_user_message=False),
        ])
        await self.save_current_chat()
        return SendOutcome.LOCAL_COMMAND

    async def _run_completion(self, content: str, epoch: int) -> SendOutcome:
        history = list(self._ui_state.messages)
        await self._update_ui(
            messages=[*history, Message(content=content, is_user_message=True)],
            is_loading=True,
            input_enabled=False,
            error=None,
        )

        # Every failure past this point must land back in Idle with an error
        try:
            context = await self._build_context()
            result = await self._completion.complete(
                api_key=self._api_key,
                history=history,
                new_message=content,
                system_context=context,
            )
        except Exception as e:
            logger.exception("Failed to get a reply")
            result = CompletionResult.failure(TransportError(e))

        if epoch != self._conversation_epoch:
            logger.info("Conversation changed while waiting for a reply; discarding it")
            return SendOutcome.DISCARDED

        if result.ok:
            await self._update_ui(
                messages=[*self._ui_state.messages, result.message],
                is_loading=False,
                input_enabled=True,
                error=None,
            )
            await self.save_current_chat()
            return SendOutcome.REPLIED

        await self._update_ui(
            is_loading=False,
            input_enabled=True,
            error=str(result.error) or "Unknown error occurred",
        )
        return SendOutcome.FAILED

    async def _build_context(self) -> str:
        """Build the system context from the latest stored profile and schedule."""
        now = self._clock()
        try:
            profile = await self._store.get_profile()
            items = await self._store.list_upcoming(now)
        except PersistenceError as e:
            logger.warning("Using cached profile and schedule for context: %s", e)
            profile = self._profile_state
            items = self._schedule_state.items
        return build_user_context(profile, select_upcoming(items, now, self._upcoming_limit))

    async def clear_error(self) -> None:
        """Clear the conversation error."""
        await self._update_ui(error=None)

    # Sessions

    async def create_new_chat(self) -> None:
        """Start an empty, unsaved conversation."""
        self._conversation_epoch += 1
        self._ui_state = ChatUiState()
        await self._ui_query.notify()

    async def load_chat_session(self, session_id: str) -> bool:
        """Replace the conversation with a saved session.

        Returns:
            True if the session was found and loaded
        """
        try:
            session = await self._store.get_session(session_id)
        except PersistenceError as e:
            await self._update_ui(error=str(e))
            return False

        if session is None:
            return False

        self._conversation_epoch += 1
        self._ui_state = ChatUiState(
            messages=list(session.messages),
            current_session_id=session.id,
        )
        await self._ui_query.notify()
        return True

    async def save_current_chat(self) -> None:
        """Persist the conversation, creating a session on first save."""
        messages = list(self._ui_state.messages)
        if not messages:
            return

        epoch = self._conversation_epoch
        session_id = self._ui_state.current_session_id
        try:
            if session_id is None:
                new_session_id = await self._store.create_session(messages)
                if epoch == self._conversation_epoch:
                    await self._update_ui(current_session_id=new_session_id)
            else:
                await self._store.update_session(session_id, messages)
        except PersistenceError as e:
            logger.error("Failed to save chat session: %s", e)
            if epoch == self._conversation_epoch:
                await self._update_ui(error=str(e))

    async def delete_chat_session(self, session_id: str) -> None:
        """Delete a saved session; deleting the active one starts a new chat."""
        try:
            await self._store.delete_session(session_id)
        except PersistenceError as e:
            await self._update_ui(error=str(e))
            return

        if session_id == self._ui_state.current_session_id:
            await self.create_new_chat()

    # Profile

    async def update_profile(self, name: str, birthday: str, occupation: str, hobbies: str) -> None:
        """Update the basic profile fields."""
        try:
            await self._store.update_profile(
                name=name,
                birthday=birthday,
                occupation=occupation,
                hobbies=hobbies,
            )
        except PersistenceError as e:
            self._profile_state = self._profile_state.model_copy(update={"error": str(e)})
            return

        self._profile_state = self._profile_state.model_copy(update={
            "name": name,
            "birthday": birthday,
            "occupation": occupation,
            "hobbies": hobbies,
            "error": None,
        })

    async def set_user_preference(self, key: str, value: str) -> None:
        try:
            await self._store.set_preference(key, value)
        except PersistenceError as e:
            self._profile_state = self._profile_state.model_copy(update={"error": str(e)})

    async def get_user_preference(self, key: str, default: str = "") -> str:
        try:
            return await self._store.get_preference(key, default)
        except PersistenceError as e:
            self._profile_state = self._profile_state.model_copy(update={"error": str(e)})
            return default

    # Schedule

    async def add_schedule_item(self, title: str, description: str, date_time: datetime) -> str | None:
        """Add a schedule item and mirror it to the calendar.

        Returns:
            The new item ID, or None if it could not be stored
        """
        return await self._create_schedule_item(title, description, date_time)

    async def delete_schedule_item(self, item_id: str) -> None:
        try:
            await self._store.delete_item(item_id)
        except PersistenceError as e:
            self._schedule_state = self._schedule_state.model_copy(update={"error": str(e)})

    async def mark_schedule_item_completed(self, item_id: str, completed: bool) -> None:
        try:
            await self._store.set_item_completed(item_id, completed)
        except PersistenceError as e:
            logger.error("Failed to update schedule item %s: %s", item_id, e)
            self._schedule_state = self._schedule_state.model_copy(update={"error": str(e)})

    def has_calendar_permission(self) -> bool:
        return self._calendar.has_permission()

    async def _create_schedule_item(self, title: str, description: str, date_time: datetime) -> str | None:
        try:
            item_id = await self._store.create_item(title, description, date_time)
        except PersistenceError as e:
            logger.error("Error creating schedule item: %s", e)
            self._schedule_state = self._schedule_state.model_copy(update={"error": str(e)})
            return None

        await self._add_to_calendar(title, description, date_time)

        # Read back our own write
        try:
            items = await self._store.list_items()
        except PersistenceError as e:
            self._schedule_state = self._schedule_state.model_copy(update={"error": str(e)})
        else:
            self._schedule_state = self._schedule_state.model_copy(
                update={"items": items, "error": None}
            )
        return item_id

    async def _add_to_calendar(self, title: str, description: str, start: datetime) -> None:
        if not self._calendar.has_permission():
            logger.warning("Calendar permissions not granted")
            return
        try:
            added = await self._calendar.add_event(title, description, start)
        except Exception:
            logger.exception("Calendar sink raised while adding %r", title)
            return
        if added:
            logger.info("Event added to calendar")
        else:
            logger.warning("Failed to add event to calendar")

    # Store subscriptions

    async def _current_ui_state(self) -> ChatUiState:
        return self._ui_state

    async def _update_ui(self, **changes: Any) -> None:
        self._ui_state = self._ui_state.model_copy(update=changes)
        await self._ui_query.notify()

    def _on_sessions(self, sessions: list[ChatSession]) -> None:
        self._sessions = sessions

    def _on_profile(self, profile: UserProfile) -> None:
        self._profile_state = self._profile_state.model_copy(update={
            "name": profile.name,
            "birthday": profile.birthday,
            "occupation": profile.occupation,
            "hobbies": profile.hobbies,
        })

    def _on_items(self, items: list[ScheduleItem]) -> None:
        self._schedule_state = self._schedule_state.model_copy(update={"items": items})
