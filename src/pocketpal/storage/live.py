"""Live query subscriptions.

Stores expose their queries as push-based subscriptions: after every
write, each active subscriber receives the fresh query result.
"""

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], Awaitable[None] | None]


class Subscription:
    """Handle returned by a subscribe call.

    Calling unsubscribe() more than once is harmless.
    """

    def __init__(self, on_cancel: Callable[[], None]):
        self._on_cancel = on_cancel
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if self._active:
            self._active = False
            self._on_cancel()


class LiveQuery(Generic[T]):
    """A query whose result is pushed to subscribers on every change.

    Args:
        query: Coroutine function producing the current result
        name: Name used in log messages
    """

    def __init__(self, query: Callable[[], Awaitable[T]], name: str):
        self._query = query
        self._name = name
        self._listeners: dict[int, Listener[T]] = {}
        self._next_key = 0

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners)

    async def subscribe(self, listener: Listener[T]) -> Subscription:
        """Register a listener and push the current result to it once.

        Nothing is registered if the initial query raises.
        """
        result = await self._query()
        key = self._next_key
        self._next_key += 1
        self._listeners[key] = listener
        await self._deliver(listener, result)
        return Subscription(lambda: self._listeners.pop(key, None))

    async def notify(self) -> None:
        """Re-run the query and push the result to every subscriber."""
        if not self._listeners:
            return
        result = await self._query()
        for listener in list(self._listeners.values()):
            await self._deliver(listener, result)

    async def _deliver(self, listener: Listener[T], result: Any) -> None:
        try:
            outcome = listener(result)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.exception("Subscriber of %s failed", self._name)
