"""Event bus for graph change notifications.

Graph writes call ``emit`` from whatever thread holds the writer, so
async handlers cannot simply be awaited there. A coroutine returned by a
handler is scheduled on the loop running in the emitting thread, else on
the loop the handler was subscribed from, else run to completion on a
private loop. ``drain()`` waits for scheduled handlers to finish.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import inspect
import logging
import time
from collections import defaultdict
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class EventType(StrEnum):
    ENTITY_UPSERTED = "entity_upserted"
    ENTITY_REMOVED = "entity_removed"
    RELATION_ADDED = "relation_added"
    RELATION_REMOVED = "relation_removed"
    RELATION_REJECTED = "relation_rejected"
    BATCH_APPLIED = "batch_applied"
    INDICATORS_PURGED = "indicators_purged"


@dataclass
class Event:
    """A single graph change notification."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.monotonic)


class EventBus:
    """Pub/sub for graph events, delivering to sync and async handlers alike."""

    def __init__(self) -> None:
        self._subscribers: dict[EventType, list[Callable]] = defaultdict(list)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._pending: set[asyncio.Future | concurrent.futures.Future] = set()

    def subscribe(self, event_type: EventType, handler: Callable[[Event], Any]) -> None:
        """Register a handler for an event type.

        Subscribing a coroutine function from inside a running loop binds
        that loop as the home for handlers emitted from other threads.
        """
        self._subscribers[event_type].append(handler)
        if inspect.iscoroutinefunction(handler):
            try:
                self._loop = asyncio.get_running_loop()
            except RuntimeError:
                pass

    def unsubscribe(self, event_type: EventType, handler: Callable[[Event], Any]) -> bool:
        handlers = self._subscribers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    def emit(self, event: Event) -> None:
        """Deliver an event; sync handlers run inline, async ones are scheduled."""
        for handler in list(self._subscribers.get(event.type, [])):
            try:
                result = handler(event)
            except Exception:
                logger.exception("Error in event handler for %s", event.type)
                continue
            if inspect.iscoroutine(result):
                self._schedule(result, event)

    async def emit_async(self, event: Event) -> None:
        """Deliver an event, awaiting async handlers in subscription order."""
        for handler in list(self._subscribers.get(event.type, [])):
            try:
                result = handler(event)
                if inspect.iscoroutine(result):
                    await result
            except Exception:
                logger.exception("Error in async event handler for %s", event.type)

    async def drain(self) -> None:
        """Wait until every handler scheduled by ``emit`` so far has finished."""
        while self._pending:
            pending = list(self._pending)
            await asyncio.gather(*(
                asyncio.wrap_future(f) if isinstance(f, concurrent.futures.Future) else f
                for f in pending
            ))
            self._pending.difference_update(pending)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def _schedule(self, coro: Coroutine[Any, Any, Any], event: Event) -> None:
        guarded = self._guard(coro, event)
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is not None:
            future: asyncio.Future | concurrent.futures.Future = running.create_task(guarded)
        elif self._loop is not None and self._loop.is_running():
            future = asyncio.run_coroutine_threadsafe(guarded, self._loop)
        else:
            asyncio.run(guarded)
            return
        self._pending.add(future)
        future.add_done_callback(self._pending.discard)

    @staticmethod
    async def _guard(coro: Coroutine[Any, Any, Any], event: Event) -> None:
        try:
            await coro
        except Exception:
            logger.exception("Error in async event handler for %s", event.type)
