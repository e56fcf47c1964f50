"""Explicit observer registration for component notifications.

Components own an ``Observers`` instance and publish typed events on it.
Subscribers are plain callables (sync or async) invoked in registration
order, and ``publish`` returns only after every subscriber has run, so a
caller that awaits the publishing operation has observed its notifications.
Queue subscribers are available for consumers that prefer to pull.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from loguru import logger

EventT = TypeVar("EventT")

Listener = Callable[[EventT], Awaitable[None] | None]


class Observers(Generic[EventT]):
    """Ordered set of listeners for one component's events."""

    def __init__(self, name: str) -> None:
        self._name = name
        self._listeners: list[Listener] = []
        self._queues: list[asyncio.Queue[EventT]] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def stream(self, maxsize: int = 0) -> asyncio.Queue[EventT]:
        """Return a queue that receives every event published from now on."""
        queue: asyncio.Queue[EventT] = asyncio.Queue(maxsize=maxsize)
        self._queues.append(queue)
        return queue

    def close_stream(self, queue: asyncio.Queue[EventT]) -> None:
        if queue in self._queues:
            self._queues.remove(queue)

    async def publish(self, event: EventT) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                logger.opt(exception=exc).error(
                    "Listener failed: observers={} event={}", self._name, type(event).__name__
                )

        for queue in list(self._queues):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(
                    "Dropping event for full subscriber queue: observers={} event={}",
                    self._name,
                    type(event).__name__,
                )

    def __len__(self) -> int:
        return len(self._listeners) + len(self._queues)
