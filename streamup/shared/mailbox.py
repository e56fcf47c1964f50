"""Single-writer mailbox for one session's mutable state.

Producers (the realtime channel reader, timers, UI intents) never touch
session state directly; they post work items here and one worker task runs
them strictly in arrival order. Producers running on another thread use
``post_threadsafe``.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import inspect
from collections.abc import Callable
from typing import Any

from loguru import logger

_STOP = object()


def _consume_result(future: asyncio.Future) -> None:
    if not future.cancelled():
        future.exception()


class Mailbox:
    """Sequential executor backed by an ``asyncio.Queue`` and one worker task."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._queue: asyncio.Queue | None = None
        self._worker: asyncio.Task | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._closed = False

    @property
    def loop(self) -> asyncio.AbstractEventLoop | None:
        return self._loop

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        if self.running:
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._closed = False
        self._worker = asyncio.create_task(self._run(), name=f"mailbox:{self.name}")
        logger.debug("Mailbox started: {}", self.name)

    def post(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> asyncio.Future:
        """Enqueue ``fn(*args, **kwargs)`` from the loop thread.

        The returned future resolves with the item's result. Failures are
        logged by the worker whether or not anyone awaits the future.
        """
        if self._closed or self._loop is None or self._queue is None:
            raise RuntimeError(f"Mailbox {self.name} is not running")
        future = self._loop.create_future()
        future.add_done_callback(_consume_result)
        self._queue.put_nowait((fn, args, kwargs, future))
        return future

    def post_threadsafe(
        self, fn: Callable[..., Any], *args: Any, **kwargs: Any
    ) -> concurrent.futures.Future:
        """Enqueue from a foreign thread; returns a ``concurrent.futures.Future``."""
        if self._closed or self._loop is None:
            raise RuntimeError(f"Mailbox {self.name} is not running")
        return asyncio.run_coroutine_threadsafe(self.call(fn, *args, **kwargs), self._loop)

    async def call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Enqueue and wait for the result (exceptions propagate to the caller)."""
        return await self.post(fn, *args, **kwargs)

    async def drain(self) -> None:
        """Wait until everything posted so far has been processed."""
        if self.running:
            await self.call(lambda: None)

    async def close(self) -> None:
        """Process already-queued items, then stop the worker."""
        self._closed = True
        if not self.running or self._queue is None:
            return
        self._queue.put_nowait(_STOP)
        try:
            await self._worker
        finally:
            self._worker = None
        logger.debug("Mailbox closed: {}", self.name)

    async def _run(self) -> None:
        assert self._queue is not None
        while True:
            item = await self._queue.get()
            if item is _STOP:
                break
            fn, args, kwargs, future = item
            try:
                result = fn(*args, **kwargs)
                if inspect.isawaitable(result):
                    result = await result
            except asyncio.CancelledError:
                future.cancel()
                raise
            except Exception as exc:
                logger.opt(exception=exc).warning("Mailbox item failed: mailbox={}", self.name)
                if not future.done():
                    future.set_exception(exc)
            else:
                if not future.done():
                    future.set_result(result)
