"""Observable state and live query subscriptions.

`LiveQuery` is the async side: a subscription to a store's table that yields
a complete snapshot after every committed write. `Observable` is the
thread-safe side: a single current value plus change callbacks, read by the
UI thread while a background loop keeps it up to date.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CLOSED = object()


class Observable(Generic[T]):
    """Current-value cache with change callbacks."""

    def __init__(self, initial: T) -> None:
        self._value = initial
        self._version = 0
        self._callbacks: list[Callable[[T], None]] = []
        self._cond = threading.Condition()

    @property
    def value(self) -> T:
        """The latest value."""
        with self._cond:
            return self._value

    @property
    def version(self) -> int:
        """Number of times the value has been set."""
        with self._cond:
            return self._version

    def set(self, value: T) -> None:
        """Replace the value, wake waiters, then notify callbacks."""
        with self._cond:
            self._value = value
            self._version += 1
            callbacks = list(self._callbacks)
            self._cond.notify_all()

        for callback in callbacks:
            try:
                callback(value)
            except Exception:
                logger.exception("Observer callback %r failed", callback)

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Register a change callback. Returns a function that unregisters it."""
        with self._cond:
            self._callbacks.append(callback)

        def unsubscribe() -> None:
            with self._cond:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return unsubscribe

    def wait_for(
        self, predicate: Callable[[T], bool], timeout: Optional[float] = None
    ) -> bool:
        """Block until predicate(value) holds. Returns False on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: predicate(self._value), timeout)

    def wait_for_change(self, version: int, timeout: Optional[float] = None) -> bool:
        """Block until the value has been set past `version`."""
        with self._cond:
            return self._cond.wait_for(lambda: self._version > version, timeout)


class LiveQuery(Generic[T]):
    """Async iterator over snapshots of a continuously updated query.

    The first iteration attaches to the source, which immediately offers
    the then-current snapshot. Later snapshots are offered after each write.
    Only the newest undelivered snapshot is kept.
    """

    def __init__(
        self,
        attach: Callable[["LiveQuery[T]"], Awaitable[None]],
        detach: Callable[["LiveQuery[T]"], None],
    ) -> None:
        self._attach = attach
        self._detach = detach
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=1)
        self._attached = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def offer(self, snapshot: T) -> None:
        """Queue a snapshot, replacing one the consumer has not taken yet."""
        if self._closed:
            return
        self._replace(snapshot)

    def _replace(self, item: Any) -> None:
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(item)

    async def aclose(self) -> None:
        """Detach from the source and end iteration."""
        if self._closed:
            return
        self._closed = True
        self._detach(self)
        self._replace(_CLOSED)

    def __aiter__(self) -> "LiveQuery[T]":
        return self

    async def __anext__(self) -> T:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        if not self._attached and not self._closed:
            await self._attach(self)
            self._attached = True
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> "LiveQuery[T]":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
