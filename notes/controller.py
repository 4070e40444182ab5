"""Controller between UI events and the note store.

All store work runs on an event loop in a daemon thread, so calls from the
UI thread return immediately. Results are never handed back directly: the
UI sees a change only when the store's live query re-emits and
`current_notes` is updated.

A store is bound to one event loop, so there is one loop thread per store
shared by every controller over it. The last controller to close shuts the
store and its loop down.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import Future
from typing import Any, Coroutine, Optional

from notes.database import NoteStore, Snapshot, get_store
from notes.live import Observable
from notes.models import Note

logger = logging.getLogger(__name__)

STARTUP_TIMEOUT = 10  # seconds
SHUTDOWN_TIMEOUT = 5  # seconds


class StoreLoop:
    """Event loop thread owning all work against one store."""

    def __init__(self, store: NoteStore) -> None:
        self.store = store
        self.loop = asyncio.new_event_loop()
        self.users = 0
        self._thread = threading.Thread(
            target=self.loop.run_forever, name="note-store", daemon=True
        )
        self._thread.start()

    @property
    def alive(self) -> bool:
        return self._thread.is_alive()

    def call(self, coro: Coroutine[Any, Any, Any]) -> Future:
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def shutdown(self) -> None:
        """Close the store if this loop opened it, then stop the loop."""
        if self.store.loop is self.loop:
            try:
                self.call(self.store.close()).result(timeout=SHUTDOWN_TIMEOUT)
            except Exception as e:
                logger.warning("Failed to close note store cleanly: %s", e)
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=SHUTDOWN_TIMEOUT)
        if not self._thread.is_alive():
            self.loop.close()


_loops: dict[NoteStore, StoreLoop] = {}
_loops_lock = threading.Lock()


def acquire_loop(store: NoteStore) -> StoreLoop:
    """Return the loop thread for `store`, starting it on first use."""
    with _loops_lock:
        runner = _loops.get(store)
        if runner is None:
            runner = _loops[store] = StoreLoop(store)
        runner.users += 1
        return runner


def release_loop(runner: StoreLoop) -> None:
    """Drop one user; the last one shuts the store and loop down."""
    with _loops_lock:
        runner.users -= 1
        if runner.users > 0:
            return
        _loops.pop(runner.store, None)
    runner.shutdown()


class NoteController:
    """Exposes the observable note list and fire-and-forget add/delete."""

    def __init__(self, store: Optional[NoteStore] = None) -> None:
        self._store = store or get_store()
        self.current_notes: Observable[Snapshot] = Observable(())
        self._runner: Optional[StoreLoop] = None
        self._sync_future: Optional[Future] = None
        self._closed = False

    @property
    def store(self) -> NoteStore:
        return self._store

    @property
    def running(self) -> bool:
        return self._runner is not None and self._runner.alive and not self._closed

    def start(self) -> "NoteController":
        """Open the store and begin mirroring its live query.

        Blocks until the store is open. Raises StoreUnavailableError when it
        cannot be opened.
        """
        if self._closed:
            raise RuntimeError("Controller is closed")
        if self._runner is not None:
            return self

        runner = acquire_loop(self._store)
        try:
            runner.call(self._store.initialize()).result(timeout=STARTUP_TIMEOUT)
        except Exception:
            self._closed = True
            release_loop(runner)
            raise
        self._runner = runner
        self._sync_future = runner.call(self._sync())
        logger.info("Controller started on %s", self._store.path)
        return self

    def add(self, raw_text: str) -> Optional[Future]:
        """Trim and insert a note in the background. Blank text is ignored."""
        if self._runner is None or self._closed:
            return None
        note_text = raw_text.strip() if isinstance(raw_text, str) else ""
        if not note_text:
            logger.debug("Ignoring blank note")
            return None
        return self._runner.call(
            self._guarded(self._store.insert(note_text), "add")
        )

    def delete(self, note: Note) -> Optional[Future]:
        """Delete a note in the background."""
        if self._runner is None or self._closed:
            return None
        return self._runner.call(self._guarded(self._store.delete(note.id), "delete"))

    def close(self) -> None:
        """Stop mirroring the live query and release the store loop."""
        if self._closed:
            return
        self._closed = True
        runner, self._runner = self._runner, None
        if runner is None:
            return

        if self._sync_future is not None:
            self._sync_future.cancel()
        release_loop(runner)
        logger.info("Controller stopped")

    def __enter__(self) -> "NoteController":
        return self.start()

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _sync(self) -> None:
        """Copy every live query snapshot into current_notes."""
        async with self._store.query_all() as live:
            async for snapshot in live:
                self.current_notes.set(snapshot)

    @staticmethod
    async def _guarded(coro: Coroutine[Any, Any, Any], action: str) -> Any:
        """Run a store write, logging failures instead of raising."""
        try:
            return await coro
        except Exception as e:
            logger.warning("Failed to %s note: %s", action, e)
            return None
