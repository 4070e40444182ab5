"""SQLite-backed note store with live queries.

Uses SQLAlchemy async engine with the aiosqlite driver. Unlike optional
infrastructure, the store is required: failing to open it raises
StoreUnavailableError and the application does not start.

Writes are serialized by a lock. After each committed write a fresh,
complete snapshot is published to every attached live query.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from pathlib import Path
from typing import Any, Optional, Union

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from notes.config import settings
from notes.live import LiveQuery
from notes.metrics import LIVE_QUERIES, NOTE_WRITES, SNAPSHOTS_EMITTED, STORED_NOTES
from notes.models import Note, now_ms

logger = logging.getLogger(__name__)

Snapshot = tuple[Note, ...]

_CREATE_TABLE_STMTS = [
    """CREATE TABLE IF NOT EXISTS notes (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        text TEXT NOT NULL,
        created INTEGER NOT NULL
    )""",
    "CREATE INDEX IF NOT EXISTS idx_notes_created ON notes(created DESC, id DESC)",
]

_SELECT_ALL = "SELECT id, text, created FROM notes ORDER BY created DESC, id DESC"

# SQLite INTEGER is a signed 64-bit value
_MIN_ID = -(2**63)
_MAX_ID = 2**63 - 1


class NotesError(Exception):
    """Base error for the notes package."""


class StoreUnavailableError(NotesError):
    """The backing database could not be opened, or was used before opening."""


def _row_to_note(row: Any) -> Note:
    """Convert a result row to Note."""
    return Note(id=row[0], text=row[1], created=row[2])


def _encodable(value: str) -> bool:
    """SQLite stores UTF-8; lone surrogates cannot be written."""
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


class NoteStore:
    """Durable table of notes with a push-updating query."""

    def __init__(self, db_path: Union[str, Path]) -> None:
        self._path = Path(db_path)
        self._engine: Optional[AsyncEngine] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._init_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()
        self._live: set[LiveQuery[Snapshot]] = set()
        self._last_created = 0

    @property
    def path(self) -> Path:
        return self._path

    @property
    def loop(self) -> Optional[asyncio.AbstractEventLoop]:
        """The event loop the open store is bound to."""
        return self._loop

    @property
    def available(self) -> bool:
        """Whether the database has been opened."""
        return self._engine is not None

    async def initialize(self) -> "NoteStore":
        """Open the database file and create the schema if absent.

        Idempotent: once open, later calls return immediately. The store is
        bound to the calling event loop until it is closed.

        Raises:
            StoreUnavailableError: If the file or schema cannot be created.
        """
        async with self._init_lock:
            if self._engine is not None:
                self._check_loop()
                return self

            engine: Optional[AsyncEngine] = None
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                engine = create_async_engine(f"sqlite+aiosqlite:///{self._path}")
                async with engine.begin() as conn:
                    for stmt in _CREATE_TABLE_STMTS:
                        await conn.execute(text(stmt))
                    result = await conn.execute(
                        text("SELECT COALESCE(MAX(created), 0) FROM notes")
                    )
                    self._last_created = result.scalar_one()
            except (OSError, SQLAlchemyError) as e:
                logger.error("Cannot open notes database at %s: %s", self._path, e)
                if engine is not None:
                    await engine.dispose()
                raise StoreUnavailableError(
                    f"Cannot open notes database at {self._path}"
                ) from e

            self._engine = engine
            self._loop = asyncio.get_running_loop()
            logger.info("Notes database ready at %s", self._path)
            return self

    async def close(self) -> None:
        """End all live queries and dispose of the engine."""
        for live in list(self._live):
            await live.aclose()
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._loop = None
            self._init_lock = asyncio.Lock()
            self._write_lock = asyncio.Lock()
            logger.info("Notes database closed")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert(self, note_text: Any) -> Optional[Note]:
        """Persist a new note. Returns None if the text is blank or unstorable."""
        if (
            not isinstance(note_text, str)
            or not note_text.strip()
            or not _encodable(note_text)
        ):
            NOTE_WRITES.labels(operation="insert", status="rejected").inc()
            logger.debug("Rejected blank note text: %r", note_text)
            return None

        engine = self._require_engine()
        stripped = note_text.strip()

        async with self._write_lock:
            created = max(now_ms(), self._last_created)
            try:
                async with engine.begin() as conn:
                    result = await conn.execute(
                        text(
                            "INSERT INTO notes (text, created) "
                            "VALUES (:text, :created)"
                        ),
                        {"text": stripped, "created": created},
                    )
                    note_id = result.lastrowid
            except SQLAlchemyError:
                NOTE_WRITES.labels(operation="insert", status="error").inc()
                raise

            self._last_created = created
            NOTE_WRITES.labels(operation="insert", status="ok").inc()
            logger.info("Inserted note %s", note_id)
            await self._publish()

        return Note(id=note_id, text=stripped, created=created)

    async def delete(self, note_id: Any) -> bool:
        """Remove a note by id. Unknown or malformed ids are a no-op."""
        if (
            isinstance(note_id, bool)
            or not isinstance(note_id, int)
            or not _MIN_ID <= note_id <= _MAX_ID
        ):
            NOTE_WRITES.labels(operation="delete", status="rejected").inc()
            logger.debug("Rejected malformed note id: %r", note_id)
            return False

        engine = self._require_engine()

        async with self._write_lock:
            try:
                async with engine.begin() as conn:
                    result = await conn.execute(
                        text("DELETE FROM notes WHERE id = :id"), {"id": note_id}
                    )
                    removed = result.rowcount
            except SQLAlchemyError:
                NOTE_WRITES.labels(operation="delete", status="error").inc()
                raise

            if not removed:
                NOTE_WRITES.labels(operation="delete", status="missing").inc()
                logger.debug("Delete of missing note %s ignored", note_id)
                return False

            NOTE_WRITES.labels(operation="delete", status="ok").inc()
            logger.info("Deleted note %s", note_id)
            await self._publish()

        return True

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_all(self) -> Snapshot:
        """One-shot read of every note, newest first."""
        engine = self._require_engine()
        async with engine.connect() as conn:
            return await self._fetch_all(conn)

    async def count(self) -> int:
        """Number of stored notes."""
        engine = self._require_engine()
        async with engine.connect() as conn:
            result = await conn.execute(text("SELECT COUNT(*) FROM notes"))
            return result.scalar_one()

    def query_all(self) -> LiveQuery[Snapshot]:
        """Subscribe to the full ordered note list.

        The returned iterator yields the current snapshot first, then a new
        snapshot after every committed insert or delete, until closed.
        """
        return LiveQuery(self._attach, self._detach)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_engine(self) -> AsyncEngine:
        if self._engine is None:
            raise StoreUnavailableError("Notes database is not initialized")
        self._check_loop()
        return self._engine

    def _check_loop(self) -> None:
        if asyncio.get_running_loop() is not self._loop:
            raise StoreUnavailableError(
                "Notes database is bound to a different event loop"
            )

    @staticmethod
    async def _fetch_all(conn: AsyncConnection) -> Snapshot:
        result = await conn.execute(text(_SELECT_ALL))
        return tuple(_row_to_note(row) for row in result.fetchall())

    async def _attach(self, live: LiveQuery[Snapshot]) -> None:
        """Register a live query and hand it the current snapshot."""
        engine = self._require_engine()
        async with self._write_lock:
            async with engine.connect() as conn:
                snapshot = await self._fetch_all(conn)
            self._live.add(live)
            LIVE_QUERIES.set(len(self._live))
            STORED_NOTES.set(len(snapshot))
            live.offer(snapshot)
            SNAPSHOTS_EMITTED.inc()

    def _detach(self, live: LiveQuery[Snapshot]) -> None:
        self._live.discard(live)
        LIVE_QUERIES.set(len(self._live))

    async def _publish(self) -> None:
        """Send a fresh snapshot to every live query. Caller holds the write lock."""
        if not self._live:
            return
        async with self._require_engine().connect() as conn:
            snapshot = await self._fetch_all(conn)
        STORED_NOTES.set(len(snapshot))
        for live in list(self._live):
            live.offer(snapshot)
            SNAPSHOTS_EMITTED.inc()


# ---------------------------------------------------------------------------
# Process-wide handle
# ---------------------------------------------------------------------------

_store: Optional[NoteStore] = None
_store_lock = threading.Lock()


def get_store(db_path: Union[str, Path, None] = None) -> NoteStore:
    """Return the process-wide store, creating it on first call.

    The path is fixed by the first caller; later calls get the same handle.
    """
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                _store = NoteStore(db_path or settings.notes_db_path)
    return _store


async def close_store() -> None:
    """Close and forget the process-wide store."""
    global _store
    with _store_lock:
        store, _store = _store, None
    if store is not None:
        await store.close()
