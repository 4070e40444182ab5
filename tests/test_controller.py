"""Tests for notes.controller — background writes mirrored into observable state.

These run synchronously, the way the UI thread uses the controller: calls
return immediately and results are observed through `current_notes`.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from notes.controller import NoteController
from notes.database import NoteStore, StoreUnavailableError
from notes.models import Note

TIMEOUT = 5  # seconds


@pytest.fixture()
def controller(tmp_path: Path):
    """A started controller over a temp SQLite file."""
    c = NoteController(NoteStore(tmp_path / "notes.db")).start()
    # Wait for the live query's first (empty) snapshot.
    assert c.current_notes.wait_for_change(0, timeout=TIMEOUT)
    yield c
    c.close()


def _wait_len(controller: NoteController, n: int) -> tuple[Note, ...]:
    assert controller.current_notes.wait_for(lambda notes: len(notes) == n, TIMEOUT)
    return controller.current_notes.value


def _texts(notes) -> list[str]:
    return [n.text for n in notes]


class TestLifecycle:
    def test_initial_value_is_empty(self, tmp_path: Path):
        c = NoteController(NoteStore(tmp_path / "notes.db"))
        assert c.current_notes.value == ()
        assert c.running is False

    def test_start_opens_store(self, controller: NoteController):
        assert controller.running is True
        assert controller.store.available is True
        assert controller.current_notes.value == ()

    def test_start_twice_is_noop(self, controller: NoteController):
        assert controller.start() is controller

    def test_start_failure_propagates(self, tmp_path: Path):
        c = NoteController(NoteStore(tmp_path / "notes.db"))
        with patch(
            "notes.database.create_async_engine",
            side_effect=SQLAlchemyError("cannot open"),
        ):
            with pytest.raises(StoreUnavailableError):
                c.start()
        assert c.running is False

    def test_existing_notes_appear_on_start(self, tmp_path: Path):
        path = tmp_path / "notes.db"
        with NoteController(NoteStore(path)) as first:
            first.add("kept")
            _wait_len(first, 1)

        with NoteController(NoteStore(path)) as second:
            assert _texts(_wait_len(second, 1)) == ["kept"]

    def test_close_releases_live_query_and_store(self, tmp_path: Path):
        store = NoteStore(tmp_path / "notes.db")
        c = NoteController(store).start()
        c.current_notes.wait_for_change(0, timeout=TIMEOUT)

        c.close()

        assert c.running is False
        assert store.available is False
        assert len(store._live) == 0

    def test_close_twice(self, controller: NoteController):
        controller.close()
        controller.close()

    def test_calls_after_close_are_ignored(self, controller: NoteController):
        controller.close()
        assert controller.add("late") is None
        assert controller.delete(Note(id=1, text="x", created=0)) is None

    def test_restart_after_close_rejected(self, controller: NoteController):
        controller.close()
        with pytest.raises(RuntimeError):
            controller.start()


class TestAdd:
    def test_add_then_list(self, controller: NoteController):
        future = controller.add("Buy milk")
        assert future is not None

        notes = _wait_len(controller, 1)

        assert notes[0].text == "Buy milk"
        assert notes[0].id >= 1

    def test_add_trims(self, controller: NoteController):
        controller.add("   hello   ")
        assert _texts(_wait_len(controller, 1)) == ["hello"]

    @pytest.mark.parametrize("blank", ["", "   ", "\n\t"])
    def test_blank_is_never_scheduled(self, controller: NoteController, blank):
        version = controller.current_notes.version

        assert controller.add(blank) is None

        assert controller.current_notes.wait_for_change(version, 0.2) is False
        assert controller.current_notes.value == ()

    def test_add_returns_without_waiting(self, controller: NoteController):
        """The call hands work to the background loop and returns a future."""
        future = controller.add("async")
        assert future.result(timeout=TIMEOUT).text == "async"

    def test_write_failure_is_absorbed(self, controller: NoteController):
        with patch.object(
            controller.store,
            "insert",
            AsyncMock(side_effect=SQLAlchemyError("disk full")),
        ):
            future = controller.add("lost")
            assert future.result(timeout=TIMEOUT) is None

        assert controller.current_notes.value == ()

    def test_rapid_adds_keep_issue_order(self, controller: NoteController):
        for i in range(10):
            controller.add(f"n{i}")

        notes = _wait_len(controller, 10)

        assert _texts(notes) == [f"n{i}" for i in reversed(range(10))]
        assert len({n.id for n in notes}) == 10


class TestDelete:
    def test_delete_removes_exactly_one(self, controller: NoteController):
        for t in ("one", "two", "three"):
            controller.add(t)
        notes = _wait_len(controller, 3)
        two = next(n for n in notes if n.text == "two")

        controller.delete(two)

        remaining = _wait_len(controller, 2)
        assert {n.id for n in remaining} == {n.id for n in notes} - {two.id}

    def test_delete_missing_is_noop(self, controller: NoteController):
        controller.add("one")
        before = _wait_len(controller, 1)

        future = controller.delete(Note(id=999, text="ghost", created=0))

        assert future.result(timeout=TIMEOUT) is False
        assert controller.current_notes.value == before


class TestScenario:
    def test_add_three_delete_middle(self, controller: NoteController):
        controller.add("a")
        controller.add("b")
        controller.add("c")
        notes = _wait_len(controller, 3)
        assert _texts(notes) == ["c", "b", "a"]

        controller.delete(notes[1])

        assert _texts(_wait_len(controller, 2)) == ["c", "a"]

    def test_every_snapshot_is_ordered(self, controller: NoteController):
        seen: list[tuple[Note, ...]] = []
        unsubscribe = controller.current_notes.subscribe(seen.append)
        try:
            for i in range(5):
                controller.add(f"n{i}")
            _wait_len(controller, 5)
        finally:
            unsubscribe()

        assert seen
        for snapshot in seen:
            created = [n.created for n in snapshot]
            assert created == sorted(created, reverse=True)


class TestSharedStore:
    """Several controllers over the process-wide store share one loop."""

    def test_interleaved_adds_from_two_controllers(self, tmp_path: Path):
        store = NoteStore(tmp_path / "notes.db")
        first = NoteController(store).start()
        second = NoteController(store).start()
        try:
            futures = [
                (first if i % 2 else second).add(f"n{i}") for i in range(30)
            ]

            results = [f.result(timeout=TIMEOUT) for f in futures]

            assert all(r is not None for r in results)
            assert len(_wait_len(first, 30)) == 30
            assert len(_wait_len(second, 30)) == 30
            assert _texts(first.current_notes.value) == [
                f"n{i}" for i in reversed(range(30))
            ]
        finally:
            first.close()
            second.close()

    def test_closing_one_keeps_the_other_working(self, tmp_path: Path):
        store = NoteStore(tmp_path / "notes.db")
        first = NoteController(store).start()
        second = NoteController(store).start()
        try:
            first.close()

            assert store.available is True
            assert second.add("still here").result(timeout=TIMEOUT) is not None
            assert _texts(_wait_len(second, 1)) == ["still here"]
        finally:
            second.close()

        assert store.available is False

    def test_store_opened_on_another_loop_is_refused(self, tmp_path: Path):
        store = NoteStore(tmp_path / "notes.db")
        loop = asyncio.new_event_loop()
        try:
            loop.run_until_complete(store.initialize())

            with pytest.raises(StoreUnavailableError):
                NoteController(store).start()

            assert store.available is True
            assert store.loop is loop
        finally:
            loop.run_until_complete(store.close())
            loop.close()
