"""Seed the notes database with sample notes for screenshots.

Writes straight through the store, so the running UI picks the notes up
after a restart (live queries are per process).

Usage:
    python scripts/seed_data.py [--db PATH] [--count N]
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from notes.config import settings  # noqa: E402
from notes.database import NoteStore, StoreUnavailableError  # noqa: E402

SAMPLE_NOTES: list[str] = [
    "Buy milk",
    "Call the dentist about Thursday",
    "Pick up dry cleaning",
    "Ideas: a weekend trip to the lake",
    "Return library books",
    "Renew car insurance before the 15th",
    "Water the plants",
    "Send slides to the team",
    "Book tickets for the concert",
    "Back up the laptop",
]


async def seed(db_path: Path, count: int) -> int:
    """Insert `count` sample notes, oldest first. Returns the new total."""
    store = NoteStore(db_path)
    await store.initialize()
    try:
        for i in range(count):
            text = SAMPLE_NOTES[i % len(SAMPLE_NOTES)]
            note = await store.insert(text)
            print(f"  [{i + 1}/{count}] #{note.id}  {note.text}")
        return await store.count()
    finally:
        await store.close()


def main() -> None:
    """Parse arguments and seed the database."""
    parser = argparse.ArgumentParser(description="Seed sample notes")
    parser.add_argument(
        "--db",
        type=Path,
        default=settings.notes_db_path,
        help=f"SQLite database file (default: {settings.notes_db_path})",
    )
    parser.add_argument(
        "--count",
        type=int,
        default=len(SAMPLE_NOTES),
        help=f"Number of notes to insert (default: {len(SAMPLE_NOTES)})",
    )
    args = parser.parse_args()

    print(f"\n  Seeding notes into {args.db}\n")
    try:
        total = asyncio.run(seed(args.db, max(0, args.count)))
    except StoreUnavailableError as e:
        print(f"  FAIL: {e}")
        sys.exit(1)

    print(f"\n  Done! {total} notes stored.")
    print("  Start the app with: streamlit run ui/app.py\n")


if __name__ == "__main__":
    main()
