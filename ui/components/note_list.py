"""Note list: newest first, one row per note with a delete button."""

from __future__ import annotations

from datetime import datetime

import streamlit as st

from notes.config import settings
from notes.controller import NoteController
from notes.models import Note, now_ms


def row_key(note: Note) -> str:
    """Widget key tied to the note id, not its list position."""
    return f"note-{note.id}"


def format_created(created_ms: int, now: int | None = None) -> str:
    """Short relative age for recent notes, a date for older ones."""
    now = now_ms() if now is None else now
    seconds = max(0, (now - created_ms) // 1000)
    if seconds < 60:
        return "just now"
    if seconds < 3600:
        return f"{seconds // 60} min ago"
    if seconds < 86400:
        return f"{seconds // 3600} h ago"
    return datetime.fromtimestamp(created_ms / 1000).strftime("%Y-%m-%d %H:%M")


@st.fragment(run_every=settings.list_refresh_seconds)
def render(controller: NoteController) -> None:
    """Render the controller's current snapshot."""
    notes = controller.current_notes.value

    if not notes:
        st.caption("No notes yet.")
        return

    st.caption(f"{len(notes)} note{'s' if len(notes) != 1 else ''}")
    for note in notes:
        with st.container(key=row_key(note), border=True):
            col_text, col_delete = st.columns([10, 1], vertical_alignment="center")
            with col_text:
                st.markdown(note.text)
                st.caption(format_created(note.created))
            with col_delete:
                st.button(
                    "🗑️",
                    key=f"delete-{note.id}",
                    help="Delete",
                    on_click=controller.delete,
                    args=(note,),
                )
