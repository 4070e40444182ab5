"""Input row: draft text field with its add button.

`st.chat_input` submits on Enter or on its send button, keeps the button
disabled while the field is empty and clears itself once submitted.
"""

from __future__ import annotations

import streamlit as st

from notes.controller import NoteController

DRAFT_KEY = "draft"


def can_submit(draft: str | None) -> bool:
    """Only non-blank drafts reach the controller."""
    return bool(draft and draft.strip())


def _submit(controller: NoteController) -> None:
    """Issue the add without waiting for the store."""
    draft = st.session_state.get(DRAFT_KEY)
    if can_submit(draft):
        controller.add(draft)


def render(controller: NoteController) -> None:
    """Render the note input."""
    with st.container():
        st.chat_input(
            "New note",
            key=DRAFT_KEY,
            on_submit=_submit,
            args=(controller,),
        )
