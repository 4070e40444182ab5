"""Notes — Streamlit interface.

Run with:
    streamlit run ui/app.py
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

# Ensure the project root is on sys.path so `notes.*` and `ui.*` imports
# resolve regardless of the working directory Streamlit uses.
_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

import streamlit as st  # noqa: E402

from notes.config import settings  # noqa: E402

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)

st.set_page_config(
    page_title="Notes",
    page_icon="📝",
    layout="centered",
)

from ui.components import note_form, note_list  # noqa: E402
from ui.state import get_controller  # noqa: E402

controller = get_controller()

st.title("📝 Notes")
note_form.render(controller)
st.divider()
note_list.render(controller)
