"""Process-wide controller shared by every Streamlit session."""

from __future__ import annotations

import atexit
import logging

import streamlit as st
from prometheus_client import start_http_server

from notes.config import settings
from notes.controller import NoteController
from notes.database import get_store

logger = logging.getLogger(__name__)


@st.cache_resource
def get_controller() -> NoteController:
    """Open the note store once per process and start mirroring it.

    A store that cannot be opened stops the app here.
    """
    if settings.metrics_port:
        start_http_server(settings.metrics_port)
        logger.info("Prometheus exporter listening on :%d", settings.metrics_port)

    controller = NoteController(get_store(settings.notes_db_path)).start()
    atexit.register(controller.close)
    return controller
