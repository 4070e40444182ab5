"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings

DEFAULT_DB_PATH = Path.home() / ".based-notes" / "notes.db"


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Storage
    notes_db_path: Path = DEFAULT_DB_PATH

    # Logging
    log_level: str = "INFO"

    # UI
    list_refresh_seconds: float = 0.5

    # Prometheus exporter, disabled unless a port is given
    metrics_port: Optional[int] = None


settings = Settings()
