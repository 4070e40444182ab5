"""Pydantic model for a single persisted note."""

from __future__ import annotations

import time

from pydantic import BaseModel, Field


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


class Note(BaseModel):
    """A note row. Instances are immutable snapshots of the stored record."""

    model_config = {"frozen": True}

    id: int = Field(..., ge=1, description="Store-assigned id (auto-increment)")
    text: str = Field(..., min_length=1, description="Trimmed note text")
    created: int = Field(..., ge=0, description="Epoch milliseconds at insert")
