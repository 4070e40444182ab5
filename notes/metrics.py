"""Prometheus metrics for the notes store.

All metric objects are defined here so they can be imported from any module.
"""

from prometheus_client import Counter, Gauge

# ---------------------------------------------------------------------------
# Write metrics
# ---------------------------------------------------------------------------

NOTE_WRITES = Counter(
    "notes_writes_total",
    "Total number of insert/delete requests handled by the store",
    ["operation", "status"],  # insert|delete, ok|rejected|missing|error
)

# ---------------------------------------------------------------------------
# Live query metrics
# ---------------------------------------------------------------------------

SNAPSHOTS_EMITTED = Counter(
    "notes_snapshots_emitted_total",
    "Snapshots delivered to live query subscribers",
)

LIVE_QUERIES = Gauge(
    "notes_live_queries",
    "Number of attached live queries",
)

STORED_NOTES = Gauge(
    "notes_stored",
    "Number of notes in the latest published snapshot",
)
