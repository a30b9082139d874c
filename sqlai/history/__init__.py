"""Query history recording and statistics."""

from sqlai.history.models import HistoryEntry, HistoryFilter, HistoryStats, compute_stats
from sqlai.history.recorder import (
    HistoryRecorder,
    InMemoryHistoryRecorder,
    PostgresHistoryRecorder,
    create_history_recorder,
)

__all__ = [
    "HistoryEntry",
    "HistoryFilter",
    "HistoryStats",
    "compute_stats",
    "HistoryRecorder",
    "InMemoryHistoryRecorder",
    "PostgresHistoryRecorder",
    "create_history_recorder",
]
