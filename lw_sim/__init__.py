"""In-memory remote source, event logs and replay tooling around lw_core."""

from .event_log import EventLogWriter, RecordingCollection, RecordingQuery, iter_events, session_log_path
from .memory_source import InMemoryOrderedSource, MemoryQuery, SourceError
from .replay import ReplayQuery, ReplayStats, replay_events

__all__ = [
    "EventLogWriter",
    "RecordingCollection",
    "RecordingQuery",
    "session_log_path",
    "iter_events",
    "InMemoryOrderedSource",
    "MemoryQuery",
    "SourceError",
    "ReplayQuery",
    "ReplayStats",
    "replay_events",
]
