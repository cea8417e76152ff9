"""Player-facing event log."""

from delve.observability.event_log import EventLog, LogCategory, LogEntry

__all__ = [
    "EventLog",
    "LogCategory",
    "LogEntry",
]
