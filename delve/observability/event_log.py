"""
Event log for exploration and combat.

An append-only record of everything significant that happens during a
run: room actions, damage, loot, state transitions. Callers pull new
entries with drain() instead of registering callbacks, so rendering
stays entirely outside the engine.

Each exploration session and combat session owns its own EventLog.
"""

import json
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)


class LogCategory(str, Enum):
    """Categories of log entries, used for filtering and styling."""

    INFO = "info"
    MOVE = "move"
    COMBAT = "combat"
    DAMAGE = "damage"
    HEAL = "heal"
    LOOT = "loot"
    SKILL = "skill"
    EVENT = "event"
    BOSS = "boss"
    VICTORY = "victory"
    DEFEAT = "defeat"
    TRANSITION = "transition"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class LogEntry:
    """A single log line."""

    message: str
    category: LogCategory = LogCategory.INFO
    sequence_number: int = 0
    timestamp: datetime = field(default_factory=datetime.now)
    room_id: Optional[str] = None
    room_type: Optional[str] = None
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "message": self.message,
            "category": self.category.value,
            "sequence_number": self.sequence_number,
            "timestamp": self.timestamp.isoformat(),
            "room_id": self.room_id,
            "room_type": self.room_type,
            "context": self.context,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LogEntry":
        """Create from dictionary."""
        return cls(
            message=data["message"],
            category=LogCategory(data.get("category", "info")),
            sequence_number=data.get("sequence_number", 0),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            room_id=data.get("room_id"),
            room_type=data.get("room_type"),
            context=data.get("context", {}),
        )

    def __str__(self) -> str:
        return f"[{self.sequence_number:04d}] {self.category.value.upper()}: {self.message}"


class EventLog:
    """
    Append-only log with a pull-based drain.

    When max_entries is set the oldest entries are discarded once the
    bound is reached; sequence numbers keep increasing so drain() never
    returns an entry twice.
    """

    def __init__(self, max_entries: Optional[int] = None):
        self._entries: deque[LogEntry] = deque(maxlen=max_entries)
        self._sequence: int = 0
        self._drained_through: int = 0
        self._session_start: datetime = datetime.now()

    def append(
        self,
        message: str,
        category: LogCategory = LogCategory.INFO,
        room_id: Optional[str] = None,
        room_type: Optional[str] = None,
        **context: Any,
    ) -> LogEntry:
        """Append an entry and return it."""
        self._sequence += 1
        entry = LogEntry(
            message=message,
            category=category,
            sequence_number=self._sequence,
            room_id=room_id,
            room_type=room_type,
            context=context,
        )
        self._entries.append(entry)
        logger.debug(str(entry))
        return entry

    def drain(self) -> list[LogEntry]:
        """Return every entry appended since the previous drain."""
        fresh = [e for e in self._entries if e.sequence_number > self._drained_through]
        self._drained_through = self._sequence
        return fresh

    def get_entries(
        self,
        category: Optional[LogCategory] = None,
        since_sequence: int = 0,
    ) -> list[LogEntry]:
        """
        Get logged entries without affecting the drain cursor.

        Args:
            category: Filter by category (None = all)
            since_sequence: Only entries after this sequence number
        """
        entries = [e for e in self._entries if e.sequence_number > since_sequence]
        if category:
            entries = [e for e in entries if e.category == category]
        return entries

    def messages(self) -> list[str]:
        return [e.message for e in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def last_sequence(self) -> int:
        return self._sequence

    def to_dict(self) -> dict[str, Any]:
        """Serialize the entire log to a dictionary."""
        return {
            "session_start": self._session_start.isoformat(),
            "sequence": self._sequence,
            "entries": [e.to_dict() for e in self._entries],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=str)

    def format_log(self, max_entries: Optional[int] = None) -> str:
        """Format the log as a human-readable string."""
        entries = list(self._entries)
        if max_entries:
            entries = entries[-max_entries:]
        return "\n".join(str(e) for e in entries)
