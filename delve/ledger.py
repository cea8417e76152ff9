"""
Game ledger interface.

The engine reports resource deltas and dungeon completions to a ledger
it does not own. GameLedger describes what the engine calls;
InMemoryLedger is a minimal implementation used by the CLI and tests.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class GameLedger(Protocol):
    """Resource and progress bookkeeping consumed by the exploration session."""

    def add_resources(self, deltas: dict[str, int]) -> None:
        ...

    def spend_resources(self, costs: dict[str, int]) -> bool:
        ...

    def record_completion(self, dungeon_id: str, success: bool, stats: dict[str, Any]) -> None:
        ...


@dataclass
class CompletionRecord:
    dungeon_id: str
    success: bool
    stats: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "dungeon_id": self.dungeon_id,
            "success": self.success,
            "stats": dict(self.stats),
            "timestamp": self.timestamp.isoformat(),
        }


class InMemoryLedger:
    """Ledger that keeps resources and completions in memory."""

    def __init__(self, resources: Optional[dict[str, int]] = None):
        self.resources: dict[str, int] = dict(resources or {})
        self.completions: list[CompletionRecord] = []

    def add_resources(self, deltas: dict[str, int]) -> None:
        """Add each delta; totals never drop below zero."""
        for name, amount in deltas.items():
            self.resources[name] = max(0, self.resources.get(name, 0) + int(amount))
        logger.debug(f"Ledger resources now {self.resources}")

    def can_afford(self, costs: dict[str, int]) -> bool:
        return all(self.resources.get(name, 0) >= amount for name, amount in costs.items())

    def spend_resources(self, costs: dict[str, int]) -> bool:
        if not self.can_afford(costs):
            return False
        for name, amount in costs.items():
            self.resources[name] -= amount
        return True

    def record_completion(self, dungeon_id: str, success: bool, stats: dict[str, Any]) -> None:
        self.completions.append(CompletionRecord(dungeon_id, success, dict(stats)))
        logger.info(f"Recorded dungeon {dungeon_id} ({'success' if success else 'failure'})")

    def get_resource(self, name: str) -> int:
        return self.resources.get(name, 0)
