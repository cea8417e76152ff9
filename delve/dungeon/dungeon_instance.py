"""
Live dungeon graph.

A Dungeon owns its rooms, tracks the party's position, the rooms seen and
cleared, and the loot gathered so far. It is mutated only through
move_to_room, complete_room and retreat; once the dungeon is completed or
abandoned every mutator becomes a no-op that returns False.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from delve.data_models import DungeonKind, RoomType
from delve.dungeon.room_content import RoomPayload

logger = logging.getLogger(__name__)


@dataclass
class DungeonRoom:
    """A room in the dungeon graph."""

    room_id: str
    room_type: RoomType
    depth: int
    position: tuple[int, int] = (0, 0)  # Map layout only
    connections: list[str] = field(default_factory=list)  # Undirected neighbours
    discovered: bool = False
    completed: bool = False
    payload: Optional[RoomPayload] = None

    def connect(self, other_id: str) -> bool:
        """Add a neighbour. Returns False if the edge already exists."""
        if other_id == self.room_id or other_id in self.connections:
            return False
        self.connections.append(other_id)
        return True

    def is_connected(self, other_id: str) -> bool:
        return other_id in self.connections

    def to_dict(self) -> dict[str, Any]:
        return {
            "room_id": self.room_id,
            "type": self.room_type.value,
            "depth": self.depth,
            "position": list(self.position),
            "connections": list(self.connections),
            "discovered": self.discovered,
            "completed": self.completed,
            "payload": self.payload.to_dict() if self.payload is not None else None,
        }


class Dungeon:
    """
    One exploration attempt through a generated dungeon.

    Attributes:
        rooms: All rooms keyed by id, in generation order
        current_room_id: Where the party stands
        visited_room_ids: Rooms the party has stood in, in visit order
        total_loot: Resources gathered so far (only ever grows)
        enemies_defeated: Running count of enemies beaten
        completed: The run is over (boss beaten or retreated)
        retreated: The party left early
        boss_defeated: The boss room was cleared
    """

    def __init__(
        self,
        dungeon_id: str,
        kind: DungeonKind,
        difficulty: int,
        rooms: dict[str, DungeonRoom],
        entrance_room_id: str,
        boss_room_id: str,
        name: str = "",
    ):
        if entrance_room_id not in rooms or boss_room_id not in rooms:
            raise ValueError("Entrance and boss rooms must be part of the room set")

        self.dungeon_id = dungeon_id
        self.kind = kind
        self.difficulty = difficulty
        self.name = name or kind.value.replace("_", " ").title()
        self.rooms = rooms
        self.entrance_room_id = entrance_room_id
        self.boss_room_id = boss_room_id
        self.current_room_id = entrance_room_id
        self.visited_room_ids: list[str] = [entrance_room_id]
        self.total_loot: dict[str, int] = {}
        self.enemies_defeated = 0
        self.completed = False
        self.retreated = False
        self.boss_defeated = False
        self.started_at = datetime.now()

        entrance = rooms[entrance_room_id]
        entrance.discovered = True
        entrance.completed = True

    @property
    def is_closed(self) -> bool:
        return self.completed or self.retreated

    def get_current_room(self) -> DungeonRoom:
        return self.rooms[self.current_room_id]

    def get_room(self, room_id: str) -> Optional[DungeonRoom]:
        return self.rooms.get(room_id)

    def get_connected_rooms(self) -> list[DungeonRoom]:
        """Neighbours of the current room, in edge order."""
        return [self.rooms[r] for r in self.get_current_room().connections if r in self.rooms]

    def move_to_room(self, room_id: str) -> bool:
        """
        Move the party to an adjacent room.

        Returns:
            True on success; False if the room is not adjacent or the
            dungeon is closed (nothing changes in either case)
        """
        if self._reject_if_closed("move_to_room"):
            return False
        if not self.get_current_room().is_connected(room_id) or room_id not in self.rooms:
            logger.debug(f"Cannot move from {self.current_room_id} to {room_id}: not adjacent")
            return False

        room = self.rooms[room_id]
        room.discovered = True
        if room_id not in self.visited_room_ids:
            self.visited_room_ids.append(room_id)
        self.current_room_id = room_id
        logger.debug(f"Moved to {room_id} ({room.room_type.value})")
        return True

    def can_retreat(self) -> bool:
        return not self.is_closed and self.get_current_room().room_type != RoomType.BOSS

    def retreat(self) -> bool:
        """Abandon the run. Not allowed from the boss room."""
        if self._reject_if_closed("retreat"):
            return False
        if not self.can_retreat():
            logger.debug("Retreat refused in the boss room")
            return False
        self.retreated = True
        self.completed = True
        logger.info(f"Retreated from {self.dungeon_id} with {self.total_loot}")
        return True

    def complete_room(self, room_id: str, results: Optional[dict[str, Any]] = None) -> bool:
        """
        Mark a room resolved and fold its results into the dungeon totals.

        Args:
            room_id: The room to complete
            results: Optional {"loot": {name: amount}, "enemies_defeated": n}

        Returns:
            True if the room was completed by this call
        """
        if self._reject_if_closed("complete_room"):
            return False
        room = self.rooms.get(room_id)
        if room is None:
            logger.warning(f"complete_room called with unknown room {room_id}")
            return False
        if room.completed:
            return False

        results = results or {}
        room.completed = True
        for name, amount in (results.get("loot") or {}).items():
            if amount > 0:
                self.total_loot[name] = self.total_loot.get(name, 0) + int(amount)
        self.enemies_defeated += int(results.get("enemies_defeated", 0))

        if room.room_type == RoomType.BOSS:
            self.boss_defeated = True
            self.completed = True
            logger.info(f"Boss defeated, dungeon {self.dungeon_id} completed")
        return True

    def get_progress(self) -> dict[str, Any]:
        total = len(self.rooms)
        completed = sum(1 for r in self.rooms.values() if r.completed)
        visited = len(self.visited_room_ids)
        return {
            "rooms_total": total,
            "rooms_visited": visited,
            "rooms_completed": completed,
            "visited_ratio": visited / total if total else 0.0,
            "completed_ratio": completed / total if total else 0.0,
            "enemies_defeated": self.enemies_defeated,
            "boss_defeated": self.boss_defeated,
            "completed": self.completed,
            "retreated": self.retreated,
        }

    def _reject_if_closed(self, operation: str) -> bool:
        if self.is_closed:
            logger.warning(f"{operation} ignored: dungeon {self.dungeon_id} is closed")
            return True
        return False

    def to_dict(self) -> dict[str, Any]:
        return {
            "dungeon_id": self.dungeon_id,
            "kind": self.kind.value,
            "name": self.name,
            "difficulty": self.difficulty,
            "current_room_id": self.current_room_id,
            "entrance_room_id": self.entrance_room_id,
            "boss_room_id": self.boss_room_id,
            "visited_room_ids": list(self.visited_room_ids),
            "total_loot": dict(self.total_loot),
            "rooms": [room.to_dict() for room in self.rooms.values()],
            **self.get_progress(),
        }
