"""Dungeon generation and exploration module."""

from delve.dungeon.room_content import (
    RoomContentGenerator,
    CombatPayload,
    TreasurePayload,
    TrapPayload,
    PuzzlePayload,
    EventPayload,
    RestPayload,
)
from delve.dungeon.dungeon_instance import Dungeon, DungeonRoom
from delve.dungeon.dungeon_generator import DungeonGenerator, calculate_room_count
from delve.dungeon.exploration import (
    ExplorationSession,
    ExplorationActionType,
    ExplorationResult,
    AvailableAction,
    NoConsciousAlliesError,
    RoomActionError,
    auto_play,
    choose_auto_action,
)

__all__ = [
    "RoomContentGenerator",
    "CombatPayload",
    "TreasurePayload",
    "TrapPayload",
    "PuzzlePayload",
    "EventPayload",
    "RestPayload",
    "Dungeon",
    "DungeonRoom",
    "DungeonGenerator",
    "calculate_room_count",
    "ExplorationSession",
    "ExplorationActionType",
    "ExplorationResult",
    "AvailableAction",
    "NoConsciousAlliesError",
    "RoomActionError",
    "auto_play",
    "choose_auto_action",
]
