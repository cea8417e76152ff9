"""
Dungeon graph builder.

Lays out a dungeon as a main path from the entrance to a terminal boss
room, with side rooms hanging off the path and occasional skip edges
giving alternate routes:

    entrance - m1 - m2 - m3 - ... - mL - boss
                |         \\____/
              side

Room counts, depths and room types follow the dungeon kind's tables;
payloads come from the RoomContentGenerator.
"""

import logging
import uuid
from typing import Optional, Union

from delve.data_models import DiceRoller, DungeonKind, RoomType, weighted_pick
from delve.dungeon.dungeon_instance import Dungeon, DungeonRoom
from delve.dungeon.room_content import RoomContentGenerator
from delve.tables.room_templates import (
    build_boss_template,
    get_dungeon_info,
    get_room_templates,
    get_room_weights,
    resolve_dungeon_kind,
)

logger = logging.getLogger(__name__)

BASE_ROOM_COUNT = 6
ROOMS_PER_DIFFICULTY = 2
MIN_ROOMS = 5
MAX_ROOMS = 15
MAIN_PATH_FRACTION = 0.7
SKIP_EDGE_CHANCE = 20


def calculate_room_count(difficulty: int, room_bonus: int) -> int:
    """Rooms to generate for a dungeon (entrance not included)."""
    count = BASE_ROOM_COUNT + ROOMS_PER_DIFFICULTY * difficulty + room_bonus
    return max(MIN_ROOMS, min(MAX_ROOMS, count))


class DungeonGenerator:
    """
    Builds Dungeon instances.

    Given the same seed, two generators build structurally identical
    dungeons (room ids, types, depths, edges and payload stats).
    """

    def __init__(self, dice: DiceRoller, content_generator: Optional[RoomContentGenerator] = None):
        self.dice = dice
        self.content = content_generator or RoomContentGenerator(dice)

    def build(self, dungeon_kind: Union[DungeonKind, str], difficulty: Optional[int] = None) -> Dungeon:
        """
        Generate a dungeon.

        Args:
            dungeon_kind: Theme/difficulty tier; unknown kinds fall back to
                the training grounds
            difficulty: Overrides the kind's default difficulty

        Returns:
            A fresh Dungeon with the party at the entrance
        """
        kind = resolve_dungeon_kind(dungeon_kind)
        info = get_dungeon_info(kind)
        templates = get_room_templates(kind)
        weights = get_room_weights(templates)
        difficulty = info.difficulty if difficulty is None else max(0, difficulty)

        room_count = calculate_room_count(difficulty, info.room_bonus)
        main_length = int(room_count * MAIN_PATH_FRACTION)
        side_count = room_count - main_length - 1

        rooms: dict[str, DungeonRoom] = {}

        def add_room(room_type: RoomType, depth: int, position: tuple[int, int]) -> DungeonRoom:
            room_id = f"room_{len(rooms):02d}"
            if room_type == RoomType.BOSS:
                template = build_boss_template(kind)
            else:
                template = templates.get(room_type)
            room = DungeonRoom(
                room_id=room_id,
                room_type=room_type,
                depth=depth,
                position=position,
                payload=self.content.generate(room_type, template, depth, kind),
            )
            rooms[room_id] = room
            return room

        entrance = add_room(RoomType.ENTRANCE, 0, (0, 0))
        main_path = [entrance]
        for index in range(1, main_length + 1):
            room_type = weighted_pick(weights, self.dice)
            main_path.append(add_room(room_type, index // 2 + 1, (index, 0)))

        side_rooms: list[tuple[DungeonRoom, int]] = []
        side_slots: dict[int, int] = {}
        for _ in range(side_count):
            depth = self.dice.randint(1, main_length // 2 + 1, "side room depth")
            attach_index = self.dice.randint(1, main_length, "side room attach point")
            slot = side_slots.get(attach_index, 0)
            side_slots[attach_index] = slot + 1
            offset = (slot // 2 + 1) * (1 if slot % 2 == 0 else -1)
            room_type = weighted_pick(weights, self.dice)
            side_rooms.append((add_room(room_type, depth, (attach_index, offset)), attach_index))

        boss = add_room(RoomType.BOSS, main_length // 2 + 2, (main_length + 1, 0))
        main_path.append(boss)

        self._connect_rooms(main_path, side_rooms)

        dungeon = Dungeon(
            dungeon_id=f"{kind.value}_{uuid.uuid4().hex[:8]}",
            kind=kind,
            difficulty=difficulty,
            rooms=rooms,
            entrance_room_id=entrance.room_id,
            boss_room_id=boss.room_id,
            name=info.name,
        )
        logger.info(
            f"Built {info.name} (difficulty {difficulty}): {len(rooms)} rooms, "
            f"main path {main_length}, {side_count} side rooms"
        )
        return dungeon

    def _connect_rooms(
        self,
        main_path: list[DungeonRoom],
        side_rooms: list[tuple[DungeonRoom, int]],
    ) -> None:
        for current, following in zip(main_path, main_path[1:]):
            _link(current, following)

        for side_room, attach_index in side_rooms:
            _link(side_room, main_path[attach_index])

        for index in range(2, len(main_path) - 2):
            if self.dice.percent_chance(SKIP_EDGE_CHANCE, "skip edge"):
                _link(main_path[index], main_path[index + 2])


def _link(first: DungeonRoom, second: DungeonRoom) -> None:
    first.connect(second.room_id)
    second.connect(first.room_id)
