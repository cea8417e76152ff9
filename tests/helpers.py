"""
Test helpers for the Delve test suite.

Provides:
- FixedDice, a DiceRoller with pinned results for boundary tests
- Builders for enemies, rogues and small hand-made dungeons
"""

from typing import Optional

from delve.data_models import (
    DiceResult,
    DiceRoller,
    DungeonKind,
    Enemy,
    RoomType,
)
from delve.dungeon.dungeon_instance import Dungeon, DungeonRoom
from delve.dungeon.room_content import CombatPayload
from delve.tables.character_tables import create_character


class FixedDice(DiceRoller):
    """
    DiceRoller with pinned results.

    d20 rolls always come up `d20`, ranged rolls return their upper (or
    lower) bound, and percentage checks all answer `chance`. Choices still
    come from the seeded source.
    """

    def __init__(self, d20: int = 20, chance: bool = True, maximum: bool = True, seed: int = 1):
        super().__init__(seed=seed)
        self.d20 = d20
        self.chance = chance
        self.maximum = maximum

    def roll_d20(self, reason: str = "") -> DiceResult:
        result = DiceResult(notation="1d20", rolls=[self.d20], modifier=0,
                            total=self.d20, reason=reason)
        self._record(result)
        return result

    def randint(self, low: int, high: int, reason: str = "") -> int:
        return max(low, high) if self.maximum else min(low, high)

    def uniform(self, low: float, high: float) -> float:
        return high if self.maximum else low

    def percent_chance(self, percent: float, reason: str = "") -> bool:
        return self.chance


def make_enemy(
    hp: int = 40,
    attack: int = 5,
    defense: int = 0,
    combatant_id: str = "goblin_1",
    name: str = "Goblin",
    is_boss: bool = False,
    experience_reward: int = 10,
) -> Enemy:
    """Build a plain enemy with no abilities."""
    return Enemy(
        combatant_id=combatant_id,
        enemy_id=combatant_id.rsplit("_", 1)[0],
        name=name,
        enemy_type="humanoid",
        hp_current=hp,
        hp_max=hp,
        attack=attack,
        base_defense=defense,
        speed=10,
        experience_reward=experience_reward,
        is_boss=is_boss,
    )


def make_rogue(agility: int, character_id: str = "rogue_0"):
    rogue = create_character("rogue", character_id=character_id)
    rogue.stats["agility"] = agility
    return rogue


def make_dungeon(
    room_type: RoomType,
    payload=None,
    boss: Optional[Enemy] = None,
    kind: DungeonKind = DungeonKind.TRAINING_GROUNDS,
) -> Dungeon:
    """
    Build entrance -> room_01 -> room_02 (boss).

    room_01 gets the given type and payload; the boss room holds `boss`
    (a weak goblin chief by default).
    """
    boss = boss or make_enemy(hp=10, attack=1, combatant_id="chief_1",
                              name="Goblin Chief (Boss)", is_boss=True)
    rooms = {
        "room_00": DungeonRoom("room_00", RoomType.ENTRANCE, 0, (0, 0), ["room_01"]),
        "room_01": DungeonRoom("room_01", room_type, 1, (1, 0), ["room_00", "room_02"],
                               payload=payload),
        "room_02": DungeonRoom("room_02", RoomType.BOSS, 2, (2, 0), ["room_01"],
                               payload=CombatPayload(enemies=[boss], is_boss=True)),
    }
    return Dungeon(
        dungeon_id="test_dungeon",
        kind=kind,
        difficulty=1,
        rooms=rooms,
        entrance_room_id="room_00",
        boss_room_id="room_02",
        name="Test Dungeon",
    )
