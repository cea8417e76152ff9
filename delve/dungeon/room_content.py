"""
Room content generation.

Turns a room type plus its template into the concrete payload stored on
the room: scaled enemies, rolled loot, trap and puzzle stats, an event
effect or rest parameters. Payloads are generated once when the dungeon
is built and never regenerated.

All randomness goes through the injected DiceRoller, so a seeded roller
produces identical payloads for identical inputs.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from delve.data_models import (
    BossPhase,
    DiceRoller,
    DungeonKind,
    Enemy,
    RoomType,
)
from delve.tables.enemy_tables import (
    BOSS_ABILITIES,
    DEFAULT_ENRAGE_THRESHOLD,
    get_enemy_definition,
)
from delve.tables.event_tables import EventEffect, get_event
from delve.tables.room_templates import (
    FALLBACK_BOSS,
    RoomTemplate,
    get_loot_multiplier,
)

logger = logging.getLogger(__name__)

# Scaling constants
ENEMY_DEPTH_SCALING = 0.15
ENEMY_VARIANCE = (0.8, 1.2)
LOOT_DEPTH_SCALING = 0.2
SPECIAL_LOOT_BASE_CHANCE = 20
SPECIAL_LOOT_DEPTH_CHANCE = 5
MAX_ENEMIES_PER_ROOM = 4
BOSS_HP_MULTIPLIER = 2.5
BOSS_ATTACK_MULTIPLIER = 1.5
DEFAULT_REST_HEAL = 0.3
DEFAULT_TRAP_DAMAGE = (5, 15)
PUZZLE_ATTEMPTS = 3
FALLBACK_ENEMY_POOL = ("training_dummy",)


# =============================================================================
# ROOM PAYLOADS
# =============================================================================


@dataclass
class CombatPayload:
    """Enemies waiting in a combat or boss room."""
    enemies: list[Enemy] = field(default_factory=list)
    is_boss: bool = False

    @property
    def boss(self) -> Optional[Enemy]:
        return self.enemies[0] if self.is_boss and self.enemies else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "boss" if self.is_boss else "combat",
            "enemies": [e.to_dict() for e in self.enemies],
        }


@dataclass
class TreasurePayload:
    loot: dict[str, int] = field(default_factory=dict)
    chest_type: str = "chest"
    special_item: Optional[str] = None
    opened: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "treasure",
            "loot": dict(self.loot),
            "chest_type": self.chest_type,
            "special_item": self.special_item,
            "opened": self.opened,
        }


@dataclass
class TrapPayload:
    trap_type: str
    damage: int
    detect_dc: int
    disarm_dc: int
    damage_range: tuple[int, int] = DEFAULT_TRAP_DAMAGE
    detected: bool = False
    disarmed: bool = False
    triggered: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "trap",
            "trap_type": self.trap_type,
            "damage": self.damage,
            "damage_range": list(self.damage_range),
            "detect_dc": self.detect_dc,
            "disarm_dc": self.disarm_dc,
            "detected": self.detected,
            "disarmed": self.disarmed,
            "triggered": self.triggered,
        }


@dataclass
class PuzzlePayload:
    puzzle_type: str
    difficulty: int
    reward: dict[str, int] = field(default_factory=dict)
    skill_chance: float = 0.0  # Fraction, 0-1
    attempts: int = PUZZLE_ATTEMPTS
    solved: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "puzzle",
            "puzzle_type": self.puzzle_type,
            "difficulty": self.difficulty,
            "reward": dict(self.reward),
            "skill_chance": self.skill_chance,
            "attempts": self.attempts,
            "solved": self.solved,
        }


@dataclass
class EventPayload:
    event_id: str
    name: str
    description: str
    effect: EventEffect
    triggered: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "event",
            "event_id": self.event_id,
            "name": self.name,
            "description": self.description,
            "effect": self.effect.to_dict(),
            "triggered": self.triggered,
        }


@dataclass
class RestPayload:
    heal_fraction: float = DEFAULT_REST_HEAL
    restore_mp: bool = True
    remove_status_effects: bool = True
    description: str = "A quiet alcove, safe enough to catch your breath"
    used: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "rest",
            "heal_fraction": self.heal_fraction,
            "restore_mp": self.restore_mp,
            "remove_status_effects": self.remove_status_effects,
            "description": self.description,
            "used": self.used,
        }


RoomPayload = Union[
    CombatPayload, TreasurePayload, TrapPayload, PuzzlePayload, EventPayload, RestPayload
]


# =============================================================================
# GENERATOR
# =============================================================================


class RoomContentGenerator:
    """
    Produces room payloads from templates.

    Each enemy built by one generator receives a unique combatant id.
    """

    def __init__(self, dice: DiceRoller):
        self.dice = dice
        self._enemy_counter = 0

    def generate(
        self,
        room_type: RoomType,
        template: Optional[RoomTemplate],
        depth: int,
        dungeon_kind: DungeonKind,
    ) -> Optional[RoomPayload]:
        """
        Build the payload for a room.

        Args:
            room_type: The room's type tag
            template: The kind's template for this room type (may be None)
            depth: Room depth, scales strength and difficulty
            dungeon_kind: Selects the loot multiplier

        Returns:
            The payload, or None for entrance and empty rooms
        """
        template = template or RoomTemplate(weight=0)
        depth = max(0, depth)

        if room_type == RoomType.COMBAT:
            return self._generate_combat(template, depth)
        if room_type == RoomType.BOSS:
            return self._generate_boss(template, depth)
        if room_type == RoomType.TREASURE:
            return self._generate_treasure(template, depth, dungeon_kind)
        if room_type == RoomType.TRAP:
            return self._generate_trap(template, depth)
        if room_type == RoomType.PUZZLE:
            return self._generate_puzzle(template, depth)
        if room_type == RoomType.EVENT:
            return self._generate_event(template)
        if room_type == RoomType.REST:
            return self._generate_rest(template)
        return None

    # -------------------------------------------------------------------------
    # Enemies
    # -------------------------------------------------------------------------

    def create_enemy(self, enemy_id: str, depth: int) -> Enemy:
        """
        Build an enemy instance scaled to the given depth.

        HP and attack are multiplied by (1 + 0.15 * depth) and an
        independent +/-20% variance. Unknown ids yield the fallback creature.
        """
        definition = get_enemy_definition(enemy_id)
        scale = 1 + ENEMY_DEPTH_SCALING * depth
        variance = self.dice.uniform(*ENEMY_VARIANCE)
        hp = max(1, math.floor(definition.hp * scale * variance))
        attack = max(1, math.floor(definition.attack * scale * variance))

        self._enemy_counter += 1
        return Enemy(
            combatant_id=f"{enemy_id}_{self._enemy_counter}",
            enemy_id=enemy_id,
            name=definition.name,
            enemy_type=definition.enemy_type,
            hp_current=hp,
            hp_max=hp,
            attack=attack,
            base_defense=definition.defense,
            speed=definition.speed,
            abilities=list(definition.abilities),
            resistances=list(definition.resistances),
            weaknesses=list(definition.weaknesses),
            loot={name: list(bounds) for name, bounds in definition.loot},
            experience_reward=definition.experience_reward,
            phases=[BossPhase(name, threshold, list(abilities))
                    for name, threshold, abilities in definition.phases],
        )

    def create_boss(self, enemy_id: str, depth: int) -> Enemy:
        """Build a boss: a scaled enemy with inflated HP/attack and boss abilities."""
        boss = self.create_enemy(enemy_id, depth)
        boss.hp_max = math.floor(boss.hp_max * BOSS_HP_MULTIPLIER)
        boss.hp_current = boss.hp_max
        boss.attack = math.floor(boss.attack * BOSS_ATTACK_MULTIPLIER)
        boss.is_boss = True
        boss.name = f"{boss.name} (Boss)"
        boss.abilities = boss.abilities + [a for a in BOSS_ABILITIES if a not in boss.abilities]
        boss.experience_reward *= 2

        if boss.phases:
            for phase in boss.phases:
                phase.abilities.extend(a for a in BOSS_ABILITIES if a not in phase.abilities)
        else:
            boss.phases = [
                BossPhase("Standard", 100, list(boss.abilities)),
                BossPhase("Enraged", DEFAULT_ENRAGE_THRESHOLD, list(BOSS_ABILITIES)),
            ]
        return boss

    def _enemy_count_bounds(self, template: RoomTemplate, depth: int) -> tuple[int, int]:
        default_max = min(MAX_ENEMIES_PER_ROOM, max(1, depth // 2 + 1))
        low = template.min_enemies if template.min_enemies is not None else 1
        high = template.max_enemies if template.max_enemies is not None else default_max
        low, high = max(1, low), max(1, high)
        return (low, high) if low <= high else (high, low)

    def _generate_combat(self, template: RoomTemplate, depth: int) -> CombatPayload:
        pool = template.enemies
        if not pool:
            logger.warning("Combat template has no enemy pool, using fallback enemies")
            pool = FALLBACK_ENEMY_POOL

        low, high = self._enemy_count_bounds(template, depth)
        count = self.dice.randint(low, high, "enemy count")
        enemies = [
            self.create_enemy(self.dice.choice(pool, "enemy type"), depth)
            for _ in range(count)
        ]
        logger.debug(f"Combat room at depth {depth}: {[e.name for e in enemies]}")
        return CombatPayload(enemies=enemies)

    def _generate_boss(self, template: RoomTemplate, depth: int) -> CombatPayload:
        pool = template.bosses
        if not pool:
            logger.warning(f"Boss template has no boss pool, using {FALLBACK_BOSS}")
            pool = (FALLBACK_BOSS,)
        boss = self.create_boss(self.dice.choice(pool, "boss type"), depth)
        logger.debug(f"Boss room at depth {depth}: {boss.name} ({boss.hp_max} HP)")
        return CombatPayload(enemies=[boss], is_boss=True)

    # -------------------------------------------------------------------------
    # Non-combat rooms
    # -------------------------------------------------------------------------

    def _generate_treasure(
        self, template: RoomTemplate, depth: int, dungeon_kind: DungeonKind
    ) -> TreasurePayload:
        ranges = dict(template.loot)
        if not ranges:
            logger.warning("Treasure template has no loot ranges, using depth defaults")
            ranges = {"gold": (10 + 5 * depth, 30 + 10 * depth)}

        scale = (1 + LOOT_DEPTH_SCALING * depth) * get_loot_multiplier(dungeon_kind)
        loot = {
            name: math.floor(self.dice.randint(low, high, f"{name} loot") * scale)
            for name, (low, high) in ranges.items()
        }

        special_item = None
        special_chance = SPECIAL_LOOT_BASE_CHANCE + SPECIAL_LOOT_DEPTH_CHANCE * depth
        if template.special_loot and self.dice.percent_chance(special_chance, "special loot"):
            special_item = self.dice.choice(template.special_loot, "special item")

        chest_type = (
            self.dice.choice(template.chest_types, "chest type")
            if template.chest_types else "chest"
        )
        return TreasurePayload(loot=loot, chest_type=chest_type, special_item=special_item)

    def _generate_trap(self, template: RoomTemplate, depth: int) -> TrapPayload:
        damage_range = template.damage or DEFAULT_TRAP_DAMAGE
        return TrapPayload(
            trap_type=template.trap_type or "spike_trap",
            damage=self.dice.randint(*damage_range, reason="trap damage"),
            damage_range=tuple(damage_range),
            detect_dc=template.detect_dc if template.detect_dc is not None else 15 + 2 * depth,
            disarm_dc=template.disarm_dc if template.disarm_dc is not None else 20 + 3 * depth,
        )

    def _generate_puzzle(self, template: RoomTemplate, depth: int) -> PuzzlePayload:
        raw_reward = dict(template.reward) or {"gold": 50 + 20 * depth}
        skill_chance = float(raw_reward.pop("skill_chance", 0.0))
        return PuzzlePayload(
            puzzle_type=template.puzzle_type or "riddle",
            difficulty=template.difficulty if template.difficulty is not None else 15 + 3 * depth,
            reward={name: int(amount) for name, amount in raw_reward.items()},
            skill_chance=skill_chance,
        )

    def _generate_event(self, template: RoomTemplate) -> EventPayload:
        pool = template.events
        if not pool:
            logger.warning("Event template has no event pool, using an uneventful event")
            pool = ("quiet_moment",)
        event_id = self.dice.choice(pool, "event")
        event = get_event(event_id)
        return EventPayload(
            event_id=event_id,
            name=event.name,
            description=event.description,
            effect=event.effect,
        )

    def _generate_rest(self, template: RoomTemplate) -> RestPayload:
        payload = RestPayload(
            heal_fraction=template.heal if template.heal is not None else DEFAULT_REST_HEAL,
        )
        if template.description:
            payload.description = template.description
        return payload
