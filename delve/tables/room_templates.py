"""
Room templates and dungeon kind data.

Each dungeon kind owns an immutable set of room templates: a relative
selection weight per room type plus the type-specific parameters the
room content generator reads (enemy pool, loot ranges, trap stats,
puzzle difficulty, event pool, rest heal fraction).

Kinds also carry the loot multiplier, the room-count bonus used by the
graph builder, the boss pool and the completion rewards.
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from delve.data_models import DungeonKind, RoomType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoomTemplate:
    """
    Weight and parameters for one room type within a dungeon kind.

    Fields that do not apply to the room type are left at their empty
    defaults; the content generator substitutes depth-scaled defaults for
    anything missing.
    """
    weight: int
    # Combat / boss
    enemies: tuple[str, ...] = ()
    min_enemies: Optional[int] = None
    max_enemies: Optional[int] = None
    bosses: tuple[str, ...] = ()
    # Treasure
    loot: Mapping[str, tuple[int, int]] = field(default_factory=lambda: MappingProxyType({}))
    chest_types: tuple[str, ...] = ()
    special_loot: tuple[str, ...] = ()
    # Trap
    damage: Optional[tuple[int, int]] = None
    trap_type: Optional[str] = None
    detect_dc: Optional[int] = None
    disarm_dc: Optional[int] = None
    # Puzzle
    difficulty: Optional[int] = None
    puzzle_type: Optional[str] = None
    reward: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}))
    # Event
    events: tuple[str, ...] = ()
    # Rest
    heal: Optional[float] = None
    description: str = ""


DungeonTemplate = Mapping[RoomType, RoomTemplate]


@dataclass(frozen=True)
class DungeonKindInfo:
    """Static description of a dungeon kind."""
    kind: DungeonKind
    name: str
    description: str
    difficulty: int
    loot_multiplier: float
    room_bonus: int
    gold_reward: tuple[int, int]
    material_reward: tuple[int, int]
    experience_multiplier: float
    boss_pool: tuple[str, ...]
    first_completion: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))


def _template(**kwargs: Any) -> RoomTemplate:
    for key in ("loot", "reward"):
        if key in kwargs:
            kwargs[key] = MappingProxyType(dict(kwargs[key]))
    return RoomTemplate(**kwargs)


# =============================================================================
# ROOM TEMPLATES PER DUNGEON KIND
# =============================================================================


ROOM_TEMPLATES: Mapping[DungeonKind, DungeonTemplate] = MappingProxyType({
    DungeonKind.TRAINING_GROUNDS: MappingProxyType({
        RoomType.COMBAT: _template(
            weight=50,
            enemies=("training_dummy", "wooden_golem", "practice_skeleton"),
            min_enemies=1, max_enemies=2,
        ),
        RoomType.TREASURE: _template(
            weight=25,
            loot={"gold": (15, 40), "materials": (3, 8)},
            chest_types=("wooden_chest", "training_cache"),
        ),
        RoomType.REST: _template(
            weight=20, heal=0.4,
            description="A training rest area with basic supplies",
        ),
        RoomType.EMPTY: _template(weight=5),
    }),
    DungeonKind.CRYSTAL_CAVERNS: MappingProxyType({
        RoomType.COMBAT: _template(
            weight=45,
            enemies=("crystal_spider", "cave_troll", "crystal_golem"),
            min_enemies=1, max_enemies=3,
        ),
        RoomType.TREASURE: _template(
            weight=25,
            loot={"gold": (25, 70), "materials": (8, 20)},
            chest_types=("crystal_cache", "hidden_geode"),
        ),
        RoomType.TRAP: _template(
            weight=20, damage=(15, 35), trap_type="crystal_explosion",
            detect_dc=15, disarm_dc=18,
        ),
        RoomType.EVENT: _template(
            weight=10,
            events=("crystal_resonance", "mana_spring", "unstable_portal"),
        ),
    }),
    DungeonKind.ANCIENT_LIBRARY: MappingProxyType({
        RoomType.COMBAT: _template(
            weight=40,
            enemies=("spectral_librarian", "animated_book", "ink_elemental"),
            min_enemies=1, max_enemies=2,
        ),
        RoomType.TREASURE: _template(
            weight=20,
            loot={"gold": (20, 60), "materials": (5, 15)},
            chest_types=("ancient_tome", "scroll_case"),
            special_loot=("skill_book",),
        ),
        RoomType.PUZZLE: _template(
            weight=25, difficulty=18, puzzle_type="ancient_riddle",
            reward={"gold": 100, "skill_chance": 0.3},
        ),
        RoomType.TRAP: _template(
            weight=10, damage=(10, 25), trap_type="knowledge_drain",
            detect_dc=20, disarm_dc=22,
        ),
        RoomType.REST: _template(weight=5, heal=0.3),
    }),
    DungeonKind.SHADOW_FORTRESS: MappingProxyType({
        RoomType.COMBAT: _template(
            weight=55,
            enemies=("shadow_knight", "wraith", "nightmare_spawn"),
            min_enemies=2, max_enemies=3,
        ),
        RoomType.TREASURE: _template(
            weight=20,
            loot={"gold": (40, 100), "materials": (12, 30)},
            chest_types=("shadow_cache", "cursed_vault"),
        ),
        RoomType.TRAP: _template(
            weight=20, damage=(20, 45), trap_type="shadow_drain",
            detect_dc=22, disarm_dc=25,
        ),
        RoomType.EVENT: _template(
            weight=5,
            events=("shadow_whispers", "fear_aura", "darkness_consumes"),
        ),
    }),
    DungeonKind.ELEMENTAL_PLANES: MappingProxyType({
        RoomType.COMBAT: _template(
            weight=50,
            enemies=("fire_elemental", "frost_giant", "storm_lord", "earth_titan"),
            min_enemies=1, max_enemies=2,
        ),
        RoomType.TREASURE: _template(
            weight=25,
            loot={"gold": (60, 150), "materials": (20, 50)},
            chest_types=("elemental_core", "primal_cache"),
            special_loot=("elemental_essence",),
        ),
        RoomType.TRAP: _template(
            weight=15, damage=(25, 60), trap_type="elemental_storm",
            detect_dc=25, disarm_dc=28,
        ),
        RoomType.EVENT: _template(
            weight=10,
            events=("elemental_rift", "primal_chaos", "reality_storm"),
        ),
    }),
    DungeonKind.DEMON_LORDS_DUNGEON: MappingProxyType({
        RoomType.COMBAT: _template(
            weight=60,
            enemies=("demon_lieutenant", "pit_fiend"),
            min_enemies=2, max_enemies=4,
        ),
        RoomType.TREASURE: _template(
            weight=15,
            loot={"gold": (100, 300), "materials": (50, 100)},
            chest_types=("infernal_vault", "soul_prison"),
        ),
        RoomType.TRAP: _template(
            weight=20, damage=(40, 80), trap_type="hellfire_trap",
            detect_dc=30, disarm_dc=35,
        ),
        RoomType.EVENT: _template(
            weight=5,
            events=("soul_corruption", "hellfire_rain", "demonic_whispers"),
        ),
    }),
})


# =============================================================================
# DUNGEON KINDS
# =============================================================================


FALLBACK_BOSS = "training_dummy"

DUNGEON_KINDS: Mapping[DungeonKind, DungeonKindInfo] = MappingProxyType({
    DungeonKind.TRAINING_GROUNDS: DungeonKindInfo(
        kind=DungeonKind.TRAINING_GROUNDS,
        name="Training Grounds",
        description="A safe place to learn the basics of dungeon delving",
        difficulty=1, loot_multiplier=0.8, room_bonus=-1,
        gold_reward=(30, 80), material_reward=(5, 15), experience_multiplier=1.0,
        boss_pool=("practice_skeleton",),
        first_completion=MappingProxyType({"gold": 50, "materials": 10, "experience": 100}),
    ),
    DungeonKind.CRYSTAL_CAVERNS: DungeonKindInfo(
        kind=DungeonKind.CRYSTAL_CAVERNS,
        name="Crystal Caverns",
        description="Glittering caves where crystals hum with trapped power",
        difficulty=2, loot_multiplier=1.0, room_bonus=0,
        gold_reward=(60, 120), material_reward=(15, 35), experience_multiplier=1.2,
        boss_pool=("crystal_golem",),
        first_completion=MappingProxyType({"gold": 100, "materials": 25, "experience": 200}),
    ),
    DungeonKind.ANCIENT_LIBRARY: DungeonKindInfo(
        kind=DungeonKind.ANCIENT_LIBRARY,
        name="Ancient Library",
        description="Forgotten stacks guarded by the knowledge they hold",
        difficulty=3, loot_multiplier=1.1, room_bonus=1,
        gold_reward=(40, 90), material_reward=(10, 25), experience_multiplier=1.5,
        boss_pool=("spectral_librarian",),
        first_completion=MappingProxyType({"gold": 75, "materials": 20, "experience": 300}),
    ),
    DungeonKind.SHADOW_FORTRESS: DungeonKindInfo(
        kind=DungeonKind.SHADOW_FORTRESS,
        name="Shadow Fortress",
        description="A keep swallowed by darkness and the things living in it",
        difficulty=4, loot_multiplier=1.3, room_bonus=2,
        gold_reward=(80, 160), material_reward=(25, 50), experience_multiplier=1.8,
        boss_pool=("nightmare_spawn", "shadow_knight"),
        first_completion=MappingProxyType({"gold": 150, "materials": 40, "experience": 500}),
    ),
    DungeonKind.ELEMENTAL_PLANES: DungeonKindInfo(
        kind=DungeonKind.ELEMENTAL_PLANES,
        name="Elemental Planes",
        description="Where fire, frost, storm and stone collide",
        difficulty=5, loot_multiplier=1.5, room_bonus=3,
        gold_reward=(100, 200), material_reward=(30, 60), experience_multiplier=2.0,
        boss_pool=("fire_elemental", "frost_giant", "storm_lord", "earth_titan"),
        first_completion=MappingProxyType({"gold": 200, "materials": 60, "experience": 800}),
    ),
    DungeonKind.DEMON_LORDS_DUNGEON: DungeonKindInfo(
        kind=DungeonKind.DEMON_LORDS_DUNGEON,
        name="Demon Lord's Dungeon",
        description="The stronghold of Malphas and his infernal court",
        difficulty=6, loot_multiplier=2.0, room_bonus=4,
        gold_reward=(500, 1000), material_reward=(100, 200), experience_multiplier=5.0,
        boss_pool=("demon_lieutenant", "pit_fiend", "demon_lord_malphas"),
        first_completion=MappingProxyType({"gold": 1000, "materials": 200, "experience": 2000}),
    ),
})


def resolve_dungeon_kind(kind: Union[DungeonKind, str]) -> DungeonKind:
    """
    Normalize a kind given as enum or string.

    Unknown kinds fall back to the training grounds with a warning.
    """
    if isinstance(kind, DungeonKind):
        return kind
    try:
        return DungeonKind(kind)
    except ValueError:
        logger.warning(f"Unknown dungeon kind '{kind}', using training grounds")
        return DungeonKind.TRAINING_GROUNDS


def get_dungeon_info(kind: Union[DungeonKind, str]) -> DungeonKindInfo:
    return DUNGEON_KINDS[resolve_dungeon_kind(kind)]


def get_room_templates(kind: Union[DungeonKind, str]) -> DungeonTemplate:
    return ROOM_TEMPLATES[resolve_dungeon_kind(kind)]


def get_loot_multiplier(kind: Union[DungeonKind, str]) -> float:
    return get_dungeon_info(kind).loot_multiplier


def get_room_weights(templates: DungeonTemplate) -> dict[RoomType, int]:
    """Weight table over the non-boss room types of a template set."""
    return {
        room_type: template.weight
        for room_type, template in templates.items()
        if room_type not in (RoomType.BOSS, RoomType.ENTRANCE)
    }


def build_boss_template(kind: Union[DungeonKind, str]) -> RoomTemplate:
    """Boss rooms reuse the kind's combat template plus its boss pool."""
    info = get_dungeon_info(kind)
    combat = get_room_templates(kind).get(RoomType.COMBAT, RoomTemplate(weight=0))
    return RoomTemplate(
        weight=0,
        enemies=combat.enemies,
        min_enemies=1,
        max_enemies=1,
        bosses=info.boss_pool or (FALLBACK_BOSS,),
    )
