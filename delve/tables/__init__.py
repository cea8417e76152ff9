"""Static game tables: rooms, enemies, events, skills and character classes."""

from delve.tables.room_templates import (
    RoomTemplate,
    DungeonKindInfo,
    ROOM_TEMPLATES,
    DUNGEON_KINDS,
    resolve_dungeon_kind,
    get_dungeon_info,
    get_room_templates,
    get_loot_multiplier,
    get_room_weights,
    build_boss_template,
)
from delve.tables.enemy_tables import (
    EnemyDefinition,
    EnemyAbility,
    ENEMIES,
    ENEMY_ABILITIES,
    get_enemy_definition,
    get_enemy_ability,
)
from delve.tables.event_tables import EventEffect, EventDefinition, EVENTS, get_event
from delve.tables.skill_tables import SkillDefinition, SKILLS, get_skill, learnable_skills
from delve.tables.character_tables import (
    CharacterClass,
    CHARACTER_CLASSES,
    DEFAULT_PARTY,
    create_character,
    create_party,
)

__all__ = [
    "RoomTemplate",
    "DungeonKindInfo",
    "ROOM_TEMPLATES",
    "DUNGEON_KINDS",
    "resolve_dungeon_kind",
    "get_dungeon_info",
    "get_room_templates",
    "get_loot_multiplier",
    "get_room_weights",
    "build_boss_template",
    "EnemyDefinition",
    "EnemyAbility",
    "ENEMIES",
    "ENEMY_ABILITIES",
    "get_enemy_definition",
    "get_enemy_ability",
    "EventEffect",
    "EventDefinition",
    "EVENTS",
    "get_event",
    "SkillDefinition",
    "SKILLS",
    "get_skill",
    "learnable_skills",
    "CharacterClass",
    "CHARACTER_CLASSES",
    "DEFAULT_PARTY",
    "create_character",
    "create_party",
]
