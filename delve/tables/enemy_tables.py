"""
Enemy definitions and enemy abilities.

Base enemies are immutable templates; the room content generator builds
scaled Enemy instances from them. Unknown identifiers resolve to a
generic fallback creature so generation never aborts.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from delve.data_models import StatusEffectType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnemyDefinition:
    """Base stats for an enemy type."""
    name: str
    enemy_type: str
    hp: int
    attack: int
    defense: int
    speed: int
    abilities: tuple[str, ...] = ()
    resistances: tuple[str, ...] = ()
    weaknesses: tuple[str, ...] = ()
    loot: tuple[tuple[str, tuple[int, int]], ...] = ()
    experience_reward: int = 0
    description: str = ""
    # (name, hp threshold percent, abilities)
    phases: tuple[tuple[str, int, tuple[str, ...]], ...] = ()


@dataclass(frozen=True)
class EnemyAbility:
    """What an enemy ability does when used."""
    name: str
    damage_multiplier: float = 1.0  # 0 means no direct damage
    heal_fraction: float = 0.0  # Fraction of own max HP healed
    status_effect: Optional[StatusEffectType] = None
    area: bool = False  # Hits every conscious opponent
    cooldown: int = 3
    description: str = ""


FALLBACK_ENEMY = EnemyDefinition(
    name="Unknown Creature",
    enemy_type="beast",
    hp=50,
    attack=15,
    defense=5,
    speed=5,
    experience_reward=25,
    description="A creature that defies description",
)


def _loot(**ranges: tuple[int, int]) -> tuple[tuple[str, tuple[int, int]], ...]:
    return tuple(ranges.items())


ENEMIES: dict[str, EnemyDefinition] = {
    # Training grounds
    "training_dummy": EnemyDefinition(
        "Training Dummy", "construct", 40, 5, 2, 1,
        resistances=("physical",), weaknesses=("fire",),
        loot=_loot(gold=(1, 3), materials=(1, 2)), experience_reward=20,
        description="A straw-stuffed target that hits back, barely",
    ),
    "wooden_golem": EnemyDefinition(
        "Wooden Golem", "construct", 60, 8, 5, 2, abilities=("slam",),
        resistances=("piercing",), weaknesses=("fire",),
        loot=_loot(gold=(2, 5), materials=(2, 4)), experience_reward=35,
    ),
    "practice_skeleton": EnemyDefinition(
        "Practice Skeleton", "undead", 35, 10, 1, 4, abilities=("bone_throw",),
        resistances=("piercing",), weaknesses=("blunt", "holy"),
        loot=_loot(gold=(3, 6), materials=(1, 3)), experience_reward=30,
    ),
    # Crystal caverns
    "crystal_spider": EnemyDefinition(
        "Crystal Spider", "beast", 45, 12, 3, 8, abilities=("web_shot", "crystal_bite"),
        resistances=("magic",), weaknesses=("blunt",),
        loot=_loot(gold=(5, 10), materials=(3, 6)), experience_reward=50,
    ),
    "cave_troll": EnemyDefinition(
        "Cave Troll", "giant", 120, 18, 8, 3, abilities=("boulder_throw", "regeneration"),
        resistances=("blunt",), weaknesses=("fire", "acid"),
        loot=_loot(gold=(10, 20), materials=(5, 10)), experience_reward=80,
    ),
    "crystal_golem": EnemyDefinition(
        "Crystal Golem", "construct", 100, 15, 12, 2, abilities=("crystal_slam", "reflect_spell"),
        resistances=("magic", "piercing"), weaknesses=("blunt", "sonic"),
        loot=_loot(gold=(12, 25), materials=(8, 15)), experience_reward=90,
    ),
    # Ancient library
    "spectral_librarian": EnemyDefinition(
        "Spectral Librarian", "undead", 80, 20, 5, 6,
        abilities=("silence", "knowledge_drain", "spectral_touch"),
        resistances=("physical",), weaknesses=("holy",),
        loot=_loot(gold=(15, 30), materials=(5, 10)), experience_reward=120,
    ),
    "animated_book": EnemyDefinition(
        "Animated Book", "construct", 50, 16, 3, 7,
        abilities=("paper_cut", "spell_cast", "ink_spray"),
        resistances=("magic",), weaknesses=("fire",),
        loot=_loot(gold=(8, 15), materials=(4, 8)), experience_reward=100,
    ),
    "ink_elemental": EnemyDefinition(
        "Ink Elemental", "elemental", 70, 18, 4, 8,
        abilities=("ink_splash", "blind", "engulf"),
        resistances=("physical",), weaknesses=("light",),
        loot=_loot(gold=(10, 20), materials=(5, 12)), experience_reward=110,
    ),
    # Shadow fortress
    "shadow_knight": EnemyDefinition(
        "Shadow Knight", "undead", 150, 25, 15, 6,
        abilities=("shadow_strike", "dark_aura", "life_drain"),
        resistances=("shadow",), weaknesses=("holy", "light"),
        loot=_loot(gold=(25, 50), materials=(10, 20)), experience_reward=200,
    ),
    "wraith": EnemyDefinition(
        "Wraith", "undead", 90, 30, 2, 10,
        abilities=("phase", "wail", "touch_of_death"),
        resistances=("physical",), weaknesses=("holy",),
        loot=_loot(gold=(20, 40), materials=(8, 16)), experience_reward=180,
    ),
    "nightmare_spawn": EnemyDefinition(
        "Nightmare Spawn", "fiend", 110, 28, 8, 9,
        abilities=("fear_aura", "nightmare_vision", "shadow_teleport"),
        resistances=("shadow", "mind"), weaknesses=("light",),
        loot=_loot(gold=(25, 45), materials=(10, 18)), experience_reward=220,
    ),
    # Elemental planes
    "fire_elemental": EnemyDefinition(
        "Fire Elemental", "elemental", 180, 35, 10, 8,
        abilities=("flame_burst", "ignite", "fire_shield"),
        resistances=("fire",), weaknesses=("water", "ice"),
        loot=_loot(gold=(40, 70), materials=(15, 30)), experience_reward=300,
    ),
    "frost_giant": EnemyDefinition(
        "Frost Giant", "giant", 250, 40, 20, 4,
        abilities=("ice_slam", "frost_breath", "avalanche"),
        resistances=("ice",), weaknesses=("fire",),
        loot=_loot(gold=(50, 90), materials=(20, 35)), experience_reward=350,
    ),
    "storm_lord": EnemyDefinition(
        "Storm Lord", "elemental", 200, 45, 8, 12,
        abilities=("lightning_bolt", "thunder_clap", "wind_barrier"),
        resistances=("lightning",), weaknesses=("earth",),
        loot=_loot(gold=(45, 80), materials=(18, 32)), experience_reward=320,
    ),
    "earth_titan": EnemyDefinition(
        "Earth Titan", "elemental", 300, 30, 25, 2,
        abilities=("earthquake", "stone_throw", "earth_shield"),
        resistances=("physical", "earth"), weaknesses=("lightning",),
        loot=_loot(gold=(55, 95), materials=(25, 40)), experience_reward=380,
    ),
    # Demon lord's dungeon
    "demon_lieutenant": EnemyDefinition(
        "Demon Lieutenant", "fiend", 400, 50, 20, 8,
        abilities=("hellfire", "summon_imps", "dark_command"),
        resistances=("fire", "shadow"), weaknesses=("holy",),
        loot=_loot(gold=(100, 200), materials=(40, 80)), experience_reward=600,
    ),
    "pit_fiend": EnemyDefinition(
        "Pit Fiend", "fiend", 500, 60, 25, 7,
        abilities=("meteor_swarm", "fear_aura", "regeneration"),
        resistances=("fire", "poison"), weaknesses=("holy",),
        loot=_loot(gold=(150, 250), materials=(50, 100)), experience_reward=800,
    ),
    "demon_lord_malphas": EnemyDefinition(
        "Demon Lord Malphas", "fiend_lord", 800, 80, 30, 10,
        abilities=("hellfire", "dark_command", "apocalypse", "reality_rend",
                   "soul_steal", "demon_transformation"),
        resistances=("fire", "shadow", "poison"), weaknesses=("holy",),
        loot=_loot(gold=(500, 1000), materials=(100, 200)), experience_reward=2000,
        description="Master of the infernal court",
        phases=(
            ("Mortal Form", 100, ("hellfire", "dark_command")),
            ("True Form", 50, ("apocalypse", "reality_rend")),
            ("Final Desperation", 10, ("soul_steal", "demon_transformation")),
        ),
    ),
}


# =============================================================================
# ENEMY ABILITIES
# =============================================================================


BOSS_ABILITIES = ("boss_rage", "area_attack")

# Phase added to bosses that declare no phases of their own
DEFAULT_ENRAGE_THRESHOLD = 30

_S = StatusEffectType

ENEMY_ABILITIES: dict[str, EnemyAbility] = {
    "slam": EnemyAbility("Slam", 1.5),
    "bone_throw": EnemyAbility("Bone Throw", 1.2),
    "web_shot": EnemyAbility("Web Shot", 0.8, status_effect=_S.STUNNED),
    "crystal_bite": EnemyAbility("Crystal Bite", 1.3),
    "boulder_throw": EnemyAbility("Boulder Throw", 2.0),
    "regeneration": EnemyAbility("Regeneration", 0, heal_fraction=0.1),
    "crystal_slam": EnemyAbility("Crystal Slam", 1.8),
    "reflect_spell": EnemyAbility("Reflect Spell", 0, heal_fraction=0.05),
    "silence": EnemyAbility("Silence", 0, status_effect=_S.SILENCED),
    "knowledge_drain": EnemyAbility("Knowledge Drain", 1.0),
    "spectral_touch": EnemyAbility("Spectral Touch", 1.4),
    "paper_cut": EnemyAbility("Paper Cut", 0.6),
    "spell_cast": EnemyAbility("Spell Cast", 1.5),
    "ink_spray": EnemyAbility("Ink Spray", 0.8, status_effect=_S.BLINDED),
    "ink_splash": EnemyAbility("Ink Splash", 1.0),
    "blind": EnemyAbility("Blind", 0, status_effect=_S.BLINDED),
    "engulf": EnemyAbility("Engulf", 1.2),
    "shadow_strike": EnemyAbility("Shadow Strike", 2.0),
    "dark_aura": EnemyAbility("Dark Aura", 0, status_effect=_S.FEAR, area=True),
    "life_drain": EnemyAbility("Life Drain", 1.3, heal_fraction=0.05),
    "phase": EnemyAbility("Phase", 0, heal_fraction=0.05),
    "wail": EnemyAbility("Wail", 0.8, area=True),
    "touch_of_death": EnemyAbility("Touch of Death", 3.0, cooldown=5),
    "fear_aura": EnemyAbility("Fear Aura", 0, status_effect=_S.FEAR, area=True),
    "nightmare_vision": EnemyAbility("Nightmare Vision", 1.2, status_effect=_S.CONFUSED),
    "shadow_teleport": EnemyAbility("Shadow Teleport", 0, heal_fraction=0.05),
    "flame_burst": EnemyAbility("Flame Burst", 1.8, status_effect=_S.BURNING),
    "ignite": EnemyAbility("Ignite", 0.5, status_effect=_S.BURNING),
    "fire_shield": EnemyAbility("Fire Shield", 0, heal_fraction=0.05),
    "ice_slam": EnemyAbility("Ice Slam", 2.2),
    "frost_breath": EnemyAbility("Frost Breath", 1.5, area=True),
    "avalanche": EnemyAbility("Avalanche", 2.5, cooldown=4),
    "lightning_bolt": EnemyAbility("Lightning Bolt", 2.0),
    "thunder_clap": EnemyAbility("Thunder Clap", 1.0, status_effect=_S.STUNNED, area=True),
    "wind_barrier": EnemyAbility("Wind Barrier", 0, heal_fraction=0.05),
    "earthquake": EnemyAbility("Earthquake", 1.8, area=True),
    "stone_throw": EnemyAbility("Stone Throw", 1.6),
    "earth_shield": EnemyAbility("Earth Shield", 0, heal_fraction=0.08),
    "hellfire": EnemyAbility("Hellfire", 2.5, status_effect=_S.BURNING),
    "summon_imps": EnemyAbility("Summon Imps", 0, heal_fraction=0.05),
    "dark_command": EnemyAbility("Dark Command", 0, status_effect=_S.CONFUSED),
    "meteor_swarm": EnemyAbility("Meteor Swarm", 3.0, area=True, cooldown=5),
    "apocalypse": EnemyAbility("Apocalypse", 4.0, area=True, cooldown=6),
    "reality_rend": EnemyAbility("Reality Rend", 2.8),
    "soul_steal": EnemyAbility("Soul Steal", 2.0, heal_fraction=0.1),
    "demon_transformation": EnemyAbility("Demon Transformation", 0, heal_fraction=0.2, cooldown=8),
    # Boss-only slots
    "boss_rage": EnemyAbility("Boss Rage", 2.0),
    "area_attack": EnemyAbility("Area Attack", 1.0, area=True),
}

FALLBACK_ABILITY = EnemyAbility("Strike", 1.2)


def get_enemy_definition(enemy_id: str) -> EnemyDefinition:
    """Look up an enemy, falling back to a generic creature."""
    definition = ENEMIES.get(enemy_id)
    if definition is None:
        logger.warning(f"Unknown enemy '{enemy_id}', using fallback creature")
        return FALLBACK_ENEMY
    return definition


def get_enemy_ability(ability_id: str) -> EnemyAbility:
    """Look up an ability, falling back to a plain strike."""
    ability = ENEMY_ABILITIES.get(ability_id)
    if ability is None:
        logger.warning(f"Unknown enemy ability '{ability_id}', using basic strike")
        return FALLBACK_ABILITY
    return ability
