"""
Character class presets.

Aptitudes (1-5) are converted into trained stats at a rate of
STAT_PER_APTITUDE per point. Used by the command line demo and the test
suite to build ready-made parties.
"""

from dataclasses import dataclass
from typing import Optional

from delve.data_models import CORE_STATS, CharacterState

STAT_PER_APTITUDE = 20


@dataclass(frozen=True)
class CharacterClass:
    class_id: str
    name: str
    archetype: str
    aptitudes: tuple[int, int, int, int, int]  # might, agility, mind, spirit, endurance
    hp: int
    mp: int
    skills: tuple[str, ...]


CHARACTER_CLASSES: dict[str, CharacterClass] = {c.class_id: c for c in (
    CharacterClass("guardian", "Guardian", "Tank", (5, 2, 1, 3, 5), 120, 30,
                   ("shield_bash", "taunt", "guard_stance")),
    CharacterClass("cleric", "Cleric", "Healer", (2, 2, 4, 5, 3), 80, 100,
                   ("healing_word", "blessing", "turn_undead")),
    CharacterClass("rogue", "Rogue", "DPS", (3, 5, 3, 2, 2), 70, 50,
                   ("backstab", "lockpicking", "dodge_roll")),
    CharacterClass("mage", "Mage", "Caster", (1, 2, 5, 3, 2), 60, 120,
                   ("fireball", "magic_missile", "arcane_shield")),
    CharacterClass("ranger", "Ranger", "Hybrid", (3, 4, 2, 4, 3), 90, 70,
                   ("precise_shot", "animal_companion", "nature_sense")),
    CharacterClass("berserker", "Berserker", "Glass Cannon", (5, 3, 1, 2, 2), 100, 20,
                   ("berserker_rage", "reckless_attack", "intimidate")),
    CharacterClass("paladin", "Paladin", "Holy Warrior", (4, 2, 3, 5, 4), 110, 80,
                   ("holy_strike", "divine_protection", "consecrate")),
    CharacterClass("assassin", "Assassin", "Shadow Striker", (2, 5, 4, 1, 1), 50, 60,
                   ("poison_blade", "shadow_step", "stealth")),
    CharacterClass("battlemage", "Battlemage", "Spellsword", (4, 3, 4, 2, 3), 85, 90,
                   ("flame_weapon", "spell_strike", "mana_burn")),
    CharacterClass("necromancer", "Necromancer", "Death Mage", (1, 2, 5, 1, 2), 70, 110,
                   ("raise_skeleton", "drain_life", "death_magic")),
)}

DEFAULT_PARTY = ("guardian", "cleric", "rogue")


def create_character(class_id: str, name: Optional[str] = None,
                     character_id: Optional[str] = None) -> CharacterState:
    """
    Build a fresh level-1 character from a class preset.

    Raises:
        KeyError: If the class id is unknown
    """
    preset = CHARACTER_CLASSES[class_id]
    stats = {
        stat: aptitude * STAT_PER_APTITUDE
        for stat, aptitude in zip(CORE_STATS, preset.aptitudes)
    }
    return CharacterState(
        character_id=character_id or class_id,
        name=name or preset.name,
        character_class=preset.class_id,
        archetype=preset.archetype,
        hp_current=preset.hp,
        hp_max=preset.hp,
        mp_current=preset.mp,
        mp_max=preset.mp,
        stats=stats,
        skills=list(preset.skills),
    )


def create_party(class_ids=DEFAULT_PARTY) -> list[CharacterState]:
    """Build a party, giving duplicate classes distinct ids."""
    party = []
    for index, class_id in enumerate(class_ids):
        party.append(create_character(class_id, character_id=f"{class_id}_{index}"))
    return party
