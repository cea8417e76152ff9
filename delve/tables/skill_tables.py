"""
Skill definitions.

Skills are used by allies in combat (offensive, healing, defensive, buff
and control skills) and can be learned from puzzle rewards. Utility
skills have no combat effect.

Skill power is computed from a flat base plus the actor's stat modifier
(the governing stat divided by STAT_MODIFIER_DIVISOR) times the skill's
damage or healing multiplier.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from delve.data_models import SkillType, StatusEffectType

logger = logging.getLogger(__name__)

BASE_SKILL_DAMAGE = 25
BASE_SKILL_HEALING = 30
STAT_MODIFIER_DIVISOR = 8
# Governing stat needed before a skill can be learned from a puzzle
MIN_STAT_TO_LEARN = 40


@dataclass(frozen=True)
class SkillDefinition:
    """A learnable skill."""
    skill_id: str
    name: str
    skill_type: SkillType
    stat_modifier: str
    base_chance: int  # Percent chance the default policy uses it
    cooldown: int
    mana_cost: int
    damage_multiplier: float = 0.0
    healing_multiplier: float = 0.0
    status_effect: Optional[StatusEffectType] = None
    area: bool = False
    description: str = ""


def stat_modifier(stat_value: int) -> int:
    """Convert a trained stat into the modifier used by skill formulas."""
    return stat_value // STAT_MODIFIER_DIVISOR


def skill_damage(skill: SkillDefinition, stat_value: int) -> int:
    return int(BASE_SKILL_DAMAGE + stat_modifier(stat_value) * skill.damage_multiplier)


def skill_healing(skill: SkillDefinition, stat_value: int) -> int:
    return int(BASE_SKILL_HEALING + stat_modifier(stat_value) * skill.healing_multiplier)


_T = SkillType
_S = StatusEffectType


def _skill(skill_id, name, skill_type, stat, chance, cooldown, mana, **kwargs) -> SkillDefinition:
    return SkillDefinition(skill_id, name, skill_type, stat, chance, cooldown, mana, **kwargs)


SKILLS: dict[str, SkillDefinition] = {s.skill_id: s for s in (
    # Guardian
    _skill("shield_bash", "Shield Bash", _T.OFFENSIVE, "might", 15, 3, 10,
           damage_multiplier=1.5, status_effect=_S.STUNNED),
    _skill("taunt", "Taunt", _T.CONTROL, "spirit", 30, 3, 5, status_effect=_S.CONFUSED),
    _skill("guard_stance", "Guard Stance", _T.DEFENSIVE, "endurance", 35, 5, 15,
           status_effect=_S.SHIELDED, area=True),
    # Cleric
    _skill("healing_word", "Healing Word", _T.HEALING, "spirit", 20, 2, 20,
           healing_multiplier=2.0),
    _skill("blessing", "Blessing", _T.BUFF, "spirit", 40, 0, 25,
           status_effect=_S.BLESSED, area=True),
    _skill("turn_undead", "Turn Undead", _T.OFFENSIVE, "spirit", 30, 3, 30,
           damage_multiplier=3.0, status_effect=_S.FEAR),
    # Rogue
    _skill("backstab", "Backstab", _T.OFFENSIVE, "agility", 25, 4, 0, damage_multiplier=2.5),
    _skill("lockpicking", "Lockpicking", _T.UTILITY, "agility", 35, 0, 0),
    _skill("dodge_roll", "Dodge Roll", _T.DEFENSIVE, "agility", 20, 2, 5,
           status_effect=_S.SHIELDED),
    # Mage
    _skill("fireball", "Fireball", _T.OFFENSIVE, "mind", 10, 5, 40,
           damage_multiplier=2.0, status_effect=_S.BURNING, area=True),
    _skill("magic_missile", "Magic Missile", _T.OFFENSIVE, "mind", 50, 1, 15,
           damage_multiplier=1.2),
    _skill("arcane_shield", "Arcane Shield", _T.DEFENSIVE, "mind", 25, 4, 25,
           status_effect=_S.SHIELDED),
    # Ranger
    _skill("precise_shot", "Precise Shot", _T.OFFENSIVE, "agility", 35, 3, 10,
           damage_multiplier=1.8),
    _skill("animal_companion", "Animal Companion", _T.OFFENSIVE, "spirit", 15, 6, 35,
           damage_multiplier=1.0),
    _skill("nature_sense", "Nature Sense", _T.UTILITY, "mind", 40, 0, 0),
    # Berserker
    _skill("berserker_rage", "Berserker Rage", _T.BUFF, "might", 30, 5, 0,
           damage_multiplier=2.0, status_effect=_S.BLESSED),
    _skill("reckless_attack", "Reckless Attack", _T.OFFENSIVE, "might", 25, 2, 0,
           damage_multiplier=2.5),
    _skill("intimidate", "Intimidate", _T.CONTROL, "might", 30, 4, 0, status_effect=_S.FEAR),
    # Paladin
    _skill("holy_strike", "Holy Strike", _T.OFFENSIVE, "spirit", 25, 3, 20,
           damage_multiplier=2.0),
    _skill("divine_protection", "Divine Protection", _T.DEFENSIVE, "spirit", 20, 6, 40,
           status_effect=_S.SHIELDED, area=True),
    _skill("consecrate", "Consecrate", _T.OFFENSIVE, "spirit", 15, 8, 50,
           damage_multiplier=1.5, area=True),
    # Assassin
    _skill("poison_blade", "Poison Blade", _T.OFFENSIVE, "mind", 30, 4, 15,
           damage_multiplier=1.2, status_effect=_S.POISONED),
    _skill("shadow_step", "Shadow Step", _T.OFFENSIVE, "agility", 25, 3, 20,
           damage_multiplier=2.0),
    _skill("stealth", "Stealth", _T.UTILITY, "agility", 20, 5, 25),
    # Battlemage
    _skill("flame_weapon", "Flame Weapon", _T.OFFENSIVE, "mind", 30, 4, 30,
           damage_multiplier=1.5, status_effect=_S.BURNING),
    _skill("spell_strike", "Spell Strike", _T.OFFENSIVE, "mind", 30, 3, 25,
           damage_multiplier=1.8),
    _skill("mana_burn", "Mana Burn", _T.CONTROL, "mind", 25, 4, 35,
           damage_multiplier=1.0, status_effect=_S.SILENCED),
    # Necromancer
    _skill("raise_skeleton", "Raise Skeleton", _T.OFFENSIVE, "mind", 20, 5, 40,
           damage_multiplier=1.0),
    _skill("drain_life", "Drain Life", _T.OFFENSIVE, "mind", 30, 3, 30,
           damage_multiplier=1.5, healing_multiplier=1.0),
    _skill("death_magic", "Death Magic", _T.OFFENSIVE, "mind", 10, 6, 50,
           damage_multiplier=3.0),
)}


def get_skill(skill_id: str) -> Optional[SkillDefinition]:
    """Look up a skill; unknown ids log a warning and return None."""
    skill = SKILLS.get(skill_id)
    if skill is None:
        logger.warning(f"Unknown skill '{skill_id}'")
    return skill


def learnable_skills(stats: dict[str, int], known: list[str]) -> list[str]:
    """Skills a character could pick up from a puzzle reward."""
    return [
        skill_id for skill_id, skill in SKILLS.items()
        if skill_id not in known and stats.get(skill.stat_modifier, 0) >= MIN_STAT_TO_LEARN
    ]
