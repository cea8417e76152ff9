"""
Core data models for the Delve dungeon engine.

This module defines the shared vocabulary used by every other subsystem:
room and dungeon enums, the injectable dice roller, the Combatant
interface implemented by both allies and enemies, and the reference
CharacterState used for the party.
"""

import logging
import random
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Protocol, TypeVar, runtime_checkable

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# ENUMS
# =============================================================================


class RoomType(str, Enum):
    """Type tag carried by every dungeon room."""
    ENTRANCE = "entrance"
    COMBAT = "combat"
    TREASURE = "treasure"
    TRAP = "trap"
    REST = "rest"
    BOSS = "boss"
    PUZZLE = "puzzle"
    EVENT = "event"
    EMPTY = "empty"


class DungeonKind(str, Enum):
    """Named difficulty/theme tiers, easiest first."""
    TRAINING_GROUNDS = "training_grounds"
    CRYSTAL_CAVERNS = "crystal_caverns"
    ANCIENT_LIBRARY = "ancient_library"
    SHADOW_FORTRESS = "shadow_fortress"
    ELEMENTAL_PLANES = "elemental_planes"
    DEMON_LORDS_DUNGEON = "demon_lords_dungeon"


class StatusEffectType(str, Enum):
    """Status effects that can be applied to combatants."""
    POISONED = "poisoned"
    BURNING = "burning"
    FEAR = "fear"
    CONFUSED = "confused"
    STUNNED = "stunned"
    BLINDED = "blinded"
    SILENCED = "silenced"
    REGENERATING = "regenerating"
    SHIELDED = "shielded"
    BLESSED = "blessed"
    UNCONSCIOUS = "unconscious"


# Negative effects a rest can wash away
CLEARABLE_STATUS_EFFECTS = frozenset({
    StatusEffectType.POISONED,
    StatusEffectType.BURNING,
    StatusEffectType.FEAR,
    StatusEffectType.CONFUSED,
})

# Effects that stop a combatant from counting as conscious
INCAPACITATING_STATUS_EFFECTS = frozenset({StatusEffectType.UNCONSCIOUS})


class EventEffectType(str, Enum):
    """Taxonomy of event room effects."""
    MANA_RESTORE = "mana_restore"
    STAT_DRAIN = "stat_drain"
    HP_DRAIN = "hp_drain"
    RANDOM_STAT_BOOST = "random_stat_boost"
    NO_EFFECT = "no_effect"


class SkillType(str, Enum):
    """Broad skill categories used by the combat action policy."""
    OFFENSIVE = "offensive"
    HEALING = "healing"
    DEFENSIVE = "defensive"
    BUFF = "buff"
    CONTROL = "control"
    UTILITY = "utility"


CORE_STATS = ("might", "agility", "mind", "spirit", "endurance")


# =============================================================================
# DICE AND RANDOMNESS
# =============================================================================


_DICE_PATTERN = re.compile(r"^(\d*)d(\d+)([+-]\d+)?$")


class DiceRoller:
    """
    Randomization interface for the engine.

    Each roller owns its own random source so that a dungeon built and
    played with a given seed is reproducible. Rollers are passed to the
    generator, exploration session and combat engine explicitly; there is
    no shared global instance.
    """

    def __init__(self, seed: Optional[int] = None, keep_log: bool = True):
        self.seed = seed
        self._rng = random.Random(seed)
        self._keep_log = keep_log
        self._roll_log: list[DiceResult] = []

    def roll(self, dice: str, reason: str = "") -> "DiceResult":
        """
        Roll dice using standard notation (e.g., '2d6', '1d20+5', '3d6-2').

        Args:
            dice: Dice notation string
            reason: Why this roll is being made (for logging)

        Returns:
            DiceResult with individual rolls and total

        Raises:
            ValueError: If the notation cannot be parsed
        """
        match = _DICE_PATTERN.match(dice.lower().replace(" ", ""))
        if not match:
            raise ValueError(f"Invalid dice notation: {dice}")

        num_dice = int(match.group(1)) if match.group(1) else 1
        die_size = int(match.group(2))
        modifier = int(match.group(3)) if match.group(3) else 0

        rolls = [self._rng.randint(1, die_size) for _ in range(num_dice)]
        result = DiceResult(
            notation=dice,
            rolls=rolls,
            modifier=modifier,
            total=sum(rolls) + modifier,
            reason=reason,
        )
        self._record(result)
        return result

    def roll_d20(self, reason: str = "") -> "DiceResult":
        """Convenience method for d20 rolls."""
        return self.roll("1d20", reason)

    def roll_percentile(self, reason: str = "") -> "DiceResult":
        """Roll d100 for percentile checks."""
        return self.roll("1d100", reason)

    def randint(self, low: int, high: int, reason: str = "") -> int:
        """Random integer in [low, high], inclusive on both ends."""
        if high < low:
            low, high = high, low
        value = self._rng.randint(low, high)
        self._record(DiceResult(
            notation=f"{low}-{high}", rolls=[value], modifier=0,
            total=value, reason=reason,
        ))
        return value

    def uniform(self, low: float, high: float) -> float:
        """Random float in [low, high]."""
        return self._rng.uniform(low, high)

    def random(self) -> float:
        """Random float in [0.0, 1.0)."""
        return self._rng.random()

    def choice(self, options: Sequence[T], reason: str = "") -> T:
        """Pick one element uniformly from a non-empty sequence."""
        if not options:
            raise ValueError(f"Cannot choose from an empty sequence ({reason})")
        return options[self._rng.randrange(len(options))]

    def percent_chance(self, percent: float, reason: str = "") -> bool:
        """Return True with the given percentage probability (0-100)."""
        return self._rng.random() * 100 < percent

    def get_roll_log(self) -> list["DiceResult"]:
        """Get the complete roll log for this roller."""
        return self._roll_log.copy()

    def clear_roll_log(self) -> None:
        """Clear the roll log."""
        self._roll_log = []

    def _record(self, result: "DiceResult") -> None:
        logger.debug(f"Roll {result} ({result.reason})")
        if self._keep_log:
            self._roll_log.append(result)


@dataclass
class DiceResult:
    """Result of a dice roll with full information."""
    notation: str
    rolls: list[int]
    modifier: int
    total: int
    reason: str
    timestamp: datetime = field(default_factory=datetime.now)

    def __str__(self) -> str:
        if self.modifier > 0:
            return f"{self.notation}: {self.rolls} + {self.modifier} = {self.total}"
        elif self.modifier < 0:
            return f"{self.notation}: {self.rolls} - {abs(self.modifier)} = {self.total}"
        return f"{self.notation}: {self.rolls} = {self.total}"


def weighted_pick(table: Mapping[T, float], dice: DiceRoller) -> T:
    """
    Pick a key from a {key: weight} table with probability proportional to weight.

    Keys with zero or negative weight are never picked. Iteration order of
    the table is respected so that a seeded roller yields stable picks.

    Raises:
        ValueError: If the table has no positive weight
    """
    entries = [(key, weight) for key, weight in table.items() if weight > 0]
    total = sum(weight for _, weight in entries)
    if total <= 0:
        raise ValueError("weighted_pick requires at least one positive weight")

    threshold = dice.random() * total
    running = 0.0
    for key, weight in entries:
        running += weight
        if threshold < running:
            return key
    return entries[-1][0]


# =============================================================================
# STATUS EFFECTS
# =============================================================================


@dataclass
class StatusEffect:
    """A timed condition on a combatant."""
    effect_type: StatusEffectType
    duration: int = 3  # Turns remaining; -1 for indefinite
    source: str = ""
    value: int = 0

    def tick(self) -> bool:
        """Advance one turn. Returns True while the effect is still active."""
        if self.duration < 0:
            return True
        self.duration -= 1
        return self.duration > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.effect_type.value,
            "duration": self.duration,
            "source": self.source,
            "value": self.value,
        }


# =============================================================================
# COMBATANT INTERFACES
# =============================================================================


@runtime_checkable
class Combatant(Protocol):
    """
    Capability shared by every participant in an encounter.

    Allies and enemies both implement this; the combat engine never
    inspects the concrete type.
    """

    combatant_id: str
    name: str
    hp_current: int
    hp_max: int
    mp_current: int
    mp_max: int
    status_effects: list[StatusEffect]

    @property
    def attack_power(self) -> int:
        ...

    @property
    def defense(self) -> int:
        ...

    def is_alive(self) -> bool:
        ...

    def take_damage(self, amount: int) -> int:
        ...

    def heal(self, amount: int) -> int:
        ...

    def restore_mana(self, amount: int) -> int:
        ...

    def has_status_effect(self, effect_type: StatusEffectType) -> bool:
        ...

    def add_status_effect(self, effect: StatusEffect) -> None:
        ...


@runtime_checkable
class Character(Combatant, Protocol):
    """
    Party member capability consumed by the exploration session.

    Adds stats, skills and progression on top of Combatant.
    """

    character_class: str
    archetype: str
    level: int
    stats: dict[str, int]
    skills: list[str]
    skill_cooldowns: dict[str, int]

    def spend_mana(self, amount: int) -> bool:
        ...

    def remove_status_effects(self, effect_types: Any) -> list[StatusEffectType]:
        ...

    def reduce_cooldowns(self, amount: int) -> None:
        ...

    def learn_skill(self, skill_id: str) -> bool:
        ...

    def add_experience(self, amount: int) -> list[int]:
        ...


def _apply_damage(target: Any, amount: int) -> int:
    """Shared damage bookkeeping: minimum 1, unconscious at 0 HP."""
    damage = max(1, int(amount))
    dealt = min(damage, target.hp_current)
    target.hp_current -= dealt
    if target.hp_current <= 0:
        target.hp_current = 0
        if not target.has_status_effect(StatusEffectType.UNCONSCIOUS):
            target.status_effects.append(StatusEffect(
                StatusEffectType.UNCONSCIOUS, duration=-1, source="damage",
            ))
    return dealt


# =============================================================================
# ENEMIES
# =============================================================================


@dataclass
class BossPhase:
    """A boss phase, active while remaining HP% is at or below the threshold."""
    name: str
    hp_threshold: int  # Percent of max HP
    abilities: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "hp_threshold": self.hp_threshold,
                "abilities": list(self.abilities)}


@dataclass
class Enemy:
    """A hostile creature instance placed in a room."""
    combatant_id: str
    enemy_id: str  # Base type key in the enemy table
    name: str
    enemy_type: str
    hp_current: int
    hp_max: int
    attack: int
    base_defense: int
    speed: int
    abilities: list[str] = field(default_factory=list)
    resistances: list[str] = field(default_factory=list)
    weaknesses: list[str] = field(default_factory=list)
    loot: dict[str, Any] = field(default_factory=dict)
    experience_reward: int = 0
    is_boss: bool = False
    phases: list[BossPhase] = field(default_factory=list)
    status_effects: list[StatusEffect] = field(default_factory=list)
    ability_cooldowns: dict[str, int] = field(default_factory=dict)
    mp_current: int = 0
    mp_max: int = 0

    @property
    def attack_power(self) -> int:
        return self.attack

    @property
    def defense(self) -> int:
        return self.base_defense

    def is_alive(self) -> bool:
        return self.hp_current > 0 and not any(
            e.effect_type in INCAPACITATING_STATUS_EFFECTS for e in self.status_effects
        )

    def take_damage(self, amount: int) -> int:
        return _apply_damage(self, amount)

    def heal(self, amount: int) -> int:
        if self.hp_current <= 0:
            return 0
        healed = max(0, min(int(amount), self.hp_max - self.hp_current))
        self.hp_current += healed
        return healed

    def restore_mana(self, amount: int) -> int:
        return 0

    def has_status_effect(self, effect_type: StatusEffectType) -> bool:
        return any(e.effect_type == effect_type for e in self.status_effects)

    def add_status_effect(self, effect: StatusEffect) -> None:
        for existing in self.status_effects:
            if existing.effect_type == effect.effect_type:
                existing.duration = max(existing.duration, effect.duration)
                return
        self.status_effects.append(effect)

    def tick_cooldowns(self) -> None:
        for ability in list(self.ability_cooldowns):
            self.ability_cooldowns[ability] = max(0, self.ability_cooldowns[ability] - 1)

    def hp_percent(self) -> float:
        return 100.0 * self.hp_current / self.hp_max if self.hp_max else 0.0

    def current_phase(self) -> Optional[BossPhase]:
        """The deepest phase whose threshold has been reached."""
        active = None
        for phase in sorted(self.phases, key=lambda p: -p.hp_threshold):
            if self.hp_percent() <= phase.hp_threshold:
                active = phase
        return active

    def available_abilities(self) -> list[str]:
        """Abilities off cooldown for the current phase."""
        phase = self.current_phase()
        pool = phase.abilities if phase else self.abilities
        return [a for a in pool if self.ability_cooldowns.get(a, 0) <= 0]

    def to_dict(self) -> dict[str, Any]:
        data = {
            "combatant_id": self.combatant_id,
            "enemy_id": self.enemy_id,
            "name": self.name,
            "type": self.enemy_type,
            "hp_current": self.hp_current,
            "hp_max": self.hp_max,
            "attack": self.attack,
            "defense": self.base_defense,
            "speed": self.speed,
            "abilities": list(self.abilities),
            "resistances": list(self.resistances),
            "weaknesses": list(self.weaknesses),
            "experience_reward": self.experience_reward,
            "is_boss": self.is_boss,
        }
        if self.phases:
            data["phases"] = [p.to_dict() for p in self.phases]
        return data


# =============================================================================
# CHARACTERS
# =============================================================================


def experience_needed(level: int) -> int:
    """Total experience a character must hold to reach the given level."""
    return int(level ** 2 * 100)


@dataclass
class CharacterState:
    """
    A party member.

    Stats are stored as trained values (aptitude x 20 at creation). The
    experience threshold for the next level is always
    experience_needed(level + 1).
    """
    character_id: str
    name: str
    character_class: str  # e.g. "rogue", "cleric"
    archetype: str  # e.g. "DPS", "Healer"
    hp_current: int
    hp_max: int
    mp_current: int
    mp_max: int
    stats: dict[str, int] = field(default_factory=dict)
    skills: list[str] = field(default_factory=list)
    skill_cooldowns: dict[str, int] = field(default_factory=dict)
    status_effects: list[StatusEffect] = field(default_factory=list)
    level: int = 1
    experience: int = 0

    @property
    def combatant_id(self) -> str:
        return self.character_id

    @property
    def attack_power(self) -> int:
        return 15 + self.get_stat("might") // 6

    @property
    def defense(self) -> int:
        return self.get_stat("endurance") // 10

    @property
    def experience_to_next(self) -> int:
        return experience_needed(self.level + 1)

    def get_stat(self, stat: str) -> int:
        return self.stats.get(stat, 0)

    def is_alive(self) -> bool:
        return self.hp_current > 0 and not any(
            e.effect_type in INCAPACITATING_STATUS_EFFECTS for e in self.status_effects
        )

    def take_damage(self, amount: int) -> int:
        """Apply damage (minimum 1). Returns the HP actually lost."""
        return _apply_damage(self, amount)

    def heal(self, amount: int) -> int:
        """Heal up to max HP. Returns the amount actually healed."""
        if self.hp_current <= 0:
            return 0
        healed = max(0, min(int(amount), self.hp_max - self.hp_current))
        self.hp_current += healed
        return healed

    def restore_mana(self, amount: int) -> int:
        """Restore MP up to max. Returns the amount actually restored."""
        restored = max(0, min(int(amount), self.mp_max - self.mp_current))
        self.mp_current += restored
        return restored

    def spend_mana(self, amount: int) -> bool:
        if amount > self.mp_current:
            return False
        self.mp_current -= amount
        return True

    def has_status_effect(self, effect_type: StatusEffectType) -> bool:
        return any(e.effect_type == effect_type for e in self.status_effects)

    def add_status_effect(self, effect: StatusEffect) -> None:
        """Add an effect, refreshing duration if already present."""
        for existing in self.status_effects:
            if existing.effect_type == effect.effect_type:
                existing.duration = max(existing.duration, effect.duration)
                return
        self.status_effects.append(effect)

    def remove_status_effects(self, effect_types) -> list[StatusEffectType]:
        """Remove every effect of the given types. Returns the types removed."""
        wanted = set(effect_types)
        removed = [e.effect_type for e in self.status_effects if e.effect_type in wanted]
        self.status_effects = [e for e in self.status_effects if e.effect_type not in wanted]
        return removed

    def reduce_cooldowns(self, amount: int) -> None:
        for skill_id in list(self.skill_cooldowns):
            self.skill_cooldowns[skill_id] = max(0, self.skill_cooldowns[skill_id] - amount)

    def learn_skill(self, skill_id: str) -> bool:
        if skill_id in self.skills:
            return False
        self.skills.append(skill_id)
        return True

    def add_experience(self, amount: int) -> list[int]:
        """
        Add experience and apply any level ups.

        Returns:
            The levels gained, in order (empty if none)
        """
        self.experience += max(0, amount)
        gained = []
        while self.experience >= self.experience_to_next:
            self.level += 1
            self.hp_max += self.get_stat("endurance") // 20 * 3 + 5
            self.mp_max += (self.get_stat("mind") + self.get_stat("spirit")) // 20 * 2
            self.hp_current = self.hp_max
            self.mp_current = self.mp_max
            gained.append(self.level)
            logger.info(f"{self.name} reached level {self.level}")
        return gained

    def to_dict(self) -> dict[str, Any]:
        return {
            "character_id": self.character_id,
            "name": self.name,
            "character_class": self.character_class,
            "archetype": self.archetype,
            "level": self.level,
            "experience": self.experience,
            "hp_current": self.hp_current,
            "hp_max": self.hp_max,
            "mp_current": self.mp_current,
            "mp_max": self.mp_max,
            "stats": dict(self.stats),
            "skills": list(self.skills),
            "status_effects": [e.to_dict() for e in self.status_effects],
        }
