"""
Combat Engine for Delve.

Resolves one encounter between a party of allies and a group of enemies.
Sides alternate strictly:

1. Validate the rosters (an invalid roster aborts the fight)
2. Check the safety limits (round cap, wall-clock timeout)
3. Process start-of-turn status effects for the acting side
4. Every conscious actor on the acting side resolves one action
5. End-of-combat check (no allies -> defeat, no enemies -> victory)
6. Hand over to the other side; the round counter advances after the
   enemy turn

Callers either step the fight one side-turn at a time with
execute_turn(), or run it to completion with resolve(). Either way the
result is a CombatResult; nothing is pushed to callbacks.
"""

import logging
import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from delve.data_models import (
    Character,
    Combatant,
    DiceRoller,
    Enemy,
    SkillType,
    StatusEffect,
    StatusEffectType,
)
from delve.observability.event_log import EventLog, LogCategory
from delve.tables.enemy_tables import get_enemy_ability
from delve.tables.skill_tables import (
    SkillDefinition,
    get_skill,
    skill_damage,
    skill_healing,
)

logger = logging.getLogger(__name__)


class CombatActionType(str, Enum):
    """Types of combat actions."""
    ATTACK = "attack"
    SKILL = "skill"
    DEFEND = "defend"
    ITEM = "item"


class CombatPhase(str, Enum):
    ALLY_TURN = "ally_turn"
    ENEMY_TURN = "enemy_turn"
    ENDED = "ended"


class CombatOutcome(str, Enum):
    VICTORY = "victory"
    DEFEAT = "defeat"
    ABORTED = "aborted"


@dataclass(frozen=True)
class CombatItem:
    name: str
    heal: int = 0
    mana: int = 0


COMBAT_ITEMS: dict[str, CombatItem] = {
    "healing_potion": CombatItem("Healing Potion", heal=50),
    "mana_potion": CombatItem("Mana Potion", mana=40),
}

# Per-tick status damage and healing as a fraction of max HP
STATUS_TICK_FRACTIONS = {
    StatusEffectType.POISONED: -0.05,
    StatusEffectType.BURNING: -0.08,
    StatusEffectType.REGENERATING: 0.10,
}

# Durations given to effects applied by skills and abilities
STATUS_DURATIONS = {
    StatusEffectType.STUNNED: 1,
    StatusEffectType.SHIELDED: 2,
    StatusEffectType.BLESSED: 3,
}
DEFAULT_STATUS_DURATION = 2


@dataclass
class CombatConfig:
    """Tunable combat limits and multipliers."""
    max_rounds: int = 50
    combat_timeout: float = 60.0  # Seconds of wall-clock time
    enemy_ability_chance: float = 30  # Percent
    defend_multiplier: float = 0.5
    shield_multiplier: float = 0.7
    blessed_multiplier: float = 1.15
    heal_threshold: float = 0.4  # Allies below this HP fraction get healed first
    log_limit: int = 200


@dataclass
class CombatAction:
    """An action chosen for one ally."""
    combatant_id: str
    action_type: CombatActionType
    target_id: Optional[str] = None
    skill_id: Optional[str] = None
    item_id: Optional[str] = None


@dataclass
class ActionResult:
    """What one actor did during a turn."""
    actor_id: str
    action_type: CombatActionType
    name: str = ""  # Skill, ability or item used
    target_ids: list[str] = field(default_factory=list)
    damage_dealt: int = 0
    healing_done: int = 0
    effects_applied: list[str] = field(default_factory=list)
    fallback_reason: Optional[str] = None  # Why a requested action was replaced


@dataclass
class CombatSession:
    """
    State of one encounter. Exists only while the fight runs.

    The ally list is already filtered to conscious members; the allies
    themselves are borrowed, so damage is written straight onto them.
    """
    allies: list[Combatant]
    enemies: list[Combatant]
    started_at: float
    log: EventLog
    round_number: int = 1
    phase: CombatPhase = CombatPhase.ALLY_TURN
    items: dict[str, int] = field(default_factory=dict)
    defending: set[str] = field(default_factory=set)
    boss_phases: dict[str, str] = field(default_factory=dict)
    defeated_ids: set[str] = field(default_factory=set)
    outcome: Optional[CombatOutcome] = None
    end_reason: str = ""
    damage_dealt: int = 0
    damage_received: int = 0
    enemies_defeated: int = 0
    active: bool = True


@dataclass
class CombatResult:
    """Structured result of a finished encounter."""
    outcome: CombatOutcome
    rounds: int
    duration_seconds: float
    survivor_count: int
    enemies_defeated: int = 0
    damage_dealt: int = 0
    damage_received: int = 0
    reason: str = ""
    items_remaining: dict[str, int] = field(default_factory=dict)
    log: list[str] = field(default_factory=list)

    @property
    def victory(self) -> bool:
        return self.outcome == CombatOutcome.VICTORY

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "rounds": self.rounds,
            "duration_seconds": self.duration_seconds,
            "survivor_count": self.survivor_count,
            "enemies_defeated": self.enemies_defeated,
            "damage_dealt": self.damage_dealt,
            "damage_received": self.damage_received,
            "reason": self.reason,
        }


class CombatValidationError(Exception):
    """Raised when a combat roster is malformed."""

    pass


def calculate_attack_damage(power: float, target_defense: float, variance: float) -> int:
    """
    Attack damage formula.

    damage = power + variance * power - 0.1 * defense, floored at 1. Defend
    and shield reductions are applied when the damage lands.

    Args:
        power: Attacker's power
        target_defense: Target's defense
        variance: Random factor in [-0.2, 0.2]
    """
    raw = power + variance * power - 0.1 * target_defense
    return max(1, math.floor(raw))


def living(combatants: list[Combatant]) -> list[Combatant]:
    return [c for c in combatants if c is not None and c.is_alive()]


class CombatEngine:
    """
    Turn-based combat resolution.

    The engine holds no per-fight state of its own; everything lives on
    the CombatSession it hands out, so one engine can run any number of
    fights one after another.
    """

    def __init__(
        self,
        dice: DiceRoller,
        config: Optional[CombatConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            dice: Random source for damage variance, targeting and AI
            config: Limits and multipliers (defaults to CombatConfig())
            clock: Monotonic seconds source used for the timeout
        """
        self.dice = dice
        self.config = config or CombatConfig()
        self.clock = clock

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(
        self,
        allies: list[Combatant],
        enemies: list[Combatant],
        items: Optional[dict[str, int]] = None,
    ) -> CombatSession:
        """Open an encounter. Unconscious allies are left out."""
        session = CombatSession(
            allies=[a for a in allies if a is None or a.is_alive()],
            enemies=list(enemies),
            started_at=self.clock(),
            log=EventLog(max_entries=self.config.log_limit),
            items=dict(items or {}),
        )
        names = ", ".join(getattr(e, "name", "?") for e in session.enemies if e is not None)
        session.log.append(f"Combat begins against {names}", LogCategory.COMBAT)
        logger.debug(f"Combat started: {len(session.allies)} allies vs {len(session.enemies)} enemies")
        return session

    def execute_turn(
        self, session: CombatSession, actions: Optional[list[CombatAction]] = None
    ) -> list[ActionResult]:
        """
        Resolve one side's turn.

        Args:
            session: The running encounter
            actions: Explicit ally actions; allies without one use the
                default policy. Ignored on the enemy turn.

        Returns:
            What each actor did (empty if the fight was already over or
            was aborted before anyone acted)
        """
        if not session.active:
            return []

        try:
            self._validate(session)
        except CombatValidationError as e:
            logger.warning(f"Invalid combat state: {e}")
            self._end(session, CombatOutcome.ABORTED, f"invalid_state: {e}")
            return []

        if self.clock() - session.started_at >= self.config.combat_timeout:
            logger.warning(f"Combat timed out after {self.config.combat_timeout}s")
            self._end(session, CombatOutcome.ABORTED, "timeout")
            return []

        if session.round_number > self.config.max_rounds:
            self._end(session, CombatOutcome.ABORTED, "round_limit")
            return []

        if session.phase == CombatPhase.ALLY_TURN:
            results = self._run_ally_turn(session, actions or [])
        else:
            results = self._run_enemy_turn(session)

        outcome = self._check_combat_end(session)
        if outcome is not None:
            reason = "all_enemies_defeated" if outcome == CombatOutcome.VICTORY else "party_defeated"
            self._end(session, outcome, reason)
            return results

        if session.phase == CombatPhase.ALLY_TURN:
            session.phase = CombatPhase.ENEMY_TURN
        else:
            session.phase = CombatPhase.ALLY_TURN
            session.round_number += 1
            if session.round_number > self.config.max_rounds:
                logger.warning(f"Combat reached the {self.config.max_rounds} round cap")
                self._end(session, CombatOutcome.ABORTED, "round_limit")
        return results

    def force_end(self, session: CombatSession, reason: str = "forced") -> CombatResult:
        """Stop an encounter immediately with an aborted outcome."""
        if session.active:
            self._end(session, CombatOutcome.ABORTED, reason)
        return self.finish(session)

    def finish(self, session: CombatSession) -> CombatResult:
        """
        Build the result of an ended encounter and release its state.

        Raises:
            ValueError: If the encounter is still running
        """
        if session.active or session.outcome is None:
            raise ValueError("Cannot finish a combat that is still running")

        result = CombatResult(
            outcome=session.outcome,
            rounds=min(session.round_number, self.config.max_rounds),
            duration_seconds=round(self.clock() - session.started_at, 3),
            survivor_count=len(living(session.allies)),
            enemies_defeated=session.enemies_defeated,
            damage_dealt=session.damage_dealt,
            damage_received=session.damage_received,
            reason=session.end_reason,
            items_remaining={k: v for k, v in session.items.items() if v > 0},
            log=session.log.messages(),
        )
        session.defending.clear()
        session.items.clear()
        session.boss_phases.clear()
        return result

    def resolve(
        self,
        allies: list[Combatant],
        enemies: list[Combatant],
        items: Optional[dict[str, int]] = None,
    ) -> CombatResult:
        """Run an encounter to completion using the default ally policy."""
        session = self.start(allies, enemies, items)
        while session.active:
            self.execute_turn(session)
        result = self.finish(session)
        logger.info(
            f"Combat ended: {result.outcome.value} after {result.rounds} rounds "
            f"({result.survivor_count} allies standing)"
        )
        return result

    # =========================================================================
    # TURN RESOLUTION
    # =========================================================================

    def _run_ally_turn(self, session: CombatSession, actions: list[CombatAction]) -> list[ActionResult]:
        # A defend stance only covers the enemy turn right after it
        session.defending.clear()
        stunned = self._process_status_effects(session, session.allies)
        for ally in living(session.allies):
            if isinstance(ally, Character):
                ally.reduce_cooldowns(1)

        requested = {a.combatant_id: a for a in actions}
        results = []
        for ally in session.allies:
            if not ally.is_alive():
                continue
            if not living(session.enemies):
                break
            if ally.combatant_id in stunned:
                session.log.append(f"{ally.name} is stunned and cannot act", LogCategory.COMBAT)
                continue
            action = requested.get(ally.combatant_id) or self.choose_ally_action(session, ally)
            results.append(self._resolve_ally_action(session, ally, action))
        return results

    def _run_enemy_turn(self, session: CombatSession) -> list[ActionResult]:
        stunned = self._process_status_effects(session, session.enemies)
        results = []
        for enemy in session.enemies:
            if not enemy.is_alive():
                continue
            if not living(session.allies):
                break
            if enemy.combatant_id in stunned:
                session.log.append(f"{enemy.name} is stunned and cannot act", LogCategory.COMBAT)
                continue

            abilities = enemy.available_abilities() if isinstance(enemy, Enemy) else []
            if isinstance(enemy, Enemy):
                enemy.tick_cooldowns()
            if abilities and self.dice.percent_chance(self.config.enemy_ability_chance, "enemy ability"):
                ability_id = self.dice.choice(abilities, "enemy ability choice")
                results.append(self._resolve_enemy_ability(session, enemy, ability_id))
            else:
                target = self.dice.choice(living(session.allies), "enemy target")
                results.append(self._basic_attack(session, enemy, target))
        return results

    def _process_status_effects(self, session: CombatSession, side: list[Combatant]) -> set[str]:
        """
        Apply start-of-turn effects and tick durations.

        Returns:
            Ids of actors who were stunned going into this turn
        """
        stunned = set()
        for actor in living(side):
            if actor.has_status_effect(StatusEffectType.STUNNED):
                stunned.add(actor.combatant_id)

            for effect in list(actor.status_effects):
                fraction = STATUS_TICK_FRACTIONS.get(effect.effect_type)
                if fraction is None or not actor.is_alive():
                    continue
                amount = max(1, math.floor(actor.hp_max * abs(fraction)))
                if fraction < 0:
                    lost = actor.take_damage(amount)
                    self._track_damage(session, actor, lost)
                    session.log.append(
                        f"{actor.name} takes {lost} {effect.effect_type.value} damage",
                        LogCategory.DAMAGE,
                    )
                else:
                    healed = actor.heal(amount)
                    session.log.append(f"{actor.name} regenerates {healed} HP", LogCategory.HEAL)

            actor.status_effects[:] = [
                e for e in actor.status_effects
                if e.effect_type == StatusEffectType.UNCONSCIOUS or e.tick()
            ]
        return stunned

    def _check_combat_end(self, session: CombatSession) -> Optional[CombatOutcome]:
        if not living(session.allies):
            return CombatOutcome.DEFEAT
        if not living(session.enemies):
            return CombatOutcome.VICTORY
        return None

    def _end(self, session: CombatSession, outcome: CombatOutcome, reason: str) -> None:
        session.outcome = outcome
        session.end_reason = reason
        session.phase = CombatPhase.ENDED
        session.active = False
        category = {
            CombatOutcome.VICTORY: LogCategory.VICTORY,
            CombatOutcome.DEFEAT: LogCategory.DEFEAT,
        }.get(outcome, LogCategory.WARNING)
        session.log.append(f"Combat ends: {outcome.value} ({reason})", category)

    def _validate(self, session: CombatSession) -> None:
        """
        Check roster integrity before a turn.

        Raises:
            CombatValidationError: On an empty roster or a malformed actor
        """
        if not session.allies:
            raise CombatValidationError("no conscious allies")
        if not session.enemies:
            raise CombatValidationError("no enemies")
        for actor in session.allies + session.enemies:
            if actor is None:
                raise CombatValidationError("roster contains an empty slot")
            if not isinstance(actor, Combatant):
                raise CombatValidationError(f"{actor!r} is missing combatant fields")
            if not isinstance(actor.hp_current, int) or actor.hp_max <= 0:
                raise CombatValidationError(f"{actor.name} has invalid hit points")

    # =========================================================================
    # ALLY ACTIONS
    # =========================================================================

    def choose_ally_action(self, session: CombatSession, ally: Combatant) -> CombatAction:
        """
        Default policy for an ally with no explicit action.

        Heal a badly wounded ally if a healing skill is ready, otherwise
        try each ready combat skill at its activation chance, otherwise
        attack a random enemy.
        """
        attack = CombatAction(ally.combatant_id, CombatActionType.ATTACK)
        if not isinstance(ally, Character):
            return attack

        ready = [s for s in (get_skill(sid) for sid in ally.skills) if s and self._skill_ready(ally, s)[0]]
        wounded = self._most_wounded(session)
        if wounded is not None and wounded.hp_current < self.config.heal_threshold * wounded.hp_max:
            for skill in ready:
                if skill.skill_type == SkillType.HEALING:
                    return CombatAction(ally.combatant_id, CombatActionType.SKILL,
                                        target_id=wounded.combatant_id, skill_id=skill.skill_id)

        for skill in ready:
            if skill.skill_type == SkillType.HEALING:
                continue
            if self.dice.percent_chance(skill.base_chance, f"{skill.skill_id} activation"):
                return CombatAction(ally.combatant_id, CombatActionType.SKILL, skill_id=skill.skill_id)
        return attack

    def _resolve_ally_action(
        self, session: CombatSession, ally: Combatant, action: CombatAction
    ) -> ActionResult:
        if action.action_type == CombatActionType.DEFEND:
            session.defending.add(ally.combatant_id)
            session.log.append(f"{ally.name} takes a defensive stance", LogCategory.COMBAT)
            return ActionResult(ally.combatant_id, CombatActionType.DEFEND)

        if action.action_type == CombatActionType.SKILL:
            result, failure = self._use_skill(session, ally, action)
            if result is not None:
                return result
        elif action.action_type == CombatActionType.ITEM:
            result, failure = self._use_item(session, ally, action)
            if result is not None:
                return result
        else:
            failure = None

        target = self._find_target(session.enemies, action.target_id)
        result = self._basic_attack(session, ally, target)
        result.fallback_reason = failure
        return result

    def _skill_ready(self, ally: Character, skill: SkillDefinition) -> tuple[bool, str]:
        if skill.skill_id not in ally.skills:
            return False, f"{ally.name} does not know {skill.name}"
        if skill.skill_type == SkillType.UTILITY:
            return False, f"{skill.name} has no combat use"
        if ally.skill_cooldowns.get(skill.skill_id, 0) > 0:
            return False, f"{skill.name} is on cooldown"
        if ally.has_status_effect(StatusEffectType.SILENCED) and skill.mana_cost > 0:
            return False, f"{ally.name} is silenced"
        if ally.mp_current < skill.mana_cost:
            return False, f"not enough mana for {skill.name}"
        return True, ""

    def _use_skill(
        self, session: CombatSession, ally: Combatant, action: CombatAction
    ) -> tuple[Optional[ActionResult], Optional[str]]:
        """Resolve a skill. Nothing is spent when the skill cannot be used."""
        if not isinstance(ally, Character):
            return None, f"{ally.name} cannot use skills"
        skill = get_skill(action.skill_id or "")
        if skill is None:
            failure = f"unknown skill '{action.skill_id}'"
        else:
            ready, failure = self._skill_ready(ally, skill)
            if ready and not ally.spend_mana(skill.mana_cost):
                ready, failure = False, f"not enough mana for {skill.name}"
            if ready:
                ally.skill_cooldowns[skill.skill_id] = skill.cooldown
                return self._apply_skill(session, ally, skill, action.target_id), None

        session.log.append(f"{ally.name} fails to use a skill: {failure}", LogCategory.WARNING)
        return None, failure

    def _apply_skill(
        self, session: CombatSession, ally: Character, skill: SkillDefinition, target_id: Optional[str]
    ) -> ActionResult:
        result = ActionResult(ally.combatant_id, CombatActionType.SKILL, name=skill.skill_id)
        stat_value = ally.stats.get(skill.stat_modifier, 0)
        session.log.append(f"{ally.name} uses {skill.name}", LogCategory.SKILL)

        if skill.skill_type == SkillType.HEALING:
            target = self._find_target(session.allies, target_id) if target_id else self._most_wounded(session)
            target = target or ally
            result.healing_done = target.heal(skill_healing(skill, stat_value))
            result.target_ids.append(target.combatant_id)
            session.log.append(f"{target.name} recovers {result.healing_done} HP", LogCategory.HEAL)
            return result

        if skill.skill_type in (SkillType.DEFENSIVE, SkillType.BUFF):
            targets = living(session.allies) if skill.area else [ally]
            for target in targets:
                self._apply_status(session, target, skill.status_effect, skill.skill_id, result)
            return result

        targets = living(session.enemies) if skill.area else [self._find_target(session.enemies, target_id)]
        for target in targets:
            if skill.damage_multiplier > 0:
                amount = skill_damage(skill, stat_value) * self._outgoing_multiplier(ally)
                result.damage_dealt += self._deal_damage(session, ally, target, amount)
            if target.is_alive():
                self._apply_status(session, target, skill.status_effect, skill.skill_id, result)
            result.target_ids.append(target.combatant_id)

        if skill.healing_multiplier > 0:
            result.healing_done = ally.heal(skill_healing(skill, stat_value))
        return result

    def _use_item(
        self, session: CombatSession, ally: Combatant, action: CombatAction
    ) -> tuple[Optional[ActionResult], Optional[str]]:
        item = COMBAT_ITEMS.get(action.item_id or "")
        if item is None or session.items.get(action.item_id, 0) <= 0:
            failure = f"no {action.item_id} available"
            session.log.append(f"{ally.name} reaches for an item: {failure}", LogCategory.WARNING)
            return None, failure

        session.items[action.item_id] -= 1
        target = self._find_target(session.allies, action.target_id) if action.target_id else ally
        result = ActionResult(ally.combatant_id, CombatActionType.ITEM, name=action.item_id,
                              target_ids=[target.combatant_id])
        if item.heal:
            result.healing_done = target.heal(item.heal)
        if item.mana:
            target.restore_mana(item.mana)
        session.log.append(f"{ally.name} uses a {item.name} on {target.name}", LogCategory.HEAL)
        return result, None

    # =========================================================================
    # ENEMY ACTIONS
    # =========================================================================

    def _resolve_enemy_ability(self, session: CombatSession, enemy: Enemy, ability_id: str) -> ActionResult:
        ability = get_enemy_ability(ability_id)
        enemy.ability_cooldowns[ability_id] = ability.cooldown
        result = ActionResult(enemy.combatant_id, CombatActionType.SKILL, name=ability_id)
        session.log.append(f"{enemy.name} uses {ability.name}", LogCategory.SKILL)

        targets = living(session.allies)
        if not ability.area:
            targets = [self.dice.choice(targets, "ability target")]

        for target in targets:
            if ability.damage_multiplier > 0:
                amount = calculate_attack_damage(
                    enemy.attack_power * ability.damage_multiplier,
                    target.defense,
                    self.dice.uniform(-0.2, 0.2),
                ) * self._outgoing_multiplier(enemy)
                result.damage_dealt += self._deal_damage(session, enemy, target, amount)
            if target.is_alive():
                self._apply_status(session, target, ability.status_effect, ability_id, result)
            result.target_ids.append(target.combatant_id)

        if ability.heal_fraction > 0:
            result.healing_done = enemy.heal(math.floor(enemy.hp_max * ability.heal_fraction))
            if result.healing_done:
                session.log.append(f"{enemy.name} recovers {result.healing_done} HP", LogCategory.HEAL)
        return result

    # =========================================================================
    # SHARED HELPERS
    # =========================================================================

    def _basic_attack(self, session: CombatSession, attacker: Combatant, target: Combatant) -> ActionResult:
        amount = calculate_attack_damage(
            attacker.attack_power,
            target.defense,
            self.dice.uniform(-0.2, 0.2),
        ) * self._outgoing_multiplier(attacker)
        dealt = self._deal_damage(session, attacker, target, amount)
        return ActionResult(attacker.combatant_id, CombatActionType.ATTACK,
                            target_ids=[target.combatant_id], damage_dealt=dealt)

    def _deal_damage(self, session: CombatSession, attacker: Combatant, target: Combatant, amount: float) -> int:
        """Apply defend and shield reductions, then damage the target (minimum 1)."""
        if target.combatant_id in session.defending:
            amount *= self.config.defend_multiplier
            session.defending.discard(target.combatant_id)
        if target.has_status_effect(StatusEffectType.SHIELDED):
            amount *= self.config.shield_multiplier

        was_alive = target.is_alive()
        phase_before = target.current_phase() if isinstance(target, Enemy) else None
        dealt = target.take_damage(max(1, math.floor(amount)))
        self._track_damage(session, target, dealt)
        session.log.append(f"{attacker.name} hits {target.name} for {dealt} damage", LogCategory.DAMAGE)

        if was_alive and not target.is_alive():
            session.log.append(f"{target.name} falls", LogCategory.COMBAT)
        elif isinstance(target, Enemy) and target.phases:
            phase = target.current_phase()
            if phase is not None and phase is not phase_before:
                session.boss_phases[target.combatant_id] = phase.name
                session.log.append(f"{target.name} enters {phase.name}!", LogCategory.BOSS)
        return dealt

    def _track_damage(self, session: CombatSession, target: Combatant, amount: int) -> None:
        if any(target is a for a in session.allies):
            session.damage_received += amount
        else:
            session.damage_dealt += amount
            if not target.is_alive() and target.combatant_id not in session.defeated_ids:
                session.defeated_ids.add(target.combatant_id)
                session.enemies_defeated += 1

    def _apply_status(
        self, session: CombatSession, target: Combatant, effect_type: Optional[StatusEffectType],
        source: str, result: ActionResult,
    ) -> None:
        if effect_type is None:
            return
        duration = STATUS_DURATIONS.get(effect_type, DEFAULT_STATUS_DURATION)
        target.add_status_effect(StatusEffect(effect_type, duration=duration, source=source))
        result.effects_applied.append(effect_type.value)
        session.log.append(f"{target.name} is now {effect_type.value}", LogCategory.COMBAT)

    def _outgoing_multiplier(self, attacker: Combatant) -> float:
        if attacker.has_status_effect(StatusEffectType.BLESSED):
            return self.config.blessed_multiplier
        return 1.0

    def _find_target(self, side: list[Combatant], target_id: Optional[str]) -> Combatant:
        """The requested living target, or a random living one."""
        candidates = living(side)
        for candidate in candidates:
            if candidate.combatant_id == target_id:
                return candidate
        return self.dice.choice(candidates, "target")

    def _most_wounded(self, session: CombatSession) -> Optional[Combatant]:
        candidates = living(session.allies)
        if not candidates:
            return None
        return min(candidates, key=lambda a: a.hp_current / a.hp_max)
