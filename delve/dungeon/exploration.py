"""
Exploration Session for Delve.

Drives one party through one Dungeon. The session answers "what can the
party do right now" (get_current_room_state / get_available_actions) and
executes a chosen action against the current room:

- Combat and boss rooms hand off to the CombatEngine and fold the result
  back into room completion, loot and experience
- Treasure, trap, puzzle, rest and event rooms resolve directly
- Movement and retreat delegate to the Dungeon

Every action returns an ExplorationResult; every significant event is
appended to the session's EventLog, which callers read with drain_log().
A handler that raises is reported as a failed result and leaves the room
and session state as they were.
"""

import logging
import math
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from delve.combat.combat_engine import CombatEngine, CombatOutcome, CombatResult
from delve.data_models import (
    CLEARABLE_STATUS_EFFECTS,
    Character,
    DiceRoller,
    Enemy,
    EventEffectType,
    RoomType,
)
from delve.dungeon.dungeon_instance import Dungeon, DungeonRoom
from delve.dungeon.room_content import (
    CombatPayload,
    EventPayload,
    PuzzlePayload,
    RestPayload,
    TrapPayload,
    TreasurePayload,
)
from delve.game_state.state_machine import ExplorationState, StateMachine
from delve.ledger import GameLedger
from delve.observability.event_log import EventLog, LogCategory, LogEntry
from delve.tables.event_tables import BOOSTABLE_STATS
from delve.tables.room_templates import get_dungeon_info
from delve.tables.skill_tables import learnable_skills

logger = logging.getLogger(__name__)

# Trap and chest odds (percent)
TRAPPED_CHEST_CHANCE = 15
TRAPPED_CHEST_DAMAGE = (10, 25)
TRAPPED_CHEST_HIT_CHANCE = 60
TRAP_HIT_CHANCE = 80
TRAP_DAMAGE_VARIANCE = (0.7, 1.3)
NO_ROGUE_DETECT_PENALTY = 10
ROGUE_CLASS = "rogue"

# Post-combat loot per enemy, before scaling
COMBAT_GOLD_PER_ENEMY = (5, 15)
COMBAT_MATERIALS_PER_ENEMY = (1, 3)
COMBAT_LOOT_DEPTH_SCALING = 0.15

DISARM_GOLD_BASE = 20
DISARM_GOLD_PER_DEPTH = 10
REST_COOLDOWN_REDUCTION = 2
AUTO_RETREAT_HP = 0.25

ROOM_DESCRIPTIONS = {
    RoomType.ENTRANCE: "The entrance to the dungeon. Daylight still reaches this far.",
    RoomType.COMBAT: "Hostile shapes stir in the gloom.",
    RoomType.TREASURE: "Something glints in the corner of the room.",
    RoomType.TRAP: "The floor here is suspiciously well swept.",
    RoomType.REST: "A sheltered nook where the party could catch its breath.",
    RoomType.BOSS: "An oppressive presence fills this vast chamber.",
    RoomType.PUZZLE: "Strange mechanisms and inscriptions cover the walls.",
    RoomType.EVENT: "The air itself seems charged with something unusual.",
    RoomType.EMPTY: "An empty room. Dust and silence.",
}


class ExplorationActionType(str, Enum):
    """Actions a party can take during exploration."""
    FIGHT = "fight"
    OPEN_TREASURE = "open_treasure"
    EXAMINE_TRAP = "examine_trap"
    DISARM_TRAP = "disarm_trap"
    TRIGGER_TRAP = "trigger_trap"
    SOLVE_PUZZLE = "solve_puzzle"
    REST = "rest"
    INVESTIGATE_EVENT = "investigate_event"
    FIGHT_BOSS = "fight_boss"
    MOVE = "move"
    RETREAT = "retreat"


CONTENT_ACTIONS = frozenset(ExplorationActionType) - {
    ExplorationActionType.MOVE, ExplorationActionType.RETREAT,
}


@dataclass
class AvailableAction:
    """A currently legal action, as offered to the caller."""
    action_type: ExplorationActionType
    label: str
    room_id: Optional[str] = None  # Move target
    discovered: Optional[bool] = None  # Move target already seen

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.action_type.value, "label": self.label}
        if self.room_id is not None:
            data["room_id"] = self.room_id
            data["discovered"] = self.discovered
        return data


@dataclass
class ExplorationResult:
    """Outcome of one executed action."""
    success: bool
    action_type: Optional[ExplorationActionType]
    result_type: str
    payload: dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    messages: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = {
            "success": self.success,
            "type": self.result_type,
            "action": self.action_type.value if self.action_type else None,
            **self.payload,
        }
        if self.error:
            data["error"] = self.error
        if self.messages:
            data["messages"] = list(self.messages)
        return data


class NoConsciousAlliesError(ValueError):
    """Raised when a session is created without a single conscious ally."""

    pass


class RoomActionError(Exception):
    """Raised by a handler when the room cannot support the action."""

    pass


class ExplorationSession:
    """
    One party exploring one dungeon.

    The session owns the Dungeon and, for the length of a fight, the
    combat session. Allies are borrowed: HP, MP, stats and status changes
    are written straight onto the Character objects passed in.
    """

    def __init__(
        self,
        dungeon: Dungeon,
        allies: list[Character],
        dice: DiceRoller,
        combat_engine: Optional[CombatEngine] = None,
        ledger: Optional[GameLedger] = None,
        combat_items: Optional[dict[str, int]] = None,
        log_limit: Optional[int] = None,
        first_completion: bool = True,
    ):
        """
        Args:
            dungeon: A freshly built dungeon
            allies: The party; only conscious members join
            dice: Random source shared with the combat engine by default
            combat_engine: Override the combat engine (e.g. custom limits)
            ledger: Receives loot deltas and the completion record
            combat_items: Consumables available in fights
            log_limit: Optional bound on retained log entries
            first_completion: Whether beating the boss also pays the
                kind's first-completion rewards

        Raises:
            NoConsciousAlliesError: If no ally is conscious
        """
        conscious = [a for a in allies if a is not None and a.is_alive()]
        if not conscious:
            raise NoConsciousAlliesError("An exploration needs at least one conscious ally")

        self.dungeon = dungeon
        self.allies: list[Character] = conscious
        self.dice = dice
        self.combat_engine = combat_engine or CombatEngine(dice)
        self.ledger = ledger
        self.combat_items: dict[str, int] = dict(combat_items or {})
        self.kind_info = get_dungeon_info(dungeon.kind)
        self.log = EventLog(max_entries=log_limit)
        self.state_machine = StateMachine(event_log=self.log)
        self.turn_count = 0
        self.started_at = datetime.now()
        self.ended_at: Optional[datetime] = None
        self.last_combat: Optional[CombatResult] = None
        self.first_completion = first_completion

        # Ledger reports queued by handlers, sent once the action has committed
        self._pending_loot: list[dict[str, int]] = []
        self._pending_completion: Optional[bool] = None

        self._handlers = {
            ExplorationActionType.FIGHT: self._handle_fight,
            ExplorationActionType.FIGHT_BOSS: self._handle_fight_boss,
            ExplorationActionType.OPEN_TREASURE: self._handle_open_treasure,
            ExplorationActionType.EXAMINE_TRAP: self._handle_examine_trap,
            ExplorationActionType.DISARM_TRAP: self._handle_disarm_trap,
            ExplorationActionType.TRIGGER_TRAP: self._handle_trigger_trap,
            ExplorationActionType.SOLVE_PUZZLE: self._handle_solve_puzzle,
            ExplorationActionType.REST: self._handle_rest,
            ExplorationActionType.INVESTIGATE_EVENT: self._handle_investigate_event,
            ExplorationActionType.MOVE: self._handle_move,
            ExplorationActionType.RETREAT: self._handle_retreat,
        }

        self._log(f"The party enters {dungeon.name}", LogCategory.INFO)
        logger.info(f"Exploration of {dungeon.dungeon_id} started with {len(conscious)} allies")

    # =========================================================================
    # QUERIES
    # =========================================================================

    @property
    def state(self) -> ExplorationState:
        return self.state_machine.current_state

    @property
    def is_over(self) -> bool:
        return self.state_machine.is_terminal

    def conscious_allies(self) -> list[Character]:
        return [a for a in self.allies if a.is_alive()]

    def get_available_actions(self) -> list[AvailableAction]:
        """Actions legal in the current room and state."""
        if self.state != ExplorationState.EXPLORING:
            return []

        room = self.dungeon.get_current_room()
        actions = self._content_actions(room)
        for neighbour in self.dungeon.get_connected_rooms():
            seen = neighbour.discovered
            label = (f"Move to {neighbour.room_type.value} room" if seen
                     else "Move to an unexplored room")
            actions.append(AvailableAction(ExplorationActionType.MOVE, label,
                                           room_id=neighbour.room_id, discovered=seen))
        if self.dungeon.can_retreat():
            actions.append(AvailableAction(ExplorationActionType.RETREAT, "Retreat from the dungeon"))
        return actions

    def _content_actions(self, room: DungeonRoom) -> list[AvailableAction]:
        if room.completed or room.payload is None:
            return []
        A = ExplorationActionType
        if room.room_type == RoomType.COMBAT:
            return [AvailableAction(A.FIGHT, "Fight the enemies")]
        if room.room_type == RoomType.BOSS:
            return [AvailableAction(A.FIGHT_BOSS, "Face the boss")]
        if room.room_type == RoomType.TREASURE:
            return [AvailableAction(A.OPEN_TREASURE, "Open the treasure")]
        if room.room_type == RoomType.TRAP:
            if not room.payload.detected:
                return [AvailableAction(A.EXAMINE_TRAP, "Search for traps")]
            return [AvailableAction(A.DISARM_TRAP, "Disarm the trap"),
                    AvailableAction(A.TRIGGER_TRAP, "Spring the trap deliberately")]
        if room.room_type == RoomType.PUZZLE:
            return [AvailableAction(A.SOLVE_PUZZLE, "Attempt the puzzle")]
        if room.room_type == RoomType.REST:
            return [AvailableAction(A.REST, "Rest and recover")]
        if room.room_type == RoomType.EVENT:
            return [AvailableAction(A.INVESTIGATE_EVENT, "Investigate")]
        return []

    def get_current_room_state(self) -> dict[str, Any]:
        """
        Everything a front end needs to render the current room.

        Calling this repeatedly without executing an action returns equal
        results; it uses no randomness and mutates nothing.
        """
        room = self.dungeon.get_current_room()
        return {
            "room": room.to_dict(),
            "description": self.describe_room(room),
            "available_actions": [a.to_dict() for a in self.get_available_actions()],
            "connected_rooms": [
                {
                    "room_id": r.room_id,
                    "type": r.room_type.value if r.discovered else "unknown",
                    "discovered": r.discovered,
                    "completed": r.completed,
                }
                for r in self.dungeon.get_connected_rooms()
            ],
            "can_retreat": self.dungeon.can_retreat(),
            "state": self.state.value,
            "progress": self.dungeon.get_progress(),
        }

    def describe_room(self, room: DungeonRoom) -> str:
        text = ROOM_DESCRIPTIONS.get(room.room_type, "")
        payload = room.payload
        if room.completed and room.room_type != RoomType.ENTRANCE:
            return f"{text} (cleared)"
        if isinstance(payload, CombatPayload):
            names = ", ".join(e.name for e in payload.enemies if e.is_alive())
            return f"{text} Enemies: {names}."
        if isinstance(payload, TrapPayload) and payload.detected:
            return f"{text} A {payload.trap_type.replace('_', ' ')} has been spotted."
        if isinstance(payload, EventPayload):
            return f"{text} {payload.name}: {payload.description}."
        if isinstance(payload, RestPayload):
            return f"{text} {payload.description}."
        return text

    def should_auto_retreat(self) -> bool:
        """True when the party's average HP ratio is below 25% and retreat is allowed."""
        if not self.dungeon.can_retreat():
            return False
        ratios = [a.hp_current / a.hp_max for a in self.allies if a.hp_max > 0]
        return bool(ratios) and sum(ratios) / len(ratios) < AUTO_RETREAT_HP

    def drain_log(self) -> list[LogEntry]:
        """Log entries appended since the previous drain."""
        return self.log.drain()

    def get_room_map(self) -> dict[str, dict[str, Any]]:
        """Discovered rooms keyed by "x,y" layout position."""
        room_map = {}
        for room in self.dungeon.rooms.values():
            if not room.discovered:
                continue
            x, y = room.position
            room_map[f"{x},{y}"] = {
                "room_id": room.room_id,
                "type": room.room_type.value,
                "completed": room.completed,
                "current": room.room_id == self.dungeon.current_room_id,
                "connections": list(room.connections),
            }
        return room_map

    def get_summary(self) -> dict[str, Any]:
        end = self.ended_at or datetime.now()
        return {
            "dungeon_id": self.dungeon.dungeon_id,
            "dungeon_name": self.dungeon.name,
            "kind": self.dungeon.kind.value,
            "state": self.state.value,
            "turns": self.turn_count,
            "total_loot": dict(self.dungeon.total_loot),
            "duration_seconds": round((end - self.started_at).total_seconds(), 3),
            "party": [
                {"id": a.combatant_id, "name": a.name, "hp": a.hp_current,
                 "hp_max": a.hp_max, "conscious": a.is_alive()}
                for a in self.allies
            ],
            **self.dungeon.get_progress(),
        }

    # =========================================================================
    # ACTION DISPATCH
    # =========================================================================

    def execute_action(
        self,
        action_type: Union[ExplorationActionType, str],
        options: Optional[dict[str, Any]] = None,
    ) -> ExplorationResult:
        """
        Execute one action against the current room.

        Args:
            action_type: The action to take
            options: Extra parameters; "room_id" for moves

        Returns:
            The action's result. Illegal requests and handler failures come
            back as unsuccessful results rather than exceptions.
        """
        options = options or {}
        try:
            action_type = ExplorationActionType(action_type)
        except ValueError:
            return self._illegal(None, f"Unknown action '{action_type}'")

        if self.is_over:
            return self._illegal(action_type, f"The exploration has ended ({self.state.value})")
        if self.state != ExplorationState.EXPLORING:
            return self._illegal(action_type, f"Cannot act while in state {self.state.value}")
        if action_type != ExplorationActionType.MOVE and action_type not in {
            a.action_type for a in self.get_available_actions()
        }:
            return self._illegal(action_type, f"'{action_type.value}' is not available here")

        prior_state = self.state
        room = self.dungeon.get_current_room()
        try:
            result = self._handlers[action_type](room, options)
        except Exception as e:
            logger.exception(f"Action {action_type.value} failed in room {room.room_id}")
            self._pending_loot.clear()
            self._pending_completion = None
            if self.state != prior_state:
                self.state_machine.force_state(prior_state, f"{action_type.value} failed")
            self._log(f"Something went wrong: {e}", LogCategory.ERROR)
            return ExplorationResult(False, action_type, "error", error=str(e))

        self.turn_count += 1
        self._flush_ledger()
        return result

    def _illegal(self, action_type: Optional[ExplorationActionType], reason: str) -> ExplorationResult:
        logger.debug(f"Rejected action: {reason}")
        return ExplorationResult(False, action_type, "illegal_action", error=reason)

    # =========================================================================
    # COMBAT ROOMS
    # =========================================================================

    def _handle_fight(self, room: DungeonRoom, options: dict[str, Any]) -> ExplorationResult:
        payload = self._payload(room, CombatPayload)
        enemies = [e for e in payload.enemies if e.is_alive()]
        self.state_machine.transition("combat_started", {"room_id": room.room_id})
        self._log(f"The party engages {len(enemies)} enemies", LogCategory.COMBAT, room)

        totals = {"rounds": 0, "damage_dealt": 0, "damage_received": 0}
        defeated = 0
        for enemy in enemies:
            combat = self._run_combat([enemy])
            for key in totals:
                totals[key] += getattr(combat, key)

            if combat.outcome == CombatOutcome.DEFEAT:
                return self._party_wipe(room, {**totals, "enemies_defeated": defeated})
            if combat.outcome == CombatOutcome.ABORTED:
                return self._combat_aborted(room, combat, defeated)
            defeated += 1
            self._log(f"{enemy.name} is defeated", LogCategory.VICTORY, room)

        loot = self._roll_combat_loot(len(enemies), room.depth)
        loot["experience"] = self._award_experience(enemies)
        self._complete_room(room, loot, defeated)
        self.state_machine.transition("combat_won", {"room_id": room.room_id})
        self._log(f"Victory! Loot: {self._format_loot(loot)}", LogCategory.LOOT, room)
        return ExplorationResult(True, ExplorationActionType.FIGHT, "combat_victory", {
            "enemies_defeated": defeated, "loot": loot, **totals,
        })

    def _handle_fight_boss(self, room: DungeonRoom, options: dict[str, Any]) -> ExplorationResult:
        payload = self._payload(room, CombatPayload)
        boss = payload.boss
        if boss is None:
            raise RoomActionError("The boss room holds no boss")

        self.state_machine.transition("combat_started", {"room_id": room.room_id, "boss": True})
        self._log(f"{boss.name} rises to meet the party!", LogCategory.BOSS, room)
        combat = self._run_combat(payload.enemies)
        totals = {"rounds": combat.rounds, "damage_dealt": combat.damage_dealt,
                  "damage_received": combat.damage_received}

        if combat.outcome == CombatOutcome.DEFEAT:
            return self._party_wipe(room, {**totals, "enemies_defeated": combat.enemies_defeated})
        if combat.outcome == CombatOutcome.ABORTED:
            return self._combat_aborted(room, combat, 0)

        info = self.kind_info
        bonus = dict(info.first_completion) if self.first_completion else {}
        loot = {
            "gold": self.dice.randint(*info.gold_reward, reason="boss gold") * 2 + bonus.get("gold", 0),
            "materials": (self.dice.randint(*info.material_reward, reason="boss materials") * 2
                          + bonus.get("materials", 0)),
            "experience": self._award_experience(payload.enemies, bonus.get("experience", 0)),
        }
        if bonus:
            self._log(f"First completion of {info.name}!", LogCategory.LOOT, room)
        self._complete_room(room, loot, len(payload.enemies))
        self.state_machine.transition("boss_defeated", {"room_id": room.room_id})
        self._log(f"{boss.name} has been vanquished! Loot: {self._format_loot(loot)}",
                  LogCategory.VICTORY, room)
        self._finish_run(success=True)
        return ExplorationResult(True, ExplorationActionType.FIGHT_BOSS, "boss_defeated", {
            "enemies_defeated": len(payload.enemies), "loot": loot,
            "dungeon_completed": self.dungeon.completed, **totals,
        })

    def _run_combat(self, enemies: list[Enemy]) -> CombatResult:
        combat = self.combat_engine.resolve(self.conscious_allies(), enemies, self.combat_items)
        self.combat_items = dict(combat.items_remaining)
        self.last_combat = combat
        return combat

    def _combat_aborted(self, room: DungeonRoom, combat: CombatResult, defeated: int) -> ExplorationResult:
        self.state_machine.transition("combat_aborted", {"reason": combat.reason})
        self._log(f"The fight breaks off ({combat.reason})", LogCategory.WARNING, room)
        return ExplorationResult(False, None, "combat_aborted", {
            "reason": combat.reason, "rounds": combat.rounds, "enemies_defeated": defeated,
        }, error=f"Combat aborted: {combat.reason}")

    def _party_wipe(self, room: DungeonRoom, stats: dict[str, Any]) -> ExplorationResult:
        self.state_machine.transition("party_defeated", {"room_id": room.room_id})
        self._log("The party has fallen...", LogCategory.DEFEAT, room)
        self._finish_run(success=False)
        return ExplorationResult(False, None, "party_wipe", stats)

    def _roll_combat_loot(self, enemy_count: int, depth: int) -> dict[str, int]:
        scale = (1 + COMBAT_LOOT_DEPTH_SCALING * depth) * self.kind_info.loot_multiplier
        gold = self.dice.randint(*COMBAT_GOLD_PER_ENEMY, reason="combat gold") * enemy_count
        materials = self.dice.randint(*COMBAT_MATERIALS_PER_ENEMY, reason="combat materials") * enemy_count
        return {"gold": math.floor(gold * scale), "materials": math.floor(materials * scale)}

    def _award_experience(self, enemies: list[Enemy], bonus: int = 0) -> int:
        """Give every conscious ally the enemies' experience plus any bonus. Returns the amount."""
        amount = math.floor(
            sum(e.experience_reward for e in enemies) * self.kind_info.experience_multiplier
        ) + bonus
        for ally in self.conscious_allies():
            for level in ally.add_experience(amount):
                self._log(f"{ally.name} reaches level {level}!", LogCategory.INFO)
        return amount

    # =========================================================================
    # TREASURE AND TRAPS
    # =========================================================================

    def _handle_open_treasure(self, room: DungeonRoom, options: dict[str, Any]) -> ExplorationResult:
        payload = self._payload(room, TreasurePayload)
        payload.opened = True
        chest_damage: dict[str, int] = {}

        if self.dice.percent_chance(TRAPPED_CHEST_CHANCE, "trapped chest"):
            base = self.dice.randint(*TRAPPED_CHEST_DAMAGE, reason="chest trap damage")
            self._log(f"The {payload.chest_type.replace('_', ' ')} was trapped!", LogCategory.DAMAGE, room)
            for ally in self.conscious_allies():
                if self.dice.percent_chance(TRAPPED_CHEST_HIT_CHANCE, "chest trap hit"):
                    lost = ally.take_damage(math.floor(base * self.dice.uniform(0.5, 1.0)))
                    chest_damage[ally.combatant_id] = lost
                    self._log(f"{ally.name} takes {lost} damage", LogCategory.DAMAGE, room)

        loot = dict(payload.loot)
        self._complete_room(room, loot)
        self._log(f"Treasure found: {self._format_loot(loot)}", LogCategory.LOOT, room)
        if payload.special_item:
            self._log(f"Special find: {payload.special_item.replace('_', ' ')}", LogCategory.LOOT, room)

        result = ExplorationResult(True, ExplorationActionType.OPEN_TREASURE, "treasure_opened", {
            "loot": loot,
            "special_item": payload.special_item,
            "chest_type": payload.chest_type,
            "trap_damage": chest_damage,
        })
        return self._check_party_standing(room, result)

    def _handle_examine_trap(self, room: DungeonRoom, options: dict[str, Any]) -> ExplorationResult:
        payload = self._payload(room, TrapPayload)
        rogues = self._rogues()
        searchers = rogues or self.conscious_allies()
        searcher = max(searchers, key=lambda a: a.stats.get("agility", 0))
        difficulty = payload.detect_dc + (0 if rogues else NO_ROGUE_DETECT_PENALTY)
        roll = searcher.stats.get("agility", 0) + self.dice.roll_d20("trap detection").total

        if roll >= difficulty:
            payload.detected = True
            self._log(f"{searcher.name} spots a {payload.trap_type.replace('_', ' ')}!",
                      LogCategory.INFO, room)
            return ExplorationResult(True, ExplorationActionType.EXAMINE_TRAP, "trap_detected", {
                "searcher": searcher.combatant_id, "roll": roll, "difficulty": difficulty,
            })

        self._log(f"{searcher.name} misses the trap and sets it off!", LogCategory.DAMAGE, room)
        return self._trigger_trap(room, payload, ExplorationActionType.EXAMINE_TRAP,
                                  {"roll": roll, "difficulty": difficulty})

    def _handle_disarm_trap(self, room: DungeonRoom, options: dict[str, Any]) -> ExplorationResult:
        payload = self._payload(room, TrapPayload)
        if not payload.detected:
            raise RoomActionError("The trap must be found before it can be disarmed")

        rogues = self._rogues()
        if not rogues:
            self._log("Nobody knows how to disarm it, and the trap goes off!", LogCategory.DAMAGE, room)
            return self._trigger_trap(room, payload, ExplorationActionType.DISARM_TRAP,
                                      {"reason": "no_rogue"})

        rogue = max(rogues, key=lambda a: a.stats.get("agility", 0))
        roll = rogue.stats.get("agility", 0) + self.dice.roll_d20("trap disarm").total
        if roll < payload.disarm_dc:
            self._log(f"{rogue.name} fumbles the mechanism!", LogCategory.DAMAGE, room)
            return self._trigger_trap(room, payload, ExplorationActionType.DISARM_TRAP,
                                      {"roll": roll, "difficulty": payload.disarm_dc})

        payload.disarmed = True
        loot = {"gold": DISARM_GOLD_BASE + DISARM_GOLD_PER_DEPTH * room.depth}
        self._complete_room(room, loot)
        self._log(f"{rogue.name} disarms the trap and salvages {loot['gold']} gold",
                  LogCategory.LOOT, room)
        return ExplorationResult(True, ExplorationActionType.DISARM_TRAP, "trap_disarmed", {
            "rogue": rogue.combatant_id, "roll": roll, "difficulty": payload.disarm_dc, "loot": loot,
        })

    def _handle_trigger_trap(self, room: DungeonRoom, options: dict[str, Any]) -> ExplorationResult:
        payload = self._payload(room, TrapPayload)
        self._log("The party springs the trap on purpose", LogCategory.INFO, room)
        return self._trigger_trap(room, payload, ExplorationActionType.TRIGGER_TRAP, {})

    def _trigger_trap(
        self, room: DungeonRoom, payload: TrapPayload,
        action_type: ExplorationActionType, details: dict[str, Any],
    ) -> ExplorationResult:
        """Each conscious ally has an 80% chance to take 70-130% of the trap's damage."""
        payload.triggered = True
        damage_taken: dict[str, int] = {}
        for ally in self.conscious_allies():
            if not self.dice.percent_chance(TRAP_HIT_CHANCE, "trap hit"):
                self._log(f"{ally.name} avoids the trap", LogCategory.INFO, room)
                continue
            amount = math.floor(payload.damage * self.dice.uniform(*TRAP_DAMAGE_VARIANCE))
            lost = ally.take_damage(amount)
            damage_taken[ally.combatant_id] = lost
            self._log(f"{ally.name} takes {lost} damage from the trap", LogCategory.DAMAGE, room)

        self._complete_room(room)
        result = ExplorationResult(True, action_type, "trap_triggered", {
            "damage_taken": damage_taken, **details,
        })
        return self._check_party_standing(room, result)

    # =========================================================================
    # PUZZLES, REST AND EVENTS
    # =========================================================================

    def _handle_solve_puzzle(self, room: DungeonRoom, options: dict[str, Any]) -> ExplorationResult:
        payload = self._payload(room, PuzzlePayload)
        party = self.conscious_allies()
        average_mind = sum(a.stats.get("mind", 0) for a in party) / len(party)
        roll = math.floor(average_mind) + self.dice.roll_d20("puzzle").total
        payload.attempts = max(0, payload.attempts - 1)

        if roll < payload.difficulty:
            self._complete_room(room)
            self._log("The puzzle defeats the party; its secrets stay hidden", LogCategory.INFO, room)
            return ExplorationResult(False, ExplorationActionType.SOLVE_PUZZLE, "puzzle_failed", {
                "roll": roll, "difficulty": payload.difficulty, "loot": {},
            })

        payload.solved = True
        loot = dict(payload.reward)
        skill_learned = None
        if payload.skill_chance > 0 and self.dice.percent_chance(payload.skill_chance * 100, "puzzle skill"):
            skill_learned = self._learn_random_skill(room)

        self._complete_room(room, loot)
        self._log(f"Puzzle solved! Reward: {self._format_loot(loot)}", LogCategory.LOOT, room)
        return ExplorationResult(True, ExplorationActionType.SOLVE_PUZZLE, "puzzle_solved", {
            "roll": roll, "difficulty": payload.difficulty, "loot": loot,
            "skill_learned": skill_learned,
        })

    def _learn_random_skill(self, room: DungeonRoom) -> Optional[dict[str, str]]:
        candidates = [
            (ally, learnable_skills(ally.stats, ally.skills)) for ally in self.conscious_allies()
        ]
        candidates = [(ally, skills) for ally, skills in candidates if skills]
        if not candidates:
            return None
        ally, skills = self.dice.choice(candidates, "skill learner")
        skill_id = self.dice.choice(skills, "skill learned")
        ally.learn_skill(skill_id)
        self._log(f"{ally.name} learns {skill_id.replace('_', ' ')}!", LogCategory.SKILL, room)
        return {"ally": ally.combatant_id, "skill": skill_id}

    def _handle_rest(self, room: DungeonRoom, options: dict[str, Any]) -> ExplorationResult:
        payload = self._payload(room, RestPayload)
        fraction = payload.heal_fraction
        recovered = {}
        for ally in self.conscious_allies():
            healed = ally.heal(math.floor(ally.hp_max * fraction))
            restored = ally.restore_mana(math.floor(ally.mp_max * fraction)) if payload.restore_mp else 0
            cleared = []
            if payload.remove_status_effects:
                for effect in list(ally.status_effects):
                    if effect.effect_type in CLEARABLE_STATUS_EFFECTS and self.dice.percent_chance(
                        fraction * 100, "status cleared"
                    ):
                        cleared.extend(e.value for e in ally.remove_status_effects([effect.effect_type]))
            ally.reduce_cooldowns(REST_COOLDOWN_REDUCTION)
            recovered[ally.combatant_id] = {"hp": healed, "mp": restored, "cleared": cleared}
            self._log(f"{ally.name} recovers {healed} HP and {restored} MP", LogCategory.HEAL, room)

        payload.used = True
        self._complete_room(room)
        return ExplorationResult(True, ExplorationActionType.REST, "rested", {"recovered": recovered})

    def _handle_investigate_event(self, room: DungeonRoom, options: dict[str, Any]) -> ExplorationResult:
        payload = self._payload(room, EventPayload)
        effect = payload.effect
        self._log(f"{payload.name}: {payload.description}", LogCategory.EVENT, room)

        outcomes = {}
        for ally in self.conscious_allies():
            outcomes[ally.combatant_id] = self._apply_event_effect(ally, effect)
            self._log(f"{ally.name}: {outcomes[ally.combatant_id]}", LogCategory.EVENT, room)

        payload.triggered = True
        self._complete_room(room)
        result = ExplorationResult(True, ExplorationActionType.INVESTIGATE_EVENT, "event_resolved", {
            "event": payload.event_id, "effect": effect.to_dict(), "outcomes": outcomes,
        })
        return self._check_party_standing(room, result)

    def _apply_event_effect(self, ally: Character, effect) -> str:
        """Apply one event effect to one ally and describe what happened."""
        if effect.effect_type == EventEffectType.MANA_RESTORE:
            restored = ally.restore_mana(math.floor(ally.mp_max * effect.amount))
            return f"restores {restored} MP"
        if effect.effect_type == EventEffectType.HP_DRAIN:
            lost = ally.take_damage(max(1, math.floor(ally.hp_max * effect.amount)))
            return f"loses {lost} HP"
        if effect.effect_type == EventEffectType.STAT_DRAIN:
            stat = effect.stat or "spirit"
            before = ally.stats.get(stat, 1)
            ally.stats[stat] = max(1, before - int(effect.amount))
            return f"{stat} drained by {before - ally.stats[stat]}"
        if effect.effect_type == EventEffectType.RANDOM_STAT_BOOST:
            stat = self.dice.choice(BOOSTABLE_STATS, "event stat boost")
            ally.stats[stat] = ally.stats.get(stat, 0) + int(effect.amount)
            return f"{stat} increased by {int(effect.amount)}"
        return "nothing happens"

    # =========================================================================
    # MOVEMENT AND RETREAT
    # =========================================================================

    def _handle_move(self, room: DungeonRoom, options: dict[str, Any]) -> ExplorationResult:
        target_id = options.get("room_id")
        if not target_id or not self.dungeon.move_to_room(target_id):
            self._log(f"There is no way through to {target_id}", LogCategory.WARNING, room)
            return ExplorationResult(False, ExplorationActionType.MOVE, "move_failed",
                                     {"room_id": target_id},
                                     error=f"Room {target_id} is not connected to {room.room_id}")

        new_room = self.dungeon.get_current_room()
        self._log(f"The party moves into a {new_room.room_type.value} room",
                  LogCategory.MOVE, new_room)
        if new_room.room_type == RoomType.EMPTY:
            self._complete_room(new_room)
        return ExplorationResult(True, ExplorationActionType.MOVE, "moved", {
            "room_id": new_room.room_id,
            "room_type": new_room.room_type.value,
            "description": self.describe_room(new_room),
        })

    def _handle_retreat(self, room: DungeonRoom, options: dict[str, Any]) -> ExplorationResult:
        if not self.dungeon.retreat():
            raise RoomActionError("Retreat is not possible from here")
        self.state_machine.transition("retreat", {"room_id": room.room_id})
        loot = dict(self.dungeon.total_loot)
        self._log(f"The party retreats with {self._format_loot(loot)}", LogCategory.INFO, room)
        self._finish_run(success=False)
        return ExplorationResult(True, ExplorationActionType.RETREAT, "retreated", {"loot": loot})

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _payload(self, room: DungeonRoom, expected: type):
        if not isinstance(room.payload, expected):
            raise RoomActionError(
                f"Room {room.room_id} ({room.room_type.value}) has no {expected.__name__}"
            )
        return room.payload

    def _rogues(self) -> list[Character]:
        return [a for a in self.conscious_allies() if a.character_class == ROGUE_CLASS]

    def _complete_room(self, room: DungeonRoom, loot: Optional[dict[str, int]] = None,
                       enemies_defeated: int = 0) -> None:
        loot = {k: v for k, v in (loot or {}).items() if v > 0}
        self.dungeon.complete_room(room.room_id, {"loot": loot, "enemies_defeated": enemies_defeated})
        if loot:
            self._pending_loot.append(loot)

    def _check_party_standing(self, room: DungeonRoom, result: ExplorationResult) -> ExplorationResult:
        """End the run if the last ally fell outside of combat."""
        if self.conscious_allies():
            return result
        self.state_machine.transition("party_defeated", {"room_id": room.room_id})
        self._log("The party has fallen...", LogCategory.DEFEAT, room)
        self._finish_run(success=False)
        result.payload["party_defeated"] = True
        return result

    def _finish_run(self, success: bool) -> None:
        self.ended_at = datetime.now()
        self._pending_completion = success
        logger.info(f"Exploration of {self.dungeon.dungeon_id} ended ({self.state.value})")

    def _flush_ledger(self) -> None:
        """
        Send queued loot and the completion record to the ledger.

        Runs after the action has committed; a failing ledger is logged and
        does not undo the action.
        """
        pending, self._pending_loot = self._pending_loot, []
        success, self._pending_completion = self._pending_completion, None
        if self.ledger is None:
            return

        for loot in pending:
            try:
                self.ledger.add_resources(loot)
            except Exception as e:
                logger.warning(f"Ledger rejected loot {loot}: {e}")
                self._log(f"The ledger could not record {self._format_loot(loot)}", LogCategory.WARNING)
        if success is not None:
            try:
                self.ledger.record_completion(self.dungeon.dungeon_id, success, self.get_summary())
            except Exception as e:
                logger.warning(f"Ledger rejected completion of {self.dungeon.dungeon_id}: {e}")
                self._log("The ledger could not record the end of the run", LogCategory.WARNING)

    def _log(self, message: str, category: LogCategory, room: Optional[DungeonRoom] = None) -> None:
        room = room or self.dungeon.get_current_room()
        self.log.append(message, category, room_id=room.room_id, room_type=room.room_type.value)

    @staticmethod
    def _format_loot(loot: dict[str, int]) -> str:
        parts = [f"{amount} {name}" for name, amount in loot.items() if amount]
        return ", ".join(parts) if parts else "nothing"


# =============================================================================
# AUTO-PLAY
# =============================================================================


def _next_step_towards(dungeon: Dungeon, include_boss: bool) -> Optional[str]:
    """First move along the shortest path to the nearest unresolved room."""
    start = dungeon.current_room_id
    first_step: dict[str, Optional[str]] = {start: None}
    queue = deque([start])
    while queue:
        room_id = queue.popleft()
        room = dungeon.rooms[room_id]
        is_target = room_id != start and not room.completed and (
            include_boss or room.room_type != RoomType.BOSS
        )
        if is_target:
            return first_step[room_id]
        for neighbour in room.connections:
            if neighbour in first_step:
                continue
            if neighbour == dungeon.boss_room_id and not include_boss:
                continue
            first_step[neighbour] = first_step[room_id] or neighbour
            queue.append(neighbour)
    return None


def choose_auto_action(session: ExplorationSession) -> Optional[tuple[ExplorationActionType, dict[str, Any]]]:
    """
    Pick the next action for an unattended party.

    Resolve the current room, then head for the nearest unresolved room,
    leaving the boss for last. Retreat when the party is badly hurt.
    """
    if session.is_over:
        return None
    if session.should_auto_retreat():
        return ExplorationActionType.RETREAT, {}

    ordered = [a.action_type for a in session.get_available_actions()]
    available = set(ordered)
    A = ExplorationActionType
    if A.DISARM_TRAP in available:
        choice = A.DISARM_TRAP if session._rogues() else A.TRIGGER_TRAP
        return choice, {}
    content = [a for a in ordered if a in CONTENT_ACTIONS]
    if content:
        return content[0], {}

    target = _next_step_towards(session.dungeon, include_boss=False)
    if target is None:
        target = _next_step_towards(session.dungeon, include_boss=True)
    if target is not None:
        return A.MOVE, {"room_id": target}
    if A.RETREAT in available:
        return A.RETREAT, {}
    return None


def auto_play(session: ExplorationSession, max_actions: int = 200) -> list[ExplorationResult]:
    """Play the session with choose_auto_action until it ends or stalls."""
    results = []
    for _ in range(max_actions):
        choice = choose_auto_action(session)
        if choice is None:
            break
        action_type, options = choice
        result = session.execute_action(action_type, options)
        results.append(result)
        if result.result_type in ("error", "illegal_action", "combat_aborted"):
            logger.warning(f"Auto-play stopped: {result.error}")
            break
    return results
