"""
Tests for the ExplorationSession.

Most tests use the three-room dungeon from tests.helpers, with room_01
holding the content under test and room_02 the boss.
"""

from unittest.mock import ANY, MagicMock

import pytest

from delve.combat.combat_engine import CombatConfig, CombatEngine
from delve.data_models import (
    DiceRoller,
    DungeonKind,
    EventEffectType,
    RoomType,
    StatusEffect,
    StatusEffectType,
)
from delve.dungeon.dungeon_generator import DungeonGenerator
from delve.dungeon.exploration import (
    ExplorationActionType,
    ExplorationSession,
    NoConsciousAlliesError,
    auto_play,
    choose_auto_action,
)
from delve.dungeon.room_content import (
    CombatPayload,
    EventPayload,
    PuzzlePayload,
    RestPayload,
    TrapPayload,
    TreasurePayload,
)
from delve.game_state.state_machine import ExplorationState
from delve.tables.character_tables import create_character, create_party
from delve.tables.event_tables import BOOSTABLE_STATS, EventEffect
from tests.helpers import FixedDice, make_dungeon, make_enemy, make_rogue

A = ExplorationActionType


def enter(room_type, payload=None, party=None, dice=None, **kwargs):
    """Start a session and walk into room_01."""
    session = ExplorationSession(
        make_dungeon(room_type, payload),
        party if party is not None else [create_character("guardian")],
        dice or DiceRoller(seed=7),
        **kwargs,
    )
    moved = session.execute_action(A.MOVE, {"room_id": "room_01"})
    assert moved.result_type == "moved"
    return session


# =============================================================================
# SESSION SETUP AND QUERIES
# =============================================================================


class TestSessionSetup:
    """Construction and read-only queries."""

    def test_requires_conscious_ally(self, seeded_dice):
        """A party with nobody standing cannot explore."""
        fallen = create_character("guardian")
        fallen.take_damage(1000)
        with pytest.raises(NoConsciousAlliesError):
            ExplorationSession(make_dungeon(RoomType.EMPTY), [fallen], seeded_dice)

    def test_starts_exploring_at_entrance(self, party, built_dungeon, seeded_dice):
        """A new session is exploring from the entrance."""
        session = ExplorationSession(built_dungeon, party, seeded_dice)
        state = session.get_current_room_state()
        assert state["state"] == "exploring"
        assert state["room"]["room_id"] == built_dungeon.entrance_room_id
        assert state["can_retreat"] is True
        assert any(a["type"] == "move" for a in state["available_actions"])

    def test_room_state_is_stable(self, party, built_dungeon, seeded_dice):
        """Querying twice without acting returns the same thing."""
        session = ExplorationSession(built_dungeon, party, seeded_dice)
        assert session.get_current_room_state() == session.get_current_room_state()

    def test_unexplored_neighbours_hide_type(self, seeded_dice):
        """Undiscovered rooms are reported as unknown."""
        session = ExplorationSession(make_dungeon(RoomType.TREASURE, TreasurePayload()),
                                     [create_character("guardian")], seeded_dice)
        connected = session.get_current_room_state()["connected_rooms"]
        assert connected == [{"room_id": "room_01", "type": "unknown",
                              "discovered": False, "completed": False}]

    def test_room_map_shows_discovered_rooms(self, seeded_dice):
        """Only discovered rooms appear on the map."""
        session = ExplorationSession(make_dungeon(RoomType.EMPTY),
                                     [create_character("guardian")], seeded_dice)
        assert list(session.get_room_map()) == ["0,0"]
        session.execute_action(A.MOVE, {"room_id": "room_01"})
        room_map = session.get_room_map()
        assert room_map["1,0"]["current"] is True
        assert room_map["0,0"]["current"] is False

    def test_should_auto_retreat(self, seeded_dice):
        """Badly hurt parties want out."""
        party = create_party(["guardian", "cleric"])
        session = ExplorationSession(make_dungeon(RoomType.EMPTY), party, seeded_dice)
        assert not session.should_auto_retreat()
        for ally in party:
            ally.hp_current = ally.hp_max // 10
        assert session.should_auto_retreat()

    def test_drain_log(self, seeded_dice):
        """Draining returns new entries once."""
        session = ExplorationSession(make_dungeon(RoomType.EMPTY),
                                     [create_character("guardian")], seeded_dice)
        first = session.drain_log()
        assert any("enters" in e.message for e in first)
        assert session.drain_log() == []


# =============================================================================
# ACTION LEGALITY
# =============================================================================


class TestActionLegality:
    """Illegal requests come back as results, not exceptions."""

    def test_unknown_action(self, seeded_dice):
        """Unknown action names are rejected."""
        session = ExplorationSession(make_dungeon(RoomType.EMPTY),
                                     [create_character("guardian")], seeded_dice)
        result = session.execute_action("dance")
        assert not result.success
        assert result.result_type == "illegal_action"
        assert result.action_type is None
        assert session.turn_count == 0

    def test_action_not_offered_here(self, seeded_dice):
        """Fighting at the entrance is illegal."""
        session = ExplorationSession(make_dungeon(RoomType.EMPTY),
                                     [create_character("guardian")], seeded_dice)
        result = session.execute_action(A.FIGHT)
        assert result.result_type == "illegal_action"
        assert session.turn_count == 0

    def test_move_to_non_adjacent_room(self, seeded_dice):
        """A move to a room that is not connected fails without moving."""
        session = ExplorationSession(make_dungeon(RoomType.EMPTY),
                                     [create_character("guardian")], seeded_dice)
        result = session.execute_action(A.MOVE, {"room_id": "room_02"})
        assert result.result_type == "move_failed"
        assert not result.success
        assert session.dungeon.current_room_id == "room_00"

    def test_empty_room_completes_on_entry(self):
        """Empty rooms are resolved by walking in."""
        session = enter(RoomType.EMPTY)
        assert session.dungeon.rooms["room_01"].completed

    def test_string_action_names_accepted(self, seeded_dice):
        """Action values work as well as enum members."""
        session = ExplorationSession(make_dungeon(RoomType.EMPTY),
                                     [create_character("guardian")], seeded_dice)
        result = session.execute_action("move", {"room_id": "room_01"})
        assert result.result_type == "moved"
        assert result.to_dict()["action"] == "move"


# =============================================================================
# TREASURE AND TRAPS
# =============================================================================


class TestTreasure:
    """Treasure rooms."""

    def test_open_treasure_pays_loot(self, ledger):
        """Loot is added to the run total and the ledger."""
        session = enter(RoomType.TREASURE, TreasurePayload(loot={"gold": 20, "materials": 4}),
                        dice=FixedDice(chance=False), ledger=ledger)
        result = session.execute_action(A.OPEN_TREASURE)
        assert result.result_type == "treasure_opened"
        assert result.payload["loot"] == {"gold": 20, "materials": 4}
        assert result.payload["trap_damage"] == {}
        assert session.dungeon.total_loot == {"gold": 20, "materials": 4}
        assert ledger.get_resource("gold") == 20

    def test_treasure_only_once(self):
        """An opened treasure is no longer offered."""
        session = enter(RoomType.TREASURE, TreasurePayload(loot={"gold": 20}),
                        dice=FixedDice(chance=False))
        session.execute_action(A.OPEN_TREASURE)
        again = session.execute_action(A.OPEN_TREASURE)
        assert again.result_type == "illegal_action"
        assert session.dungeon.total_loot == {"gold": 20}

    def test_trapped_chest_hurts(self):
        """With every check passing the chest is trapped and hits everyone."""
        guardian = create_character("guardian")
        session = enter(RoomType.TREASURE, TreasurePayload(loot={"gold": 20}),
                        party=[guardian], dice=FixedDice(chance=True))
        result = session.execute_action(A.OPEN_TREASURE)
        # 25 max damage at the top of the 50-100% spread
        assert result.payload["trap_damage"] == {"guardian": 25}
        assert guardian.hp_current == guardian.hp_max - 25

    def test_ledger_protocol_calls(self):
        """Loot deltas and the completion record reach any ledger."""
        ledger = MagicMock()
        session = enter(RoomType.TREASURE, TreasurePayload(loot={"gold": 20}),
                        dice=FixedDice(chance=False), ledger=ledger)
        session.execute_action(A.OPEN_TREASURE)
        ledger.add_resources.assert_called_once_with({"gold": 20})

        session.execute_action(A.RETREAT)
        ledger.record_completion.assert_called_once_with("test_dungeon", False, ANY)


class TestTraps:
    """Trap detection, disarming and triggering."""

    @staticmethod
    def trap():
        return TrapPayload("spike_trap", damage=10, detect_dc=15, disarm_dc=18)

    def test_detection_at_exact_difficulty(self):
        """Agility 10 plus a rolled 5 meets DC 15."""
        rogue = make_rogue(agility=10)
        session = enter(RoomType.TRAP, self.trap(), party=[rogue], dice=FixedDice(d20=5))
        result = session.execute_action(A.EXAMINE_TRAP)
        assert result.result_type == "trap_detected"
        assert result.payload["roll"] == 15
        assert session.dungeon.rooms["room_01"].payload.detected
        assert not session.dungeon.rooms["room_01"].completed
        offered = {a.action_type for a in session.get_available_actions()}
        assert {A.DISARM_TRAP, A.TRIGGER_TRAP} <= offered

    def test_detection_one_short_triggers(self):
        """Agility 10 plus a rolled 4 misses DC 15 and springs the trap."""
        rogue = make_rogue(agility=10)
        session = enter(RoomType.TRAP, self.trap(), party=[rogue], dice=FixedDice(d20=4))
        result = session.execute_action(A.EXAMINE_TRAP)
        assert result.result_type == "trap_triggered"
        # 10 damage at the 130% top of the spread
        assert result.payload["damage_taken"] == {"rogue_0": 13}
        assert rogue.hp_current == rogue.hp_max - 13
        assert session.dungeon.rooms["room_01"].completed

    def test_detection_without_rogue_is_harder(self):
        """Without a rogue the difficulty goes up by 10."""
        guardian = create_character("guardian")
        session = enter(RoomType.TRAP, self.trap(), party=[guardian], dice=FixedDice(d20=20))
        result = session.execute_action(A.EXAMINE_TRAP)
        assert result.payload["difficulty"] == 25
        assert result.result_type == "trap_detected"

    def test_disarm_without_rogue_triggers(self):
        """Nobody to disarm means the trap goes off."""
        trap = self.trap()
        trap.detected = True
        session = enter(RoomType.TRAP, trap, party=create_party(["guardian", "cleric"]),
                        dice=FixedDice(chance=True))
        result = session.execute_action(A.DISARM_TRAP)
        assert result.result_type == "trap_triggered"
        assert result.payload["reason"] == "no_rogue"
        assert len(result.payload["damage_taken"]) == 2

    def test_disarm_success_pays_gold(self, ledger):
        """A successful disarm salvages depth-scaled gold."""
        trap = self.trap()
        trap.detected = True
        session = enter(RoomType.TRAP, trap, party=[make_rogue(agility=100)],
                        dice=FixedDice(d20=20), ledger=ledger)
        result = session.execute_action(A.DISARM_TRAP)
        assert result.result_type == "trap_disarmed"
        assert result.payload["loot"] == {"gold": 30}
        assert ledger.get_resource("gold") == 30

    def test_trap_can_fell_the_party(self):
        """A lethal trap ends the run."""
        rogue = make_rogue(agility=0)
        rogue.hp_current = 1
        session = enter(RoomType.TRAP, self.trap(), party=[rogue], dice=FixedDice(d20=1))
        result = session.execute_action(A.EXAMINE_TRAP)
        assert result.payload["party_defeated"] is True
        assert session.state == ExplorationState.COMPLETED


# =============================================================================
# PUZZLES, REST AND EVENTS
# =============================================================================


class TestPuzzleRestEvent:
    """Non-combat content rooms."""

    def test_easy_puzzle_solved(self):
        """Any roll beats difficulty 1."""
        session = enter(RoomType.PUZZLE, PuzzlePayload("riddle", 1, {"gold": 50}))
        result = session.execute_action(A.SOLVE_PUZZLE)
        assert result.result_type == "puzzle_solved"
        assert result.payload["loot"] == {"gold": 50}
        assert session.dungeon.total_loot == {"gold": 50}

    def test_impossible_puzzle_failed(self):
        """A failed puzzle still resolves the room, with no reward."""
        session = enter(RoomType.PUZZLE, PuzzlePayload("riddle", 999, {"gold": 50}))
        result = session.execute_action(A.SOLVE_PUZZLE)
        assert result.result_type == "puzzle_failed"
        assert not result.success
        assert session.dungeon.rooms["room_01"].completed
        assert session.dungeon.total_loot == {}

    def test_puzzle_can_teach_skill(self):
        """A guaranteed skill roll teaches a learnable skill."""
        mage = create_character("mage")
        session = enter(RoomType.PUZZLE, PuzzlePayload("runes", 1, {"gold": 10}, skill_chance=1.0),
                        party=[mage], dice=FixedDice())
        result = session.execute_action(A.SOLVE_PUZZLE)
        learned = result.payload["skill_learned"]
        assert learned is not None
        assert learned["skill"] in mage.skills

    def test_rest_heal_clamped(self):
        """Resting never heals past max HP."""
        guardian = create_character("guardian")
        guardian.take_damage(10)
        session = enter(RoomType.REST, RestPayload(heal_fraction=0.5), party=[guardian])
        result = session.execute_action(A.REST)
        assert result.result_type == "rested"
        assert result.payload["recovered"]["guardian"]["hp"] == 10
        assert guardian.hp_current == guardian.hp_max

    def test_rest_reduces_cooldowns(self):
        """Resting takes two turns off every cooldown."""
        mage = create_character("mage")
        mage.skill_cooldowns["fireball"] = 5
        session = enter(RoomType.REST, RestPayload(), party=[mage])
        session.execute_action(A.REST)
        assert mage.skill_cooldowns["fireball"] == 3

    def test_rest_clears_negative_effects(self):
        """Each clearable effect goes with a chance equal to the heal fraction."""
        guardian = create_character("guardian")
        for effect_type in (StatusEffectType.POISONED, StatusEffectType.BURNING,
                            StatusEffectType.FEAR, StatusEffectType.CONFUSED,
                            StatusEffectType.BLESSED):
            guardian.add_status_effect(StatusEffect(effect_type, duration=3))
        dice = FixedDice()
        dice.percent_chance = MagicMock(return_value=True)
        session = enter(RoomType.REST, RestPayload(heal_fraction=0.4), party=[guardian], dice=dice)

        result = session.execute_action(A.REST)
        cleared = result.payload["recovered"]["guardian"]["cleared"]
        assert sorted(cleared) == ["burning", "confused", "fear", "poisoned"]
        assert [e.effect_type for e in guardian.status_effects] == [StatusEffectType.BLESSED]
        assert dice.percent_chance.call_count == 4
        for call in dice.percent_chance.call_args_list:
            assert call.args[0] == pytest.approx(40)

    def test_rest_can_leave_effects(self):
        """Failed clearing rolls leave the effects in place."""
        guardian = create_character("guardian")
        guardian.add_status_effect(StatusEffect(StatusEffectType.POISONED, duration=3))
        session = enter(RoomType.REST, RestPayload(), party=[guardian], dice=FixedDice(chance=False))
        session.execute_action(A.REST)
        assert guardian.has_status_effect(StatusEffectType.POISONED)

    def test_event_mana_restore(self):
        """Mana restore events refill a fraction of max MP."""
        mage = create_character("mage")
        mage.mp_current = 0
        payload = EventPayload("mana_spring", "Mana Spring", "A glowing pool",
                               EventEffect(EventEffectType.MANA_RESTORE, 0.5))
        session = enter(RoomType.EVENT, payload, party=[mage])
        result = session.execute_action(A.INVESTIGATE_EVENT)
        assert mage.mp_current == 60
        assert result.payload["outcomes"]["mage"] == "restores 60 MP"

    def test_event_stat_drain(self):
        """Stat drain removes a flat amount from the named stat."""
        guardian = create_character("guardian")
        payload = EventPayload("draining_mist", "Draining Mist", "A grey fog",
                               EventEffect(EventEffectType.STAT_DRAIN, 5, stat="spirit"))
        session = enter(RoomType.EVENT, payload, party=[guardian])
        session.execute_action(A.INVESTIGATE_EVENT)
        assert guardian.stats["spirit"] == 55

    def test_event_stat_drain_floor(self):
        """A drain never takes a stat below 1."""
        guardian = create_character("guardian")
        payload = EventPayload("draining_mist", "Draining Mist", "A grey fog",
                               EventEffect(EventEffectType.STAT_DRAIN, 1000, stat="mind"))
        session = enter(RoomType.EVENT, payload, party=[guardian])
        result = session.execute_action(A.INVESTIGATE_EVENT)
        assert guardian.stats["mind"] == 1
        assert result.payload["outcomes"]["guardian"] == "mind drained by 19"

    def test_event_random_stat_boost(self):
        """A boost raises exactly one boostable stat."""
        guardian = create_character("guardian")
        before = dict(guardian.stats)
        payload = EventPayload("ancient_shrine", "Ancient Shrine", "A humming altar",
                               EventEffect(EventEffectType.RANDOM_STAT_BOOST, 5))
        session = enter(RoomType.EVENT, payload, party=[guardian], dice=FixedDice())
        session.execute_action(A.INVESTIGATE_EVENT)

        changed = {s: guardian.stats[s] - before[s] for s in before if guardian.stats[s] != before[s]}
        assert len(changed) == 1
        stat, amount = changed.popitem()
        assert stat in BOOSTABLE_STATS
        assert amount == 5

    def test_event_hp_drain(self):
        """HP drain events cost a fraction of max HP."""
        guardian = create_character("guardian")
        payload = EventPayload("cursed_idol", "Cursed Idol", "A cold stone face",
                               EventEffect(EventEffectType.HP_DRAIN, 0.1))
        session = enter(RoomType.EVENT, payload, party=[guardian])
        result = session.execute_action(A.INVESTIGATE_EVENT)
        assert result.result_type == "event_resolved"
        assert guardian.hp_current == guardian.hp_max - 12
        assert payload.triggered


# =============================================================================
# COMBAT
# =============================================================================


class TestCombatRooms:
    """Fights and the boss."""

    def test_combat_victory(self, fighters):
        """Winning clears the room and pays loot and experience."""
        payload = CombatPayload(enemies=[make_enemy(hp=40, attack=5, experience_reward=10)])
        session = enter(RoomType.COMBAT, payload, party=fighters)
        result = session.execute_action(A.FIGHT)
        assert result.result_type == "combat_victory"
        assert result.payload["enemies_defeated"] == 1
        assert result.payload["loot"]["experience"] == 10
        assert all(a.experience == 10 for a in fighters)
        assert session.state == ExplorationState.EXPLORING
        assert session.dungeon.rooms["room_01"].completed
        assert session.dungeon.enemies_defeated == 1

    def test_party_wipe(self, ledger):
        """Losing a fight ends the run as a failure."""
        payload = CombatPayload(enemies=[make_enemy(hp=100000, attack=100000)])
        session = enter(RoomType.COMBAT, payload, party=[create_character("rogue")], ledger=ledger)
        result = session.execute_action(A.FIGHT)
        assert result.result_type == "party_wipe"
        assert session.state == ExplorationState.COMPLETED
        assert session.is_over
        assert ledger.completions[0].success is False
        assert session.execute_action(A.RETREAT).result_type == "illegal_action"

    def test_aborted_combat_leaves_room_open(self, seeded_dice):
        """A fight cut short by the round cap can be tried again."""
        engine = CombatEngine(seeded_dice, CombatConfig(max_rounds=1))
        payload = CombatPayload(enemies=[make_enemy(hp=100000, attack=1)])
        session = enter(RoomType.COMBAT, payload, dice=seeded_dice, combat_engine=engine)
        result = session.execute_action(A.FIGHT)
        assert result.result_type == "combat_aborted"
        assert result.payload["reason"] == "round_limit"
        assert session.state == ExplorationState.EXPLORING
        assert not session.dungeon.rooms["room_01"].completed
        assert A.FIGHT in {a.action_type for a in session.get_available_actions()}

    def test_boss_defeat_completes_dungeon(self, fighters, ledger):
        """Beating the boss ends the run as a success."""
        session = enter(RoomType.EMPTY, party=fighters, ledger=ledger)
        session.execute_action(A.MOVE, {"room_id": "room_02"})
        assert not session.dungeon.can_retreat()

        result = session.execute_action(A.FIGHT_BOSS)
        assert result.result_type == "boss_defeated"
        assert result.payload["dungeon_completed"] is True
        # Doubled kind reward plus the 50 gold first-completion bonus
        assert 110 <= result.payload["loot"]["gold"] <= 210
        assert result.payload["loot"]["experience"] == 110
        assert all(a.experience == 110 for a in fighters)
        assert session.state == ExplorationState.COMPLETED
        assert session.dungeon.boss_defeated
        assert ledger.completions[0].success is True
        assert ledger.get_resource("gold") == result.payload["loot"]["gold"]
        assert ledger.completions[0].stats["turns"] == session.turn_count

    def test_repeat_boss_has_no_first_completion_bonus(self, fighters):
        """Without the first-completion flag the boss pays only the doubled reward."""
        session = enter(RoomType.EMPTY, party=fighters, first_completion=False)
        session.execute_action(A.MOVE, {"room_id": "room_02"})
        result = session.execute_action(A.FIGHT_BOSS)
        assert 60 <= result.payload["loot"]["gold"] <= 160
        assert 10 <= result.payload["loot"]["materials"] <= 30
        assert result.payload["loot"]["experience"] == 10

    def test_no_retreat_from_boss_room(self, fighters):
        """Retreat is neither offered nor accepted in the boss room."""
        session = enter(RoomType.EMPTY, party=fighters)
        session.execute_action(A.MOVE, {"room_id": "room_02"})
        assert A.RETREAT not in {a.action_type for a in session.get_available_actions()}
        assert session.execute_action(A.RETREAT).result_type == "illegal_action"
        assert not session.dungeon.retreated


# =============================================================================
# RETREAT AND FAILURES
# =============================================================================


class TestRetreatAndErrors:
    """Retreat and handler failures."""

    def test_retreat_keeps_loot(self, ledger):
        """Retreating ends the run with the loot gathered so far."""
        session = enter(RoomType.TREASURE, TreasurePayload(loot={"gold": 20}),
                        dice=FixedDice(chance=False), ledger=ledger)
        session.execute_action(A.OPEN_TREASURE)
        result = session.execute_action(A.RETREAT)
        assert result.result_type == "retreated"
        assert result.payload["loot"] == {"gold": 20}
        assert session.state == ExplorationState.RETREATED
        assert ledger.completions[0].success is False

    def test_actions_after_retreat_are_illegal(self):
        """Nothing happens once the run is over."""
        session = enter(RoomType.EMPTY)
        session.execute_action(A.RETREAT)
        result = session.execute_action(A.MOVE, {"room_id": "room_00"})
        assert result.result_type == "illegal_action"
        assert session.dungeon.current_room_id == "room_01"

    def test_handler_failure_restores_state(self, fighters):
        """A crashing handler leaves the room and session as they were."""
        payload = CombatPayload(enemies=[make_enemy()])
        session = enter(RoomType.COMBAT, payload, party=fighters)

        def explode(room, options):
            session.state_machine.transition("combat_started")
            raise RuntimeError("boom")

        session._handlers[A.FIGHT] = MagicMock(side_effect=explode)
        result = session.execute_action(A.FIGHT)
        assert result.result_type == "error"
        assert result.error == "boom"
        assert session.state == ExplorationState.EXPLORING
        assert not session.dungeon.rooms["room_01"].completed
        assert payload.enemies[0].is_alive()
        assert session.turn_count == 1  # Only the move into room_01

    def test_failing_ledger_does_not_undo_loot(self):
        """A ledger error is logged; the opened treasure stays opened and counted."""
        ledger = MagicMock()
        ledger.add_resources.side_effect = RuntimeError("ledger offline")
        session = enter(RoomType.TREASURE, TreasurePayload(loot={"gold": 30}),
                        dice=FixedDice(chance=False), ledger=ledger)
        session.drain_log()

        result = session.execute_action(A.OPEN_TREASURE)
        assert result.success
        assert result.result_type == "treasure_opened"
        assert session.dungeon.rooms["room_01"].completed
        assert session.dungeon.total_loot == {"gold": 30}
        assert session.turn_count == 2
        assert any("ledger" in e.message for e in session.drain_log())

    def test_failing_ledger_does_not_undo_retreat(self):
        """A ledger that cannot record the run still leaves the party retreated."""
        ledger = MagicMock()
        ledger.record_completion.side_effect = RuntimeError("ledger offline")
        session = enter(RoomType.EMPTY, ledger=ledger)

        result = session.execute_action(A.RETREAT)
        assert result.result_type == "retreated"
        assert session.state == ExplorationState.RETREATED
        assert session.dungeon.retreated
        assert session.is_over
        ledger.record_completion.assert_called_once()

    def test_failed_handler_reports_nothing_to_ledger(self, fighters):
        """Loot queued by a handler that then crashes never reaches the ledger."""
        ledger = MagicMock()
        session = enter(RoomType.TREASURE, TreasurePayload(loot={"gold": 30}),
                        party=fighters, ledger=ledger)

        def complete_then_explode(room, options):
            session._complete_room(room, {"gold": 30})
            raise RuntimeError("boom")

        session._handlers[A.OPEN_TREASURE] = MagicMock(side_effect=complete_then_explode)
        assert session.execute_action(A.OPEN_TREASURE).result_type == "error"
        ledger.add_resources.assert_not_called()


# =============================================================================
# AUTO-PLAY
# =============================================================================


class TestAutoPlay:
    """Unattended runs."""

    def test_auto_play_prefers_room_content(self, fighters):
        """The current room is resolved before moving on."""
        session = enter(RoomType.PUZZLE, PuzzlePayload("riddle", 1), party=fighters)
        assert choose_auto_action(session) == (A.SOLVE_PUZZLE, {})

    def test_auto_play_retreats_when_hurt(self, fighters):
        """A badly hurt party heads home."""
        session = enter(RoomType.EMPTY, party=fighters)
        for ally in fighters:
            ally.hp_current = 1
        assert choose_auto_action(session) == (A.RETREAT, {})

    @pytest.mark.parametrize("seed", [1, 2, 3])
    def test_auto_play_finishes_training_run(self, seed, ledger):
        """A default party plays a training dungeon to the end."""
        dice = DiceRoller(seed=seed)
        dungeon = DungeonGenerator(dice).build(DungeonKind.TRAINING_GROUNDS)
        session = ExplorationSession(dungeon, create_party(), dice, ledger=ledger)
        results = auto_play(session)

        assert session.is_over
        assert session.turn_count == len(results)
        assert all(r.result_type not in ("error", "illegal_action") for r in results)
        assert len(ledger.completions) == 1
        assert choose_auto_action(session) is None
