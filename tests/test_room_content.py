"""
Tests for room payload generation.
"""

from delve.data_models import DiceRoller, DungeonKind, EventEffectType, RoomType
from delve.dungeon.room_content import (
    CombatPayload,
    EventPayload,
    PuzzlePayload,
    RestPayload,
    RoomContentGenerator,
    TrapPayload,
    TreasurePayload,
)
from delve.tables.enemy_tables import BOSS_ABILITIES, ENEMIES
from delve.tables.room_templates import RoomTemplate, build_boss_template, get_room_templates
from tests.helpers import FixedDice


def templates(kind):
    return get_room_templates(kind)


class TestEnemyCreation:
    """Tests for create_enemy and create_boss."""

    def test_enemy_scaled_by_depth(self):
        """HP and attack scale with depth and the variance multiplier."""
        generator = RoomContentGenerator(FixedDice(maximum=False))
        shallow = generator.create_enemy("cave_troll", depth=0)
        deep = generator.create_enemy("cave_troll", depth=4)
        base = ENEMIES["cave_troll"]
        assert shallow.hp_max == int(base.hp * 1.0 * 0.8)
        assert deep.hp_max == int(base.hp * (1 + 0.15 * 4) * 0.8)
        assert deep.attack > shallow.attack

    def test_enemy_stays_within_variance(self, seeded_dice):
        """Depth-0 enemies land within +/-20% of base HP."""
        generator = RoomContentGenerator(seeded_dice)
        base = ENEMIES["wraith"].hp
        for _ in range(30):
            enemy = generator.create_enemy("wraith", depth=0)
            assert int(base * 0.8) <= enemy.hp_max <= base * 1.2
            assert enemy.hp_current == enemy.hp_max

    def test_unique_combatant_ids(self, seeded_dice):
        """Every enemy from one generator has its own id."""
        generator = RoomContentGenerator(seeded_dice)
        ids = {generator.create_enemy("wraith", 1).combatant_id for _ in range(10)}
        assert len(ids) == 10

    def test_unknown_enemy_falls_back(self, seeded_dice, caplog):
        """Unknown ids produce the fallback creature and a warning."""
        generator = RoomContentGenerator(seeded_dice)
        enemy = generator.create_enemy("space_dragon", depth=0)
        assert enemy.name == "Unknown Creature"
        assert any("space_dragon" in r.message for r in caplog.records)

    def test_boss_gets_default_phases(self):
        """Bosses without phases get a standard and an enraged phase."""
        generator = RoomContentGenerator(FixedDice())
        regular = generator.create_enemy("crystal_golem", depth=2)
        boss = generator.create_boss("crystal_golem", depth=2)
        assert boss.is_boss
        assert boss.name.endswith("(Boss)")
        assert boss.hp_max == int(regular.hp_max * 2.5)
        assert boss.experience_reward == regular.experience_reward * 2
        assert [p.name for p in boss.phases] == ["Standard", "Enraged"]
        assert list(boss.phases[1].abilities) == list(BOSS_ABILITIES)
        assert all(a in boss.abilities for a in BOSS_ABILITIES)

    def test_boss_keeps_declared_phases(self, seeded_dice):
        """The demon lord keeps its own three phases."""
        boss = RoomContentGenerator(seeded_dice).create_boss("demon_lord_malphas", depth=5)
        assert [p.hp_threshold for p in boss.phases] == [100, 50, 10]
        assert "boss_rage" in boss.phases[0].abilities


class TestRoomPayloads:
    """Tests for generate()."""

    def test_entrance_and_empty_have_no_payload(self, seeded_dice):
        """Entrance and Empty rooms carry nothing."""
        generator = RoomContentGenerator(seeded_dice)
        for room_type in (RoomType.ENTRANCE, RoomType.EMPTY):
            assert generator.generate(room_type, None, 1, DungeonKind.TRAINING_GROUNDS) is None

    def test_combat_respects_template_bounds(self, seeded_dice):
        """Enemy counts stay within the template's min/max."""
        generator = RoomContentGenerator(seeded_dice)
        template = templates(DungeonKind.CRYSTAL_CAVERNS)[RoomType.COMBAT]
        for _ in range(20):
            payload = generator.generate(RoomType.COMBAT, template, 3, DungeonKind.CRYSTAL_CAVERNS)
            assert isinstance(payload, CombatPayload)
            assert 1 <= len(payload.enemies) <= 3
            assert all(e.enemy_id in template.enemies for e in payload.enemies)

    def test_combat_without_pool_uses_fallback(self, seeded_dice):
        """A template with no enemy pool still yields enemies."""
        generator = RoomContentGenerator(seeded_dice)
        payload = generator.generate(RoomType.COMBAT, RoomTemplate(weight=1), 1,
                                     DungeonKind.TRAINING_GROUNDS)
        assert payload.enemies

    def test_boss_room_single_boss(self, seeded_dice):
        """Boss rooms hold exactly one boss from the kind's pool."""
        generator = RoomContentGenerator(seeded_dice)
        template = build_boss_template(DungeonKind.SHADOW_FORTRESS)
        payload = generator.generate(RoomType.BOSS, template, 4, DungeonKind.SHADOW_FORTRESS)
        assert payload.is_boss
        assert len(payload.enemies) == 1
        assert payload.boss.enemy_id in ("nightmare_spawn", "shadow_knight")

    def test_treasure_scaled_loot(self):
        """Loot is the rolled maximum scaled by the training grounds 0.8 multiplier."""
        generator = RoomContentGenerator(FixedDice(maximum=True, chance=False))
        template = templates(DungeonKind.TRAINING_GROUNDS)[RoomType.TREASURE]
        payload = generator.generate(RoomType.TREASURE, template, 0, DungeonKind.TRAINING_GROUNDS)
        assert isinstance(payload, TreasurePayload)
        assert payload.loot == {"gold": 32, "materials": 6}
        assert payload.chest_type in template.chest_types
        assert payload.special_item is None

    def test_treasure_special_item(self):
        """Special loot appears when the special roll succeeds."""
        generator = RoomContentGenerator(FixedDice(chance=True))
        template = templates(DungeonKind.ANCIENT_LIBRARY)[RoomType.TREASURE]
        payload = generator.generate(RoomType.TREASURE, template, 2, DungeonKind.ANCIENT_LIBRARY)
        assert payload.special_item == "skill_book"

    def test_trap_from_template(self, seeded_dice):
        """Trap stats come from the template."""
        generator = RoomContentGenerator(seeded_dice)
        template = templates(DungeonKind.CRYSTAL_CAVERNS)[RoomType.TRAP]
        payload = generator.generate(RoomType.TRAP, template, 2, DungeonKind.CRYSTAL_CAVERNS)
        assert isinstance(payload, TrapPayload)
        assert 15 <= payload.damage <= 35
        assert (payload.detect_dc, payload.disarm_dc) == (15, 18)
        assert not payload.detected

    def test_trap_defaults_scale_with_depth(self, seeded_dice):
        """Missing trap fields get depth-scaled defaults."""
        generator = RoomContentGenerator(seeded_dice)
        payload = generator.generate(RoomType.TRAP, RoomTemplate(weight=1), 3,
                                     DungeonKind.TRAINING_GROUNDS)
        assert payload.detect_dc == 21
        assert payload.disarm_dc == 29
        assert 5 <= payload.damage <= 15

    def test_puzzle_reward_and_skill_chance(self, seeded_dice):
        """skill_chance is split out of the reward map."""
        generator = RoomContentGenerator(seeded_dice)
        template = templates(DungeonKind.ANCIENT_LIBRARY)[RoomType.PUZZLE]
        payload = generator.generate(RoomType.PUZZLE, template, 2, DungeonKind.ANCIENT_LIBRARY)
        assert isinstance(payload, PuzzlePayload)
        assert payload.reward == {"gold": 100}
        assert payload.skill_chance == 0.3
        assert payload.difficulty == 18

    def test_event_payload(self, seeded_dice):
        """Events resolve to a known effect."""
        generator = RoomContentGenerator(seeded_dice)
        template = templates(DungeonKind.CRYSTAL_CAVERNS)[RoomType.EVENT]
        payload = generator.generate(RoomType.EVENT, template, 1, DungeonKind.CRYSTAL_CAVERNS)
        assert isinstance(payload, EventPayload)
        assert payload.event_id in template.events
        assert isinstance(payload.effect.effect_type, EventEffectType)

    def test_rest_payload(self, seeded_dice):
        """Rest rooms use the template's heal fraction."""
        generator = RoomContentGenerator(seeded_dice)
        template = templates(DungeonKind.TRAINING_GROUNDS)[RoomType.REST]
        payload = generator.generate(RoomType.REST, template, 1, DungeonKind.TRAINING_GROUNDS)
        assert isinstance(payload, RestPayload)
        assert payload.heal_fraction == 0.4
        assert payload.description == "A training rest area with basic supplies"

    def test_payloads_serialise(self):
        """Every payload converts to a plain dict with its kind."""
        generator = RoomContentGenerator(DiceRoller(seed=5))
        kind = DungeonKind.CRYSTAL_CAVERNS
        for room_type, template in templates(kind).items():
            payload = generator.generate(room_type, template, 1, kind)
            if payload is not None:
                assert "kind" in payload.to_dict()
