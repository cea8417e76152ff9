"""
Pytest fixtures for the Delve test suite.

Provides reusable fixtures for dice, parties, ledgers and generated
dungeons. Builders for hand-made rooms live in tests/helpers.py.
"""

import pytest

from delve.data_models import DiceRoller, DungeonKind
from delve.dungeon.dungeon_generator import DungeonGenerator
from delve.ledger import InMemoryLedger
from delve.tables.character_tables import create_party
from tests.helpers import FixedDice


# =============================================================================
# DICE FIXTURES
# =============================================================================


@pytest.fixture
def seeded_dice():
    """Provide a seeded DiceRoller for reproducible tests."""
    return DiceRoller(seed=42)


@pytest.fixture
def fixed_dice():
    """Dice that roll 20 on every d20 and pass every percentage check."""
    return FixedDice()


# =============================================================================
# PARTY FIXTURES
# =============================================================================


@pytest.fixture
def party():
    """The default guardian / cleric / rogue party."""
    return create_party()


@pytest.fixture
def fighters():
    """A party with no rogue."""
    return create_party(["guardian", "berserker"])


# =============================================================================
# DUNGEON FIXTURES
# =============================================================================


@pytest.fixture
def built_dungeon(seeded_dice):
    """A generated crystal caverns dungeon."""
    return DungeonGenerator(seeded_dice).build(DungeonKind.CRYSTAL_CAVERNS)


@pytest.fixture
def ledger():
    """Fresh in-memory ledger."""
    return InMemoryLedger()
