"""
Delve - Main Entry Point

Builds a dungeon, sends a preset party through it with the auto-player and
prints the adventure log and a summary. Useful as a demo and as a smoke test
of the whole engine.
"""

import argparse
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from delve.combat.combat_engine import CombatConfig, CombatEngine
from delve.data_models import DiceRoller, DungeonKind
from delve.dungeon.dungeon_generator import DungeonGenerator
from delve.dungeon.exploration import ExplorationSession, auto_play
from delve.ledger import InMemoryLedger
from delve.tables.character_tables import CHARACTER_CLASSES, DEFAULT_PARTY, create_party


# Configure logging
def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class GameConfig:
    """Configuration for one delve."""

    dungeon_kind: str = DungeonKind.TRAINING_GROUNDS.value
    difficulty: Optional[int] = None  # None uses the kind's own difficulty
    seed: Optional[int] = None
    party: list[str] = field(default_factory=lambda: list(DEFAULT_PARTY))

    # Auto-play and combat limits
    max_actions: int = 200
    max_rounds: int = 50
    combat_timeout: float = 60.0
    healing_potions: int = 2
    mana_potions: int = 1

    # Output options
    verbose: bool = False
    json_output: bool = False

    def __post_init__(self):
        """Normalise party ids."""
        if isinstance(self.party, str):
            self.party = [p.strip() for p in self.party.split(",") if p.strip()]
        self.party = [p.lower() for p in self.party]


# =============================================================================
# RUNNING A DELVE
# =============================================================================

def run_delve(config: GameConfig) -> dict[str, Any]:
    """
    Build a dungeon from the config and auto-play it to the end.

    Returns:
        Summary, drained log lines, ledger state and per-action results
    """
    dice = DiceRoller(seed=config.seed)
    dungeon = DungeonGenerator(dice).build(config.dungeon_kind, config.difficulty)
    party = create_party(config.party)
    ledger = InMemoryLedger()
    engine = CombatEngine(
        dice,
        CombatConfig(max_rounds=config.max_rounds, combat_timeout=config.combat_timeout),
    )
    session = ExplorationSession(
        dungeon,
        party,
        dice,
        combat_engine=engine,
        ledger=ledger,
        combat_items={
            "healing_potion": config.healing_potions,
            "mana_potion": config.mana_potions,
        },
    )

    results = auto_play(session, max_actions=config.max_actions)
    logger.info(f"Delve finished after {len(results)} actions in state {session.state.value}")
    return {
        "summary": session.get_summary(),
        "log": [str(entry) for entry in session.drain_log()],
        "ledger": {
            "resources": dict(ledger.resources),
            "completions": [c.to_dict() for c in ledger.completions],
        },
        "results": [r.to_dict() for r in results],
    }


def format_report(report: dict[str, Any]) -> str:
    """Plain-text rendering of run_delve()'s output."""
    summary = report["summary"]
    lines = ["", "=" * 60, f"{summary['dungeon_name'].upper()}", "=" * 60]
    lines.extend(report["log"])
    lines.extend([
        "",
        "-" * 60,
        f"Outcome:   {summary['state']}",
        f"Turns:     {summary['turns']}",
        f"Rooms:     {summary['rooms_completed']}/{summary['rooms_total']} cleared",
        f"Enemies:   {summary['enemies_defeated']} defeated",
        f"Loot:      {summary['total_loot'] or 'none'}",
    ])
    for member in summary["party"]:
        status = "standing" if member["conscious"] else "fallen"
        lines.append(f"  {member['name']:<20} {member['hp']:>4}/{member['hp_max']:<4} {status}")
    return "\n".join(lines)


# =============================================================================
# COMMAND LINE
# =============================================================================

def parse_arguments(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Delve - procedural dungeon crawler with auto-played parties",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  delve                                  # Training grounds with the default party
  delve --kind ancient_library --seed 7  # Reproducible library run
  delve --party guardian,mage,rogue      # Choose the party
  delve --json                           # Machine-readable report
        """
    )

    parser.add_argument(
        "--kind",
        type=str,
        default=DungeonKind.TRAINING_GROUNDS.value,
        choices=[k.value for k in DungeonKind],
        help="Dungeon kind (default: training_grounds)",
    )
    parser.add_argument(
        "--difficulty",
        type=int,
        help="Override the dungeon kind's difficulty",
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Random seed for a reproducible run",
    )
    parser.add_argument(
        "--party",
        type=str,
        default=",".join(DEFAULT_PARTY),
        help=f"Comma-separated class ids (available: {', '.join(CHARACTER_CLASSES)})",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the report as JSON",
    )

    limits = parser.add_argument_group("Limits")
    limits.add_argument(
        "--max-actions",
        type=int,
        default=200,
        help="Maximum auto-play actions (default: 200)",
    )
    limits.add_argument(
        "--max-rounds",
        type=int,
        default=50,
        help="Combat round cap (default: 50)",
    )
    limits.add_argument(
        "--combat-timeout",
        type=float,
        default=60.0,
        help="Combat wall-clock limit in seconds (default: 60)",
    )

    return parser.parse_args(argv)


def create_config_from_args(args: argparse.Namespace) -> GameConfig:
    """Create GameConfig from parsed command line arguments."""
    return GameConfig(
        dungeon_kind=args.kind,
        difficulty=args.difficulty,
        seed=args.seed,
        party=args.party,
        max_actions=args.max_actions,
        max_rounds=args.max_rounds,
        combat_timeout=args.combat_timeout,
        verbose=args.verbose,
        json_output=args.json,
    )


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for CLI usage."""
    args = parse_arguments(argv)
    setup_logging(args.verbose)
    config = create_config_from_args(args)

    try:
        report = run_delve(config)
    except KeyError as e:
        logger.error(f"Unknown character class: {e}")
        return 2

    if config.json_output:
        print(json.dumps(report, indent=2, default=str))
    else:
        print(format_report(report))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
