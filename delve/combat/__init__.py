"""Combat engine module."""

from delve.combat.combat_engine import (
    CombatEngine,
    CombatConfig,
    CombatSession,
    CombatAction,
    CombatActionType,
    CombatOutcome,
    CombatPhase,
    CombatResult,
    ActionResult,
    CombatValidationError,
    calculate_attack_damage,
)

__all__ = [
    "CombatEngine",
    "CombatConfig",
    "CombatSession",
    "CombatAction",
    "CombatActionType",
    "CombatOutcome",
    "CombatPhase",
    "CombatResult",
    "ActionResult",
    "CombatValidationError",
    "calculate_attack_damage",
]
