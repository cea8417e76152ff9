"""Exploration state management module."""

from delve.game_state.state_machine import (
    ExplorationState,
    InvalidTransitionError,
    StateMachine,
    StateTransition,
)

__all__ = [
    "ExplorationState",
    "InvalidTransitionError",
    "StateMachine",
    "StateTransition",
]
