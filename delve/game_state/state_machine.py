"""
State machine for an exploration session.

A session is always in exactly one of four states. Exploring is the
resting state between actions; Combat is entered for the duration of a
fight; Completed and Retreated are terminal.

All transitions are validated against VALID_TRANSITIONS and recorded in
the transition history (and, when supplied, the session's EventLog).
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from delve.observability.event_log import EventLog, LogCategory


class ExplorationState(str, Enum):
    """States of an exploration session."""

    EXPLORING = "exploring"
    COMBAT = "combat"
    COMPLETED = "completed"
    RETREATED = "retreated"


TERMINAL_STATES = frozenset({ExplorationState.COMPLETED, ExplorationState.RETREATED})


@dataclass
class StateTransition:
    """Defines a valid state transition."""

    from_state: ExplorationState
    to_state: ExplorationState
    trigger: str
    description: str = ""

    def __hash__(self) -> int:
        return hash((self.from_state, self.to_state, self.trigger))


@dataclass
class TransitionLog:
    """Log entry for a state transition."""
    timestamp: datetime
    from_state: str
    to_state: str
    trigger: str
    context: dict[str, Any] = field(default_factory=dict)


VALID_TRANSITIONS: list[StateTransition] = [
    StateTransition(
        ExplorationState.EXPLORING,
        ExplorationState.COMBAT,
        "combat_started",
        "Party engages the enemies in the current room",
    ),
    StateTransition(
        ExplorationState.COMBAT,
        ExplorationState.EXPLORING,
        "combat_won",
        "All enemies defeated, exploration resumes",
    ),
    StateTransition(
        ExplorationState.COMBAT,
        ExplorationState.EXPLORING,
        "combat_aborted",
        "Combat hit a safety limit, room stays unresolved",
    ),
    StateTransition(
        ExplorationState.COMBAT,
        ExplorationState.COMPLETED,
        "boss_defeated",
        "The boss falls and the dungeon is cleared",
    ),
    StateTransition(
        ExplorationState.COMBAT,
        ExplorationState.COMPLETED,
        "party_defeated",
        "Every ally has fallen, the run is over",
    ),
    StateTransition(
        ExplorationState.EXPLORING,
        ExplorationState.RETREATED,
        "retreat",
        "Party leaves the dungeon with what it has gathered",
    ),
    StateTransition(
        ExplorationState.EXPLORING,
        ExplorationState.COMPLETED,
        "party_defeated",
        "The last conscious ally fell outside of combat",
    ),
]


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    pass


class StateMachine:
    """
    Manages exploration state transitions with validation and history tracking.

    Attributes:
        current_state: The current active state
        previous_state: The state before the last transition
        state_history: Complete history of all state transitions
    """

    def __init__(
        self,
        initial_state: ExplorationState = ExplorationState.EXPLORING,
        event_log: Optional[EventLog] = None,
    ):
        """
        Initialize the state machine.

        Args:
            initial_state: The starting state (default: EXPLORING)
            event_log: Optional log that receives a line per transition
        """
        self._current_state: ExplorationState = initial_state
        self._previous_state: Optional[ExplorationState] = None
        self._state_history: list[TransitionLog] = []
        self._event_log = event_log

        self._valid_transitions: dict[tuple[ExplorationState, str], ExplorationState] = {}
        for transition in VALID_TRANSITIONS:
            key = (transition.from_state, transition.trigger)
            self._valid_transitions[key] = transition.to_state

        self._log_transition(
            from_state="INIT", to_state=initial_state.value, trigger="initialization"
        )

    @property
    def current_state(self) -> ExplorationState:
        return self._current_state

    @property
    def previous_state(self) -> Optional[ExplorationState]:
        return self._previous_state

    @property
    def state_history(self) -> list[TransitionLog]:
        """Get the complete state transition history."""
        return self._state_history.copy()

    @property
    def is_terminal(self) -> bool:
        return self._current_state in TERMINAL_STATES

    def can_transition(self, trigger: str) -> bool:
        return (self._current_state, trigger) in self._valid_transitions

    def get_valid_triggers(self) -> list[str]:
        """Get all valid triggers from the current state."""
        return [
            trigger for (state, trigger) in self._valid_transitions
            if state == self._current_state
        ]

    def transition(self, trigger: str, context: Optional[dict[str, Any]] = None) -> ExplorationState:
        """
        Attempt to transition to a new state.

        Args:
            trigger: The trigger event causing the transition
            context: Optional context data for the transition

        Returns:
            The new state

        Raises:
            InvalidTransitionError: If the transition is not valid
        """
        context = context or {}

        key = (self._current_state, trigger)
        if key not in self._valid_transitions:
            raise InvalidTransitionError(
                f"Invalid transition: Cannot trigger '{trigger}' from state "
                f"'{self._current_state.value}'. Valid triggers: {self.get_valid_triggers()}"
            )

        new_state = self._valid_transitions[key]
        old_state = self._current_state
        self._previous_state = old_state
        self._current_state = new_state

        self._log_transition(
            from_state=old_state.value, to_state=new_state.value, trigger=trigger, context=context
        )
        return new_state

    def force_state(
        self, new_state: ExplorationState, reason: str, context: Optional[dict[str, Any]] = None
    ) -> None:
        """
        Force a state change without validation.

        Only used to restore the prior state after a failed action handler.

        Args:
            new_state: The state to force
            reason: Why this force is necessary
            context: Optional context data
        """
        context = context or {}
        context["forced"] = True
        context["force_reason"] = reason

        old_state = self._current_state
        self._previous_state = old_state
        self._current_state = new_state

        self._log_transition(
            from_state=old_state.value,
            to_state=new_state.value,
            trigger=f"FORCED: {reason}",
            context=context,
        )

    def _log_transition(
        self, from_state: str, to_state: str, trigger: str, context: Optional[dict[str, Any]] = None
    ) -> None:
        self._state_history.append(TransitionLog(
            timestamp=datetime.now(),
            from_state=from_state,
            to_state=to_state,
            trigger=trigger,
            context=context or {},
        ))
        if self._event_log is not None and from_state != "INIT":
            self._event_log.append(
                f"State {from_state} -> {to_state} ({trigger})",
                LogCategory.TRANSITION,
            )

    def get_state_info(self) -> dict[str, Any]:
        """Get information about the current state for display/debugging."""
        return {
            "current_state": self._current_state.value,
            "previous_state": self._previous_state.value if self._previous_state else None,
            "valid_triggers": self.get_valid_triggers(),
            "transition_count": len(self._state_history),
        }

    def __repr__(self) -> str:
        return f"StateMachine(current={self._current_state.value})"
