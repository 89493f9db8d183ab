"""
Finite state machine for the booking confirmation loop.

A call collects fields until the draft is complete, then waits for an
explicit yes before committing. "No", an implicit correction, an
unavailable slot, an expired pending booking or a failed submission all
return the call to collecting. Transfers end the call from any live state.

Usage:
    sm = BookingStateMachine()
    sm.transition(TransitionTrigger.DRAFT_COMPLETED)
    assert sm.current_state == BookingState.AWAITING_CONFIRMATION
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class BookingState(str, Enum):
    """All possible states of a booking call."""
    COLLECTING = "collecting"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    COMMITTED = "committed"
    TRANSFERRED = "transferred"


class TransitionTrigger(str, Enum):
    """Events that cause state transitions."""
    DRAFT_COMPLETED = "draft_completed"
    BOOKING_COMMITTED = "booking_committed"
    CALLER_DECLINED = "caller_declined"
    CALLER_CORRECTED = "caller_corrected"
    SLOT_UNAVAILABLE = "slot_unavailable"
    PENDING_EXPIRED = "pending_expired"
    SUBMISSION_FAILED = "submission_failed"
    CALL_TRANSFERRED = "call_transferred"


@dataclass
class Transition:
    """A single valid state transition."""
    from_state: BookingState
    to_state: BookingState
    trigger: TransitionTrigger
    guard: Optional[Callable[[], bool]] = None


@dataclass
class StateEntry:
    """Recorded history entry for a state visit."""
    state: BookingState
    entered_at: datetime
    trigger: Optional[TransitionTrigger] = None


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the current state."""


class BookingStateMachine:
    """
    Deterministic state machine controlling the confirm/correct loop.

    Committing is only reachable from AWAITING_CONFIRMATION, so a booking
    can never be submitted without the caller's explicit yes.
    """

    TRANSITIONS: list[Transition] = [
        # --- Collecting ---
        Transition(BookingState.COLLECTING, BookingState.AWAITING_CONFIRMATION,
                   TransitionTrigger.DRAFT_COMPLETED),
        Transition(BookingState.COLLECTING, BookingState.TRANSFERRED,
                   TransitionTrigger.CALL_TRANSFERRED),

        # --- Confirmation gate ---
        Transition(BookingState.AWAITING_CONFIRMATION, BookingState.COMMITTED,
                   TransitionTrigger.BOOKING_COMMITTED),
        Transition(BookingState.AWAITING_CONFIRMATION, BookingState.COLLECTING,
                   TransitionTrigger.CALLER_DECLINED),
        Transition(BookingState.AWAITING_CONFIRMATION, BookingState.COLLECTING,
                   TransitionTrigger.SLOT_UNAVAILABLE),
        Transition(BookingState.AWAITING_CONFIRMATION, BookingState.COLLECTING,
                   TransitionTrigger.PENDING_EXPIRED),
        Transition(BookingState.AWAITING_CONFIRMATION, BookingState.COLLECTING,
                   TransitionTrigger.SUBMISSION_FAILED),
        # A correction that leaves the draft complete is read back again
        Transition(BookingState.AWAITING_CONFIRMATION, BookingState.AWAITING_CONFIRMATION,
                   TransitionTrigger.CALLER_CORRECTED),
        Transition(BookingState.AWAITING_CONFIRMATION, BookingState.TRANSFERRED,
                   TransitionTrigger.CALL_TRANSFERRED),
    ]

    def __init__(self) -> None:
        self._current_state = BookingState.COLLECTING
        self._history: list[StateEntry] = [
            StateEntry(state=BookingState.COLLECTING, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_state(self) -> BookingState:
        return self._current_state

    def transition(self, trigger: TransitionTrigger) -> BookingState:
        """
        Execute a state transition.

        Args:
            trigger: The event triggering the transition.

        Returns:
            The new booking state.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in self.TRANSITIONS:
            if t.from_state == self._current_state and t.trigger == trigger:
                if t.guard is not None and not t.guard():
                    continue

                old_state = self._current_state
                self._current_state = t.to_state

                self._history.append(StateEntry(
                    state=self._current_state,
                    entered_at=datetime.now(timezone.utc),
                    trigger=trigger,
                ))

                logger.debug(
                    "State transition: %s -> %s (trigger: %s)",
                    old_state.value, self._current_state.value, trigger.value,
                )
                return self._current_state

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_state.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def can(self, trigger: TransitionTrigger) -> bool:
        """Whether the trigger is valid from the current state."""
        return trigger in self.get_valid_triggers()

    def get_valid_triggers(self) -> list[TransitionTrigger]:
        """Return all triggers valid from the current state."""
        return [t.trigger for t in self.TRANSITIONS if t.from_state == self._current_state]

    def get_history(self) -> list[StateEntry]:
        """Return the full state transition history."""
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of state names visited."""
        return [entry.state.value for entry in self._history]

    def is_terminal(self) -> bool:
        """Check if the call has reached a terminal state."""
        return self._current_state in (BookingState.COMMITTED, BookingState.TRANSFERRED)
