from salon_receptionist.conversation.speech import Confirmation, classify_confirmation
from salon_receptionist.conversation.state_machine import (
    BookingState,
    BookingStateMachine,
    TransitionTrigger,
)

__all__ = [
    "BookingStateMachine",
    "BookingState",
    "TransitionTrigger",
    "Confirmation",
    "classify_confirmation",
]
