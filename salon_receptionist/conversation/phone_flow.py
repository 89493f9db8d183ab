"""
Phone number collection and spoken confirmation.

Callers read their number in pieces ("nine oh five ... five five five ...
one two three four"), with country codes and trailing noise. Digits
accumulate across turns until ten are available, then the number is read
back grouped as area code / exchange / line and only an explicit "yes"
moves it into the booking draft.

    idle -> collecting -> confirming -> confirmed
                ^             |
                +---- "no" ---+
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from salon_receptionist.conversation.speech import Confirmation, classify_confirmation, words_to_digits
from salon_receptionist.logging_context import redact_phone
from salon_receptionist.utils import format_phone_for_speech

logger = logging.getLogger(__name__)

PHONE_LENGTH = 10
MIN_FIRST_CHUNK = 3
MIN_CONTINUATION_CHUNK = 1

ASK_PHONE = "What's the best 10-digit phone number for the booking?"
PHONE_RETRY = "No worries. Can you say the full 10-digit phone number again, one digit at a time?"
PHONE_TOO_SHORT = (
    "Sorry, I only caught part of that. "
    "Can you say the full 10-digit phone number, one digit at a time?"
)
PHONE_CONTINUE = "Got it, go ahead with the rest of the number."


class PhoneState(str, Enum):
    """Phone sub-flow states."""

    IDLE = "idle"
    COLLECTING = "collecting"
    CONFIRMING = "confirming"
    CONFIRMED = "confirmed"


@dataclass(frozen=True)
class PhoneStep:
    """Outcome of feeding one utterance into the phone sub-flow.

    ``handled`` is False when the utterance carried nothing for the
    sub-flow and the orchestrator should carry on with its normal flow.
    """

    handled: bool
    line: str = ""
    confirmed_number: Optional[str] = None


def confirmation_prompt(digits: str) -> str:
    return f"Just to confirm, is your number {format_phone_for_speech(digits)}?"


def is_plausible_number(digits: str) -> bool:
    """North American plausibility: area code and exchange start with 2-9."""
    return (
        len(digits) == PHONE_LENGTH
        and digits.isdigit()
        and digits[0] in "23456789"
        and digits[3] in "23456789"
    )


def select_phone_window(digits: str) -> Optional[str]:
    """Pick the most plausible 10-digit window out of an accumulated digit string.

    Exactly ten digits are used as-is; eleven starting with the country
    code 1 drop it. Longer strings take the first plausible window,
    trying the one after a leading 1 first, and fall back to the last ten.

    Examples:
        >>> select_phone_window("19055551234")
        '9055551234'
        >>> select_phone_window("905555123499")
        '9055551234'
    """
    if len(digits) < PHONE_LENGTH:
        return None
    if len(digits) == PHONE_LENGTH:
        return digits
    if len(digits) == PHONE_LENGTH + 1 and digits[0] == "1":
        return digits[1:]

    starts = list(range(len(digits) - PHONE_LENGTH + 1))
    if digits[0] == "1":
        starts.remove(1)
        starts.insert(0, 1)
    for start in starts:
        window = digits[start:start + PHONE_LENGTH]
        if is_plausible_number(window):
            return window
    return digits[-PHONE_LENGTH:]


class PhoneCollector:
    """Per-call phone sub-flow. Never holds more than ten candidate digits."""

    def __init__(self) -> None:
        self.state = PhoneState.IDLE
        self.buffer = ""
        self.candidate: Optional[str] = None

    @property
    def active(self) -> bool:
        return self.state in (PhoneState.COLLECTING, PhoneState.CONFIRMING)

    def reset(self) -> None:
        self.state = PhoneState.IDLE
        self.buffer = ""
        self.candidate = None

    def start(self, seed_digits: str = "") -> PhoneStep:
        """Begin collecting, optionally seeded with digits already spoken."""
        self.state = PhoneState.COLLECTING
        self.buffer = ""
        self.candidate = None
        if seed_digits:
            return self._accumulate(seed_digits)
        return PhoneStep(handled=True, line=ASK_PHONE)

    def handle(self, utterance: str) -> PhoneStep:
        """Feed one caller utterance into the active sub-flow."""
        if self.state == PhoneState.COLLECTING:
            digits = words_to_digits(utterance, phone_context=True)
            if not digits:
                return PhoneStep(handled=False)
            return self._accumulate(digits)
        if self.state == PhoneState.CONFIRMING:
            return self._confirm(utterance)
        return PhoneStep(handled=False)

    def _accumulate(self, digits: str) -> PhoneStep:
        minimum = MIN_FIRST_CHUNK if not self.buffer else MIN_CONTINUATION_CHUNK
        if len(digits) < minimum:
            logger.debug("Phone fragment too short (%d digits)", len(digits))
            return PhoneStep(handled=True, line=PHONE_TOO_SHORT)

        self.buffer += digits
        if len(self.buffer) < PHONE_LENGTH:
            return PhoneStep(handled=True, line=PHONE_CONTINUE)

        window = select_phone_window(self.buffer)
        if window is None or not is_plausible_number(window):
            logger.info("Discarding implausible phone candidate %s", redact_phone(self.buffer))
            self.buffer = ""
            return PhoneStep(handled=True, line=PHONE_RETRY)

        self.buffer = ""
        self.candidate = window
        self.state = PhoneState.CONFIRMING
        logger.info("Phone candidate %s awaiting confirmation", redact_phone(window))
        return PhoneStep(handled=True, line=confirmation_prompt(window))

    def _confirm(self, utterance: str) -> PhoneStep:
        digits = words_to_digits(utterance, phone_context=True)
        if self.candidate is None:
            logger.warning("Phone confirmation reached without a candidate, collecting again")
            self.start()
            if len(digits) >= MIN_FIRST_CHUNK:
                return self._accumulate(digits)
            return PhoneStep(handled=True, line=PHONE_RETRY)

        answer = classify_confirmation(utterance)

        if answer is Confirmation.AFFIRMATIVE and len(digits) < PHONE_LENGTH:
            number = self.candidate
            self.state = PhoneState.CONFIRMED
            self.candidate = None
            logger.info("Phone %s confirmed", redact_phone(number))
            return PhoneStep(handled=True, confirmed_number=number)

        if answer is Confirmation.NEGATIVE:
            logger.info("Phone candidate rejected by caller")
            self.start()
            if len(digits) >= MIN_FIRST_CHUNK:
                return self._accumulate(digits)
            return PhoneStep(handled=True, line=PHONE_RETRY)

        if len(digits) >= PHONE_LENGTH:
            self.start()
            return self._accumulate(digits)

        return PhoneStep(handled=True, line=confirmation_prompt(self.candidate))
