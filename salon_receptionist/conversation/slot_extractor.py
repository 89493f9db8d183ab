"""
Deterministic slot extraction from a single caller utterance.

Pulls the stylist, service, caller name and any spoken digits out of one
turn. Date and time are handled separately by ``date_resolver`` because
they depend on the clock and the anchor date.

Name capture is conservative: a name is only taken from an explicit cue
("my name is ...", "call me ...") unless the assistant just asked for the
caller's name, in which case a short free-form answer is accepted too.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from salon_receptionist.conversation.date_resolver import DATE_WORD_RE
from salon_receptionist.conversation.speech import clean_speech, words_to_digits
from salon_receptionist.tools.services import get_valid_service_terms, match_service, match_stylist

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 2
MAX_NAME_WORDS = 3

_EXPLICIT_NAME_RE = re.compile(
    r"\b(?:my name is|my names|name is|names|call me|under the name|put it under)\s+"
    r"([a-z]+(?:\s+[a-z]+){0,4})"
)
_CONTEXT_NAME_RE = re.compile(
    r"^(?:(?:hi|hey|hello|yeah|yes|sure|ok|okay|um|uh)\s+)*"
    r"(?:this is|its|it is|im|i am)\s+([a-z]+(?:\s+[a-z]+){0,4})"
)
_LEADING_FILLER_RE = re.compile(r"^(?:(?:hi|hey|hello|yeah|yes|sure|ok|okay|um|uh|so|its)\s+)+")

# Words that end a captured name: "John calling about", "Maria and ..."
_NAME_STOP_WORDS = frozenset({
    "and", "calling", "for", "with", "at", "on", "please", "thanks", "thank",
    "here", "speaking", "again", "but", "i", "my", "the", "a", "an", "to",
})

_NOT_NAME_WORDS = frozenset({
    "yes", "yeah", "yep", "yup", "no", "nope", "nah", "ok", "okay", "sure", "correct",
    "right", "wrong", "looking", "wondering", "hoping", "trying", "going", "free",
    "available", "good", "fine", "not", "just", "sorry", "interested", "booking",
    "book", "appointment", "hair", "hi", "hey", "hello", "um", "uh", "what", "who",
    "is", "that", "phone", "number", "name", "time", "day", "date", "morning",
    "afternoon", "evening", "noon", "am", "pm", "stylist", "anyone", "anybody",
    "human", "person", "someone", "week",
})


@dataclass(frozen=True)
class SlotExtraction:
    """Slot values found in one utterance. Empty fields were not mentioned."""

    stylist: Optional[str] = None
    service: Optional[str] = None
    name: Optional[str] = None
    phone_digits: str = ""

    @property
    def is_empty(self) -> bool:
        return not (self.stylist or self.service or self.name or self.phone_digits)


def _is_name_word(word: str, roster: tuple[str, ...]) -> bool:
    if not word.isalpha() or word in _NOT_NAME_WORDS:
        return False
    if DATE_WORD_RE.fullmatch(word):
        return False
    if word in {s.lower() for s in roster}:
        return False
    return word not in get_valid_service_terms()


def _clean_name(candidate: str, roster: tuple[str, ...]) -> Optional[str]:
    words: list[str] = []
    for word in candidate.split():
        if word in _NAME_STOP_WORDS:
            break
        if not _is_name_word(word, roster):
            if not words:
                return None
            break
        words.append(word)
        if len(words) == MAX_NAME_WORDS:
            break
    name = " ".join(w.capitalize() for w in words)
    if len(name) < MIN_NAME_LENGTH:
        return None
    return name


def extract_name(text: str, expecting_name: bool = False, roster: tuple[str, ...] = ()) -> Optional[str]:
    """Extract the caller's name.

    Args:
        text: The caller utterance.
        expecting_name: True when the previous prompt asked for the name.
        roster: Stylist names, which are never taken as the caller's name.
    """
    t = clean_speech(text)
    if not t or any(ch.isdigit() for ch in t.split()[0]):
        return None

    m = _EXPLICIT_NAME_RE.search(t)
    if m:
        return _clean_name(m.group(1), roster)

    if not expecting_name:
        return None

    m = _CONTEXT_NAME_RE.search(t)
    if m:
        return _clean_name(m.group(1), roster)

    bare = _LEADING_FILLER_RE.sub("", t)
    if 1 <= len(bare.split()) <= MAX_NAME_WORDS and not any(ch.isdigit() for ch in bare):
        return _clean_name(bare, roster)
    return None


def extract_slots(
    text: str,
    roster: tuple[str, ...],
    expecting_name: bool = False,
    phone_context: bool = False,
) -> SlotExtraction:
    """Extract stylist, service, name and spoken digits from an utterance."""
    extraction = SlotExtraction(
        stylist=match_stylist(text, roster),
        service=match_service(text),
        name=extract_name(text, expecting_name=expecting_name, roster=roster),
        phone_digits=words_to_digits(text, phone_context=phone_context),
    )
    if not extraction.is_empty:
        logger.debug(
            "Extracted stylist=%s service=%s name=%s digits=%d",
            extraction.stylist,
            extraction.service,
            "yes" if extraction.name else "no",
            len(extraction.phone_digits),
        )
    return extraction
