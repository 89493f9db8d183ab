"""
Speech normalization and small classifiers for transcribed caller turns.

Carrier transcripts arrive with inconsistent casing, punctuation and
number rendering ("9:30 p.m.", "nine oh five", "cut & colour"). Every
matcher in the conversation layer runs on the output of ``clean_speech``
so that patterns only have to handle one canonical form.

The classifiers here are pure functions returning tagged values so they
can be tested in isolation from the turn orchestrator.
"""

import re
from enum import Enum
from typing import Optional

_APOSTROPHE_RE = re.compile(r"['’]")
_MERIDIEM_RE = re.compile(r"\b([ap])\s?\.?\s?m\b\.?", re.IGNORECASE)
_PUNCT_RE = re.compile(r"[^\w\s:]")
_STRAY_COLON_RE = re.compile(r"(?<!\d):|:(?!\d)")
_SPACES_RE = re.compile(r"\s+")


def clean_speech(text: Optional[str]) -> str:
    """Lower-case, fold am/pm spellings and strip punctuation.

    Colons are kept only between digits so clock times survive.

    Examples:
        >>> clean_speech("Next Tuesday, at 4:30 P.M.!")
        'next tuesday at 4:30 pm'
        >>> clean_speech("A cut & colour, that's it")
        'a cut and colour thats it'
    """
    t = str(text or "").lower()
    t = _APOSTROPHE_RE.sub("", t)
    t = _MERIDIEM_RE.sub(lambda m: f" {m.group(1)}m ", t)
    t = t.replace("&", " and ")
    t = _PUNCT_RE.sub(" ", t)
    t = _STRAY_COLON_RE.sub(" ", t)
    return _SPACES_RE.sub(" ", t).strip()


def tokenize(text: Optional[str]) -> list[str]:
    """Split a caller utterance into normalized tokens."""
    cleaned = clean_speech(text)
    return cleaned.split() if cleaned else []


def is_empty_utterance(text: Optional[str]) -> bool:
    """True when nothing usable was recognized."""
    return not clean_speech(text)


# ------------------------------------------------------------------ #
# Spoken digits
# ------------------------------------------------------------------ #

DIGIT_WORDS: dict[str, str] = {
    "zero": "0", "one": "1", "two": "2", "three": "3", "four": "4",
    "five": "5", "six": "6", "seven": "7", "eight": "8", "nine": "9",
}

# "oh" is zero in phone numbers but also an interjection
ZERO_WORDS: dict[str, str] = {"oh": "0", "o": "0"}

# Only digits when surrounded by other digits or inside a phone answer
HOMOPHONE_DIGITS: dict[str, str] = {"to": "2", "too": "2", "for": "4", "ate": "8"}

REPEATERS: dict[str, int] = {"double": 2, "triple": 3}


def _is_strict_digit(token: str) -> bool:
    return token.isdigit() or token in DIGIT_WORDS


def _neighbours(tokens: list[str], index: int) -> list[str]:
    return [tokens[i] for i in (index - 1, index + 1) if 0 <= i < len(tokens)]


def words_to_digits(text: Optional[str], phone_context: bool = False) -> str:
    """Collect the digits a caller spoke, in order.

    ``phone_context`` is set when the last question asked for a phone
    number; it lets the ambiguous homophones count without needing
    digit neighbours.

    Examples:
        >>> words_to_digits("nine oh five, five five five, one two three four")
        '9055551234'
        >>> words_to_digits("I want to book for Tuesday")
        ''
    """
    tokens = tokenize(text)
    digits: list[str] = []
    for i, tok in enumerate(tokens):
        if tok.isdigit():
            digits.append(tok)
        elif tok in DIGIT_WORDS:
            digits.append(DIGIT_WORDS[tok])
        elif tok in ZERO_WORDS:
            near = _neighbours(tokens, i)
            if phone_context or any(_is_strict_digit(n) for n in near):
                digits.append(ZERO_WORDS[tok])
        elif tok in HOMOPHONE_DIGITS:
            near = _neighbours(tokens, i)
            if phone_context or (near and all(_is_strict_digit(n) for n in near)):
                digits.append(HOMOPHONE_DIGITS[tok])
        elif tok in REPEATERS and i + 1 < len(tokens):
            nxt = tokens[i + 1]
            if nxt in DIGIT_WORDS or (nxt.isdigit() and len(nxt) == 1):
                digit = DIGIT_WORDS.get(nxt, nxt)
                digits.append(digit * (REPEATERS[tok] - 1))
    return "".join(digits)


# ------------------------------------------------------------------ #
# Yes / no
# ------------------------------------------------------------------ #


class Confirmation(str, Enum):
    """Classification of a reply to a yes/no question."""

    AFFIRMATIVE = "affirmative"
    NEGATIVE = "negative"
    UNCLEAR = "unclear"


_NEGATIVE_RE = re.compile(
    r"\b(?:no|nope|nah|negative|incorrect|wrong|cancel|dont|do not|"
    r"not right|not correct|thats not|not that)\b"
)
_BLOCKER_RE = re.compile(r"\bnot\b")
_AFFIRMATIVE_RE = re.compile(
    r"\b(?:yes|yeah|yea|yep|yup|ya|correct|confirm|confirmed|sure|okay|ok|"
    r"right|perfect|absolutely|definitely|exactly|sounds good|that works|"
    r"works for me|go ahead|please do)\b"
)


def classify_confirmation(text: Optional[str]) -> Confirmation:
    """Classify a yes/no answer.

    A reply containing both a yes-word and a no-word is UNCLEAR, never
    AFFIRMATIVE.
    """
    t = clean_speech(text)
    if not t:
        return Confirmation.UNCLEAR
    negative = bool(_NEGATIVE_RE.search(t))
    remainder = _NEGATIVE_RE.sub(" ", t)
    affirmative = bool(_AFFIRMATIVE_RE.search(remainder)) and not _BLOCKER_RE.search(t)
    if negative and affirmative:
        return Confirmation.UNCLEAR
    if negative:
        return Confirmation.NEGATIVE
    if affirmative:
        return Confirmation.AFFIRMATIVE
    return Confirmation.UNCLEAR


# ------------------------------------------------------------------ #
# Side questions and intents
# ------------------------------------------------------------------ #

_WHAT_DATE_PATTERNS = [
    re.compile(r"\bwhat(?:s| is)?\s+(?:the\s+)?(?:date|day)\b"),
    re.compile(r"\bwhich\s+(?:date|day)\b"),
    re.compile(r"\bwhat\s+(?:day|date)\s+(?:is|would|will)\s+that\b"),
    re.compile(r"\b(?:date|day)\s+again\b"),
]


def asks_what_date(text: Optional[str]) -> bool:
    """'What day is that?', 'which date?', 'what's the date again?'."""
    t = clean_speech(text)
    if not t:
        return False
    if any(p.search(t) for p in _WHAT_DATE_PATTERNS):
        return True
    return bool(re.search(r"\b(?:what|which|when)\b", t) and re.search(r"\b(?:date|weekday)\b", t))


_SLOT_NOUN_RE = re.compile(r"\b(?:times?|slots?|openings?|spots?|appointments)\b")
_FREE_RE = re.compile(r"\b(?:available|free|open|have|got|left)\b")
_QUESTION_RE = re.compile(r"\b(?:what|which|any|other|else|when)\b")


def asks_availability(text: Optional[str]) -> bool:
    """'What other times are available that day?', 'any openings?'."""
    t = clean_speech(text)
    if not t:
        return False
    if re.search(r"\bavailabilit(?:y|ies)\b", t):
        return True
    if re.search(r"\bwhen (?:are you|is \w+) (?:free|available)\b", t):
        return True
    return bool(_SLOT_NOUN_RE.search(t) and _FREE_RE.search(t) and _QUESTION_RE.search(t))


_HUMAN_RE = re.compile(
    r"\b(?:human|manager|front desk|desk|reception|receptionist|representative|"
    r"real person|someone|somebody|staff|person|talk to|speak to|speak with)\b"
)


def wants_human(text: Optional[str]) -> bool:
    """Caller asks to be put through to a person."""
    return bool(_HUMAN_RE.search(clean_speech(text)))


_FIELD_MENTIONS: list[tuple[str, re.Pattern]] = [
    ("phone", re.compile(r"\b(?:phone|number)\b")),
    ("name", re.compile(r"\bname\b")),
    ("stylist", re.compile(r"\b(?:stylist|hairdresser|someone else|different person)\b")),
    ("service", re.compile(r"\b(?:service|treatment)\b")),
    ("time", re.compile(r"\b(?:time|hour|later|earlier)\b")),
    ("date", re.compile(r"\b(?:day|date)\b")),
]


def mentioned_field(text: Optional[str]) -> Optional[str]:
    """Which booking field the caller wants to change, if they named one."""
    t = clean_speech(text)
    for field_name, pattern in _FIELD_MENTIONS:
        if pattern.search(t):
            return field_name
    return None
