"""
Deterministic resolution of spoken day/time references.

Callers say "next Tuesday at 4", "tomorrow around noon", "October 20th".
This module turns those into timezone-aware timestamps in the salon's
business timezone without asking the language model to do calendar math.

Every public function is pure in its inputs (utterance, ``now``/``today``,
optional anchor date), so resolving the same utterance twice with the same
clock and anchor always yields the same result.

Priority for the date half:
    1. bare "next week" (needs an anchor date, otherwise ambiguous)
    2. today / tomorrow / day after tomorrow
    3. weekday names, with "this"/"next" handling and anchor advancing
    4. explicit calendar dates parsed with python-dateutil

Usage:
    result = resolve_datetime("next Tuesday at 4", now)
    if result.is_full:
        draft.set_datetime(result.when)
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from enum import Enum
from typing import Optional

from dateutil import parser as dtparser

from salon_receptionist.conversation.speech import clean_speech, words_to_digits

logger = logging.getLogger(__name__)


class ResolutionKind(str, Enum):
    """Outcome tag for a resolution attempt."""

    RESOLVED = "resolved"
    AMBIGUOUS = "ambiguous"
    NONE = "none"


REASON_NEXT_WEEK_WITHOUT_ANCHOR = "next_week_without_anchor"
REASON_IN_PAST = "in_past"


@dataclass(frozen=True)
class ClockTime:
    """A wall-clock time of day in the business timezone."""

    hour: int
    minute: int = 0

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


@dataclass(frozen=True)
class DateResolution:
    """Result of resolving only the date half of an utterance."""

    kind: ResolutionKind
    date: Optional[date] = None
    from_weekday: bool = False
    reason: str = ""


@dataclass(frozen=True)
class DateTimeResolution:
    """Result of resolving an utterance into a date, a time, or both."""

    kind: ResolutionKind
    date: Optional[date] = None
    time: Optional[ClockTime] = None
    when: Optional[datetime] = None
    reason: str = ""

    @property
    def is_full(self) -> bool:
        return self.when is not None

    @property
    def has_date(self) -> bool:
        return self.date is not None

    @property
    def has_time(self) -> bool:
        return self.time is not None


_NOTHING = DateTimeResolution(kind=ResolutionKind.NONE)


# ------------------------------------------------------------------ #
# Weekdays and relative days
# ------------------------------------------------------------------ #

# Python weekday numbering: Monday=0 ... Sunday=6
WEEKDAY_ALIASES: list[tuple[int, re.Pattern]] = [
    (0, re.compile(r"\b(?:mon|monday)\b")),
    (1, re.compile(r"\b(?:tue|tues|tuesday)\b")),
    (2, re.compile(r"\b(?:wed|weds|wednesday)\b")),
    (3, re.compile(r"\b(?:thu|thur|thurs|thursday)\b")),
    (4, re.compile(r"\b(?:fri|friday)\b")),
    (5, re.compile(r"\b(?:sat|saturday)\b")),
    (6, re.compile(r"\b(?:sun|sunday)\b")),
]

_FORWARD_RE = re.compile(r"\b(?:next|following|week after|after that|one after)\b")
_NEXT_WEEK_RE = re.compile(r"\b(?:next week|following week|week after)\b")
_THIS_RE = re.compile(r"\b(?:this|coming)\b")

DATE_WORD_RE = re.compile(
    r"\b(?:mon(?:day)?|tue(?:s|sday)?|wed(?:nesday)?|thu(?:rs|rsday)?|fri(?:day)?|"
    r"sat(?:urday)?|sun(?:day)?|today|tonight|tomorrow|january|february|march|april|"
    r"june|july|august|september|october|november|december|next|this|coming|week)\b"
)


def detect_weekday(text: str) -> Optional[int]:
    """Return the weekday named in the utterance (Monday=0), if any."""
    t = clean_speech(text)
    for weekday, pattern in WEEKDAY_ALIASES:
        if pattern.search(t):
            return weekday
    return None


def has_forward_weekday_intent(text: str) -> bool:
    """'next Tuesday', 'the following Friday', 'the Tuesday after that'."""
    t = clean_speech(text)
    return detect_weekday(t) is not None and bool(_FORWARD_RE.search(t))


def has_next_week_only_intent(text: str) -> bool:
    """'next week' with no weekday named."""
    t = clean_speech(text)
    return detect_weekday(t) is None and bool(_NEXT_WEEK_RE.search(t))


def has_forward_intent(text: str) -> bool:
    """Whether the caller is moving a previously discussed date forward."""
    return has_forward_weekday_intent(text) or has_next_week_only_intent(text)


def resolve_relative_day(text: str, today: date) -> Optional[date]:
    """today / tonight / tomorrow / day after tomorrow."""
    t = clean_speech(text)
    if re.search(r"\bday after tomorrow\b", t):
        return today + timedelta(days=2)
    if re.search(r"\btomorrow\b", t):
        return today + timedelta(days=1)
    if re.search(r"\b(?:today|tonight)\b", t):
        return today
    return None


def resolve_upcoming_weekday(
    text: str, today: date, anchor: Optional[date] = None
) -> Optional[date]:
    """Resolve a weekday name to its next occurrence.

    The nearest occurrence is strictly after today unless the caller says
    "this"/"coming" and the weekday is today. Forward intent ("next") adds
    one week to the nearest occurrence. With an anchor date the result is
    pushed week by week until it falls after the anchor, so "next Tuesday"
    while a Tuesday is already under discussion lands on the one after it.
    """
    t = clean_speech(text)
    weekday = detect_weekday(t)
    if weekday is None:
        return None

    days_ahead = (weekday - today.weekday()) % 7
    if days_ahead == 0 and not _THIS_RE.search(t):
        days_ahead = 7
    candidate = today + timedelta(days=days_ahead)

    if _FORWARD_RE.search(t):
        candidate += timedelta(days=7)
    if anchor is not None:
        while candidate <= anchor:
            candidate += timedelta(days=7)
    return candidate


# ------------------------------------------------------------------ #
# Explicit calendar dates (dateutil fallback)
# ------------------------------------------------------------------ #

_MONTHS = (
    r"(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|"
    r"aug(?:ust)?|sep(?:t|tember)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)"
)
_ORD = r"(?:st|nd|rd|th)?"
_MONTH_DAY_RE = re.compile(rf"\b{_MONTHS}\s+(?:the\s+)?\d{{1,2}}{_ORD}(?:\s+\d{{4}})?\b")
_DAY_MONTH_RE = re.compile(rf"\b(?:the\s+)?\d{{1,2}}{_ORD}\s+(?:of\s+)?{_MONTHS}(?:\s+\d{{4}})?\b")
_ORDINAL_DAY_RE = re.compile(r"\bthe\s+\d{1,2}(?:st|nd|rd|th)\b")
_NUMERIC_DATE_RE = re.compile(r"\b\d{4}-\d{1,2}-\d{1,2}\b|\b\d{1,2}/\d{1,2}(?:/\d{2,4})?\b")

# Two defaults that differ in every component reveal which ones were spoken
_DEFAULT_A = datetime(1996, 1, 1)
_DEFAULT_B = datetime(2004, 12, 28)


def _find_date_phrase(text: str) -> Optional[str]:
    raw = str(text or "").lower()
    m = _NUMERIC_DATE_RE.search(raw)
    if m:
        return m.group(0)
    t = clean_speech(text)
    for pattern in (_MONTH_DAY_RE, _DAY_MONTH_RE, _ORDINAL_DAY_RE):
        m = pattern.search(t)
        if m:
            return re.sub(r"\b(?:the|of)\b", " ", m.group(0)).strip()
    return None


def parse_calendar_date(text: str, today: date) -> Optional[date]:
    """Parse an explicit calendar date, rolling year-less past dates forward.

    A month and day already past this year move to next year; a bare
    day-of-month already past moves to the next month that has that day.
    A fully specified date in the past is rejected.
    """
    phrase = _find_date_phrase(text)
    if not phrase:
        return None
    try:
        parsed_a = dtparser.parse(phrase, default=_DEFAULT_A)
        parsed_b = dtparser.parse(phrase, default=_DEFAULT_B)
    except (ValueError, OverflowError):
        logger.debug("Unparseable date phrase: %r", phrase)
        return None

    year_given = parsed_a.year == parsed_b.year
    month_given = parsed_a.month == parsed_b.month
    day_given = parsed_a.day == parsed_b.day
    if not day_given:
        return None

    if month_given:
        year = parsed_a.year if year_given else today.year
        try:
            resolved = date(year, parsed_a.month, parsed_a.day)
            if not year_given and resolved < today:
                resolved = date(year + 1, parsed_a.month, parsed_a.day)
        except ValueError:
            return None
    else:
        resolved = None
        month_start = today.replace(day=1)
        for _ in range(13):
            try:
                candidate = month_start.replace(day=parsed_a.day)
            except ValueError:
                candidate = None
            if candidate is not None and candidate >= today:
                resolved = candidate
                break
            month_start = (month_start + timedelta(days=32)).replace(day=1)
        if resolved is None:
            return None

    if resolved < today:
        return None
    return resolved


def resolve_date(text: str, today: date, anchor: Optional[date] = None) -> DateResolution:
    """Resolve the date half of an utterance in priority order."""
    t = clean_speech(text)
    if not t:
        return DateResolution(kind=ResolutionKind.NONE)

    if has_next_week_only_intent(t):
        if anchor is None:
            return DateResolution(
                kind=ResolutionKind.AMBIGUOUS, reason=REASON_NEXT_WEEK_WITHOUT_ANCHOR
            )
        return DateResolution(kind=ResolutionKind.RESOLVED, date=anchor + timedelta(days=7))

    relative = resolve_relative_day(t, today)
    if relative is not None:
        return DateResolution(kind=ResolutionKind.RESOLVED, date=relative)

    weekday_date = resolve_upcoming_weekday(t, today, anchor)
    if weekday_date is not None:
        return DateResolution(kind=ResolutionKind.RESOLVED, date=weekday_date, from_weekday=True)

    explicit = parse_calendar_date(text, today)
    if explicit is not None:
        return DateResolution(kind=ResolutionKind.RESOLVED, date=explicit)

    return DateResolution(kind=ResolutionKind.NONE)


# ------------------------------------------------------------------ #
# Time of day
# ------------------------------------------------------------------ #

HOUR_WORDS: dict[str, str] = {
    "one": "1", "two": "2", "three": "3", "four": "4", "five": "5", "six": "6",
    "seven": "7", "eight": "8", "nine": "9", "ten": "10", "eleven": "11", "twelve": "12",
}
MINUTE_WORDS: list[tuple[str, str]] = [
    ("forty five", "45"), ("fifteen", "15"), ("thirty", "30"),
]

_YEAR_RE = re.compile(r"\b(?:19|20)\d{2}\b")
_LONG_NUMBER_RE = re.compile(r"\d{3,}")

_CLOCK_RE = re.compile(r"\b(\d{1,2}):(\d{2})\s*(am|pm)?\b")
_HALF_PAST_RE = re.compile(r"\bhalf past (\d{1,2})\b")
_QUARTER_PAST_RE = re.compile(r"\bquarter past (\d{1,2})\b")
_QUARTER_TO_RE = re.compile(r"\bquarter to (\d{1,2})\b")
_SPOKEN_MINUTES_RE = re.compile(r"\b(\d{1,2}) (15|30|45)\s*(am|pm)?\b")
_MERIDIEM_HOUR_RE = re.compile(r"\b(\d{1,2})\s*(am|pm)\b")
_OCLOCK_RE = re.compile(r"\b(\d{1,2})\s*(?:oclock|o clock)\b")
_PREPOSITION_HOUR_RE = re.compile(
    r"\b(?:at|around|about|by|for|after|before|say)\s+(\d{1,2})\b"
    r"(?!\s*(?:st|nd|rd|th|of|days?|weeks?|minutes?|people|hours?|months?)\b)"
)

_BARE_HOUR_FILLERS = frozenset({
    "at", "around", "about", "for", "please", "pls", "ok", "okay", "works", "work",
    "that", "sounds", "good", "fine", "is", "would", "be", "great", "yes", "yeah",
    "yep", "yup", "ya", "um", "uh", "thanks", "thank", "you", "maybe", "how", "what",
    "lets", "say", "then", "perfect", "best", "me", "for", "oclock",
})


def _meridiem_hint(t: str) -> Optional[str]:
    if re.search(r"\b(?:in the )?morning\b", t):
        return "am"
    if re.search(r"\b(?:afternoon|evening|tonight)\b", t):
        return "pm"
    return None


def _to_clock(
    hour: int, minute: int, meridiem: Optional[str], pm_default_max: int
) -> Optional[ClockTime]:
    if not 0 <= minute <= 59:
        return None
    if meridiem is not None:
        if not 1 <= hour <= 12:
            return None
        if meridiem == "pm" and hour != 12:
            hour += 12
        elif meridiem == "am" and hour == 12:
            hour = 0
    elif 1 <= hour <= pm_default_max:
        hour += 12
    if not 0 <= hour <= 23:
        return None
    return ClockTime(hour=hour, minute=minute)


def _words_to_numbers(t: str) -> str:
    for words, digits in MINUTE_WORDS:
        t = re.sub(rf"\b{words}\b", digits, t)
    return " ".join(HOUR_WORDS.get(tok, tok) for tok in t.split())


def extract_time(text: str, pm_default_max: int = 8) -> Optional[ClockTime]:
    """Extract a time of day from an utterance.

    A bare hour from 1 to ``pm_default_max`` with no am/pm is read as PM,
    which suits salon hours. Utterances that look like a spoken phone
    number never produce a time.
    """
    t = clean_speech(text)
    if not t:
        return None
    if re.search(r"\bnoon\b|\bmidday\b", t):
        return ClockTime(12, 0)
    if re.search(r"\bmidnight\b", t):
        return ClockTime(0, 0)

    without_year = _YEAR_RE.sub(" ", t)
    if _LONG_NUMBER_RE.search(without_year) or len(words_to_digits(without_year)) >= 7:
        return None

    hint = _meridiem_hint(t)
    n = _words_to_numbers(t)

    m = _CLOCK_RE.search(n)
    if m:
        hour, minute = int(m.group(1)), int(m.group(2))
        if hour > 12 and not m.group(3):
            return _to_clock(hour, minute, None, 0)
        return _to_clock(hour, minute, m.group(3) or hint, pm_default_max)

    for pattern, minute, offset in (
        (_HALF_PAST_RE, 30, 0),
        (_QUARTER_PAST_RE, 15, 0),
        (_QUARTER_TO_RE, 45, -1),
    ):
        m = pattern.search(n)
        if m:
            hour = int(m.group(1)) + offset
            if hour == 0:
                hour = 12
            return _to_clock(hour, minute, hint, pm_default_max)

    m = _SPOKEN_MINUTES_RE.search(n)
    if m and 1 <= int(m.group(1)) <= 12:
        return _to_clock(int(m.group(1)), int(m.group(2)), m.group(3) or hint, pm_default_max)

    m = _MERIDIEM_HOUR_RE.search(n)
    if m:
        return _to_clock(int(m.group(1)), 0, m.group(2), pm_default_max)

    for pattern in (_OCLOCK_RE, _PREPOSITION_HOUR_RE):
        m = pattern.search(n)
        if m:
            return _to_clock(int(m.group(1)), 0, hint, pm_default_max)

    tokens = n.split()
    numbers = [tok for tok in tokens if tok.isdigit()]
    if len(numbers) == 1 and 1 <= int(numbers[0]) <= 12 and not DATE_WORD_RE.search(t):
        leftovers = [tok for tok in tokens if tok != numbers[0]]
        if all(tok in _BARE_HOUR_FILLERS or tok in ("am", "pm") for tok in leftovers):
            return _to_clock(int(numbers[0]), 0, hint, pm_default_max)

    return None


# ------------------------------------------------------------------ #
# Combined resolution
# ------------------------------------------------------------------ #


def combine(day: date, clock: ClockTime, tz: tzinfo) -> datetime:
    """Build an aware timestamp from a date and a wall-clock time."""
    return datetime(day.year, day.month, day.day, clock.hour, clock.minute, tzinfo=tz)


def resolve_datetime(
    text: str,
    now: datetime,
    anchor: Optional[date] = None,
    pm_default_max: int = 8,
) -> DateTimeResolution:
    """Resolve an utterance into a full timestamp or a date/time half.

    Args:
        text: The caller utterance.
        now: Current time, timezone-aware in the business timezone.
        anchor: Date already under discussion, used for "next Tuesday"
            and "next week" corrections.
        pm_default_max: Bare hours 1..N without am/pm are read as PM.

    Returns:
        A DateTimeResolution. Timestamps earlier than ``now`` are never
        returned: a bare weekday rolls forward a week, anything else comes
        back as NONE with reason ``in_past``.
    """
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")

    today = now.date()
    date_res = resolve_date(text, today, anchor)
    clock = extract_time(text, pm_default_max)

    if date_res.kind is ResolutionKind.AMBIGUOUS:
        return DateTimeResolution(kind=ResolutionKind.AMBIGUOUS, time=clock, reason=date_res.reason)

    if date_res.date is not None and clock is not None:
        day = date_res.date
        when = combine(day, clock, now.tzinfo)
        if when < now and date_res.from_weekday:
            day = day + timedelta(days=7)
            when = combine(day, clock, now.tzinfo)
        if when < now:
            return DateTimeResolution(kind=ResolutionKind.NONE, reason=REASON_IN_PAST)
        return DateTimeResolution(kind=ResolutionKind.RESOLVED, date=day, time=clock, when=when)

    if date_res.date is not None:
        return DateTimeResolution(kind=ResolutionKind.RESOLVED, date=date_res.date)

    if clock is not None:
        return DateTimeResolution(kind=ResolutionKind.RESOLVED, time=clock)

    return _NOTHING
