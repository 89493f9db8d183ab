"""
Per-call booking draft: the source of truth for collected booking fields.

Fields are filled in a fixed order (service, stylist, datetime, name,
phone). The absolute start time is never stored directly: it is derived
from the separately held date and time, so replacing one half never
fabricates the other.

Usage:
    draft = BookingDraft(tz=ZoneInfo("America/Toronto"))
    changed = draft.apply(DraftPatch(service="haircut", stylist="Cosmo"))
    slot = draft.next_missing_slot()
    if draft.is_complete:
        record = draft.to_record(call_id="CA123")
"""

import logging
from dataclasses import dataclass, fields
from datetime import date, datetime, tzinfo
from enum import Enum
from typing import Optional

from salon_receptionist.conversation.date_resolver import ClockTime, combine
from salon_receptionist.schemas.booking_schema import BookingRecord
from salon_receptionist.tools.services import match_service, match_stylist, service_duration

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 2


class Slot(str, Enum):
    """Booking fields in the order they are asked for."""

    SERVICE = "service"
    STYLIST = "stylist"
    DATETIME = "datetime"
    NAME = "name"
    PHONE = "phone"


@dataclass(frozen=True)
class SlotDefinition:
    """Schema for a single slot to collect."""

    slot: Slot
    display_name: str
    question: str


SLOT_DEFINITIONS: list[SlotDefinition] = [
    SlotDefinition(Slot.SERVICE, "service", "What service would you like to book?"),
    SlotDefinition(Slot.STYLIST, "stylist", "Which stylist would you like: {stylists}?"),
    SlotDefinition(Slot.DATETIME, "day and time", "What day and time work best for you?"),
    SlotDefinition(Slot.NAME, "name", "Can I get your name for the booking?"),
    SlotDefinition(Slot.PHONE, "phone number", "What's the best 10-digit phone number for the booking?"),
]

ASK_TIME = "What time works for you?"
ASK_DAY = "What day works best for you?"


def roster_phrase(stylists: tuple[str, ...]) -> str:
    """'Cosmo, Vince, or Cassidy'."""
    if len(stylists) == 1:
        return stylists[0]
    if len(stylists) == 2:
        return f"{stylists[0]} or {stylists[1]}"
    return ", ".join(stylists[:-1]) + f", or {stylists[-1]}"


@dataclass(frozen=True)
class DraftPatch:
    """Field values to merge into a draft. None means 'not mentioned'."""

    service: Optional[str] = None
    stylist: Optional[str] = None
    date: Optional[date] = None
    time: Optional[ClockTime] = None
    name: Optional[str] = None
    phone: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))


class BookingDraft:
    """Accumulates booking fields across the turns of one call."""

    FIELDS = ("service", "stylist", "date", "time", "name", "phone")

    def __init__(self, tz: tzinfo) -> None:
        self.tz = tz
        self.service: Optional[str] = None
        self.stylist: Optional[str] = None
        self.date: Optional[date] = None
        self.time: Optional[ClockTime] = None
        self.name: Optional[str] = None
        self.phone: Optional[str] = None
        self.correction_history: dict[str, list[str]] = {}

    @property
    def when(self) -> Optional[datetime]:
        """Absolute start time, present only when both date and time are known."""
        if self.date is None or self.time is None:
            return None
        return combine(self.date, self.time, self.tz)

    def apply(self, patch: DraftPatch) -> set[str]:
        """Merge non-empty values from a patch.

        Returns:
            Names of the fields whose value actually changed.
        """
        changed: set[str] = set()
        for name in self.FIELDS:
            value = getattr(patch, name)
            if value is None or value == "":
                continue
            current = getattr(self, name)
            if current == value:
                continue
            if current is not None:
                self.correction_history.setdefault(name, []).append(str(current))
            setattr(self, name, value)
            changed.add(name)
        if changed:
            logger.debug("Draft fields updated: %s", sorted(changed))
        return changed

    def set_datetime(self, when: datetime) -> set[str]:
        """Set both halves from an aware timestamp."""
        local = when.astimezone(self.tz)
        return self.apply(DraftPatch(date=local.date(), time=ClockTime(local.hour, local.minute)))

    def clear(self, name: str) -> None:
        if name == "datetime":
            self.date = None
            self.time = None
            return
        if name not in self.FIELDS:
            raise ValueError(f"Unknown draft field: {name}")
        setattr(self, name, None)

    def clear_date(self) -> None:
        self.date = None

    def clear_time(self) -> None:
        self.time = None

    def is_filled(self, slot: Slot) -> bool:
        if slot is Slot.DATETIME:
            return self.when is not None
        return bool(getattr(self, slot.value))

    def next_missing_slot(self) -> Optional[SlotDefinition]:
        """Get the next slot that hasn't been filled, in asking order."""
        for defn in SLOT_DEFINITIONS:
            if not self.is_filled(defn.slot):
                return defn
        return None

    def question_for(self, defn: SlotDefinition, stylists: tuple[str, ...]) -> str:
        """The prompt for a slot, narrowed to whichever datetime half is missing."""
        if defn.slot is Slot.DATETIME:
            if self.date is not None:
                return ASK_TIME
            if self.time is not None:
                return ASK_DAY
        return defn.question.format(stylists=roster_phrase(stylists))

    @property
    def is_complete(self) -> bool:
        return all(self.is_filled(defn.slot) for defn in SLOT_DEFINITIONS)

    def to_record(self, call_id: Optional[str] = None) -> BookingRecord:
        """Snapshot a complete draft as a booking record."""
        if not self.is_complete:
            missing = [d.display_name for d in SLOT_DEFINITIONS if not self.is_filled(d.slot)]
            raise ValueError(f"Draft is incomplete, missing: {', '.join(missing)}")
        return BookingRecord(
            service=self.service,
            stylist=self.stylist,
            start=self.when,
            duration_minutes=service_duration(self.service),
            name=self.name,
            phone=self.phone,
            call_id=call_id,
        )


@dataclass
class PendingBooking:
    """A complete draft snapshot awaiting the caller's yes."""

    record: BookingRecord
    created_at: datetime

    def is_expired(self, now: datetime, ttl_sec: float) -> bool:
        return (now - self.created_at).total_seconds() > ttl_sec


def reconcile_fallback_action(
    draft: BookingDraft,
    action: dict,
    now: datetime,
    stylists: tuple[str, ...],
) -> DraftPatch:
    """Turn a fallback model's booking action into a patch that never overrides the draft.

    Only fields the draft does not already hold are taken. The phone
    number is always ignored; it must come through the spoken
    confirmation flow. A proposed start time is accepted only if it is
    timezone-aware, in the future and agrees with the date already known.
    """
    patch: dict = {}

    if not draft.service and action.get("service"):
        patch["service"] = match_service(str(action["service"]))
    if not draft.stylist and action.get("stylist"):
        patch["stylist"] = match_stylist(str(action["stylist"]), stylists)
    if not draft.name and action.get("name"):
        name = str(action["name"]).strip().title()
        if len(name) >= MIN_NAME_LENGTH and not any(ch.isdigit() for ch in name):
            patch["name"] = name

    raw_start = action.get("start") or action.get("startISO")
    if raw_start and draft.when is None:
        try:
            start = datetime.fromisoformat(str(raw_start))
        except ValueError:
            start = None
        if start is not None and start.tzinfo is not None and start > now:
            local = start.astimezone(draft.tz)
            if draft.date is None or draft.date == local.date():
                if draft.date is None:
                    patch["date"] = local.date()
                if draft.time is None:
                    patch["time"] = ClockTime(local.hour, local.minute)
        else:
            logger.info("Ignoring fallback start time %r", raw_start)

    return DraftPatch(**{k: v for k, v in patch.items() if v is not None})
