"""Dynamic prompt construction for context-aware fallback instructions."""

from typing import Optional

from salon_receptionist.conversation.draft import BookingDraft
from salon_receptionist.utils import format_clock_for_speech, format_date_for_speech

# Earlier values of these fields may be repeated back; others are named only.
_SPEAKABLE_CORRECTIONS = ("service", "stylist", "name")


def _corrections(draft: BookingDraft) -> str:
    items = []
    for field_name, previous in draft.correction_history.items():
        if field_name in _SPEAKABLE_CORRECTIONS and previous:
            items.append(f"{field_name} (was {previous[-1]})")
        else:
            items.append(field_name)
    return ", ".join(items)


def build_draft_context(draft: BookingDraft, next_question: Optional[str]) -> str:
    """Summarize the known booking fields and the next thing to ask for."""
    known = {
        "service": draft.service,
        "stylist": draft.stylist,
        "day": format_date_for_speech(draft.date) if draft.date else None,
        "time": format_clock_for_speech(draft.time.hour, draft.time.minute) if draft.time else None,
        "name": draft.name,
        "phone": "on file" if draft.phone else None,
    }
    parts: list[str] = []
    collected = {k: v for k, v in known.items() if v}
    if collected:
        parts.append("Booking details already known (do not ask for these again):")
        for key, value in collected.items():
            parts.append(f"  {key}: {value}")

    corrected = _corrections(draft)
    if corrected:
        parts.append(f"Caller corrected: {corrected}. Use the new values only.")

    if next_question:
        parts.append(f'\nAnswer the caller briefly, then ask: "{next_question}"')
    else:
        parts.append("\nAll details are known. Answer briefly; the system will read back the booking.")
    return "\n".join(parts)
