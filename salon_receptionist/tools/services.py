"""Salon service catalog, stylist roster matching and durations."""

import logging
import re
from typing import Optional

from salon_receptionist.config import settings
from salon_receptionist.conversation.speech import clean_speech

logger = logging.getLogger(__name__)

SERVICE_CATALOG: dict[str, dict] = {
    "haircut": {
        "name": "Haircut",
        "description": "Wash, cut and style.",
        "duration_minutes": 45,
    },
    "colour": {
        "name": "Colour",
        "description": "Single-process colour, root touch-up or dye.",
        "duration_minutes": 90,
    },
    "cut and colour": {
        "name": "Cut and Colour",
        "description": "Full colour service followed by a cut and style.",
        "duration_minutes": 120,
    },
}

# Spoken phrasings mapped to canonical service ids. Matched longest first so
# "cut and colour" never resolves to "haircut" or "colour" alone.
SERVICE_ALIASES: dict[str, str] = {
    "cut and colour": "cut and colour", "cut and color": "cut and colour",
    "cut colour": "cut and colour", "cut color": "cut and colour",
    "colour and cut": "cut and colour", "color and cut": "cut and colour",
    "haircut and colour": "cut and colour", "haircut and color": "cut and colour",
    "haircut": "haircut", "hair cut": "haircut", "trim": "haircut", "cut": "haircut",
    "colour": "colour", "color": "colour", "dye": "colour", "highlights": "colour",
}

_ALIASES_BY_LENGTH = sorted(SERVICE_ALIASES.items(), key=lambda item: len(item[0]), reverse=True)


def get_valid_service_terms() -> list[str]:
    """Return all recognized service terms (catalog IDs + alias keys)."""
    return list(SERVICE_CATALOG.keys()) + list(SERVICE_ALIASES.keys())


def service_duration(service_id: Optional[str], default_minutes: Optional[int] = None) -> int:
    """Duration in minutes for a service.

    Unknown or missing services fall back to ``default_minutes``, then to the
    process-wide scheduling default.
    """
    if service_id and service_id in SERVICE_CATALOG:
        return SERVICE_CATALOG[service_id]["duration_minutes"]
    if default_minutes is not None:
        return default_minutes
    return settings.scheduling.default_duration_minutes


def match_service(query: str) -> Optional[str]:
    """Match an utterance to a service ID. Returns None if no match."""
    normalized = clean_speech(query)
    if not normalized:
        return None
    for alias, service_id in _ALIASES_BY_LENGTH:
        if re.search(rf"\b{re.escape(alias)}\b", normalized):
            return service_id
    return None


def match_stylist(query: str, roster: Optional[tuple[str, ...]] = None) -> Optional[str]:
    """Match an utterance to a stylist on the roster, returning the canonical name."""
    normalized = clean_speech(query)
    if not normalized:
        return None
    for stylist in roster or settings.business.stylists:
        if re.search(rf"\b{re.escape(stylist.lower())}\b", normalized):
            return stylist
    return None
