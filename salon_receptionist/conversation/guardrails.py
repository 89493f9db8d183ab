"""
Guardrails applied around the conversational fallback.

Four independent layers, each checking a different concern:
1. EscalationGuardrail   - caller asks for a person (checked before the model)
2. ReaskGuardrail        - model asks again for a field the draft already holds
3. HallucinationGuardrail - unverified claims about prices, offers or policies
4. PersonaGuardrail      - AI self-references and text formatting in speech

``sanitize_spoken`` is always applied to model output before it is voiced:
it strips the machine-readable action tag and rewrites ISO timestamps into
the way a receptionist would say them.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import Optional

from salon_receptionist.conversation.draft import BookingDraft, Slot
from salon_receptionist.conversation.speech import wants_human
from salon_receptionist.utils import format_date_for_speech, format_datetime_for_speech

logger = logging.getLogger(__name__)

ACTION_TAG_RE = re.compile(r"ACTION_JSON:\s*(\{.*\})", re.DOTALL)
_ISO_DATETIME_RE = re.compile(
    r"\b\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?"
)
_ISO_DATE_RE = re.compile(r"\b\d{4}-\d{2}-\d{2}\b")
_MARKDOWN_RE = re.compile(r"(\*\*|__|`+|^#+\s*|^\s*[-*]\s+)", re.MULTILINE)


@dataclass
class GuardrailResult:
    """Outcome of a single guardrail check."""
    passed: bool
    violation_type: Optional[str] = None
    message: Optional[str] = None
    severity: str = "warning"  # "warning" | "block" | "escalate"


def _speak_iso(match: re.Match, tz: tzinfo) -> str:
    raw = match.group(0).replace("Z", "+00:00")
    try:
        value = datetime.fromisoformat(raw)
    except ValueError:
        return match.group(0)
    if value.tzinfo is not None:
        value = value.astimezone(tz)
    return format_datetime_for_speech(value)


def _speak_iso_date(match: re.Match) -> str:
    try:
        return format_date_for_speech(date.fromisoformat(match.group(0)))
    except ValueError:
        return match.group(0)


def sanitize_spoken(text: str, tz: tzinfo) -> str:
    """Make model output safe to voice.

    Examples:
        >>> sanitize_spoken('Booked. ACTION_JSON: {"action": "book"}', tz)
        'Booked.'
    """
    spoken = ACTION_TAG_RE.sub("", text or "")
    spoken = _ISO_DATETIME_RE.sub(lambda m: _speak_iso(m, tz), spoken)
    spoken = _ISO_DATE_RE.sub(_speak_iso_date, spoken)
    spoken = _MARKDOWN_RE.sub("", spoken)
    return re.sub(r"\s+", " ", spoken).strip()


class EscalationGuardrail:
    """Detects callers who want to be put through to the salon."""

    FRUSTRATION_KEYWORDS = [
        "unacceptable", "ridiculous", "useless", "i already told you",
    ]

    def check_escalation_needed(self, user_message: str) -> GuardrailResult:
        if wants_human(user_message):
            logger.info("Caller asked for a person")
            return GuardrailResult(
                passed=False,
                violation_type="human_requested",
                message="Caller asked to speak with a person.",
                severity="escalate",
            )
        lower = user_message.lower()
        for keyword in self.FRUSTRATION_KEYWORDS:
            if keyword in lower:
                logger.info("Frustration keyword detected: '%s'", keyword)
                return GuardrailResult(
                    passed=False,
                    violation_type="caller_frustration",
                    message=f"Caller frustration detected: '{keyword}'.",
                    severity="escalate",
                )
        return GuardrailResult(passed=True)


class ReaskGuardrail:
    """Blocks responses that ask for something the draft already knows."""

    ASK_PATTERNS: dict[Slot, re.Pattern] = {
        Slot.SERVICE: re.compile(r"\b(?:what|which) (?:service|kind of (?:service|appointment))\b"),
        Slot.STYLIST: re.compile(r"\b(?:which|what|preferred) stylist\b|\bwho would you like\b"),
        Slot.DATETIME: re.compile(r"\bwhat (?:day|date)\b|\bwhen would you like\b|\bwhat day and time\b"),
        Slot.NAME: re.compile(r"\byour (?:full )?name\b"),
        Slot.PHONE: re.compile(r"\b(?:phone number|your number|reach you)\b"),
    }
    TIME_ASK_RE = re.compile(r"\bwhat time\b|\bwhich time\b|\bwhat hour\b|\bwhat time works\b")

    def check_reask(self, response_text: str, draft: BookingDraft) -> GuardrailResult:
        lower = response_text.lower()
        for slot, pattern in self.ASK_PATTERNS.items():
            if draft.is_filled(slot) and pattern.search(lower):
                return GuardrailResult(
                    passed=False,
                    violation_type="reask_known_field",
                    message=f"Response asks for known field '{slot.value}'.",
                    severity="block",
                )
        if draft.time is not None and self.TIME_ASK_RE.search(lower):
            return GuardrailResult(
                passed=False,
                violation_type="reask_known_field",
                message="Response asks for a time that is already known.",
                severity="block",
            )
        return GuardrailResult(passed=True)


class HallucinationGuardrail:
    """Detects potentially fabricated claims in agent responses."""

    FORBIDDEN_CLAIMS = [
        "guarantee", "we guarantee", "discount", "coupon", "promo",
        "free of charge", "on the house", "award-winning", "best in the city",
        "you're booked", "you are booked", "i've booked", "i have booked",
    ]
    PRICE_RE = re.compile(r"\$\s?\d|\b\d+ dollars\b")

    def check_response(self, response_text: str) -> GuardrailResult:
        lower = response_text.lower()
        for claim in self.FORBIDDEN_CLAIMS:
            if claim in lower:
                logger.warning("Hallucination detected: '%s'", claim)
                return GuardrailResult(
                    passed=False,
                    violation_type="potential_hallucination",
                    message=f"Response contains unverified claim: '{claim}'.",
                    severity="block",
                )
        if self.PRICE_RE.search(lower):
            logger.warning("Hallucination detected: quoted price")
            return GuardrailResult(
                passed=False,
                violation_type="potential_hallucination",
                message="Response quotes a price.",
                severity="block",
            )
        return GuardrailResult(passed=True)


class PersonaGuardrail:
    """Enforces consistent voice persona and prevents formatting leaks."""

    FORBIDDEN_PATTERNS = [
        "as an ai", "as a language model", "i'm just a computer",
        "i don't have feelings", "i'm a bot", "i am a bot",
    ]

    FORMATTING_VIOLATIONS = ["- ", "* ", "1. ", "## ", "**", "```", "{", "}"]

    def check_persona(self, response_text: str) -> GuardrailResult:
        lower = response_text.lower()
        for pattern in self.FORBIDDEN_PATTERNS:
            if pattern in lower:
                return GuardrailResult(
                    passed=False,
                    violation_type="persona_break",
                    message=f"Response breaks persona with: '{pattern}'.",
                    severity="block",
                )
        return GuardrailResult(passed=True)

    def check_formatting(self, response_text: str) -> GuardrailResult:
        for fmt in self.FORMATTING_VIOLATIONS:
            if fmt in response_text:
                return GuardrailResult(
                    passed=False,
                    violation_type="formatting_violation",
                    message=f"Voice response should not contain '{fmt}' formatting.",
                    severity="warning",
                )
        return GuardrailResult(passed=True)


class GuardrailPipeline:
    """Composes all guardrails into pre-model and post-model check pipelines."""

    def __init__(self) -> None:
        self.escalation = EscalationGuardrail()
        self.reask = ReaskGuardrail()
        self.hallucination = HallucinationGuardrail()
        self.persona = PersonaGuardrail()

    def check_user_input(self, text: str) -> list[GuardrailResult]:
        """Pre-model: check caller input for escalation triggers."""
        results = [self.escalation.check_escalation_needed(text)]
        return [r for r in results if not r.passed]

    def check_agent_response(self, text: str, draft: BookingDraft) -> list[GuardrailResult]:
        """Post-model: check a sanitized response before it is voiced."""
        results = [
            self.reask.check_reask(text, draft),
            self.hallucination.check_response(text),
            self.persona.check_persona(text),
            self.persona.check_formatting(text),
        ]
        return [r for r in results if not r.passed]
