"""Tests for the guardrails around the conversational fallback."""

from datetime import date

from salon_receptionist.conversation.date_resolver import ClockTime
from salon_receptionist.conversation.draft import DraftPatch
from salon_receptionist.conversation.guardrails import (
    EscalationGuardrail,
    HallucinationGuardrail,
    PersonaGuardrail,
    ReaskGuardrail,
    sanitize_spoken,
)


class TestSanitizeSpoken:
    def test_action_tag_removed(self, tz):
        text = 'Sounds good. ACTION_JSON: {"action": "book", "stylist": "Cosmo"}'
        assert sanitize_spoken(text, tz) == "Sounds good."

    def test_iso_timestamp_spoken(self, tz):
        text = "I can look at 2026-10-20T16:00:00-04:00 for you."
        assert sanitize_spoken(text, tz) == "I can look at Tuesday, October 20 at 4 PM for you."

    def test_utc_timestamp_converted(self, tz):
        assert sanitize_spoken("How about 2026-10-20T20:00:00Z?", tz) == (
            "How about Tuesday, October 20 at 4 PM?"
        )

    def test_iso_date_spoken(self, tz):
        assert sanitize_spoken("We're open 2026-10-20.", tz) == "We're open Tuesday, October 20."

    def test_markdown_stripped(self, tz):
        assert sanitize_spoken("**Sure**, we do `colour`.", tz) == "Sure, we do colour."

    def test_empty(self, tz):
        assert sanitize_spoken("", tz) == ""


class TestEscalationGuardrail:
    def setup_method(self):
        self.guard = EscalationGuardrail()

    def test_asks_for_person(self):
        result = self.guard.check_escalation_needed("Can I speak to someone at the front desk?")
        assert result.passed is False
        assert result.violation_type == "human_requested"
        assert result.severity == "escalate"

    def test_frustration(self):
        result = self.guard.check_escalation_needed("This is ridiculous")
        assert result.passed is False
        assert result.violation_type == "caller_frustration"

    def test_normal_request(self):
        assert self.guard.check_escalation_needed("a haircut on Friday please").passed is True


class TestReaskGuardrail:
    def setup_method(self):
        self.guard = ReaskGuardrail()

    def test_known_stylist_not_asked_again(self, draft):
        draft.apply(DraftPatch(stylist="Cosmo"))
        result = self.guard.check_reask("Which stylist would you like?", draft)
        assert result.passed is False
        assert result.severity == "block"

    def test_missing_field_may_be_asked(self, draft):
        assert self.guard.check_reask("Which stylist would you like?", draft).passed is True

    def test_known_time_not_asked_again(self, draft):
        draft.apply(DraftPatch(time=ClockTime(16, 0)))
        assert self.guard.check_reask("What time works for you?", draft).passed is False

    def test_known_phone(self, draft):
        draft.apply(DraftPatch(phone="9055551234"))
        assert self.guard.check_reask("What's a good phone number to reach you?", draft).passed is False

    def test_date_only_still_allows_time(self, draft):
        draft.apply(DraftPatch(date=date(2026, 10, 20)))
        assert self.guard.check_reask("What time works for you?", draft).passed is True


class TestHallucinationGuardrail:
    def setup_method(self):
        self.guard = HallucinationGuardrail()

    def test_booking_claim(self):
        result = self.guard.check_response("Great, you're booked for Tuesday!")
        assert result.passed is False
        assert result.violation_type == "potential_hallucination"

    def test_price(self):
        assert self.guard.check_response("A haircut is $45.").passed is False
        assert self.guard.check_response("That's about 60 dollars.").passed is False

    def test_discount(self):
        assert self.guard.check_response("We have a discount this week.").passed is False

    def test_plain_answer(self):
        assert self.guard.check_response("We do cuts and colour.").passed is True


class TestPersonaGuardrail:
    def setup_method(self):
        self.guard = PersonaGuardrail()

    def test_ai_self_reference(self):
        result = self.guard.check_persona("As an AI, I can't do that.")
        assert result.passed is False
        assert result.severity == "block"

    def test_formatting_is_a_warning(self):
        result = self.guard.check_formatting("- cuts\n- colour")
        assert result.passed is False
        assert result.severity == "warning"

    def test_clean_reply(self):
        assert self.guard.check_persona("Happy to help with that.").passed is True
        assert self.guard.check_formatting("Happy to help with that.").passed is True


class TestGuardrailPipeline:
    def test_user_input_escalation(self, guardrail_pipeline):
        violations = guardrail_pipeline.check_user_input("let me talk to a manager")
        assert len(violations) == 1
        assert violations[0].severity == "escalate"

    def test_clean_user_input(self, guardrail_pipeline):
        assert guardrail_pipeline.check_user_input("Tuesday at four") == []

    def test_agent_response_collects_all_violations(self, guardrail_pipeline, draft):
        draft.apply(DraftPatch(service="haircut"))
        violations = guardrail_pipeline.check_agent_response(
            "As an AI I guarantee it. What service would you like?", draft
        )
        types = {v.violation_type for v in violations}
        assert types == {"reask_known_field", "potential_hallucination", "persona_break"}

    def test_clean_agent_response(self, guardrail_pipeline, draft):
        assert guardrail_pipeline.check_agent_response("We do colour on weekdays.", draft) == []
