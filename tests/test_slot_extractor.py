"""Tests for service, stylist, name and digit extraction."""

import pytest

from salon_receptionist.conversation.slot_extractor import extract_name, extract_slots
from salon_receptionist.tools.services import (
    match_service,
    match_stylist,
    service_duration,
)

ROSTER = ("Cosmo", "Vince", "Cassidy")


class TestServiceMatching:
    @pytest.mark.parametrize("text,expected", [
        ("I need a haircut", "haircut"),
        ("just a trim", "haircut"),
        ("some highlights", "colour"),
        ("I want my hair colored", None),
        ("a cut and color please", "cut and colour"),
        ("cut & colour", "cut and colour"),
        ("can I get a color", "colour"),
    ])
    def test_match_service(self, text, expected):
        assert match_service(text) == expected

    def test_empty(self):
        assert match_service("") is None

    def test_durations(self):
        assert service_duration("haircut") == 45
        assert service_duration("cut and colour") == 120

    def test_unknown_service_uses_default_duration(self):
        assert service_duration(None) == 60

    def test_unknown_service_uses_given_default(self):
        assert service_duration(None, 30) == 30
        assert service_duration("haircut", 30) == 45


class TestStylistMatching:
    def test_match_case_insensitive(self):
        assert match_stylist("with VINCE please", ROSTER) == "Vince"

    def test_no_partial_words(self):
        assert match_stylist("cosmopolitan", ROSTER) is None

    def test_no_stylist(self):
        assert match_stylist("anyone is fine", ROSTER) is None


class TestExtractName:
    def test_explicit_cue(self):
        assert extract_name("Hi, my name is Sarah Jones") == "Sarah Jones"

    def test_call_me(self):
        assert extract_name("you can call me jo") == "Jo"

    def test_stops_at_stop_word(self):
        assert extract_name("my name is Maria and I want a cut") == "Maria"

    def test_bare_name_only_when_expected(self):
        assert extract_name("Sam Lee") is None
        assert extract_name("Sam Lee", expecting_name=True) == "Sam Lee"

    def test_this_is_when_expected(self):
        assert extract_name("yeah this is Priya", expecting_name=True) == "Priya"

    def test_rejects_non_names(self):
        assert extract_name("yes", expecting_name=True) is None
        assert extract_name("tomorrow", expecting_name=True) is None

    def test_stylist_is_not_caller_name(self):
        assert extract_name("Cosmo", expecting_name=True, roster=ROSTER) is None

    def test_service_is_not_a_name(self):
        assert extract_name("haircut", expecting_name=True) is None

    def test_digits_are_not_a_name(self):
        assert extract_name("905 555 1234", expecting_name=True) is None

    def test_long_answer_is_not_a_bare_name(self):
        assert extract_name("I was hoping for something later", expecting_name=True) is None


class TestExtractSlots:
    def test_service_and_stylist_together(self):
        result = extract_slots("I'd like a haircut with Cosmo", ROSTER)
        assert result.service == "haircut"
        assert result.stylist == "Cosmo"
        assert result.name is None

    def test_digits(self):
        result = extract_slots("it's 905 555 1234", ROSTER, phone_context=True)
        assert result.phone_digits == "9055551234"

    def test_empty(self):
        assert extract_slots("hmm", ROSTER).is_empty
