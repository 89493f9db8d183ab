"""Tests for phone number collection and spoken confirmation."""

from salon_receptionist.conversation.phone_flow import (
    ASK_PHONE,
    PHONE_CONTINUE,
    PHONE_RETRY,
    PHONE_TOO_SHORT,
    PhoneState,
    confirmation_prompt,
    is_plausible_number,
    select_phone_window,
)


class TestWindowSelection:
    def test_exact_ten(self):
        assert select_phone_window("9055551234") == "9055551234"

    def test_country_code_dropped(self):
        assert select_phone_window("19055551234") == "9055551234"

    def test_trailing_noise(self):
        assert select_phone_window("905555123499") == "9055551234"

    def test_too_short(self):
        assert select_phone_window("905555") is None

    def test_plausibility(self):
        assert is_plausible_number("9055551234")
        assert not is_plausible_number("1055551234")
        assert not is_plausible_number("9051551234")

    def test_prompt_groups_digits(self):
        assert confirmation_prompt("9055551234") == "Just to confirm, is your number 905, 555, 1234?"


class TestCollection:
    def test_start_asks(self, phone_collector):
        step = phone_collector.start()
        assert step.line == ASK_PHONE
        assert phone_collector.active

    def test_full_number_in_one_turn(self, phone_collector):
        phone_collector.start()
        step = phone_collector.handle("nine zero five five five five one two three four")
        assert phone_collector.candidate == "9055551234"
        assert phone_collector.state == PhoneState.CONFIRMING
        assert step.line == "Just to confirm, is your number 905, 555, 1234?"

    def test_number_in_chunks(self, phone_collector):
        phone_collector.start()
        assert phone_collector.handle("905").line == PHONE_CONTINUE
        assert phone_collector.handle("555").line == PHONE_CONTINUE
        step = phone_collector.handle("1234")
        assert step.line == confirmation_prompt("9055551234")

    def test_first_chunk_too_short(self, phone_collector):
        phone_collector.start()
        step = phone_collector.handle("nine")
        assert step.line == PHONE_TOO_SHORT
        assert phone_collector.buffer == ""

    def test_no_digits_not_handled(self, phone_collector):
        phone_collector.start()
        assert not phone_collector.handle("what was the question").handled

    def test_implausible_number_asks_again(self, phone_collector):
        phone_collector.start()
        step = phone_collector.handle("111 111 1111")
        assert step.line == PHONE_RETRY
        assert phone_collector.state == PhoneState.COLLECTING

    def test_seeded_start(self, phone_collector):
        step = phone_collector.start("9055551234")
        assert step.line == confirmation_prompt("9055551234")

    def test_idle_ignores_input(self, phone_collector):
        assert not phone_collector.handle("905 555 1234").handled


class TestConfirmation:
    def _confirming(self, collector):
        collector.start()
        collector.handle("nine zero five five five five one two three four")
        return collector

    def test_yes_confirms(self, phone_collector):
        self._confirming(phone_collector)
        step = phone_collector.handle("yes")
        assert step.confirmed_number == "9055551234"
        assert phone_collector.state == PhoneState.CONFIRMED
        assert not phone_collector.active

    def test_no_discards_and_starts_over(self, phone_collector):
        self._confirming(phone_collector)
        step = phone_collector.handle("no")
        assert step.line == PHONE_RETRY
        assert step.confirmed_number is None
        assert phone_collector.candidate is None
        assert phone_collector.buffer == ""
        assert phone_collector.state == PhoneState.COLLECTING

    def test_no_with_new_number(self, phone_collector):
        self._confirming(phone_collector)
        step = phone_collector.handle("no it's 416 555 0000")
        assert phone_collector.candidate == "4165550000"
        assert step.line == confirmation_prompt("4165550000")

    def test_new_number_replaces_candidate(self, phone_collector):
        self._confirming(phone_collector)
        phone_collector.handle("647 555 9876")
        assert phone_collector.candidate == "6475559876"

    def test_unclear_reprompts(self, phone_collector):
        self._confirming(phone_collector)
        step = phone_collector.handle("hmm")
        assert step.line == confirmation_prompt("9055551234")
        assert phone_collector.state == PhoneState.CONFIRMING

    def test_missing_candidate_collects_again(self, phone_collector):
        self._confirming(phone_collector)
        phone_collector.candidate = None
        step = phone_collector.handle("yes")
        assert step.line == PHONE_RETRY
        assert step.confirmed_number is None
        assert phone_collector.state == PhoneState.COLLECTING

    def test_missing_candidate_keeps_new_digits(self, phone_collector):
        self._confirming(phone_collector)
        phone_collector.candidate = None
        step = phone_collector.handle("416 555 0000")
        assert phone_collector.candidate == "4165550000"
        assert step.line == confirmation_prompt("4165550000")
