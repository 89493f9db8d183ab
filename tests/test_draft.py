"""Tests for the booking draft, pending bookings and fallback reconciliation."""

from datetime import date, datetime, timedelta

import pytest

from salon_receptionist.conversation.date_resolver import ClockTime
from salon_receptionist.conversation.draft import (
    ASK_DAY,
    ASK_TIME,
    DraftPatch,
    PendingBooking,
    Slot,
    reconcile_fallback_action,
    roster_phrase,
)

ROSTER = ("Cosmo", "Vince", "Cassidy")


def _fill(draft):
    draft.apply(DraftPatch(
        service="haircut",
        stylist="Cosmo",
        date=date(2026, 10, 20),
        time=ClockTime(16, 0),
        name="Sam Lee",
        phone="9055551234",
    ))
    return draft


class TestSlotOrder:
    def test_service_first(self, draft):
        assert draft.next_missing_slot().slot == Slot.SERVICE

    def test_order_follows_definitions(self, draft):
        draft.apply(DraftPatch(service="haircut", stylist="Vince"))
        assert draft.next_missing_slot().slot == Slot.DATETIME

    def test_stylist_question_lists_roster(self, draft):
        draft.apply(DraftPatch(service="haircut"))
        question = draft.question_for(draft.next_missing_slot(), ROSTER)
        assert question == "Which stylist would you like: Cosmo, Vince, or Cassidy?"

    def test_datetime_question_narrows_to_time(self, draft):
        draft.apply(DraftPatch(service="haircut", stylist="Vince", date=date(2026, 10, 20)))
        assert draft.question_for(draft.next_missing_slot(), ROSTER) == ASK_TIME

    def test_datetime_question_narrows_to_day(self, draft):
        draft.apply(DraftPatch(service="haircut", stylist="Vince", time=ClockTime(14, 0)))
        assert draft.question_for(draft.next_missing_slot(), ROSTER) == ASK_DAY

    def test_roster_phrase(self):
        assert roster_phrase(("Cosmo",)) == "Cosmo"
        assert roster_phrase(("Cosmo", "Vince")) == "Cosmo or Vince"


class TestApply:
    def test_returns_changed_fields(self, draft):
        assert draft.apply(DraftPatch(service="haircut")) == {"service"}
        assert draft.apply(DraftPatch(service="haircut")) == set()

    def test_empty_patch(self, draft):
        assert DraftPatch().is_empty
        assert draft.apply(DraftPatch()) == set()

    def test_correction_history(self, draft):
        draft.apply(DraftPatch(stylist="Cosmo"))
        draft.apply(DraftPatch(stylist="Vince"))
        assert draft.correction_history["stylist"] == ["Cosmo"]

    def test_when_needs_both_halves(self, draft, tz):
        draft.apply(DraftPatch(date=date(2026, 10, 20)))
        assert draft.when is None
        draft.apply(DraftPatch(time=ClockTime(16, 0)))
        assert draft.when == datetime(2026, 10, 20, 16, 0, tzinfo=tz)

    def test_replacing_time_keeps_date(self, draft):
        draft.apply(DraftPatch(date=date(2026, 10, 20), time=ClockTime(16, 0)))
        draft.apply(DraftPatch(time=ClockTime(15, 0)))
        assert draft.date == date(2026, 10, 20)
        assert draft.when.hour == 15

    def test_clear_datetime(self, draft):
        draft.apply(DraftPatch(date=date(2026, 10, 20), time=ClockTime(16, 0)))
        draft.clear("datetime")
        assert draft.date is None and draft.time is None

    def test_clear_unknown_field(self, draft):
        with pytest.raises(ValueError, match="Unknown draft field"):
            draft.clear("address")

    def test_set_datetime_converts_timezone(self, draft):
        from zoneinfo import ZoneInfo

        draft.set_datetime(datetime(2026, 10, 20, 20, 0, tzinfo=ZoneInfo("UTC")))
        assert draft.time == ClockTime(16, 0)


class TestRecord:
    def test_incomplete_draft_cannot_snapshot(self, draft):
        draft.apply(DraftPatch(service="haircut"))
        with pytest.raises(ValueError, match="incomplete"):
            draft.to_record()

    def test_record_fields(self, draft):
        record = _fill(draft).to_record(call_id="CA1")
        assert record.duration_minutes == 45
        assert record.to_payload()["start"] == "2026-10-20T16:00:00-04:00"
        assert record.call_id == "CA1"

    def test_pending_expiry(self, draft, now):
        pending = PendingBooking(record=_fill(draft).to_record(), created_at=now)
        assert not pending.is_expired(now + timedelta(seconds=599), 600)
        assert pending.is_expired(now + timedelta(seconds=601), 600)


class TestReconcile:
    def test_fills_only_missing_fields(self, draft, now):
        draft.apply(DraftPatch(stylist="Cosmo"))
        patch = reconcile_fallback_action(
            draft, {"service": "colour", "stylist": "Vince"}, now, ROSTER
        )
        assert patch.service == "colour"
        assert patch.stylist is None

    def test_phone_never_accepted(self, draft, now):
        patch = reconcile_fallback_action(draft, {"phone": "9055551234"}, now, ROSTER)
        assert patch.phone is None
        assert patch.is_empty

    def test_future_aware_start_accepted(self, draft, now):
        patch = reconcile_fallback_action(
            draft, {"start": "2026-10-20T16:00:00-04:00"}, now, ROSTER
        )
        assert patch.date == date(2026, 10, 20)
        assert patch.time == ClockTime(16, 0)

    def test_naive_start_rejected(self, draft, now):
        patch = reconcile_fallback_action(draft, {"start": "2026-10-20T16:00:00"}, now, ROSTER)
        assert patch.is_empty

    def test_past_start_rejected(self, draft, now):
        patch = reconcile_fallback_action(
            draft, {"start": "2026-10-01T16:00:00-04:00"}, now, ROSTER
        )
        assert patch.is_empty

    def test_start_must_match_known_date(self, draft, now):
        draft.apply(DraftPatch(date=date(2026, 10, 21)))
        patch = reconcile_fallback_action(
            draft, {"start": "2026-10-20T16:00:00-04:00"}, now, ROSTER
        )
        assert patch.time is None

    def test_start_fills_missing_time_on_known_date(self, draft, now):
        draft.apply(DraftPatch(date=date(2026, 10, 20)))
        patch = reconcile_fallback_action(
            draft, {"start": "2026-10-20T16:00:00-04:00"}, now, ROSTER
        )
        assert patch.date is None
        assert patch.time == ClockTime(16, 0)

    def test_unknown_stylist_dropped(self, draft, now):
        patch = reconcile_fallback_action(draft, {"stylist": "Bob"}, now, ROSTER)
        assert patch.stylist is None
