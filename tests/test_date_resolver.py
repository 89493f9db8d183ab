"""Tests for deterministic day/time resolution."""

from datetime import date, datetime

import pytest

from salon_receptionist.conversation.date_resolver import (
    REASON_IN_PAST,
    REASON_NEXT_WEEK_WITHOUT_ANCHOR,
    ClockTime,
    ResolutionKind,
    combine,
    detect_weekday,
    extract_time,
    has_forward_intent,
    parse_calendar_date,
    resolve_date,
    resolve_datetime,
    resolve_relative_day,
    resolve_upcoming_weekday,
)

TODAY = date(2026, 10, 7)  # Wednesday


class TestWeekdays:
    def test_detect_weekday(self):
        assert detect_weekday("see you Thurs") == 3
        assert detect_weekday("tomorrow") is None

    def test_plain_weekday_is_nearest_future(self):
        assert resolve_upcoming_weekday("tuesday", TODAY) == date(2026, 10, 13)

    def test_same_weekday_means_next_week(self):
        assert resolve_upcoming_weekday("wednesday", TODAY) == date(2026, 10, 14)

    def test_this_weekday_can_be_today(self):
        assert resolve_upcoming_weekday("this wednesday", TODAY) == TODAY

    def test_next_adds_a_week(self):
        assert resolve_upcoming_weekday("next tuesday", TODAY) == date(2026, 10, 20)

    def test_anchor_pushes_past_discussed_date(self):
        anchor = date(2026, 10, 20)
        assert resolve_upcoming_weekday("next tuesday", TODAY, anchor) == date(2026, 10, 27)

    def test_forward_intent(self):
        assert has_forward_intent("the following friday")
        assert has_forward_intent("next week")
        assert not has_forward_intent("friday")


class TestRelativeDays:
    def test_today(self):
        assert resolve_relative_day("later today", TODAY) == TODAY

    def test_tomorrow(self):
        assert resolve_relative_day("tomorrow works", TODAY) == date(2026, 10, 8)

    def test_day_after_tomorrow(self):
        assert resolve_relative_day("the day after tomorrow", TODAY) == date(2026, 10, 9)


class TestCalendarDates:
    def test_month_and_day(self):
        assert parse_calendar_date("October 20th", TODAY) == date(2026, 10, 20)

    def test_past_month_day_rolls_to_next_year(self):
        assert parse_calendar_date("March 3", TODAY) == date(2027, 3, 3)

    def test_bare_ordinal_rolls_to_next_month(self):
        assert parse_calendar_date("the 5th", TODAY) == date(2026, 11, 5)

    def test_bare_ordinal_later_this_month(self):
        assert parse_calendar_date("the 21st", TODAY) == date(2026, 10, 21)

    def test_explicit_past_date_rejected(self):
        assert parse_calendar_date("2025-01-15", TODAY) is None

    def test_iso_date(self):
        assert parse_calendar_date("2026-11-02", TODAY) == date(2026, 11, 2)

    def test_no_date(self):
        assert parse_calendar_date("a haircut", TODAY) is None


class TestResolveDate:
    def test_next_week_without_anchor_is_ambiguous(self):
        result = resolve_date("next week", TODAY)
        assert result.kind == ResolutionKind.AMBIGUOUS
        assert result.reason == REASON_NEXT_WEEK_WITHOUT_ANCHOR

    def test_next_week_with_anchor(self):
        result = resolve_date("next week", TODAY, anchor=date(2026, 10, 13))
        assert result.date == date(2026, 10, 20)

    def test_weekday_flagged(self):
        result = resolve_date("friday", TODAY)
        assert result.from_weekday
        assert result.date == date(2026, 10, 9)

    def test_nothing(self):
        assert resolve_date("hello", TODAY).kind == ResolutionKind.NONE


class TestExtractTime:
    @pytest.mark.parametrize("text,expected", [
        ("4:30", ClockTime(16, 30)),
        ("10:30 am", ClockTime(10, 30)),
        ("half past 2", ClockTime(14, 30)),
        ("quarter to 3", ClockTime(14, 45)),
        ("three thirty", ClockTime(15, 30)),
        ("noon", ClockTime(12, 0)),
        ("5 pm", ClockTime(17, 0)),
        ("around 3", ClockTime(15, 0)),
        ("at 11", ClockTime(11, 0)),
        ("9", ClockTime(9, 0)),
        ("at 7 in the morning", ClockTime(7, 0)),
        ("14:00", ClockTime(14, 0)),
    ])
    def test_times(self, text, expected):
        assert extract_time(text) == expected

    def test_bare_hour_pm_default_is_configurable(self):
        assert extract_time("at 4", pm_default_max=0) == ClockTime(4, 0)

    def test_phone_number_is_not_a_time(self):
        assert extract_time("905 555 1234") is None
        assert extract_time("nine oh five five five five one two three four") is None

    def test_year_in_date_is_not_a_phone_number(self):
        assert extract_time("October 20 2026 at 4 pm") == ClockTime(16, 0)

    def test_no_time(self):
        assert extract_time("a haircut with Vince") is None


class TestResolveDatetime:
    def test_next_tuesday_two_weeks_out(self, now, tz):
        result = resolve_datetime("next Tuesday at 4", now)
        assert result.kind == ResolutionKind.RESOLVED
        assert result.when == datetime(2026, 10, 20, 16, 0, tzinfo=tz)
        assert (result.date - now.date()).days == 13

    def test_same_input_same_output(self, now):
        first = resolve_datetime("next Tuesday at 4", now)
        second = resolve_datetime("next Tuesday at 4", now)
        assert first == second

    def test_tomorrow_morning(self, now, tz):
        result = resolve_datetime("tomorrow at 10am", now)
        assert result.when == datetime(2026, 10, 8, 10, 0, tzinfo=tz)

    def test_past_time_today_is_rejected(self, now):
        result = resolve_datetime("today at 9", now)
        assert result.kind == ResolutionKind.NONE
        assert result.reason == REASON_IN_PAST
        assert result.when is None

    def test_past_weekday_time_rolls_a_week(self, now, tz):
        result = resolve_datetime("this Wednesday at 9", now)
        assert result.when == datetime(2026, 10, 14, 9, 0, tzinfo=tz)

    def test_never_returns_past(self, now):
        for text in ["today at 9", "this wednesday at 9", "tomorrow at 3", "friday at noon"]:
            result = resolve_datetime(text, now)
            assert result.when is None or result.when >= now

    def test_time_only(self, now):
        result = resolve_datetime("at 4", now)
        assert result.has_time and not result.has_date
        assert not result.is_full

    def test_date_only(self, now):
        result = resolve_datetime("on friday", now)
        assert result.date == date(2026, 10, 9)
        assert result.time is None

    def test_ambiguous_next_week_keeps_time(self, now):
        result = resolve_datetime("next week at 2", now)
        assert result.kind == ResolutionKind.AMBIGUOUS
        assert result.time == ClockTime(14, 0)

    def test_next_week_with_anchor(self, now, tz):
        result = resolve_datetime("next week at 2", now, anchor=date(2026, 10, 13))
        assert result.when == datetime(2026, 10, 20, 14, 0, tzinfo=tz)

    def test_naive_now_rejected(self):
        with pytest.raises(ValueError, match="timezone-aware"):
            resolve_datetime("tomorrow", datetime(2026, 10, 7, 10, 0))

    def test_combine(self, tz):
        assert combine(date(2026, 10, 20), ClockTime(16, 0), tz).tzinfo is tz
