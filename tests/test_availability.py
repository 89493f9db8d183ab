"""Tests for business hours, calendar conflicts and open-slot listing."""

from dataclasses import replace
from datetime import date, datetime, timedelta

import pytest

from salon_receptionist.tools.availability import (
    AvailabilityStatus,
    AvailabilityValidator,
    open_days_phrase,
)
from salon_receptionist.tools.calendar import (
    CalendarLookupError,
    CalendarProvider,
    InMemoryCalendar,
    TimeSlot,
)


class BrokenCalendar(CalendarProvider):
    async def get_busy_intervals(self, start, end):
        raise CalendarLookupError("calendar is down")


class TestBusinessHours:
    def test_open_days_phrase(self):
        assert open_days_phrase(6) == "Monday to Saturday"
        assert open_days_phrase(0) == "Tuesday to Sunday"

    def test_sunday_is_closed(self, validator, tz):
        when = datetime(2026, 10, 11, 14, 0, tzinfo=tz)
        assert validator.check_business_hours(when) == AvailabilityStatus.CLOSED_DAY
        assert validator.closed_day_name == "Sunday"

    def test_within_hours(self, validator, tz):
        assert validator.check_business_hours(datetime(2026, 10, 13, 9, 0, tzinfo=tz)) == AvailabilityStatus.OK

    def test_before_opening(self, validator, tz):
        when = datetime(2026, 10, 13, 8, 30, tzinfo=tz)
        assert validator.check_business_hours(when) == AvailabilityStatus.OUTSIDE_HOURS

    def test_must_finish_by_closing(self, validator, tz):
        when = datetime(2026, 10, 13, 17, 30, tzinfo=tz)
        assert validator.check_business_hours(when, 45) == AvailabilityStatus.OUTSIDE_HOURS
        assert validator.check_business_hours(when, 30) == AvailabilityStatus.OK

    def test_other_timezone_is_converted(self, validator):
        from zoneinfo import ZoneInfo

        # 13:00 UTC is 9 AM in Toronto
        when = datetime(2026, 10, 13, 13, 0, tzinfo=ZoneInfo("UTC"))
        assert validator.check_business_hours(when) == AvailabilityStatus.OK


class TestCalendarCheck:
    @pytest.mark.asyncio
    async def test_free_slot(self, validator, tz):
        when = datetime(2026, 10, 20, 16, 0, tzinfo=tz)
        assert await validator.check(when, "haircut") == AvailabilityStatus.OK

    @pytest.mark.asyncio
    async def test_overlap_is_conflict(self, validator, calendar, tz):
        calendar.book(datetime(2026, 10, 20, 16, 30, tzinfo=tz), 60)
        when = datetime(2026, 10, 20, 16, 0, tzinfo=tz)
        assert await validator.check(when, "haircut") == AvailabilityStatus.CONFLICT

    @pytest.mark.asyncio
    async def test_adjacent_block_is_free(self, validator, calendar, tz):
        calendar.book(datetime(2026, 10, 20, 15, 0, tzinfo=tz), 60)
        when = datetime(2026, 10, 20, 16, 0, tzinfo=tz)
        assert await validator.check(when, "haircut") == AvailabilityStatus.OK

    @pytest.mark.asyncio
    async def test_hours_checked_before_calendar(self, app_config, tz):
        validator = AvailabilityValidator(app_config.business, app_config.scheduling, BrokenCalendar())
        when = datetime(2026, 10, 11, 14, 0, tzinfo=tz)
        assert await validator.check(when) == AvailabilityStatus.CLOSED_DAY

    @pytest.mark.asyncio
    async def test_calendar_failure_is_conflict(self, app_config, tz):
        validator = AvailabilityValidator(app_config.business, app_config.scheduling, BrokenCalendar())
        when = datetime(2026, 10, 20, 16, 0, tzinfo=tz)
        assert await validator.check(when) == AvailabilityStatus.CONFLICT

    @pytest.mark.asyncio
    async def test_no_calendar_is_always_free(self, app_config, tz):
        validator = AvailabilityValidator(app_config.business, app_config.scheduling)
        when = datetime(2026, 10, 20, 16, 0, tzinfo=tz)
        assert await validator.check(when) == AvailabilityStatus.OK

    @pytest.mark.asyncio
    async def test_unknown_service_uses_configured_duration(self, app_config, tz):
        when = datetime(2026, 10, 20, 17, 30, tzinfo=tz)
        short = AvailabilityValidator(
            app_config.business, replace(app_config.scheduling, default_duration_minutes=30)
        )
        long = AvailabilityValidator(
            app_config.business, replace(app_config.scheduling, default_duration_minutes=90)
        )
        assert await short.check(when) == AvailabilityStatus.OK
        assert await long.check(when) == AvailabilityStatus.OUTSIDE_HOURS


class TestOpenSlots:
    @pytest.mark.asyncio
    async def test_first_slots_of_the_day(self, validator, now, tz):
        slots = await validator.list_open_slots(date(2026, 10, 8), "haircut", now)
        assert slots == [
            datetime(2026, 10, 8, 9, 0, tzinfo=tz),
            datetime(2026, 10, 8, 9, 30, tzinfo=tz),
            datetime(2026, 10, 8, 10, 0, tzinfo=tz),
        ]

    @pytest.mark.asyncio
    async def test_busy_blocks_skipped(self, validator, calendar, now, tz):
        calendar.add_busy(
            datetime(2026, 10, 8, 9, 0, tzinfo=tz), datetime(2026, 10, 8, 11, 0, tzinfo=tz)
        )
        slots = await validator.list_open_slots(date(2026, 10, 8), "haircut", now)
        assert slots[0] == datetime(2026, 10, 8, 11, 0, tzinfo=tz)

    @pytest.mark.asyncio
    async def test_past_times_skipped_today(self, validator, now, tz):
        slots = await validator.list_open_slots(now.date(), "haircut", now)
        assert all(slot > now for slot in slots)
        assert slots[0] == datetime(2026, 10, 7, 10, 30, tzinfo=tz)

    @pytest.mark.asyncio
    async def test_closed_day_has_no_slots(self, validator, now):
        assert await validator.list_open_slots(date(2026, 10, 11), None, now) == []

    @pytest.mark.asyncio
    async def test_long_service_fits_before_close(self, validator, now, tz):
        day = date(2026, 10, 8)
        slots = await validator.list_open_slots(day, "cut and colour", now)
        assert all(slot + timedelta(minutes=120) <= datetime(2026, 10, 8, 18, 0, tzinfo=tz) for slot in slots)


class TestInMemoryCalendar:
    @pytest.mark.asyncio
    async def test_seeded_schedule_is_reproducible(self, tz):
        a = InMemoryCalendar.seeded(tz, date(2026, 10, 7), 9, 18)
        b = InMemoryCalendar.seeded(tz, date(2026, 10, 7), 9, 18)
        start = datetime(2026, 10, 8, 0, 0, tzinfo=tz)
        end = start + timedelta(days=14)
        assert await a.get_busy_intervals(start, end) == await b.get_busy_intervals(start, end)

    def test_time_slot_overlap_is_half_open(self, tz):
        slot = TimeSlot(datetime(2026, 10, 8, 9, 0, tzinfo=tz), datetime(2026, 10, 8, 10, 0, tzinfo=tz))
        assert not slot.overlaps(datetime(2026, 10, 8, 10, 0, tzinfo=tz), datetime(2026, 10, 8, 11, 0, tzinfo=tz))
        assert slot.overlaps(datetime(2026, 10, 8, 9, 30, tzinfo=tz), datetime(2026, 10, 8, 11, 0, tzinfo=tz))
