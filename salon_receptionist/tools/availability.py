"""
Business-hours and calendar availability checks.

A candidate start time is rejected when it falls on the closed weekday,
starts outside opening hours, or would run past closing for the service's
duration. When a calendar provider is configured, overlapping busy blocks
are reported as conflicts; a calendar that cannot be reached is treated
as a conflict so a booking is never committed unchecked.
"""

import logging
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo

from salon_receptionist.config import BusinessConfig, SchedulingConfig
from salon_receptionist.tools.calendar import CalendarLookupError, CalendarProvider
from salon_receptionist.tools.services import service_duration

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


class AvailabilityStatus(str, Enum):
    """Outcome of checking one candidate start time."""

    OK = "ok"
    CLOSED_DAY = "closed_day"
    OUTSIDE_HOURS = "outside_hours"
    CONFLICT = "conflict"


def open_days_phrase(closed_weekday: int) -> str:
    """'Monday to Saturday' when closed on Sunday."""
    first = WEEKDAY_NAMES[(closed_weekday + 1) % 7]
    last = WEEKDAY_NAMES[(closed_weekday - 1) % 7]
    return f"{first} to {last}"


class AvailabilityValidator:
    """Validates candidate times against business hours and an optional calendar."""

    def __init__(
        self,
        business: BusinessConfig,
        scheduling: SchedulingConfig,
        calendar: Optional[CalendarProvider] = None,
    ) -> None:
        self.business = business
        self.scheduling = scheduling
        self.calendar = calendar
        self.tz = ZoneInfo(business.timezone)

    @property
    def closed_day_name(self) -> str:
        return WEEKDAY_NAMES[self.business.closed_weekday]

    def is_closed_day(self, day: date) -> bool:
        return day.weekday() == self.business.closed_weekday

    def business_window(self, day: date) -> tuple[datetime, datetime]:
        """Opening and closing timestamps for a day in the business timezone."""
        midnight = datetime.combine(day, time(0), tzinfo=self.tz)
        return (
            midnight + timedelta(hours=self.business.open_hour),
            midnight + timedelta(hours=self.business.close_hour),
        )

    def check_business_hours(
        self, when: datetime, duration_minutes: Optional[int] = None
    ) -> AvailabilityStatus:
        """Check the closed day and opening hours, ignoring the calendar."""
        local = when.astimezone(self.tz)
        if self.is_closed_day(local.date()):
            return AvailabilityStatus.CLOSED_DAY

        duration = timedelta(
            minutes=duration_minutes or self.scheduling.default_duration_minutes
        )
        open_at, close_at = self.business_window(local.date())
        if local < open_at or local >= close_at or local + duration > close_at:
            return AvailabilityStatus.OUTSIDE_HOURS
        return AvailabilityStatus.OK

    async def check(self, when: datetime, service: Optional[str] = None) -> AvailabilityStatus:
        """Full check: business hours first, then the calendar if configured."""
        duration = service_duration(service, self.scheduling.default_duration_minutes)
        status = self.check_business_hours(when, duration)
        if status is not AvailabilityStatus.OK or self.calendar is None:
            return status

        end = when + timedelta(minutes=duration)
        try:
            free = await self.calendar.is_free(when, end)
        except CalendarLookupError as exc:
            logger.warning("Calendar unavailable, treating %s as taken: %s", when.isoformat(), exc)
            return AvailabilityStatus.CONFLICT

        if not free:
            logger.info("Calendar conflict at %s", when.isoformat())
            return AvailabilityStatus.CONFLICT
        return AvailabilityStatus.OK

    async def list_open_slots(
        self, day: date, service: Optional[str], now: datetime
    ) -> list[datetime]:
        """Open start times on a day, stepping through business hours.

        Past times, times that would run past closing and times overlapping
        a busy block are skipped. At most ``max_suggestions`` are returned.
        """
        if self.is_closed_day(day):
            return []

        duration = timedelta(
            minutes=service_duration(service, self.scheduling.default_duration_minutes)
        )
        step = timedelta(minutes=self.scheduling.slot_step_minutes)
        open_at, close_at = self.business_window(day)

        busy = []
        if self.calendar is not None:
            try:
                busy = await self.calendar.get_busy_intervals(open_at, close_at)
            except CalendarLookupError as exc:
                logger.warning("Calendar unavailable while listing slots for %s: %s", day, exc)
                return []

        slots: list[datetime] = []
        cursor = open_at
        while cursor + duration <= close_at and len(slots) < self.scheduling.max_suggestions:
            end = cursor + duration
            if cursor > now and not any(b.overlaps(cursor, end) for b in busy):
                slots.append(cursor)
            cursor += step
        return slots
