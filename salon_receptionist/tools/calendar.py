"""
Calendar providers used for double-booking checks.

The availability validator only needs busy intervals for a window; any
backend (Google Calendar, an in-memory schedule for tests and the console
demo) implements ``CalendarProvider``.
"""

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from functools import partial
from typing import Any, Optional

from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar.readonly"]

# Mock schedule generation parameters
SCHEDULE_SEED = 42
SCHEDULE_DAYS = 14
BUSY_PROBABILITY = 0.3


class CalendarLookupError(Exception):
    """Raised when busy intervals cannot be retrieved."""


@dataclass(frozen=True)
class TimeSlot:
    """A half-open [start, end) window on a calendar."""

    start: datetime
    end: datetime

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start < end and start < self.end


class CalendarProvider(ABC):
    """Abstract calendar backend."""

    @abstractmethod
    async def get_busy_intervals(self, start: datetime, end: datetime) -> list[TimeSlot]:
        """Return busy intervals overlapping ``[start, end)``.

        Raises:
            CalendarLookupError: If the backend cannot be queried.
        """

    async def is_free(self, start: datetime, end: datetime) -> bool:
        """True when nothing on the calendar overlaps ``[start, end)``."""
        busy = await self.get_busy_intervals(start, end)
        return not any(slot.overlaps(start, end) for slot in busy)


class GoogleCalendarProvider(CalendarProvider):
    """CalendarProvider backed by the Google Calendar freebusy API."""

    def __init__(self, service_account_path: str, calendar_id: str = "primary") -> None:
        if not service_account_path:
            raise ValueError(
                "Google service account JSON path must be provided via "
                "GOOGLE_SERVICE_ACCOUNT_JSON."
            )
        self.calendar_id = calendar_id
        self._credentials = Credentials.from_service_account_file(
            service_account_path, scopes=SCOPES
        )
        self._service = build("calendar", "v3", credentials=self._credentials)

    async def _run_in_executor(self, func, *args, **kwargs) -> Any:
        """Run a synchronous Google API call in the default thread pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args, **kwargs))

    @staticmethod
    def _to_rfc3339(dt: datetime) -> str:
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.isoformat()

    async def get_busy_intervals(self, start: datetime, end: datetime) -> list[TimeSlot]:
        body = {
            "timeMin": self._to_rfc3339(start),
            "timeMax": self._to_rfc3339(end),
            "items": [{"id": self.calendar_id}],
        }
        try:
            response = await self._run_in_executor(
                self._service.freebusy().query(body=body).execute
            )
        except (HttpError, OSError) as exc:
            logger.warning("Freebusy query failed for %s: %s", self.calendar_id, exc)
            raise CalendarLookupError(str(exc)) from exc

        intervals = response.get("calendars", {}).get(self.calendar_id, {}).get("busy", [])
        busy = [
            TimeSlot(
                start=datetime.fromisoformat(item["start"].replace("Z", "+00:00")),
                end=datetime.fromisoformat(item["end"].replace("Z", "+00:00")),
            )
            for item in intervals
        ]
        busy.sort(key=lambda slot: slot.start)
        return busy


class InMemoryCalendar(CalendarProvider):
    """Calendar held in memory. Used by tests and the console demo."""

    def __init__(self, busy: Optional[list[TimeSlot]] = None) -> None:
        self._busy: list[TimeSlot] = list(busy or [])

    def add_busy(self, start: datetime, end: datetime) -> None:
        self._busy.append(TimeSlot(start=start, end=end))

    def book(self, start: datetime, duration_minutes: int) -> None:
        self.add_busy(start, start + timedelta(minutes=duration_minutes))

    async def get_busy_intervals(self, start: datetime, end: datetime) -> list[TimeSlot]:
        return sorted(
            (slot for slot in self._busy if slot.overlaps(start, end)),
            key=lambda slot: slot.start,
        )

    @classmethod
    def seeded(
        cls,
        tz: tzinfo,
        start_day: date,
        open_hour: int,
        close_hour: int,
        seed: int = SCHEDULE_SEED,
    ) -> "InMemoryCalendar":
        """Generate a reproducible two-week schedule with ~30% of hours busy."""
        rng = random.Random(seed)
        calendar = cls()
        for day_offset in range(1, SCHEDULE_DAYS + 1):
            day = start_day + timedelta(days=day_offset)
            for hour in range(open_hour, close_hour):
                if rng.random() < BUSY_PROBABILITY:
                    begin = datetime.combine(day, time(hour), tzinfo=tz)
                    calendar.add_busy(begin, begin + timedelta(hours=1))
        logger.debug("Seeded in-memory calendar with %d busy blocks", len(calendar._busy))
        return calendar
