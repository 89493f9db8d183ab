"""Shared helpers for phone numbers and spoken date/time phrasing."""

import re
from datetime import date, datetime
from typing import Optional


def normalize_phone(value: str) -> str:
    """Reduce a phone number to at most 10 North American digits.

    A leading country code is dropped by keeping the last ten digits.

    Examples:
        >>> normalize_phone("(905) 555-1234")
        '9055551234'
        >>> normalize_phone("+1 905 555 1234")
        '9055551234'
    """
    digits = re.sub(r"\D", "", value or "")
    if len(digits) > 10:
        return digits[-10:]
    return digits


def format_phone_for_speech(digits: str) -> str:
    """Group a 10-digit number as area code, exchange, line: '905, 555, 1234'."""
    if len(digits) != 10:
        return " ".join(digits)
    return f"{digits[:3]}, {digits[3:6]}, {digits[6:]}"


def format_clock_for_speech(hour: int, minute: int) -> str:
    """Format a wall-clock time the way a receptionist says it: '4 PM', '10:30 AM'."""
    suffix = "PM" if hour >= 12 else "AM"
    hour12 = hour % 12 or 12
    if minute == 0:
        return f"{hour12} {suffix}"
    return f"{hour12}:{minute:02d} {suffix}"


def format_date_for_speech(day: date) -> str:
    """'Tuesday, October 20'."""
    return f"{day:%A}, {day:%B} {day.day}"


def format_datetime_for_speech(when: Optional[datetime]) -> str:
    """'Tuesday, October 20 at 4 PM'."""
    if when is None:
        return "that time"
    return f"{format_date_for_speech(when.date())} at {format_clock_for_speech(when.hour, when.minute)}"
