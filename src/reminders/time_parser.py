# tickler - Discord Reminder Bot
# Copyright (c) 2025-2026 Slash Daemon slashdaemon@protonmail.com
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, version 3 of the License.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.
#
# Commercial licensing: [slashdaemon@protonmail.com]

"""
Time Parser Module

Parses free-text time expressions for one-time reminders.
Supports relative ("in 2 hours 30 minutes") and absolute
("tomorrow at 3pm", "friday", "dec 25 at 18:00", "12/25/25") forms,
falling back to dateparser for anything else.
"""

import logging
import re
from datetime import date, datetime, time, timedelta
from typing import Optional

import dateparser

from .clock import add_elapsed, combine, localize_like, shift_days, wall_clock
from .models import ReminderError, Weekday

logger = logging.getLogger("tickler.reminders.time_parser")

# Default time of day when only a date is given
DEFAULT_TIME = time(9, 0)

# Relative expressions may not reach further than this
MAX_RELATIVE = timedelta(days=365)

MONTH_NAMES = {
    "january": 1, "jan": 1, "february": 2, "feb": 2, "march": 3, "mar": 3,
    "april": 4, "apr": 4, "may": 5, "june": 6, "jun": 6, "july": 7, "jul": 7,
    "august": 8, "aug": 8, "september": 9, "sep": 9, "sept": 9,
    "october": 10, "oct": 10, "november": 11, "nov": 11, "december": 12, "dec": 12,
}

WEEKDAY_NAMES = {
    "sunday": Weekday.SUNDAY, "sun": Weekday.SUNDAY,
    "monday": Weekday.MONDAY, "mon": Weekday.MONDAY,
    "tuesday": Weekday.TUESDAY, "tues": Weekday.TUESDAY, "tue": Weekday.TUESDAY,
    "wednesday": Weekday.WEDNESDAY, "wed": Weekday.WEDNESDAY,
    "thursday": Weekday.THURSDAY, "thurs": Weekday.THURSDAY,
    "thur": Weekday.THURSDAY, "thu": Weekday.THURSDAY,
    "friday": Weekday.FRIDAY, "fri": Weekday.FRIDAY,
    "saturday": Weekday.SATURDAY, "sat": Weekday.SATURDAY,
}

# Longest names first so "thursday" wins over "thu"
_WEEKDAY_RE = re.compile(
    r"\b(" + "|".join(sorted(WEEKDAY_NAMES, key=len, reverse=True)) + r")\b"
)

RELATIVE_UNITS = [
    (re.compile(r"(\d+)\s*(?:days?|d)\b"), "days"),
    (re.compile(r"(\d+)\s*(?:hours?|hrs?|h)\b"), "hours"),
    (re.compile(r"(\d+)\s*(?:minutes?|mins?|m)\b"), "minutes"),
    (re.compile(r"(\d+)\s*(?:seconds?|secs?|s)\b"), "seconds"),
]

_SEPARATOR_RE = re.compile(r" at |@")
_MONTH_DAY_RE = re.compile(r"(?:([a-z]+)\s+(\d+)|(\d+)\s+([a-z]+))")
_NUMERIC_DATE_RE = re.compile(r"(\d+)[/\-](\d+)(?:[/\-](\d+))?")
_TWELVE_HOUR_RE = re.compile(r"(\d+)(?::(\d+))?\s*(am|pm)")
_TWENTY_FOUR_HOUR_RE = re.compile(r"(\d+):(\d+)(?::(\d+))?")
_TIME_LIKE_RE = re.compile(r"am|pm|\d+:\d+")

USAGE_HINT = (
    "Try formats like 'in 2 hours', 'tomorrow', 'friday at 3pm', "
    "'dec 25 at 18:00' or '12/25 9am'."
)


class TimeParseError(ReminderError):
    """Raised when a time expression cannot be parsed."""

    pass


def parse_relative(expr: str) -> timedelta:
    """
    Sum every "<N><unit>" token in a relative expression.

    Args:
        expr: Expression without the leading "in " (e.g., "1 day 5h 30m")

    Returns:
        Total offset

    Raises:
        TimeParseError: If nothing matched or the total is out of range
    """
    total = timedelta()
    matched = False

    for pattern, unit in RELATIVE_UNITS:
        for match in pattern.finditer(expr):
            total += timedelta(**{unit: int(match.group(1))})
            matched = True

    if not matched:
        raise TimeParseError(
            "No valid time values found. Use format like: 'in 2 hours 30 minutes'"
        )
    if total < timedelta(seconds=1):
        raise TimeParseError("Time must be at least 1 second")
    if total > MAX_RELATIVE:
        raise TimeParseError("Cannot set reminders more than 1 year in the future")
    return total


def parse_time_of_day(text: str) -> time:
    """
    Parse a time of day.

    Accepts 12-hour ("3pm", "3:30 PM", "12am"), 24-hour ("15:30", "7:05:30")
    and bare hours ("15").

    Raises:
        TimeParseError: If no format matches or values are out of range
    """
    text = text.strip().lower()

    match = _TWELVE_HOUR_RE.search(text)
    if match:
        hour = int(match.group(1))
        minute = int(match.group(2) or 0)
        # 12am is midnight, 12pm is noon
        if hour == 12:
            hour = 0
        if match.group(3) == "pm":
            hour += 12
        if 0 <= hour < 24 and 0 <= minute < 60:
            return time(hour, minute)

    match = _TWENTY_FOUR_HOUR_RE.search(text)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
        second = int(match.group(3) or 0)
        if 0 <= hour < 24 and 0 <= minute < 60 and 0 <= second < 60:
            return time(hour, minute, second)

    if text.isdigit() and 0 <= int(text) < 24:
        return time(int(text))

    raise TimeParseError(f"Could not parse time: {text}")


def _next_year(day: date) -> date:
    try:
        return day.replace(year=day.year + 1)
    except ValueError:
        raise TimeParseError(f"Invalid date: {day.month}/{day.day}/{day.year + 1}")


def _calendar_date(year: int, month: int, day: int, label: str) -> date:
    try:
        return date(year, month, day)
    except ValueError:
        raise TimeParseError(f"Invalid date: {label}")


def parse_date_part(text: str, now: datetime) -> Optional[date]:
    """
    Resolve the date half of an absolute expression.

    Returns None when the text is not a recognised date.

    Raises:
        TimeParseError: If the text names a date that does not exist
    """
    today = now.date()

    if text == "tomorrow":
        return today + timedelta(days=1)
    if text == "today":
        return today

    # Day names: next occurrence, a full week ahead if it's today
    match = _WEEKDAY_RE.search(text)
    if match:
        target = WEEKDAY_NAMES[match.group(1)]
        days_until = (target - Weekday.of(now)) % 7 or 7
        return today + timedelta(days=days_until)

    # "dec 25", "december 25", "25 dec"
    match = _MONTH_DAY_RE.search(text)
    if match:
        month_name = match.group(1) or match.group(4)
        day_str = match.group(2) or match.group(3)
        month = MONTH_NAMES.get(month_name)
        if month is not None:
            target = _calendar_date(today.year, month, int(day_str), f"{month_name} {day_str}")
            return _next_year(target) if target < today else target

    # "12/25", "12-25-2025", "12/25/25"
    match = _NUMERIC_DATE_RE.search(text)
    if match:
        month, day = int(match.group(1)), int(match.group(2))
        year = today.year
        if match.group(3):
            year = int(match.group(3))
            if year < 100:
                year += 2000
        target = _calendar_date(year, month, day, f"{month}/{day}/{year}")
        return _next_year(target) if target < today else target

    return None


def _parse_fallback(expr: str, now: datetime) -> Optional[datetime]:
    """Generic calendar parse for anything the structured rules missed."""
    settings = {
        "RELATIVE_BASE": wall_clock(now),
        "PREFER_DATES_FROM": "future",
    }
    parsed = dateparser.parse(expr, settings=settings)
    if parsed is None:
        return None

    parsed = wall_clock(parsed)
    # Date-only results default to 9 AM
    if parsed.time() == time(0, 0):
        parsed = datetime.combine(parsed.date(), DEFAULT_TIME)

    result = localize_like(parsed, now)
    if result <= now:
        if result.date() == now.date():
            # Same day but past time: move to the next hour
            result = add_elapsed(now, timedelta(hours=1))
        else:
            result = localize_like(datetime.combine(_next_year(parsed.date()), parsed.time()), now)
    return result


def _parse_absolute(expr: str, now: datetime) -> datetime:
    if expr == "tomorrow":
        return combine(now.date() + timedelta(days=1), DEFAULT_TIME, now)

    if expr == "today":
        next_hour = wall_clock(now).replace(minute=0, second=0, microsecond=0)
        return localize_like(next_hour + timedelta(hours=1), now)

    parts = [p.strip() for p in _SEPARATOR_RE.split(expr, maxsplit=1)]
    date_part = parts[0]
    time_part = parts[1] if len(parts) > 1 else ""
    has_separator = len(parts) > 1

    day = parse_date_part(date_part, now) if date_part else None

    if day is not None:
        if time_part:
            result = combine(day, parse_time_of_day(time_part), now)
        else:
            result = combine(day, DEFAULT_TIME, now)
        if result <= now:
            # Right date, time already passed
            result = shift_days(result, 1)
        return result

    if not date_part and time_part:
        # "@ 5pm"
        result = combine(now.date(), parse_time_of_day(time_part), now)
        return shift_days(result, 1) if result <= now else result

    if not has_separator and _TIME_LIKE_RE.search(expr):
        try:
            tod = parse_time_of_day(expr)
        except TimeParseError:
            tod = None
        if tod is not None:
            result = combine(now.date(), tod, now)
            return shift_days(result, 1) if result <= now else result

    fallback = _parse_fallback(expr, now)
    if fallback is not None:
        return fallback

    raise TimeParseError(f"Could not parse time expression: '{expr}'. {USAGE_HINT}")


def parse_time_expression(expr: str, now: datetime) -> datetime:
    """
    Parse a time expression into the instant it refers to.

    Supports:
    - Relative: "in 2 hours", "in 1d 4h", "in 90 seconds"
    - Keywords: "tomorrow" (9am), "today" (next whole hour)
    - Day names: "friday", "next monday at 3pm"
    - Calendar dates: "dec 25", "25 december at 18:00", "12/25/25 @ 9am"
    - Times alone: "3pm", "17:30" (tomorrow if already past)

    Args:
        expr: The time expression to parse
        now: Reference instant; the result uses its timezone

    Returns:
        The resolved instant

    Raises:
        TimeParseError: If the expression cannot be parsed
    """
    normalized = expr.strip().lower()
    if not normalized:
        raise TimeParseError("Empty time expression")

    if normalized.startswith("in "):
        return add_elapsed(now, parse_relative(normalized[3:]))

    if normalized.startswith("at "):
        normalized = normalized[3:].strip()
        if normalized.isdigit():
            # "at 15" is a bare hour, not a day of the month
            result = combine(now.date(), parse_time_of_day(normalized), now)
            return shift_days(result, 1) if result <= now else result

    result = _parse_absolute(normalized, now)
    logger.debug(f"Parsed '{expr}' as {result.isoformat()}")
    return result
