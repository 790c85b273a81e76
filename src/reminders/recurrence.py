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
Recurrence Module

Parses recurrence descriptors ("every 2 weeks on tuesday and friday at 9am",
"every month on the last friday") into RecurrenceSpec values and computes
first and next trigger times.

Month arithmetic clamps to the target month: day 31 in a 30-day month lands
on the 30th, and a "fourth Monday" that does not exist rolls back a week.
"""

import calendar
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta

from .clock import combine, shift_days
from .models import (
    DailyRecurrence,
    DayOfMonth,
    MonthlyRecurrence,
    MonthlyRule,
    OrdinalWeekday,
    RecurrenceError,
    RecurrenceSpec,
    WeeklyRecurrence,
    Weekday,
    WeekOrdinal,
)
from .time_parser import DEFAULT_TIME, WEEKDAY_NAMES, TimeParseError, parse_time_of_day

logger = logging.getLogger("tickler.reminders.recurrence")

PRESETS = {
    "daily": lambda now: DailyRecurrence(1),
    "weekly": lambda now: WeeklyRecurrence(1, frozenset({Weekday.of(now)})),
    "weekdays": lambda now: WeeklyRecurrence(
        1, frozenset({Weekday.MONDAY, Weekday.TUESDAY, Weekday.WEDNESDAY,
                      Weekday.THURSDAY, Weekday.FRIDAY})
    ),
    "weekends": lambda now: WeeklyRecurrence(
        1, frozenset({Weekday.SATURDAY, Weekday.SUNDAY})
    ),
    "monthly": lambda now: MonthlyRecurrence(1, DayOfMonth(1)),
}

ORDINAL_NAMES = {
    "first": WeekOrdinal.FIRST,
    "1st": WeekOrdinal.FIRST,
    "second": WeekOrdinal.SECOND,
    "2nd": WeekOrdinal.SECOND,
    "third": WeekOrdinal.THIRD,
    "3rd": WeekOrdinal.THIRD,
    "fourth": WeekOrdinal.FOURTH,
    "4th": WeekOrdinal.FOURTH,
    "last": WeekOrdinal.LAST,
}

_TIME_RE = re.compile(r"\s*(?:\bat\b|@)\s*(.+)$")
_DAILY_RE = re.compile(r"^(?:(\d+)\s+)?days?$")
_WEEKLY_RE = re.compile(r"^(?:(\d+)\s+)?weeks?(?:\s+on\s+(.+))?$")
_MONTHLY_RE = re.compile(r"^(?:(\d+)\s+)?months?(?:\s+on\s+(?:the\s+)?(.+))?$")
_DAY_LIST_SPLIT_RE = re.compile(r"\s*(?:,|&|\+|\band\b)\s*|\s+")
_DAY_NUMBER_RE = re.compile(r"^(\d+)(?:st|nd|rd|th)?(?:\s+day)?(?:\s+of\s+(?:the\s+)?month)?$")
_ORDINAL_RE = re.compile(r"^(\w+)\s+(\w+)(?:\s+of\s+(?:the\s+)?month)?$")


@dataclass(frozen=True)
class ParsedRecurrence:
    """Result of parsing a recurrence descriptor."""

    spec: RecurrenceSpec
    anchor_time: time  # time of day for every occurrence


# =========================================================================
# Calendar arithmetic
# =========================================================================


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def _month_offset(day: date, months: int) -> tuple[int, int]:
    target = date(day.year, day.month, 1) + relativedelta(months=months)
    return target.year, target.month


def ordinal_weekday_in_month(
    year: int, month: int, ordinal: WeekOrdinal, weekday: Weekday
) -> date:
    """
    Find the Nth (or last) given weekday of a month.

    If the requested occurrence spills into the next month, the previous
    week's occurrence is used instead.
    """
    if ordinal == WeekOrdinal.LAST:
        day = date(year, month, days_in_month(year, month))
        while Weekday.of(day) != weekday:
            day -= timedelta(days=1)
        return day

    first = date(year, month, 1)
    offset = (weekday - Weekday.of(first)) % 7
    target = first + timedelta(days=offset + (ordinal - 1) * 7)
    if target.month != month:
        target -= timedelta(days=7)
    return target


def monthly_date(year: int, month: int, rule: MonthlyRule) -> date:
    """Resolve a monthly rule to a concrete date in the given month."""
    if isinstance(rule, DayOfMonth):
        last = days_in_month(year, month)
        day = last if rule.day == -1 else min(rule.day, last)
        return date(year, month, day)
    return ordinal_weekday_in_month(year, month, rule.ordinal, rule.weekday)


def _next_weekly(current: datetime, weekdays: frozenset, interval: int) -> datetime:
    ordered = sorted(weekdays)
    today = Weekday.of(current)

    later = [d for d in ordered if d > today]
    if later:
        return shift_days(current, later[0] - today)

    # No more days this week: jump `interval` weeks ahead to the earliest day
    days_to_first = (ordered[0] - today) % 7 or 7
    return shift_days(current, days_to_first + (interval - 1) * 7)


# =========================================================================
# Trigger computation
# =========================================================================


def next_trigger(spec: RecurrenceSpec, current: datetime) -> Optional[datetime]:
    """
    Calculate the occurrence after `current`.

    Args:
        spec: Recurrence spec
        current: The trigger time that just fired

    Returns:
        Next trigger time (same time of day as current), or None if the
        spec cannot produce one
    """
    if isinstance(spec, DailyRecurrence):
        return shift_days(current, spec.interval)

    if isinstance(spec, WeeklyRecurrence):
        return _next_weekly(current, spec.weekdays, spec.interval)

    if isinstance(spec, MonthlyRecurrence):
        year, month = _month_offset(current.date(), spec.interval)
        return combine(monthly_date(year, month, spec.rule), current.time(), current)

    logger.warning(f"Cannot compute next trigger for unknown spec {spec!r}")
    return None


def first_trigger(spec: RecurrenceSpec, anchor_time: time, now: datetime) -> datetime:
    """
    Calculate the first occurrence strictly after `now`.

    Args:
        spec: Recurrence spec
        anchor_time: Time of day for the occurrences
        now: Current time (the result uses its timezone)

    Returns:
        First trigger time
    """
    today_at_anchor = combine(now.date(), anchor_time, now)

    if isinstance(spec, DailyRecurrence):
        if today_at_anchor > now:
            return today_at_anchor
        return shift_days(today_at_anchor, 1)

    if isinstance(spec, WeeklyRecurrence):
        if Weekday.of(now) in spec.weekdays and today_at_anchor > now:
            return today_at_anchor
        # The first occurrence is never pushed out by the interval
        return _next_weekly(today_at_anchor, spec.weekdays, 1)

    if isinstance(spec, MonthlyRecurrence):
        # Check current and next month
        for offset in range(2):
            year, month = _month_offset(now.date(), offset)
            candidate = combine(monthly_date(year, month, spec.rule), anchor_time, now)
            if candidate > now:
                return candidate

        year, month = _month_offset(now.date(), 1)
        return combine(date(year, month, 1), anchor_time, now)

    raise RecurrenceError(f"Unsupported recurrence spec: {spec!r}")


# =========================================================================
# Descriptor parsing
# =========================================================================


def _parse_interval(value: Optional[str]) -> int:
    return int(value) if value else 1


def parse_weekdays(text: str) -> frozenset:
    """
    Parse a list of day names ("monday, wed and fri", "tue & thu").

    Raises:
        RecurrenceError: If any token is not a day name
    """
    days = set()
    for token in _DAY_LIST_SPLIT_RE.split(text.strip()):
        if not token:
            continue
        weekday = WEEKDAY_NAMES.get(token)
        if weekday is None:
            raise RecurrenceError(f"Unknown day of week: '{token}'")
        days.add(weekday)
    if not days:
        raise RecurrenceError("No days of week given")
    return frozenset(days)


def parse_monthly_rule(text: str) -> MonthlyRule:
    """
    Parse a monthly day rule.

    Accepts "15th", "1", "last day", "last day of the month", "first monday",
    "last friday".

    Raises:
        RecurrenceError: If the rule is not understood
    """
    text = text.strip()

    if text.startswith("last day"):
        return DayOfMonth(-1)

    match = _DAY_NUMBER_RE.match(text)
    if match:
        return DayOfMonth(int(match.group(1)))

    match = _ORDINAL_RE.match(text)
    if match:
        ordinal = ORDINAL_NAMES.get(match.group(1))
        weekday = WEEKDAY_NAMES.get(match.group(2))
        if ordinal is not None and weekday is not None:
            return OrdinalWeekday(ordinal, weekday)

    raise RecurrenceError(
        f"Could not understand monthly day '{text}'. "
        "Use '15th', 'last day' or 'first monday'."
    )


def parse_recurrence(descriptor: str, now: datetime) -> ParsedRecurrence:
    """
    Parse a recurrence descriptor.

    Supports:
    - Presets: "daily", "weekly", "weekdays", "weekends", "monthly"
    - Days: "every day at 9am", "every 3 days"
    - Weeks: "every week on monday", "every 2 weeks on tue and fri at 14:00"
    - Day lists: "every monday and thursday at 7pm"
    - Months: "every month on the 15th", "every month on the last day",
      "every 3 months on the first monday at 10:00"

    Args:
        descriptor: The recurrence descriptor
        now: Current time (defaults weekly specs to today's weekday)

    Returns:
        ParsedRecurrence with the spec and time of day (9am if not given)

    Raises:
        RecurrenceError: If the descriptor cannot be parsed
    """
    body = descriptor.strip().lower()
    if body.startswith("every "):
        body = body[len("every "):].strip()
    if not body:
        raise RecurrenceError("Empty recurrence descriptor")

    anchor = DEFAULT_TIME
    match = _TIME_RE.search(body)
    if match:
        try:
            anchor = parse_time_of_day(match.group(1))
        except TimeParseError as e:
            raise RecurrenceError(f"{e}. Use format like '9am' or '14:30'.")
        body = body[: match.start()].strip()

    spec = _parse_body(body, now)
    logger.debug(f"Parsed recurrence '{descriptor}' as {spec!r} at {anchor}")
    return ParsedRecurrence(spec=spec, anchor_time=anchor)


def _parse_body(body: str, now: datetime) -> RecurrenceSpec:
    preset = PRESETS.get(body)
    if preset is not None:
        return preset(now)

    match = _DAILY_RE.match(body)
    if match:
        return DailyRecurrence(_parse_interval(match.group(1)))

    match = _WEEKLY_RE.match(body)
    if match:
        interval = _parse_interval(match.group(1))
        if match.group(2):
            weekdays = parse_weekdays(match.group(2))
        else:
            weekdays = frozenset({Weekday.of(now)})
        return WeeklyRecurrence(interval, weekdays)

    match = _MONTHLY_RE.match(body)
    if match:
        interval = _parse_interval(match.group(1))
        rule = parse_monthly_rule(match.group(2)) if match.group(2) else DayOfMonth(1)
        return MonthlyRecurrence(interval, rule)

    if body and body.split()[0].strip(",") in WEEKDAY_NAMES:
        return WeeklyRecurrence(1, parse_weekdays(body))

    raise RecurrenceError(
        f"Could not understand '{body}'. Must specify 'day', 'week', 'month' "
        "or day names, e.g. 'every day at 9am' or 'every month on the 15th'."
    )


# =========================================================================
# Descriptions
# =========================================================================


def _join_names(names: list[str]) -> str:
    if len(names) == 1:
        return names[0]
    return ", ".join(names[:-1]) + " and " + names[-1]


def _every(interval: int, unit: str) -> str:
    return f"every {unit}" if interval == 1 else f"every {interval} {unit}s"


def describe_recurrence(spec: RecurrenceSpec) -> str:
    """Human-readable phrase, e.g. "every Monday and Friday"."""
    if isinstance(spec, DailyRecurrence):
        return _every(spec.interval, "day")

    if isinstance(spec, WeeklyRecurrence):
        names = _join_names([d.label for d in sorted(spec.weekdays)])
        suffix = f" (every {spec.interval} weeks)" if spec.interval > 1 else ""
        return f"every {names}{suffix}"

    if isinstance(spec, MonthlyRecurrence):
        if isinstance(spec.rule, DayOfMonth):
            day = "last day" if spec.rule.day == -1 else f"day {spec.rule.day}"
        else:
            day = f"{spec.rule.ordinal.name.lower()} {spec.rule.weekday.label}"
        return f"on the {day} of {_every(spec.interval, 'month')}"

    return "recurring"


def recurrence_label(spec: Optional[RecurrenceSpec]) -> str:
    """Short label such as "Daily" or "Every 2 weeks"."""
    if spec is None:
        return "One-time"
    units = {
        DailyRecurrence: ("Daily", "days"),
        WeeklyRecurrence: ("Weekly", "weeks"),
        MonthlyRecurrence: ("Monthly", "months"),
    }
    single, plural = units[type(spec)]
    return single if spec.interval == 1 else f"Every {spec.interval} {plural}"
