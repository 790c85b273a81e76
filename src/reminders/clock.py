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
Clock Helpers

Wall-clock arithmetic shared by the parser, recurrence engine and store.

Reminders are scheduled in local wall-clock time ("every day at 9am" stays
at 9am across DST changes), so calendar math is done on naive datetimes and
re-attached to the caller's timezone afterwards. Naive inputs stay naive.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Callable

import pytz

logger = logging.getLogger("tickler.reminders.clock")

Clock = Callable[[], datetime]


def validate_timezone(tz_name: str) -> bool:
    """
    Validate that a timezone name is valid.

    Args:
        tz_name: IANA timezone name (e.g., "America/Los_Angeles")

    Returns:
        True if valid, False otherwise
    """
    try:
        pytz.timezone(tz_name)
        return True
    except pytz.UnknownTimeZoneError:
        return False


def resolve_timezone(tz_name: str) -> pytz.BaseTzInfo:
    """Return the pytz zone for a name, falling back to UTC."""
    if not validate_timezone(tz_name):
        logger.warning(f"Invalid timezone '{tz_name}', falling back to UTC")
        return pytz.UTC
    return pytz.timezone(tz_name)


def system_clock(tz: pytz.BaseTzInfo) -> Clock:
    """Build a clock returning the current time in the given zone."""

    def _now() -> datetime:
        return datetime.now(tz)

    return _now


def wall_clock(dt: datetime) -> datetime:
    """Drop tzinfo, keeping the local date and time fields."""
    return dt.replace(tzinfo=None)


def localize_like(naive: datetime, reference: datetime) -> datetime:
    """Attach reference's timezone to a naive wall-clock datetime."""
    tz = reference.tzinfo
    if tz is None:
        return naive
    # pytz zones must go through localize() to pick the right offset
    localize = getattr(tz, "localize", None)
    if localize is not None:
        return localize(naive)
    return naive.replace(tzinfo=tz)


def combine(day: date, tod: time, reference: datetime) -> datetime:
    """Build a datetime on `day` at `tod` in reference's timezone."""
    return localize_like(datetime.combine(day, tod), reference)


def shift_days(dt: datetime, days: int) -> datetime:
    """Move a datetime by whole calendar days, preserving time of day."""
    return localize_like(wall_clock(dt) + timedelta(days=days), dt)


def add_elapsed(dt: datetime, delta: timedelta) -> datetime:
    """Add real elapsed time, which may differ from wall-clock time over DST."""
    if dt.tzinfo is None:
        return dt + delta
    utc = dt.astimezone(pytz.UTC)
    return (utc + delta).astimezone(dt.tzinfo)


def to_zone(dt: datetime, tz: pytz.BaseTzInfo) -> datetime:
    """Convert an aware datetime to tz; naive values pass through."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(tz)
