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
Scheduled Reminders Package

Provides one-time and recurring reminders with durable state and a
polling delivery scheduler.
"""

from .config import ReminderConfig
from .delivery import DeliveryError, DiscordNotifier, Notifier
from .models import (
    DailyRecurrence,
    DayOfMonth,
    DeliveryMode,
    MonthlyRecurrence,
    OrdinalWeekday,
    RecurrenceError,
    ReminderDraft,
    ReminderEntry,
    ReminderError,
    WeeklyRecurrence,
    Weekday,
    WeekOrdinal,
)
from .recurrence import (
    describe_recurrence,
    first_trigger,
    next_trigger,
    parse_recurrence,
)
from .scheduler import ReminderScheduler
from .service import ReminderService, format_time_until
from .storage import JsonFileBackend, PostgresBackend, StorageError
from .store import ReminderStore
from .time_parser import TimeParseError, parse_time_expression

__all__ = [
    "ReminderConfig",
    "DeliveryError",
    "DiscordNotifier",
    "Notifier",
    "DailyRecurrence",
    "DayOfMonth",
    "DeliveryMode",
    "MonthlyRecurrence",
    "OrdinalWeekday",
    "RecurrenceError",
    "ReminderDraft",
    "ReminderEntry",
    "ReminderError",
    "WeeklyRecurrence",
    "Weekday",
    "WeekOrdinal",
    "describe_recurrence",
    "first_trigger",
    "next_trigger",
    "parse_recurrence",
    "ReminderScheduler",
    "ReminderService",
    "format_time_until",
    "JsonFileBackend",
    "PostgresBackend",
    "StorageError",
    "ReminderStore",
    "TimeParseError",
    "parse_time_expression",
]
