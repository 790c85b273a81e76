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
Reminder System Configuration

Configurable parameters for reminder storage and scheduling.
Values can be overridden via environment variables.
"""

import os
from dataclasses import dataclass
from datetime import timedelta

import pytz

from .clock import resolve_timezone


@dataclass
class ReminderConfig:
    """Configuration for the reminder system."""

    # Zone used for parsing and wall-clock recurrence
    timezone: str = "UTC"

    # Storage settings
    storage_backend: str = "file"  # "file" or "postgres"
    storage_path: str = "reminders.json"

    # Scheduler settings
    tick_seconds: float = 30
    delivery_timeout: float = 10

    # Fired one-time reminders are pruned after this many hours
    retention_hours: float = 24

    @property
    def tz(self) -> pytz.BaseTzInfo:
        return resolve_timezone(self.timezone)

    @property
    def retention(self) -> timedelta:
        return timedelta(hours=self.retention_hours)

    @classmethod
    def from_env(cls) -> "ReminderConfig":
        """Create config from environment variables with defaults."""
        backend = os.getenv("REMINDER_STORAGE_BACKEND", "file").lower()
        if backend not in ("file", "postgres"):
            raise ValueError(
                f"REMINDER_STORAGE_BACKEND must be 'file' or 'postgres', got '{backend}'"
            )

        return cls(
            timezone=os.getenv("REMINDER_TIMEZONE", "UTC"),
            storage_backend=backend,
            storage_path=os.getenv("REMINDER_STORAGE_PATH", "reminders.json"),
            tick_seconds=float(os.getenv("REMINDER_TICK_SECONDS", "30")),
            delivery_timeout=float(os.getenv("REMINDER_DELIVERY_TIMEOUT", "10")),
            retention_hours=float(os.getenv("REMINDER_RETENTION_HOURS", "24")),
        )
