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

"""Tests for reminder configuration."""

import sys
from datetime import timedelta
from pathlib import Path
from unittest.mock import patch

import pytest
import pytz

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from reminders.config import ReminderConfig


class TestReminderConfig:
    """Test configuration defaults and environment overrides."""

    def test_default_config(self):
        config = ReminderConfig()
        assert config.timezone == "UTC"
        assert config.storage_backend == "file"
        assert config.storage_path == "reminders.json"
        assert config.tick_seconds == 30
        assert config.delivery_timeout == 10
        assert config.retention == timedelta(hours=24)

    def test_config_from_env_default(self):
        with patch.dict("os.environ", {}, clear=True):
            config = ReminderConfig.from_env()
            assert config == ReminderConfig()

    def test_config_from_env_custom_values(self):
        with patch.dict("os.environ", {
            "REMINDER_TIMEZONE": "Europe/Berlin",
            "REMINDER_STORAGE_BACKEND": "Postgres",
            "REMINDER_STORAGE_PATH": "/data/reminders.json",
            "REMINDER_TICK_SECONDS": "5",
            "REMINDER_DELIVERY_TIMEOUT": "2.5",
            "REMINDER_RETENTION_HOURS": "48",
        }):
            config = ReminderConfig.from_env()
            assert config.tz == pytz.timezone("Europe/Berlin")
            assert config.storage_backend == "postgres"
            assert config.storage_path == "/data/reminders.json"
            assert config.tick_seconds == 5
            assert config.delivery_timeout == 2.5
            assert config.retention == timedelta(hours=48)

    def test_unknown_backend(self):
        with patch.dict("os.environ", {"REMINDER_STORAGE_BACKEND": "redis"}):
            with pytest.raises(ValueError):
                ReminderConfig.from_env()

    def test_invalid_timezone_falls_back_to_utc(self):
        config = ReminderConfig(timezone="Mars/Olympus_Mons")
        assert config.tz is pytz.UTC
