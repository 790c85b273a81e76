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

"""Tests for the command-layer reminder service."""

import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from reminders.models import (
    DailyRecurrence,
    DayOfMonth,
    DeliveryMode,
    MonthlyRecurrence,
    RecurrenceError,
)
from reminders.service import ReminderService, format_time_until
from reminders.store import ReminderStore
from reminders.time_parser import TimeParseError

OWNER = 111
CHANNEL = 222


@pytest.fixture
def service(backend, clock):
    return ReminderService(ReminderStore(backend, clock))


class TestOneShot:
    """Test one-time reminder creation."""

    @pytest.mark.asyncio
    async def test_relative_time(self, service):
        reminder_id = await service.add_one_shot(OWNER, CHANNEL, "in 2 hours", "call mom")
        entry = service.store.get(reminder_id)

        assert entry.trigger_at == datetime(2024, 1, 1, 12, 0)
        assert entry.message == "call mom"
        assert entry.delivery_mode == DeliveryMode.PERSONAL
        assert entry.recurrence is None

    @pytest.mark.asyncio
    async def test_default_message(self, service):
        reminder_id = await service.add_one_shot(OWNER, CHANNEL, "tomorrow", "   ")
        assert service.store.get(reminder_id).message == "Reminder"

    @pytest.mark.asyncio
    async def test_broadcast(self, service):
        reminder_id = await service.add_one_shot(
            OWNER,
            CHANNEL,
            "friday at 6pm",
            mode=DeliveryMode.BROADCAST,
            image_ref="https://cdn.example.com/poster.png",
        )
        entry = service.store.get(reminder_id)

        assert entry.message == "Channel Reminder"
        assert entry.delivery_mode == DeliveryMode.BROADCAST
        assert entry.image_ref == "https://cdn.example.com/poster.png"
        assert entry.trigger_at == datetime(2024, 1, 5, 18, 0)

    @pytest.mark.asyncio
    async def test_parse_error_creates_nothing(self, service):
        with pytest.raises(TimeParseError):
            await service.add_one_shot(OWNER, CHANNEL, "in 400 days", "too far")
        assert service.store.entries == []


class TestRecurring:
    """Test recurring reminder creation."""

    @pytest.mark.asyncio
    async def test_daily(self, service):
        reminder_id = await service.add_recurring(OWNER, CHANNEL, "every day at 9am")
        entry = service.store.get(reminder_id)

        assert entry.recurrence == DailyRecurrence(1)
        assert entry.trigger_at == datetime(2024, 1, 2, 9, 0)
        assert entry.message == "Daily reminder"

    @pytest.mark.asyncio
    async def test_monthly_default_message(self, service):
        reminder_id = await service.add_recurring(OWNER, CHANNEL, "every month on the 15th")
        entry = service.store.get(reminder_id)

        assert entry.recurrence == MonthlyRecurrence(1, DayOfMonth(15))
        assert entry.trigger_at == datetime(2024, 1, 15, 9, 0)
        assert entry.message == "Monthly reminder"

    @pytest.mark.asyncio
    async def test_bounds(self, service):
        reminder_id = await service.add_recurring(
            OWNER, CHANNEL, "every day at 9am", "standup", until="jan 10", max_triggers=3
        )
        entry = service.store.get(reminder_id)

        assert entry.end_at == datetime(2024, 1, 10, 9, 0)
        assert entry.max_triggers == 3

    @pytest.mark.asyncio
    async def test_end_before_first_trigger(self, service):
        with pytest.raises(RecurrenceError, match="before the first reminder"):
            await service.add_recurring(OWNER, CHANNEL, "every day at 9am", until="in 1 hour")
        assert service.store.entries == []

    @pytest.mark.asyncio
    async def test_invalid_max_triggers(self, service):
        with pytest.raises(RecurrenceError):
            await service.add_recurring(OWNER, CHANNEL, "daily", max_triggers=0)

    @pytest.mark.asyncio
    async def test_bad_descriptor(self, service):
        with pytest.raises(RecurrenceError):
            await service.add_recurring(OWNER, CHANNEL, "every blue moon")
        assert service.store.entries == []


class TestListAndCancel:
    """Test delegation to the store."""

    @pytest.mark.asyncio
    async def test_list_then_cancel(self, service):
        reminder_id = await service.add_one_shot(OWNER, CHANNEL, "in 5 minutes", "tea")

        assert [e.id for e in await service.list(OWNER, CHANNEL)] == [reminder_id]
        assert await service.cancel(OWNER, CHANNEL, reminder_id[:8]) is True
        assert await service.list(OWNER, CHANNEL) == []
        assert await service.cancel(OWNER, CHANNEL, reminder_id[:8]) is False


class TestConfirmation:
    """Test confirmation text."""

    @pytest.mark.asyncio
    async def test_one_shot(self, service):
        reminder_id = await service.add_one_shot(OWNER, CHANNEL, "in 2 hours 5 minutes", "tea")
        text = service.confirmation(reminder_id)

        assert "in 2 hours and 5 minutes" in text
        assert "Jan 01 2024 at 12:05 PM" in text
        assert "tea" in text

    @pytest.mark.asyncio
    async def test_recurring(self, service):
        reminder_id = await service.add_recurring(
            OWNER, CHANNEL, "every monday and friday at 9am", max_triggers=3
        )
        text = service.confirmation(reminder_id)

        assert "every Monday and Friday" in text
        assert "Stops after 3 reminders" in text
        assert "in 3 days and 23 hours" in text

    def test_unknown_id(self, service):
        assert service.confirmation("nope") == "Reminder not found."


class TestTimeUntil:
    """Test duration phrasing."""

    @pytest.mark.parametrize(
        "delta, expected",
        [
            (timedelta(hours=2, minutes=5), "in 2 hours and 5 minutes"),
            (timedelta(days=1, hours=1, minutes=1), "in 1 day, 1 hour and 1 minute"),
            (timedelta(seconds=30), "in 30 seconds"),
            (timedelta(hours=2, seconds=30), "in 2 hours"),
            (timedelta(0), "now"),
            (timedelta(minutes=-5), "now"),
        ],
    )
    def test_format(self, delta, expected):
        assert format_time_until(delta) == expected
