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

"""Tests for the reminder scheduler tick."""

import asyncio
import sys
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from reminders.delivery import DeliveryError
from reminders.models import DailyRecurrence, ReminderDraft
from reminders.scheduler import ReminderScheduler
from reminders.storage import decode_document
from reminders.store import ReminderStore

OWNER = 111
CHANNEL = 222


def draft(trigger_at: datetime, recurrence=None, max_triggers=None) -> ReminderDraft:
    return ReminderDraft(
        owner=OWNER,
        destination=CHANNEL,
        trigger_at=trigger_at,
        message="drink water",
        recurrence=recurrence,
        max_triggers=max_triggers,
    )


@pytest.fixture
def store(backend, clock):
    return ReminderStore(backend, clock)


@pytest.fixture
def notifier():
    mock = MagicMock()
    mock.deliver = AsyncMock()
    return mock


@pytest.fixture
def mock_track():
    with patch("reminders.scheduler.track") as mock:
        yield mock


class TestRunOnce:
    """Test a single scheduler tick."""

    @pytest.mark.asyncio
    async def test_nothing_due(self, store, notifier, mock_track):
        await store.add(draft(datetime(2024, 1, 1, 12, 0)))
        scheduler = ReminderScheduler(store, notifier)

        assert await scheduler.run_once(datetime(2024, 1, 1, 11, 59)) == 0
        notifier.deliver.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delivers_and_retires_one_shot(self, store, backend, notifier, mock_track):
        reminder_id = await store.add(draft(datetime(2024, 1, 1, 12, 0)))
        scheduler = ReminderScheduler(store, notifier)
        writes = backend.writes

        assert await scheduler.run_once(datetime(2024, 1, 1, 12, 0)) == 1

        (delivered,) = notifier.deliver.await_args.args
        assert delivered.id == reminder_id
        assert store.get(reminder_id).retired is True
        # One flush for the whole tick
        assert backend.writes == writes + 1
        assert mock_track.call_args.args[0] == "reminder_delivered"

        assert await scheduler.run_once(datetime(2024, 1, 1, 12, 1)) == 0
        assert notifier.deliver.await_count == 1

    @pytest.mark.asyncio
    async def test_uses_clock_when_no_time_given(self, store, clock, notifier, mock_track):
        await store.add(draft(clock()))
        scheduler = ReminderScheduler(store, notifier)

        assert await scheduler.run_once() == 1

    @pytest.mark.asyncio
    async def test_due_entries_delivered_oldest_first(self, store, notifier, mock_track):
        late = await store.add(draft(datetime(2024, 1, 1, 11, 0)))
        early = await store.add(draft(datetime(2024, 1, 1, 10, 30)))
        scheduler = ReminderScheduler(store, notifier)

        assert await scheduler.run_once(datetime(2024, 1, 1, 12, 0)) == 2
        order = [c.args[0].id for c in notifier.deliver.await_args_list]
        assert order == [early, late]

    @pytest.mark.asyncio
    async def test_recurring_moves_to_next_occurrence(self, store, notifier, mock_track):
        reminder_id = await store.add(
            draft(datetime(2024, 1, 1, 9, 0), recurrence=DailyRecurrence(1))
        )
        scheduler = ReminderScheduler(store, notifier)

        await scheduler.run_once(datetime(2024, 1, 1, 9, 0, 30))
        entry = store.get(reminder_id)
        assert entry.trigger_at == datetime(2024, 1, 2, 9, 0)
        assert entry.trigger_count == 1
        assert entry.retired is False

    @pytest.mark.asyncio
    async def test_last_allowed_delivery_retires(self, store, backend, notifier, mock_track):
        reminder_id = await store.add(
            draft(datetime(2024, 1, 1, 9, 0), recurrence=DailyRecurrence(1), max_triggers=1)
        )
        scheduler = ReminderScheduler(store, notifier)

        for day in range(5):
            await scheduler.run_once(datetime(2024, 1, 1 + day, 9, 0, 30))

        notifier.deliver.assert_awaited_once()
        entry = store.get(reminder_id)
        assert entry.trigger_count == 1
        assert entry.retired is True
        (saved,) = decode_document(backend.data)
        assert saved["retired"] is True


class TestDeliveryFailures:
    """Failed deliveries are logged and the entry still advances."""

    @pytest.mark.asyncio
    async def test_delivery_error_still_advances(self, store, notifier, mock_track):
        notifier.deliver.side_effect = DeliveryError("Channel not found (deleted)")
        first = await store.add(draft(datetime(2024, 1, 1, 9, 0)))
        second = await store.add(draft(datetime(2024, 1, 1, 9, 30)))
        scheduler = ReminderScheduler(store, notifier)

        assert await scheduler.run_once(datetime(2024, 1, 1, 10, 0)) == 2
        assert store.get(first).retired is True
        assert store.get(second).retired is True

        events = [c.args[0] for c in mock_track.call_args_list]
        assert events == ["reminder_delivery_error", "reminder_delivery_error"]

    @pytest.mark.asyncio
    async def test_unexpected_error_still_advances(self, store, notifier, mock_track):
        notifier.deliver.side_effect = RuntimeError("boom")
        reminder_id = await store.add(draft(datetime(2024, 1, 1, 9, 0)))
        scheduler = ReminderScheduler(store, notifier)

        assert await scheduler.run_once(datetime(2024, 1, 1, 10, 0)) == 1
        assert store.get(reminder_id).retired is True

    @pytest.mark.asyncio
    async def test_slow_delivery_times_out(self, store, notifier, mock_track):
        async def stall(entry):
            await asyncio.sleep(10)

        notifier.deliver.side_effect = stall
        reminder_id = await store.add(draft(datetime(2024, 1, 1, 9, 0)))
        scheduler = ReminderScheduler(store, notifier, delivery_timeout=0.01)

        assert await scheduler.run_once(datetime(2024, 1, 1, 10, 0)) == 1
        assert store.get(reminder_id).retired is True
        props = mock_track.call_args.kwargs["properties"]
        assert props["error_type"] == "TimeoutError"

    @pytest.mark.asyncio
    async def test_store_failure_never_escapes(self, store, notifier, mock_track):
        scheduler = ReminderScheduler(store, notifier)

        with patch.object(store, "due_entries", AsyncMock(side_effect=RuntimeError("bad"))):
            assert await scheduler.run_once(datetime(2024, 1, 1, 10, 0)) == 0

        assert mock_track.call_args.args[0] == "scheduler_error"

    @pytest.mark.asyncio
    async def test_failed_flush_retried_next_tick(self, store, backend, notifier, mock_track):
        reminder_id = await store.add(draft(datetime(2024, 1, 1, 9, 0)))
        backend.fail_writes = True
        scheduler = ReminderScheduler(store, notifier)

        assert await scheduler.run_once(datetime(2024, 1, 1, 10, 0)) == 1
        assert store.dirty is True

        backend.fail_writes = False
        assert await scheduler.run_once(datetime(2024, 1, 1, 10, 1)) == 0
        assert store.dirty is False
        assert store.get(reminder_id).retired is True
        notifier.deliver.assert_awaited_once()


class TestLoopControl:
    """Test start/stop of the background loop."""

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, store, notifier):
        ready = asyncio.Event()
        scheduler = ReminderScheduler(
            store, notifier, tick_seconds=60, wait_until_ready=ready.wait
        )

        scheduler.start()
        scheduler.start()
        assert scheduler.running is True
        assert scheduler._check_reminders.seconds == 60

        scheduler.stop()
        assert scheduler.running is False
        await asyncio.sleep(0)

    def test_clock_defaults_to_store_clock(self, store, notifier):
        scheduler = ReminderScheduler(store, notifier)
        assert scheduler.clock is store.clock
        assert scheduler.delivery_timeout == 10
        assert scheduler.tick_seconds == 30
