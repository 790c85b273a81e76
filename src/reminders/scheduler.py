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
Reminder Scheduler Module

Background task loop for checking and delivering scheduled reminders.
Uses discord.ext.tasks for reliable scheduling.
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional

from discord.ext import tasks

from analytics import track

from .clock import Clock
from .delivery import DeliveryError, Notifier
from .models import ReminderEntry
from .store import ReminderStore

logger = logging.getLogger("tickler.reminders.scheduler")


class ReminderScheduler:
    """
    Background scheduler for delivering reminders.

    Every tick it delivers whatever is due, advances each delivered entry
    and flushes the store once. Delivery is attempted once per occurrence:
    a failed or timed-out delivery is logged and the entry still advances.
    """

    def __init__(
        self,
        store: ReminderStore,
        notifier: Notifier,
        clock: Optional[Clock] = None,
        tick_seconds: float = 30,
        delivery_timeout: float = 10,
        wait_until_ready: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        """
        Initialize the reminder scheduler.

        Args:
            store: Shared reminder store
            notifier: Delivers due reminders
            clock: Current-time source (defaults to the store's clock)
            tick_seconds: Interval between ticks
            delivery_timeout: Seconds a single delivery may take
            wait_until_ready: Awaited once before the first tick
        """
        self.store = store
        self.notifier = notifier
        self.clock = clock or store.clock
        self.tick_seconds = tick_seconds
        self.delivery_timeout = delivery_timeout
        self.wait_until_ready = wait_until_ready
        self._started = False

    @property
    def running(self) -> bool:
        return self._started

    def start(self) -> None:
        """Start the scheduler loop."""
        if not self._started:
            self._check_reminders.change_interval(seconds=self.tick_seconds)
            self._check_reminders.start()
            self._started = True
            logger.info(f"Reminder scheduler started (tick every {self.tick_seconds}s)")

    def stop(self) -> None:
        """Stop the scheduler loop."""
        if self._started:
            self._check_reminders.cancel()
            self._started = False
            logger.info("Reminder scheduler stopped")

    @tasks.loop(seconds=30)
    async def _check_reminders(self) -> None:
        """Check for due reminders and deliver them."""
        await self.run_once()

    @_check_reminders.before_loop
    async def _before_check(self) -> None:
        """Wait for the client to be ready before starting the loop."""
        if self.wait_until_ready is not None:
            await self.wait_until_ready()
        logger.info("Reminder scheduler ready, starting loop")

    async def run_once(self, now: Optional[datetime] = None) -> int:
        """
        Run a single scheduler tick.

        Args:
            now: Tick time (defaults to the clock)

        Returns:
            Number of due reminders processed
        """
        processed = 0
        try:
            now = now or self.clock()
            due_reminders = await self.store.due_entries(now)

            if due_reminders:
                logger.info(f"Processing {len(due_reminders)} due reminder(s)")

            for entry in due_reminders:
                await self._deliver_reminder(entry)
                await self.store.advance(entry, now)
                processed += 1

            # No-op unless something changed, including an earlier failed save
            await self.store.flush()

        except Exception as e:
            logger.error(f"Error in reminder scheduler loop: {e}", exc_info=True)
            # Analytics: Track scheduler error
            track(
                "scheduler_error",
                "error",
                properties={
                    "error_type": type(e).__name__,
                    "error_message": str(e)[:200],
                },
            )

        return processed

    async def _deliver_reminder(self, entry: ReminderEntry) -> bool:
        """
        Deliver a single reminder, bounded by the delivery timeout.

        Returns:
            True if delivery succeeded
        """
        try:
            await asyncio.wait_for(
                self.notifier.deliver(entry), timeout=self.delivery_timeout
            )
        except asyncio.TimeoutError:
            error = f"Delivery timed out after {self.delivery_timeout}s"
            logger.error(f"Failed to deliver reminder {entry.id}: {error}")
            self._track_failure(entry, "TimeoutError", error)
            return False
        except DeliveryError as e:
            logger.error(f"Failed to deliver reminder {entry.id}: {e}")
            self._track_failure(entry, type(e).__name__, str(e))
            return False
        except Exception as e:
            logger.error(f"Failed to deliver reminder {entry.id}: {e}", exc_info=True)
            self._track_failure(entry, type(e).__name__, str(e))
            return False

        # Analytics: Track reminder delivered
        track(
            "reminder_delivered",
            "reminder",
            user_id=entry.owner,
            channel_id=entry.destination,
            properties={
                "reminder_id": entry.id,
                "delivery_mode": entry.delivery_mode.value,
                "is_recurring": entry.is_recurring,
                "trigger_number": entry.trigger_count + 1,
            },
        )
        return True

    def _track_failure(self, entry: ReminderEntry, error_type: str, message: str) -> None:
        # Analytics: Track delivery error
        track(
            "reminder_delivery_error",
            "error",
            user_id=entry.owner,
            channel_id=entry.destination,
            properties={
                "reminder_id": entry.id,
                "error_type": error_type,
                "error_message": message[:200],
            },
        )
