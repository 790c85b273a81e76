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
Reminder Store Module

Owns the reminder collection, its lifecycle transitions and persistence.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional

import pytz

from .clock import Clock, add_elapsed
from .models import RecurrenceError, ReminderDraft, ReminderEntry
from .recurrence import next_trigger
from .storage import StorageBackend, StorageError, decode_document, encode_document

logger = logging.getLogger("tickler.reminders.store")

# Upper bound on missed occurrences skipped in one advance
MAX_CATCH_UP = 10_000


class ReminderStore:
    """
    In-memory reminder collection backed by a StorageBackend.

    The command layer (add, cancel, list) and the scheduler (due_entries,
    advance, flush) share one instance; every operation runs under a single
    asyncio lock. add and cancel persist before returning, while scheduler
    advances are buffered until flush().
    """

    def __init__(
        self,
        backend: StorageBackend,
        clock: Clock,
        tz: Optional[pytz.BaseTzInfo] = None,
        retention: timedelta = timedelta(hours=24),
    ):
        """
        Initialize the reminder store.

        Args:
            backend: Where the serialized document lives
            clock: Returns the current time
            tz: Zone stored instants are converted into on load
            retention: How long fired one-time reminders are kept
        """
        self.backend = backend
        self.clock = clock
        self.tz = tz
        self.retention = retention
        self._entries: list[ReminderEntry] = []
        self._lock = asyncio.Lock()
        self._dirty = False

    @property
    def entries(self) -> list[ReminderEntry]:
        """Snapshot of every stored entry, retired ones included."""
        return list(self._entries)

    @property
    def dirty(self) -> bool:
        """True when in-memory state is ahead of the backend."""
        return self._dirty

    def get(self, reminder_id: str) -> Optional[ReminderEntry]:
        return next((e for e in self._entries if e.id == reminder_id), None)

    # =========================================================================
    # Persistence
    # =========================================================================

    async def load(self) -> int:
        """
        Load reminders from the backend.

        A missing document starts an empty store; a corrupt one is replaced
        with an empty document. Fired one-time reminders older than the
        retention window are dropped.

        Returns:
            Number of reminders loaded
        """
        async with self._lock:
            try:
                data = await self.backend.read()
            except StorageError as e:
                logger.error(f"Failed to load reminders, starting empty: {e}")
                self._entries = []
                return 0

            entries = self._decode(data) if data is not None else []

            cutoff = add_elapsed(self.clock(), -self.retention)
            kept = [
                e for e in entries
                if not (e.retired and not e.is_recurring and e.trigger_at < cutoff)
            ]
            pruned = len(entries) - len(kept)
            if pruned:
                self._dirty = True

            self._entries = kept
            if self._dirty:
                await self._save()

        logger.info(f"Loaded {len(kept)} reminders ({pruned} expired pruned)")
        return len(kept)

    def _decode(self, data: bytes) -> list[ReminderEntry]:
        try:
            records = decode_document(data)
        except ValueError as e:
            logger.error(f"Reminder document is corrupt, replacing with empty set: {e}")
            self._dirty = True
            return []

        entries = []
        for record in records:
            try:
                entries.append(ReminderEntry.from_dict(record, self.tz))
            except (AttributeError, KeyError, TypeError, ValueError, RecurrenceError) as e:
                logger.warning(f"Dropping malformed reminder record: {e}")
                self._dirty = True
        return entries

    async def _save(self) -> bool:
        data = encode_document([e.to_dict() for e in self._entries])
        try:
            await self.backend.write(data)
        except StorageError as e:
            # Stay dirty so the next mutation or flush retries
            logger.error(f"Failed to save reminders: {e}")
            self._dirty = True
            return False
        self._dirty = False
        return True

    async def flush(self) -> bool:
        """
        Persist buffered changes, if any.

        Returns:
            True if a save happened and succeeded
        """
        async with self._lock:
            if not self._dirty:
                return False
            return await self._save()

    # =========================================================================
    # Command-facing methods
    # =========================================================================

    async def add(self, draft: ReminderDraft) -> str:
        """
        Create a reminder and persist it before returning.

        Args:
            draft: Reminder details from the command layer

        Returns:
            The ID of the created reminder
        """
        async with self._lock:
            entry = ReminderEntry(
                id=str(uuid.uuid4()),
                owner=draft.owner,
                destination=draft.destination,
                trigger_at=draft.trigger_at,
                message=draft.message,
                created_at=self.clock(),
                delivery_mode=draft.delivery_mode,
                image_ref=draft.image_ref,
                recurrence=draft.recurrence,
                end_at=draft.end_at,
                max_triggers=draft.max_triggers,
            )
            self._entries.append(entry)
            await self._save()

        logger.info(
            f"Created reminder {entry.id} for user {entry.owner}: "
            f"next={entry.trigger_at}, recurring={entry.is_recurring}"
        )
        return entry.id

    async def list_for(self, owner: int, destination: int) -> list[ReminderEntry]:
        """
        List a user's active reminders in one destination.

        Returns:
            Non-retired, non-exhausted entries ordered by next trigger
        """
        async with self._lock:
            matches = [
                e for e in self._entries
                if e.owner == owner and e.destination == destination and e.is_active
            ]
        return sorted(matches, key=lambda e: e.trigger_at)

    async def cancel(self, owner: int, destination: int, id_or_prefix: str) -> bool:
        """
        Cancel (delete) a reminder by full ID or unique ID prefix.

        Args:
            owner: Must match the reminder's owner
            destination: Must match the destination it was created in
            id_or_prefix: Full reminder ID or a prefix of it

        Returns:
            True if deleted, False if not found, not owned or ambiguous
        """
        key = id_or_prefix.strip().lower()
        if not key:
            return False

        async with self._lock:
            scoped = [
                e for e in self._entries
                if e.owner == owner and e.destination == destination and not e.retired
            ]
            match = next((e for e in scoped if e.id == key), None)
            if match is None:
                candidates = [e for e in scoped if e.id.startswith(key)]
                if len(candidates) > 1:
                    logger.info(
                        f"Prefix '{key}' matches {len(candidates)} reminders for user {owner}"
                    )
                    return False
                match = candidates[0] if candidates else None

            if match is None:
                return False

            self._entries.remove(match)
            await self._save()

        logger.info(f"Cancelled reminder {match.id} for user {owner}")
        return True

    # =========================================================================
    # Scheduler-facing methods
    # =========================================================================

    async def due_entries(self, now: Optional[datetime] = None) -> list[ReminderEntry]:
        """
        Get all reminders that are due for delivery.

        Args:
            now: Reference time (defaults to the store clock)

        Returns:
            Active entries with trigger_at <= now, oldest first
        """
        now = now or self.clock()
        async with self._lock:
            due = [e for e in self._entries if e.is_active and e.trigger_at <= now]
        return sorted(due, key=lambda e: e.trigger_at)

    async def advance(self, entry: ReminderEntry, now: Optional[datetime] = None) -> None:
        """
        Move a delivered reminder to its next state.

        One-time reminders retire. Recurring reminders move to their next
        occurrence, or retire when a bound is reached. The change is buffered
        until flush().

        Args:
            entry: The entry that was just due
            now: Current time; occurrences at or before it are skipped
        """
        now = now or self.clock()
        async with self._lock:
            if not any(e is entry for e in self._entries):
                logger.info(f"Reminder {entry.id} was cancelled before it could advance")
                return
            self._advance(entry, now)
            self._dirty = True

    def _advance(self, entry: ReminderEntry, now: datetime) -> None:
        if entry.recurrence is None:
            entry.trigger_count += 1
            entry.retired = True
            logger.info(f"One-time reminder {entry.id} completed")
            return

        if entry.max_triggers is not None and entry.trigger_count >= entry.max_triggers:
            entry.retired = True
            logger.info(f"Reminder {entry.id} retired after {entry.trigger_count} triggers")
            return

        next_at = next_trigger(entry.recurrence, entry.trigger_at)
        skipped = 0
        while next_at is not None and next_at <= now and skipped < MAX_CATCH_UP:
            next_at = next_trigger(entry.recurrence, next_at)
            skipped += 1
        if skipped:
            logger.warning(f"Reminder {entry.id} skipped {skipped} missed occurrence(s)")

        if next_at is None or (entry.end_at is not None and next_at > entry.end_at):
            entry.trigger_count += 1
            entry.retired = True
            logger.info(f"Recurring reminder {entry.id} has ended")
            return

        entry.trigger_at = next_at
        entry.trigger_count += 1
        if entry.max_triggers is not None and entry.trigger_count >= entry.max_triggers:
            entry.retired = True
            logger.info(f"Reminder {entry.id} retired after {entry.trigger_count} triggers")
            return
        logger.info(f"Reminder {entry.id} executed, next at {next_at}")
