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
Reminder Service

Command-layer entry points. Turns raw user input into store operations and
builds the confirmation text shown back to the user.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from .clock import Clock, wall_clock
from .models import (
    DailyRecurrence,
    DeliveryMode,
    MonthlyRecurrence,
    RecurrenceError,
    ReminderDraft,
    ReminderEntry,
    WeeklyRecurrence,
)
from .recurrence import describe_recurrence, first_trigger, parse_recurrence
from .store import ReminderStore
from .time_parser import parse_time_expression

logger = logging.getLogger("tickler.reminders.service")

DEFAULT_MESSAGE = "Reminder"
DEFAULT_BROADCAST_MESSAGE = "Channel Reminder"
DEFAULT_RECURRING_MESSAGES = {
    DailyRecurrence: "Daily reminder",
    WeeklyRecurrence: "Weekly reminder",
    MonthlyRecurrence: "Monthly reminder",
}


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'}"


def format_time_until(delta: timedelta) -> str:
    """
    Describe a duration as a phrase like "in 2 hours and 5 minutes".

    Seconds are only shown for durations under a minute.
    """
    if delta <= timedelta(0):
        return "now"

    total = int(delta.total_seconds())
    days, remainder = divmod(total, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes, seconds = divmod(remainder, 60)

    parts = []
    if days:
        parts.append(_plural(days, "day"))
    if hours:
        parts.append(_plural(hours, "hour"))
    if minutes:
        parts.append(_plural(minutes, "minute"))
    if total < 60:
        parts.append(_plural(seconds, "second"))

    if len(parts) == 1:
        return f"in {parts[0]}"
    return f"in {', '.join(parts[:-1])} and {parts[-1]}"


def format_when(dt: datetime) -> str:
    """Absolute time for display, e.g. "Mon, Jan 01 2024 at 12:00 PM"."""
    text = dt.strftime("%a, %b %d %Y at %I:%M %p")
    zone = dt.strftime("%Z") if dt.tzinfo else ""
    return f"{text} {zone}".strip()


def format_confirmation(entry: ReminderEntry, now: datetime) -> str:
    """Build the confirmation message for a newly created reminder."""
    until = format_time_until(entry.trigger_at - now)
    when = format_when(entry.trigger_at)

    if not entry.is_recurring:
        icon = "📢" if entry.delivery_mode == DeliveryMode.BROADCAST else "⏰"
        return f"{icon} Reminder set for **{when}** ({until})\n> {entry.message}"

    lines = [
        f"🔄 Recurring reminder set: **{describe_recurrence(entry.recurrence)}** "
        f"at {wall_clock(entry.trigger_at).strftime('%I:%M %p')}",
        f"First reminder: **{when}** ({until})",
    ]
    if entry.end_at is not None:
        lines.append(f"Ends: {format_when(entry.end_at)}")
    if entry.max_triggers is not None:
        lines.append(f"Stops after {_plural(entry.max_triggers, 'reminder')}")
    lines.append(f"> {entry.message}")
    return "\n".join(lines)


class ReminderService:
    """
    Creates, lists and cancels reminders on behalf of users.

    Parse failures raise TimeParseError or RecurrenceError with a message
    that can be shown to the user as-is; nothing is stored in that case.
    """

    def __init__(self, store: ReminderStore, clock: Optional[Clock] = None):
        self.store = store
        self.clock = clock or store.clock

    async def add_one_shot(
        self,
        owner: int,
        destination: int,
        expr: str,
        message: str = "",
        *,
        mode: DeliveryMode = DeliveryMode.PERSONAL,
        image_ref: Optional[str] = None,
    ) -> str:
        """
        Create a one-time reminder.

        Args:
            owner: User creating the reminder
            destination: Channel the reminder is delivered to
            expr: Time expression ("in 2 hours", "friday at 3pm", ...)
            message: Reminder text (a default is used if blank)
            mode: Personal (mentions the owner) or broadcast
            image_ref: Image URL for broadcast reminders

        Returns:
            ID of the new reminder

        Raises:
            TimeParseError: If the time expression is not understood
        """
        now = self.clock()
        trigger_at = parse_time_expression(expr, now)

        if not message or not message.strip():
            message = (
                DEFAULT_BROADCAST_MESSAGE if mode == DeliveryMode.BROADCAST else DEFAULT_MESSAGE
            )

        draft = ReminderDraft(
            owner=owner,
            destination=destination,
            trigger_at=trigger_at,
            message=message.strip(),
            delivery_mode=mode,
            image_ref=image_ref,
        )
        return await self.store.add(draft)

    async def add_recurring(
        self,
        owner: int,
        destination: int,
        descriptor: str,
        message: str = "",
        *,
        until: Optional[str] = None,
        max_triggers: Optional[int] = None,
        mode: DeliveryMode = DeliveryMode.PERSONAL,
        image_ref: Optional[str] = None,
    ) -> str:
        """
        Create a recurring reminder.

        Args:
            owner: User creating the reminder
            destination: Channel the reminder is delivered to
            descriptor: Recurrence descriptor ("every weekday at 9am", ...)
            message: Reminder text (a default is used if blank)
            until: Optional time expression after which it stops
            max_triggers: Optional number of deliveries after which it stops
            mode: Personal (mentions the owner) or broadcast
            image_ref: Image URL for broadcast reminders

        Returns:
            ID of the new reminder

        Raises:
            RecurrenceError: If the descriptor or bounds are invalid
            TimeParseError: If `until` is not understood
        """
        if max_triggers is not None and max_triggers < 1:
            raise RecurrenceError("Number of reminders must be at least 1")

        now = self.clock()
        parsed = parse_recurrence(descriptor, now)
        trigger_at = first_trigger(parsed.spec, parsed.anchor_time, now)

        end_at = None
        if until:
            end_at = parse_time_expression(until, now)
            if end_at < trigger_at:
                raise RecurrenceError(
                    f"End time {format_when(end_at)} is before the first reminder "
                    f"({format_when(trigger_at)})"
                )

        if not message or not message.strip():
            if mode == DeliveryMode.BROADCAST:
                message = DEFAULT_BROADCAST_MESSAGE
            else:
                message = DEFAULT_RECURRING_MESSAGES[type(parsed.spec)]

        draft = ReminderDraft(
            owner=owner,
            destination=destination,
            trigger_at=trigger_at,
            message=message.strip(),
            delivery_mode=mode,
            image_ref=image_ref,
            recurrence=parsed.spec,
            end_at=end_at,
            max_triggers=max_triggers,
        )
        return await self.store.add(draft)

    async def list(self, owner: int, destination: int) -> list[ReminderEntry]:
        """Active reminders for a user in one channel, soonest first."""
        return await self.store.list_for(owner, destination)

    async def cancel(self, owner: int, destination: int, reminder_id: str) -> bool:
        """Cancel a reminder by ID or ID prefix. Returns False if not found."""
        return await self.store.cancel(owner, destination, reminder_id)

    def confirmation(self, reminder_id: str) -> str:
        """Confirmation text for a reminder that was just created."""
        entry = self.store.get(reminder_id)
        if entry is None:
            return "Reminder not found."
        return format_confirmation(entry, self.clock())
