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
Reminder Delivery

The Notifier contract used by the scheduler, and its Discord implementation.
"""

import logging
from typing import Protocol

import discord

from .models import DeliveryMode, ReminderEntry, ReminderError
from .recurrence import next_trigger, recurrence_label

logger = logging.getLogger("tickler.reminders.delivery")

BLURPLE = discord.Color.from_rgb(88, 101, 242)


class DeliveryError(ReminderError):
    """Raised when a reminder could not be delivered."""

    pass


class Notifier(Protocol):
    """Delivers a due reminder to its destination."""

    async def deliver(self, entry: ReminderEntry) -> None:
        """
        Deliver one reminder.

        Personal reminders must mention the owner; broadcast reminders must
        not, and attach the entry's image if it has one.

        Raises:
            DeliveryError: If delivery failed
        """
        ...


def _format_time(dt) -> str:
    return dt.strftime("%b %d, %Y at %I:%M %p").replace(" 0", " ")


def _is_final(entry: ReminderEntry, upcoming) -> bool:
    if upcoming is None:
        return True
    if entry.end_at is not None and upcoming > entry.end_at:
        return True
    return entry.max_triggers is not None and entry.trigger_count + 1 >= entry.max_triggers


def build_reminder_embed(entry: ReminderEntry) -> discord.Embed:
    """
    Build the embed for a reminder delivery.

    Args:
        entry: The reminder being delivered

    Returns:
        Discord embed
    """
    upcoming = next_trigger(entry.recurrence, entry.trigger_at) if entry.recurrence else None

    if entry.delivery_mode == DeliveryMode.BROADCAST:
        embed = discord.Embed(
            title=f"📢 {entry.message}",
            color=BLURPLE,
            timestamp=entry.trigger_at,
        )
        if entry.image_ref:
            embed.set_image(url=entry.image_ref)
        footer = recurrence_label(entry.recurrence)
        if upcoming is not None and not _is_final(entry, upcoming):
            footer += f" • Next: {_format_time(upcoming)}"
        embed.set_footer(text=footer)
        return embed

    embed = discord.Embed(
        title="🔄 Recurring Reminder!" if entry.is_recurring else "⏰ Reminder!",
        description=entry.message,
        color=discord.Color.blue() if entry.is_recurring else discord.Color.orange(),
        timestamp=entry.trigger_at,
    )

    footer = f"Set on {_format_time(entry.created_at)}"
    if entry.is_recurring:
        footer += f" • Trigger #{entry.trigger_count + 1}"
        if _is_final(entry, upcoming):
            embed.add_field(name="Status", value="This was the final reminder", inline=True)
        else:
            embed.add_field(name="Next Reminder", value=_format_time(upcoming), inline=True)
    embed.set_footer(text=footer)
    return embed


class DiscordNotifier:
    """Delivers reminders to Discord text channels."""

    def __init__(self, bot: discord.Client):
        """
        Initialize the notifier.

        Args:
            bot: Connected Discord client
        """
        self.bot = bot

    async def _resolve_channel(self, channel_id: int) -> discord.abc.Messageable:
        channel = self.bot.get_channel(channel_id)
        if channel is not None:
            return channel
        try:
            return await self.bot.fetch_channel(channel_id)
        except discord.NotFound:
            raise DeliveryError("Channel not found (deleted)")
        except discord.Forbidden:
            raise DeliveryError("No access to channel")

    async def deliver(self, entry: ReminderEntry) -> None:
        channel = await self._resolve_channel(entry.destination)
        embed = build_reminder_embed(entry)

        try:
            if entry.delivery_mode == DeliveryMode.BROADCAST:
                await channel.send(
                    embed=embed,
                    allowed_mentions=discord.AllowedMentions.none(),
                )
            else:
                await channel.send(
                    f"<@{entry.owner}>",
                    embed=embed,
                    allowed_mentions=discord.AllowedMentions(users=True),
                )
        except discord.HTTPException as e:
            raise DeliveryError(f"Discord rejected reminder {entry.id}: {e}") from e

        logger.info(
            f"Delivered {entry.delivery_mode.value} reminder {entry.id} "
            f"to channel {entry.destination}"
        )
