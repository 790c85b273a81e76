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
Reminder Slash Commands

Discord slash commands for managing scheduled reminders.
"""

import logging
from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from analytics import track
from reminders import DeliveryMode, ReminderError, ReminderService, format_time_until
from reminders.recurrence import PRESETS, recurrence_label

logger = logging.getLogger("tickler.commands.reminder")

# Reminders shown by /remind list
LIST_LIMIT = 10

# Characters of the reminder ID shown to users
SHORT_ID_LENGTH = 8

SET_EXAMPLES = (
    "**Examples:**\n"
    "- `in 2 hours 30 minutes`\n"
    "- `tomorrow at 10am`\n"
    "- `friday at 3pm`\n"
    "- `dec 25 at 18:00`\n"
    "- `12/25 @ 9am`"
)

EVERY_EXAMPLES = (
    "**Examples:**\n"
    "- `every day at 9am`\n"
    "- `every 2 weeks on tuesday and friday at 14:00`\n"
    "- `weekdays at 8:30am`\n"
    "- `every month on the 15th`\n"
    "- `every month on the last friday at 6pm`"
)


def is_recurring_descriptor(text: str) -> bool:
    """True if the schedule text describes a recurrence rather than one instant."""
    text = text.strip().lower()
    return text.startswith("every ") or text.split(" ")[0] in PRESETS


class ReminderCommands(commands.Cog):
    """
    Slash commands for reminder management.

    Commands:
    - /remind set - Create a one-time reminder
    - /remind every - Create a recurring reminder
    - /remind broadcast - Post a reminder to a channel (admin only)
    - /remind list - List your reminders in this channel
    - /remind cancel - Cancel a reminder
    """

    remind_group = app_commands.Group(
        name="remind",
        description="Manage your scheduled reminders",
    )

    def __init__(
        self,
        bot: commands.Bot,
        service: ReminderService,
        owner_id: Optional[str] = None,
    ):
        self.bot = bot
        self.service = service
        self.owner_id = int(owner_id) if owner_id else None

    def _track_command(self, interaction: discord.Interaction, subcommand: str) -> None:
        # Analytics: Track command usage
        track(
            "command_used",
            "command",
            user_id=interaction.user.id,
            channel_id=interaction.channel_id,
            guild_id=interaction.guild.id if interaction.guild else None,
            properties={"command_name": "remind", "subcommand": subcommand},
        )

    def _track_created(
        self, interaction: discord.Interaction, reminder_id: str, mode: DeliveryMode
    ) -> None:
        entry = self.service.store.get(reminder_id)
        # Analytics: Track reminder created
        track(
            "reminder_created",
            "reminder",
            user_id=interaction.user.id,
            channel_id=interaction.channel_id,
            guild_id=interaction.guild.id if interaction.guild else None,
            properties={
                "reminder_id": reminder_id,
                "is_recurring": entry.is_recurring if entry else False,
                "delivery_mode": mode.value,
            },
        )

    async def _confirm(self, interaction: discord.Interaction, reminder_id: str) -> None:
        text = self.service.confirmation(reminder_id)
        await interaction.followup.send(
            f"{text}\nID: `{reminder_id[:SHORT_ID_LENGTH]}`",
            ephemeral=True,
        )

    # =========================================================================
    # /remind set
    # =========================================================================

    @remind_group.command(name="set")
    @app_commands.describe(
        time="When to remind (e.g., 'in 2 hours', 'tomorrow at 10am', 'friday 3pm')",
        message="The reminder message (default: 'Reminder')",
    )
    async def set_reminder(
        self,
        interaction: discord.Interaction,
        time: str,
        message: Optional[str] = None,
    ):
        """Create a one-time reminder in this channel."""
        await interaction.response.defer(ephemeral=True)
        self._track_command(interaction, "set")

        try:
            reminder_id = await self.service.add_one_shot(
                interaction.user.id,
                interaction.channel_id,
                time,
                message or "",
            )
        except ReminderError as e:
            await interaction.followup.send(
                f"Could not parse time: {e}\n\n{SET_EXAMPLES}",
                ephemeral=True,
            )
            return

        await self._confirm(interaction, reminder_id)
        self._track_created(interaction, reminder_id, DeliveryMode.PERSONAL)

    # =========================================================================
    # /remind every
    # =========================================================================

    @remind_group.command(name="every")
    @app_commands.describe(
        schedule="How often (e.g., 'every day at 9am', 'every month on the 15th')",
        message="The reminder message",
        until="Optional: stop after this time (e.g., 'dec 31')",
        times="Optional: stop after this many reminders",
    )
    async def every_reminder(
        self,
        interaction: discord.Interaction,
        schedule: str,
        message: Optional[str] = None,
        until: Optional[str] = None,
        times: Optional[app_commands.Range[int, 1, 1000]] = None,
    ):
        """Create a recurring reminder in this channel."""
        await interaction.response.defer(ephemeral=True)
        self._track_command(interaction, "every")

        try:
            reminder_id = await self.service.add_recurring(
                interaction.user.id,
                interaction.channel_id,
                schedule,
                message or "",
                until=until,
                max_triggers=times,
            )
        except ReminderError as e:
            await interaction.followup.send(f"{e}\n\n{EVERY_EXAMPLES}", ephemeral=True)
            return

        await self._confirm(interaction, reminder_id)
        self._track_created(interaction, reminder_id, DeliveryMode.PERSONAL)

    # =========================================================================
    # /remind broadcast
    # =========================================================================

    @remind_group.command(name="broadcast")
    @app_commands.describe(
        schedule="When to post (e.g., 'tomorrow at 6pm' or 'every friday at 5pm')",
        message="Announcement text (default: 'Channel Reminder')",
        image="Optional image to attach",
        channel="Channel to post in (default: this channel)",
    )
    async def broadcast_reminder(
        self,
        interaction: discord.Interaction,
        schedule: str,
        message: Optional[str] = None,
        image: Optional[discord.Attachment] = None,
        channel: Optional[discord.TextChannel] = None,
    ):
        """Schedule an announcement without pinging anyone (admin only)."""
        await interaction.response.defer(ephemeral=True)
        self._track_command(interaction, "broadcast")

        if self.owner_id is None or interaction.user.id != self.owner_id:
            await interaction.followup.send(
                "Channel broadcasts are only available to the bot admin.",
                ephemeral=True,
            )
            return

        if image is not None and not (image.content_type or "").startswith("image/"):
            await interaction.followup.send(
                f"`{image.filename}` is not an image.",
                ephemeral=True,
            )
            return

        destination = channel.id if channel else interaction.channel_id
        image_ref = image.url if image else None

        try:
            if is_recurring_descriptor(schedule):
                reminder_id = await self.service.add_recurring(
                    interaction.user.id,
                    destination,
                    schedule,
                    message or "",
                    mode=DeliveryMode.BROADCAST,
                    image_ref=image_ref,
                )
            else:
                reminder_id = await self.service.add_one_shot(
                    interaction.user.id,
                    destination,
                    schedule,
                    message or "",
                    mode=DeliveryMode.BROADCAST,
                    image_ref=image_ref,
                )
        except ReminderError as e:
            await interaction.followup.send(f"{e}", ephemeral=True)
            return

        await self._confirm(interaction, reminder_id)
        self._track_created(interaction, reminder_id, DeliveryMode.BROADCAST)

    # =========================================================================
    # /remind list
    # =========================================================================

    @remind_group.command(name="list")
    async def list_reminders(self, interaction: discord.Interaction):
        """List your active reminders in this channel."""
        await interaction.response.defer(ephemeral=True)
        self._track_command(interaction, "list")

        reminders = await self.service.list(interaction.user.id, interaction.channel_id)
        if not reminders:
            await interaction.followup.send(
                "📅 You have no active reminders in this channel. "
                "Use `/remind set` to create one!",
                ephemeral=True,
            )
            return

        embed = build_list_embed(reminders, self.service.clock())
        await interaction.followup.send(embed=embed, ephemeral=True)

    # =========================================================================
    # /remind cancel
    # =========================================================================

    @remind_group.command(name="cancel")
    @app_commands.describe(reminder_id="The reminder ID (the 8-character ID from /remind list)")
    async def cancel_reminder(
        self,
        interaction: discord.Interaction,
        reminder_id: str,
    ):
        """Cancel a reminder."""
        self._track_command(interaction, "cancel")

        success = await self.service.cancel(
            interaction.user.id, interaction.channel_id, reminder_id
        )

        if success:
            await interaction.response.send_message(
                f"✅ Reminder `{reminder_id}` has been cancelled.",
                ephemeral=True,
            )
            # Analytics: Track reminder cancelled
            track(
                "reminder_cancelled",
                "reminder",
                user_id=interaction.user.id,
                channel_id=interaction.channel_id,
                properties={"reminder_id": reminder_id},
            )
        else:
            await interaction.response.send_message(
                f"❌ Reminder `{reminder_id}` not found in this channel, not yours, "
                "or the ID matches more than one reminder.",
                ephemeral=True,
            )


def build_list_embed(reminders: list, now) -> discord.Embed:
    """Build the /remind list embed (first LIST_LIMIT reminders)."""
    embed = discord.Embed(
        title="📅 Your Active Reminders (This Channel)",
        color=discord.Color.blue(),
    )

    for entry in reminders[:LIST_LIMIT]:
        when = entry.trigger_at.strftime("%b %d, %I:%M %p")
        if entry.delivery_mode == DeliveryMode.BROADCAST:
            title = f"📢 {when} ({recurrence_label(entry.recurrence)})"
        elif entry.is_recurring:
            title = f"🔄 {when} ({recurrence_label(entry.recurrence)})"
        else:
            title = f"⏰ {when}"

        description = f"**{entry.message}**\n{format_time_until(entry.trigger_at - now)}"
        if entry.is_recurring:
            description += f" • Triggered {entry.trigger_count} times"
        description += f" • ID: `{entry.id[:SHORT_ID_LENGTH]}`"

        embed.add_field(name=title, value=description, inline=False)

    if len(reminders) > LIST_LIMIT:
        embed.set_footer(text=f"Showing first {LIST_LIMIT} of {len(reminders)} reminders")

    return embed
