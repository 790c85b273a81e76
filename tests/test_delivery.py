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

"""Tests for Discord reminder delivery."""

import sys
from datetime import datetime
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest
import pytz

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from reminders.delivery import DeliveryError, DiscordNotifier, build_reminder_embed
from reminders.models import DailyRecurrence, DeliveryMode, ReminderEntry

OWNER = 111
CHANNEL = 222


def make_entry(**overrides) -> ReminderEntry:
    fields = dict(
        id="0f1e2d3c-aaaa-4bbb-8ccc-123456789abc",
        owner=OWNER,
        destination=CHANNEL,
        trigger_at=pytz.UTC.localize(datetime(2024, 1, 2, 9, 0)),
        message="Water the plants",
        created_at=pytz.UTC.localize(datetime(2024, 1, 1, 9, 0)),
    )
    fields.update(overrides)
    return ReminderEntry(**fields)


def http_error(cls, status: int):
    return cls(MagicMock(status=status, reason="error"), "failed")


@pytest.fixture
def channel():
    mock = MagicMock()
    mock.send = AsyncMock()
    return mock


@pytest.fixture
def bot(channel):
    mock = MagicMock()
    mock.get_channel.return_value = channel
    mock.fetch_channel = AsyncMock(return_value=channel)
    return mock


class TestEmbed:
    """Test reminder embed contents."""

    def test_one_shot(self):
        embed = build_reminder_embed(make_entry())
        assert embed.title == "⏰ Reminder!"
        assert embed.description == "Water the plants"
        assert embed.footer.text == "Set on Jan 1, 2024 at 9:00 AM"
        assert embed.fields == []

    def test_recurring_shows_next(self):
        embed = build_reminder_embed(make_entry(recurrence=DailyRecurrence(1), trigger_count=4))
        assert embed.title == "🔄 Recurring Reminder!"
        assert "Trigger #5" in embed.footer.text
        assert embed.fields[0].name == "Next Reminder"
        assert embed.fields[0].value == "Jan 3, 2024 at 9:00 AM"

    def test_recurring_final(self):
        entry = make_entry(recurrence=DailyRecurrence(1), trigger_count=2, max_triggers=3)
        embed = build_reminder_embed(entry)
        assert embed.fields[0].name == "Status"
        assert embed.fields[0].value == "This was the final reminder"

    def test_broadcast(self):
        entry = make_entry(
            message="Pizza night",
            delivery_mode=DeliveryMode.BROADCAST,
            image_ref="https://cdn.example.com/pizza.png",
        )
        embed = build_reminder_embed(entry)
        assert embed.title == "📢 Pizza night"
        assert embed.image.url == "https://cdn.example.com/pizza.png"
        assert embed.footer.text == "One-time"


class TestDiscordNotifier:
    """Test channel resolution and sending."""

    @pytest.mark.asyncio
    async def test_personal_mentions_owner(self, bot, channel):
        await DiscordNotifier(bot).deliver(make_entry())

        bot.get_channel.assert_called_once_with(CHANNEL)
        call = channel.send.await_args
        assert call.args == (f"<@{OWNER}>",)
        assert call.kwargs["embed"].title == "⏰ Reminder!"
        assert call.kwargs["allowed_mentions"].users is True

    @pytest.mark.asyncio
    async def test_broadcast_does_not_ping(self, bot, channel):
        entry = make_entry(delivery_mode=DeliveryMode.BROADCAST)
        await DiscordNotifier(bot).deliver(entry)

        call = channel.send.await_args
        assert call.args == ()
        assert call.kwargs["allowed_mentions"].users is False
        assert call.kwargs["allowed_mentions"].everyone is False

    @pytest.mark.asyncio
    async def test_uncached_channel_is_fetched(self, bot, channel):
        bot.get_channel.return_value = None
        await DiscordNotifier(bot).deliver(make_entry())

        bot.fetch_channel.assert_awaited_once_with(CHANNEL)
        channel.send.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_deleted_channel(self, bot):
        bot.get_channel.return_value = None
        bot.fetch_channel.side_effect = http_error(discord.NotFound, 404)

        with pytest.raises(DeliveryError, match="Channel not found"):
            await DiscordNotifier(bot).deliver(make_entry())

    @pytest.mark.asyncio
    async def test_inaccessible_channel(self, bot):
        bot.get_channel.return_value = None
        bot.fetch_channel.side_effect = http_error(discord.Forbidden, 403)

        with pytest.raises(DeliveryError, match="No access"):
            await DiscordNotifier(bot).deliver(make_entry())

    @pytest.mark.asyncio
    async def test_send_rejected(self, bot, channel):
        channel.send.side_effect = http_error(discord.Forbidden, 403)

        with pytest.raises(DeliveryError):
            await DiscordNotifier(bot).deliver(make_entry())
