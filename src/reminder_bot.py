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
tickler bot entrypoint.

Wires configuration, storage, the reminder store, the scheduler and the
/remind commands into a discord.py bot.
"""

import asyncio
import logging
import os
from typing import Optional

import asyncpg
import discord
from discord.ext import commands
from dotenv import load_dotenv

import analytics
from commands.reminder_commands import ReminderCommands
from reminders import (
    DiscordNotifier,
    JsonFileBackend,
    PostgresBackend,
    ReminderConfig,
    ReminderScheduler,
    ReminderService,
    ReminderStore,
)
from reminders.clock import system_clock

load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("tickler")


class ReminderBot(commands.Bot):
    """Discord bot hosting the reminder commands and scheduler."""

    def __init__(self, config: ReminderConfig, owner_id: Optional[str] = None):
        intents = discord.Intents.default()
        intents.guilds = True

        super().__init__(command_prefix="!", intents=intents)

        self.config = config
        self.owner_id_setting = owner_id
        self.db_pool: Optional[asyncpg.Pool] = None
        self.store: Optional[ReminderStore] = None
        self.scheduler: Optional[ReminderScheduler] = None

    async def _create_backend(self):
        if self.config.storage_backend == "postgres":
            database_url = os.getenv("DATABASE_URL")
            if not database_url:
                raise RuntimeError("REMINDER_STORAGE_BACKEND=postgres requires DATABASE_URL")
            self.db_pool = await asyncpg.create_pool(database_url)
            backend = PostgresBackend(self.db_pool)
            await backend.ensure_schema()
            logger.info("Setup: reminders stored in Postgres")
            return backend

        logger.info(f"Setup: reminders stored in {self.config.storage_path}")
        return JsonFileBackend(self.config.storage_path)

    async def setup_hook(self):
        """Called when the bot is starting up."""
        tz = self.config.tz
        clock = system_clock(tz)

        logger.info(f"Setup: REMINDER_TIMEZONE={tz.zone}")
        logger.info(f"Setup: DATABASE_URL={'set' if os.getenv('DATABASE_URL') else 'missing'}")

        backend = await self._create_backend()
        self.store = ReminderStore(backend, clock, tz=tz, retention=self.config.retention)
        await self.store.load()

        self.scheduler = ReminderScheduler(
            self.store,
            DiscordNotifier(self),
            clock=clock,
            tick_seconds=self.config.tick_seconds,
            delivery_timeout=self.config.delivery_timeout,
            wait_until_ready=self.wait_until_ready,
        )

        service = ReminderService(self.store, clock)
        await self.add_cog(ReminderCommands(self, service, self.owner_id_setting))
        synced = await self.tree.sync()
        logger.info(f"Synced {len(synced)} application command(s)")

        self.scheduler.start()

    async def on_ready(self):
        """Called when the bot has connected to Discord."""
        logger.info(f"Logged in as {self.user} (ID: {self.user.id})")
        logger.info(f"Connected to {len(self.guilds)} guild(s)")

    async def close(self):
        """Clean up resources on shutdown."""
        if self.scheduler:
            self.scheduler.stop()
        if self.store:
            await self.store.flush()
        await analytics.shutdown()
        if self.db_pool:
            await self.db_pool.close()
        await super().close()


async def run() -> None:
    """Run the bot until it is stopped."""
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.error("DISCORD_BOT_TOKEN environment variable not set")
        logger.error("Please set it in your .env file")
        return

    bot = ReminderBot(ReminderConfig.from_env(), owner_id=os.getenv("OWNER_ID"))
    async with bot:
        await bot.start(token)


def main() -> None:
    """Console entrypoint."""
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == "__main__":
    main()
