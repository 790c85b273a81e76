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
Event tracking for tickler.

Events land in an analytics_events table when DATABASE_URL is set and
ANALYTICS_ENABLED is not "false". Tracking never raises.

Usage:
    from analytics import track

    track("reminder_created", "reminder", user_id=123, properties={"is_recurring": True})
"""

import asyncio
import json
import logging
import os
from typing import Any, Optional

import asyncpg

logger = logging.getLogger("tickler.analytics")

CATEGORIES = ("reminder", "command", "error", "system")

# Module-level connection pool (initialized lazily)
_pool: Optional[asyncpg.Pool] = None
_enabled: bool = os.getenv("ANALYTICS_ENABLED", "true").lower() == "true"
_schema_ready: bool = False

# Pending fire-and-forget inserts, held so they are not garbage collected
_pending: set[asyncio.Task] = set()


def is_enabled() -> bool:
    return _enabled and bool(os.getenv("DATABASE_URL"))


async def _get_pool() -> Optional[asyncpg.Pool]:
    """Get or create the connection pool, creating the events table once."""
    global _pool, _schema_ready
    if _pool is None and is_enabled():
        try:
            _pool = await asyncpg.create_pool(
                os.getenv("DATABASE_URL"), min_size=1, max_size=2
            )
        except (asyncpg.PostgresError, OSError) as e:
            logger.warning(f"Analytics pool creation failed: {e}")
            return None

    if _pool is not None and not _schema_ready:
        try:
            await _pool.execute(
                """
                CREATE TABLE IF NOT EXISTS analytics_events (
                    id BIGSERIAL PRIMARY KEY,
                    event_name TEXT NOT NULL,
                    event_category TEXT NOT NULL,
                    user_id BIGINT,
                    channel_id BIGINT,
                    guild_id BIGINT,
                    properties JSONB NOT NULL DEFAULT '{}',
                    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                )
                """
            )
            _schema_ready = True
        except (asyncpg.PostgresError, OSError) as e:
            logger.warning(f"Analytics table setup failed: {e}")
            return None
    return _pool


async def track_async(
    event_name: str,
    event_category: str,
    user_id: Optional[int] = None,
    channel_id: Optional[int] = None,
    guild_id: Optional[int] = None,
    properties: Optional[dict[str, Any]] = None,
) -> bool:
    """
    Record an event and wait for the insert.

    Args:
        event_name: Specific event identifier (e.g., "reminder_delivered")
        event_category: One of CATEGORIES
        user_id: Discord user ID (optional)
        channel_id: Discord channel ID (optional)
        guild_id: Discord guild ID (optional)
        properties: Additional event data as key-value pairs

    Returns:
        True if the event was recorded, False otherwise
    """
    if not is_enabled():
        return False

    pool = await _get_pool()
    if pool is None:
        return False

    try:
        await pool.execute(
            """
            INSERT INTO analytics_events
                (event_name, event_category, user_id, channel_id, guild_id, properties)
            VALUES ($1, $2, $3, $4, $5, $6::jsonb)
            """,
            event_name,
            event_category,
            user_id,
            channel_id,
            guild_id,
            json.dumps(properties or {}, default=str),
        )
        return True
    except (asyncpg.PostgresError, OSError) as e:
        logger.debug(f"Analytics tracking failed for {event_name}: {e}")
        return False


def track(
    event_name: str,
    event_category: str,
    user_id: Optional[int] = None,
    channel_id: Optional[int] = None,
    guild_id: Optional[int] = None,
    properties: Optional[dict[str, Any]] = None,
) -> None:
    """
    Track an event (fire-and-forget).

    Schedules the insert on the running loop without blocking. Outside a
    running loop, or when tracking is disabled, the event is dropped.
    """
    if not is_enabled():
        return

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        # No running loop - skip tracking
        return

    task = loop.create_task(
        track_async(event_name, event_category, user_id, channel_id, guild_id, properties)
    )
    _pending.add(task)
    task.add_done_callback(_pending.discard)


async def shutdown() -> None:
    """Close the connection pool. Call on bot shutdown."""
    global _pool, _schema_ready
    if _pending:
        await asyncio.gather(*_pending, return_exceptions=True)
    if _pool is not None:
        await _pool.close()
        _pool = None
        _schema_ready = False
