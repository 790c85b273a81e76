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
Reminder Storage Backends

Byte-level persistence for the reminder document. The store serializes the
whole collection to one JSON document and hands it to a backend.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional, Protocol, Union

import asyncpg

from .models import ReminderError

logger = logging.getLogger("tickler.reminders.storage")


class StorageError(ReminderError):
    """Raised when the backing store cannot be read or written."""

    pass


class StorageBackend(Protocol):
    """Reads and writes the serialized reminder document."""

    async def read(self) -> Optional[bytes]:
        """Return the stored document, or None if nothing has been saved."""
        ...

    async def write(self, data: bytes) -> None:
        ...


class JsonFileBackend:
    """
    Stores the reminder document in a local JSON file.

    Writes go to a temporary file that replaces the target, so a crash
    mid-write leaves the previous document intact.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _read_sync(self) -> Optional[bytes]:
        if not self.path.exists():
            return None
        return self.path.read_bytes()

    def _write_sync(self, data: bytes) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_bytes(data)
        tmp_path.replace(self.path)
        logger.debug(f"Wrote {len(data)} bytes to {self.path}")

    async def read(self) -> Optional[bytes]:
        try:
            return await asyncio.to_thread(self._read_sync)
        except OSError as e:
            raise StorageError(f"Failed to read {self.path}: {e}") from e

    async def write(self, data: bytes) -> None:
        try:
            await asyncio.to_thread(self._write_sync, data)
        except OSError as e:
            raise StorageError(f"Failed to write {self.path}: {e}") from e


class PostgresBackend:
    """
    Stores the reminder document as a single jsonb row.

    Table:
        CREATE TABLE reminder_state (
            name TEXT PRIMARY KEY,
            payload JSONB NOT NULL,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
    """

    def __init__(self, db_pool: asyncpg.Pool, name: str = "reminders"):
        """
        Initialize the backend.

        Args:
            db_pool: asyncpg connection pool
            name: Row key, allowing several bots to share one table
        """
        self.db = db_pool
        self.name = name

    async def ensure_schema(self) -> None:
        """Create the state table if it does not exist."""
        await self.db.execute(
            """
            CREATE TABLE IF NOT EXISTS reminder_state (
                name TEXT PRIMARY KEY,
                payload JSONB NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
            """
        )

    async def read(self) -> Optional[bytes]:
        try:
            row = await self.db.fetchrow(
                """
                SELECT payload::text AS payload FROM reminder_state
                WHERE name = $1
                """,
                self.name,
            )
        except (asyncpg.PostgresError, OSError) as e:
            raise StorageError(f"Failed to load reminder state: {e}") from e

        return row["payload"].encode("utf-8") if row else None

    async def write(self, data: bytes) -> None:
        try:
            await self.db.execute(
                """
                INSERT INTO reminder_state (name, payload, updated_at)
                VALUES ($1, $2::jsonb, NOW())
                ON CONFLICT (name)
                DO UPDATE SET payload = $2::jsonb, updated_at = NOW()
                """,
                self.name,
                data.decode("utf-8"),
            )
        except (asyncpg.PostgresError, OSError) as e:
            raise StorageError(f"Failed to save reminder state: {e}") from e


def encode_document(records: list[dict]) -> bytes:
    """Serialize entry records into the persisted document."""
    return json.dumps({"reminders": records}, indent=2, ensure_ascii=False).encode("utf-8")


def decode_document(data: bytes) -> list[dict]:
    """
    Parse the persisted document.

    Raises:
        ValueError: If the document is not valid JSON of the expected shape
    """
    document = json.loads(data.decode("utf-8"))
    if not isinstance(document, dict) or not isinstance(document.get("reminders"), list):
        raise ValueError("Reminder document must be an object with a 'reminders' list")
    return document["reminders"]
