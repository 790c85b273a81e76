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

"""Shared fixtures: a settable clock and an in-memory storage backend."""

import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from reminders.storage import StorageError


class FakeClock:
    """Clock whose time only moves when a test sets it."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class MemoryBackend:
    """StorageBackend keeping the document in memory."""

    def __init__(self, data: Optional[bytes] = None):
        self.data = data
        self.writes = 0
        self.fail_reads = False
        self.fail_writes = False

    async def read(self) -> Optional[bytes]:
        if self.fail_reads:
            raise StorageError("disk on fire")
        return self.data

    async def write(self, data: bytes) -> None:
        if self.fail_writes:
            raise StorageError("disk full")
        self.data = data
        self.writes += 1


@pytest.fixture
def clock():
    # Monday
    return FakeClock(datetime(2024, 1, 1, 10, 0))


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture(autouse=True)
def no_analytics(monkeypatch):
    """Keep analytics from touching a database during tests."""
    monkeypatch.setenv("ANALYTICS_ENABLED", "false")
    monkeypatch.delenv("DATABASE_URL", raising=False)
