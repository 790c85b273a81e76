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
Reminder Data Model

Reminder entries, recurrence specs and their JSON record layout.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Optional, Union

import pytz

from .clock import to_zone


class ReminderError(Exception):
    """Base class for errors surfaced to the command layer."""

    pass


class RecurrenceError(ReminderError):
    """Raised when a recurrence descriptor or spec is malformed."""

    pass


class DeliveryMode(str, Enum):
    """How a reminder is delivered."""

    PERSONAL = "personal"  # mentions the owner
    BROADCAST = "broadcast"  # no ping, optional image


class Weekday(IntEnum):
    """Day of week, Sunday-first to match the week used by weekly recurrence."""

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @classmethod
    def of(cls, dt: datetime) -> "Weekday":
        # datetime.weekday() is Monday=0
        return cls((dt.weekday() + 1) % 7)

    @property
    def label(self) -> str:
        return self.name.title()


class WeekOrdinal(IntEnum):
    """Which occurrence of a weekday within a month."""

    FIRST = 1
    SECOND = 2
    THIRD = 3
    FOURTH = 4
    LAST = -1


@dataclass(frozen=True)
class DayOfMonth:
    """Fixed day of month; -1 means the last calendar day."""

    day: int

    def __post_init__(self):
        if self.day != -1 and not 1 <= self.day <= 31:
            raise RecurrenceError(f"Invalid day of month: {self.day}. Must be 1-31.")


@dataclass(frozen=True)
class OrdinalWeekday:
    """Nth (or last) weekday of the month, e.g. first Monday."""

    ordinal: WeekOrdinal
    weekday: Weekday


MonthlyRule = Union[DayOfMonth, OrdinalWeekday]


def _check_interval(interval: int) -> None:
    if interval < 1:
        raise RecurrenceError(f"Invalid interval: {interval}. Must be at least 1.")


@dataclass(frozen=True)
class DailyRecurrence:
    interval: int = 1

    def __post_init__(self):
        _check_interval(self.interval)


@dataclass(frozen=True)
class WeeklyRecurrence:
    interval: int = 1
    weekdays: frozenset = frozenset()

    def __post_init__(self):
        _check_interval(self.interval)
        if not self.weekdays:
            raise RecurrenceError("Weekly recurrence needs at least one weekday.")
        object.__setattr__(self, "weekdays", frozenset(Weekday(d) for d in self.weekdays))


@dataclass(frozen=True)
class MonthlyRecurrence:
    interval: int = 1
    rule: MonthlyRule = DayOfMonth(1)

    def __post_init__(self):
        _check_interval(self.interval)
        if not isinstance(self.rule, (DayOfMonth, OrdinalWeekday)):
            raise RecurrenceError(f"Unsupported monthly rule: {self.rule!r}")


RecurrenceSpec = Union[DailyRecurrence, WeeklyRecurrence, MonthlyRecurrence]


def recurrence_to_dict(spec: RecurrenceSpec) -> dict[str, Any]:
    """Serialize a recurrence spec to its JSON record."""
    if isinstance(spec, DailyRecurrence):
        return {"kind": "daily", "interval": spec.interval}
    if isinstance(spec, WeeklyRecurrence):
        return {
            "kind": "weekly",
            "interval": spec.interval,
            "weekdays": [d.name.lower() for d in sorted(spec.weekdays)],
        }
    if isinstance(spec, MonthlyRecurrence):
        data: dict[str, Any] = {"kind": "monthly", "interval": spec.interval}
        if isinstance(spec.rule, DayOfMonth):
            data["day"] = spec.rule.day
        else:
            data["ordinal"] = spec.rule.ordinal.name.lower()
            data["weekday"] = spec.rule.weekday.name.lower()
        return data
    raise RecurrenceError(f"Unsupported recurrence spec: {spec!r}")


def _member(enum_cls, value: Any):
    if not isinstance(value, str) or value.upper() not in enum_cls.__members__:
        raise RecurrenceError(
            f"Malformed recurrence record: bad {enum_cls.__name__.lower()} {value!r}"
        )
    return enum_cls[value.upper()]


def recurrence_from_dict(data: dict[str, Any]) -> RecurrenceSpec:
    """Rebuild a recurrence spec from its JSON record."""
    if not isinstance(data, dict):
        raise RecurrenceError(f"Malformed recurrence record: {data!r}")
    kind = data.get("kind")
    interval = int(data.get("interval", 1))
    try:
        if kind == "daily":
            return DailyRecurrence(interval)
        if kind == "weekly":
            names = data["weekdays"]
            if not isinstance(names, list):
                raise RecurrenceError(f"Malformed recurrence record: weekdays {names!r}")
            weekdays = frozenset(_member(Weekday, name) for name in names)
            return WeeklyRecurrence(interval, weekdays)
        if kind == "monthly":
            if "day" in data:
                return MonthlyRecurrence(interval, DayOfMonth(int(data["day"])))
            rule = OrdinalWeekday(
                _member(WeekOrdinal, data["ordinal"]),
                _member(Weekday, data["weekday"]),
            )
            return MonthlyRecurrence(interval, rule)
    except KeyError as e:
        raise RecurrenceError(f"Malformed recurrence record: missing {e}")
    raise RecurrenceError(f"Unknown recurrence kind: {kind!r}")


@dataclass
class ReminderDraft:
    """Everything the command layer supplies when creating a reminder."""

    owner: int
    destination: int
    trigger_at: datetime
    message: str
    delivery_mode: DeliveryMode = DeliveryMode.PERSONAL
    image_ref: Optional[str] = None
    recurrence: Optional[RecurrenceSpec] = None
    end_at: Optional[datetime] = None
    max_triggers: Optional[int] = None


@dataclass
class ReminderEntry:
    """A stored reminder and its trigger state."""

    id: str
    owner: int
    destination: int
    trigger_at: datetime
    message: str
    created_at: datetime
    delivery_mode: DeliveryMode = DeliveryMode.PERSONAL
    image_ref: Optional[str] = None
    recurrence: Optional[RecurrenceSpec] = None
    trigger_count: int = 0
    end_at: Optional[datetime] = None
    max_triggers: Optional[int] = None
    retired: bool = False

    @property
    def is_recurring(self) -> bool:
        return self.recurrence is not None

    @property
    def is_exhausted(self) -> bool:
        """True when a bound has been reached, even if not yet retired."""
        if self.max_triggers is not None and self.trigger_count >= self.max_triggers:
            return True
        if self.end_at is not None and self.trigger_at > self.end_at:
            return True
        return False

    @property
    def is_active(self) -> bool:
        return not self.retired and not self.is_exhausted

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "owner": self.owner,
            "destination": self.destination,
            "trigger_at": self.trigger_at.isoformat(),
            "message": self.message,
            "created_at": self.created_at.isoformat(),
            "delivery_mode": self.delivery_mode.value,
            "image_ref": self.image_ref,
            "recurrence": recurrence_to_dict(self.recurrence) if self.recurrence else None,
            "trigger_count": self.trigger_count,
            "end_at": self.end_at.isoformat() if self.end_at else None,
            "max_triggers": self.max_triggers,
            "retired": self.retired,
        }

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], tz: Optional[pytz.BaseTzInfo] = None
    ) -> "ReminderEntry":
        """
        Rebuild an entry from its JSON record.

        Args:
            data: Record as written by to_dict()
            tz: Zone to convert stored instants into (None keeps them as stored)

        Raises:
            KeyError, ValueError, RecurrenceError: If the record is malformed
        """

        def _instant(value: Optional[str]) -> Optional[datetime]:
            if value is None:
                return None
            parsed = datetime.fromisoformat(value)
            if tz is None:
                return parsed
            if parsed.tzinfo is None:
                # Written before a zone was configured
                return tz.localize(parsed)
            return to_zone(parsed, tz)

        recurrence = data.get("recurrence")
        return cls(
            id=data["id"],
            owner=data["owner"],
            destination=data["destination"],
            trigger_at=_instant(data["trigger_at"]),
            message=data.get("message", ""),
            created_at=_instant(data["created_at"]),
            delivery_mode=DeliveryMode(data.get("delivery_mode", DeliveryMode.PERSONAL.value)),
            image_ref=data.get("image_ref"),
            recurrence=recurrence_from_dict(recurrence) if recurrence else None,
            trigger_count=int(data.get("trigger_count", 0)),
            end_at=_instant(data.get("end_at")),
            max_triggers=data.get("max_triggers"),
            retired=bool(data.get("retired", False)),
        )

