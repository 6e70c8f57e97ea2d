from __future__ import annotations

import datetime as dt
import enum
from dataclasses import dataclass, field
from typing import Mapping

WEEKDAYS = ("sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday")

# Used when neither the package nor its location limits the booking horizon (two years).
DEFAULT_MAX_DAYS_AHEAD = 730


class RuleType(str, enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass(frozen=True)
class RecurrenceRule:
    """One availability schedule of a package.

    weekly: day_config holds weekday names ("monday", ...).
    monthly: day_config holds "<weekday>-<ordinal>" tokens ("sunday-first", "friday-last").
    """

    type: RuleType
    day_config: tuple[str, ...] = ()
    is_active: bool = True
    priority: int = 0


@dataclass(frozen=True)
class ExceptionRecord:
    """A raw day off as returned by the exception source.

    time_start: closes at this time onward.
    time_end: does not open until this time.
    Both None: the whole day is closed.
    package_scope/room_scope None: applies location-wide.
    """

    date: dt.date
    is_recurring_annually: bool = False
    time_start: dt.time | None = None
    time_end: dt.time | None = None
    package_scope: frozenset[int] | None = None
    room_scope: frozenset[int] | None = None
    reason: str = ""


@dataclass(frozen=True)
class ExceptionInstance:
    """A day off pinned to one concrete date."""

    date: dt.date
    time_start: dt.time | None = None
    time_end: dt.time | None = None
    package_scope: frozenset[int] | None = None
    room_scope: frozenset[int] | None = None
    reason: str = ""

    @property
    def has_time_window(self) -> bool:
        return self.time_start is not None or self.time_end is not None

    @property
    def is_full_closure(self) -> bool:
        # Only unrestricted instances may blank out a whole calendar date.
        return not self.has_time_window and self.package_scope is None and self.room_scope is None

    def applies_to_package(self, package_id: int) -> bool:
        return self.package_scope is None or package_id in self.package_scope


@dataclass(frozen=True)
class BookingWindow:
    max_days_ahead: int | None = None
    min_notice_hours: float = 0.0


@dataclass(frozen=True)
class BreakWindow:
    """Informational recurring break. Shown on the calendar, never blocks booking."""

    days: frozenset[str]
    start: dt.time
    end: dt.time
    note: str = ""


@dataclass(frozen=True, order=True)
class TimeSlot:
    start_time: dt.time
    end_time: dt.time
    assigned_room_id: int | None = field(default=None, compare=False)


@dataclass(frozen=True)
class PackageSchedule:
    package_id: int
    name: str = ""
    rules: tuple[RecurrenceRule, ...] = ()
    window: BookingWindow = BookingWindow()
    breaks: tuple[BreakWindow, ...] = ()


@dataclass(frozen=True)
class AvailabilityResult:
    bookable_dates: tuple[dt.date, ...]
    full_closure_dates: frozenset[dt.date]
    partial_closures: Mapping[dt.date, ExceptionInstance]


@dataclass(frozen=True)
class SlotKey:
    package_id: int
    date: dt.date


@dataclass(frozen=True)
class SlotUpdate:
    """What the live stream hands to its listeners.

    slots is None when the feed failed: slots for this date are unknown.
    """

    key: SlotKey
    slots: tuple[TimeSlot, ...] | None

    @property
    def is_unknown(self) -> bool:
        return self.slots is None


class DayState(str, enum.Enum):
    PAST = "past"
    FULL_CLOSURE = "full_closure"
    SELECTED = "selected"
    PARTIAL_CLOSURE = "partial_closure"
    BREAK_NOTED = "break_noted"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


class SourceError(RuntimeError):
    """A package or day-off source could not be read."""


class FeedError(RuntimeError):
    """The live slot feed failed or sent something unusable.

    The date stays selectable; the stream reports its slots as unknown.
    """
