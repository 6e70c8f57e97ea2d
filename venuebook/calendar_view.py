from __future__ import annotations

import calendar
import datetime as dt
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from venuebook.domain import AvailabilityResult, BreakWindow, DayState, ExceptionInstance
from venuebook.recurrence import weekday_name


@dataclass(frozen=True)
class CalendarContext:
    today: dt.date
    bookable_dates: frozenset[dt.date] = frozenset()
    full_closure_dates: frozenset[dt.date] = frozenset()
    # Only instances that apply to the package being shown.
    partial_closures: Mapping[dt.date, ExceptionInstance] = field(default_factory=dict)
    breaks: tuple[BreakWindow, ...] = ()
    selected_date: dt.date | None = None

    @classmethod
    def from_availability(
        cls,
        result: AvailabilityResult,
        today: dt.date,
        *,
        breaks: Iterable[BreakWindow] = (),
        selected_date: dt.date | None = None,
    ) -> CalendarContext:
        return cls(
            today=today,
            bookable_dates=frozenset(result.bookable_dates),
            full_closure_dates=result.full_closure_dates,
            partial_closures=result.partial_closures,
            breaks=tuple(breaks),
            selected_date=selected_date,
        )


def has_break(day: dt.date, breaks: Iterable[BreakWindow]) -> bool:
    name = weekday_name(day)
    return any(name in b.days for b in breaks)


def classify(day: dt.date, ctx: CalendarContext) -> DayState:
    """Display state of one calendar day; the first matching state wins."""
    if day < ctx.today:
        return DayState.PAST
    if day in ctx.full_closure_dates:
        return DayState.FULL_CLOSURE
    # A chosen date stays visibly chosen even if a partial closure touches it.
    if ctx.selected_date is not None and day == ctx.selected_date:
        return DayState.SELECTED
    if day in ctx.partial_closures:
        return DayState.PARTIAL_CLOSURE
    # Breaks are informational only; clickability still follows bookability.
    if has_break(day, ctx.breaks):
        return DayState.BREAK_NOTED
    if day in ctx.bookable_dates:
        return DayState.AVAILABLE
    return DayState.UNAVAILABLE


def is_clickable(day: dt.date, ctx: CalendarContext) -> bool:
    """A day can be picked when it is bookable, or is the date already chosen.

    Closures and breaks only change the label; they never make an unbookable day pickable.
    """
    if day < ctx.today or day in ctx.full_closure_dates:
        return False
    return day in ctx.bookable_dates or day == ctx.selected_date


def month_grid(year: int, month: int, ctx: CalendarContext) -> list[list[tuple[dt.date, DayState] | None]]:
    """Weeks of the month starting on Sunday; None pads days outside the month."""
    cal = calendar.Calendar(firstweekday=calendar.SUNDAY)
    weeks: list[list[tuple[dt.date, DayState] | None]] = []
    for week in cal.monthdatescalendar(year, month):
        weeks.append([(d, classify(d, ctx)) if d.month == month else None for d in week])
    return weeks
