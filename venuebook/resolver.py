from __future__ import annotations

import datetime as dt
import logging
from typing import Iterable

from venuebook import day_offs
from venuebook.domain import (
    DEFAULT_MAX_DAYS_AHEAD,
    AvailabilityResult,
    BookingWindow,
    ExceptionInstance,
    ExceptionRecord,
    PackageSchedule,
    RecurrenceRule,
)
from venuebook.recurrence import matches_any

logger = logging.getLogger(__name__)


def resolve_window(
    package_days: int | None,
    package_notice: float | None,
    location_days: int | None = None,
    location_notice: float | None = None,
) -> BookingWindow:
    """Package value wins, then location value. Unset horizon stays None (no limit)."""
    max_days = package_days if package_days is not None else location_days
    notice = package_notice if package_notice is not None else location_notice
    return BookingWindow(max_days_ahead=max_days, min_notice_hours=float(notice or 0))


def horizon_days(window: BookingWindow, ceiling: int = DEFAULT_MAX_DAYS_AHEAD) -> int:
    if window.max_days_ahead is None:
        return ceiling
    return max(1, int(window.max_days_ahead))


def notice_cutoff_date(today: dt.date, min_notice_hours: float) -> dt.date:
    """First date that may still be booked, at midnight granularity."""
    cutoff = dt.datetime.combine(today, dt.time.min) + dt.timedelta(hours=min_notice_hours)
    return cutoff.date()


def resolve_dates(
    rules: Iterable[RecurrenceRule],
    exceptions: Iterable[ExceptionInstance],
    window: BookingWindow,
    today: dt.date,
    ceiling: int = DEFAULT_MAX_DAYS_AHEAD,
) -> list[dt.date]:
    """Bookable dates from `today` onward, ascending.

    Only full-closure instances remove dates; partial ones are handled per slot.
    """
    if window.min_notice_hours < 0:
        logger.warning("Negative minimum notice (%s h); no dates produced", window.min_notice_hours)
        return []

    rules = tuple(rules)
    closed = day_offs.full_closure_dates(exceptions)

    try:
        cutoff = notice_cutoff_date(today, window.min_notice_hours)
    except OverflowError:
        logger.warning("Minimum notice %s h is out of range; no dates produced", window.min_notice_hours)
        return []

    dates: list[dt.date] = []
    for i in range(horizon_days(window, ceiling)):
        try:
            d = today + dt.timedelta(days=i)
        except OverflowError:
            break

        if d < cutoff:
            continue
        if d in closed:
            continue
        if matches_any(d, rules):
            dates.append(d)

    return dates


def include_date(dates: Iterable[dt.date], extra: dt.date | None) -> list[dt.date]:
    """Keep an already-confirmed booking date visible even if it no longer validates."""
    result = set(dates)
    if extra is not None:
        result.add(extra)
    return sorted(result)


def resolve_availability(
    schedule: PackageSchedule,
    records: Iterable[ExceptionRecord],
    today: dt.date,
    ceiling: int = DEFAULT_MAX_DAYS_AHEAD,
) -> AvailabilityResult:
    span = horizon_days(schedule.window, ceiling)
    instances = day_offs.expand(records, today, today + dt.timedelta(days=span))
    full, partial = day_offs.partition(instances)

    bookable = resolve_dates(schedule.rules, full, schedule.window, today, ceiling)

    partial_closures: dict[dt.date, ExceptionInstance] = {}
    for inst in partial:
        if inst.applies_to_package(schedule.package_id):
            partial_closures.setdefault(inst.date, inst)

    logger.debug(
        "Package %s: %d bookable dates, %d full closures, %d partial closures",
        schedule.package_id,
        len(bookable),
        len(full),
        len(partial_closures),
    )

    return AvailabilityResult(
        bookable_dates=tuple(bookable),
        full_closure_dates=frozenset(i.date for i in full),
        partial_closures=partial_closures,
    )
