"""Expansion of raw day-off records into dated exception instances.

Recurring day offs are projected onto the current and the next year, so the
calendar always sees one year ahead even when this year's occurrence is gone.
One-time day offs in the past are dropped: they can never restrict a booking again.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Iterable, Iterator

from venuebook.domain import ExceptionInstance, ExceptionRecord

logger = logging.getLogger(__name__)


def _instance(record: ExceptionRecord, day: dt.date) -> ExceptionInstance:
    return ExceptionInstance(
        date=day,
        time_start=record.time_start,
        time_end=record.time_end,
        package_scope=record.package_scope,
        room_scope=record.room_scope,
        reason=record.reason,
    )


def _in_year(record: ExceptionRecord, year: int) -> dt.date | None:
    try:
        return record.date.replace(year=year)
    except ValueError:
        # 29 February in a non-leap year.
        return None


def _expand_one(record: ExceptionRecord, horizon_start: dt.date, horizon_end: dt.date | None) -> Iterator[ExceptionInstance]:
    if record.is_recurring_annually:
        current = _in_year(record, horizon_start.year)
        if current is not None and current >= horizon_start:
            yield _instance(record, current)

        following = _in_year(record, horizon_start.year + 1)
        if following is not None:
            yield _instance(record, following)
        return

    if record.date < horizon_start:
        return
    if horizon_end is not None and record.date > horizon_end:
        return
    yield _instance(record, record.date)


def expand(
    records: Iterable[ExceptionRecord],
    horizon_start: dt.date,
    horizon_end: dt.date | None = None,
) -> list[ExceptionInstance]:
    """Turn day-off records into per-date instances, ordered by date.

    horizon_end only bounds one-time records; recurring ones always get the
    one-year lookahead.
    """
    instances: list[ExceptionInstance] = []
    for record in records:
        try:
            instances.extend(_expand_one(record, horizon_start, horizon_end))
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning("Skipping day off %r (%s: %s)", record, type(e).__name__, e)
            continue

    instances.sort(key=lambda i: i.date)
    return instances


def partition(instances: Iterable[ExceptionInstance]) -> tuple[list[ExceptionInstance], list[ExceptionInstance]]:
    """Split into (full closures, partial or scoped instances)."""
    full: list[ExceptionInstance] = []
    partial: list[ExceptionInstance] = []
    for inst in instances:
        if inst.is_full_closure:
            full.append(inst)
        else:
            partial.append(inst)
    return full, partial


def full_closure_dates(instances: Iterable[ExceptionInstance]) -> frozenset[dt.date]:
    return frozenset(i.date for i in instances if i.is_full_closure)


def instances_on(
    instances: Iterable[ExceptionInstance],
    day: dt.date,
    package_id: int | None = None,
) -> list[ExceptionInstance]:
    """Partial/scoped instances on `day`, optionally only those applying to a package."""
    return [
        i
        for i in instances
        if i.date == day and not i.is_full_closure and (package_id is None or i.applies_to_package(package_id))
    ]
