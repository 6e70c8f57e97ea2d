from __future__ import annotations

import datetime as dt
from typing import Iterable

from venuebook.day_offs import instances_on
from venuebook.domain import ExceptionInstance, TimeSlot


def to_minutes(value: dt.time) -> int:
    return value.hour * 60 + value.minute


def restricted_by(slot: TimeSlot, instance: ExceptionInstance) -> bool:
    """True if the slot overlaps the window closed by `instance`.

    Room scope is not looked at: the feed has already applied it.
    """
    start = to_minutes(slot.start_time)
    end = to_minutes(slot.end_time)

    if instance.time_start is not None:
        closes_at = to_minutes(instance.time_start)
        if start >= closes_at or end > closes_at:
            return True

    if instance.time_end is not None:
        opens_at = to_minutes(instance.time_end)
        if start < opens_at:
            return True

    return False


def within_notice(slot: TimeSlot, day: dt.date, min_notice_hours: float, now: dt.datetime) -> bool:
    if min_notice_hours <= 0:
        return False
    starts_at = dt.datetime.combine(day, slot.start_time, tzinfo=now.tzinfo)
    return starts_at < now + dt.timedelta(hours=min_notice_hours)


def filter_slots(
    slots: Iterable[TimeSlot],
    day: dt.date,
    exceptions: Iterable[ExceptionInstance],
    package_id: int,
    min_notice_hours: float,
    now: dt.datetime,
) -> list[TimeSlot]:
    """Slots still bookable on `day` for `package_id`, in their original order."""
    applicable = instances_on(exceptions, day, package_id)

    kept: list[TimeSlot] = []
    for slot in slots:
        if any(restricted_by(slot, inst) for inst in applicable):
            continue
        if within_notice(slot, day, min_notice_hours, now):
            continue
        kept.append(slot)
    return kept
