from __future__ import annotations

import datetime as dt

from venuebook.day_offs import expand
from venuebook.domain import ExceptionRecord, TimeSlot
from venuebook.slot_filter import filter_slots, restricted_by

FRIDAY = dt.date(2026, 10, 23)
NOW = dt.datetime(2026, 10, 19, 9, 0)


def _slot(start: str, end: str) -> TimeSlot:
    return TimeSlot(start_time=dt.time.fromisoformat(start), end_time=dt.time.fromisoformat(end))


def _instances(*records: ExceptionRecord):
    return expand(records, NOW.date())


def test_closing_time_scoped_to_package() -> None:
    exceptions = _instances(ExceptionRecord(date=FRIDAY, time_start=dt.time(16, 0), package_scope=frozenset({1})))
    slots = [_slot("15:00", "16:00"), _slot("16:00", "17:00")]

    assert filter_slots(slots, FRIDAY, exceptions, 1, 0, NOW) == [_slot("15:00", "16:00")]
    assert filter_slots(slots, FRIDAY, exceptions, 2, 0, NOW) == slots


def test_closing_time_drops_slot_running_past_it() -> None:
    exceptions = _instances(ExceptionRecord(date=FRIDAY, time_start=dt.time(16, 0)))
    slots = [_slot("14:00", "15:30"), _slot("15:30", "16:30"), _slot("17:00", "18:00")]

    assert filter_slots(slots, FRIDAY, exceptions, 1, 0, NOW) == [_slot("14:00", "15:30")]


def test_delayed_opening_drops_slots_starting_before_it() -> None:
    exceptions = _instances(ExceptionRecord(date=FRIDAY, time_end=dt.time(12, 0)))
    slots = [_slot("10:00", "11:00"), _slot("11:30", "12:30"), _slot("12:00", "13:00")]

    assert filter_slots(slots, FRIDAY, exceptions, 1, 0, NOW) == [_slot("12:00", "13:00")]


def test_unscoped_exception_restricts_every_package() -> None:
    exceptions = _instances(ExceptionRecord(date=FRIDAY, time_start=dt.time(16, 0)))
    slots = [_slot("16:00", "17:00")]

    for package_id in (1, 2, 99):
        assert filter_slots(slots, FRIDAY, exceptions, package_id, 0, NOW) == []


def test_exception_on_other_date_is_ignored() -> None:
    exceptions = _instances(ExceptionRecord(date=FRIDAY + dt.timedelta(days=1), time_start=dt.time(8, 0)))
    slots = [_slot("16:00", "17:00")]

    assert filter_slots(slots, FRIDAY, exceptions, 1, 0, NOW) == slots


def test_scoped_exception_without_time_window_leaves_slots() -> None:
    exceptions = _instances(ExceptionRecord(date=FRIDAY, package_scope=frozenset({1}), room_scope=frozenset({4})))
    slots = [_slot("10:00", "11:00")]

    assert filter_slots(slots, FRIDAY, exceptions, 1, 0, NOW) == slots


def test_lead_time_drops_slots_starting_too_soon() -> None:
    day = dt.date(2026, 10, 20)
    now = dt.datetime(2026, 10, 19, 12, 0)
    slots = [_slot("11:00", "12:00"), _slot("12:00", "13:00"), _slot("15:00", "16:00")]

    assert filter_slots(slots, day, [], 1, 24, now) == [_slot("12:00", "13:00"), _slot("15:00", "16:00")]
    assert filter_slots(slots, day, [], 1, 0, now) == slots


def test_lead_time_uses_timezone_of_now() -> None:
    tz = dt.timezone(dt.timedelta(hours=-7))
    now = dt.datetime(2026, 10, 19, 12, 0, tzinfo=tz)
    slots = [_slot("13:00", "14:00"), _slot("14:00", "15:00")]

    assert filter_slots(slots, dt.date(2026, 10, 19), [], 1, 2, now) == [_slot("14:00", "15:00")]


def test_filter_is_idempotent_and_keeps_order() -> None:
    exceptions = _instances(
        ExceptionRecord(date=FRIDAY, time_end=dt.time(10, 0)),
        ExceptionRecord(date=FRIDAY, time_start=dt.time(18, 0), package_scope=frozenset({1})),
    )
    slots = [_slot(f"{h:02d}:00", f"{h + 1:02d}:00") for h in range(8, 21)]
    now = dt.datetime(2026, 10, 22, 9, 0)

    once = filter_slots(slots, FRIDAY, exceptions, 1, 30, now)
    twice = filter_slots(once, FRIDAY, exceptions, 1, 30, now)

    assert once == twice
    assert [s.start_time.hour for s in once] == [15, 16, 17]


def test_filter_does_not_mutate_input() -> None:
    exceptions = _instances(ExceptionRecord(date=FRIDAY, time_start=dt.time(9, 0)))
    slots = [_slot("08:00", "09:00"), _slot("09:00", "10:00")]
    before = list(slots)

    filter_slots(slots, FRIDAY, exceptions, 1, 0, NOW)

    assert slots == before


def test_restricted_by_both_bounds() -> None:
    inst = _instances(ExceptionRecord(date=FRIDAY, time_start=dt.time(18, 0), time_end=dt.time(9, 0)))[0]

    assert restricted_by(_slot("08:00", "09:00"), inst)
    assert not restricted_by(_slot("09:00", "10:00"), inst)
    assert not restricted_by(_slot("17:00", "18:00"), inst)
    assert restricted_by(_slot("17:30", "18:30"), inst)
