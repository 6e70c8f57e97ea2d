"""Conversion of plain source records into domain values.

Sources hand over JSON-like dicts. Anything malformed is skipped with a warning
so that one bad schedule or day off only costs its own entry, not the calendar.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Iterable, Mapping

from venuebook.domain import (
    WEEKDAYS,
    BreakWindow,
    ExceptionRecord,
    PackageSchedule,
    RecurrenceRule,
    RuleType,
    TimeSlot,
)
from venuebook.recurrence import parse_monthly_token
from venuebook.resolver import resolve_window

logger = logging.getLogger(__name__)


def parse_time(raw: Any) -> dt.time:
    """Parse "HH:MM" or "HH:MM:SS" (hours may be a single digit)."""
    if isinstance(raw, dt.time):
        return raw
    if not isinstance(raw, str):
        raise ValueError(f"Expected time string, got {raw!r}")

    parts = raw.strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Invalid time value: {raw!r}")
    numbers = [int(p) for p in parts]
    return dt.time(*numbers)


def parse_optional_time(raw: Any) -> dt.time | None:
    if raw is None or raw == "":
        return None
    return parse_time(raw)


def parse_date(raw: Any) -> dt.date:
    if isinstance(raw, dt.datetime):
        return raw.date()
    if isinstance(raw, dt.date):
        return raw
    # Sources sometimes send full timestamps ("2026-12-25T00:00:00.000000Z").
    return dt.date.fromisoformat(str(raw).strip()[:10])


def _scope(raw: Any) -> frozenset[int] | None:
    # An empty list means "no restriction", same as null.
    if not raw:
        return None
    return frozenset(int(v) for v in raw)


def parse_rule(raw: Mapping[str, Any]) -> RecurrenceRule:
    rule_type = RuleType(str(raw.get("availability_type", raw.get("type", ""))).strip().lower())
    day_config = raw.get("day_configuration", raw.get("day_config")) or []
    if isinstance(day_config, str):
        day_config = [day_config]

    tokens: list[str] = []
    for token in day_config:
        token = str(token).strip().lower()
        if rule_type == RuleType.WEEKLY and token not in WEEKDAYS:
            logger.warning("Skipping unknown weekday %r in weekly schedule", token)
            continue
        if rule_type == RuleType.MONTHLY and parse_monthly_token(token) is None:
            logger.warning("Skipping unparsable monthly token %r", token)
            continue
        tokens.append(token)

    return RecurrenceRule(
        type=rule_type,
        day_config=tuple(tokens),
        is_active=bool(raw.get("is_active", True)),
        priority=int(raw.get("priority") or 0),
    )


def parse_rules(raw_rules: Iterable[Mapping[str, Any]] | None) -> tuple[RecurrenceRule, ...]:
    rules: list[RecurrenceRule] = []
    for raw in raw_rules or []:
        try:
            rules.append(parse_rule(raw))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping availability schedule %r (%s: %s)", raw, type(e).__name__, e)
    return tuple(rules)


def parse_exception_record(raw: Mapping[str, Any]) -> ExceptionRecord:
    return ExceptionRecord(
        date=parse_date(raw["date"]),
        is_recurring_annually=bool(raw.get("is_recurring", False)),
        time_start=parse_optional_time(raw.get("time_start")),
        time_end=parse_optional_time(raw.get("time_end")),
        package_scope=_scope(raw.get("package_ids")),
        room_scope=_scope(raw.get("room_ids")),
        reason=str(raw.get("reason") or ""),
    )


def parse_exception_records(raw_records: Iterable[Mapping[str, Any]] | None) -> list[ExceptionRecord]:
    records: list[ExceptionRecord] = []
    for raw in raw_records or []:
        try:
            records.append(parse_exception_record(raw))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping day off %r (%s: %s)", raw, type(e).__name__, e)
    return records


def parse_break(raw: Mapping[str, Any]) -> BreakWindow:
    days = frozenset(str(d).strip().lower() for d in raw.get("days") or [])
    unknown = days - set(WEEKDAYS)
    if unknown:
        raise ValueError(f"Unknown weekdays: {sorted(unknown)}")
    return BreakWindow(
        days=days,
        start=parse_time(raw["start_time"]),
        end=parse_time(raw["end_time"]),
        note=str(raw.get("note") or ""),
    )


def _optional_int(raw: Any) -> int | None:
    return None if raw is None else int(raw)


def _optional_float(raw: Any) -> float | None:
    return None if raw is None else float(raw)


def parse_package(raw: Mapping[str, Any]) -> PackageSchedule:
    """Build a package schedule; the package id itself must be valid."""
    location = raw.get("location") or {}

    breaks: list[BreakWindow] = []
    for item in raw.get("break_times") or []:
        try:
            breaks.append(parse_break(item))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping break time %r (%s: %s)", item, type(e).__name__, e)

    window = resolve_window(
        package_days=_optional_int(raw.get("booking_window_days")),
        package_notice=_optional_float(raw.get("min_notice_hours")),
        location_days=_optional_int(location.get("booking_window_days")),
        location_notice=_optional_float(location.get("min_notice_hours")),
    )

    return PackageSchedule(
        package_id=int(raw["id"]),
        name=str(raw.get("name") or ""),
        rules=parse_rules(raw.get("availability_schedules")),
        window=window,
        breaks=tuple(breaks),
    )


def parse_slot(raw: Mapping[str, Any]) -> TimeSlot:
    room = raw.get("room_id")
    return TimeSlot(
        start_time=parse_time(raw["start_time"]),
        end_time=parse_time(raw["end_time"]),
        assigned_room_id=None if room is None else int(room),
    )


def parse_slots_payload(payload: Mapping[str, Any]) -> list[TimeSlot]:
    """Slots from one feed message: {"available_slots": [...]}."""
    slots: list[TimeSlot] = []
    for raw in payload.get("available_slots") or []:
        try:
            slots.append(parse_slot(raw))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping time slot %r (%s: %s)", raw, type(e).__name__, e)
    return slots
