from __future__ import annotations

import calendar
import datetime as dt
import logging
import math
from typing import Iterable

from venuebook.domain import WEEKDAYS, RecurrenceRule, RuleType

logger = logging.getLogger(__name__)

ORDINALS = {
    "first": 1,
    "second": 2,
    "third": 3,
    "fourth": 4,
    "last": None,
}


def weekday_name(day: dt.date) -> str:
    # date.weekday() is Monday=0; the schedule data counts from Sunday.
    return WEEKDAYS[(day.weekday() + 1) % 7]


def week_of_month(day: dt.date) -> int:
    """1-based calendar row of `day`, counting rows that start on Sunday."""
    first = day.replace(day=1)
    first_offset = (first.weekday() + 1) % 7
    return math.ceil((day.day + first_offset) / 7)


def days_remaining_in_month(day: dt.date) -> int:
    _, last = calendar.monthrange(day.year, day.month)
    return last - day.day


def is_last_week_of_month(day: dt.date) -> bool:
    # Fixed-width "last week": the final seven days, whatever the weekday alignment.
    return days_remaining_in_month(day) < 7


def parse_monthly_token(token: str) -> tuple[str, str] | None:
    """Split "friday-last" into ("friday", "last"); None if unusable."""
    parts = token.strip().lower().split("-")
    if len(parts) != 2:
        return None
    weekday, ordinal = parts
    if weekday not in WEEKDAYS or ordinal not in ORDINALS:
        return None
    return weekday, ordinal


def _matches_monthly(day: dt.date, tokens: Iterable[str]) -> bool:
    name = weekday_name(day)
    for token in tokens:
        parsed = parse_monthly_token(token)
        if parsed is None:
            logger.debug("Skipping unparsable monthly token %r", token)
            continue

        weekday, ordinal = parsed
        if weekday != name:
            continue

        index = ORDINALS[ordinal]
        if index is None:
            if is_last_week_of_month(day):
                return True
        elif week_of_month(day) == index:
            return True
    return False


def matches(day: dt.date, rule: RecurrenceRule) -> bool:
    if not rule.is_active:
        return False

    if rule.type == RuleType.DAILY:
        return True
    if rule.type == RuleType.WEEKLY:
        return weekday_name(day) in {d.strip().lower() for d in rule.day_config}
    if rule.type == RuleType.MONTHLY:
        return _matches_monthly(day, rule.day_config)

    logger.debug("Skipping rule with unknown type %r", rule.type)
    return False


def matches_any(day: dt.date, rules: Iterable[RecurrenceRule]) -> bool:
    ordered = sorted(rules, key=lambda r: r.priority, reverse=True)
    return any(matches(day, rule) for rule in ordered)
