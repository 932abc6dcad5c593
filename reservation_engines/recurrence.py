"""
Recurrence expansion engine (``reservation_engines.recurrence``).

Responsibility
--------------
Turns one base reservation window plus a ``RecurrenceRule`` into the ordered,
de-duplicated list of concrete windows that will each become a reservation.

Architecture position
---------------------
**Engines layer** -- pure functions.  ZERO I/O.  May import only from
``reservation_kernel.domain`` and ``reservation_kernel.exceptions``.

Invariants enforced
-------------------
* Every instance has exactly the base duration and the base wall-clock start
  time in the calendar zone (``datetime`` arithmetic on ``tz``, so a DST
  change keeps 09:00 at 09:00).
* No instance starts before the base start; no instance starts on a date
  after ``rule.end_date``.  Weekdays and dates are read in the calendar
  zone, not in the caller's offset.
* Output is sorted by start and free of duplicate (start, end) pairs.
* Monthly days past the end of a short month clamp to its last day.

Failure modes
-------------
* ``InvalidDateRangeError`` -- base end not after base start.
* ``RecurrenceLimitExceededError`` -- more instances than ``max_instances``.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta, tzinfo

from reservation_kernel.domain.recurrence import (
    WEEKDAY_NAMES,
    RecurrenceRule,
    RecurrenceType,
)
from reservation_kernel.domain.reservation import DateRange
from reservation_kernel.exceptions import RecurrenceLimitExceededError
from reservation_kernel.logging_config import get_logger

logger = get_logger("engines.recurrence")


def sunday_based_weekday(moment: datetime | date) -> int:
    """Weekday with 0=Sunday .. 6=Saturday."""
    return (moment.weekday() + 1) % 7


def _in_zone(moment: datetime, tz: tzinfo | None) -> datetime:
    if tz is None:
        return moment
    if moment.tzinfo is None:
        return moment.replace(tzinfo=tz)
    return moment.astimezone(tz)


def _add_months(year: int, month: int, months: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def _expand_weekly(
    base_start: datetime, duration: timedelta, rule: RecurrenceRule,
) -> list[DateRange]:
    assert rule.end_date is not None
    base_weekday = sunday_based_weekday(base_start)
    weekdays = rule.days_of_week or (base_weekday,)
    week_anchor = base_start - timedelta(days=base_weekday)

    instances: list[DateRange] = []
    step = 0
    while True:
        week_start = week_anchor + timedelta(weeks=rule.interval * step)
        if week_start.date() > rule.end_date:
            break
        for weekday in sorted(set(weekdays)):
            start = week_start + timedelta(days=weekday)
            if start < base_start or start.date() > rule.end_date:
                continue
            instances.append(DateRange(start, start + duration))
        step += 1
    return instances


def _expand_monthly(
    base_start: datetime, duration: timedelta, rule: RecurrenceRule,
) -> list[DateRange]:
    assert rule.end_date is not None
    day_of_month = rule.day_of_month or base_start.day

    instances: list[DateRange] = []
    step = 0
    while True:
        year, month = _add_months(base_start.year, base_start.month, rule.interval * step)
        if date(year, month, 1) > rule.end_date:
            break
        last_day = calendar.monthrange(year, month)[1]
        start = base_start.replace(year=year, month=month, day=min(day_of_month, last_day))
        if start >= base_start and start.date() <= rule.end_date:
            instances.append(DateRange(start, start + duration))
        step += 1
    return instances


def expand_recurrence(
    base_start: datetime,
    base_end: datetime,
    rule: RecurrenceRule | None = None,
    max_instances: int | None = None,
    tz: tzinfo | None = None,
) -> tuple[DateRange, ...]:
    """
    Expand a base window into concrete reservation windows.

    Preconditions:
        - ``base_end > base_start`` (else ``InvalidDateRangeError``).
        - ``rule`` already validated (``RecurrenceRule.__post_init__``).

    Args:
        tz: Calendar zone.  The base window is moved into it before
            expanding, so weekdays, month days and the end date are all
            judged on the calendar's wall clock.  None keeps the
            base's own tzinfo.

    Postconditions:
        - ``none`` (or no rule) yields exactly the base window.
        - A rule ending before the base start yields an empty tuple; callers
          decide whether that is an error.

    Raises:
        RecurrenceLimitExceededError: If ``max_instances`` is set and the
            expansion is larger.
    """
    base_start = _in_zone(base_start, tz)
    base_end = _in_zone(base_end, tz)
    base = DateRange(base_start, base_end)
    if rule is None or rule.type == RecurrenceType.NONE:
        return (base,)

    assert rule.end_date is not None
    if rule.end_date < base_start.date():
        return ()

    if rule.type == RecurrenceType.WEEKLY:
        raw = _expand_weekly(base_start, base.duration, rule)
    else:
        raw = _expand_monthly(base_start, base.duration, rule)

    unique: dict[tuple[datetime, datetime], DateRange] = {}
    for instance in raw:
        unique.setdefault((instance.start, instance.end), instance)
    result = tuple(sorted(unique.values(), key=lambda r: (r.start, r.end)))

    if max_instances is not None and len(result) > max_instances:
        raise RecurrenceLimitExceededError(len(result), max_instances)

    logger.debug(
        "recurrence_expanded",
        extra={
            "recurrence_type": rule.type.value,
            "interval": rule.interval,
            "instance_count": len(result),
        },
    )
    return result


def describe_recurrence(rule: RecurrenceRule | None) -> str:
    """Human-readable summary, e.g. ``Every 2 weeks on Monday, Wednesday until 2025-03-31``."""
    if rule is None or rule.type == RecurrenceType.NONE:
        return "Does not repeat"

    until = f" until {rule.end_date.isoformat()}" if rule.end_date else ""
    if rule.type == RecurrenceType.WEEKLY:
        cadence = "Every week" if rule.interval == 1 else f"Every {rule.interval} weeks"
        if rule.days_of_week:
            names = ", ".join(WEEKDAY_NAMES[d] for d in sorted(rule.days_of_week))
            return f"{cadence} on {names}{until}"
        return f"{cadence}{until}"

    cadence = "Every month" if rule.interval == 1 else f"Every {rule.interval} months"
    if rule.day_of_month:
        return f"{cadence} on day {rule.day_of_month}{until}"
    return f"{cadence}{until}"
