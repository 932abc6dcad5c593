"""
Availability / conflict engine (``reservation_engines.availability``).

Responsibility
--------------
Decides whether candidate windows collide with existing bookings of the same
resource, and computes the half-open interval a window blocks on the
resource calendar.

Architecture position
---------------------
**Engines layer** -- pure functions.  ZERO I/O.  Existing bookings are
loaded by ``ReservationSelector.list_blocking`` and passed in.

Invariants enforced
-------------------
* One overlap rule everywhere: blocked intervals ``[a0, a1)`` and
  ``[b0, b1)`` collide iff ``a0 < b1 and b0 < a1``.  The same predicate is
  used by the ORM insert listener and the PostgreSQL exclusion constraint.
* ``day`` granularity blocks every calendar day touched by ``[start, end]``
  in the calendar timezone, boundary days included.  ``timestamp``
  granularity blocks exactly ``[start, end)``.
* Only bookings whose status is in ``disabled_statuses`` participate.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from datetime import timezone as dt_timezone
from enum import Enum
from uuid import UUID

from reservation_kernel.domain.reservation import (
    BLOCKING_STATUSES,
    BookedRange,
    DateRange,
    ReservationStatus,
)


class ConflictGranularity(str, Enum):
    DAY = "day"
    TIMESTAMP = "timestamp"


@dataclass(frozen=True)
class BlockedInterval:
    """Half-open ``[start, end)`` occupied on the resource calendar."""

    start: datetime
    end: datetime

    def overlaps(self, other_start: datetime, other_end: datetime) -> bool:
        return self.start < other_end and other_start < self.end


@dataclass(frozen=True)
class BatchAvailability:
    """Outcome of checking every instance of one create request."""

    blocks: tuple[BlockedInterval, ...]
    conflict_index: int | None = None
    conflicting_reservation_id: UUID | None = None

    @property
    def available(self) -> bool:
        return self.conflict_index is None


def blocked_interval(
    window: DateRange,
    granularity: ConflictGranularity = ConflictGranularity.DAY,
    tz: tzinfo = dt_timezone.utc,
) -> BlockedInterval:
    """Interval a reservation window occupies under ``granularity``."""
    if ConflictGranularity(granularity) == ConflictGranularity.TIMESTAMP:
        return BlockedInterval(window.start, window.end)

    first_day = window.start.astimezone(tz).date()
    last_day = window.end.astimezone(tz).date()
    return BlockedInterval(
        datetime.combine(first_day, time.min, tzinfo=tz),
        datetime.combine(last_day + timedelta(days=1), time.min, tzinfo=tz),
    )


def find_conflicts(
    candidate: BlockedInterval,
    existing: Iterable[BookedRange],
    disabled_statuses: Iterable[ReservationStatus] = BLOCKING_STATUSES,
) -> list[BookedRange]:
    """Existing bookings with a disabling status that overlap ``candidate``."""
    statuses = frozenset(ReservationStatus(s) for s in disabled_statuses)
    return [
        booked
        for booked in existing
        if booked.status in statuses
        and candidate.overlaps(booked.block_start, booked.block_end)
    ]


def is_available(
    candidate: BlockedInterval,
    existing: Iterable[BookedRange],
    disabled_statuses: Iterable[ReservationStatus] = BLOCKING_STATUSES,
) -> bool:
    return not find_conflicts(candidate, existing, disabled_statuses)


def check_batch(
    windows: Sequence[DateRange],
    existing: Sequence[BookedRange],
    granularity: ConflictGranularity = ConflictGranularity.DAY,
    tz: tzinfo = dt_timezone.utc,
    disabled_statuses: Iterable[ReservationStatus] = BLOCKING_STATUSES,
) -> BatchAvailability:
    """
    Check every window of a create request, in order.

    Each window is checked against the stored bookings and against the
    windows before it in the same request, so a recurrence whose instances
    overlap each other is rejected too.

    Postconditions:
        ``conflict_index`` is the index of the first colliding window, or
        None when the whole batch may be persisted.
    """
    statuses = tuple(disabled_statuses)
    blocks = tuple(blocked_interval(w, granularity, tz) for w in windows)

    for index, block in enumerate(blocks):
        conflicts = find_conflicts(block, existing, statuses)
        if conflicts:
            return BatchAvailability(blocks, index, conflicts[0].reservation_id)
        for earlier in blocks[:index]:
            if block.overlaps(earlier.start, earlier.end):
                return BatchAvailability(blocks, index, None)

    return BatchAvailability(blocks)


def blocked_days(
    existing: Iterable[BookedRange],
    tz: tzinfo = dt_timezone.utc,
    disabled_statuses: Iterable[ReservationStatus] = BLOCKING_STATUSES,
) -> frozenset[date]:
    """Calendar days a date picker should disable for the resource."""
    statuses = frozenset(ReservationStatus(s) for s in disabled_statuses)
    days: set[date] = set()
    for booked in existing:
        if booked.status not in statuses:
            continue
        day = booked.block_start.astimezone(tz).date()
        last = (booked.block_end.astimezone(tz) - timedelta(microseconds=1)).date()
        while day <= last:
            days.add(day)
            day += timedelta(days=1)
    return frozenset(days)
