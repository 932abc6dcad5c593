"""
Recurrence rule value object (``reservation_kernel.domain.recurrence``).

Weekdays use 0=Sunday .. 6=Saturday, the numbering booking clients send.
Expansion itself lives in ``reservation_engines.recurrence``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum

from reservation_kernel.exceptions import InvalidRecurrenceRuleError


class RecurrenceType(str, Enum):
    NONE = "none"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


WEEKDAY_NAMES: tuple[str, ...] = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)


@dataclass(frozen=True)
class RecurrenceRule:
    """
    How a base reservation repeats.

    Contract:
        A rule other than ``none`` always carries an ``end_date``, so every
        expansion is finite.  ``days_of_week`` (weekly) and ``day_of_month``
        (monthly) are optional; when omitted the expander uses the base
        start's weekday / day of month.

    Raises:
        InvalidRecurrenceRuleError: On a non-positive interval, a weekday
            outside 0..6, a day outside 1..31, or a missing end date.
    """

    type: RecurrenceType = RecurrenceType.NONE
    interval: int = 1
    end_date: date | None = None
    days_of_week: tuple[int, ...] = ()
    day_of_month: int | None = None

    def __post_init__(self) -> None:
        if self.interval < 1:
            raise InvalidRecurrenceRuleError("interval", "must be at least 1")
        for day in self.days_of_week:
            if not 0 <= day <= 6:
                raise InvalidRecurrenceRuleError(
                    "days_of_week", f"{day} is not in 0..6 (0=Sunday)"
                )
        if self.day_of_month is not None and not 1 <= self.day_of_month <= 31:
            raise InvalidRecurrenceRuleError(
                "day_of_month", f"{self.day_of_month} is not in 1..31"
            )
        if self.type != RecurrenceType.NONE and self.end_date is None:
            raise InvalidRecurrenceRuleError(
                "end_date", f"required for {self.type.value} recurrence"
            )

    @property
    def is_recurring(self) -> bool:
        return self.type != RecurrenceType.NONE

    @classmethod
    def none(cls) -> RecurrenceRule:
        return cls()

    @classmethod
    def weekly(
        cls,
        end_date: date,
        days_of_week: tuple[int, ...] | list[int] = (),
        interval: int = 1,
    ) -> RecurrenceRule:
        return cls(
            type=RecurrenceType.WEEKLY,
            interval=interval,
            end_date=end_date,
            days_of_week=tuple(sorted(set(days_of_week))),
        )

    @classmethod
    def monthly(
        cls,
        end_date: date,
        day_of_month: int | None = None,
        interval: int = 1,
    ) -> RecurrenceRule:
        return cls(
            type=RecurrenceType.MONTHLY,
            interval=interval,
            end_date=end_date,
            day_of_month=day_of_month,
        )
