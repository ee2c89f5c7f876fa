from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import List, Optional, Union

from dateutil.relativedelta import relativedelta

from ..models.event import RecurrenceType
from .errors import ValidationError
from .timeutils import normalize_bound, to_utc_naive

logger = logging.getLogger(__name__)

MAX_OCCURRENCES = 365


@dataclass(frozen=True)
class RecurrenceRule:
    type: RecurrenceType = RecurrenceType.NONE
    interval: int = 1
    end_at: Optional[Union[date, datetime]] = None

    def __post_init__(self):
        try:
            kind = RecurrenceType(self.type)
        except ValueError:
            raise ValidationError(
                f"Unknown recurrence type: {self.type!r}", field="recurrence_type"
            ) from None
        object.__setattr__(self, "type", kind)
        try:
            interval = int(self.interval)
        except (TypeError, ValueError):
            raise ValidationError(
                f"Recurrence interval must be a whole number: {self.interval!r}",
                field="recurrence_interval",
            ) from None
        if interval < 1:
            raise ValidationError(
                "Recurrence interval must be at least 1.", field="recurrence_interval"
            )
        object.__setattr__(self, "interval", interval)
        object.__setattr__(self, "end_at", normalize_bound(self.end_at))

    @classmethod
    def none(cls) -> "RecurrenceRule":
        return cls()

    @property
    def is_recurring(self) -> bool:
        return self.type is not RecurrenceType.NONE

    def step(self) -> Union[timedelta, relativedelta]:
        n = self.interval
        if self.type is RecurrenceType.DAILY:
            return timedelta(days=n)
        if self.type is RecurrenceType.WEEKLY:
            return timedelta(weeks=n)
        if self.type is RecurrenceType.MONTHLY:
            return relativedelta(months=n)
        if self.type is RecurrenceType.YEARLY:
            return relativedelta(years=n)
        raise ValidationError("A non-recurring rule has no step.")

    def as_fields(self) -> dict:
        """Column values stored on a series anchor."""
        if not self.is_recurring:
            return {
                "recurrence_type": RecurrenceType.NONE.value,
                "recurrence_interval": None,
                "recurrence_end_at": None,
            }
        return {
            "recurrence_type": self.type.value,
            "recurrence_interval": self.interval,
            "recurrence_end_at": self.end_at,
        }


def expand_occurrences(
    start: datetime,
    rule: RecurrenceRule,
    end: Optional[Union[date, datetime]] = None,
    max_occurrences: int = MAX_OCCURRENCES,
) -> List[datetime]:
    """Return the occurrence timestamps of ``rule`` starting at ``start``.

    ``end`` is inclusive and defaults to ``rule.end_at``. The result never
    holds more than ``max_occurrences`` items; anything past the cap is
    dropped. An end before ``start`` yields just ``[start]``.

    Months and years clamp to the last day of a shorter month and each step
    starts from the previous occurrence, so Jan 31 monthly gives Jan 31,
    Feb 28, Mar 28, Apr 28.
    """
    if start is None:
        raise ValidationError("A start date and time is required.", field="event_at")
    if max_occurrences < 1:
        raise ValueError("max_occurrences must be positive")

    start = to_utc_naive(start)
    if not rule.is_recurring:
        return [start]

    bound = normalize_bound(end) if end is not None else rule.end_at
    if bound is None:
        raise ValidationError(
            "Recurring events need an end date.", field="recurrence_end_at"
        )

    step = rule.step()
    occurrences = [start]
    current = start
    while True:
        current = current + step
        if current > bound:
            break
        if len(occurrences) >= max_occurrences:
            logger.warning(
                "Recurrence %s/%d from %s truncated at %d occurrences",
                rule.type.value,
                rule.interval,
                start.isoformat(),
                max_occurrences,
            )
            break
        occurrences.append(current)
    return occurrences
