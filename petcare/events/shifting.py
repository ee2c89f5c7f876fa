"""Moving one appointment of a series and every later one by the same amount."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Tuple

from ..models.event import PetEvent
from .errors import PartialFailureError, ValidationError
from .repository import BatchResult, EventRepository
from .series import load_series
from .timeutils import to_utc_naive

logger = logging.getLogger(__name__)


def _plural(n: int, unit: str) -> str:
    return f"{n} {unit}" if n == 1 else f"{n} {unit}s"


@dataclass(frozen=True)
class ShiftDelta:
    """Signed whole days plus a signed sub-day remainder of the same sign."""

    days: int = 0
    remainder: timedelta = timedelta(0)

    @classmethod
    def between(cls, original: datetime, new: datetime) -> "ShiftDelta":
        diff = to_utc_naive(new) - to_utc_naive(original)
        negative = diff < timedelta(0)
        magnitude = -diff if negative else diff
        remainder = magnitude - timedelta(days=magnitude.days)
        if negative:
            return cls(days=-magnitude.days, remainder=-remainder)
        return cls(days=magnitude.days, remainder=remainder)

    @property
    def total(self) -> timedelta:
        return timedelta(days=self.days) + self.remainder

    @property
    def is_zero(self) -> bool:
        return self.total == timedelta(0)

    def apply(self, moment: datetime) -> datetime:
        return moment + timedelta(days=self.days) + self.remainder

    def describe(self) -> str:
        if self.is_zero:
            return "No change"
        parts = []
        if self.days:
            parts.append(_plural(abs(self.days), "day"))
        seconds = int(abs(self.remainder).total_seconds())
        hours, minutes = divmod(seconds // 60, 60)
        if hours:
            parts.append(_plural(hours, "hour"))
        if minutes:
            parts.append(_plural(minutes, "minute"))
        direction = "earlier" if self.total < timedelta(0) else "later"
        return f"{' and '.join(parts)} {direction}"


@dataclass(frozen=True)
class ShiftResult:
    delta: ShiftDelta
    shifted_ids: Tuple[int, ...] = ()


def plan_shift(
    members: Iterable[PetEvent], original_at: datetime, new_at: datetime
) -> List[Tuple[int, datetime]]:
    """New timestamps for every member on or after ``original_at``.

    Each member keeps its own time of day and moves by the same delta.
    Members before ``original_at`` are left out. A zero delta plans nothing.
    """
    delta = ShiftDelta.between(original_at, new_at)
    if delta.is_zero:
        return []
    original_at = to_utc_naive(original_at)
    ordered = sorted(members, key=lambda m: m.event_at)
    return [(m.id, delta.apply(m.event_at)) for m in ordered if m.event_at >= original_at]


class DateShiftEngine:
    def __init__(self, repository: EventRepository):
        self.repository = repository

    def preview(self, event_id: int, new_at: datetime) -> Tuple[ShiftDelta, int]:
        """Delta and number of appointments a shift would move."""
        series = load_series(self.repository, event_id)
        event = self._member(series.members, event_id)
        plan = plan_shift(series.members, event.event_at, new_at)
        return ShiftDelta.between(event.event_at, new_at), len(plan)

    def shift(
        self, event_id: int, new_at: Optional[datetime], atomic: bool = True
    ) -> ShiftResult:
        """Move ``event_id`` to ``new_at`` and shift later members alike.

        With ``atomic`` a failed member undoes the whole shift; without it the
        members that were written stay written. Either way a failure raises
        :class:`PartialFailureError` naming the ids on both sides.
        """
        if new_at is None:
            raise ValidationError("Please provide the new date and time.", field="event_at")
        series = load_series(self.repository, event_id)
        event = self._member(series.members, event_id)
        delta = ShiftDelta.between(event.event_at, new_at)
        plan = plan_shift(series.members, event.event_at, new_at)
        if not plan:
            logger.debug("Shift of event %s is a no-op", event_id)
            return ShiftResult(delta=delta)

        changes = {member_id: {"event_at": when} for member_id, when in plan}
        outcome: Optional[BatchResult] = None
        with self.repository.atomic():
            outcome = self.repository.update_each(changes)
            if not outcome.ok and atomic:
                raise PartialFailureError(
                    f"Shift of series {series.anchor.id} failed; no dates were changed",
                    succeeded=outcome.succeeded,
                    failed=outcome.failed.keys(),
                    rolled_back=True,
                )
        if not outcome.ok:
            logger.error(
                "Shift of series %s partially applied: failed=%s",
                series.anchor.id,
                sorted(outcome.failed),
            )
            raise PartialFailureError(
                f"Shift of series {series.anchor.id} only partly applied",
                succeeded=outcome.succeeded,
                failed=outcome.failed.keys(),
                rolled_back=False,
            )

        logger.info(
            "Shifted %d appointments of series %s %s",
            len(outcome.succeeded),
            series.anchor.id,
            delta.describe(),
        )
        return ShiftResult(delta=delta, shifted_ids=tuple(outcome.succeeded))

    @staticmethod
    def _member(members: Iterable[PetEvent], event_id: int) -> PetEvent:
        return next(m for m in members if m.id == event_id)
