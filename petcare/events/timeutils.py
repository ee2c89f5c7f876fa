from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional, Union

UTC = timezone.utc


def to_utc_naive(value: datetime) -> datetime:
    """Return ``value`` as a naive datetime in UTC.

    Naive input is assumed to already be UTC, which is how the database
    stores every timestamp.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def end_of_day(value: date) -> datetime:
    return datetime.combine(value, time(23, 59, 59))


def start_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.min)


def normalize_bound(value: Optional[Union[date, datetime]]) -> Optional[datetime]:
    """Turn an inclusive end bound into a UTC datetime.

    A bare date covers the whole day, so ``2025-04-30`` becomes
    ``2025-04-30 23:59:59``.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_utc_naive(value)
    return end_of_day(value)
