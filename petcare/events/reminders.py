from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from ..models.event import PetEvent
from .repository import EventRepository
from .series import DEFAULT_LEAD_HOURS
from .timeutils import to_utc_naive, utcnow

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_HOURS = 1


def hours_until(event, now: datetime) -> float:
    return (event.event_at - to_utc_naive(now)).total_seconds() / 3600


# Due while the time left sits in the last window_hours of the lead time.
# The job must run at least once per window or a reminder can be skipped.
def is_reminder_due(
    event,
    now: datetime,
    window_hours: float = DEFAULT_WINDOW_HOURS,
    default_lead_hours: int = DEFAULT_LEAD_HOURS,
) -> bool:
    if not event.is_reminder or event.reminder_completed:
        return False
    left = hours_until(event, now)
    if left <= 0:
        return False
    lead = event.reminder_lead_hours or default_lead_hours
    return lead - window_hours < left <= lead


def due_reminders(
    repository: EventRepository,
    now: Optional[datetime] = None,
    window_hours: float = DEFAULT_WINDOW_HOURS,
    default_lead_hours: int = DEFAULT_LEAD_HOURS,
) -> List[PetEvent]:
    now = to_utc_naive(now) if now else utcnow()
    candidates = repository.query_reminder_candidates(now)
    due = [
        e
        for e in candidates
        if is_reminder_due(e, now, window_hours, default_lead_hours)
    ]
    logger.info(
        "%d of %d open reminders are due at %s",
        len(due),
        len(candidates),
        now.isoformat(),
    )
    return due


def group_by_user(events: Iterable[PetEvent]) -> Dict[int, List[PetEvent]]:
    grouped: Dict[int, List[PetEvent]] = OrderedDict()
    for e in events:
        grouped.setdefault(e.user_id, []).append(e)
    return grouped


def format_time_until(hours: float) -> str:
    if hours < 1:
        return "less than an hour"
    if hours < 24:
        n = round(hours)
        return "1 hour" if n == 1 else f"{n} hours"
    days = round(hours / 24)
    return "1 day" if days == 1 else f"{days} days"
