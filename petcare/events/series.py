from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Tuple, Union

from ..models.event import EventCategory, EventKind, PetEvent, RecurrenceType
from .errors import NotFoundError, ValidationError
from .recurrence import MAX_OCCURRENCES, RecurrenceRule, expand_occurrences
from .repository import EventRepository
from .timeutils import start_of_day, to_utc_naive, utcnow

logger = logging.getLogger(__name__)

DEFAULT_LEAD_HOURS = 24

# copied to every member of a series; event_at and reminder_completed are not
SHARED_FIELDS = (
    "title",
    "category",
    "custom_type",
    "location",
    "description",
    "photo_url",
    "is_reminder",
    "reminder_lead_hours",
)

def _clean(value: Optional[str]) -> Optional[str]:
    return (value or "").strip() or None

@dataclass(frozen=True)
class EventDetails:
    title: str
    kind: EventKind = field(default_factory=lambda: EventKind(EventCategory.GENERAL))
    location: Optional[str] = None
    description: Optional[str] = None
    photo_url: Optional[str] = None
    is_reminder: bool = False
    reminder_lead_hours: Optional[int] = None

    def validate(self) -> None:
        if not (self.title or "").strip():
            raise ValidationError("Please provide a title.", field="title")
        if len(self.title.strip()) > 255:
            raise ValidationError("Title is too long.", field="title")
        if self.is_reminder and self.reminder_lead_hours is not None:
            try:
                lead = int(self.reminder_lead_hours)
            except (TypeError, ValueError):
                raise ValidationError(
                    f"Reminder lead time must be a number of hours: {self.reminder_lead_hours!r}",
                    field="reminder_lead_hours",
                ) from None
            if lead < 1:
                raise ValidationError(
                    "Reminder lead time must be at least one hour.",
                    field="reminder_lead_hours",
                )

    def as_fields(self, default_lead_hours: int = DEFAULT_LEAD_HOURS) -> dict:
        lead = None
        if self.is_reminder:
            lead = int(self.reminder_lead_hours or default_lead_hours)
        return {
            "title": self.title.strip(),
            "category": self.kind.category.value,
            "custom_type": self.kind.custom_label,
            "location": _clean(self.location),
            "description": _clean(self.description),
            "photo_url": _clean(self.photo_url),
            "is_reminder": bool(self.is_reminder),
            "reminder_lead_hours": lead,
        }

@dataclass(frozen=True)
class SeriesGroup:
    """An anchor and its generated children, oldest first."""

    anchor: PetEvent
    members: Tuple[PetEvent, ...]

    @property
    def children(self) -> Tuple[PetEvent, ...]:
        return tuple(m for m in self.members if m is not self.anchor)

    @property
    def member_ids(self) -> List[int]:
        return [m.id for m in self.members]

    @property
    def last_at(self) -> datetime:
        return self.members[-1].event_at

    @property
    def completed_count(self) -> int:
        return sum(1 for m in self.members if m.effective_completed)

    def first_from(self, moment: datetime) -> Optional[PetEvent]:
        return next((m for m in self.members if m.event_at >= moment), None)

    def has_upcoming(self, now: datetime) -> bool:
        return self.first_from(start_of_day(now)) is not None

    def upcoming_count(self, now: datetime) -> int:
        return sum(1 for m in self.members if m.event_at >= now)

    def next_occurrence(self, now: datetime) -> Optional[PetEvent]:
        return next(
            (
                m
                for m in self.members
                if m.event_at >= now and not m.effective_completed
            ),
            None,
        )

    @property
    def recurrence_label(self) -> str:
        kind = self.anchor.recurrence_type or RecurrenceType.NONE.value
        if kind == RecurrenceType.NONE.value:
            return "Recurring"
        interval = self.anchor.recurrence_interval or 1
        if interval > 1:
            unit = {"daily": "days"}.get(kind, kind.replace("ly", "s"))
            return f"Every {interval} {unit}"
        return kind.capitalize()

TimelineItem = Union[SeriesGroup, PetEvent]

@dataclass(frozen=True)
class EventTimeline:
    cutoff: datetime
    upcoming_series: Tuple[SeriesGroup, ...] = ()
    past_series: Tuple[SeriesGroup, ...] = ()
    upcoming_standalone: Tuple[PetEvent, ...] = ()
    past_standalone: Tuple[PetEvent, ...] = ()
    orphans: Tuple[PetEvent, ...] = ()

    def _upcoming_key(self, item: TimelineItem) -> datetime:
        if isinstance(item, SeriesGroup):
            return item.first_from(self.cutoff).event_at
        return item.event_at

    @staticmethod
    def _past_key(item: TimelineItem) -> datetime:
        if isinstance(item, SeriesGroup):
            return item.last_at
        return item.event_at

    @property
    def upcoming_items(self) -> List[TimelineItem]:
        items = [*self.upcoming_series, *self.upcoming_standalone]
        return sorted(items, key=self._upcoming_key)

    @property
    def past_items(self) -> List[TimelineItem]:
        items = [*self.past_series, *self.past_standalone]
        return sorted(items, key=self._past_key, reverse=True)

    @property
    def upcoming_count(self) -> int:
        return len(self.upcoming_series) + len(self.upcoming_standalone)

    @property
    def past_count(self) -> int:
        return len(self.past_series) + len(self.past_standalone)

def group_events(
    events: Iterable[PetEvent], now: Optional[datetime] = None
) -> EventTimeline:
    """Split a pet's events into series groups and standalone events.

    Anything on or after the start of ``now``'s day (UTC) counts as upcoming.
    A child whose anchor is not in ``events`` is reported in ``orphans`` and
    listed as standalone.
    """
    events = list(events)
    cutoff = start_of_day(to_utc_naive(now) if now else utcnow())

    children: Dict[int, List[PetEvent]] = defaultdict(list)
    for e in events:
        if e.parent_event_id is not None:
            children[e.parent_event_id].append(e)

    anchor_ids = {
        e.id
        for e in events
        if e.parent_event_id is None and (e.is_anchor or e.id in children)
    }

    groups: List[SeriesGroup] = []
    standalone: List[PetEvent] = []
    orphans: List[PetEvent] = []
    for e in events:
        if e.id in anchor_ids:
            members = sorted([e, *children[e.id]], key=lambda m: m.event_at)
            groups.append(SeriesGroup(anchor=e, members=tuple(members)))
        elif e.parent_event_id is not None and e.parent_event_id not in anchor_ids:
            logger.warning(
                "Event %s references missing series anchor %s",
                e.id,
                e.parent_event_id,
            )
            orphans.append(e)
            standalone.append(e)
        elif e.parent_event_id is None:
            standalone.append(e)

    upcoming_series = [g for g in groups if g.has_upcoming(cutoff)]
    past_series = [g for g in groups if not g.has_upcoming(cutoff)]
    upcoming_standalone = sorted(
        (e for e in standalone if e.event_at >= cutoff), key=lambda e: e.event_at
    )
    past_standalone = sorted(
        (e for e in standalone if e.event_at < cutoff),
        key=lambda e: e.event_at,
        reverse=True,
    )
    return EventTimeline(
        cutoff=cutoff,
        upcoming_series=tuple(
            sorted(upcoming_series, key=lambda g: g.first_from(cutoff).event_at)
        ),
        past_series=tuple(sorted(past_series, key=lambda g: g.last_at, reverse=True)),
        upcoming_standalone=tuple(upcoming_standalone),
        past_standalone=tuple(past_standalone),
        orphans=tuple(orphans),
    )

def filter_events(
    events: Iterable[PetEvent],
    category: Optional[Union[str, EventCategory]] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    reminders_only: bool = False,
) -> List[PetEvent]:
    wanted = None
    if category:
        try:
            wanted = EventCategory(category).value
        except ValueError:
            raise ValidationError(
                f"Unknown category: {category!r}", field="category"
            ) from None
    out = []
    for e in events:
        if wanted and e.category != wanted:
            continue
        if date_from and e.event_at.date() < date_from:
            continue
        if date_to and e.event_at.date() > date_to:
            continue
        if reminders_only and not e.is_reminder:
            continue
        out.append(e)
    return out

class SeriesManager:
    def __init__(
        self,
        repository: EventRepository,
        max_occurrences: int = MAX_OCCURRENCES,
        default_lead_hours: int = DEFAULT_LEAD_HOURS,
    ):
        self.repository = repository
        self.max_occurrences = max_occurrences
        self.default_lead_hours = default_lead_hours

    def create_event(
        self,
        pet_id: int,
        user_id: int,
        details: EventDetails,
        event_at: Optional[datetime],
        rule: Optional[RecurrenceRule] = None,
    ) -> List[PetEvent]:
        """Store a single event, or an anchor plus its children for a rule.

        The records are written in one transaction. Returns them with the
        anchor first.
        """
        details.validate()
        if event_at is None:
            raise ValidationError("Please provide a date and time.", field="event_at")
        rule = rule or RecurrenceRule.none()
        dates = expand_occurrences(
            event_at, rule, max_occurrences=self.max_occurrences
        )

        base = details.as_fields(self.default_lead_hours)
        base.update(pet_id=pet_id, user_id=user_id)
        with self.repository.atomic():
            anchor = self.repository.insert(
                {**base, **rule.as_fields(), "event_at": dates[0]}
            )
            children = []
            if len(dates) > 1:
                child_fields = {**base, **RecurrenceRule.none().as_fields()}
                children = self.repository.insert_many(
                    {**child_fields, "event_at": when, "parent_event_id": anchor.id}
                    for when in dates[1:]
                )
        if rule.is_recurring:
            logger.info(
                "Created %s series %s for pet %s with %d appointments",
                rule.type.value,
                anchor.id,
                pet_id,
                len(dates),
            )
        return [anchor, *children]

    def load_series(self, event_id: int) -> SeriesGroup:
        return load_series(self.repository, event_id)

    def timeline(self, pet_id: int, now: Optional[datetime] = None) -> EventTimeline:
        return group_events(self.repository.query_by_pet(pet_id), now=now)

def load_series(repository: EventRepository, event_id: int) -> SeriesGroup:
    """Return the series ``event_id`` belongs to.

    A standalone event comes back as a group holding only itself.
    """
    event = repository.get(event_id)
    if event is None:
        raise NotFoundError(f"Event {event_id} not found.", event_id=event_id)
    anchor = event
    if event.parent_event_id is not None:
        anchor = repository.get(event.parent_event_id)
        if anchor is None:
            raise NotFoundError(
                f"Series anchor {event.parent_event_id} of event {event_id} not found.",
                event_id=event.parent_event_id,
            )
    members = [anchor, *repository.query_by_parent(anchor.id)]
    members.sort(key=lambda m: m.event_at)
    return SeriesGroup(anchor=anchor, members=tuple(members))
