from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from ..models.event import PetEvent
from .errors import NotFoundError, PartialFailureError, ValidationError
from .repository import EventRepository
from .series import DEFAULT_LEAD_HOURS, SHARED_FIELDS, EventDetails, load_series
from .timeutils import to_utc_naive

logger = logging.getLogger(__name__)


class SeriesEditCoordinator:
    """Edits one appointment, or the shared fields of a whole series."""

    def __init__(
        self, repository: EventRepository, default_lead_hours: int = DEFAULT_LEAD_HOURS
    ):
        self.repository = repository
        self.default_lead_hours = default_lead_hours

    def _get_or_404(self, event_id: int) -> PetEvent:
        event = self.repository.get(event_id)
        if event is None:
            raise NotFoundError(f"Event {event_id} not found.", event_id=event_id)
        return event

    def edit_instance(
        self,
        event_id: int,
        details: Optional[EventDetails] = None,
        event_at: Optional[datetime] = None,
    ) -> PetEvent:
        """Change one record's details and/or its own date; siblings stay put."""
        self._get_or_404(event_id)
        fields = {}
        if details is not None:
            details.validate()
            fields.update(details.as_fields(self.default_lead_hours))
        if event_at is not None:
            fields["event_at"] = to_utc_naive(event_at)
        if not fields:
            return self._get_or_404(event_id)

        with self.repository.atomic():
            if not self.repository.update(event_id, fields):
                raise NotFoundError(f"Event {event_id} not found.", event_id=event_id)
        return self._get_or_404(event_id)

    def edit_series(self, event_id: int, details: EventDetails) -> List[int]:
        """Apply the shared fields of ``details`` to every member of a series.

        ``event_id`` may be the anchor or any child. Dates and completion
        flags are left alone. Returns the ids that were updated.
        """
        details.validate()
        series = load_series(self.repository, event_id)
        ids = series.member_ids
        fields = {
            name: value
            for name, value in details.as_fields(self.default_lead_hours).items()
            if name in SHARED_FIELDS
        }

        with self.repository.atomic():
            updated = self.repository.update_many(ids, fields)
            if updated != len(ids):
                present = self.repository.existing_ids(ids)
                raise PartialFailureError(
                    f"Series {series.anchor.id}: updated {updated} of {len(ids)} appointments",
                    succeeded=(),
                    failed=[i for i in ids if i not in present],
                    rolled_back=True,
                )
        logger.info("Updated %d appointments in series %s", len(ids), ids[0])
        return ids

    def set_completed(self, event_id: int, completed: bool) -> PetEvent:
        event = self._get_or_404(event_id)
        if not event.is_reminder:
            raise ValidationError(
                "Only reminders can be marked complete.", field="reminder_completed"
            )
        with self.repository.atomic():
            self.repository.update(event_id, {"reminder_completed": bool(completed)})
        return self._get_or_404(event_id)

    def toggle_completed(self, event_id: int) -> PetEvent:
        event = self._get_or_404(event_id)
        return self.set_completed(event_id, not event.reminder_completed)

    def delete_event(self, event_id: int) -> int:
        """Delete one appointment; deleting an anchor removes its series."""
        self._get_or_404(event_id)
        with self.repository.atomic():
            removed = self.repository.delete(event_id)
        logger.info("Deleted event %s (%d records)", event_id, removed)
        return removed
