from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from flask import Flask, current_app

from ..models.event import PetEvent
from .editing import SeriesEditCoordinator
from .reminders import due_reminders
from .repository import EventRepository
from .series import SeriesManager
from .shifting import DateShiftEngine


@dataclass
class EventServices:
    repository: EventRepository
    series: SeriesManager
    editor: SeriesEditCoordinator
    shifter: DateShiftEngine
    window_hours: int
    default_lead_hours: int

    def due_reminders(self, now: Optional[datetime] = None) -> List[PetEvent]:
        return due_reminders(
            self.repository,
            now=now,
            window_hours=self.window_hours,
            default_lead_hours=self.default_lead_hours,
        )


def services_for(app: Optional[Flask] = None) -> EventServices:
    """Wire the event services with the settings of ``app``."""
    cfg = (app or current_app).config
    repository = EventRepository()
    lead = cfg.get("DEFAULT_REMINDER_LEAD_HOURS", 24)
    return EventServices(
        repository=repository,
        series=SeriesManager(
            repository,
            max_occurrences=cfg.get("EVENTS_MAX_OCCURRENCES", 365),
            default_lead_hours=lead,
        ),
        editor=SeriesEditCoordinator(repository, default_lead_hours=lead),
        shifter=DateShiftEngine(repository),
        window_hours=cfg.get("REMINDER_WINDOW_HOURS", 1),
        default_lead_hours=lead,
    )
