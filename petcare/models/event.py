from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import CheckConstraint

from ..events.errors import ValidationError
from ..extensions import db


class EventCategory(str, enum.Enum):
    VET_VISIT = "vet_visit"
    GROOMING = "grooming"
    MEDICATION = "medication"
    GENERAL = "general"
    OTHER = "other"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


class RecurrenceType(str, enum.Enum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


@dataclass(frozen=True)
class EventKind:
    """Category of an event; only ``other`` carries a free-text label."""

    category: EventCategory
    custom_label: Optional[str] = None

    def __post_init__(self):
        try:
            category = EventCategory(self.category)
        except ValueError:
            raise ValidationError(
                f"Unknown category: {self.category!r}", field="category"
            ) from None
        object.__setattr__(self, "category", category)
        label = (self.custom_label or "").strip() or None
        if label and category is not EventCategory.OTHER:
            raise ValidationError(
                "A custom type is only allowed for the 'other' category.",
                field="custom_type",
            )
        object.__setattr__(self, "custom_label", label)

    @classmethod
    def other(cls, label: Optional[str] = None) -> "EventKind":
        return cls(EventCategory.OTHER, label)

    @property
    def display_label(self) -> str:
        if self.category is EventCategory.OTHER and self.custom_label:
            return self.custom_label
        return self.category.label


_CATEGORY_SQL = ", ".join(f"'{c.value}'" for c in EventCategory)


class PetEvent(db.Model):
    __tablename__ = "pet_events"

    id = db.Column(db.Integer, primary_key=True)

    pet_id = db.Column(
        db.Integer,
        db.ForeignKey("pets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # anchor of the series this record was generated for; no back-pointer
    parent_event_id = db.Column(
        db.Integer,
        db.ForeignKey("pet_events.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    # naive datetimes, always UTC
    event_at = db.Column(db.DateTime, nullable=False, index=True)

    recurrence_type = db.Column(
        db.String(10), nullable=False, default=RecurrenceType.NONE.value
    )
    recurrence_interval = db.Column(db.Integer, nullable=True)
    recurrence_end_at = db.Column(db.DateTime, nullable=True)

    title = db.Column(db.String(255), nullable=False)
    category = db.Column(
        db.String(20), nullable=False, default=EventCategory.GENERAL.value
    )
    custom_type = db.Column(db.String(120), nullable=True)
    location = db.Column(db.String(255), nullable=True)
    description = db.Column(db.Text, nullable=True)
    photo_url = db.Column(db.String(255), nullable=True)

    is_reminder = db.Column(db.Boolean, nullable=False, default=False)
    reminder_lead_hours = db.Column(db.Integer, nullable=True)
    reminder_completed = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(
        db.DateTime, nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint(
            "recurrence_interval IS NULL OR recurrence_interval >= 1",
            name="ck_event_interval_positive",
        ),
        CheckConstraint(
            "parent_event_id IS NULL OR recurrence_type = 'none'",
            name="ck_event_no_nested_series",
        ),
        CheckConstraint(
            "reminder_lead_hours IS NULL OR reminder_lead_hours > 0",
            name="ck_event_lead_positive",
        ),
        CheckConstraint(
            f"category IN ({_CATEGORY_SQL})", name="ck_event_category"
        ),
    )

    pet = db.relationship("Pet", backref=db.backref("events", lazy="dynamic"))

    @property
    def kind(self) -> EventKind:
        return EventKind(EventCategory(self.category), self.custom_type)

    @kind.setter
    def kind(self, value: EventKind) -> None:
        self.category = value.category.value
        self.custom_type = value.custom_label

    @property
    def display_label(self) -> str:
        return self.kind.display_label

    @property
    def is_anchor(self) -> bool:
        return (
            self.parent_event_id is None
            and (self.recurrence_type or RecurrenceType.NONE.value)
            != RecurrenceType.NONE.value
        )

    @property
    def is_series_member(self) -> bool:
        return self.is_anchor or self.parent_event_id is not None

    @property
    def effective_completed(self) -> bool:
        return bool(self.is_reminder and self.reminder_completed)

    def __repr__(self) -> str:
        return f"<PetEvent {self.id} {self.title!r} at {self.event_at}>"
