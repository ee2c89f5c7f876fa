from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Set

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models.event import PetEvent
from .errors import PersistenceError

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Per-record outcome of :meth:`EventRepository.update_each`."""

    succeeded: List[int] = field(default_factory=list)
    failed: Dict[int, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class EventRepository:
    """Reads and writes ``PetEvent`` rows through the Flask-SQLAlchemy session.

    Write methods only flush. Wrap them in :meth:`atomic` to commit, so a
    whole batch is either stored or rolled back together.
    """

    def __init__(self, session=None):
        self.session = session if session is not None else db.session

    @contextmanager
    def atomic(self) -> Iterator[None]:
        try:
            yield
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Event store rejected the write: %s", exc)
            raise PersistenceError(f"Event store rejected the write: {exc}") from exc
        except Exception:
            self.session.rollback()
            raise

    def get(self, event_id: int) -> Optional[PetEvent]:
        return self.session.get(PetEvent, event_id)

    def insert(self, fields: Mapping) -> PetEvent:
        record = PetEvent(**fields)
        self.session.add(record)
        self.session.flush()
        return record

    def insert_many(self, rows: Iterable[Mapping]) -> List[PetEvent]:
        records = [PetEvent(**fields) for fields in rows]
        self.session.add_all(records)
        self.session.flush()
        return records

    def update(self, event_id: int, fields: Mapping) -> bool:
        rows = (
            self.session.query(PetEvent)
            .filter(PetEvent.id == event_id)
            .update(dict(fields), synchronize_session="fetch")
        )
        return rows == 1

    def update_many(self, event_ids: Iterable[int], fields: Mapping) -> int:
        ids = list(event_ids)
        if not ids:
            return 0
        return (
            self.session.query(PetEvent)
            .filter(PetEvent.id.in_(ids))
            .update(dict(fields), synchronize_session="fetch")
        )

    def update_each(self, changes: Mapping[int, Mapping]) -> BatchResult:
        """Apply a different set of fields to every id, in order.

        A missing row is recorded as a failure and the rest still run. A
        store error stops the batch; the ids not reached are marked failed.
        """
        result = BatchResult()
        pending = list(changes.items())
        for index, (event_id, fields) in enumerate(pending):
            try:
                rows = (
                    self.session.query(PetEvent)
                    .filter(PetEvent.id == event_id)
                    .update(dict(fields), synchronize_session="fetch")
                )
            except SQLAlchemyError as exc:
                logger.error("Update of event %s failed: %s", event_id, exc)
                result.failed[event_id] = str(exc)
                for skipped_id, _ in pending[index + 1 :]:
                    result.failed[skipped_id] = "not attempted"
                break
            if rows == 1:
                result.succeeded.append(event_id)
            else:
                result.failed[event_id] = "not found"
        return result

    def delete(self, event_id: int) -> int:
        """Delete a record and, for an anchor, every record generated from it."""
        children = (
            self.session.query(PetEvent)
            .filter(PetEvent.parent_event_id == event_id)
            .delete(synchronize_session="fetch")
        )
        own = (
            self.session.query(PetEvent)
            .filter(PetEvent.id == event_id)
            .delete(synchronize_session="fetch")
        )
        return children + own

    def existing_ids(self, event_ids: Iterable[int]) -> Set[int]:
        ids = list(event_ids)
        if not ids:
            return set()
        rows = self.session.query(PetEvent.id).filter(PetEvent.id.in_(ids)).all()
        return {row[0] for row in rows}

    def query_by_parent(self, parent_id: int) -> List[PetEvent]:
        return (
            self.session.query(PetEvent)
            .filter_by(parent_event_id=parent_id)
            .order_by(PetEvent.event_at.asc())
            .all()
        )

    def query_by_pet(self, pet_id: int) -> List[PetEvent]:
        return (
            self.session.query(PetEvent)
            .filter_by(pet_id=pet_id)
            .order_by(PetEvent.event_at.desc())
            .all()
        )

    def query_reminder_candidates(self, now: datetime) -> List[PetEvent]:
        return (
            self.session.query(PetEvent)
            .filter(
                PetEvent.is_reminder.is_(True),
                PetEvent.reminder_completed.is_(False),
                PetEvent.event_at > now,
            )
            .order_by(PetEvent.event_at.asc())
            .all()
        )
