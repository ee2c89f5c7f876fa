from __future__ import annotations

from datetime import datetime, timedelta

import click
from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db

from .models.user import User
from .models.pet import Pet
from .models.event import EventCategory, EventKind, PetEvent, RecurrenceType
from .events.errors import EventError
from .events.recurrence import RecurrenceRule
from .events.reminders import format_time_until, group_by_user, hours_until
from .events.series import EventDetails
from .events.services import services_for
from .events.timeutils import utcnow


def _db_uri() -> str:
    return current_app.config.get("SQLALCHEMY_DATABASE_URI", "")

@click.command("init-db")
def init_db_cmd():
    uri = _db_uri()
    click.echo(f"Creating tables on DB: {uri}")
    db.create_all()
    click.echo("✔ Tables created.")

@click.command("reset-db")
@click.option("--force", is_flag=True, help="Drop + create (irreversible).")
def reset_db_cmd(force: bool):
    uri = _db_uri()
    if not force:
        click.echo("Add --force to confirm dropping all tables.")
        return
    click.echo(f"Dropping & creating tables on DB: {uri}")
    db.drop_all()
    db.create_all()
    click.echo("✔ Database reset.")

@click.command("purge-data")
def purge_data_cmd():
    db.session.query(PetEvent).filter(PetEvent.parent_event_id.isnot(None)).delete()
    db.session.query(PetEvent).delete()
    db.session.query(Pet).delete()
    db.session.query(User).delete()
    db.session.commit()
    if _db_uri().startswith("sqlite:"):
        try:
            db.session.execute(text("DELETE FROM sqlite_sequence"))
            db.session.commit()
        except SQLAlchemyError:
            # sqlite_sequence only exists once an AUTOINCREMENT table was used
            db.session.rollback()
    click.echo("✔ All data removed (schema kept).")

@click.command("seed-demo")
def seed_demo_cmd():
    owner = User(email="demo@petcare.local", name="Demo Owner")
    db.session.add(owner)
    db.session.commit()

    pet = Pet(user_id=owner.id, name="Maca", pet_type="Cat", breed="Mix", age_years=3)
    db.session.add(pet)
    db.session.commit()

    services = services_for()
    now = utcnow().replace(minute=0, second=0, microsecond=0)
    try:
        vet = services.series.create_event(
            pet.id,
            owner.id,
            EventDetails(
                title="Physiotherapy",
                kind=EventKind(EventCategory.VET_VISIT),
                location="Central Vet Clinic",
                is_reminder=True,
                reminder_lead_hours=24,
            ),
            now + timedelta(days=2, hours=1),
            RecurrenceRule(RecurrenceType.WEEKLY, 1, (now + timedelta(weeks=6)).date()),
        )
        pills = services.series.create_event(
            pet.id,
            owner.id,
            EventDetails(
                title="Deworming tablet",
                kind=EventKind(EventCategory.MEDICATION),
                is_reminder=True,
                reminder_lead_hours=3,
            ),
            now + timedelta(days=1),
            RecurrenceRule(RecurrenceType.MONTHLY, 1, (now + timedelta(days=365)).date()),
        )
        services.series.create_event(
            pet.id,
            owner.id,
            EventDetails(title="Nail trim", kind=EventKind.other("Claw care")),
            now - timedelta(days=10),
        )
    except EventError as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo(
        f"✔ Seed done. User: {owner.email}, pet: {pet.name}, "
        f"series: {len(vet)} + {len(pills)} appointments"
    )

@click.command("due-reminders")
@click.option(
    "--at",
    "at",
    default=None,
    help="Check as of this ISO timestamp (UTC) instead of now.",
)
def due_reminders_cmd(at):
    """List reminders that should be sent now, grouped by user."""
    try:
        now = datetime.fromisoformat(at) if at else utcnow()
    except ValueError:
        raise click.BadParameter(f"not an ISO timestamp: {at!r}", param_hint="--at") from None

    services = services_for()
    try:
        due = services.due_reminders(now)
    except EventError as exc:
        raise click.ClickException(str(exc)) from exc

    if not due:
        click.echo("No reminders to send at this time.")
        return
    for user_id, events in group_by_user(due).items():
        user = db.session.get(User, user_id)
        click.echo(f"{user.email if user else user_id}:")
        for e in events:
            pet_name = e.pet.name if e.pet else "Your pet"
            click.echo(
                f"  - {e.display_label}: {e.title} for {pet_name} "
                f"in {format_time_until(hours_until(e, now))} "
                f"({e.event_at:%Y-%m-%d %H:%M} UTC)"
            )
    click.echo(f"✔ {len(due)} reminder(s) due.")
