import os
from datetime import datetime

import pytest

from petcare import create_app
from petcare.extensions import db
from petcare.models.user import User
from petcare.models.pet import Pet
from petcare.models.event import EventCategory, EventKind, RecurrenceType
from petcare.events.recurrence import RecurrenceRule
from petcare.events.series import EventDetails
from petcare.events.services import services_for


def _assert_memory_db(uri: str):
    if uri != "sqlite:///:memory:":
        raise RuntimeError(
            f"Refusing to run tests on non-memory DB: {uri!r}. "
            "This guard protects your real database."
        )


@pytest.fixture(scope="function")
def app():
    os.environ.pop("DATABASE_URL", None)

    flask_app = create_app(
        TESTING=True,
        SQLALCHEMY_DATABASE_URI="sqlite:///:memory:",
        SQLALCHEMY_ENGINE_OPTIONS={"connect_args": {"check_same_thread": False}},
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
    )

    _assert_memory_db(flask_app.config["SQLALCHEMY_DATABASE_URI"])

    with flask_app.app_context():
        db.create_all()
        yield flask_app
        _assert_memory_db(flask_app.config["SQLALCHEMY_DATABASE_URI"])
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def services(app):
    return services_for(app)


@pytest.fixture()
def make_user(app):
    def _make_user(email: str, name: str):
        u = User(email=email, name=name)
        db.session.add(u)
        db.session.commit()
        return u
    return _make_user


@pytest.fixture()
def sample_data(app, make_user):
    owner = make_user("owner@example.com", "Owner")
    other = make_user("other@example.com", "Other")

    pet = Pet(user_id=owner.id, name="Roshlyo", pet_type="Cat", breed="Street Queen", age_years=7)
    db.session.add(pet)
    db.session.commit()

    return {"owner": owner, "other": other, "pet": pet}


@pytest.fixture()
def vet_details():
    return EventDetails(
        title="Physio",
        kind=EventKind(EventCategory.VET_VISIT),
        location="Clinic",
        description="Bring the x-rays",
        is_reminder=True,
        reminder_lead_hours=24,
    )


@pytest.fixture()
def weekly_series(services, sample_data, vet_details):
    """Five weekly appointments: 2030-03-04 ... 2030-04-01 at 10:00."""
    return services.series.create_event(
        sample_data["pet"].id,
        sample_data["owner"].id,
        vet_details,
        datetime(2030, 3, 4, 10, 0),
        RecurrenceRule(RecurrenceType.WEEKLY, 1, datetime(2030, 4, 1).date()),
    )
