from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from petcare.events.reminders import format_time_until, group_by_user, is_reminder_due

EVENT_AT = datetime(2030, 5, 10, 12, 0)


def _reminder(**kw):
    values = dict(
        user_id=1,
        event_at=EVENT_AT,
        is_reminder=True,
        reminder_completed=False,
        reminder_lead_hours=24,
    )
    values.update(kw)
    return SimpleNamespace(**values)


@pytest.mark.parametrize(
    "hours_before, due",
    [
        (24.5, False),
        (24, True),
        (23.5, True),
        (23.01, True),
        (23, False),
        (12, False),
        (0, False),
        (-1, False),
    ],
)
def test_due_only_in_last_hour_of_lead_time(hours_before, due):
    now = EVENT_AT - timedelta(hours=hours_before)
    assert is_reminder_due(_reminder(), now) is due


def test_completed_reminder_is_never_due():
    now = EVENT_AT - timedelta(hours=23, minutes=30)
    assert is_reminder_due(_reminder(reminder_completed=True), now) is False


def test_plain_event_is_never_due():
    now = EVENT_AT - timedelta(hours=23, minutes=30)
    assert is_reminder_due(_reminder(is_reminder=False), now) is False


def test_missing_lead_uses_default():
    now = EVENT_AT - timedelta(hours=2, minutes=30)
    r = _reminder(reminder_lead_hours=None)
    assert is_reminder_due(r, now) is False
    assert is_reminder_due(r, now, default_lead_hours=3) is True


def test_wider_window():
    now = EVENT_AT - timedelta(hours=22, minutes=30)
    assert is_reminder_due(_reminder(), now) is False
    assert is_reminder_due(_reminder(), now, window_hours=2) is True


@pytest.mark.parametrize(
    "hours, text",
    [(0.4, "less than an hour"), (1, "1 hour"), (5.2, "5 hours"), (24, "1 day"), (50, "2 days")],
)
def test_format_time_until(hours, text):
    assert format_time_until(hours) == text


def test_group_by_user_keeps_order():
    a, b, c = _reminder(user_id=2), _reminder(user_id=1), _reminder(user_id=2)
    grouped = group_by_user([a, b, c])
    assert list(grouped) == [2, 1]
    assert grouped[2] == [a, c]
