from datetime import date, datetime

import pytest

from petcare.events.errors import ValidationError
from petcare.events.recurrence import RecurrenceRule
from petcare.events.series import EventDetails, SeriesGroup, filter_events, group_events
from petcare.models.event import EventCategory, EventKind, PetEvent, RecurrenceType


def _standalone(services, sample_data, title, when, **kw):
    return services.series.create_event(
        sample_data["pet"].id,
        sample_data["owner"].id,
        EventDetails(title=title, **kw),
        when,
    )[0]


def test_series_with_future_member_is_upcoming(services, sample_data, weekly_series):
    earlier = _standalone(services, sample_data, "Bath", datetime(2030, 3, 1, 9))
    later = _standalone(services, sample_data, "Walk", datetime(2030, 3, 20, 9))
    same_day = _standalone(services, sample_data, "Brush", datetime(2030, 3, 18, 8))

    timeline = services.series.timeline(sample_data["pet"].id, now=datetime(2030, 3, 18, 15))

    assert timeline.cutoff == datetime(2030, 3, 18)
    assert len(timeline.upcoming_series) == 1
    group = timeline.upcoming_series[0]
    assert group.anchor.id == weekly_series[0].id
    assert group.member_ids == [e.id for e in weekly_series]
    assert timeline.past_series == ()

    assert [e.id for e in timeline.upcoming_standalone] == [same_day.id, later.id]
    assert [e.id for e in timeline.past_standalone] == [earlier.id]
    assert timeline.upcoming_items == [same_day, group, later]
    assert timeline.upcoming_count == 3
    assert timeline.past_count == 1
    assert timeline.orphans == ()


def test_series_with_only_past_members_is_past(services, sample_data, weekly_series):
    timeline = services.series.timeline(sample_data["pet"].id, now=datetime(2030, 5, 1))
    assert timeline.upcoming_series == ()
    assert len(timeline.past_series) == 1
    assert timeline.past_series[0].last_at == datetime(2030, 4, 1, 10)


def test_every_event_lands_in_exactly_one_place(services, sample_data, weekly_series):
    _standalone(services, sample_data, "Bath", datetime(2030, 3, 1, 9))
    timeline = services.series.timeline(sample_data["pet"].id, now=datetime(2030, 3, 18))

    seen = []
    for g in (*timeline.upcoming_series, *timeline.past_series):
        seen.extend(g.member_ids)
    seen.extend(e.id for e in (*timeline.upcoming_standalone, *timeline.past_standalone))
    assert sorted(seen) == sorted(e.id for e in PetEvent.query.all())


def test_past_items_newest_first(services, sample_data):
    old = _standalone(services, sample_data, "Old", datetime(2029, 1, 1))
    newer = _standalone(services, sample_data, "Newer", datetime(2029, 6, 1))
    timeline = services.series.timeline(sample_data["pet"].id, now=datetime(2030, 1, 1))
    assert timeline.past_items == [newer, old]


def test_child_without_anchor_is_an_orphan():
    anchor = PetEvent(
        id=1, title="Walk", event_at=datetime(2030, 1, 1, 9), recurrence_type="daily"
    )
    child = PetEvent(id=2, title="Walk", event_at=datetime(2030, 1, 2, 9), parent_event_id=1)
    stray = PetEvent(id=7, title="Pills", event_at=datetime(2030, 1, 3, 9), parent_event_id=99)

    timeline = group_events([anchor, child, stray], now=datetime(2030, 1, 1))

    assert timeline.orphans == (stray,)
    assert stray in timeline.upcoming_standalone
    assert [g.member_ids for g in timeline.upcoming_series] == [[1, 2]]


def test_anchor_without_children_is_a_series(services, sample_data, vet_details):
    anchor = services.series.create_event(
        sample_data["pet"].id,
        sample_data["owner"].id,
        vet_details,
        datetime(2030, 1, 1, 9),
        RecurrenceRule(RecurrenceType.MONTHLY, 1, date(2030, 1, 15)),
    )[0]
    timeline = services.series.timeline(sample_data["pet"].id, now=datetime(2029, 12, 1))
    assert [g.anchor.id for g in timeline.upcoming_series] == [anchor.id]
    assert timeline.upcoming_standalone == ()


def test_series_summary(services, weekly_series):
    group = services.series.load_series(weekly_series[2].id)
    now = datetime(2030, 3, 12)

    assert isinstance(group, SeriesGroup)
    assert group.anchor.id == weekly_series[0].id
    assert len(group.children) == 4
    assert group.recurrence_label == "Weekly"
    assert group.upcoming_count(now) == 3
    assert group.next_occurrence(now).id == weekly_series[2].id

    services.editor.set_completed(weekly_series[2].id, True)
    group = services.series.load_series(weekly_series[0].id)
    assert group.completed_count == 1
    assert group.next_occurrence(now).id == weekly_series[3].id


def test_recurrence_label_with_interval(services, sample_data, vet_details):
    anchor = services.series.create_event(
        sample_data["pet"].id,
        sample_data["owner"].id,
        vet_details,
        datetime(2030, 1, 1, 9),
        RecurrenceRule(RecurrenceType.DAILY, 3, date(2030, 1, 10)),
    )[0]
    assert services.series.load_series(anchor.id).recurrence_label == "Every 3 days"


def test_standalone_loads_as_one_member_group(services, sample_data):
    event = _standalone(services, sample_data, "Bath", datetime(2030, 1, 1))
    group = services.series.load_series(event.id)
    assert group.member_ids == [event.id]
    assert group.children == ()


def test_filter_events(services, sample_data, weekly_series):
    walk = _standalone(services, sample_data, "Walk", datetime(2030, 3, 5, 9))
    pills = _standalone(
        services,
        sample_data,
        "Pills",
        datetime(2030, 3, 6, 9),
        kind=EventKind(EventCategory.MEDICATION),
        is_reminder=True,
    )
    events = PetEvent.query.all()

    vet = filter_events(events, category="vet_visit")
    assert {e.id for e in vet} == {e.id for e in weekly_series}

    march = filter_events(events, date_from=date(2030, 3, 5), date_to=date(2030, 3, 11))
    assert {e.id for e in march} == {walk.id, pills.id, weekly_series[1].id}

    reminders = filter_events(events, category=EventCategory.MEDICATION, reminders_only=True)
    assert [e.id for e in reminders] == [pills.id]

    with pytest.raises(ValidationError) as exc:
        filter_events(events, category="bath")
    assert exc.value.field == "category"
