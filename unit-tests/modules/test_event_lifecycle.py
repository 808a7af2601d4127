"""
Tests for app/events.py module
"""

import datetime
import sys
import os

# Add app and root directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'app'))
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import pytest
from unittest.mock import patch
import errors
import events
import overlap
import schemas
from unit_test_utils import make_context, make_user


@pytest.fixture
def ctx():
    return make_context()


@pytest.fixture
def alice(ctx):
    user, _ = make_user(ctx, "alice@example.com", "Alice")
    return user


@pytest.fixture
def bob(ctx):
    user, _ = make_user(ctx, "bob@example.com", "Bob")
    return user


def create(ctx, user, **kwargs):
    data = dict(title="Standup", start_time="2024-01-15T09:00:00", end_time="2024-01-15T10:00:00")
    data.update(kwargs)
    return events.create_event(ctx, user, schemas.EventCreate(**data))


class TestCreateEvent:

    def test_defaults_to_default_calendar(self, ctx, alice):
        event = create(ctx, alice)
        assert event.calendar_id == ctx.store.get_default_calendar(alice.id).id
        assert event.user_id == alice.id
        assert event.color == schemas.DEFAULT_COLOR
        assert event.start_time == datetime.datetime(2024, 1, 15, 9, 0)

    def test_naive_times_are_read_in_user_zone(self, ctx):
        user, _ = make_user(ctx, "tokyo@example.com", "Tokyo", timezone="Asia/Tokyo")
        event = create(ctx, user)
        assert event.start_time == datetime.datetime(2024, 1, 15, 0, 0)

    def test_daily_count_three_materializes_two_instances(self, ctx, alice):
        head = create(ctx, alice, is_recurring=True, recurrence_rule="FREQ=DAILY;COUNT=3")
        assert head.is_recurring
        assert head.recurrence_rule == "FREQ=DAILY;COUNT=3"

        instances = [e for e in ctx.store.events.values() if e.parent_event_id == head.id]
        assert [e.start_time for e in instances] == [
            datetime.datetime(2024, 1, 16, 9, 0),
            datetime.datetime(2024, 1, 17, 9, 0),
        ]
        for instance in instances:
            assert not instance.is_recurring
            assert instance.recurrence_rule is None
            assert instance.original_event_id == head.id
            assert instance.end_time - instance.start_time == datetime.timedelta(hours=1)

    def test_recurrence_cap_comes_from_context(self):
        ctx = make_context(recurrence_cap=5)
        user, _ = make_user(ctx, "capped@example.com", "Capped")
        create(ctx, user, is_recurring=True, recurrence_rule="FREQ=DAILY")
        assert len(ctx.store.events) == 5

    def test_configured_cap_never_exceeds_hard_cap(self):
        ctx = make_context(recurrence_cap=100)
        user, _ = make_user(ctx, "greedy@example.com", "Greedy")
        head = create(ctx, user, is_recurring=True, recurrence_rule="FREQ=DAILY;COUNT=60")
        series = [e for e in ctx.store.events.values() if e.id == head.id or e.parent_event_id == head.id]
        assert len(series) == 30

    def test_all_day_series(self, ctx, alice):
        head = create(ctx, alice, start_time="2024-02-01", end_time="2024-02-02", is_all_day=True,
                      is_recurring=True, recurrence_rule="FREQ=WEEKLY;COUNT=2")
        instance = next(e for e in ctx.store.events.values() if e.parent_event_id == head.id)
        assert instance.is_all_day
        assert (instance.start_time, instance.end_time) == (datetime.datetime(2024, 2, 8), datetime.datetime(2024, 2, 9))

    def test_recurring_needs_rule(self, ctx, alice):
        with pytest.raises(errors.ValidationFailure):
            create(ctx, alice, is_recurring=True)
        with pytest.raises(errors.ValidationFailure):
            create(ctx, alice, is_recurring=True, recurrence_rule="INTERVAL=2")

    def test_rule_without_recurring_flag_is_dropped(self, ctx, alice):
        event = create(ctx, alice, recurrence_rule="FREQ=DAILY;COUNT=3")
        assert event.recurrence_rule is None
        assert len(ctx.store.events) == 1

    def test_end_before_start(self, ctx, alice):
        with pytest.raises(errors.ValidationFailure):
            create(ctx, alice, end_time="2024-01-15T09:00:00")
        with pytest.raises(errors.ValidationFailure):
            create(ctx, alice, start_time="2024-01-15", end_time="2024-01-14", is_all_day=True)

    def test_single_day_all_day_event(self, ctx, alice):
        event = create(ctx, alice, start_time="2024-01-15", end_time="2024-01-15", is_all_day=True)
        assert event.start_time == event.end_time == datetime.datetime(2024, 1, 15)

    def test_blank_title(self, ctx, alice):
        with pytest.raises(errors.ValidationFailure):
            create(ctx, alice, title="   ")

    def test_needs_editor_on_calendar(self, ctx, alice, bob):
        calendar_id = ctx.store.get_default_calendar(alice.id).id
        with pytest.raises(errors.NotFoundOrDenied):
            create(ctx, bob, calendar_id=calendar_id)

        ctx.store.create_share(calendar_id, bob.id, "viewer")
        with pytest.raises(errors.NotFoundOrDenied):
            create(ctx, bob, calendar_id=calendar_id)

        ctx.store.update_share(ctx.store.find_share(calendar_id, bob.id).id, "editor")
        assert create(ctx, bob, calendar_id=calendar_id).calendar_id == calendar_id

    def test_participants_resolved_by_email(self, ctx, alice, bob):
        event = create(ctx, alice, participants=[
            {"email": "BOB@example.com"},
            {"email": "guest@elsewhere.org", "name": "Guest"},
            {"email": "bob@example.com"},
        ])
        assert [(p.email, p.user_id) for p in event.participants] == [
            ("bob@example.com", bob.id),
            ("guest@elsewhere.org", None),
        ]
        assert all(p.status == schemas.ParticipantStatus.PENDING for p in event.participants)

    def test_failed_expansion_rolls_everything_back(self, ctx, alice):
        with patch.object(ctx.store, "create_events", side_effect=errors.Internal("Database operation failed")):
            with pytest.raises(errors.Internal):
                create(ctx, alice, is_recurring=True, recurrence_rule="FREQ=DAILY;COUNT=3",
                       participants=[{"email": "guest@elsewhere.org"}])
        assert ctx.store.events == {}
        assert ctx.store.participants == {}


class TestReadEvents:

    def test_get_event_access(self, ctx, alice, bob):
        event = create(ctx, alice)
        assert events.get_event(ctx, alice, event.id).id == event.id
        with pytest.raises(errors.NotFoundOrDenied):
            events.get_event(ctx, bob, event.id)
        with pytest.raises(errors.NotFoundOrDenied):
            events.get_event(ctx, alice, 9999)

    def test_participant_can_read(self, ctx, alice, bob):
        event = create(ctx, alice, participants=[{"email": bob.email}])
        assert events.get_event(ctx, bob, event.id).title == "Standup"

    def test_range_and_pagination(self, ctx, alice):
        create(ctx, alice, is_recurring=True, recurrence_rule="FREQ=DAILY;COUNT=5")
        page = events.events_in_range(ctx, alice, "2024-01-16", "2024-01-18",
                                      options=overlap.QueryOptions(limit=2))
        assert page.total == 3
        assert page.has_more
        assert [e.start_time.day for e in page.events] == [16, 17]

    def test_range_with_instants(self, ctx, alice):
        create(ctx, alice)
        assert events.events_in_range(ctx, alice, "2024-01-15T09:30:00", "2024-01-15T09:45:00").total == 1
        assert events.events_in_range(ctx, alice, "2024-01-15T10:30:00", "2024-01-15T11:00:00").total == 0

    def test_list_is_scoped_to_visible_events(self, ctx, alice, bob):
        create(ctx, alice)
        create(ctx, bob, title="Private")
        page = events.list_events(ctx, alice, overlap.EventFilters())
        assert [e.title for e in page.events] == ["Standup"]

    def test_today_in_user_zone(self, ctx):
        user, _ = make_user(ctx, "ny@example.com", "New York", timezone="America/New_York")
        create(ctx, user, start_time="2024-01-15T21:00:00", end_time="2024-01-15T22:00:00")
        # 03:00 UTC on the 16th is still the 15th in New York
        assert events.todays_events(ctx, user, now=datetime.datetime(2024, 1, 16, 3, 0)).total == 1
        assert events.todays_events(ctx, user, now=datetime.datetime(2024, 1, 17, 3, 0)).total == 0

    def test_all_day_event_is_today(self, ctx, alice):
        create(ctx, alice, start_time="2024-01-14", end_time="2024-01-16", is_all_day=True)
        assert events.todays_events(ctx, alice, now=datetime.datetime(2024, 1, 15, 12, 0)).total == 1

    def test_upcoming(self, ctx, alice):
        create(ctx, alice, is_recurring=True, recurrence_rule="FREQ=DAILY;COUNT=20")
        page = events.upcoming_events(ctx, alice, now=datetime.datetime(2024, 1, 20, 12, 0))
        assert page.limit == events.UPCOMING_LIMIT
        assert len(page.events) == 10
        assert page.events[0].start_time == datetime.datetime(2024, 1, 21, 9, 0)


class TestUpdateEvent:

    def test_partial_update(self, ctx, alice):
        event = create(ctx, alice)
        updated = events.update_event(ctx, alice, event.id, schemas.EventUpdate(title="Retro", location="Room 2"))
        assert (updated.title, updated.location) == ("Retro", "Room 2")
        assert updated.start_time == event.start_time

    def test_merged_times_are_validated(self, ctx, alice):
        event = create(ctx, alice)
        with pytest.raises(errors.ValidationFailure):
            events.update_event(ctx, alice, event.id, schemas.EventUpdate(start_time="2024-01-15T11:00:00"))
        updated = events.update_event(ctx, alice, event.id, schemas.EventUpdate(end_time="2024-01-15T12:00:00"))
        assert updated.start_time == datetime.datetime(2024, 1, 15, 9, 0)
        assert updated.end_time == datetime.datetime(2024, 1, 15, 12, 0)

    def test_timed_to_all_day_keeps_local_date(self, ctx):
        user, _ = make_user(ctx, "tokyo@example.com", "Tokyo", timezone="Asia/Tokyo")
        event = create(ctx, user, start_time="2024-03-05T08:00:00", end_time="2024-03-05T09:00:00")
        assert event.start_time == datetime.datetime(2024, 3, 4, 23, 0)

        updated = events.update_event(ctx, user, event.id, schemas.EventUpdate(is_all_day=True))
        assert updated.is_all_day
        assert updated.start_time == datetime.datetime(2024, 3, 5)
        assert updated.end_time == datetime.datetime(2024, 3, 5)

    def test_timed_ending_at_local_midnight_stays_on_one_day(self, ctx):
        user, _ = make_user(ctx, "tokyo@example.com", "Tokyo", timezone="Asia/Tokyo")
        event = create(ctx, user, start_time="2024-03-05T22:00:00", end_time="2024-03-06T00:00:00")
        updated = events.update_event(ctx, user, event.id, schemas.EventUpdate(is_all_day=True))
        assert (updated.start_time, updated.end_time) == (datetime.datetime(2024, 3, 5), datetime.datetime(2024, 3, 5))

    def test_all_day_to_timed_uses_local_midnight(self, ctx):
        user, _ = make_user(ctx, "tokyo@example.com", "Tokyo", timezone="Asia/Tokyo")
        event = create(ctx, user, start_time="2024-03-05", end_time="2024-03-06", is_all_day=True)

        updated = events.update_event(ctx, user, event.id, schemas.EventUpdate(is_all_day=False))
        assert not updated.is_all_day
        assert updated.start_time == datetime.datetime(2024, 3, 4, 15, 0)
        assert updated.end_time == datetime.datetime(2024, 3, 6, 15, 0)

    def test_viewer_cannot_update(self, ctx, alice, bob):
        event = create(ctx, alice)
        ctx.store.create_share(event.calendar_id, bob.id, "viewer")
        with pytest.raises(errors.NotFoundOrDenied):
            events.update_event(ctx, bob, event.id, schemas.EventUpdate(title="Mine"))

    def test_move_needs_editor_on_target(self, ctx, alice, bob):
        event = create(ctx, alice)
        bobs_calendar = ctx.store.get_default_calendar(bob.id)
        with pytest.raises(errors.NotFoundOrDenied):
            events.update_event(ctx, alice, event.id, schemas.EventUpdate(calendar_id=bobs_calendar.id))

        ctx.store.create_share(bobs_calendar.id, alice.id, "editor")
        moved = events.update_event(ctx, alice, event.id, schemas.EventUpdate(calendar_id=bobs_calendar.id))
        assert moved.calendar_id == bobs_calendar.id

    def test_update_does_not_touch_instances(self, ctx, alice):
        head = create(ctx, alice, is_recurring=True, recurrence_rule="FREQ=DAILY;COUNT=3")
        events.update_event(ctx, alice, head.id, schemas.EventUpdate(title="Renamed"))
        titles = sorted(e.title for e in ctx.store.events.values())
        assert titles == ["Renamed", "Standup", "Standup"]

    def test_instance_cannot_become_recurring(self, ctx, alice):
        head = create(ctx, alice, is_recurring=True, recurrence_rule="FREQ=DAILY;COUNT=2")
        instance = next(e for e in ctx.store.events.values() if e.parent_event_id == head.id)
        with pytest.raises(errors.ValidationFailure):
            events.update_event(ctx, alice, instance.id, schemas.EventUpdate(is_recurring=True,
                                                                             recurrence_rule="FREQ=DAILY"))

    def test_participants_replaced_wholesale(self, ctx, alice, bob):
        event = create(ctx, alice, participants=[{"email": "one@example.org"}, {"email": "two@example.org"}])
        updated = events.update_event(ctx, alice, event.id, schemas.EventUpdate(participants=[{"email": bob.email}]))
        assert [p.email for p in updated.participants] == [bob.email]

        updated = events.update_event(ctx, alice, event.id, schemas.EventUpdate(title="No change to invitees"))
        assert [p.email for p in updated.participants] == [bob.email]


class TestDeleteEvent:

    def test_delete_head_keeps_instances(self, ctx, alice):
        head = create(ctx, alice, is_recurring=True, recurrence_rule="FREQ=DAILY;COUNT=3")
        events.delete_event(ctx, alice, head.id)
        assert ctx.store.get_event(head.id) is None
        remaining = list(ctx.store.events.values())
        assert len(remaining) == 2
        assert all(e.parent_event_id == head.id for e in remaining)

    def test_delete_needs_editor(self, ctx, alice, bob):
        event = create(ctx, alice)
        with pytest.raises(errors.NotFoundOrDenied):
            events.delete_event(ctx, bob, event.id)
        assert ctx.store.get_event(event.id) is not None


class TestParticipants:

    def test_invitee_sets_own_status(self, ctx, alice, bob):
        event = create(ctx, alice, participants=[{"email": bob.email}])
        participant = event.participants[0]
        updated = events.update_participant_status(ctx, bob, event.id, participant.id,
                                                   schemas.ParticipantStatus.ACCEPTED)
        assert updated.status == schemas.ParticipantStatus.ACCEPTED

    def test_viewer_cannot_answer_for_others(self, ctx, alice, bob):
        event = create(ctx, alice, participants=[{"email": "guest@elsewhere.org"}])
        ctx.store.create_share(event.calendar_id, bob.id, "viewer")
        with pytest.raises(errors.PermissionDenied):
            events.update_participant_status(ctx, bob, event.id, event.participants[0].id,
                                             schemas.ParticipantStatus.DECLINED)

    def test_owner_answers_for_anyone(self, ctx, alice):
        event = create(ctx, alice, participants=[{"email": "guest@elsewhere.org"}])
        updated = events.update_participant_status(ctx, alice, event.id, event.participants[0].id,
                                                   schemas.ParticipantStatus.TENTATIVE)
        assert updated.status == schemas.ParticipantStatus.TENTATIVE

    def test_participant_must_belong_to_event(self, ctx, alice):
        first = create(ctx, alice, participants=[{"email": "guest@elsewhere.org"}])
        second = create(ctx, alice, title="Other")
        with pytest.raises(errors.NotFoundOrDenied):
            events.update_participant_status(ctx, alice, second.id, first.participants[0].id,
                                             schemas.ParticipantStatus.ACCEPTED)

    def test_list_participants(self, ctx, alice, bob):
        event = create(ctx, alice, participants=[{"email": bob.email}])
        assert [p.user_id for p in events.list_participants(ctx, bob, event.id)] == [bob.id]


class TestViews:

    def test_local_times_in_user_zone(self, ctx):
        user, _ = make_user(ctx, "berlin@example.com", "Berlin", timezone="Europe/Berlin")
        view = events.to_view(ctx, user, create(ctx, user))
        assert view.start_time == datetime.datetime(2024, 1, 15, 8, 0)
        assert view.local_start.hour == 9
        assert view.local_start.utcoffset() == datetime.timedelta(hours=1)

    def test_all_day_view_is_unchanged(self, ctx, alice):
        event = create(ctx, alice, start_time="2024-01-15", end_time="2024-01-15", is_all_day=True)
        view = events.to_view(ctx, alice, event)
        assert view.local_start == event.start_time
