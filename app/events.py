# Event lifecycle: create (with recurrence fan-out), read, list, update, delete, RSVP

import datetime
import logging
from typing import Optional, List, Dict, Any
import errors
import schemas
import access
import overlap
import recurrence
import timezones
import utils
from access import Role

logger = logging.getLogger(__name__)

UPCOMING_LIMIT = 10


def _event_times(start, end, is_all_day: bool, zone_id: str):
    """Normalize request times; all-day values keep only their dates."""
    if is_all_day:
        start_time = timezones.parse_all_day(start)
        end_time = timezones.parse_all_day(end)
        if end_time < start_time:
            raise errors.ValidationFailure("End date must not be before start date")
        return start_time, end_time

    start_time = timezones.parse_instant(start, zone_id)
    end_time = timezones.parse_instant(end, zone_id)
    if end_time <= start_time:
        raise errors.ValidationFailure("End time must be after start time")
    return start_time, end_time


def _recurrence_rule(is_recurring: bool, rule_text: Optional[str]) -> Optional[str]:
    """
    Validate and normalize the rule of a series head. The parser accepts
    anything, so the checks that make a rule storable live here.
    """
    if not is_recurring:
        return None
    if not rule_text:
        raise errors.ValidationFailure("Recurring events need a recurrence rule")

    rule = recurrence.parse(rule_text)
    if rule.frequency is None:
        raise errors.ValidationFailure("Recurrence rule must specify FREQ")
    if rule.interval < 1:
        raise errors.ValidationFailure("Recurrence INTERVAL must be at least 1")
    return recurrence.format(rule)


def _resolve_participants(store, participants: List[schemas.ParticipantIn]) -> List[Dict[str, Any]]:
    """Match invitee emails to registered users; unknown emails keep a null user id."""
    rows, seen = [], set()
    for participant in participants:
        email = (participant.email or "").strip().lower()
        if not email:
            raise errors.ValidationFailure("Participant email is required")
        if email in seen:
            continue
        seen.add(email)

        user_id = participant.user_id
        if user_id is not None and store.get_user(user_id) is None:
            raise errors.ValidationFailure(f"Unknown participant user: {user_id}")
        if user_id is None:
            user = store.get_user_by_email(email)
            user_id = user.id if user else None

        rows.append({"user_id": user_id, "email": email, "name": participant.name})
    return rows


def _stored_times(event: schemas.Event, is_all_day: bool, zone_id: str):
    """
    The event's current times in the shape a request would send them, read
    in the user's zone so they survive a toggle of is_all_day.
    """
    if event.is_all_day and not is_all_day:
        # Naive values are wall time: local midnight of the first day to
        # local midnight after the last one
        return event.start_time, event.end_time + datetime.timedelta(days=1)

    if is_all_day and not event.is_all_day:
        start = timezones.to_local(event.start_time, zone_id)
        end = timezones.to_local(event.end_time, zone_id)
        end_date = end.date()
        if end.time() == datetime.time.min and end_date > start.date():
            end_date -= datetime.timedelta(days=1)
        return start.date(), end_date

    if is_all_day:
        return event.start_time, event.end_time
    # Stored values are naive UTC; make them aware so they are not read as local
    return timezones.to_local(event.start_time, zone_id), timezones.to_local(event.end_time, zone_id)


def _joined(store, event: schemas.Event) -> schemas.Event:
    return event.model_copy(update={"participants": store.list_participants(event.id)})


def materialize_instances(ctx, head: schemas.Event, zone_id: str) -> int:
    """
    Expand the head's rule and insert every occurrence after the first as an
    independent, non-recurring event linked back to the head.
    """
    rule = recurrence.parse(head.recurrence_rule)
    zone = None if head.is_all_day else timezones.get_zone(zone_id)
    cap = min(ctx.recurrence_cap, recurrence.HARD_CAP)
    occurrences = recurrence.expand(head.start_time, head.end_time, rule, cap, zone)

    rows = [
        {
            "title": head.title,
            "description": head.description,
            "location": head.location,
            "start_time": occurrence.start,
            "end_time": occurrence.end,
            "is_all_day": head.is_all_day,
            "color": head.color,
            "calendar_id": head.calendar_id,
            "user_id": head.user_id,
            "is_recurring": False,
            "recurrence_rule": None,
            "parent_event_id": head.id,
            "original_event_id": head.id,
        }
        for occurrence in occurrences[1:]
    ]
    return ctx.store.create_events(rows)


def create_event(ctx, user: schemas.User, data: schemas.EventCreate) -> schemas.Event:
    """
    Create an event, its participants and, for a series head, its generated
    instances, all in one transaction.
    """
    store = ctx.store
    zone_id = utils.user_timezone(ctx, user)

    if data.calendar_id is None:
        calendar = store.get_default_calendar(user.id)
    else:
        calendar = store.get_calendar(data.calendar_id)
    calendar = access.require(store, user.id, calendar, Role.EDITOR, what="Calendar")

    title = (data.title or "").strip()
    if not title:
        raise errors.ValidationFailure("Event title is required")
    start_time, end_time = _event_times(data.start_time, data.end_time, data.is_all_day, zone_id)
    rule_text = _recurrence_rule(data.is_recurring, data.recurrence_rule)
    participants = _resolve_participants(store, data.participants or [])

    with store.transaction():
        head = store.create_event({
            "title": title,
            "description": data.description,
            "location": data.location,
            "start_time": start_time,
            "end_time": end_time,
            "is_all_day": data.is_all_day,
            "color": data.color or schemas.DEFAULT_COLOR,
            "calendar_id": calendar.id,
            "user_id": user.id,
            "is_recurring": data.is_recurring,
            "recurrence_rule": rule_text,
        })
        if participants:
            store.replace_participants(head.id, participants)
        generated = 0
        if head.is_recurring:
            generated = materialize_instances(ctx, head, zone_id)

    logger.info(f"Created event '{title}' in calendar {calendar.id} for user {user.id} "
                f"with ID {head.id} ({generated} generated instances)")
    return _joined(store, head)


def get_event(ctx, user: schemas.User, event_id: int) -> schemas.Event:
    event = access.require(ctx.store, user.id, ctx.store.get_event(event_id), what="Event")
    return _joined(ctx.store, event)


def list_events(ctx, user: schemas.User, filters: overlap.EventFilters,
                options: Optional[overlap.QueryOptions] = None) -> overlap.EventPage:
    """Events visible to the user that overlap the window, one page at a time."""
    options = overlap.validate_options(options or overlap.QueryOptions())
    rows, total = ctx.store.query_events(user.id, filters, options)
    page = overlap.make_page([_joined(ctx.store, e) for e in rows], total, options)
    logger.info(f"Found {len(page.events)} of {total} events for user {user.id}")
    return page


def events_in_range(ctx, user: schemas.User, start: Optional[str], end: Optional[str],
                    calendar_id: Optional[int] = None,
                    options: Optional[overlap.QueryOptions] = None) -> overlap.EventPage:
    filters = timezones.window_from_params(start, end, utils.user_timezone(ctx, user))
    filters.calendar_id = calendar_id
    return list_events(ctx, user, filters, options)


def todays_events(ctx, user: schemas.User, now=None) -> overlap.EventPage:
    return list_events(ctx, user, timezones.today_window(utils.user_timezone(ctx, user), now))


def upcoming_events(ctx, user: schemas.User, limit: int = UPCOMING_LIMIT, now=None) -> overlap.EventPage:
    filters = timezones.upcoming_window(utils.user_timezone(ctx, user), now)
    return list_events(ctx, user, filters, overlap.QueryOptions(limit=limit))


def _note_detached_instance(store, event: schemas.Event, new_start):
    """Log when a generated instance is moved to a day its series would not produce."""
    if event.parent_event_id is None:
        return
    head = store.get_event(event.parent_event_id)
    if head is None or not head.recurrence_rule:
        return
    rule = recurrence.parse(head.recurrence_rule)
    if not recurrence.is_recurring_date(new_start, head.start_time, rule):
        logger.info(f"Instance {event.id} moved off the grid of series {head.id}")


def update_event(ctx, user: schemas.User, event_id: int, data: schemas.EventUpdate) -> schemas.Event:
    """
    Update mutable fields and, when a participant list is given, replace the
    participants wholesale. Instances already generated from a series head
    are left exactly as they are.
    """
    store = ctx.store
    event = access.require(store, user.id, store.get_event(event_id), Role.EDITOR, what="Event")
    zone_id = utils.user_timezone(ctx, user)
    fields = {}

    if data.title is not None:
        fields["title"] = data.title.strip()
        if not fields["title"]:
            raise errors.ValidationFailure("Event title is required")
    for name in ("description", "location", "color"):
        value = getattr(data, name)
        if value is not None:
            fields[name] = value

    if data.calendar_id is not None and data.calendar_id != event.calendar_id:
        access.require(store, user.id, store.get_calendar(data.calendar_id), Role.EDITOR, what="Calendar")
        fields["calendar_id"] = data.calendar_id

    is_all_day = event.is_all_day if data.is_all_day is None else data.is_all_day
    times_changed = data.start_time is not None or data.end_time is not None or is_all_day != event.is_all_day
    if times_changed:
        stored_start, stored_end = _stored_times(event, is_all_day, zone_id)
        start = data.start_time if data.start_time is not None else stored_start
        end = data.end_time if data.end_time is not None else stored_end
        fields["start_time"], fields["end_time"] = _event_times(start, end, is_all_day, zone_id)
        fields["is_all_day"] = is_all_day
        _note_detached_instance(store, event, fields["start_time"])

    if data.is_recurring is not None or data.recurrence_rule is not None:
        is_recurring = event.is_recurring if data.is_recurring is None else data.is_recurring
        if is_recurring and event.parent_event_id is not None:
            raise errors.ValidationFailure("Generated instances cannot be recurring")
        rule_text = data.recurrence_rule if data.recurrence_rule is not None else event.recurrence_rule
        fields["is_recurring"] = is_recurring
        fields["recurrence_rule"] = _recurrence_rule(is_recurring, rule_text)

    participants = None
    if data.participants is not None:
        participants = _resolve_participants(store, data.participants)

    with store.transaction():
        updated = store.update_event(event_id, fields)
        if participants is not None:
            store.replace_participants(event_id, participants)

    logger.info(f"Updated event with ID {event_id}")
    return _joined(store, updated)


def delete_event(ctx, user: schemas.User, event_id: int):
    """Hard delete. Instances generated from this event are independent and stay."""
    access.require(ctx.store, user.id, ctx.store.get_event(event_id), Role.EDITOR, what="Event")
    with ctx.store.transaction():
        ctx.store.delete_event(event_id)
    logger.info(f"Deleted event with ID {event_id}")


def list_participants(ctx, user: schemas.User, event_id: int) -> List[schemas.EventParticipant]:
    access.require(ctx.store, user.id, ctx.store.get_event(event_id), what="Event")
    return ctx.store.list_participants(event_id)


def update_participant_status(ctx, user: schemas.User, event_id: int, participant_id: int,
                              status: schemas.ParticipantStatus) -> schemas.EventParticipant:
    """Set an RSVP. The invitee may answer for themselves; editors may answer for anyone."""
    store = ctx.store
    event = access.require(store, user.id, store.get_event(event_id), what="Event")

    participant = store.get_participant(participant_id)
    if participant is None or participant.event_id != event.id:
        raise errors.NotFoundOrDenied("Participant not found")
    if participant.user_id != user.id and not access.resolve(store, user.id, event, Role.EDITOR):
        raise errors.PermissionDenied("Only the invitee or an editor can change this status")

    updated = store.update_participant_status(participant_id, status.value)
    logger.info(f"Participant {participant_id} of event {event_id} is now {status.value}")
    return updated


def to_view(ctx, user: schemas.User, event: schemas.Event) -> schemas.EventView:
    """Attach the event's start and end on the requesting user's wall clock."""
    if event.is_all_day:
        local_start, local_end = event.start_time, event.end_time
    else:
        zone_id = utils.user_timezone(ctx, user)
        local_start = timezones.to_local(event.start_time, zone_id)
        local_end = timezones.to_local(event.end_time, zone_id)
    return schemas.EventView(**event.model_dump(), local_start=local_start, local_end=local_end)


def to_list(ctx, user: schemas.User, page: overlap.EventPage) -> schemas.EventList:
    return schemas.EventList(
        events=[to_view(ctx, user, e) for e in page.events],
        pagination=schemas.Pagination(
            total=page.total, limit=page.limit, offset=page.offset, has_more=page.has_more,
        ),
    )
