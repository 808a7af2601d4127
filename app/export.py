# iCalendar export of a calendar's stored events

import logging
import datetime
from typing import List, Optional
import icalendar
from dateutil import tz
import access
import schemas

logger = logging.getLogger(__name__)

PRODID = "-//sharecal//calendar//EN"


def event_uid(event: schemas.Event) -> str:
    return f"sharecal-{event.calendar_id}-{event.id}"


def _event_to_ical_component(event: schemas.Event,
                             participants: Optional[List[schemas.EventParticipant]] = None) -> icalendar.Event:
    """
    Convert a stored event to a VEVENT.

    Generated instances are exported as events of their own, so a series head
    carries its rule only as X-SHARECAL-RRULE and never as RRULE; clients would
    otherwise expand the series a second time.

    Args:
        event (schemas.Event): The stored row.
        participants (List[schemas.EventParticipant]): Invitees, exported as ATTENDEE.
    Returns:
        icalendar.Event: The VEVENT component.
    """
    ical_ev = icalendar.Event()
    ical_ev.add("uid", event_uid(event))
    ical_ev.add("summary", event.title)
    if event.description:
        ical_ev.add("description", event.description)
    if event.location:
        ical_ev.add("location", event.location)

    if event.is_all_day:
        # DTEND is exclusive for DATE values, our end date is inclusive
        ical_ev.add("dtstart", event.start_time.date())
        ical_ev.add("dtend", event.end_time.date() + datetime.timedelta(days=1))
    else:
        ical_ev.add("dtstart", event.start_time.replace(tzinfo=tz.UTC))
        ical_ev.add("dtend", event.end_time.replace(tzinfo=tz.UTC))

    if event.created_at is not None:
        ical_ev.add("dtstamp", event.created_at.replace(tzinfo=tz.UTC))
    if event.updated_at is not None:
        ical_ev.add("last-modified", event.updated_at.replace(tzinfo=tz.UTC))

    if event.parent_event_id is not None:
        ical_ev.add("related-to", f"sharecal-{event.calendar_id}-{event.parent_event_id}")
    if event.is_recurring and event.recurrence_rule:
        ical_ev.add("X-SHARECAL-RRULE", event.recurrence_rule)
    ical_ev.add("X-SHARECAL-COLOR", event.color)

    for participant in participants or []:
        attendee = icalendar.vCalAddress(f"mailto:{participant.email}")
        attendee.params["PARTSTAT"] = icalendar.vText(_partstat(participant.status))
        if participant.name:
            attendee.params["CN"] = icalendar.vText(participant.name)
        ical_ev.add("attendee", attendee, encode=0)
    return ical_ev


def _partstat(status: schemas.ParticipantStatus) -> str:
    return {
        schemas.ParticipantStatus.PENDING: "NEEDS-ACTION",
        schemas.ParticipantStatus.ACCEPTED: "ACCEPTED",
        schemas.ParticipantStatus.DECLINED: "DECLINED",
        schemas.ParticipantStatus.TENTATIVE: "TENTATIVE",
    }[status]


def build_calendar(calendar: schemas.Calendar, events: List[schemas.Event], store=None) -> icalendar.Calendar:
    """
    Build a VCALENDAR from a calendar and its events. When a store is given,
    each event's participants are looked up and exported as attendees.
    """
    cal = icalendar.Calendar()
    cal.add("prodid", PRODID)
    cal.add("version", "2.0")
    cal.add("X-WR-CALNAME", calendar.name)
    if calendar.description:
        cal.add("X-WR-CALDESC", calendar.description)

    for event in events:
        participants = store.list_participants(event.id) if store is not None else event.participants
        cal.add_component(_event_to_ical_component(event, participants))
    return cal


def export_calendar(ctx, user: schemas.User, calendar_id: int) -> bytes:
    """Serialized iCalendar feed of every stored row of a calendar the user can see."""
    calendar = access.require(ctx.store, user.id, ctx.store.get_calendar(calendar_id), what="Calendar")
    events = ctx.store.list_calendar_events(calendar.id)
    logger.info(f"Exporting {len(events)} events of calendar {calendar.id} for user {user.id}")
    return build_calendar(calendar, events, ctx.store).to_ical()
