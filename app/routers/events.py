# Event routes: lifecycle, window queries and participants

import logging
from typing import Optional, List
from fastapi import APIRouter, Depends, Query
import events
import overlap
import timezones
import utils
import schemas

logger = logging.getLogger(__name__)
router = APIRouter()

@router.post("/", response_model=schemas.EventView, status_code=201)
async def create_event(
    data: schemas.EventCreate,
    user: schemas.User = Depends(utils.get_current_user),
    ctx=Depends(utils.get_context),
):
    """
    Create an event. Naive times are read in the caller's timezone; a
    recurring event also creates its generated instances.
    """
    event = events.create_event(ctx, user, data)
    return events.to_view(ctx, user, event)

@router.get("/", response_model=schemas.EventList)
async def list_events(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    calendar_id: Optional[int] = None,
    is_recurring: Optional[bool] = None,
    is_all_day: Optional[bool] = None,
    limit: int = Query(overlap.DEFAULT_LIMIT),
    offset: int = Query(0),
    order_by: str = "start_time",
    order_direction: str = "asc",
    user: schemas.User = Depends(utils.get_current_user),
    ctx=Depends(utils.get_context),
):
    """Events visible to the caller that overlap [start_date, end_date], paginated"""
    start = utils.parse_date_param("start_date", start_date)
    end = utils.parse_date_param("end_date", end_date)
    filters = timezones.local_window(start, end, utils.user_timezone(ctx, user))
    filters.calendar_id = calendar_id
    filters.is_recurring = is_recurring
    filters.is_all_day = is_all_day

    options = overlap.QueryOptions(
        limit=limit, offset=offset, order_by=order_by, order_direction=order_direction,
    )
    return events.to_list(ctx, user, events.list_events(ctx, user, filters, options))

@router.get("/range", response_model=schemas.EventList)
async def events_in_range(
    start: str,
    end: str,
    calendar_id: Optional[int] = None,
    limit: int = Query(overlap.DEFAULT_LIMIT),
    offset: int = Query(0),
    user: schemas.User = Depends(utils.get_current_user),
    ctx=Depends(utils.get_context),
):
    """Events overlapping an explicit window; bounds are dates or timestamps"""
    options = overlap.QueryOptions(limit=limit, offset=offset)
    page = events.events_in_range(ctx, user, start, end, calendar_id, options)
    return events.to_list(ctx, user, page)

@router.get("/today", response_model=schemas.EventList)
async def todays_events(
    user: schemas.User = Depends(utils.get_current_user),
    ctx=Depends(utils.get_context),
):
    return events.to_list(ctx, user, events.todays_events(ctx, user))

@router.get("/upcoming", response_model=schemas.EventList)
async def upcoming_events(
    limit: int = Query(events.UPCOMING_LIMIT),
    user: schemas.User = Depends(utils.get_current_user),
    ctx=Depends(utils.get_context),
):
    return events.to_list(ctx, user, events.upcoming_events(ctx, user, limit))

@router.get("/{event_id}", response_model=schemas.EventView)
async def get_event(
    event_id: int,
    user: schemas.User = Depends(utils.get_current_user),
    ctx=Depends(utils.get_context),
):
    return events.to_view(ctx, user, events.get_event(ctx, user, event_id))

@router.put("/{event_id}", response_model=schemas.EventView)
async def update_event(
    event_id: int,
    data: schemas.EventUpdate,
    user: schemas.User = Depends(utils.get_current_user),
    ctx=Depends(utils.get_context),
):
    """Partial update; a given participant list replaces the current one"""
    return events.to_view(ctx, user, events.update_event(ctx, user, event_id, data))

@router.delete("/{event_id}", response_model=schemas.MessageResponse)
async def delete_event(
    event_id: int,
    user: schemas.User = Depends(utils.get_current_user),
    ctx=Depends(utils.get_context),
):
    events.delete_event(ctx, user, event_id)
    return {"message": f"Event with ID {event_id} deleted successfully"}

@router.get("/{event_id}/participants", response_model=List[schemas.EventParticipant])
async def list_participants(
    event_id: int,
    user: schemas.User = Depends(utils.get_current_user),
    ctx=Depends(utils.get_context),
):
    return events.list_participants(ctx, user, event_id)

@router.put("/{event_id}/participants/{participant_id}", response_model=schemas.EventParticipant)
async def update_participant_status(
    event_id: int,
    participant_id: int,
    data: schemas.ParticipantStatusUpdate,
    user: schemas.User = Depends(utils.get_current_user),
    ctx=Depends(utils.get_context),
):
    """RSVP for yourself, or for anyone with editor access"""
    return events.update_participant_status(ctx, user, event_id, participant_id, data.status)
