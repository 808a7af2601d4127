# Calendar and sharing routes

import logging
from typing import List
from fastapi import APIRouter, Depends, Response
import calendars
import export
import utils
import schemas

logger = logging.getLogger(__name__)
router = APIRouter()

@router.post("/", response_model=schemas.Calendar, status_code=201)
async def create_calendar(
    data: schemas.CalendarCreate,
    user: schemas.User = Depends(utils.get_current_user),
    ctx=Depends(utils.get_context),
):
    return calendars.create_calendar(ctx, user, data)

@router.get("/", response_model=List[schemas.Calendar])
async def list_calendars(
    include_shared: bool = False,
    user: schemas.User = Depends(utils.get_current_user),
    ctx=Depends(utils.get_context),
):
    """Own calendars, default first; shared calendars too with include_shared=true"""
    return calendars.list_calendars(ctx, user, include_shared)

@router.get("/{calendar_id}", response_model=schemas.CalendarDetail)
async def get_calendar(
    calendar_id: int,
    user: schemas.User = Depends(utils.get_current_user),
    ctx=Depends(utils.get_context),
):
    return calendars.get_calendar(ctx, user, calendar_id)

@router.put("/{calendar_id}", response_model=schemas.Calendar)
async def update_calendar(
    calendar_id: int,
    data: schemas.CalendarUpdate,
    user: schemas.User = Depends(utils.get_current_user),
    ctx=Depends(utils.get_context),
):
    return calendars.update_calendar(ctx, user, calendar_id, data)

@router.delete("/{calendar_id}", response_model=schemas.MessageResponse)
async def delete_calendar(
    calendar_id: int,
    user: schemas.User = Depends(utils.get_current_user),
    ctx=Depends(utils.get_context),
):
    calendars.delete_calendar(ctx, user, calendar_id)
    return {"message": f"Calendar with ID {calendar_id} deleted successfully"}

@router.post("/{calendar_id}/share", response_model=schemas.CalendarShare, status_code=201)
async def share_calendar(
    calendar_id: int,
    data: schemas.ShareCreate,
    user: schemas.User = Depends(utils.get_current_user),
    ctx=Depends(utils.get_context),
):
    """Share with another registered user as viewer or editor (owner only)"""
    return calendars.share_calendar(ctx, user, calendar_id, data)

@router.get("/{calendar_id}/shares", response_model=List[schemas.CalendarShare])
async def list_shares(
    calendar_id: int,
    user: schemas.User = Depends(utils.get_current_user),
    ctx=Depends(utils.get_context),
):
    return calendars.list_shares(ctx, user, calendar_id)

@router.put("/{calendar_id}/shares/{share_id}", response_model=schemas.CalendarShare)
async def update_share(
    calendar_id: int,
    share_id: int,
    data: schemas.ShareUpdate,
    user: schemas.User = Depends(utils.get_current_user),
    ctx=Depends(utils.get_context),
):
    return calendars.update_share(ctx, user, calendar_id, share_id, data)

@router.delete("/{calendar_id}/shares/{share_id}", response_model=schemas.MessageResponse)
async def remove_share(
    calendar_id: int,
    share_id: int,
    user: schemas.User = Depends(utils.get_current_user),
    ctx=Depends(utils.get_context),
):
    calendars.remove_share(ctx, user, calendar_id, share_id)
    return {"message": f"Share with ID {share_id} removed successfully"}

@router.get("/{calendar_id}/export.ics")
async def export_calendar(
    calendar_id: int,
    user: schemas.User = Depends(utils.get_current_user),
    ctx=Depends(utils.get_context),
):
    """The calendar's stored events as an iCalendar feed"""
    body = export.export_calendar(ctx, user, calendar_id)
    return Response(
        content=body,
        media_type="text/calendar",
        headers={"Content-Disposition": f'attachment; filename="calendar-{calendar_id}.ics"'},
    )
