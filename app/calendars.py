# Calendar management: CRUD, the default calendar, and sharing

import logging
from typing import List
import errors
import schemas
import access
from access import Role

logger = logging.getLogger(__name__)

DEFAULT_CALENDAR_NAME = "My Calendar"
DEFAULT_CALENDAR_DESCRIPTION = "Default calendar"


def create_default_calendar(store, user_id: str) -> schemas.Calendar:
    """Create the per-user default calendar (done once, at registration)."""
    return store.create_calendar({
        "name": DEFAULT_CALENDAR_NAME,
        "description": DEFAULT_CALENDAR_DESCRIPTION,
        "color": schemas.DEFAULT_COLOR,
        "is_default": True,
        "is_public": False,
        "user_id": user_id,
    })


def create_calendar(ctx, user: schemas.User, data: schemas.CalendarCreate) -> schemas.Calendar:
    name = (data.name or "").strip()
    if not name:
        raise errors.ValidationFailure("Calendar name is required")

    calendar = ctx.store.create_calendar({
        "name": name,
        "description": data.description,
        "color": data.color or schemas.DEFAULT_COLOR,
        "is_default": False,
        "is_public": data.is_public,
        "user_id": user.id,
    })
    logger.info(f"Created calendar '{name}' for user {user.id} with ID {calendar.id}")
    return calendar


def list_calendars(ctx, user: schemas.User, include_shared: bool = False) -> List[schemas.Calendar]:
    """The user's own calendars, default first, plus shared ones if asked."""
    return ctx.store.list_calendars(user.id, include_shared)


def get_calendar(ctx, user: schemas.User, calendar_id: int) -> schemas.CalendarDetail:
    calendar = access.require(ctx.store, user.id, ctx.store.get_calendar(calendar_id), what="Calendar")
    return schemas.CalendarDetail(**calendar.model_dump(), shares=ctx.store.list_shares(calendar.id))


def update_calendar(ctx, user: schemas.User, calendar_id: int, data: schemas.CalendarUpdate) -> schemas.Calendar:
    access.require(ctx.store, user.id, ctx.store.get_calendar(calendar_id), Role.EDITOR, what="Calendar")

    fields = data.model_dump(exclude_none=True)
    if "name" in fields:
        fields["name"] = fields["name"].strip()
        if not fields["name"]:
            raise errors.ValidationFailure("Calendar name is required")

    updated = ctx.store.update_calendar(calendar_id, fields)
    logger.info(f"Updated calendar with ID {calendar_id}")
    return updated


def delete_calendar(ctx, user: schemas.User, calendar_id: int):
    """Owner-only hard delete; the default calendar can never be deleted."""
    calendar = ctx.store.get_calendar(calendar_id)
    if calendar is None or calendar.user_id != user.id:
        raise errors.NotFoundOrDenied("Calendar not found or insufficient permissions")
    if calendar.is_default:
        raise errors.Conflict("Cannot delete default calendar")

    with ctx.store.transaction():
        ctx.store.delete_calendar(calendar_id)
    logger.info(f"Deleted calendar with ID {calendar_id}")


def _require_owner(ctx, user: schemas.User, calendar_id: int) -> schemas.Calendar:
    """
    Share management is for the owner only. Collaborators who can already see
    the calendar get PermissionDenied; everyone else gets NotFoundOrDenied.
    """
    calendar = access.require(ctx.store, user.id, ctx.store.get_calendar(calendar_id), what="Calendar")
    if calendar.user_id != user.id:
        raise errors.PermissionDenied("Only the calendar owner can manage shares")
    return calendar


def _share_role(role: str) -> str:
    try:
        return schemas.ShareRole(str(role).lower()).value
    except ValueError:
        raise errors.ValidationFailure(f"Invalid share role: {role}")


def _share_in_calendar(ctx, calendar_id: int, share_id: int) -> schemas.CalendarShare:
    share = ctx.store.get_share(share_id)
    if share is None or share.calendar_id != calendar_id:
        raise errors.NotFoundOrDenied("Share not found")
    return share


def share_calendar(ctx, user: schemas.User, calendar_id: int, data: schemas.ShareCreate) -> schemas.CalendarShare:
    """Share a calendar with another registered user, at most once per user."""
    calendar = _require_owner(ctx, user, calendar_id)
    role = _share_role(data.role)

    target = ctx.store.get_user_by_email(data.email.strip())
    if target is None:
        raise errors.NotFoundOrDenied("User not found")
    if target.id == user.id or target.id == calendar.user_id:
        raise errors.ValidationFailure("Cannot share calendar with yourself")
    if ctx.store.find_share(calendar_id, target.id) is not None:
        raise errors.Conflict("Calendar is already shared with this user")

    with ctx.store.transaction():
        share = ctx.store.create_share(calendar_id, target.id, role)
    logger.info(f"Shared calendar {calendar_id} with user {target.id} as {role}")
    return share


def list_shares(ctx, user: schemas.User, calendar_id: int) -> List[schemas.CalendarShare]:
    access.require(ctx.store, user.id, ctx.store.get_calendar(calendar_id), what="Calendar")
    return ctx.store.list_shares(calendar_id)


def update_share(ctx, user: schemas.User, calendar_id: int, share_id: int,
                 data: schemas.ShareUpdate) -> schemas.CalendarShare:
    _require_owner(ctx, user, calendar_id)
    role = _share_role(data.role)
    _share_in_calendar(ctx, calendar_id, share_id)

    share = ctx.store.update_share(share_id, role)
    logger.info(f"Changed share {share_id} on calendar {calendar_id} to {role}")
    return share


def remove_share(ctx, user: schemas.User, calendar_id: int, share_id: int):
    _require_owner(ctx, user, calendar_id)
    _share_in_calendar(ctx, calendar_id, share_id)

    ctx.store.delete_share(share_id)
    logger.info(f"Removed share {share_id} from calendar {calendar_id}")
