# Access resolution for calendars and events
#
# Three independent grant paths, any one of which is enough:
#   1. ownership (calendar owner, event creator, or owner of the event's calendar)
#   2. a calendar share, whose role must reach the required role
#   3. participation in the event (events only), which grants everything

import logging
from typing import Optional, Iterable, Tuple, List, Union
from enum import IntEnum
import errors
import schemas

logger = logging.getLogger(__name__)


class Role(IntEnum):
    VIEWER = 1
    EDITOR = 2
    OWNER = 3

    @classmethod
    def from_name(cls, name: Optional[str]) -> Optional["Role"]:
        if name is None:
            return None
        try:
            return cls[str(name).upper()]
        except KeyError:
            raise errors.ValidationFailure(f"Unknown role: {name}")


def grants(
    principal_id: str,
    owner_ids: Iterable[str],
    share_role: Optional[Role],
    is_participant: bool,
    required_role: Optional[Role] = None,
) -> bool:
    """
    Evaluate the grant paths for one principal against one target.

    Args:
        principal_id: The requesting user.
        owner_ids: Users that own the target.
        share_role: Role of the principal's share on the (event's) calendar, if any.
        is_participant: Whether the principal is invited to the event.
        required_role: Minimum role needed; None means any access at all.

    Returns:
        bool: True if any path grants access.
    """
    if principal_id in owner_ids:
        return True
    if is_participant:
        return True
    if share_role is None:
        return False
    if required_role is None:
        return True
    # A stronger share role implies the weaker ones
    return share_role >= required_role


def _share_role(store, calendar_id: int, user_id: str) -> Optional[Role]:
    share = store.find_share(calendar_id, user_id)
    if share is None:
        return None
    return Role.from_name(share.role.value)


def resolve(
    store,
    principal_id: str,
    target: Union[schemas.Calendar, schemas.Event],
    required_role: Optional[Role] = None,
) -> bool:
    """Check whether principal_id holds at least required_role on a calendar or event."""
    if isinstance(target, schemas.Calendar):
        owner_ids = {target.user_id}
        calendar_id = target.id
        is_participant = False
    else:
        owner_ids = {target.user_id}
        calendar = store.get_calendar(target.calendar_id)
        if calendar is not None:
            owner_ids.add(calendar.user_id)
        calendar_id = target.calendar_id
        is_participant = store.find_participant(target.id, principal_id) is not None

    return grants(
        principal_id,
        owner_ids,
        _share_role(store, calendar_id, principal_id),
        is_participant,
        required_role,
    )


def effective_role(
    store,
    principal_id: str,
    target: Union[schemas.Calendar, schemas.Event],
) -> Optional[Role]:
    """The strongest role the principal holds on the target, or None."""
    if is_owner(store, principal_id, target):
        return Role.OWNER
    if resolve(store, principal_id, target, Role.EDITOR):
        return Role.EDITOR
    if resolve(store, principal_id, target, Role.VIEWER):
        return Role.VIEWER
    return None


def is_owner(store, principal_id: str, target: Union[schemas.Calendar, schemas.Event]) -> bool:
    if target.user_id == principal_id:
        return True
    if isinstance(target, schemas.Event):
        calendar = store.get_calendar(target.calendar_id)
        return calendar is not None and calendar.user_id == principal_id
    return False


def require(
    store,
    principal_id: str,
    target: Optional[Union[schemas.Calendar, schemas.Event]],
    required_role: Optional[Role] = None,
    what: str = "Resource",
):
    """Return target if the principal may act on it, else raise NotFoundOrDenied."""
    if target is None or not resolve(store, principal_id, target, required_role):
        if target is not None:
            logger.info(f"Denied {required_role.name.lower() if required_role else 'any'} access "
                        f"to {what.lower()} {target.id} for user {principal_id}")
        raise errors.NotFoundOrDenied(f"{what} not found or insufficient permissions")
    return target


def visibility_conditions(user_id: str) -> Tuple[List[str], List]:
    """
    SQL form of resolve(..., required_role=None) for event rows aliased as e.

    Used to scope list queries in the WHERE clause instead of checking rows
    one by one.
    """
    cond = (
        "(e.user_id = %s"
        " OR EXISTS (SELECT 1 FROM calendars c WHERE c.id = e.calendar_id AND c.user_id = %s)"
        " OR EXISTS (SELECT 1 FROM calendar_shares s WHERE s.calendar_id = e.calendar_id AND s.user_id = %s)"
        " OR EXISTS (SELECT 1 FROM event_participants p WHERE p.event_id = e.id AND p.user_id = %s))"
    )
    return [cond], [user_id, user_id, user_id, user_id]
