# Overlap queries: which events intersect a window, in what order, which page

import datetime
from typing import Optional, List, Tuple
from pydantic import BaseModel
import errors
import schemas

DEFAULT_LIMIT = 50
MAX_LIMIT = 500

# Sortable fields mapped to their column names
ORDER_FIELDS = {
    "start_time": "e.start_time",
    "end_time": "e.end_time",
    "title": "e.title",
    "created_at": "e.created_at",
}


class EventFilters(BaseModel):
    """
    Window and attribute filters for an event query.

    range_start/range_end are naive UTC instants matched against timed events.
    date_start/date_end are the requester's local dates for the same window,
    matched against all-day events, which carry no zone.
    """
    range_start: Optional[datetime.datetime] = None
    range_end: Optional[datetime.datetime] = None
    date_start: Optional[datetime.date] = None
    date_end: Optional[datetime.date] = None
    calendar_id: Optional[int] = None
    is_recurring: Optional[bool] = None
    is_all_day: Optional[bool] = None


class QueryOptions(BaseModel):
    limit: int = DEFAULT_LIMIT
    offset: int = 0
    order_by: str = "start_time"
    order_direction: str = "asc"


class EventPage(BaseModel):
    events: List[schemas.Event]
    total: int
    limit: int
    offset: int
    has_more: bool


def validate_options(options: QueryOptions) -> QueryOptions:
    if options.limit < 1 or options.limit > MAX_LIMIT:
        raise errors.ValidationFailure(f"'limit' must be between 1 and {MAX_LIMIT}")
    if options.offset < 0:
        raise errors.ValidationFailure("'offset' must not be negative")
    if options.order_by not in ORDER_FIELDS:
        raise errors.ValidationFailure(f"Cannot order events by '{options.order_by}'")
    if options.order_direction.lower() not in ("asc", "desc"):
        raise errors.ValidationFailure("'order_direction' must be 'asc' or 'desc'")
    return options


def overlaps(event: schemas.Event, filters: EventFilters) -> bool:
    """
    Closed-interval overlap: the event starts no later than the window ends and
    ends no earlier than the window starts. A missing bound does not restrict.
    """
    if event.is_all_day:
        if filters.date_end is not None and event.start_time.date() > filters.date_end:
            return False
        if filters.date_start is not None and event.end_time.date() < filters.date_start:
            return False
        return True

    if filters.range_end is not None and event.start_time > filters.range_end:
        return False
    if filters.range_start is not None and event.end_time < filters.range_start:
        return False
    return True


def matches(event: schemas.Event, filters: EventFilters) -> bool:
    """Overlap plus the attribute filters."""
    if filters.calendar_id is not None and event.calendar_id != filters.calendar_id:
        return False
    if filters.is_recurring is not None and event.is_recurring != filters.is_recurring:
        return False
    if filters.is_all_day is not None and event.is_all_day != filters.is_all_day:
        return False
    return overlaps(event, filters)


def build_overlap_conditions(filters: EventFilters) -> Tuple[List[str], List]:
    """
    Build SQL conditions and params for the overlap predicate and attribute filters.

    Timed and all-day rows are matched by separate branches so all-day rows are
    compared on their dates only.
    """
    conds, params = [], []

    timed, timed_params = ["e.is_all_day = 0"], []
    if filters.range_end is not None:
        timed.append("e.start_time <= %s")
        timed_params.append(filters.range_end)
    if filters.range_start is not None:
        timed.append("e.end_time >= %s")
        timed_params.append(filters.range_start)

    all_day, all_day_params = ["e.is_all_day = 1"], []
    if filters.date_end is not None:
        all_day.append("DATE(e.start_time) <= %s")
        all_day_params.append(filters.date_end)
    if filters.date_start is not None:
        all_day.append("DATE(e.end_time) >= %s")
        all_day_params.append(filters.date_start)

    if timed_params or all_day_params:
        conds.append(f"(({' AND '.join(timed)}) OR ({' AND '.join(all_day)}))")
        params.extend(timed_params + all_day_params)

    if filters.calendar_id is not None:
        conds.append("e.calendar_id = %s")
        params.append(filters.calendar_id)
    if filters.is_recurring is not None:
        conds.append("e.is_recurring = %s")
        params.append(1 if filters.is_recurring else 0)
    if filters.is_all_day is not None:
        conds.append("e.is_all_day = %s")
        params.append(1 if filters.is_all_day else 0)

    return conds, params


def build_order_clause(options: QueryOptions) -> str:
    column = ORDER_FIELDS[options.order_by]
    direction = "DESC" if options.order_direction.lower() == "desc" else "ASC"
    return f"ORDER BY {column} {direction}, e.id ASC"


def sort_events(events: List[schemas.Event], options: QueryOptions) -> List[schemas.Event]:
    """Order in memory the same way build_order_clause orders in SQL."""
    reverse = options.order_direction.lower() == "desc"
    ordered = sorted(events, key=lambda e: e.id)
    return sorted(ordered, key=lambda e: getattr(e, options.order_by) or datetime.datetime.min, reverse=reverse)


def make_page(events: List[schemas.Event], total: int, options: QueryOptions) -> EventPage:
    return EventPage(
        events=events,
        total=total,
        limit=options.limit,
        offset=options.offset,
        has_more=options.offset + len(events) < total,
    )
