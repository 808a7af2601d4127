# Conversions between a user's wall clock and the naive UTC instants we store

import datetime
from typing import Optional, Tuple, Union
from dateutil import parser, tz
import errors
import overlap

DEFAULT_TIMEZONE = "UTC"


def get_zone(zone_id: Optional[str]):
    """Look up a tzinfo by IANA id, falling back to UTC for an empty id."""
    if not zone_id:
        zone_id = DEFAULT_TIMEZONE
    zone = tz.gettz(zone_id)
    if zone is None:
        raise errors.ValidationFailure(f"Unknown timezone: {zone_id}")
    return zone


def to_absolute(local_date: datetime.date, local_time: datetime.time, zone_id: str) -> datetime.datetime:
    """
    Combine a wall-clock date and time in the given zone into a naive UTC instant.

    A time that does not exist (skipped by a DST jump) is moved forward by the
    size of the gap. An ambiguous time (repeated by a DST fall-back) resolves to
    its first occurrence.
    """
    zone = get_zone(zone_id)
    local = datetime.datetime.combine(local_date, local_time.replace(tzinfo=None)).replace(tzinfo=zone, fold=0)
    local = tz.resolve_imaginary(local)
    return local.astimezone(tz.UTC).replace(tzinfo=None)


def from_absolute(instant: datetime.datetime, zone_id: str) -> Tuple[datetime.date, datetime.time]:
    """Split a naive UTC instant into the wall-clock date and time of a zone."""
    local = to_local(instant, zone_id)
    return local.date(), local.time()


def to_local(instant: datetime.datetime, zone_id: str) -> datetime.datetime:
    """Naive UTC instant -> aware datetime in the given zone."""
    zone = get_zone(zone_id)
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=tz.UTC)
    return instant.astimezone(zone)


def parse_instant(value: Union[str, datetime.datetime], zone_id: str) -> datetime.datetime:
    """
    Normalize a client-supplied timestamp to a naive UTC instant.

    Values carrying an offset are converted directly. Naive values are read as
    wall-clock time in zone_id (the requesting user's zone).
    """
    if isinstance(value, str):
        try:
            value = parser.isoparse(value)
        except ValueError:
            raise errors.ValidationFailure(f"Invalid time format: {value}")
    if not isinstance(value, datetime.datetime):
        raise errors.ValidationFailure("Invalid time argument type")

    if value.tzinfo is not None:
        return value.astimezone(tz.UTC).replace(tzinfo=None)
    return to_absolute(value.date(), value.time(), zone_id)


def parse_all_day(value: Union[str, datetime.date, datetime.datetime]) -> datetime.datetime:
    """All-day values keep only their date; no zone conversion is applied."""
    if isinstance(value, str):
        try:
            value = parser.isoparse(value)
        except ValueError:
            raise errors.ValidationFailure(f"Invalid date format: {value}")
    if isinstance(value, datetime.datetime):
        value = value.date()
    if not isinstance(value, datetime.date):
        raise errors.ValidationFailure("Invalid date argument type")
    return datetime.datetime.combine(value, datetime.time.min)


def day_bounds(local_date: datetime.date, zone_id: str) -> Tuple[datetime.datetime, datetime.datetime]:
    """Absolute instants of local midnight and the following local midnight."""
    start = to_absolute(local_date, datetime.time.min, zone_id)
    end = to_absolute(local_date + datetime.timedelta(days=1), datetime.time.min, zone_id)
    return start, end


def now_utc() -> datetime.datetime:
    return datetime.datetime.now(tz.UTC).replace(tzinfo=None)


def local_window(
    start_date: Optional[datetime.date],
    end_date: Optional[datetime.date],
    zone_id: str,
):
    """
    Turn an inclusive range of local days into overlap filters.

    Timed events are matched against the absolute instants of the first day's
    midnight and the midnight after the last day. All-day events are matched
    against the local dates themselves.
    """
    if start_date and end_date and end_date < start_date:
        raise errors.ValidationFailure("'start_date' must not be after 'end_date'")

    range_start = day_bounds(start_date, zone_id)[0] if start_date else None
    range_end = day_bounds(end_date, zone_id)[1] if end_date else None
    return overlap.EventFilters(
        range_start=range_start,
        range_end=range_end,
        date_start=start_date,
        date_end=end_date,
    )


def instant_window(
    range_start: Optional[datetime.datetime],
    range_end: Optional[datetime.datetime],
    zone_id: str,
):
    """Overlap filters for explicit instants; all-day rows use the local dates of the bounds."""
    if range_start and range_end and range_end < range_start:
        raise errors.ValidationFailure("'start_date' must be before 'end_date'")

    return overlap.EventFilters(
        range_start=range_start,
        range_end=range_end,
        date_start=to_local(range_start, zone_id).date() if range_start else None,
        date_end=to_local(range_end, zone_id).date() if range_end else None,
    )


def today_window(zone_id: str, now: Optional[datetime.datetime] = None):
    """[local midnight, local midnight + 1 day] in the requester's zone."""
    now = now or now_utc()
    return local_window(to_local(now, zone_id).date(), to_local(now, zone_id).date(), zone_id)


def upcoming_window(zone_id: str, now: Optional[datetime.datetime] = None):
    """[now, open end)."""
    now = now or now_utc()
    return instant_window(now, None, zone_id)


def _is_date_only(value: str) -> bool:
    return len(value.strip()) == 10


def window_from_params(start: Optional[str], end: Optional[str], zone_id: str):
    """
    Filters from query-string bounds. Bare dates (YYYY-MM-DD) are whole local
    days; anything with a time component is an instant in the user's zone.
    """
    given = [v for v in (start, end) if v]
    if all(_is_date_only(v) for v in given):
        return local_window(
            parse_all_day(start).date() if start else None,
            parse_all_day(end).date() if end else None,
            zone_id,
        )
    return instant_window(
        parse_instant(start, zone_id) if start else None,
        parse_instant(end, zone_id) if end else None,
        zone_id,
    )
