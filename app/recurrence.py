# Recurrence rules: RRULE-style text <-> RecurrenceRule, and bounded expansion

import logging
import datetime
from typing import Optional, List, Tuple, NamedTuple
from enum import Enum
from dateutil import parser, tz
from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

HARD_CAP = 30
DEFAULT_HORIZON = relativedelta(years=1)


class Frequency(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class RecurrenceRule(BaseModel):
    """
    Structured form of a rule string such as FREQ=WEEKLY;INTERVAL=2;COUNT=5.

    The BYxxx fields and week_start are carried through parse/format so stored
    rules keep them, but expand() never uses them: every step yields exactly
    one occurrence.
    """
    model_config = ConfigDict(frozen=True)

    frequency: Optional[Frequency] = None
    interval: int = 1
    end_date: Optional[datetime.datetime] = None
    count: Optional[int] = None
    by_day: Tuple[str, ...] = ()
    by_month: Tuple[int, ...] = ()
    by_month_day: Tuple[int, ...] = ()
    by_week_no: Tuple[int, ...] = ()
    by_year_day: Tuple[int, ...] = ()
    by_set_pos: Tuple[int, ...] = ()
    week_start: Optional[str] = None


class Occurrence(NamedTuple):
    start: datetime.datetime
    end: datetime.datetime


_INT_LIST_KEYS = {
    "BYMONTH": "by_month",
    "BYMONTHDAY": "by_month_day",
    "BYWEEKNO": "by_week_no",
    "BYYEARDAY": "by_year_day",
    "BYSETPOS": "by_set_pos",
}


def _to_int(value: str) -> Optional[int]:
    try:
        return int(value)
    except ValueError:
        return None


def _parse_until(value: str) -> Optional[datetime.datetime]:
    """UNTIL values are UTC; naive values are taken as UTC already."""
    try:
        dt = parser.isoparse(value)
    except ValueError:
        logger.warning(f"Ignoring unparseable UNTIL value: {value}")
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(tz.UTC).replace(tzinfo=None)
    return dt


def parse(rule_text: Optional[str]) -> RecurrenceRule:
    """
    Parse a semicolon-delimited KEY=VALUE rule string.

    Unknown keys and values that do not parse are skipped; this never raises.
    A rule without FREQ comes back with frequency None, which expand() treats
    as DAILY with interval 1.
    """
    fields = {}
    if not rule_text:
        return RecurrenceRule()

    text = rule_text.strip()
    if text.upper().startswith("RRULE:"):
        text = text[len("RRULE:"):]

    for part in text.split(";"):
        if "=" not in part:
            continue
        key, value = part.split("=", 1)
        key = key.strip().upper()
        value = value.strip()
        if not value:
            continue

        if key == "FREQ":
            try:
                fields["frequency"] = Frequency(value.upper())
            except ValueError:
                logger.warning(f"Ignoring unknown FREQ value: {value}")
        elif key == "INTERVAL":
            interval = _to_int(value)
            if interval is not None:
                fields["interval"] = interval
        elif key == "UNTIL":
            until = _parse_until(value)
            if until is not None:
                fields["end_date"] = until
        elif key == "COUNT":
            count = _to_int(value)
            # COUNT=0 means the same as no COUNT
            if count:
                fields["count"] = count
        elif key == "BYDAY":
            fields["by_day"] = tuple(d.strip().upper() for d in value.split(",") if d.strip())
        elif key in _INT_LIST_KEYS:
            numbers = [_to_int(v) for v in value.split(",")]
            fields[_INT_LIST_KEYS[key]] = tuple(n for n in numbers if n is not None)
        elif key == "WKST":
            fields["week_start"] = value.upper()

    return RecurrenceRule(**fields)


def format(rule: RecurrenceRule) -> str:
    """Serialize a rule back to its KEY=VALUE form, omitting defaults."""
    parts = []

    if rule.frequency:
        parts.append(f"FREQ={rule.frequency.value}")
    if rule.interval != 1:
        parts.append(f"INTERVAL={rule.interval}")
    if rule.end_date:
        parts.append(f"UNTIL={rule.end_date.strftime('%Y%m%dT%H%M%SZ')}")
    if rule.count:
        parts.append(f"COUNT={rule.count}")
    if rule.by_day:
        parts.append(f"BYDAY={','.join(rule.by_day)}")
    for key, attr in _INT_LIST_KEYS.items():
        values = getattr(rule, attr)
        if values:
            parts.append(f"{key}={','.join(str(v) for v in values)}")
    if rule.week_start:
        parts.append(f"WKST={rule.week_start}")

    return ";".join(parts)


def _step(rule: RecurrenceRule, k: int) -> relativedelta:
    """Offset of the k-th occurrence from the seed."""
    interval = rule.interval
    if rule.frequency == Frequency.WEEKLY:
        return relativedelta(days=7 * interval * k)
    if rule.frequency == Frequency.MONTHLY:
        return relativedelta(months=interval * k)
    if rule.frequency == Frequency.YEARLY:
        return relativedelta(years=interval * k)
    if rule.frequency == Frequency.DAILY:
        return relativedelta(days=interval * k)
    return relativedelta(days=k)


def _advance(seed_start: datetime.datetime, offset: relativedelta, zone) -> datetime.datetime:
    if zone is None:
        return seed_start + offset
    # Step in wall-clock time so a 09:00 series stays at 09:00 across DST
    local = seed_start.replace(tzinfo=tz.UTC).astimezone(zone).replace(tzinfo=None)
    stepped = tz.resolve_imaginary((local + offset).replace(tzinfo=zone))
    return stepped.astimezone(tz.UTC).replace(tzinfo=None)


def expand(
    seed_start: datetime.datetime,
    seed_end: datetime.datetime,
    rule: RecurrenceRule,
    hard_cap: int = HARD_CAP,
    zone=None,
) -> List[Occurrence]:
    """
    Expand a rule into concrete occurrences, seed first.

    Each later occurrence is the seed start advanced by k steps of the rule's
    frequency x interval, keeping the seed duration. Months and years are added
    with relativedelta from the seed, so a day-of-month past the end of the
    target month clamps to that month's last day without drifting later
    occurrences (Jan 31 -> Feb 28 -> Mar 31).

    Stops at COUNT, at the first start later than UNTIL, at hard_cap, or as
    soon as a step fails to move forward (INTERVAL=0 or negative). Without
    UNTIL the series is bounded to one year after the seed.

    Args:
        seed_start: Naive UTC start of the original occurrence.
        seed_end: Naive UTC end of the original occurrence.
        rule: Parsed rule.
        hard_cap: Maximum number of occurrences including the seed.
        zone: Optional tzinfo whose wall clock the steps follow.

    Returns:
        List[Occurrence]: Ordered occurrences, never empty.
    """
    duration = seed_end - seed_start
    limit = hard_cap
    if rule.count:
        limit = min(rule.count, hard_cap)
    until = rule.end_date or (seed_start + DEFAULT_HORIZON)

    occurrences = [Occurrence(seed_start, seed_end)]
    current = seed_start
    k = 1
    while len(occurrences) < limit:
        next_start = _advance(seed_start, _step(rule, k), zone)
        if next_start <= current:
            logger.warning(f"Recurrence step did not advance past {current}, stopping expansion")
            break
        if next_start > until:
            break
        occurrences.append(Occurrence(next_start, next_start + duration))
        current = next_start
        k += 1

    return occurrences


def is_recurring_date(candidate: datetime.datetime, seed_start: datetime.datetime, rule: RecurrenceRule) -> bool:
    """Check whether a date lies on the rule's step grid, ignoring time of day."""
    interval = rule.interval if rule.interval > 0 else 1
    day = candidate.date()
    seed_day = seed_start.date()
    if day < seed_day:
        return False

    if rule.frequency == Frequency.MONTHLY:
        months = (day.year - seed_day.year) * 12 + day.month - seed_day.month
        return months % interval == 0 and (seed_day + relativedelta(months=months)) == day
    if rule.frequency == Frequency.YEARLY:
        years = day.year - seed_day.year
        return years % interval == 0 and (seed_day + relativedelta(years=years)) == day

    days = (day - seed_day).days
    if rule.frequency == Frequency.WEEKLY:
        return days % (7 * interval) == 0
    if rule.frequency == Frequency.DAILY:
        return days % interval == 0
    return True
