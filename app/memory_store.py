# In-process store with the same semantics as MySQLStore, for local runs and tests

import copy
import logging
import datetime
import itertools
from contextlib import contextmanager
import errors
import schemas
import access
import overlap
from store import Store

logger = logging.getLogger(__name__)


def _now():
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None, microsecond=0)


class MemoryStore(Store):
    """
    Rows live in dicts keyed by id. A transaction snapshots every table and
    restores the snapshot if the block raises, so partial writes never survive.
    """

    TABLES = ("users", "sessions", "calendars", "shares", "events", "participants")

    def __init__(self):
        self.users = {}
        self.sessions = {}
        self.calendars = {}
        self.shares = {}
        self.events = {}
        self.participants = {}
        self._ids = itertools.count(1)
        self._depth = 0

    @contextmanager
    def transaction(self):
        snapshot = None
        if self._depth == 0:
            snapshot = {name: copy.deepcopy(getattr(self, name)) for name in self.TABLES}
        self._depth += 1
        try:
            yield self
        except Exception:
            self._depth -= 1
            if snapshot is not None:
                for name, rows in snapshot.items():
                    setattr(self, name, rows)
                logger.warning("Transaction rolled back")
            raise
        else:
            self._depth -= 1

    def _next_id(self):
        return next(self._ids)

    # Users and sessions

    def create_user(self, user):
        if self.get_user_by_email(user.email) is not None:
            raise errors.Conflict("A record with this information already exists")
        now = _now()
        row = user.model_copy(update={"email": user.email.lower(), "created_at": now, "updated_at": now})
        self.users[row.id] = row
        return row

    def get_user(self, user_id):
        return self.users.get(user_id)

    def get_user_by_email(self, email):
        email = email.lower()
        return next((u for u in self.users.values() if u.email == email), None)

    def update_user(self, user_id, fields):
        row = self.users[user_id].model_copy(update=dict(fields, updated_at=_now()))
        self.users[user_id] = row
        return row

    def delete_user(self, user_id):
        self.users.pop(user_id, None)
        self.sessions = {k: v for k, v in self.sessions.items() if v != user_id}
        for calendar in [c for c in self.calendars.values() if c.user_id == user_id]:
            self.delete_calendar(calendar.id)
        for event in [e for e in self.events.values() if e.user_id == user_id]:
            self.delete_event(event.id)
        self.shares = {k: s for k, s in self.shares.items() if s.user_id != user_id}
        for pid, p in list(self.participants.items()):
            if p.user_id == user_id:
                self.participants[pid] = p.model_copy(update={"user_id": None})

    def create_session(self, token_hash, user_id):
        self.sessions[token_hash] = user_id

    def get_session_user_id(self, token_hash):
        return self.sessions.get(token_hash)

    def delete_session(self, token_hash):
        self.sessions.pop(token_hash, None)

    # Calendars and shares

    def create_calendar(self, fields):
        now = _now()
        row = schemas.Calendar(id=self._next_id(), created_at=now, updated_at=now, **fields)
        self.calendars[row.id] = row
        return row

    def get_calendar(self, calendar_id):
        return self.calendars.get(calendar_id)

    def get_default_calendar(self, user_id):
        return next((c for c in self.calendars.values() if c.user_id == user_id and c.is_default), None)

    def list_calendars(self, user_id, include_shared=False):
        shared_ids = {s.calendar_id for s in self.shares.values() if s.user_id == user_id}
        rows = [
            c for c in self.calendars.values()
            if c.user_id == user_id or (include_shared and c.id in shared_ids)
        ]
        return sorted(rows, key=lambda c: (not c.is_default, c.created_at, c.id))

    def update_calendar(self, calendar_id, fields):
        row = self.calendars[calendar_id].model_copy(update=dict(fields, updated_at=_now()))
        self.calendars[calendar_id] = row
        return row

    def delete_calendar(self, calendar_id):
        self.calendars.pop(calendar_id, None)
        self.shares = {k: s for k, s in self.shares.items() if s.calendar_id != calendar_id}
        for event in [e for e in self.events.values() if e.calendar_id == calendar_id]:
            self.delete_event(event.id)

    def _with_user(self, share):
        user = self.users.get(share.user_id)
        if user is None:
            return share
        return share.model_copy(update={"email": user.email, "name": user.name})

    def create_share(self, calendar_id, user_id, role):
        if self.find_share(calendar_id, user_id) is not None:
            raise errors.Conflict("A record with this information already exists")
        row = schemas.CalendarShare(
            id=self._next_id(), calendar_id=calendar_id, user_id=user_id, role=role, created_at=_now()
        )
        self.shares[row.id] = row
        return self._with_user(row)

    def get_share(self, share_id):
        share = self.shares.get(share_id)
        return self._with_user(share) if share else None

    def find_share(self, calendar_id, user_id):
        share = next(
            (s for s in self.shares.values() if s.calendar_id == calendar_id and s.user_id == user_id), None
        )
        return self._with_user(share) if share else None

    def list_shares(self, calendar_id):
        rows = [s for s in self.shares.values() if s.calendar_id == calendar_id]
        return [self._with_user(s) for s in sorted(rows, key=lambda s: (s.created_at, s.id))]

    def update_share(self, share_id, role):
        self.shares[share_id] = self.shares[share_id].model_copy(update={"role": schemas.ShareRole(role)})
        return self.get_share(share_id)

    def delete_share(self, share_id):
        self.shares.pop(share_id, None)

    # Events and participants

    def create_event(self, fields):
        now = _now()
        row = schemas.Event(id=self._next_id(), created_at=now, updated_at=now, **fields)
        self.events[row.id] = row
        return row

    def create_events(self, rows):
        for fields in rows:
            self.create_event(fields)
        return len(rows)

    def get_event(self, event_id):
        return self.events.get(event_id)

    def update_event(self, event_id, fields):
        row = self.events[event_id].model_copy(update=dict(fields, updated_at=_now()))
        self.events[event_id] = schemas.Event(**row.model_dump())
        return self.events[event_id]

    def delete_event(self, event_id):
        self.events.pop(event_id, None)
        self.participants = {k: p for k, p in self.participants.items() if p.event_id != event_id}

    def list_calendar_events(self, calendar_id):
        rows = [e for e in self.events.values() if e.calendar_id == calendar_id]
        return sorted(rows, key=lambda e: (e.start_time, e.id))

    def _visible(self, user_id, event):
        calendar = self.calendars.get(event.calendar_id)
        owner_ids = {event.user_id}
        if calendar is not None:
            owner_ids.add(calendar.user_id)
        share = self.find_share(event.calendar_id, user_id)
        return access.grants(
            user_id,
            owner_ids,
            access.Role.from_name(share.role.value) if share else None,
            self.find_participant(event.id, user_id) is not None,
        )

    def query_events(self, user_id, filters, options):
        rows = [e for e in self.events.values() if self._visible(user_id, e) and overlap.matches(e, filters)]
        rows = overlap.sort_events(rows, options)
        return rows[options.offset:options.offset + options.limit], len(rows)

    def replace_participants(self, event_id, participants):
        self.participants = {k: p for k, p in self.participants.items() if p.event_id != event_id}
        for fields in participants:
            row = schemas.EventParticipant(id=self._next_id(), event_id=event_id, created_at=_now(), **fields)
            self.participants[row.id] = row

    def list_participants(self, event_id):
        rows = [p for p in self.participants.values() if p.event_id == event_id]
        return sorted(rows, key=lambda p: (p.created_at, p.id))

    def get_participant(self, participant_id):
        return self.participants.get(participant_id)

    def find_participant(self, event_id, user_id):
        return next(
            (p for p in self.participants.values() if p.event_id == event_id and p.user_id == user_id), None
        )

    def update_participant_status(self, participant_id, status):
        row = self.participants[participant_id].model_copy(update={"status": schemas.ParticipantStatus(status)})
        self.participants[participant_id] = row
        return row
