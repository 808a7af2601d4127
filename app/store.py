# Store contract and its MySQL implementation
#
# Every method returns schema records (or plain values) and raises only the
# errors in errors.py. Writes outside a transaction() block commit on their own.

import logging
from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any, Tuple
import mysql.connector
import errors
import schemas
import access
import overlap

logger = logging.getLogger(__name__)

DUPLICATE_ENTRY = 1062


class Store(ABC):
    """Persistence primitives the core needs: lookups, scoped queries, transactions, bulk insert."""

    @abstractmethod
    def transaction(self):
        """Context manager; everything inside commits or rolls back together."""

    # Users and sessions
    @abstractmethod
    def create_user(self, user: schemas.User) -> schemas.User: ...

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[schemas.User]: ...

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[schemas.User]: ...

    @abstractmethod
    def update_user(self, user_id: str, fields: Dict[str, Any]) -> schemas.User: ...

    @abstractmethod
    def delete_user(self, user_id: str) -> None: ...

    @abstractmethod
    def create_session(self, token_hash: str, user_id: str) -> None: ...

    @abstractmethod
    def get_session_user_id(self, token_hash: str) -> Optional[str]: ...

    @abstractmethod
    def delete_session(self, token_hash: str) -> None: ...

    # Calendars and shares
    @abstractmethod
    def create_calendar(self, fields: Dict[str, Any]) -> schemas.Calendar: ...

    @abstractmethod
    def get_calendar(self, calendar_id: int) -> Optional[schemas.Calendar]: ...

    @abstractmethod
    def get_default_calendar(self, user_id: str) -> Optional[schemas.Calendar]: ...

    @abstractmethod
    def list_calendars(self, user_id: str, include_shared: bool = False) -> List[schemas.Calendar]: ...

    @abstractmethod
    def update_calendar(self, calendar_id: int, fields: Dict[str, Any]) -> schemas.Calendar: ...

    @abstractmethod
    def delete_calendar(self, calendar_id: int) -> None: ...

    @abstractmethod
    def create_share(self, calendar_id: int, user_id: str, role: str) -> schemas.CalendarShare: ...

    @abstractmethod
    def get_share(self, share_id: int) -> Optional[schemas.CalendarShare]: ...

    @abstractmethod
    def find_share(self, calendar_id: int, user_id: str) -> Optional[schemas.CalendarShare]: ...

    @abstractmethod
    def list_shares(self, calendar_id: int) -> List[schemas.CalendarShare]: ...

    @abstractmethod
    def update_share(self, share_id: int, role: str) -> schemas.CalendarShare: ...

    @abstractmethod
    def delete_share(self, share_id: int) -> None: ...

    # Events and participants
    @abstractmethod
    def create_event(self, fields: Dict[str, Any]) -> schemas.Event: ...

    @abstractmethod
    def create_events(self, rows: List[Dict[str, Any]]) -> int: ...

    @abstractmethod
    def get_event(self, event_id: int) -> Optional[schemas.Event]: ...

    @abstractmethod
    def update_event(self, event_id: int, fields: Dict[str, Any]) -> schemas.Event: ...

    @abstractmethod
    def delete_event(self, event_id: int) -> None: ...

    @abstractmethod
    def list_calendar_events(self, calendar_id: int) -> List[schemas.Event]: ...

    @abstractmethod
    def query_events(
        self,
        user_id: str,
        filters: overlap.EventFilters,
        options: overlap.QueryOptions,
    ) -> Tuple[List[schemas.Event], int]:
        """Events visible to user_id that match filters: one page plus the total count."""

    @abstractmethod
    def replace_participants(self, event_id: int, participants: List[Dict[str, Any]]) -> None:
        """Delete every participant of the event, then insert the given ones."""

    @abstractmethod
    def list_participants(self, event_id: int) -> List[schemas.EventParticipant]: ...

    @abstractmethod
    def get_participant(self, participant_id: int) -> Optional[schemas.EventParticipant]: ...

    @abstractmethod
    def find_participant(self, event_id: int, user_id: str) -> Optional[schemas.EventParticipant]: ...

    @abstractmethod
    def update_participant_status(self, participant_id: int, status: str) -> schemas.EventParticipant: ...


USER_COLUMNS = "id, email, name, timezone, created_at, updated_at"
CALENDAR_COLUMNS = "id, user_id, name, description, color, is_default, is_public, created_at, updated_at"
SHARE_COLUMNS = "s.id, s.calendar_id, s.user_id, s.role, u.email, u.name, s.created_at"
EVENT_COLUMNS = ("e.id, e.calendar_id, e.user_id, e.title, e.description, e.location, e.start_time, "
                 "e.end_time, e.is_all_day, e.color, e.is_recurring, e.recurrence_rule, "
                 "e.parent_event_id, e.original_event_id, e.created_at, e.updated_at")
PARTICIPANT_COLUMNS = "id, event_id, user_id, email, name, status, created_at"

EVENT_FIELDS = ["calendar_id", "user_id", "title", "description", "location", "start_time", "end_time",
                "is_all_day", "color", "is_recurring", "recurrence_rule", "parent_event_id", "original_event_id"]


def _rows_to_dicts(cursor) -> List[Dict[str, Any]]:
    cols = [d[0] for d in cursor.description]
    return [dict(zip(cols, row)) for row in cursor.fetchall()]


def _set_clause(fields: Dict[str, Any]) -> Tuple[str, List]:
    return ", ".join(f"{name} = %s" for name in fields), list(fields.values())


class MySQLStore(Store):
    """Store backed by mysql-connector with hand-written SQL."""

    def __init__(self, db):
        self.db = db

    def transaction(self):
        return self.db.transaction()

    def _execute(self, sql: str, params=(), many: bool = False):
        """Run one statement inside a (possibly enclosing) transaction and return the cursor."""
        try:
            with self.db.transaction() as conn:
                cursor = conn.cursor(buffered=True)
                if many:
                    cursor.executemany(sql, params)
                else:
                    cursor.execute(sql, tuple(params))
                return cursor
        except mysql.connector.IntegrityError as e:
            if e.errno == DUPLICATE_ENTRY:
                raise errors.Conflict("A record with this information already exists")
            logger.error(f"Integrity error: {e}")
            raise errors.Internal("Database operation failed")
        except mysql.connector.Error as e:
            logger.error(f"Database error: {e}")
            raise errors.Internal("Database operation failed")

    def _fetch_one(self, sql: str, params=()) -> Optional[Dict[str, Any]]:
        rows = _rows_to_dicts(self._execute(sql, params))
        return rows[0] if rows else None

    def _fetch_all(self, sql: str, params=()) -> List[Dict[str, Any]]:
        return _rows_to_dicts(self._execute(sql, params))

    # Users and sessions

    def create_user(self, user):
        self._execute(
            "INSERT INTO users (id, email, name, timezone) VALUES (%s, %s, %s, %s)",
            (user.id, user.email, user.name, user.timezone),
        )
        return self.get_user(user.id)

    def get_user(self, user_id):
        row = self._fetch_one(f"SELECT {USER_COLUMNS} FROM users WHERE id = %s", (user_id,))
        return schemas.User(**row) if row else None

    def get_user_by_email(self, email):
        row = self._fetch_one(f"SELECT {USER_COLUMNS} FROM users WHERE email = %s", (email.lower(),))
        return schemas.User(**row) if row else None

    def update_user(self, user_id, fields):
        if fields:
            clause, values = _set_clause(fields)
            self._execute(f"UPDATE users SET {clause} WHERE id = %s", values + [user_id])
        return self.get_user(user_id)

    def delete_user(self, user_id):
        self._execute("DELETE FROM users WHERE id = %s", (user_id,))

    def create_session(self, token_hash, user_id):
        self._execute("INSERT INTO sessions (token_hash, user_id) VALUES (%s, %s)", (token_hash, user_id))

    def get_session_user_id(self, token_hash):
        row = self._fetch_one("SELECT user_id FROM sessions WHERE token_hash = %s", (token_hash,))
        return row["user_id"] if row else None

    def delete_session(self, token_hash):
        self._execute("DELETE FROM sessions WHERE token_hash = %s", (token_hash,))

    # Calendars and shares

    def create_calendar(self, fields):
        names = list(fields)
        cursor = self._execute(
            f"INSERT INTO calendars ({', '.join(names)}) VALUES ({', '.join(['%s'] * len(names))})",
            [fields[n] for n in names],
        )
        return self.get_calendar(cursor.lastrowid)

    def get_calendar(self, calendar_id):
        row = self._fetch_one(f"SELECT {CALENDAR_COLUMNS} FROM calendars WHERE id = %s", (calendar_id,))
        return schemas.Calendar(**row) if row else None

    def get_default_calendar(self, user_id):
        row = self._fetch_one(
            f"SELECT {CALENDAR_COLUMNS} FROM calendars WHERE user_id = %s AND is_default = 1",
            (user_id,),
        )
        return schemas.Calendar(**row) if row else None

    def list_calendars(self, user_id, include_shared=False):
        sql = f"SELECT {CALENDAR_COLUMNS} FROM calendars WHERE user_id = %s"
        params = [user_id]
        if include_shared:
            sql += " OR id IN (SELECT calendar_id FROM calendar_shares WHERE user_id = %s)"
            params.append(user_id)
        sql += " ORDER BY is_default DESC, created_at ASC, id ASC"
        return [schemas.Calendar(**row) for row in self._fetch_all(sql, params)]

    def update_calendar(self, calendar_id, fields):
        if fields:
            clause, values = _set_clause(fields)
            self._execute(f"UPDATE calendars SET {clause} WHERE id = %s", values + [calendar_id])
        return self.get_calendar(calendar_id)

    def delete_calendar(self, calendar_id):
        self._execute("DELETE FROM calendars WHERE id = %s", (calendar_id,))

    def create_share(self, calendar_id, user_id, role):
        cursor = self._execute(
            "INSERT INTO calendar_shares (calendar_id, user_id, role) VALUES (%s, %s, %s)",
            (calendar_id, user_id, role),
        )
        return self.get_share(cursor.lastrowid)

    def get_share(self, share_id):
        row = self._fetch_one(
            f"SELECT {SHARE_COLUMNS} FROM calendar_shares s JOIN users u ON u.id = s.user_id WHERE s.id = %s",
            (share_id,),
        )
        return schemas.CalendarShare(**row) if row else None

    def find_share(self, calendar_id, user_id):
        row = self._fetch_one(
            f"SELECT {SHARE_COLUMNS} FROM calendar_shares s JOIN users u ON u.id = s.user_id "
            "WHERE s.calendar_id = %s AND s.user_id = %s",
            (calendar_id, user_id),
        )
        return schemas.CalendarShare(**row) if row else None

    def list_shares(self, calendar_id):
        rows = self._fetch_all(
            f"SELECT {SHARE_COLUMNS} FROM calendar_shares s JOIN users u ON u.id = s.user_id "
            "WHERE s.calendar_id = %s ORDER BY s.created_at ASC, s.id ASC",
            (calendar_id,),
        )
        return [schemas.CalendarShare(**row) for row in rows]

    def update_share(self, share_id, role):
        self._execute("UPDATE calendar_shares SET role = %s WHERE id = %s", (role, share_id))
        return self.get_share(share_id)

    def delete_share(self, share_id):
        self._execute("DELETE FROM calendar_shares WHERE id = %s", (share_id,))

    # Events and participants

    def create_event(self, fields):
        cursor = self._execute(
            f"INSERT INTO events ({', '.join(EVENT_FIELDS)}) VALUES ({', '.join(['%s'] * len(EVENT_FIELDS))})",
            [fields.get(name) for name in EVENT_FIELDS],
        )
        return self.get_event(cursor.lastrowid)

    def create_events(self, rows):
        if not rows:
            return 0
        self._execute(
            f"INSERT INTO events ({', '.join(EVENT_FIELDS)}) VALUES ({', '.join(['%s'] * len(EVENT_FIELDS))})",
            [tuple(row.get(name) for name in EVENT_FIELDS) for row in rows],
            many=True,
        )
        return len(rows)

    def get_event(self, event_id):
        row = self._fetch_one(f"SELECT {EVENT_COLUMNS} FROM events e WHERE e.id = %s", (event_id,))
        return schemas.Event(**row) if row else None

    def update_event(self, event_id, fields):
        if fields:
            clause, values = _set_clause(fields)
            self._execute(f"UPDATE events SET {clause} WHERE id = %s", values + [event_id])
        return self.get_event(event_id)

    def delete_event(self, event_id):
        self._execute("DELETE FROM events WHERE id = %s", (event_id,))

    def list_calendar_events(self, calendar_id):
        rows = self._fetch_all(
            f"SELECT {EVENT_COLUMNS} FROM events e WHERE e.calendar_id = %s ORDER BY e.start_time ASC, e.id ASC",
            (calendar_id,),
        )
        return [schemas.Event(**row) for row in rows]

    def query_events(self, user_id, filters, options):
        conds, params = access.visibility_conditions(user_id)
        window_conds, window_params = overlap.build_overlap_conditions(filters)
        conds.extend(window_conds)
        params.extend(window_params)
        where = " AND ".join(conds)

        total = self._fetch_one(f"SELECT COUNT(*) AS total FROM events e WHERE {where}", params)["total"]
        rows = self._fetch_all(
            f"SELECT {EVENT_COLUMNS} FROM events e WHERE {where} "
            f"{overlap.build_order_clause(options)} LIMIT %s OFFSET %s",
            params + [options.limit, options.offset],
        )
        return [schemas.Event(**row) for row in rows], total

    def replace_participants(self, event_id, participants):
        with self.transaction():
            self._execute("DELETE FROM event_participants WHERE event_id = %s", (event_id,))
            if participants:
                self._execute(
                    "INSERT INTO event_participants (event_id, user_id, email, name, status) "
                    "VALUES (%s, %s, %s, %s, %s)",
                    [(event_id, p.get("user_id"), p["email"], p.get("name"),
                      p.get("status", schemas.ParticipantStatus.PENDING.value)) for p in participants],
                    many=True,
                )

    def list_participants(self, event_id):
        rows = self._fetch_all(
            f"SELECT {PARTICIPANT_COLUMNS} FROM event_participants WHERE event_id = %s ORDER BY created_at ASC, id ASC",
            (event_id,),
        )
        return [schemas.EventParticipant(**row) for row in rows]

    def get_participant(self, participant_id):
        row = self._fetch_one(
            f"SELECT {PARTICIPANT_COLUMNS} FROM event_participants WHERE id = %s", (participant_id,)
        )
        return schemas.EventParticipant(**row) if row else None

    def find_participant(self, event_id, user_id):
        row = self._fetch_one(
            f"SELECT {PARTICIPANT_COLUMNS} FROM event_participants WHERE event_id = %s AND user_id = %s LIMIT 1",
            (event_id, user_id),
        )
        return schemas.EventParticipant(**row) if row else None

    def update_participant_status(self, participant_id, status):
        self._execute("UPDATE event_participants SET status = %s WHERE id = %s", (status, participant_id))
        return self.get_participant(participant_id)
