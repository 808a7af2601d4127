# Application context: the store, the session store and settings, built once at startup

import os
import logging
from typing import Optional
import database
import bootstrap
import recurrence
import timezones
from store import MySQLStore
from memory_store import MemoryStore
from sessions import StoreSessionStore

logger = logging.getLogger(__name__)

STORE_BACKEND = os.getenv("SHARECAL_STORE", "mysql")
DEFAULT_TIMEZONE = os.getenv("SHARECAL_DEFAULT_TIMEZONE", timezones.DEFAULT_TIMEZONE)
RECURRENCE_CAP = int(os.getenv("SHARECAL_RECURRENCE_CAP", str(recurrence.HARD_CAP)))


class AppContext:
    """Everything a request needs, passed explicitly instead of fetched from globals."""

    def __init__(self, store, sessions=None, default_timezone: str = DEFAULT_TIMEZONE,
                 recurrence_cap: int = RECURRENCE_CAP, db: Optional[database.Database] = None):
        self.store = store
        self.sessions = sessions or StoreSessionStore(store)
        self.default_timezone = default_timezone
        self.recurrence_cap = recurrence_cap
        self.db = db

    def close(self):
        if self.db is not None:
            self.db.close_connection()


def build_context(backend: str = STORE_BACKEND) -> AppContext:
    """Build the context for the configured backend, creating the MySQL schema if needed."""
    timezones.get_zone(DEFAULT_TIMEZONE)

    if backend == "memory":
        logger.info("Using in-memory store")
        return AppContext(MemoryStore())

    if backend != "mysql":
        raise ValueError(f"Unknown store backend: {backend}")

    db = database.Database()
    bootstrap.setup_database(db)
    logger.info(f"Using MySQL store at {db.host}:{db.port}/{db.database}")
    return AppContext(MySQLStore(db), db=db)
