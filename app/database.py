# Database connection management module
import os
import logging
import threading
from contextlib import contextmanager
from typing import Optional
import mysql.connector

logger = logging.getLogger(__name__)

# Environment variables for database connection
MYSQL_HOST = os.getenv("MYSQL_HOST", "localhost")
MYSQL_USER = os.getenv("MYSQL_USER", "root")
MYSQL_PASSWORD = os.getenv("MYSQL_PASSWORD", "")
MYSQL_PORT = int(os.getenv("MYSQL_PORT", "3306"))
MYSQL_DATABASE = os.getenv("MYSQL_DATABASE", "sharecal")


class Database:
    """
    One MySQL connection plus transaction bookkeeping.

    Created once at startup and handed to the store through the app context.
    Nested transaction() blocks join the outermost one; only the outermost
    block commits or rolls back.
    """

    def __init__(self, host=MYSQL_HOST, user=MYSQL_USER, password=MYSQL_PASSWORD,
                 port=MYSQL_PORT, database=MYSQL_DATABASE):
        self.host = host
        self.user = user
        self.password = password
        self.port = port
        self.database = database
        self._connection: Optional[mysql.connector.connection.MySQLConnection] = None
        self._depth = 0
        # One connection, so one thread at a time inside a transaction
        self._lock = threading.RLock()

    def get_connection(self, select_database: bool = True):
        """Get database connection, create if not exists"""
        if self._connection is None or not self._connection.is_connected():
            try:
                params = dict(
                    host=self.host,
                    user=self.user,
                    password=self.password,
                    port=self.port,
                    autocommit=False,
                )
                if select_database:
                    params["database"] = self.database
                self._connection = mysql.connector.connect(**params)
                logger.info("Database connection established")
            except mysql.connector.Error as e:
                logger.error(f"Error connecting to database: {e}")
                raise

        return self._connection

    def get_cursor(self):
        """Get a new cursor from the database connection"""
        return self.get_connection().cursor()

    @contextmanager
    def transaction(self):
        """Run the enclosed statements as one unit of work."""
        with self._lock:
            conn = self.get_connection()
            self._depth += 1
            try:
                yield conn
            except Exception:
                self._depth -= 1
                if self._depth == 0:
                    conn.rollback()
                    logger.warning("Transaction rolled back")
                raise
            else:
                self._depth -= 1
                if self._depth == 0:
                    conn.commit()

    def close_connection(self):
        """Close database connection"""
        if self._connection and self._connection.is_connected():
            self._connection.close()
            logger.info("Database connection closed")
        self._connection = None
