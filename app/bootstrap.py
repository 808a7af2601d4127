# Schema setup for the Sharecal API
import logging

logger = logging.getLogger(__name__)

REQUIRED_TABLES = ["users", "sessions", "calendars", "calendar_shares", "events", "event_participants"]

# parent_event_id / original_event_id carry no foreign key: generated
# instances outlive their series head.
SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id                   CHAR(8)      PRIMARY KEY,
        email                VARCHAR(255) NOT NULL UNIQUE,
        name                 VARCHAR(255) NOT NULL,
        timezone             VARCHAR(64)  NOT NULL DEFAULT 'UTC',
        created_at           DATETIME     NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at           DATETIME     NOT NULL DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sessions (
        token_hash           CHAR(64)     PRIMARY KEY,
        user_id              CHAR(8)      NOT NULL,
        created_at           DATETIME     NOT NULL DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS calendars (
        id                   INT          AUTO_INCREMENT PRIMARY KEY,
        user_id              CHAR(8)      NOT NULL,
        name                 VARCHAR(255) NOT NULL,
        description          TEXT         NULL,
        color                VARCHAR(16)  NOT NULL DEFAULT '#4285f4',
        is_default           TINYINT(1)   NOT NULL DEFAULT 0,
        is_public            TINYINT(1)   NOT NULL DEFAULT 0,
        created_at           DATETIME     NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at           DATETIME     NOT NULL DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP,
        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS calendar_shares (
        id                   INT          AUTO_INCREMENT PRIMARY KEY,
        calendar_id          INT          NOT NULL,
        user_id              CHAR(8)      NOT NULL,
        role                 ENUM('viewer','editor') NOT NULL DEFAULT 'viewer',
        created_at           DATETIME     NOT NULL DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (calendar_id) REFERENCES calendars(id) ON DELETE CASCADE,
        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
        UNIQUE (calendar_id, user_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS events (
        id                   INT          AUTO_INCREMENT PRIMARY KEY,
        calendar_id          INT          NOT NULL,
        user_id              CHAR(8)      NOT NULL,
        title                VARCHAR(255) NOT NULL,
        description          TEXT         NULL,
        location             VARCHAR(255) NULL,
        start_time           DATETIME     NOT NULL,
        end_time             DATETIME     NOT NULL,
        is_all_day           TINYINT(1)   NOT NULL DEFAULT 0,
        color                VARCHAR(16)  NOT NULL DEFAULT '#4285f4',
        is_recurring         TINYINT(1)   NOT NULL DEFAULT 0,
        recurrence_rule      TEXT         NULL,
        parent_event_id      INT          NULL,
        original_event_id    INT          NULL,
        created_at           DATETIME     NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at           DATETIME     NOT NULL DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP,
        FOREIGN KEY (calendar_id) REFERENCES calendars(id) ON DELETE CASCADE,
        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
        INDEX idx_events_window (start_time, end_time),
        INDEX idx_events_parent (parent_event_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS event_participants (
        id                   INT          AUTO_INCREMENT PRIMARY KEY,
        event_id             INT          NOT NULL,
        user_id              CHAR(8)      NULL,
        email                VARCHAR(255) NOT NULL,
        name                 VARCHAR(255) NULL,
        status               ENUM('pending','accepted','declined','tentative') NOT NULL DEFAULT 'pending',
        created_at           DATETIME     NOT NULL DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (event_id) REFERENCES events(id) ON DELETE CASCADE,
        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE SET NULL
    )
    """,
]


def check_db_is_setup(db):
    """Check if the sharecal database exists and contains all required tables."""
    cursor = db.get_connection(select_database=False).cursor()
    cursor.execute("SHOW DATABASES")
    databases = [row[0] for row in cursor.fetchall()]

    if db.database not in databases:
        return False

    cursor.execute(f"USE {db.database}")
    cursor.execute("SHOW TABLES")
    tables = [row[0] for row in cursor.fetchall()]

    return all(table in tables for table in REQUIRED_TABLES)


def create_db_and_scheme(db):
    """Create the sharecal database and all necessary tables."""
    with db.transaction() as conn:
        cursor = conn.cursor()
        cursor.execute(f"CREATE DATABASE IF NOT EXISTS {db.database}")
        cursor.execute(f"USE {db.database}")
        for statement in SCHEMA:
            cursor.execute(statement)


def setup_database(db):
    """Ensure the database is configured, create the schema if needed."""
    logger.info("Checking if the database is set up...")
    if not check_db_is_setup(db):
        logger.info("Database not found or incomplete. Setting up...")
        create_db_and_scheme(db)
        logger.info("Database and tables created successfully.")
        return True

    logger.info("Database is already set up.")
    return False
