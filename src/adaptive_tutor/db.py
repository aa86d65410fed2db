"""Database initialization and connection management."""
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path

from adaptive_tutor.config import DEFAULT_DB_PATH
from adaptive_tutor.errors import DuplicateError, TransientStoreError, ValidationError

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    grade INTEGER NOT NULL,
    language TEXT NOT NULL,
    password TEXT NOT NULL,
    weekly_goal_topics INTEGER NOT NULL DEFAULT 3,
    weekly_goal_minutes INTEGER NOT NULL DEFAULT 15,
    current_subject TEXT NOT NULL DEFAULT 'Mathematics',
    xp_points INTEGER NOT NULL DEFAULT 0,
    streak INTEGER NOT NULL DEFAULT 0,
    last_active TEXT NOT NULL,
    parent_contact TEXT
);

CREATE TABLE IF NOT EXISTS topics (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    subject TEXT NOT NULL,
    "order" INTEGER NOT NULL,
    is_locked INTEGER NOT NULL DEFAULT 1,
    UNIQUE(subject, "order")
);

CREATE TABLE IF NOT EXISTS questions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    topic_id INTEGER NOT NULL REFERENCES topics(id),
    text TEXT NOT NULL,
    options TEXT NOT NULL,  -- JSON list
    correct_option INTEGER NOT NULL,
    difficulty INTEGER NOT NULL,
    hint TEXT
);

CREATE TABLE IF NOT EXISTS user_progress (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id),
    topic_id INTEGER NOT NULL REFERENCES topics(id),
    mastery_percentage INTEGER NOT NULL DEFAULT 0,
    questions_attempted INTEGER NOT NULL DEFAULT 0,
    questions_correct INTEGER NOT NULL DEFAULT 0,
    last_attempted TEXT NOT NULL,
    UNIQUE(user_id, topic_id)
);

CREATE TABLE IF NOT EXISTS user_sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id),
    topic_id INTEGER NOT NULL REFERENCES topics(id),
    start_time TEXT NOT NULL,
    end_time TEXT,
    questions_attempted INTEGER NOT NULL DEFAULT 0,
    questions_correct INTEGER NOT NULL DEFAULT 0,
    xp_earned INTEGER NOT NULL DEFAULT 0,
    summary TEXT
);

CREATE TABLE IF NOT EXISTS user_badges (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id),
    badge_name TEXT NOT NULL,
    badge_description TEXT NOT NULL,
    date_earned TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS parent_summaries (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id),
    session_id INTEGER NOT NULL REFERENCES user_sessions(id),
    content TEXT NOT NULL,
    sent INTEGER NOT NULL DEFAULT 0,
    sent_at TEXT
);
"""


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Return a SQLite connection with row factory and foreign keys enabled."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def transaction(db_path: str = DEFAULT_DB_PATH):
    """Yield a connection, committing on success and always closing it.

    Uniqueness violations surface as DuplicateError, references to missing
    rows as ValidationError, any other driver failure as TransientStoreError.
    """
    try:
        conn = get_connection(db_path)
    except sqlite3.Error as e:
        raise TransientStoreError(f"cannot open {db_path}: {e}") from e
    try:
        yield conn
        conn.commit()
    except sqlite3.IntegrityError as e:
        conn.rollback()
        if "UNIQUE" in str(e):
            raise DuplicateError(str(e)) from e
        if "FOREIGN KEY" in str(e):
            raise ValidationError(str(e)) from e
        raise TransientStoreError(str(e)) from e
    except sqlite3.Error as e:
        conn.rollback()
        logger.warning("store call failed: %s", e)
        raise TransientStoreError(str(e)) from e
    finally:
        conn.close()


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database, creating all tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()
