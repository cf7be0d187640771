"""Database initialization and connection management."""
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path

from assessment_engine.config import get_settings
from assessment_engine.errors import PersistenceError

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS students (
    id TEXT PRIMARY KEY,
    full_name TEXT NOT NULL,
    email TEXT NOT NULL,
    learning_path TEXT
);

CREATE TABLE IF NOT EXISTS questionnaires (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    description TEXT,
    questions_json TEXT NOT NULL DEFAULT '[]',
    target_learning_paths TEXT NOT NULL DEFAULT '[]',
    target_student_ids TEXT NOT NULL DEFAULT '[]',
    due_date TEXT,
    allow_late_submission INTEGER DEFAULT 1,
    show_correct_answers INTEGER DEFAULT 0,
    max_attempts INTEGER NOT NULL DEFAULT 1,
    time_limit_minutes INTEGER,
    is_published INTEGER DEFAULT 0,
    created_by TEXT,
    created_at TEXT,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS questionnaire_responses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    questionnaire_id INTEGER NOT NULL REFERENCES questionnaires(id),
    student_id TEXT NOT NULL,
    attempt_number INTEGER NOT NULL,
    answers_json TEXT NOT NULL DEFAULT '{}',
    started_at TEXT NOT NULL,
    submitted_at TEXT,
    time_spent_seconds INTEGER,
    score REAL,
    max_score REAL,
    is_graded INTEGER DEFAULT 0,
    is_late INTEGER DEFAULT 0,
    graded_by TEXT,
    graded_at TEXT,
    feedback TEXT,
    UNIQUE(questionnaire_id, student_id, attempt_number)
);

CREATE UNIQUE INDEX IF NOT EXISTS one_in_progress_attempt
    ON questionnaire_responses (questionnaire_id, student_id)
    WHERE submitted_at IS NULL;
"""


def get_connection(db_path: str | None = None) -> sqlite3.Connection:
    """Return a SQLite connection with row factory and foreign keys enabled."""
    conn = sqlite3.connect(db_path or get_settings().db_path, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def transaction(db_path: str | None = None, immediate: bool = False):
    """Yield a connection inside one transaction; commit on success, roll back on error.

    ``immediate`` takes the write lock up front, which serializes the
    read-then-insert in attempt creation. Store outages surface as
    `PersistenceError`; integrity errors pass through for the caller to
    interpret.
    """
    try:
        conn = get_connection(db_path)
    except sqlite3.OperationalError as e:
        raise PersistenceError(str(e)) from e
    try:
        conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
        yield conn
        conn.execute("COMMIT")
    except sqlite3.OperationalError as e:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        logger.error("attempt store error: %s", e)
        raise PersistenceError(str(e)) from e
    except BaseException:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise
    finally:
        conn.close()


def init_db(db_path: str | None = None) -> None:
    """Initialize the database, creating all tables if they don't exist."""
    db_path = db_path or get_settings().db_path
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    conn.close()
