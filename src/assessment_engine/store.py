"""Attempt store: row-level reads and writes of questionnaire responses.

Every function here takes an open connection so that callers can compose
several of them inside one `db.transaction`. Answer writes always replace
the whole answer map; there is no delta log.
"""
import json
import sqlite3

from assessment_engine import clock
from assessment_engine.errors import AttemptNotFound, AttemptStateError, ConflictingInProgressAttempt
from assessment_engine.models import Attempt


def row_to_attempt(row: sqlite3.Row) -> Attempt:
    return Attempt(
        id=row["id"],
        questionnaire_id=row["questionnaire_id"],
        student_id=row["student_id"],
        attempt_number=row["attempt_number"],
        answers=json.loads(row["answers_json"] or "{}"),
        started_at=clock.parse(row["started_at"]),
        submitted_at=clock.parse(row["submitted_at"]),
        time_spent_seconds=row["time_spent_seconds"],
        score=row["score"],
        max_score=row["max_score"],
        is_graded=bool(row["is_graded"]),
        is_late=bool(row["is_late"]),
        graded_by=row["graded_by"],
        graded_at=clock.parse(row["graded_at"]),
        feedback=row["feedback"],
    )


def get_attempt(conn: sqlite3.Connection, attempt_id: int) -> Attempt:
    row = conn.execute(
        "SELECT * FROM questionnaire_responses WHERE id = ?", (attempt_id,)
    ).fetchone()
    if row is None:
        raise AttemptNotFound(f"Attempt {attempt_id} not found")
    return row_to_attempt(row)


def find_in_progress(conn: sqlite3.Connection, questionnaire_id: int, student_id: str) -> Attempt | None:
    row = conn.execute(
        """SELECT * FROM questionnaire_responses
        WHERE questionnaire_id = ? AND student_id = ? AND submitted_at IS NULL""",
        (questionnaire_id, student_id),
    ).fetchone()
    return row_to_attempt(row) if row else None


def count_attempts(conn: sqlite3.Connection, questionnaire_id: int, student_id: str) -> int:
    return conn.execute(
        "SELECT COUNT(*) FROM questionnaire_responses WHERE questionnaire_id = ? AND student_id = ?",
        (questionnaire_id, student_id),
    ).fetchone()[0]


def list_attempts(conn: sqlite3.Connection, questionnaire_id: int, student_id: str | None = None) -> list[Attempt]:
    """Attempts for a questionnaire, optionally for one student, in attempt order."""
    if student_id is None:
        rows = conn.execute(
            "SELECT * FROM questionnaire_responses WHERE questionnaire_id = ? ORDER BY student_id, attempt_number",
            (questionnaire_id,),
        ).fetchall()
    else:
        rows = conn.execute(
            """SELECT * FROM questionnaire_responses
            WHERE questionnaire_id = ? AND student_id = ? ORDER BY attempt_number""",
            (questionnaire_id, student_id),
        ).fetchall()
    return [row_to_attempt(r) for r in rows]


def insert_attempt(conn: sqlite3.Connection, questionnaire_id: int, student_id: str,
                   attempt_number: int, started_at) -> Attempt:
    try:
        cursor = conn.execute(
            """INSERT INTO questionnaire_responses
            (questionnaire_id, student_id, attempt_number, answers_json, started_at)
            VALUES (?, ?, ?, '{}', ?)""",
            (questionnaire_id, student_id, attempt_number, clock.to_iso(started_at)),
        )
    except sqlite3.IntegrityError as e:
        raise ConflictingInProgressAttempt(
            f"Student {student_id} already has an attempt in progress for questionnaire {questionnaire_id}"
        ) from e
    return get_attempt(conn, cursor.lastrowid)


def save_answers(conn: sqlite3.Connection, attempt_id: int, answers: dict) -> None:
    conn.execute(
        "UPDATE questionnaire_responses SET answers_json = ? WHERE id = ?",
        (json.dumps(answers), attempt_id),
    )


def mark_submitted(conn: sqlite3.Connection, attempt: Attempt) -> None:
    """Persist the submission fields of ``attempt``; only an in-progress row is updated."""
    updated = conn.execute(
        """UPDATE questionnaire_responses
        SET answers_json = ?, submitted_at = ?, time_spent_seconds = ?, max_score = ?,
            is_late = ?, score = ?, is_graded = ?, graded_by = ?, graded_at = ?
        WHERE id = ? AND submitted_at IS NULL""",
        (
            json.dumps(attempt.answers), clock.to_iso(attempt.submitted_at),
            attempt.time_spent_seconds, attempt.max_score, int(attempt.is_late),
            attempt.score, int(attempt.is_graded), attempt.graded_by,
            clock.to_iso(attempt.graded_at), attempt.id,
        ),
    ).rowcount
    if updated != 1:
        raise AttemptStateError(f"Attempt {attempt.id} is already submitted")


def record_grade(conn: sqlite3.Connection, attempt_id: int, score: float, feedback: str | None,
                 grader_id: str | None, graded_at) -> None:
    conn.execute(
        """UPDATE questionnaire_responses
        SET score = ?, feedback = ?, is_graded = 1, graded_by = ?, graded_at = ?
        WHERE id = ?""",
        (score, feedback, grader_id, clock.to_iso(graded_at), attempt_id),
    )


def count_for_questionnaire(conn: sqlite3.Connection, questionnaire_id: int) -> int:
    return conn.execute(
        "SELECT COUNT(*) FROM questionnaire_responses WHERE questionnaire_id = ?",
        (questionnaire_id,),
    ).fetchone()[0]
