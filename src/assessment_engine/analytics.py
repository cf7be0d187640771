"""Response analytics: submission rate, score and time statistics, CSV export."""
import csv
import io
from dataclasses import dataclass

from assessment_engine.db import get_connection
from assessment_engine.directory import get_students, resolve_roster
from assessment_engine.models import Attempt, Student
from assessment_engine.questionnaires import get_questionnaire
from assessment_engine.store import list_attempts

EXPORT_HEADER = ["Student Name", "Email", "Submitted At", "Score", "Time Spent (min)", "Graded"]
RESPONSE_FILTERS = ("all", "submitted", "pending")


@dataclass
class ResponseSummary:
    questionnaire_id: int
    roster_size: int
    submitted_count: int
    graded_count: int
    submission_rate: float
    average_score: float
    average_time_spent: int


def submission_rate(roster: list[Student], attempts: list[Attempt]) -> float:
    """Submitted attempts per roster student (0 for an empty roster).

    Every submitted attempt counts, so repeat attempts can push the rate
    above 1 on multi-attempt questionnaires.
    """
    if not roster:
        return 0.0
    return sum(1 for a in attempts if a.is_submitted) / len(roster)


def average_score(attempts: list[Attempt]) -> float:
    scores = [a.score for a in attempts if a.is_graded and a.score is not None]
    if not scores:
        return 0.0
    return sum(scores) / len(scores)


def average_time_spent(attempts: list[Attempt]) -> int:
    """Mean time on task of submitted attempts, in whole minutes."""
    times = [a.time_spent_seconds for a in attempts if a.is_submitted and a.time_spent_seconds is not None]
    if not times:
        return 0
    return round(sum(times) / len(times) / 60)


def _load(db_path: str, questionnaire_id: int) -> list[Attempt]:
    conn = get_connection(db_path)
    attempts = list_attempts(conn, questionnaire_id)
    conn.close()
    return attempts


def summarize(db_path: str, questionnaire_id: int) -> ResponseSummary:
    questionnaire = get_questionnaire(db_path, questionnaire_id)
    roster = resolve_roster(db_path, questionnaire)
    attempts = _load(db_path, questionnaire_id)
    return ResponseSummary(
        questionnaire_id=questionnaire_id,
        roster_size=len(roster),
        submitted_count=sum(1 for a in attempts if a.is_submitted),
        graded_count=sum(1 for a in attempts if a.is_graded),
        submission_rate=submission_rate(roster, attempts),
        average_score=average_score(attempts),
        average_time_spent=average_time_spent(attempts),
    )


def filter_responses(attempts: list[Attempt], students: dict[str, Student],
                     status: str = "all", search: str = "") -> list[Attempt]:
    """Attempts matching a status filter and a case-insensitive name/email search."""
    if status not in RESPONSE_FILTERS:
        raise ValueError(f"status must be one of {RESPONSE_FILTERS}")
    term = search.strip().lower()
    result = []
    for attempt in attempts:
        if status == "submitted" and not attempt.is_submitted:
            continue
        if status == "pending" and attempt.is_submitted:
            continue
        if term:
            student = students.get(attempt.student_id)
            if student is None or (term not in student.full_name.lower() and term not in student.email.lower()):
                continue
        result.append(attempt)
    return result


def export_rows(attempts: list[Attempt], students: dict[str, Student]) -> list[list[str]]:
    """One row per submitted attempt, most recent submission first."""
    submitted = sorted((a for a in attempts if a.is_submitted), key=lambda a: a.submitted_at, reverse=True)
    rows = []
    for attempt in submitted:
        student = students.get(attempt.student_id)
        rows.append([
            student.full_name if student else "",
            student.email if student else "",
            attempt.submitted_at.strftime("%Y-%m-%d %H:%M:%S"),
            f"{attempt.score:.1f}" if attempt.is_graded and attempt.score is not None else "N/A",
            str(round(attempt.time_spent_seconds / 60)) if attempt.time_spent_seconds is not None else "N/A",
            "Yes" if attempt.is_graded else "No",
        ])
    return rows


def export_csv(db_path: str, questionnaire_id: int) -> str:
    attempts = _load(db_path, questionnaire_id)
    students = get_students(db_path, {a.student_id for a in attempts})
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(EXPORT_HEADER)
    writer.writerows(export_rows(attempts, students))
    return buffer.getvalue()


def export_filename(title: str) -> str:
    safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in title.strip()) or "questionnaire"
    return f"{safe}_responses.csv"
