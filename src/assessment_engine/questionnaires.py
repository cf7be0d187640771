"""Questionnaire authoring: save, publish, list and duplicate definitions."""
import copy
import json
import logging
import sqlite3
import uuid

from assessment_engine import clock
from assessment_engine.db import get_connection, transaction
from assessment_engine.errors import AttemptStateError, QuestionnaireNotFound, ValidationError
from assessment_engine.models import ChoiceQuestion, Questionnaire, Student, question_from_dict, question_to_dict
from assessment_engine.store import count_for_questionnaire
from assessment_engine.validator import ValidationIssue, check_publishable, validate

logger = logging.getLogger(__name__)


def row_to_questionnaire(row: sqlite3.Row) -> Questionnaire:
    return Questionnaire(
        id=row["id"],
        title=row["title"],
        description=row["description"] or "",
        questions=[question_from_dict(q) for q in json.loads(row["questions_json"])],
        target_learning_paths=json.loads(row["target_learning_paths"]),
        target_student_ids=json.loads(row["target_student_ids"]),
        due_date=clock.parse(row["due_date"]),
        allow_late_submission=bool(row["allow_late_submission"]),
        show_correct_answers=bool(row["show_correct_answers"]),
        max_attempts=row["max_attempts"],
        time_limit_minutes=row["time_limit_minutes"],
        is_published=bool(row["is_published"]),
        created_by=row["created_by"],
        created_at=clock.parse(row["created_at"]),
        updated_at=clock.parse(row["updated_at"]),
    )


def _values(q: Questionnaire) -> tuple:
    return (
        q.title, q.description,
        json.dumps([question_to_dict(x) for x in q.questions]),
        json.dumps(list(q.target_learning_paths)), json.dumps(list(q.target_student_ids)),
        clock.to_iso(q.due_date), int(q.allow_late_submission), int(q.show_correct_answers),
        q.max_attempts, q.time_limit_minutes, int(q.is_published), q.created_by,
    )


def save_questionnaire(db_path: str, questionnaire: Questionnaire) -> list[ValidationIssue]:
    """Insert or update ``questionnaire`` and return validation warnings.

    Publishing is refused while any issue remains; drafts are stored anyway
    and the issues are returned for display. Existing attempts keep the
    scores they were given against the previous version.
    """
    issues = validate(questionnaire)
    if questionnaire.is_published and issues:
        logger.warning("publish refused for %r: %d issue(s)", questionnaire.title, len(issues))
        raise ValidationError(issues)
    now = clock.now()
    with transaction(db_path) as conn:
        if questionnaire.id is None:
            cursor = conn.execute(
                """INSERT INTO questionnaires
                (title, description, questions_json, target_learning_paths, target_student_ids,
                 due_date, allow_late_submission, show_correct_answers, max_attempts,
                 time_limit_minutes, is_published, created_by, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                _values(questionnaire) + (clock.to_iso(now), clock.to_iso(now)),
            )
            questionnaire.id = cursor.lastrowid
            questionnaire.created_at = now
        else:
            updated = conn.execute(
                """UPDATE questionnaires SET
                title=?, description=?, questions_json=?, target_learning_paths=?, target_student_ids=?,
                due_date=?, allow_late_submission=?, show_correct_answers=?, max_attempts=?,
                time_limit_minutes=?, is_published=?, created_by=?, updated_at=?
                WHERE id=?""",
                _values(questionnaire) + (clock.to_iso(now), questionnaire.id),
            ).rowcount
            if not updated:
                raise QuestionnaireNotFound(f"Questionnaire {questionnaire.id} not found")
    questionnaire.updated_at = now
    logger.info("saved questionnaire %s (%s)", questionnaire.id,
                "published" if questionnaire.is_published else "draft")
    return issues


def load_questionnaire(conn: sqlite3.Connection, questionnaire_id: int) -> Questionnaire:
    row = conn.execute("SELECT * FROM questionnaires WHERE id = ?", (questionnaire_id,)).fetchone()
    if row is None:
        raise QuestionnaireNotFound(f"Questionnaire {questionnaire_id} not found")
    return row_to_questionnaire(row)


def get_questionnaire(db_path: str, questionnaire_id: int) -> Questionnaire:
    conn = get_connection(db_path)
    try:
        return load_questionnaire(conn, questionnaire_id)
    finally:
        conn.close()


def list_questionnaires(db_path: str, published_only: bool = False) -> list[Questionnaire]:
    """All questionnaires, newest first."""
    conn = get_connection(db_path)
    sql = "SELECT * FROM questionnaires"
    if published_only:
        sql += " WHERE is_published = 1"
    rows = conn.execute(sql + " ORDER BY created_at DESC, id DESC").fetchall()
    conn.close()
    return [row_to_questionnaire(r) for r in rows]


def publish_questionnaire(db_path: str, questionnaire_id: int) -> Questionnaire:
    questionnaire = get_questionnaire(db_path, questionnaire_id)
    check_publishable(questionnaire)
    questionnaire.is_published = True
    save_questionnaire(db_path, questionnaire)
    return questionnaire


def unpublish_questionnaire(db_path: str, questionnaire_id: int) -> Questionnaire:
    questionnaire = get_questionnaire(db_path, questionnaire_id)
    questionnaire.is_published = False
    save_questionnaire(db_path, questionnaire)
    return questionnaire


def toggle_publish(db_path: str, questionnaire_id: int) -> Questionnaire:
    questionnaire = get_questionnaire(db_path, questionnaire_id)
    if questionnaire.is_published:
        return unpublish_questionnaire(db_path, questionnaire_id)
    return publish_questionnaire(db_path, questionnaire_id)


def delete_questionnaire(db_path: str, questionnaire_id: int) -> None:
    """Delete a questionnaire that no attempt references yet."""
    with transaction(db_path) as conn:
        if count_for_questionnaire(conn, questionnaire_id):
            raise AttemptStateError(
                f"Questionnaire {questionnaire_id} has attempts and cannot be deleted; unpublish it instead"
            )
        deleted = conn.execute("DELETE FROM questionnaires WHERE id = ?", (questionnaire_id,)).rowcount
    if not deleted:
        raise QuestionnaireNotFound(f"Questionnaire {questionnaire_id} not found")
    logger.info("deleted questionnaire %s", questionnaire_id)


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def duplicate_question(questionnaire: Questionnaire, question_id: str):
    """Insert a copy of a question, with fresh ids, right after the original."""
    index = next((i for i, q in enumerate(questionnaire.questions) if q.id == question_id), None)
    if index is None:
        raise KeyError(question_id)
    duplicate = copy.deepcopy(questionnaire.questions[index])
    duplicate.id = _new_id("q")
    if isinstance(duplicate, ChoiceQuestion):
        for option in duplicate.options:
            option.id = _new_id("opt")
    questionnaire.questions.insert(index + 1, duplicate)
    return duplicate


def is_targeted(questionnaire: Questionnaire, student: Student) -> bool:
    """Explicit student ids take precedence over learning-path targeting."""
    if questionnaire.target_student_ids:
        return student.id in questionnaire.target_student_ids
    return student.learning_path in questionnaire.target_learning_paths


def list_for_student(db_path: str, student: Student) -> list[Questionnaire]:
    return [q for q in list_questionnaires(db_path, published_only=True) if is_targeted(q, student)]
