"""Attempt lifecycle: start or resume, auto-save answers, timer, submit.

An attempt moves ``in_progress -> submitted -> graded`` and never back.
Only one attempt per (questionnaire, student) may be in progress; the
partial unique index in the schema is the source of truth for that, and
`start` turns a lost race into a resume. Deadlines are computed on the
server from ``started_at``; the client countdown is display only.
"""
import logging
from datetime import timedelta

from assessment_engine import clock
from assessment_engine.config import get_settings
from assessment_engine.db import get_connection, transaction
from assessment_engine.directory import get_student
from assessment_engine.errors import (
    AttemptBudgetExhausted, AttemptStateError, ConflictingInProgressAttempt, NotTargeted,
    Overdue, QuestionnaireNotFound, TimeLimitExpired, ValidationError,
)
from assessment_engine.grading import apply_auto_grade
from assessment_engine.models import (
    RATING_MAX, RATING_MIN, Attempt, CheckboxQuestion, LinearScaleQuestion,
    LongAnswerQuestion, MultipleChoiceQuestion, Question, Questionnaire, RatingQuestion,
    ShortAnswerQuestion,
)
from assessment_engine.questionnaires import get_questionnaire, is_targeted, load_questionnaire
from assessment_engine.store import (
    count_attempts, find_in_progress, get_attempt, insert_attempt, list_attempts,
    mark_submitted, save_answers,
)
from assessment_engine.validator import ValidationIssue

logger = logging.getLogger(__name__)


# --- answers -------------------------------------------------------------

def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _invalid(question: Question, message: str) -> ValidationError:
    return ValidationError([ValidationIssue(f"answers.{question.id}", message)])


def normalize_answer(question: Question, value):
    """Check ``value`` against the question type and return its stored form.

    ``None`` clears the answer. Checkbox selections are stored as a sorted
    list of unique option ids.
    """
    if value is None:
        return None
    if isinstance(question, MultipleChoiceQuestion):
        if isinstance(value, str) and value in question.option_ids():
            return value
        raise _invalid(question, f"{value!r} is not one of the options")
    if isinstance(question, CheckboxQuestion):
        if isinstance(value, str) or not isinstance(value, (list, tuple, set, frozenset)):
            raise _invalid(question, "checkbox answers must be a list of option ids")
        unknown = [v for v in value if v not in question.option_ids()]
        if unknown:
            raise _invalid(question, f"unknown option(s) {unknown!r}")
        return sorted(set(value))
    if isinstance(question, (ShortAnswerQuestion, LongAnswerQuestion)):
        if not isinstance(value, str):
            raise _invalid(question, "text answer expected")
        return value
    if isinstance(question, RatingQuestion):
        if _is_int(value) and RATING_MIN <= value <= RATING_MAX:
            return value
        raise _invalid(question, f"rating must be a whole number from {RATING_MIN} to {RATING_MAX}")
    if isinstance(question, LinearScaleQuestion):
        if _is_int(value) and question.min_value <= value <= question.max_value:
            return value
        raise _invalid(
            question, f"value must be a whole number from {question.min_value} to {question.max_value}"
        )
    raise _invalid(question, f"unsupported question type {question.type!r}")


def normalize_answers(questionnaire: Questionnaire, answers: dict) -> dict:
    """Validate a full answer map; every problem is reported together."""
    normalized = {}
    issues = []
    for question_id, value in answers.items():
        question = questionnaire.get_question(question_id)
        if question is None:
            issues.append(ValidationIssue(f"answers.{question_id}", "no such question"))
            continue
        try:
            value = normalize_answer(question, value)
        except ValidationError as e:
            issues.extend(e.issues)
            continue
        if value is not None:
            normalized[question_id] = value
    if issues:
        raise ValidationError(issues)
    return normalized


def is_answered(value) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, set)):
        return len(value) > 0
    return True


def missing_required(questionnaire: Questionnaire, answers: dict) -> list[Question]:
    return [q for q in questionnaire.questions if q.required and not is_answered(answers.get(q.id))]


def progress(questionnaire: Questionnaire, answers: dict) -> float:
    """Percentage of questions answered so far."""
    total = len(questionnaire.questions) or 1
    answered = sum(1 for q in questionnaire.questions if is_answered(answers.get(q.id)))
    return answered / total * 100


# --- timing --------------------------------------------------------------

def deadline(questionnaire: Questionnaire, attempt: Attempt):
    if not questionnaire.time_limit_minutes:
        return None
    return attempt.started_at + timedelta(minutes=questionnaire.time_limit_minutes)


def time_remaining(questionnaire: Questionnaire, attempt: Attempt, now=None) -> int | None:
    """Seconds left on the attempt's timer, or None when there is no limit."""
    end = deadline(questionnaire, attempt)
    if end is None:
        return None
    now = now or clock.now()
    return max(0, int((end - now).total_seconds()))


def format_time(seconds: int) -> str:
    mins, secs = divmod(max(0, int(seconds)), 60)
    return f"{mins}:{secs:02d}"


def is_past_due(questionnaire: Questionnaire, now=None) -> bool:
    if questionnaire.due_date is None:
        return False
    return (now or clock.now()) > questionnaire.due_date


def check_deadlines(questionnaire: Questionnaire, attempt: Attempt, now) -> bool:
    """Return whether a write at ``now`` is late, raising if lateness is not allowed."""
    grace = timedelta(seconds=get_settings().submit_grace_seconds)
    end = deadline(questionnaire, attempt)
    over_time = end is not None and now > end + grace
    past_due = is_past_due(questionnaire, now)
    if not (over_time or past_due):
        return False
    if questionnaire.allow_late_submission:
        return True
    if over_time:
        raise TimeLimitExpired(f"Time limit for attempt {attempt.id} ran out at {end.isoformat()}")
    raise Overdue(f"Questionnaire {questionnaire.id} was due {questionnaire.due_date.isoformat()}")


# --- lifecycle -----------------------------------------------------------

def _check_can_take(db_path: str, questionnaire: Questionnaire, student_id: str) -> None:
    if not questionnaire.is_published:
        raise QuestionnaireNotFound(f"Questionnaire {questionnaire.id} is not available")
    if questionnaire.target_student_ids:
        targeted = student_id in questionnaire.target_student_ids
    else:
        student = get_student(db_path, student_id)
        targeted = student is not None and is_targeted(questionnaire, student)
    if not targeted:
        raise NotTargeted(f"Questionnaire {questionnaire.id} is not assigned to student {student_id}")


def start(db_path: str, questionnaire_id: int, student_id: str) -> Attempt:
    """Resume the student's in-progress attempt or open the next one.

    Calling this twice returns the same attempt. A new attempt is refused
    once the due date passed without late submission, or once every
    allowed attempt has been used.
    """
    questionnaire = get_questionnaire(db_path, questionnaire_id)
    _check_can_take(db_path, questionnaire, student_id)
    now = clock.now()
    log_extra = {"questionnaire_id": questionnaire_id, "student_id": student_id}
    try:
        with transaction(db_path, immediate=True) as conn:
            existing = find_in_progress(conn, questionnaire_id, student_id)
            if existing is not None:
                logger.info("resuming attempt %s", existing.id, extra=log_extra)
                return existing
            if is_past_due(questionnaire, now) and not questionnaire.allow_late_submission:
                logger.warning("start refused: questionnaire %s is overdue", questionnaire_id, extra=log_extra)
                raise Overdue(f"Questionnaire {questionnaire_id} was due {questionnaire.due_date.isoformat()}")
            used = count_attempts(conn, questionnaire_id, student_id)
            if used >= questionnaire.max_attempts:
                logger.warning("start refused: %d of %d attempts used", used, questionnaire.max_attempts,
                               extra=log_extra)
                raise AttemptBudgetExhausted(
                    f"All {questionnaire.max_attempts} attempt(s) for questionnaire {questionnaire_id} are used"
                )
            attempt = insert_attempt(conn, questionnaire_id, student_id, used + 1, now)
    except ConflictingInProgressAttempt:
        conn = get_connection(db_path)
        try:
            existing = find_in_progress(conn, questionnaire_id, student_id)
        finally:
            conn.close()
        if existing is None:
            raise
        logger.info("lost start race, resuming attempt %s", existing.id, extra=log_extra)
        return existing
    logger.info("started attempt %s (#%d)", attempt.id, attempt.attempt_number, extra=log_extra)
    return attempt


def record_answer(db_path: str, attempt_id: int, question_id: str, value) -> Attempt:
    """Merge one answer into the attempt and persist the whole answer map.

    Callers should retry on `PersistenceError` before discarding a local
    edit. Concurrent writers for the same attempt resolve as last writer wins.
    """
    now = clock.now()
    with transaction(db_path) as conn:
        attempt = get_attempt(conn, attempt_id)
        if attempt.is_submitted:
            raise AttemptStateError(f"Attempt {attempt_id} is already submitted")
        questionnaire = load_questionnaire(conn, attempt.questionnaire_id)
        question = questionnaire.get_question(question_id)
        if question is None:
            raise ValidationError([ValidationIssue(f"answers.{question_id}", "no such question")])
        value = normalize_answer(question, value)
        check_deadlines(questionnaire, attempt, now)
        answers = dict(attempt.answers)
        if value is None:
            answers.pop(question_id, None)
        else:
            answers[question_id] = value
        save_answers(conn, attempt_id, answers)
    attempt.answers = answers
    logger.debug("saved answer %s on attempt %s", question_id, attempt_id)
    return attempt


def submit(db_path: str, attempt_id: int, answers: dict | None = None, auto: bool = False) -> Attempt:
    """Finalize an attempt.

    ``answers``, when given, replaces the saved answer map. Required
    questions must be answered unless ``auto`` is set by a timer expiry.
    Elapsed time is recomputed here from ``started_at``. Objective-only
    questionnaires are graded before this returns. On any error the attempt
    stays in progress and the call can be retried.
    """
    now = clock.now()
    with transaction(db_path, immediate=True) as conn:
        attempt = get_attempt(conn, attempt_id)
        if attempt.is_submitted:
            raise AttemptStateError(f"Attempt {attempt_id} is already submitted")
        questionnaire = load_questionnaire(conn, attempt.questionnaire_id)
        if answers is not None:
            attempt.answers = normalize_answers(questionnaire, answers)
        if not auto:
            missing = missing_required(questionnaire, attempt.answers)
            if missing:
                raise ValidationError([
                    ValidationIssue(f"answers.{q.id}", "this question is required") for q in missing
                ])
        try:
            attempt.is_late = check_deadlines(questionnaire, attempt, now)
        except Overdue:
            logger.warning("submit refused for attempt %s: past deadline", attempt_id,
                           extra={"attempt_id": attempt_id})
            raise
        attempt.submitted_at = now
        attempt.time_spent_seconds = max(0, int((now - attempt.started_at).total_seconds()))
        apply_auto_grade(questionnaire, attempt, now)
        mark_submitted(conn, attempt)
    logger.info(
        "submitted attempt %s%s%s", attempt_id, " (auto)" if auto else "", " late" if attempt.is_late else "",
        extra={"attempt_id": attempt_id, "questionnaire_id": attempt.questionnaire_id},
    )
    return attempt


# --- lookups -------------------------------------------------------------

def get_attempt_by_id(db_path: str, attempt_id: int) -> Attempt:
    conn = get_connection(db_path)
    try:
        return get_attempt(conn, attempt_id)
    finally:
        conn.close()


def student_attempts(db_path: str, questionnaire_id: int, student_id: str) -> list[Attempt]:
    conn = get_connection(db_path)
    attempts = list_attempts(conn, questionnaire_id, student_id)
    conn.close()
    return attempts


def current_attempt(db_path: str, questionnaire_id: int, student_id: str) -> Attempt | None:
    conn = get_connection(db_path)
    attempt = find_in_progress(conn, questionnaire_id, student_id)
    conn.close()
    return attempt


def latest_submitted_attempt(db_path: str, questionnaire_id: int, student_id: str) -> Attempt | None:
    submitted = [a for a in student_attempts(db_path, questionnaire_id, student_id) if a.is_submitted]
    return max(submitted, key=lambda a: a.submitted_at, default=None)


def attempts_used(db_path: str, questionnaire_id: int, student_id: str) -> int:
    return sum(1 for a in student_attempts(db_path, questionnaire_id, student_id) if a.is_submitted)


def questionnaire_status(db_path: str, questionnaire: Questionnaire, student_id: str, now=None) -> str:
    """Status shown on a student's questionnaire list.

    One of ``completed``, ``in_progress``, ``overdue``, ``late`` or
    ``available``.
    """
    attempts = student_attempts(db_path, questionnaire.id, student_id)
    if sum(1 for a in attempts if a.is_submitted) >= questionnaire.max_attempts:
        return "completed"
    if any(not a.is_submitted for a in attempts):
        return "in_progress"
    if is_past_due(questionnaire, now):
        return "late" if questionnaire.allow_late_submission else "overdue"
    return "available"
