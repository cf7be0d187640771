"""Grading engine: automatic scoring of objective items and manual grade entry."""
import logging
from dataclasses import dataclass

from assessment_engine import clock
from assessment_engine.db import transaction
from assessment_engine.errors import AttemptStateError, ValidationError
from assessment_engine.models import (
    Attempt, CheckboxQuestion, MultipleChoiceQuestion, Question, Questionnaire,
)
from assessment_engine.store import get_attempt, record_grade

logger = logging.getLogger(__name__)

AUTO_GRADER = "auto"


@dataclass(frozen=True)
class AutoScore:
    raw_score: float
    max_score: float

    @property
    def percentage(self) -> float:
        return percentage(self.raw_score, self.max_score)


def percentage(raw_score: float, max_score: float) -> float:
    if max_score <= 0:
        return 0.0
    return raw_score / max_score * 100


def is_correct(question: Question, answer) -> bool:
    """Whether an objective answer matches the key; subjective answers never do."""
    if answer is None:
        return False
    if isinstance(question, MultipleChoiceQuestion):
        correct = question.correct_option_ids()
        return isinstance(answer, str) and len(correct) == 1 and answer in correct
    if isinstance(question, CheckboxQuestion):
        if not isinstance(answer, (list, tuple, set, frozenset)):
            return False
        # exact set match only, no partial credit
        return set(answer) == question.correct_option_ids()
    return False


def score_question(question: Question, answer) -> float:
    if question.is_graded and is_correct(question, answer):
        return question.points
    return 0.0


def auto_score(questionnaire: Questionnaire, attempt: Attempt) -> AutoScore:
    """Score the objective items of ``attempt``.

    Every graded question counts toward ``max_score``; only multiple choice
    and checkbox items can add to ``raw_score``.
    """
    raw = 0.0
    maximum = 0.0
    for question in questionnaire.questions:
        if not question.is_graded:
            continue
        maximum += question.points
        raw += score_question(question, attempt.answers.get(question.id))
    return AutoScore(raw_score=raw, max_score=maximum)


def requires_manual_grading(questionnaire: Questionnaire) -> bool:
    return any(q.is_graded and not q.is_auto_gradable for q in questionnaire.questions)


def apply_auto_grade(questionnaire: Questionnaire, attempt: Attempt, now=None) -> Attempt:
    """Fill the score fields of a just-submitted attempt.

    ``max_score`` is always frozen from the current definition. The attempt
    is marked graded when every graded item is objective. A questionnaire of
    only choice questions is graded even at zero points (percentage 0);
    zero-point surveys with other question types stay ungraded.
    """
    result = auto_score(questionnaire, attempt)
    attempt.max_score = result.max_score
    objective_only = all(q.is_auto_gradable for q in questionnaire.questions)
    if not requires_manual_grading(questionnaire) and (result.max_score > 0 or objective_only):
        attempt.score = round(result.percentage, 2)
        attempt.is_graded = True
        attempt.graded_by = AUTO_GRADER
        attempt.graded_at = now or clock.now()
    return attempt


def grade(db_path: str, attempt_id: int, score: float, feedback: str | None = None,
          grader_id: str | None = None) -> Attempt:
    """Record a manual grade. The score replaces any automatic one.

    Score and feedback are written in a single statement, so a rejected grade
    leaves the attempt untouched.
    """
    if isinstance(score, bool) or not isinstance(score, (int, float)) or not 0 <= score <= 100:
        raise ValidationError(f"score: must be between 0 and 100, got {score!r}")
    now = clock.now()
    with transaction(db_path) as conn:
        attempt = get_attempt(conn, attempt_id)
        if not attempt.is_submitted:
            raise AttemptStateError(f"Attempt {attempt_id} has not been submitted yet")
        record_grade(conn, attempt_id, float(score), feedback, grader_id, now)
        attempt = get_attempt(conn, attempt_id)
    logger.info("attempt %s graded %.1f by %s", attempt_id, score, grader_id,
                extra={"attempt_id": attempt_id})
    return attempt


def suggested_score(questionnaire: Questionnaire, attempt: Attempt) -> float:
    """Automatic percentage offered to a grader as a starting value."""
    return round(auto_score(questionnaire, attempt).percentage, 1)


def review_answers(questionnaire: Questionnaire, attempt: Attempt) -> list[dict]:
    """Per-question breakdown of an attempt for the results screen.

    Correctness is only revealed when the questionnaire shows correct answers,
    and only for objective items.
    """
    reveal = questionnaire.show_correct_answers
    rows = []
    for question in questionnaire.questions:
        answer = attempt.answers.get(question.id)
        row = {
            "question_id": question.id,
            "prompt": question.prompt,
            "answer": answer,
            "points": question.points,
        }
        if reveal and question.is_auto_gradable:
            row["correct_answer"] = sorted(question.correct_option_ids())
            row["is_correct"] = is_correct(question, answer)
        rows.append(row)
    return rows
