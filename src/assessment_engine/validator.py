"""Questionnaire definition validation."""
from dataclasses import dataclass, replace

from assessment_engine.errors import ValidationError
from assessment_engine.models import (
    ChoiceQuestion, LinearScaleQuestion, MultipleChoiceQuestion, Question, Questionnaire,
)


@dataclass(frozen=True)
class ValidationIssue:
    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_question(question: Question, prefix: str = "question") -> list[ValidationIssue]:
    issues = []
    if not str(question.id or "").strip():
        issues.append(ValidationIssue(f"{prefix}.id", "question id is required"))
    if not (question.prompt or "").strip():
        issues.append(ValidationIssue(f"{prefix}.prompt", "question text is required"))
    points_ok = _is_number(question.points) and question.points >= 0
    if not points_ok:
        issues.append(ValidationIssue(f"{prefix}.points", "points must be a number, zero or positive"))

    if isinstance(question, ChoiceQuestion):
        ids = question.option_ids()
        if len(ids) < 2:
            issues.append(ValidationIssue(f"{prefix}.options", "at least two options are required"))
        if len(set(ids)) != len(ids):
            issues.append(ValidationIssue(f"{prefix}.options", "option ids must be unique"))
        for i, option in enumerate(question.options):
            if not (option.text or "").strip():
                issues.append(ValidationIssue(f"{prefix}.options[{i}].text", "option text is required"))
        if isinstance(question, MultipleChoiceQuestion) and points_ok:
            correct = len(question.correct_option_ids())
            if question.is_graded and correct != 1:
                issues.append(ValidationIssue(
                    f"{prefix}.options", f"graded multiple choice needs exactly one correct option, found {correct}"
                ))
            elif correct > 1:
                issues.append(ValidationIssue(f"{prefix}.options", "multiple choice allows one correct option"))

    if isinstance(question, LinearScaleQuestion):
        if not (_is_int(question.min_value) and _is_int(question.max_value)):
            issues.append(ValidationIssue(f"{prefix}.scale", "scale bounds must be integers"))
        elif question.min_value >= question.max_value:
            issues.append(ValidationIssue(f"{prefix}.scale", "min value must be below max value"))
    return issues


def validate(questionnaire: Questionnaire) -> list[ValidationIssue]:
    """Return every problem with ``questionnaire``; an empty list means it is publishable.

    Targeting is only required once the questionnaire is published, so drafts
    can be saved before an audience is chosen.
    """
    issues = []
    if not (questionnaire.title or "").strip():
        issues.append(ValidationIssue("title", "title is required"))
    if not questionnaire.questions:
        issues.append(ValidationIssue("questions", "at least one question is required"))

    seen = set()
    for i, question in enumerate(questionnaire.questions):
        prefix = f"questions[{i}]"
        if question.id in seen:
            issues.append(ValidationIssue(f"{prefix}.id", f"duplicate question id {question.id!r}"))
        seen.add(question.id)
        issues.extend(validate_question(question, prefix))

    if not _is_int(questionnaire.max_attempts) or questionnaire.max_attempts < 1:
        issues.append(ValidationIssue("max_attempts", "max attempts must be a whole number of at least 1"))
    limit = questionnaire.time_limit_minutes
    if limit is not None and (not _is_int(limit) or limit <= 0):
        issues.append(ValidationIssue("time_limit_minutes", "time limit must be a positive whole number of minutes"))
    if questionnaire.is_published and not (
        questionnaire.target_learning_paths or questionnaire.target_student_ids
    ):
        issues.append(ValidationIssue("targeting", "choose at least one learning path or student"))
    return issues


def check_publishable(questionnaire: Questionnaire) -> None:
    """Raise `ValidationError` listing every issue that blocks publishing."""
    issues = validate(replace(questionnaire, is_published=True))
    if issues:
        raise ValidationError(issues)
