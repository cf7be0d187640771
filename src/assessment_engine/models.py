"""Data classes for the assessment domain model."""
from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import ClassVar, Optional

MULTIPLE_CHOICE = "multiple_choice"
CHECKBOX = "checkbox"
SHORT_ANSWER = "short_answer"
LONG_ANSWER = "long_answer"
RATING = "rating"
LINEAR_SCALE = "linear_scale"

AUTO_GRADABLE_TYPES = frozenset({MULTIPLE_CHOICE, CHECKBOX})

RATING_MIN = 1
RATING_MAX = 5


class AttemptState(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    GRADED = "graded"


@dataclass
class QuestionOption:
    id: str
    text: str = ""
    is_correct: bool = False


@dataclass
class Question:
    """Common envelope shared by every question variant."""
    type: ClassVar[str] = ""

    id: str
    prompt: str = ""
    description: Optional[str] = None
    required: bool = True
    points: float = 1

    @property
    def is_graded(self) -> bool:
        return self.points > 0

    @property
    def is_auto_gradable(self) -> bool:
        return self.type in AUTO_GRADABLE_TYPES


@dataclass
class ChoiceQuestion(Question):
    options: list[QuestionOption] = field(default_factory=list)

    def option_ids(self) -> list[str]:
        return [o.id for o in self.options]

    def correct_option_ids(self) -> set[str]:
        return {o.id for o in self.options if o.is_correct}


@dataclass
class MultipleChoiceQuestion(ChoiceQuestion):
    type: ClassVar[str] = MULTIPLE_CHOICE


@dataclass
class CheckboxQuestion(ChoiceQuestion):
    type: ClassVar[str] = CHECKBOX


@dataclass
class ShortAnswerQuestion(Question):
    type: ClassVar[str] = SHORT_ANSWER


@dataclass
class LongAnswerQuestion(Question):
    type: ClassVar[str] = LONG_ANSWER


@dataclass
class RatingQuestion(Question):
    type: ClassVar[str] = RATING


@dataclass
class LinearScaleQuestion(Question):
    type: ClassVar[str] = LINEAR_SCALE

    min_value: int = 1
    max_value: int = 5
    min_label: str = "Strongly Disagree"
    max_label: str = "Strongly Agree"


QUESTION_CLASSES = {
    cls.type: cls
    for cls in (
        MultipleChoiceQuestion, CheckboxQuestion, ShortAnswerQuestion,
        LongAnswerQuestion, RatingQuestion, LinearScaleQuestion,
    )
}

# camelCase keys used by exported definitions
_KEY_ALIASES = {
    "question": "prompt",
    "minValue": "min_value",
    "maxValue": "max_value",
    "minLabel": "min_label",
    "maxLabel": "max_label",
}


def question_from_dict(data: dict) -> Question:
    """Build the question variant named by ``data["type"]``.

    Keys that do not belong to the variant are dropped, so a ``linear_scale``
    never carries options and a ``rating`` never carries scale bounds.
    """
    qtype = data.get("type")
    if qtype not in QUESTION_CLASSES:
        raise ValueError(f"Unknown question type: {qtype!r}")
    cls = QUESTION_CLASSES[qtype]
    allowed = {f.name for f in fields(cls)}
    kwargs = {}
    for key, value in data.items():
        key = _KEY_ALIASES.get(key, key)
        if key in allowed and key != "options":
            kwargs[key] = value
    if "options" in allowed:
        kwargs["options"] = [
            QuestionOption(
                id=str(o["id"]),
                text=o.get("text", ""),
                is_correct=bool(o.get("isCorrect", o.get("is_correct", False))),
            )
            for o in data.get("options") or []
        ]
    if kwargs.get("points") is None:
        kwargs.pop("points", None)
    if "id" in kwargs:
        kwargs["id"] = str(kwargs["id"])
    return cls(**kwargs)


def question_to_dict(question: Question) -> dict:
    data = {"type": question.type}
    for f in fields(question):
        value = getattr(question, f.name)
        if f.name == "options":
            value = [{"id": o.id, "text": o.text, "isCorrect": o.is_correct} for o in value]
        data[f.name] = value
    return data


@dataclass
class Questionnaire:
    id: Optional[int]
    title: str
    questions: list[Question] = field(default_factory=list)
    description: str = ""
    target_learning_paths: list[str] = field(default_factory=list)
    target_student_ids: list[str] = field(default_factory=list)
    due_date: Optional[datetime] = None
    allow_late_submission: bool = True
    show_correct_answers: bool = False
    max_attempts: int = 1
    time_limit_minutes: Optional[int] = None
    is_published: bool = False
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def get_question(self, question_id: str) -> Optional[Question]:
        return next((q for q in self.questions if q.id == question_id), None)

    @property
    def max_score(self) -> float:
        return sum(q.points for q in self.questions if q.is_graded)


@dataclass
class Attempt:
    id: int
    questionnaire_id: int
    student_id: str
    attempt_number: int
    started_at: datetime
    answers: dict = field(default_factory=dict)
    submitted_at: Optional[datetime] = None
    time_spent_seconds: Optional[int] = None
    score: Optional[float] = None
    max_score: Optional[float] = None
    is_graded: bool = False
    is_late: bool = False
    graded_by: Optional[str] = None
    graded_at: Optional[datetime] = None
    feedback: Optional[str] = None

    @property
    def state(self) -> AttemptState:
        if self.is_graded:
            return AttemptState.GRADED
        if self.submitted_at is not None:
            return AttemptState.SUBMITTED
        return AttemptState.IN_PROGRESS

    @property
    def is_submitted(self) -> bool:
        return self.submitted_at is not None


@dataclass
class Student:
    id: str
    full_name: str
    email: str
    learning_path: Optional[str] = None
