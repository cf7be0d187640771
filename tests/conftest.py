from datetime import datetime, timezone

import pytest

from assessment_engine.config import get_settings
from assessment_engine.db import init_db
from assessment_engine.directory import add_student
from assessment_engine.models import (
    CheckboxQuestion, LongAnswerQuestion, MultipleChoiceQuestion, Questionnaire,
    QuestionOption, Student,
)
from assessment_engine.questionnaires import save_questionnaire

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    """Keep host environment out of the settings and reset the cache per test."""
    for key in ("ASSESSMENT_DB_PATH", "ASSESSMENT_SUBMIT_GRACE_SECONDS", "ASSESSMENT_LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_assessment.db")
    return db_path


@pytest.fixture
def db(tmp_db):
    """Initialized database with two front-end students and one back-end student."""
    init_db(tmp_db)
    add_student(tmp_db, Student("s1", "Ayu Lestari", "ayu@example.com", "fe"))
    add_student(tmp_db, Student("s2", "Budi Santoso", "budi@example.com", "fe"))
    add_student(tmp_db, Student("s3", "Citra Dewi", "citra@example.com", "be"))
    return tmp_db


def mc_question(qid="q1", points=10, correct="B"):
    return MultipleChoiceQuestion(
        id=qid, prompt="Pick one", points=points,
        options=[QuestionOption(o, f"Option {o}", o == correct) for o in ("A", "B", "C")],
    )


def checkbox_question(qid="q1", points=10, correct=("A", "C")):
    return CheckboxQuestion(
        id=qid, prompt="Pick all that apply", points=points,
        options=[QuestionOption(o, f"Option {o}", o in correct) for o in ("A", "B", "C")],
    )


def essay_question(qid="q2", points=5):
    return LongAnswerQuestion(id=qid, prompt="Explain", points=points)


def make_questionnaire(questions=None, **overrides):
    fields = dict(
        id=None,
        title="Unit quiz",
        questions=questions if questions is not None else [mc_question()],
        target_learning_paths=["fe"],
        max_attempts=1,
        is_published=True,
    )
    fields.update(overrides)
    return Questionnaire(**fields)


@pytest.fixture
def publish(db):
    """Save a published questionnaire and return it."""
    def _publish(questions=None, **overrides):
        questionnaire = make_questionnaire(questions, **overrides)
        save_questionnaire(db, questionnaire)
        return questionnaire
    return _publish
