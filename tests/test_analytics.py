# tests/test_analytics.py
import csv
import io
from datetime import timedelta
from unittest.mock import patch

import pytest

from assessment_engine.analytics import (
    EXPORT_HEADER, average_score, average_time_spent, export_csv, export_filename,
    filter_responses, submission_rate, summarize,
)
from assessment_engine.directory import add_student, get_students
from assessment_engine.grading import grade
from assessment_engine.models import Attempt, Student
from assessment_engine.questionnaires import save_questionnaire
from assessment_engine.session import start, student_attempts, submit

from conftest import T0, essay_question, make_questionnaire


def _attempt(student_id, submitted=True, graded=False, score=None, minutes=None):
    return Attempt(
        id=0, questionnaire_id=1, student_id=student_id, attempt_number=1,
        started_at=T0,
        submitted_at=T0 + timedelta(minutes=minutes or 1) if submitted else None,
        time_spent_seconds=minutes * 60 if minutes is not None else None,
        is_graded=graded, score=score,
    )


def test_submission_rate_and_average_score():
    roster = [Student(f"r{i}", f"Student {i}", f"r{i}@example.com", "qa") for i in range(10)]
    attempts = [_attempt(f"r{i}") for i in range(6)]
    for attempt, score in zip(attempts, [80, 90, 70, 60]):
        attempt.is_graded = True
        attempt.score = score
    assert submission_rate(roster, attempts) == pytest.approx(0.6)
    assert average_score(attempts) == 75


def test_summarize_from_stored_attempts(db):
    for i in range(10):
        add_student(db, Student(f"r{i}", f"Student {i}", f"r{i}@example.com", "qa"))
    q = make_questionnaire([essay_question("q1")], target_learning_paths=["qa"])
    save_questionnaire(db, q)
    attempts = []
    for i in range(6):
        attempt = start(db, q.id, f"r{i}")
        attempts.append(submit(db, attempt.id, {"q1": "answer"}))
    for attempt, score in zip(attempts, [80, 90, 70, 60]):
        grade(db, attempt.id, score, grader_id="mentor-1")

    summary = summarize(db, q.id)
    assert summary.roster_size == 10
    assert summary.submitted_count == 6
    assert summary.graded_count == 4
    assert summary.submission_rate == pytest.approx(0.6)
    assert summary.average_score == 75


def test_empty_inputs_average_to_zero():
    assert submission_rate([], []) == 0
    assert average_score([]) == 0
    assert average_time_spent([]) == 0


def test_submission_rate_counts_every_submitted_attempt():
    roster = [Student("a", "A", "a@example.com"), Student("b", "B", "b@example.com")]
    attempts = [_attempt("a"), _attempt("a"), _attempt("b", submitted=False)]
    assert submission_rate(roster, attempts) == 1.0


def test_summary_rate_matches_submitted_count(db, publish):
    q = publish(max_attempts=2)
    for _ in range(2):
        attempt = start(db, q.id, "s1")
        submit(db, attempt.id, {"q1": "B"})
    summary = summarize(db, q.id)
    assert (summary.submitted_count, summary.roster_size) == (2, 2)
    assert summary.submission_rate == summary.submitted_count / summary.roster_size


def test_average_time_spent_in_minutes():
    attempts = [_attempt("a", minutes=10), _attempt("b", minutes=20), _attempt("c", submitted=False)]
    assert average_time_spent(attempts) == 15


def test_filter_responses(db):
    students = get_students(db, ["s1", "s2", "s3"])
    attempts = [_attempt("s1"), _attempt("s2", submitted=False), _attempt("s3")]
    assert [a.student_id for a in filter_responses(attempts, students, "submitted")] == ["s1", "s3"]
    assert [a.student_id for a in filter_responses(attempts, students, "pending")] == ["s2"]
    assert [a.student_id for a in filter_responses(attempts, students, search="CITRA")] == ["s3"]
    assert [a.student_id for a in filter_responses(attempts, students, search="budi@")] == ["s2"]
    with pytest.raises(ValueError):
        filter_responses(attempts, students, "graded")


def test_export_csv(db, publish):
    q = publish([essay_question("q1")], max_attempts=1)
    with patch("assessment_engine.clock.now", return_value=T0):
        first = start(db, q.id, "s1")
        second = start(db, q.id, "s2")
    with patch("assessment_engine.clock.now", return_value=T0 + timedelta(minutes=12)):
        submit(db, first.id, {"q1": "one"})
    with patch("assessment_engine.clock.now", return_value=T0 + timedelta(minutes=30)):
        submit(db, second.id, {"q1": "two"})
    grade(db, first.id, 87.5)

    rows = list(csv.reader(io.StringIO(export_csv(db, q.id))))
    assert rows[0] == EXPORT_HEADER
    assert rows[1] == ["Budi Santoso", "budi@example.com", "2026-03-02 09:30:00", "N/A", "30", "No"]
    assert rows[2] == ["Ayu Lestari", "ayu@example.com", "2026-03-02 09:12:00", "87.5", "12", "Yes"]
    assert len(rows) == 3


def test_export_skips_in_progress_attempts(db, publish):
    q = publish()
    start(db, q.id, "s1")
    assert len(student_attempts(db, q.id, "s1")) == 1
    assert export_csv(db, q.id) == ",".join(EXPORT_HEADER) + "\n"


def test_export_filename():
    assert export_filename("HTTP Fundamentals: Check") == "HTTP_Fundamentals__Check_responses.csv"
    assert export_filename("  ") == "questionnaire_responses.csv"
