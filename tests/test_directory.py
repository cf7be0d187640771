# tests/test_directory.py
from assessment_engine.directory import add_student, get_student, get_students, list_students, resolve_roster
from assessment_engine.models import Student

from conftest import make_questionnaire


def test_get_student(db):
    student = get_student(db, "s1")
    assert student.full_name == "Ayu Lestari"
    assert student.learning_path == "fe"
    assert get_student(db, "nobody") is None


def test_add_student_updates_existing(db):
    add_student(db, Student("s1", "Ayu L.", "ayu@example.com", "be"))
    assert get_student(db, "s1").learning_path == "be"
    assert len(list_students(db)) == 3


def test_get_students_skips_unknown_ids(db):
    found = get_students(db, ["s1", "s3", "ghost"])
    assert set(found) == {"s1", "s3"}
    assert get_students(db, []) == {}


def test_roster_by_learning_path(db):
    roster = resolve_roster(db, make_questionnaire(target_learning_paths=["fe"]))
    assert [s.id for s in roster] == ["s1", "s2"]


def test_roster_prefers_explicit_student_ids(db):
    q = make_questionnaire(target_learning_paths=["fe"], target_student_ids=["s3", "ghost"])
    assert [s.id for s in resolve_roster(db, q)] == ["s3"]


def test_empty_targeting_has_empty_roster(db):
    assert resolve_roster(db, make_questionnaire(target_learning_paths=[], is_published=False)) == []
