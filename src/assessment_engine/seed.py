"""Seed the database with demo students and questionnaires."""
import json
from pathlib import Path

from assessment_engine.db import get_connection
from assessment_engine.directory import add_student
from assessment_engine.importer import definition_to_questionnaire
from assessment_engine.models import Student
from assessment_engine.questionnaires import save_questionnaire

CONTENT_DIR = Path(__file__).parent / "content"


def is_seeded(db_path: str) -> bool:
    """Check whether the database already holds students."""
    conn = get_connection(db_path)
    count = conn.execute("SELECT COUNT(*) FROM students").fetchone()[0]
    conn.close()
    return count > 0


def seed_students(db_path: str) -> None:
    """Insert the demo student directory from students.json."""
    data = json.loads((CONTENT_DIR / "students.json").read_text())
    for s in data["students"]:
        add_student(db_path, Student(**s))


def seed_questionnaires(db_path: str) -> None:
    """Insert demo questionnaires from questionnaires.json."""
    data = json.loads((CONTENT_DIR / "questionnaires.json").read_text())
    for definition in data["questionnaires"]:
        save_questionnaire(db_path, definition_to_questionnaire(definition))


def seed_all(db_path: str) -> None:
    """Run all seed functions in order."""
    if is_seeded(db_path):
        return
    seed_students(db_path)
    seed_questionnaires(db_path)
