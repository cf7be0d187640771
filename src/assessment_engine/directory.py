"""Student directory: profiles and roster resolution for a questionnaire."""
from assessment_engine.db import get_connection
from assessment_engine.models import Questionnaire, Student


def _row_to_student(row) -> Student:
    return Student(id=row["id"], full_name=row["full_name"], email=row["email"],
                   learning_path=row["learning_path"])


def add_student(db_path: str, student: Student) -> None:
    conn = get_connection(db_path)
    conn.execute(
        """INSERT INTO students (id, full_name, email, learning_path) VALUES (?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET full_name=excluded.full_name, email=excluded.email,
            learning_path=excluded.learning_path""",
        (student.id, student.full_name, student.email, student.learning_path),
    )
    conn.close()


def get_student(db_path: str, student_id: str) -> Student | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM students WHERE id = ?", (student_id,)).fetchone()
    conn.close()
    return _row_to_student(row) if row else None


def list_students(db_path: str) -> list[Student]:
    conn = get_connection(db_path)
    rows = conn.execute("SELECT * FROM students ORDER BY full_name").fetchall()
    conn.close()
    return [_row_to_student(r) for r in rows]


def get_students(db_path: str, student_ids) -> dict[str, Student]:
    """Map of id to profile for the given ids; unknown ids are left out."""
    ids = list(student_ids)
    if not ids:
        return {}
    conn = get_connection(db_path)
    rows = conn.execute(
        f"SELECT * FROM students WHERE id IN ({','.join('?' * len(ids))})", ids
    ).fetchall()
    conn.close()
    return {r["id"]: _row_to_student(r) for r in rows}


def resolve_roster(db_path: str, questionnaire: Questionnaire) -> list[Student]:
    """Students a questionnaire targets.

    A non-empty ``target_student_ids`` is the roster; otherwise every student
    on one of the targeted learning paths.
    """
    if questionnaire.target_student_ids:
        return list(get_students(db_path, questionnaire.target_student_ids).values())
    paths = list(questionnaire.target_learning_paths)
    if not paths:
        return []
    conn = get_connection(db_path)
    rows = conn.execute(
        f"SELECT * FROM students WHERE learning_path IN ({','.join('?' * len(paths))}) ORDER BY full_name",
        paths,
    ).fetchall()
    conn.close()
    return [_row_to_student(r) for r in rows]
