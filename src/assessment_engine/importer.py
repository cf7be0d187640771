"""Import questionnaire definitions from JSON or YAML files."""
import json
from pathlib import Path

from assessment_engine import clock
from assessment_engine.config import get_settings
from assessment_engine.models import Questionnaire, question_from_dict
from assessment_engine.questionnaires import save_questionnaire


def read_definition(file_path: str) -> dict:
    path = Path(file_path)
    suffix = path.suffix.lower()
    if suffix == ".json":
        data = json.loads(path.read_text())
    elif suffix in (".yaml", ".yml"):
        import yaml
        data = yaml.safe_load(path.read_text())
    else:
        raise ValueError(f"Unsupported definition format: {suffix or path.name}")
    if not isinstance(data, dict):
        raise ValueError(f"{path.name} does not contain a questionnaire definition")
    return data


def _parse_due_date(value):
    if value is None or value == "":
        return None
    if hasattr(value, "isoformat") and not isinstance(value, str):
        # YAML already parsed it
        value = value.isoformat()
    return clock.parse(str(value))


def definition_to_questionnaire(data: dict) -> Questionnaire:
    """Build a Questionnaire from an exported definition.

    Accepts the camelCase question keys of exported definitions and the
    ``questions_json`` key used by the storage rows.
    """
    questions = data.get("questions", data.get("questions_json")) or []
    return Questionnaire(
        id=None,
        title=data.get("title", ""),
        description=data.get("description") or "",
        questions=[question_from_dict(q) for q in questions],
        target_learning_paths=list(data.get("target_learning_paths") or []),
        target_student_ids=list(data.get("target_student_ids") or []),
        due_date=_parse_due_date(data.get("due_date")),
        allow_late_submission=bool(data.get("allow_late_submission", True)),
        show_correct_answers=bool(data.get("show_correct_answers", False)),
        max_attempts=data.get("max_attempts", get_settings().default_max_attempts),
        time_limit_minutes=data.get("time_limit_minutes"),
        is_published=bool(data.get("is_published", False)),
        created_by=data.get("created_by"),
    )


def import_file(db_path: str, file_path: str, created_by: str | None = None) -> dict:
    """Import a definition file as a questionnaire.

    Returns the new id together with any validation warnings left on a draft.
    """
    questionnaire = definition_to_questionnaire(read_definition(file_path))
    if created_by:
        questionnaire.created_by = created_by
    issues = save_questionnaire(db_path, questionnaire)
    return {
        "filename": Path(file_path).name,
        "questionnaire_id": questionnaire.id,
        "title": questionnaire.title,
        "questions": len(questionnaire.questions),
        "warnings": [str(i) for i in issues],
    }
