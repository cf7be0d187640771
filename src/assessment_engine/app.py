"""Interactive CLI application."""
import logging
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from assessment_engine.analytics import (
    RESPONSE_FILTERS, export_csv, export_filename, filter_responses, summarize,
)
from assessment_engine.config import get_settings
from assessment_engine.db import get_connection, init_db
from assessment_engine.directory import get_student, get_students
from assessment_engine.errors import AssessmentError, ValidationError
from assessment_engine.grading import grade, review_answers, suggested_score
from assessment_engine.importer import import_file
from assessment_engine.log import configure_logging
from assessment_engine.models import (
    CheckboxQuestion, LinearScaleQuestion, MultipleChoiceQuestion, RATING_MAX, RATING_MIN,
    RatingQuestion,
)
from assessment_engine.questionnaires import get_questionnaire, list_for_student, list_questionnaires
from assessment_engine.seed import is_seeded, seed_all
from assessment_engine.session import (
    attempts_used, format_time, get_attempt_by_id, is_answered, progress,
    questionnaire_status, record_answer, start, submit, time_remaining,
)
from assessment_engine.store import list_attempts

logger = logging.getLogger(__name__)

console = Console()

EXIT_WORDS = ("q", "menu")

STATUS_COLORS = {
    "completed": "green",
    "in_progress": "blue",
    "overdue": "red",
    "late": "dark_orange",
    "available": "white",
}


class SessionExitRequested(Exception):
    """Raised when the student leaves a questionnaire mid-way."""


def session_prompt(prompt: str, **kwargs) -> str:
    """Prompt that raises SessionExitRequested on 'q' or 'menu'."""
    answer = Prompt.ask(prompt, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def show_welcome():
    console.print(Panel(
        "[bold]Assessment Engine[/bold]\n[dim]Quizzes, surveys and grading[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("list", "All questionnaires"),
        ("take", "Take or resume a questionnaire"),
        ("responses", "Response analytics"),
        ("grade", "Grade a submitted attempt"),
        ("export", "Export responses to CSV"),
        ("import", "Import a questionnaire definition"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def ask_answer(question):
    """Ask for one answer; an empty reply skips the question."""
    if isinstance(question, (MultipleChoiceQuestion, CheckboxQuestion)):
        for i, option in enumerate(question.options, 1):
            console.print(f"  [cyan]{i})[/cyan] {option.text}")
        hint = "numbers separated by commas" if isinstance(question, CheckboxQuestion) else "number"
        raw = session_prompt(f"Your answer ({hint})", default="").strip()
        if not raw:
            return None
        picks = [p.strip() for p in raw.split(",") if p.strip()]
        ids = [question.options[int(p) - 1].id for p in picks
               if p.isdigit() and 1 <= int(p) <= len(question.options)]
        if len(ids) != len(picks):
            # let record_answer reject it so the prompt repeats
            return raw
        if isinstance(question, CheckboxQuestion):
            return ids
        return ids[0]
    if isinstance(question, RatingQuestion):
        raw = session_prompt(f"Rating ({RATING_MIN}-{RATING_MAX})", default="").strip()
        return int(raw) if raw.isdigit() else (raw or None)
    if isinstance(question, LinearScaleQuestion):
        console.print(f"  [dim]{question.min_value} = {question.min_label}, "
                      f"{question.max_value} = {question.max_label}[/dim]")
        raw = session_prompt(f"Value ({question.min_value}-{question.max_value})", default="").strip()
        return int(raw) if raw.lstrip("-").isdigit() else (raw or None)
    raw = session_prompt("Your answer", default="")
    return raw if raw.strip() else None


def run_questionnaire(db_path: str, questionnaire, attempt):
    """Walk through unanswered questions, saving each answer, then submit."""
    for i, question in enumerate(questionnaire.questions, 1):
        if is_answered(attempt.answers.get(question.id)):
            continue
        remaining = time_remaining(questionnaire, attempt)
        if remaining == 0:
            console.print("[yellow]Time is up, submitting your answers.[/yellow]")
            return submit(db_path, attempt.id, auto=True)
        header = f"Q{i} of {len(questionnaire.questions)}"
        if remaining is not None:
            header += f"  [dim]{format_time(remaining)} left[/dim]"
        required = " [red]*[/red]" if question.required else ""
        console.print(f"\n[bold]{header}[/bold]\n{question.prompt}{required}")
        if question.description:
            console.print(f"[dim]{question.description}[/dim]")
        while True:
            value = ask_answer(question)
            if value is None:
                break
            try:
                attempt = record_answer(db_path, attempt.id, question.id, value)
                break
            except ValidationError as e:
                console.print(f"[red]{e}[/red]")
    console.print(f"\n[dim]{progress(questionnaire, attempt.answers):.0f}% answered[/dim]")
    if time_remaining(questionnaire, attempt) == 0:
        return submit(db_path, attempt.id, auto=True)
    if Prompt.ask("Submit now?", choices=["y", "n"], default="y") != "y":
        console.print("[dim]Progress saved. Come back any time to finish.[/dim]")
        return attempt
    return submit(db_path, attempt.id)


def show_result(questionnaire, attempt):
    if not attempt.is_submitted:
        return
    if attempt.is_graded and attempt.score is not None:
        console.print(f"[bold green]Score: {attempt.score:.1f}%[/bold green]")
    elif not attempt.max_score:
        console.print("[cyan]Submitted. Thanks for your answers.[/cyan]")
    else:
        console.print("[cyan]Submitted. Your instructor will review and grade your answers.[/cyan]")
    if questionnaire.show_correct_answers:
        for row in review_answers(questionnaire, attempt):
            if "is_correct" in row:
                mark = "[green]correct[/green]" if row["is_correct"] else "[red]incorrect[/red]"
                console.print(f"  {row['prompt']}: {mark}")


def cmd_list(db_path: str):
    table = Table(title="Questionnaires")
    table.add_column("ID", justify="right")
    table.add_column("Title", style="cyan")
    table.add_column("Status")
    table.add_column("Questions", justify="right")
    table.add_column("Attempts", justify="right")
    table.add_column("Time limit", justify="right")
    for q in list_questionnaires(db_path):
        table.add_row(
            str(q.id), q.title,
            "[green]Published[/green]" if q.is_published else "[dim]Draft[/dim]",
            str(len(q.questions)), str(q.max_attempts),
            f"{q.time_limit_minutes} min" if q.time_limit_minutes else "-",
        )
    console.print(table)


def cmd_take(db_path: str):
    student_id = Prompt.ask("Student id")
    student = get_student(db_path, student_id)
    if student is None:
        console.print(f"[red]Unknown student: {student_id}[/red]")
        return
    available = list_for_student(db_path, student)
    if not available:
        console.print("[yellow]No questionnaires assigned to you.[/yellow]")
        return
    table = Table(title=f"Questionnaires for {student.full_name}")
    table.add_column("ID", justify="right")
    table.add_column("Title", style="cyan")
    table.add_column("Status")
    table.add_column("Attempts", justify="right")
    for q in available:
        status = questionnaire_status(db_path, q, student.id)
        color = STATUS_COLORS[status]
        used = attempts_used(db_path, q.id, student.id)
        table.add_row(str(q.id), q.title, f"[{color}]{status}[/{color}]", f"{used}/{q.max_attempts}")
    console.print(table)
    questionnaire_id = int(Prompt.ask("Questionnaire id", choices=[str(q.id) for q in available]))
    questionnaire = get_questionnaire(db_path, questionnaire_id)
    attempt = start(db_path, questionnaire_id, student.id)
    console.print(f"[dim]Attempt {attempt.attempt_number} of {questionnaire.max_attempts}. "
                  f"Type 'q' to leave, your answers are saved.[/dim]")
    try:
        attempt = run_questionnaire(db_path, questionnaire, attempt)
    except SessionExitRequested:
        console.print("[dim]Progress saved. Come back any time to finish.[/dim]")
        return
    show_result(questionnaire, attempt)


def cmd_responses(db_path: str):
    questionnaire_id = int(Prompt.ask("Questionnaire id"))
    questionnaire = get_questionnaire(db_path, questionnaire_id)
    summary = summarize(db_path, questionnaire_id)
    console.print(Panel(
        f"Submission rate: [bold]{summary.submission_rate * 100:.0f}%[/bold] "
        f"({summary.submitted_count} submitted / {summary.roster_size} students)\n"
        f"Average score: [bold]{summary.average_score:.1f}%[/bold] ({summary.graded_count} graded)\n"
        f"Average time: [bold]{summary.average_time_spent}m[/bold] per submission",
        title=questionnaire.title, border_style="blue",
    ))
    status = Prompt.ask("Filter", choices=list(RESPONSE_FILTERS), default="all")
    search = Prompt.ask("Search name or email", default="")
    conn = get_connection(db_path)
    attempts = list_attempts(conn, questionnaire_id)
    conn.close()
    students = get_students(db_path, {a.student_id for a in attempts})
    table = Table(title="Responses")
    table.add_column("Attempt", justify="right")
    table.add_column("Student", style="cyan")
    table.add_column("#", justify="right")
    table.add_column("State")
    table.add_column("Score", justify="right")
    for a in filter_responses(attempts, students, status, search):
        student = students.get(a.student_id)
        table.add_row(
            str(a.id), student.full_name if student else a.student_id, str(a.attempt_number),
            a.state.value + (" (late)" if a.is_late else ""),
            f"{a.score:.1f}" if a.is_graded and a.score is not None else "-",
        )
    console.print(table)


def cmd_grade(db_path: str):
    attempt_id = int(Prompt.ask("Attempt id"))
    attempt = get_attempt_by_id(db_path, attempt_id)
    questionnaire = get_questionnaire(db_path, attempt.questionnaire_id)
    for question in questionnaire.questions:
        console.print(f"[bold]{question.prompt}[/bold] [dim]({question.points} pts)[/dim]")
        console.print(f"  {attempt.answers.get(question.id, '[dim]no answer[/dim]')}")
    suggestion = suggested_score(questionnaire, attempt)
    score = float(Prompt.ask("Score (0-100)", default=f"{suggestion:.1f}"))
    feedback = Prompt.ask("Feedback", default="")
    grader = Prompt.ask("Grader id", default="instructor")
    attempt = grade(db_path, attempt_id, score, feedback or None, grader)
    console.print(f"[green]Attempt {attempt.id} graded: {attempt.score:.1f}%[/green]")


def cmd_export(db_path: str):
    questionnaire_id = int(Prompt.ask("Questionnaire id"))
    questionnaire = get_questionnaire(db_path, questionnaire_id)
    target = Prompt.ask("Save to", default=export_filename(questionnaire.title))
    Path(target).write_text(export_csv(db_path, questionnaire_id))
    console.print(f"[green]Exported responses to {target}[/green]")


def cmd_import(db_path: str):
    file_path = Prompt.ask("File path")
    if not Path(file_path).exists():
        console.print(f"[red]File not found: {file_path}[/red]")
        return
    result = import_file(db_path, file_path)
    console.print(f"[green]Imported {result['filename']} as questionnaire "
                  f"{result['questionnaire_id']} ({result['questions']} questions)[/green]")
    for warning in result["warnings"]:
        console.print(f"  [yellow]{warning}[/yellow]")


def main():
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)
    db_path = settings.db_path
    init_db(db_path)
    first_run = not is_seeded(db_path)
    if first_run:
        console.print("[dim]Setting up for first use...[/dim]")
    seed_all(db_path)
    if first_run:
        console.print("[green]Ready![/green]\n")

    show_welcome()

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="list").strip().lower()
        try:
            if choice == "list":
                cmd_list(db_path)
            elif choice == "take":
                cmd_take(db_path)
            elif choice == "responses":
                cmd_responses(db_path)
            elif choice == "grade":
                cmd_grade(db_path)
            elif choice == "export":
                cmd_export(db_path)
            elif choice == "import":
                cmd_import(db_path)
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]Goodbye![/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except AssessmentError as e:
            console.print(f"[yellow]{e}[/yellow]")
        except Exception as e:
            logger.exception("command %s failed", choice)
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
