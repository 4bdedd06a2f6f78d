"""CLI commands for the tutoring service.

Commands:
- serve: run the Web API with uvicorn
- init-db: create the database schema
- check-env: report which environment variables are set
- generate-jwt-secret: print a fresh signing secret
- subjects: list practice exam subjects
- practice-exam: take a timed practice exam in the terminal
"""

from __future__ import annotations

import secrets
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from tutoring.config.app_config import REQUIRED_ENV_VARS, describe_env_var, load_app_config
from tutoring.config.subjects import get_subject, list_subjects
from tutoring.core.exam_generator import generate_exam
from tutoring.core.exam_grader import grade_exam
from tutoring.core.exam_models import ExamQuestion
from tutoring.core.exam_session import (
    DEFAULT_SNAPSHOT_DIR,
    ExamSession,
    ExamState,
    NAVIGATION_WARNING,
    InMemorySnapshotStore,
    JsonFileSnapshotStore,
    SnapshotStore,
)
from tutoring.db.database import DatabaseUnavailableError, init_db
from tutoring.logging_setup import configure_logging

app = typer.Typer(
    name="tutor",
    help="AI tutoring service: Socratic tutor chat, practice exams and progress tracking.",
    no_args_is_help=True,
)

console = Console()


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level for structlog output"),
) -> None:
    configure_logging(level=log_level)


# =============================================================================
# SERVER / SETUP
# =============================================================================


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the Web API."""
    import uvicorn

    console.print(f"[blue]Serving tutoring API on http://{host}:{port}[/blue]")
    uvicorn.run("tutoring.web.api:create_app", host=host, port=port, reload=reload, factory=True)


@app.command(name="init-db")
def init_db_command(
    database_url: str | None = typer.Option(
        None, "--database-url", help="SQLAlchemy URL (defaults to DATABASE_URL)"
    ),
) -> None:
    """Create the database tables."""
    try:
        init_db(database_url)
    except DatabaseUnavailableError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    console.print("[green]✓ Database schema is up to date[/green]")


@app.command(name="check-env")
def check_env() -> None:
    """Report the environment variables the service reads.

    Secret values are shown truncated. Exits with code 1 when any is missing.
    """
    console.print("Checking environment variables...\n")
    all_set = True
    for name in REQUIRED_ENV_VARS:
        is_set, display = describe_env_var(name)
        mark = "[green]✓[/green]" if is_set else "[red]✗[/red]"
        console.print(f"{mark} {name}: {display}")
        all_set = all_set and is_set

    if all_set:
        console.print("\n[green]✓ All environment variables are set![/green]")
        return

    console.print("\n[red]✗ Some environment variables are missing.[/red]")
    config = load_app_config()
    if not config.is_production:
        console.print("[dim]Outside production the service runs with local defaults.[/dim]")
    raise typer.Exit(code=1)


@app.command(name="generate-jwt-secret")
def generate_jwt_secret() -> None:
    """Print a random 64-byte hex secret for JWT_SECRET."""
    console.print("Your JWT secret:\n")
    console.print(secrets.token_hex(64), soft_wrap=True)
    console.print("\nSet it as the JWT_SECRET environment variable in every environment.")


@app.command()
def subjects() -> None:
    """List practice exam subjects."""
    table = Table(title="Practice exam subjects")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title")
    table.add_column("Level")
    table.add_column("Minutes", justify="right")
    table.add_column("MC", justify="right")
    table.add_column("SA", justify="right")
    table.add_column("Points", justify="right")

    for s in list_subjects():
        table.add_row(
            s.id,
            s.title,
            s.level,
            str(s.duration),
            str(s.mc_questions),
            str(s.sa_questions),
            str(s.total_points),
        )
    console.print(table)


# =============================================================================
# PRACTICE EXAM
# =============================================================================


def _format_remaining(seconds: int) -> str:
    return f"{seconds // 60}:{seconds % 60:02d}"


def _ask_question(num: int, total: int, question: ExamQuestion, remaining: int) -> str:
    """Prompt for one answer; multiple choice takes 1-4 or the option text."""
    console.print(
        f"\n[blue]Question {num}/{total}[/blue] [dim]({question.points:g} pts, "
        f"{_format_remaining(remaining)} left)[/dim]"
    )
    console.print(f"[bold]{question.question}[/bold]")

    if question.is_multiple_choice:
        for idx, opt in enumerate(question.options, 1):
            console.print(f"  {idx}. {opt}")
        while True:
            raw = typer.prompt(f"Choose an option (1-{len(question.options)})").strip()
            if raw.isdigit() and 1 <= int(raw) <= len(question.options):
                return question.options[int(raw) - 1]
            if raw in question.options:
                return raw
            console.print(f"[yellow]⚠ Enter a number between 1 and {len(question.options)}[/yellow]")

    while True:
        raw = typer.prompt("Answer").strip()
        if raw:
            return raw
        console.print("[yellow]⚠ The answer cannot be empty[/yellow]")


def _advance_clock(session: ExamSession, since: float) -> bool:
    """Feed elapsed wall-clock seconds to the session timer.

    Returns True if time ran out.
    """
    elapsed = int(time.monotonic() - since)
    for _ in range(elapsed):
        if session.tick():
            return True
    return session.state != ExamState.IN_PROGRESS


def _show_result(session: ExamSession) -> None:
    result = session.result
    if result.is_mock:
        console.print(f"\n[yellow]⚠ {result.mock_message}[/yellow]")

    table = Table(title=f"{session.exam.title}: {result.percentage}%")
    table.add_column("#", justify="right")
    table.add_column("Your answer")
    table.add_column("Points", justify="right")
    table.add_column("Feedback")
    for r in result.question_results:
        mark = "[green]✓[/green]" if r.is_correct else "[red]✗[/red]"
        table.add_row(
            f"{mark} {r.question_id}",
            r.user_answer,
            f"{r.points_earned:g}/{r.max_points:g}",
            r.feedback,
        )
    console.print(table)
    console.print(f"[bold]Score:[/bold] {result.total_score:g}/{result.max_score:g} ({result.percentage}%)")
    console.print(f"[dim]Time spent:[/dim] {session.time_spent_minutes} min")
    console.print(result.feedback)


@app.command(name="practice-exam")
def practice_exam(
    subject: str = typer.Argument(..., help="Subject ID (see `tutor subjects`)"),
    resume: bool = typer.Option(False, "--resume", help="Resume an unfinished attempt"),
    state_dir: Path | None = typer.Option(
        None, "--state-dir", help=f"Snapshot directory (default {DEFAULT_SNAPSHOT_DIR})"
    ),
    no_save: bool = typer.Option(False, "--no-save", help="Do not persist progress snapshots"),
) -> None:
    """Take a timed practice exam in the terminal.

    Example:
        tutor practice-exam bjc-math
    """
    store: SnapshotStore = InMemorySnapshotStore() if no_save else JsonFileSnapshotStore(state_dir)
    config = get_subject(subject)

    session = ExamSession.restore(config.id, store) if resume else None
    if resume and session is None:
        console.print("[yellow]⚠ No unfinished attempt found; starting a new one[/yellow]")

    if session is None:
        session = ExamSession(subject=config.id, store=store)
        console.print(f"[blue]Generating {config.title}...[/blue]")
        generated = generate_exam(config.id)
        if generated.is_mock:
            console.print(f"[yellow]⚠ {generated.mock_message}[/yellow]")
        session.load_exam(generated.exam)
        if generated.is_mock:
            session.is_fallback_exam = True

        exam = session.exam
        console.print(f"\n[bold]{exam.title}[/bold]")
        console.print(f"[dim]Questions:[/dim] {len(exam.questions)}")
        console.print(f"[dim]Total points:[/dim] {exam.total_points}")
        console.print(f"[dim]Time limit:[/dim] {exam.duration} min")
        if not typer.confirm("Start the exam?", default=True):
            raise typer.Exit()
        session.start()

    questions = session.exam.questions
    last = time.monotonic()
    try:
        for index, question in enumerate(questions):
            if session.state != ExamState.IN_PROGRESS:
                break
            if session.answers.get(str(question.id), "").strip():
                continue
            session.go_to(index)
            answer = _ask_question(index + 1, len(questions), question, session.remaining_seconds)
            if _advance_clock(session, last):
                console.print("\n[red]⏰ Time is up! Your exam was submitted automatically.[/red]")
                break
            last += int(time.monotonic() - last)
            session.answer(question.id, answer)
    except (KeyboardInterrupt, typer.Abort):
        if typer.confirm(f"\n{NAVIGATION_WARNING}", default=False):
            session.confirm_abandon()
            console.print("[dim]Attempt discarded.[/dim]")
            raise typer.Exit(code=1)
        console.print(f"[dim]Progress saved. Resume with: tutor practice-exam {config.id} --resume[/dim]")
        raise typer.Exit(code=1)

    if session.state == ExamState.IN_PROGRESS:
        session.submit()

    console.print("[blue]Grading...[/blue]")
    session.grading_succeeded(grade_exam(session.exam, session.answers))
    _show_result(session)
