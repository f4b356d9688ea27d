"""
Typer CLI for the exam session engine.

Commands:
    exam-engine db init                 - Create database tables
    exam-engine db migrate FILE         - Apply a raw SQL migration
    exam-engine db drop --yes           - Drop all tables
    exam-engine serve                   - Run the HTTP API
    exam-engine exam create TITLE       - Create an exam
    exam-engine exam assign ID FILE     - Assign questions from a blueprint JSON file
    exam-engine exam questions ID       - Show an exam's assigned questions
    exam-engine session sweep STUDENT   - Complete a student's expired sessions
    exam-engine config                  - Show current configuration

Usage:
    exam-engine --help
    exam-engine exam assign 3 blueprints/midterm.json --seed 42
"""

from __future__ import annotations

import json
import random
from pathlib import Path

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import get_settings
from src.core.logs import setup_logging
from src.exam.errors import ExamEngineError

app = typer.Typer(
    help="exam-engine CLI: blueprint assembly, timed exam sessions and scoring",
    no_args_is_help=True,
)

console = Console()


# ========================================
# Context Builder (Dependency Injection)
# ========================================


class CLIContext:
    """
    Dependency injection container for CLI commands.

    The database engine and store are created on first use and disposed
    by ``close``.
    """

    def __init__(self):
        self.settings = get_settings()
        self._db_engine = None
        self._store = None

    @property
    def db_engine(self):
        if self._db_engine is None:
            from src.db.database import create_db_engine

            self._db_engine = create_db_engine(self.settings.database_url, echo=self.settings.sql_echo)
        return self._db_engine

    @property
    def store(self):
        if self._store is None:
            from src.exam.sql_store import SqlSessionStore

            self._store = SqlSessionStore(self.db_engine)
        return self._store

    def close(self) -> None:
        if self._db_engine is not None:
            self._db_engine.dispose()


def _build_context() -> CLIContext:
    """Build CLI context with dependency injection."""
    return CLIContext()


def _fail(error: ExamEngineError) -> None:
    rprint(f"[red]✗[/red] {error.kind}: {error.message}")
    raise typer.Exit(code=1)


# ========================================
# DATABASE COMMANDS
# ========================================

db_app = typer.Typer(help="Database management (init, migrate, drop)")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """
    Initialize database tables from SQLAlchemy models.

    Safe to run multiple times (idempotent).
    """
    from src.db.database import init_db

    ctx = _build_context()
    try:
        init_db(ctx.db_engine)
        rprint(f"[green]✓[/green] Database initialized at {ctx.settings.database_label()}")
    finally:
        ctx.close()


@db_app.command("migrate")
def db_migrate(
    migration_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="SQL file to apply"),
) -> None:
    """Run a raw SQL migration file."""
    from src.db.database import run_migration

    ctx = _build_context()
    try:
        run_migration(ctx.db_engine, migration_file)
        rprint(f"[green]✓[/green] Migration applied: {migration_file.name}")
    finally:
        ctx.close()


@db_app.command("drop")
def db_drop(
    yes: bool = typer.Option(False, "--yes", help="Confirm dropping every table"),
) -> None:
    """Drop all engine tables."""
    if not yes:
        rprint("[yellow]⚠[/yellow] Refusing to drop tables without --yes")
        raise typer.Exit(code=1)

    from src.db.database import drop_db

    ctx = _build_context()
    try:
        drop_db(ctx.db_engine)
        rprint("[green]✓[/green] Tables dropped")
    finally:
        ctx.close()


# ========================================
# SERVER
# ========================================


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address (default from settings)"),
    port: int | None = typer.Option(None, "--port", help="Port (default from settings)"),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from src.api.main import create_app

    settings = get_settings()
    uvicorn.run(
        create_app(settings),
        host=host or settings.api_host,
        port=port or settings.api_port,
        log_level=settings.log_level.lower(),
    )


# ========================================
# EXAM COMMANDS
# ========================================

exam_app = typer.Typer(help="Exam definition and question assignment")
app.add_typer(exam_app, name="exam")


@exam_app.command("create")
def exam_create(
    title: str = typer.Argument(..., help="Exam title"),
    duration: int = typer.Option(..., "--duration", "-d", min=1, help="Duration in minutes"),
    created_by: int | None = typer.Option(None, "--by", help="Creator user id"),
) -> None:
    """Create an exam."""
    ctx = _build_context()
    try:
        exam = ctx.store.create_exam(title, duration, created_by=created_by)
        rprint(f"[green]✓[/green] Exam {exam.id} created: {exam.title} ({exam.duration_minutes} min)")
    except ExamEngineError as e:
        _fail(e)
    finally:
        ctx.close()


@exam_app.command("assign")
def exam_assign(
    exam_id: int = typer.Argument(..., help="Exam id"),
    blueprint_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Blueprint JSON file"),
    seed: int | None = typer.Option(None, "--seed", help="RNG seed for a reproducible draw"),
) -> None:
    """
    Assign randomized questions from a blueprint file.

    The file holds either a list of blocks or {"blueprint": [...]}; each
    block is {"subject": ..., "difficulty": ..., "count": ...}.
    """
    from src.exam.assembler import BlueprintAssembler

    raw = json.loads(blueprint_file.read_text(encoding="utf-8"))
    blueprint = raw.get("blueprint") if isinstance(raw, dict) else raw

    if seed is None:
        seed = get_settings().assignment_seed
    rng = random.Random(seed) if seed is not None else None

    ctx = _build_context()
    try:
        question_ids = BlueprintAssembler(ctx.store, rng=rng).assign(exam_id, blueprint)
        rprint(f"[green]✓[/green] Assigned {len(question_ids)} questions to exam {exam_id}")
        _print_assignment(ctx, exam_id)
    except ExamEngineError as e:
        _fail(e)
    finally:
        ctx.close()


@exam_app.command("questions")
def exam_questions(exam_id: int = typer.Argument(..., help="Exam id")) -> None:
    """Show an exam's assigned questions in order."""
    ctx = _build_context()
    try:
        _print_assignment(ctx, exam_id)
    except ExamEngineError as e:
        _fail(e)
    finally:
        ctx.close()


def _print_assignment(ctx: CLIContext, exam_id: int) -> None:
    questions = ctx.store.get_assigned_questions(exam_id)
    if not questions:
        rprint(f"[yellow]⚠[/yellow] Exam {exam_id} has no assigned questions")
        return

    table = Table(title=f"Exam {exam_id} assignment")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Question ID", justify="right")
    table.add_column("Text")
    table.add_column("Options", justify="right")
    for q in questions:
        text = q.question_text if len(q.question_text) <= 60 else q.question_text[:57] + "..."
        table.add_row(str(q.order), str(q.question_id), text, str(len(q.options)))
    console.print(table)


# ========================================
# SESSION COMMANDS
# ========================================

session_app = typer.Typer(help="Exam session maintenance")
app.add_typer(session_app, name="session")


@session_app.command("sweep")
def session_sweep(student_id: int = typer.Argument(..., help="Student id")) -> None:
    """Complete every expired active session of a student."""
    from src.exam.engine import SessionLifecycleEngine

    ctx = _build_context()
    try:
        swept = SessionLifecycleEngine(ctx.store).sweep(student_id)
        rprint(f"[green]✓[/green] Completed {swept} expired session(s) for student {student_id}")
    except ExamEngineError as e:
        _fail(e)
    finally:
        ctx.close()


# ========================================
# INFO
# ========================================


@app.command("config")
def show_config() -> None:
    """Show current configuration (non-sensitive)."""
    settings = get_settings()
    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("database", settings.database_label())
    table.add_row("log_level", settings.log_level)
    table.add_row("log_file", settings.log_file or "-")
    table.add_row("api", f"{settings.api_host}:{settings.api_port}")
    table.add_row("assignment_seed", str(settings.assignment_seed) if settings.assignment_seed is not None else "-")
    console.print(table)


@app.command("version")
def show_version() -> None:
    """Show version information."""
    rprint("[bold]exam-session-engine[/bold] v1.0.0")
    rprint("  Blueprint assembly -> timed sessions -> exactly-once scoring")


def main() -> None:
    """Entry point for the CLI."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_file)
    logger.debug("exam-engine CLI starting")
    app()


if __name__ == "__main__":
    main()
