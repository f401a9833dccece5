"""
Typer CLI for exam-drill.

Commands:
    drill import FILE             - Validate an exam file and add it to the store
    drill exams                   - List stored exams and progress
    drill stats EXAM_ID           - Questions available and sessions run per mode
    drill run EXAM_ID             - Run an interactive timed session

Usage:
    drill --help
    drill import exams/networking.json
    drill run networking --mode review --count 10 --time 30
    python -m src.cli.main run networking --time 0
"""

from __future__ import annotations

import asyncio
import random
import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config import get_settings
from src.core.errors import ExamDrillError
from src.core.models import Question, QuestionResult, SessionMode, SessionSummary
from src.session.engine import ExamSession, SessionPhase
from src.session.service import SessionService
from src.store.json_store import JsonExamStore, JsonResultSink

app = typer.Typer(
    name="drill",
    help="exam-drill: timed quiz sessions over your own question banks",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

MODE_LABELS = {
    SessionMode.WARMUP: "Warmup (unseen)",
    SessionMode.REVIEW: "Review (last wrong)",
    SessionMode.REPETITION: "Repetition (last right)",
    SessionMode.COMPREHENSIVE: "Comprehensive (all)",
}

SKIP_INPUTS = {"", "?", "skip"}


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )


def _get_store(ctx: typer.Context) -> JsonExamStore:
    return ctx.obj["store"]


@app.callback()
def main_callback(
    ctx: typer.Context,
    data_dir: Optional[Path] = typer.Option(
        None,
        "--data-dir",
        "-d",
        help="Store directory (default: DRILL_DATA_DIR or ./data)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    settings = get_settings()
    _configure_logging("DEBUG" if verbose else settings.log_level)
    ctx.obj = {"store": JsonExamStore(data_dir or settings.data_dir)}


# =============================================================================
# Exam Management
# =============================================================================


@app.command("import")
def import_exam(
    ctx: typer.Context,
    source: Path = typer.Argument(..., exists=True, dir_okay=False, help="Exam JSON file"),
) -> None:
    """Validate an exam file and copy it into the store."""
    store = _get_store(ctx)
    try:
        exam = store.import_exam(source)
    except ExamDrillError as e:
        console.print(f"[red]Import failed:[/red] {e}")
        raise typer.Exit(1)
    console.print(
        f"[green]Imported[/green] [bold]{exam.id}[/bold] "
        f"({exam.title}, {len(exam.questions)} questions)"
    )


@app.command()
def exams(
    ctx: typer.Context,
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Learner id"),
) -> None:
    """List stored exams with the learner's progress."""
    store = _get_store(ctx)
    user_id = user or get_settings().default_user_id
    found = store.list_exams()
    if not found:
        console.print("[dim]No exams yet. Add one with 'drill import FILE'.[/dim]")
        return

    table = Table(title="Exams")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Questions", justify="right")
    table.add_column("Progress", justify="right")
    for exam in found:
        progress = store.progress_percent(exam.id, user_id)
        table.add_row(exam.id, exam.title, str(len(exam.questions)), f"{progress}%")
    console.print(table)


@app.command()
def stats(
    ctx: typer.Context,
    exam_id: str = typer.Argument(..., help="Exam id"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Learner id"),
) -> None:
    """Show questions available and sessions run per mode."""
    store = _get_store(ctx)
    user_id = user or get_settings().default_user_id
    service = SessionService(store, user_id)
    try:
        available = service.mode_stats(exam_id)
    except ExamDrillError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    attempts = store.session_counts(exam_id, user_id)

    table = Table(title=f"{exam_id} ({user_id})")
    table.add_column("Mode", style="cyan")
    table.add_column("Available", justify="right")
    table.add_column("Sessions", justify="right")
    for mode in SessionMode:
        table.add_row(MODE_LABELS[mode], str(available[mode]), str(attempts[mode]))
    console.print(table)
    console.print(f"Progress: [bold]{store.progress_percent(exam_id, user_id)}%[/bold] attempted")


# =============================================================================
# Study Session
# =============================================================================


@app.command()
def run(
    ctx: typer.Context,
    exam_id: str = typer.Argument(..., help="Exam id"),
    mode: SessionMode = typer.Option(
        SessionMode.WARMUP, "--mode", "-m", case_sensitive=False, help="Question bucket"
    ),
    count: Optional[int] = typer.Option(None, "--count", "-n", min=1, help="Max questions"),
    time_limit: Optional[int] = typer.Option(
        None, "--time", "-t", min=0, help="Seconds per question (0 = unlimited)"
    ),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Learner id"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Seed question order"),
) -> None:
    """Run an interactive session."""
    store = _get_store(ctx)
    user_id = user or get_settings().default_user_id
    service = SessionService(
        store,
        user_id,
        sink=JsonResultSink(store, user_id),
        rng=random.Random(seed) if seed is not None else None,
    )

    try:
        asyncio.run(_run_session(service, exam_id, mode, count, time_limit))
    except ExamDrillError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    except ValueError as e:
        console.print(f"[red]Invalid session request:[/red] {e}")
        raise typer.Exit(1)


async def _run_session(
    service: SessionService,
    exam_id: str,
    mode: SessionMode,
    count: int | None,
    time_limit: int | None,
) -> None:
    session = service.create_session(exam_id, mode, count, time_limit)
    if session.state.phase == SessionPhase.EMPTY:
        console.print(
            Panel(
                f"No questions available for [bold]{MODE_LABELS[mode]}[/bold].\n"
                "Try another mode, or check 'drill stats'.",
                title="Nothing to study",
                border_style="yellow",
            )
        )
        return

    try:
        while session.current_question is not None:
            if not await _ask_current(session):
                console.print("[yellow]Session abandoned.[/yellow]")
                return
            _display_feedback(session.current_result)
            session.advance()
    finally:
        session.close()

    _display_summary(session.summary)
    outcome = await session.wait_persisted()
    if outcome is not None and not outcome.success:
        console.print(f"[yellow]Result not saved:[/yellow] {outcome.error}")
    elif outcome is not None:
        console.print("[dim]Result saved.[/dim]")


async def _ask_current(session: ExamSession) -> bool:
    """
    Show the current question and collect an answer or a timeout.

    Input is read in an executor thread so the countdown keeps running on the
    loop. Returns False if input ended (EOF).
    """
    loop = asyncio.get_running_loop()
    question = session.current_question
    index = session.state.index or 0
    _display_question(question, index, len(session.questions), session.request.time_limit_seconds)

    timeout = asyncio.ensure_future(session.until_answered())
    try:
        while True:
            reader = loop.run_in_executor(None, console.input, "[bold]Answer[/bold] > ")
            done, _ = await asyncio.wait({reader, timeout}, return_when=asyncio.FIRST_COMPLETED)

            if reader not in done:
                console.print("\n[yellow]Time's up![/yellow] [dim]Press Enter to continue.[/dim]")
                try:
                    await reader
                except EOFError:
                    return False
                return True

            try:
                raw = reader.result().strip()
            except EOFError:
                return False

            if raw.lower() in SKIP_INPUTS:
                session.answer(None)
                return True
            choice = _match_choice(question, raw)
            if choice is None:
                console.print(f"[red]No choice '{raw}'.[/red] [dim]Enter a label or '?' to skip.[/dim]")
                continue
            session.answer(choice)
            return True
    finally:
        timeout.cancel()


def _match_choice(question: Question, raw: str) -> str | None:
    for choice in question.choices:
        if choice.identifier.lower() == raw.lower():
            return choice.identifier
    return None


def _display_question(question: Question, index: int, total: int, limit: int) -> None:
    body = [question.text, ""]
    body += [f"  [cyan]{c.identifier}[/cyan]) {c.text}" for c in question.choices]
    timer = f"{limit}s" if limit > 0 else "no limit"
    console.print(
        Panel(
            "\n".join(body),
            title=f"Question {index + 1}/{total}",
            subtitle=timer,
            border_style="blue",
        )
    )


def _display_feedback(result: QuestionResult | None) -> None:
    if result is None:
        return
    correct = result.question.correct_choice
    if result.is_correct:
        console.print("[green]Correct![/green]")
    elif result.selected_choice_id is None:
        console.print(f"[yellow]No answer.[/yellow] Correct: [bold]{correct.identifier}[/bold]")
    else:
        console.print(f"[red]Incorrect.[/red] Correct: [bold]{correct.identifier}[/bold]")
    if result.question.explanation:
        console.print(f"[dim]{result.question.explanation}[/dim]")


def _display_summary(summary: SessionSummary | None) -> None:
    if summary is None:
        return
    table = Table(title="Session Summary")
    table.add_column("#", justify="right")
    table.add_column("Question")
    table.add_column("Answer")
    table.add_column("Time", justify="right")
    for i, result in enumerate(summary.results, 1):
        mark = "[green]✓[/green]" if result.is_correct else "[red]✗[/red]"
        table.add_row(
            str(i),
            result.question.text[:60],
            f"{mark} {result.selected_choice_id or '-'}",
            f"{result.time_spent}s",
        )
    console.print(table)
    console.print(
        f"Score: [bold]{summary.correct_count}/{summary.total_questions}[/bold] "
        f"({summary.accuracy:.0%}), time {summary.total_time_spent}s"
    )


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
