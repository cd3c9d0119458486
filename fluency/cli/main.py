"""
Typer CLI for the fact-fluency trainer.

Commands:
    fluency login STUDENT_ID          - Create or refresh a student
    fluency practice STUDENT_ID       - Run a one-minute drill
    fluency dashboard                 - All students, most recent first
    fluency history STUDENT_ID        - A student's past sessions
    fluency feedback SCORE            - Assessment tier for a score
    fluency info                      - Effective configuration

Usage:
    fluency practice maya --groups 2-4,5-7
    fluency practice maya --mode tables --tables 3,6 --choice
    fluency practice maya --mode assessment --force
"""

from __future__ import annotations

import os
import sys

# Fix Windows encoding issues for Unicode characters (×, ÷, box drawing)
if sys.platform == "win32":
    os.environ.setdefault("PYTHONIOENCODING", "utf-8")
    if hasattr(sys.stdout, "reconfigure"):
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    if hasattr(sys.stderr, "reconfigure"):
        sys.stderr.reconfigure(encoding="utf-8", errors="replace")

import asyncio
import contextlib
from pathlib import Path

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from config import Settings, get_settings
from fluency import __version__
from fluency.core.errors import FluencyError, InvalidSelectionError
from fluency.core.facts import FactSelection, GameMode, InputMethod
from fluency.db import check_store_health, create_store
from fluency.db.records import StudentRecord
from fluency.progress import LoginResult, ProgressAggregator, SessionOutcome
from fluency.study.assessment import TierFeedback, get_feedback
from fluency.study.drill import SessionSummary, build_drill

from .runner import render_summary, run_drill

app = typer.Typer(
    help="fact-fluency: timed multiplication and division practice",
    no_args_is_help=True,
)

console = Console()


# ========================================
# Context Builder (Dependency Injection)
# ========================================


class CLIContext:
    """
    Dependency injection container for CLI commands.

    The store is opened lazily so commands like ``feedback`` never touch it.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self._aggregator: ProgressAggregator | None = None

    @property
    def aggregator(self) -> ProgressAggregator:
        if self._aggregator is None:
            try:
                store = create_store(self.settings)
            except FluencyError as e:
                logger.error(f"Progress store unavailable: {e}")
                rprint(f"[red]✗[/red] Progress store unavailable: {e}")
                raise typer.Exit(code=1)
            self._aggregator = ProgressAggregator(store, self.settings)
        return self._aggregator


def _build_context() -> CLIContext:
    return CLIContext()


def _split(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


# ========================================
# Rendering helpers
# ========================================


def _student_panel(student: StudentRecord, all_time_high: int | None, daily_count: int, limit: int) -> Panel:
    best = str(all_time_high) if all_time_high is not None else "-"
    return Panel(
        f"Level [bold]{student.level}[/bold]  •  {student.xp} XP\n"
        f"Day streak: [bold orange1]{student.streak}[/bold orange1]\n"
        f"All-time high: {best}\n"
        f"Sessions today: {daily_count}/{limit}",
        title=f"[bold cyan]{student.id}[/bold cyan]",
        border_style="cyan",
    )


def _feedback_panel(feedback: TierFeedback, score: int) -> Panel:
    body = "\n".join(f"• {line}" for line in feedback.description_lines)
    return Panel(
        f"[bold]{feedback.tier}[/bold]  [dim]({feedback.range})[/dim]\n\n"
        f"{body}\n\n"
        f"[cyan]Focus:[/cyan] {feedback.focus}",
        title=f"[bold]Score: {score}[/bold]",
        border_style="magenta",
    )


def _render_outcome(outcome: SessionOutcome | None) -> None:
    if outcome is None:
        rprint("[yellow]⚠[/yellow] Progress could not be saved this time (see logs)")
        return
    rprint(f"\n[green]+{outcome.earned_xp} XP[/green]  →  {outcome.xp} XP, level {outcome.level}")
    if outcome.leveled_up:
        rprint(f"[bold green]Level up! You reached level {outcome.level}.[/bold green]")
    if outcome.streak_updated:
        rprint(f"[bold orange1]🔥 Day streak: {outcome.streak}[/bold orange1]")
    else:
        rprint(f"Day streak: {outcome.streak}  [dim]({outcome.daily.count} sessions today)[/dim]")
    if outcome.all_time_high is not None:
        rprint(f"All-time high: {outcome.all_time_high}")


# ========================================
# STUDENT COMMANDS
# ========================================


@app.command("login")
def login(student_id: str = typer.Argument(..., help="Student identifier")) -> None:
    """Create or refresh a student and show their progress."""
    ctx = _build_context()
    try:
        result = ctx.aggregator.login(student_id)
    except InvalidSelectionError as e:
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)

    if result.degraded:
        rprint("[yellow]⚠[/yellow] Progress store unavailable, continuing with defaults")
    console.print(
        _student_panel(result.student, result.all_time_high, result.daily.count, result.daily.limit)
    )


@app.command("practice")
def practice(
    student_id: str = typer.Argument(..., help="Student identifier"),
    mode: GameMode = typer.Option(GameMode.MULTIPLICATION, "--mode", "-m", help="Drill mode"),
    groups: str = typer.Option(None, "--groups", "-g", help="Factor groups, e.g. 2-4,5-7"),
    tables: str = typer.Option(None, "--tables", "-t", help="Tables for tables mode, e.g. 3,6"),
    choice: bool = typer.Option(False, "--choice/--typed", help="Multiple choice instead of typing"),
    no_timer: bool = typer.Option(False, "--no-timer", help="Disable response windows and countdown"),
    force: bool = typer.Option(False, "--force", help="Skip the daily session limit"),
) -> None:
    """
    Run a one-minute drill in the terminal.

    Examples:
        fluency practice maya                          # Multiplication, all groups
        fluency practice maya -m division -g 2-4       # Division, factors 2-4
        fluency practice maya -m tables -t 7 --choice  # 7 times table, multiple choice
        fluency practice maya -m assessment            # Scored one-minute block
    """
    try:
        selection = FactSelection.parse(_split(groups), _split(tables))
    except InvalidSelectionError as e:
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)

    ctx = _build_context()
    input_method = InputMethod.MULTIPLE_CHOICE if choice else InputMethod.TYPED
    try:
        summary, outcome = asyncio.run(
            _practice_flow(ctx, student_id.strip(), mode, selection, input_method, not no_timer, force)
        )
    except InvalidSelectionError as e:
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)

    if summary is None:
        raise typer.Exit(code=1)
    if mode.is_assessment:
        console.print(_feedback_panel(get_feedback(summary.score), summary.score))
    _render_outcome(outcome)


async def _load_student(
    ctx: CLIContext, student_id: str
) -> tuple[LoginResult | None, asyncio.Future | None]:
    """
    Log the student in, giving up after ``load_timeout_seconds``.

    Once ``skip_prompt_after_seconds`` has passed the student may press
    Enter to practice with a fresh record instead of waiting.

    Returns:
        (login result or None, the still-pending Enter read or None)
    """
    settings = ctx.settings
    loop = asyncio.get_running_loop()
    deadline = loop.time() + settings.load_timeout_seconds
    task = asyncio.ensure_future(asyncio.to_thread(ctx.aggregator.login, student_id))

    done, _ = await asyncio.wait({task}, timeout=settings.skip_prompt_after_seconds)
    reader = None
    if not done:
        rprint("[dim]Still loading progress... press Enter to start with a fresh record.[/dim]")
        reader = asyncio.ensure_future(asyncio.to_thread(console.input, ""))
        done, _ = await asyncio.wait(
            {task, reader}, timeout=max(0.0, deadline - loop.time()), return_when=asyncio.FIRST_COMPLETED
        )
        if task not in done and reader in done:
            if reader.exception() is None:
                logger.warning(f"Loading {student_id} skipped by the student")
                rprint("[yellow]⚠[/yellow] Skipped loading, practicing with a fresh record")
                return None, None
            # No more input: keep waiting for the load.
            reader = None
            done, _ = await asyncio.wait({task}, timeout=max(0.0, deadline - loop.time()))

    if task not in done:
        logger.warning(f"Loading {student_id} timed out after {settings.load_timeout_seconds}s")
        rprint("[yellow]⚠[/yellow] Loading progress timed out, practicing with a fresh record")
        return None, reader
    return task.result(), reader


async def _practice_flow(
    ctx: CLIContext,
    student_id: str,
    mode: GameMode,
    selection: FactSelection,
    input_method: InputMethod,
    timer_enabled: bool,
    force: bool,
) -> tuple[SessionSummary | None, SessionOutcome | None]:
    settings = ctx.settings
    aggregator = ctx.aggregator

    login_result, pending = await _load_student(ctx, student_id)
    student = login_result.student if login_result and not login_result.degraded else None

    if login_result is not None:
        daily = login_result.daily
        if not daily.allowed and not force:
            rprint(
                f"[yellow]Daily limit reached[/yellow] ({daily.count}/{daily.limit} sessions today). "
                "Come back tomorrow, or pass --force."
            )
            if pending is not None:
                rprint("[dim]Press Enter to exit.[/dim]")
                with contextlib.suppress(EOFError):
                    await pending
            return None, None
        console.print(
            _student_panel(login_result.student, login_result.all_time_high, daily.count, daily.limit)
        )

    drill = build_drill(
        settings,
        asyncio.get_running_loop(),
        mode,
        selection,
        input_method=input_method,
        mastery=aggregator.mastery_store_for(student),
        timer_enabled=timer_enabled,
    )
    rprint(
        f"\n[bold]{mode.value.title()}[/bold] • {settings.session_duration_seconds}s"
        f"{'' if drill.timed else ' (untimed)'} • type [bold]q[/bold] to stop"
    )

    summary = await run_drill(drill, console, pending=pending)
    render_summary(console, summary, drill.session)

    outcome = await asyncio.to_thread(aggregator.finish_session, student_id, summary)
    return summary, outcome


@app.command("dashboard")
def dashboard() -> None:
    """Show every student, most recently seen first."""
    ctx = _build_context()
    rows = ctx.aggregator.dashboard()
    if not rows:
        rprint("[dim]No students yet.[/dim]")
        return

    table = Table(title=f"Students ({len(rows)})", show_header=True)
    table.add_column("Student", style="cyan")
    table.add_column("Last Seen", style="dim")
    table.add_column("Level", justify="right")
    table.add_column("XP", justify="right")
    table.add_column("Streak", justify="right", style="orange1")
    table.add_column("Sessions", justify="right")
    table.add_column("Avg", justify="right")
    table.add_column("Best", justify="right", style="green")
    table.add_column("Last Session")

    for row in rows:
        last = row.last_session
        last_text = f"{last.mode} {last.score}/{last.total}" if last else "-"
        table.add_row(
            row.student_id,
            row.last_seen.strftime("%Y-%m-%d %H:%M"),
            str(row.level),
            str(row.xp),
            str(row.streak),
            str(row.session_count),
            f"{row.average_score:.1f}" if row.average_score is not None else "-",
            str(row.best_score) if row.best_score is not None else "-",
            last_text,
        )

    console.print(table)


@app.command("history")
def history(student_id: str = typer.Argument(..., help="Student identifier")) -> None:
    """Show a student's sessions, newest first."""
    ctx = _build_context()
    rows = ctx.aggregator.history(student_id)
    if not rows:
        rprint(f"[dim]No sessions for {student_id}.[/dim]")
        return

    table = Table(title=f"History: {student_id}", show_header=True)
    table.add_column("Date", style="dim")
    table.add_column("Mode", style="cyan")
    table.add_column("Input")
    table.add_column("Score", justify="right")
    table.add_column("Accuracy", justify="right")
    table.add_column("Tier")

    for row in rows:
        s = row.session
        table.add_row(
            row.local_day.isoformat(),
            s.mode,
            "choice" if s.is_multiple_choice else "typed",
            f"{s.score}/{s.total}",
            f"{row.accuracy}%",
            s.assessment_tier or "-",
        )

    console.print(table)


@app.command("feedback")
def feedback(score: int = typer.Argument(..., min=0, help="Correct answers in a one-minute assessment")) -> None:
    """Show the assessment tier for a score."""
    console.print(_feedback_panel(get_feedback(score), score))


# ========================================
# INFO COMMANDS
# ========================================


@app.command("info")
def show_info() -> None:
    """Show effective configuration."""
    settings = get_settings()

    table = Table(title=f"fact-fluency v{__version__} Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Progress Backend", settings.progress_backend)
    if settings.progress_backend == "json":
        table.add_row("JSON Store", settings.json_store_path)
    else:
        table.add_row("Database URL", settings.database_url)
    status, error = check_store_health(settings)
    health = "[green]ok[/green]" if status == "ok" else f"[red]error[/red] {escape(error or '')}"
    table.add_row("Store Health", health)
    table.add_row("Timezone", settings.timezone)
    table.add_row("Daily Limit / Goal", f"{settings.daily_session_limit} / {settings.daily_session_goal}")
    table.add_row("Session Length", f"{settings.session_duration_seconds}s")
    table.add_row("Assessment Cap", str(settings.assessment_question_cap))
    table.add_row("Timers", str(settings.timer_enabled))
    table.add_row(
        "Response Windows",
        f"{settings.mc_response_window_seconds}s choice / {settings.typed_response_window_seconds}s typed",
    )
    table.add_row("Fact Clusters", str(settings.enable_fact_clusters))
    table.add_row("XP", f"{settings.xp_per_correct}/correct, {settings.xp_per_level}/level")
    table.add_row("Log Level", settings.log_level)

    console.print(table)


def _configure_logging(settings: Settings) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level="WARNING",
        format="<level>{message}</level>",
    )
    if settings.log_file:
        Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            settings.log_file,
            level=settings.log_level,
            rotation="1 MB",
            retention=5,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}",
        )


def main() -> None:
    """Entry point for the CLI."""
    _configure_logging(get_settings())
    app()


if __name__ == "__main__":
    main()
