"""
Terminal front end for a TimedDrill.

The drill runs on the asyncio event loop: the loop is the session's timer
scheduler, and lines typed by the student are read on a worker thread so
response windows and the countdown keep firing while the prompt waits.

Typed mode: enter the answer and press Enter.
Multiple choice: enter a letter (a-d) or the value itself.
Enter ``q`` to stop early.
"""

from __future__ import annotations

import asyncio
import contextlib
import string
from collections.abc import Callable

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from fluency.core.facts import Question, parse_number
from fluency.study.drill import SessionSummary, TimedDrill
from fluency.study.session import GameState, PracticeSession

QUIT_WORDS = {"q", "quit", "exit"}


class DrillView:
    """Prints session events to the console as they happen."""

    def __init__(self, drill: TimedDrill, console: Console):
        self.drill = drill
        self.console = console
        drill.session.subscribe(self.on_event)

    def on_event(self, event: str, session: PracticeSession) -> None:
        if event == "question":
            self.show_question(session.current_question, session)
        elif event == "judged":
            self.show_judgement(session)
        elif event == "timeout":
            answer = session.current_question.answer.display
            self.console.print(f"[yellow]⏱ Time's up.[/yellow] The answer was [bold]{answer}[/bold].")
        elif event == "flash_cleared":
            self.console.print("[dim]Try again.[/dim]")

    def show_question(self, question: Question, session: PracticeSession) -> None:
        remaining = self.drill.remaining_seconds
        clock = f"[dim]{remaining:4.0f}s[/dim]  " if remaining is not None else ""
        retry = " [magenta](retry)[/magenta]" if question.is_retry else ""
        self.console.print(f"\n{clock}[bold cyan]{question.text} = ?[/bold cyan]{retry}")
        if session.is_multiple_choice and question.options:
            choices = "   ".join(
                f"[bold]{letter})[/bold] {option}"
                for letter, option in zip(string.ascii_lowercase, question.options)
            )
            self.console.print(f"  {choices}")

    def show_judgement(self, session: PracticeSession) -> None:
        last = session.stats.history[-1]
        if last.is_correct and session.mode.is_assessment:
            # The next question is already on screen.
            return
        if last.is_correct:
            combo = f" [green]{session.streak}x[/green]" if session.streak > 1 else ""
            self.console.print(f"[bold green]✓ Correct[/bold green]{combo}")
        elif session.is_multiple_choice or session.mode.is_assessment:
            self.console.print(f"[red]✗[/red] {last.question} = [bold]{last.answer}[/bold]")
        else:
            self.console.print("[red]✗ Not quite[/red]")


def resolve_choice(raw: str, question: Question) -> str | None:
    """
    Map an option letter or value to the option's value.

    Returns None for anything that is not one of the shown options.
    """
    raw = raw.strip().lower()
    if len(raw) == 1 and raw in string.ascii_lowercase:
        index = string.ascii_lowercase.index(raw)
        if index < len(question.options):
            return str(question.options[index])
        return None
    if parse_number(raw) in question.options:
        return raw
    return None


def handle_line(drill: TimedDrill, line: str, console: Console | None = None) -> bool:
    """
    Feed one line of input to the drill.

    Lines that cannot be judged are dropped; with a console, the student
    gets a hint instead of silence.

    Returns:
        False when the student asked to stop
    """
    text = line.strip()
    if text.lower() in QUIT_WORDS:
        drill.stop()
        return False

    session = drill.session
    question = session.current_question
    if not text or question is None or not session.running:
        return True

    hint = None
    if session.state is not GameState.WAITING or session.is_wrong:
        hint = "Wait for the next question."
    elif session.is_multiple_choice:
        choice = resolve_choice(text, question)
        if choice is None:
            last = string.ascii_lowercase[len(question.options) - 1]
            hint = f"Pick a-{last}."
        else:
            session.select_option(choice)
    elif session.enter_input(text) is None and session.state is GameState.WAITING:
        if not (text.isascii() and text.isdigit()):
            hint = "Numbers only."
        else:
            hint = f"Enter the full answer ({question.expected_length} digits)."

    if hint and console is not None:
        console.print(f"[dim]{hint}[/dim]")
    return True


async def run_drill(
    drill: TimedDrill,
    console: Console,
    read_line: Callable[[], str] | None = None,
    pending: asyncio.Future | None = None,
) -> SessionSummary:
    """
    Run a drill to completion in the terminal.

    Args:
        drill: Drill built with the running loop as its scheduler
        console: Rich console for output
        read_line: Blocking line reader (defaults to console.input)
        pending: A read already in flight; its line is the first one handled

    Returns:
        The drill's SessionSummary
    """
    read_line = read_line or (lambda: console.input(""))
    finished = asyncio.Event()
    previous = drill.on_complete

    def on_complete(summary: SessionSummary) -> None:
        finished.set()
        if previous is not None:
            previous(summary)

    drill.on_complete = on_complete
    DrillView(drill, console)
    drill.start()

    done_waiter = asyncio.ensure_future(finished.wait())
    try:
        while not finished.is_set():
            reader = pending or asyncio.ensure_future(asyncio.to_thread(read_line))
            pending = None
            await asyncio.wait({reader, done_waiter}, return_when=asyncio.FIRST_COMPLETED)
            if not reader.done():
                console.print("\n[bold yellow]Session over![/bold yellow] Press Enter to see your results.")
                with contextlib.suppress(EOFError):
                    await reader
                break
            try:
                line = reader.result()
            except EOFError:
                drill.stop()
                break
            if not handle_line(drill, line, console):
                break
    finally:
        if not done_waiter.done():
            done_waiter.cancel()

    return drill.summary or drill.stop()


def render_summary(console: Console, summary: SessionSummary, session: PracticeSession) -> None:
    title = "Assessment Complete" if summary.mode.is_assessment else "Session Complete"
    accuracy = round(summary.score / summary.total * 100) if summary.total else 0
    console.print(
        Panel(
            f"[bold]{summary.score}[/bold] correct out of {summary.total}  ({accuracy}%)\n"
            f"Wrong attempts: {summary.wrong_count}\n"
            f"Mode: {summary.mode.value}  •  Input: {summary.input_method.value}",
            title=f"[bold cyan]{title}[/bold cyan]",
            border_style="cyan",
        )
    )

    if summary.mode.is_assessment and session.stats.history:
        table = Table(title="Assessment Answers", show_header=True)
        table.add_column("#", justify="right", style="dim")
        table.add_column("Question", style="cyan")
        table.add_column("Answer", justify="right")
        table.add_column("Yours", justify="right")
        table.add_column("", justify="center")
        for i, entry in enumerate(session.stats.history, 1):
            mark = "[green]✓[/green]" if entry.is_correct else "[red]✗[/red]"
            table.add_row(str(i), entry.question, entry.answer, entry.user_answer or "-", mark)
        console.print(table)
