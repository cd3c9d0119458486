"""
Practice Session State Machine.

States:
    waiting   - question shown, awaiting input (response timer armed)
    correct   - accepted, brief feedback before the next question
    revealed  - response window ran out, correct answer shown

Transitions:
    waiting --correct answer--> correct --delay--> waiting (next question)
    waiting --timeout---------> revealed --delay--> waiting (next question)
    waiting --wrong answer----> waiting (error flash; see below)

A wrong answer depends on mode and input method:
- assessment: flash, then advance; never retried
- practice, multiple choice: queue a retry, advance after a longer pause
- practice, typed: flash and clear the input; the question stays live

Every timer carries the generation it was armed in. Each transition bumps
the generation, so a timer armed for an earlier question is dropped when
it fires instead of acting on the current one.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from loguru import logger

from fluency.core.errors import SessionStateError
from fluency.core.facts import GameMode, InputMethod, Question, parse_number
from fluency.core.mastery import FactMastery, MasteryStore

from .generator import QuestionGenerator
from .timers import Scheduler, TimerHandle


class GameState(str, Enum):
    """Display state of the current question."""

    WAITING = "waiting"
    CORRECT = "correct"
    REVEALED = "revealed"


@dataclass
class HistoryEntry:
    """One judged answer."""

    question: str
    answer: str
    user_answer: str
    is_correct: bool
    timed_out: bool = False
    is_retry: bool = False


@dataclass
class SessionStats:
    """Counters for one session; reset at every start."""

    correct: int = 0
    wrong_attempts: int = 0
    total: int = 0
    start_time: datetime = field(default_factory=datetime.now)
    end_time: datetime | None = None
    history: list[HistoryEntry] = field(default_factory=list)

    @property
    def accuracy(self) -> float:
        attempts = self.correct + self.wrong_attempts
        return self.correct / attempts if attempts else 0.0


@dataclass
class Judgement:
    """Result of judging one submitted answer."""

    question: Question
    user_answer: str
    correct: bool
    retry_queued: bool = False

    @property
    def correct_answer(self) -> str:
        return self.question.answer.display


@dataclass
class SessionTiming:
    """Delays and response windows, in seconds."""

    timer_enabled: bool = True
    mc_response_window: float = 3.0
    typed_response_window: float = 5.0
    correct_delay: float = 0.5
    wrong_flash: float = 0.5
    mc_wrong_delay: float = 2.0
    reveal_delay: float = 2.0

    @classmethod
    def from_settings(cls, settings) -> SessionTiming:
        return cls(
            timer_enabled=settings.timer_enabled,
            mc_response_window=settings.mc_response_window_seconds,
            typed_response_window=settings.typed_response_window_seconds,
            correct_delay=settings.correct_advance_delay_seconds,
            wrong_flash=settings.wrong_flash_seconds,
            mc_wrong_delay=settings.mc_wrong_advance_delay_seconds,
            reveal_delay=settings.reveal_advance_delay_seconds,
        )

    def response_window(self, input_method: InputMethod) -> float:
        if input_method is InputMethod.MULTIPLE_CHOICE:
            return self.mc_response_window
        return self.typed_response_window


SessionListener = Callable[[str, "PracticeSession"], Any]


class PracticeSession:
    """
    Drives one practice session: current question, feedback state, stats,
    streak, and the timers that advance between questions.

    Listeners registered with ``subscribe`` are called with an event name
    ("question", "judged", "timeout", "flash_cleared", "ended") after the
    session has changed.
    """

    def __init__(
        self,
        generator: QuestionGenerator,
        scheduler: Scheduler,
        input_method: InputMethod = InputMethod.TYPED,
        timing: SessionTiming | None = None,
    ):
        """
        Initialize the session.

        Args:
            generator: Question source (owns the retry/cluster queues)
            scheduler: Timer source (an asyncio loop or ManualScheduler)
            input_method: Typed answers or multiple choice
            timing: SessionTiming or None for defaults
        """
        self.generator = generator
        self.scheduler = scheduler
        self.input_method = input_method
        self.timing = timing or SessionTiming()

        self.state = GameState.WAITING
        self.current_question: Question | None = None
        self.user_input = ""
        self.streak = 0
        self.is_wrong = False
        self.stats = SessionStats()
        self.running = False

        self._generation = 0
        self._timers: list[TimerHandle] = []
        self._response_timer: TimerHandle | None = None
        self._listeners: list[SessionListener] = []

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def mode(self) -> GameMode:
        return self.generator.mode

    @property
    def mastery(self) -> MasteryStore:
        return self.generator.mastery

    @property
    def is_multiple_choice(self) -> bool:
        return self.input_method is InputMethod.MULTIPLE_CHOICE

    @property
    def mastery_updates(self) -> FactMastery:
        """Mastery values changed during this session."""
        return self.mastery.delta

    @property
    def generation(self) -> int:
        return self._generation

    def subscribe(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> Question:
        """Reset all session state and show the first question."""
        self._cancel_timers()
        self._generation += 1
        self.generator.reset()
        self.mastery.reset_delta()
        self.stats = SessionStats()
        self.streak = 0
        self.is_wrong = False
        self.user_input = ""
        self.running = True
        logger.info(
            f"Session started: mode={self.mode.value} input={self.input_method.value} "
            f"selection={self.generator.selection!r}"
        )
        self._advance()
        return self.current_question

    def end(self) -> SessionStats:
        """Stop the session: clear every timer and drop queued retries/clusters."""
        if not self.running:
            return self.stats
        self.running = False
        self._cancel_timers()
        self._generation += 1
        self.generator.reset()
        self.stats.end_time = datetime.now()
        logger.info(
            f"Session ended: {self.stats.correct}/{self.stats.total} correct, "
            f"{self.stats.wrong_attempts} wrong attempts"
        )
        self._notify("ended")
        return self.stats

    # =========================================================================
    # Input
    # =========================================================================

    def enter_input(self, value: str) -> Judgement | None:
        """
        Update the answer field.

        Multiple choice submits immediately, but only for one of the shown
        options. Typed input submits once it is ASCII digits and either
        correct or as long as the expected answer; anything else just sits
        in the field.
        """
        if not self._accepting_input():
            return None

        question = self.current_question
        if self.is_multiple_choice:
            if parse_number(value) not in question.options:
                return None
            self.user_input = value
            return self.submit(value)

        self.user_input = value
        guess = value.strip()
        if not (guess.isascii() and guess.isdigit()):
            return None

        if question.is_correct(guess) or len(guess) >= question.expected_length:
            return self.submit(guess)
        return None

    def select_option(self, option: int | str) -> Judgement | None:
        """Pick a multiple-choice option."""
        return self.enter_input(str(option))

    def submit(self, raw: str) -> Judgement | None:
        """
        Judge an answer for the current question.

        Raises:
            SessionStateError: The session was never started
        """
        if self.current_question is None:
            raise SessionStateError("Cannot submit an answer before the session starts")
        if not self._accepting_input():
            return None

        question = self.current_question
        correct = question.is_correct(raw)
        self.mastery.update(question.fact_key, correct)
        self.stats.history.append(
            HistoryEntry(
                question=question.text,
                answer=question.answer.display,
                user_answer=raw,
                is_correct=correct,
                is_retry=question.is_retry,
            )
        )
        logger.debug(f"Judged {question.text} = {raw!r}: {'correct' if correct else 'wrong'}")

        if correct:
            judgement = self._accept(question, raw)
        elif self.mode.is_assessment:
            judgement = self._reject_assessment(question, raw)
        elif self.is_multiple_choice:
            judgement = self._reject_choice(question, raw)
        else:
            judgement = self._reject_typed(question, raw)

        self._notify("judged")
        return judgement

    def _accepting_input(self) -> bool:
        return (
            self.running
            and self.state is GameState.WAITING
            and self.current_question is not None
            and not self.is_wrong
        )

    # =========================================================================
    # Transitions
    # =========================================================================

    def _accept(self, question: Question, raw: str) -> Judgement:
        self._leave_waiting()
        self.state = GameState.CORRECT
        self.streak += 1
        self.stats.correct += 1
        self.stats.total += 1

        if self.mode.is_assessment:
            self._advance()
        else:
            self._schedule(self.timing.correct_delay, self._advance)
        return Judgement(question, raw, correct=True)

    def _reject_assessment(self, question: Question, raw: str) -> Judgement:
        self._leave_waiting()
        self.streak = 0
        self.is_wrong = True
        self.stats.wrong_attempts += 1
        self.stats.total += 1
        self._schedule(self.timing.wrong_flash, self._advance)
        return Judgement(question, raw, correct=False)

    def _reject_choice(self, question: Question, raw: str) -> Judgement:
        self._leave_waiting()
        self.streak = 0
        self.is_wrong = True
        self.stats.wrong_attempts += 1
        self.generator.queue_retry(question)
        self._schedule(self.timing.mc_wrong_delay, self._advance)
        return Judgement(question, raw, correct=False, retry_queued=True)

    def _reject_typed(self, question: Question, raw: str) -> Judgement:
        # The question stays live: the response timer keeps running.
        self.streak = 0
        self.is_wrong = True
        self.stats.wrong_attempts += 1
        self._schedule(self.timing.wrong_flash, self._clear_flash)
        return Judgement(question, raw, correct=False)

    def _clear_flash(self) -> None:
        self.is_wrong = False
        self.user_input = ""
        self._notify("flash_cleared")

    def _on_timeout(self) -> None:
        question = self.current_question
        if question is None or self.state is not GameState.WAITING:
            return

        self._leave_waiting()
        self.mastery.update(question.fact_key, False)
        self.state = GameState.REVEALED
        self.is_wrong = False
        self.streak = 0
        self.stats.wrong_attempts += 1
        self.stats.total += 1
        self.stats.history.append(
            HistoryEntry(
                question=question.text,
                answer=question.answer.display,
                user_answer=self.user_input,
                is_correct=False,
                timed_out=True,
                is_retry=question.is_retry,
            )
        )
        if self.is_multiple_choice:
            self.generator.queue_retry(question)
        logger.debug(f"Timed out on {question.text}")

        self._schedule(self.timing.reveal_delay, self._advance)
        self._notify("timeout")

    def _advance(self) -> None:
        if not self.running:
            return
        self._cancel_timers()
        self._generation += 1
        self.user_input = ""
        self.is_wrong = False
        self.state = GameState.WAITING
        self.current_question = self.generator.next_question()
        self._arm_response_timer()
        self._notify("question")

    # =========================================================================
    # Timers
    # =========================================================================

    def _arm_response_timer(self) -> None:
        # Assessment is a fixed-duration block, not per-question timed.
        if not self.timing.timer_enabled or self.mode.is_assessment:
            return
        window = self.timing.response_window(self.input_method)
        self._response_timer = self._schedule(window, self._on_timeout)

    def _leave_waiting(self) -> None:
        """Disarm the response timer and invalidate timers armed so far."""
        if self._response_timer is not None:
            self._response_timer.cancel()
            self._response_timer = None
        self._generation += 1

    def _schedule(self, delay: float, action: Callable[[], None]) -> TimerHandle:
        handle = self.scheduler.call_later(delay, self._fire, self._generation, action)
        self._timers.append(handle)
        return handle

    def _fire(self, generation: int, action: Callable[[], None]) -> None:
        if generation != self._generation or not self.running:
            logger.debug(f"Dropped stale timer ({action.__name__}, generation {generation})")
            return
        action()

    def _cancel_timers(self) -> None:
        for handle in self._timers:
            handle.cancel()
        self._timers.clear()
        self._response_timer = None

    def _notify(self, event: str) -> None:
        for listener in list(self._listeners):
            listener(event, self)
