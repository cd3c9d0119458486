"""
Timed drill: the fixed-duration block around a practice session.

The session state machine never ends by itself. A drill ends it when the
countdown runs out, when an assessment reaches its question cap, or when
the student stops, and then produces the summary that gets persisted.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from loguru import logger

from fluency.core.facts import GameMode, InputMethod
from fluency.core.mastery import FactMastery, MasteryStore

from .assessment import get_feedback
from .generator import GeneratorConfig, QuestionGenerator
from .session import PracticeSession, SessionStats, SessionTiming
from .timers import TimerHandle


@dataclass
class SessionSummary:
    """What gets persisted for a finished session."""

    score: int
    total: int
    mode: GameMode
    wrong_count: int
    input_method: InputMethod
    selected_groups: list[str] = field(default_factory=list)
    assessment_tier: str | None = None
    mastery_delta: FactMastery = field(default_factory=dict)
    end_reason: str = "stopped"

    @classmethod
    def from_session(cls, session: PracticeSession, end_reason: str = "stopped") -> SessionSummary:
        stats = session.stats
        tier = get_feedback(stats.correct).tier if session.mode.is_assessment else None
        return cls(
            score=stats.correct,
            total=stats.total,
            mode=session.mode,
            wrong_count=stats.wrong_attempts,
            input_method=session.input_method,
            selected_groups=[g.value for g in session.generator.selection.groups],
            assessment_tier=tier,
            mastery_delta=session.mastery_updates,
            end_reason=end_reason,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["mode"] = self.mode.value
        data["input_method"] = self.input_method.value
        return data


class TimedDrill:
    """
    Runs a PracticeSession as a fixed-duration block.

    End conditions:
    - countdown expired (only when timers are enabled)
    - assessment answered ``question_cap`` questions
    - ``stop()`` called by the front end
    """

    def __init__(
        self,
        session: PracticeSession,
        duration_seconds: float = 60,
        question_cap: int = 60,
        on_complete: Callable[[SessionSummary], Any] | None = None,
    ):
        self.session = session
        self.duration_seconds = duration_seconds
        self.question_cap = question_cap
        self.on_complete = on_complete

        self.summary: SessionSummary | None = None
        self.started_at: float | None = None
        self.ended_at: datetime | None = None
        self._countdown: TimerHandle | None = None
        session.subscribe(self._on_session_event)

    @property
    def completed(self) -> bool:
        return self.summary is not None

    @property
    def stats(self) -> SessionStats:
        return self.session.stats

    @property
    def timed(self) -> bool:
        return self.session.timing.timer_enabled

    @property
    def remaining_seconds(self) -> float | None:
        """Seconds left on the countdown, or None for an untimed drill."""
        if not self.timed or self.started_at is None:
            return None
        if self.completed:
            return 0.0
        elapsed = self.session.scheduler.time() - self.started_at
        return max(0.0, self.duration_seconds - elapsed)

    def start(self) -> None:
        self.summary = None
        self.started_at = self.session.scheduler.time()
        self.session.start()
        if self.timed:
            self._countdown = self.session.scheduler.call_later(self.duration_seconds, self._time_up)

    def stop(self) -> SessionSummary:
        return self._complete("stopped")

    def _time_up(self) -> None:
        if not self.completed:
            self._complete("time")

    def _on_session_event(self, event: str, session: PracticeSession) -> None:
        if event not in ("judged", "timeout") or self.completed:
            return
        if session.mode is GameMode.ASSESSMENT and session.stats.total >= self.question_cap:
            self._complete("question_cap")

    def _complete(self, reason: str) -> SessionSummary:
        if self.summary is not None:
            return self.summary
        if self._countdown is not None:
            self._countdown.cancel()
            self._countdown = None

        self.session.end()
        self.ended_at = datetime.now()
        self.summary = SessionSummary.from_session(self.session, end_reason=reason)
        logger.info(f"Drill complete ({reason}): {self.summary.score}/{self.summary.total}")

        if self.on_complete is not None:
            self.on_complete(self.summary)
        return self.summary


def build_drill(
    settings,
    scheduler,
    mode: GameMode,
    selection,
    input_method: InputMethod = InputMethod.TYPED,
    mastery=None,
    timer_enabled: bool | None = None,
    rng=None,
    on_complete: Callable[[SessionSummary], Any] | None = None,
) -> TimedDrill:
    """
    Wire a generator, session and drill from settings.

    Args:
        settings: config.Settings
        scheduler: asyncio loop or ManualScheduler
        mode: Drill mode
        selection: FactSelection
        input_method: Typed or multiple choice
        mastery: Seeded MasteryStore (a fresh empty store when None)
        timer_enabled: Override settings.timer_enabled
        rng: Random source for the generator
        on_complete: Called once with the SessionSummary
    """
    if mastery is None:
        mastery = MasteryStore(
            reward=settings.mastery_reward,
            penalty=settings.mastery_penalty,
            weight_floor=settings.mastery_weight_floor,
        )
    timing = SessionTiming.from_settings(settings)
    if timer_enabled is not None:
        timing.timer_enabled = timer_enabled

    generator = QuestionGenerator(
        mode,
        selection,
        mastery,
        config=GeneratorConfig.from_settings(settings),
        rng=rng,
    )
    session = PracticeSession(generator, scheduler, input_method=input_method, timing=timing)
    return TimedDrill(
        session,
        duration_seconds=settings.session_duration_seconds,
        question_cap=settings.assessment_question_cap,
        on_complete=on_complete,
    )
