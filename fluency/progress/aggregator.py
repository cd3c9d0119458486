"""
Progress Aggregator.

Owns everything that outlives a single session:
- Login (create or refresh a student record)
- Daily session limit in the configured timezone
- XP, level and daily streak after each finished session
- Dashboard and per-student history views

Store failures never stop practice. They are logged and the caller gets
defaults (empty mastery, zero XP, an allowed daily check) or None for a
save that was lost.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

from loguru import logger

from fluency.core.errors import InvalidSelectionError, ProgressStoreError
from fluency.core.mastery import MasteryStore
from fluency.db.records import SessionRecord, StudentRecord, SummaryLike, as_utc, utcnow

from .streak import advance_streak, count_on_day, level_for, local_date


@dataclass
class DailyStatus:
    """Sessions used today against the daily limit."""

    count: int
    limit: int

    @property
    def allowed(self) -> bool:
        return self.count < self.limit

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)


@dataclass
class LoginResult:
    student: StudentRecord
    all_time_high: int | None
    daily: DailyStatus
    degraded: bool = False


@dataclass
class SessionOutcome:
    """What changed after a session was saved."""

    session: SessionRecord
    earned_xp: int
    xp: int
    level: int
    streak: int
    streak_updated: bool
    all_time_high: int | None
    daily: DailyStatus
    leveled_up: bool = False


@dataclass
class DashboardRow:
    student_id: str
    last_seen: datetime
    login_count: int
    xp: int
    level: int
    streak: int
    session_count: int
    average_score: float | None
    best_score: int | None
    last_session: SessionRecord | None = None


@dataclass
class HistoryRow:
    session: SessionRecord
    local_day: date
    accuracy: int = field(init=False)

    def __post_init__(self) -> None:
        self.accuracy = self.session.accuracy


class ProgressAggregator:
    """
    High-level progress operations over a ProgressStore.

    Used by the CLI before and after each drill.
    """

    def __init__(self, store, settings):
        """
        Initialize the aggregator.

        Args:
            store: ProgressStore backend (SQL or JSON)
            settings: config.Settings (timezone, limits, XP rates)
        """
        self.store = store
        self.settings = settings

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def today(self, now: datetime | None = None) -> date:
        return local_date(now or utcnow(), self.settings.timezone)

    def daily_status(self, student: StudentRecord | None, now: datetime | None = None) -> DailyStatus:
        limit = self.settings.daily_session_limit
        if student is None:
            return DailyStatus(count=0, limit=limit)
        count = count_on_day(
            (s.timestamp for s in student.sessions), self.today(now), self.settings.timezone
        )
        return DailyStatus(count=count, limit=limit)

    def mastery_store_for(self, student: StudentRecord | None) -> MasteryStore:
        """Seed a session mastery store from a student's persisted mastery."""
        return MasteryStore(
            student.fact_mastery if student else None,
            reward=self.settings.mastery_reward,
            penalty=self.settings.mastery_penalty,
            weight_floor=self.settings.mastery_weight_floor,
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def load_student(self, student_id: str) -> StudentRecord | None:
        """Fetch a student; None when absent or when the store fails."""
        try:
            return self.store.get_student(student_id)
        except ProgressStoreError as e:
            logger.error(f"Could not load student {student_id}, using defaults: {e}")
            return None

    def login(self, student_id: str, now: datetime | None = None) -> LoginResult:
        """
        Create or refresh a student record.

        Raises:
            InvalidSelectionError: If the id is blank
        """
        student_id = (student_id or "").strip()
        if not student_id:
            raise InvalidSelectionError("Invalid Student ID")

        now = as_utc(now or utcnow())
        try:
            student = self.store.upsert_student(student_id, now)
        except ProgressStoreError as e:
            logger.error(f"Login for {student_id} not saved: {e}")
            student = StudentRecord.new(student_id, now)
            return LoginResult(student, None, self.daily_status(None, now), degraded=True)

        logger.info(f"Student {student_id} logged in (login #{student.login_count})")
        return LoginResult(student, student.best_score, self.daily_status(student, now))

    def check_daily(self, student_id: str, now: datetime | None = None) -> DailyStatus:
        """Sessions completed today; unknown students are always allowed."""
        if not student_id:
            return self.daily_status(None, now)
        return self.daily_status(self.load_student(student_id), now)

    def finish_session(
        self, student_id: str, summary: SummaryLike, now: datetime | None = None
    ) -> SessionOutcome | None:
        """
        Persist a finished session and roll up XP, level and streak.

        Args:
            student_id: Student who played
            summary: SessionSummary from the drill
            now: Completion time (defaults to the current time)

        Returns:
            SessionOutcome, or None if the save failed
        """
        now = as_utc(now or utcnow())
        try:
            record = self.store.append_session(student_id, summary, now)
            student = self.store.get_student(student_id)
            if student is None:
                raise ProgressStoreError(
                    f"Student {student_id} missing after save", student_id=student_id
                )

            earned = summary.score * self.settings.xp_per_correct
            xp = student.xp + earned
            level = level_for(xp, self.settings.xp_per_level)
            daily = self.daily_status(student, now)
            streak, anchor, updated = advance_streak(
                student.streak,
                student.last_streak_update,
                daily.count,
                self.today(now),
                goal=self.settings.daily_session_goal,
            )
            self.store.update_progress(student_id, xp, level, streak, anchor)
        except ProgressStoreError as e:
            logger.error(f"Session for {student_id} was not saved: {e}")
            return None

        if updated:
            logger.info(f"Streak for {student_id} is now {streak}")
        return SessionOutcome(
            session=record,
            earned_xp=earned,
            xp=xp,
            level=level,
            streak=streak,
            streak_updated=updated,
            all_time_high=student.best_score,
            daily=daily,
            leveled_up=level > student.level,
        )

    def dashboard(self) -> list[DashboardRow]:
        """All students, most recently seen first."""
        try:
            students = self.store.list_students()
        except ProgressStoreError as e:
            logger.error(f"Could not load dashboard: {e}")
            return []

        rows = [
            DashboardRow(
                student_id=s.id,
                last_seen=s.last_seen,
                login_count=s.login_count,
                xp=s.xp,
                level=s.level,
                streak=s.streak,
                session_count=len(s.sessions),
                average_score=s.average_score,
                best_score=s.best_score,
                last_session=s.last_session,
            )
            for s in students
        ]
        rows.sort(key=lambda r: as_utc(r.last_seen), reverse=True)
        return rows

    def history(self, student_id: str) -> list[HistoryRow]:
        """A student's sessions, newest first."""
        student = self.load_student(student_id)
        if student is None:
            return []
        sessions = sorted(student.sessions, key=lambda s: s.timestamp, reverse=True)
        return [HistoryRow(s, local_date(s.timestamp, self.settings.timezone)) for s in sessions]
