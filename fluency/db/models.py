"""
Progress Models.

SQLAlchemy models for student progress:
- Students with XP, level, daily streak and persisted fact mastery
- Practice session log
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from .records import SessionRecord, StudentRecord, as_utc, utcnow


class Base(DeclarativeBase):
    pass


class Student(Base):
    """One student's progress; mastery is a JSON map of fact key -> score."""

    __tablename__ = "students"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    last_seen: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    login_count: Mapped[int] = mapped_column(Integer, default=1)

    # Gamification
    xp: Mapped[int] = mapped_column(Integer, default=0)
    level: Mapped[int] = mapped_column(Integer, default=1)
    streak: Mapped[int] = mapped_column(Integer, default=0)
    last_streak_update: Mapped[date | None] = mapped_column(Date)

    fact_mastery: Mapped[dict] = mapped_column(JSON, default=dict)

    sessions: Mapped[list[PracticeLog]] = relationship(
        back_populates="student",
        cascade="all, delete-orphan",
        order_by="PracticeLog.timestamp",
    )

    def __repr__(self) -> str:
        return f"<Student id={self.id} xp={self.xp} level={self.level} streak={self.streak}>"

    def to_record(self) -> StudentRecord:
        return StudentRecord(
            id=self.id,
            created_at=as_utc(self.created_at),
            last_seen=as_utc(self.last_seen),
            login_count=self.login_count,
            xp=self.xp,
            level=self.level,
            streak=self.streak,
            last_streak_update=self.last_streak_update,
            fact_mastery=dict(self.fact_mastery or {}),
            sessions=[s.to_record() for s in self.sessions],
        )


class PracticeLog(Base):
    """A finished practice or assessment session."""

    __tablename__ = "practice_sessions"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    student_id: Mapped[str] = mapped_column(
        ForeignKey("students.id", ondelete="CASCADE"), nullable=False
    )
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    score: Mapped[int] = mapped_column(Integer, default=0)
    total: Mapped[int] = mapped_column(Integer, default=0)
    wrong_count: Mapped[int] = mapped_column(Integer, default=0)
    mode: Mapped[str] = mapped_column(Text, nullable=False)  # multiplication, division, tables, assessment
    input_method: Mapped[str] = mapped_column(Text, default="typed")
    selected_groups: Mapped[list] = mapped_column(JSON, default=list)
    assessment_tier: Mapped[str | None] = mapped_column(Text)
    mastery_delta: Mapped[dict] = mapped_column(JSON, default=dict)

    student: Mapped[Student] = relationship(back_populates="sessions")

    __table_args__ = (Index("idx_practice_sessions_student_time", "student_id", "timestamp"),)

    def __repr__(self) -> str:
        return f"<PracticeLog student={self.student_id} mode={self.mode} score={self.score}/{self.total}>"

    @classmethod
    def from_record(cls, student_id: str, record: SessionRecord) -> PracticeLog:
        return cls(
            id=record.id,
            student_id=student_id,
            timestamp=record.timestamp,
            score=record.score,
            total=record.total,
            wrong_count=record.wrong_count,
            mode=record.mode,
            input_method=record.input_method,
            selected_groups=list(record.selected_groups),
            assessment_tier=record.assessment_tier,
            mastery_delta=dict(record.mastery_delta),
        )

    def to_record(self) -> SessionRecord:
        return SessionRecord(
            id=self.id,
            timestamp=as_utc(self.timestamp),
            score=self.score,
            total=self.total,
            mode=self.mode,
            wrong_count=self.wrong_count,
            input_method=self.input_method,
            selected_groups=list(self.selected_groups or []),
            assessment_tier=self.assessment_tier,
            mastery_delta=dict(self.mastery_delta or {}),
        )
