"""
Relational progress store (SQLAlchemy).

Every call runs in its own transaction; backend errors surface as
ProgressStoreError so the aggregator can degrade instead of crashing.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime

from loguru import logger
from sqlalchemy import Engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from fluency.core.errors import ProgressStoreError

from .database import init_db, make_session_factory, session_scope
from .models import PracticeLog, Student
from .records import KEEP, SessionRecord, StudentRecord, SummaryLike, as_utc, utcnow


class SqlProgressStore:
    """ProgressStore backed by the ``students`` and ``practice_sessions`` tables."""

    def __init__(self, engine: Engine, create_tables: bool = True):
        self.engine = engine
        self._factory = make_session_factory(engine)
        if create_tables:
            try:
                init_db(engine)
            except SQLAlchemyError as e:
                raise ProgressStoreError(f"Failed to initialize database: {e}") from e
        logger.info(f"SqlProgressStore initialized at {engine.url.render_as_string(hide_password=True)}")

    @contextmanager
    def _scope(self, action: str, student_id: str | None = None) -> Iterator[Session]:
        try:
            with session_scope(self._factory) as session:
                yield session
        except SQLAlchemyError as e:
            raise ProgressStoreError(f"Failed to {action}: {e}", student_id=student_id) from e

    def _load(self, session: Session, student_id: str) -> Student | None:
        stmt = (
            select(Student)
            .options(selectinload(Student.sessions))
            .where(Student.id == student_id)
        )
        return session.scalars(stmt).first()

    def get_student(self, student_id: str) -> StudentRecord | None:
        with self._scope("load student", student_id) as session:
            student = self._load(session, student_id)
            return student.to_record() if student else None

    def upsert_student(self, student_id: str, now: datetime | None = None) -> StudentRecord:
        now = as_utc(now or utcnow())
        with self._scope("upsert student", student_id) as session:
            student = self._load(session, student_id)
            if student is None:
                student = Student(id=student_id, created_at=now, last_seen=now, login_count=1,
                                  xp=0, level=1, streak=0, fact_mastery={})
                session.add(student)
                logger.info(f"Created student {student_id}")
            else:
                student.last_seen = now
                student.login_count = (student.login_count or 0) + 1
            session.flush()
            return student.to_record()

    def append_session(
        self, student_id: str, summary: SummaryLike, now: datetime | None = None
    ) -> SessionRecord:
        record = SessionRecord.from_summary(summary, now)
        with self._scope("append session", student_id) as session:
            student = self._load(session, student_id)
            if student is None:
                student = Student(id=student_id, created_at=record.timestamp, last_seen=record.timestamp,
                                  login_count=1, xp=0, level=1, streak=0, fact_mastery={})
                session.add(student)

            # Reassign so the JSON column is flagged dirty.
            student.fact_mastery = {**(student.fact_mastery or {}), **record.mastery_delta}
            student.last_seen = record.timestamp
            student.sessions.append(PracticeLog.from_record(student_id, record))
        return record

    def update_progress(
        self,
        student_id: str,
        xp: int,
        level: int,
        streak: int | None = None,
        streak_anchor: date | None | object = KEEP,
    ) -> None:
        with self._scope("update progress", student_id) as session:
            student = session.get(Student, student_id)
            if student is None:
                raise ProgressStoreError(f"Unknown student {student_id}", student_id=student_id)
            student.xp = xp
            student.level = level
            if streak is not None:
                student.streak = streak
            if streak_anchor is not KEEP:
                student.last_streak_update = streak_anchor

    def list_students(self) -> list[StudentRecord]:
        with self._scope("list students") as session:
            stmt = select(Student).options(selectinload(Student.sessions))
            return [s.to_record() for s in session.scalars(stmt).all()]

