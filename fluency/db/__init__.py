"""
Student progress persistence.

Two interchangeable backends implement ProgressStore:
- SqlProgressStore: SQLAlchemy (SQLite by default, any SQLAlchemy URL works)
- JsonProgressStore: one JSON document on disk
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError

from .database import check_database_health, make_engine
from .json_store import JsonProgressStore, check_json_health
from .records import KEEP, SessionRecord, StudentRecord, SummaryLike
from .sql_store import SqlProgressStore


class ProgressStore(Protocol):
    def get_student(self, student_id: str) -> StudentRecord | None: ...

    def upsert_student(self, student_id: str, now: datetime | None = None) -> StudentRecord: ...

    def append_session(
        self, student_id: str, summary: SummaryLike, now: datetime | None = None
    ) -> SessionRecord: ...

    def update_progress(
        self,
        student_id: str,
        xp: int,
        level: int,
        streak: int | None = None,
        streak_anchor: date | None | object = KEEP,
    ) -> None: ...

    def list_students(self) -> list[StudentRecord]: ...


def create_store(settings) -> ProgressStore:
    """Build the backend selected by ``settings.progress_backend``."""
    if settings.progress_backend == "json":
        return JsonProgressStore(settings.json_store_path)

    engine = make_engine(settings.database_url, echo=settings.log_level == "DEBUG")
    return SqlProgressStore(engine)


def check_store_health(settings) -> tuple[str, str | None]:
    """Health of the backend selected by ``settings.progress_backend``."""
    if settings.progress_backend == "json":
        return check_json_health(settings.json_store_path)

    try:
        engine = make_engine(settings.database_url)
    except (SQLAlchemyError, ImportError) as e:
        return "error", str(e)
    try:
        return check_database_health(engine)
    finally:
        engine.dispose()


__all__ = [
    "KEEP",
    "JsonProgressStore",
    "ProgressStore",
    "SessionRecord",
    "SqlProgressStore",
    "StudentRecord",
    "check_store_health",
    "create_store",
]
