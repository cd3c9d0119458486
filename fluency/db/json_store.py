"""
Single-file JSON progress store.

The whole database is one document::

    {"students": {"<id>": {...StudentRecord.to_dict()...}}}

Each call reads the file, applies its change and writes it back (last write
wins). A missing file is created empty; an unreadable one is treated as
empty after a warning, so a damaged file never blocks practice.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from pathlib import Path
from typing import Any

from loguru import logger

from fluency.core.errors import ProgressStoreError

from .records import KEEP, SessionRecord, StudentRecord, SummaryLike, as_utc, utcnow


class JsonProgressStore:
    """ProgressStore backed by one JSON document on disk."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        if not self.path.exists():
            self._write({"students": {}})
            logger.info(f"Created progress file {self.path}")

    # ------------------------------------------------------------------
    # File access
    # ------------------------------------------------------------------

    def _read(self) -> dict[str, Any]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {"students": {}}
        except json.JSONDecodeError as e:
            logger.warning(f"Progress file {self.path} is corrupt, starting empty: {e}")
            return {"students": {}}
        except OSError as e:
            raise ProgressStoreError(f"Failed to read {self.path}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("students"), dict):
            logger.warning(f"Progress file {self.path} has no students map, starting empty")
            return {"students": {}}
        return data

    def _write(self, data: dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            raise ProgressStoreError(f"Failed to write {self.path}: {e}") from e

    def _decode(self, raw: dict[str, Any], student_id: str) -> StudentRecord:
        try:
            return StudentRecord.from_dict(raw)
        except (KeyError, TypeError, ValueError) as e:
            raise ProgressStoreError(
                f"Malformed record for {student_id}: {e}", student_id=student_id
            ) from e

    # ------------------------------------------------------------------
    # ProgressStore
    # ------------------------------------------------------------------

    def get_student(self, student_id: str) -> StudentRecord | None:
        raw = self._read()["students"].get(student_id)
        if raw is None:
            return None
        return self._decode(raw, student_id)

    def upsert_student(self, student_id: str, now: datetime | None = None) -> StudentRecord:
        now = as_utc(now or utcnow())
        data = self._read()
        raw = data["students"].get(student_id)
        if raw is None:
            student = StudentRecord.new(student_id, now)
            logger.info(f"Created student {student_id}")
        else:
            student = self._decode(raw, student_id)
            student.last_seen = now
            student.login_count += 1

        data["students"][student_id] = student.to_dict()
        self._write(data)
        return student

    def append_session(
        self, student_id: str, summary: SummaryLike, now: datetime | None = None
    ) -> SessionRecord:
        record = SessionRecord.from_summary(summary, now)
        data = self._read()
        raw = data["students"].get(student_id)
        student = (
            self._decode(raw, student_id)
            if raw is not None
            else StudentRecord.new(student_id, record.timestamp)
        )

        student.fact_mastery.update(record.mastery_delta)
        student.last_seen = record.timestamp
        student.sessions.append(record)

        data["students"][student_id] = student.to_dict()
        self._write(data)
        return record

    def update_progress(
        self,
        student_id: str,
        xp: int,
        level: int,
        streak: int | None = None,
        streak_anchor: date | None | object = KEEP,
    ) -> None:
        data = self._read()
        raw = data["students"].get(student_id)
        if raw is None:
            raise ProgressStoreError(f"Unknown student {student_id}", student_id=student_id)

        student = self._decode(raw, student_id)
        student.xp = xp
        student.level = level
        if streak is not None:
            student.streak = streak
        if streak_anchor is not KEEP:
            student.last_streak_update = streak_anchor  # type: ignore[assignment]

        data["students"][student_id] = student.to_dict()
        self._write(data)

    def list_students(self) -> list[StudentRecord]:
        return [self._decode(raw, sid) for sid, raw in self._read()["students"].items()]


def check_json_health(path: Path | str) -> tuple[str, str | None]:
    """
    Check that a JSON progress file is readable.

    A file that does not exist yet is healthy; it is created on first use.

    Returns:
        Tuple of (status, error_message). Status is "ok" or "error".
    """
    path = Path(path)
    if not path.exists():
        return "ok", None
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Progress file health check failed: {e}")
        return "error", str(e)
    if not isinstance(data, dict) or not isinstance(data.get("students"), dict):
        return "error", "missing 'students' map"
    return "ok", None
