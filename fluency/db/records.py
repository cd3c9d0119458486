"""
Plain records exchanged with the progress stores.

Both backends (SQLAlchemy and the JSON document) read and write these, so
the aggregator never sees ORM objects or raw JSON.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Protocol


# Sentinel for "leave this field unchanged" in update calls.
KEEP: Any = object()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps (as SQLite returns them) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def new_record_id() -> str:
    return uuid.uuid4().hex[:12]


class SummaryLike(Protocol):
    """Shape of fluency.study.drill.SessionSummary as seen by the stores."""

    score: int
    total: int
    wrong_count: int
    selected_groups: list[str]
    assessment_tier: str | None
    mastery_delta: dict[str, float]

    @property
    def mode(self) -> Any: ...

    @property
    def input_method(self) -> Any: ...


@dataclass
class SessionRecord:
    """A finished session as stored."""

    id: str
    timestamp: datetime
    score: int
    total: int
    mode: str
    wrong_count: int = 0
    input_method: str = "typed"
    selected_groups: list[str] = field(default_factory=list)
    assessment_tier: str | None = None
    mastery_delta: dict[str, float] = field(default_factory=dict)

    @property
    def accuracy(self) -> int:
        """Percent correct, rounded; 0 when nothing was answered."""
        if self.total <= 0:
            return 0
        return round(self.score / self.total * 100)

    @property
    def is_multiple_choice(self) -> bool:
        return self.input_method == "multiple_choice"

    @classmethod
    def from_summary(cls, summary: SummaryLike, now: datetime | None = None) -> SessionRecord:
        return cls(
            id=new_record_id(),
            timestamp=as_utc(now or utcnow()),
            score=summary.score,
            total=summary.total,
            mode=_enum_value(summary.mode),
            wrong_count=summary.wrong_count,
            input_method=_enum_value(summary.input_method),
            selected_groups=list(summary.selected_groups),
            assessment_tier=summary.assessment_tier,
            mastery_delta=dict(summary.mastery_delta),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": as_utc(self.timestamp).isoformat(),
            "score": self.score,
            "total": self.total,
            "mode": self.mode,
            "wrongCount": self.wrong_count,
            "inputMethod": self.input_method,
            "selectedGroups": list(self.selected_groups),
            "assessmentTier": self.assessment_tier,
            "masteryDelta": dict(self.mastery_delta),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionRecord:
        return cls(
            id=data["id"],
            timestamp=as_utc(datetime.fromisoformat(data["timestamp"])),
            score=int(data.get("score", 0)),
            total=int(data.get("total", 0)),
            mode=data.get("mode") or data.get("gameType", "multiplication"),
            wrong_count=int(data.get("wrongCount", 0)),
            input_method=data.get("inputMethod", "typed"),
            selected_groups=list(data.get("selectedGroups") or []),
            assessment_tier=data.get("assessmentTier"),
            mastery_delta=dict(data.get("masteryDelta") or {}),
        )


@dataclass
class StudentRecord:
    """Persistent progress for one student."""

    id: str
    created_at: datetime
    last_seen: datetime
    login_count: int = 1
    xp: int = 0
    level: int = 1
    streak: int = 0
    last_streak_update: date | None = None
    fact_mastery: dict[str, float] = field(default_factory=dict)
    sessions: list[SessionRecord] = field(default_factory=list)

    @classmethod
    def new(cls, student_id: str, now: datetime | None = None) -> StudentRecord:
        now = as_utc(now or utcnow())
        return cls(id=student_id, created_at=now, last_seen=now)

    @property
    def best_score(self) -> int | None:
        if not self.sessions:
            return None
        return max(s.score for s in self.sessions)

    @property
    def average_score(self) -> float | None:
        if not self.sessions:
            return None
        return sum(s.score for s in self.sessions) / len(self.sessions)

    @property
    def last_session(self) -> SessionRecord | None:
        if not self.sessions:
            return None
        return max(self.sessions, key=lambda s: s.timestamp)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "createdAt": as_utc(self.created_at).isoformat(),
            "lastSeen": as_utc(self.last_seen).isoformat(),
            "loginCount": self.login_count,
            "xp": self.xp,
            "level": self.level,
            "dailyStreak": self.streak,
            "lastStreakUpdate": self.last_streak_update.isoformat() if self.last_streak_update else None,
            "factMastery": dict(self.fact_mastery),
            "sessions": [s.to_dict() for s in self.sessions],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StudentRecord:
        last_seen = as_utc(datetime.fromisoformat(data["lastSeen"]))
        created = data.get("createdAt")
        anchor = data.get("lastStreakUpdate")
        return cls(
            id=data["id"],
            created_at=as_utc(datetime.fromisoformat(created)) if created else last_seen,
            last_seen=last_seen,
            login_count=int(data.get("loginCount", 1)),
            xp=int(data.get("xp", 0)),
            level=int(data.get("level", 1)),
            streak=int(data.get("dailyStreak", 0)),
            last_streak_update=date.fromisoformat(anchor) if anchor else None,
            fact_mastery={k: float(v) for k, v in (data.get("factMastery") or {}).items()},
            sessions=[SessionRecord.from_dict(s) for s in data.get("sessions") or []],
        )


def _enum_value(value: Any) -> str:
    return getattr(value, "value", value)
