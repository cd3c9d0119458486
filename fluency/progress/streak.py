"""
Calendar rules for daily limits, streaks and levels.

All "day" arithmetic happens in the configured timezone, so a session at
23:30 local time counts toward that day even though it is already the
next day in UTC.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from fluency.db.records import as_utc


def local_date(moment: datetime, tz: str | ZoneInfo) -> date:
    """Calendar date of ``moment`` in timezone ``tz``."""
    zone = tz if isinstance(tz, ZoneInfo) else ZoneInfo(tz)
    return as_utc(moment).astimezone(zone).date()


def count_on_day(timestamps: Iterable[datetime], day: date, tz: str | ZoneInfo) -> int:
    return sum(1 for ts in timestamps if local_date(ts, tz) == day)


def level_for(xp: int, xp_per_level: int = 500) -> int:
    return 1 + max(0, xp) // xp_per_level


def advance_streak(
    streak: int,
    last_update: date | None,
    sessions_today: int,
    today: date,
    goal: int = 5,
) -> tuple[int, date | None, bool]:
    """
    Apply the daily streak policy.

    A day is credited once the student completes ``goal`` sessions on it.
    Crediting the day right after the last credited day extends the streak;
    crediting any later day starts over at 1. A day is credited at most once.

    Args:
        streak: Current streak length
        last_update: Last credited day (None if never credited)
        sessions_today: Sessions completed today, including the one just saved
        today: Today's date in the configured timezone
        goal: Sessions per day needed for credit

    Returns:
        (streak, last_update, updated)
    """
    if sessions_today < goal or last_update == today:
        return streak, last_update, False

    if last_update is not None and last_update == today - timedelta(days=1):
        return streak + 1, today, True
    return 1, today, True
