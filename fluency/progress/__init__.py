"""
Progress Module: persistence-facing rollups (login, daily limit, XP, streak).
"""

from fluency.progress.aggregator import (
    DailyStatus,
    DashboardRow,
    HistoryRow,
    LoginResult,
    ProgressAggregator,
    SessionOutcome,
)
from fluency.progress.streak import advance_streak, count_on_day, level_for, local_date

__all__ = [
    "DailyStatus",
    "DashboardRow",
    "HistoryRow",
    "LoginResult",
    "ProgressAggregator",
    "SessionOutcome",
    "advance_streak",
    "count_on_day",
    "level_for",
    "local_date",
]
