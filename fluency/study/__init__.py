"""
Study Module: question generation and the practice session loop.

Provides:
- Adaptive question generation (retry queue, clusters, weighted draws)
- The practice session state machine and its timers
- Timed drills and session summaries
- Assessment tier feedback
"""

from fluency.study.assessment import TierFeedback, get_feedback
from fluency.study.drill import SessionSummary, TimedDrill, build_drill
from fluency.study.generator import GeneratorConfig, QuestionGenerator, build_options, weighted_choice
from fluency.study.session import GameState, Judgement, PracticeSession, SessionStats, SessionTiming
from fluency.study.timers import ManualScheduler, Scheduler

__all__ = [
    "GameState",
    "GeneratorConfig",
    "Judgement",
    "ManualScheduler",
    "PracticeSession",
    "QuestionGenerator",
    "Scheduler",
    "SessionStats",
    "SessionSummary",
    "SessionTiming",
    "TierFeedback",
    "TimedDrill",
    "build_drill",
    "build_options",
    "get_feedback",
    "weighted_choice",
]
