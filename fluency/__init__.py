"""
Fact Fluency - adaptive multiplication/division fluency trainer.

Packages:
- core: facts, questions, and the mastery store
- study: question generator, session state machine, timed drills
- db: progress persistence (SQLAlchemy or a JSON document)
- progress: student progress aggregation (XP, streaks, daily limits)
- cli: terminal front end
"""

__version__ = "1.0.0"
