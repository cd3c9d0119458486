"""
Core domain types: facts, questions, selections, and the mastery store.
"""

from fluency.core.errors import (
    FluencyError,
    InvalidSelectionError,
    ProgressStoreError,
    SessionStateError,
)
from fluency.core.facts import (
    ALL_FACTORS,
    TABLE_CHOICES,
    Answer,
    FactorGroup,
    FactSelection,
    FormattedAnswer,
    GameMode,
    InputMethod,
    NumericAnswer,
    Operator,
    Question,
    fact_key,
    parse_number,
)
from fluency.core.mastery import FactMastery, MasteryStore

__all__ = [
    "ALL_FACTORS",
    "TABLE_CHOICES",
    "Answer",
    "FactMastery",
    "FactSelection",
    "FactorGroup",
    "FluencyError",
    "FormattedAnswer",
    "GameMode",
    "InputMethod",
    "InvalidSelectionError",
    "MasteryStore",
    "NumericAnswer",
    "Operator",
    "ProgressStoreError",
    "Question",
    "SessionStateError",
    "fact_key",
    "parse_number",
]
