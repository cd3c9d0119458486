"""
Facts, answers, and questions.

A fact is a pair of single-digit factors related by multiplication. Every
question is built from a multiplication fact first and optionally restated
as division, so mastery bookkeeping always lands on the multiplication key:

    3 × 7 = 21   ->  key "3x7"
    21 ÷ 3 = 7   ->  key "3x7"
    7 × 3 = 21   ->  key "3x7"
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Union

from .errors import InvalidSelectionError

ALL_FACTORS: tuple[int, ...] = (2, 3, 4, 5, 6, 7, 8, 9)
TABLE_CHOICES: tuple[int, ...] = ALL_FACTORS


class Operator(str, Enum):
    """Operator shown between the two displayed operands."""

    MULTIPLY = "×"
    DIVIDE = "÷"


class GameMode(str, Enum):
    """Drill modes."""

    MULTIPLICATION = "multiplication"
    DIVISION = "division"
    ASSESSMENT = "assessment"
    TABLES = "tables"

    @property
    def is_assessment(self) -> bool:
        return self is GameMode.ASSESSMENT

    @property
    def operator(self) -> Operator:
        return Operator.DIVIDE if self is GameMode.DIVISION else Operator.MULTIPLY


class InputMethod(str, Enum):
    """How the student answers."""

    TYPED = "typed"
    MULTIPLE_CHOICE = "multiple_choice"


class FactorGroup(str, Enum):
    """Difficulty groups a student can practice."""

    LOW = "2-4"
    MID = "5-7"
    HIGH = "8-9"

    @property
    def factors(self) -> tuple[int, ...]:
        return _GROUP_FACTORS[self]


_GROUP_FACTORS = {
    FactorGroup.LOW: (2, 3, 4),
    FactorGroup.MID: (5, 6, 7),
    FactorGroup.HIGH: (8, 9),
}


def fact_key(f1: int, f2: int) -> str:
    """Mastery key for a multiplication fact; order of the factors is ignored."""
    lo, hi = (f1, f2) if f1 <= f2 else (f2, f1)
    return f"{lo}x{hi}"


def parse_number(raw: str) -> int | float | None:
    """
    Parse a typed answer.

    Whitespace, underscores and leading zeros are tolerated. Returns None
    for anything that is not a number.
    """
    value = raw.strip().replace("_", "").replace(" ", "")
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        return None


def new_question_id() -> str:
    return uuid.uuid4().hex[:8]


# =============================================================================
# Answers
# =============================================================================


@dataclass(frozen=True)
class NumericAnswer:
    """An integer answer compared by numeric value."""

    value: int

    @property
    def display(self) -> str:
        return str(self.value)

    def matches(self, raw: str) -> bool:
        parsed = parse_number(raw)
        return parsed is not None and parsed == self.value


@dataclass(frozen=True)
class FormattedAnswer:
    """
    An answer shown as text (e.g. "1,000") with a comparable numeric value.

    A guess matches when it equals the display string (case and spacing
    ignored) or parses to the same number.
    """

    display: str
    value: float

    def matches(self, raw: str) -> bool:
        if _squash(raw) == _squash(self.display):
            return True
        parsed = parse_number(raw.replace(",", ""))
        return parsed is not None and parsed == self.value


def _squash(text: str) -> str:
    return "".join(text.split()).lower()


Answer = Union[NumericAnswer, FormattedAnswer]


# =============================================================================
# Questions
# =============================================================================


@dataclass(frozen=True)
class Question:
    """
    A single practice item.

    Questions are immutable; a retry is a new instance with a new id.
    """

    factor1: int | None
    factor2: int
    answer: Answer
    operator: Operator = Operator.MULTIPLY
    options: tuple[int, ...] = ()
    is_retry: bool = False
    id: str = field(default_factory=new_question_id)

    @property
    def text(self) -> str:
        return f"{self.factor1} {self.operator.value} {self.factor2}"

    @property
    def expected_length(self) -> int:
        """Number of characters a complete typed answer has."""
        return len(self.answer.display)

    @property
    def fact_key(self) -> str:
        """
        Multiplication key this question exercises.

        Division prompts read ``dividend ÷ divisor = quotient``; the fact
        is divisor × quotient.
        """
        if self.operator is Operator.DIVIDE:
            return fact_key(self.factor2, int(self.answer.value))
        return fact_key(int(self.factor1 or 0), self.factor2)

    def is_correct(self, raw: str) -> bool:
        return self.answer.matches(raw)

    def as_retry(self) -> Question:
        """Copy of this question for re-presentation after a miss."""
        return replace(self, id=new_question_id(), is_retry=True)

    def reissued(self) -> Question:
        return replace(self, id=new_question_id())


# =============================================================================
# Fact Selection
# =============================================================================


class FactSelection:
    """
    Factor groups and tables a student has switched on.

    Neither set can become empty: deselecting the last active item is a
    no-op.
    """

    def __init__(
        self,
        groups: Iterable[FactorGroup] | None = None,
        tables: Iterable[int] | None = None,
    ):
        self._groups: list[FactorGroup] = list(dict.fromkeys(groups or FactorGroup))
        self._tables: list[int] = sorted(set(tables or (2,)))
        if not self._groups:
            raise InvalidSelectionError("At least one factor group must be selected")
        if not self._tables:
            raise InvalidSelectionError("At least one table must be selected")
        for table in self._tables:
            _check_table(table)

    @classmethod
    def parse(
        cls,
        groups: Iterable[str] | None = None,
        tables: Iterable[int | str] | None = None,
    ) -> FactSelection:
        """Build a selection from CLI/stored strings such as ``"2-4"``."""
        parsed_groups = None
        if groups:
            try:
                parsed_groups = [FactorGroup(g.strip()) for g in groups if g.strip()]
            except ValueError as e:
                raise InvalidSelectionError(f"Unknown factor group: {e}") from e
        parsed_tables = None
        if tables:
            try:
                parsed_tables = [int(t) for t in tables]
            except ValueError as e:
                raise InvalidSelectionError(f"Invalid table: {e}") from e
        return cls(parsed_groups or None, parsed_tables or None)

    @property
    def groups(self) -> tuple[FactorGroup, ...]:
        return tuple(self._groups)

    @property
    def tables(self) -> tuple[int, ...]:
        return tuple(self._tables)

    def factors(self) -> tuple[int, ...]:
        """Sorted union of the factors in the selected groups."""
        return tuple(sorted({f for g in self._groups for f in g.factors}))

    def toggle_group(self, group: FactorGroup) -> bool:
        """Flip a group on or off. Returns False when the toggle was refused."""
        if group in self._groups:
            if len(self._groups) == 1:
                return False
            self._groups.remove(group)
        else:
            self._groups.append(group)
        return True

    def toggle_table(self, table: int) -> bool:
        """Flip a table on or off. Returns False when the toggle was refused."""
        _check_table(table)
        if table in self._tables:
            if len(self._tables) == 1:
                return False
            self._tables.remove(table)
        else:
            self._tables = sorted([*self._tables, table])
        return True

    def select_all_tables(self) -> None:
        self._tables = list(TABLE_CHOICES)

    def __repr__(self) -> str:
        groups = ",".join(g.value for g in self._groups)
        return f"<FactSelection groups={groups} tables={self._tables}>"


def _check_table(table: int) -> None:
    if table not in TABLE_CHOICES:
        raise InvalidSelectionError(f"Table {table} is not one of {TABLE_CHOICES}")
