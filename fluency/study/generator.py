"""
Adaptive Question Generator.

Picks the next question by strict priority:
1. Retry queue - questions the student just missed (newest miss first)
2. Cluster queue - related facts staged behind a weak fact
3. Fresh generation, depending on mode:
   - assessment: uniform factors in [2, 9], mastery ignored
   - tables: one factor from the selected tables, the other in [1, 9]
   - multiplication/division: weighted by (1 - mastery), floored at 0.1,
     over the cross-product of the selected factor groups

Every question starts as a multiplication fact; division mode restates
``f1 × f2`` as ``(f1*f2) ÷ f1 = f2`` so mastery stays on one key.
"""

from __future__ import annotations

import random
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass

from loguru import logger

from fluency.core.facts import (
    ALL_FACTORS,
    FactSelection,
    GameMode,
    NumericAnswer,
    Operator,
    Question,
    fact_key,
)
from fluency.core.mastery import MasteryStore


@dataclass
class GeneratorConfig:
    """Configuration for question generation."""

    option_count: int = 4
    distractor_window: int = 10
    cluster_threshold: float = 0.6
    enable_clusters: bool = False

    def __post_init__(self) -> None:
        # Offsets on the positive side alone must be able to fill the options.
        if self.option_count < 1 or self.option_count - 1 > self.distractor_window:
            raise ValueError(
                f"Cannot draw {self.option_count} options from a window of ±{self.distractor_window}"
            )

    @classmethod
    def from_settings(cls, settings) -> GeneratorConfig:
        return cls(
            option_count=settings.option_count,
            distractor_window=settings.distractor_window,
            cluster_threshold=settings.cluster_mastery_threshold,
            enable_clusters=settings.enable_fact_clusters,
        )


@dataclass
class Candidate:
    """A factor pair eligible for weighted selection."""

    f1: int
    f2: int
    weight: float


def weighted_choice(candidates: Sequence[Candidate], rng: random.Random) -> Candidate:
    """
    Draw one candidate with probability proportional to its weight.

    Walks the list subtracting weights from a uniform draw in
    [0, total). Float residue can leave the remainder positive after the
    last candidate; the last candidate is returned in that case.
    """
    if not candidates:
        raise ValueError("No candidates to choose from")

    total = sum(c.weight for c in candidates)
    remainder = rng.random() * total
    for candidate in candidates:
        remainder -= candidate.weight
        if remainder <= 0:
            return candidate
    return candidates[-1]


def build_options(
    answer: int,
    rng: random.Random,
    count: int = 4,
    window: int = 10,
) -> tuple[int, ...]:
    """
    Multiple-choice options: the answer plus nearby positive distractors.

    Distractors are ``answer + offset`` with offset uniform in
    [-window, window], clamped to at least 1, never equal to the answer
    and never repeated. Returned in ascending order.
    """
    options = {answer}
    while len(options) < count:
        offset = rng.randint(-window, window)
        value = max(1, answer + offset)
        if value != answer:
            options.add(value)
    return tuple(sorted(options))


class QuestionGenerator:
    """
    Produces practice questions for one session.

    Owns the retry and cluster queues; ``reset()`` empties both at session
    start and end.
    """

    def __init__(
        self,
        mode: GameMode,
        selection: FactSelection,
        mastery: MasteryStore,
        config: GeneratorConfig | None = None,
        rng: random.Random | None = None,
    ):
        """
        Initialize the generator.

        Args:
            mode: Drill mode
            selection: Factor groups/tables the student selected
            mastery: Mastery store consulted for weighting
            config: GeneratorConfig or None for defaults
            rng: Random source (seed it for reproducible sessions)
        """
        self.mode = mode
        self.selection = selection
        self.mastery = mastery
        self.config = config or GeneratorConfig()
        self.rng = rng or random.Random()
        self.retry_queue: deque[Question] = deque()
        self.cluster_queue: deque[Question] = deque()

    def reset(self) -> None:
        self.retry_queue.clear()
        self.cluster_queue.clear()

    def queue_retry(self, question: Question) -> None:
        """Put a missed question at the front of the retry queue."""
        self.retry_queue.appendleft(question)
        logger.debug(f"Queued retry for {question.text} ({len(self.retry_queue)} pending)")

    def next_question(self) -> Question:
        if self.retry_queue:
            return self.retry_queue.popleft().as_retry()

        if self.cluster_queue:
            return self.cluster_queue.popleft().reissued()

        f1, f2 = self._draw_pair()
        return self.build_question(f1, f2)

    # =========================================================================
    # Fresh generation
    # =========================================================================

    def _draw_pair(self) -> tuple[int, int]:
        if self.mode is GameMode.ASSESSMENT:
            return self.rng.randint(2, 9), self.rng.randint(2, 9)

        if self.mode is GameMode.TABLES:
            table = self.rng.choice(self.selection.tables)
            other = self.rng.randint(1, 9)
            if self.rng.random() > 0.5:
                return other, table
            return table, other

        chosen = weighted_choice(self.candidates(), self.rng)
        if self.config.enable_clusters:
            self._stage_cluster(chosen.f1, chosen.f2)
        return chosen.f1, chosen.f2

    def candidates(self) -> list[Candidate]:
        """All ordered factor pairs from the selected groups with their weights."""
        factors = self.selection.factors() or ALL_FACTORS
        return [
            Candidate(f1, f2, self.mastery.weight(fact_key(f1, f2)))
            for f1 in factors
            for f2 in factors
        ]

    def _stage_cluster(self, f1: int, f2: int) -> None:
        """Queue up to two related facts behind a weak one."""
        if self.cluster_queue:
            return
        if self.mastery.get(fact_key(f1, f2)) >= self.config.cluster_threshold:
            return

        related: list[tuple[int, int]] = []
        if f1 != f2:
            related.append((f2, f1))
        factors = self.selection.factors()
        for neighbour in (f2 + 1, f2 - 1):
            if neighbour in factors:
                related.append((f1, neighbour))
                break

        for a, b in related[:2]:
            self.cluster_queue.append(self.build_question(a, b))
        if related:
            logger.debug(f"Staged {len(related[:2])} related facts after {f1}x{f2}")

    def build_question(self, f1: int, f2: int) -> Question:
        """Turn a multiplication fact into the mode's question."""
        if self.mode is GameMode.DIVISION:
            factor1, factor2, answer = f1 * f2, f1, f2
            operator = Operator.DIVIDE
        else:
            factor1, factor2, answer = f1, f2, f1 * f2
            operator = Operator.MULTIPLY

        options = build_options(
            answer,
            self.rng,
            count=self.config.option_count,
            window=self.config.distractor_window,
        )
        return Question(
            factor1=factor1,
            factor2=factor2,
            answer=NumericAnswer(answer),
            operator=operator,
            options=options,
        )
