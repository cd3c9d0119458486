"""
Fact Mastery Store.

Keeps a confidence score in [0, 1] per multiplication fact and adjusts it
after each judged answer:

    correct:  mastery + 0.1
    miss:     mastery - 0.2

A miss costs more than a hit earns so weak facts resurface quickly. A fact
that was never seen has mastery 0.

The store is seeded from the student's persisted mastery at session start.
Only the keys touched during the session are collected in ``delta``; the
caller persists that map once, when the session ends.
"""

from __future__ import annotations

from collections.abc import Mapping

from loguru import logger

from .facts import fact_key

FactMastery = dict[str, float]


class MasteryStore:
    """Per-session mastery map with delta tracking."""

    DEFAULT_REWARD = 0.1
    DEFAULT_PENALTY = 0.2
    DEFAULT_WEIGHT_FLOOR = 0.1

    def __init__(
        self,
        initial: Mapping[str, float] | None = None,
        reward: float = DEFAULT_REWARD,
        penalty: float = DEFAULT_PENALTY,
        weight_floor: float = DEFAULT_WEIGHT_FLOOR,
    ):
        """
        Initialize the store.

        Args:
            initial: Persisted mastery (fact key -> score)
            reward: Increase applied on a correct answer
            penalty: Decrease applied on a miss or timeout
            weight_floor: Minimum selection weight for fully mastered facts
        """
        self.reward = reward
        self.penalty = penalty
        self.weight_floor = weight_floor
        self._scores: FactMastery = {}
        self._delta: FactMastery = {}
        self.seed(initial or {})

    @staticmethod
    def key(f1: int, f2: int) -> str:
        return fact_key(f1, f2)

    def seed(self, mastery: Mapping[str, float]) -> None:
        """Replace all scores with persisted values and clear the delta."""
        self._scores = {k: _clamp(float(v)) for k, v in mastery.items()}
        self._delta = {}

    def get(self, key: str) -> float:
        return self._scores.get(key, 0.0)

    def __getitem__(self, key: str) -> float:
        return self.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._scores

    def __len__(self) -> int:
        return len(self._scores)

    def update(self, key: str, correct: bool) -> float:
        """
        Apply the update rule to one fact.

        Args:
            key: Fact key (see ``fact_key``)
            correct: Whether the answer was judged correct

        Returns:
            The new mastery score
        """
        old = self.get(key)
        change = self.reward if correct else -self.penalty
        new = _clamp(old + change)
        self._scores[key] = new
        self._delta[key] = new
        logger.debug(f"Mastery {key}: {old:.2f} -> {new:.2f}")
        return new

    def weight(self, key: str) -> float:
        """Selection weight: weaker facts weigh more, never below the floor."""
        return max(self.weight_floor, 1.0 - self.get(key))

    @property
    def delta(self) -> FactMastery:
        """Scores changed since the last seed (new absolute values)."""
        return dict(self._delta)

    def reset_delta(self) -> None:
        self._delta = {}

    def snapshot(self) -> FactMastery:
        return dict(self._scores)

    def merge(self, updates: Mapping[str, float]) -> None:
        """Fold saved session updates back in without marking them as changed."""
        for key, value in updates.items():
            self._scores[key] = _clamp(float(value))


def _clamp(value: float) -> float:
    # Round away float residue (0.1 + 0.2 style) so repeated updates stay exact.
    return round(min(1.0, max(0.0, value)), 10)
