"""
Assessment score tiers.

Maps the number of correct answers in a one-minute assessment block to a
fluency tier with guidance for the teacher reading the summary.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TierFeedback:
    """Static description of one fluency tier."""

    min_score: int
    tier: str
    range: str
    description: str
    focus: str

    @property
    def description_lines(self) -> list[str]:
        return self.description.split("\n")


TIERS: tuple[TierFeedback, ...] = (
    TierFeedback(
        min_score=55,
        tier="Strong automaticity",
        range="~55–65+ correct per minute",
        description=(
            "Student demonstrates rapid, accurate retrieval.\n"
            "Responses are automatic; taps are fluid and efficient.\n"
            "Cognitive resources are fully available for advanced math thinking.\n"
            "Student shows confidence and independence."
        ),
        focus="Extension, application, and transfer",
    ),
    TierFeedback(
        min_score=40,
        tier="Functional automaticity (algebra-ready)",
        range="~40–55 correct per minute",
        description=(
            "Most facts are retrieved instantly.\n"
            "Minimal hesitation; keypad entry is the primary time factor.\n"
            "Working memory is largely available for higher-level reasoning.\n"
            "Student can engage more fully with multi-step algebraic tasks."
        ),
        focus="Maintain automaticity; apply facts in complex contexts",
    ),
    TierFeedback(
        min_score=30,
        tier="Emerging fluency",
        range="~30–40 correct per minute",
        description=(
            "Student shows growing recall with occasional hesitation.\n"
            "Mix of instant retrieval and brief mental computation.\n"
            "Accuracy improves as familiarity increases.\n"
            "Student benefits from short, frequent practice to increase efficiency."
        ),
        focus="Strengthen recall speed while maintaining accuracy",
    ),
    TierFeedback(
        min_score=0,
        tier="Developing foundational fluency",
        range="~20–30 correct per minute",
        description=(
            "Student recognizes many facts but relies on strategies before responding.\n"
            "Response time reflects thinking + digit entry.\n"
            "Accuracy may vary as cognitive load remains high.\n"
            "Algebra tasks often require additional time or supports."
        ),
        focus="Reduce reliance on effortful strategies; increase consistency",
    ),
)


def get_feedback(score: int) -> TierFeedback:
    """Tier for a score; tiers are checked from the highest threshold down."""
    for tier in TIERS:
        if score >= tier.min_score:
            return tier
    return TIERS[-1]
