"""
Difficulty-tiered scoring policy.
"""
from typing import Iterable, Optional

from .models import Question

TIER_POINTS = {1: 10, 2: 20, 3: 30, 4: 40, 5: 50}
DEFAULT_POINTS = 10

BAND_EXCEPTIONAL = "exceptional"
BAND_GREAT = "great"
BAND_GOOD = "good"
BAND_TRY_AGAIN = "try_again"


def points_for_tier(tier: Optional[int]) -> int:
    """Map a difficulty tier to its point value; unknown tiers are worth the minimum."""
    if isinstance(tier, bool):
        return DEFAULT_POINTS
    return TIER_POINTS.get(tier, DEFAULT_POINTS)


def max_score(questions: Iterable[Question]) -> int:
    """Sum of attainable points over a pool."""
    return sum(points_for_tier(q.tier) for q in questions)


def percentage(score: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return score * 100.0 / total


def performance_band(percent: float) -> str:
    """Narrative band used on the results screen."""
    if percent >= 90:
        return BAND_EXCEPTIONAL
    if percent >= 70:
        return BAND_GREAT
    if percent >= 50:
        return BAND_GOOD
    return BAND_TRY_AGAIN
