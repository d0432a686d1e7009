from __future__ import annotations

import math

from flickpick.models.match import TIER_NONE, TIER_PERFECT, TIER_SOFT, TIER_STRONG

STRONG_TIER_FLOOR = 0.75


def match_percentage(right_swipe_count: int, total_participants: int) -> float:
    if total_participants <= 0:
        return 0.0
    return right_swipe_count / total_participants


def meets_threshold(percentage: float, threshold: float) -> bool:
    # 3/5 and 0.6 land on the same double, but thresholds can come from arithmetic
    return percentage >= threshold or math.isclose(percentage, threshold, abs_tol=1e-9)


def classify_tier(right_swipe_count: int, total_participants: int, threshold: float) -> str:
    """
    Bucket an item's agreement strength.

      perfect  everyone said yes
      strong   >= 75% but not everyone
      soft     >= threshold but < 75%
      none     below threshold
    """
    if total_participants <= 0 or right_swipe_count <= 0:
        return TIER_NONE

    if right_swipe_count >= total_participants:
        return TIER_PERFECT

    # integer form of right/total >= 0.75
    if right_swipe_count * 4 >= total_participants * 3:
        return TIER_STRONG

    if meets_threshold(match_percentage(right_swipe_count, total_participants), threshold):
        return TIER_SOFT

    return TIER_NONE


def match_sort_key(match) -> tuple[float, float, int]:
    """Percentage desc, TMDB rating desc, display order asc."""
    return (-match.match_percentage, -match.tmdb_rating, match.display_order)
