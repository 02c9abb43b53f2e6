"""
Trend Analysis

Classifies the direction of an ordered series of per-period averages by
comparing the mean of its earlier half with the mean of its later half.
Fewer than MIN_TREND_POINTS values is treated as flat, not as an error.
"""

from enum import Enum
from typing import Any, Dict, Iterable, Optional, Sequence
import logging

from core.analytics_constants import (
    IMPROVEMENT_LOWER_RATIO,
    IMPROVEMENT_UPPER_RATIO,
    MIN_TREND_POINTS,
    TREND_DELTA,
)
from models import KptItem
from services.analytics_context import DateRange
from services.period_aggregator import Granularity, score_series
from services.retro_metrics import average_score, rounded

logger = logging.getLogger(__name__)


class TrendDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


def classify_trend(values: Iterable[Optional[float]]) -> TrendDirection:
    """
    up / down / stable by earlier-half vs later-half mean.

    None entries (empty buckets) are dropped first. With an odd number of
    remaining values the middle one is ignored.
    """
    points = [v for v in values if v is not None]
    if len(points) < MIN_TREND_POINTS:
        return TrendDirection.STABLE

    half = len(points) // 2
    earlier = points[:half]
    later = points[-half:]
    earlier_mean = sum(earlier) / len(earlier)
    later_mean = sum(later) / len(later)

    if later_mean > earlier_mean + TREND_DELTA:
        return TrendDirection.UP
    if later_mean < earlier_mean - TREND_DELTA:
        return TrendDirection.DOWN
    return TrendDirection.STABLE


def emotion_trend(items: Sequence[KptItem], date_range: DateRange) -> Dict[str, Any]:
    """Daily emotion averages over the window, with overall mean and direction."""
    series = score_series(items, "emotion_score", date_range, Granularity.DAY)
    daily = [point for point in series if point["count"] > 0]
    return {
        "daily_averages": daily,
        "overall_average": rounded(average_score(items, "emotion_score")),
        "trend_direction": classify_trend(p["average"] for p in daily).value,
    }


def weekly_score_trends(
    items: Sequence[KptItem],
    date_range: DateRange,
    field: str,
    week_start: Optional[int] = None,
) -> Dict[str, Any]:
    series = score_series(items, field, date_range, Granularity.WEEK, week_start)
    return {
        "weekly": series,
        "trend_direction": classify_trend(p["average"] for p in series).value,
    }


def engagement_level(recent_session_count: int) -> str:
    """Engagement from the number of sessions in the last ENGAGEMENT_WINDOW_DAYS days."""
    if recent_session_count <= 1:
        return "low"
    if recent_session_count <= 5:
        return "medium"
    return "high"


def improvement_trend(recent_completed: int, previous_completed: int) -> str:
    """Compare completed sessions in the latest window with the one before it."""
    if recent_completed > previous_completed * IMPROVEMENT_UPPER_RATIO:
        return "improving"
    if recent_completed < previous_completed * IMPROVEMENT_LOWER_RATIO:
        return "declining"
    return "stable"


def goal_completion_trend(completion_rate: float) -> str:
    if completion_rate > 70:
        return "improving"
    if completion_rate > 40:
        return "stable"
    return "declining"


def learning_acceleration(items_per_session: float) -> str:
    if items_per_session > 5:
        return "fast"
    if items_per_session > 3:
        return "moderate"
    return "slow"
