"""
Retrospective Metric Primitives

Single-value metrics over one session, one item, one work log or a small
collection of them. Every function resolves "no data" to a documented
default instead of raising:

- progress_rate / completion_rate: 0.0 for empty input
- average_score: None when no record carries the score (not 0)
- duration_minutes: 0 for work logs that have not ended
"""

from typing import Any, Dict, Iterable, List, Optional

from core.analytics_constants import (
    DEFAULT_SCORE,
    PRIORITY_WEIGHTS,
    UNTRACKED_PRIORITY_WEIGHT,
)
from models import ITEM_CATEGORIES, KptItem, KptSession, WorkLog


def is_completed(entity: Any) -> bool:
    """
    Completion rule per record kind.

    Items are completed once completed_at is set; sessions and work logs
    carry an explicit lifecycle status.
    """
    if isinstance(entity, KptItem):
        return entity.completed_at is not None
    return getattr(entity, "status", None) == "completed"


def progress_rate(session: KptSession) -> float:
    """Completed items / total items for the session, in [0, 1]."""
    items = list(session.items or [])
    if not items:
        return 0.0
    completed = sum(1 for item in items if is_completed(item))
    return completed / len(items)


def priority_weight(item: KptItem) -> float:
    priority = getattr(item, "priority", None)
    if priority is None:
        return UNTRACKED_PRIORITY_WEIGHT
    return PRIORITY_WEIGHTS.get(priority, UNTRACKED_PRIORITY_WEIGHT)


def importance_score(item: KptItem) -> float:
    """
    Mean of emotion and impact, weighted by priority.

    Missing scores count as mid-scale so incomplete items are not
    ranked as unimportant.
    """
    emotion = item.emotion_score if item.emotion_score is not None else DEFAULT_SCORE
    impact = item.impact_score if item.impact_score is not None else DEFAULT_SCORE
    return ((emotion + impact) / 2) * priority_weight(item)


def average_score(records: Iterable[Any], field: str) -> Optional[float]:
    """Mean of `field` over records that have it; None if none do."""
    values = [getattr(r, field, None) for r in records]
    values = [v for v in values if v is not None]
    if not values:
        return None
    return sum(values) / len(values)


def rounded(value: Optional[float], digits: int = 2) -> Optional[float]:
    return round(value, digits) if value is not None else None


def duration_minutes(work_log: WorkLog) -> int:
    if work_log.ended_at is None or work_log.started_at is None:
        return 0
    elapsed = (work_log.ended_at - work_log.started_at).total_seconds() / 60
    return int(round(elapsed))


def completion_rate(collection: Iterable[Any]) -> float:
    """Completed / total x 100, rounded to 2 decimals; 0.0 when empty."""
    records = list(collection)
    if not records:
        return 0.0
    completed = sum(1 for r in records if is_completed(r))
    return round(completed / len(records) * 100, 2)


def format_duration(minutes: Optional[int]) -> str:
    """Human readable duration: "0m", "45m", "2h 5m"."""
    if not minutes or minutes <= 0:
        return "0m"
    hours, mins = divmod(int(minutes), 60)
    if hours == 0:
        return f"{mins}m"
    return f"{hours}h {mins}m"


def count_by_category(items: Iterable[KptItem]) -> Dict[str, int]:
    counts = {category: 0 for category in ITEM_CATEGORIES}
    for item in items:
        if item.category in counts:
            counts[item.category] += 1
    return counts


def work_log_average_score(work_log: WorkLog) -> Optional[float]:
    """Mean of whichever mood/productivity/difficulty scores are present."""
    scores = [
        s for s in (work_log.mood_score, work_log.productivity_score, work_log.difficulty_score)
        if s is not None
    ]
    if not scores:
        return None
    return round(sum(scores) / len(scores), 1)


def percent_change(current: float, previous: float) -> float:
    if not previous:
        return 0.0
    return round((current - previous) / previous * 100, 1)


def total_minutes(work_logs: Iterable[WorkLog]) -> int:
    return sum(duration_minutes(w) for w in work_logs)


def completed_items(items: Iterable[KptItem]) -> List[KptItem]:
    return [i for i in items if is_completed(i)]
