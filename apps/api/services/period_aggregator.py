"""
Time-Window Aggregator

Buckets journal records by day, week, month, quarter or year and summarises
each bucket. Every bucket in the requested window is emitted, in
chronological order, even when nothing falls into it, so callers can draw
continuous series without gap-filling.

Relevant dates:
- session: session_date
- item: its session's session_date
- work log: started_at date
- reflection mark: date
"""

from bisect import bisect_right
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional
import logging

from core.analytics_constants import MAX_BUCKETS
from core.config import settings
from models import KptItem, KptSession, WorkLog
from services.analytics_context import DateRange, InvalidRangeError
from services.retro_metrics import (
    average_score,
    completion_rate,
    count_by_category,
    duration_minutes,
    is_completed,
    rounded,
)

logger = logging.getLogger(__name__)


class Granularity(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"

    @classmethod
    def parse(cls, value: Any) -> "Granularity":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise InvalidRangeError(f"unknown granularity: {value!r}") from None


@dataclass(frozen=True)
class Bucket:
    """
    One period of the window.

    period_start is the natural start of the period (e.g. the Monday of a
    week); start/end are clipped to the requested window.
    """
    label: str
    period_start: date
    start: date
    end: date

    def bounds(self) -> Dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


def _period_start(day: date, granularity: Granularity, week_start: int) -> date:
    if granularity == Granularity.DAY:
        return day
    if granularity == Granularity.WEEK:
        return day - timedelta(days=(day.weekday() - week_start) % 7)
    if granularity == Granularity.MONTH:
        return day.replace(day=1)
    if granularity == Granularity.QUARTER:
        return date(day.year, 3 * ((day.month - 1) // 3) + 1, 1)
    return date(day.year, 1, 1)


def _next_period(period_start: date, granularity: Granularity) -> date:
    if granularity == Granularity.DAY:
        return period_start + timedelta(days=1)
    if granularity == Granularity.WEEK:
        return period_start + timedelta(days=7)
    if granularity == Granularity.YEAR:
        return date(period_start.year + 1, 1, 1)
    step = 1 if granularity == Granularity.MONTH else 3
    month = period_start.month + step
    year = period_start.year + (month - 1) // 12
    return date(year, (month - 1) % 12 + 1, 1)


def _label(period_start: date, granularity: Granularity) -> str:
    if granularity in (Granularity.DAY, Granularity.WEEK):
        return period_start.isoformat()
    if granularity == Granularity.MONTH:
        return period_start.strftime("%Y-%m")
    if granularity == Granularity.QUARTER:
        return f"{period_start.year}Q{(period_start.month - 1) // 3 + 1}"
    return str(period_start.year)


def build_buckets(
    date_range: DateRange,
    granularity: Any,
    week_start: Optional[int] = None,
) -> List[Bucket]:
    """
    Split a window into chronological buckets.

    Args:
        date_range: Inclusive window
        granularity: Granularity or its string value
        week_start: First weekday of week buckets (0=Monday .. 6=Sunday);
            defaults to ANALYTICS_WEEK_START

    Raises:
        InvalidRangeError: unknown granularity or more than MAX_BUCKETS buckets
    """
    granularity = Granularity.parse(granularity)
    if week_start is None:
        week_start = settings.ANALYTICS_WEEK_START
    if not 0 <= week_start <= 6:
        raise InvalidRangeError(f"week_start must be between 0 and 6, got {week_start}")

    buckets: List[Bucket] = []
    period = _period_start(date_range.start, granularity, week_start)
    while period <= date_range.end:
        if len(buckets) >= MAX_BUCKETS:
            raise InvalidRangeError(
                f"window {date_range.start.isoformat()}..{date_range.end.isoformat()} "
                f"produces more than {MAX_BUCKETS} {granularity.value} buckets"
            )
        following = _next_period(period, granularity)
        buckets.append(Bucket(
            label=_label(period, granularity),
            period_start=period,
            start=max(period, date_range.start),
            end=min(following - timedelta(days=1), date_range.end),
        ))
        period = following
    return buckets


def item_date(item: KptItem) -> Optional[date]:
    if item.session is not None:
        return item.session.session_date
    return item.created_at.date() if item.created_at else None


def session_date(session: KptSession) -> date:
    return session.session_date


def work_log_date(work_log: WorkLog) -> date:
    return work_log.started_at.date()


def group_into_buckets(
    records: Iterable[Any],
    buckets: List[Bucket],
    date_of: Callable[[Any], Optional[date]],
) -> List[List[Any]]:
    """Place each record into the bucket whose clipped bounds hold its date; others are dropped."""
    grouped: List[List[Any]] = [[] for _ in buckets]
    if not buckets:
        return grouped
    starts = [b.start for b in buckets]
    for record in records:
        day = date_of(record)
        if day is None or day < buckets[0].start or day > buckets[-1].end:
            continue
        grouped[bisect_right(starts, day) - 1].append(record)
    return grouped


def aggregate_sessions(
    sessions: Iterable[KptSession],
    date_range: DateRange,
    granularity: Any,
    week_start: Optional[int] = None,
) -> List[Dict[str, Any]]:
    buckets = build_buckets(date_range, granularity, week_start)
    result = []
    for bucket, members in zip(buckets, group_into_buckets(sessions, buckets, session_date)):
        result.append({
            "label": bucket.label,
            **bucket.bounds(),
            "sessions_count": len(members),
            "completed_count": sum(1 for s in members if is_completed(s)),
            "completion_rate": completion_rate(members),
        })
    return result


def aggregate_items(
    items: Iterable[KptItem],
    date_range: DateRange,
    granularity: Any,
    week_start: Optional[int] = None,
) -> List[Dict[str, Any]]:
    buckets = build_buckets(date_range, granularity, week_start)
    result = []
    for bucket, members in zip(buckets, group_into_buckets(items, buckets, item_date)):
        result.append({
            "label": bucket.label,
            **bucket.bounds(),
            "items_count": len(members),
            "completed_count": sum(1 for i in members if is_completed(i)),
            "by_type": count_by_category(members),
            "avg_emotion": rounded(average_score(members, "emotion_score")),
            "avg_impact": rounded(average_score(members, "impact_score")),
        })
    return result


def aggregate_work_logs(
    work_logs: Iterable[WorkLog],
    date_range: DateRange,
    granularity: Any,
    week_start: Optional[int] = None,
) -> List[Dict[str, Any]]:
    buckets = build_buckets(date_range, granularity, week_start)
    result = []
    for bucket, members in zip(buckets, group_into_buckets(work_logs, buckets, work_log_date)):
        result.append({
            "label": bucket.label,
            **bucket.bounds(),
            "work_logs_count": len(members),
            "completed_count": sum(1 for w in members if is_completed(w)),
            "total_minutes": sum(duration_minutes(w) for w in members),
            "avg_mood": rounded(average_score(members, "mood_score")),
            "avg_productivity": rounded(average_score(members, "productivity_score")),
        })
    return result


def score_series(
    items: Iterable[KptItem],
    field: str,
    date_range: DateRange,
    granularity: Any,
    week_start: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """
    Per-bucket average of an item score.

    Returns:
        [{bucket_label, average, count}] with average None for buckets
        where no item carries the score
    """
    buckets = build_buckets(date_range, granularity, week_start)
    series = []
    for bucket, members in zip(buckets, group_into_buckets(items, buckets, item_date)):
        scored = [i for i in members if getattr(i, field, None) is not None]
        series.append({
            "bucket_label": bucket.label,
            "average": rounded(average_score(scored, field)),
            "count": len(scored),
        })
    return series


def summarize_items(items: Iterable[KptItem]) -> Dict[str, Any]:
    """Totals and score averages for the items of one period."""
    items = list(items)
    completed = sum(1 for i in items if is_completed(i))
    return {
        "total": len(items),
        "completed": completed,
        "active": len(items) - completed,
        "by_type": count_by_category(items),
        "avg_emotion": rounded(average_score(items, "emotion_score")),
        "avg_impact": rounded(average_score(items, "impact_score")),
    }


def summarize_sessions(sessions: Iterable[KptSession]) -> Dict[str, Any]:
    sessions = list(sessions)
    return {
        "total": len(sessions),
        "completed": sum(1 for s in sessions if is_completed(s)),
        "in_progress": sum(1 for s in sessions if s.status == "in_progress"),
        "completion_rate": completion_rate(sessions),
    }
