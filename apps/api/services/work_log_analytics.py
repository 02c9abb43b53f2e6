"""
Work Log Analytics

Statistics and productivity analysis over timed work logs: totals and
billable minutes, score averages, breakdowns, daily and weekly trends,
time-of-day distribution and efficiency metrics.
"""

from collections import Counter, defaultdict
from typing import Any, Dict, List, Optional, Sequence
import logging

from core.analytics_constants import PRODUCTIVE_SCORE_THRESHOLD
from models import WorkLog
from services.analytics_context import DateRange
from services.period_aggregator import Granularity, aggregate_work_logs
from services.retro_metrics import (
    average_score,
    completion_rate,
    duration_minutes,
    format_duration,
    is_completed,
    rounded,
    total_minutes,
)
from services.retro_recommendations import (
    RecommendationMetrics,
    generate_recommendations,
    long_session_count,
)
from services.retro_patterns import WEEKDAY_NAMES

logger = logging.getLogger(__name__)

KEEP_LOGGING_REMINDER = "Keep recording your work logs regularly."
UNCATEGORIZED = "uncategorized"


def long_session_ratio(work_logs: Sequence[WorkLog]) -> float:
    """Share of work logs longer than LONG_SESSION_MINUTES; 0.0 when there are none."""
    if not work_logs:
        return 0.0
    return round(long_session_count(work_logs) / len(work_logs), 2)


def _breakdown(work_logs: Sequence[WorkLog], attribute: str) -> Dict[str, int]:
    counts = Counter((getattr(w, attribute) or UNCATEGORIZED) for w in work_logs)
    return dict(sorted(counts.items()))


def work_log_stats(work_logs: Sequence[WorkLog], date_range: DateRange) -> Dict[str, Any]:
    """
    Summary, averages, breakdowns and daily trends for a window.

    Args:
        work_logs: Work logs that started inside the window
        date_range: The window (daily trends cover every day in it)
    """
    work_logs = list(work_logs)
    total = total_minutes(work_logs)
    billable = total_minutes(w for w in work_logs if w.is_billable)

    daily = aggregate_work_logs(work_logs, date_range, Granularity.DAY)
    trends = [
        {
            "date": bucket["start"],
            "logs_count": bucket["work_logs_count"],
            "total_duration": bucket["total_minutes"],
            "avg_mood": bucket["avg_mood"],
            "avg_productivity": bucket["avg_productivity"],
        }
        for bucket in daily
    ]

    return {
        "period": {
            "start_date": date_range.start.isoformat(),
            "end_date": date_range.end.isoformat(),
        },
        "summary": {
            "total_logs": len(work_logs),
            "completed_logs": sum(1 for w in work_logs if is_completed(w)),
            "total_duration_minutes": total,
            "total_duration_formatted": format_duration(total),
            "billable_duration_minutes": billable,
            "billable_duration_formatted": format_duration(billable),
            "average_session_duration": round(total / len(work_logs)) if work_logs else 0,
        },
        "averages": {
            "mood_score": rounded(average_score(work_logs, "mood_score")),
            "productivity_score": rounded(average_score(work_logs, "productivity_score")),
            "difficulty_score": rounded(average_score(work_logs, "difficulty_score")),
        },
        "breakdown": {
            "by_category": _breakdown(work_logs, "category"),
            "by_project": _breakdown(work_logs, "project_name"),
            "by_status": _breakdown(work_logs, "status"),
        },
        "trends": trends,
    }


def time_distribution(work_logs: Sequence[WorkLog]) -> Dict[str, Any]:
    by_hour = {hour: 0 for hour in range(24)}
    by_weekday = {name: 0 for name in WEEKDAY_NAMES}
    by_category: Dict[str, int] = defaultdict(int)
    for w in work_logs:
        by_hour[w.started_at.hour] += 1
        by_weekday[WEEKDAY_NAMES[w.started_at.weekday()]] += 1
        by_category[w.category or UNCATEGORIZED] += duration_minutes(w)
    return {
        "by_hour": by_hour,
        "by_day_of_week": by_weekday,
        "by_category": dict(sorted(by_category.items())),
    }


def efficiency_metrics(work_logs: Sequence[WorkLog], days: int) -> Dict[str, Any]:
    """
    Completion rate, mean completed-session length and productive hours per day.

    Productive time is logged time with a productivity score of at least
    PRODUCTIVE_SCORE_THRESHOLD, spread over the days of the window.
    """
    completed = [w for w in work_logs if is_completed(w)]
    productive_minutes = total_minutes(
        w for w in work_logs
        if w.productivity_score is not None and w.productivity_score >= PRODUCTIVE_SCORE_THRESHOLD
    )
    return {
        "completion_rate": completion_rate(work_logs),
        "average_session_length": round(total_minutes(completed) / len(completed)) if completed else 0,
        "productive_hours_per_day": round(productive_minutes / 60 / days, 2) if days > 0 else 0.0,
    }


def productivity_recommendations(work_logs: Sequence[WorkLog]) -> List[str]:
    metrics = RecommendationMetrics(
        average_productivity=average_score(work_logs, "productivity_score"),
        work_log_count=len(work_logs),
        long_session_count=long_session_count(work_logs),
    )
    recommendations = [r.description for r in generate_recommendations(metrics)]
    recommendations.append(KEEP_LOGGING_REMINDER)
    return recommendations


def productivity_analysis(
    work_logs: Sequence[WorkLog],
    date_range: DateRange,
    week_start: Optional[int] = None,
) -> Dict[str, Any]:
    work_logs = list(work_logs)
    weekly = aggregate_work_logs(work_logs, date_range, Granularity.WEEK, week_start)

    analysis = {
        "period_days": date_range.days,
        "productivity_trends": [
            {
                "week": bucket["label"],
                "start": bucket["start"],
                "end": bucket["end"],
                "total_duration": bucket["total_minutes"],
                "avg_productivity": bucket["avg_productivity"],
                "logs_count": bucket["work_logs_count"],
            }
            for bucket in weekly
        ],
        "time_distribution": time_distribution(work_logs),
        "efficiency_metrics": efficiency_metrics(work_logs, date_range.days),
        "long_session_ratio": long_session_ratio(work_logs),
        "recommendations": productivity_recommendations(work_logs),
    }
    logger.debug(
        "Work log productivity analysed",
        extra={"extra_fields": {"work_logs": len(work_logs), "days": date_range.days}},
    )
    return analysis
