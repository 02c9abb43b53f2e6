"""
Retrospective Dashboard & Calendar

Composite views built from the primitives: period statistics for the
dashboard, trend overview, the monthly reflection calendar, growth
analytics and the personal statistics card.

Every function takes a JournalSnapshot already scoped to the window it
describes. Work-log based figures are only produced when the snapshot
carries a work-log source.
"""

from collections import Counter
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Set
import calendar
import logging

from core.analytics_constants import ENGAGEMENT_WINDOW_DAYS, LONG_SESSION_MINUTES
from services.analytics_context import DateRange, InvalidRangeError
from services.journal_repository import JournalSnapshot
from services.period_aggregator import (
    Granularity,
    build_buckets,
    group_into_buckets,
    item_date,
    session_date,
    summarize_items,
    summarize_sessions,
)
from services.reflection_streaks import (
    current_streak,
    longest_streak,
    longest_streak_full_history,
    reflection_consistency,
    reflection_frequency,
    streak_within,
)
from services.retro_metrics import (
    average_score,
    completion_rate,
    count_by_category,
    is_completed,
    percent_change,
    progress_rate,
    rounded,
    total_minutes,
)
from services.retro_patterns import WEEKDAY_NAMES, category_patterns, popular_tags
from services.retro_recommendations import (
    generate_recommendations,
    metrics_from_snapshot,
    recommendations_to_dicts,
)
from services.trend_analysis import (
    emotion_trend,
    engagement_level,
    goal_completion_trend,
    improvement_trend,
    learning_acceleration,
    weekly_score_trends,
)

logger = logging.getLogger(__name__)

PERIODS = ("week", "month", "quarter", "year")

# Breakdown granularity inside each dashboard period
BREAKDOWN_GRANULARITY = {
    "week": Granularity.DAY,
    "month": Granularity.DAY,
    "quarter": Granularity.MONTH,
    "year": Granularity.QUARTER,
}


# =============================================================================
# DASHBOARD PERIODS
# =============================================================================

def period_window(period: str, today: date, week_start: int = 0) -> DateRange:
    """
    Calendar window of the named period that contains today.

    Raises:
        InvalidRangeError: unknown period
    """
    if period == "week":
        start = today - timedelta(days=(today.weekday() - week_start) % 7)
        return DateRange(start, start + timedelta(days=6))
    if period == "month":
        last_day = calendar.monthrange(today.year, today.month)[1]
        return DateRange(today.replace(day=1), today.replace(day=last_day))
    if period == "quarter":
        first_month = 3 * ((today.month - 1) // 3) + 1
        last_month = first_month + 2
        return DateRange(
            date(today.year, first_month, 1),
            date(today.year, last_month, calendar.monthrange(today.year, last_month)[1]),
        )
    if period == "year":
        return DateRange(date(today.year, 1, 1), date(today.year, 12, 31))
    raise InvalidRangeError(f"unknown period: {period!r}; expected one of {', '.join(PERIODS)}")


def period_stats(
    snapshot: JournalSnapshot,
    period: str,
    previous: Optional[JournalSnapshot] = None,
    week_start: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Sessions and items summary for a dashboard period with a breakdown.

    Args:
        snapshot: Snapshot covering the period
        period: week, month, quarter or year
        previous: Snapshot of the preceding period, for change percentages
    """
    if period not in BREAKDOWN_GRANULARITY:
        raise InvalidRangeError(f"unknown period: {period!r}; expected one of {', '.join(PERIODS)}")

    sessions = list(snapshot.sessions)
    items = list(snapshot.items)
    buckets = build_buckets(snapshot.date_range, BREAKDOWN_GRANULARITY[period], week_start)
    session_groups = group_into_buckets(sessions, buckets, session_date)
    item_groups = group_into_buckets(items, buckets, item_date)

    breakdown = [
        {
            "label": bucket.label,
            **bucket.bounds(),
            "sessions_count": len(bucket_sessions),
            "completed_sessions": sum(1 for s in bucket_sessions if is_completed(s)),
            "items_count": len(bucket_items),
            "completed_items": sum(1 for i in bucket_items if is_completed(i)),
        }
        for bucket, bucket_sessions, bucket_items in zip(buckets, session_groups, item_groups)
    ]

    stats = {
        "period": period,
        "period_start": snapshot.date_range.start.isoformat(),
        "period_end": snapshot.date_range.end.isoformat(),
        "sessions": summarize_sessions(sessions),
        "items": summarize_items(items),
        "breakdown": breakdown,
    }
    if previous is not None:
        stats["comparison"] = {
            "sessions_change": percent_change(len(sessions), len(previous.sessions)),
            "completion_change": percent_change(
                sum(1 for s in sessions if is_completed(s)),
                sum(1 for s in previous.sessions if is_completed(s)),
            ),
        }
    return stats


def session_productivity_score(sessions, items) -> float:
    """
    0-100 score: session completion share x 60 plus up to 40 points for
    items per session (8 points each).
    """
    sessions = list(sessions)
    if not sessions:
        return 0.0
    completion = sum(1 for s in sessions if is_completed(s)) / len(sessions)
    items_per_session = len(list(items)) / len(sessions)
    score = completion * 60 + min(items_per_session * 8, 40)
    return round(min(score, 100), 2)


def overview_metrics(snapshot: JournalSnapshot) -> Dict[str, Any]:
    """Productivity score, engagement level and improvement trend as of context.now."""
    today = snapshot.context.today
    window_start = today - timedelta(days=ENGAGEMENT_WINDOW_DAYS)
    recent_sessions = [s for s in snapshot.sessions if s.session_date > window_start]

    recent_completed = 0
    previous_completed = 0
    for item in snapshot.items:
        if item.completed_at is None:
            continue
        completed_on = item.completed_at.date()
        if window_start < completed_on <= today:
            recent_completed += 1
        elif window_start - timedelta(days=ENGAGEMENT_WINDOW_DAYS) < completed_on <= window_start:
            previous_completed += 1

    return {
        "productivity_score": session_productivity_score(snapshot.sessions, snapshot.items),
        "engagement_level": engagement_level(len(recent_sessions)),
        "improvement_trend": improvement_trend(recent_completed, previous_completed),
    }


def trend_overview(snapshot: JournalSnapshot) -> Dict[str, Any]:
    items = list(snapshot.items)
    impact = Counter(i.impact_score for i in items if i.impact_score is not None)

    type_stats = {}
    for category in ("keep", "problem", "try"):
        group = [i for i in items if i.category == category]
        type_stats[category] = {
            "total": len(group),
            "avg_emotion_score": rounded(average_score(group, "emotion_score")),
            "avg_impact_score": rounded(average_score(group, "impact_score")),
        }

    buckets = build_buckets(snapshot.date_range, Granularity.MONTH)
    monthly = []
    for bucket, sessions in zip(buckets, group_into_buckets(snapshot.sessions, buckets, session_date)):
        monthly.append({
            "month": bucket.label,
            "sessions_count": len(sessions),
            "items_count": sum(len(snapshot.items_for(s)) for s in sessions),
        })

    return {
        "emotion_trend": emotion_trend(items, snapshot.date_range),
        "impact_distribution": {score: impact.get(score, 0) for score in range(1, 6)},
        "type_stats": type_stats,
        "monthly_trends": monthly,
    }


# =============================================================================
# CALENDAR
# =============================================================================

def daily_reflection_score(sessions) -> int:
    """
    0-100 reflection score for one day, averaged over its sessions.

    Each session earns 20 base points, 5 per item, up to 30 for progress
    and 10 per point of average emotion, capped at 100.
    """
    sessions = list(sessions)
    if not sessions:
        return 0
    total = 0.0
    for session in sessions:
        items = list(session.items or [])
        score = 20 + len(items) * 5 + progress_rate(session) * 30
        score += (average_score(items, "emotion_score") or 0) * 10
        total += min(score, 100)
    return int(round(total / len(sessions)))


def productivity_level(day: date, snapshot: JournalSnapshot) -> str:
    """
    none / low / medium / high for one calendar day.

    With a work-log source the day's work logs decide (average productivity
    score, or logged time when unscored); without one the number of KPT
    items recorded that day is used.
    """
    if snapshot.has_work_log_source:
        logs = [w for w in snapshot.work_logs if w.started_at.date() == day]
        if not logs:
            return "none"
        avg_productivity = average_score(logs, "productivity_score")
        if avg_productivity is None:
            return "medium" if total_minutes(logs) > LONG_SESSION_MINUTES else "low"
        if avg_productivity >= 4:
            return "high"
        if avg_productivity >= 3:
            return "medium"
        return "low"

    sessions = [s for s in snapshot.sessions if s.session_date == day]
    if not sessions:
        return "none"
    item_count = sum(len(snapshot.items_for(s)) for s in sessions)
    if item_count <= 2:
        return "low"
    if item_count <= 8:
        return "medium"
    return "high"


def month_range(year: int, month: int) -> DateRange:
    if not 1 <= month <= 12:
        raise InvalidRangeError(f"month must be between 1 and 12, got {month}")
    return DateRange(date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1]))


def calendar_month(snapshot: JournalSnapshot, year: int, month: int) -> List[Dict[str, Any]]:
    days_range = month_range(year, month)
    marks = {m.date: m for m in snapshot.marks}
    days = []
    for day in days_range.iter_days():
        sessions = [s for s in snapshot.sessions if s.session_date == day]
        mark = marks.get(day)
        days.append({
            "date": day.isoformat(),
            "day": day.day,
            "weekday": WEEKDAY_NAMES[day.weekday()],
            "has_kpt_session": bool(sessions),
            "kpt_sessions": [
                {
                    "id": str(s.id),
                    "title": s.title,
                    "status": s.status,
                    "items_count": len(snapshot.items_for(s)),
                    "progress_rate": round(progress_rate(s), 2),
                }
                for s in sessions
            ],
            "is_marked": mark is not None,
            "mark_type": mark.mark_type if mark else None,
            "reflection_score": daily_reflection_score(sessions),
            "productivity_level": productivity_level(day, snapshot),
        })
    return days


def monthly_summary(snapshot: JournalSnapshot, year: int, month: int) -> Dict[str, Any]:
    days_range = month_range(year, month)
    sessions = [s for s in snapshot.sessions if days_range.contains(s.session_date)]
    total_items = sum(len(snapshot.items_for(s)) for s in sessions)
    return {
        "total_reflection_days": len({s.session_date for s in sessions}),
        "total_sessions": len(sessions),
        "completed_sessions": sum(1 for s in sessions if is_completed(s)),
        "total_items": total_items,
        "average_items_per_session": round(total_items / len(sessions), 1) if sessions else 0.0,
        "reflection_streak": streak_within(snapshot.activity_dates(), days_range.start, days_range.end),
    }


# =============================================================================
# GROWTH & PERSONAL STATS
# =============================================================================

def growth_analytics(snapshot: JournalSnapshot, week_start: Optional[int] = None) -> Dict[str, Any]:
    sessions = list(snapshot.sessions)
    items = list(snapshot.items)
    session_dates = snapshot.session_dates()

    rate = round(completion_rate(sessions), 1)
    items_per_session = round(len(items) / len(sessions), 1) if sessions else 0.0

    return {
        "reflection_frequency": reflection_frequency(session_dates, snapshot.date_range),
        "emotion_trends": weekly_score_trends(items, snapshot.date_range, "emotion_score", week_start),
        "impact_trends": weekly_score_trends(items, snapshot.date_range, "impact_score", week_start),
        "kpt_patterns": category_patterns(items, sessions),
        "growth_indicators": {
            "reflection_consistency": reflection_consistency(session_dates, snapshot.date_range),
            "goal_completion_trend": {
                "current_rate": rate,
                "trend": goal_completion_trend(rate),
            },
            "learning_acceleration": {
                "items_per_session": items_per_session,
                "acceleration": learning_acceleration(items_per_session),
            },
        },
        "recommendations": recommendations_to_dicts(
            generate_recommendations(metrics_from_snapshot(snapshot))
        ),
    }


def most_productive_weekday(sessions) -> Optional[str]:
    counts = Counter(s.session_date.weekday() for s in sessions)
    if not counts:
        return None
    weekday = max(sorted(counts), key=lambda d: counts[d])
    return WEEKDAY_NAMES[weekday]


def recent_achievements(snapshot: JournalSnapshot, limit: int = 3) -> List[Dict[str, Any]]:
    completed = [s for s in snapshot.sessions if is_completed(s)]
    completed.sort(
        key=lambda s: s.completed_at.date() if s.completed_at else s.session_date,
        reverse=True,
    )
    return [
        {
            "type": "session_completed",
            "title": f"KPT session completed: {s.title}",
            "date": (s.completed_at.date() if s.completed_at else s.session_date).isoformat(),
            "description": f"Reflection completed with {len(snapshot.items_for(s))} items",
        }
        for s in completed[:limit]
    ]


def personal_stats(snapshot: JournalSnapshot, activity_dates: Optional[Set[date]] = None) -> Dict[str, Any]:
    """
    All-time statistics card.

    Args:
        snapshot: Snapshot spanning the user's whole history
        activity_dates: Streak qualifying days; defaults to the snapshot's
    """
    sessions = list(snapshot.sessions)
    if activity_dates is None:
        activity_dates = snapshot.activity_dates()
    today = snapshot.context.today
    months_with_data = len({(s.session_date.year, s.session_date.month) for s in sessions})

    return {
        "total_sessions": len(sessions),
        "total_items": len(snapshot.items),
        "items_by_category": count_by_category(snapshot.items),
        "completion_rate": round(completion_rate(sessions), 1),
        "current_streak": current_streak(activity_dates, today),
        "longest_streak": longest_streak(activity_dates, today),
        "longest_streak_full_history": longest_streak_full_history(activity_dates),
        "monthly_average": round(len(sessions) / months_with_data, 1) if months_with_data else 0.0,
        "most_productive_day": most_productive_weekday(sessions),
        "popular_tags": popular_tags(sessions),
        "recent_achievements": recent_achievements(snapshot),
    }
