"""
Analytics API Router

Read-only retrospective analytics for one user: dashboard period stats,
trends, growth analytics, the personal stats card, the reflection calendar
and work-log statistics.

The routers only shape JSON and map analytics errors to HTTP errors;
every number comes from the services package.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional
from uuid import UUID
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.config import settings
from core.database import get_db
from core.exceptions import ValidationError
from services.analytics_context import AnalyticsContext, DateRange, InvalidRangeError, clamp_days
from services.journal_repository import JournalRepository
from services.reflection_streaks import build_streak_info, streak_to_dict
from services.retro_dashboard import (
    calendar_month,
    growth_analytics,
    month_range,
    monthly_summary,
    overview_metrics,
    period_stats,
    period_window,
    personal_stats,
    trend_overview,
)
from services.work_log_analytics import productivity_analysis, work_log_stats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/users/{user_id}/analytics", tags=["analytics"])


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _window(start_date: Optional[date], end_date: Optional[date], today: date) -> DateRange:
    end = end_date or today
    start = start_date or end - timedelta(days=settings.ANALYTICS_DEFAULT_DAYS - 1)
    return DateRange(start, end)


@router.get("/stats")
def get_period_stats(
    user_id: UUID,
    period: str = Query("week", description="week, month, quarter or year"),
    db: Session = Depends(get_db),
):
    """
    Dashboard statistics for the current calendar period.

    Monthly stats also compare against the previous month.
    """
    now = _now()
    repository = JournalRepository(db)
    try:
        window = period_window(period, now.date(), settings.ANALYTICS_WEEK_START)
        snapshot = repository.load_snapshot(AnalyticsContext(user_id, window, now))
        previous = None
        if period == "month":
            previous_end = window.start - timedelta(days=1)
            previous = repository.load_snapshot(
                AnalyticsContext(user_id, month_range(previous_end.year, previous_end.month), now)
            )
        stats = period_stats(snapshot, period, previous=previous)
    except InvalidRangeError as e:
        raise ValidationError(str(e), field="period") from e

    recent = repository.load_snapshot(
        AnalyticsContext.for_last_days(user_id, settings.ANALYTICS_DEFAULT_DAYS, now=now)
    )
    stats["metrics"] = overview_metrics(recent)
    return stats


@router.get("/trends")
def get_trends(
    user_id: UUID,
    days: Optional[int] = Query(None, description="Analysis window in days (clamped to 7-365)"),
    db: Session = Depends(get_db),
):
    days = clamp_days(
        days,
        settings.ANALYTICS_MIN_TREND_DAYS,
        settings.ANALYTICS_MAX_DAYS,
        default=settings.ANALYTICS_DEFAULT_DAYS,
    )
    context = AnalyticsContext.for_last_days(user_id, days, now=_now())
    snapshot = JournalRepository(db).load_snapshot(context)
    return {
        "period_days": days,
        **trend_overview(snapshot),
    }


@router.get("/growth")
def get_growth_analytics(
    user_id: UUID,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
):
    now = _now()
    try:
        window = _window(start_date, end_date, now.date())
        snapshot = JournalRepository(db).load_snapshot(AnalyticsContext(user_id, window, now))
        return growth_analytics(snapshot, week_start=settings.ANALYTICS_WEEK_START)
    except InvalidRangeError as e:
        raise ValidationError(str(e), field="date_range") from e


@router.get("/personal-stats")
def get_personal_stats(
    user_id: UUID,
    db: Session = Depends(get_db),
):
    """All-time statistics card, streaks included."""
    now = _now()
    today = now.date()
    repository = JournalRepository(db)

    first = repository.first_session_date(user_id)
    window = DateRange(min(first, today) if first else today, today)
    snapshot = repository.load_snapshot(AnalyticsContext(user_id, window, now))
    activity_dates = repository.load_activity_dates(user_id, end=today)

    stats = personal_stats(snapshot, activity_dates)
    stats["streak"] = streak_to_dict(build_streak_info(activity_dates, today))
    return stats


@router.get("/calendar")
def get_calendar(
    user_id: UUID,
    year: Optional[int] = Query(None, ge=1970, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
    db: Session = Depends(get_db),
):
    """Reflection calendar for one month with its summary."""
    now = _now()
    today = now.date()
    year = year or today.year
    month = month or today.month

    repository = JournalRepository(db)
    try:
        window = month_range(year, month)
    except InvalidRangeError as e:
        raise ValidationError(str(e), field="month") from e

    snapshot = repository.load_snapshot(AnalyticsContext(user_id, window, now), include_work_logs=True)
    activity_dates = repository.load_activity_dates(user_id, end=today)

    return {
        "year": year,
        "month": month,
        "days": calendar_month(snapshot, year, month),
        "summary": monthly_summary(snapshot, year, month),
        "streak": streak_to_dict(build_streak_info(activity_dates, today)),
    }


@router.get("/work-logs/stats")
def get_work_log_stats(
    user_id: UUID,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
):
    try:
        window = _window(start_date, end_date, _now().date())
        work_logs = JournalRepository(db).load_work_logs(user_id, window)
        return work_log_stats(work_logs, window)
    except InvalidRangeError as e:
        raise ValidationError(str(e), field="date_range") from e


@router.get("/work-logs/productivity")
def get_work_log_productivity(
    user_id: UUID,
    days: Optional[int] = Query(None, description="Analysis window in days (at most 365)"),
    db: Session = Depends(get_db),
):
    days = clamp_days(days, 1, settings.ANALYTICS_MAX_DAYS, default=settings.ANALYTICS_DEFAULT_DAYS)
    window = DateRange.last_days(days, _now().date())
    work_logs = JournalRepository(db).load_work_logs(user_id, window)
    return productivity_analysis(work_logs, window, week_start=settings.ANALYTICS_WEEK_START)
