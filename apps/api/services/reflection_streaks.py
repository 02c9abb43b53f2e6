"""
Reflection Streak Service

Counts consecutive days on which the user reflected (held a KPT session
or marked the day), walking backward from a reference date.

The trailing streak never looks further back than STREAK_LOOKBACK_DAYS.
`longest_streak` deliberately returns the trailing streak so existing
dashboards keep their numbers; `longest_streak_full_history` is the true
maximum run over every supplied date.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Collection, Iterable, Optional
import logging

from core.analytics_constants import STREAK_LOOKBACK_DAYS, STREAK_MILESTONES
from services.analytics_context import DateRange

logger = logging.getLogger(__name__)


@dataclass
class StreakInfo:
    """Current streak information"""
    current_streak_days: int
    longest_streak_days: int
    longest_streak_full_history: int
    last_active_date: Optional[date]
    message: str
    celebration: Optional[str]  # Special message for milestones


def current_streak(active_dates: Collection[date], reference_date: date) -> int:
    """
    Consecutive active days ending on reference_date.

    Returns 0 when reference_date itself is not active. At most
    STREAK_LOOKBACK_DAYS days are examined.
    """
    active = set(active_dates)
    streak = 0
    check_date = reference_date
    while streak < STREAK_LOOKBACK_DAYS and check_date in active:
        streak += 1
        check_date -= timedelta(days=1)
    return streak


def longest_streak(active_dates: Collection[date], reference_date: date) -> int:
    # Same as the trailing streak; see longest_streak_full_history
    return current_streak(active_dates, reference_date)


def longest_streak_full_history(active_dates: Iterable[date]) -> int:
    """Longest run of consecutive active days anywhere in the supplied dates."""
    ordered = sorted(set(active_dates))
    longest = 0
    run = 0
    previous = None
    for day in ordered:
        if previous is not None and day - previous == timedelta(days=1):
            run += 1
        else:
            run = 1
        longest = max(longest, run)
        previous = day
    return longest


def streak_within(active_dates: Collection[date], start: date, end: date) -> int:
    """Trailing run ending at `end` that never crosses back past `start`."""
    active = set(active_dates)
    streak = 0
    check_date = end
    while check_date >= start and check_date in active:
        streak += 1
        check_date -= timedelta(days=1)
    return streak


def reflection_frequency(session_dates: Iterable[date], date_range: DateRange) -> dict:
    """
    Share of days in the window that had at least one session.

    Returns:
        {"total_days", "reflection_days", "frequency_rate"} with the rate
        as a percentage rounded to 1 decimal
    """
    days = {d for d in session_dates if date_range.contains(d)}
    total_days = date_range.days
    rate = round(len(days) / total_days * 100, 1) if total_days > 0 else 0.0
    return {
        "total_days": total_days,
        "reflection_days": len(days),
        "frequency_rate": rate,
    }


def reflection_consistency(session_dates: Iterable[date], date_range: DateRange) -> float:
    """Percentage of 7-day blocks (counted from the window start) holding a session."""
    days = {d for d in session_dates if date_range.contains(d)}
    blocks = 0
    consistent = 0
    block_start = date_range.start
    while block_start <= date_range.end:
        block_end = min(block_start + timedelta(days=6), date_range.end)
        blocks += 1
        if any(block_start <= d <= block_end for d in days):
            consistent += 1
        block_start += timedelta(days=7)
    if blocks == 0:
        return 0.0
    return round(consistent / blocks * 100, 1)


def build_streak_info(active_dates: Collection[date], reference_date: date) -> StreakInfo:
    """
    Summarise streak state with a message and milestone celebration.
    """
    streak = current_streak(active_dates, reference_date)
    past = [d for d in active_dates if d <= reference_date]
    last_active = max(past) if past else None

    if streak == 0:
        message = "Start a new streak! Every day you reflect counts."
    elif streak == 1:
        message = "1 day of reflection. Come back tomorrow to build a streak."
    else:
        message = f"{streak} days of reflection in a row. Keep building!"

    return StreakInfo(
        current_streak_days=streak,
        longest_streak_days=longest_streak(active_dates, reference_date),
        longest_streak_full_history=longest_streak_full_history(past),
        last_active_date=last_active,
        message=message,
        celebration=STREAK_MILESTONES.get(streak),
    )


def streak_to_dict(info: StreakInfo) -> dict:
    return {
        "current_streak_days": info.current_streak_days,
        "longest_streak_days": info.longest_streak_days,
        "longest_streak_full_history": info.longest_streak_full_history,
        "last_active_date": info.last_active_date.isoformat() if info.last_active_date else None,
        "message": info.message,
        "celebration": info.celebration,
    }
