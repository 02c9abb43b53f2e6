"""
Tests for Work Log Analytics

Stats, time distribution, efficiency and productivity recommendations.
"""
from datetime import date, datetime, timezone

from services.analytics_context import DateRange
from services.work_log_analytics import (
    KEEP_LOGGING_REMINDER,
    efficiency_metrics,
    long_session_ratio,
    productivity_analysis,
    productivity_recommendations,
    time_distribution,
    work_log_stats,
)
from tests.journal_factories import make_work_log

WINDOW = DateRange(date(2025, 1, 6), date(2025, 1, 12))


def _at(day, hour):
    return datetime(2025, 1, day, hour, 0, tzinfo=timezone.utc)


def _logs():
    return [
        make_work_log(_at(6, 9), minutes=120, productivity=4, mood=4, category="dev", project="kpt", billable=True),
        make_work_log(_at(6, 14), minutes=60, productivity=2, mood=3, category="meeting"),
        make_work_log(_at(8, 9), minutes=30, productivity=5, status="in_progress"),
    ]


class TestWorkLogStats:

    def test_summary(self):
        stats = work_log_stats(_logs(), WINDOW)
        summary = stats["summary"]
        assert summary["total_logs"] == 3
        assert summary["completed_logs"] == 2
        assert summary["total_duration_minutes"] == 210
        assert summary["total_duration_formatted"] == "3h 30m"
        assert summary["billable_duration_minutes"] == 120
        assert summary["average_session_duration"] == 70

    def test_averages_and_breakdown(self):
        stats = work_log_stats(_logs(), WINDOW)
        assert stats["averages"]["productivity_score"] == 3.67
        assert stats["averages"]["difficulty_score"] is None
        assert stats["breakdown"]["by_category"] == {"dev": 1, "meeting": 1, "uncategorized": 1}
        assert stats["breakdown"]["by_status"] == {"completed": 2, "in_progress": 1}

    def test_daily_trends_cover_every_day(self):
        trends = work_log_stats(_logs(), WINDOW)["trends"]
        assert len(trends) == 7
        assert trends[0]["date"] == "2025-01-06"
        assert trends[0]["logs_count"] == 2
        assert trends[1]["logs_count"] == 0

    def test_empty_window(self):
        stats = work_log_stats([], WINDOW)
        assert stats["summary"]["total_logs"] == 0
        assert stats["summary"]["average_session_duration"] == 0
        assert stats["summary"]["total_duration_formatted"] == "0m"


def test_time_distribution():
    result = time_distribution(_logs())
    assert len(result["by_hour"]) == 24
    assert result["by_hour"][9] == 2
    assert result["by_day_of_week"]["Monday"] == 2
    assert result["by_day_of_week"]["Wednesday"] == 1
    assert result["by_category"] == {"dev": 120, "meeting": 60, "uncategorized": 30}


def test_efficiency_metrics():
    result = efficiency_metrics(_logs(), days=WINDOW.days)
    assert result["completion_rate"] == 66.67
    assert result["average_session_length"] == 90
    # 150 productive minutes over 7 days
    assert result["productive_hours_per_day"] == 0.36


def test_efficiency_metrics_without_days():
    assert efficiency_metrics([], days=0)["productive_hours_per_day"] == 0.0


def test_long_session_ratio():
    logs = [make_work_log(_at(6, 8), minutes=300), make_work_log(_at(7, 8), minutes=60)]
    assert long_session_ratio(logs) == 0.5
    assert long_session_ratio([]) == 0.0


def test_recommendations_always_end_with_reminder():
    assert productivity_recommendations([]) == [KEEP_LOGGING_REMINDER]

    logs = [make_work_log(_at(6, 8), minutes=300, productivity=1)]
    recommendations = productivity_recommendations(logs)
    assert len(recommendations) == 3
    assert recommendations[-1] == KEEP_LOGGING_REMINDER


def test_productivity_analysis_weekly_trends():
    analysis = productivity_analysis(_logs(), DateRange(date(2025, 1, 1), date(2025, 1, 12)), week_start=0)
    weeks = analysis["productivity_trends"]
    assert [w["week"] for w in weeks] == ["2024-12-30", "2025-01-06"]
    assert weeks[0]["logs_count"] == 0
    assert weeks[1]["total_duration"] == 210
    assert analysis["period_days"] == 12
