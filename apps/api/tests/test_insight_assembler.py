"""
Tests for the Insight Assembler

Payload assembly per analysis type, persistence (including a failed
write) and the stored-insight helpers.
"""
from datetime import date, datetime, timedelta, timezone
from unittest import mock
from uuid import uuid4

import pytest
from sqlalchemy.exc import SQLAlchemyError

from models import Insight
from services.analytics_context import AnalyticsContext
from services.insight_assembler import (
    ANALYSIS_TYPES,
    AssembledInsight,
    InsightAssembler,
    InsightPersistenceError,
    UnknownAnalysisTypeError,
    confidence_from_points,
    generate_insight_for_user,
    get_active_insights,
    insight_summary,
    set_insight_active,
)
from tests.journal_factories import add_session, make_item

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def journal(db_session, test_user):
    """A week of sessions with scored, tagged items."""
    for offset in range(5):
        add_session(db_session, test_user, NOW.date() - timedelta(days=offset), items=[
            make_item("keep", emotion=2 + (offset % 2), impact=4, tags=["focus", "team"], completed=True),
            make_item("problem", emotion=2, due_date=date(2025, 1, 1), tags=["focus"]),
        ])
    return test_user


def _assembler(db_session, user, days=30):
    return InsightAssembler(db_session, AnalyticsContext.for_last_days(user.id, days, now=NOW))


def test_confidence_from_points():
    assert confidence_from_points(0) == 0.0
    assert confidence_from_points(4) == 0.4
    assert confidence_from_points(25) == 1.0


class TestBuild:

    def test_emotion_analysis(self, db_session, journal):
        assembled = _assembler(db_session, journal).build("emotion_analysis")
        assert assembled.insight_type == "sentiment"
        assert assembled.content["analysis"]["average_score"] == 2.2
        assert "Bring more positive elements into your work." in assembled.content["recommendations"]
        assert assembled.confidence_score == 1.0

    def test_productivity_analysis(self, db_session, journal):
        assembled = _assembler(db_session, journal).build("productivity_analysis")
        analysis = assembled.content["analysis"]
        assert assembled.insight_type == "trend"
        assert analysis["completion_rate"] == 50.0
        assert analysis["productivity_score"] == 100
        assert analysis["weekly_trends"]

    def test_pattern_analysis(self, db_session, journal):
        assembled = _assembler(db_session, journal).build("pattern_analysis")
        analysis = assembled.content["analysis"]
        assert assembled.insight_type == "pattern"
        assert analysis["recurring_themes"][0] == {"tag": "focus", "count": 10}
        assert analysis["problem_patterns"]["overdue_count"] == 5
        assert "Work through your 5 overdue items." in assembled.content["recommendations"]

    def test_comprehensive_nests_every_analysis(self, db_session, journal):
        assembled = _assembler(db_session, journal).build("comprehensive")
        assert assembled.insight_type == "summary"
        assert set(assembled.content["analysis"]) == {"emotion", "productivity", "patterns"}
        assert len(assembled.content["key_insights"]) == 3
        assert len(assembled.content["action_items"]) == len(set(assembled.content["action_items"]))

    def test_empty_journal_still_builds(self, db_session, test_user):
        assembler = _assembler(db_session, test_user)
        for analysis_type in ANALYSIS_TYPES:
            assembled = assembler.build(analysis_type)
            assert assembled.confidence_score == 0.0

    def test_unknown_analysis_type(self, db_session, test_user):
        with pytest.raises(UnknownAnalysisTypeError):
            _assembler(db_session, test_user).build("astrology")

    def test_build_writes_nothing(self, db_session, journal):
        _assembler(db_session, journal).build("comprehensive")
        assert db_session.query(Insight).count() == 0


class TestPersist:

    def test_generate_stores_one_active_row(self, db_session, journal):
        insight = generate_insight_for_user(db_session, journal.id, "pattern_analysis", days=7, now=NOW)

        assert insight.id is not None
        assert insight.is_active is True
        assert insight.insight_type == "pattern"
        assert insight.data_source == "kpt_journal"
        assert db_session.query(Insight).filter(Insight.user_id == journal.id).count() == 1

    def test_generate_without_persist(self, db_session, journal):
        assembled = generate_insight_for_user(db_session, journal.id, "emotion_analysis", now=NOW, persist=False)
        assert isinstance(assembled, AssembledInsight)
        assert db_session.query(Insight).count() == 0

    def test_failed_write_stores_nothing(self, db_session, journal):
        assembler = _assembler(db_session, journal)
        with mock.patch.object(db_session, "commit", side_effect=SQLAlchemyError("disk full")):
            with pytest.raises(InsightPersistenceError):
                assembler.generate("comprehensive")

        assert db_session.query(Insight).count() == 0


class TestStoredInsights:

    def test_active_insights_and_toggle(self, db_session, journal):
        first = generate_insight_for_user(db_session, journal.id, "emotion_analysis", now=NOW)
        second = generate_insight_for_user(db_session, journal.id, "pattern_analysis", now=NOW + timedelta(hours=1))

        assert [i.id for i in get_active_insights(db_session, journal.id)] == [second.id, first.id]
        assert [i.id for i in get_active_insights(db_session, journal.id, insight_type="sentiment")] == [first.id]

        assert set_insight_active(db_session, journal.id, first.id, False).is_active is False
        assert [i.id for i in get_active_insights(db_session, journal.id)] == [second.id]

        assert set_insight_active(db_session, journal.id, first.id, True).is_active is True

    def test_toggle_unknown_insight(self, db_session, test_user):
        assert set_insight_active(db_session, test_user.id, uuid4(), False) is None

    def test_summary(self, db_session, journal):
        generate_insight_for_user(db_session, journal.id, "emotion_analysis", now=NOW)
        generate_insight_for_user(db_session, journal.id, "productivity_analysis", now=NOW)

        summary = insight_summary(db_session, journal.id)
        assert summary["total_count"] == 2
        assert summary["by_type"] == {"sentiment": 1, "trend": 1}
        assert summary["average_confidence"] == 1.0
        assert summary["high_confidence_count"] == 2

    def test_summary_without_insights(self, db_session, test_user):
        assert insight_summary(db_session, test_user.id) == {
            "total_count": 0,
            "by_type": {},
            "average_confidence": None,
            "high_confidence_count": 0,
        }
