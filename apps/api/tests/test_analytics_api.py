"""
Integration tests for the analytics and insights API endpoints

Requests run against the transactional db_session through a get_db
override, so nothing written here outlives the test.
"""
import asyncio
import json
from datetime import datetime, timedelta, timezone
from unittest import mock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import SQLAlchemyError

from core.database import get_db
from main import app, invalid_range_handler
from models import Insight
from services.analytics_context import InvalidRangeError
from tests.journal_factories import add_mark, add_session, add_work_log, make_item

client = TestClient(app)


@pytest.fixture
def api_db(db_session):
    """Route every request's session to the test transaction."""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    yield db_session
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def today():
    return datetime.now(timezone.utc).date()


@pytest.fixture
def journal(api_db, test_user, today):
    """Three consecutive days of reflection ending today."""
    for offset in range(3):
        add_session(api_db, test_user, today - timedelta(days=offset), status="completed", items=[
            make_item("keep", emotion=4, impact=4, tags=["focus"], completed=True),
            make_item("problem", emotion=2, tags=["focus"]),
        ])
    add_work_log(
        api_db,
        test_user,
        datetime.combine(today, datetime.min.time(), tzinfo=timezone.utc) + timedelta(hours=9),
        minutes=90,
        productivity=4,
    )
    return test_user


def _analytics(user, path):
    return f"/v1/users/{user.id}/analytics{path}"


def _insights(user, path=""):
    return f"/v1/users/{user.id}/insights{path}"


class TestAnalyticsEndpoints:

    def test_week_stats(self, journal):
        response = client.get(_analytics(journal, "/stats"), params={"period": "week"})
        assert response.status_code == 200
        data = response.json()
        assert data["period"] == "week"
        assert len(data["breakdown"]) == 7
        assert data["metrics"]["engagement_level"] == "medium"

    def test_month_stats_include_comparison(self, journal):
        response = client.get(_analytics(journal, "/stats"), params={"period": "month"})
        assert response.status_code == 200
        assert "comparison" in response.json()

    def test_unknown_period_is_422(self, api_db, test_user):
        response = client.get(_analytics(test_user, "/stats"), params={"period": "decade"})
        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR_PERIOD"

    def test_trends_clamp_window(self, journal):
        response = client.get(_analytics(journal, "/trends"), params={"days": 2})
        assert response.status_code == 200
        data = response.json()
        assert data["period_days"] == 7
        assert data["type_stats"]["keep"]["total"] == 3

        response = client.get(_analytics(journal, "/trends"), params={"days": 5000})
        assert response.json()["period_days"] == 365

    def test_growth_rejects_inverted_window(self, api_db, test_user):
        response = client.get(
            _analytics(test_user, "/growth"),
            params={"start_date": "2025-02-01", "end_date": "2025-01-01"},
        )
        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR_DATE_RANGE"

    def test_growth(self, journal, today):
        response = client.get(
            _analytics(journal, "/growth"),
            params={"start_date": (today - timedelta(days=13)).isoformat(), "end_date": today.isoformat()},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["reflection_frequency"]["reflection_days"] == 3
        assert data["reflection_frequency"]["total_days"] == 14

    def test_personal_stats_streak(self, journal):
        response = client.get(_analytics(journal, "/personal-stats"))
        assert response.status_code == 200
        data = response.json()
        assert data["total_sessions"] == 3
        assert data["current_streak"] == 3
        assert data["streak"]["current_streak_days"] == 3

    def test_marks_extend_streak(self, journal, api_db, today):
        add_mark(api_db, journal, today - timedelta(days=3))
        response = client.get(_analytics(journal, "/personal-stats"))
        assert response.json()["current_streak"] == 4

    def test_calendar(self, journal, today):
        response = client.get(_analytics(journal, "/calendar"), params={"year": today.year, "month": today.month})
        assert response.status_code == 200
        data = response.json()
        entry = next(d for d in data["days"] if d["date"] == today.isoformat())
        assert entry["has_kpt_session"] is True
        assert entry["productivity_level"] == "high"
        assert data["streak"]["current_streak_days"] == 3

    def test_calendar_rejects_bad_month(self, api_db, test_user):
        response = client.get(_analytics(test_user, "/calendar"), params={"year": 2025, "month": 13})
        assert response.status_code == 422

    def test_work_log_stats(self, journal):
        response = client.get(_analytics(journal, "/work-logs/stats"))
        assert response.status_code == 200
        summary = response.json()["summary"]
        assert summary["total_logs"] == 1
        assert summary["total_duration_formatted"] == "1h 30m"

    def test_work_log_stats_rejects_oversized_window(self, api_db, test_user):
        # Daily buckets: fifteen years is well past the bucket ceiling
        response = client.get(
            _analytics(test_user, "/work-logs/stats"),
            params={"start_date": "2010-01-01", "end_date": "2025-01-01"},
        )
        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR_DATE_RANGE"

    def test_growth_rejects_oversized_window(self, api_db, test_user):
        # Weekly buckets: a century and a quarter overflows them too
        response = client.get(
            _analytics(test_user, "/growth"),
            params={"start_date": "1900-01-01", "end_date": "2025-01-01"},
        )
        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR_DATE_RANGE"

    def test_work_log_productivity(self, journal):
        response = client.get(_analytics(journal, "/work-logs/productivity"), params={"days": 14})
        assert response.status_code == 200
        data = response.json()
        assert data["period_days"] == 14
        assert data["recommendations"][-1] == "Keep recording your work logs regularly."


class TestInsightEndpoints:

    def test_patterns(self, journal):
        response = client.get(_insights(journal, "/patterns"), params={"days": 7})
        assert response.status_code == 200
        data = response.json()
        assert data["period_days"] == 7
        assert data["recurring_themes"] == [{"tag": "focus", "count": 6}]

    def test_recommendations_with_guidance(self, journal):
        response = client.get(_insights(journal, "/recommendations"), params={"days": 30})
        assert response.status_code == 200
        data = response.json()
        assert [r["type"] for r in data["recommendations"]][0] == "frequency"
        assert data["immediate_actions"]
        assert data["goal_suggestions"]

    def test_generate_and_list(self, journal):
        response = client.post(_insights(journal, "/generate"), json={"analysis_type": "emotion_analysis", "days": 7})
        assert response.status_code == 201
        created = response.json()
        assert created["insight_type"] == "sentiment"
        assert created["is_active"] is True

        listing = client.get(_insights(journal)).json()
        assert [i["id"] for i in listing["insights"]] == [created["id"]]
        assert listing["summary"]["total_count"] == 1

    def test_generate_for_session(self, journal, api_db, today):
        session = add_session(api_db, journal, today, title="Linked")
        response = client.post(
            _insights(journal, "/generate"),
            json={"analysis_type": "pattern_analysis", "session_id": str(session.id)},
        )
        assert response.status_code == 201
        assert response.json()["session_id"] == str(session.id)

    def test_generate_unknown_session_is_404(self, api_db, test_user):
        response = client.post(_insights(test_user, "/generate"), json={"session_id": str(uuid4())})
        assert response.status_code == 404

    def test_generate_unknown_type_is_422(self, api_db, test_user):
        response = client.post(_insights(test_user, "/generate"), json={"analysis_type": "astrology"})
        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR_ANALYSIS_TYPE"

    def test_generate_write_failure_is_500(self, journal, api_db):
        with mock.patch.object(api_db, "commit", side_effect=SQLAlchemyError("connection lost")):
            response = client.post(_insights(journal, "/generate"), json={"analysis_type": "comprehensive"})

        assert response.status_code == 500
        assert response.json()["error_code"] == "INSIGHT_PERSISTENCE_FAILED"
        assert api_db.query(Insight).count() == 0

    def test_deactivate_and_activate(self, journal):
        created = client.post(_insights(journal, "/generate"), json={"analysis_type": "productivity_analysis"}).json()

        response = client.post(_insights(journal, f"/{created['id']}/deactivate"))
        assert response.status_code == 200
        assert response.json()["is_active"] is False
        assert client.get(_insights(journal)).json()["insights"] == []

        response = client.post(_insights(journal, f"/{created['id']}/activate"))
        assert response.json()["is_active"] is True

    def test_toggle_missing_insight_is_404(self, api_db, test_user):
        response = client.post(_insights(test_user, f"/{uuid4()}/deactivate"))
        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"


def test_health():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["database"] == "available"


def test_invalid_range_from_services_maps_to_422():
    response = asyncio.run(invalid_range_handler(None, InvalidRangeError("too many buckets")))
    assert response.status_code == 422
    assert json.loads(response.body) == {
        "detail": "too many buckets",
        "error_code": "VALIDATION_ERROR_DATE_RANGE",
    }
