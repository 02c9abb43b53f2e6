"""
Tests for settings validation
"""
import pytest
from pydantic import ValidationError

from core.config import Settings


def test_database_url_override_wins():
    settings = Settings(DATABASE_URL="sqlite://", POSTGRES_DB="ignored")
    assert settings.database_url == "sqlite://"


def test_database_url_from_postgres_parts():
    settings = Settings(DATABASE_URL=None, POSTGRES_HOST="db", POSTGRES_DB="kpt_journal")
    assert settings.database_url == "postgresql://postgres:postgres@db:5432/kpt_journal"


def test_default_window_must_fit_bounds():
    with pytest.raises(ValidationError):
        Settings(ANALYTICS_DEFAULT_DAYS=400)


def test_week_start_range():
    with pytest.raises(ValidationError):
        Settings(ANALYTICS_WEEK_START=7)
