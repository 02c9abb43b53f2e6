"""
Tests for structured logging helpers
"""
import json
import logging
from datetime import date, datetime, timezone
from uuid import uuid4

from core.logging import JSONFormatter, TextFormatter, context_fields
from services.analytics_context import AnalyticsContext, DateRange


def _record(extra=None):
    record = logging.LogRecord("services.retro_patterns", logging.INFO, __file__, 1, "Detected patterns", None, None)
    if extra:
        for key, value in extra.items():
            setattr(record, key, value)
    return record


def test_context_fields_names_user_and_window():
    user_id = uuid4()
    context = AnalyticsContext(
        user_id=user_id,
        date_range=DateRange(date(2025, 1, 1), date(2025, 1, 31)),
        now=datetime(2025, 1, 31, tzinfo=timezone.utc),
    )
    extra = context_fields(context, items=4)
    assert extra == {"extra_fields": {
        "user_id": str(user_id),
        "start": "2025-01-01",
        "end": "2025-01-31",
        "items": 4,
    }}


def test_json_formatter_merges_extra_fields():
    payload = json.loads(JSONFormatter().format(_record({"extra_fields": {"items": 4, "day": date(2025, 1, 1)}})))
    assert payload["message"] == "Detected patterns"
    assert payload["level"] == "INFO"
    assert payload["items"] == 4
    assert payload["day"] == "2025-01-01"


def test_text_formatter_appends_key_values():
    line = TextFormatter().format(_record({"extra_fields": {"items": 4}}))
    assert line.endswith("Detected patterns [items=4]")
    assert TextFormatter().format(_record()).endswith("Detected patterns")
