"""
Tests for the journal repository

Uses the transactional db_session fixture; every row is rolled back.
"""
from datetime import date, datetime, timezone
from uuid import uuid4

from models import User
from services.analytics_context import AnalyticsContext, DateRange
from services.journal_repository import JournalRepository
from tests.journal_factories import add_mark, add_session, add_work_log, make_item

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


def _context(user, start=date(2025, 1, 1), end=date(2025, 1, 15)):
    return AnalyticsContext(user_id=user.id, date_range=DateRange(start, end), now=NOW)


class TestLoadSnapshot:

    def test_filters_by_user_and_window(self, db_session, test_user):
        other = User(email=f"other_{uuid4()}@example.com")
        db_session.add(other)
        db_session.commit()

        add_session(db_session, test_user, date(2025, 1, 3), items=[make_item("keep"), make_item("try")])
        add_session(db_session, test_user, date(2024, 12, 31), items=[make_item()])
        add_session(db_session, other, date(2025, 1, 3), items=[make_item()])

        snapshot = JournalRepository(db_session).load_snapshot(_context(test_user))

        assert len(snapshot.sessions) == 1
        assert len(snapshot.items) == 2
        assert snapshot.session_dates() == [date(2025, 1, 3)]
        assert len(snapshot.items_for(snapshot.sessions[0])) == 2

    def test_work_log_source_is_opt_in(self, db_session, test_user):
        add_work_log(db_session, test_user, datetime(2025, 1, 10, 9, 0, tzinfo=timezone.utc), minutes=60)

        repository = JournalRepository(db_session)
        without = repository.load_snapshot(_context(test_user))
        with_logs = repository.load_snapshot(_context(test_user), include_work_logs=True)

        assert without.work_logs is None
        assert not without.has_work_log_source
        assert len(with_logs.work_logs) == 1

    def test_empty_work_log_source_is_not_missing(self, db_session, test_user):
        snapshot = JournalRepository(db_session).load_snapshot(_context(test_user), include_work_logs=True)
        assert snapshot.work_logs == ()
        assert snapshot.has_work_log_source

    def test_work_logs_on_window_edges(self, db_session, test_user):
        add_work_log(db_session, test_user, datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc))
        add_work_log(db_session, test_user, datetime(2025, 1, 15, 23, 59, tzinfo=timezone.utc))
        add_work_log(db_session, test_user, datetime(2025, 1, 16, 0, 0, tzinfo=timezone.utc))

        work_logs = JournalRepository(db_session).load_work_logs(
            test_user.id, DateRange(date(2025, 1, 1), date(2025, 1, 15))
        )
        assert len(work_logs) == 2

    def test_activity_dates_include_marks(self, db_session, test_user):
        add_session(db_session, test_user, date(2025, 1, 14))
        add_mark(db_session, test_user, date(2025, 1, 15))

        snapshot = JournalRepository(db_session).load_snapshot(_context(test_user))
        assert snapshot.activity_dates() == {date(2025, 1, 14), date(2025, 1, 15)}


class TestHistory:

    def test_load_activity_dates_bounds(self, db_session, test_user):
        add_session(db_session, test_user, date(2024, 6, 1))
        add_session(db_session, test_user, date(2025, 1, 10))
        add_session(db_session, test_user, date(2025, 1, 10), title="Second")
        add_mark(db_session, test_user, date(2025, 1, 11))

        repository = JournalRepository(db_session)
        assert repository.load_activity_dates(test_user.id) == {
            date(2024, 6, 1), date(2025, 1, 10), date(2025, 1, 11),
        }
        assert repository.load_activity_dates(test_user.id, start=date(2025, 1, 1)) == {
            date(2025, 1, 10), date(2025, 1, 11),
        }

    def test_first_session_date(self, db_session, test_user):
        repository = JournalRepository(db_session)
        assert repository.first_session_date(test_user.id) is None

        add_session(db_session, test_user, date(2025, 1, 10))
        add_session(db_session, test_user, date(2024, 3, 2))
        assert repository.first_session_date(test_user.id) == date(2024, 3, 2)
