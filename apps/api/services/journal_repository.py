"""
Journal Repository

Read side of the KPT journal. Loads one user's sessions, items, work logs
and reflection marks for one window into an immutable snapshot that the
analytics services compute over.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Set, Tuple
from uuid import UUID
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from core.logging import context_fields
from models import KptSession, KptItem, WorkLog, ReflectionMark
from services.analytics_context import AnalyticsContext, DateRange

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JournalSnapshot:
    """
    Records read for one user and one window.

    work_logs is None when the caller did not ask for a work-log source;
    an empty tuple means the source was read and had nothing in range.
    """
    context: AnalyticsContext
    sessions: Tuple[KptSession, ...] = ()
    items: Tuple[KptItem, ...] = ()
    work_logs: Optional[Tuple[WorkLog, ...]] = None
    marks: Tuple[ReflectionMark, ...] = ()

    @property
    def date_range(self) -> DateRange:
        return self.context.date_range

    @property
    def has_work_log_source(self) -> bool:
        return self.work_logs is not None

    def session_dates(self) -> List[date]:
        return [s.session_date for s in self.sessions]

    def activity_dates(self) -> Set[date]:
        return {s.session_date for s in self.sessions} | {m.date for m in self.marks}

    def items_for(self, session: KptSession) -> List[KptItem]:
        return [i for i in self.items if i.session_id == session.id]


def _day_bounds(date_range: DateRange) -> Tuple[datetime, datetime]:
    return (
        datetime.combine(date_range.start, time.min),
        datetime.combine(date_range.end + timedelta(days=1), time.min),
    )


class JournalRepository:
    """Filters journal records by user and date range."""

    def __init__(self, db: Session):
        self.db = db

    def load_sessions(self, user_id: UUID, date_range: DateRange) -> List[KptSession]:
        return (
            self.db.query(KptSession)
            .options(selectinload(KptSession.items))
            .filter(
                KptSession.user_id == user_id,
                KptSession.session_date >= date_range.start,
                KptSession.session_date <= date_range.end,
            )
            .order_by(KptSession.session_date, KptSession.created_at)
            .all()
        )

    def load_work_logs(self, user_id: UUID, date_range: DateRange) -> List[WorkLog]:
        lower, upper = _day_bounds(date_range)
        work_logs = (
            self.db.query(WorkLog)
            .filter(
                WorkLog.user_id == user_id,
                WorkLog.started_at >= lower,
                WorkLog.started_at < upper,
            )
            .order_by(WorkLog.started_at)
            .all()
        )
        # Timezone-aware rows can straddle the naive bounds; the calendar date decides
        return [w for w in work_logs if date_range.contains(w.started_at.date())]

    def load_marks(self, user_id: UUID, date_range: DateRange) -> List[ReflectionMark]:
        return (
            self.db.query(ReflectionMark)
            .filter(
                ReflectionMark.user_id == user_id,
                ReflectionMark.date >= date_range.start,
                ReflectionMark.date <= date_range.end,
            )
            .order_by(ReflectionMark.date)
            .all()
        )

    def load_snapshot(self, context: AnalyticsContext, include_work_logs: bool = False) -> JournalSnapshot:
        """
        Read everything the analytics services need for one window.

        Args:
            context: User scope and window
            include_work_logs: Attach the work-log source to the snapshot

        Returns:
            JournalSnapshot
        """
        sessions = self.load_sessions(context.user_id, context.date_range)
        items = [item for s in sessions for item in s.items]
        work_logs = None
        if include_work_logs:
            work_logs = tuple(self.load_work_logs(context.user_id, context.date_range))
        marks = self.load_marks(context.user_id, context.date_range)

        logger.debug(
            "Loaded journal snapshot",
            extra=context_fields(
                context,
                sessions=len(sessions),
                items=len(items),
                work_logs=None if work_logs is None else len(work_logs),
                marks=len(marks),
            ),
        )

        return JournalSnapshot(
            context=context,
            sessions=tuple(sessions),
            items=tuple(items),
            work_logs=work_logs,
            marks=tuple(marks),
        )

    def load_activity_dates(
        self,
        user_id: UUID,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> Set[date]:
        """Days with at least one session or reflection mark."""
        session_query = self.db.query(KptSession.session_date).filter(KptSession.user_id == user_id)
        mark_query = self.db.query(ReflectionMark.date).filter(ReflectionMark.user_id == user_id)
        if start is not None:
            session_query = session_query.filter(KptSession.session_date >= start)
            mark_query = mark_query.filter(ReflectionMark.date >= start)
        if end is not None:
            session_query = session_query.filter(KptSession.session_date <= end)
            mark_query = mark_query.filter(ReflectionMark.date <= end)

        dates = {row[0] for row in session_query.distinct().all()}
        dates.update(row[0] for row in mark_query.all())
        return dates

    def first_session_date(self, user_id: UUID) -> Optional[date]:
        return (
            self.db.query(func.min(KptSession.session_date))
            .filter(KptSession.user_id == user_id)
            .scalar()
        )
