"""
Insight Assembler

Composes the analytics services into one of four named insight payloads
and stores the result as an Insight row:

- emotion_analysis      -> sentiment
- productivity_analysis -> trend
- pattern_analysis      -> pattern
- comprehensive         -> summary (nests the other three analyses)

Building an insight has no side effects. Persisting writes exactly one new
row; a failed write is rolled back and surfaced as InsightPersistenceError.
The assembler never retries.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID
import logging

from sqlalchemy import desc, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.analytics_constants import (
    CONFIDENCE_SATURATION_POINTS,
    HIGH_CONFIDENCE_THRESHOLD,
    MIN_AVERAGE_EMOTION,
    MIN_COMPLETION_RATE,
)
from core.config import settings
from core.logging import context_fields
from models import Insight
from services.analytics_context import AnalyticsContext
from services.journal_repository import JournalRepository, JournalSnapshot
from services.period_aggregator import Granularity, aggregate_items
from services.retro_metrics import completion_rate
from services.retro_patterns import (
    problem_patterns,
    recurring_themes,
    success_patterns,
    tag_cooccurrence,
)
from services.trend_analysis import TrendDirection, emotion_trend

logger = logging.getLogger(__name__)


class UnknownAnalysisTypeError(ValueError):
    """Requested analysis type is not one of ANALYSIS_TYPES."""


class InsightPersistenceError(RuntimeError):
    """The Insight row could not be written; the transaction was rolled back."""


ANALYSIS_INSIGHT_TYPES = {
    "emotion_analysis": "sentiment",
    "productivity_analysis": "trend",
    "pattern_analysis": "pattern",
    "comprehensive": "summary",
}
ANALYSIS_TYPES = tuple(ANALYSIS_INSIGHT_TYPES)


@dataclass
class AssembledInsight:
    """An insight payload ready to persist or return"""
    analysis_type: str
    insight_type: str
    title: str
    content: Dict[str, Any] = field(default_factory=dict)
    confidence_score: float = 0.0


def confidence_from_points(points: int) -> float:
    """Linear in data points, saturating at CONFIDENCE_SATURATION_POINTS."""
    return round(min(1.0, points / CONFIDENCE_SATURATION_POINTS), 2)


class InsightAssembler:
    """
    Builds insight payloads for one user and window.

    The snapshot is read lazily on first build and reused for the rest of
    the assembler's life.
    """

    def __init__(
        self,
        db: Session,
        context: AnalyticsContext,
        repository: Optional[JournalRepository] = None,
    ):
        self.db = db
        self.context = context
        self.repository = repository or JournalRepository(db)
        self._snapshot: Optional[JournalSnapshot] = None
        self._builders: Dict[str, Callable[[], AssembledInsight]] = {
            "emotion_analysis": self._build_emotion,
            "productivity_analysis": self._build_productivity,
            "pattern_analysis": self._build_pattern,
            "comprehensive": self._build_comprehensive,
        }

    @property
    def snapshot(self) -> JournalSnapshot:
        if self._snapshot is None:
            self._snapshot = self.repository.load_snapshot(self.context)
        return self._snapshot

    def build(self, analysis_type: str) -> AssembledInsight:
        """
        Assemble one named insight without persisting it.

        Raises:
            UnknownAnalysisTypeError: analysis_type is not recognised
        """
        builder = self._builders.get(analysis_type)
        if builder is None:
            raise UnknownAnalysisTypeError(
                f"unknown analysis type: {analysis_type!r}; expected one of {', '.join(ANALYSIS_TYPES)}"
            )
        return builder()

    # -------------------------------------------------------------------------
    # Emotion
    # -------------------------------------------------------------------------

    def _build_emotion(self) -> AssembledInsight:
        items = list(self.snapshot.items)
        trend = emotion_trend(items, self.context.date_range)

        direction = trend["trend_direction"]
        if direction == TrendDirection.UP.value:
            insights = ["Emotion scores are trending upward."]
        elif direction == TrendDirection.DOWN.value:
            insights = ["Emotion scores are declining. Check what is causing stress."]
        else:
            insights = ["Emotion scores are stable."]

        recommendations = []
        if trend["overall_average"] is not None and trend["overall_average"] < MIN_AVERAGE_EMOTION:
            recommendations.append("Bring more positive elements into your work.")
        recommendations.append("Keep recording emotion scores regularly.")

        scored = sum(1 for i in items if i.emotion_score is not None)
        return AssembledInsight(
            analysis_type="emotion_analysis",
            insight_type=ANALYSIS_INSIGHT_TYPES["emotion_analysis"],
            title="Emotion score analysis",
            content={
                "title": "Emotion score analysis",
                "summary": f"Emotion score trend over the last {self.context.date_range.days} days.",
                "analysis": {
                    "average_score": trend["overall_average"],
                    "trend_direction": direction,
                    "daily_averages": trend["daily_averages"],
                },
                "insights": insights,
                "recommendations": recommendations,
            },
            confidence_score=confidence_from_points(scored),
        )

    # -------------------------------------------------------------------------
    # Productivity
    # -------------------------------------------------------------------------

    def _productivity_score(self, item_completion_rate: float) -> float:
        week_ago = self.context.today - timedelta(days=7)
        recent_sessions = sum(1 for s in self.snapshot.sessions if s.session_date > week_ago)
        return round(min(item_completion_rate + recent_sessions * 10, 100), 2)

    def _build_productivity(self) -> AssembledInsight:
        items = list(self.snapshot.items)
        rate = completion_rate(items)
        weekly = aggregate_items(items, self.context.date_range, Granularity.WEEK)

        if rate > 70:
            insights = ["You are maintaining a high completion rate."]
        elif rate > 50:
            insights = ["Your completion rate is reasonable, with room to improve."]
        else:
            insights = ["Your completion rate needs attention."]

        recommendations = []
        if rate < MIN_COMPLETION_RATE:
            recommendations.append("Review the priorities of your items.")
            recommendations.append("Split items into smaller, more concrete actions.")
        recommendations.append("Check your progress regularly.")

        return AssembledInsight(
            analysis_type="productivity_analysis",
            insight_type=ANALYSIS_INSIGHT_TYPES["productivity_analysis"],
            title="Productivity analysis",
            content={
                "title": "Productivity analysis",
                "summary": "Completion rate and productivity of your KPT items.",
                "analysis": {
                    "completion_rate": rate,
                    "productivity_score": self._productivity_score(rate),
                    "weekly_trends": [
                        {
                            "week": bucket["label"],
                            "completion_rate": round(bucket["completed_count"] / bucket["items_count"] * 100, 2)
                            if bucket["items_count"] else 0.0,
                        }
                        for bucket in weekly
                    ],
                },
                "insights": insights,
                "recommendations": recommendations,
            },
            confidence_score=confidence_from_points(len(items)),
        )

    # -------------------------------------------------------------------------
    # Patterns
    # -------------------------------------------------------------------------

    def _build_pattern(self) -> AssembledInsight:
        items = list(self.snapshot.items)
        themes = recurring_themes(items)
        successes = success_patterns(items)
        problems = problem_patterns(items, self.context.today)
        pairs = tag_cooccurrence(items)

        insights = []
        if themes:
            top = themes[0]
            insights.append(f"'{top['tag']}' keeps coming up ({top['count']} items).")
        high = [p["category"] for p in successes if p["classification"] == "high"]
        if high:
            insights.append(f"Completed {', '.join(high)} items have high impact.")
        if not insights:
            insights = ["Regular reflection is effective.", "Tagging items helps reveal patterns."]

        recommendations = ["Hold a KPT session every week."]
        if problems["overdue_count"]:
            recommendations.append(f"Work through your {problems['overdue_count']} overdue items.")

        tagged = sum(1 for i in items if i.tags)
        return AssembledInsight(
            analysis_type="pattern_analysis",
            insight_type=ANALYSIS_INSIGHT_TYPES["pattern_analysis"],
            title="Pattern analysis",
            content={
                "title": "Pattern analysis",
                "summary": "Patterns found in your KPT data.",
                "analysis": {
                    "recurring_themes": themes,
                    "success_patterns": successes,
                    "problem_patterns": problems,
                    "tag_cooccurrence": pairs,
                },
                "insights": insights,
                "recommendations": recommendations,
            },
            confidence_score=confidence_from_points(tagged),
        )

    # -------------------------------------------------------------------------
    # Comprehensive
    # -------------------------------------------------------------------------

    def _build_comprehensive(self) -> AssembledInsight:
        parts = [self._build_emotion(), self._build_productivity(), self._build_pattern()]
        emotion, productivity, pattern = parts

        action_items: List[str] = []
        for part in parts:
            for recommendation in part.content["recommendations"]:
                if recommendation not in action_items:
                    action_items.append(recommendation)

        confidence = round(sum(p.confidence_score for p in parts) / len(parts), 2)
        return AssembledInsight(
            analysis_type="comprehensive",
            insight_type=ANALYSIS_INSIGHT_TYPES["comprehensive"],
            title="Comprehensive analysis",
            content={
                "title": "Comprehensive analysis",
                "summary": "A combined analysis of your KPT data.",
                "analysis": {
                    "emotion": emotion.content["analysis"],
                    "productivity": productivity.content["analysis"],
                    "patterns": pattern.content["analysis"],
                },
                "key_insights": [p.content["insights"][0] for p in parts],
                "action_items": action_items,
            },
            confidence_score=confidence,
        )

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def persist(self, assembled: AssembledInsight, session_id: Optional[UUID] = None) -> Insight:
        """
        Store the insight as a new active row.

        Raises:
            InsightPersistenceError: the write failed (transaction rolled back)
        """
        insight = Insight(
            user_id=self.context.user_id,
            session_id=session_id,
            insight_type=assembled.insight_type,
            title=assembled.title,
            content=assembled.content,
            confidence_score=assembled.confidence_score,
            data_source=settings.INSIGHT_DATA_SOURCE,
            is_active=True,
            generated_at=self.context.now,
        )
        try:
            self.db.add(insight)
            self.db.commit()
            self.db.refresh(insight)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"Failed to persist {assembled.analysis_type} insight: {e}",
                extra=context_fields(self.context, analysis_type=assembled.analysis_type),
            )
            raise InsightPersistenceError(
                f"could not store {assembled.analysis_type} insight"
            ) from e

        logger.info(
            f"Stored {assembled.analysis_type} insight",
            extra=context_fields(
                self.context,
                insight_id=str(insight.id),
                confidence_score=assembled.confidence_score,
            ),
        )
        return insight

    def generate(
        self,
        analysis_type: str,
        persist: bool = True,
        session_id: Optional[UUID] = None,
    ):
        """
        Build and (optionally) persist one insight.

        Returns:
            Insight row when persisted, otherwise the AssembledInsight
        """
        assembled = self.build(analysis_type)
        if not persist:
            return assembled
        return self.persist(assembled, session_id=session_id)


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def generate_insight_for_user(
    db: Session,
    user_id: UUID,
    analysis_type: str = "comprehensive",
    days: Optional[int] = None,
    session_id: Optional[UUID] = None,
    now: Optional[datetime] = None,
    persist: bool = True,
):
    """
    Generate an insight over the user's last `days` days.

    This is the entry point used by the insights router.
    """
    context = AnalyticsContext.for_last_days(user_id, days or settings.ANALYTICS_DEFAULT_DAYS, now=now)
    assembler = InsightAssembler(db, context)
    return assembler.generate(analysis_type, persist=persist, session_id=session_id)


def get_active_insights(
    db: Session,
    user_id: UUID,
    limit: int = 10,
    insight_type: Optional[str] = None,
) -> List[Insight]:
    """Most recent active insights for a user."""
    query = db.query(Insight).filter(
        Insight.user_id == user_id,
        Insight.is_active.is_(True),
    )
    if insight_type:
        query = query.filter(Insight.insight_type == insight_type)
    return (
        query
        .order_by(desc(Insight.generated_at), desc(Insight.created_at))
        .limit(limit)
        .all()
    )


def set_insight_active(db: Session, user_id: UUID, insight_id: UUID, active: bool) -> Optional[Insight]:
    """Toggle is_active; returns None when the user has no such insight."""
    insight = (
        db.query(Insight)
        .filter(Insight.id == insight_id, Insight.user_id == user_id)
        .first()
    )
    if insight is None:
        return None
    insight.is_active = active
    db.commit()
    db.refresh(insight)
    return insight


def insight_summary(db: Session, user_id: UUID, session_id: Optional[UUID] = None) -> Dict[str, Any]:
    """Counts and confidence of a user's active insights, optionally for one session."""
    query = db.query(Insight).filter(
        Insight.user_id == user_id,
        Insight.is_active.is_(True),
    )
    if session_id is not None:
        query = query.filter(Insight.session_id == session_id)

    by_type = dict(
        query.with_entities(Insight.insight_type, func.count(Insight.id))
        .group_by(Insight.insight_type)
        .all()
    )
    average = query.with_entities(func.avg(Insight.confidence_score)).scalar()
    high_confidence = query.filter(Insight.confidence_score >= HIGH_CONFIDENCE_THRESHOLD).count()

    return {
        "total_count": sum(by_type.values()),
        "by_type": by_type,
        "average_confidence": round(float(average), 2) if average is not None else None,
        "high_confidence_count": high_confidence,
    }
