"""
Insights API Router

Stored insights plus on-demand pattern analysis and recommendations.

Endpoints:
- GET /v1/users/{user_id}/insights - Active insights with a summary
- GET /v1/users/{user_id}/insights/patterns - Pattern analysis for a window
- GET /v1/users/{user_id}/insights/recommendations - Rule-based recommendations
- POST /v1/users/{user_id}/insights/generate - Assemble and store an insight
- POST /v1/users/{user_id}/insights/{id}/activate - Re-activate an insight
- POST /v1/users/{user_id}/insights/{id}/deactivate - Hide an insight
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID
import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from core.config import settings
from core.database import get_db
from core.exceptions import InsightGenerationError, NotFoundError, ValidationError
from models import KptSession
from schemas import (
    InsightGenerateRequest,
    InsightListResponse,
    InsightResponse,
    RecommendationsResponse,
)
from services.analytics_context import AnalyticsContext, clamp_days
from services.insight_assembler import (
    InsightPersistenceError,
    UnknownAnalysisTypeError,
    generate_insight_for_user,
    get_active_insights,
    insight_summary,
    set_insight_active,
)
from services.journal_repository import JournalRepository
from services.retro_patterns import detect_patterns
from services.retro_recommendations import (
    STANDING_GUIDANCE,
    generate_recommendations,
    metrics_from_snapshot,
    recommendations_to_dicts,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/users/{user_id}/insights", tags=["Insights"])


def _context(user_id: UUID, days: Optional[int]) -> AnalyticsContext:
    days = clamp_days(days, 1, settings.ANALYTICS_MAX_DAYS, default=settings.ANALYTICS_DEFAULT_DAYS)
    return AnalyticsContext.for_last_days(user_id, days, now=datetime.now(timezone.utc))


@router.get("", response_model=InsightListResponse)
def list_insights(
    user_id: UUID,
    type: Optional[str] = Query(None, description="Filter by insight type"),
    limit: int = Query(20, ge=1, le=50),
    db: Session = Depends(get_db),
):
    insights = get_active_insights(db, user_id, limit=limit, insight_type=type)
    return InsightListResponse(
        insights=[InsightResponse.model_validate(i) for i in insights],
        summary=insight_summary(db, user_id),
    )


@router.get("/patterns")
def get_patterns(
    user_id: UUID,
    days: Optional[int] = Query(None, description="Analysis window in days (at most 365)"),
    db: Session = Depends(get_db),
):
    context = _context(user_id, days)
    snapshot = JournalRepository(db).load_snapshot(context)
    return {
        "period_days": context.date_range.days,
        **detect_patterns(snapshot),
    }


@router.get("/recommendations", response_model=RecommendationsResponse)
def get_recommendations(
    user_id: UUID,
    days: Optional[int] = Query(None, description="Analysis window in days (at most 365)"),
    db: Session = Depends(get_db),
):
    context = _context(user_id, days)
    snapshot = JournalRepository(db).load_snapshot(context, include_work_logs=True)
    recommendations = generate_recommendations(metrics_from_snapshot(snapshot))
    return RecommendationsResponse(
        period_days=context.date_range.days,
        recommendations=recommendations_to_dicts(recommendations),
        **STANDING_GUIDANCE,
    )


@router.post("/generate", response_model=InsightResponse, status_code=status.HTTP_201_CREATED)
def generate_insight(
    user_id: UUID,
    request: InsightGenerateRequest,
    db: Session = Depends(get_db),
):
    """
    Assemble one named insight and store it.

    Unknown analysis types are rejected with 422; a failed write returns
    500 and stores nothing.
    """
    if request.session_id is not None:
        session = (
            db.query(KptSession)
            .filter(KptSession.id == request.session_id, KptSession.user_id == user_id)
            .first()
        )
        if session is None:
            raise NotFoundError("KPT session", str(request.session_id))

    try:
        insight = generate_insight_for_user(
            db,
            user_id,
            analysis_type=request.analysis_type,
            days=request.days,
            session_id=request.session_id,
        )
    except UnknownAnalysisTypeError as e:
        raise ValidationError(str(e), field="analysis_type") from e
    except InsightPersistenceError as e:
        raise InsightGenerationError(str(e)) from e

    return InsightResponse.model_validate(insight)


@router.post("/{insight_id}/activate", response_model=InsightResponse)
def activate_insight(
    user_id: UUID,
    insight_id: UUID,
    db: Session = Depends(get_db),
):
    insight = set_insight_active(db, user_id, insight_id, True)
    if insight is None:
        raise NotFoundError("Insight", str(insight_id))
    return InsightResponse.model_validate(insight)


@router.post("/{insight_id}/deactivate", response_model=InsightResponse)
def deactivate_insight(
    user_id: UUID,
    insight_id: UUID,
    db: Session = Depends(get_db),
):
    insight = set_insight_active(db, user_id, insight_id, False)
    if insight is None:
        raise NotFoundError("Insight", str(insight_id))
    return InsightResponse.model_validate(insight)
