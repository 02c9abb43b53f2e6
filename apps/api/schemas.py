from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from uuid import UUID
from typing import Any, Optional, List, Dict


class InsightGenerateRequest(BaseModel):
    analysis_type: str = "comprehensive"
    session_id: Optional[UUID] = None
    days: Optional[int] = Field(None, ge=1, le=365)


class InsightResponse(BaseModel):
    id: UUID
    user_id: UUID
    session_id: Optional[UUID] = None
    insight_type: str
    title: str
    content: Dict[str, Any]
    confidence_score: float
    data_source: str
    is_active: bool
    generated_at: datetime
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class InsightListResponse(BaseModel):
    insights: List[InsightResponse]
    summary: Dict[str, Any]


class RecommendationResponse(BaseModel):
    type: str
    title: str
    description: str


class RecommendationsResponse(BaseModel):
    period_days: int
    recommendations: List[RecommendationResponse]
    immediate_actions: List[str]
    long_term_suggestions: List[str]
    process_improvements: List[str]
    goal_suggestions: List[str]

