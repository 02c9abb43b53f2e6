from sqlalchemy import Column, Integer, Boolean, CheckConstraint, Float, Date, DateTime, ForeignKey, Text, String, Index, UniqueConstraint, JSON, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from core.database import Base
import uuid

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


SESSION_STATUSES = ("not_started", "in_progress", "completed", "pending")
ITEM_CATEGORIES = ("keep", "problem", "try")
ITEM_PRIORITIES = ("low", "medium", "high")
WORK_LOG_STATUSES = ("in_progress", "completed", "paused", "cancelled")
MARK_TYPES = ("reflection", "milestone", "goal", "achievement", "learning", "other")
INSIGHT_TYPES = ("summary", "sentiment", "trend", "recommendation", "pattern")


def _in_list(column: str, values) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


def _score_range(column: str) -> str:
    return f"{column} IS NULL OR ({column} >= 1 AND {column} <= 5)"


class User(Base):
    __tablename__ = "app_user"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    email = Column(Text, unique=True, nullable=True)
    display_name = Column(Text, nullable=True)
    timezone = Column(Text, default="UTC", nullable=False)

    kpt_sessions = relationship("KptSession", back_populates="user", cascade="all, delete-orphan")
    work_logs = relationship("WorkLog", back_populates="user", cascade="all, delete-orphan")
    reflection_marks = relationship("ReflectionMark", back_populates="user", cascade="all, delete-orphan")
    insights = relationship("Insight", back_populates="user", cascade="all, delete-orphan")


class KptSession(Base):
    """
    One retrospective journaling event grouping Keep/Problem/Try items.

    completed_at is set if and only if status is 'completed'; the check
    constraint keeps the external store honest.
    """
    __tablename__ = "kpt_session"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("app_user.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    session_date = Column(Date, nullable=False)
    status = Column(Text, default="not_started", nullable=False)
    tags = Column(JSONType, nullable=False, default=list)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="kpt_sessions")
    items = relationship("KptItem", back_populates="session", cascade="all, delete-orphan", order_by="KptItem.created_at")
    insights = relationship("Insight", back_populates="session")

    __table_args__ = (
        CheckConstraint(_in_list("status", SESSION_STATUSES), name="ck_kpt_session_status"),
        CheckConstraint(
            "(status = 'completed' AND completed_at IS NOT NULL) OR "
            "(status <> 'completed' AND completed_at IS NULL)",
            name="ck_kpt_session_completed_at",
        ),
        Index("ix_kpt_session_user_date", "user_id", "session_date"),
    )


class KptItem(Base):
    """A Keep, Problem or Try entry. Completed means completed_at is set."""
    __tablename__ = "kpt_item"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    session_id = Column(Uuid(as_uuid=True), ForeignKey("kpt_session.id"), nullable=False, index=True)
    category = Column(Text, nullable=False)  # 'keep', 'problem', 'try'
    content = Column(Text, nullable=False)
    due_date = Column(Date, nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    emotion_score = Column(Integer, nullable=True)  # 1-5
    impact_score = Column(Integer, nullable=True)  # 1-5
    # Not every client tracks priority; NULL means "not tracked"
    priority = Column(Text, nullable=True)
    tags = Column(JSONType, nullable=False, default=list)
    assignee = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    session = relationship("KptSession", back_populates="items")
    work_log_links = relationship("WorkLogItemLink", back_populates="item", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint(_in_list("category", ITEM_CATEGORIES), name="ck_kpt_item_category"),
        CheckConstraint(f"priority IS NULL OR {_in_list('priority', ITEM_PRIORITIES)}", name="ck_kpt_item_priority"),
        CheckConstraint(_score_range("emotion_score"), name="ck_kpt_item_emotion_score"),
        CheckConstraint(_score_range("impact_score"), name="ck_kpt_item_impact_score"),
    )


class WorkLog(Base):
    """
    Timed record of work activity.

    Duration is derived from started_at/ended_at and never stored.
    """
    __tablename__ = "work_log"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("app_user.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    project_name = Column(String(100), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=False)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    mood_score = Column(Integer, nullable=True)
    productivity_score = Column(Integer, nullable=True)
    difficulty_score = Column(Integer, nullable=True)
    tags = Column(JSONType, nullable=False, default=list)
    is_billable = Column(Boolean, default=False, nullable=False)
    status = Column(Text, default="in_progress", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="work_logs")
    item_links = relationship("WorkLogItemLink", back_populates="work_log", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint(_in_list("status", WORK_LOG_STATUSES), name="ck_work_log_status"),
        CheckConstraint(_score_range("mood_score"), name="ck_work_log_mood_score"),
        CheckConstraint(_score_range("productivity_score"), name="ck_work_log_productivity_score"),
        CheckConstraint(_score_range("difficulty_score"), name="ck_work_log_difficulty_score"),
        Index("ix_work_log_user_started", "user_id", "started_at"),
    )


class WorkLogItemLink(Base):
    """Many-to-many join between KPT items and work logs."""
    __tablename__ = "work_log_item_link"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    work_log_id = Column(Uuid(as_uuid=True), ForeignKey("work_log.id"), nullable=False)
    item_id = Column(Uuid(as_uuid=True), ForeignKey("kpt_item.id"), nullable=False)
    relevance_score = Column(Integer, nullable=True, default=3)  # 1-5
    notes = Column(Text, nullable=True)

    work_log = relationship("WorkLog", back_populates="item_links")
    item = relationship("KptItem", back_populates="work_log_links")

    __table_args__ = (
        UniqueConstraint("work_log_id", "item_id", name="uq_work_log_item_link"),
        CheckConstraint(_score_range("relevance_score"), name="ck_work_log_item_link_relevance"),
    )


class ReflectionMark(Base):
    """A calendar day the user marked (one per user per date)."""
    __tablename__ = "reflection_mark"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("app_user.id"), nullable=False)
    date = Column(Date, nullable=False)
    note = Column(String(500), nullable=True)
    mark_type = Column(Text, default="reflection", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="reflection_marks")

    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_reflection_mark_user_date"),
        CheckConstraint(_in_list("mark_type", MARK_TYPES), name="ck_reflection_mark_type"),
    )


class Insight(Base):
    """
    Persisted analytics result.

    Written once by the insight assembler; afterwards only is_active changes.
    """
    __tablename__ = "insight"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("app_user.id"), nullable=False, index=True)
    session_id = Column(Uuid(as_uuid=True), ForeignKey("kpt_session.id"), nullable=True)
    insight_type = Column(Text, nullable=False)  # 'summary', 'sentiment', 'trend', 'recommendation', 'pattern'
    title = Column(String(200), nullable=False)
    content = Column(JSONType, nullable=False)
    confidence_score = Column(Float, nullable=False, default=0.0)  # 0-1
    data_source = Column(String(50), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    generated_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    user = relationship("User", back_populates="insights")
    session = relationship("KptSession", back_populates="insights")

    __table_args__ = (
        CheckConstraint(_in_list("insight_type", INSIGHT_TYPES), name="ck_insight_type"),
        CheckConstraint("confidence_score >= 0 AND confidence_score <= 1", name="ck_insight_confidence"),
        Index("ix_insight_user_created", "user_id", "created_at"),
    )
