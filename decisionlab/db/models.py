"""
DecisionLab SQLAlchemy Models.

Seven tables: decisions, factors, options, factor_scores, outcomes,
insights and the single-row user_stats. Column types work on both
SQLite (dev/tests) and PostgreSQL (prod).

Nothing is hard-deleted: decisions, outcomes and insights carry an
is_deleted flag and every query filters on it.
"""

import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Mapped, mapped_column

from decisionlab.db.engine import Base

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(postgresql.JSONB(), "postgresql")

USER_STAT_KEY = "default"


def utcnow() -> datetime:
    """Naive UTC timestamp (stored as-is on both dialects)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _genuuid():
    return uuid.uuid4()


# ──────────────────────────────────────────────────────────────────────────────
# Decision structure
# ──────────────────────────────────────────────────────────────────────────────


class Decision(Base):
    """A decision problem with options scored against weighted factors."""

    __tablename__ = "decisions"
    __table_args__ = (
        Index("ix_decisions_status", "status"),
        CheckConstraint("status IN ('active', 'completed', 'archived')", name="ck_decisions_status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=_genuuid)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    decision_method: Mapped[str] = mapped_column(String(30), nullable=False, default="weighted")
    source: Mapped[str] = mapped_column(String(30), nullable=False, default="manual")
    selected_option_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid())
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)
    decision_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class Factor(Base):
    """A weighted criterion. Weights of one decision's factors sum to 1.0 ± 0.01."""

    __tablename__ = "factors"
    __table_args__ = (
        CheckConstraint("weight >= 0 AND weight <= 1", name="ck_factors_weight"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=_genuuid)
    decision_id: Mapped[uuid.UUID] = mapped_column(Uuid(), ForeignKey("decisions.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(80), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    weight: Mapped[float] = mapped_column(Float, nullable=False)
    preference: Mapped[str] = mapped_column(String(20), nullable=False, default="higher_is_better")
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class Option(Base):
    """A candidate choice. computed_utility caches the last MAUT result."""

    __tablename__ = "options"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=_genuuid)
    decision_id: Mapped[uuid.UUID] = mapped_column(Uuid(), ForeignKey("decisions.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    computed_utility: Mapped[Optional[float]] = mapped_column(Float)
    predicted_satisfaction: Mapped[Optional[float]] = mapped_column(Float)
    is_selected: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    @property
    def utility_percentage(self) -> Optional[int]:
        if self.computed_utility is None:
            return None
        return round(self.computed_utility * 100)

    @property
    def satisfaction_label(self) -> Optional[str]:
        p = self.predicted_satisfaction
        if p is None:
            return None
        if p < 2:
            return "Very Low"
        if p < 4:
            return "Low"
        if p < 7:
            return "Medium"
        if p < 9:
            return "High"
        return "Very High"


class FactorScore(Base):
    """Likert score (1–5) of one option on one factor."""

    __tablename__ = "factor_scores"
    __table_args__ = (
        UniqueConstraint("option_id", "factor_id", name="uq_factor_scores_option_factor"),
        CheckConstraint("score >= 1 AND score <= 5", name="ck_factor_scores_score"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=_genuuid)
    option_id: Mapped[uuid.UUID] = mapped_column(Uuid(), ForeignKey("options.id"), nullable=False, index=True)
    factor_id: Mapped[uuid.UUID] = mapped_column(Uuid(), ForeignKey("factors.id"), nullable=False, index=True)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    confidence: Mapped[Optional[float]] = mapped_column(Float)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def normalized_score(self) -> float:
        return (self.score - 1) / 4


# ──────────────────────────────────────────────────────────────────────────────
# Outcomes & insights
# ──────────────────────────────────────────────────────────────────────────────


class Outcome(Base):
    """What actually happened after a decision. One per decision."""

    __tablename__ = "outcomes"
    __table_args__ = (
        UniqueConstraint("decision_id", name="uq_outcomes_decision"),
        Index("ix_outcomes_logged_at", "logged_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=_genuuid)
    decision_id: Mapped[uuid.UUID] = mapped_column(Uuid(), ForeignKey("decisions.id"), nullable=False)
    logged_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    actual_satisfaction: Mapped[float] = mapped_column(Float, nullable=False)
    surprise_factor: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    log_source: Mapped[str] = mapped_column(String(30), nullable=False, default="manual")
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class Insight(Base):
    """
    Engine-generated feedback card.

    metadata_ holds one variant of the tagged union defined in
    decisionlab.insights.schemas (discriminated by its "kind" key).
    """

    __tablename__ = "insights"
    __table_args__ = (
        Index("ix_insights_generated_at", "generated_at"),
        Index("ix_insights_type", "insight_type"),
        Index("ix_insights_is_read", "is_read"),
        CheckConstraint("priority >= 1 AND priority <= 5", name="ck_insights_priority"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=_genuuid)
    insight_type: Mapped[str] = mapped_column(String(30), nullable=False)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_actionable: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    action_label: Mapped[Optional[str]] = mapped_column(String(50))
    metadata_: Mapped[dict] = mapped_column("metadata", JSONType, nullable=False, default=dict)
    generated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    dismissed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    @property
    def is_dismissed(self) -> bool:
        return self.dismissed_at is not None

    @property
    def decision_ids(self) -> list[str]:
        return list((self.metadata_ or {}).get("decision_ids", []))


# ──────────────────────────────────────────────────────────────────────────────
# Gamification state (single row)
# ──────────────────────────────────────────────────────────────────────────────


class UserStat(Base):
    """
    Singleton progress record.

    Exactly one live row, keyed by singleton_key. Obtain it through
    decisionlab.db.repositories.user_stats, never by constructing it.
    """

    __tablename__ = "user_stats"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=_genuuid)
    singleton_key: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, default=USER_STAT_KEY)

    # Counters
    total_decisions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_outcomes_logged: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_insights_generated: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_insights_read: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Streak
    current_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_log_day: Mapped[Optional[date]] = mapped_column(Date)

    # Accuracy snapshot (overwritten by the accuracy engine)
    total_predictions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    correct_predictions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    mean_absolute_error: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    accuracy_calculated_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # [{"id", "name", "description", "icon", "earned_at"}], unique by id
    badges: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    first_decision_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    first_outcome_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    last_active_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def accuracy_percentage(self) -> int:
        if not self.total_predictions:
            return 0
        return round(self.correct_predictions / self.total_predictions * 100)

    @property
    def insight_read_percentage(self) -> int:
        if not self.total_insights_generated:
            return 0
        return round(self.total_insights_read / self.total_insights_generated * 100)

    @property
    def badge_ids(self) -> list[str]:
        return [b["id"] for b in (self.badges or [])]

    def has_badge(self, badge_id: str) -> bool:
        return badge_id in self.badge_ids
