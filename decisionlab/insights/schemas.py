"""
Insight schemas.

Engines build InsightDraft objects; the repository persists them and the
API returns InsightResponse. Metadata is a closed union discriminated by
"kind", one shape per insight type.
"""

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator


class InsightType(StrEnum):
    CORRELATION = "correlation"
    BIAS_DETECTION = "bias_detection"
    ACCURACY_TRACKING = "accuracy_tracking"
    PATTERN = "pattern"
    ACHIEVEMENT = "achievement"
    SUGGESTION = "suggestion"


class BiasType(StrEnum):
    OPTIMISM = "optimism_bias"
    PESSIMISM = "pessimism_bias"
    PLANNING_FALLACY = "planning_fallacy"
    RECENCY = "recency_bias"


class AccuracyTrend(StrEnum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


# ── Metadata variants ─────────────────────────────────────────────────


class _MetadataBase(BaseModel):
    decision_ids: list[str] = Field(default_factory=list)


class CorrelationMetadata(_MetadataBase):
    kind: Literal["correlation"] = "correlation"
    factor_name: str
    correlation: float
    p_value: float
    sample_size: int
    direction: Literal["positive", "negative"]


class BiasMetadata(_MetadataBase):
    kind: Literal["bias"] = "bias"
    bias_type: BiasType
    magnitude: float = Field(ge=0.0, le=1.0)
    direction: Literal["positive", "negative"]
    sample_size: int
    p_value: float


class AccuracyMetadata(_MetadataBase):
    kind: Literal["accuracy"] = "accuracy"
    accuracy_percentage: float
    total_predictions: int
    correct_predictions: int
    mean_absolute_error: float
    median_absolute_error: float
    trend: AccuracyTrend


class PatternMetadata(_MetadataBase):
    kind: Literal["pattern"] = "pattern"
    pattern_type: str
    confidence: float = Field(ge=0.0, le=1.0)


class AchievementMetadata(_MetadataBase):
    kind: Literal["achievement"] = "achievement"
    badge_name: Optional[str] = None
    total_count: Optional[int] = None
    accuracy_percentage: Optional[float] = None


class SuggestionMetadata(_MetadataBase):
    kind: Literal["suggestion"] = "suggestion"
    suggestion_type: str


InsightMetadata = Annotated[
    Union[
        CorrelationMetadata,
        BiasMetadata,
        AccuracyMetadata,
        PatternMetadata,
        AchievementMetadata,
        SuggestionMetadata,
    ],
    Field(discriminator="kind"),
]

_metadata_adapter: TypeAdapter = TypeAdapter(InsightMetadata)

METADATA_KIND: dict[InsightType, str] = {
    InsightType.CORRELATION: "correlation",
    InsightType.BIAS_DETECTION: "bias",
    InsightType.ACCURACY_TRACKING: "accuracy",
    InsightType.PATTERN: "pattern",
    InsightType.ACHIEVEMENT: "achievement",
    InsightType.SUGGESTION: "suggestion",
}


def parse_metadata(raw: dict) -> InsightMetadata:
    """Rebuild the typed metadata stored in an Insight row."""
    return _metadata_adapter.validate_python(raw)


# ── Drafts ────────────────────────────────────────────────────────────


class InsightDraft(BaseModel):
    """An insight produced by an engine, not yet persisted."""

    insight_type: InsightType
    title: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=500)
    priority: int = Field(ge=1, le=5)
    is_actionable: bool = False
    action_label: Optional[str] = Field(default=None, max_length=50)
    metadata: InsightMetadata

    @model_validator(mode="after")
    def _metadata_matches_type(self) -> "InsightDraft":
        expected = METADATA_KIND[self.insight_type]
        if self.metadata.kind != expected:
            raise ValueError(
                f"{self.insight_type} insight needs '{expected}' metadata, got '{self.metadata.kind}'"
            )
        return self


# ── Presentation ──────────────────────────────────────────────────────

PRIORITY_LABELS = {1: "Critical", 2: "High", 3: "Medium", 4: "Low", 5: "Info"}

TYPE_LABELS = {
    InsightType.CORRELATION: "Correlation Discovery",
    InsightType.BIAS_DETECTION: "Bias Alert",
    InsightType.ACCURACY_TRACKING: "Accuracy Report",
    InsightType.PATTERN: "Pattern Detected",
    InsightType.ACHIEVEMENT: "Achievement",
    InsightType.SUGGESTION: "Suggestion",
}

# Informational value of each type when ranking a feed
TYPE_BOOSTS = {
    InsightType.CORRELATION: 15,
    InsightType.BIAS_DETECTION: 12,
    InsightType.ACCURACY_TRACKING: 10,
    InsightType.PATTERN: 8,
    InsightType.SUGGESTION: 7,
    InsightType.ACHIEVEMENT: 5,
}


def priority_label(priority: int) -> str:
    return PRIORITY_LABELS.get(priority, "Info")


def type_label(insight_type: str) -> str:
    try:
        return TYPE_LABELS[InsightType(insight_type)]
    except ValueError:
        return "Insight"


def engagement_score(
    priority: int,
    insight_type: str,
    generated_at: datetime,
    is_read: bool,
    is_actionable: bool,
    now: datetime,
) -> int:
    """Feed ranking score: higher means more worth showing."""
    score = (6 - priority) * 10

    age_hours = (now - generated_at).total_seconds() // 3600
    if age_hours < 24:
        score += 20
    elif age_hours // 24 <= 3:
        score += 10

    if not is_read:
        score += 15
    if is_actionable:
        score += 5

    try:
        score += TYPE_BOOSTS[InsightType(insight_type)]
    except ValueError:
        pass
    return int(score)


class InsightResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    insight_type: InsightType
    type_label: str
    title: str
    description: str
    priority: int
    priority_label: str
    is_read: bool
    is_dismissed: bool
    is_actionable: bool
    action_label: Optional[str] = None
    metadata: InsightMetadata
    generated_at: datetime
    read_at: Optional[datetime] = None
    dismissed_at: Optional[datetime] = None
    engagement_score: int

    @classmethod
    def from_model(cls, insight, now: datetime) -> "InsightResponse":
        return cls(
            id=insight.id,
            insight_type=insight.insight_type,
            type_label=type_label(insight.insight_type),
            title=insight.title,
            description=insight.description,
            priority=insight.priority,
            priority_label=priority_label(insight.priority),
            is_read=insight.is_read,
            is_dismissed=insight.is_dismissed,
            is_actionable=insight.is_actionable,
            action_label=insight.action_label,
            metadata=parse_metadata(insight.metadata_),
            generated_at=insight.generated_at,
            read_at=insight.read_at,
            dismissed_at=insight.dismissed_at,
            engagement_score=engagement_score(
                insight.priority,
                insight.insight_type,
                insight.generated_at,
                insight.is_read,
                insight.is_actionable,
                now,
            ),
        )
