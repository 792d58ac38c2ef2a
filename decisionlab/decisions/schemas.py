"""
Decision schemas.

Range checks (weights, scores, satisfaction, confidence) live in
DecisionService so every violated rule is reported together.
"""

from datetime import datetime
from enum import StrEnum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from decisionlab.gamification.schemas import GamificationUpdate


class DecisionStatus(StrEnum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class FactorPreference(StrEnum):
    HIGHER_IS_BETTER = "higher_is_better"
    LOWER_IS_BETTER = "lower_is_better"
    NEUTRAL = "neutral"


# ── Requests ──────────────────────────────────────────────────────────


class FactorCreate(BaseModel):
    name: str = Field(min_length=1, max_length=80)
    weight: float
    preference: FactorPreference = FactorPreference.HIGHER_IS_BETTER
    description: Optional[str] = None


class OptionCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    predicted_satisfaction: Optional[float] = None     # 0-10


class ScoreCreate(BaseModel):
    option_index: int = Field(ge=0)                    # position in DecisionCreate.options
    factor_index: int = Field(ge=0)                    # position in DecisionCreate.factors
    score: int                                         # 1-5
    confidence: Optional[float] = None                 # 0-1


class DecisionCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    decision_method: str = "weighted"
    source: str = "manual"
    factors: list[FactorCreate] = Field(default_factory=list)
    options: list[OptionCreate] = Field(default_factory=list)
    scores: list[ScoreCreate] = Field(default_factory=list)


class ScoreUpdate(BaseModel):
    score: int
    confidence: Optional[float] = None


class CompleteRequest(BaseModel):
    selected_option_id: UUID


# ── Responses ─────────────────────────────────────────────────────────


class FactorResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: Optional[str] = None
    weight: float
    preference: FactorPreference
    display_order: int


class ScoreResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    option_id: UUID
    factor_id: UUID
    score: int
    confidence: Optional[float] = None


class OptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: Optional[str] = None
    display_order: int
    computed_utility: Optional[float] = None
    utility_percentage: Optional[int] = None
    predicted_satisfaction: Optional[float] = None
    satisfaction_label: Optional[str] = None
    is_selected: bool
    scores: list[ScoreResponse] = Field(default_factory=list)


class DecisionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: Optional[str] = None
    status: DecisionStatus
    decision_method: str
    source: str
    selected_option_id: Optional[UUID] = None
    created_at: datetime
    decision_date: Optional[datetime] = None
    factors: list[FactorResponse] = Field(default_factory=list)
    options: list[OptionResponse] = Field(default_factory=list)


class DecisionCreated(BaseModel):
    decision: DecisionResponse
    gamification: Optional[GamificationUpdate] = None


class ComplexityReport(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
