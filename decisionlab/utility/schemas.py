"""Utility engine output schemas."""

from uuid import UUID

from pydantic import BaseModel, Field


class RankedOption(BaseModel):
    id: UUID
    name: str
    utility: float
    utility_percentage: int              # round(utility * 100)
    rank: int                            # 1 = best


class ConfidenceBreakdown(BaseModel):
    """The three additive parts of the 0-100 confidence score."""
    completeness: float = Field(ge=0.0, le=40.0)
    decisiveness: float = Field(ge=0.0, le=40.0)
    factor_count: float = Field(ge=0.0, le=20.0)


class Recommendation(BaseModel):
    decision_id: UUID
    top_option: RankedOption
    options: list[RankedOption]
    confidence: int = Field(ge=0, le=100)
    confidence_breakdown: ConfidenceBreakdown
    uncertain_factors: list[str] = Field(default_factory=list)
    is_fully_scored: bool
    recommendations: list[str] = Field(default_factory=list)


class FactorContribution(BaseModel):
    factor_id: UUID
    factor_name: str
    weight: float
    score: int                           # 3 when no score was recorded
    normalized_score: float
    contribution: float                  # weight * normalized_score
    is_default: bool = False


class UtilityBreakdown(BaseModel):
    option_id: UUID
    option_name: str
    utility: float
    factors: list[FactorContribution]
