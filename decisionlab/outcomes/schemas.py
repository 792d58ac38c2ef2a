"""Outcome schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from decisionlab.gamification.schemas import GamificationUpdate
from decisionlab.insights.schemas import InsightResponse


class OutcomeCreate(BaseModel):
    actual_satisfaction: float                # 0-10
    surprise_factor: int = 0                  # -3 (worse than expected) .. +3
    notes: Optional[str] = Field(default=None, max_length=2000)
    log_source: str = "manual"
    logged_at: Optional[datetime] = None      # defaults to now (naive UTC)


class OutcomeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    decision_id: UUID
    logged_at: datetime
    actual_satisfaction: float
    surprise_factor: int
    notes: Optional[str] = None
    log_source: str


class OutcomeLogResult(BaseModel):
    """Everything one outcome log produced."""
    outcome: OutcomeResponse
    insights: list[InsightResponse] = Field(default_factory=list)
    gamification: Optional[GamificationUpdate] = None   # None if the tracker failed
