"""Gamification schemas."""

from datetime import datetime
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field


class BadgeCategory(StrEnum):
    STREAK = "streak"
    VOLUME = "volume"
    ACCURACY = "accuracy"
    ENGAGEMENT = "engagement"


class MilestoneType(StrEnum):
    STREAK = "streak"
    OUTCOME = "outcome"
    ACCURACY = "accuracy"


class BadgeResponse(BaseModel):
    id: str
    name: str
    description: str
    icon: str
    category: BadgeCategory
    earned_at: Optional[datetime] = None     # None for locked badges


class GamificationUpdate(BaseModel):
    """Result of one gamification event."""
    streak_increased: bool = False
    current_streak: int = 0
    new_badges: list[BadgeResponse] = Field(default_factory=list)
    message: str


class NextMilestone(BaseModel):
    type: MilestoneType
    current: float
    target: float
    label: str


class GamificationStatus(BaseModel):
    total_decisions: int
    total_outcomes: int
    total_insights_generated: int
    total_insights_read: int
    current_streak: int
    longest_streak: int
    accuracy_percentage: int
    badge_count: int
    earned_badges: list[str]
    pending_badges: list[str]                # eligible but not awarded yet
    next_milestone: NextMilestone
    message: str
    streak_at_risk: bool


class BadgeCollection(BaseModel):
    earned: list[BadgeResponse]
    locked: list[BadgeResponse]
