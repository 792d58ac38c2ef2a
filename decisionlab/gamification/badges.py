"""
Badge catalogue and award rules.

eligible_badges() is pure: it only reads counters off the stat row.
award_badge() appends to the badge list and is a no-op for a badge that
is already earned.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from decisionlab.db.models import UserStat
from decisionlab.gamification.schemas import BadgeCategory, BadgeResponse


@dataclass(frozen=True)
class BadgeDefinition:
    id: str
    name: str
    description: str
    icon: str
    category: BadgeCategory
    earned_when: Callable[[UserStat], bool]

    def to_response(self, earned_at: datetime | None = None) -> BadgeResponse:
        return BadgeResponse(
            id=self.id,
            name=self.name,
            description=self.description,
            icon=self.icon,
            category=self.category,
            earned_at=earned_at,
        )


BADGES: list[BadgeDefinition] = [
    # Decisions
    BadgeDefinition(
        "first_decision", "First Decision", "Created your first decision model", "🎯",
        BadgeCategory.VOLUME, lambda s: s.total_decisions >= 1,
    ),
    BadgeDefinition(
        "decision_maker", "Decision Maker", "Created 10 decision models", "🏆",
        BadgeCategory.VOLUME, lambda s: s.total_decisions >= 10,
    ),
    # Outcomes
    BadgeDefinition(
        "first_outcome", "First Outcome", "Logged your first outcome", "📝",
        BadgeCategory.VOLUME, lambda s: s.total_outcomes_logged >= 1,
    ),
    BadgeDefinition(
        "committed_logger", "Committed Logger", "Logged 10 outcomes", "🔥",
        BadgeCategory.VOLUME, lambda s: s.total_outcomes_logged >= 10,
    ),
    BadgeDefinition(
        "outcome_master", "Outcome Master", "Logged 50 outcomes", "🌟",
        BadgeCategory.VOLUME, lambda s: s.total_outcomes_logged >= 50,
    ),
    # Streaks
    BadgeDefinition(
        "streak_3", "3-Day Streak", "Logged outcomes for 3 days in a row", "🔥",
        BadgeCategory.STREAK, lambda s: s.current_streak >= 3,
    ),
    BadgeDefinition(
        "streak_7", "7-Day Streak", "One week of daily logging!", "🔥🔥",
        BadgeCategory.STREAK, lambda s: s.current_streak >= 7,
    ),
    BadgeDefinition(
        "streak_30", "30-Day Streak", "A full month of commitment!", "🔥🔥🔥",
        BadgeCategory.STREAK, lambda s: s.current_streak >= 30,
    ),
    # Accuracy
    BadgeDefinition(
        "accurate_predictor", "Accurate Predictor", "70%+ prediction accuracy", "🎯",
        BadgeCategory.ACCURACY,
        lambda s: s.accuracy_percentage >= 70 and s.total_predictions >= 5,
    ),
    BadgeDefinition(
        "prediction_master", "Prediction Master", "90%+ prediction accuracy", "🎯🌟",
        BadgeCategory.ACCURACY,
        lambda s: s.accuracy_percentage >= 90 and s.total_predictions >= 10,
    ),
    # Engagement
    BadgeDefinition(
        "insight_seeker", "Insight Seeker", "Read 80%+ of your insights", "🔍",
        BadgeCategory.ENGAGEMENT,
        lambda s: s.insight_read_percentage >= 80 and s.total_insights_generated >= 5,
    ),
]

BADGES_BY_ID: dict[str, BadgeDefinition] = {b.id: b for b in BADGES}


def eligible_badges(stat: UserStat) -> list[BadgeDefinition]:
    """Badges whose threshold is met and that are not yet earned, catalogue order."""
    earned = set(stat.badge_ids)
    return [b for b in BADGES if b.id not in earned and b.earned_when(stat)]


def award_badge(stat: UserStat, badge: BadgeDefinition, now: datetime) -> bool:
    """Append the badge with its award time. False if it was already earned."""
    if stat.has_badge(badge.id):
        return False
    # Reassign so the JSON column registers the change
    stat.badges = [
        *(stat.badges or []),
        {
            "id": badge.id,
            "name": badge.name,
            "description": badge.description,
            "icon": badge.icon,
            "earned_at": now.isoformat(),
        },
    ]
    return True


def earned_badge_responses(stat: UserStat) -> list[BadgeResponse]:
    responses = []
    for entry in stat.badges or []:
        definition = BADGES_BY_ID.get(entry["id"])
        responses.append(BadgeResponse(
            id=entry["id"],
            name=entry.get("name", definition.name if definition else entry["id"]),
            description=entry.get("description", definition.description if definition else ""),
            icon=entry.get("icon", definition.icon if definition else ""),
            category=definition.category if definition else BadgeCategory.ENGAGEMENT,
            earned_at=datetime.fromisoformat(entry["earned_at"]),
        ))
    return responses
