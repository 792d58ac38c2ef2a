"""
Gamification Tracker — state machine over the UserStat singleton.

Events:
- record_decision():      decision counter, first-decision stamp, badges
- record_outcome_log():   outcome counter, calendar-day streak, badges
- record_insights_generated() / record_insight_read(): engagement counters

Every event is one locked read-modify-write of the UserStat row.

Streak rule, with d = calendar days since the last logged day:
  no prior log → 1;  d == 0 → unchanged;  d == 1 → +1;  d > 1 → reset to 1.
The last logged day is re-stamped on every log.
"""

from datetime import date, datetime
from typing import Callable, Optional, Sequence

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from decisionlab.db.models import UserStat, utcnow
from decisionlab.db.repositories.user_stats import read_user_stat, user_stat_transaction
from decisionlab.gamification.badges import (
    BADGES,
    award_badge,
    earned_badge_responses,
    eligible_badges,
)
from decisionlab.gamification.schemas import (
    BadgeCollection,
    BadgeResponse,
    GamificationStatus,
    GamificationUpdate,
    MilestoneType,
    NextMilestone,
)

logger = structlog.get_logger(__name__)

STREAK_MESSAGES = {
    3: "3-day streak! You're building a habit!",
    7: "Week streak! Your insights are getting more accurate!",
    14: "Two weeks strong! Keep it going!",
    30: "30-day streak! You've mastered the habit!",
}

OUTCOME_MESSAGES = {
    5: "5 outcomes logged! You'll now start receiving correlation insights!",
    10: "10 outcomes! Your insight quality is improving!",
    25: "25 outcomes! You have enough data for accurate bias detection!",
}

# (below, target, label)
STREAK_MILESTONES = [(3, 3, "3-Day Streak"), (7, 7, "Week Streak"), (30, 30, "Month Streak")]
OUTCOME_MILESTONES = [(5, 5, "Unlock Correlations"), (10, 10, "Committed Logger"), (50, 50, "Outcome Master")]

CORRELATION_UNLOCK = 5


# ── Pure rules ────────────────────────────────────────────────────────


def advance_streak(
    current: int, longest: int, last_day: Optional[date], today: date
) -> tuple[int, int]:
    """Return (current, longest) after a log on ``today``."""
    if last_day is None:
        current = 1
    else:
        days = (today - last_day).days
        if days <= 0:
            pass
        elif days == 1:
            current += 1
        else:
            current = 1
    return current, max(longest, current)


def motivational_message(
    stat: UserStat, streak_increased: bool, new_badges: Sequence[BadgeResponse]
) -> str:
    """One message per event: badge > streak > volume > accuracy > generic."""
    if new_badges:
        badge = new_badges[0]
        return f"Badge Unlocked: {badge.name}! {badge.description}"

    if streak_increased:
        streak = stat.current_streak
        if streak in STREAK_MESSAGES:
            return STREAK_MESSAGES[streak]
        if streak > 1:
            return f"{streak}-day streak! Come back tomorrow to keep it alive!"
        return "Great start! Log an outcome tomorrow to start a streak!"

    total = stat.total_outcomes_logged
    if total in OUTCOME_MESSAGES:
        return OUTCOME_MESSAGES[total]

    accuracy = stat.accuracy_percentage
    if accuracy >= 90 and total >= 10:
        return "90%+ accuracy! You have exceptional self-knowledge!"
    if accuracy >= 70 and total >= 5:
        return "70%+ accuracy! You're learning to predict your satisfaction!"

    return "Great job logging this outcome! Keep building your decision track record."


def next_milestone(stat: UserStat) -> NextMilestone:
    """Progress target: streaks first, then outcome volume, then accuracy."""
    streak = stat.current_streak
    for below, target, label in STREAK_MILESTONES:
        if streak < below:
            return NextMilestone(type=MilestoneType.STREAK, current=streak, target=target, label=label)

    total = stat.total_outcomes_logged
    for below, target, label in OUTCOME_MILESTONES:
        if total < below:
            return NextMilestone(type=MilestoneType.OUTCOME, current=total, target=target, label=label)

    accuracy = stat.accuracy_percentage
    if accuracy < 70 and total >= 5:
        return NextMilestone(
            type=MilestoneType.ACCURACY, current=accuracy, target=70, label="Accurate Predictor"
        )
    if accuracy < 90 and total >= 10:
        return NextMilestone(
            type=MilestoneType.ACCURACY, current=accuracy, target=90, label="Prediction Master"
        )

    return NextMilestone(
        type=MilestoneType.OUTCOME, current=total, target=total + 10, label="Next Milestone"
    )


def status_message(stat: UserStat) -> str:
    streak = stat.current_streak
    total = stat.total_outcomes_logged
    if streak >= 30:
        return "You're on fire! 30+ day streak!"
    if streak >= 7:
        return f"{streak}-day streak! You've built a strong habit!"
    if streak >= 3:
        return f"{streak}-day streak! Keep it going!"
    if total == 0:
        return "Welcome! Log your first outcome to get started!"
    if total < CORRELATION_UNLOCK:
        return f"Log {CORRELATION_UNLOCK - total} more outcomes to unlock correlation insights!"
    if stat.accuracy_percentage >= 70:
        return f"{stat.accuracy_percentage}% accuracy! You're great at predicting satisfaction!"
    return f"You've logged {total} outcomes. Keep going!"


def streak_at_risk(stat: UserStat, now: datetime) -> bool:
    """An active streak with at least a full day since last activity."""
    if stat.current_streak <= 0:
        return False
    return (now - stat.last_active_at).days >= 1


# ── Tracker ───────────────────────────────────────────────────────────


class GamificationTracker:
    """
    Applies gamification events to the UserStat row.

    ``clock`` returns naive UTC; tests inject a fixed one to walk the
    streak across calendar days.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.clock = clock

    def _award_eligible(self, stat: UserStat, now: datetime) -> list[BadgeResponse]:
        awarded = []
        for badge in eligible_badges(stat):
            if award_badge(stat, badge, now):
                awarded.append(badge.to_response(earned_at=now))
        if awarded:
            logger.info("badges_awarded", badges=[b.id for b in awarded])
        return awarded

    async def record_decision(self) -> GamificationUpdate:
        now = self.clock()
        async with user_stat_transaction(self.session_factory) as stat:
            stat.total_decisions += 1
            stat.last_active_at = now
            if stat.first_decision_at is None:
                stat.first_decision_at = now
            new_badges = self._award_eligible(stat, now)
            current_streak = stat.current_streak
            total = stat.total_decisions

        message = (
            f"Badge Unlocked: {new_badges[0].name}! {new_badges[0].description}"
            if new_badges else
            "Decision saved. Log the outcome once you know how it turned out."
        )
        logger.info("decision_recorded", total_decisions=total, new_badges=len(new_badges))
        return GamificationUpdate(
            streak_increased=False,
            current_streak=current_streak,
            new_badges=new_badges,
            message=message,
        )

    async def record_outcome_log(self) -> GamificationUpdate:
        now = self.clock()
        today = now.date()
        async with user_stat_transaction(self.session_factory) as stat:
            previous_streak = stat.current_streak
            stat.total_outcomes_logged += 1
            stat.last_active_at = now
            if stat.first_outcome_at is None:
                stat.first_outcome_at = now

            stat.current_streak, stat.longest_streak = advance_streak(
                stat.current_streak, stat.longest_streak, stat.last_log_day, today
            )
            stat.last_log_day = today
            streak_increased = stat.current_streak > previous_streak

            new_badges = self._award_eligible(stat, now)
            message = motivational_message(stat, streak_increased, new_badges)
            current_streak = stat.current_streak
            longest = stat.longest_streak

        logger.info(
            "outcome_log_recorded",
            streak=current_streak,
            longest_streak=longest,
            streak_increased=streak_increased,
            new_badges=len(new_badges),
        )
        return GamificationUpdate(
            streak_increased=streak_increased,
            current_streak=current_streak,
            new_badges=new_badges,
            message=message,
        )

    async def record_insights_generated(self, count: int) -> None:
        if count <= 0:
            return
        async with user_stat_transaction(self.session_factory) as stat:
            stat.total_insights_generated += count

    async def record_insight_read(self) -> list[BadgeResponse]:
        now = self.clock()
        async with user_stat_transaction(self.session_factory) as stat:
            stat.total_insights_read += 1
            stat.last_active_at = now
            return self._award_eligible(stat, now)

    # ── Views ─────────────────────────────────────────────────────────

    async def get_status(self) -> GamificationStatus:
        stat = await read_user_stat(self.session_factory)
        return GamificationStatus(
            total_decisions=stat.total_decisions,
            total_outcomes=stat.total_outcomes_logged,
            total_insights_generated=stat.total_insights_generated,
            total_insights_read=stat.total_insights_read,
            current_streak=stat.current_streak,
            longest_streak=stat.longest_streak,
            accuracy_percentage=stat.accuracy_percentage,
            badge_count=len(stat.badges or []),
            earned_badges=stat.badge_ids,
            pending_badges=[b.id for b in eligible_badges(stat)],
            next_milestone=next_milestone(stat),
            message=status_message(stat),
            streak_at_risk=streak_at_risk(stat, self.clock()),
        )

    async def get_all_badges(self) -> BadgeCollection:
        stat = await read_user_stat(self.session_factory)
        earned = earned_badge_responses(stat)
        earned_ids = {b.id for b in earned}
        locked = [b.to_response() for b in BADGES if b.id not in earned_ids]
        return BadgeCollection(earned=earned, locked=locked)

    async def is_streak_at_risk(self) -> bool:
        stat = await read_user_stat(self.session_factory)
        return streak_at_risk(stat, self.clock())
