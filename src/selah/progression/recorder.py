"""Activity recorder — request-facing entry point of the progression engine.

Calling features invoke these after their own action has committed:

    result = await track_activity(db, user.id, "chapter_read")
    if result.ok:
        toast(result.value.xp_delta, result.value.unlocked)
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from selah.exceptions import ProgressionError, StorageError
from selah.progression.achievement_service import AchievementEvaluator, evaluate_achievements, parse_trigger
from selah.progression.activity import ACTIVITY_TRIGGERS, ActivityType, XPEventKind, parse_activity_type
from selah.progression.schemas import AchievementTrigger
from selah.progression.streak_service import (
    award_isolated,
    evaluate_isolated,
    grant_streak_rewards,
    update_streak,
    utc_today,
)
from selah.progression.types import ActivityOutcome, Failure, Result, Success

logger = structlog.get_logger()

# Activities whose own XP is paid by the streak machine, once per day
DAILY_XP_ACTIVITIES = frozenset({ActivityType.PRAYER_ENTRY})


class ActivityRecorder:
    """Records activities for one request. Holds no state across requests."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.evaluator = AchievementEvaluator(db)

    async def record(
        self,
        user_id: str,
        activity_type: str | ActivityType,
        now: datetime | None = None,
    ) -> ActivityOutcome:
        """Credit the day streak for an activity.

        A second activity on the same day is a no-op and returns the
        unchanged state. The streak commits before any XP or achievement
        work, and a failed streak write raises before any XP is granted.
        """
        activity = parse_activity_type(activity_type)
        today = utc_today(now)

        transition = await update_streak(self.db, user_id, activity, today)
        outcome = ActivityOutcome(streak_state=transition.state, advanced=transition.day_advanced)

        if transition.prayer_advanced:
            await award_isolated(self.db, outcome, user_id, XPEventKind.PRAYER_ENTRY.value)
        if transition.day_advanced:
            await grant_streak_rewards(self.db, self.evaluator, outcome, user_id, transition.state)
        return outcome


async def _rollback(db: AsyncSession, user_id: str) -> None:
    try:
        await db.rollback()
    except SQLAlchemyError as exc:
        logger.error("rollback_failed", user_id=user_id, error=str(exc))


async def _failure(db: AsyncSession, exc: Exception, event: str, user_id: str, **fields: Any) -> Failure:
    """Roll back, log and wrap an error as a Failure."""
    await _rollback(db, user_id)
    if isinstance(exc, ProgressionError):
        logger.warning(event, user_id=user_id, error=exc.code, detail=exc.message, **fields)
        return Failure(exc)
    logger.error(event, user_id=user_id, error=exc.__class__.__name__, exc_info=exc, **fields)
    return Failure(StorageError(f"Unexpected progression failure: {exc.__class__.__name__}", user_id=user_id))


async def record_activity(
    db: AsyncSession,
    user_id: str,
    activity_type: str | ActivityType,
    now: datetime | None = None,
) -> Result[ActivityOutcome]:
    """Record a streak activity. Returns Success(outcome) or Failure(error)."""
    try:
        outcome = await ActivityRecorder(db).record(user_id, activity_type, now)
    except Exception as exc:
        return await _failure(db, exc, "progression_failed", user_id, activity_type=str(activity_type))
    return Success(outcome)


async def track_activity(
    db: AsyncSession,
    user_id: str,
    activity_type: str | ActivityType,
    now: datetime | None = None,
    trigger: AchievementTrigger | Mapping[str, Any] | None = None,
) -> Result[ActivityOutcome]:
    """Full progression pass for a user action. Never raises.

    1. Credit the day streak (streak XP, milestones, streak achievements)
    2. Award the activity's own XP, unless the streak machine already paid it
    3. Evaluate the activity's own achievement trigger, or the given one
    """
    try:
        activity = parse_activity_type(activity_type)
        if trigger is not None:
            activity_trigger = parse_trigger(trigger)
        elif activity in ACTIVITY_TRIGGERS:
            activity_trigger = AchievementTrigger(type=ACTIVITY_TRIGGERS[activity])
        else:
            activity_trigger = None

        recorder = ActivityRecorder(db)
        outcome = await recorder.record(user_id, activity, now)
        if activity not in DAILY_XP_ACTIVITIES:
            await award_isolated(db, outcome, user_id, activity.value)
        if activity_trigger is not None:
            await evaluate_isolated(db, recorder.evaluator, outcome, user_id, activity_trigger)
    except Exception as exc:
        return await _failure(db, exc, "progression_failed", user_id, activity_type=str(activity_type))
    return Success(outcome)


async def evaluate_achievements_safely(
    db: AsyncSession,
    user_id: str,
    trigger: AchievementTrigger | Mapping[str, Any],
) -> Result[list[str]]:
    """evaluate_achievements for feature code paths (trail followed, book completed)."""
    try:
        unlocked = await evaluate_achievements(db, user_id, trigger)
    except Exception as exc:
        return await _failure(db, exc, "achievement_evaluation_failed", user_id)
    return Success(unlocked)
