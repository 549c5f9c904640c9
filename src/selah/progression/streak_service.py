"""Daily streak tracking: transitions, grace day and prayer sub-streak."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from selah.config import get_settings
from selah.exceptions import ProgressionError, StorageError
from selah.progression.achievement_service import AchievementEvaluator
from selah.progression.activity import STREAK_MILESTONES, ActivityType, TriggerType, XPEventKind
from selah.progression.schemas import AchievementTrigger
from selah.progression.store import ProgressionStore, storage_errors
from selah.progression.types import ActivityOutcome, StreakSnapshot
from selah.progression.xp_service import award_xp

logger = structlog.get_logger()

# Consecutive days after a redeemed grace day before grace is available again
GRACE_REGEN_DAYS = 7


def utc_today(now: datetime | None = None) -> date:
    """Streak day for a timestamp: the server's UTC calendar date."""
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.date()


def advance_streak(state: StreakSnapshot | None, today: date) -> StreakSnapshot:
    """Apply one qualifying day to the daily streak.

    Callers must have checked that today is after state.last_active_date.
    """
    if state is None:
        return StreakSnapshot(
            current_streak=1,
            longest_streak=1,
            last_active_date=today,
            total_days=1,
        )

    current = state.current_streak
    grace_used = state.grace_used
    grace_last_used = state.grace_last_used
    gap = (today - state.last_active_date).days if state.last_active_date else None

    if gap == 1:
        current += 1
        if (
            grace_used
            and grace_last_used is not None
            and (today - grace_last_used).days >= GRACE_REGEN_DAYS
        ):
            grace_used = False
            grace_last_used = None
    elif gap == 2 and not grace_used:
        # Exactly one missed day: forgive it once
        current += 1
        grace_used = True
        grace_last_used = today
    else:
        current = 1

    return state.evolve(
        current_streak=current,
        longest_streak=max(state.longest_streak, current),
        last_active_date=today,
        total_days=state.total_days + 1,
        grace_used=grace_used,
        grace_last_used=grace_last_used,
    )


def advance_prayer_streak(state: StreakSnapshot, today: date) -> StreakSnapshot:
    """Apply one prayer day. No grace for prayer streaks."""
    if state.prayer_last_active == today:
        return state
    if state.prayer_last_active == today - timedelta(days=1):
        prayer = state.prayer_current + 1
    else:
        prayer = 1
    return state.evolve(
        prayer_current=prayer,
        prayer_longest=max(state.prayer_longest, prayer),
        prayer_last_active=today,
    )


@dataclass(frozen=True)
class StreakTransition:
    state: StreakSnapshot | None
    day_advanced: bool = False
    prayer_advanced: bool = False

    @property
    def changed(self) -> bool:
        return self.day_advanced or self.prayer_advanced


def transition(
    prior: StreakSnapshot | None,
    activity: ActivityType,
    today: date,
) -> StreakTransition:
    """Compute the next state for an activity without touching the store.

    A day that is already credited is a full no-op, prayer included. The
    prayer sub-streak only moves together with a newly credited day.
    """
    if prior is not None and prior.last_active_date is not None and prior.last_active_date >= today:
        return StreakTransition(state=prior)

    state = advance_streak(prior, today)
    prayer_due = activity is ActivityType.PRAYER_ENTRY and state.prayer_last_active != today
    if prayer_due:
        state = advance_prayer_streak(state, today)

    return StreakTransition(state=state, day_advanced=True, prayer_advanced=prayer_due)


async def update_streak(
    db: AsyncSession,
    user_id: str,
    activity: ActivityType,
    today: date,
) -> StreakTransition:
    """Persist the transition for one activity and commit it.

    Lost compare-and-swap races are retried from a fresh read, so two
    concurrent requests for the same day credit it exactly once.
    """
    store = ProgressionStore(db)
    max_attempts = get_settings().cas_max_retries

    for _ in range(max_attempts):
        prior = await store.get_streak_state(user_id)
        result = transition(prior, activity, today)
        if not result.changed:
            return result
        if await store.put_streak_state(user_id, result.state):
            with storage_errors("commit_streak_state", user_id):
                await db.commit()
            break
        with storage_errors("rollback_streak_state", user_id):
            await db.rollback()
    else:
        msg = "Could not update streak: too much contention"
        raise StorageError(msg, operation="put_streak_state", user_id=user_id)

    if result.day_advanced:
        logger.info(
            "streak_advanced",
            user_id=user_id,
            current_streak=result.state.current_streak,
            longest_streak=result.state.longest_streak,
            grace_used=result.state.grace_used,
        )
    if result.prayer_advanced:
        logger.info("prayer_streak_advanced", user_id=user_id, prayer_current=result.state.prayer_current)
    return result


async def award_isolated(
    db: AsyncSession,
    outcome: ActivityOutcome,
    user_id: str,
    event_type: str,
    amount: int | None = None,
    context: dict[str, Any] | None = None,
) -> None:
    """Award and commit XP; a failure is logged and never undoes earlier commits."""
    try:
        award = await award_xp(db, user_id, event_type, amount, context)
        await db.commit()
    except (ProgressionError, SQLAlchemyError) as exc:
        await db.rollback()
        logger.error(
            "xp_award_failed",
            user_id=user_id,
            event_type=event_type,
            amount=amount,
            error=str(exc),
        )
        return
    outcome.add_award(award)


async def evaluate_isolated(
    db: AsyncSession,
    evaluator: AchievementEvaluator,
    outcome: ActivityOutcome,
    user_id: str,
    trigger: AchievementTrigger,
) -> None:
    """Evaluate and commit unlocks; a failure rolls back only this evaluation."""
    evaluator.awards.clear()
    try:
        unlocked = await evaluator.evaluate(user_id, trigger)
        await db.commit()
    except (ProgressionError, SQLAlchemyError) as exc:
        await db.rollback()
        logger.error(
            "achievement_evaluation_failed",
            user_id=user_id,
            trigger=trigger.type.value,
            error=str(exc),
        )
        return
    for award in evaluator.awards:
        outcome.add_award(award)
    outcome.unlocked.extend(unlocked)


async def grant_streak_rewards(
    db: AsyncSession,
    evaluator: AchievementEvaluator,
    outcome: ActivityOutcome,
    user_id: str,
    state: StreakSnapshot,
) -> None:
    """Side effects of a day streak advancing, in order.

    1. streak_day XP
    2. one-time milestone bonus when current_streak is exactly 7 or 30
    3. streak achievement check
    """
    await award_isolated(db, outcome, user_id, XPEventKind.STREAK_DAY.value)

    milestone = STREAK_MILESTONES.get(state.current_streak)
    if milestone is not None:
        await award_isolated(
            db, outcome, user_id, milestone.value,
            context={"streak": state.current_streak},
        )

    trigger = AchievementTrigger(type=TriggerType.STREAK, streak=state.current_streak)
    await evaluate_isolated(db, evaluator, outcome, user_id, trigger)
