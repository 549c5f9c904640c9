"""Progression API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from selah.dependencies import get_db
from selah.progression.achievement_service import list_user_achievements
from selah.progression.level_thresholds import LEVEL_THRESHOLDS
from selah.progression.recorder import evaluate_achievements_safely, track_activity
from selah.progression.schemas import (
    AchievementDefinitionResponse,
    ActivityRequest,
    ActivityResponse,
    AllAchievementsResponse,
    AllLevelsResponse,
    EvaluateRequest,
    EvaluateResponse,
    LevelEntry,
    ProgressSummaryResponse,
    StreakResponse,
    UserAchievementResponse,
    UserAchievementsResponse,
    XPHistoryEntry,
    XPHistoryResponse,
    XPResponse,
)
from selah.progression.store import ProgressionStore
from selah.progression.xp_service import get_xp_history, get_xp_summary

router = APIRouter(prefix="/api/v1/progression", tags=["Progression"])


# ── Catalog ──


@router.get("/achievements", response_model=AllAchievementsResponse)
async def list_achievements(db: AsyncSession = Depends(get_db)):
    """Get the authoritative achievement catalog, hidden entries excluded."""
    catalog = await ProgressionStore(db).list_achievement_defs()
    return AllAchievementsResponse(achievements=[
        AchievementDefinitionResponse(
            key=a.key,
            name=a.name,
            description=a.description,
            xp_value=a.xp_value,
            icon=a.icon,
            category=a.category,
            tier_required=a.tier_required,
            hidden=a.hidden,
            sort_order=a.sort_order,
        )
        for a in catalog
        if not a.hidden
    ])


@router.get("/levels", response_model=AllLevelsResponse)
async def list_levels():
    """Get the level table."""
    return AllLevelsResponse(levels=[LevelEntry(**t) for t in LEVEL_THRESHOLDS])


# ── Per-user ──


@router.post("/users/{user_id}/activity", response_model=ActivityResponse)
async def post_activity(
    user_id: str,
    body: ActivityRequest,
    db: AsyncSession = Depends(get_db),
):
    """Record a user activity: streak, XP and achievements in one pass."""
    result = await track_activity(db, user_id, body.activity_type)
    if not result.ok:
        raise result.error

    outcome = result.value
    return ActivityResponse(
        streak=StreakResponse(**outcome.streak_state.to_dict()),
        advanced=outcome.advanced,
        xp_delta=outcome.xp_delta,
        leveled_up=outcome.leveled_up,
        unlocked=outcome.unlocked,
    )


@router.post("/users/{user_id}/achievements/evaluate", response_model=EvaluateResponse)
async def post_evaluate(
    user_id: str,
    body: EvaluateRequest,
    db: AsyncSession = Depends(get_db),
):
    """Evaluate a trigger (trail followed, book completed, ...) for a user."""
    result = await evaluate_achievements_safely(db, user_id, body.trigger)
    if not result.ok:
        raise result.error
    return EvaluateResponse(unlocked=result.value)


@router.get("/users/{user_id}", response_model=ProgressSummaryResponse)
async def get_progress(user_id: str, db: AsyncSession = Depends(get_db)):
    """Get streak and XP summary for a user."""
    state = await ProgressionStore(db).get_streak_state(user_id)
    xp = await get_xp_summary(db, user_id)
    return ProgressSummaryResponse(
        streak=StreakResponse(**state.to_dict()) if state else None,
        xp=XPResponse(**xp),
    )


@router.get("/users/{user_id}/xp/history", response_model=XPHistoryResponse)
async def xp_history(
    user_id: str,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Get paginated XP ledger entries, newest first."""
    entries = await get_xp_history(db, user_id, page=page, per_page=per_page)
    return XPHistoryResponse(
        entries=[XPHistoryEntry(**e) for e in entries],
        page=page,
        per_page=per_page,
    )


@router.get("/users/{user_id}/achievements", response_model=UserAchievementsResponse)
async def user_achievements(user_id: str, db: AsyncSession = Depends(get_db)):
    """Get the catalog with the user's earned flags."""
    items = [UserAchievementResponse(**i) for i in await list_user_achievements(db, user_id)]
    return UserAchievementsResponse(
        achievements=items,
        total_available=len(items),
        total_earned=sum(1 for i in items if i.earned),
    )
