"""XP ledger: append-only awards with a cached total and level-up detection."""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from selah.config import get_settings
from selah.exceptions import StorageError
from selah.progression.activity import resolve_xp_amount
from selah.progression.level_thresholds import compute_level
from selah.progression.store import ProgressionStore
from selah.progression.types import AwardResult

logger = structlog.get_logger()


async def award_xp(
    db: AsyncSession,
    user_id: str,
    event_type: str,
    amount: int | None = None,
    context: dict[str, Any] | None = None,
) -> AwardResult:
    """Award XP to a user. Flushes but does not commit.

    1. Resolve the amount from the XP table unless overridden
    2. Skip the write entirely when the amount is not positive
    3. Insert into xp_events
    4. Compare-and-swap user_xp with the new total and recomputed level
    """
    xp = resolve_xp_amount(event_type, amount)
    store = ProgressionStore(db)

    if xp <= 0:
        totals = await store.get_xp_aggregate(user_id)
        return AwardResult(
            xp_earned=0,
            total_xp=totals.total_xp,
            level=compute_level(totals.total_xp),
            leveled_up=False,
        )

    await store.append_xp_event(user_id, event_type, xp, context or {})

    max_attempts = get_settings().cas_max_retries
    for _ in range(max_attempts):
        totals = await store.get_xp_aggregate(user_id)
        new_total = totals.total_xp + xp
        level_info = compute_level(new_total)
        if await store.put_xp_aggregate(user_id, new_total, level_info["level"], totals.version):
            break
    else:
        msg = "Could not update XP aggregate: too much contention"
        raise StorageError(msg, operation="put_xp_aggregate", user_id=user_id)

    leveled_up = level_info["level"] > totals.current_level
    logger.info(
        "xp_awarded",
        user_id=user_id,
        event_type=event_type,
        xp=xp,
        total_xp=new_total,
        level=level_info["level"],
    )
    if leveled_up:
        logger.info(
            "level_up",
            user_id=user_id,
            old_level=totals.current_level,
            new_level=level_info["level"],
            title=level_info["title"],
        )

    return AwardResult(
        xp_earned=xp,
        total_xp=new_total,
        level=level_info,
        leveled_up=leveled_up,
    )


async def get_xp_summary(db: AsyncSession, user_id: str) -> dict:
    """Current total XP plus level info for display."""
    totals = await ProgressionStore(db).get_xp_aggregate(user_id)
    return {"total_xp": totals.total_xp, **compute_level(totals.total_xp)}


async def get_xp_history(
    db: AsyncSession,
    user_id: str,
    page: int = 1,
    per_page: int = 20,
) -> list[dict]:
    """Most recent ledger entries first."""
    events = await ProgressionStore(db).list_xp_events(
        user_id, limit=per_page, offset=(page - 1) * per_page
    )
    return [
        {
            "event_type": e.event_type,
            "xp_earned": e.xp_earned,
            "context": e.context or {},
            "created_at": e.created_at,
        }
        for e in events
    ]
