"""Store contract consumed by the progression services.

Every read-modify-write goes through a compare-and-swap on the row's
version column: put_* returns False when another request won the race and
the caller must re-read and recompute.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from selah.db.models import (
    AchievementDefinition,
    StreakState,
    UserAchievement,
    XPAggregate,
    XPEvent,
)
from selah.exceptions import ConflictError, StorageError
from selah.progression.types import StreakSnapshot, XPTotals


@contextmanager
def storage_errors(operation: str, user_id: str | None = None) -> Iterator[None]:
    """Translate SQLAlchemy failures into StorageError."""
    try:
        yield
    except SQLAlchemyError as exc:
        msg = f"{operation} failed: {exc.__class__.__name__}"
        raise StorageError(msg, operation=operation, user_id=user_id) from exc


def _to_snapshot(row: StreakState) -> StreakSnapshot:
    return StreakSnapshot(
        current_streak=row.current_streak,
        longest_streak=row.longest_streak,
        last_active_date=row.last_active_date,
        total_days=row.total_days,
        grace_used=row.grace_used,
        grace_last_used=row.grace_last_used,
        prayer_current=row.prayer_current,
        prayer_longest=row.prayer_longest,
        prayer_last_active=row.prayer_last_active,
        version=row.version,
    )


class ProgressionStore:
    """Reads and writes progression rows on a single AsyncSession.

    The store never commits; transaction boundaries belong to the caller.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # --- Streaks ---

    async def get_streak_state(self, user_id: str) -> StreakSnapshot | None:
        with storage_errors("get_streak_state", user_id):
            result = await self.db.execute(
                select(StreakState)
                .where(StreakState.user_id == user_id)
                .execution_options(populate_existing=True)
            )
            row = result.scalar_one_or_none()
        return _to_snapshot(row) if row is not None else None

    async def put_streak_state(self, user_id: str, state: StreakSnapshot) -> bool:
        """Create the row (state.version is None) or CAS-update it.

        Returns False if the row was created or modified concurrently.
        """
        now = datetime.now(timezone.utc)
        with storage_errors("put_streak_state", user_id):
            if state.version is None:
                row = StreakState(user_id=user_id, version=0, updated_at=now, **state.to_dict())
                try:
                    async with self.db.begin_nested():
                        self.db.add(row)
                except IntegrityError:
                    return False
                return True

            result = await self.db.execute(
                update(StreakState)
                .where(
                    StreakState.user_id == user_id,
                    StreakState.version == state.version,
                )
                .values(**state.to_dict(), version=state.version + 1, updated_at=now)
                .execution_options(synchronize_session=False)
            )
        return result.rowcount == 1

    # --- XP ---

    async def append_xp_event(
        self,
        user_id: str,
        event_type: str,
        amount: int,
        context: dict[str, Any],
    ) -> XPEvent:
        event = XPEvent(
            user_id=user_id,
            event_type=event_type,
            xp_earned=amount,
            context=context,
            created_at=datetime.now(timezone.utc),
        )
        with storage_errors("append_xp_event", user_id):
            self.db.add(event)
            await self.db.flush()
        return event

    async def get_xp_aggregate(self, user_id: str) -> XPTotals:
        """Return the cached totals, or a zero row (version None) for new users."""
        with storage_errors("get_xp_aggregate", user_id):
            result = await self.db.execute(
                select(XPAggregate)
                .where(XPAggregate.user_id == user_id)
                .execution_options(populate_existing=True)
            )
            row = result.scalar_one_or_none()
        if row is None:
            return XPTotals()
        return XPTotals(total_xp=row.total_xp, current_level=row.current_level, version=row.version)

    async def put_xp_aggregate(
        self,
        user_id: str,
        total_xp: int,
        level: int,
        expected_version: int | None,
    ) -> bool:
        now = datetime.now(timezone.utc)
        with storage_errors("put_xp_aggregate", user_id):
            if expected_version is None:
                row = XPAggregate(
                    user_id=user_id,
                    total_xp=total_xp,
                    current_level=level,
                    version=0,
                    updated_at=now,
                )
                try:
                    async with self.db.begin_nested():
                        self.db.add(row)
                except IntegrityError:
                    return False
                return True

            result = await self.db.execute(
                update(XPAggregate)
                .where(
                    XPAggregate.user_id == user_id,
                    XPAggregate.version == expected_version,
                )
                .values(
                    total_xp=total_xp,
                    current_level=level,
                    version=expected_version + 1,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
        return result.rowcount == 1

    async def list_xp_events(self, user_id: str, limit: int, offset: int = 0) -> list[XPEvent]:
        with storage_errors("list_xp_events", user_id):
            result = await self.db.execute(
                select(XPEvent)
                .where(XPEvent.user_id == user_id)
                .order_by(XPEvent.created_at.desc(), XPEvent.id.desc())
                .limit(limit)
                .offset(offset)
            )
            return list(result.scalars().all())

    # --- Achievements ---

    async def list_achievement_defs(self) -> list[AchievementDefinition]:
        with storage_errors("list_achievement_defs"):
            result = await self.db.execute(
                select(AchievementDefinition).order_by(AchievementDefinition.sort_order)
            )
            return list(result.scalars().all())

    async def get_earned_achievement_ids(self, user_id: str) -> set[int]:
        with storage_errors("get_earned_achievement_ids", user_id):
            result = await self.db.execute(
                select(UserAchievement.achievement_id).where(UserAchievement.user_id == user_id)
            )
            return set(result.scalars().all())

    async def list_user_achievements(self, user_id: str) -> list[UserAchievement]:
        with storage_errors("list_user_achievements", user_id):
            result = await self.db.execute(
                select(UserAchievement).where(UserAchievement.user_id == user_id)
            )
            return list(result.scalars().unique().all())

    async def insert_user_achievement(self, user_id: str, achievement_id: int) -> None:
        """Insert the unlock row. Raises ConflictError if it already exists."""
        with storage_errors("insert_user_achievement", user_id):
            try:
                async with self.db.begin_nested():
                    self.db.add(UserAchievement(
                        user_id=user_id,
                        achievement_id=achievement_id,
                        earned_at=datetime.now(timezone.utc),
                    ))
            except IntegrityError as exc:
                msg = "Achievement already earned"
                raise ConflictError(msg, user_id=user_id, achievement_id=achievement_id) from exc

