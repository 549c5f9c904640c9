"""Store tests — compare-and-swap writes and storage-level constraints."""

from __future__ import annotations

from datetime import UTC, date, datetime

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from selah.db.models import StreakState, XPAggregate, XPEvent
from selah.exceptions import ConflictError, StorageError
from selah.progression.store import ProgressionStore, storage_errors
from selah.progression.types import StreakSnapshot
from tests.conftest import USER_ID


def _snapshot(**kwargs) -> StreakSnapshot:
    return StreakSnapshot(current_streak=1, longest_streak=1, last_active_date=date(2026, 3, 10), total_days=1, **kwargs)


class TestStreakCAS:
    """put_streak_state only succeeds against the version it read."""

    @pytest.mark.asyncio
    async def test_missing_state_is_none(self, db_session):
        assert await ProgressionStore(db_session).get_streak_state(USER_ID) is None

    @pytest.mark.asyncio
    async def test_create_then_update(self, db_session):
        store = ProgressionStore(db_session)
        assert await store.put_streak_state(USER_ID, _snapshot()) is True

        stored = await store.get_streak_state(USER_ID)
        assert stored.version == 0
        assert await store.put_streak_state(USER_ID, stored.evolve(current_streak=2)) is True

        stored = await store.get_streak_state(USER_ID)
        assert stored.current_streak == 2
        assert stored.version == 1

    @pytest.mark.asyncio
    async def test_stale_version_loses(self, db_session):
        store = ProgressionStore(db_session)
        await store.put_streak_state(USER_ID, _snapshot())
        first = await store.get_streak_state(USER_ID)
        second = await store.get_streak_state(USER_ID)

        assert await store.put_streak_state(USER_ID, first.evolve(current_streak=2)) is True
        assert await store.put_streak_state(USER_ID, second.evolve(current_streak=2)) is False
        assert (await store.get_streak_state(USER_ID)).version == 1

    @pytest.mark.asyncio
    async def test_concurrent_create_loses(self, db_session):
        """A second first-row insert hits the primary key and reports a lost race."""
        store = ProgressionStore(db_session)
        assert await store.put_streak_state(USER_ID, _snapshot()) is True
        db_session.expunge_all()  # the other request never saw this row
        assert await store.put_streak_state(USER_ID, _snapshot()) is False
        assert (await store.get_streak_state(USER_ID)).current_streak == 1


class TestUserAchievementUniqueness:
    @pytest.mark.asyncio
    async def test_duplicate_insert_raises_conflict(self, seeded_db):
        store = ProgressionStore(seeded_db)
        first = (await store.list_achievement_defs())[0]

        await store.insert_user_achievement(USER_ID, first.id)
        with pytest.raises(ConflictError):
            await store.insert_user_achievement(USER_ID, first.id)

        assert await store.get_earned_achievement_ids(USER_ID) == {first.id}

    @pytest.mark.asyncio
    async def test_catalog_is_ordered(self, seeded_db):
        keys = [a.key for a in await ProgressionStore(seeded_db).list_achievement_defs()]
        assert keys[0] == "first_chapter"
        assert keys[-1] == "psalm_singer"
        assert len(keys) == 8


class TestStorageErrors:
    def test_sqlalchemy_errors_are_wrapped(self):
        with pytest.raises(StorageError) as exc_info:
            with storage_errors("get_streak_state", USER_ID):
                raise OperationalError("SELECT 1", {}, Exception("database is locked"))
        assert exc_info.value.context == {"operation": "get_streak_state", "user_id": USER_ID}
        assert isinstance(exc_info.value.__cause__, OperationalError)

    def test_other_errors_pass_through(self):
        with pytest.raises(KeyError):
            with storage_errors("get_streak_state"):
                raise KeyError("x")


class TestTableConstraints:
    """Row invariants hold even for writes that bypass the services."""

    @pytest.mark.asyncio
    async def test_zero_xp_event_rejected(self, db_session):
        db_session.add(XPEvent(user_id=USER_ID, event_type="chapter_read", xp_earned=0, context={}, created_at=datetime.now(UTC)))
        with pytest.raises(IntegrityError):
            await db_session.flush()
        await db_session.rollback()

    @pytest.mark.asyncio
    async def test_negative_total_xp_rejected(self, db_session):
        db_session.add(XPAggregate(user_id=USER_ID, total_xp=-1, current_level=1))
        with pytest.raises(IntegrityError):
            await db_session.flush()
        await db_session.rollback()

    @pytest.mark.asyncio
    async def test_grace_used_without_date_rejected(self, db_session):
        db_session.add(StreakState(user_id=USER_ID, grace_used=True, grace_last_used=None))
        with pytest.raises(IntegrityError):
            await db_session.flush()
        await db_session.rollback()

    @pytest.mark.asyncio
    async def test_grace_date_without_flag_rejected(self, db_session):
        db_session.add(StreakState(user_id=USER_ID, grace_used=False, grace_last_used=date(2026, 3, 9)))
        with pytest.raises(IntegrityError):
            await db_session.flush()
        await db_session.rollback()

    @pytest.mark.asyncio
    async def test_consistent_grace_accepted(self, db_session):
        db_session.add(StreakState(user_id=USER_ID, grace_used=True, grace_last_used=date(2026, 3, 9)))
        await db_session.commit()
        assert (await ProgressionStore(db_session).get_streak_state(USER_ID)).grace_used is True
