"""Achievement evaluation with storage-enforced at-most-once unlocks."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from typing import Any

import pydantic
import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from selah.db.models import AchievementDefinition
from selah.exceptions import ConflictError, ValidationError
from selah.progression.activity import ACHIEVEMENT_EVENT_PREFIX, TriggerType
from selah.progression.schemas import AchievementTrigger
from selah.progression.store import ProgressionStore, storage_errors
from selah.progression.types import AwardResult
from selah.progression.xp_service import award_xp

logger = structlog.get_logger()

GOSPELS = frozenset({"matthew", "mark", "luke", "john"})


class AchievementKey(str, Enum):
    """Catalog keys that have an unlock predicate."""

    FIRST_CHAPTER = "first_chapter"
    WEEK_IN_THE_WORD = "week_in_the_word"
    MONTH_OF_FAITHFULNESS = "month_of_faithfulness"
    TSK_TRAVELER = "tsk_traveler"
    MEMORY_KEEPER = "memory_keeper"
    FIRST_ANSWER = "first_answer"
    GOSPEL_READER = "gospel_reader"
    PSALM_SINGER = "psalm_singer"


def parse_trigger(trigger: AchievementTrigger | Mapping[str, Any]) -> AchievementTrigger:
    """Validate a raw trigger payload."""
    if isinstance(trigger, AchievementTrigger):
        return trigger
    try:
        return AchievementTrigger.model_validate(trigger)
    except pydantic.ValidationError as exc:
        msg = f"Malformed achievement trigger: {exc.error_count()} error(s)"
        errors = exc.errors(include_url=False, include_context=False, include_input=False)
        raise ValidationError(msg, errors=errors) from None


def _completed_books(trigger: AchievementTrigger) -> set[str]:
    books = {str(b).casefold() for b in trigger.extra.get("completed_books", [])}
    if trigger.book:
        books.add(trigger.book.casefold())
    return books


def predicate_satisfied(key: AchievementKey, trigger: AchievementTrigger) -> bool:
    """Pure unlock predicate for one catalog entry."""
    streak = trigger.streak or 0
    match key:
        case AchievementKey.FIRST_CHAPTER:
            return trigger.type is TriggerType.CHAPTER_READ
        case AchievementKey.WEEK_IN_THE_WORD:
            return trigger.type is TriggerType.STREAK and streak >= 7
        case AchievementKey.MONTH_OF_FAITHFULNESS:
            return trigger.type is TriggerType.STREAK and streak >= 30
        case AchievementKey.TSK_TRAVELER:
            return trigger.type is TriggerType.TRAIL_FOLLOWED
        case AchievementKey.MEMORY_KEEPER:
            return trigger.type is TriggerType.MEMORY_VERSE_MASTERED
        case AchievementKey.FIRST_ANSWER:
            return trigger.type is TriggerType.JOURNAL_ANSWER
        case AchievementKey.GOSPEL_READER:
            # Every Gospel must be complete, not just the one that triggered
            return trigger.type is TriggerType.BOOK_COMPLETED and GOSPELS <= _completed_books(trigger)
        case AchievementKey.PSALM_SINGER:
            return (
                trigger.type is TriggerType.BOOK_COMPLETED
                and (trigger.book or "").casefold() == "psalms"
            )
    return False


class AchievementEvaluator:
    """Evaluates triggers against the catalog for a single request.

    The catalog is cached on the instance only, never across requests.
    XP awards made for unlocks are collected in self.awards.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.store = ProgressionStore(db)
        self.awards: list[AwardResult] = []
        self._catalog: list[AchievementDefinition] | None = None

    async def _load_catalog(self) -> list[AchievementDefinition]:
        if self._catalog is None:
            self._catalog = await self.store.list_achievement_defs()
        return self._catalog

    async def evaluate(
        self,
        user_id: str,
        trigger: AchievementTrigger | Mapping[str, Any],
    ) -> list[str]:
        """Unlock every unearned achievement whose predicate holds.

        Returns the newly unlocked keys. Flushes but does not commit.
        """
        trigger = parse_trigger(trigger)
        catalog = await self._load_catalog()
        earned = await self.store.get_earned_achievement_ids(user_id)
        unlocked: list[str] = []

        for ach in catalog:
            if ach.id in earned:
                continue
            try:
                key = AchievementKey(ach.key)
            except ValueError:
                continue  # catalog entry without a predicate never unlocks
            if not predicate_satisfied(key, trigger):
                continue

            try:
                await self.store.insert_user_achievement(user_id, ach.id)
            except ConflictError:
                # A concurrent request already unlocked it and paid the XP
                logger.info("achievement_conflict_ignored", user_id=user_id, key=ach.key)
                continue

            award = await award_xp(
                self.db,
                user_id,
                f"{ACHIEVEMENT_EVENT_PREFIX}{ach.key}",
                ach.xp_value,
                {"achievement": ach.key},
            )
            self.awards.append(award)
            unlocked.append(ach.key)
            logger.info(
                "achievement_unlocked",
                user_id=user_id,
                key=ach.key,
                xp=ach.xp_value,
                trigger=trigger.type.value,
            )

        return unlocked


async def evaluate_achievements(
    db: AsyncSession,
    user_id: str,
    trigger: AchievementTrigger | Mapping[str, Any],
) -> list[str]:
    """Evaluate a trigger and commit any unlocks. Safe to replay.

    Database failures, commit included, surface as StorageError.
    """
    try:
        unlocked = await AchievementEvaluator(db).evaluate(user_id, trigger)
        with storage_errors("commit_achievements", user_id):
            await db.commit()
    except Exception:
        with storage_errors("rollback_achievements", user_id):
            await db.rollback()
        raise
    return unlocked


async def list_user_achievements(db: AsyncSession, user_id: str) -> list[dict]:
    """Catalog entries with earned flags. Hidden entries appear only once earned."""
    store = ProgressionStore(db)
    catalog = await store.list_achievement_defs()
    earned_at: dict[int, datetime] = {
        ua.achievement_id: ua.earned_at for ua in await store.list_user_achievements(user_id)
    }

    items = []
    for ach in catalog:
        earned = ach.id in earned_at
        if ach.hidden and not earned:
            continue
        items.append({
            "key": ach.key,
            "name": ach.name,
            "description": ach.description,
            "xp_value": ach.xp_value,
            "icon": ach.icon,
            "category": ach.category,
            "tier_required": ach.tier_required,
            "hidden": ach.hidden,
            "sort_order": ach.sort_order,
            "earned": earned,
            "earned_at": earned_at.get(ach.id),
        })
    return items
