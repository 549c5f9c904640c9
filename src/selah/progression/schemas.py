"""Pydantic models for progression triggers and API endpoints."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator

from selah.progression.activity import ActivityType, TriggerType


# --- Triggers ---


class AchievementTrigger(BaseModel):
    """Typed payload describing a state change that may unlock achievements."""

    type: TriggerType
    streak: int | None = Field(default=None, ge=0)
    book: str | None = None
    chapter: int | None = Field(default=None, ge=1)
    extra: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _streak_requires_count(self) -> AchievementTrigger:
        if self.type is TriggerType.STREAK and self.streak is None:
            msg = "streak triggers must carry a streak value"
            raise ValueError(msg)
        if self.type is TriggerType.BOOK_COMPLETED and not self.book:
            msg = "book_completed triggers must name the book"
            raise ValueError(msg)
        return self


# --- Requests ---


class ActivityRequest(BaseModel):
    activity_type: ActivityType


class EvaluateRequest(BaseModel):
    trigger: AchievementTrigger


# --- Streak ---


class StreakResponse(BaseModel):
    current_streak: int
    longest_streak: int
    last_active_date: date | None = None
    total_days: int
    grace_used: bool
    grace_last_used: date | None = None
    prayer_current: int
    prayer_longest: int
    prayer_last_active: date | None = None


# --- XP ---


class XPResponse(BaseModel):
    total_xp: int
    level: int
    title: str
    min_xp: int
    next_level_xp: int | None = None


class XPHistoryEntry(BaseModel):
    event_type: str
    xp_earned: int
    context: dict = {}
    created_at: datetime | None = None


class XPHistoryResponse(BaseModel):
    entries: list[XPHistoryEntry]
    page: int
    per_page: int


# --- Activity ---


class ActivityResponse(BaseModel):
    streak: StreakResponse
    advanced: bool
    xp_delta: int
    leveled_up: bool
    unlocked: list[str] = []


class EvaluateResponse(BaseModel):
    unlocked: list[str]


# --- Achievements ---


class AchievementDefinitionResponse(BaseModel):
    key: str
    name: str
    description: str
    xp_value: int
    icon: str | None = None
    category: str
    tier_required: str
    hidden: bool
    sort_order: int


class AllAchievementsResponse(BaseModel):
    achievements: list[AchievementDefinitionResponse]


class UserAchievementResponse(AchievementDefinitionResponse):
    earned: bool
    earned_at: datetime | None = None


class UserAchievementsResponse(BaseModel):
    achievements: list[UserAchievementResponse]
    total_available: int
    total_earned: int


# --- Summary ---


class ProgressSummaryResponse(BaseModel):
    streak: StreakResponse | None = None
    xp: XPResponse


# --- Levels ---


class LevelEntry(BaseModel):
    level: int
    title: str
    min_xp: int


class AllLevelsResponse(BaseModel):
    levels: list[LevelEntry]
