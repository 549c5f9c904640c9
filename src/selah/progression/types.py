"""Value objects passed between the progression services."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Generic, Literal, TypeVar, Union

from selah.exceptions import ProgressionError

T = TypeVar("T")


@dataclass(frozen=True)
class StreakSnapshot:
    """Detached copy of a user_streaks row.

    version is the optimistic-lock counter read from the store; None means
    no row exists yet.
    """

    current_streak: int = 0
    longest_streak: int = 0
    last_active_date: date | None = None
    total_days: int = 0
    grace_used: bool = False
    grace_last_used: date | None = None
    prayer_current: int = 0
    prayer_longest: int = 0
    prayer_last_active: date | None = None
    version: int | None = None

    def evolve(self, **changes: object) -> StreakSnapshot:
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "last_active_date": self.last_active_date,
            "total_days": self.total_days,
            "grace_used": self.grace_used,
            "grace_last_used": self.grace_last_used,
            "prayer_current": self.prayer_current,
            "prayer_longest": self.prayer_longest,
            "prayer_last_active": self.prayer_last_active,
        }


@dataclass(frozen=True)
class XPTotals:
    """Detached copy of a user_xp row."""

    total_xp: int = 0
    current_level: int = 1
    version: int | None = None


@dataclass(frozen=True)
class AwardResult:
    """Outcome of a single ledger award."""

    xp_earned: int
    total_xp: int
    level: dict
    leveled_up: bool


@dataclass
class ActivityOutcome:
    """What a recorded activity changed, for widgets and toasts."""

    streak_state: StreakSnapshot
    xp_delta: int = 0
    leveled_up: bool = False
    unlocked: list[str] = field(default_factory=list)
    advanced: bool = False

    def add_award(self, award: AwardResult) -> None:
        self.xp_delta += award.xp_earned
        self.leveled_up = self.leveled_up or award.leveled_up


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T
    ok: Literal[True] = True


@dataclass(frozen=True)
class Failure:
    error: ProgressionError
    ok: Literal[False] = False


Result = Union[Success[T], Failure]
