"""Closed sets of activity, trigger and XP event kinds.

XP amounts are resolved with an exhaustive match over XPEventKind, so adding
a kind without an amount fails loudly instead of silently awarding 0 XP.
"""

from __future__ import annotations

from enum import Enum

from selah.exceptions import ValidationError

ACHIEVEMENT_EVENT_PREFIX = "achievement_"


class ActivityType(str, Enum):
    """User actions that count towards the daily streak."""

    CHAPTER_READ = "chapter_read"
    JOURNAL_ANSWER = "journal_answer"
    PRAYER_ENTRY = "prayer_entry"
    HIGHLIGHT_ADDED = "highlight_added"
    MEMORY_VERSE_REVIEWED = "memory_verse_reviewed"
    MEMORY_VERSE_MASTERED = "memory_verse_mastered"


class TriggerType(str, Enum):
    """State changes that achievement predicates can react to."""

    CHAPTER_READ = "chapter_read"
    STREAK = "streak"
    JOURNAL_ANSWER = "journal_answer"
    MEMORY_VERSE_MASTERED = "memory_verse_mastered"
    TRAIL_FOLLOWED = "trail_followed"
    BOOK_COMPLETED = "book_completed"


class XPEventKind(str, Enum):
    """Every event type the ledger accepts without an explicit amount."""

    CHAPTER_READ = "chapter_read"
    JOURNAL_ANSWER = "journal_answer"
    STREAK_DAY = "streak_day"
    STREAK_7 = "streak_7"
    STREAK_30 = "streak_30"
    HIGHLIGHT_ADDED = "highlight_added"
    MEMORY_VERSE_REVIEWED = "memory_verse_reviewed"
    MEMORY_VERSE_MASTERED = "memory_verse_mastered"
    PRAYER_ENTRY = "prayer_entry"
    CHAPTER_AUDIO_COMPLETE = "chapter_audio_complete"


def base_xp(kind: XPEventKind) -> int:
    """XP awarded for an event kind."""
    match kind:
        case XPEventKind.CHAPTER_READ:
            return 10
        case XPEventKind.JOURNAL_ANSWER:
            return 5  # callers cap journal XP per session
        case XPEventKind.STREAK_DAY:
            return 5
        case XPEventKind.STREAK_7:
            return 50
        case XPEventKind.STREAK_30:
            return 200
        case XPEventKind.HIGHLIGHT_ADDED:
            return 2
        case XPEventKind.MEMORY_VERSE_REVIEWED:
            return 5
        case XPEventKind.MEMORY_VERSE_MASTERED:
            return 50
        case XPEventKind.PRAYER_ENTRY:
            return 10
        case XPEventKind.CHAPTER_AUDIO_COMPLETE:
            return 8
    msg = f"No XP amount defined for {kind!r}"
    raise ValidationError(msg, event_type=str(kind))


def parse_activity_type(value: str | ActivityType) -> ActivityType:
    """Validate a raw activity type string."""
    try:
        return ActivityType(value)
    except ValueError:
        msg = f"Unknown activity type: {value!r}"
        raise ValidationError(msg, activity_type=str(value)) from None


def resolve_xp_amount(event_type: str, amount: int | None) -> int:
    """Resolve the XP for an event, honouring an explicit override."""
    if amount is not None:
        return amount
    if event_type.startswith(ACHIEVEMENT_EVENT_PREFIX):
        msg = f"Achievement event {event_type!r} requires an explicit amount"
        raise ValidationError(msg, event_type=event_type)
    try:
        kind = XPEventKind(event_type)
    except ValueError:
        msg = f"Unknown XP event type: {event_type!r}"
        raise ValidationError(msg, event_type=event_type) from None
    return base_xp(kind)


# Streak milestones that pay a one-time bonus when current_streak hits them exactly.
STREAK_MILESTONES: dict[int, XPEventKind] = {
    7: XPEventKind.STREAK_7,
    30: XPEventKind.STREAK_30,
}

# Achievement trigger fired for an activity's own action, if any.
ACTIVITY_TRIGGERS: dict[ActivityType, TriggerType] = {
    ActivityType.CHAPTER_READ: TriggerType.CHAPTER_READ,
    ActivityType.JOURNAL_ANSWER: TriggerType.JOURNAL_ANSWER,
    ActivityType.MEMORY_VERSE_MASTERED: TriggerType.MEMORY_VERSE_MASTERED,
}
