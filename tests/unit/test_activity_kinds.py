"""Activity and XP event kinds — every kind resolves to an amount."""

import pytest

from selah.exceptions import ValidationError
from selah.progression.activity import (
    ACTIVITY_TRIGGERS,
    STREAK_MILESTONES,
    ActivityType,
    TriggerType,
    XPEventKind,
    base_xp,
    parse_activity_type,
    resolve_xp_amount,
)


class TestBaseXP:
    """The XP table is closed over XPEventKind."""

    @pytest.mark.parametrize("kind", list(XPEventKind))
    def test_every_kind_has_positive_amount(self, kind):
        assert base_xp(kind) > 0

    @pytest.mark.parametrize(
        "event_type,expected",
        [
            ("chapter_read", 10),
            ("journal_answer", 5),
            ("streak_day", 5),
            ("streak_7", 50),
            ("streak_30", 200),
            ("highlight_added", 2),
            ("memory_verse_reviewed", 5),
            ("memory_verse_mastered", 50),
            ("prayer_entry", 10),
            ("chapter_audio_complete", 8),
        ],
    )
    def test_amounts(self, event_type, expected):
        assert resolve_xp_amount(event_type, None) == expected

    def test_every_activity_is_an_xp_event(self):
        """Each activity's own action earns XP under the same name."""
        for activity in ActivityType:
            assert XPEventKind(activity.value)


class TestResolveAmount:
    def test_explicit_amount_wins(self):
        assert resolve_xp_amount("chapter_read", 3) == 3

    def test_explicit_zero_is_kept(self):
        assert resolve_xp_amount("chapter_read", 0) == 0

    def test_unknown_event_raises(self):
        """Unknown keys fail loudly instead of awarding 0 XP."""
        with pytest.raises(ValidationError) as exc_info:
            resolve_xp_amount("chapter_skimmed", None)
        assert exc_info.value.context["event_type"] == "chapter_skimmed"

    def test_achievement_event_requires_amount(self):
        with pytest.raises(ValidationError):
            resolve_xp_amount("achievement_first_chapter", None)

    def test_achievement_event_with_amount(self):
        assert resolve_xp_amount("achievement_first_chapter", 20) == 20


class TestParseActivityType:
    def test_accepts_string(self):
        assert parse_activity_type("prayer_entry") is ActivityType.PRAYER_ENTRY

    def test_accepts_enum(self):
        assert parse_activity_type(ActivityType.CHAPTER_READ) is ActivityType.CHAPTER_READ

    def test_rejects_unknown(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_activity_type("verse_tweeted")
        assert exc_info.value.code == "validation_error"
        assert exc_info.value.to_dict()["activity_type"] == "verse_tweeted"


class TestTables:
    def test_milestones(self):
        assert STREAK_MILESTONES == {7: XPEventKind.STREAK_7, 30: XPEventKind.STREAK_30}

    def test_activity_triggers(self):
        assert ACTIVITY_TRIGGERS[ActivityType.CHAPTER_READ] is TriggerType.CHAPTER_READ
        assert ActivityType.PRAYER_ENTRY not in ACTIVITY_TRIGGERS
