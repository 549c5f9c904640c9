"""Level thresholds and computation.

These values MUST match the client level badge and profile screens.
"""

from __future__ import annotations

LEVEL_THRESHOLDS: list[dict] = [
    {"level": 1, "title": "Seeker", "min_xp": 0},
    {"level": 2, "title": "Reader", "min_xp": 100},
    {"level": 3, "title": "Student", "min_xp": 300},
    {"level": 4, "title": "Disciple", "min_xp": 600},
    {"level": 5, "title": "Faithful", "min_xp": 1000},
    {"level": 6, "title": "Scholar", "min_xp": 2000},
    {"level": 7, "title": "Sage", "min_xp": 4000},
    {"level": 8, "title": "Witness", "min_xp": 8000},
]


def compute_level(total_xp: int) -> dict:
    """Compute level info from total XP.

    The last threshold whose min_xp is reached wins, so level is
    non-decreasing in total_xp. next_level_xp is None at max level.
    """
    index = 0
    for i, threshold in enumerate(LEVEL_THRESHOLDS):
        if total_xp >= threshold["min_xp"]:
            index = i

    current = LEVEL_THRESHOLDS[index]
    next_level = LEVEL_THRESHOLDS[index + 1] if index + 1 < len(LEVEL_THRESHOLDS) else None

    return {
        "level": current["level"],
        "title": current["title"],
        "min_xp": current["min_xp"],
        "next_level_xp": next_level["min_xp"] if next_level else None,
    }
