"""Achievement catalog seed — the single authoritative source of definitions.

Clients read the catalog from GET /api/v1/progression/achievements; this list
is only the versioned seed artifact for the achievements table.
"""

from __future__ import annotations

import logging

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from selah.db.models import AchievementDefinition

logger = logging.getLogger(__name__)

CATALOG_VERSION = 1

ACHIEVEMENT_SEED_DATA: list[dict] = [
    {
        "key": "first_chapter",
        "name": "First Chapter",
        "description": "Read your first Bible chapter.",
        "xp_value": 20,
        "icon": "book-open",
        "category": "reading",
        "tier_required": "free",
        "hidden": False,
        "sort_order": 10,
    },
    {
        "key": "week_in_the_word",
        "name": "Week in the Word",
        "description": "Read every day for 7 days in a row.",
        "xp_value": 75,
        "icon": "flame",
        "category": "streaks",
        "tier_required": "free",
        "hidden": False,
        "sort_order": 20,
    },
    {
        "key": "month_of_faithfulness",
        "name": "Month of Faithfulness",
        "description": "Maintain a 30-day reading streak.",
        "xp_value": 250,
        "icon": "medal",
        "category": "streaks",
        "tier_required": "free",
        "hidden": False,
        "sort_order": 30,
    },
    {
        "key": "tsk_traveler",
        "name": "TSK Traveler",
        "description": "Follow a cross-reference trail.",
        "xp_value": 30,
        "icon": "git-fork",
        "category": "engagement",
        "tier_required": "free",
        "hidden": False,
        "sort_order": 40,
    },
    {
        "key": "memory_keeper",
        "name": "Memory Keeper",
        "description": "Master your first memory verse.",
        "xp_value": 60,
        "icon": "star",
        "category": "memory",
        "tier_required": "free",
        "hidden": False,
        "sort_order": 50,
    },
    {
        "key": "first_answer",
        "name": "First Answer",
        "description": "Submit your first OIA journal answer.",
        "xp_value": 15,
        "icon": "pencil",
        "category": "engagement",
        "tier_required": "free",
        "hidden": False,
        "sort_order": 60,
    },
    {
        "key": "gospel_reader",
        "name": "Gospel Reader",
        "description": "Complete all four Gospels.",
        "xp_value": 300,
        "icon": "cross",
        "category": "reading",
        "tier_required": "free",
        "hidden": False,
        "sort_order": 70,
    },
    {
        "key": "psalm_singer",
        "name": "Psalm Singer",
        "description": "Read all 150 Psalms.",
        "xp_value": 400,
        "icon": "music-notes",
        "category": "reading",
        "tier_required": "free",
        "hidden": False,
        "sort_order": 80,
    },
]


async def seed_achievements(db: AsyncSession) -> int:
    """Upsert all achievement definitions. Returns number of definitions seeded."""
    dialect = db.get_bind().dialect.name
    insert = sqlite_insert if dialect == "sqlite" else pg_insert

    seeded = 0
    for data in ACHIEVEMENT_SEED_DATA:
        stmt = insert(AchievementDefinition).values(**data)
        stmt = stmt.on_conflict_do_update(
            index_elements=["key"],
            set_={
                "name": stmt.excluded.name,
                "description": stmt.excluded.description,
                "xp_value": stmt.excluded.xp_value,
                "icon": stmt.excluded.icon,
                "category": stmt.excluded.category,
                "tier_required": stmt.excluded.tier_required,
                "hidden": stmt.excluded.hidden,
                "sort_order": stmt.excluded.sort_order,
            },
        )
        await db.execute(stmt)
        seeded += 1

    await db.commit()
    logger.info("Seeded %d achievement definitions (catalog v%d)", seeded, CATALOG_VERSION)
    return seeded
