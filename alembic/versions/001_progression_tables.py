"""Progression tables.

Creates user_streaks, xp_events, user_xp, achievements and
user_achievements for the progression engine. Streak and XP aggregate
rows carry a version column for compare-and-swap updates.

Revision ID: 001_progression_tables
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_progression_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Streaks ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_streaks (
            user_id VARCHAR(64) PRIMARY KEY,
            current_streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            last_active_date DATE,
            total_days INTEGER NOT NULL DEFAULT 0,
            grace_used BOOLEAN NOT NULL DEFAULT false,
            grace_last_used DATE,
            prayer_current INTEGER NOT NULL DEFAULT 0,
            prayer_longest INTEGER NOT NULL DEFAULT 0,
            prayer_last_active DATE,
            version INTEGER NOT NULL DEFAULT 0,
            updated_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT user_streaks_grace_consistent CHECK (
                (grace_used AND grace_last_used IS NOT NULL)
                OR (NOT grace_used AND grace_last_used IS NULL)
            )
        )
    """)

    # --- XP Events (append-only ledger) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS xp_events (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            event_type VARCHAR(64) NOT NULL,
            xp_earned INTEGER NOT NULL
                CONSTRAINT xp_events_xp_earned_positive CHECK (xp_earned > 0),
            context JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_xp_events_user_id
        ON xp_events(user_id)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_xp_events_user_time
        ON xp_events(user_id, created_at DESC)
    """)

    # --- XP Aggregate ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_xp (
            user_id VARCHAR(64) PRIMARY KEY,
            total_xp BIGINT NOT NULL DEFAULT 0
                CONSTRAINT user_xp_total_xp_nonnegative CHECK (total_xp >= 0),
            current_level INTEGER NOT NULL DEFAULT 1,
            version INTEGER NOT NULL DEFAULT 0,
            updated_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # --- Achievement Catalog ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievements (
            id SERIAL PRIMARY KEY,
            key VARCHAR(64) UNIQUE NOT NULL,
            name VARCHAR(128) NOT NULL,
            description TEXT NOT NULL,
            xp_value INTEGER NOT NULL,
            icon VARCHAR(64),
            category VARCHAR(32) NOT NULL,
            tier_required VARCHAR(16) NOT NULL DEFAULT 'free',
            hidden BOOLEAN NOT NULL DEFAULT false,
            sort_order INTEGER NOT NULL DEFAULT 0
        )
    """)

    # --- User Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_achievements (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            achievement_id INTEGER NOT NULL REFERENCES achievements(id),
            earned_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT user_achievements_user_id_achievement_id_key
                UNIQUE (user_id, achievement_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_user_achievements_user_id
        ON user_achievements(user_id)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS user_achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS user_xp CASCADE")
    op.execute("DROP TABLE IF EXISTS xp_events CASCADE")
    op.execute("DROP TABLE IF EXISTS user_streaks CASCADE")
