"""Selah progression engine: streaks, XP ledger and achievements."""
