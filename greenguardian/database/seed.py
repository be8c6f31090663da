"""
greenguardian.database.seed — Default Settings Seeder
======================================================

Baseline tuning values seeded on first startup (rewards, presence
thresholds, listing windows).

Idempotent — only inserts keys that don't already exist.  Values edited
later are never overwritten.
"""

from __future__ import annotations

import json
import logging

from sqlalchemy import Engine

from greenguardian.database.engine import get_session
from greenguardian.database.models import Setting

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Default settings catalogue
# ---------------------------------------------------------------------------
DEFAULT_SETTINGS: dict[str, tuple[object, str, str]] = {
    "rewards.volunteer_event_points": (
        50, "rewards", "Points per related challenge when joining a volunteer event",
    ),
    "rewards.challenge_join_points": (0, "rewards", "Points for joining a challenge"),
    "rewards.swap_completed_points": (
        25, "rewards", "Points to each party of a completed swap",
    ),
    "presence.heartbeat_seconds": (30, "presence", "Seconds between presence heartbeats"),
    "presence.online_seconds": (
        60, "presence", "A user seen more recently than this is online",
    ),
    "presence.away_seconds": (
        300, "presence", "A user seen more recently than this is away",
    ),
    "presence.max_listed": (20, "presence", "Users shown in the presence list"),
    "challenges.recent_completed_days": (
        30, "challenges", "Ended challenges younger than this are 'completed', older 'archived'",
    ),
    "announcements.default_expiry_days": (
        7, "announcements", "Days before a global announcement expires",
    ),
    "notifications.max_listed": (100, "notifications", "Notifications returned per request"),
}
"""Each entry maps ``key`` → ``(default_value, category, description)``."""


# ---------------------------------------------------------------------------
# Seeder
# ---------------------------------------------------------------------------
def seed_default_settings(engine: Engine) -> None:
    """Insert default settings that don't yet exist."""
    inserted = 0
    with get_session(engine) as session:
        for key, (value, category, desc) in DEFAULT_SETTINGS.items():
            if session.get(Setting, key) is not None:
                continue
            session.add(Setting(
                key=key,
                value_json=json.dumps(value),
                category=category,
                description=desc,
            ))
            inserted += 1

    if inserted:
        logger.info("Seeded %d default settings.", inserted)
