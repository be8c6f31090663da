"""
greenguardian.engine.status — Derived status functions
=======================================================

Challenge, event and presence status are never stored.  Every caller
(listing tabs, activity feed, reward attribution, presence list) derives
them through the pure functions in this module so boundary handling is
identical everywhere.

Boundaries
----------
* Challenge: ``upcoming`` while ``now < start``; ``completed`` once
  ``now > end``; ``active`` otherwise, so both window edges are inclusive.
  A missing start means already started, a missing end means open-ended.
* Presence: ``online`` while age < online threshold (60 s), ``away`` while
  age < away threshold (300 s), ``offline`` otherwise.  An age of exactly
  60 s is away, exactly 300 s is offline.
"""

from __future__ import annotations

import enum
from datetime import UTC, datetime, timedelta

DEFAULT_ONLINE_SECONDS = 60
DEFAULT_AWAY_SECONDS = 300
DEFAULT_RECENT_COMPLETED_DAYS = 30


class ChallengeStatus(enum.StrEnum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"


class ChallengeTab(enum.StrEnum):
    """Listing buckets; ``archived`` splits old completions off ``completed``."""
    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class EventStatus(enum.StrEnum):
    UPCOMING = "upcoming"
    PAST = "past"


class PresenceStatus(enum.StrEnum):
    ONLINE = "online"
    AWAY = "away"
    OFFLINE = "offline"


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes (SQLite round-trips) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------
def challenge_status(
    now: datetime, start: datetime | None, end: datetime | None
) -> ChallengeStatus:
    """Status of a challenge window at *now*."""
    now = as_utc(now)
    start = as_utc(start)
    end = as_utc(end)
    if start is not None and now < start:
        return ChallengeStatus.UPCOMING
    if end is not None and now > end:
        return ChallengeStatus.COMPLETED
    return ChallengeStatus.ACTIVE


def challenge_tab(
    now: datetime,
    start: datetime | None,
    end: datetime | None,
    *,
    recent_days: int = DEFAULT_RECENT_COMPLETED_DAYS,
) -> ChallengeTab:
    """Listing tab for a challenge.  Completed challenges whose end lies
    more than *recent_days* in the past are archived."""
    status = challenge_status(now, start, end)
    if status is not ChallengeStatus.COMPLETED:
        return ChallengeTab(status.value)
    if as_utc(end) < as_utc(now) - timedelta(days=recent_days):
        return ChallengeTab.ARCHIVED
    return ChallengeTab.COMPLETED


def is_challenge_live(challenge, now: datetime) -> bool:
    """Published (``is_active`` flag) and inside its window."""
    return bool(challenge.is_active) and challenge_status(
        now, challenge.start_date, challenge.end_date
    ) is ChallengeStatus.ACTIVE


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------
def event_status(now: datetime, date: datetime) -> EventStatus:
    return EventStatus.UPCOMING if as_utc(date) > as_utc(now) else EventStatus.PAST


# ---------------------------------------------------------------------------
# Presence
# ---------------------------------------------------------------------------
def presence_status(
    now: datetime,
    last_seen: datetime | None,
    *,
    explicit_offline: bool = False,
    online_seconds: int = DEFAULT_ONLINE_SECONDS,
    away_seconds: int = DEFAULT_AWAY_SECONDS,
) -> PresenceStatus:
    """Classify a presence record relative to *now*.

    An explicit offline flag (written on teardown) wins over a recent
    ``last_seen``.  Clock skew can make *now* earlier than *last_seen*;
    such records count as online.
    """
    if explicit_offline or last_seen is None:
        return PresenceStatus.OFFLINE
    age = (as_utc(now) - as_utc(last_seen)).total_seconds()
    if age < online_seconds:
        return PresenceStatus.ONLINE
    if age < away_seconds:
        return PresenceStatus.AWAY
    return PresenceStatus.OFFLINE
