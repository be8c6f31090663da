"""
tests/test_status.py — Derived Status Boundaries
=================================================

Pure tests of challenge, event and presence status (no database).
"""

from __future__ import annotations

from datetime import timedelta
from types import SimpleNamespace

import pytest
from conftest import NOW

from greenguardian.engine.status import (
    ChallengeStatus,
    ChallengeTab,
    EventStatus,
    PresenceStatus,
    challenge_status,
    challenge_tab,
    event_status,
    is_challenge_live,
    presence_status,
)

T = NOW
D = timedelta(days=1)


# ===========================================================================
# Challenge window
# ===========================================================================
class TestChallengeStatus:
    @pytest.mark.parametrize(
        ("start", "end", "expected"),
        [
            (T - 10 * D, T + 10 * D, ChallengeStatus.ACTIVE),
            (T + 1 * D, T + 10 * D, ChallengeStatus.UPCOMING),
            (T - 10 * D, T - 1 * D, ChallengeStatus.COMPLETED),
            (T, T + 10 * D, ChallengeStatus.ACTIVE),       # start edge inclusive
            (T - 10 * D, T, ChallengeStatus.ACTIVE),       # end edge inclusive
            (T + timedelta(seconds=1), T + D, ChallengeStatus.UPCOMING),
            (T - D, T - timedelta(seconds=1), ChallengeStatus.COMPLETED),
        ],
    )
    def test_window_boundaries(self, start, end, expected):
        assert challenge_status(T, start, end) is expected

    def test_missing_start_means_started(self):
        assert challenge_status(T, None, T + D) is ChallengeStatus.ACTIVE

    def test_missing_end_means_open_ended(self):
        assert challenge_status(T, T - D, None) is ChallengeStatus.ACTIVE

    def test_no_dates_is_active(self):
        assert challenge_status(T, None, None) is ChallengeStatus.ACTIVE

    def test_naive_datetimes_treated_as_utc(self):
        naive_start = (T - D).replace(tzinfo=None)
        naive_end = (T + D).replace(tzinfo=None)
        assert challenge_status(T, naive_start, naive_end) is ChallengeStatus.ACTIVE


class TestChallengeTab:
    def test_recently_ended_is_completed(self):
        assert challenge_tab(T, T - 20 * D, T - 5 * D) is ChallengeTab.COMPLETED

    def test_old_ended_is_archived(self):
        assert challenge_tab(T, T - 90 * D, T - 31 * D) is ChallengeTab.ARCHIVED

    def test_recent_window_is_configurable(self):
        assert challenge_tab(T, T - 20 * D, T - 5 * D, recent_days=3) is ChallengeTab.ARCHIVED

    def test_active_and_upcoming_pass_through(self):
        assert challenge_tab(T, T - D, T + D) is ChallengeTab.ACTIVE
        assert challenge_tab(T, T + D, T + 2 * D) is ChallengeTab.UPCOMING


class TestIsChallengeLive:
    def _challenge(self, **kw):
        defaults = {"is_active": True, "start_date": T - D, "end_date": T + D}
        defaults.update(kw)
        return SimpleNamespace(**defaults)

    def test_published_and_in_window(self):
        assert is_challenge_live(self._challenge(), T)

    def test_unpublished_is_not_live(self):
        assert not is_challenge_live(self._challenge(is_active=False), T)

    def test_published_but_ended_is_not_live(self):
        assert not is_challenge_live(self._challenge(end_date=T - timedelta(hours=1)), T)

    def test_published_but_upcoming_is_not_live(self):
        assert not is_challenge_live(self._challenge(start_date=T + timedelta(hours=1)), T)


# ===========================================================================
# Events
# ===========================================================================
class TestEventStatus:
    def test_future_is_upcoming(self):
        assert event_status(T, T + D) is EventStatus.UPCOMING

    def test_past_is_past(self):
        assert event_status(T, T - D) is EventStatus.PAST

    def test_exact_instant_is_past(self):
        assert event_status(T, T) is EventStatus.PAST


# ===========================================================================
# Presence
# ===========================================================================
class TestPresenceStatus:
    @pytest.mark.parametrize(
        ("age_seconds", "expected"),
        [
            (0, PresenceStatus.ONLINE),
            (30, PresenceStatus.ONLINE),
            (59, PresenceStatus.ONLINE),
            (60, PresenceStatus.AWAY),
            (120, PresenceStatus.AWAY),
            (299, PresenceStatus.AWAY),
            (300, PresenceStatus.OFFLINE),
            (600, PresenceStatus.OFFLINE),
        ],
    )
    def test_age_boundaries(self, age_seconds, expected):
        last_seen = T - timedelta(seconds=age_seconds)
        assert presence_status(T, last_seen) is expected

    def test_explicit_offline_wins(self):
        assert presence_status(T, T, explicit_offline=True) is PresenceStatus.OFFLINE

    def test_missing_last_seen_is_offline(self):
        assert presence_status(T, None) is PresenceStatus.OFFLINE

    def test_future_last_seen_counts_online(self):
        assert presence_status(T, T + timedelta(seconds=5)) is PresenceStatus.ONLINE

    def test_custom_thresholds(self):
        last_seen = T - timedelta(seconds=20)
        assert presence_status(
            T, last_seen, online_seconds=10, away_seconds=30
        ) is PresenceStatus.AWAY
