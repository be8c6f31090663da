"""
tests/test_crosslink.py — Challenge ↔ Event Resolver Unit Tests
================================================================
"""

from __future__ import annotations

from datetime import timedelta
from types import SimpleNamespace

from conftest import NOW

from greenguardian.engine.crosslink import (
    categories_for_event_type,
    related_challenges,
    related_events,
    rewardable_challenges,
)

D = timedelta(days=1)


def _challenge(cid, category, *, participants=(), is_active=True,
               start=NOW - D, end=NOW + D):
    return SimpleNamespace(
        id=cid, category=category, participant_ids=set(participants),
        is_active=is_active, start_date=start, end_date=end,
    )


def _event(eid, type_):
    return SimpleNamespace(id=eid, type=type_)


class TestCategoryMapping:
    def test_default_cleanup_mapping(self):
        assert categories_for_event_type("cleanup") == ("recycling", "plastic-reduction")

    def test_unknown_type_maps_to_nothing(self):
        assert categories_for_event_type("concert") == ()

    def test_custom_mapping(self):
        assert categories_for_event_type("cleanup", {"cleanup": ("x",)}) == ("x",)


class TestRelatedEvents:
    def test_events_matching_challenge_category(self):
        events = [_event(1, "cleanup"), _event(2, "workshop"), _event(3, "tree-planting")]
        got = related_events(_challenge(10, "recycling"), events)
        assert [e.id for e in got] == [1]

    def test_shared_category_matches_two_types(self):
        events = [_event(1, "workshop"), _event(2, "community-service")]
        got = related_events(_challenge(10, "community-engagement"), events)
        assert [e.id for e in got] == [1, 2]


class TestRelatedChallenges:
    def test_inactive_challenges_excluded(self):
        challenges = [
            _challenge(1, "recycling"),
            _challenge(2, "plastic-reduction", is_active=False),
            _challenge(3, "energy-saving"),
        ]
        got = related_challenges(_event(9, "cleanup"), challenges)
        assert [c.id for c in got] == [1]


class TestRewardableChallenges:
    def test_one_matching_one_not(self):
        """Cleanup event; a joined recycling challenge and a joined
        energy challenge.  Exactly one is rewardable."""
        challenges = [
            _challenge(1, "recycling", participants={"u1"}),
            _challenge(2, "energy-saving", participants={"u1"}),
        ]
        got = rewardable_challenges(_event(9, "cleanup"), challenges, "u1", NOW)
        assert [c.id for c in got] == [1]

    def test_not_a_participant(self):
        challenges = [_challenge(1, "recycling", participants={"u2"})]
        assert rewardable_challenges(_event(9, "cleanup"), challenges, "u1", NOW) == []

    def test_published_but_ended_is_not_rewarded(self):
        challenges = [
            _challenge(1, "recycling", participants={"u1"}, end=NOW - timedelta(hours=1)),
        ]
        assert rewardable_challenges(_event(9, "cleanup"), challenges, "u1", NOW) == []

    def test_upcoming_is_not_rewarded(self):
        challenges = [
            _challenge(1, "recycling", participants={"u1"}, start=NOW + timedelta(hours=1)),
        ]
        assert rewardable_challenges(_event(9, "cleanup"), challenges, "u1", NOW) == []

    def test_both_categories_rewarded(self):
        challenges = [
            _challenge(1, "recycling", participants={"u1"}),
            _challenge(2, "plastic-reduction", participants={"u1"}),
        ]
        got = rewardable_challenges(_event(9, "cleanup"), challenges, "u1", NOW)
        assert {c.id for c in got} == {1, 2}
