"""
tests/test_hub_service.py — Community Hub Integration Tests
============================================================

Challenge / volunteer-event membership, reward attribution through the
cross-link table, action logging with badge awards, and the activity feed.
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from conftest import NOW
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from greenguardian.database.models import (
    Action,
    ActionType,
    Challenge,
    EventVolunteer,
    UserBadge,
    UserStats,
)
from greenguardian.engine.status import ChallengeTab
from greenguardian.errors import NotFoundError, PermissionDenied, PreconditionFailed
from greenguardian.services import hub_service, settings_service

D = timedelta(days=1)


@pytest.fixture
def engine(db_engine):
    return db_engine


def _challenge(engine, category="recycling", *, start=NOW - 10 * D, end=NOW + 10 * D,
               target=10, is_active=True, title=None):
    return hub_service.create_challenge(
        engine, "ngo-1", "Green NGO", "ngo",
        title=title or f"{category} challenge",
        category=category,
        badge_name=f"{category} hero",
        start_date=start,
        end_date=end,
        target_actions=target,
        is_active=is_active,
    )


def _event(engine, type_="cleanup", *, date=NOW + 7 * D, max_volunteers=20, duration=3.0):
    return hub_service.create_event(
        engine, "ngo-1", "Green NGO", "ngo",
        title=f"{type_} day", type=type_, date=date,
        max_volunteers=max_volunteers, duration=duration,
    )


def _actions(engine, user_id, kind: ActionType) -> list[Action]:
    with Session(engine) as session:
        rows = session.scalars(
            select(Action).where(
                Action.user_id == user_id, Action.action_type == kind.value,
            )
        ).all()
        session.expunge_all()
        return list(rows)


def _stats(engine, user_id) -> UserStats:
    with Session(engine) as session:
        stats = session.get(UserStats, user_id)
        session.expunge_all()
        return stats


# ===========================================================================
# Publishing
# ===========================================================================
class TestPublishing:
    def test_citizen_cannot_create_challenge(self, engine):
        with pytest.raises(PermissionDenied):
            hub_service.create_challenge(
                engine, "u1", "Uma", "citizen",
                title="x", category="recycling", badge_name="b",
            )

    def test_unknown_category_rejected(self, engine):
        with pytest.raises(PreconditionFailed):
            _challenge(engine, category="knitting")

    def test_end_before_start_rejected(self, engine):
        with pytest.raises(PreconditionFailed):
            _challenge(engine, start=NOW, end=NOW - D)

    def test_unknown_event_type_rejected(self, engine):
        with pytest.raises(PreconditionFailed):
            _event(engine, type_="concert")

    def test_custom_authority_roles(self, engine):
        c = hub_service.create_challenge(
            engine, "p1", "Partner", "partner",
            title="x", category="recycling", badge_name="b",
            authority_roles=frozenset({"partner"}),
        )
        assert c.created_by == "p1"


# ===========================================================================
# Challenges
# ===========================================================================
class TestJoinChallenge:
    def test_join_returns_related_events(self, engine):
        c = _challenge(engine, "recycling")
        cleanup = _event(engine, "cleanup")
        _event(engine, "workshop")
        result = hub_service.join_challenge(engine, c.id, "u1", "Uma", now=NOW)
        assert result.joined is True
        assert [e.id for e in result.related_events] == [cleanup.id]

    def test_join_is_idempotent(self, engine):
        c = _challenge(engine)
        hub_service.join_challenge(engine, c.id, "u1", "Uma", now=NOW)
        again = hub_service.join_challenge(engine, c.id, "u1", "Uma", now=NOW)
        assert again.joined is False
        assert hub_service.get_challenge(engine, c.id).participant_ids == {"u1"}
        assert _stats(engine, "u1").challenges_joined == 1

    def test_ended_challenge_cannot_be_joined(self, engine):
        c = _challenge(engine, start=NOW - 10 * D, end=NOW - D)
        with pytest.raises(PreconditionFailed):
            hub_service.join_challenge(engine, c.id, "u1", "Uma", now=NOW)

    def test_missing_challenge(self, engine):
        with pytest.raises(NotFoundError):
            hub_service.join_challenge(engine, 404, "u1", "Uma", now=NOW)


class TestListChallenges:
    def test_tabs(self, engine):
        active = _challenge(engine, title="active")
        upcoming = _challenge(engine, title="upcoming", start=NOW + D, end=NOW + 5 * D)
        recent = _challenge(engine, title="recent", start=NOW - 10 * D, end=NOW - 2 * D)
        old = _challenge(engine, title="old", start=NOW - 90 * D, end=NOW - 60 * D)

        def ids(tab):
            return [c.id for c in hub_service.list_challenges(engine, tab, now=NOW)]

        assert ids(ChallengeTab.ACTIVE) == [active.id]
        assert ids(ChallengeTab.UPCOMING) == [upcoming.id]
        assert ids(ChallengeTab.COMPLETED) == [recent.id]
        assert ids(ChallengeTab.ARCHIVED) == [old.id]
        assert len(hub_service.list_challenges(engine, now=NOW)) == 4


# ===========================================================================
# Volunteer events
# ===========================================================================
class TestJoinEvent:
    def test_reward_per_matching_challenge(self, engine):
        """Cleanup maps to recycling; the energy challenge earns nothing."""
        recycling = _challenge(engine, "recycling")
        energy = _challenge(engine, "energy-saving")
        for c in (recycling, energy):
            hub_service.join_challenge(engine, c.id, "u1", "Uma", now=NOW)
        event = _event(engine, "cleanup")

        result = hub_service.join_event(engine, event.id, "u1", "Uma", now=NOW)

        assert result.joined is True
        assert result.challenge_ids == [recycling.id]
        assert result.points == 50
        rewards = _actions(engine, "u1", ActionType.EVENT_REWARD)
        assert len(rewards) == 1
        assert rewards[0].challenge_id == recycling.id
        assert rewards[0].event_id == event.id

    def test_event_join_counts_once(self, engine):
        for category in ("recycling", "plastic-reduction"):
            c = _challenge(engine, category)
            hub_service.join_challenge(engine, c.id, "u1", "Uma", now=NOW)
        event = _event(engine, "cleanup")

        result = hub_service.join_event(engine, event.id, "u1", "Uma", now=NOW)

        assert result.points == 100
        stats = _stats(engine, "u1")
        assert stats.total_actions == 1
        assert stats.events_joined == 1
        assert stats.total_points == 100

    def test_join_is_idempotent_on_volunteers(self, engine):
        event = _event(engine)
        hub_service.join_event(engine, event.id, "u1", "Uma", now=NOW)
        again = hub_service.join_event(engine, event.id, "u1", "Uma", now=NOW)
        assert again.joined is False
        assert hub_service.get_event(engine, event.id).volunteer_ids == {"u1"}

    def test_leave_and_rejoin_does_not_double_reward(self, engine):
        c = _challenge(engine, "recycling")
        hub_service.join_challenge(engine, c.id, "u1", "Uma", now=NOW)
        event = _event(engine, "cleanup")

        hub_service.join_event(engine, event.id, "u1", "Uma", now=NOW)
        assert hub_service.leave_event(engine, event.id, "u1", now=NOW) is True
        rejoin = hub_service.join_event(engine, event.id, "u1", "Uma", now=NOW)

        assert rejoin.joined is True
        assert rejoin.points == 0
        assert len(_actions(engine, "u1", ActionType.EVENT_REWARD)) == 1
        assert _stats(engine, "u1").total_actions == 1

    def test_unjoined_challenge_not_rewarded(self, engine):
        _challenge(engine, "recycling")
        event = _event(engine, "cleanup")
        result = hub_service.join_event(engine, event.id, "u1", "Uma", now=NOW)
        assert result.awarded == []
        assert len(_actions(engine, "u1", ActionType.EVENT_JOINED)) == 1

    def test_unpublished_challenge_not_rewarded(self, engine):
        c = _challenge(engine, "recycling")
        hub_service.join_challenge(engine, c.id, "u1", "Uma", now=NOW)
        with Session(engine) as session:
            session.get(Challenge, c.id).is_active = False
            session.commit()
        event = _event(engine, "cleanup")
        assert hub_service.join_event(engine, event.id, "u1", "Uma", now=NOW).awarded == []

    def test_capacity_enforced(self, engine):
        event = _event(engine, max_volunteers=1)
        hub_service.join_event(engine, event.id, "u1", "Uma", now=NOW)
        with pytest.raises(PreconditionFailed, match="full"):
            hub_service.join_event(engine, event.id, "u2", "Uli", now=NOW)
        with Session(engine) as session:
            count = session.scalar(select(func.count()).select_from(EventVolunteer))
        assert count == 1

    def test_reward_amount_from_settings(self, engine):
        settings_service.upsert_setting(
            engine, key="rewards.volunteer_event_points", value=75,
        )
        c = _challenge(engine, "recycling")
        hub_service.join_challenge(engine, c.id, "u1", "Uma", now=NOW)
        event = _event(engine, "cleanup")
        assert hub_service.join_event(engine, event.id, "u1", "Uma", now=NOW).points == 75

    def test_leave_absent_is_noop(self, engine):
        event = _event(engine)
        assert hub_service.leave_event(engine, event.id, "u1", now=NOW) is False


class TestVolunteerSummary:
    def test_upcoming_and_attended(self, engine):
        past = _event(engine, date=NOW - 3 * D, duration=2.5)
        future = _event(engine, date=NOW + 3 * D)
        hub_service.join_event(engine, past.id, "u1", "Uma", now=NOW)
        hub_service.join_event(engine, future.id, "u1", "Uma", now=NOW)

        summary = hub_service.volunteer_summary(engine, "u1", now=NOW)
        assert summary.upcoming_event_ids == [future.id]
        assert summary.events_attended == 1
        assert summary.total_hours == pytest.approx(2.5)


# ===========================================================================
# Action logging & badges
# ===========================================================================
class TestLogAction:
    def test_points_scale_with_quantity(self, engine):
        result = hub_service.log_action(
            engine, "u1", "Uma", kind="recycle", description="Bottles", quantity=3, now=NOW,
        )
        assert result.action.points == 30
        assert result.action.category == "recycling"
        assert _stats(engine, "u1").total_actions == 1

    def test_unknown_kind_rejected(self, engine):
        with pytest.raises(PreconditionFailed):
            hub_service.log_action(engine, "u1", "Uma", kind="juggling", description="x")

    def test_challenge_must_be_joined(self, engine):
        c = _challenge(engine)
        with pytest.raises(PreconditionFailed, match="Join"):
            hub_service.log_action(
                engine, "u1", "Uma", kind="recycle", description="x",
                challenge_id=c.id, now=NOW,
            )

    def test_badge_awarded_once_at_target(self, engine):
        c = _challenge(engine, target=2)
        hub_service.join_challenge(engine, c.id, "u1", "Uma", now=NOW)
        first = hub_service.log_action(
            engine, "u1", "Uma", kind="recycle", description="a", challenge_id=c.id, now=NOW,
        )
        second = hub_service.log_action(
            engine, "u1", "Uma", kind="recycle", description="b", challenge_id=c.id, now=NOW,
        )
        third = hub_service.log_action(
            engine, "u1", "Uma", kind="recycle", description="c", challenge_id=c.id, now=NOW,
        )
        assert first.badge is None
        assert second.badge is not None
        assert third.badge is None
        with Session(engine) as session:
            assert session.scalar(select(func.count()).select_from(UserBadge)) == 1
        assert _stats(engine, "u1").badges_earned == 1

    def test_client_action_id_is_idempotent(self, engine):
        for _ in range(2):
            hub_service.log_action(
                engine, "u1", "Uma", kind="transport", description="Biked",
                client_action_id="abc", now=NOW,
            )
        assert len(_actions(engine, "u1", ActionType.LOGGED_ACTION)) == 1


# ===========================================================================
# Activity feed
# ===========================================================================
class TestActivityFeed:
    def test_merged_and_cross_linked(self, engine):
        c = _challenge(engine, "recycling", start=NOW - 5 * D)
        e = _event(engine, "cleanup", date=NOW + 2 * D)
        hub_service.join_challenge(engine, c.id, "u1", "Uma", now=NOW)
        hub_service.join_event(engine, e.id, "u1", "Uma", now=NOW)

        feed = hub_service.activity_feed(engine, "u1", now=NOW)
        kinds = [i.kind for i in feed]
        assert kinds.count("challenge") == 1
        assert kinds.count("event") == 1
        assert kinds.count("action") == 1          # the event reward

        event_item = next(i for i in feed if i.kind == "event")
        assert event_item.status == "upcoming"
        assert [r.id for r in event_item.related] == [c.id]
        challenge_item = next(i for i in feed if i.kind == "challenge")
        assert [r.id for r in challenge_item.related] == [e.id]

        dates = [i.date for i in feed]
        assert dates == sorted(dates, reverse=True)
