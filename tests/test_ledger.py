"""
tests/test_ledger.py — Reward Ledger Tests
===========================================

Counter folding (pure) and idempotent ledger application against the
in-memory SQLite database.
"""

from __future__ import annotations

from types import SimpleNamespace

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from greenguardian.database.models import Action, ActionType, UserStats
from greenguardian.engine.ledger import LedgerEvent, fold_actions
from greenguardian.services import ledger_service


def _row(kind: ActionType, points: int = 0):
    return SimpleNamespace(action_type=kind.value, points=points)


# ===========================================================================
# fold_actions
# ===========================================================================
class TestFoldActions:
    def test_empty_ledger(self):
        totals = fold_actions([])
        assert totals.total_actions == 0
        assert totals.total_points == 0

    def test_event_rewards_carry_points_only(self):
        rows = [
            _row(ActionType.EVENT_REWARD, 50),
            _row(ActionType.EVENT_REWARD, 50),
            _row(ActionType.EVENT_JOINED),
        ]
        totals = fold_actions(rows)
        assert totals.total_actions == 1
        assert totals.total_points == 100
        assert totals.events_joined == 1

    def test_counters_by_type(self):
        rows = [
            _row(ActionType.SWAP_COMPLETED, 25),
            _row(ActionType.LOGGED_ACTION, 10),
            _row(ActionType.CHALLENGE_JOINED),
            _row(ActionType.BADGE_EARNED),
        ]
        totals = fold_actions(rows)
        assert totals.items_swapped == 1
        assert totals.challenges_joined == 1
        assert totals.badges_earned == 1
        assert totals.total_actions == 2
        assert totals.total_points == 35


# ===========================================================================
# apply_ledger_event
# ===========================================================================
@pytest.fixture
def engine(db_engine):
    return db_engine


def _event(key: str = "k-1", points: int = 10, kind=ActionType.LOGGED_ACTION):
    return LedgerEvent(
        user_id="u1", action_type=kind, source_event_id=key, points=points,
    )


class TestApplyLedgerEvent:
    def test_first_apply_writes(self, engine):
        with Session(engine) as session:
            ledger_service.get_or_create_user(session, "u1", "Uma")
            action, dup = ledger_service.apply_ledger_event(session, _event())
            session.commit()
            assert dup is False
            assert action.id is not None

    def test_duplicate_key_writes_nothing(self, engine):
        with Session(engine) as session:
            ledger_service.get_or_create_user(session, "u1", "Uma")
            first, _ = ledger_service.apply_ledger_event(session, _event())
            second, dup = ledger_service.apply_ledger_event(session, _event(points=99))
            session.commit()
            assert dup is True
            assert second.id == first.id
            count = session.scalar(select(func.count()).select_from(Action))
            assert count == 1

    def test_duplicate_across_transactions(self, engine):
        for _ in range(2):
            with Session(engine) as session:
                ledger_service.get_or_create_user(session, "u1", "Uma")
                ledger_service.apply_and_refresh(session, [_event()])
                session.commit()
        with Session(engine) as session:
            stats = session.get(UserStats, "u1")
            assert stats.total_points == 10
            assert stats.total_actions == 1


class TestRefreshUserStats:
    def test_stats_materialised_from_ledger(self, engine):
        with Session(engine) as session:
            ledger_service.get_or_create_user(session, "u1", "Uma")
            ledger_service.apply_and_refresh(session, [
                _event("a", 50, ActionType.EVENT_REWARD),
                _event("b", 0, ActionType.EVENT_JOINED),
                _event("c", 25, ActionType.SWAP_COMPLETED),
            ])
            session.commit()

        stats = ledger_service.get_user_stats(engine, "u1")
        assert stats.total_points == 75
        assert stats.total_actions == 2
        assert stats.events_joined == 1
        assert stats.items_swapped == 1

    def test_unknown_user_has_no_stats(self, engine):
        assert ledger_service.get_user_stats(engine, "nobody") is None


class TestGetOrCreateUser:
    def test_creates_then_refreshes_name(self, engine):
        with Session(engine) as session:
            user = ledger_service.get_or_create_user(session, "u1", "Old")
            assert user.role == "citizen"
            session.commit()
        with Session(engine) as session:
            user = ledger_service.get_or_create_user(session, "u1", "New", role="ngo")
            session.commit()
            assert user.display_name == "New"
            assert user.role == "ngo"
