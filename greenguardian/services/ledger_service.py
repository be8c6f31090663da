"""
greenguardian.services.ledger_service — Ledger persistence & counters
======================================================================

Shared by the swap and hub services.  Handles user upserts, idempotent
ledger inserts and recomputation of the ``user_stats`` row from the
ledger.  Every function takes an open session and never commits; the
caller owns the transaction so a multi-step workflow lands all-or-nothing.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from greenguardian.database.models import Action, User, UserRole, UserStats
from greenguardian.engine.ledger import LedgerEvent, LedgerTotals, fold_actions

logger = logging.getLogger(__name__)


def get_or_create_user(
    session: Session,
    user_id: str,
    display_name: str,
    *,
    email: str | None = None,
    role: str | None = None,
) -> User:
    """Fetch or insert a User row, refreshing its display fields."""
    user = session.get(User, user_id)
    if user is None:
        user = User(
            id=user_id,
            display_name=display_name,
            email=email,
            role=role or UserRole.CITIZEN.value,
        )
        session.add(user)
        session.flush()
    else:
        user.display_name = display_name
        if email is not None:
            user.email = email
        if role is not None:
            user.role = role
    return user


def apply_ledger_event(session: Session, event: LedgerEvent) -> tuple[Action, bool]:
    """Append *event* to the ledger unless its ``source_event_id`` exists.

    Returns ``(action, was_duplicate)``.  On a duplicate the existing row is
    returned and nothing is written.
    """
    existing = session.scalar(
        select(Action).where(Action.source_event_id == event.source_event_id)
    )
    if existing is not None:
        return existing, True

    action = Action(
        user_id=event.user_id,
        action_type=event.action_type.value,
        points=event.points,
        category=event.category,
        description=event.description,
        challenge_id=event.challenge_id,
        event_id=event.event_id,
        source_event_id=event.source_event_id,
        metadata_=event.metadata or None,
        timestamp=event.timestamp,
    )
    try:
        # SAVEPOINT so a concurrent insert of the same key only rolls back
        # this row; the unique partial index is the final arbiter.
        with session.begin_nested():
            session.add(action)
            session.flush()
    except IntegrityError:
        existing = session.scalar(
            select(Action).where(Action.source_event_id == event.source_event_id)
        )
        return existing, True

    logger.debug(
        "Ledger %s for %s (+%d) key=%s",
        event.action_type.value, event.user_id, event.points, event.source_event_id,
    )
    return action, False


def user_totals(session: Session, user_id: str) -> LedgerTotals:
    """Fold the user's full ledger."""
    rows = session.scalars(select(Action).where(Action.user_id == user_id)).all()
    return fold_actions(rows)


def refresh_user_stats(session: Session, user_id: str) -> UserStats:
    """Recompute the materialised counters for *user_id* from the ledger."""
    totals = user_totals(session, user_id)
    stats = session.get(UserStats, user_id)
    if stats is None:
        stats = UserStats(user_id=user_id)
        session.add(stats)
    stats.total_actions = totals.total_actions
    stats.total_points = totals.total_points
    stats.items_swapped = totals.items_swapped
    stats.events_joined = totals.events_joined
    stats.challenges_joined = totals.challenges_joined
    stats.badges_earned = totals.badges_earned
    session.flush()
    return stats


def apply_and_refresh(session: Session, events: list[LedgerEvent]) -> list[Action]:
    """Apply several events and refresh the counters of every user touched.

    Returns the newly written actions (duplicates excluded).
    """
    written: list[Action] = []
    touched: set[str] = set()
    for event in events:
        action, duplicate = apply_ledger_event(session, event)
        if not duplicate:
            written.append(action)
            touched.add(event.user_id)
    for user_id in sorted(touched):
        refresh_user_stats(session, user_id)
    return written


def get_user_stats(engine, user_id: str) -> UserStats | None:
    with Session(engine) as session:
        stats = session.get(UserStats, user_id)
        if stats is not None:
            session.expunge(stats)
        return stats
