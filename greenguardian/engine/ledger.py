"""
greenguardian.engine.ledger — Ledger events and counter folding
================================================================

Point-awarding activity is recorded as append-only ``actions`` rows.
User counters are never incremented in place; they are a fold over the
user's ledger, so a failed write cannot leave a counter out of step with
the entries that justify it.

``LedgerEvent.source_event_id`` is the idempotency key: applying the same
event twice writes one row.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from greenguardian.database.models import ActionType
from greenguardian.engine.status import utcnow

__all__ = ["COUNTED_ACTIONS", "LedgerEvent", "LedgerTotals", "fold_actions"]

# Entry types that count toward ``total_actions``.  EVENT_REWARD rows carry
# points only, so one event join counts once however many challenges it
# rewards.
COUNTED_ACTIONS: frozenset[ActionType] = frozenset({
    ActionType.EVENT_JOINED,
    ActionType.SWAP_COMPLETED,
    ActionType.LOGGED_ACTION,
})


@dataclass(frozen=True, slots=True)
class LedgerEvent:
    """One point-awarding activity, normalised before it hits the ledger."""

    user_id: str
    action_type: ActionType
    source_event_id: str
    points: int = 0
    category: str | None = None
    description: str = ""
    challenge_id: int | None = None
    event_id: int | None = None
    metadata: dict = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)


@dataclass
class LedgerTotals:
    """Counters derived from a user's ledger."""

    total_actions: int = 0
    total_points: int = 0
    items_swapped: int = 0
    events_joined: int = 0
    challenges_joined: int = 0
    badges_earned: int = 0


def fold_actions(actions: Iterable) -> LedgerTotals:
    """Fold ledger rows (anything with ``action_type`` and ``points``)."""
    totals = LedgerTotals()
    for action in actions:
        kind = ActionType(action.action_type)
        totals.total_points += action.points or 0
        if kind in COUNTED_ACTIONS:
            totals.total_actions += 1
        if kind is ActionType.SWAP_COMPLETED:
            totals.items_swapped += 1
        elif kind is ActionType.EVENT_JOINED:
            totals.events_joined += 1
        elif kind is ActionType.CHALLENGE_JOINED:
            totals.challenges_joined += 1
        elif kind is ActionType.BADGE_EARNED:
            totals.badges_earned += 1
    return totals
