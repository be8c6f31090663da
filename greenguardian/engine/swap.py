"""
greenguardian.engine.swap — Swap negotiation state machine
===========================================================

Pure transition rules for one (item, requester) pair.  No DB I/O; the
service layer loads the item, asks this module whether a transition is
legal, then performs the write.

States::

    NONE ──request──▶ PENDING ──accept──▶ ACCEPTED ──complete──▶ COMPLETED
      ▲                  │                    │
      └──decline/cancel──┴───cancel-accept────┘

Nothing leaves COMPLETED.  The item argument is anything exposing
``owner_id``, ``is_available``, ``swapped_with``, ``swap_requests`` and
``accepted_requests`` (a :class:`~greenguardian.database.models.SwapItem`
in production, a mock in tests).
"""

from __future__ import annotations

import enum

from greenguardian.errors import PermissionDenied, PreconditionFailed


class SwapState(enum.StrEnum):
    NONE = "none"
    PENDING = "pending"
    ACCEPTED = "accepted"
    COMPLETED = "completed"


class SwapTransition(enum.StrEnum):
    REQUEST = "request"
    ACCEPT = "accept"
    DECLINE = "decline"
    CANCEL = "cancel"
    COMPLETE = "complete"


# (from_state, transition) → to_state
TRANSITIONS: dict[tuple[SwapState, SwapTransition], SwapState] = {
    (SwapState.NONE, SwapTransition.REQUEST): SwapState.PENDING,
    (SwapState.PENDING, SwapTransition.ACCEPT): SwapState.ACCEPTED,
    (SwapState.PENDING, SwapTransition.DECLINE): SwapState.NONE,
    (SwapState.PENDING, SwapTransition.CANCEL): SwapState.NONE,
    (SwapState.ACCEPTED, SwapTransition.DECLINE): SwapState.NONE,
    (SwapState.ACCEPTED, SwapTransition.CANCEL): SwapState.NONE,
    (SwapState.ACCEPTED, SwapTransition.COMPLETE): SwapState.COMPLETED,
}


def swap_state(item, user_id: str) -> SwapState:
    """Current state of *user_id* on *item*."""
    if not item.is_available and item.swapped_with == user_id:
        return SwapState.COMPLETED
    if user_id in item.accepted_requests:
        return SwapState.ACCEPTED
    if user_id in item.swap_requests:
        return SwapState.PENDING
    return SwapState.NONE


def next_state(current: SwapState, transition: SwapTransition) -> SwapState:
    """Resolve a transition or raise :class:`PreconditionFailed`."""
    try:
        return TRANSITIONS[(current, transition)]
    except KeyError:
        raise PreconditionFailed(
            f"Cannot {transition.value} a swap that is {current.value}."
        ) from None


# ---------------------------------------------------------------------------
# Precondition checks, run before any write
# ---------------------------------------------------------------------------
def check_request(item, user_id: str) -> SwapState:
    if item.owner_id == user_id:
        raise PreconditionFailed("You cannot request to swap your own item.")
    if not item.is_available:
        raise PreconditionFailed("This item is no longer available.")
    current = swap_state(item, user_id)
    if current is not SwapState.NONE:
        raise PreconditionFailed("You have already requested this item.")
    return next_state(current, SwapTransition.REQUEST)


def _require_owner(item, actor_id: str) -> None:
    if item.owner_id != actor_id:
        raise PermissionDenied("Only the item owner can do this.")


def check_accept(item, actor_id: str, requester_id: str) -> SwapState:
    _require_owner(item, actor_id)
    if not item.is_available:
        raise PreconditionFailed("This item is no longer available.")
    return next_state(swap_state(item, requester_id), SwapTransition.ACCEPT)


def check_decline(item, actor_id: str, requester_id: str) -> SwapState:
    """Owner-side removal.  Declining a pair with no live request is a no-op
    (returns NONE) rather than an error."""
    _require_owner(item, actor_id)
    current = swap_state(item, requester_id)
    if current is SwapState.NONE:
        return SwapState.NONE
    return next_state(current, SwapTransition.DECLINE)


def check_cancel(item, requester_id: str) -> SwapState:
    """Requester-side self-removal; a no-op when nothing is live."""
    current = swap_state(item, requester_id)
    if current is SwapState.NONE:
        return SwapState.NONE
    return next_state(current, SwapTransition.CANCEL)


def check_complete(item, actor_id: str, requester_id: str) -> SwapState:
    _require_owner(item, actor_id)
    if not item.is_available:
        raise PreconditionFailed("This swap has already been completed.")
    return next_state(swap_state(item, requester_id), SwapTransition.COMPLETE)
