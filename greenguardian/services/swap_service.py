"""
greenguardian.services.swap_service — Swap marketplace workflows
=================================================================

Persists the transitions decided by :mod:`greenguardian.engine.swap`.
Each public function is one transaction: the item is loaded, the pure
precondition check runs, and the writes land together or not at all.

Concurrency
-----------
* Accept is a compare-and-swap: ``UPDATE swap_requests … WHERE
  status = 'pending'``.  When a concurrent Decline/Cancel removed the row
  first, zero rows match and :class:`ConflictError` is raised.
* Decline and Cancel delete ``WHERE status = <status just read>``, so a
  request accepted concurrently is not dropped without its withdrawal
  record; the mismatch is reported as :class:`ConflictError`.
* Writes to the item row carry a version counter; a concurrent write
  surfaces as ``StaleDataError`` and is reported as :class:`ConflictError`.
* The partial unique index on ``completed_swaps`` allows one ``completed``
  record per item, so a racing second Complete fails and rolls back.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload, selectinload
from sqlalchemy.orm.attributes import set_committed_value

from greenguardian.database.engine import get_session
from greenguardian.database.models import (
    ActionType,
    CompletedSwap,
    NotificationType,
    SwapItem,
    SwapOutcome,
    SwapRequest,
    SwapRequestStatus,
)
from greenguardian.engine.ledger import LedgerEvent
from greenguardian.engine.status import utcnow
from greenguardian.engine.swap import (
    SwapState,
    check_accept,
    check_cancel,
    check_complete,
    check_decline,
    check_request,
    swap_state,
)
from greenguardian.errors import (
    ConflictError,
    NotFoundError,
    PermissionDenied,
    PreconditionFailed,
)
from greenguardian.services.ledger_service import apply_and_refresh, get_or_create_user
from greenguardian.services.notification_service import add_notification
from greenguardian.services.settings_service import get_int

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _load_item(session: Session, item_id: int) -> SwapItem:
    item = session.scalar(
        select(SwapItem)
        .where(SwapItem.id == item_id)
        .options(selectinload(SwapItem.requests))
    )
    if item is None:
        raise NotFoundError(f"Item {item_id} not found.")
    return item


def _request_row(item: SwapItem, requester_id: str) -> SwapRequest | None:
    for row in item.requests:
        if row.requester_id == requester_id:
            return row
    return None


def _snapshot(item: SwapItem, row: SwapRequest | None, requester_id: str,
              outcome: SwapOutcome) -> CompletedSwap:
    return CompletedSwap(
        item_id=item.id,
        item_title=item.title,
        item_description=item.description,
        item_category=item.category,
        item_image_url=item.image_url,
        owner_id=item.owner_id,
        requester_id=requester_id,
        status=outcome.value,
        offer_details=row.offer_details if row else None,
        offer_value=row.offer_value if row else None,
        offer_image=row.offer_image if row else None,
        completed_at=utcnow(),
    )


def _remove_request(session: Session, item: SwapItem, requester_id: str) -> SwapState:
    """Drop the requester's row; record a withdrawal if it was accepted.

    The delete only matches the status that was just read, so a request
    accepted in the meantime is left alone and :class:`ConflictError` is
    raised.  Returns the state the pair was in before removal.
    """
    row = _request_row(item, requester_id)
    if row is None:
        return SwapState.NONE
    previous = SwapState(row.status)
    result = session.execute(
        delete(SwapRequest)
        .where(
            SwapRequest.item_id == item.id,
            SwapRequest.requester_id == requester_id,
            SwapRequest.status == previous.value,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError("The request changed before it could be removed.")
    set_committed_value(item, "requests", [r for r in item.requests if r is not row])
    session.expunge(row)

    if previous is SwapState.ACCEPTED:
        session.add(_snapshot(item, row, requester_id, SwapOutcome.WITHDRAWN))
    session.flush()
    return previous


def _finalize(session: Session, item: SwapItem, requester_id: str) -> CompletedSwap:
    """Mark *item* swapped with *requester_id* and write every side effect."""
    now = utcnow()
    row = _request_row(item, requester_id)
    record = _snapshot(item, row, requester_id, SwapOutcome.COMPLETED)

    item.is_available = False
    item.swapped_with = requester_id
    item.swapped_at = now
    if row is not None:
        item.requests.remove(row)
    session.add(record)
    try:
        session.flush()
    except IntegrityError as exc:
        raise PreconditionFailed("This swap has already been completed.") from exc

    points = get_int(session, "rewards.swap_completed_points", 25)
    apply_and_refresh(session, [
        LedgerEvent(
            user_id=user_id,
            action_type=ActionType.SWAP_COMPLETED,
            source_event_id=f"swap-completed:{item.id}:{user_id}",
            points=points,
            category="swap",
            description=f"Swapped '{item.title}'",
            metadata={"item_id": item.id, "counterparty": other},
            timestamp=now,
        )
        for user_id, other in (
            (item.owner_id, requester_id),
            (requester_id, item.owner_id),
        )
    ])

    add_notification(
        session,
        target_user_id=requester_id,
        actor_id=item.owner_id,
        type=NotificationType.SWAP,
        title="Swap completed",
        message=f"Your swap for '{item.title}' is complete.",
        action_url="/swap",
        metadata={"item_id": item.id},
    )
    session.flush()
    logger.info("Swap completed: item %d → %s", item.id, requester_id)
    return record


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------
def list_item(
    engine,
    owner_id: str,
    owner_name: str,
    *,
    title: str,
    description: str,
    category: str = "other",
    condition: str = "good",
    estimated_value: float = 0.0,
    image_url: str | None = None,
) -> SwapItem:
    """Publish a new available item."""
    if not title.strip() or not description.strip():
        raise PreconditionFailed("Title and description are required.")
    if estimated_value < 0:
        raise PreconditionFailed("Estimated value cannot be negative.")

    with get_session(engine) as session:
        get_or_create_user(session, owner_id, owner_name)
        item = SwapItem(
            owner_id=owner_id,
            title=title.strip(),
            description=description.strip(),
            category=category,
            condition=condition,
            estimated_value=estimated_value,
            image_url=image_url,
            is_available=True,
            requests=[],
            created_at=utcnow(),
        )
        session.add(item)
        session.flush()
    logger.info("Item %d listed by %s", item.id, owner_id)
    return item


def delete_item(engine, item_id: int, actor_id: str) -> None:
    """Owner-only removal of an item that has not been swapped.

    Pending requests go with the item.  An accepted request must be
    declined first so the requester gets a withdrawal record.
    """
    with get_session(engine) as session:
        item = _load_item(session, item_id)
        if item.owner_id != actor_id:
            raise PermissionDenied("Only the item owner can delete it.")
        if not item.is_available:
            raise PreconditionFailed("A swapped item cannot be deleted.")
        if item.accepted_requests:
            raise PreconditionFailed(
                "Decline the accepted request before deleting this item."
            )
        session.delete(item)
    logger.info("Item %d deleted by %s", item_id, actor_id)


def get_item(engine, item_id: int) -> SwapItem:
    with Session(engine) as session:
        item = _load_item(session, item_id)
        session.expunge_all()
        return item


def available_items(
    engine,
    *,
    category: str | None = None,
    search: str | None = None,
    exclude_owner: str | None = None,
) -> list[SwapItem]:
    """Available items, newest first, optionally filtered."""
    stmt = select(SwapItem).where(SwapItem.is_available.is_(True))
    if category and category != "all":
        stmt = stmt.where(SwapItem.category == category)
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(or_(
            SwapItem.title.ilike(pattern), SwapItem.description.ilike(pattern)
        ))
    if exclude_owner:
        stmt = stmt.where(SwapItem.owner_id != exclude_owner)
    stmt = stmt.options(selectinload(SwapItem.requests)).order_by(
        SwapItem.created_at.desc(), SwapItem.id.desc()
    )
    with Session(engine) as session:
        items = list(session.scalars(stmt).all())
        session.expunge_all()
        return items


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------
def request_swap(
    engine,
    item_id: int,
    requester_id: str,
    requester_name: str,
    *,
    offer_details: str | None = None,
    offer_value: float | None = None,
    offer_image: str | None = None,
) -> SwapRequest:
    """NONE → PENDING.  The owner is notified."""
    with get_session(engine) as session:
        item = _load_item(session, item_id)
        check_request(item, requester_id)
        get_or_create_user(session, requester_id, requester_name)

        row = SwapRequest(
            requester_id=requester_id,
            status=SwapRequestStatus.PENDING.value,
            offer_details=offer_details,
            offer_value=offer_value,
            offer_image=offer_image,
            requested_at=utcnow(),
        )
        item.requests.append(row)
        try:
            session.flush()
        except IntegrityError as exc:
            raise PreconditionFailed("You have already requested this item.") from exc

        add_notification(
            session,
            target_user_id=item.owner_id,
            actor_id=requester_id,
            type=NotificationType.SWAP,
            title="New swap request",
            message=f"{requester_name} wants to swap for '{item.title}'.",
            action_url="/swap",
            metadata={"item_id": item.id},
        )
    logger.info("Swap requested: item %d by %s", item_id, requester_id)
    return row


def accept_request(engine, item_id: int, owner_id: str, requester_id: str) -> SwapRequest:
    """PENDING → ACCEPTED via a conditional update."""
    with get_session(engine) as session:
        item = _load_item(session, item_id)
        check_accept(item, owner_id, requester_id)

        now = utcnow()
        result = session.execute(
            update(SwapRequest)
            .where(
                SwapRequest.item_id == item_id,
                SwapRequest.requester_id == requester_id,
                SwapRequest.status == SwapRequestStatus.PENDING.value,
            )
            .values(status=SwapRequestStatus.ACCEPTED.value, accepted_at=now)
        )
        if result.rowcount != 1:
            raise ConflictError("The request was withdrawn before it could be accepted.")
        item.accepted_at = now
        row = _request_row(item, requester_id)

        add_notification(
            session,
            target_user_id=requester_id,
            actor_id=owner_id,
            type=NotificationType.SWAP,
            title="Swap request accepted",
            message=f"Your request for '{item.title}' was accepted.",
            action_url="/swap",
            metadata={"item_id": item.id},
        )
    logger.info("Swap accepted: item %d for %s", item_id, requester_id)
    return row


def decline_request(engine, item_id: int, owner_id: str, requester_id: str) -> SwapState:
    """Owner removes a pending or accepted request.  No-op when absent.

    Returns the state the pair was in.
    """
    with get_session(engine) as session:
        item = _load_item(session, item_id)
        check_decline(item, owner_id, requester_id)
        previous = _remove_request(session, item, requester_id)
        if previous is not SwapState.NONE:
            add_notification(
                session,
                target_user_id=requester_id,
                actor_id=owner_id,
                type=NotificationType.SWAP,
                title="Swap request declined",
                message=f"Your request for '{item.title}' was declined.",
                action_url="/swap",
                metadata={"item_id": item.id},
            )
    if previous is not SwapState.NONE:
        logger.info("Swap declined: item %d for %s (%s)", item_id, requester_id, previous)
    return previous


def cancel_request(engine, item_id: int, requester_id: str) -> SwapState:
    """Requester withdraws their own request.  No-op when absent."""
    with get_session(engine) as session:
        item = _load_item(session, item_id)
        check_cancel(item, requester_id)
        previous = _remove_request(session, item, requester_id)
    if previous is not SwapState.NONE:
        logger.info("Swap cancelled: item %d by %s (%s)", item_id, requester_id, previous)
    return previous


def complete_swap(engine, item_id: int, owner_id: str, requester_id: str) -> CompletedSwap:
    """ACCEPTED → COMPLETED.  Owner-only; the whole effect is one transaction."""
    with get_session(engine) as session:
        item = _load_item(session, item_id)
        check_complete(item, owner_id, requester_id)
        return _finalize(session, item, requester_id)


def confirm_swap(
    engine, item_id: int, actor_id: str, requester_id: str
) -> CompletedSwap | None:
    """Record one party's confirmation of an accepted swap.

    When both the owner and the requester have confirmed, the swap
    completes and its :class:`CompletedSwap` is returned; otherwise None.
    """
    with get_session(engine) as session:
        item = _load_item(session, item_id)
        if actor_id not in (item.owner_id, requester_id):
            raise PermissionDenied("Only the owner or the requester can confirm.")
        if swap_state(item, requester_id) is not SwapState.ACCEPTED:
            raise PreconditionFailed("Only accepted swaps can be confirmed.")

        row = _request_row(item, requester_id)
        if actor_id == item.owner_id:
            row.owner_confirmed = True
        else:
            row.requester_confirmed = True
        session.flush()

        if row.owner_confirmed and row.requester_confirmed:
            check_complete(item, item.owner_id, requester_id)
            return _finalize(session, item, requester_id)
    logger.info("Swap confirmation: item %d by %s", item_id, actor_id)
    return None


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------
def incoming_requests(engine, owner_id: str) -> list[SwapRequest]:
    """Pending and accepted requests on the owner's items."""
    with Session(engine) as session:
        rows = list(session.scalars(
            select(SwapRequest)
            .join(SwapItem, SwapItem.id == SwapRequest.item_id)
            .where(SwapItem.owner_id == owner_id)
            .options(joinedload(SwapRequest.item))
            .order_by(SwapRequest.requested_at.desc())
        ).all())
        session.expunge_all()
        return rows


def outgoing_requests(engine, requester_id: str) -> list[SwapRequest]:
    with Session(engine) as session:
        rows = list(session.scalars(
            select(SwapRequest)
            .where(SwapRequest.requester_id == requester_id)
            .options(joinedload(SwapRequest.item))
            .order_by(SwapRequest.requested_at.desc())
        ).all())
        session.expunge_all()
        return rows


def completed_swaps_for(engine, user_id: str) -> list[CompletedSwap]:
    """Completion and withdrawal records where the user is either party."""
    with Session(engine) as session:
        rows = list(session.scalars(
            select(CompletedSwap)
            .where(or_(
                CompletedSwap.owner_id == user_id,
                CompletedSwap.requester_id == user_id,
            ))
            .order_by(CompletedSwap.completed_at.desc(), CompletedSwap.id.desc())
        ).all())
        session.expunge_all()
        return rows
