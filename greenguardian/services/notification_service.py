"""
greenguardian.services.notification_service — Per-user notifications
======================================================================

Notifications are addressed to exactly one target user and listed by an
equality filter on ``target_user_id``.  Only the target may flip ``read``.

:func:`add_notification` takes an open session so workflows (swap
request, accept, completion) can notify inside their own transaction;
the engine-level functions open their own.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from greenguardian.database.models import Notification, NotificationType
from greenguardian.engine.status import utcnow
from greenguardian.errors import NotFoundError, PermissionDenied
from greenguardian.services.settings_service import get_int

logger = logging.getLogger(__name__)


def add_notification(
    session: Session,
    *,
    target_user_id: str,
    type: NotificationType | str,
    title: str,
    message: str = "",
    actor_id: str | None = None,
    action_url: str | None = None,
    metadata: dict | None = None,
) -> Notification:
    """Stage a notification in *session* (caller commits)."""
    note = Notification(
        target_user_id=target_user_id,
        actor_id=actor_id,
        type=NotificationType(type).value,
        title=title,
        message=message,
        action_url=action_url,
        metadata_=metadata or None,
        timestamp=utcnow(),
    )
    session.add(note)
    return note


def notify(engine, **fields) -> Notification:
    """Create and commit one notification.  Keyword arguments as for
    :func:`add_notification`."""
    with Session(engine, expire_on_commit=False) as session:
        note = add_notification(session, **fields)
        session.commit()
    logger.info("Notified %s (%s)", note.target_user_id, note.type)
    return note


def list_notifications(
    engine, target_user_id: str, *, unread_only: bool = False, limit: int | None = None
) -> list[Notification]:
    """The target's notifications, newest first."""
    with Session(engine) as session:
        if limit is None:
            limit = get_int(session, "notifications.max_listed", 100)
        stmt = select(Notification).where(Notification.target_user_id == target_user_id)
        if unread_only:
            stmt = stmt.where(Notification.read.is_(False))
        rows = session.scalars(
            stmt.order_by(Notification.timestamp.desc(), Notification.id.desc()).limit(limit)
        ).all()
        for r in rows:
            session.expunge(r)
        return list(rows)


def unread_count(engine, target_user_id: str) -> int:
    with Session(engine) as session:
        return session.scalar(
            select(func.count())
            .select_from(Notification)
            .where(
                Notification.target_user_id == target_user_id,
                Notification.read.is_(False),
            )
        ) or 0


def mark_read(engine, notification_id: int, actor_id: str) -> Notification:
    """Mark one notification read.  Raises :class:`PermissionDenied` unless
    *actor_id* is its target."""
    with Session(engine, expire_on_commit=False) as session:
        note = session.get(Notification, notification_id)
        if note is None:
            raise NotFoundError(f"Notification {notification_id} not found.")
        if note.target_user_id != actor_id:
            raise PermissionDenied("You can only update your own notifications.")
        note.read = True
        session.commit()
    return note


def mark_all_read(engine, target_user_id: str) -> int:
    """Flip every unread notification of the target in one UPDATE.

    Returns the number of rows changed.
    """
    with Session(engine) as session:
        result = session.execute(
            update(Notification)
            .where(
                Notification.target_user_id == target_user_id,
                Notification.read.is_(False),
            )
            .values(read=True)
        )
        session.commit()
    logger.info("Marked %d notifications read for %s", result.rowcount, target_user_id)
    return result.rowcount
