"""
greenguardian.services.announcement_service — Global announcements
===================================================================

Community-wide banners published by authority accounts.  An announcement
is shown until ``expires_at`` (default: ``announcements.default_expiry_days``
after creation); listings put the highest priority first, then the newest.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from greenguardian.constants import DEFAULT_AUTHORITY_ROLES, PRIORITY_ORDER
from greenguardian.database.models import Announcement, AnnouncementPriority
from greenguardian.engine.status import as_utc, utcnow
from greenguardian.errors import PermissionDenied, PreconditionFailed
from greenguardian.services.settings_service import get_int

logger = logging.getLogger(__name__)


def create_announcement(
    engine,
    creator_id: str,
    creator_role: str,
    *,
    title: str,
    message: str,
    priority: str = AnnouncementPriority.MEDIUM,
    expires_at: datetime | None = None,
    now: datetime | None = None,
    authority_roles: frozenset[str] = DEFAULT_AUTHORITY_ROLES,
) -> Announcement:
    if creator_role not in authority_roles:
        raise PermissionDenied("Only authority accounts can post announcements.")
    if not title.strip() or not message.strip():
        raise PreconditionFailed("Title and message are required.")
    try:
        level = AnnouncementPriority(priority)
    except ValueError:
        raise PreconditionFailed(f"Unknown priority: {priority}") from None

    now = now or utcnow()
    with Session(engine, expire_on_commit=False) as session:
        if expires_at is None:
            days = get_int(session, "announcements.default_expiry_days", 7)
            expires_at = now + timedelta(days=days)
        row = Announcement(
            title=title.strip(),
            message=message.strip(),
            priority=level.value,
            created_by=creator_id,
            created_at=now,
            expires_at=expires_at,
        )
        session.add(row)
        session.commit()
    logger.info("Announcement %d (%s) posted by %s", row.id, row.priority, creator_id)
    return row


def active_announcements(engine, *, now: datetime | None = None) -> list[Announcement]:
    """Unexpired announcements, critical first, then newest."""
    now = now or utcnow()
    with Session(engine) as session:
        rows = list(session.scalars(
            select(Announcement).where(or_(
                Announcement.expires_at.is_(None), Announcement.expires_at > now
            ))
        ).all())
        session.expunge_all()
    rows.sort(
        key=lambda a: (PRIORITY_ORDER.get(a.priority, 0), as_utc(a.created_at)),
        reverse=True,
    )
    return rows
