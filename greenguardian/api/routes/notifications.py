"""
greenguardian.api.routes.notifications — Notifications & announcements
=======================================================================
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from greenguardian.api.deps import (
    CurrentUser,
    get_config,
    get_current_user,
    get_engine,
    require_authority,
)
from greenguardian.config import GreenGuardianConfig
from greenguardian.database.models import Announcement, AnnouncementPriority, Notification
from greenguardian.services import announcement_service, notification_service

router = APIRouter(tags=["notifications"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class AnnouncementCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1)
    priority: AnnouncementPriority = AnnouncementPriority.MEDIUM
    expires_at: datetime | None = None


def _notification_dict(n: Notification) -> dict:
    return {
        "id": n.id,
        "type": n.type,
        "title": n.title,
        "message": n.message,
        "actor_id": n.actor_id,
        "read": n.read,
        "action_url": n.action_url,
        "metadata": n.metadata_ or {},
        "timestamp": n.timestamp.isoformat() if n.timestamp else None,
    }


def _announcement_dict(a: Announcement) -> dict:
    return {
        "id": a.id,
        "title": a.title,
        "message": a.message,
        "priority": a.priority,
        "created_by": a.created_by,
        "created_at": a.created_at.isoformat() if a.created_at else None,
        "expires_at": a.expires_at.isoformat() if a.expires_at else None,
    }


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------
@router.get("/notifications")
def list_notifications(
    unread: bool = Query(False),
    user: CurrentUser = Depends(get_current_user),
    engine=Depends(get_engine),
):
    rows = notification_service.list_notifications(engine, user.id, unread_only=unread)
    return {
        "notifications": [_notification_dict(n) for n in rows],
        "unread_count": notification_service.unread_count(engine, user.id),
    }


@router.post("/notifications/{notification_id}/read")
def mark_read(
    notification_id: int,
    user: CurrentUser = Depends(get_current_user),
    engine=Depends(get_engine),
):
    note = notification_service.mark_read(engine, notification_id, user.id)
    return _notification_dict(note)


@router.post("/notifications/read-all")
def mark_all_read(
    user: CurrentUser = Depends(get_current_user),
    engine=Depends(get_engine),
):
    return {"updated": notification_service.mark_all_read(engine, user.id)}


# ---------------------------------------------------------------------------
# Global announcements
# ---------------------------------------------------------------------------
@router.get("/announcements")
def list_announcements(engine=Depends(get_engine)):
    rows = announcement_service.active_announcements(engine)
    return {"announcements": [_announcement_dict(a) for a in rows]}


@router.post("/announcements", status_code=201)
def create_announcement(
    body: AnnouncementCreate,
    user: CurrentUser = Depends(require_authority),
    cfg: GreenGuardianConfig = Depends(get_config),
    engine=Depends(get_engine),
):
    row = announcement_service.create_announcement(
        engine, user.id, user.role,
        title=body.title,
        message=body.message,
        priority=body.priority,
        expires_at=body.expires_at,
        authority_roles=cfg.authority_roles,
    )
    return _announcement_dict(row)
