"""
greenguardian.api.routes.hub — Challenges, volunteer events & activity
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
from greenguardian.database.models import Action, Challenge, VolunteerEvent
from greenguardian.engine.status import ChallengeTab, challenge_status, event_status, utcnow
from greenguardian.services import hub_service, ledger_service

router = APIRouter(tags=["hub"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class ChallengeCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = ""
    category: str
    start_date: datetime | None = None
    end_date: datetime | None = None
    target_actions: int = Field(10, ge=1)
    badge_name: str = Field(min_length=1, max_length=100)
    badge_icon: str | None = None
    badge_color: str = "#4CAF50"
    is_active: bool = True


class EventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = ""
    type: str
    date: datetime
    time: str | None = None
    location: str = ""
    address: str = ""
    duration: float = Field(2.0, gt=0)
    difficulty: str = "easy"
    max_volunteers: int = Field(20, ge=1)
    organizer_name: str | None = None
    organizer_email: str | None = None


class ActionLog(BaseModel):
    kind: str
    description: str = Field(min_length=1)
    quantity: int = Field(1, ge=1, le=1000)
    challenge_id: int | None = None
    client_action_id: str | None = Field(None, max_length=64)


# ---------------------------------------------------------------------------
# Serialisers
# ---------------------------------------------------------------------------
def _iso(value):
    return value.isoformat() if value else None


def _challenge_dict(c: Challenge, now: datetime) -> dict:
    return {
        "id": c.id,
        "title": c.title,
        "description": c.description,
        "category": c.category,
        "start_date": _iso(c.start_date),
        "end_date": _iso(c.end_date),
        "status": challenge_status(now, c.start_date, c.end_date).value,
        "target_actions": c.target_actions,
        "badge": {"name": c.badge_name, "icon": c.badge_icon, "color": c.badge_color},
        "is_active": c.is_active,
        "participants": sorted(c.participant_ids),
        "created_by": c.created_by,
    }


def _event_dict(e: VolunteerEvent, now: datetime) -> dict:
    return {
        "id": e.id,
        "title": e.title,
        "description": e.description,
        "type": e.type,
        "date": _iso(e.date),
        "time": e.time,
        "status": event_status(now, e.date).value,
        "location": e.location,
        "address": e.address,
        "duration": e.duration,
        "difficulty": e.difficulty,
        "max_volunteers": e.max_volunteers,
        "volunteers": sorted(e.volunteer_ids),
        "organizer": {"name": e.organizer_name, "email": e.organizer_email},
        "created_by": e.created_by,
    }


def _action_dict(a: Action) -> dict:
    return {
        "id": a.id,
        "action_type": a.action_type,
        "points": a.points,
        "category": a.category,
        "description": a.description,
        "challenge_id": a.challenge_id,
        "event_id": a.event_id,
        "timestamp": _iso(a.timestamp),
    }


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------
@router.get("/challenges")
def list_challenges(
    tab: ChallengeTab | None = Query(None),
    engine=Depends(get_engine),
):
    now = utcnow()
    rows = hub_service.list_challenges(engine, tab, now=now)
    return {"challenges": [_challenge_dict(c, now) for c in rows]}


@router.post("/challenges", status_code=201)
def create_challenge(
    body: ChallengeCreate,
    user: CurrentUser = Depends(require_authority),
    cfg: GreenGuardianConfig = Depends(get_config),
    engine=Depends(get_engine),
):
    c = hub_service.create_challenge(
        engine, user.id, user.display_name, user.role,
        authority_roles=cfg.authority_roles, **body.model_dump(),
    )
    return _challenge_dict(c, utcnow())


@router.get("/challenges/{challenge_id}")
def get_challenge(challenge_id: int, engine=Depends(get_engine)):
    now = utcnow()
    c = hub_service.get_challenge(engine, challenge_id)
    related = hub_service.events_for_challenge(engine, challenge_id)
    return {
        **_challenge_dict(c, now),
        "related_events": [_event_dict(e, now) for e in related],
    }


@router.post("/challenges/{challenge_id}/join")
def join_challenge(
    challenge_id: int,
    user: CurrentUser = Depends(get_current_user),
    engine=Depends(get_engine),
):
    now = utcnow()
    result = hub_service.join_challenge(
        engine, challenge_id, user.id, user.display_name, now=now,
    )
    return {
        "joined": result.joined,
        "related_events": [_event_dict(e, now) for e in result.related_events],
    }


# ---------------------------------------------------------------------------
# Volunteer events
# ---------------------------------------------------------------------------
@router.get("/events")
def list_events(
    upcoming: bool = Query(False),
    engine=Depends(get_engine),
):
    now = utcnow()
    rows = hub_service.list_events(engine, upcoming_only=upcoming, now=now)
    return {"events": [_event_dict(e, now) for e in rows]}


@router.post("/events", status_code=201)
def create_event(
    body: EventCreate,
    user: CurrentUser = Depends(require_authority),
    cfg: GreenGuardianConfig = Depends(get_config),
    engine=Depends(get_engine),
):
    e = hub_service.create_event(
        engine, user.id, user.display_name, user.role,
        authority_roles=cfg.authority_roles, **body.model_dump(),
    )
    return _event_dict(e, utcnow())


@router.get("/events/{event_id}")
def get_event(event_id: int, engine=Depends(get_engine)):
    now = utcnow()
    e = hub_service.get_event(engine, event_id)
    related = hub_service.challenges_for_event(engine, event_id)
    return {
        **_event_dict(e, now),
        "related_challenges": [_challenge_dict(c, now) for c in related],
    }


@router.post("/events/{event_id}/join")
def join_event(
    event_id: int,
    user: CurrentUser = Depends(get_current_user),
    engine=Depends(get_engine),
):
    result = hub_service.join_event(engine, event_id, user.id, user.display_name)
    return {
        "joined": result.joined,
        "points": result.points,
        "challenge_ids": result.challenge_ids,
        "badges": [b.badge_name for b in result.badges],
    }


@router.post("/events/{event_id}/leave")
def leave_event(
    event_id: int,
    user: CurrentUser = Depends(get_current_user),
    engine=Depends(get_engine),
):
    return {"left": hub_service.leave_event(engine, event_id, user.id)}


# ---------------------------------------------------------------------------
# Actions, profile & feed
# ---------------------------------------------------------------------------
@router.post("/actions", status_code=201)
def log_action(
    body: ActionLog,
    user: CurrentUser = Depends(get_current_user),
    engine=Depends(get_engine),
):
    result = hub_service.log_action(
        engine, user.id, user.display_name, **body.model_dump(),
    )
    return {
        "action": _action_dict(result.action),
        "badge": result.badge.badge_name if result.badge else None,
    }


@router.get("/me/stats")
def my_stats(
    user: CurrentUser = Depends(get_current_user),
    engine=Depends(get_engine),
):
    stats = ledger_service.get_user_stats(engine, user.id)
    volunteer = hub_service.volunteer_summary(engine, user.id)
    badges = hub_service.user_badges(engine, user.id)
    return {
        "total_actions": stats.total_actions if stats else 0,
        "total_points": stats.total_points if stats else 0,
        "items_swapped": stats.items_swapped if stats else 0,
        "events_joined": stats.events_joined if stats else 0,
        "challenges_joined": stats.challenges_joined if stats else 0,
        "badges_earned": stats.badges_earned if stats else 0,
        "volunteer": {
            "total_hours": volunteer.total_hours,
            "events_attended": volunteer.events_attended,
            "upcoming_events": volunteer.upcoming_event_ids,
        },
        "badges": [
            {
                "challenge_id": b.challenge_id,
                "name": b.badge_name,
                "icon": b.badge_icon,
                "color": b.badge_color,
                "earned_at": _iso(b.earned_at),
            }
            for b in badges
        ],
    }


@router.get("/me/activity")
def my_activity(
    user: CurrentUser = Depends(get_current_user),
    engine=Depends(get_engine),
):
    items = hub_service.activity_feed(engine, user.id)
    return {
        "activities": [
            {
                "kind": i.kind,
                "id": i.id,
                "title": i.title,
                "description": i.description,
                "date": _iso(i.date),
                "status": i.status,
                "points": i.points,
                "icon": i.icon,
                "color": i.color,
                "related": [
                    {"kind": r.kind, "id": r.id, "title": r.title} for r in i.related
                ],
            }
            for i in items
        ]
    }
