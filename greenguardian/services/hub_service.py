"""
greenguardian.services.hub_service — Challenges, volunteer events & feed
=========================================================================

Community-hub workflows.  Joining a volunteer event is the central one:
membership, the volunteer profile, reward attribution to every live
related challenge the user has joined, and the event-join ledger entry
all land in one transaction.

Reward entries are keyed so that re-joining (or leave + re-join) never
pays twice::

    event-reward:<event_id>:<challenge_id>:<user_id>
    event-join:<event_id>:<user_id>
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from greenguardian.constants import (
    ACTION_KINDS,
    CHALLENGE_CATEGORIES,
    DEFAULT_AUTHORITY_ROLES,
    EVENT_TYPE_DISPLAY,
    FEED_POINTS_PER_EVENT_HOUR,
    FEED_POINTS_PER_TARGET_ACTION,
    FEED_RECENT_ACTIONS,
)
from greenguardian.database.models import (
    Action,
    ActionType,
    Challenge,
    ChallengeParticipant,
    EventType,
    EventVolunteer,
    NotificationType,
    UserBadge,
    VolunteerEvent,
    VolunteerProfile,
)
from greenguardian.engine.crosslink import (
    related_challenges,
    related_events,
    rewardable_challenges,
)
from greenguardian.engine.ledger import LedgerEvent
from greenguardian.engine.status import (
    ChallengeStatus,
    ChallengeTab,
    EventStatus,
    as_utc,
    challenge_status,
    challenge_tab,
    event_status,
    is_challenge_live,
    utcnow,
)
from greenguardian.errors import NotFoundError, PermissionDenied, PreconditionFailed
from greenguardian.services.ledger_service import apply_and_refresh, get_or_create_user
from greenguardian.services.notification_service import add_notification
from greenguardian.services.settings_service import get_int

logger = logging.getLogger(__name__)

# Ledger types that count toward a challenge badge
BADGE_PROGRESS_TYPES = (ActionType.LOGGED_ACTION.value, ActionType.EVENT_REWARD.value)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------
@dataclass
class JoinResult:
    """Outcome of :func:`join_event`."""

    joined: bool                       # False when already a volunteer
    awarded: list[Action] = field(default_factory=list)
    points: int = 0
    badges: list[UserBadge] = field(default_factory=list)

    @property
    def challenge_ids(self) -> list[int]:
        return [a.challenge_id for a in self.awarded]


@dataclass
class JoinChallengeResult:
    joined: bool
    related_events: list[VolunteerEvent] = field(default_factory=list)


@dataclass
class LogResult:
    action: Action
    badge: UserBadge | None = None


@dataclass(frozen=True, slots=True)
class RelatedRef:
    kind: str       # "challenge" | "event"
    id: int
    title: str


@dataclass
class ActivityItem:
    """One row of the merged activity feed."""

    kind: str       # "challenge" | "event" | "action"
    id: int
    title: str
    description: str
    date: datetime
    status: str
    points: int
    icon: str | None
    color: str | None
    related: list[RelatedRef] = field(default_factory=list)


@dataclass
class VolunteerSummary:
    user_id: str
    total_hours: float
    events_attended: int
    upcoming_event_ids: list[int]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _require_authority(role: str | None, authority_roles: frozenset[str]) -> None:
    if role not in authority_roles:
        raise PermissionDenied("Only government, NGO or school accounts can publish.")


def _load_challenge(session: Session, challenge_id: int) -> Challenge:
    challenge = session.scalar(
        select(Challenge)
        .where(Challenge.id == challenge_id)
        .options(selectinload(Challenge.participants))
    )
    if challenge is None:
        raise NotFoundError(f"Challenge {challenge_id} not found.")
    return challenge


def _load_event(session: Session, event_id: int, *, lock: bool = False) -> VolunteerEvent:
    stmt = (
        select(VolunteerEvent)
        .where(VolunteerEvent.id == event_id)
        .options(selectinload(VolunteerEvent.volunteers))
    )
    if lock:
        # Serialises capacity checks on PostgreSQL; ignored by SQLite.
        stmt = stmt.with_for_update()
    event = session.scalar(stmt)
    if event is None:
        raise NotFoundError(f"Event {event_id} not found.")
    return event


def _all_challenges(session: Session) -> list[Challenge]:
    return list(session.scalars(
        select(Challenge).options(selectinload(Challenge.participants))
    ).all())


def _all_events(session: Session) -> list[VolunteerEvent]:
    return list(session.scalars(
        select(VolunteerEvent)
        .options(selectinload(VolunteerEvent.volunteers))
        .order_by(VolunteerEvent.date)
    ).all())


def _refresh_volunteer_profile(
    session: Session, user_id: str, now: datetime
) -> VolunteerProfile:
    """Recompute attended events and hours from past joined events."""
    profile = session.get(VolunteerProfile, user_id)
    if profile is None:
        profile = VolunteerProfile(user_id=user_id, total_hours=0.0, events_attended=0)
        session.add(profile)
    past = session.execute(
        select(func.count(), func.coalesce(func.sum(VolunteerEvent.duration), 0.0))
        .select_from(EventVolunteer)
        .join(VolunteerEvent, VolunteerEvent.id == EventVolunteer.event_id)
        .where(EventVolunteer.user_id == user_id, VolunteerEvent.date <= now)
    ).one()
    profile.events_attended = int(past[0])
    profile.total_hours = float(past[1])
    session.flush()
    return profile


def _badge_progress(session: Session, user_id: str, challenge_id: int) -> int:
    return session.scalar(
        select(func.count())
        .select_from(Action)
        .where(
            Action.user_id == user_id,
            Action.challenge_id == challenge_id,
            Action.action_type.in_(BADGE_PROGRESS_TYPES),
        )
    ) or 0


def _maybe_award_badge(
    session: Session, challenge: Challenge, user_id: str
) -> UserBadge | None:
    """Award *challenge*'s badge once progress reaches its target."""
    if session.get(UserBadge, (user_id, challenge.id)) is not None:
        return None
    if _badge_progress(session, user_id, challenge.id) < challenge.target_actions:
        return None

    badge = UserBadge(
        user_id=user_id,
        challenge_id=challenge.id,
        badge_name=challenge.badge_name,
        badge_icon=challenge.badge_icon,
        badge_color=challenge.badge_color,
        earned_at=utcnow(),
    )
    try:
        with session.begin_nested():
            session.add(badge)
            session.flush()
    except IntegrityError:
        return None

    apply_and_refresh(session, [LedgerEvent(
        user_id=user_id,
        action_type=ActionType.BADGE_EARNED,
        source_event_id=f"badge:{challenge.id}:{user_id}",
        category=challenge.category,
        description=f"Earned badge: {challenge.badge_name}",
        challenge_id=challenge.id,
    )])
    add_notification(
        session,
        target_user_id=user_id,
        type=NotificationType.ACHIEVEMENT,
        title="Badge earned!",
        message=f"You completed '{challenge.title}' and earned {challenge.badge_name}.",
        action_url="/community-hub",
        metadata={"challenge_id": challenge.id},
    )
    logger.info("Badge %r awarded to %s", challenge.badge_name, user_id)
    return badge


# ---------------------------------------------------------------------------
# Publishing
# ---------------------------------------------------------------------------
def create_challenge(
    engine,
    creator_id: str,
    creator_name: str,
    creator_role: str,
    *,
    title: str,
    category: str,
    badge_name: str,
    description: str = "",
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    target_actions: int = 10,
    badge_icon: str | None = None,
    badge_color: str = "#4CAF50",
    is_active: bool = True,
    authority_roles: frozenset[str] = DEFAULT_AUTHORITY_ROLES,
) -> Challenge:
    _require_authority(creator_role, authority_roles)
    if not title.strip():
        raise PreconditionFailed("Title is required.")
    if category not in CHALLENGE_CATEGORIES:
        raise PreconditionFailed(f"Unknown challenge category: {category}")
    if target_actions < 1:
        raise PreconditionFailed("Target actions must be at least 1.")
    if start_date and end_date and as_utc(end_date) < as_utc(start_date):
        raise PreconditionFailed("End date must not precede start date.")

    with Session(engine, expire_on_commit=False) as session:
        get_or_create_user(session, creator_id, creator_name, role=creator_role)
        challenge = Challenge(
            title=title.strip(),
            description=description,
            category=category,
            start_date=start_date,
            end_date=end_date,
            target_actions=target_actions,
            badge_name=badge_name,
            badge_icon=badge_icon,
            badge_color=badge_color,
            is_active=is_active,
            created_by=creator_id,
            participants=[],
            created_at=utcnow(),
        )
        session.add(challenge)
        session.commit()
    logger.info("Challenge %d (%s) created by %s", challenge.id, category, creator_id)
    return challenge


def create_event(
    engine,
    creator_id: str,
    creator_name: str,
    creator_role: str,
    *,
    title: str,
    type: str,
    date: datetime,
    description: str = "",
    time: str | None = None,
    location: str = "",
    address: str = "",
    duration: float = 2.0,
    difficulty: str = "easy",
    max_volunteers: int = 20,
    organizer_name: str | None = None,
    organizer_email: str | None = None,
    authority_roles: frozenset[str] = DEFAULT_AUTHORITY_ROLES,
) -> VolunteerEvent:
    _require_authority(creator_role, authority_roles)
    if not title.strip():
        raise PreconditionFailed("Title is required.")
    try:
        event_type = EventType(type)
    except ValueError:
        raise PreconditionFailed(f"Unknown event type: {type}") from None
    if max_volunteers < 1:
        raise PreconditionFailed("An event needs room for at least one volunteer.")
    if duration <= 0:
        raise PreconditionFailed("Duration must be positive.")

    with Session(engine, expire_on_commit=False) as session:
        get_or_create_user(session, creator_id, creator_name, role=creator_role)
        event = VolunteerEvent(
            title=title.strip(),
            description=description,
            type=event_type.value,
            date=date,
            time=time,
            location=location,
            address=address,
            duration=duration,
            difficulty=difficulty,
            max_volunteers=max_volunteers,
            organizer_name=organizer_name or creator_name,
            organizer_email=organizer_email,
            created_by=creator_id,
            volunteers=[],
            created_at=utcnow(),
        )
        session.add(event)
        session.commit()
    logger.info("Event %d (%s) created by %s", event.id, event.type, creator_id)
    return event


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_challenge(engine, challenge_id: int) -> Challenge:
    with Session(engine) as session:
        challenge = _load_challenge(session, challenge_id)
        session.expunge_all()
        return challenge


def get_event(engine, event_id: int) -> VolunteerEvent:
    with Session(engine) as session:
        event = _load_event(session, event_id)
        session.expunge_all()
        return event


def list_challenges(
    engine, tab: ChallengeTab | None = None, *, now: datetime | None = None
) -> list[Challenge]:
    """Challenges in *tab* (all when None), newest start first."""
    now = now or utcnow()
    with Session(engine) as session:
        recent_days = get_int(session, "challenges.recent_completed_days", 30)
        rows = _all_challenges(session)
        session.expunge_all()
    if tab is not None:
        rows = [
            c for c in rows
            if challenge_tab(now, c.start_date, c.end_date, recent_days=recent_days) is tab
        ]
    rows.sort(key=lambda c: as_utc(c.start_date or c.created_at) or now, reverse=True)
    return rows


def list_events(
    engine, *, upcoming_only: bool = False, now: datetime | None = None
) -> list[VolunteerEvent]:
    now = now or utcnow()
    with Session(engine) as session:
        rows = _all_events(session)
        session.expunge_all()
    if upcoming_only:
        rows = [e for e in rows if event_status(now, e.date) is EventStatus.UPCOMING]
    return rows


def events_for_challenge(engine, challenge_id: int) -> list[VolunteerEvent]:
    with Session(engine) as session:
        challenge = _load_challenge(session, challenge_id)
        events = related_events(challenge, _all_events(session))
        session.expunge_all()
        return events


def challenges_for_event(engine, event_id: int) -> list[Challenge]:
    with Session(engine) as session:
        event = _load_event(session, event_id)
        challenges = related_challenges(event, _all_challenges(session))
        session.expunge_all()
        return challenges


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------
def join_challenge(
    engine,
    challenge_id: int,
    user_id: str,
    display_name: str,
    *,
    now: datetime | None = None,
) -> JoinChallengeResult:
    """Add the user to the challenge (idempotent) and return related events."""
    now = now or utcnow()
    with Session(engine, expire_on_commit=False) as session:
        challenge = _load_challenge(session, challenge_id)
        if not challenge.is_active:
            raise PreconditionFailed("This challenge is not open.")
        if challenge_status(now, challenge.start_date, challenge.end_date) is ChallengeStatus.COMPLETED:
            raise PreconditionFailed("This challenge has already ended.")

        joined = user_id not in challenge.participant_ids
        if joined:
            get_or_create_user(session, user_id, display_name)
            challenge.participants.append(
                ChallengeParticipant(user_id=user_id, joined_at=now)
            )
            session.flush()
            apply_and_refresh(session, [LedgerEvent(
                user_id=user_id,
                action_type=ActionType.CHALLENGE_JOINED,
                source_event_id=f"challenge-join:{challenge.id}:{user_id}",
                points=get_int(session, "rewards.challenge_join_points", 0),
                category=challenge.category,
                description=f"Joined challenge: {challenge.title}",
                challenge_id=challenge.id,
                timestamp=now,
            )])

        events = related_events(challenge, _all_events(session))
        session.commit()

    if joined:
        logger.info("%s joined challenge %d", user_id, challenge_id)
    return JoinChallengeResult(joined=joined, related_events=events)


def join_event(
    engine,
    event_id: int,
    user_id: str,
    display_name: str,
    *,
    now: datetime | None = None,
) -> JoinResult:
    """Join a volunteer event and attribute rewards, all in one transaction."""
    now = now or utcnow()
    with Session(engine, expire_on_commit=False) as session:
        event = _load_event(session, event_id, lock=True)
        joined = user_id not in event.volunteer_ids
        if joined and len(event.volunteers) >= event.max_volunteers:
            raise PreconditionFailed("This event is full.")

        get_or_create_user(session, user_id, display_name)
        if joined:
            event.volunteers.append(EventVolunteer(user_id=user_id, joined_at=now))
            session.flush()
        _refresh_volunteer_profile(session, user_id, now)

        points = get_int(session, "rewards.volunteer_event_points", 50)
        matches = rewardable_challenges(event, _all_challenges(session), user_id, now)
        ledger = [
            LedgerEvent(
                user_id=user_id,
                action_type=ActionType.EVENT_REWARD,
                source_event_id=f"event-reward:{event.id}:{c.id}:{user_id}",
                points=points,
                category=c.category,
                description=f"Joined volunteer event: {event.title}",
                challenge_id=c.id,
                event_id=event.id,
                metadata={"source": "volunteer-event"},
                timestamp=now,
            )
            for c in matches
        ]
        ledger.append(LedgerEvent(
            user_id=user_id,
            action_type=ActionType.EVENT_JOINED,
            source_event_id=f"event-join:{event.id}:{user_id}",
            category=event.type,
            description=f"Joined volunteer event: {event.title}",
            event_id=event.id,
            timestamp=now,
        ))
        written = apply_and_refresh(session, ledger)
        awarded = [
            a for a in written if a.action_type == ActionType.EVENT_REWARD.value
        ]

        badges = []
        for challenge in matches:
            badge = _maybe_award_badge(session, challenge, user_id)
            if badge is not None:
                badges.append(badge)

        if awarded:
            add_notification(
                session,
                target_user_id=user_id,
                type=NotificationType.CHALLENGE,
                title="Challenge progress",
                message=(
                    f"You earned {points * len(awarded)} points in "
                    f"{len(awarded)} related challenge(s)."
                ),
                action_url="/community-hub",
                metadata={"event_id": event.id},
            )
        session.commit()

    result = JoinResult(
        joined=joined,
        awarded=awarded,
        points=sum(a.points for a in awarded),
        badges=badges,
    )
    logger.info(
        "%s joined event %d (new=%s, rewards=%d)",
        user_id, event_id, joined, len(awarded),
    )
    return result


def leave_event(engine, event_id: int, user_id: str, *, now: datetime | None = None) -> bool:
    """Remove the user from the event's volunteers.  Returns False if absent.

    Ledger entries already written stay; re-joining does not pay again.
    """
    now = now or utcnow()
    with Session(engine) as session:
        event = _load_event(session, event_id)
        row = next((v for v in event.volunteers if v.user_id == user_id), None)
        if row is None:
            return False
        event.volunteers.remove(row)
        session.flush()
        _refresh_volunteer_profile(session, user_id, now)
        session.commit()
    logger.info("%s left event %d", user_id, event_id)
    return True


# ---------------------------------------------------------------------------
# Action logging
# ---------------------------------------------------------------------------
def log_action(
    engine,
    user_id: str,
    display_name: str,
    *,
    kind: str,
    description: str,
    quantity: int = 1,
    challenge_id: int | None = None,
    client_action_id: str | None = None,
    now: datetime | None = None,
) -> LogResult:
    """Record an eco-action.  Tagged to *challenge_id* when given, which must
    be joined and live; reaching the target awards the challenge badge.

    *client_action_id* makes a retried submission idempotent.
    """
    if kind not in ACTION_KINDS:
        raise PreconditionFailed(f"Unknown action type: {kind}")
    if quantity < 1:
        raise PreconditionFailed("Quantity must be at least 1.")
    if not description.strip():
        raise PreconditionFailed("Description is required.")

    label, per_unit, category, impact = ACTION_KINDS[kind]
    now = now or utcnow()
    with Session(engine, expire_on_commit=False) as session:
        get_or_create_user(session, user_id, display_name)

        challenge = None
        if challenge_id is not None:
            challenge = _load_challenge(session, challenge_id)
            if user_id not in challenge.participant_ids:
                raise PreconditionFailed("Join the challenge before logging actions for it.")
            if not is_challenge_live(challenge, now):
                raise PreconditionFailed("This challenge is not active.")
            category = challenge.category

        event = LedgerEvent(
            user_id=user_id,
            action_type=ActionType.LOGGED_ACTION,
            source_event_id=f"action:{user_id}:{client_action_id or uuid.uuid4().hex}",
            points=per_unit * quantity,
            category=category,
            description=description.strip(),
            challenge_id=challenge_id,
            metadata={
                "kind": kind,
                "label": label,
                "quantity": quantity,
                "impact": {k: v * quantity for k, v in impact.items()},
            },
            timestamp=now,
        )
        written = apply_and_refresh(session, [event])
        if written:
            action = written[0]
        else:
            action = session.scalar(
                select(Action).where(Action.source_event_id == event.source_event_id)
            )
        badge = _maybe_award_badge(session, challenge, user_id) if challenge else None
        session.commit()

    logger.info("%s logged %s ×%d (+%d)", user_id, kind, quantity, action.points)
    return LogResult(action=action, badge=badge)


# ---------------------------------------------------------------------------
# Profile & feed
# ---------------------------------------------------------------------------
def volunteer_summary(engine, user_id: str, *, now: datetime | None = None) -> VolunteerSummary:
    now = now or utcnow()
    with Session(engine) as session:
        profile = session.get(VolunteerProfile, user_id)
        upcoming = session.scalars(
            select(EventVolunteer.event_id)
            .join(VolunteerEvent, VolunteerEvent.id == EventVolunteer.event_id)
            .where(EventVolunteer.user_id == user_id, VolunteerEvent.date > now)
            .order_by(VolunteerEvent.date)
        ).all()
        return VolunteerSummary(
            user_id=user_id,
            total_hours=profile.total_hours if profile else 0.0,
            events_attended=profile.events_attended if profile else 0,
            upcoming_event_ids=list(upcoming),
        )


def user_badges(engine, user_id: str) -> list[UserBadge]:
    with Session(engine) as session:
        rows = list(session.scalars(
            select(UserBadge)
            .where(UserBadge.user_id == user_id)
            .order_by(UserBadge.earned_at.desc())
        ).all())
        session.expunge_all()
        return rows


def activity_feed(engine, user_id: str, *, now: datetime | None = None) -> list[ActivityItem]:
    """The user's challenges, events and recent actions, newest first, each
    with its cross-linked counterparts."""
    now = now or utcnow()
    items: list[ActivityItem] = []
    with Session(engine) as session:
        challenges = _all_challenges(session)
        events = _all_events(session)
        actions = session.scalars(
            select(Action)
            .where(
                Action.user_id == user_id,
                Action.action_type.in_((
                    ActionType.LOGGED_ACTION.value, ActionType.EVENT_REWARD.value,
                )),
            )
            .order_by(Action.timestamp.desc(), Action.id.desc())
            .limit(FEED_RECENT_ACTIONS)
        ).all()
        titles = {c.id: c.title for c in challenges}

        for c in challenges:
            if user_id not in c.participant_ids:
                continue
            items.append(ActivityItem(
                kind="challenge",
                id=c.id,
                title=c.title,
                description=c.description,
                date=as_utc(c.start_date or c.created_at),
                status=challenge_status(now, c.start_date, c.end_date).value,
                points=c.target_actions * FEED_POINTS_PER_TARGET_ACTION,
                icon=c.badge_icon,
                color=c.badge_color,
                related=[RelatedRef("event", e.id, e.title) for e in related_events(c, events)],
            ))

        for e in events:
            if user_id not in e.volunteer_ids:
                continue
            _label, icon, color = EVENT_TYPE_DISPLAY.get(
                e.type, (e.type, "fas fa-calendar", "#999999")
            )
            items.append(ActivityItem(
                kind="event",
                id=e.id,
                title=e.title,
                description=e.description,
                date=as_utc(e.date),
                status=event_status(now, e.date).value,
                points=round(e.duration * FEED_POINTS_PER_EVENT_HOUR),
                icon=icon,
                color=color,
                related=[
                    RelatedRef("challenge", c.id, c.title)
                    for c in related_challenges(e, challenges)
                ],
            ))

        for a in actions:
            items.append(ActivityItem(
                kind="action",
                id=a.id,
                title=a.description or "Action Logged",
                description=a.category or "",
                date=as_utc(a.timestamp),
                status="completed",
                points=a.points,
                icon="fas fa-check-circle",
                color="#4CAF50",
                related=(
                    [RelatedRef("challenge", a.challenge_id, titles.get(a.challenge_id, ""))]
                    if a.challenge_id is not None else []
                ),
            ))

    items.sort(key=lambda i: i.date, reverse=True)
    return items
