"""
greenguardian.database.models — SQLAlchemy 2.0 Data Models
===========================================================

Relational layout for the community backend.  Membership lists
(swap requests, challenge participants, event volunteers) are association
tables with composite primary keys, so a member can appear at most once per parent row.

Tables:
- users                  — Community members (auth-provider uid PK)
- swap_items             — Swap marketplace listings
- swap_requests          — Pending / accepted requests per (item, requester)
- completed_swaps        — Immutable completion / withdrawal snapshots
- challenges             — Time-boxed eco-action campaigns
- challenge_participants — Append-only challenge membership
- volunteer_events       — Capacity-bounded in-person activities
- event_volunteers       — Event membership (join / leave)
- volunteer_profiles     — Per-user volunteering counters
- user_badges            — Challenge badges earned
- actions                — Append-only reward ledger with idempotent insert
- user_stats             — Counters materialised from the ledger
- user_presence          — Heartbeat records
- notifications          — Per-target-user notifications
- announcements          — Global announcements with expiry
- settings               — Admin-configurable key-value store
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all GreenGuardian ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class UserRole(enum.StrEnum):
    CITIZEN = "citizen"
    GOVERNMENT = "government"
    NGO = "ngo"
    SCHOOL = "school"
    PARTNER = "partner"


class SwapRequestStatus(enum.StrEnum):
    """Live states of a (item, requester) pair.  NONE is the absence of a row."""
    PENDING = "pending"
    ACCEPTED = "accepted"


class SwapOutcome(enum.StrEnum):
    """Terminal outcomes recorded in completed_swaps."""
    COMPLETED = "completed"
    WITHDRAWN = "withdrawn"


class EventType(enum.StrEnum):
    CLEANUP = "cleanup"
    TREE_PLANTING = "tree-planting"
    WORKSHOP = "workshop"
    COMMUNITY_SERVICE = "community-service"


class ActionType(enum.StrEnum):
    """Every entry type that flows through the reward ledger."""
    EVENT_JOINED = "EVENT_JOINED"
    EVENT_REWARD = "EVENT_REWARD"
    CHALLENGE_JOINED = "CHALLENGE_JOINED"
    SWAP_COMPLETED = "SWAP_COMPLETED"
    LOGGED_ACTION = "LOGGED_ACTION"
    BADGE_EARNED = "BADGE_EARNED"


class NotificationType(enum.StrEnum):
    MESSAGE = "message"
    LIKE = "like"
    REPLY = "reply"
    MENTION = "mention"
    ACHIEVEMENT = "achievement"
    CHALLENGE = "challenge"
    SWAP = "swap"


class AnnouncementPriority(enum.StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), default=None)
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=UserRole.CITIZEN.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    stats: Mapped[UserStats | None] = relationship(
        back_populates="user", uselist=False, cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<User id={self.id!r} name={self.display_name!r} role={self.role}>"


# ---------------------------------------------------------------------------
# Swap marketplace
# ---------------------------------------------------------------------------
class SwapItem(Base):
    __tablename__ = "swap_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="other")
    condition: Mapped[str] = mapped_column(String(30), nullable=False, default="good")
    estimated_value: Mapped[float] = mapped_column(Float, default=0.0)
    image_url: Mapped[str | None] = mapped_column(String(500), default=None)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)
    swapped_with: Mapped[str | None] = mapped_column(String(128), default=None)
    swapped_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    accepted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    requests: Mapped[list[SwapRequest]] = relationship(
        back_populates="item", cascade="all, delete-orphan",
        order_by="SwapRequest.requested_at",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_swap_items_owner", "owner_id"),
        Index("ix_swap_items_available_category", "is_available", "category"),
    )

    @property
    def swap_requests(self) -> set[str]:
        """Requester ids waiting for an owner decision."""
        return {
            r.requester_id for r in self.requests
            if r.status == SwapRequestStatus.PENDING.value
        }

    @property
    def accepted_requests(self) -> set[str]:
        """Requester ids the owner has approved."""
        return {
            r.requester_id for r in self.requests
            if r.status == SwapRequestStatus.ACCEPTED.value
        }

    def __repr__(self) -> str:
        return (
            f"<SwapItem id={self.id} title={self.title!r} "
            f"available={self.is_available}>"
        )


class SwapRequest(Base):
    """One requester's live request on one item, with the attached offer."""
    __tablename__ = "swap_requests"

    item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("swap_items.id", ondelete="CASCADE"), primary_key=True
    )
    requester_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SwapRequestStatus.PENDING.value
    )
    offer_details: Mapped[str | None] = mapped_column(Text, default=None)
    offer_value: Mapped[float | None] = mapped_column(Float, default=None)
    offer_image: Mapped[str | None] = mapped_column(String(500), default=None)
    owner_confirmed: Mapped[bool] = mapped_column(Boolean, default=False)
    requester_confirmed: Mapped[bool] = mapped_column(Boolean, default=False)
    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    accepted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )

    item: Mapped[SwapItem] = relationship(back_populates="requests")

    __table_args__ = (
        Index("ix_swap_requests_requester", "requester_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<SwapRequest item={self.item_id} requester={self.requester_id!r} "
            f"status={self.status}>"
        )


class CompletedSwap(Base):
    """Immutable snapshot written when a swap completes or an accepted
    request is withdrawn."""
    __tablename__ = "completed_swaps"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_id: Mapped[int] = mapped_column(Integer, nullable=False)
    item_title: Mapped[str] = mapped_column(String(200), nullable=False)
    item_description: Mapped[str] = mapped_column(Text, default="")
    item_category: Mapped[str] = mapped_column(String(50), default="other")
    item_image_url: Mapped[str | None] = mapped_column(String(500), default=None)
    owner_id: Mapped[str] = mapped_column(String(128), nullable=False)
    requester_id: Mapped[str] = mapped_column(String(128), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SwapOutcome.COMPLETED.value
    )
    offer_details: Mapped[str | None] = mapped_column(Text, default=None)
    offer_value: Mapped[float | None] = mapped_column(Float, default=None)
    offer_image: Mapped[str | None] = mapped_column(String(500), default=None)
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        # One successful completion per item
        Index(
            "ix_completed_swaps_item_completed",
            "item_id",
            unique=True,
            postgresql_where=text("status = 'completed'"),
            sqlite_where=text("status = 'completed'"),
        ),
        Index("ix_completed_swaps_owner", "owner_id"),
        Index("ix_completed_swaps_requester", "requester_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<CompletedSwap id={self.id} item={self.item_id} "
            f"requester={self.requester_id!r} status={self.status}>"
        )


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------
class Challenge(Base):
    __tablename__ = "challenges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    start_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    end_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    target_actions: Mapped[int] = mapped_column(Integer, default=10)
    badge_name: Mapped[str] = mapped_column(String(100), nullable=False)
    badge_icon: Mapped[str | None] = mapped_column(String(50), default=None)
    badge_color: Mapped[str] = mapped_column(String(7), default="#4CAF50")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_by: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    participants: Mapped[list[ChallengeParticipant]] = relationship(
        back_populates="challenge", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_challenges_category", "category"),
    )

    @property
    def participant_ids(self) -> set[str]:
        return {p.user_id for p in self.participants}

    def __repr__(self) -> str:
        return f"<Challenge id={self.id} title={self.title!r} category={self.category!r}>"


class ChallengeParticipant(Base):
    __tablename__ = "challenge_participants"

    challenge_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("challenges.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    challenge: Mapped[Challenge] = relationship(back_populates="participants")

    def __repr__(self) -> str:
        return f"<ChallengeParticipant challenge={self.challenge_id} user={self.user_id!r}>"


# ---------------------------------------------------------------------------
# Volunteer events
# ---------------------------------------------------------------------------
class VolunteerEvent(Base):
    __tablename__ = "volunteer_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    time: Mapped[str | None] = mapped_column(String(20), default=None)
    location: Mapped[str] = mapped_column(String(200), default="")
    address: Mapped[str] = mapped_column(String(300), default="")
    duration: Mapped[float] = mapped_column(Float, default=2.0)  # hours
    difficulty: Mapped[str] = mapped_column(String(20), default="easy")
    max_volunteers: Mapped[int] = mapped_column(Integer, default=20)
    organizer_name: Mapped[str] = mapped_column(String(100), default="")
    organizer_email: Mapped[str | None] = mapped_column(String(255), default=None)
    created_by: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    volunteers: Mapped[list[EventVolunteer]] = relationship(
        back_populates="event", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_volunteer_events_date", "date"),
    )

    @property
    def volunteer_ids(self) -> set[str]:
        return {v.user_id for v in self.volunteers}

    def __repr__(self) -> str:
        return f"<VolunteerEvent id={self.id} title={self.title!r} type={self.type!r}>"


class EventVolunteer(Base):
    __tablename__ = "event_volunteers"

    event_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("volunteer_events.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    event: Mapped[VolunteerEvent] = relationship(back_populates="volunteers")

    def __repr__(self) -> str:
        return f"<EventVolunteer event={self.event_id} user={self.user_id!r}>"


class VolunteerProfile(Base):
    __tablename__ = "volunteer_profiles"

    user_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    total_hours: Mapped[float] = mapped_column(Float, default=0.0)
    events_attended: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<VolunteerProfile user={self.user_id!r} hours={self.total_hours}>"


class UserBadge(Base):
    __tablename__ = "user_badges"

    user_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    challenge_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("challenges.id", ondelete="CASCADE"), primary_key=True
    )
    badge_name: Mapped[str] = mapped_column(String(100), nullable=False)
    badge_icon: Mapped[str | None] = mapped_column(String(50), default=None)
    badge_color: Mapped[str] = mapped_column(String(7), default="#4CAF50")
    earned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<UserBadge user={self.user_id!r} challenge={self.challenge_id}>"


# ---------------------------------------------------------------------------
# Action: append-only reward ledger
# ---------------------------------------------------------------------------
class Action(Base):
    __tablename__ = "actions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    action_type: Mapped[str] = mapped_column(String(30), nullable=False)
    points: Mapped[int] = mapped_column(Integer, default=0)
    category: Mapped[str | None] = mapped_column(String(50), default=None)
    description: Mapped[str] = mapped_column(Text, default="")
    challenge_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    event_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    source_event_id: Mapped[str | None] = mapped_column(String(200), nullable=True)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONB, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        # Idempotent apply keyed by source_event_id
        Index(
            "ix_actions_idempotent",
            "source_event_id",
            unique=True,
            postgresql_where=source_event_id.isnot(None),
            sqlite_where=source_event_id.isnot(None),
        ),
        Index("ix_actions_user_time", "user_id", "timestamp"),
        Index("ix_actions_challenge_user", "challenge_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<Action id={self.id} user={self.user_id!r} type={self.action_type}>"


class UserStats(Base):
    """Counters recomputed from the actions ledger; never incremented in place."""
    __tablename__ = "user_stats"

    user_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    total_actions: Mapped[int] = mapped_column(Integer, default=0)
    total_points: Mapped[int] = mapped_column(Integer, default=0)
    items_swapped: Mapped[int] = mapped_column(Integer, default=0)
    events_joined: Mapped[int] = mapped_column(Integer, default=0)
    challenges_joined: Mapped[int] = mapped_column(Integer, default=0)
    badges_earned: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    user: Mapped[User] = relationship(back_populates="stats")

    def __repr__(self) -> str:
        return f"<UserStats user={self.user_id!r} actions={self.total_actions}>"


# ---------------------------------------------------------------------------
# Presence, notifications, announcements
# ---------------------------------------------------------------------------
class UserPresence(Base):
    __tablename__ = "user_presence"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(100), default="Anonymous")
    email: Mapped[str | None] = mapped_column(String(255), default=None)
    last_seen: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    explicit_offline: Mapped[bool] = mapped_column(Boolean, default=False)

    __table_args__ = (
        Index("ix_user_presence_last_seen", "last_seen"),
    )

    def __repr__(self) -> str:
        return f"<UserPresence user={self.user_id!r} last_seen={self.last_seen}>"


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    target_user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    actor_id: Mapped[str | None] = mapped_column(String(128), default=None)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, default="")
    read: Mapped[bool] = mapped_column(Boolean, default=False)
    action_url: Mapped[str | None] = mapped_column(String(500), default=None)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONB, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_notifications_target", "target_user_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Notification id={self.id} target={self.target_user_id!r} "
            f"read={self.read}>"
        )


class Announcement(Base):
    __tablename__ = "announcements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[str] = mapped_column(
        String(10), nullable=False, default=AnnouncementPriority.MEDIUM.value
    )
    created_by: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )

    def __repr__(self) -> str:
        return f"<Announcement id={self.id} priority={self.priority}>"


# ---------------------------------------------------------------------------
# Setting: admin-configurable key-value store
# ---------------------------------------------------------------------------
class Setting(Base):
    """Key-value configuration store.

    Reward amounts, presence thresholds and listing windows live here so
    they can be tuned without redeploying.  Values are stored as JSON
    strings; see :func:`greenguardian.services.settings_service.get_setting_value`.
    """
    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value_json: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="general")
    description: Mapped[str | None] = mapped_column(Text, default=None)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_settings_category", "category"),
    )

    def __repr__(self) -> str:
        return f"<Setting key={self.key!r} category={self.category!r}>"

