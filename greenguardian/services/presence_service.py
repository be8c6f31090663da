"""
greenguardian.services.presence_service — Heartbeats & online list
===================================================================

Presence is a heartbeat record per user; status (online / away / offline)
is derived at read time by :func:`greenguardian.engine.status.presence_status`.

:class:`PresenceSession` owns the heartbeat loop for one connected client.
Entering it sends a heartbeat and starts the background task; leaving it
cancels the task and marks the user offline.  Nothing is kept at module
level, so every subscription is released with its scope.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from greenguardian.database.engine import run_db
from greenguardian.database.models import UserPresence
from greenguardian.engine.status import PresenceStatus, presence_status, utcnow
from greenguardian.services.settings_service import get_int

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PresenceEntry:
    user_id: str
    display_name: str
    email: str | None
    last_seen: datetime
    status: PresenceStatus


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def heartbeat(
    engine,
    user_id: str,
    display_name: str,
    email: str | None = None,
    *,
    now: datetime | None = None,
) -> UserPresence:
    """Upsert the user's record with ``last_seen = now``."""
    now = now or utcnow()
    with Session(engine, expire_on_commit=False) as session:
        row = session.get(UserPresence, user_id)
        if row is None:
            row = UserPresence(user_id=user_id)
            session.add(row)
        row.display_name = display_name or "Anonymous"
        row.email = email
        row.last_seen = now
        row.explicit_offline = False
        session.commit()
    return row


def set_offline(engine, user_id: str) -> bool:
    """Flag the user offline.  Missing records are ignored (returns False)."""
    with Session(engine) as session:
        row = session.get(UserPresence, user_id)
        if row is None:
            logger.debug("set_offline: no presence record for %s", user_id)
            return False
        row.explicit_offline = True
        session.commit()
    return True


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def list_presence(
    engine, *, now: datetime | None = None, limit: int | None = None
) -> list[PresenceEntry]:
    """Presence records, most recently seen first, with derived status."""
    now = now or utcnow()
    with Session(engine) as session:
        online_s = get_int(session, "presence.online_seconds", 60)
        away_s = get_int(session, "presence.away_seconds", 300)
        if limit is None:
            limit = get_int(session, "presence.max_listed", 20)
        rows = session.scalars(
            select(UserPresence).order_by(UserPresence.last_seen.desc()).limit(limit)
        ).all()
        return [
            PresenceEntry(
                user_id=r.user_id,
                display_name=r.display_name,
                email=r.email,
                last_seen=r.last_seen,
                status=presence_status(
                    now,
                    r.last_seen,
                    explicit_offline=r.explicit_offline,
                    online_seconds=online_s,
                    away_seconds=away_s,
                ),
            )
            for r in rows
        ]


def heartbeat_interval(engine) -> int:
    with Session(engine) as session:
        return get_int(session, "presence.heartbeat_seconds", 30)


# ---------------------------------------------------------------------------
# Scoped session
# ---------------------------------------------------------------------------
class PresenceSession:
    """Async context manager that keeps one user's presence fresh.

    Usage::

        async with PresenceSession(engine, user_id, name, email):
            ...   # connection lifetime

    *interval* defaults to the ``presence.heartbeat_seconds`` setting.
    """

    def __init__(
        self,
        engine,
        user_id: str,
        display_name: str,
        email: str | None = None,
        *,
        interval: float | None = None,
    ) -> None:
        self.engine = engine
        self.user_id = user_id
        self.display_name = display_name
        self.email = email
        self.interval = interval
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def beat(self) -> None:
        await run_db(heartbeat, self.engine, self.user_id, self.display_name, self.email)

    async def __aenter__(self) -> PresenceSession:
        if self.interval is None:
            self.interval = await run_db(heartbeat_interval, self.engine)
        await self.beat()

        async def _loop() -> None:
            while True:
                await asyncio.sleep(self.interval)
                try:
                    await self.beat()
                except Exception:
                    logger.exception("Presence heartbeat failed for %s", self.user_id)

        self._task = asyncio.get_running_loop().create_task(
            _loop(), name=f"presence-{self.user_id}"
        )
        logger.debug("Presence session opened for %s", self.user_id)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        try:
            await run_db(set_offline, self.engine, self.user_id)
        except Exception:
            logger.exception("Failed to mark %s offline", self.user_id)
        logger.debug("Presence session closed for %s", self.user_id)
