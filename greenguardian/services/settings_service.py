"""
greenguardian.services.settings_service — Settings reads & writes
==================================================================

Typed read/write access to the ``settings`` table.  Services read tuning
values inside their own transaction through :func:`get_setting_value`.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from greenguardian.database.models import Setting

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_setting_value(session: Session, key: str, default=None):
    """Read a single setting's parsed value from an existing session.

    Parameters
    ----------
    session : Session
        An open SQLAlchemy session.
    key : str
        The setting key to look up.
    default
        Returned when the key does not exist.

    Returns
    -------
    The JSON-decoded value, or *default*.
    """
    row = session.get(Setting, key)
    if row is None:
        return default
    try:
        return json.loads(row.value_json)
    except (json.JSONDecodeError, TypeError):
        return row.value_json


def get_int(session: Session, key: str, default: int) -> int:
    try:
        return int(get_setting_value(session, key, default))
    except (TypeError, ValueError):
        logger.warning("Setting %s is not an int; using %d", key, default)
        return default


def get_all_settings(engine) -> list[Setting]:
    """Fetch every setting row, ordered by category then key."""
    with Session(engine) as session:
        rows = session.scalars(
            select(Setting).order_by(Setting.category, Setting.key)
        ).all()
        for r in rows:
            session.expunge(r)
        return list(rows)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def upsert_setting(
    engine,
    *,
    key: str,
    value: Any,
    category: str | None = None,
    description: str | None = None,
) -> Setting:
    """Insert or update a single setting."""
    value_json = json.dumps(value)
    with Session(engine, expire_on_commit=False) as session:
        existing = session.get(Setting, key)
        if existing:
            existing.value_json = value_json
            if category:
                existing.category = category
            if description is not None:
                existing.description = description
        else:
            existing = Setting(
                key=key,
                value_json=value_json,
                category=category or "general",
                description=description,
            )
            session.add(existing)
        session.commit()

    logger.info("Setting %s updated", key)
    return existing
