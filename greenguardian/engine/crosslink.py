"""
greenguardian.engine.crosslink — Challenge ↔ volunteer-event resolver
======================================================================

Pure functions over in-memory collections.  Both directions are computed
by a full scan (O(|events| × |challenges|)); collections are tens to low
hundreds of rows per community, so no index is kept.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from greenguardian.constants import EVENT_TO_CHALLENGE_CATEGORIES
from greenguardian.engine.status import is_challenge_live


def categories_for_event_type(
    event_type: str,
    mapping: dict[str, tuple[str, ...]] | None = None,
) -> tuple[str, ...]:
    """Challenge categories a volunteer event of *event_type* counts toward."""
    table = EVENT_TO_CHALLENGE_CATEGORIES if mapping is None else mapping
    return tuple(table.get(event_type, ()))


def related_events(
    challenge,
    events: Iterable,
    mapping: dict[str, tuple[str, ...]] | None = None,
) -> list:
    """Events whose type maps to *challenge*'s category."""
    if not challenge.category:
        return []
    return [
        e for e in events
        if challenge.category in categories_for_event_type(e.type, mapping)
    ]


def related_challenges(
    event,
    challenges: Iterable,
    mapping: dict[str, tuple[str, ...]] | None = None,
) -> list:
    """Published challenges whose category *event*'s type maps to."""
    categories = categories_for_event_type(event.type, mapping)
    return [c for c in challenges if c.category in categories and c.is_active]


def rewardable_challenges(
    event,
    challenges: Iterable,
    user_id: str,
    now: datetime,
    mapping: dict[str, tuple[str, ...]] | None = None,
) -> list:
    """Related challenges the user has joined and that are live at *now*.

    Joining *event* earns one reward per challenge returned here.
    """
    return [
        c for c in related_challenges(event, challenges, mapping)
        if user_id in c.participant_ids and is_challenge_live(c, now)
    ]
