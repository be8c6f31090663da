"""
greenguardian.constants — Shared Constants
===========================================

Single source of truth for the hand-authored cross-link table and the
presentation constants used by the activity feed and announcements.
"""

from __future__ import annotations

from greenguardian.database.models import AnnouncementPriority, EventType, UserRole

# ---------------------------------------------------------------------------
# Cross-link mapping: volunteer event type → challenge categories
# ---------------------------------------------------------------------------
EVENT_TO_CHALLENGE_CATEGORIES: dict[str, tuple[str, ...]] = {
    EventType.CLEANUP: ("recycling", "plastic-reduction"),
    EventType.TREE_PLANTING: ("environmental-restoration", "carbon-offset"),
    EventType.WORKSHOP: ("education", "community-engagement"),
    EventType.COMMUNITY_SERVICE: ("community-engagement", "volunteer-events"),
}

CHALLENGE_CATEGORIES: tuple[str, ...] = (
    "plastic-reduction",
    "food-waste",
    "energy-saving",
    "transportation",
    "recycling",
    "water-conservation",
    "volunteer-events",
    "environmental-restoration",
    "carbon-offset",
    "education",
    "community-engagement",
)

# ---------------------------------------------------------------------------
# Roles allowed to publish challenges, events and announcements
# ---------------------------------------------------------------------------
DEFAULT_AUTHORITY_ROLES: frozenset[str] = frozenset({
    UserRole.GOVERNMENT,
    UserRole.NGO,
    UserRole.SCHOOL,
})

# ---------------------------------------------------------------------------
# Activity feed presentation
# ---------------------------------------------------------------------------
EVENT_TYPE_DISPLAY: dict[str, tuple[str, str, str]] = {
    EventType.CLEANUP: ("Cleanup Drive", "fas fa-broom", "#4CAF50"),
    EventType.TREE_PLANTING: ("Tree Planting", "fas fa-tree", "#4CAF50"),
    EventType.WORKSHOP: ("Workshop", "fas fa-chalkboard", "#2196F3"),
    EventType.COMMUNITY_SERVICE: ("Community Service", "fas fa-handshake", "#9C27B0"),
}
"""``type`` → ``(label, icon, color)``."""

FEED_POINTS_PER_TARGET_ACTION = 10
FEED_POINTS_PER_EVENT_HOUR = 15
FEED_RECENT_ACTIONS = 10

# ---------------------------------------------------------------------------
# Announcement ordering (higher first)
# ---------------------------------------------------------------------------
PRIORITY_ORDER: dict[str, int] = {
    AnnouncementPriority.CRITICAL: 4,
    AnnouncementPriority.HIGH: 3,
    AnnouncementPriority.MEDIUM: 2,
    AnnouncementPriority.LOW: 1,
}

# ---------------------------------------------------------------------------
# Loggable eco-actions: kind → (label, points per unit, challenge category,
# impact per unit)
# ---------------------------------------------------------------------------
ACTION_KINDS: dict[str, tuple[str, int, str, dict[str, float]]] = {
    "recycle": ("Recycling", 10, "recycling", {"plastic_saved": 1, "co2_saved": 0.5}),
    "food-save": (
        "Food Waste Prevention", 15, "food-waste", {"food_saved": 0.5, "co2_saved": 0.8},
    ),
    "energy-save": (
        "Energy Conservation", 12, "energy-saving", {"energy_saved": 2, "co2_saved": 1.2},
    ),
    "transport": ("Green Transportation", 20, "transportation", {"co2_saved": 2.5}),
    "water-save": (
        "Water Conservation", 8, "water-conservation", {"water_saved": 10, "co2_saved": 0.3},
    ),
}
