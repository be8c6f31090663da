"""
GreenGuardian — Community Environmental Backend
================================================
Swap marketplace, eco-challenges cross-linked with volunteer events,
a reward ledger, presence and notifications for a local green community.

Package layout::

    greenguardian/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Cross-link table, action kinds, display data
    ├── errors.py          # Service-layer exceptions
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   ├── models.py      # All ORM models
    │   └── seed.py        # Default settings seeder
    ├── engine/
    │   ├── status.py      # Derived challenge / event / presence status
    │   ├── swap.py        # Swap negotiation state machine
    │   ├── crosslink.py   # Challenge ↔ volunteer-event resolver
    │   └── ledger.py      # Ledger events + counter fold
    ├── services/
    │   ├── ledger_service.py        # Idempotent ledger writes, user stats
    │   ├── swap_service.py          # Request / accept / complete workflows
    │   ├── hub_service.py           # Challenges, events, rewards, feed
    │   ├── presence_service.py      # Heartbeats + PresenceSession
    │   ├── notification_service.py  # Per-user notifications
    │   ├── announcement_service.py  # Global announcements
    │   └── settings_service.py      # Settings table reads / writes
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # JWT auth, engine, error translation
        └── routes/        # REST + websocket endpoints
"""

__version__ = "0.1.0"
