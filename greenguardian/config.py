"""
greenguardian.config — YAML Configuration Loader
=================================================

Reads ``config.yaml`` for **infrastructure and identity** settings only.
Reward amounts, presence thresholds and listing windows live in the
``settings`` database table so they can be tuned without a redeploy.

Usage::

    from greenguardian.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.community_name)    # "GreenGuardian"
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from greenguardian.constants import DEFAULT_AUTHORITY_ROLES


@dataclass(frozen=True, slots=True)
class GreenGuardianConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    community_name: str
    community_motto: str

    # Dashboard
    dashboard_port: int

    # Roles that may publish challenges, events and announcements
    authority_roles: frozenset[str] = field(default=DEFAULT_AUTHORITY_ROLES)


def load_config(path: str | Path = "config.yaml") -> GreenGuardianConfig:
    """Read *path* and return a :class:`GreenGuardianConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    roles = raw.get("authority_roles")
    return GreenGuardianConfig(
        community_name=raw["community_name"],
        community_motto=raw["community_motto"],
        dashboard_port=int(raw["dashboard_port"]),
        authority_roles=(
            frozenset(str(r) for r in roles) if roles else DEFAULT_AUTHORITY_ROLES
        ),
    )
