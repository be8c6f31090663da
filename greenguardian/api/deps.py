"""
greenguardian.api.deps — FastAPI dependency injection
======================================================
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from greenguardian.config import GreenGuardianConfig, load_config
from greenguardian.database.engine import create_db_engine
from greenguardian.database.models import UserRole
from greenguardian.errors import (
    ConflictError,
    GreenGuardianError,
    NotFoundError,
    PermissionDenied,
    PreconditionFailed,
)

_WEAK_SECRETS = frozenset({
    "greenguardian-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> GreenGuardianConfig:
    return load_config()


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class CurrentUser:
    """Identity taken from a verified token."""

    id: str
    display_name: str
    email: str | None
    role: str


def decode_token(token: str) -> CurrentUser:
    """Verify *token* and build a :class:`CurrentUser`.  Raises 401."""
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    sub = payload.get("sub")
    if not sub:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    return CurrentUser(
        id=str(sub),
        display_name=payload.get("username") or "Anonymous",
        email=payload.get("email"),
        role=payload.get("role") or UserRole.CITIZEN.value,
    )


def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
) -> CurrentUser:
    """Validate the Bearer JWT.  Raises 401 if missing or invalid."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    return decode_token(authorization.split(" ", 1)[1])


def require_authority(
    user: CurrentUser = Depends(get_current_user),
    cfg: GreenGuardianConfig = Depends(get_config),
) -> CurrentUser:
    """Only government / NGO / school accounts (configurable).  Raises 403."""
    if user.role not in cfg.authority_roles:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Authority account required")
    return user


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------
_STATUS_FOR_ERROR: dict[type[GreenGuardianError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    PermissionDenied: status.HTTP_403_FORBIDDEN,
    PreconditionFailed: status.HTTP_409_CONFLICT,
    ConflictError: status.HTTP_409_CONFLICT,
}


def status_for(exc: GreenGuardianError) -> int:
    for cls in type(exc).__mro__:
        if cls in _STATUS_FOR_ERROR:
            return _STATUS_FOR_ERROR[cls]
    return status.HTTP_400_BAD_REQUEST


async def service_error_handler(request: Request, exc: GreenGuardianError) -> JSONResponse:
    """Registered on the app for :class:`GreenGuardianError`."""
    return JSONResponse(status_code=status_for(exc), content={"detail": str(exc)})
