"""
greenguardian.errors — Service-layer exceptions
================================================

Raised by :mod:`greenguardian.services` and translated to HTTP status codes
in :mod:`greenguardian.api.deps`.  Anything not derived from
:class:`GreenGuardianError` is an unexpected failure and propagates.
"""

from __future__ import annotations


class GreenGuardianError(Exception):
    """Base class for expected, user-facing failures."""


class NotFoundError(GreenGuardianError):
    """The referenced item, challenge, event or notification does not exist."""


class PreconditionFailed(GreenGuardianError):
    """The operation is not valid in the current state (checked before any write)."""


class PermissionDenied(GreenGuardianError):
    """The actor is not allowed to perform the operation (owner/authority only)."""


class ConflictError(GreenGuardianError):
    """A concurrent change won the race; the caller should re-read and retry."""
