"""
tests/test_auth.py — Token Decoding & Authority Gate
=====================================================
Identity comes from a verified HS256 token; authority endpoints check the
caller's role against the configured ``authority_roles``.
"""

from __future__ import annotations

import importlib
import os
from dataclasses import replace
from unittest.mock import patch

import jwt
import pytest
from conftest import make_token
from fastapi import HTTPException

from greenguardian.api import deps


def _token(payload: dict, secret: str | None = None) -> str:
    return jwt.encode(payload, secret or deps.JWT_SECRET, algorithm=deps.JWT_ALGORITHM)


class TestDecodeToken:
    def test_full_payload(self):
        user = deps.decode_token(make_token("u-7", "Noor", "ngo", "noor@example.org"))
        assert user == deps.CurrentUser(
            id="u-7", display_name="Noor", email="noor@example.org", role="ngo",
        )

    def test_role_defaults_to_citizen(self):
        user = deps.decode_token(_token({"sub": "u-1", "username": "Uma"}))
        assert user.role == "citizen"
        assert user.email is None

    def test_missing_username_is_anonymous(self):
        assert deps.decode_token(_token({"sub": "u-1"})).display_name == "Anonymous"

    @pytest.mark.parametrize("payload", [{"username": "Uma"}, {"sub": ""}])
    def test_missing_sub_is_401(self, payload):
        with pytest.raises(HTTPException) as exc_info:
            deps.decode_token(_token(payload))
        assert exc_info.value.status_code == 401

    def test_wrong_signature_is_401(self):
        forged = _token({"sub": "u-1", "role": "government"}, secret="z" * 48)
        with pytest.raises(HTTPException) as exc_info:
            deps.decode_token(forged)
        assert exc_info.value.status_code == 401


class TestGetCurrentUser:
    def test_requires_bearer_prefix(self):
        with pytest.raises(HTTPException) as exc_info:
            deps.get_current_user(make_token())
        assert exc_info.value.detail == "Missing token"

    def test_missing_header(self):
        with pytest.raises(HTTPException) as exc_info:
            deps.get_current_user(None)
        assert exc_info.value.status_code == 401

    def test_bearer_token(self):
        assert deps.get_current_user(f"Bearer {make_token('u-3')}").id == "u-3"


class TestRequireAuthority:
    def _user(self, role: str) -> deps.CurrentUser:
        return deps.CurrentUser(id="u-1", display_name="Uma", email=None, role=role)

    @pytest.mark.parametrize("role", ["government", "ngo", "school"])
    def test_default_roles_pass(self, role, test_config):
        assert deps.require_authority(self._user(role), test_config).role == role

    def test_citizen_is_403(self, test_config):
        with pytest.raises(HTTPException) as exc_info:
            deps.require_authority(self._user("citizen"), test_config)
        assert exc_info.value.status_code == 403

    def test_configured_roles(self, test_config):
        cfg = replace(test_config, authority_roles=frozenset({"council"}))
        assert deps.require_authority(self._user("council"), cfg).role == "council"
        with pytest.raises(HTTPException):
            deps.require_authority(self._user("ngo"), cfg)


class TestSecretAtImport:
    @pytest.fixture(autouse=True)
    def _restore_deps(self):
        yield
        importlib.reload(deps)

    def test_weak_default_refused(self):
        with patch.dict(os.environ, {"JWT_SECRET": "greenguardian-dev-secret-change-me"}):
            with pytest.raises(RuntimeError, match="known weak default"):
                importlib.reload(deps)
