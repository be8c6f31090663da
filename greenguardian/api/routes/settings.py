"""
greenguardian.api.routes.settings — Tuning values (authority accounts)
=======================================================================
"""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from greenguardian.api.deps import CurrentUser, get_engine, require_authority
from greenguardian.services import settings_service

router = APIRouter(prefix="/admin", tags=["admin"])
logger = logging.getLogger(__name__)


class SettingUpdate(BaseModel):
    key: str
    value: Any
    category: str | None = None
    description: str | None = None


@router.get("/settings")
def get_all_settings(
    user: CurrentUser = Depends(require_authority),
    engine=Depends(get_engine),
):
    rows = settings_service.get_all_settings(engine)
    return {
        "settings": [
            {
                "key": r.key,
                "value": json.loads(r.value_json) if r.value_json else None,
                "category": r.category,
                "description": r.description,
            }
            for r in rows
        ],
    }


@router.put("/settings")
def update_settings(
    body: list[SettingUpdate],
    user: CurrentUser = Depends(require_authority),
    engine=Depends(get_engine),
):
    for s in body:
        settings_service.upsert_setting(
            engine,
            key=s.key,
            value=s.value,
            category=s.category,
            description=s.description,
        )
    logger.info("%s updated %d settings", user.id, len(body))
    return {"updated": len(body)}
