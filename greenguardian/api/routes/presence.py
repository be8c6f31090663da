"""
greenguardian.api.routes.presence — Presence heartbeat & websocket
===================================================================

Clients either POST ``/presence/heartbeat`` on their own timer or hold
``/presence/ws`` open; the websocket's lifetime is the presence session.
The socket authenticates with ``?token=<jwt>`` since browsers cannot set
headers on websocket upgrades.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status

from greenguardian.api.deps import CurrentUser, decode_token, get_current_user, get_engine
from greenguardian.database.engine import run_db
from greenguardian.services import presence_service
from greenguardian.services.presence_service import PresenceSession

router = APIRouter(prefix="/presence", tags=["presence"])
logger = logging.getLogger(__name__)


@router.get("")
def list_presence(engine=Depends(get_engine)):
    entries = presence_service.list_presence(engine)
    return {
        "users": [
            {
                "user_id": e.user_id,
                "display_name": e.display_name,
                "email": e.email,
                "last_seen": e.last_seen.isoformat() if e.last_seen else None,
                "status": e.status.value,
            }
            for e in entries
        ]
    }


@router.post("/heartbeat")
def heartbeat(
    user: CurrentUser = Depends(get_current_user),
    engine=Depends(get_engine),
):
    presence_service.heartbeat(engine, user.id, user.display_name, user.email)
    return {"ok": True}


@router.post("/offline")
def go_offline(
    user: CurrentUser = Depends(get_current_user),
    engine=Depends(get_engine),
):
    return {"ok": presence_service.set_offline(engine, user.id)}


@router.websocket("/ws")
async def presence_socket(websocket: WebSocket, token: str = "", engine=Depends(get_engine)):
    try:
        user = decode_token(token)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    async with PresenceSession(engine, user.id, user.display_name, user.email):
        try:
            while True:
                # Any client frame doubles as an extra heartbeat.
                await websocket.receive_text()
                await run_db(
                    presence_service.heartbeat, engine, user.id, user.display_name, user.email,
                )
        except WebSocketDisconnect:
            logger.debug("Presence socket closed for %s", user.id)
