"""
greenguardian.api.routes.swap — Swap marketplace endpoints
===========================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from greenguardian.api.deps import CurrentUser, get_current_user, get_engine
from greenguardian.database.models import CompletedSwap, SwapItem, SwapRequest
from greenguardian.services import swap_service

router = APIRouter(prefix="/swap", tags=["swap"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class ItemCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    category: str = "other"
    condition: str = "good"
    estimated_value: float = Field(0.0, ge=0)
    image_url: str | None = None


class SwapOffer(BaseModel):
    offer_details: str | None = None
    offer_value: float | None = Field(None, ge=0)
    offer_image: str | None = None


# ---------------------------------------------------------------------------
# Serialisers
# ---------------------------------------------------------------------------
def _iso(value):
    return value.isoformat() if value else None


def _item_dict(item: SwapItem) -> dict:
    return {
        "id": item.id,
        "owner_id": item.owner_id,
        "title": item.title,
        "description": item.description,
        "category": item.category,
        "condition": item.condition,
        "estimated_value": item.estimated_value,
        "image_url": item.image_url,
        "is_available": item.is_available,
        "swapped_with": item.swapped_with,
        "swapped_at": _iso(item.swapped_at),
        "swap_requests": sorted(item.swap_requests),
        "accepted_requests": sorted(item.accepted_requests),
        "created_at": _iso(item.created_at),
    }


def _request_dict(row: SwapRequest) -> dict:
    return {
        "item_id": row.item_id,
        "item_title": row.item.title if row.item else None,
        "owner_id": row.item.owner_id if row.item else None,
        "requester_id": row.requester_id,
        "status": row.status,
        "offer_details": row.offer_details,
        "offer_value": row.offer_value,
        "offer_image": row.offer_image,
        "owner_confirmed": row.owner_confirmed,
        "requester_confirmed": row.requester_confirmed,
        "requested_at": _iso(row.requested_at),
        "accepted_at": _iso(row.accepted_at),
    }


def _completed_dict(rec: CompletedSwap) -> dict:
    return {
        "id": rec.id,
        "item_id": rec.item_id,
        "item_title": rec.item_title,
        "item_category": rec.item_category,
        "owner_id": rec.owner_id,
        "requester_id": rec.requester_id,
        "status": rec.status,
        "offer_details": rec.offer_details,
        "offer_value": rec.offer_value,
        "completed_at": _iso(rec.completed_at),
    }


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------
@router.get("/items")
def list_items(
    category: str | None = Query(None),
    search: str | None = Query(None, max_length=100),
    engine=Depends(get_engine),
):
    items = swap_service.available_items(engine, category=category, search=search)
    return {"items": [_item_dict(i) for i in items]}


@router.post("/items", status_code=201)
def create_item(
    body: ItemCreate,
    user: CurrentUser = Depends(get_current_user),
    engine=Depends(get_engine),
):
    item = swap_service.list_item(
        engine, user.id, user.display_name, **body.model_dump(),
    )
    return _item_dict(item)


@router.get("/items/{item_id}")
def get_item(item_id: int, engine=Depends(get_engine)):
    return _item_dict(swap_service.get_item(engine, item_id))


@router.delete("/items/{item_id}", status_code=204)
def delete_item(
    item_id: int,
    user: CurrentUser = Depends(get_current_user),
    engine=Depends(get_engine),
):
    swap_service.delete_item(engine, item_id, user.id)
    return None


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------
@router.post("/items/{item_id}/requests", status_code=201)
def request_swap(
    item_id: int,
    body: SwapOffer | None = None,
    user: CurrentUser = Depends(get_current_user),
    engine=Depends(get_engine),
):
    offer = body or SwapOffer()
    row = swap_service.request_swap(
        engine, item_id, user.id, user.display_name, **offer.model_dump(),
    )
    return {"item_id": row.item_id, "requester_id": row.requester_id, "status": row.status}


@router.delete("/items/{item_id}/requests/me")
def cancel_request(
    item_id: int,
    user: CurrentUser = Depends(get_current_user),
    engine=Depends(get_engine),
):
    previous = swap_service.cancel_request(engine, item_id, user.id)
    return {"previous_state": previous.value}


@router.post("/items/{item_id}/requests/{requester_id}/accept")
def accept_request(
    item_id: int,
    requester_id: str,
    user: CurrentUser = Depends(get_current_user),
    engine=Depends(get_engine),
):
    row = swap_service.accept_request(engine, item_id, user.id, requester_id)
    return {"item_id": item_id, "requester_id": requester_id, "status": row.status}


@router.post("/items/{item_id}/requests/{requester_id}/decline")
def decline_request(
    item_id: int,
    requester_id: str,
    user: CurrentUser = Depends(get_current_user),
    engine=Depends(get_engine),
):
    previous = swap_service.decline_request(engine, item_id, user.id, requester_id)
    return {"previous_state": previous.value}


@router.post("/items/{item_id}/requests/{requester_id}/complete")
def complete_swap(
    item_id: int,
    requester_id: str,
    user: CurrentUser = Depends(get_current_user),
    engine=Depends(get_engine),
):
    record = swap_service.complete_swap(engine, item_id, user.id, requester_id)
    return _completed_dict(record)


@router.post("/items/{item_id}/requests/{requester_id}/confirm")
def confirm_swap(
    item_id: int,
    requester_id: str,
    user: CurrentUser = Depends(get_current_user),
    engine=Depends(get_engine),
):
    record = swap_service.confirm_swap(engine, item_id, user.id, requester_id)
    if record is None:
        return {"completed": False}
    return {"completed": True, "swap": _completed_dict(record)}


# ---------------------------------------------------------------------------
# Dashboards
# ---------------------------------------------------------------------------
@router.get("/requests/incoming")
def incoming(
    user: CurrentUser = Depends(get_current_user),
    engine=Depends(get_engine),
):
    rows = swap_service.incoming_requests(engine, user.id)
    return {"requests": [_request_dict(r) for r in rows]}


@router.get("/requests/outgoing")
def outgoing(
    user: CurrentUser = Depends(get_current_user),
    engine=Depends(get_engine),
):
    rows = swap_service.outgoing_requests(engine, user.id)
    return {"requests": [_request_dict(r) for r in rows]}


@router.get("/completed")
def completed(
    user: CurrentUser = Depends(get_current_user),
    engine=Depends(get_engine),
):
    rows = swap_service.completed_swaps_for(engine, user.id)
    return {"swaps": [_completed_dict(r) for r in rows]}
