"""Queue routes: joining, status lookups and staff queue management."""

from fastapi import APIRouter, Query, Request

from queueline.api.deps import ClientId, QueueServiceDep, SavedEntries
from queueline.core.auth import RequireStaff
from queueline.core.config import settings
from queueline.core.rate_limit import limiter
from queueline.core.responses import list_response
from queueline.schemas.queue import (
    JoinRequest,
    QueueStatusView,
    ReorderRequest,
    StatusUpdateRequest,
)
from queueline.services.notification_service import check_notification

router = APIRouter()


def _status_payload(view: QueueStatusView) -> dict:
    notice = check_notification(view, settings.notify_threshold)
    return {
        **view.model_dump(mode="json"),
        "notice": notice.model_dump() if notice else None,
    }


# ==================== CUSTOMER ====================

@router.post("/join", status_code=201)
@limiter.limit(settings.join_rate_limit)
async def join_queue(
    request: Request,
    payload: JoinRequest,
    service: QueueServiceDep,
    saved: SavedEntries,
    client_id: ClientId,
):
    """Join the line. The new entry is remembered for this browser."""
    entry_id = await service.join(payload.name, payload.party_size, payload.phone)
    view = await service.get_status(entry_id)
    saved.save(client_id, entry_id, view.name, view.phone)
    return _status_payload(view)


@router.get("/search")
@limiter.limit(settings.search_rate_limit)
async def search_queue(
    request: Request,
    service: QueueServiceDep,
    saved: SavedEntries,
    client_id: ClientId,
    phone: str = Query(""),
):
    """Find an active entry by phone number (exact or same last 7 digits)."""
    entry = await service.search(phone)
    saved.save(client_id, entry.id, entry.name, entry.phone)
    return entry.model_dump(mode="json")


@router.post("/reorder")
async def reorder_queue(
    payload: ReorderRequest,
    service: QueueServiceDep,
    staff: RequireStaff,
):
    """Swap the positions of two waiting entries."""
    await service.reorder(payload.first_id, payload.second_id)
    entries = await service.list_entries()
    return list_response([e.model_dump(mode="json") for e in entries])


@router.get("/{entry_id}")
async def get_queue_status(
    entry_id: str,
    service: QueueServiceDep,
    saved: SavedEntries,
    client_id: ClientId,
):
    view = await service.get_status(entry_id)
    saved.save(client_id, entry_id, view.name, view.phone)
    return _status_payload(view)


@router.delete("/{entry_id}")
async def leave_queue(
    entry_id: str,
    service: QueueServiceDep,
    saved: SavedEntries,
    client_id: ClientId,
):
    """Withdraw from the line. Unknown ids succeed silently."""
    await service.remove(entry_id)
    saved.forget(client_id, entry_id)
    return {"status": "removed", "id": entry_id}


# ==================== STAFF ====================

@router.get("")
async def list_queue(service: QueueServiceDep, staff: RequireStaff):
    """Waiting and serving entries, ascending by position."""
    entries = await service.list_entries()
    return list_response([e.model_dump(mode="json") for e in entries])


@router.post("/{entry_id}/status")
async def update_queue_status(
    entry_id: str,
    payload: StatusUpdateRequest,
    service: QueueServiceDep,
    staff: RequireStaff,
):
    entry = await service.advance(entry_id, payload.status)
    return entry.model_dump(mode="json")
