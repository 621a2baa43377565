"""Entries this browser has joined or looked up."""

from fastapi import APIRouter

from queueline.api.deps import ClientId, SavedEntries
from queueline.core.exceptions import NotFoundError
from queueline.core.responses import list_response
from queueline.services.saved_entry_service import serialize_saved_entry

router = APIRouter()


@router.get("")
def list_saved(saved: SavedEntries, client_id: ClientId):
    """Saved entries in the order they were saved."""
    return list_response([serialize_saved_entry(s) for s in saved.list_entries(client_id)])


@router.delete("/{entry_id}")
def forget_saved(entry_id: str, saved: SavedEntries, client_id: ClientId):
    """Forget a saved entry. Does not touch the queue itself."""
    if not saved.forget(client_id, entry_id):
        raise NotFoundError("Saved entry not found")
    return {"status": "forgotten", "id": entry_id}
