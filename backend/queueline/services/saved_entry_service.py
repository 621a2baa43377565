"""Per-client saved entry lists.

Best-effort convenience cache keyed by the client cookie; the realtime store
stays the source of truth for whether an entry is still in line.
"""

import logging
from typing import Any, Dict, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from queueline.models.saved_entry import SavedEntry

logger = logging.getLogger(__name__)


def serialize_saved_entry(saved: SavedEntry) -> Dict[str, Any]:
    return {
        "id": saved.entry_id,
        "name": saved.name,
        "phone": saved.phone,
        "joined_at": saved.created_at.isoformat() if saved.created_at else None,
    }


class SavedEntryService:
    """Remember, list and forget queue entries for one client."""

    def __init__(self, db: Session):
        self.db = db

    def list_entries(self, client_id: str) -> List[SavedEntry]:
        return (
            self.db.query(SavedEntry)
            .filter(SavedEntry.client_id == client_id)
            .order_by(SavedEntry.id)
            .all()
        )

    def _find(self, client_id: str, entry_id: str):
        return (
            self.db.query(SavedEntry)
            .filter(SavedEntry.client_id == client_id, SavedEntry.entry_id == entry_id)
            .first()
        )

    def save(self, client_id: str, entry_id: str, name: str, phone: str) -> SavedEntry:
        """Append an entry to the client's list; saving the same id twice is a no-op."""
        existing = self._find(client_id, entry_id)
        if existing:
            return existing

        saved = SavedEntry(client_id=client_id, entry_id=entry_id, name=name, phone=phone)
        self.db.add(saved)
        try:
            self.db.commit()
        except IntegrityError:
            # Same entry saved concurrently from another tab
            self.db.rollback()
            return self._find(client_id, entry_id)
        self.db.refresh(saved)
        logger.debug(f"Saved entry {entry_id} for client {client_id}")
        return saved

    def forget(self, client_id: str, entry_id: str) -> bool:
        saved = self._find(client_id, entry_id)
        if not saved:
            return False
        self.db.delete(saved)
        self.db.commit()
        return True
