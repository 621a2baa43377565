"""SQLAlchemy models."""

from queueline.models.saved_entry import SavedEntry

__all__ = ["SavedEntry"]
