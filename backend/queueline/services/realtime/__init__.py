"""Realtime store backends."""

import logging

from queueline.core.config import Settings
from queueline.services.realtime.base import ListenerHandle, RealtimeStore, join_path
from queueline.services.realtime.memory import MemoryStore

logger = logging.getLogger(__name__)


def create_store(settings: Settings) -> RealtimeStore:
    """Build the store selected by ``STORE_BACKEND``."""
    if settings.store_backend == "firebase":
        from queueline.services.realtime.firebase import FirebaseStore

        return FirebaseStore(
            database_url=settings.firebase_database_url,
            credentials_path=settings.firebase_credentials_path,
            http_timeout=settings.store_timeout_seconds,
        )
    logger.info("Using in-memory realtime store; queue state is not persisted")
    return MemoryStore()


__all__ = ["ListenerHandle", "MemoryStore", "RealtimeStore", "create_store", "join_path"]
