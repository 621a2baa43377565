"""In-process realtime store.

Keeps the whole document tree in memory and notifies listeners
synchronously after each write, so per-path delivery order always matches
write order. Used for development and tests; nothing survives a restart.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from queueline.services.realtime.base import (
    CallbackListener,
    ListenerHandle,
    RealtimeStore,
    TransactionFn,
    ValueCallback,
    paths_overlap,
    read_at,
    split_path,
    write_at,
)

logger = logging.getLogger(__name__)


class MemoryStore(RealtimeStore):
    """Realtime store backed by a nested dict."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._root: Any = write_at(None, [], initial)
        self._lock = asyncio.Lock()
        self._listeners: List[CallbackListener] = []

    @property
    def backend_name(self) -> str:
        return "memory"

    async def get(self, path: str) -> Any:
        return read_at(self._root, split_path(path))

    async def set(self, path: str, value: Any) -> None:
        async with self._lock:
            parts = split_path(path)
            self._root = write_at(self._root, parts, value)
            self._notify([parts])

    async def update(self, path: str, values: Dict[str, Any]) -> None:
        if not values:
            raise ValueError("update() needs at least one child")
        async with self._lock:
            base = split_path(path)
            changed = []
            for key, value in values.items():
                parts = base + split_path(key)
                self._root = write_at(self._root, parts, value)
                changed.append(parts)
            self._notify(changed)

    async def delete(self, path: str) -> None:
        await self.set(path, None)

    async def transaction(self, path: str, update_fn: TransactionFn) -> Any:
        async with self._lock:
            parts = split_path(path)
            new_value = update_fn(read_at(self._root, parts))
            self._root = write_at(self._root, parts, new_value)
            self._notify([parts])
            return read_at(self._root, parts)

    def listen(self, path: str, callback: ValueCallback) -> ListenerHandle:
        listener = CallbackListener(path, callback)
        self._listeners.append(listener)
        listener.deliver(read_at(self._root, listener.parts))
        return _MemoryHandle(self, listener)

    def listener_count(self) -> int:
        return len(self._listeners)

    def _notify(self, changed: List[List[str]]) -> None:
        for listener in list(self._listeners):
            if listener.closed:
                continue
            if not any(paths_overlap(listener.parts, parts) for parts in changed):
                continue
            try:
                listener.deliver(read_at(self._root, listener.parts))
            except Exception:
                logger.exception(f"Listener callback for '{listener.path}' failed")

    def _discard(self, listener: CallbackListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)


class _MemoryHandle(ListenerHandle):
    def __init__(self, store: MemoryStore, listener: CallbackListener):
        self._store = store
        self._listener = listener

    def close(self) -> None:
        self._listener.close()
        self._store._discard(self._listener)
