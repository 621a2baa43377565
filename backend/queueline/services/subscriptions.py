"""Subscription fan-out over the realtime store.

Turns the store's per-path ``listen`` primitive into two watches:

- ``subscribe(entry_id, on_update)``: one customer's entry, merged across
  the waiting and serving partitions.
- ``subscribe_list(on_update)``: the whole active line, sorted by position.
  Emissions are scheduled on the running loop, one per store write.

Both return a ``Subscription``; calling it (or ``unsubscribe()``) closes
every underlying listener, after which no callback runs.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from queueline.schemas.queue import Partition, QueueEntry, QueueStatus
from queueline.services.queue_service import SERVING_PATH, WAITING_PATH, combine_partitions
from queueline.services.realtime import ListenerHandle, RealtimeStore, join_path

logger = logging.getLogger(__name__)

EntryCallback = Callable[[QueueEntry], None]
ListCallback = Callable[[List[QueueEntry]], None]


class Subscription:
    """Handle over one or more store listeners."""

    def __init__(self) -> None:
        self._handles: List[ListenerHandle] = []
        self.active = True

    def add(self, handle: ListenerHandle) -> None:
        if not self.active:
            handle.close()
            return
        self._handles.append(handle)

    def unsubscribe(self) -> None:
        self.active = False
        while self._handles:
            self._handles.pop().close()

    __call__ = unsubscribe


class _EntryWatch:
    def __init__(self, entry_id: str, on_update: EntryCallback, subscription: Subscription):
        self.entry_id = entry_id
        self.on_update = on_update
        self.subscription = subscription
        self.records: Dict[Partition, Optional[Dict[str, Any]]] = {
            Partition.WAITING: None,
            Partition.SERVING: None,
        }
        self.last: Optional[QueueEntry] = None

    def changed(self, partition: Partition, value: Any) -> None:
        if not self.subscription.active:
            return
        self.records[partition] = value if isinstance(value, dict) else None

        # Serving wins while a move is half-observed
        for current in (Partition.SERVING, Partition.WAITING):
            record = self.records[current]
            if record is not None:
                break
        else:
            return

        entry = QueueEntry.from_record(self.entry_id, record, QueueStatus(current.value))
        if entry == self.last:
            return
        self.last = entry
        self.on_update(entry)


class _ListWatch:
    """Combines the two partitions into one sorted list.

    A move between partitions reaches the watch as two separate partition
    events. Changes are folded into one emission scheduled on the loop, so
    both sides of a single write land before the list is rebuilt.
    """

    def __init__(self, on_update: ListCallback, subscription: Subscription, loop: asyncio.AbstractEventLoop):
        self.on_update = on_update
        self.subscription = subscription
        self.loop = loop
        self.docs: Dict[Partition, Optional[Dict[str, Any]]] = {}
        self.last: Optional[List[QueueEntry]] = None
        self.pending = False

    def changed(self, partition: Partition, value: Any) -> None:
        if not self.subscription.active:
            return
        self.docs[partition] = value if isinstance(value, dict) else None
        if len(self.docs) < 2 or self.pending:
            # wait until both partitions have reported once
            return
        self.pending = True
        self.loop.call_soon(self.flush)

    def flush(self) -> None:
        self.pending = False
        if not self.subscription.active:
            return
        entries = combine_partitions(self.docs[Partition.WAITING], self.docs[Partition.SERVING])
        if entries == self.last:
            return
        self.last = entries
        self.on_update(entries)


class QueueSubscriptions:
    """Creates entry and list watches against a realtime store."""

    def __init__(self, store: RealtimeStore):
        self.store = store

    def subscribe(self, entry_id: str, on_update: EntryCallback) -> Subscription:
        subscription = Subscription()
        watch = _EntryWatch(entry_id, on_update, subscription)
        try:
            for partition, path in ((Partition.WAITING, WAITING_PATH), (Partition.SERVING, SERVING_PATH)):
                subscription.add(self.store.listen(
                    join_path(path, entry_id),
                    lambda value, p=partition: watch.changed(p, value),
                ))
        except Exception:
            subscription.unsubscribe()
            raise
        logger.debug(f"Watching entry {entry_id}")
        return subscription

    def subscribe_list(self, on_update: ListCallback) -> Subscription:
        subscription = Subscription()
        watch = _ListWatch(on_update, subscription, asyncio.get_running_loop())
        try:
            for partition, path in ((Partition.WAITING, WAITING_PATH), (Partition.SERVING, SERVING_PATH)):
                subscription.add(self.store.listen(
                    path,
                    lambda value, p=partition: watch.changed(p, value),
                ))
        except Exception:
            subscription.unsubscribe()
            raise
        logger.debug("Watching queue list")
        return subscription
