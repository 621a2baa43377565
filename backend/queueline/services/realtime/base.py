"""Abstract base class for realtime document stores.

Stores address JSON-like documents by slash-separated paths
(``queues/waiting/<id>``) and follow Realtime Database semantics: ``None``
and empty objects are absent, writes to a path replace the whole subtree,
and listeners receive the full value at their path after every change.
"""

import copy
import secrets
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List

ValueCallback = Callable[[Any], None]
TransactionFn = Callable[[Any], Any]

_PUSH_CHARS = "-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"


def split_path(path: str) -> List[str]:
    return [part for part in (path or "").split("/") if part]


def join_path(*parts: str) -> str:
    return "/".join(p.strip("/") for p in parts if p and p.strip("/"))


def generate_push_id() -> str:
    """Chronologically sortable 20-character key in the Realtime Database style."""
    now = int(time.time() * 1000)
    stamp = []
    for _ in range(8):
        stamp.append(_PUSH_CHARS[now % 64])
        now //= 64
    suffix = "".join(secrets.choice(_PUSH_CHARS) for _ in range(12))
    return "".join(reversed(stamp)) + suffix


def normalize(value: Any) -> Any:
    """Drop ``None`` children and empty containers; returns None when nothing is left."""
    if isinstance(value, dict):
        cleaned = {}
        for key, child in value.items():
            child = normalize(child)
            if child is not None:
                cleaned[str(key)] = child
        return cleaned or None
    if isinstance(value, (list, tuple)):
        items = [normalize(v) for v in value]
        return items if any(v is not None for v in items) else None
    return value


def read_at(tree: Any, parts: List[str]) -> Any:
    node = tree
    for part in parts:
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return copy.deepcopy(node)


def write_at(tree: Any, parts: List[str], value: Any) -> Any:
    """Return ``tree`` with ``value`` placed at ``parts``; empty parents are pruned."""
    value = normalize(copy.deepcopy(value))
    if not parts:
        return value
    root = tree if isinstance(tree, dict) else {}
    head, rest = parts[0], parts[1:]
    child = write_at(root.get(head), rest, value)
    if child is None:
        root.pop(head, None)
    else:
        root[head] = child
    return root or None


def paths_overlap(a: List[str], b: List[str]) -> bool:
    shortest = min(len(a), len(b))
    return a[:shortest] == b[:shortest]


class ListenerHandle(ABC):
    """Registration returned by ``RealtimeStore.listen``."""

    @abstractmethod
    def close(self) -> None:
        """Stop delivery. No callback may run after this returns."""


class RealtimeStore(ABC):
    """Base interface for the realtime database holding queue state."""

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend name (e.g. 'memory', 'firebase')."""

    @abstractmethod
    async def get(self, path: str) -> Any:
        """Read the value at ``path``; None when absent."""

    @abstractmethod
    async def set(self, path: str, value: Any) -> None:
        """Replace the value at ``path``. Setting None deletes it."""

    @abstractmethod
    async def update(self, path: str, values: Dict[str, Any]) -> None:
        """Atomically write several children of ``path``.

        Keys may be nested relative paths (``"waiting/<id>"``); a None value
        deletes that child.
        """

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Remove the value at ``path``."""

    @abstractmethod
    async def transaction(self, path: str, update_fn: TransactionFn) -> Any:
        """Atomically replace the value at ``path`` with ``update_fn(current)``.

        ``update_fn`` may be called more than once under contention and must
        be free of side effects. Exceptions it raises abort the transaction
        and propagate. Returns the committed value.
        """

    @abstractmethod
    def listen(self, path: str, callback: ValueCallback) -> ListenerHandle:
        """Call ``callback`` with the current value at ``path`` and on every change.

        Must be called from the event loop thread; callbacks are delivered
        on that thread in the order the changes were observed.
        """

    def new_key(self) -> str:
        return generate_push_id()

    async def close(self) -> None:
        """Release backend resources."""
        return None


class CallbackListener(ListenerHandle):
    """Delivers values to a callback, skipping repeats and anything after close()."""

    _MISSING = object()

    def __init__(self, path: str, callback: ValueCallback):
        self.path = path
        self.parts = split_path(path)
        self._callback = callback
        self._last: Any = self._MISSING
        self.closed = False

    def deliver(self, value: Any) -> None:
        if self.closed or value == self._last:
            return
        self._last = copy.deepcopy(value)
        self._callback(value)

    def close(self) -> None:
        self.closed = True
