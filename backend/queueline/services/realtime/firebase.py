"""Firebase Realtime Database store."""

import asyncio
import logging
from typing import Any, Dict, Optional

import firebase_admin
from firebase_admin import credentials as fb_credentials
from firebase_admin import db as fb_db

from queueline.services.realtime.base import (
    CallbackListener,
    ListenerHandle,
    RealtimeStore,
    TransactionFn,
    ValueCallback,
    read_at,
    split_path,
    write_at,
)

logger = logging.getLogger(__name__)

_APP_NAME = "queueline"


class FirebaseStore(RealtimeStore):
    """Realtime store backed by the Firebase Admin SDK.

    The SDK is blocking, so every call runs in a worker thread. Listener
    events arrive on the SDK's streaming thread and are handed to the event
    loop with ``call_soon_threadsafe`` in arrival order.
    """

    def __init__(
        self,
        database_url: str,
        credentials_path: Optional[str] = None,
        http_timeout: Optional[float] = None,
    ):
        if credentials_path:
            cred = fb_credentials.Certificate(credentials_path)
        else:
            cred = fb_credentials.ApplicationDefault()
        options: Dict[str, Any] = {"databaseURL": database_url}
        if http_timeout:
            options["httpTimeout"] = http_timeout
        self._app = firebase_admin.initialize_app(cred, options, name=_APP_NAME)
        logger.info(f"Firebase Admin SDK initialized for {database_url}")

    @property
    def backend_name(self) -> str:
        return "firebase"

    def _ref(self, path: str) -> fb_db.Reference:
        return fb_db.reference("/" + "/".join(split_path(path)), app=self._app)

    async def get(self, path: str) -> Any:
        return await asyncio.to_thread(self._ref(path).get)

    async def set(self, path: str, value: Any) -> None:
        ref = self._ref(path)
        if value is None:
            await asyncio.to_thread(ref.delete)
        else:
            await asyncio.to_thread(ref.set, value)

    async def update(self, path: str, values: Dict[str, Any]) -> None:
        # Multi-location PATCH; None children are deleted in the same write
        await asyncio.to_thread(self._ref(path).update, values)

    async def delete(self, path: str) -> None:
        await asyncio.to_thread(self._ref(path).delete)

    async def transaction(self, path: str, update_fn: TransactionFn) -> Any:
        return await asyncio.to_thread(self._ref(path).transaction, update_fn)

    def listen(self, path: str, callback: ValueCallback) -> ListenerHandle:
        loop = asyncio.get_running_loop()
        handle = _FirebaseHandle(path, callback, loop)
        handle.registration = self._ref(path).listen(handle.on_event)
        return handle

    async def close(self) -> None:
        await asyncio.to_thread(firebase_admin.delete_app, self._app)
        logger.info("Firebase Admin SDK released")


class _FirebaseHandle(ListenerHandle):
    """Rebuilds the full value at a path from streamed put/patch events."""

    def __init__(self, path: str, callback: ValueCallback, loop: asyncio.AbstractEventLoop):
        self._listener = CallbackListener(path, callback)
        self._loop = loop
        self._value: Any = None
        self.registration = None
        self.closing: Optional[asyncio.Future] = None

    def on_event(self, event) -> None:
        # Runs on the SDK streaming thread
        if self._listener.closed:
            return
        parts = split_path(event.path)
        if event.event_type == "put":
            self._value = write_at(self._value, parts, event.data)
        elif event.event_type == "patch":
            for key, child in (event.data or {}).items():
                self._value = write_at(self._value, parts + split_path(key), child)
        else:
            logger.debug(f"Ignoring '{event.event_type}' event on '{self._listener.path}'")
            return
        snapshot = read_at(self._value, [])
        try:
            self._loop.call_soon_threadsafe(self._listener.deliver, snapshot)
        except RuntimeError:
            # Loop already closed during shutdown
            logger.debug(f"Dropped event for '{self._listener.path}': event loop closed")

    def close(self) -> None:
        self._listener.close()
        registration, self.registration = self.registration, None
        if registration is None:
            return
        # ListenerRegistration.close() joins the SDK streaming thread
        try:
            self.closing = self._loop.run_in_executor(None, registration.close)
        except RuntimeError:
            registration.close()
            return
        self.closing.add_done_callback(self._closed)

    def _closed(self, future: "asyncio.Future") -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.warning(f"Closing stream for '{self._listener.path}' failed: {error}")
