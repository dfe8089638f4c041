"""
Socket.IO push transport.

One connection is shared by every open conversation: subscribers register
per resource and each one filters its own events. The manager waits for
the backend's `ready` event before connect() resolves.
"""

import asyncio
import itertools
import logging
from typing import Any, Optional

import socketio

from market_admin.interfaces import PushHandler

logger = logging.getLogger(__name__)

SOCKETIO_PATH = "/realtime/v1/socket.io/"
SUBSCRIBE_EVENT = "realtime:subscribe"
UNSUBSCRIBE_EVENT = "realtime:unsubscribe"
_CONTROL_EVENTS = ("connect", "disconnect", "connect_error", "ready")


class Subscription:
    __slots__ = ("id", "resource", "handler", "active")

    def __init__(self, id: int, resource: str, handler: PushHandler):
        self.id = id
        self.resource = resource
        self.handler = handler
        self.active = True

    def __repr__(self) -> str:
        return f"Subscription(id={self.id}, resource={self.resource!r}, active={self.active})"


class SocketIOManager:
    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        api_key: Optional[str] = None,
        transports: Optional[list[str]] = None,
        ready_timeout: float = 15.0,
    ):
        self._base_url = base_url
        self._token = token
        self._api_key = api_key
        self._transports = transports or ["websocket"]
        self._ready_timeout = ready_timeout
        self._sio: Optional[socketio.AsyncClient] = None
        self._connected = False
        self._subscriptions: dict[str, list[Subscription]] = {}
        self._ids = itertools.count(1)

    @property
    def connected(self) -> bool:
        return self._connected and self._sio is not None and self._sio.connected

    def subscribe(self, resource: str, on_event: PushHandler) -> Subscription:
        """Register a handler for every change pushed on a resource."""
        sub = Subscription(next(self._ids), resource, on_event)
        subs = self._subscriptions.setdefault(resource, [])
        subs.append(sub)
        if len(subs) == 1 and self.connected:
            self._emit(SUBSCRIBE_EVENT, {"resource": resource})
        return sub

    def unsubscribe(self, handle: Subscription) -> None:
        if not handle.active:
            return
        handle.active = False
        subs = self._subscriptions.get(handle.resource, [])
        try:
            subs.remove(handle)
        except ValueError:
            pass
        if not subs:
            self._subscriptions.pop(handle.resource, None)
            if self.connected:
                self._emit(UNSUBSCRIBE_EVENT, {"resource": handle.resource})

    def subscriber_count(self, resource: str) -> int:
        return len(self._subscriptions.get(resource, []))

    def dispatch(self, event: str, data: Any) -> None:
        """Fan a pushed event out to the resource's subscribers."""
        if event in _CONTROL_EVENTS or not isinstance(data, dict):
            return
        for sub in list(self._subscriptions.get(event, [])):
            if not sub.active:
                continue
            try:
                sub.handler(event, data)
            except Exception:
                logger.exception("Push handler %r failed for %s", sub, event)

    async def connect(self) -> None:
        """Connect and wait for the `ready` event."""
        if self._sio and self._sio.connected:
            return

        self._sio = socketio.AsyncClient()
        ready_event = asyncio.Event()

        @self._sio.on("ready")
        async def on_ready(*_args: Any) -> None:
            self._connected = True
            ready_event.set()

        @self._sio.on("*")
        async def on_any(event: str, data: Any) -> None:
            self.dispatch(event, data)

        @self._sio.event
        async def disconnect(_reason: str = "") -> None:
            self._connected = False

        auth: dict[str, str] = {}
        if self._token:
            auth["token"] = self._token
        if self._api_key:
            auth["apikey"] = self._api_key

        await self._sio.connect(
            self._base_url,
            auth=auth,
            transports=self._transports,
            socketio_path=SOCKETIO_PATH,
        )

        try:
            await asyncio.wait_for(ready_event.wait(), timeout=self._ready_timeout)
        except asyncio.TimeoutError:
            await self._sio.disconnect()
            raise TimeoutError(f"Timed out waiting for 'ready' event after {self._ready_timeout}s")

        for resource in self._subscriptions:
            self._emit(SUBSCRIBE_EVENT, {"resource": resource})

    def _emit(self, event_type: str, data: Any) -> None:
        """Schedule an emit on the running loop. Failures are logged."""
        sio = self._sio

        async def _do_emit() -> None:
            try:
                await sio.emit(event_type, data)  # type: ignore[union-attr]
            except Exception as e:
                logger.error("Emit failed for %s: %s", event_type, e)

        try:
            loop = asyncio.get_running_loop()
            loop.create_task(_do_emit())
        except RuntimeError:
            asyncio.ensure_future(_do_emit())

    async def disconnect(self) -> None:
        self._connected = False
        if self._sio:
            await self._sio.disconnect()
            self._sio = None
