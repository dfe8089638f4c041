"""
MarketAdmin / AsyncMarketAdmin: main SDK clients.
"""

import asyncio
from typing import Any, Optional

from market_admin.auth import Auth
from market_admin.channel import DEFAULT_BACKFILL_TIMEOUT_S, ConversationChannel
from market_admin.directory import UserDirectory
from market_admin.errors import ConnectionError
from market_admin.gate import DEFAULT_RESOLVE_TIMEOUT_S, DEFAULT_ROUTE_POLICY, AccessGate, RoutePolicy
from market_admin.messages import MessagesAPI
from market_admin.models.identity import Profile, Session
from market_admin.models.routes import GateResult
from market_admin.session import SessionResolver
from market_admin.transport.http import DEFAULT_BASE_URL, HttpClient
from market_admin.transport.socketio import SocketIOManager


class AsyncMarketAdmin:
    """Async admin console client (primary)."""

    def __init__(
        self,
        access_token: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        policy: RoutePolicy = DEFAULT_ROUTE_POLICY,
        transports: Optional[list[str]] = None,
        ready_timeout: float = 15.0,
        resolve_timeout: float = DEFAULT_RESOLVE_TIMEOUT_S,
        backfill_timeout: float = DEFAULT_BACKFILL_TIMEOUT_S,
    ):
        self._base_url = base_url
        self._api_key = api_key
        self._transports = transports
        self._ready_timeout = ready_timeout
        self._backfill_timeout = backfill_timeout

        self.http = HttpClient(base_url=base_url, api_key=api_key, token=access_token)
        self.auth = Auth(self.http)
        self.users = UserDirectory(self.http)
        self.messages = MessagesAPI(self.http)
        self.resolver = SessionResolver(self.auth, self.users)
        self.gate = AccessGate(self.resolver, policy, resolve_timeout=resolve_timeout)
        self.auth.on_auth_state_change(self.gate.handle_auth_event)

        self._sio: Optional[SocketIOManager] = None

    @property
    def connected(self) -> bool:
        return self._sio is not None and self._sio.connected

    @property
    def session(self) -> Optional[Session]:
        return self.gate.session

    async def sign_in(self, email: str, password: str) -> dict[str, Any]:
        return await self.auth.sign_in(email, password)

    async def sign_out(self) -> Optional[GateResult]:
        await self.disconnect()
        return await self.gate.sign_out()

    async def navigate(self, route: str) -> GateResult:
        """Run the access gate for a route change."""
        return await self.gate.evaluate(route)

    async def connect(self) -> None:
        """Open the shared push connection."""
        if not self.http.token:
            raise ConnectionError("access_token required. Sign in first.")
        if self.connected:
            return
        self._sio = SocketIOManager(
            base_url=self._base_url,
            token=self.http.token,
            api_key=self._api_key,
            transports=self._transports,
            ready_timeout=self._ready_timeout,
        )
        await self._sio.connect()

    async def disconnect(self) -> None:
        if self._sio:
            await self._sio.disconnect()
            self._sio = None

    async def get_profile(self, user_id: str) -> Profile:
        return await self.users.get_profile(user_id)

    async def open_conversation(self, peer_id: str) -> ConversationChannel:
        """Open a live conversation between the signed-in staff member and a peer."""
        session = self.gate.session
        if session is None:
            session = await self.resolver.resolve()
        if session is None:
            raise ConnectionError("No privileged session. Sign in first.")
        self._ensure_connected()
        return await ConversationChannel.open(
            self.messages, self._sio, session.identity.id, peer_id,  # type: ignore[arg-type]
            backfill_timeout=self._backfill_timeout,
        )

    async def close(self) -> None:
        await self.disconnect()
        await self.http.close()

    def _ensure_connected(self) -> None:
        if not self._sio or not self._sio.connected:
            raise ConnectionError("Not connected. Call connect() first.")


class MarketAdmin:
    """Sync wrapper around AsyncMarketAdmin. Runs the event loop internally."""

    def __init__(self, **kwargs: Any):
        self._async = AsyncMarketAdmin(**kwargs)
        self._loop = asyncio.new_event_loop()

    def _run(self, coro: Any) -> Any:
        return self._loop.run_until_complete(coro)

    @property
    def auth(self) -> Auth:
        return self._async.auth

    @property
    def gate(self) -> AccessGate:
        return self._async.gate

    @property
    def session(self) -> Optional[Session]:
        return self._async.session

    @property
    def connected(self) -> bool:
        return self._async.connected

    def sign_in(self, email: str, password: str) -> dict[str, Any]:
        return self._run(self._async.sign_in(email, password))

    def sign_out(self) -> Optional[GateResult]:
        return self._run(self._async.sign_out())

    def navigate(self, route: str) -> GateResult:
        return self._run(self._async.navigate(route))

    def connect(self) -> None:
        self._run(self._async.connect())

    def disconnect(self) -> None:
        self._run(self._async.disconnect())

    def get_profile(self, user_id: str) -> Profile:
        return self._run(self._async.get_profile(user_id))

    def close(self) -> None:
        self._run(self._async.close())
        self._loop.close()
