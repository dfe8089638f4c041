"""
Access gate: decides, on every navigation, whether a route may render.

decide() is a pure function of (requirement, session). AccessGate wraps it
in a per-navigation state machine: each evaluate() starts a fresh
resolution, and only the resolution for the most recent route may produce
a decision. Anything still in flight for an older route is discarded when
it lands. A sign-in or sign-out seen while resolving makes that resolution
run again, so a credential read before the change never decides.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Mapping, Optional

from market_admin.errors import IdentityError
from market_admin.models.events import AuthEvent
from market_admin.models.identity import Identity, Role, Session
from market_admin.models.routes import AccessDecision, GateResult, GateState, RouteRequirement
from market_admin.session import SessionResolver

logger = logging.getLogger(__name__)

LOGIN_ROUTE = "/"
HOME_ROUTE = "/home"
DEFAULT_RESOLVE_TIMEOUT_S = 10.0

DEFAULT_ROUTES: dict[str, RouteRequirement] = {
    "/": RouteRequirement.PUBLIC,
    "/home": RouteRequirement.PRIVILEGED,
    "/middleman": RouteRequirement.PRIVILEGED,
    "/user-accounts": RouteRequirement.PRIVILEGED,
    "/seller-accounts": RouteRequirement.PRIVILEGED,
    "/product-moderation": RouteRequirement.PRIVILEGED,
    "/post-moderation": RouteRequirement.PRIVILEGED,
    "/post-detail/:postId": RouteRequirement.PRIVILEGED,
    "/audit-logs": RouteRequirement.PRIVILEGED,
    "/chat/:sellerId": RouteRequirement.PRIVILEGED,
    "/admin-manage": RouteRequirement.SUPER_ONLY,
    "/service-fees": RouteRequirement.SUPER_ONLY,
}

DecisionListener = Callable[[GateResult], None]


def _segments(route: str) -> list[str]:
    path = route.split("?", 1)[0].split("#", 1)[0]
    return [part for part in path.split("/") if part]


class RoutePolicy:
    """Static route table. `:name` segments match any single path segment."""

    def __init__(
        self,
        rules: Mapping[str, RouteRequirement],
        default: RouteRequirement = RouteRequirement.PRIVILEGED,
    ):
        self._rules = tuple((_segments(pattern), requirement) for pattern, requirement in rules.items())
        self._default = default

    def required(self, route: str) -> RouteRequirement:
        parts = _segments(route)
        for pattern, requirement in self._rules:
            if len(pattern) != len(parts):
                continue
            if all(p.startswith(":") or p == s for p, s in zip(pattern, parts)):
                return requirement
        return self._default


DEFAULT_ROUTE_POLICY = RoutePolicy(DEFAULT_ROUTES)


def decide(requirement: RouteRequirement, session: Optional[Session]) -> AccessDecision:
    if requirement == RouteRequirement.PUBLIC:
        # signed-in staff never see public-only screens such as the login page
        return AccessDecision.REDIRECT_TO_HOME if session is not None else AccessDecision.ALLOW
    if session is None:
        return AccessDecision.REDIRECT_TO_LOGIN
    if requirement == RouteRequirement.SUPER_ONLY and session.role != Role.SUPER_ADMIN:
        return AccessDecision.REDIRECT_TO_HOME
    return AccessDecision.ALLOW


class AccessGate:
    def __init__(
        self,
        resolver: SessionResolver,
        policy: RoutePolicy = DEFAULT_ROUTE_POLICY,
        *,
        login_route: str = LOGIN_ROUTE,
        home_route: str = HOME_ROUTE,
        resolve_timeout: float = DEFAULT_RESOLVE_TIMEOUT_S,
    ):
        self._resolver = resolver
        self._policy = policy
        self._login_route = login_route
        self._home_route = home_route
        self._resolve_timeout = resolve_timeout
        self._state = GateState.UNKNOWN
        self._route: Optional[str] = None
        self._session: Optional[Session] = None
        self._generation = 0
        self._navigation = 0
        self._in_flight: Optional[int] = None
        self._signing_out = False
        self._listeners: list[DecisionListener] = []
        self._pending: set[asyncio.Task[GateResult]] = set()

    @property
    def state(self) -> GateState:
        return self._state

    @property
    def route(self) -> Optional[str]:
        return self._route

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def is_super_admin(self) -> bool:
        """UI hint for hiding super-admin entries. Not a security boundary."""
        return self._session is not None and self._session.is_super_admin

    def on_decision(self, listener: DecisionListener) -> Callable[[], None]:
        """Called with each decision for the current route. Returns a cleanup function."""
        self._listeners.append(listener)

        def remove() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass
        return remove

    async def evaluate(self, route: str) -> GateResult:
        """Resolve the session and decide for `route`.

        If another evaluate() or sign_out() starts before this one's
        resolution lands, the result comes back with superseded=True and no
        decision, and no listener is called. An auth event that arrives
        while resolving makes this call resolve again for the same route.
        """
        self._navigation += 1
        navigation = self._navigation
        self._route = route
        self._state = GateState.UNKNOWN

        while True:
            self._generation += 1
            generation = self._generation
            self._in_flight = navigation
            try:
                session = await self._resolve()
            finally:
                if self._in_flight == navigation:
                    self._in_flight = None
            if navigation != self._navigation:
                logger.debug("Discarding stale resolution for %s (now at %s)", route, self._route)
                return GateResult(route=route, superseded=True)
            if generation == self._generation:
                break
            logger.debug("Auth state changed while resolving %s, resolving again", route)

        self._session = session
        result = self._result_for(route, session)
        self._state = self._state_for(route, result.decision)
        for listener in list(self._listeners):
            try:
                listener(result)
            except Exception:
                logger.exception("Decision listener failed for %s", route)
        return result

    async def sign_out(self) -> Optional[GateResult]:
        """Invalidate the credential and re-decide for the current route.

        Any evaluation already in flight is superseded before the provider
        is called, so it cannot put the old session back.
        """
        self._navigation += 1
        self._generation += 1
        self._state = GateState.UNKNOWN
        self._session = None
        self._signing_out = True
        try:
            await self._resolver.sign_out()
        except IdentityError as e:
            logger.error("Sign-out failed: %s", e)
        finally:
            self._signing_out = False
        if self._route is None:
            return None
        return await self.evaluate(self._route)

    def handle_auth_event(self, event: str, _identity: Optional[Identity] = None) -> None:
        """Re-evaluate the current route after a sign-in or sign-out elsewhere.

        A resolution already in flight for the current route is resolved
        again by its own evaluate() call instead of scheduling another one.
        """
        if event not in (AuthEvent.SIGNED_IN, AuthEvent.SIGNED_OUT):
            return
        self._generation += 1
        if event == AuthEvent.SIGNED_OUT:
            self._session = None
        if self._route is None or self._signing_out or self._in_flight == self._navigation:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self.evaluate(self._route))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _resolve(self) -> Optional[Session]:
        try:
            return await asyncio.wait_for(self._resolver.resolve(), timeout=self._resolve_timeout)
        except asyncio.TimeoutError:
            logger.warning("Session resolution timed out after %ss, failing closed", self._resolve_timeout)
            return None
        except Exception as e:
            logger.warning("Session resolution failed, failing closed: %s", e)
            return None

    def _result_for(self, route: str, session: Optional[Session]) -> GateResult:
        decision = decide(self._policy.required(route), session)
        if decision == AccessDecision.REDIRECT_TO_LOGIN:
            return GateResult(route=route, decision=decision,
                              redirect_target=self._login_route, return_to=route)
        if decision == AccessDecision.REDIRECT_TO_HOME:
            return GateResult(route=route, decision=decision, redirect_target=self._home_route)
        return GateResult(route=route, decision=decision)

    def _state_for(self, route: str, decision: Optional[AccessDecision]) -> GateState:
        if decision == AccessDecision.REDIRECT_TO_LOGIN:
            return GateState.BLOCKED_LOGIN
        if decision == AccessDecision.REDIRECT_TO_HOME:
            return GateState.BLOCKED_HOME
        if self._policy.required(route) == RouteRequirement.PUBLIC:
            return GateState.PUBLIC_OK
        return GateState.PRIVILEGED_OK
