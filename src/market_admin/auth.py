"""
Auth module: hosted identity provider.

Password sign-in, credential lookup and invalidation. Credentials are
opaque bearer tokens held by the HTTP client; this module never inspects
them.
"""

import logging
from typing import Any, Callable, Optional

from market_admin.errors import AuthError, BackendError, IdentityError
from market_admin.models.events import AuthEvent
from market_admin.models.identity import Identity
from market_admin.transport.http import HttpClient

logger = logging.getLogger(__name__)

AuthListener = Callable[[str, Optional[Identity]], None]


class Auth:
    def __init__(self, http: HttpClient):
        self._http = http
        self._listeners: list[AuthListener] = []

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        """Register a SIGNED_IN/SIGNED_OUT listener. Returns a cleanup function."""
        self._listeners.append(listener)

        def remove() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass
        return remove

    def _notify(self, event: str, identity: Optional[Identity]) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, identity)
            except Exception:
                logger.exception("Auth listener failed for %s", event)

    async def sign_in(self, email: str, password: str) -> dict[str, Any]:
        """Password grant. Stores the access token on success."""
        try:
            result = await self._http.post(
                "/auth/v1/token",
                {"email": email, "password": password},
                params={"grant_type": "password"},
                authenticated=False,
            )
        except BackendError as e:
            raise AuthError(f"Failed to sign in: {e}") from e
        if not isinstance(result, dict) or "access_token" not in result:
            raise AuthError("Sign-in response did not include an access token")
        self._http.set_token(result["access_token"])
        user = result.get("user") or {}
        identity = Identity(id=user["id"], email=user.get("email")) if user.get("id") else None
        self._notify(AuthEvent.SIGNED_IN, identity)
        return result

    async def get_credential(self) -> Optional[Identity]:
        """Current identity, or None when no credential is held or it was rejected."""
        if not self._http.token:
            return None
        try:
            user = await self._http.get("/auth/v1/user")
        except BackendError as e:
            if e.status_code in (401, 403):
                return None
            raise IdentityError(f"Failed to fetch current user: {e}") from e
        if not isinstance(user, dict) or not user.get("id"):
            return None
        return Identity(id=user["id"], email=user.get("email"))

    async def invalidate_credential(self) -> None:
        """Sign out. The local token is dropped even if the backend call fails."""
        token = self._http.token
        if token is None:
            return
        try:
            await self._http.post("/auth/v1/logout")
        except BackendError as e:
            logger.error("Remote sign-out failed: %s", e)
        finally:
            self._http.set_token(None)
            self._notify(AuthEvent.SIGNED_OUT, None)
