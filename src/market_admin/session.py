"""
Session resolution.

A credential either resolves to a privileged Session or to nothing. A
credential whose role cannot be read, or is not ADMIN/SUPER_ADMIN, is
evicted with the identity provider. Callers only ever see None, so a
non-privileged principal cannot tell "forbidden" apart from "signed out".
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from market_admin.errors import IdentityError, RoleRejected
from market_admin.interfaces import IdentityProvider, RoleStore
from market_admin.models.identity import PRIVILEGED_ROLES, Identity, Role, Session

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionResolver:
    def __init__(
        self,
        identity: IdentityProvider,
        roles: RoleStore,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._identity = identity
        self._roles = roles
        self._clock = clock

    async def resolve(self) -> Optional[Session]:
        try:
            identity = await self._identity.get_credential()
        except Exception as e:
            logger.warning("Credential fetch failed, treating as signed out: %s", e)
            return None
        if identity is None:
            return None

        try:
            role = await self._lookup_role(identity)
        except RoleRejected as e:
            logger.warning("Evicting %s: %s", identity.id, e)
            await self._evict()
            return None

        return Session(identity=identity, role=role, resolved_at=self._clock())

    async def _lookup_role(self, identity: Identity) -> Role:
        try:
            role = Role.parse(await self._roles.get_role(identity))
        except Exception as e:
            raise RoleRejected("role lookup failed", code="role_lookup_failed",
                               details={"error": str(e)}) from e
        if role not in PRIVILEGED_ROLES:
            raise RoleRejected("role not privileged", details={"role": role.value})
        return role

    async def _evict(self) -> None:
        try:
            await self._identity.invalidate_credential()
        except Exception as e:
            logger.error("Forced sign-out failed: %s", e)

    async def sign_out(self) -> None:
        """Explicit sign-out. Errors from the provider are raised as IdentityError."""
        try:
            await self._identity.invalidate_credential()
        except Exception as e:
            raise IdentityError(f"Sign-out failed: {e}") from e
