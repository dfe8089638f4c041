"""
User directory: role lookup and profile details from the Users table.
"""

from __future__ import annotations

from market_admin.errors import BackendError
from market_admin.models.identity import Identity, Profile, Role
from market_admin.transport.http import HttpClient

USERS_PATH = "/rest/v1/Users"


class UserDirectory:
    def __init__(self, http: HttpClient):
        self._http = http

    async def get_role(self, identity: Identity) -> Role:
        """Role for an identity. Raises BackendError when no single row matches."""
        rows = await self._http.get(USERS_PATH, params={
            "select": "type",
            "user_id": f"eq.{identity.id}",
        })
        if not isinstance(rows, list) or len(rows) != 1:
            raise BackendError(f"Expected one user row for {identity.id}, got {len(rows or [])}")
        return Role.parse(rows[0].get("type"))

    async def get_profile(self, user_id: str) -> Profile:
        rows = await self._http.get(USERS_PATH, params={
            "select": "user_id,first_name,last_name,email,photo_url,type",
            "user_id": f"eq.{user_id}",
        })
        if not isinstance(rows, list) or not rows:
            raise BackendError(f"User {user_id} not found", status_code=404)
        return Profile.model_validate(rows[0])
