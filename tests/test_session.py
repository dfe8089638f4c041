"""SessionResolver: privileged-only sessions and forced eviction."""

import pytest

from helpers import T0
from market_admin.errors import BackendError
from market_admin.models.identity import Role
from market_admin.session import SessionResolver


def make_resolver(identity_provider, role_store) -> SessionResolver:
    return SessionResolver(identity_provider, role_store, clock=lambda: T0)


@pytest.mark.asyncio
@pytest.mark.parametrize("role", ["ADMIN", "SUPER_ADMIN"])
async def test_privileged_role_resolves(identity_provider, role_store, role):
    role_store.roles["admin-1"] = role
    session = await make_resolver(identity_provider, role_store).resolve()

    assert session is not None
    assert session.identity.id == "admin-1"
    assert session.role == Role(role)
    assert session.resolved_at == T0
    assert identity_provider.invalidations == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("role", [None, "SELLER", "CUSTOMER", "USER", "", "NONE", 7])
async def test_non_privileged_role_is_evicted_once(identity_provider, role_store, role):
    role_store.roles["admin-1"] = role
    resolver = make_resolver(identity_provider, role_store)

    assert await resolver.resolve() is None
    assert identity_provider.invalidations == 1

    # already evicted: no further side effects
    assert await resolver.resolve() is None
    assert await resolver.resolve() is None
    assert identity_provider.invalidations == 1


@pytest.mark.asyncio
async def test_role_lookup_error_is_evicted(identity_provider, role_store):
    role_store.error = BackendError("boom", status_code=500)
    resolver = make_resolver(identity_provider, role_store)

    assert await resolver.resolve() is None
    assert identity_provider.invalidations == 1


@pytest.mark.asyncio
async def test_no_credential_is_absent_without_side_effects(identity_provider, role_store):
    identity_provider.identity = None
    resolver = make_resolver(identity_provider, role_store)

    assert await resolver.resolve() is None
    assert role_store.calls == 0
    assert identity_provider.invalidations == 0


@pytest.mark.asyncio
async def test_credential_fetch_error_fails_closed(identity_provider, role_store):
    identity_provider.error = RuntimeError("network down")
    resolver = make_resolver(identity_provider, role_store)

    assert await resolver.resolve() is None
    assert role_store.calls == 0
    assert identity_provider.invalidations == 0


@pytest.mark.asyncio
async def test_eviction_failure_still_returns_absent(identity_provider, role_store):
    role_store.roles["admin-1"] = "SELLER"

    async def broken_invalidate():
        raise RuntimeError("logout failed")

    identity_provider.invalidate_credential = broken_invalidate
    assert await make_resolver(identity_provider, role_store).resolve() is None


@pytest.mark.asyncio
async def test_role_store_may_return_raw_strings(identity_provider):
    class RawRoles:
        async def get_role(self, identity):
            return "super_admin"

    session = await SessionResolver(identity_provider, RawRoles()).resolve()
    assert session is not None and session.is_super_admin
