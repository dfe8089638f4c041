import pytest

from helpers import FakeIdentityProvider, FakeMessageStore, FakePushTransport, FakeRoleStore
from market_admin.models.identity import Identity


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider(Identity(id="admin-1", email="admin@example.com"))


@pytest.fixture
def role_store() -> FakeRoleStore:
    store = FakeRoleStore()
    store.roles["admin-1"] = "ADMIN"
    return store


@pytest.fixture
def push() -> FakePushTransport:
    return FakePushTransport()


@pytest.fixture
def message_store(push: FakePushTransport) -> FakeMessageStore:
    return FakeMessageStore(push)
