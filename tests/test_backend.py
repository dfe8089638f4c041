"""REST adapters against a mocked hosted backend."""

import json

import httpx
import pytest

from market_admin.auth import Auth
from market_admin.directory import UserDirectory
from market_admin.errors import AuthError, BackendError, IdentityError
from market_admin.messages import MessagesAPI
from market_admin.models.events import AuthEvent
from market_admin.models.identity import Identity, Role
from market_admin.models.message import ConversationKey
from market_admin.transport.http import HttpClient


def make_http(handler, token="user-token") -> HttpClient:
    return HttpClient(base_url="https://backend.test", api_key="anon", token=token,
                      transport=httpx.MockTransport(handler))


class TestHttpClient:
    @pytest.mark.asyncio
    async def test_headers(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.headers)
            return httpx.Response(200, json=[])

        await make_http(handler).get("/rest/v1/Users")
        assert seen["apikey"] == "anon"
        assert seen["authorization"] == "Bearer user-token"

    @pytest.mark.asyncio
    async def test_unauthenticated_uses_api_key(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.headers)
            return httpx.Response(204)

        assert await make_http(handler).post("/x", authenticated=False) is None
        assert seen["authorization"] == "Bearer anon"

    @pytest.mark.asyncio
    async def test_error_status(self):
        http = make_http(lambda request: httpx.Response(503, text="unavailable"))
        with pytest.raises(BackendError) as exc_info:
            await http.get("/rest/v1/messages")
        assert exc_info.value.status_code == 503
        assert exc_info.value.code == "http_error"


class TestAuth:
    @pytest.mark.asyncio
    async def test_sign_in_stores_token_and_notifies(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/auth/v1/token"
            assert request.url.params["grant_type"] == "password"
            assert json.loads(request.content) == {"email": "a@b.c", "password": "pw"}
            return httpx.Response(200, json={"access_token": "new-token",
                                             "user": {"id": "admin-1", "email": "a@b.c"}})

        http = make_http(handler, token=None)
        auth = Auth(http)
        events = []
        auth.on_auth_state_change(lambda event, identity: events.append((event, identity)))

        await auth.sign_in("a@b.c", "pw")

        assert http.token == "new-token"
        assert events == [(AuthEvent.SIGNED_IN, Identity(id="admin-1", email="a@b.c"))]

    @pytest.mark.asyncio
    async def test_sign_in_failure(self):
        auth = Auth(make_http(lambda request: httpx.Response(400, json={"error": "invalid_grant"}), token=None))
        with pytest.raises(AuthError):
            await auth.sign_in("a@b.c", "wrong")

    @pytest.mark.asyncio
    async def test_get_credential(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/auth/v1/user"
            return httpx.Response(200, json={"id": "admin-1", "email": "a@b.c"})

        identity = await Auth(make_http(handler)).get_credential()
        assert identity == Identity(id="admin-1", email="a@b.c")

    @pytest.mark.asyncio
    async def test_get_credential_without_token(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        assert await Auth(make_http(handler, token=None)).get_credential() is None

    @pytest.mark.asyncio
    async def test_rejected_token_is_absent(self):
        auth = Auth(make_http(lambda request: httpx.Response(401, json={"msg": "expired"})))
        assert await auth.get_credential() is None

    @pytest.mark.asyncio
    async def test_server_error_is_identity_error(self):
        auth = Auth(make_http(lambda request: httpx.Response(500)))
        with pytest.raises(IdentityError):
            await auth.get_credential()

    @pytest.mark.asyncio
    async def test_invalidate_drops_token_even_if_logout_fails(self):
        http = make_http(lambda request: httpx.Response(500))
        auth = Auth(http)
        events = []
        auth.on_auth_state_change(lambda event, identity: events.append(event))

        await auth.invalidate_credential()
        await auth.invalidate_credential()

        assert http.token is None
        assert events == [AuthEvent.SIGNED_OUT]


class TestUserDirectory:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("value, role", [("ADMIN", Role.ADMIN), ("SUPER_ADMIN", Role.SUPER_ADMIN),
                                             ("SELLER", Role.NONE), (None, Role.NONE)])
    async def test_get_role(self, value, role):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/rest/v1/Users"
            assert request.url.params["user_id"] == "eq.admin-1"
            assert request.url.params["select"] == "type"
            return httpx.Response(200, json=[{"type": value}])

        assert await UserDirectory(make_http(handler)).get_role(Identity(id="admin-1")) == role

    @pytest.mark.asyncio
    async def test_missing_user_row_is_an_error(self):
        directory = UserDirectory(make_http(lambda request: httpx.Response(200, json=[])))
        with pytest.raises(BackendError):
            await directory.get_role(Identity(id="ghost"))

    @pytest.mark.asyncio
    async def test_get_profile(self):
        payload = [{"user_id": "seller-1", "first_name": "Ana", "last_name": "Cruz",
                    "email": "ana@example.com", "photo_url": None, "type": "SELLER"}]
        directory = UserDirectory(make_http(lambda request: httpx.Response(200, json=payload)))

        profile = await directory.get_profile("seller-1")

        assert profile.display_name == "Ana Cruz"
        assert profile.role == Role.NONE


class TestMessagesAPI:
    @pytest.mark.asyncio
    async def test_list_messages_maps_legacy_columns(self):
        def handler(request: httpx.Request) -> httpx.Response:
            params = request.url.params
            assert params["order"] == "created_at.asc"
            assert "and(seller_id.eq.admin-1,customer_id.eq.seller-1)" in params["or"]
            assert "and(seller_id.eq.seller-1,customer_id.eq.admin-1)" in params["or"]
            return httpx.Response(200, json=[
                {"id": 1, "seller_id": "admin-1", "customer_id": "seller-1", "message": "hello",
                 "sender": "SELLER", "created_at": "2024-05-01T12:00:00+00:00", "read": None},
            ])

        messages = await MessagesAPI(make_http(handler)).list_messages(ConversationKey.of("seller-1", "admin-1"))

        assert len(messages) == 1
        message = messages[0]
        assert message.id == "1"
        assert message.sender_id == "admin-1"
        assert message.recipient_id == "seller-1"
        assert message.body == "hello"
        assert message.read is False

    @pytest.mark.asyncio
    async def test_customer_labelled_row_is_attributed_to_customer_id(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[
                {"id": 7, "seller_id": "seller-1", "customer_id": "admin-1", "message": "from staff",
                 "sender": "CUSTOMER", "created_at": "2024-05-01T12:00:00+00:00", "read": False},
                {"id": 8, "seller_id": "seller-1", "customer_id": "admin-1", "message": "from seller",
                 "sender": "seller", "created_at": "2024-05-01T12:01:00+00:00", "read": False},
            ])

        staff, seller = await MessagesAPI(make_http(handler)).list_messages(ConversationKey.of("seller-1", "admin-1"))

        assert staff.sender_id == "admin-1"
        assert staff.recipient_id == "seller-1"
        assert staff.is_from("admin-1")
        assert seller.sender_id == "seller-1"
        assert seller.recipient_id == "admin-1"

    @pytest.mark.asyncio
    async def test_insert_message(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "POST"
            assert request.headers["prefer"] == "return=representation"
            body = json.loads(request.content)
            assert body == [{"seller_id": "admin-1", "customer_id": "seller-1", "message": "hi",
                             "sender": "SELLER"}]
            return httpx.Response(201, json=[{**body[0], "id": "m-1", "created_at": "2024-05-01T12:00:00Z"}])

        message = await MessagesAPI(make_http(handler)).insert_message("admin-1", "seller-1", "hi")
        assert message.id == "m-1"
        assert message.is_from("admin-1")

    @pytest.mark.asyncio
    async def test_insert_failure_propagates(self):
        api = MessagesAPI(make_http(lambda request: httpx.Response(403, json={"message": "rls"})))
        with pytest.raises(BackendError):
            await api.insert_message("admin-1", "seller-1", "hi")
