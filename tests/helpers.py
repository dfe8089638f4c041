"""In-memory stand-ins for the hosted collaborators, shared by the unit tests."""

import asyncio
import itertools
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from market_admin.models.identity import Identity, Role, Session
from market_admin.models.message import ConversationKey, Message

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def at(seconds: int) -> str:
    return (T0 + timedelta(seconds=seconds)).isoformat()


def row(id: str, sender: str, recipient: str, body: str = "hi", seconds: int = 0, read: bool = False) -> dict[str, Any]:
    return {
        "id": id,
        "seller_id": sender,
        "customer_id": recipient,
        "message": body,
        "created_at": at(seconds),
        "read": read,
    }


def make_session(role: Role = Role.ADMIN, user_id: str = "admin-1") -> Session:
    return Session(identity=Identity(id=user_id), role=role, resolved_at=T0)


async def settle(rounds: int = 10) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeIdentityProvider:
    def __init__(self, identity: Optional[Identity] = None):
        self.identity = identity
        self.error: Optional[Exception] = None
        self.invalidations = 0

    async def get_credential(self) -> Optional[Identity]:
        if self.error:
            raise self.error
        return self.identity

    async def invalidate_credential(self) -> None:
        self.invalidations += 1
        self.identity = None


class FakeRoleStore:
    def __init__(self) -> None:
        self.roles: dict[str, Any] = {}
        self.error: Optional[Exception] = None
        self.calls = 0

    async def get_role(self, identity: Identity) -> Role:
        self.calls += 1
        if self.error:
            raise self.error
        return Role.parse(self.roles.get(identity.id))


class FakePushTransport:
    def __init__(self) -> None:
        self._subs: dict[int, tuple[str, Any]] = {}
        self._ids = itertools.count(1)
        self.unsubscribe_calls = 0

    def subscribe(self, resource: str, on_event: Any) -> int:
        handle = next(self._ids)
        self._subs[handle] = (resource, on_event)
        return handle

    def unsubscribe(self, handle: int) -> None:
        self.unsubscribe_calls += 1
        self._subs.pop(handle, None)

    @property
    def subscriber_count(self) -> int:
        return len(self._subs)

    def publish(self, payload: dict[str, Any], resource: str = "messages") -> None:
        for sub_resource, handler in list(self._subs.values()):
            if sub_resource == resource:
                handler(resource, payload)


class FakeMessageStore:
    def __init__(self, push: Optional[FakePushTransport] = None):
        self.rows: list[dict[str, Any]] = []
        self.push = push
        self.list_error: Optional[Exception] = None
        self.insert_error: Optional[Exception] = None
        self.inserted: list[dict[str, Any]] = []
        self.list_gate: Optional[asyncio.Event] = None
        self._ids = itertools.count(1000)
        self._clock = itertools.count(3600)

    async def list_messages(self, key: ConversationKey) -> list[Message]:
        if self.list_gate is not None:
            await self.list_gate.wait()
        if self.list_error:
            raise self.list_error
        messages = [Message.model_validate(r) for r in self.rows]
        return sorted((m for m in messages if m.conversation_key == key), key=lambda m: m.created_at)

    async def insert_message(self, sender_id: str, recipient_id: str, body: str) -> Message:
        if self.insert_error:
            raise self.insert_error
        new = row(str(next(self._ids)), sender_id, recipient_id, body, next(self._clock))
        self.rows.append(new)
        self.inserted.append(new)
        if self.push is not None:
            self.push.publish({"type": "INSERT", "resource": "messages", "new": new})
        return Message.model_validate(new)


