"""
Contracts for the hosted collaborators the gate and channel depend on.

The REST/Socket.IO adapters in this package implement them; tests and
embedding applications can pass any object with the same shape.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol

from market_admin.models.identity import Identity, Role
from market_admin.models.message import ConversationKey, Message

PushHandler = Callable[[str, dict[str, Any]], None]


class IdentityProvider(Protocol):
    async def get_credential(self) -> Optional[Identity]: ...

    async def invalidate_credential(self) -> None: ...


class RoleStore(Protocol):
    async def get_role(self, identity: Identity) -> Role: ...


class MessageStore(Protocol):
    async def list_messages(self, key: ConversationKey) -> list[Message]: ...

    async def insert_message(self, sender_id: str, recipient_id: str, body: str) -> Message: ...


class PushTransport(Protocol):
    def subscribe(self, resource: str, on_event: PushHandler) -> Any: ...

    def unsubscribe(self, handle: Any) -> None: ...
