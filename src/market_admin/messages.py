"""
Messages REST API: backfill and insert against the messages table.
"""

from __future__ import annotations

from market_admin.errors import BackendError
from market_admin.models.message import SELLER_LABEL, ConversationKey, Message
from market_admin.transport.http import HttpClient

MESSAGES_PATH = "/rest/v1/messages"


class MessagesAPI:
    def __init__(self, http: HttpClient):
        self._http = http

    async def list_messages(self, key: ConversationKey) -> list[Message]:
        """All messages between the pair, oldest first."""
        a, b = key.party_a, key.party_b
        rows = await self._http.get(MESSAGES_PATH, params={
            "select": "*",
            "or": f"(and(seller_id.eq.{a},customer_id.eq.{b}),and(seller_id.eq.{b},customer_id.eq.{a}))",
            "order": "created_at.asc",
        })
        return [Message.model_validate(row) for row in rows or []]

    async def insert_message(self, sender_id: str, recipient_id: str, body: str) -> Message:
        rows = await self._http.post(
            MESSAGES_PATH,
            [{"seller_id": sender_id, "customer_id": recipient_id, "message": body, "sender": SELLER_LABEL}],
            headers={"Prefer": "return=representation"},
        )
        if not isinstance(rows, list) or not rows:
            raise BackendError("Insert returned no row")
        return Message.model_validate(rows[0])
