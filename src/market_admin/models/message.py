"""
Conversation message models.

Rows coming from the hosted store use the legacy column names. A row
stores the seller in seller_id, the other party in customer_id and the
body in message; the sender label ("SELLER" or "CUSTOMER") says which of
the two wrote it. Both the legacy and the canonical names are accepted
here so nothing past this boundary sees a loosely-shaped row.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

SELLER_LABEL = "SELLER"
CUSTOMER_LABEL = "CUSTOMER"


def _coerce_str(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


class ConversationKey(BaseModel):
    """Unordered pair of participants. (a, b) and (b, a) are equal."""

    model_config = ConfigDict(frozen=True)

    party_a: str
    party_b: str

    @classmethod
    def of(cls, first: str, second: str) -> "ConversationKey":
        a, b = sorted((first, second))
        return cls(party_a=a, party_b=b)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ConversationKey):
            return NotImplemented
        return {self.party_a, self.party_b} == {other.party_a, other.party_b}

    def __hash__(self) -> int:
        return hash(frozenset((self.party_a, self.party_b)))

    def includes(self, sender_id: Optional[str], recipient_id: Optional[str]) -> bool:
        if sender_id is None or recipient_id is None:
            return False
        return ConversationKey.of(sender_id, recipient_id) == self

    def other(self, identity_id: str) -> str:
        return self.party_b if identity_id == self.party_a else self.party_a


class Message(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    sender_id: str = Field(validation_alias=AliasChoices("sender_id", "senderId", "seller_id"))
    recipient_id: str = Field(validation_alias=AliasChoices("recipient_id", "recipientId", "customer_id"))
    body: str = Field(validation_alias=AliasChoices("body", "message"))
    created_at: datetime = Field(validation_alias=AliasChoices("created_at", "createdAt"))
    read: bool = Field(default=False, validation_alias=AliasChoices("read", "readFlag", "read_flag"))

    @model_validator(mode="before")
    @classmethod
    def _attribute_legacy_row(cls, data: Any) -> Any:
        # Unlabelled legacy rows fall through to the seller_id/customer_id aliases.
        if not isinstance(data, dict) or "sender_id" in data or "senderId" in data:
            return data
        label = data.get("sender")
        if not isinstance(label, str) or "seller_id" not in data or "customer_id" not in data:
            return data
        label = label.strip().upper()
        if label == CUSTOMER_LABEL:
            sender, recipient = data["customer_id"], data["seller_id"]
        elif label == SELLER_LABEL:
            sender, recipient = data["seller_id"], data["customer_id"]
        else:
            raise ValueError(f"unknown sender label {data['sender']!r}")
        rest = {k: v for k, v in data.items() if k not in ("seller_id", "customer_id", "sender")}
        return {**rest, "sender_id": sender, "recipient_id": recipient}

    @field_validator("id", "sender_id", "recipient_id", mode="before")
    @classmethod
    def _coerce_ids(cls, value: Any) -> Any:
        return _coerce_str(value)

    @field_validator("read", mode="before")
    @classmethod
    def _null_read(cls, value: Any) -> Any:
        return False if value is None else value

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Timestamps without an offset are UTC; mixing naive and aware breaks ordering.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def conversation_key(self) -> ConversationKey:
        return ConversationKey.of(self.sender_id, self.recipient_id)

    @property
    def sort_key(self) -> tuple[datetime, str]:
        return (self.created_at, self.id)

    def is_from(self, identity_id: str) -> bool:
        return self.sender_id == identity_id


class ChangeEvent(BaseModel):
    """Push payload for a row change on a resource."""

    type: str = "INSERT"  # INSERT | UPDATE | DELETE
    resource: str = "messages"
    new: Optional[dict[str, Any]] = None
    old: Optional[dict[str, Any]] = None
    commit_timestamp: Optional[str] = None
