"""
Conversation channel: one live, ordered transcript for a pair of users.

The transcript is fed from two sources that overlap: a one-shot backfill
from the message store and the shared push feed. Every message id is
shown at most once and the transcript stays sorted by (created_at, id)
no matter which source delivers first.

Sending never touches the transcript directly. The stored row comes back
through the push feed like any other message.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Iterable, Iterator, Optional

from pydantic import ValidationError

from market_admin.errors import BackfillError, MalformedPushEvent, SendError
from market_admin.interfaces import MessageStore, PushTransport
from market_admin.models.events import ChangeType, Resource
from market_admin.models.message import ChangeEvent, ConversationKey, Message

logger = logging.getLogger(__name__)

DEFAULT_BACKFILL_TIMEOUT_S = 15.0

TranscriptListener = Callable[[tuple[Message, ...]], None]
ErrorListener = Callable[[Exception], None]


class Transcript:
    """Messages sorted by (created_at, id) with unique ids."""

    def __init__(self) -> None:
        self._messages: list[Message] = []
        self._index: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self._messages)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._index

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def ids(self) -> list[str]:
        return [m.id for m in self._messages]

    def add(self, message: Message) -> bool:
        return self.merge([message]) > 0

    def merge(self, messages: Iterable[Message]) -> int:
        """Add unseen messages. Returns how many were added.

        The ordered list and the id index are built first and assigned
        together, so a failure leaves the transcript untouched.
        """
        fresh: dict[str, Message] = {}
        for message in messages:
            if message.id not in self._index and message.id not in fresh:
                fresh[message.id] = message
        if not fresh:
            return 0
        ordered = sorted([*self._messages, *fresh.values()], key=lambda m: m.sort_key)
        index = {m.id: i for i, m in enumerate(ordered)}
        self._messages, self._index = ordered, index
        return len(fresh)

    def set_read(self, message_id: str, read: bool) -> bool:
        """Update the read flag, the only mutable field. Returns True on change."""
        pos = self._index.get(message_id)
        if pos is None or self._messages[pos].read == read:
            return False
        self._messages[pos] = self._messages[pos].model_copy(update={"read": read})
        return True


class ConversationChannel:
    def __init__(
        self,
        store: MessageStore,
        transport: PushTransport,
        self_id: str,
        peer_id: str,
        *,
        resource: str = Resource.MESSAGES,
        backfill_timeout: float = DEFAULT_BACKFILL_TIMEOUT_S,
    ):
        if self_id == peer_id:
            raise ValueError("A conversation needs two distinct participants")
        self.self_id = self_id
        self.peer_id = peer_id
        self.key = ConversationKey.of(self_id, peer_id)
        self.draft = ""
        self.backfill_error: Optional[BackfillError] = None
        self._store = store
        self._transport = transport
        self._resource = resource
        self._backfill_timeout = backfill_timeout
        self._transcript = Transcript()
        self._subscription: Any = None
        self._started = False
        self._closed = False
        self._transcript_listeners: list[TranscriptListener] = []
        self._error_listeners: list[ErrorListener] = []

    @classmethod
    async def open(
        cls,
        store: MessageStore,
        transport: PushTransport,
        self_id: str,
        peer_id: str,
        **kwargs: Any,
    ) -> "ConversationChannel":
        """Create a channel, subscribe to the push feed and run the backfill."""
        channel = cls(store, transport, self_id, peer_id, **kwargs)
        await channel.start()
        return channel

    @property
    def transcript(self) -> tuple[Message, ...]:
        return self._transcript.messages

    @property
    def closed(self) -> bool:
        return self._closed

    def is_mine(self, message: Message) -> bool:
        return message.is_from(self.self_id)

    def on_transcript_changed(self, listener: TranscriptListener) -> Callable[[], None]:
        self._transcript_listeners.append(listener)
        return lambda: _discard(self._transcript_listeners, listener)

    def on_error(self, listener: ErrorListener) -> Callable[[], None]:
        self._error_listeners.append(listener)
        return lambda: _discard(self._error_listeners, listener)

    async def start(self) -> None:
        if self._started or self._closed:
            return
        self._started = True
        # Subscribe before the backfill so nothing committed in between is missed;
        # the overlap is absorbed by id dedup.
        self._subscription = self._transport.subscribe(self._resource, self._on_push)
        await self.refresh()

    async def refresh(self) -> None:
        """Run (or re-run) the backfill. Failures are kept in backfill_error."""
        if self._closed:
            return
        try:
            messages = await asyncio.wait_for(
                self._store.list_messages(self.key), timeout=self._backfill_timeout,
            )
        except Exception as e:
            if self._closed:
                return
            reason = str(e) or type(e).__name__
            error = BackfillError(f"Failed to load messages: {reason}",
                                  details={"peer_id": self.peer_id})
            error.__cause__ = e
            self.backfill_error = error
            logger.warning("Backfill failed for %s/%s: %s", self.self_id, self.peer_id, e)
            self._notify_error(error)
            return
        if self._closed:
            return
        self.backfill_error = None
        accepted = [m for m in messages if self.key.includes(m.sender_id, m.recipient_id)]
        if self._transcript.merge(accepted):
            self._notify_transcript()

    async def send(self, body: Optional[str] = None) -> Message:
        """Store a message from self to peer.

        Without `body` the current draft is sent. The draft is cleared only
        after the store accepts the message.
        """
        if self._closed:
            raise SendError("Conversation is closed", code="channel_closed")
        if body is not None:
            self.draft = body
        text = self.draft.strip()
        if not text:
            raise SendError("Message body is empty", code="empty_message")
        try:
            message = await self._store.insert_message(self.self_id, self.peer_id, text)
        except Exception as e:
            logger.error("Send to %s failed: %s", self.peer_id, e)
            raise SendError(f"Failed to send message: {e}", details={"peer_id": self.peer_id}) from e
        if self.draft.strip() == text:
            self.draft = ""
        return message

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._subscription is not None:
            self._transport.unsubscribe(self._subscription)
            self._subscription = None
        self._transcript_listeners.clear()
        self._error_listeners.clear()

    async def __aenter__(self) -> "ConversationChannel":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()

    def _on_push(self, _event: str, raw: dict[str, Any]) -> None:
        if self._closed:
            return
        try:
            change_type, message = self._parse(raw)
        except MalformedPushEvent as e:
            logger.debug("Dropping push event: %s", e)
            return
        if change_type == ChangeType.DELETE or message is None:
            return
        if not self.key.includes(message.sender_id, message.recipient_id):
            return

        try:
            if message.id in self._transcript:
                changed = change_type == ChangeType.UPDATE and self._transcript.set_read(message.id, message.read)
            else:
                changed = self._transcript.add(message)
        except (TypeError, ValueError):
            logger.exception("Could not merge pushed message %s", message.id)
            return
        if changed:
            self._notify_transcript()

    @staticmethod
    def _parse(raw: dict[str, Any]) -> tuple[str, Optional[Message]]:
        if "new" not in raw and "type" not in raw:
            change = ChangeEvent(type=ChangeType.INSERT, new=raw)
        else:
            try:
                change = ChangeEvent.model_validate(raw)
            except ValidationError as e:
                raise MalformedPushEvent("invalid change envelope", details={"errors": e.errors()}) from e
        change_type = change.type.upper()
        if change_type == ChangeType.DELETE:
            return change_type, None
        if not change.new:
            raise MalformedPushEvent("change has no record")
        try:
            return change_type, Message.model_validate(change.new)
        except ValidationError as e:
            raise MalformedPushEvent("invalid message record", details={"errors": e.errors()}) from e

    def _notify_transcript(self) -> None:
        snapshot = self._transcript.messages
        for listener in list(self._transcript_listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Transcript listener failed")

    def _notify_error(self, error: Exception) -> None:
        for listener in list(self._error_listeners):
            try:
                listener(error)
            except Exception:
                logger.exception("Error listener failed")


def _discard(listeners: list[Any], listener: Any) -> None:
    try:
        listeners.remove(listener)
    except ValueError:
        pass
