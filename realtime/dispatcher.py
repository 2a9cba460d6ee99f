"""Dispatch engine: turns inbound frames and mutations into persisted state and outbound events"""
import asyncio
import logging

from fastapi import WebSocket

from database.message_store import MessageStore
from domain.audience import GENERAL, audience_for, resolve
from domain.constants import OUTBOX_MAX_SIZE
from domain.errors import ChatError, NotFoundError
from domain.frames import parse_frame
from domain.models import Identity, Message, Reaction, Session, SessionState
from events.publisher import EventPublisher
from realtime.session_registry import SessionRegistry

logger = logging.getLogger(__name__)


class Dispatcher:
    """Coordinates the message store, the session registry and the publisher

    One lock serialises every "mutate the store, then publish" step and the
    boot sequence. Delivery order therefore matches append order within an
    audience, and each message is either part of a session's boot snapshot
    or delivered to it live, never both.
    """

    def __init__(self, store: MessageStore, registry: SessionRegistry, publisher: EventPublisher) -> None:
        self.store = store
        self.registry = registry
        self.publisher = publisher
        self._lock = asyncio.Lock()

    async def open_session(self, identity: Identity, websocket: WebSocket) -> Session:
        """Register an authenticated connection and queue its boot snapshot"""
        async with self._lock:
            session = self.registry.register(identity, websocket)
            try:
                messages = await self.store.history(GENERAL)
                self.publisher.send_boot(session, messages, self.registry.list_online())
                self.registry.activate(session)
            except BaseException:
                # a session that never booted must not linger as online
                self.registry.deregister(session)
                raise
        return session

    def close_session(self, session: Session) -> None:
        """Tear down a session (idempotent)"""
        self.registry.deregister(session)

    async def handle_frame(self, session: Session, raw: str) -> Message | None:
        """Process one inbound frame from `session`

        Validation problems are reported to the sender only; the connection
        stays usable.
        """
        if session.state is SessionState.CLOSED:
            logger.warning("Dropped frame from closed session %s of user %s", session.session_id, session.identity.id)
            return None

        try:
            draft = parse_frame(raw, session.identity)
            async with self._lock:
                message = await self.store.append(draft)
                recipients = self.publisher.publish_message(message)
        except ChatError as e:
            logger.warning("Rejected frame from user %s: %s", session.identity.id, e.message)
            self.publisher.send_error(session, e)
            return None

        logger.debug("Message %s delivered to %d session(s)", message.id, recipients)
        return message

    async def add_reaction(self, message_id: str, identity: Identity, emoji: str) -> Reaction:
        """Add a reaction and notify the message's audience

        Every call emits a `reaction` event, including repeats that do not
        change the stored state.
        """
        async with self._lock:
            message = await self._visible_message(message_id, identity)
            reaction = await self.store.add_reaction(message.id, identity, emoji)
            self.publisher.publish_reaction(message, reaction)
        return reaction

    async def delete_message(self, message_id: str, identity: Identity) -> Message:
        """Delete a message (author only) and notify its audience"""
        async with self._lock:
            await self._visible_message(message_id, identity)
            removed = await self.store.remove(message_id, identity)
            self.publisher.publish_delete(removed)
        return removed

    async def history_for(self, identity: Identity, recipient_id: int | None = None, limit: int | None = None) -> list[Message]:
        """History of the general chat, or of the conversation between `identity` and `recipient_id`"""
        return await self.store.history(audience_for(identity.id, recipient_id), limit)

    async def _visible_message(self, message_id: str, identity: Identity) -> Message:
        """A message `identity` is entitled to see; direct messages of others count as missing"""
        message = await self.store.get(message_id)
        if message is None or not resolve(message).includes(identity.id):
            raise NotFoundError(f"Message {message_id} not found")
        return message


def build_dispatcher(store: MessageStore, outbox_max_size: int = OUTBOX_MAX_SIZE) -> Dispatcher:
    """Wire a dispatcher with a fresh registry whose presence changes are published"""
    registry = SessionRegistry(outbox_max_size=outbox_max_size)
    publisher = EventPublisher(registry)
    registry.on_presence_change = publisher.publish_online_users
    return Dispatcher(store, registry, publisher)
