"""Event publishing: fan-out of outbound events to session outboxes"""
import logging

from domain.audience import GENERAL, Audience, resolve
from domain.constants import (
    EVENT_TYPE_BOOT,
    EVENT_TYPE_DELETE,
    EVENT_TYPE_ERROR,
    EVENT_TYPE_MESSAGE,
    EVENT_TYPE_ONLINE_USERS,
    EVENT_TYPE_REACTION,
)
from domain.errors import ChatError
from domain.models import Identity, Message, OutboundEvent, Reaction, Session
from realtime.session_registry import SessionRegistry

logger = logging.getLogger(__name__)


class EventPublisher:
    """Publishes events to the outboxes of the sessions that should see them

    Recipients are snapshotted at publish time and envelopes are queued
    without awaiting, so publishing never waits on a client socket.
    """

    def __init__(self, registry: SessionRegistry) -> None:
        self.registry = registry

    def publish(self, event: OutboundEvent, audience: Audience = GENERAL) -> int:
        """Queue an event for every active session of `audience`; returns the recipient count"""
        envelope = event.to_dict()
        recipients = self.registry.recipients(audience)
        stalled = [session for session in recipients if not session.enqueue(envelope)]
        # deregistering publishes presence, so only after this fan-out is complete
        for session in stalled:
            self.drop_stalled(session)
        logger.debug("Published %s event to %d session(s)", event.type, len(recipients))
        return len(recipients)

    def publish_to(self, session: Session, event: OutboundEvent) -> None:
        """Queue an event for a single session regardless of its state"""
        if not session.enqueue(event.to_dict()):
            self.drop_stalled(session)

    def drop_stalled(self, session: Session) -> None:
        """Tear down a session whose outbox is full; its consumer closes the socket"""
        logger.warning(
            "Outbox full for session %s of user %s, closing it",
            session.session_id, session.identity.id,
        )
        self.registry.deregister(session)

    def publish_message(self, message: Message) -> int:
        return self.publish(OutboundEvent(type=EVENT_TYPE_MESSAGE, data=message.to_dict()), resolve(message))

    def publish_reaction(self, message: Message, reaction: Reaction) -> int:
        data = {"messageId": message.id, "reaction": reaction.to_dict()}
        return self.publish(OutboundEvent(type=EVENT_TYPE_REACTION, data=data), resolve(message))

    def publish_delete(self, message: Message) -> int:
        return self.publish(OutboundEvent(type=EVENT_TYPE_DELETE, data={"messageId": message.id}), resolve(message))

    def publish_online_users(self, online: list[Identity]) -> int:
        """Presence is global: every active session gets the full list"""
        data = [identity.to_dict() for identity in online]
        return self.publish(OutboundEvent(type=EVENT_TYPE_ONLINE_USERS, data=data), GENERAL)

    def send_boot(self, session: Session, messages: list[Message], online: list[Identity]) -> None:
        data = {
            "messages": [message.to_dict() for message in messages],
            "online_users": [identity.to_dict() for identity in online],
        }
        self.publish_to(session, OutboundEvent(type=EVENT_TYPE_BOOT, data=data))

    def send_error(self, session: Session, error: ChatError) -> None:
        self.publish_to(session, OutboundEvent(type=EVENT_TYPE_ERROR, data=error.to_dict()))
