"""Event consuming: drains a session outbox onto its WebSocket"""
import json
import logging
from collections.abc import Callable

from domain.constants import WS_CLOSE_INTERNAL_ERROR
from domain.models import Session, SessionState

logger = logging.getLogger(__name__)


class OutboxConsumer:
    """Writes the queued envelopes of one session to its socket, in order

    A send failure is a transport error: the consumer stops, reports the
    session through `on_transport_error` so it can be torn down, and closes
    the socket so the read side of the connection ends too. A session closed
    by anyone else (e.g. for a full outbox) gets its socket closed as well.
    """

    def __init__(self, session: Session, on_transport_error: Callable[[Session], None] | None = None) -> None:
        self.session = session
        self.on_transport_error = on_transport_error

    async def consume(self) -> None:
        """Continuously deliver queued envelopes until cancelled, closed or the socket fails"""
        while True:
            envelope = await self.session.outbox.get()
            try:
                delivered = await self.handle_event(envelope)
            finally:
                self.session.outbox.task_done()
            if not delivered:
                return
            if self.session.state is SessionState.CLOSED:
                await self.close_socket()
                return

    async def handle_event(self, envelope: dict) -> bool:
        """Send one envelope; returns False when the connection is broken"""
        try:
            await self.session.websocket.send_text(json.dumps(envelope))
        except Exception as e:
            logger.warning(
                "Error sending %s event to session %s of user %s: %s",
                envelope.get("type"), self.session.session_id, self.session.identity.id, e,
            )
            if self.on_transport_error is not None:
                self.on_transport_error(self.session)
            await self.close_socket()
            return False
        return True

    async def close_socket(self) -> None:
        try:
            await self.session.websocket.close(code=WS_CLOSE_INTERNAL_ERROR)
        except Exception as e:
            logger.debug("Socket of session %s already closed: %s", self.session.session_id, e)
