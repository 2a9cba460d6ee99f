"""Registry of live WebSocket sessions and the presence derived from them"""
import asyncio
import logging
from collections.abc import Callable

from fastapi import WebSocket

from domain.audience import Audience, DirectAudience
from domain.constants import OUTBOX_MAX_SIZE
from domain.models import Identity, Session, SessionState

logger = logging.getLogger(__name__)

PresenceListener = Callable[[list[Identity]], None]


class SessionRegistry:
    """Tracks sessions per identity; an identity is online while it has at least one session

    All methods are synchronous, so each call runs atomically on the event loop.
    """

    def __init__(self, on_presence_change: PresenceListener | None = None, outbox_max_size: int = OUTBOX_MAX_SIZE) -> None:
        self.on_presence_change = on_presence_change
        self.outbox_max_size = outbox_max_size
        self._sessions: dict[str, Session] = {}
        # insertion order doubles as "first connected" order for presence lists
        self._by_identity: dict[int, list[Session]] = {}

    def register(self, identity: Identity, websocket: WebSocket) -> Session:
        """Track a new authenticated connection"""
        session = Session(
            identity=identity,
            websocket=websocket,
            state=SessionState.AUTHENTICATED,
            outbox=asyncio.Queue(maxsize=self.outbox_max_size),
        )
        self._sessions[session.session_id] = session

        sessions = self._by_identity.setdefault(identity.id, [])
        came_online = not sessions
        sessions.append(session)

        logger.info(
            "User '%s' (ID: %s) connected. Sessions: %d, online users: %d",
            identity.username, identity.id, len(self._sessions), len(self._by_identity),
        )
        if came_online:
            self._notify()
        return session

    def activate(self, session: Session) -> None:
        """Start delivering live events to a registered session"""
        if session.session_id in self._sessions and session.state is SessionState.AUTHENTICATED:
            session.state = SessionState.ACTIVE

    def deregister(self, session: Session) -> bool:
        """Forget a session (idempotent)

        Returns:
            True when this removed the identity's last session
        """
        session.state = SessionState.CLOSED
        if self._sessions.pop(session.session_id, None) is None:
            return False

        identity_id = session.identity.id
        sessions = self._by_identity.get(identity_id, [])
        if session in sessions:
            sessions.remove(session)

        went_offline = not sessions
        if went_offline:
            self._by_identity.pop(identity_id, None)

        logger.info(
            "User '%s' (ID: %s) disconnected. Sessions: %d, online users: %d",
            session.identity.username, identity_id, len(self._sessions), len(self._by_identity),
        )
        if went_offline:
            self._notify()
        return went_offline

    def list_online(self) -> list[Identity]:
        """Identities with at least one live session"""
        return [sessions[0].identity for sessions in self._by_identity.values() if sessions]

    def is_online(self, identity_id: int) -> bool:
        return bool(self._by_identity.get(identity_id))

    def sessions_for(self, identity_id: int) -> list[Session]:
        """Sessions of one identity in connection order (empty if offline)"""
        return list(self._by_identity.get(identity_id, []))

    def active_sessions(self) -> list[Session]:
        """Sessions that have received their boot snapshot"""
        return [session for session in self._sessions.values() if session.is_active]

    def recipients(self, audience: Audience) -> list[Session]:
        """Active sessions entitled to events of `audience`"""
        if isinstance(audience, DirectAudience):
            sessions: list[Session] = []
            for identity_id in sorted(audience.members):
                sessions.extend(s for s in self.sessions_for(identity_id) if s.is_active)
            return sessions
        return self.active_sessions()

    def get_session_count(self) -> int:
        return len(self._sessions)

    def _notify(self) -> None:
        if self.on_presence_change is not None:
            self.on_presence_change(self.list_online())
