"""
In-memory session registry used by the HTTP layer.

Sessions that stay idle longer than SESSION_TTL_SECONDS are closed. The sweep
piggybacks on create/get and runs at most once per cleanup interval.
"""
import logging
import time
from typing import Dict, List, Optional

from signdesk.config import Settings, get_settings
from signdesk.core.session import ViewingSession
from signdesk.utils.security import generate_id

logger = logging.getLogger(__name__)


class SessionNotFound(KeyError):
    def __init__(self, session_id: str):
        super().__init__(session_id)
        self.session_id = session_id

    def __str__(self) -> str:
        return f"Session not found: {self.session_id}"


class SessionRegistry:
    """Maps session ids to viewing sessions."""

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self._sessions: Dict[str, ViewingSession] = {}
        self.ttl_seconds = settings.session_ttl_seconds
        self._cleanup_interval = settings.session_cleanup_interval_seconds
        self._last_cleanup = time.time()

    def create(self, **kwargs) -> ViewingSession:
        self._cleanup_expired()
        session = ViewingSession(generate_id("ses"), **kwargs)
        self._sessions[session.id] = session
        logger.info(f"Session {session.id} created ({len(self._sessions)} open)")
        return session

    def get(self, session_id: str) -> ViewingSession:
        self._cleanup_expired()
        try:
            session = self._sessions[session_id]
        except KeyError:
            raise SessionNotFound(session_id) from None
        session.touch()
        return session

    def close(self, session_id: str) -> ViewingSession:
        session = self.get(session_id)
        session.close_document()
        del self._sessions[session_id]
        logger.info(f"Session {session_id} closed")
        return session

    def _cleanup_expired(self) -> None:
        """Close sessions that haven't been used for a while."""
        now = time.time()
        if now - self._last_cleanup < self._cleanup_interval:
            return

        # A running export still holds the session
        expired = [
            session for session in self._sessions.values()
            if not session.exporting and session.idle_for(now) > self.ttl_seconds
        ]
        for session in expired:
            session.close_document()
            del self._sessions[session.id]
            logger.info(f"Session {session.id} expired after {int(session.idle_for(now))}s idle")

        self._last_cleanup = now

    def list(self) -> List[ViewingSession]:
        return list(self._sessions.values())

    def clear(self) -> None:
        self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions


_registry: Optional[SessionRegistry] = None


def get_session_registry() -> SessionRegistry:
    """Get session registry singleton."""
    global _registry
    if _registry is None:
        _registry = SessionRegistry()
    return _registry
