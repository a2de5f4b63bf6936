"""SessionRegistry — the process-wide table of live sessions.

Owned by ExecutionManager; there is no module-level instance.
"""

from __future__ import annotations

import logging
import threading
import uuid

from execution.errors import DuplicateSession, UnknownSession
from execution.session import Session

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Maps session ids to sessions.

    The lock only guards dict operations and is never held across an await,
    so lookups for different sessions never wait on each other's engine I/O.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def create(self) -> str:
        """Return a fresh random 128-bit session id."""
        return str(uuid.uuid4())

    def register(self, session_id: str, session: Session) -> None:
        with self._lock:
            if session_id in self._sessions:
                raise DuplicateSession(session_id)
            self._sessions[session_id] = session
        logger.info("Registered sandbox for session %s", session_id)

    def resolve(self, session_id: str) -> Session:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise UnknownSession(session_id)
        return session

    def remove(self, session_id: str) -> Session | None:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is not None:
            logger.info("Removed session %s", session_id)
        return session

    def list_ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
