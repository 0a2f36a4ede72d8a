"""Registry of active call sessions keyed by callback token."""
import asyncio
import logging
from typing import Dict, List, Optional

from app.services.call_session.models import CallSession

logger = logging.getLogger(__name__)


class CallRegistry:
    """Routes provider callbacks and media sockets to their call session.

    Each token also owns a lock; holding it serializes the callbacks for
    that call in arrival order without ordering different calls.
    """

    def __init__(self):
        self._sessions: Dict[str, CallSession] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def register(self, session: CallSession) -> None:
        token = session.callback_token
        if token in self._sessions:
            raise ValueError(f"Callback token already registered: {token}")
        self._sessions[token] = session
        self._locks.setdefault(token, asyncio.Lock())
        logger.debug(f"[REGISTRY] Registered - Token: {token}, Active: {len(self._sessions)}")

    def get(self, token: str) -> Optional[CallSession]:
        return self._sessions.get(token)

    def lock(self, token: str) -> asyncio.Lock:
        return self._locks.setdefault(token, asyncio.Lock())

    def remove(self, token: str) -> Optional[CallSession]:
        session = self._sessions.pop(token, None)
        self._locks.pop(token, None)
        if session is not None:
            logger.debug(f"[REGISTRY] Removed - Token: {token}, Active: {len(self._sessions)}")
        return session

    def active_count(self) -> int:
        return len(self._sessions)

    def all(self) -> List[CallSession]:
        return list(self._sessions.values())
