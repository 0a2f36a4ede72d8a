"""Call session models."""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from app.services.media.socket import MediaSocket
from app.services.realtime.session import AISession


class CallState(str, Enum):
    """Lifecycle of one phone call, driven by provider callbacks."""

    RINGING = "ringing"  # Notification received, not yet answered
    ANSWERED = "answered"  # Provider accepted the answer request
    CONNECTED = "connected"  # Provider confirmed the call connected
    STREAMING_ACTIVE = "streaming_active"
    STREAMING_STOPPED = "streaming_stopped"  # Call may still be connected
    DISCONNECTED = "disconnected"  # Terminal

    def __str__(self) -> str:
        return self.value

    @property
    def rank(self) -> int:
        return _STATE_RANK[self]


# Streaming may stop and restart, so both streaming states share a rank
_STATE_RANK = {
    CallState.RINGING: 0,
    CallState.ANSWERED: 1,
    CallState.CONNECTED: 2,
    CallState.STREAMING_ACTIVE: 3,
    CallState.STREAMING_STOPPED: 3,
    CallState.DISCONNECTED: 4,
}


class CallSession:
    """Call session model."""

    def __init__(
        self,
        callback_token: str,
        caller_id: str,
        state: CallState = CallState.RINGING,
    ):
        self.callback_token = callback_token  # Immutable once generated
        self.caller_id = caller_id
        self.state = state
        self.call_connection_id: Optional[str] = None  # Known after answering
        self.answered_for: Optional[str] = None
        self.ai_session: Optional[AISession] = None
        self.media_socket: Optional[MediaSocket] = None
        self.transcript: List[str] = []  # Lines from released AI sessions
        self.created_at = datetime.utcnow()

    @property
    def is_terminal(self) -> bool:
        return self.state == CallState.DISCONNECTED

    def transition(self, state: CallState) -> CallState:
        """Move to a new state; returns the previous one."""
        previous = self.state
        self.state = state
        return previous

    def advance(self, state: CallState) -> bool:
        """Move to a state unless it lies behind the current one."""
        if state.rank < self.state.rank:
            return False
        self.state = state
        return True

    def bind_media_socket(self, socket: MediaSocket) -> None:
        """Attach the media socket, replacing any earlier one."""
        if self.media_socket is not None and self.media_socket is not socket:
            self.media_socket.mark_closed()
        self.media_socket = socket
        if self.ai_session is not None:
            self.ai_session.bind_transport(socket)

    def attach_ai_session(self, ai_session: AISession) -> None:
        """Own an AI session; binds the media socket if it already attached."""
        self.ai_session = ai_session
        if self.media_socket is not None:
            ai_session.bind_transport(self.media_socket)
