"""Telephony media socket wrapper."""
import logging
from typing import Optional

from starlette.websockets import WebSocket, WebSocketState

logger = logging.getLogger(__name__)


class MediaSocket:
    """Duplex media socket opened by the call-control provider for one call.

    Tracks whether the socket is still usable so that late outbound frames
    can be dropped instead of raising on a dead connection.
    """

    def __init__(self, websocket: WebSocket, callback_token: Optional[str] = None):
        self.websocket = websocket
        self.callback_token = callback_token
        self._closed = False

    @property
    def is_open(self) -> bool:
        """True once the handshake completed and neither side has closed."""
        if self._closed:
            return False
        return (
            self.websocket.application_state == WebSocketState.CONNECTED
            and self.websocket.client_state == WebSocketState.CONNECTED
        )

    @property
    def is_closed(self) -> bool:
        """True once either side closed; a connecting socket is not closed."""
        if self._closed:
            return True
        return (
            self.websocket.application_state == WebSocketState.DISCONNECTED
            or self.websocket.client_state == WebSocketState.DISCONNECTED
        )

    async def send_text(self, payload: str) -> None:
        await self.websocket.send_text(payload)

    def mark_closed(self) -> None:
        if not self._closed:
            logger.debug(f"[MEDIA SOCKET] Marked closed - Token: {self.callback_token}")
        self._closed = True
