"""Bounded-retry delivery to the telephony media socket."""
import asyncio
import logging
from typing import Callable, Optional

from app.core.exceptions import DeliveryExhausted
from app.services.media.socket import MediaSocket

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_RETRY_INTERVAL_SECONDS = 1.0


class TransportRetrySender:
    """Delivers one payload at a time to the bound media socket.

    The socket may still be completing its handshake (or not be bound at
    all) when the AI starts producing audio, so delivery is retried on a
    fixed interval. A payload that exhausts its attempts is lost, not queued.
    """

    def __init__(
        self,
        transport: Optional[MediaSocket] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_interval: float = DEFAULT_RETRY_INTERVAL_SECONDS,
    ):
        self.transport = transport
        self.max_attempts = max_attempts
        self.retry_interval = retry_interval

    def bind(self, transport: Optional[MediaSocket]) -> None:
        """Bind (or replace) the socket that payloads are delivered to."""
        self.transport = transport

    async def send(self, payload: str, cancelled: Optional[Callable[[], bool]] = None) -> bool:
        """
        Deliver a payload to the bound socket.

        Args:
            payload: Text frame to deliver
            cancelled: Checked before every attempt; once it returns True
                the payload is dropped

        Returns:
            True if the payload was sent, False if the socket is already
            closed (forwarding after close is a no-op) or the payload was
            cancelled.

        Raises:
            DeliveryExhausted: the socket never became open.
        """
        for attempt in range(1, self.max_attempts + 1):
            if cancelled is not None and cancelled():
                logger.debug("[TRANSPORT] Payload superseded, dropping")
                return False

            transport = self.transport
            if transport is not None and transport.is_closed:
                logger.debug("[TRANSPORT] Socket closed, dropping payload")
                return False

            if transport is not None and transport.is_open:
                try:
                    await transport.send_text(payload)
                except Exception as e:
                    # Peer went away between the state check and the write
                    logger.warning(
                        f"[TRANSPORT] Send failed, dropping payload - "
                        f"Error: {type(e).__name__}: {str(e)}"
                    )
                    transport.mark_closed()
                    return False
                return True

            logger.warning(
                f"[TRANSPORT] WebSocket is not open. Retrying... "
                f"({attempt}/{self.max_attempts})"
            )
            await asyncio.sleep(self.retry_interval)

        logger.error("[TRANSPORT] Failed to send message: WebSocket connection is not open.")
        raise DeliveryExhausted(
            f"Media socket not open after {self.max_attempts} attempts"
        )
