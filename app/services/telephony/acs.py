"""Azure Communication Services call-control adapter."""
import logging
from typing import Any, Optional

from azure.communication.callautomation import (
    AudioFormat,
    MediaStreamingAudioChannelType,
    MediaStreamingContentType,
    MediaStreamingOptions,
    StreamingTransportType,
)
from azure.communication.callautomation.aio import CallAutomationClient

logger = logging.getLogger(__name__)

PHONE_NUMBER_RAW_ID_PREFIX = "4:"


def phone_number_of(identifier: Any) -> Optional[str]:
    """Best-effort E.164 number from a communication identifier."""
    if identifier is None:
        return None
    properties = getattr(identifier, "properties", None) or {}
    value = properties.get("value") if isinstance(properties, dict) else None
    if value:
        return value
    raw_id = getattr(identifier, "raw_id", None) or ""
    if raw_id.startswith(PHONE_NUMBER_RAW_ID_PREFIX):
        return raw_id[len(PHONE_NUMBER_RAW_ID_PREFIX):]
    return raw_id or None


def build_media_streaming_options(transport_url: str) -> MediaStreamingOptions:
    """Bidirectional, unmixed, 24kHz mono PCM streaming over a websocket."""
    return MediaStreamingOptions(
        transport_url=transport_url,
        transport_type=StreamingTransportType.WEBSOCKET,
        content_type=MediaStreamingContentType.AUDIO,
        audio_channel_type=MediaStreamingAudioChannelType.UNMIXED,
        start_media_streaming=True,
        enable_bidirectional=True,
        audio_format=AudioFormat.PCM24_K_MONO,
    )


class AcsCallControl:
    """Answers calls and reads connection properties through Call Automation."""

    def __init__(self, client: CallAutomationClient):
        self.client = client

    @classmethod
    def from_connection_string(cls, connection_string: str) -> "AcsCallControl":
        client = CallAutomationClient.from_connection_string(connection_string)
        logger.info("[ACS] Initialized Call Automation client")
        return cls(client)

    async def answer_call(
        self,
        incoming_call_context: str,
        callback_url: str,
        transport_url: str,
    ) -> str:
        """Answer an incoming call with media streaming; returns the connection id."""
        result = await self.client.answer_call(
            incoming_call_context=incoming_call_context,
            callback_url=callback_url,
            operation_context="incomingCall",
            media_streaming=build_media_streaming_options(transport_url),
        )
        return result.call_connection_id

    async def get_answered_for(self, call_connection_id: str) -> Optional[str]:
        """Phone number the call was placed to."""
        call_connection = self.client.get_call_connection(call_connection_id)
        properties = await call_connection.get_call_properties()
        return phone_number_of(getattr(properties, "answered_for", None))

    async def close(self) -> None:
        await self.client.close()
