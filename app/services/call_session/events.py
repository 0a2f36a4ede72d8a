"""Webhook and Call Automation callback event models."""
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

SUBSCRIPTION_VALIDATION_EVENT = "Microsoft.EventGrid.SubscriptionValidationEvent"
INCOMING_CALL_EVENT = "Microsoft.Communication.IncomingCall"


class CallbackEventType(str, Enum):
    """Call Automation callback events the state machine acts on."""

    CALL_CONNECTED = "Microsoft.Communication.CallConnected"
    CALL_DISCONNECTED = "Microsoft.Communication.CallDisconnected"
    MEDIA_STREAMING_STARTED = "Microsoft.Communication.MediaStreamingStarted"
    MEDIA_STREAMING_STOPPED = "Microsoft.Communication.MediaStreamingStopped"
    MEDIA_STREAMING_FAILED = "Microsoft.Communication.MediaStreamingFailed"

    def __str__(self) -> str:
        return self.value


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class CommunicationIdentifier(_CamelModel):
    raw_id: Optional[str] = Field(default=None, alias="rawId")


class IncomingCallData(_CamelModel):
    """Payload of an Event Grid IncomingCall event."""

    from_: CommunicationIdentifier = Field(alias="from")
    to: Optional[CommunicationIdentifier] = None
    incoming_call_context: str = Field(alias="incomingCallContext")
    correlation_id: Optional[str] = Field(default=None, alias="correlationId")


class EventGridEvent(_CamelModel):
    """One element of an Event Grid webhook batch."""

    event_type: str = Field(default="", alias="eventType")
    data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_subscription_validation(self) -> bool:
        return self.event_type == SUBSCRIPTION_VALIDATION_EVENT

    @property
    def is_incoming_call(self) -> bool:
        return self.event_type == INCOMING_CALL_EVENT

    @property
    def validation_code(self) -> Optional[str]:
        return self.data.get("validationCode")


class MediaStreamingUpdate(_CamelModel):
    content_type: Optional[str] = Field(default=None, alias="contentType")
    media_streaming_status: Optional[str] = Field(default=None, alias="mediaStreamingStatus")
    media_streaming_status_details: Optional[str] = Field(
        default=None, alias="mediaStreamingStatusDetails"
    )


class ResultInformation(_CamelModel):
    code: Optional[int] = None
    sub_code: Optional[int] = Field(default=None, alias="subCode")
    message: Optional[str] = None


class CallbackEvent(_CamelModel):
    """A Call Automation cloud event delivered to the callback address."""

    type: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def kind(self) -> Optional[CallbackEventType]:
        """Typed event kind, or None for events this service does not handle."""
        try:
            return CallbackEventType(self.type)
        except ValueError:
            return None

    @property
    def call_connection_id(self) -> Optional[str]:
        return self.data.get("callConnectionId")

    @property
    def correlation_id(self) -> Optional[str]:
        return self.data.get("correlationId")

    @property
    def operation_context(self) -> Optional[str]:
        return self.data.get("operationContext")

    @property
    def media_streaming_update(self) -> MediaStreamingUpdate:
        return MediaStreamingUpdate.model_validate(self.data.get("mediaStreamingUpdate") or {})

    @property
    def result_information(self) -> ResultInformation:
        return ResultInformation.model_validate(self.data.get("resultInformation") or {})
