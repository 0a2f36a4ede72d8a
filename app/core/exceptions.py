"""Error taxonomy for call and session orchestration."""


class VoiceAgentError(Exception):
    """Base class for orchestration errors."""


class ConfigurationInvalid(VoiceAgentError):
    """An AI session was started without a prompt or tools."""


class AnswerFailed(VoiceAgentError):
    """The call-control provider rejected the answer request."""


class ProfileNotFound(VoiceAgentError):
    """No caller profile exists for the answered phone number."""

    def __init__(self, phone_number: str):
        super().__init__(f"No caller profile configured for {phone_number!r}")
        self.phone_number = phone_number


class DeliveryExhausted(VoiceAgentError):
    """A payload could not be delivered to the telephony socket."""


class ToolInvocationFailed(VoiceAgentError):
    """The knowledge lookup behind a tool call failed."""


class MalformedToolArguments(VoiceAgentError):
    """A tool call carried arguments that could not be parsed."""
