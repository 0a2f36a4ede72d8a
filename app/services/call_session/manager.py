"""Call session manager."""
import logging
import uuid
from datetime import datetime
from typing import Awaitable, Callable, Optional, Protocol
from urllib.parse import quote

from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.exceptions import AnswerFailed, ProfileNotFound
from app.services.call_session.events import CallbackEvent, CallbackEventType
from app.services.call_session.models import CallSession, CallState
from app.services.call_session.registry import CallRegistry
from app.services.media.bridge import decode_inbound
from app.services.media.socket import MediaSocket
from app.services.persistence.calls import CallPersistenceService
from app.services.profiles.repository import CallerProfileRepository
from app.services.realtime.session import AISession

logger = logging.getLogger(__name__)

MEDIA_PATH = "/ws/media"
CALLBACK_PATH = "/api/callbacks"


class CallControl(Protocol):
    async def answer_call(
        self, incoming_call_context: str, callback_url: str, transport_url: str
    ) -> str:
        ...

    async def get_answered_for(self, call_connection_id: str) -> Optional[str]:
        ...


AISessionFactory = Callable[[str], AISession]


def to_websocket_url(url: str) -> str:
    """Swap the http(s) scheme of a URL for the matching websocket scheme."""
    if url.startswith("https://"):
        return "wss://" + url[len("https://"):]
    if url.startswith("http://"):
        return "ws://" + url[len("http://"):]
    return url


def _advance(session: CallSession, state: CallState, event: CallbackEvent) -> None:
    if not session.advance(state):
        logger.debug(
            f"[CALLBACK] {event.type} arrived late, keeping state {session.state} "
            f"- Token: {session.callback_token}"
        )


class CallSessionManager:
    """Drives each call through its lifecycle and owns its AI session."""

    def __init__(
        self,
        call_control: CallControl,
        registry: CallRegistry,
        profile_repository: CallerProfileRepository,
        ai_session_factory: AISessionFactory,
        callback_base_url: str,
        session_factory: Optional[async_sessionmaker] = None,
    ):
        self.call_control = call_control
        self.registry = registry
        self.profile_repository = profile_repository
        self.ai_session_factory = ai_session_factory
        self.callback_base_url = callback_base_url.rstrip("/")
        self.session_factory = session_factory

    def build_callback_url(self, callback_token: str, caller_id: str) -> str:
        return (
            f"{self.callback_base_url}{CALLBACK_PATH}/{callback_token}"
            f"?callerId={quote(caller_id, safe='')}"
        )

    def build_transport_url(self, callback_token: str) -> str:
        return f"{to_websocket_url(self.callback_base_url)}{MEDIA_PATH}/{callback_token}"

    async def handle_incoming_call(self, caller_id: str, incoming_call_context: str) -> str:
        """
        Answer an incoming call with bidirectional media streaming.

        The session is registered before the answer request so that
        callbacks racing the answer response find it and wait their turn.

        Args:
            caller_id: Raw identifier of the caller
            incoming_call_context: Opaque context from the IncomingCall event

        Returns:
            The callback token assigned to the call

        Raises:
            AnswerFailed: the provider rejected the answer request
        """
        callback_token = str(uuid.uuid4())
        session = CallSession(callback_token=callback_token, caller_id=caller_id)
        self.registry.register(session)

        callback_url = self.build_callback_url(callback_token, caller_id)
        transport_url = self.build_transport_url(callback_token)
        logger.debug(
            f"[SESSION MANAGER] Answering call - Token: {callback_token}, "
            f"Callback: {callback_url}, Transport: {transport_url}"
        )

        async with self.registry.lock(callback_token):
            try:
                call_connection_id = await self.call_control.answer_call(
                    incoming_call_context, callback_url, transport_url
                )
            except Exception as e:
                logger.error(
                    f"[SESSION MANAGER] Answer call failed - Token: {callback_token}, "
                    f"Caller: {caller_id}, Error: {type(e).__name__}: {str(e)}",
                    exc_info=True,
                )
                session.transition(CallState.DISCONNECTED)
                self.registry.remove(callback_token)
                raise AnswerFailed(f"Provider rejected answer for caller {caller_id}") from e

            session.call_connection_id = call_connection_id
            session.transition(CallState.ANSWERED)
            logger.info(
                f"[SESSION MANAGER] Answer call ConnectionId: {call_connection_id}, "
                f"Token: {callback_token}"
            )

            await self._persist(
                "answered call",
                lambda calls: calls.create_call(
                    callback_token,
                    caller_id=caller_id,
                    call_connection_id=call_connection_id,
                    status=CallState.ANSWERED.value,
                ),
            )

        return callback_token

    async def process_callback_event(self, callback_token: str, event: CallbackEvent) -> None:
        """
        Apply one provider callback to the call it belongs to.

        Callbacks for the same token are handled in arrival order. Unknown
        tokens and unrecognized event types are logged and ignored.
        """
        session = self.registry.get(callback_token)
        if session is None:
            logger.warning(
                f"[CALLBACK] No call session for token - Token: {callback_token}, "
                f"Event: {event.type}"
            )
            return

        async with self.registry.lock(callback_token):
            if session.is_terminal:
                logger.debug(
                    f"[CALLBACK] Ignoring {event.type} for disconnected call - Token: {callback_token}"
                )
                return

            logger.info(
                f"[CALLBACK] Received Event: {event.type}, "
                f"Correlation Id: {event.correlation_id}, "
                f"CallConnectionId: {event.call_connection_id}"
            )

            kind = event.kind
            if kind == CallbackEventType.CALL_CONNECTED:
                await self._on_call_connected(session, event)
            elif kind == CallbackEventType.MEDIA_STREAMING_STARTED:
                self._on_media_streaming(session, event, CallState.STREAMING_ACTIVE)
            elif kind == CallbackEventType.MEDIA_STREAMING_STOPPED:
                self._on_media_streaming(session, event, CallState.STREAMING_STOPPED)
            elif kind == CallbackEventType.MEDIA_STREAMING_FAILED:
                result = event.result_information
                logger.error(
                    f"[CALLBACK] Media streaming failed - Operation context: "
                    f"{event.operation_context}, Code: {result.code}, "
                    f"Subcode: {result.sub_code}, Message: {result.message}"
                )
                _advance(session, CallState.STREAMING_STOPPED, event)
            elif kind == CallbackEventType.CALL_DISCONNECTED:
                await self._teardown(session, reason="call disconnected")
            else:
                logger.debug(f"[CALLBACK] Ignoring unhandled event type: {event.type}")

    def _on_media_streaming(
        self, session: CallSession, event: CallbackEvent, state: CallState
    ) -> None:
        update = event.media_streaming_update
        logger.info(
            f"[CALLBACK] Operation context: {event.operation_context}, "
            f"contentType: {update.content_type}, "
            f"status: {update.media_streaming_status}"
        )
        _advance(session, state, event)

    async def _on_call_connected(self, session: CallSession, event: CallbackEvent) -> None:
        _advance(session, CallState.CONNECTED, event)
        if event.call_connection_id and not session.call_connection_id:
            session.call_connection_id = event.call_connection_id

        try:
            answered_for = await self.call_control.get_answered_for(session.call_connection_id)
        except Exception as e:
            logger.error(
                f"[SESSION MANAGER] Could not read call connection properties - "
                f"ConnectionId: {session.call_connection_id}, "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
            return
        session.answered_for = answered_for

        await self._persist(
            "connected call",
            lambda calls: calls.update_call_status(
                session.callback_token, session.state.value, answered_for=answered_for
            ),
        )

        try:
            profile = self.profile_repository.get_profile(answered_for)
        except ProfileNotFound as e:
            logger.error(f"[SESSION MANAGER] {e}; continuing without an AI session")
            return

        if session.ai_session is not None:
            logger.warning(
                f"[SESSION MANAGER] AI session already running - Token: {session.callback_token}"
            )
            return

        ai_session = self.ai_session_factory(session.callback_token)
        session.attach_ai_session(ai_session)
        try:
            await ai_session.start(profile.system_prompt, profile.tools)
        except Exception as e:
            logger.error(
                f"[SESSION MANAGER] Error starting conversation - Token: {session.callback_token}, "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
            await self._release_ai_session(session)
            return

        logger.info(
            f"[SESSION MANAGER] Conversation started - Token: {session.callback_token}, "
            f"AnsweredFor: {answered_for}"
        )

    def attach_media_socket(self, callback_token: str, socket: MediaSocket) -> Optional[CallSession]:
        """Bind a newly opened media socket to its call; None if the token is unknown."""
        session = self.registry.get(callback_token)
        if session is None or session.is_terminal:
            logger.warning(f"[MEDIA] Socket for unknown call - Token: {callback_token}")
            return None

        session.bind_media_socket(socket)
        logger.info(
            f"[MEDIA] Client connected - Token: {callback_token}, "
            f"AI session: {'bound' if session.ai_session else 'pending'}"
        )
        return session

    async def forward_caller_audio(self, session: CallSession, message: str) -> None:
        """Send one inbound media frame's audio to the call's AI session."""
        audio = decode_inbound(message)
        if audio is None:
            return
        ai_session = session.ai_session
        if ai_session is None:
            return
        await ai_session.submit_caller_audio(audio)

    async def detach_media_socket(self, callback_token: str, socket: MediaSocket) -> None:
        """Handle the media socket closing; the AI session goes with it."""
        socket.mark_closed()
        session = self.registry.get(callback_token)
        if session is None or session.media_socket is not socket:
            return

        logger.info(f"[MEDIA] Client disconnected - Token: {callback_token}")
        async with self.registry.lock(callback_token):
            await self._release_ai_session(session)

    async def _release_ai_session(self, session: CallSession) -> None:
        ai_session = session.ai_session
        session.ai_session = None
        if ai_session is None:
            return
        session.transcript.extend(ai_session.state.transcript)
        await ai_session.close()

    async def _teardown(self, session: CallSession, reason: str) -> None:
        await self._release_ai_session(session)
        if session.media_socket is not None:
            session.media_socket.mark_closed()
        session.transition(CallState.DISCONNECTED)
        self.registry.remove(session.callback_token)
        logger.info(
            f"[SESSION MANAGER] Call ended - Token: {session.callback_token}, Reason: {reason}"
        )

        transcript = "\n".join(session.transcript)

        async def _record_end(calls: CallPersistenceService) -> None:
            await calls.update_call_status(
                session.callback_token,
                CallState.DISCONNECTED.value,
                ended_at=datetime.utcnow(),
            )
            if transcript:
                await calls.update_call_transcript(session.callback_token, transcript)

        await self._persist("ended call", _record_end)

    async def shutdown(self) -> None:
        """Tear down every active call."""
        for session in self.registry.all():
            async with self.registry.lock(session.callback_token):
                if not session.is_terminal:
                    await self._teardown(session, reason="shutdown")

    async def _persist(
        self,
        operation: str,
        action: Callable[[CallPersistenceService], Awaitable[object]],
    ) -> None:
        if self.session_factory is None:
            return
        try:
            async with self.session_factory() as db:
                await action(CallPersistenceService(db))
        except Exception as e:
            # Record keeping never ends a call
            logger.error(
                f"[SESSION MANAGER] Failed to persist {operation} - "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
