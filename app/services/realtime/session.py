"""Realtime conversational AI session bound to one phone call."""
import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from app.core.exceptions import ConfigurationInvalid, MalformedToolArguments
from app.services.media.bridge import AudioBridge
from app.services.media.sender import TransportRetrySender
from app.services.media.socket import MediaSocket
from app.services.realtime.client import RealtimeConnection
from app.services.realtime.state import ConversationState
from app.services.tools.gateway import ToolInvocationGateway

logger = logging.getLogger(__name__)

QUERY_ARGUMENT = "user_query"

Connector = Callable[[], Awaitable[RealtimeConnection]]


def parse_tool_query(arguments: Any) -> str:
    """Read the query field out of a tool call's JSON arguments."""
    try:
        payload = json.loads(arguments)
    except (TypeError, ValueError) as e:
        raise MalformedToolArguments(f"Tool arguments are not valid JSON: {arguments!r}") from e

    if not isinstance(payload, dict):
        raise MalformedToolArguments(f"Tool arguments are not an object: {arguments!r}")

    query = payload.get(QUERY_ARGUMENT)
    if not isinstance(query, str):
        raise MalformedToolArguments(f"Tool arguments lack a {QUERY_ARGUMENT!r} string")
    return query


class AISession:
    """Owns one realtime connection and everything that crosses it.

    Caller audio goes in through ``submit_caller_audio``; server events are
    consumed by a background task started from ``start``. AI audio leaves
    through the audio bridge, which tolerates the telephony socket being
    bound before or after the connection is established.
    """

    def __init__(
        self,
        connector: Connector,
        tool_gateway: ToolInvocationGateway,
        bridge: Optional[AudioBridge] = None,
        voice: str = "shimmer",
        transcription_model: str = "whisper-1",
        callback_token: Optional[str] = None,
    ):
        self._connector = connector
        self.tool_gateway = tool_gateway
        self.bridge = bridge or AudioBridge(TransportRetrySender())
        self.voice = voice
        self.transcription_model = transcription_model
        self.state = ConversationState(callback_token=callback_token)

        self.connection: Optional[RealtimeConnection] = None
        self.system_prompt = ""
        self.tools: List[Dict[str, Any]] = []
        self._receive_task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    def bind_transport(self, transport: Optional[MediaSocket]) -> None:
        """Bind the telephony socket that AI audio is delivered to."""
        self.bridge.sender.bind(transport)

    def build_session_update(self) -> Dict[str, Any]:
        """Session configuration message for the current prompt and tools."""
        return {
            "type": "session.update",
            "session": {
                "instructions": self.system_prompt,
                "voice": self.voice,
                "input_audio_format": "pcm16",
                "output_audio_format": "pcm16",
                "turn_detection": {
                    "type": "server_vad",
                },
                "input_audio_transcription": {
                    "model": self.transcription_model,
                },
                "tools": self.tools,
                "tool_choice": "auto" if self.tools else "none",
            },
        }

    async def start(
        self, system_prompt: str, tools: Optional[List[Dict[str, Any]]] = None
    ) -> None:
        """
        Open the provider connection, configure it and start consuming events.

        Returns as soon as the configuration has been sent; event handling
        continues in a background task.

        Raises:
            ConfigurationInvalid: neither a prompt nor tools were supplied.
        """
        tools = list(tools or [])
        if not system_prompt and not tools:
            raise ConfigurationInvalid("An AI session needs a system prompt or tools")
        if self._closed:
            raise ConfigurationInvalid("AI session is already closed")

        self.system_prompt = system_prompt or ""
        self.tools = tools
        self.connection = await self._connector()

        try:
            logger.info(f"[AI SESSION] Sending session config - Token: {self.state.callback_token}")
            await self.connection.send(self.build_session_update())
            logger.info(
                f"[AI SESSION] Sent session config - Tools: {len(self.tools)}, "
                f"Token: {self.state.callback_token}"
            )
        except Exception as e:
            # Keep the call alive; later operations may still succeed
            logger.error(
                f"[AI SESSION] Error sending session config - "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )

        self._receive_task = asyncio.create_task(self._receive_loop())

    async def submit_caller_audio(self, audio: str) -> None:
        """Forward one base64 caller audio chunk to the AI."""
        if not audio or self._closed or self.connection is None:
            return
        try:
            await self.connection.send({
                "type": "input_audio_buffer.append",
                "audio": audio,
            })
        except Exception as e:
            logger.error(
                f"[AI SESSION] Error sending caller audio - "
                f"Error: {type(e).__name__}: {str(e)}"
            )

    async def _receive_loop(self) -> None:
        try:
            async for event in self.connection.events():
                if self._closed:
                    break
                try:
                    await self.handle_event(event)
                except Exception as e:
                    logger.error(
                        f"[AI SESSION] Error handling {event.get('type')} event - "
                        f"Error: {type(e).__name__}: {str(e)}",
                        exc_info=True,
                    )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                f"[AI SESSION] Error handling real-time messages - "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
        finally:
            logger.info(
                f"[AI SESSION] Event loop ended after {self.state.turn} turns - "
                f"Token: {self.state.callback_token}"
            )

    async def handle_event(self, event: Dict[str, Any]) -> None:
        """Dispatch one server event."""
        event_type = event.get("type")

        if event_type == "session.created":
            self.state.session_id = (event.get("session") or {}).get("id")
            logger.info(f"[AI SESSION] Session started with id: {self.state.session_id}")
        elif event_type == "response.function_call_arguments.done":
            await self._handle_function_call(event)
        elif event_type == "response.audio.delta":
            self.bridge.send_audio(event.get("delta") or "")
        elif event_type == "input_audio_buffer.speech_started":
            logger.info(
                f"[AI SESSION] Voice activity detection started at "
                f"{event.get('audio_start_ms')} ms"
            )
            self.bridge.interrupt()
        elif event_type == "conversation.item.input_audio_transcription.completed":
            transcript = event.get("transcript") or ""
            logger.info(f"[AI SESSION] User:- {transcript}")
            self.state.add_transcript_turn("Caller", transcript)
        elif event_type == "response.audio_transcript.done":
            transcript = event.get("transcript") or ""
            logger.info(f"[AI SESSION] AI:- {transcript}")
            self.state.add_transcript_turn("AI", transcript)
        elif event_type == "response.done":
            status = (event.get("response") or {}).get("status")
            turn = self.state.advance_turn()
            logger.info(f"[AI SESSION] Response done - Status: {status}, Turn: {turn}")
        elif event_type == "error":
            logger.error(f"[AI SESSION] Provider error: {event.get('error')}")

    async def _handle_function_call(self, event: Dict[str, Any]) -> None:
        call_id = event.get("call_id")
        tool_name = event.get("name") or ""
        logger.info(f"[AI SESSION] Function call arguments done - Tool: {tool_name}, CallId: {call_id}")

        try:
            query = parse_tool_query(event.get("arguments"))
            result = await self.tool_gateway.invoke(tool_name, query)
        except MalformedToolArguments as e:
            logger.error(f"[AI SESSION] Error handling function call: {e}")
            result = ""
        except Exception as e:
            logger.error(
                f"[AI SESSION] Error handling function call - "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
            result = ""

        logger.info(f"[AI SESSION] Function Call Results: {result}")
        await self._send_or_log({
            "type": "conversation.item.create",
            "item": {
                "type": "function_call_output",
                "call_id": call_id,
                "output": result,
            },
        })
        # The provider does not resume on its own after a tool result
        await self._send_or_log({"type": "response.create"})

    async def _send_or_log(self, message: Dict[str, Any]) -> bool:
        if self.connection is None or self._closed:
            return False
        try:
            await self.connection.send(message)
        except Exception as e:
            logger.error(
                f"[AI SESSION] Error sending {message.get('type')} - "
                f"Error: {type(e).__name__}: {str(e)}"
            )
            return False
        return True

    async def close(self) -> None:
        """Stop forwarding in both directions and release the connection."""
        if self._closed:
            return
        self._closed = True

        task = self._receive_task
        self._receive_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        await self.bridge.close()

        if self.connection is not None:
            try:
                await self.connection.close()
            except Exception as e:
                logger.warning(
                    f"[AI SESSION] Error closing realtime connection - "
                    f"Error: {type(e).__name__}: {str(e)}"
                )
        logger.info(
            f"[AI SESSION] Closed - Turns: {self.state.turn}, Token: {self.state.callback_token}"
        )
