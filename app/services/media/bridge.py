"""Audio bridge between ACS media streaming frames and realtime AI audio."""
import asyncio
import json
import logging
from functools import partial
from typing import List, Optional, Tuple

from app.core.exceptions import DeliveryExhausted
from app.services.media.sender import TransportRetrySender

logger = logging.getLogger(__name__)

AUDIO_DATA_KIND = "AudioData"
STOP_AUDIO_KIND = "StopAudio"

_AUDIO = "audio"
_STOP = "stop"


def decode_inbound(message: str) -> Optional[str]:
    """
    Extract the base64 audio payload from an inbound media frame.

    Only AudioData frames carry audio; metadata and other control frames
    return None, as do frames that cannot be decoded.
    """
    try:
        frame = json.loads(message)
    except (TypeError, ValueError):
        logger.debug("[AUDIO BRIDGE] Dropping undecodable media frame")
        return None

    if not isinstance(frame, dict):
        return None

    if frame.get("kind") != AUDIO_DATA_KIND:
        return None

    audio_data = frame.get("audioData") or {}
    data = audio_data.get("data")
    if not isinstance(data, str) or not data:
        return None
    return data


def encode_audio(data: str) -> str:
    """Wrap a base64 PCM chunk in the outbound streaming-data format."""
    return json.dumps(
        {
            "Kind": AUDIO_DATA_KIND,
            "AudioData": {"Data": data},
            "StopAudio": None,
        }
    )


def encode_stop_audio() -> str:
    """Build the control frame that stops playback on the caller's leg."""
    return json.dumps(
        {
            "Kind": STOP_AUDIO_KIND,
            "AudioData": None,
            "StopAudio": {},
        }
    )


class AudioBridge:
    """Outbound half of the bridge for one AI session.

    Frames are queued and drained by a single task through the retry
    sender, so the AI event loop never waits on the telephony socket and
    frames leave in the order they were produced.
    """

    def __init__(self, sender: TransportRetrySender, queue_size: int = 500):
        self.sender = sender
        self._queue: "asyncio.Queue[Tuple[str, str, int]]" = asyncio.Queue(maxsize=queue_size)
        self._pump_task: Optional[asyncio.Task] = None
        self._closed = False
        self._generation = 0  # Bumped on every interrupt

    def _ensure_pump(self) -> None:
        if self._pump_task is None or self._pump_task.done():
            self._pump_task = asyncio.create_task(self._pump())

    def _enqueue(self, kind: str, payload: str) -> bool:
        if self._closed:
            return False
        self._ensure_pump()
        try:
            self._queue.put_nowait((kind, payload, self._generation))
        except asyncio.QueueFull:
            logger.warning("[AUDIO BRIDGE] Outbound queue full, dropping frame")
            return False
        return True

    def send_audio(self, data: str) -> bool:
        """Queue an AI audio delta for the caller."""
        if not data:
            return False
        return self._enqueue(_AUDIO, encode_audio(data))

    def interrupt(self) -> bool:
        """
        Stop AI playback on the caller's leg.

        Audio that has not been delivered yet is discarded, including a
        frame the pump is still retrying, then a single stop-audio frame is
        queued ahead of any later audio.
        """
        if self._closed:
            return False

        kept: List[Tuple[str, str, int]] = []
        discarded = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._queue.task_done()
            if item[0] == _STOP:
                kept.append(item)
            else:
                discarded += 1

        for item in kept:
            self._queue.put_nowait(item)

        if discarded:
            logger.debug(f"[AUDIO BRIDGE] Discarded {discarded} pending audio frames on interrupt")
        self._generation += 1
        return self._enqueue(_STOP, encode_stop_audio())

    def _is_superseded(self, generation: int) -> bool:
        return generation != self._generation

    async def join(self) -> None:
        """Wait until every queued frame has been handled."""
        await self._queue.join()

    async def _pump(self) -> None:
        while True:
            kind, payload, generation = await self._queue.get()
            cancelled = partial(self._is_superseded, generation) if kind == _AUDIO else None
            try:
                await self.sender.send(payload, cancelled=cancelled)
            except DeliveryExhausted:
                logger.error(f"[AUDIO BRIDGE] Dropped {kind} frame after retries were exhausted")
            except Exception as e:
                logger.error(
                    f"[AUDIO BRIDGE] Error delivering {kind} frame - "
                    f"Error: {type(e).__name__}: {str(e)}",
                    exc_info=True,
                )
            finally:
                self._queue.task_done()

    async def close(self) -> None:
        """Stop forwarding; anything still queued is dropped."""
        self._closed = True
        task = self._pump_task
        self._pump_task = None
        if task is not None and not task.done():
            task.cancel()
            if task is not asyncio.current_task():
                await asyncio.gather(task, return_exceptions=True)
