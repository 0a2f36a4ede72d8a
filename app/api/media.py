"""Media streaming websocket endpoint."""
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from app.core.dependencies import get_session_manager
from app.services.call_session.manager import CallSessionManager
from app.services.media.socket import MediaSocket

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/ws/media/{context_id}")
async def media_stream(
    websocket: WebSocket,
    context_id: str,
    session_manager: CallSessionManager = Depends(get_session_manager),
):
    """Relay caller audio from the telephony media stream to the call's AI session."""
    await websocket.accept()
    socket = MediaSocket(websocket, callback_token=context_id)

    session = session_manager.attach_media_socket(context_id, socket)
    if session is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    try:
        async for message in websocket.iter_text():
            await session_manager.forward_caller_audio(session, message)
    except WebSocketDisconnect as e:
        logger.info(f"[MEDIA] Socket closed by peer - Token: {context_id}, Code: {e.code}")
    except Exception as e:
        logger.error(
            f"[MEDIA] Error reading media stream - Token: {context_id}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
    finally:
        await session_manager.detach_media_socket(context_id, socket)
