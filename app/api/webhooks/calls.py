"""Azure Communication Services webhook endpoints."""
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from app.core.dependencies import get_session_manager
from app.core.exceptions import AnswerFailed
from app.services.call_session.events import CallbackEvent, EventGridEvent, IncomingCallData
from app.services.call_session.manager import CallSessionManager

router = APIRouter()
logger = logging.getLogger(__name__)


def _as_batch(payload: Any) -> List[Dict[str, Any]]:
    """Event Grid and Call Automation both post arrays; tolerate a bare object."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        return [payload]
    return []


@router.post("/incomingCall")
async def handle_incoming_call(
    request: Request,
    payload: Any = Body(...),
    session_manager: CallSessionManager = Depends(get_session_manager),
):
    """
    Handle the Event Grid webhook for incoming calls.

    Answers subscription validation handshakes, otherwise answers the call
    with bidirectional media streaming.
    """
    batch = _as_batch(payload)
    if not batch:
        raise HTTPException(status_code=400, detail="Empty event batch")

    event = EventGridEvent.model_validate(batch[0])
    logger.info(
        f"[INCOMING CALL] Received event: {event.event_type}, "
        f"Client: {request.client.host if request.client else 'unknown'}"
    )

    if event.is_subscription_validation:
        logger.info("[INCOMING CALL] Received SubscriptionValidation event")
        return JSONResponse(content={"validationResponse": event.validation_code})

    if not event.is_incoming_call:
        logger.warning(f"[INCOMING CALL] Ignoring unexpected event type: {event.event_type}")
        return Response(status_code=200)

    try:
        incoming = IncomingCallData.model_validate(event.data)
    except ValidationError as e:
        logger.warning(f"[INCOMING CALL] Malformed incoming call event: {str(e)}")
        raise HTTPException(status_code=400, detail="Malformed incoming call event")

    caller_id = incoming.from_.raw_id or ""
    logger.info(f"[INCOMING CALL] Incoming call from: {caller_id}")

    try:
        callback_token = await session_manager.handle_incoming_call(
            caller_id, incoming.incoming_call_context
        )
    except AnswerFailed as e:
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(
            f"[INCOMING CALL] Error processing incoming call - Caller: {caller_id}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        raise HTTPException(status_code=500, detail=f"Error processing incoming call: {str(e)}")

    logger.debug(f"[INCOMING CALL] Call answered - Token: {callback_token}")
    return Response(status_code=200)


@router.post("/callbacks/{context_id}")
async def handle_callbacks(
    context_id: str,
    payload: Any = Body(...),
    session_manager: CallSessionManager = Depends(get_session_manager),
):
    """
    Handle Call Automation callbacks for one call.

    Events in a batch are applied in order.
    """
    try:
        for raw_event in _as_batch(payload):
            event = CallbackEvent.model_validate(raw_event)
            await session_manager.process_callback_event(context_id, event)
    except Exception as e:
        logger.error(
            f"[CALLBACK] Error processing callback - Token: {context_id}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        raise HTTPException(status_code=500, detail=f"Error processing callback: {str(e)}")

    return Response(status_code=200)
