"""FastAPI dependencies."""
from typing import Optional

from app.core.config import settings
from app.db.database import AsyncSessionLocal
from app.services.call_session.manager import CallSessionManager
from app.services.call_session.registry import CallRegistry
from app.services.knowledge.retriever import KnowledgeRetriever
from app.services.media.bridge import AudioBridge
from app.services.media.sender import TransportRetrySender
from app.services.profiles.repository import CallerProfileRepository
from app.services.realtime.client import connect_realtime
from app.services.realtime.session import AISession
from app.services.telephony.acs import AcsCallControl
from app.services.tools.gateway import ToolInvocationGateway

# Process-wide singletons, created on first use
_registry = CallRegistry()
_profile_repository: Optional[CallerProfileRepository] = None
_tool_gateway: Optional[ToolInvocationGateway] = None
_call_control: Optional[AcsCallControl] = None
_session_manager: Optional[CallSessionManager] = None


def get_call_registry() -> CallRegistry:
    """Get the call registry."""
    return _registry


def get_profile_repository() -> CallerProfileRepository:
    """Get caller profiles, loading them once."""
    global _profile_repository
    if _profile_repository is None:
        _profile_repository = CallerProfileRepository.from_yaml(
            settings.caller_profiles_file or None
        )
    return _profile_repository


def get_tool_gateway() -> ToolInvocationGateway:
    """Get the tool gateway backed by the knowledge store."""
    global _tool_gateway
    if _tool_gateway is None:
        _tool_gateway = ToolInvocationGateway(
            retriever=KnowledgeRetriever(),
            collection_id=settings.knowledge_collection,
            relevance_threshold=settings.relevance_threshold,
        )
    return _tool_gateway


def build_ai_session(callback_token: str) -> AISession:
    """Create an AI session for one call."""
    sender = TransportRetrySender(
        max_attempts=settings.send_max_attempts,
        retry_interval=settings.send_retry_interval_seconds,
    )
    return AISession(
        connector=connect_realtime,
        tool_gateway=get_tool_gateway(),
        bridge=AudioBridge(sender, queue_size=settings.outbound_queue_size),
        voice=settings.realtime_voice,
        transcription_model=settings.transcription_model,
        callback_token=callback_token,
    )


def get_session_manager() -> CallSessionManager:
    """Get the call session manager."""
    global _call_control, _session_manager
    if _session_manager is None:
        _call_control = AcsCallControl.from_connection_string(settings.acs_connection_string)
        _session_manager = CallSessionManager(
            call_control=_call_control,
            registry=get_call_registry(),
            profile_repository=get_profile_repository(),
            ai_session_factory=build_ai_session,
            callback_base_url=settings.callback_uri,
            session_factory=AsyncSessionLocal,
        )
    return _session_manager


async def shutdown_dependencies() -> None:
    """Tear down active calls and provider clients."""
    global _call_control, _session_manager
    if _session_manager is not None:
        await _session_manager.shutdown()
    if _call_control is not None:
        await _call_control.close()
    _session_manager = None
    _call_control = None
