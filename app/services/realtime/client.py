"""Azure OpenAI realtime websocket client."""
import json
import logging
from typing import Any, AsyncIterator, Dict, Optional
from urllib.parse import urlencode

from websockets.asyncio.client import ClientConnection, connect

from app.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def build_realtime_url(endpoint: str, deployment: str, api_version: str) -> str:
    """Turn an https resource endpoint into the realtime websocket URL."""
    base = endpoint.rstrip("/")
    if base.startswith("https://"):
        base = "wss://" + base[len("https://"):]
    elif base.startswith("http://"):
        base = "ws://" + base[len("http://"):]
    query = urlencode({"api-version": api_version, "deployment": deployment})
    return f"{base}/openai/realtime?{query}"


class RealtimeConnection:
    """One open realtime connection exchanging JSON messages."""

    def __init__(self, websocket: ClientConnection):
        self.websocket = websocket

    async def send(self, message: Dict[str, Any]) -> None:
        await self.websocket.send(json.dumps(message))

    async def events(self) -> AsyncIterator[Dict[str, Any]]:
        """Yield decoded server events until the connection closes."""
        async for raw in self.websocket:
            try:
                event = json.loads(raw)
            except (TypeError, ValueError):
                logger.warning("[REALTIME] Skipping undecodable server message")
                continue
            if isinstance(event, dict):
                yield event

    async def close(self) -> None:
        await self.websocket.close()


async def connect_realtime(settings: Optional[Settings] = None) -> RealtimeConnection:
    """Open a realtime connection to the configured Azure OpenAI deployment."""
    settings = settings or default_settings
    url = build_realtime_url(
        settings.azure_openai_service_endpoint,
        settings.azure_openai_deployment_model_name,
        settings.azure_openai_api_version,
    )
    logger.info(
        f"[REALTIME] Connecting - Deployment: {settings.azure_openai_deployment_model_name}"
    )
    websocket = await connect(
        url,
        additional_headers={"api-key": settings.azure_openai_service_key},
        max_size=None,
    )
    return RealtimeConnection(websocket)
