"""Knowledge retrieval over a Pinecone index."""
import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI
from pinecone import Pinecone
from pydantic import BaseModel

from app.core.config import settings
from app.core.exceptions import ToolInvocationFailed

logger = logging.getLogger(__name__)


class RetrievedPassage(BaseModel):
    """A passage returned by a similarity query."""

    content: str
    relevance_score: float


def extract_content(metadata: Optional[Dict[str, Any]]) -> str:
    """
    Pull passage text out of match metadata.

    Indexes written by LlamaIndex keep the node serialized as JSON under
    ``_node_content``; plain indexes store ``text`` or ``content``.
    """
    if not metadata:
        return ""

    node_content = metadata.get("_node_content")
    if isinstance(node_content, str):
        try:
            text = json.loads(node_content).get("text")
        except (ValueError, AttributeError):
            text = None
        if isinstance(text, str):
            return text

    for key in ("text", "content"):
        value = metadata.get(key)
        if isinstance(value, str):
            return value
    return ""


class KnowledgeRetriever:
    """Embeds a question and runs a similarity query against an index."""

    def __init__(
        self,
        openai_client: Optional[AsyncOpenAI] = None,
        pinecone_client: Optional[Pinecone] = None,
        embedding_model: Optional[str] = None,
        top_k: Optional[int] = None,
    ):
        self.client = openai_client or AsyncOpenAI(api_key=settings.openai_api_key)
        self.pinecone = pinecone_client or Pinecone(api_key=settings.pinecone_api_key)
        self.embedding_model = embedding_model or settings.embedding_model
        self.top_k = top_k or settings.retrieval_top_k
        self._indexes: Dict[str, Any] = {}

    async def _get_index(self, collection_id: str):
        index = self._indexes.get(collection_id)
        if index is None:
            # Opening an index resolves its host over HTTP
            index = await asyncio.to_thread(self.pinecone.Index, collection_id)
            self._indexes[collection_id] = index
        return index

    async def _embed(self, text: str) -> List[float]:
        response = await self.client.embeddings.create(
            model=self.embedding_model,
            input=text,
        )
        return response.data[0].embedding

    async def query(self, collection_id: str, text: str) -> List[RetrievedPassage]:
        """
        Return passages similar to ``text`` in the given collection.

        Passages come back in the order the index ranked them; relevance
        filtering is left to the caller.

        Raises:
            ToolInvocationFailed: embedding or index query failed.
        """
        try:
            vector = await self._embed(text)
            index = await self._get_index(collection_id)
            response = await asyncio.to_thread(
                index.query,
                vector=vector,
                top_k=self.top_k,
                include_metadata=True,
            )
        except Exception as e:
            raise ToolInvocationFailed(
                f"Knowledge query against {collection_id!r} failed: {e}"
            ) from e

        passages = [
            RetrievedPassage(
                content=extract_content(match.metadata),
                relevance_score=match.score or 0.0,
            )
            for match in response.matches
        ]
        logger.debug(
            f"[KNOWLEDGE] Query returned {len(passages)} matches - Collection: {collection_id}"
        )
        return passages
