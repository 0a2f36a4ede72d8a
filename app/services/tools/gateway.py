"""Tool invocation gateway."""
import logging
from typing import List, Protocol

from app.services.knowledge.retriever import RetrievedPassage

logger = logging.getLogger(__name__)

APOLOGY_TEXT = (
    "Sorry, I couldn't find the information you're looking for. Please try again."
)
DEFAULT_RELEVANCE_THRESHOLD = 0.5


class Retriever(Protocol):
    async def query(self, collection_id: str, text: str) -> List[RetrievedPassage]:
        ...


class ToolInvocationGateway:
    """Answers AI tool calls from the knowledge store."""

    def __init__(
        self,
        retriever: Retriever,
        collection_id: str,
        relevance_threshold: float = DEFAULT_RELEVANCE_THRESHOLD,
    ):
        self.retriever = retriever
        self.collection_id = collection_id
        self.relevance_threshold = relevance_threshold

    async def invoke(self, tool_name: str, query: str) -> str:
        """
        Run a tool call and return its textual result.

        Passages below the relevance threshold are dropped; the rest are
        joined with newlines in the order the store returned them. A failed
        lookup yields an apology instead of an error so the conversation
        can continue.
        """
        logger.info(f"[TOOL] {tool_name} - Referring to knowledge base for: {query}")
        try:
            passages = await self.retriever.query(self.collection_id, query)
        except Exception as e:
            logger.error(
                f"[TOOL] {tool_name} - Knowledge lookup failed - "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
            return APOLOGY_TEXT

        relevant = [
            passage.content
            for passage in passages
            if passage.relevance_score >= self.relevance_threshold
        ]
        logger.info(
            f"[TOOL] {tool_name} - {len(relevant)} of {len(passages)} passages "
            f"above threshold {self.relevance_threshold}"
        )
        return "\n".join(relevant)
