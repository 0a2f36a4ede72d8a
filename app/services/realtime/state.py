"""Conversation state for a realtime AI session."""
from typing import List, Optional
from pydantic import BaseModel


class ConversationState(BaseModel):
    """Observability state for one AI session; never drives behavior."""

    callback_token: Optional[str] = None
    turn: int = 0  # Completed AI responses
    transcript: List[str] = []  # "Caller: ..." / "AI: ..." lines
    session_id: Optional[str] = None  # Provider-assigned

    def add_transcript_turn(self, role: str, text: str) -> None:
        """Add a turn to the transcript."""
        self.transcript.append(f"{role}: {text}")

    def advance_turn(self) -> int:
        self.turn += 1
        return self.turn
