"""Caller profile models."""
from typing import Any, Dict, List
from pydantic import BaseModel, Field


class CallerProfile(BaseModel):
    """Prompt and tool declarations used for calls to one phone number."""

    phone_number: str
    system_prompt: str = ""
    tools: List[Dict[str, Any]] = Field(default_factory=list)  # Realtime function declarations
