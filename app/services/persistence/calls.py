"""Call persistence service."""
from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.db.models import Call


class CallPersistenceService:
    """Service for persisting call data."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_call(
        self,
        callback_token: str,
        caller_id: Optional[str] = None,
        call_connection_id: Optional[str] = None,
        status: str = "ringing",
    ) -> Call:
        """Create a new call record or return existing one."""
        existing_call = await self.get_call_by_token(callback_token)
        if existing_call:
            return existing_call

        call = Call(
            callback_token=callback_token,
            caller_id=caller_id,
            call_connection_id=call_connection_id,
            status=status,
        )
        self.db.add(call)
        await self.db.commit()
        await self.db.refresh(call)
        return call

    async def get_call_by_token(self, callback_token: str) -> Optional[Call]:
        """Get call by callback token."""
        result = await self.db.execute(
            select(Call).where(Call.callback_token == callback_token)
        )
        return result.scalar_one_or_none()

    async def update_call_status(
        self,
        callback_token: str,
        status: str,
        answered_for: Optional[str] = None,
        ended_at: Optional[datetime] = None,
    ) -> Optional[Call]:
        """Update call status."""
        call = await self.get_call_by_token(callback_token)
        if call:
            call.status = status
            if answered_for:
                call.answered_for = answered_for
            if ended_at:
                call.ended_at = ended_at
            await self.db.commit()
            await self.db.refresh(call)
        return call

    async def update_call_transcript(self, callback_token: str, transcript: str) -> Optional[Call]:
        """Update call transcript."""
        call = await self.get_call_by_token(callback_token)
        if call:
            call.transcript = transcript
            await self.db.commit()
            await self.db.refresh(call)
        return call
