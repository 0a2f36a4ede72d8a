"""Database models."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class Call(Base):
    """Call metadata model."""

    __tablename__ = "calls"

    id = Column(Integer, primary_key=True, index=True)
    callback_token = Column(String, unique=True, index=True, nullable=False)
    caller_id = Column(String, nullable=True)
    call_connection_id = Column(String, index=True, nullable=True)
    answered_for = Column(String, nullable=True)
    started_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    ended_at = Column(DateTime, nullable=True)
    status = Column(String, default="ringing", nullable=False)  # Last CallState value
    transcript = Column(Text, nullable=True)
