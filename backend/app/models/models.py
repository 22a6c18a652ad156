"""
Database models for the SQL statistics storage backend.
"""
from sqlalchemy import Column, DateTime, Index, String, Text
from datetime import datetime, timezone

from .base import Base


class KeyValueEntry(Base):
    """
    One key of the statistics key-value store.

    Holds either the global aggregate (``global:stats``) or a submission
    record (``submission:<session id>``) as a JSON string.
    """

    __tablename__ = "kv_entries"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (Index("ix_kv_entries_expires_at", "expires_at"),)
