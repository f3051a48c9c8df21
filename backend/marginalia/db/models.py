"""
SQLAlchemy 2.0 Models for Marginalia.

The persisted store is a single table of named collections. Each row holds a
whole collection as JSON; the version column lets other processes detect
changes without diffing payloads.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from marginalia.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StoreCollection(Base):
    """One named collection of the persisted key-value store."""

    __tablename__ = "store_collections"

    name: Mapped[str] = mapped_column(String(100), primary_key=True)
    payload: Mapped[Any] = mapped_column(JSON, nullable=False)
    version: Mapped[int] = mapped_column(nullable=False, default=1)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )
