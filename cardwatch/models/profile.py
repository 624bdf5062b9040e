"""
CardWatch — Profile & Watch Entry Models

A profile is a named watchlist owner. watch_entries is the many-to-many
link between profiles and cards; a card is deleted once its last watch
entry goes.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import TIMESTAMP, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column

from cardwatch.models.base import Base


class Profile(Base):
    """Named watchlist owner (no authentication)."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<Profile id={self.id!r} name={self.name!r}>"


class WatchEntry(Base):
    """Profile X watches card Y."""

    __tablename__ = "watch_entries"

    profile_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True
    )
    card_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("cards.id", ondelete="CASCADE"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<WatchEntry profile_id={self.profile_id!r} card_id={self.card_id!r}>"
