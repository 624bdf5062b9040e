"""
CardWatch — Card, Card Source & Card Price Models

One cards row per physical card. Each card owns at most one card_sources
row per marketplace (UNIQUE(card_id, source_type)), and each source owns at
most one card_prices row per price type (UNIQUE(source_id, price_type)).
Those two constraints make re-adding the same URL an upsert, never a
duplicate.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    DECIMAL as SA_DECIMAL,
    INTEGER,
    TIMESTAMP,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cardwatch.models.base import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CardRow(Base):
    """A physical card and its fused metadata."""

    __tablename__ = "cards"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=_new_id, comment="Card UUID"
    )
    name: Mapped[str] = mapped_column(
        String, nullable=False, comment="Extracted card name (e.g., 'Gardevoir ex')"
    )
    number: Mapped[str] = mapped_column(
        String, nullable=False, default="", comment="Card number within set (e.g., '348')"
    )
    set_display: Mapped[str | None] = mapped_column(String, nullable=True)
    rarity: Mapped[str | None] = mapped_column(String, nullable=True)
    image_url: Mapped[str | None] = mapped_column(String, nullable=True)
    merge_group_id: Mapped[str | None] = mapped_column(
        String(36),
        nullable=True,
        index=True,
        comment="Links extra matched cards to a primary card's group",
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=_utcnow,
        comment="Insertion time; candidate scans walk cards in this order",
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    sources: Mapped[list[CardSourceRow]] = relationship(
        back_populates="card",
        cascade="all, delete-orphan",
        order_by="CardSourceRow.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<CardRow id={self.id!r} name={self.name!r} number={self.number!r} "
            f"group={self.merge_group_id!r}>"
        )


class CardSourceRow(Base):
    """One marketplace observation of a card."""

    __tablename__ = "card_sources"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    card_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("cards.id", ondelete="CASCADE"), nullable=False
    )
    source_type: Mapped[str] = mapped_column(
        String, nullable=False, comment="Marketplace: 'tcgplayer' or 'pricecharting'"
    )
    position: Mapped[int] = mapped_column(
        INTEGER, nullable=False, default=0, comment="Order of the source within its card"
    )
    url: Mapped[str] = mapped_column(String, nullable=False, default="")
    product_id: Mapped[str] = mapped_column(String, nullable=False, default="")
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    set_display: Mapped[str | None] = mapped_column(String, nullable=True)
    rarity: Mapped[str | None] = mapped_column(String, nullable=True)
    image_url: Mapped[str | None] = mapped_column(String, nullable=True)
    number: Mapped[str | None] = mapped_column(String, nullable=True)
    last_checked_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now()
    )

    card: Mapped[CardRow] = relationship(back_populates="sources")
    prices: Mapped[list[CardPriceRow]] = relationship(
        back_populates="source",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("card_id", "source_type", name="uq_card_sources_card_type"),
    )

    def __repr__(self) -> str:
        return (
            f"<CardSourceRow card_id={self.card_id!r} source_type={self.source_type!r} "
            f"url={self.url!r}>"
        )


class CardPriceRow(Base):
    """One price type observed by one source."""

    __tablename__ = "card_prices"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    source_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("card_sources.id", ondelete="CASCADE"), nullable=False
    )
    price_type: Mapped[str] = mapped_column(
        String, nullable=False, comment="market, ungraded, grade7 ... grade10"
    )
    price: Mapped[Decimal] = mapped_column(SA_DECIMAL(10, 2), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    source: Mapped[CardSourceRow] = relationship(back_populates="prices")

    __table_args__ = (
        UniqueConstraint("source_id", "price_type", name="uq_card_prices_source_type"),
        Index("ix_card_prices_source", "source_id"),
    )

    def __repr__(self) -> str:
        return f"<CardPriceRow source_id={self.source_id!r} {self.price_type}={self.price}>"
