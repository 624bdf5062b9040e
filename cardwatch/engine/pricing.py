"""
CardWatch — Price Fusion & Display Projection

The two sites are not interchangeable: TCGplayer is authoritative for the
market price, PriceCharting for ungraded and graded prices. When a merged
card is displayed, each price type is read from its owning site first and
only falls back to another source when the owner has no value.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from cardwatch.config import PRICE_TYPE_OWNER, SOURCE_DISPLAY_NAMES, PriceType, SourceType
from cardwatch.engine.types import Card


class DisplaySource(BaseModel):
    type: SourceType
    url: str
    display_name: str


class CardDisplay(BaseModel):
    """Watchlist row for one Card, prices already fused."""
    id: str
    name: str
    number: str
    set_display: str | None = None
    rarity: str | None = None
    image_url: str | None = None
    is_merged: bool
    source_count: int
    sources: list[DisplaySource] = Field(default_factory=list)
    pricing: dict[PriceType, Decimal] = Field(default_factory=dict)
    last_checked_at: datetime | None = None

    def price(self, price_type: PriceType) -> Decimal | None:
        return self.pricing.get(price_type)


def consolidate_prices(card: Card) -> dict[PriceType, Decimal]:
    """
    Fuse per-source prices into one value per price type.

    Owner site first; otherwise the first source (in card order) that has
    the type. Types no source has are omitted.
    """
    pricing: dict[PriceType, Decimal] = {}
    for price_type in PriceType:
        owner = card.source(PRICE_TYPE_OWNER[price_type])
        if owner is not None and price_type in owner.prices:
            pricing[price_type] = owner.prices[price_type]
            continue
        for record in card.sources:
            if price_type in record.prices:
                pricing[price_type] = record.prices[price_type]
                break
    return pricing


def build_display(card: Card) -> CardDisplay:
    checked = [r.last_checked_at for r in card.sources if r.last_checked_at is not None]
    return CardDisplay(
        id=card.id,
        name=card.identity.name,
        number=card.identity.number,
        set_display=card.metadata.set_display,
        rarity=card.metadata.rarity,
        image_url=card.metadata.image_url,
        is_merged=len(card.sources) > 1,
        source_count=len(card.sources),
        sources=[
            DisplaySource(
                type=record.source_type,
                url=record.url,
                display_name=SOURCE_DISPLAY_NAMES[record.source_type],
            )
            for record in card.sources
        ],
        pricing=consolidate_prices(card),
        last_checked_at=max(checked) if checked else None,
    )
