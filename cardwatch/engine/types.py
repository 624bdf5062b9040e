"""
CardWatch — Matching & Merge Value Types

Plain values passed between the extractor, matcher, merge engine and
unmerge. None of them know about the database; the store converts rows to
and from these.

A Card is the merge aggregate: it owns at most one SourceRecord per source
site. Merged-ness is derived, never stored as a flag.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import NamedTuple

from pydantic import BaseModel, Field

from cardwatch.config import PRICE_TYPE_OWNER, PriceType, SourceType, settings


class CardIdentity(NamedTuple):
    """
    The (name, number) pair used to decide whether two scraped records
    describe the same physical card.

    number is a decimal digit string or empty. Leading zeros carry no
    meaning ("080" and "80" are the same number).
    """
    name: str
    number: str


class SourceMetadata(BaseModel):
    """Descriptive fields a source may report. All optional."""
    set_display: str | None = None
    rarity: str | None = None
    image_url: str | None = None
    number: str | None = None


METADATA_FIELDS: tuple[str, ...] = ("set_display", "rarity", "image_url", "number")


class SourceRecord(BaseModel):
    """One marketplace's scraped observation of a card."""
    source_type: SourceType
    url: str
    product_id: str = ""
    currency: str = Field(default_factory=lambda: settings.DEFAULT_CURRENCY)
    prices: dict[PriceType, Decimal] = Field(default_factory=dict)
    metadata: SourceMetadata = Field(default_factory=SourceMetadata)
    last_checked_at: datetime | None = None

    def owned_prices(self) -> dict[PriceType, Decimal]:
        """Prices restricted to the types this record's site is authoritative for."""
        return {
            price_type: price
            for price_type, price in self.prices.items()
            if PRICE_TYPE_OWNER[price_type] == self.source_type
        }


class Card(BaseModel):
    """
    Merge unit: one physical card and every source observing it.

    merge_group_id only links extra pre-existing matches that were folded
    into this card's group; the card itself owns its sources directly.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    identity: CardIdentity
    metadata: SourceMetadata = Field(default_factory=SourceMetadata)
    sources: list[SourceRecord] = Field(default_factory=list)
    merge_group_id: str | None = None

    @property
    def is_merged(self) -> bool:
        return len(self.sources) > 1 or self.merge_group_id is not None

    def source(self, source_type: SourceType) -> SourceRecord | None:
        for record in self.sources:
            if record.source_type == source_type:
                return record
        return None
