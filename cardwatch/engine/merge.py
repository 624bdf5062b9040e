"""
CardWatch — Merge Engine

Fuses a freshly scraped SourceRecord into the first matching Card, or
creates a new Card when nothing matched.

Rules:
- Candidate order is the caller's (storage insertion order). Only the first
  candidate absorbs the record; no re-ranking, no chaining.
- Same source type already on the card -> upsert in place. Prices are a
  per-type upsert: types missing from the new record are never cleared.
- Card metadata is first-writer-wins, any-writer-fills-a-gap.
- Extra candidates are only linked into the primary's merge group. Their
  prices are not re-fused.

Precondition: the caller holds a transaction (or lock) spanning
"scan candidates -> merge_or_create -> write". Without it two concurrent adds
of the same card from different sites can each miss the other and create two
Cards.

Inputs are never mutated; updated copies are returned.
"""

from __future__ import annotations

from typing import NamedTuple, Sequence

import structlog

from cardwatch.engine.types import (
    METADATA_FIELDS,
    Card,
    CardIdentity,
    SourceMetadata,
    SourceRecord,
)

logger = structlog.get_logger(__name__)


class MergeResult(NamedTuple):
    """Outcome of merge_or_create."""
    card: Card
    was_merged: bool
    grouped: list[Card]  # extra candidates relinked to card's merge group


def fill_metadata_gaps(
    current: SourceMetadata, incoming: SourceMetadata
) -> SourceMetadata:
    """Keep every populated field of current; take incoming only where current is empty."""
    return SourceMetadata(
        **{
            field: getattr(current, field) or getattr(incoming, field)
            for field in METADATA_FIELDS
        }
    )


def _refresh_record(existing: SourceRecord, incoming: SourceRecord) -> SourceRecord:
    """Upsert an incoming observation onto the existing record of the same site."""
    return existing.model_copy(
        update={
            "url": incoming.url or existing.url,
            "product_id": incoming.product_id or existing.product_id,
            "currency": incoming.currency or existing.currency,
            "prices": {**existing.prices, **incoming.prices},
            "metadata": fill_metadata_gaps(incoming.metadata, existing.metadata),
            "last_checked_at": incoming.last_checked_at or existing.last_checked_at,
        },
        deep=True,
    )


def apply_source_record(card: Card, record: SourceRecord) -> Card:
    """
    Return a copy of card with record upserted by source type.

    Used both when merging a new observation and when refreshing an existing
    source. Card metadata gaps are filled from the record.
    """
    sources: list[SourceRecord] = []
    replaced = False
    for existing in card.sources:
        if existing.source_type == record.source_type:
            sources.append(_refresh_record(existing, record))
            replaced = True
        else:
            sources.append(existing.model_copy(deep=True))
    if not replaced:
        sources.append(record.model_copy(deep=True))

    return card.model_copy(
        update={
            "sources": sources,
            "metadata": fill_metadata_gaps(card.metadata, record.metadata),
        },
        deep=True,
    )


def create_card(record: SourceRecord, identity: CardIdentity) -> Card:
    """New single-source Card seeded from the record's metadata."""
    metadata = record.metadata.model_copy()
    if not metadata.number and identity.number:
        metadata.number = identity.number
    return Card(
        identity=identity,
        metadata=metadata,
        sources=[record.model_copy(deep=True)],
    )


def merge_or_create(
    new_record: SourceRecord,
    new_identity: CardIdentity,
    candidates: Sequence[Card],
) -> MergeResult:
    """
    Merge new_record into candidates[0], or create a new Card.

    Args:
        new_record: Validated observation from one source site.
        new_identity: Identity extracted for new_record.
        candidates: Existing Cards that cards_match() accepted, in storage order.

    Returns:
        MergeResult(card, was_merged, grouped). grouped holds candidates[1:]
        with merge_group_id pointing at the primary's group.
    """
    if not candidates:
        card = create_card(new_record, new_identity)
        logger.info(
            "card_created",
            card_id=card.id,
            name=card.identity.name,
            number=card.identity.number,
            source_type=new_record.source_type.value,
        )
        return MergeResult(card=card, was_merged=False, grouped=[])

    primary = candidates[0]
    had_source = primary.source(new_record.source_type) is not None
    merged = apply_source_record(primary, new_record)

    grouped: list[Card] = []
    extra = candidates[1:]
    if extra:
        group_id = primary.merge_group_id or primary.id
        merged = merged.model_copy(update={"merge_group_id": group_id})
        grouped = [
            card.model_copy(update={"merge_group_id": group_id}, deep=True)
            for card in extra
        ]

    logger.info(
        "card_merged",
        card_id=merged.id,
        source_type=new_record.source_type.value,
        source_updated=had_source,
        source_count=len(merged.sources),
        grouped_count=len(grouped),
        merge_group_id=merged.merge_group_id,
    )
    return MergeResult(card=merged, was_merged=True, grouped=grouped)
