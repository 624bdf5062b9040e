"""
CardWatch — Card Store

Converts between ORM rows and engine values, and syncs an engine Card back
onto its rows. The engine never sees a session; everything that touches the
database goes through here.

All functions expect the caller to own the transaction.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cardwatch.config import PriceType, SourceType
from cardwatch.engine.types import Card, CardIdentity, SourceMetadata, SourceRecord
from cardwatch.models.card import CardPriceRow, CardRow, CardSourceRow
from cardwatch.models.profile import Profile, WatchEntry

logger = structlog.get_logger(__name__)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on the way back
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# Row -> value
# ---------------------------------------------------------------------------


def source_row_to_record(row: CardSourceRow) -> SourceRecord:
    return SourceRecord(
        source_type=SourceType(row.source_type),
        url=row.url,
        product_id=row.product_id,
        currency=row.currency,
        prices={PriceType(p.price_type): Decimal(p.price) for p in row.prices},
        metadata=SourceMetadata(
            set_display=row.set_display,
            rarity=row.rarity,
            image_url=row.image_url,
            number=row.number,
        ),
        last_checked_at=_as_utc(row.last_checked_at),
    )


def row_to_card(row: CardRow) -> Card:
    return Card(
        id=row.id,
        identity=CardIdentity(name=row.name, number=row.number),
        metadata=SourceMetadata(
            set_display=row.set_display,
            rarity=row.rarity,
            image_url=row.image_url,
            number=row.number or None,
        ),
        sources=[source_row_to_record(s) for s in row.sources],
        merge_group_id=row.merge_group_id,
    )


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def get_card_row(session: AsyncSession, card_id: str) -> CardRow | None:
    result = await session.execute(
        select(CardRow)
        .where(CardRow.id == card_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def load_card(session: AsyncSession, card_id: str) -> Card | None:
    row = await get_card_row(session, card_id)
    return row_to_card(row) if row is not None else None


async def load_all_cards(session: AsyncSession) -> list[Card]:
    """Every card, oldest first. This is the candidate scan order."""
    result = await session.execute(
        select(CardRow)
        .order_by(CardRow.created_at, CardRow.id)
        .execution_options(populate_existing=True)
    )
    return [row_to_card(row) for row in result.scalars().all()]


async def load_group(session: AsyncSession, merge_group_id: str) -> list[Card]:
    """Cards in a merge group, including the card whose id is the group id."""
    result = await session.execute(
        select(CardRow)
        .where(
            (CardRow.merge_group_id == merge_group_id) | (CardRow.id == merge_group_id)
        )
        .order_by(CardRow.created_at, CardRow.id)
        .execution_options(populate_existing=True)
    )
    return [row_to_card(row) for row in result.scalars().all()]


async def get_profile(session: AsyncSession, name: str) -> Profile | None:
    result = await session.execute(select(Profile).where(Profile.name == name))
    return result.scalar_one_or_none()


async def get_or_create_profile(session: AsyncSession, name: str) -> Profile:
    profile = await get_profile(session, name)
    if profile is None:
        profile = Profile(name=name)
        session.add(profile)
        await session.flush()
        logger.info("profile_created", profile_id=profile.id, name=name)
    return profile


async def watcher_ids(session: AsyncSession, card_id: str) -> list[str]:
    result = await session.execute(
        select(WatchEntry.profile_id).where(WatchEntry.card_id == card_id)
    )
    return list(result.scalars().all())


async def count_watchers(session: AsyncSession, card_id: str) -> int:
    result = await session.execute(
        select(func.count()).select_from(WatchEntry).where(WatchEntry.card_id == card_id)
    )
    return int(result.scalar_one())


async def cards_for_profile(session: AsyncSession, profile_id: str) -> list[Card]:
    result = await session.execute(
        select(CardRow)
        .join(WatchEntry, WatchEntry.card_id == CardRow.id)
        .where(WatchEntry.profile_id == profile_id)
        .order_by(CardRow.created_at, CardRow.id)
        .execution_options(populate_existing=True)
    )
    return [row_to_card(row) for row in result.scalars().all()]


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


def _sync_prices(row: CardSourceRow, prices: dict[PriceType, Decimal]) -> None:
    existing = {p.price_type: p for p in row.prices}
    for price_type, price in prices.items():
        price_row = existing.pop(price_type.value, None)
        if price_row is None:
            row.prices.append(CardPriceRow(price_type=price_type.value, price=price))
        else:
            price_row.price = price
    # Types gone from the record (e.g. cleared by unmerge)
    for stale in existing.values():
        row.prices.remove(stale)


def _apply_record(row: CardSourceRow, record: SourceRecord, position: int) -> None:
    row.position = position
    row.url = record.url
    row.product_id = record.product_id
    row.currency = record.currency
    row.set_display = record.metadata.set_display
    row.rarity = record.metadata.rarity
    row.image_url = record.metadata.image_url
    row.number = record.metadata.number
    row.last_checked_at = record.last_checked_at
    _sync_prices(row, record.prices)


async def save_card(session: AsyncSession, card: Card) -> CardRow:
    """
    Upsert card and its sources/prices.

    Sources are matched by source type; rows for source types no longer on
    the card are deleted.
    """
    row = await get_card_row(session, card.id)
    if row is None:
        row = CardRow(id=card.id, name=card.identity.name, number=card.identity.number)
        row.sources = []
        session.add(row)

    row.name = card.identity.name
    row.number = card.identity.number
    row.set_display = card.metadata.set_display
    row.rarity = card.metadata.rarity
    row.image_url = card.metadata.image_url
    row.merge_group_id = card.merge_group_id

    existing = {s.source_type: s for s in row.sources}
    for position, record in enumerate(card.sources):
        source_row = existing.pop(record.source_type.value, None)
        if source_row is None:
            source_row = CardSourceRow(source_type=record.source_type.value, prices=[])
            row.sources.append(source_row)
        _apply_record(source_row, record, position)
    for stale in existing.values():
        row.sources.remove(stale)

    await session.flush()
    logger.debug(
        "card_saved",
        card_id=card.id,
        source_count=len(card.sources),
        merge_group_id=card.merge_group_id,
    )
    return row


async def add_watch_entry(session: AsyncSession, profile_id: str, card_id: str) -> bool:
    """Link profile to card. Returns False when the link already existed."""
    existing = await session.get(WatchEntry, (profile_id, card_id))
    if existing is not None:
        return False
    session.add(WatchEntry(profile_id=profile_id, card_id=card_id))
    await session.flush()
    return True


async def remove_watch_entry(session: AsyncSession, profile_id: str, card_id: str) -> bool:
    """Unlink profile from card. Returns False when there was no link."""
    result = await session.execute(
        delete(WatchEntry).where(
            WatchEntry.profile_id == profile_id, WatchEntry.card_id == card_id
        )
    )
    return result.rowcount > 0


async def delete_card_row(session: AsyncSession, card_id: str) -> None:
    row = await get_card_row(session, card_id)
    if row is not None:
        await session.delete(row)
        await session.flush()
