"""
CardWatch — Shared pytest Fixtures & Configuration

Provides common fixtures for all test modules:
- File-backed aiosqlite database + session factory
- Source record / card builders
- Canonical URLs and scraper payloads for the Gardevoir ex #348 scenario
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cardwatch.config import PriceType, SourceType
from cardwatch.engine.types import Card, CardIdentity, SourceMetadata, SourceRecord
from cardwatch.models.base import Base


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

TCG_URL = (
    "https://www.tcgplayer.com/product/512345/"
    "pokemon-japan-sv4a-shiny-treasure-ex-gardevoir-ex-348-190?Language=Japanese"
)
TCG_CLEAN_URL = (
    "https://www.tcgplayer.com/product/512345/"
    "pokemon-japan-sv4a-shiny-treasure-ex-gardevoir-ex-348-190"
)
PC_URL = "https://www.pricecharting.com/game/pokemon-japanese-shiny-treasure-ex/gardevoir-ex-348"

TCG_TITLE = "Gardevoir ex - 348/190 - SV4a: Shiny Treasure ex (SV4a)"
PC_TITLE = "Gardevoir ex #348 Pokemon Japanese Shiny Treasure ex"


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """
    Fresh file-backed SQLite database per test.

    File-backed rather than :memory: so every session gets its own
    connection to the same database.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'cardwatch.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    yield factory

    await engine.dispose()


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


@pytest.fixture
def tcg_payload() -> dict[str, Any]:
    """What the TCGplayer scraper returns for Gardevoir ex #348."""
    return {
        "sourceType": "tcgplayer",
        "name": TCG_TITLE,
        "url": TCG_CLEAN_URL,
        "productId": "512345",
        "currency": "USD",
        "marketPrice": 10.50,
        "setDisplay": "SV4a: Shiny Treasure ex",
        "rarity": "Secret Rare",
        "imageUrl": "https://tcgplayer-cdn.tcgplayer.com/product/512345_200w.jpg",
        "jpNo": "348/190",
    }


@pytest.fixture
def pc_payload() -> dict[str, Any]:
    """What the PriceCharting scraper returns for Gardevoir ex #348."""
    return {
        "sourceType": "pricecharting",
        "name": PC_TITLE,
        "url": PC_URL,
        "ungradedPrice": "$15.00",
        "grade9Price": 25,
        "grade10Price": "$50.00",
        "rarity": "Rare",
        "cardNumber": "348",
    }


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_record(
    source_type: SourceType = SourceType.TCGPLAYER,
    prices: dict[PriceType, str] | None = None,
    url: str | None = None,
    checked_at: datetime | None = None,
    **metadata: Any,
) -> SourceRecord:
    """Build a SourceRecord with Decimal prices from string amounts."""
    if prices is None:
        prices = (
            {PriceType.MARKET: "10.50"}
            if source_type == SourceType.TCGPLAYER
            else {PriceType.UNGRADED: "15.00", PriceType.GRADE_9: "25.00"}
        )
    return SourceRecord(
        source_type=source_type,
        url=url or (TCG_CLEAN_URL if source_type == SourceType.TCGPLAYER else PC_URL),
        prices={k: Decimal(v) for k, v in prices.items()},
        metadata=SourceMetadata(**metadata),
        last_checked_at=checked_at or datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


def make_card(
    *records: SourceRecord,
    name: str = "Gardevoir ex",
    number: str = "348",
    card_id: str | None = None,
    merge_group_id: str | None = None,
    **metadata: Any,
) -> Card:
    kwargs: dict[str, Any] = {}
    if card_id is not None:
        kwargs["id"] = card_id
    return Card(
        identity=CardIdentity(name=name, number=number),
        metadata=SourceMetadata(**metadata),
        sources=list(records) or [make_record()],
        merge_group_id=merge_group_id,
        **kwargs,
    )
