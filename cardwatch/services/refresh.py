"""
CardWatch — Batched Watchlist Refresh

Refreshes many cards without hammering the marketplaces: cards are split
into fixed-size batches, each batch is refreshed concurrently, and the
runner sleeps between batches.

One failing card never stops the run; it is counted and logged.
"""

from __future__ import annotations

import asyncio
from typing import NamedTuple, Sequence

import structlog
from sqlalchemy import select

from cardwatch.config import settings
from cardwatch.models.card import CardRow
from cardwatch.services.card_service import CardService

logger = structlog.get_logger(__name__)


class RefreshSummary(NamedTuple):
    successful: int
    failed: int
    failed_card_ids: list[str]


def make_batches(items: Sequence[str], batch_size: int) -> list[list[str]]:
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    return [list(items[i:i + batch_size]) for i in range(0, len(items), batch_size)]


async def all_card_ids(service: CardService) -> list[str]:
    async with service.session_factory() as session:
        result = await session.execute(select(CardRow.id).order_by(CardRow.created_at, CardRow.id))
        return list(result.scalars().all())


async def refresh_all_cards(
    service: CardService,
    card_ids: Sequence[str] | None = None,
    batch_size: int | None = None,
    batch_delay_seconds: float | None = None,
) -> RefreshSummary:
    """
    Refresh cards in rate-limited batches.

    Args:
        service: CardService wired to storage and a scraper.
        card_ids: Cards to refresh. Defaults to every stored card.
        batch_size: Cards refreshed concurrently per batch.
        batch_delay_seconds: Pause between batches (not after the last one).

    Returns:
        RefreshSummary with success/failure counts.
    """
    size = settings.REFRESH_BATCH_SIZE if batch_size is None else batch_size
    delay = settings.REFRESH_BATCH_DELAY_SECONDS if batch_delay_seconds is None else batch_delay_seconds

    if card_ids is None:
        card_ids = await all_card_ids(service)

    batches = make_batches(card_ids, size)
    logger.info(
        "refresh_run_started",
        card_count=len(card_ids),
        batch_count=len(batches),
        batch_size=size,
        batch_delay_seconds=delay,
    )

    successful = 0
    failed_ids: list[str] = []
    for index, batch in enumerate(batches, start=1):
        results = await asyncio.gather(
            *(service.refresh_card(card_id) for card_id in batch),
            return_exceptions=True,
        )
        for card_id, outcome in zip(batch, results):
            if isinstance(outcome, Exception):
                failed_ids.append(card_id)
                logger.error(
                    "card_refresh_failed",
                    card_id=card_id,
                    error=str(outcome),
                    error_type=type(outcome).__name__,
                )
            else:
                successful += 1

        logger.info(
            "refresh_batch_complete",
            batch=index,
            total_batches=len(batches),
            successful=successful,
            failed=len(failed_ids),
        )
        if index < len(batches) and delay > 0:
            await asyncio.sleep(delay)

    summary = RefreshSummary(
        successful=successful, failed=len(failed_ids), failed_card_ids=failed_ids
    )
    logger.info("refresh_run_complete", successful=summary.successful, failed=summary.failed)
    return summary
