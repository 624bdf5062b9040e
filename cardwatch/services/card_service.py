"""
CardWatch — Card Service (orchestrator)

Wires the engine to storage for the four watchlist events:

    add_card      URL -> hints -> scrape -> extract -> scan -> merge -> save
    refresh_card  re-scrape every source, best effort per source
    delete_card   drop a watch entry, delete the card with its last watcher
    unmerge_card  split a merged card back into single-source cards

Scraping is an injected collaborator: any async callable taking a URL and
returning the scraper payload dict.

Every write that rewrites whole cards (add, refresh, unmerge) runs its
"load -> decide -> write" inside one transaction and under a process-wide
lock. Two adds of the same card cannot both miss each other, and a refresh
or unmerge cannot drop a source another add just merged in.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cardwatch.engine.identity import extract_identity
from cardwatch.engine.matcher import cards_match
from cardwatch.engine.merge import apply_source_record, merge_or_create
from cardwatch.engine.payload import parse_source_payload
from cardwatch.engine.pricing import CardDisplay, build_display
from cardwatch.engine.types import SourceRecord
from cardwatch.engine.unmerge import unmerge_card
from cardwatch.engine.url_hints import UrlHints, parse_card_url
from cardwatch.errors import (
    CardNotFoundError,
    InvalidSourcePayloadError,
    ProfileNotFoundError,
)
from cardwatch.services import card_store
from cardwatch.services.display_cache import DisplayCache

logger = structlog.get_logger(__name__)

Scraper = Callable[[str], Awaitable[Mapping[str, Any]]]


class CardService:
    """
    Watchlist operations over an async session factory.

    Usage:
        service = CardService(session_factory, scraper=my_scraper)
        display = await service.add_card(url, "ash")
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        scraper: Scraper | None = None,
        cache: DisplayCache | None = None,
    ):
        self.session_factory = session_factory
        self.scraper = scraper
        self.cache = cache
        self._write_lock = asyncio.Lock()

    # -----------------------------------------------------------------------
    # Scraping helpers
    # -----------------------------------------------------------------------

    async def _scrape(self, url: str) -> tuple[UrlHints, SourceRecord, Mapping[str, Any]]:
        """Scrape url and validate the payload. Fills url/productId gaps from the URL."""
        hints = parse_card_url(url)
        if self.scraper is None:
            raise RuntimeError("CardService has no scraper configured")
        payload = await self.scraper(hints.clean_url)
        record = parse_source_payload(payload)

        if record.source_type != hints.source_type:
            raise InvalidSourcePayloadError(
                f"Payload sourceType {record.source_type.value!r} does not match "
                f"URL source {hints.source_type.value!r}"
            )
        record = record.model_copy(
            update={
                "url": record.url or hints.clean_url,
                "product_id": record.product_id or hints.product_id,
            }
        )
        return hints, record, payload

    async def _scrape_source(self, card_id: str, record: SourceRecord) -> SourceRecord | None:
        """Best-effort re-scrape of one source. Failures leave the source stale."""
        try:
            _, refreshed, _ = await self._scrape(record.url)
        except Exception as e:
            logger.warning(
                "card_source_refresh_failed",
                card_id=card_id,
                source_type=record.source_type.value,
                url=record.url,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None
        return refreshed

    # -----------------------------------------------------------------------
    # Operations
    # -----------------------------------------------------------------------

    async def add_card(self, url: str, profile_name: str) -> CardDisplay:
        """
        Add the card at url to profile_name's watchlist, merging it into an
        existing card when one matches.

        Raises:
            UnsupportedSourceError: url is not a supported marketplace.
            InvalidSourcePayloadError: the scraper returned a malformed payload.
            CardExtractionError: no identity could be extracted.
        """
        hints, record, payload = await self._scrape(url)

        raw_name = str(payload.get("name") or "").strip() or hints.name_guess
        number_hint = hints.number_hint or (record.metadata.number or "")
        identity = extract_identity(raw_name, hints.clean_url, number_hint)

        async with self._write_lock:
            async with self.session_factory() as session:
                async with session.begin():
                    profile = await card_store.get_or_create_profile(session, profile_name)

                    existing = await card_store.load_all_cards(session)
                    candidates = [
                        card for card in existing if cards_match(card.identity, identity)
                    ]
                    result = merge_or_create(record, identity, candidates)

                    await card_store.save_card(session, result.card)
                    for grouped in result.grouped:
                        await card_store.save_card(session, grouped)
                    await card_store.add_watch_entry(session, profile.id, result.card.id)

        if self.cache is not None:
            if result.was_merged:
                self.cache.clear()
            else:
                self.cache.invalidate(profile_name)

        logger.info(
            "card_added",
            card_id=result.card.id,
            profile=profile_name,
            source_type=record.source_type.value,
            was_merged=result.was_merged,
            candidate_count=len(candidates),
        )
        return build_display(result.card)

    async def get_cards_for_profile(self, profile_name: str) -> list[CardDisplay]:
        """Watchlist for profile_name (profile is created on first use)."""
        if self.cache is not None:
            cached = self.cache.get(profile_name)
            if cached is not None:
                return cached

        async with self.session_factory() as session:
            async with session.begin():
                profile = await card_store.get_or_create_profile(session, profile_name)
                cards = await card_store.cards_for_profile(session, profile.id)

        displays = [build_display(card) for card in cards]
        if self.cache is not None:
            self.cache.put(profile_name, displays)
        return displays

    async def refresh_card(self, card_id: str) -> CardDisplay:
        """
        Re-scrape every source of a card and store the new prices.

        Sources are scraped concurrently outside the transaction. A source
        whose scrape fails keeps its previous data; the others are saved.

        Raises:
            CardNotFoundError: card_id does not exist.
        """
        async with self.session_factory() as session:
            card = await card_store.load_card(session, card_id)
        if card is None:
            raise CardNotFoundError(f"Card not found: {card_id}")

        results = await asyncio.gather(
            *(self._scrape_source(card_id, record) for record in card.sources)
        )

        async with self._write_lock:
            async with self.session_factory() as session:
                async with session.begin():
                    current = await card_store.load_card(session, card_id)
                    if current is None:
                        raise CardNotFoundError(f"Card not found: {card_id}")
                    for refreshed in results:
                        if refreshed is not None:
                            current = apply_source_record(current, refreshed)
                    await card_store.save_card(session, current)

        if self.cache is not None:
            self.cache.clear()

        refreshed_count = sum(1 for r in results if r is not None)
        logger.info(
            "card_refreshed",
            card_id=card_id,
            sources_refreshed=refreshed_count,
            sources_stale=len(results) - refreshed_count,
        )
        return build_display(current)

    async def delete_card(self, card_id: str, profile_name: str) -> bool:
        """
        Remove card_id from profile_name's watchlist.

        Returns:
            True when the card itself was deleted (no watchers left). False
            when other profiles still watch it, or when this profile was not
            watching it at all.

        Raises:
            ProfileNotFoundError: profile_name does not exist.
        """
        async with self.session_factory() as session:
            async with session.begin():
                profile = await card_store.get_profile(session, profile_name)
                if profile is None:
                    raise ProfileNotFoundError(f"Profile not found: {profile_name}")

                removed = await card_store.remove_watch_entry(session, profile.id, card_id)
                if not removed:
                    logger.info(
                        "card_unwatch_skipped",
                        card_id=card_id,
                        profile=profile_name,
                        reason="not_watched",
                    )
                    return False

                remaining = await card_store.count_watchers(session, card_id)
                deleted = remaining == 0
                if deleted:
                    await card_store.delete_card_row(session, card_id)

        if self.cache is not None:
            self.cache.invalidate(profile_name)

        logger.info(
            "card_deleted" if deleted else "card_unwatched",
            card_id=card_id,
            profile=profile_name,
            remaining_watchers=remaining,
        )
        return deleted

    async def unmerge_card(self, card_id: str) -> bool:
        """
        Split a merged card back into single-source cards.

        Every card in the merge group is split. Split-off cards are watched by
        the same profiles as the card they came from.

        Returns:
            False when the card does not exist or was never merged.
        """
        async with self._write_lock:
            async with self.session_factory() as session:
                async with session.begin():
                    card = await card_store.load_card(session, card_id)
                    if card is None:
                        logger.warning(
                            "card_unmerge_failed", card_id=card_id, reason="not_found"
                        )
                        return False

                    group = []
                    if card.merge_group_id:
                        group = await card_store.load_group(session, card.merge_group_id)

                    result = unmerge_card(card, group)
                    if not result.success:
                        return False

                    watchers = {
                        source_id: await card_store.watcher_ids(session, source_id)
                        for source_id in set(result.split_from.values())
                    }
                    for restored in result.cards:
                        await card_store.save_card(session, restored)
                        source_id = result.split_from.get(restored.id)
                        if source_id is None:
                            continue
                        for profile_id in watchers[source_id]:
                            await card_store.add_watch_entry(session, profile_id, restored.id)

        if self.cache is not None:
            self.cache.clear()
        return True
