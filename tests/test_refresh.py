"""Tests for the batched watchlist refresh runner."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from cardwatch.errors import CardNotFoundError
from cardwatch.services.card_service import CardService
from cardwatch.services.refresh import all_card_ids, make_batches, refresh_all_cards

from tests.conftest import PC_URL, TCG_CLEAN_URL, TCG_URL


def _service(failing: set[str] | None = None) -> MagicMock:
    failing = failing or set()

    async def refresh(card_id: str) -> str:
        if card_id in failing:
            raise CardNotFoundError(card_id)
        return card_id

    service = MagicMock(spec=CardService)
    service.refresh_card = AsyncMock(side_effect=refresh)
    return service


class TestMakeBatches:
    def test_splits_with_short_last_batch(self) -> None:
        assert make_batches(["a", "b", "c", "d", "e", "f", "g"], 3) == [
            ["a", "b", "c"],
            ["d", "e", "f"],
            ["g"],
        ]

    def test_empty(self) -> None:
        assert make_batches([], 5) == []

    def test_invalid_size(self) -> None:
        with pytest.raises(ValueError):
            make_batches(["a"], 0)


class TestRefreshAllCards:
    async def test_every_card_is_refreshed(self) -> None:
        service = _service()
        ids = [f"card-{i}" for i in range(12)]

        summary = await refresh_all_cards(service, ids, batch_size=5, batch_delay_seconds=0)

        assert summary.successful == 12
        assert summary.failed == 0
        assert service.refresh_card.await_count == 12

    async def test_failures_do_not_stop_the_run(self) -> None:
        service = _service(failing={"card-1", "card-6"})
        ids = [f"card-{i}" for i in range(8)]

        summary = await refresh_all_cards(service, ids, batch_size=5, batch_delay_seconds=0)

        assert summary.successful == 6
        assert summary.failed == 2
        assert summary.failed_card_ids == ["card-1", "card-6"]

    async def test_sleeps_between_batches_only(self) -> None:
        service = _service()
        ids = [f"card-{i}" for i in range(11)]

        with patch("cardwatch.services.refresh.asyncio.sleep", new=AsyncMock()) as sleep:
            await refresh_all_cards(service, ids, batch_size=5, batch_delay_seconds=120)

        assert sleep.await_count == 2
        sleep.assert_awaited_with(120)

    async def test_no_cards(self) -> None:
        service = _service()
        summary = await refresh_all_cards(service, [], batch_size=5, batch_delay_seconds=0)
        assert summary == (0, 0, [])


class TestStoredCards:
    async def test_defaults_to_every_stored_card(
        self, session_factory, tcg_payload, pc_payload
    ) -> None:
        other_url = "https://www.pricecharting.com/game/pokemon-japanese-shiny-treasure-ex/gardevoir-ex-349"
        pages = {
            TCG_CLEAN_URL: tcg_payload,
            PC_URL: pc_payload,
            other_url: {**pc_payload, "url": other_url},
        }
        service = CardService(session_factory, scraper=AsyncMock(side_effect=lambda url: pages[url]))

        first = await service.add_card(TCG_URL, "ash")
        second = await service.add_card(other_url, "ash")

        assert sorted(await all_card_ids(service)) == sorted([first.id, second.id])

        summary = await refresh_all_cards(service, batch_size=1, batch_delay_seconds=0)

        assert summary.successful == 2
        assert summary.failed == 0
