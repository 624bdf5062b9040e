"""Tests for price fusion and the watchlist display projection."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from cardwatch.config import PriceType, SourceType
from cardwatch.engine.merge import merge_or_create
from cardwatch.engine.payload import parse_source_payload
from cardwatch.engine.pricing import build_display, consolidate_prices

from tests.conftest import PC_URL, TCG_CLEAN_URL, make_card, make_record


class TestConsolidatePrices:
    def test_merged_card_shows_every_site_price(self) -> None:
        card = make_card(
            make_record(SourceType.TCGPLAYER),
            make_record(SourceType.PRICECHARTING),
        )

        assert consolidate_prices(card) == {
            PriceType.MARKET: Decimal("10.50"),
            PriceType.UNGRADED: Decimal("15.00"),
            PriceType.GRADE_9: Decimal("25.00"),
        }

    def test_owner_site_wins(self) -> None:
        card = make_card(
            make_record(
                SourceType.TCGPLAYER,
                prices={PriceType.MARKET: "10.50", PriceType.UNGRADED: "99.00"},
            ),
            make_record(
                SourceType.PRICECHARTING,
                prices={PriceType.MARKET: "1.00", PriceType.UNGRADED: "15.00"},
            ),
        )

        pricing = consolidate_prices(card)

        assert pricing[PriceType.MARKET] == Decimal("10.50")
        assert pricing[PriceType.UNGRADED] == Decimal("15.00")

    def test_falls_back_when_owner_missing(self) -> None:
        card = make_card(
            make_record(SourceType.PRICECHARTING, prices={PriceType.MARKET: "12.00"})
        )
        assert consolidate_prices(card) == {PriceType.MARKET: Decimal("12.00")}

    def test_falls_back_when_owner_has_no_value(self) -> None:
        card = make_card(
            make_record(SourceType.PRICECHARTING, prices={PriceType.UNGRADED: "15.00"}),
            make_record(SourceType.TCGPLAYER, prices={PriceType.GRADE_10: "70.00"}),
        )
        assert consolidate_prices(card)[PriceType.GRADE_10] == Decimal("70.00")


class TestBuildDisplay:
    def test_merged_display(self) -> None:
        early = datetime(2026, 1, 1, tzinfo=timezone.utc)
        late = datetime(2026, 2, 1, tzinfo=timezone.utc)
        card = make_card(
            make_record(SourceType.TCGPLAYER, checked_at=early),
            make_record(SourceType.PRICECHARTING, checked_at=late),
            set_display="SV4a: Shiny Treasure ex",
            rarity="Secret Rare",
        )

        display = build_display(card)

        assert display.id == card.id
        assert display.name == "Gardevoir ex"
        assert display.number == "348"
        assert display.rarity == "Secret Rare"
        assert display.is_merged is True
        assert display.source_count == 2
        assert [(s.display_name, s.url) for s in display.sources] == [
            ("TCGplayer", TCG_CLEAN_URL),
            ("PriceCharting", PC_URL),
        ]
        assert display.last_checked_at == late
        assert display.price(PriceType.GRADE_9) == Decimal("25.00")
        assert display.price(PriceType.GRADE_10) is None

    def test_single_source_display(self) -> None:
        display = build_display(make_card(make_record()))

        assert display.is_merged is False
        assert display.source_count == 1
        assert display.pricing == {PriceType.MARKET: Decimal("10.50")}

    def test_grouped_single_source_card_is_not_displayed_as_merged(self) -> None:
        display = build_display(make_card(make_record(), merge_group_id="group-1"))
        assert display.is_merged is False


def test_display_after_merging_offsetless_timestamp() -> None:
    """A scraped timestamp without an offset still compares with stored ones."""
    stored = make_card(make_record(SourceType.TCGPLAYER))
    incoming = parse_source_payload(
        {
            "sourceType": "pricecharting",
            "url": PC_URL,
            "ungradedPrice": "15.00",
            "lastCheckedAt": "2026-02-01T10:00:00",
        }
    )

    card = merge_or_create(incoming, stored.identity, [stored]).card
    display = build_display(card)

    assert display.last_checked_at == datetime(2026, 2, 1, 10, 0, tzinfo=timezone.utc)
