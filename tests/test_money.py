"""Tests for price text parsing."""

from __future__ import annotations

from decimal import Decimal

import pytest

from cardwatch.utils.money import parse_price, quantize_price


class TestParsePrice:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("$1,234.56", Decimal("1234.56")),
            ("12.345", Decimal("12.35")),
            (" 15 USD ", Decimal("15.00")),
            (10.5, Decimal("10.50")),
            (25, Decimal("25.00")),
            (Decimal("3.1"), Decimal("3.10")),
        ],
    )
    def test_valid_prices(self, raw: object, expected: Decimal) -> None:
        assert parse_price(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "  ", "-", "N/A", "n/a", 0, "$0.00", True])
    def test_absent_prices(self, raw: object) -> None:
        assert parse_price(raw) is None

    @pytest.mark.parametrize("raw", ["abc", "-5", -1.0, "NaN", float("inf"), [1]])
    def test_invalid_prices_raise(self, raw: object) -> None:
        with pytest.raises(ValueError):
            parse_price(raw)

    def test_float_is_not_binary_expanded(self) -> None:
        assert parse_price(0.1) == Decimal("0.10")


def test_quantize_price_rounds_half_up() -> None:
    assert quantize_price(Decimal("2.675")) == Decimal("2.68")
