"""
CardWatch — Price text parsing.

Scrapers hand back prices as floats, ints or display strings such as
"$1,234.56". Everything is normalized to a 2dp Decimal here. Never float.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

_TWO_DP = Decimal("0.01")
_ZERO = Decimal("0")

# Currency symbols, thousands separators and whitespace
_PRICE_NOISE_RE = re.compile(r"[\s,$€£¥]|USD|EUR", re.IGNORECASE)


def quantize_price(value: Decimal) -> Decimal:
    return value.quantize(_TWO_DP, rounding=ROUND_HALF_UP)


def parse_price(raw: Any) -> Decimal | None:
    """
    Convert a scraped price into a 2dp Decimal.

    Args:
        raw: Decimal, int, float or display string. None/blank means "no price".

    Returns:
        The price, or None when the value is missing, blank, "N/A" or zero.
        Scrapers report zero for "no listing", so zero is treated as absent.

    Raises:
        ValueError: If the value is present but not a number, or negative.

    Examples:
        >>> parse_price("$1,234.56")
        Decimal('1234.56')
    """
    if raw is None or isinstance(raw, bool):
        return None

    if isinstance(raw, Decimal):
        value = raw
    elif isinstance(raw, (int, float)):
        # str() first so 10.5 becomes Decimal("10.5"), not its binary expansion
        value = Decimal(str(raw))
    elif isinstance(raw, str):
        cleaned = _PRICE_NOISE_RE.sub("", raw)
        if cleaned in ("", "-", "N/A", "n/a"):
            return None
        try:
            value = Decimal(cleaned)
        except InvalidOperation as e:
            raise ValueError(f"Unparseable price {raw!r}") from e
    else:
        raise ValueError(f"Unsupported price type {type(raw).__name__}")

    if not value.is_finite():
        raise ValueError(f"Unparseable price {raw!r}")
    if value < _ZERO:
        raise ValueError(f"Price must be non-negative, got {raw!r}")
    if value == _ZERO:
        return None

    return quantize_price(value)
