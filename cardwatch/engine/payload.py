"""
CardWatch — Scraper Payload Validation

Scrapers return loosely shaped dicts (camelCase keys, prices as floats or
"$12.34" strings). This is the only place they are turned into a
SourceRecord. Anything malformed is rejected here, never coerced into a merge.

Accepted keys:
    sourceType (required), url, productId, currency, lastCheckedAt,
    marketPrice, ungradedPrice, grade7Price, grade8Price, grade9Price,
    grade95Price, grade10Price, setDisplay, rarity, imageUrl,
    cardNumber, jpNo
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import structlog

from cardwatch.config import PriceType, SourceType, settings
from cardwatch.engine.types import SourceMetadata, SourceRecord
from cardwatch.engine.url_hints import number_from_fraction, strip_query
from cardwatch.errors import InvalidSourcePayloadError
from cardwatch.utils.money import parse_price

logger = structlog.get_logger(__name__)

PAYLOAD_PRICE_KEYS: dict[str, PriceType] = {
    "marketPrice": PriceType.MARKET,
    "ungradedPrice": PriceType.UNGRADED,
    "grade7Price": PriceType.GRADE_7,
    "grade8Price": PriceType.GRADE_8,
    "grade9Price": PriceType.GRADE_9,
    "grade95Price": PriceType.GRADE_95,
    "grade10Price": PriceType.GRADE_10,
}


def _optional_str(payload: Mapping[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _parse_source_type(raw: Any) -> SourceType:
    if raw is None or raw == "":
        raise InvalidSourcePayloadError("Source payload is missing sourceType")
    try:
        return SourceType(str(raw).strip().lower())
    except ValueError as e:
        raise InvalidSourcePayloadError(f"Unknown sourceType {raw!r}") from e


def _parse_prices(payload: Mapping[str, Any]) -> dict[PriceType, Decimal]:
    prices: dict[PriceType, Decimal] = {}
    for key, price_type in PAYLOAD_PRICE_KEYS.items():
        try:
            price = parse_price(payload.get(key))
        except ValueError as e:
            raise InvalidSourcePayloadError(f"Invalid {key}: {e}") from e
        if price is not None:
            prices[price_type] = price
    return prices


def _parse_checked_at(raw: Any) -> datetime:
    """Timestamps without an offset are taken as UTC; stored ones are always aware."""
    if raw is None:
        return datetime.now(timezone.utc)
    if isinstance(raw, datetime):
        checked_at = raw
    else:
        try:
            checked_at = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
        except ValueError as e:
            raise InvalidSourcePayloadError(f"Invalid lastCheckedAt {raw!r}") from e
    if checked_at.tzinfo is None:
        checked_at = checked_at.replace(tzinfo=timezone.utc)
    return checked_at


def parse_source_payload(payload: Any) -> SourceRecord:
    """
    Validate a scraper payload and build a SourceRecord.

    Card number metadata comes from cardNumber when present, otherwise from
    the leading number of a "112/101" style jpNo.

    Raises:
        InvalidSourcePayloadError: payload is not a mapping, sourceType is
            missing/unknown, or a price/timestamp cannot be parsed.
    """
    if not isinstance(payload, Mapping):
        raise InvalidSourcePayloadError(
            f"Source payload must be a mapping, got {type(payload).__name__}"
        )

    try:
        source_type = _parse_source_type(payload.get("sourceType"))
        prices = _parse_prices(payload)
        checked_at = _parse_checked_at(payload.get("lastCheckedAt"))
    except InvalidSourcePayloadError as e:
        logger.warning("source_payload_rejected", error=str(e))
        raise

    number = number_from_fraction(_optional_str(payload, "cardNumber")) or number_from_fraction(
        _optional_str(payload, "jpNo")
    )

    record = SourceRecord(
        source_type=source_type,
        url=strip_query(_optional_str(payload, "url") or ""),
        product_id=_optional_str(payload, "productId") or "",
        currency=_optional_str(payload, "currency") or settings.DEFAULT_CURRENCY,
        prices=prices,
        metadata=SourceMetadata(
            set_display=_optional_str(payload, "setDisplay"),
            rarity=_optional_str(payload, "rarity"),
            image_url=_optional_str(payload, "imageUrl"),
            number=number or None,
        ),
        last_checked_at=checked_at,
    )
    logger.debug(
        "source_payload_parsed",
        source_type=source_type.value,
        price_types=sorted(p.value for p in prices),
    )
    return record
