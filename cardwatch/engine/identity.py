"""
CardWatch — Identity Extractor

Turns a raw scraped title into a normalized (name, number) CardIdentity.

The two marketplaces title the same card differently:
    TCGplayer:      "Gardevoir ex - 348/190 - SV4a: Shiny Treasure ex (SV4a)"
    PriceCharting:  "Gardevoir ex #348 Pokemon Japanese Shiny Treasure ex"

Each site has a cascade of patterns tried in order. Titles are unreliable
for the number but reliable for the name, so a number hint parsed from the
product URL always wins over the number found in the title.
"""

from __future__ import annotations

import re
from typing import Pattern

import structlog

from cardwatch.config import SourceType
from cardwatch.engine.types import CardIdentity
from cardwatch.engine.url_hints import detect_source
from cardwatch.errors import CardExtractionError

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Title patterns
# ---------------------------------------------------------------------------

# "Name - 112/101 - Set"
_DASH_FRACTION_SET_RE = re.compile(
    r"^(?P<name>.+?)\s*-\s*(?P<number>\d+)\s*/\s*\d+\s*-\s*(?P<set>.+)$"
)
# "Name - 112/101"
_DASH_FRACTION_RE = re.compile(r"^(?P<name>.+?)\s*-\s*(?P<number>\d+)\s*/\s*\d+")
# "Name #112 Set"
_HASH_SET_RE = re.compile(r"^(?P<name>.+?)\s*#\s*(?P<number>\d+)\s+(?P<set>\S.*)$")
# "Name #112"
_HASH_RE = re.compile(r"^(?P<name>.+?)\s*#\s*(?P<number>\d+)")
# "Name 112 101" (URL slugs turned into titles)
_TRAILING_PAIR_RE = re.compile(r"^(?P<name>.+?)\s+(?P<number>\d+)\s+\d+\s*$")
_DIGITS_RE = re.compile(r"\d+")

_TCGPLAYER_CASCADE: tuple[tuple[str, Pattern[str]], ...] = (
    ("dash_fraction_set", _DASH_FRACTION_SET_RE),
    ("dash_fraction", _DASH_FRACTION_RE),
    ("hash", _HASH_RE),
    ("trailing_pair", _TRAILING_PAIR_RE),
)

_PRICECHARTING_CASCADE: tuple[tuple[str, Pattern[str]], ...] = (
    ("hash_set", _HASH_SET_RE),
    ("hash", _HASH_RE),
    ("dash_fraction", _DASH_FRACTION_RE),
)

_CASCADES: dict[SourceType, tuple[tuple[str, Pattern[str]], ...]] = {
    SourceType.TCGPLAYER: _TCGPLAYER_CASCADE,
    SourceType.PRICECHARTING: _PRICECHARTING_CASCADE,
}

# Separators left dangling once the number is cut out of a title
_NAME_EDGE_CHARS = " \t-:#"


def _clean_name(name: str) -> str:
    return " ".join(name.split()).strip(_NAME_EDGE_CHARS)


def _cascade_for(source: SourceType | None) -> tuple[tuple[str, Pattern[str]], ...]:
    if source is not None:
        return _CASCADES[source]
    # Unknown host: TCGplayer patterns first
    return _TCGPLAYER_CASCADE + _PRICECHARTING_CASCADE


def _match_title(
    title: str, source: SourceType | None
) -> tuple[str, str, str] | None:
    """Return (pattern_name, name, number) for the first matching pattern."""
    for pattern_name, pattern in _cascade_for(source):
        match = pattern.match(title)
        if match:
            name = _clean_name(match.group("name"))
            if name:
                return pattern_name, name, match.group("number")

    # Last resort: any digit run; the whole title is the name
    digit_runs = _DIGITS_RE.findall(title)
    if digit_runs:
        return "digit_run", _clean_name(title), digit_runs[-1]
    return None


def extract_identity(
    raw_name: str,
    source_url: str,
    number_hint: str | None = None,
) -> CardIdentity:
    """
    Extract a CardIdentity from a scraped title.

    Args:
        raw_name: Title as scraped (or guessed from the URL slug).
        source_url: Product URL; its host selects the pattern cascade.
        number_hint: Card number parsed upstream from the URL. Overrides the
            number found in the title when it is a non-empty digit string.

    Returns:
        CardIdentity(name, number).

    Raises:
        CardExtractionError: Blank title, or no pattern matched and neither
            the title nor the hint supplies any number.
    """
    title = (raw_name or "").strip()
    if not title:
        raise CardExtractionError(raw_name, source_url)

    hint = (number_hint or "").strip()
    if hint and not hint.isdigit():
        logger.debug("identity_number_hint_ignored", number_hint=hint, url=source_url)
        hint = ""

    source = detect_source(source_url)
    matched = _match_title(title, source)

    if matched is None:
        if not hint:
            logger.warning(
                "identity_extraction_failed",
                raw_name=raw_name,
                url=source_url,
                source_type=source.value if source else None,
            )
            raise CardExtractionError(raw_name, source_url)
        pattern_name, name, number = "hint_only", _clean_name(title), hint
    else:
        pattern_name, name, number = matched

    if hint:
        number = hint

    identity = CardIdentity(name=name, number=number)
    logger.debug(
        "identity_extracted",
        pattern=pattern_name,
        name=identity.name,
        number=identity.number,
        source_type=source.value if source else None,
        hinted=bool(hint),
    )
    return identity
