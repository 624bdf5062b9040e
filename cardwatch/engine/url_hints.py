"""
CardWatch — Product URL Hints

Upstream of the extractor: the product URL already carries most of what we
need to identify a card.

    https://www.tcgplayer.com/product/512345/pokemon-sv4a-gardevoir-ex-348-190?Language=Japanese
    https://www.pricecharting.com/game/pokemon-japanese-shiny-treasure-ex/gardevoir-ex-348

Slug number rules:
    "...-112"      -> "112"
    "...-112101"   -> "112"   (6-digit run: number and total glued together)
    "...-080-073"  -> "080"   (number and total as two runs: take the first)
"""

from __future__ import annotations

import re
from typing import NamedTuple
from urllib.parse import unquote, urlsplit

import structlog

from cardwatch.config import SourceType, settings
from cardwatch.errors import UnsupportedSourceError

logger = structlog.get_logger(__name__)

_TCGPLAYER_PRODUCT_RE = re.compile(r"/product/(?P<product_id>\d+)(?:/(?P<slug>[^/]+))?")
_PRICECHARTING_GAME_RE = re.compile(r"/game/[^/]+/(?P<slug>[^/]+)")
_SLUG_PAIR_RE = re.compile(r"-(\d+)-(\d+)$")
_SLUG_NUMBER_RE = re.compile(r"-(\d+)$")
_FRACTION_RE = re.compile(r"^\s*(\d+)\s*(?:/\s*\w+)?\s*$")

# "112101" style runs: first half is the card number
_GLUED_NUMBER_LENGTH = 6


class UrlHints(NamedTuple):
    """Everything derivable from a product URL without fetching it."""
    source_type: SourceType
    clean_url: str
    product_id: str
    name_guess: str
    number_hint: str


def _hostname(url: str) -> str:
    if "://" not in url:
        url = f"//{url}"
    return (urlsplit(url).hostname or "").lower()


def detect_source(url: str) -> SourceType | None:
    """Identify the marketplace a URL belongs to, or None."""
    host = _hostname(url or "")
    if not host:
        return None
    for source, site in (
        (SourceType.TCGPLAYER, settings.TCGPLAYER_HOST),
        (SourceType.PRICECHARTING, settings.PRICECHARTING_HOST),
    ):
        if host == site or host.endswith(f".{site}"):
            return source
    return None


def strip_query(url: str) -> str:
    """Drop query string and fragment for consistent storage."""
    return url.split("#", 1)[0].split("?", 1)[0]


def number_from_slug(slug: str) -> str:
    pair = _SLUG_PAIR_RE.search(slug)
    if pair:
        return pair.group(1)

    single = _SLUG_NUMBER_RE.search(slug)
    if not single:
        return ""
    digits = single.group(1)
    if len(digits) == _GLUED_NUMBER_LENGTH:
        return digits[:3]
    return digits


def number_from_fraction(value: str | None) -> str:
    """'112/101' -> '112'; '112' -> '112'; anything else -> ''."""
    if not value:
        return ""
    match = _FRACTION_RE.match(value)
    return match.group(1) if match else ""


def parse_card_url(url: str) -> UrlHints:
    """
    Derive source, product id, a name guess and a number hint from a URL.

    Raises:
        UnsupportedSourceError: URL is empty or not on a supported marketplace.
    """
    source = detect_source(url)
    if source is None:
        raise UnsupportedSourceError(f"Unsupported URL format: {url!r}")

    clean_url = strip_query(url)
    path = urlsplit(clean_url if "://" in clean_url else f"//{clean_url}").path

    product_id = ""
    slug = ""
    if source == SourceType.TCGPLAYER:
        match = _TCGPLAYER_PRODUCT_RE.search(path)
        if match:
            product_id = match.group("product_id")
            slug = match.group("slug") or ""
    else:
        match = _PRICECHARTING_GAME_RE.search(path)
        if match:
            slug = match.group("slug")

    if not slug:
        # Fallback: last non-empty path segment
        segments = [segment for segment in path.split("/") if segment]
        slug = segments[-1] if segments else ""
        if slug == product_id:
            slug = ""

    hints = UrlHints(
        source_type=source,
        clean_url=clean_url,
        product_id=product_id,
        name_guess=" ".join(unquote(slug.replace("-", " ")).split()),
        number_hint=number_from_slug(slug),
    )
    logger.debug(
        "url_hints_parsed",
        source_type=source.value,
        product_id=hints.product_id,
        number_hint=hints.number_hint,
    )
    return hints
