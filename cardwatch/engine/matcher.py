"""
CardWatch — Similarity Matcher

Decides whether two identities describe the same physical card.

The number is the strict filter: cards with different numbers never match.
Names are matched loosely because the two sites title the same card very
differently (full set names and "ex" suffixes on one side, bare set codes on
the other). The containment cascade favours recall over precision.

Not symmetric or transitive by construction: cards_match(a, b) may differ
from cards_match(b, a). Callers match a new card against candidates only,
never chaining through intermediate matches.
"""

from __future__ import annotations

import re
from typing import Iterable

import structlog

from cardwatch.config import settings
from cardwatch.engine.types import CardIdentity

logger = structlog.get_logger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")
_PUNCTUATION_RE = re.compile(r"[^\w\s]")
# Set codes: sv4a, s12a, sm1, swsh9, xy12, bw3 ...
_SET_CODE_RE = re.compile(r"^(?:s|sv|sm|sw|swsh|xy|bw)\d+[a-z]*$")


def normalize_number(number: str | None) -> str:
    """Strip leading zeros; an empty or all-zero number becomes "0"."""
    return (number or "").strip().lstrip("0") or "0"


def normalize_name(name: str | None) -> str:
    """Lowercase, collapse internal whitespace, trim."""
    return _WHITESPACE_RE.sub(" ", (name or "").lower()).strip()


def core_name(name: str | None, stopwords: Iterable[str] | None = None) -> str:
    """
    Normalized name with punctuation and noise tokens removed.

    A crude denoiser: drops language/site qualifiers, "ex", filler words and
    anything shaped like a set code.
    """
    stop = set(stopwords if stopwords is not None else settings.NAME_STOPWORDS)
    tokens = _PUNCTUATION_RE.sub("", normalize_name(name)).split()
    kept = [t for t in tokens if t not in stop and not _SET_CODE_RE.match(t)]
    return " ".join(kept)


def _strip_number_tokens(core: str, number: str) -> str:
    """Drop digit tokens that contain the card's own number ("112101" for "112")."""
    candidates = {n for n in (number.strip(), normalize_number(number)) if n and n != "0"}
    if not candidates:
        return core
    kept = [
        token for token in core.split()
        if not (token.isdigit() and any(n in token for n in candidates))
    ]
    return " ".join(kept)


def _contains(haystack: str, needle: str) -> bool:
    return bool(needle) and bool(haystack) and needle in haystack


def cards_match(a: CardIdentity, b: CardIdentity) -> bool:
    """
    Return True when a and b look like the same physical card.

    Order of checks (short-circuit):
        1. normalized numbers differ      -> False
        2. normalized names equal         -> True
        3. core names equal               -> True
        4. a name contains b's core (or b's name contains a's core)
        5. one core contains the other
        6. one normalized name contains the other
        7. b's core without its number tokens vs a's core, either way
    """
    if normalize_number(a.number) != normalize_number(b.number):
        return False

    name_a = normalize_name(a.name)
    name_b = normalize_name(b.name)
    if name_a and name_a == name_b:
        return True

    core_a = core_name(a.name)
    core_b = core_name(b.name)

    if core_a and core_a == core_b:
        reason = "core_equal"
    elif _contains(name_a, core_b) or _contains(name_b, core_a):
        reason = "name_contains_core"
    elif _contains(core_a, core_b) or _contains(core_b, core_a):
        reason = "core_contains_core"
    elif _contains(name_a, name_b) or _contains(name_b, name_a):
        reason = "name_contains_name"
    else:
        stripped_b = _strip_number_tokens(core_b, b.number)
        if _contains(core_a, stripped_b) or _contains(stripped_b, core_a):
            reason = "core_without_number"
        else:
            return False

    logger.debug(
        "cards_matched",
        name_a=a.name,
        name_b=b.name,
        number=normalize_number(a.number),
        reason=reason,
    )
    return True
