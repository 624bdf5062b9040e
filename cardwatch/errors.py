"""
CardWatch — Exception hierarchy.

Domain errors subclass the builtin they behave like, so callers that only
know about ValueError / LookupError still catch them.
"""

from __future__ import annotations


class CardWatchError(Exception):
    """Base class for all CardWatch errors."""


class CardExtractionError(CardWatchError, ValueError):
    """No (name, number) identity could be extracted from a scraped title."""

    def __init__(self, raw_name: str, source_url: str = "") -> None:
        self.raw_name = raw_name
        self.source_url = source_url
        super().__init__("Could not extract card information from URL")


class InvalidSourcePayloadError(CardWatchError, ValueError):
    """A scraper payload is not a mapping or lacks a usable sourceType/price."""


class UnsupportedSourceError(CardWatchError, ValueError):
    """URL does not belong to a supported marketplace."""


class CardNotFoundError(CardWatchError, LookupError):
    """No card row exists for the given id."""


class ProfileNotFoundError(CardWatchError, LookupError):
    """No profile row exists for the given name."""
