from cardwatch.engine.identity import extract_identity
from cardwatch.engine.matcher import cards_match, core_name, normalize_name, normalize_number
from cardwatch.engine.merge import MergeResult, apply_source_record, merge_or_create
from cardwatch.engine.payload import parse_source_payload
from cardwatch.engine.pricing import CardDisplay, build_display, consolidate_prices
from cardwatch.engine.types import Card, CardIdentity, SourceMetadata, SourceRecord
from cardwatch.engine.unmerge import UnmergeResult, unmerge_card
from cardwatch.engine.url_hints import UrlHints, detect_source, parse_card_url

__all__ = [
    "Card",
    "CardDisplay",
    "CardIdentity",
    "MergeResult",
    "SourceMetadata",
    "SourceRecord",
    "UnmergeResult",
    "UrlHints",
    "apply_source_record",
    "build_display",
    "cards_match",
    "consolidate_prices",
    "core_name",
    "detect_source",
    "extract_identity",
    "merge_or_create",
    "normalize_name",
    "normalize_number",
    "parse_card_url",
    "parse_source_payload",
    "unmerge_card",
]
