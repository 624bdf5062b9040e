"""
CardWatch — Unmerge

Reverses a merge: every card in the target's merge group is split back into
single-source cards, and all group links are cleared.

Each restored record keeps only its own site's price types (TCGplayer keeps
market, PriceCharting keeps ungraded/graded). This assumes a source never
legitimately carried the other site's price types before the merge.
"""

from __future__ import annotations

from typing import NamedTuple, Sequence

import structlog

from cardwatch.engine.types import Card, CardIdentity, SourceRecord

logger = structlog.get_logger(__name__)


class UnmergeResult(NamedTuple):
    """
    success is False (and cards is the input unchanged) for a never-merged card.

    split_from maps each newly created card id to the id of the card its
    source was split off from.
    """
    success: bool
    cards: list[Card]
    split_from: dict[str, str]


def _restore_record(record: SourceRecord) -> SourceRecord:
    return record.model_copy(update={"prices": record.owned_prices()}, deep=True)


def _split(card: Card) -> list[Card]:
    """One single-source card per source; the first keeps card's id."""
    restored: list[Card] = []
    for index, record in enumerate(card.sources):
        single = _restore_record(record)
        if index == 0:
            restored.append(
                card.model_copy(
                    update={"sources": [single], "merge_group_id": None}, deep=True
                )
            )
            continue
        restored.append(
            Card(
                identity=CardIdentity(
                    name=card.identity.name,
                    number=record.metadata.number or card.identity.number,
                ),
                metadata=record.metadata.model_copy(),
                sources=[single],
            )
        )
    return restored


def unmerge_card(card: Card, group: Sequence[Card] = ()) -> UnmergeResult:
    """
    Split card and every other member of its merge group into single-source cards.

    Args:
        card: The merged card.
        group: Other cards sharing card.merge_group_id (card itself may be
            included; it is skipped).

    Returns:
        UnmergeResult. On success cards[0] keeps card's id and first source.
        Every group member keeps its id on its first source; further sources
        become new cards listed in split_from.
    """
    if not card.is_merged:
        logger.info("card_unmerge_skipped", card_id=card.id, reason="not_merged")
        return UnmergeResult(success=False, cards=[card], split_from={})

    members = [card, *(sibling for sibling in group if sibling.id != card.id)]

    restored: list[Card] = []
    split_from: dict[str, str] = {}
    for member in members:
        pieces = _split(member)
        restored.extend(pieces)
        for piece in pieces[1:]:
            split_from[piece.id] = member.id

    logger.info(
        "card_unmerged",
        card_id=card.id,
        merge_group_id=card.merge_group_id,
        member_count=len(members),
        restored_count=len(restored),
    )
    return UnmergeResult(success=True, cards=restored, split_from=split_from)
