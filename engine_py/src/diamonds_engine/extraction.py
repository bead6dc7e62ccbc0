"""
Extraction: a sole battle winner may take one card from the losers' arrays.
"""

import logging
from typing import Dict, List, Optional

from .models import BattleResult, Card, Slots, StealOffer, StealTarget

logger = logging.getLogger(__name__)


def resolve_steals(results: List[BattleResult], slots_map: Dict[str, Slots]) -> List[StealOffer]:
    """
    Build the pending extraction offers for a round.

    Only results with exactly one winner and at least one loser produce an
    offer. Every card in each loser's committed array becomes a target tagged
    with its owner.

    Args:
        results: BattleResults for the round
        slots_map: player_id -> committed slot array

    Returns:
        One StealOffer per sole winner that has something to take
    """
    offers = []
    for result in results:
        if len(result.winners) != 1 or not result.losers:
            if len(result.winners) > 1:
                logger.info(f"Group {result.group_id} has tied winners, no extraction")
            continue

        picker_id = result.winners[0]
        targets = [
            StealTarget(owner_id=loser_id, card=card)
            for loser_id in result.losers
            for card in (slots_map.get(loser_id) or [])
            if card is not None
        ]
        if not targets:
            continue

        offers.append(StealOffer(picker_id=picker_id, targets=targets, can_skip=True))
        logger.info(f"Player {picker_id} may extract from {result.losers} ({len(targets)} targets)")
    return offers


def find_target(offer: StealOffer, card_id: str) -> Optional[StealTarget]:
    for target in offer.targets:
        if target.card.id == card_id:
            return target
    return None


def execute_steal(owner_hand: List[Card], picker_hand: List[Card],
                  card_id: str) -> Optional[tuple]:
    """
    Move a card between two hands.

    Returns:
        (new owner hand, new picker hand), or None when the owner no longer
        holds the card
    """
    stolen = next((card for card in owner_hand if card.id == card_id), None)
    if stolen is None:
        return None
    remaining = [card for card in owner_hand if card.id != card_id]
    return remaining, list(picker_hand) + [stolen]
