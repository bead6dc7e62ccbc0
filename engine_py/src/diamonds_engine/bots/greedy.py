"""
Greedy bot implementation with basic heuristics.
"""

import logging
from typing import Optional

from .base import BaseBot, BotAction, pad_slots
from ..constants import PHASE_PICKING, PHASE_SLOTTING, SPECIAL_SHOTGUN, ZOMBIE_VALUE
from ..models import Card, GameState, Hand, StandardCard, StealTarget, is_special, is_zombie

logger = logging.getLogger(__name__)


class GreedyBot(BaseBot):
    """
    Greedy bot that plays its strongest cards.

    Strategy:
    - Lead with a zombie when holding one
    - Otherwise slot the highest standard card
    - Spend the five-slot deployment in the final round
    - Extract the most valuable card on offer
    """

    def choose_action(self, state: GameState, hand: Hand) -> Optional[BotAction]:
        if not self.is_acting_phase(state):
            return None
        if state.phase == PHASE_SLOTTING:
            return self._choose_slots(state, hand)
        if state.phase == PHASE_PICKING:
            return self._choose_pick(state)
        return None

    def _choose_slots(self, state: GameState, hand: Hand) -> Optional[BotAction]:
        if not hand.cards:
            return None

        ranked = sorted(hand.cards, key=self._card_strength, reverse=True)
        if self.is_final_round(state) and self.can_deploy_five(state) and len(ranked) > 1:
            logger.info(f"Bot {self.player_id} deploying five slots")
            return BotAction.commit(pad_slots(ranked))
        return BotAction.commit(pad_slots(ranked[:1]))

    def _choose_pick(self, state: GameState) -> Optional[BotAction]:
        offer = self.get_offer(state)
        if offer is None:
            return None
        if not offer.targets:
            return BotAction.skip()
        best = max(offer.targets, key=self._target_strength)
        return BotAction.pick(best.card.id)

    def _card_strength(self, card: Card) -> int:
        if is_zombie(card):
            return ZOMBIE_VALUE
        if isinstance(card, StandardCard):
            return card.value
        # shotgun protects against zombies, injection only helps beside one
        return 1 if is_special(card, SPECIAL_SHOTGUN) else 0

    def _target_strength(self, target: StealTarget) -> int:
        return self._card_strength(target.card)
