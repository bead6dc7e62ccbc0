"""
Base bot interface and utilities.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..actions import ActionResult, commit_slots, pick_card, skip_pick
from ..constants import PHASE_PICKING, PHASE_SLOTTING
from ..models import Card, GameState, Hand, Player, StealOffer
from ..repository import SessionRepository
from ..rules import RuleConfig, default_rules


class BotAction:
    """Represents a bot action."""

    def __init__(self, action_type: str, **kwargs):
        self.type = action_type
        self.data = kwargs

    @classmethod
    def commit(cls, card_ids: List[Optional[str]]) -> 'BotAction':
        """Create a slot commit action."""
        return cls('commit', card_ids=card_ids)

    @classmethod
    def pick(cls, card_id: str) -> 'BotAction':
        """Create an extraction pick action."""
        return cls('pick', card_id=card_id)

    @classmethod
    def skip(cls) -> 'BotAction':
        """Create an extraction skip action."""
        return cls('skip')


class BaseBot(ABC):
    """Abstract base class for bot players."""

    def __init__(self, player_id: str, rules: Optional[RuleConfig] = None):
        self.player_id = player_id
        self.rules = rules or default_rules

    @abstractmethod
    def choose_action(self, state: GameState, hand: Hand) -> Optional[BotAction]:
        """
        Choose an action based on the current game state.

        Args:
            state: Current game state
            hand: This bot's hand

        Returns:
            BotAction to take, or None if no action needed
        """
        pass

    def get_player(self, state: GameState) -> Optional[Player]:
        return state.get_player(self.player_id)

    def get_offer(self, state: GameState) -> Optional[StealOffer]:
        return state.round_data.offer_for(self.player_id)

    def is_final_round(self, state: GameState) -> bool:
        return state.round >= self.rules.max_rounds

    def can_deploy_five(self, state: GameState) -> bool:
        """Check if the five-slot deployment is still unspent."""
        player = self.get_player(state)
        return player is not None and player.five_slot_round is None

    def is_acting_phase(self, state: GameState) -> bool:
        player = self.get_player(state)
        return (
            player is not None and
            player.is_active and
            state.phase in (PHASE_SLOTTING, PHASE_PICKING)
        )


def pad_slots(cards: List[Card], size: int = 5) -> List[Optional[str]]:
    """Card ids laid out left to right, padded with empty slots."""
    ids: List[Optional[str]] = [card.id for card in cards[:size]]
    return ids + [None] * (size - len(ids))


async def perform(repo: SessionRepository, bot: BaseBot) -> Optional[ActionResult]:
    """Let a bot act on the current state, if it has anything to do."""
    state = await repo.load_state()
    if state is None or not bot.is_acting_phase(state):
        return None

    if state.phase == PHASE_SLOTTING:
        existing = await repo.load_slot(bot.player_id, state.round)
        if existing and existing.locked:
            return None
    elif state.phase == PHASE_PICKING:
        picks = await repo.load_picks(state.round)
        if any(p["player_id"] == bot.player_id for p in picks):
            return None

    hand = await repo.load_hand(bot.player_id)
    action = bot.choose_action(state, hand)
    if action is None:
        return None

    if action.type == 'commit':
        return await commit_slots(repo, bot.player_id, action.data['card_ids'])
    if action.type == 'pick':
        return await pick_card(repo, bot.player_id, action.data['card_id'])
    if action.type == 'skip':
        return await skip_pick(repo, bot.player_id)
    return ActionResult.error('INVALID_ACTION', f"Unknown bot action: {action.type}")
