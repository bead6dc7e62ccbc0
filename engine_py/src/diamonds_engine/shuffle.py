"""
Deck generation, weighted shuffling and hand dealing.
"""

import logging
import random
from typing import Dict, List, Optional, Tuple

from .constants import (
    CURED_SUIT, KIND_SPECIAL, RANKS, SPECIAL_DECK, SPECIAL_ZOMBIE, SUITS,
)
from .models import Card, Player, SpecialCard, StandardCard

logger = logging.getLogger(__name__)

HAND_SIZE = 7


def _mint_id(prefix: str, rng: random.Random) -> str:
    return f"{prefix}_{rng.getrandbits(48):012x}"


def mint_standard_card(value: int, rng: random.Random, prefix: str = 'trans',
                       suit: str = CURED_SUIT) -> StandardCard:
    """Create a fresh standard card for a numeric value (2-14)."""
    rank = RANKS[value - 2]
    return StandardCard(id=_mint_id(prefix, rng), rank=rank, suit=suit)


def mint_zombie_card(rng: random.Random) -> SpecialCard:
    """Create a single-use zombie card granted by infection."""
    return SpecialCard(id=_mint_id('spread_zom', rng), special_type=SPECIAL_ZOMBIE, uses_remaining=1)


def create_special_cards() -> List[SpecialCard]:
    """The fixed special allotment: 1 zombie, 2 injections, 2 shotguns."""
    counters: Dict[str, int] = {}
    specials = []
    for special_type in SPECIAL_DECK:
        counters[special_type] = counters.get(special_type, 0) + 1
        specials.append(SpecialCard(
            id=f"{special_type[:3]}_{counters[special_type]}",
            special_type=special_type,
            uses_remaining=1,
        ))
    return specials


def create_standard_cards(count: int) -> List[StandardCard]:
    """
    Create `count` unique standard cards by cycling ranks within suits.

    Wraps into additional virtual decks when more than 52 are needed; the deck
    cycle is part of the card id so ids stay unique.
    """
    cards = []
    per_deck = len(SUITS) * len(RANKS)
    for i in range(count):
        cycle, offset = divmod(i, per_deck)
        suit = SUITS[offset // len(RANKS)]
        rank = RANKS[offset % len(RANKS)]
        cards.append(StandardCard(id=f"std_{cycle}_{rank}_{suit}", rank=rank, suit=suit))
    return cards


def shuffle_deck(deck: List[Card], rng: Optional[random.Random] = None) -> List[Card]:
    """
    Shuffle a copy of the deck.

    Args:
        deck: Cards to shuffle
        rng: Optional seeded generator for deterministic shuffling

    Returns:
        Shuffled copy of the deck
    """
    deck_copy = list(deck)
    (rng or random).shuffle(deck_copy)
    return deck_copy


def weighted_shuffle(deck: List[Card], player_count: int, hand_size: int = HAND_SIZE,
                     rng: Optional[random.Random] = None) -> List[Card]:
    """
    Shuffle so that every special card lands inside the round 1 deal.

    Specials and standards are shuffled independently, the first
    `max(2, player_count) * hand_size - len(specials)` standards are combined
    with all specials and shuffled again, and the remaining standards follow.
    """
    specials = [c for c in deck if c.kind == KIND_SPECIAL]
    standards = [c for c in deck if c.kind != KIND_SPECIAL]

    shuffled_specials = shuffle_deck(specials, rng)
    shuffled_standards = shuffle_deck(standards, rng)

    threshold = max(2, player_count) * hand_size
    reserved = max(0, threshold - len(specials))
    round_one_pool = shuffle_deck(shuffled_standards[:reserved] + shuffled_specials, rng)

    return round_one_pool + shuffled_standards[reserved:]


def generate_deck(player_count: int, hand_size: int = HAND_SIZE,
                  rng: Optional[random.Random] = None) -> List[Card]:
    """
    Build the session pool for `player_count` players.

    Args:
        player_count: Number of active players
        hand_size: Cards each player receives for the whole session
        rng: Optional seeded generator

    Returns:
        Flat ordered pool, consumed front-to-back by deal_hands
    """
    specials = create_special_cards()
    total_needed = max(player_count, 1) * hand_size
    standards = create_standard_cards(max(0, total_needed - len(specials)))

    logger.info(
        f"Generating pool for {player_count} players: {len(specials)} specials, "
        f"{len(standards)} standard, {len(specials) + len(standards)} total"
    )
    return weighted_shuffle(specials + standards, player_count, hand_size, rng)


def deal_hands(deck: List[Card], players: List[Player],
               hand_size: int = HAND_SIZE) -> Tuple[Dict[str, List[Card]], List[Card]]:
    """
    Deal `hand_size` cards to each active player off the front of the pool.

    Args:
        deck: Pool produced by generate_deck
        players: Session participants; inactive players are skipped

    Returns:
        Tuple of (player_id -> dealt cards, remaining pool)
    """
    remaining = list(deck)
    hands: Dict[str, List[Card]] = {}

    for player in players:
        if not player.is_active:
            continue
        hands[player.id] = remaining[:hand_size]
        remaining = remaining[hand_size:]
        if len(hands[player.id]) < hand_size:
            logger.warning(f"Pool ran short dealing to {player.id}: got {len(hands[player.id])} cards")

    logger.info(f"Dealt {len(hands)} hands, {len(remaining)} cards left in pool")
    return hands, remaining


def random_standard_card(rng: random.Random, prefix: str = 'ref') -> StandardCard:
    """Draw a random standard card (any rank, any suit)."""
    value = rng.randint(2, 14)
    return mint_standard_card(value, rng, prefix=prefix, suit=rng.choice(SUITS))
