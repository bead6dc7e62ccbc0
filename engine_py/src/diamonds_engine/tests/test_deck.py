"""
Tests for deck generation, weighted shuffling, dealing and grouping.
"""

import random
from collections import Counter

import pytest
from diamonds_engine.constants import KIND_SPECIAL, STATUS_ELIMINATED
from diamonds_engine.grouping import assign_groups, partition
from diamonds_engine.models import Player
from diamonds_engine.shuffle import (
    create_special_cards, create_standard_cards, deal_hands, generate_deck,
    mint_standard_card, weighted_shuffle,
)


@pytest.mark.parametrize("player_count", [1, 2, 3, 5, 8, 10])
def test_deck_size_and_special_allotment(player_count):
    deck = generate_deck(player_count, rng=random.Random(player_count))

    assert len(deck) == 7 * player_count
    specials = Counter(c.special_type for c in deck if c.kind == KIND_SPECIAL)
    assert specials == {'zombie': 1, 'injection': 2, 'shotgun': 2}
    assert len({c.id for c in deck}) == len(deck)


def test_specials_land_in_the_first_deal():
    for seed in range(20):
        deck = generate_deck(4, rng=random.Random(seed))
        first_deal = deck[:4 * 7]
        assert sum(1 for c in first_deal if c.kind == KIND_SPECIAL) == 5


def test_weighted_shuffle_keeps_every_card():
    deck = create_special_cards() + create_standard_cards(30)
    shuffled = weighted_shuffle(deck, 2, 7, random.Random(9))
    assert sorted(c.id for c in shuffled) == sorted(c.id for c in deck)
    assert all(c.kind == KIND_SPECIAL or c.id.startswith('std_') for c in shuffled)


def test_standard_cards_wrap_into_extra_decks():
    cards = create_standard_cards(60)
    assert len({c.id for c in cards}) == 60
    assert cards[52].id.startswith('std_1_')


def test_generation_is_deterministic_for_a_seed():
    first = generate_deck(3, rng=random.Random(123))
    second = generate_deck(3, rng=random.Random(123))
    assert [c.id for c in first] == [c.id for c in second]


def test_deal_hands_slices_from_the_front():
    players = [
        Player(id='a', display_name='A'),
        Player(id='b', display_name='B', status=STATUS_ELIMINATED),
        Player(id='c', display_name='C'),
    ]
    deck = generate_deck(2, rng=random.Random(4))

    hands, remaining = deal_hands(deck, players, 7)

    assert set(hands) == {'a', 'c'}
    assert hands['a'] == deck[:7]
    assert hands['c'] == deck[7:14]
    assert remaining == []


def test_minted_card_values():
    rng = random.Random(1)
    card = mint_standard_card(9, rng)
    assert card.value == 9
    assert card.suit == 'hearts'
    assert mint_standard_card(14, rng).rank == 'A'


@pytest.mark.parametrize("count,sizes", [
    (1, [1]),
    (2, [2]),
    (3, [3]),
    (4, [2, 2]),
    (5, [2, 3]),
    (7, [2, 2, 3]),
])
def test_partition_sizes(count, sizes):
    groups = partition([f"p{i}" for i in range(count)])
    assert [len(g) for g in groups] == sizes


def test_assign_groups_skips_inactive_players():
    players = [Player(id=f"p{i}", display_name=f"P{i}", group_id=9) for i in range(5)]
    players[2].status = STATUS_ELIMINATED

    group_map = assign_groups(players, random.Random(2))

    assert 'p2' not in group_map
    assert players[2].group_id is None
    assert sorted(Counter(group_map.values()).values()) == [2, 2]
    assert min(group_map.values()) == 1
