"""
Tests for 1v1 and 1v1v1 battle resolution.
"""

import random

import pytest
from diamonds_engine.battle import Combatant, classify, evaluate_duel, evaluate_round, evaluate_three_way
from diamonds_engine.constants import (
    EFFECT_CURED, EFFECT_ELIMINATED, EFFECT_INFECTED, OUTCOME_CLASH,
    REASON_INJECTION, REASON_SHOTGUN, STATUS_ELIMINATED, ZOMBIE_VALUE,
)
from diamonds_engine.errors import CardFormatError
from diamonds_engine.models import Player, SpecialCard, StandardCard


def std(card_id, rank, suit='spades'):
    return StandardCard(id=card_id, rank=rank, suit=suit)


def zombie(card_id='zom_1'):
    return SpecialCard(id=card_id, special_type='zombie')


def injection(card_id='inj_1'):
    return SpecialCard(id=card_id, special_type='injection')


def shotgun(card_id='sho_1'):
    return SpecialCard(id=card_id, special_type='shotgun')


def fighter(player_id, *cards, hand=None):
    slots = list(cards) + [None] * (5 - len(cards))
    held = [c for c in cards if c is not None] if hand is None else hand
    return Combatant(player_id=player_id, slots=slots, hand=held)


def effects_of(result, effect_type, player_id=None):
    return [
        e for e in result.effects
        if e.type == effect_type and (player_id is None or e.player_id == player_id)
    ]


def test_higher_total_wins():
    result = evaluate_duel(fighter('a', std('a1', 'K')), fighter('b', std('b1', '5')), random.Random(1))
    assert result.winners == ['a']
    assert result.losers == ['b']
    assert result.totals == {'a': 13, 'b': 5}


def test_tie_means_both_lose():
    result = evaluate_duel(fighter('a', std('a1', '9')), fighter('b', std('b1', '9', 'hearts')), random.Random(1))
    assert result.winners == []
    assert set(result.losers) == {'a', 'b'}


def test_zombie_beats_standard_and_infects():
    result = evaluate_duel(fighter('a', zombie()), fighter('b', std('b1', 'A')), random.Random(1))
    assert result.totals['a'] == ZOMBIE_VALUE
    assert result.totals['b'] == 0
    assert result.winners == ['a']
    infected = effects_of(result, EFFECT_INFECTED)
    assert [e.player_id for e in infected] == ['b']


def test_zombie_against_empty_slot_scores_without_infection():
    result = evaluate_duel(fighter('a', zombie()), fighter('b', None, std('b1', '4')), random.Random(1))
    assert result.totals == {'a': ZOMBIE_VALUE, 'b': 4}
    assert effects_of(result, EFFECT_INFECTED) == []


def test_zombie_clash_scores_nothing():
    result = evaluate_duel(fighter('a', zombie('z1')), fighter('b', zombie('z2')), random.Random(1))
    assert result.totals == {'a': 0, 'b': 0}
    assert result.slot_details[0].outcome == OUTCOME_CLASH
    assert effects_of(result, EFFECT_INFECTED) == []


def test_injection_cures_zombie_in_same_slot():
    """p1 [10, zombie] vs p2 [K, injection]: the cured value is summed with the 10."""
    p1 = fighter('p1', std('p1_10', '10', 'hearts'), zombie())
    p2 = fighter('p2', std('p2_k', 'K', 'diamonds'), injection())

    result = evaluate_duel(p1, p2, random.Random(7))

    cured = effects_of(result, EFFECT_CURED, 'p1')
    assert len(cured) == 1
    assert cured[0].reason == REASON_INJECTION
    assert cured[0].card_id == 'zom_1'
    assert cured[0].slot_index == 1
    assert 2 <= cured[0].new_value <= 9

    assert result.slot_details[1].values == {'p1': cured[0].new_value, 'p2': 0}
    assert result.totals['p1'] == 10 + cured[0].new_value
    assert result.totals['p2'] == 13
    expected_winner = 'p1' if result.totals['p1'] > 13 else 'p2'
    if result.totals['p1'] == 13:
        assert result.winners == []
    else:
        assert result.winners == [expected_winner]


def test_shotgun_neutralizes_zombies_in_slots_and_hand():
    held_zombie = zombie('z_hand')
    p1 = fighter('p1', shotgun())
    p2 = fighter('p2', std('p2_q', 'Q'), hand=[std('p2_q', 'Q'), held_zombie])

    result = evaluate_duel(p1, p2, random.Random(3))

    cured = effects_of(result, EFFECT_CURED, 'p2')
    assert len(cured) == 1
    assert cured[0].reason == REASON_SHOTGUN
    assert cured[0].card_id == 'z_hand'
    assert cured[0].slot_index is None
    assert result.totals == {'p1': 0, 'p2': 12}


def test_neutralized_zombie_never_infects():
    p1 = fighter('p1', std('p1_2', '2'), shotgun())
    p2 = fighter('p2', zombie(), std('p2_3', '3'))

    result = evaluate_duel(p1, p2, random.Random(11))

    assert effects_of(result, EFFECT_INFECTED) == []
    neutral_value = effects_of(result, EFFECT_CURED, 'p2')[0].new_value
    assert result.slot_details[0].values == {'p1': 2, 'p2': neutral_value}
    assert ZOMBIE_VALUE not in result.totals.values()


def test_shotgun_elimination_variant():
    p1 = fighter('p1', shotgun())
    p2 = fighter('p2', std('p2_a', 'A'), hand=[std('p2_a', 'A'), zombie()])

    result = evaluate_duel(p1, p2, random.Random(1), shotgun_eliminates=True)

    assert result.eliminated == ['p2']
    assert result.winners == ['p1']
    assert result.losers == ['p2']
    assert all(v == 0 for d in result.slot_details for v in d.values.values())
    assert [e.player_id for e in effects_of(result, EFFECT_ELIMINATED)] == ['p2']


def test_three_way_cure_credits_injection_owner():
    a = fighter('a', zombie())
    b = fighter('b', injection())
    c = fighter('c', std('c_8', '8'))

    result = evaluate_three_way(a, b, c, random.Random(5))

    cured = effects_of(result, EFFECT_CURED, 'a')[0]
    assert result.slot_details[0].values == {'a': cured.new_value, 'b': 0, 'c': 8}
    assert 'b' in result.winners
    assert effects_of(result, EFFECT_INFECTED) == []
    assert set(result.winners) | set(result.losers) == {'a', 'b', 'c'}


def test_three_way_single_zombie_infects_every_standard():
    a = fighter('a', zombie())
    b = fighter('b', std('b_k', 'K'))
    c = fighter('c', std('c_q', 'Q'))

    result = evaluate_three_way(a, b, c, random.Random(5))

    assert result.slot_details[0].values == {'a': ZOMBIE_VALUE, 'b': 0, 'c': 0}
    assert sorted(e.player_id for e in effects_of(result, EFFECT_INFECTED)) == ['b', 'c']
    assert result.winners == ['a']
    assert result.losers == ['b', 'c']


def test_three_way_zombie_clash_infects_standard():
    a = fighter('a', zombie('z1'))
    b = fighter('b', zombie('z2'))
    c = fighter('c', std('c_9', '9'), std('c_2', '2'))

    result = evaluate_three_way(a, b, c, random.Random(5))

    assert result.slot_details[0].values == {'a': 0, 'b': 0, 'c': 0}
    assert result.slot_details[0].outcome == OUTCOME_CLASH
    assert [e.player_id for e in effects_of(result, EFFECT_INFECTED)] == ['c']
    assert result.winners == ['c']


def test_three_way_tied_leaders_all_win():
    a = fighter('a', std('a_7', '7'))
    b = fighter('b', std('b_7', '7', 'hearts'))
    c = fighter('c', std('c_3', '3'))

    result = evaluate_three_way(a, b, c, random.Random(5))
    assert result.winners == ['a', 'b']
    assert result.losers == ['c']


def test_evaluation_is_deterministic_for_a_seed():
    def build():
        return (
            fighter('p1', std('p1_10', '10'), zombie()),
            fighter('p2', std('p2_k', 'K'), injection()),
        )

    first = evaluate_duel(*build(), rng=random.Random(42))
    second = evaluate_duel(*build(), rng=random.Random(42))
    assert first == second


def test_evaluate_round_groups_players_and_skips_solo():
    players = [
        Player(id='a', display_name='A', group_id=1),
        Player(id='b', display_name='B', group_id=1),
        Player(id='c', display_name='C', group_id=2),
        Player(id='d', display_name='D', group_id=1, status=STATUS_ELIMINATED),
    ]
    slots = {
        'a': [std('a1', '5')] + [None] * 4,
        'b': [std('b1', '6')] + [None] * 4,
        'c': [std('c1', 'A')] + [None] * 4,
    }
    hands = {pid: [s[0]] for pid, s in slots.items()}

    results = evaluate_round(players, slots, hands, random.Random(1))

    assert len(results) == 1
    assert results[0].group_id == 1
    assert results[0].players == ['a', 'b']
    assert results[0].winners == ['b']


def test_unknown_card_shape_is_rejected():
    with pytest.raises(CardFormatError):
        classify(SpecialCard(id='x', special_type='laser'), {})
    with pytest.raises(CardFormatError):
        classify({'id': 'raw'}, {})
