"""
Tests for player and admin actions against the in-memory store.
"""

import random

import pytest
from diamonds_engine.actions import (
    commit_slots, heal_slots, pause, pick_card, refresh_hand, resume,
    save_draft, skip_pick, start_session, stop_session, use_detector,
)
from diamonds_engine.collaborators import Identity
from diamonds_engine.constants import (
    ERROR_ALREADY_LOCKED, ERROR_ALREADY_PICKED, ERROR_CARD_UNAVAILABLE,
    ERROR_INVALID_SLOTS, ERROR_NO_OFFER, ERROR_NO_STANDARD_CARDS,
    ERROR_NOT_ACTIVE, ERROR_NOT_AUTHORIZED, ERROR_NOT_PARTICIPANT,
    ERROR_OWNERSHIP, ERROR_POWER_USED, ERROR_STORE, ERROR_WRONG_PHASE,
    PHASE_EVALUATION, PHASE_IDLE, PHASE_PICKING, PHASE_SLOTTING,
    ROLE_MASTER, STATUS_ELIMINATED,
)
from diamonds_engine.models import (
    GameState, Hand, Player, RoundData, SpecialCard, StandardCard, StealOffer,
    StealTarget,
)
from diamonds_engine.repository import SessionRepository
from diamonds_engine.store import InMemoryStore

ACE = StandardCard(id='ace', rank='A', suit='spades')
FIVE = StandardCard(id='five', rank='5', suit='clubs')
KING = StandardCard(id='king', rank='K', suit='hearts')
ZOMBIE = SpecialCard(id='zom_1', special_type='zombie')
SHOTGUN = SpecialCard(id='sho_1', special_type='shotgun')

MASTER = Identity(player_id='gm', display_name='Game Master', role=ROLE_MASTER)
ALICE = Identity(player_id='alice', display_name='Alice')


@pytest.fixture
def repo():
    return SessionRepository(InMemoryStore(), 'test-session')


async def seat(repo, phase=PHASE_SLOTTING, round_number=1, hands=None, round_data=None, now=1000.0):
    participants = [
        Player(id='alice', display_name='Alice', score=1000),
        Player(id='bob', display_name='Bob', score=1000),
        Player(id='carol', display_name='Carol', score=1000, status=STATUS_ELIMINATED),
    ]
    state = GameState(
        id=repo.session_id,
        phase=phase,
        round=round_number,
        participants=participants,
        round_data=round_data or RoundData(),
        phase_started_at=now,
        phase_duration=80,
    )
    await repo.store.create_state(state)
    hands = hands if hands is not None else {'alice': [ACE, FIVE, ZOMBIE], 'bob': [KING, SHOTGUN]}
    for player_id, cards in hands.items():
        await repo.put_hand(Hand(player_id=player_id, cards=cards))
    return state


def slots(*card_ids):
    return list(card_ids) + [None] * (5 - len(card_ids))


@pytest.mark.asyncio
async def test_commit_locks_single_card(repo):
    await seat(repo)

    result = await commit_slots(repo, 'alice', slots('ace'))

    assert result.success
    stored = await repo.load_slot('alice', 1)
    assert stored.locked
    assert stored.slots[0] == ACE
    assert (await repo.load_power('alice')).five_slot_round is None


@pytest.mark.asyncio
@pytest.mark.parametrize("card_ids,code", [
    (slots(), ERROR_INVALID_SLOTS),
    (['ace', None, None], ERROR_INVALID_SLOTS),
    (slots('ace', 'ace'), ERROR_INVALID_SLOTS),
    (slots('king'), ERROR_OWNERSHIP),
])
async def test_commit_rejects_bad_arrays(repo, card_ids, code):
    await seat(repo)
    result = await commit_slots(repo, 'alice', card_ids)
    assert not result.success
    assert result.error_code == code


@pytest.mark.asyncio
async def test_commit_checks_phase_and_membership(repo):
    await seat(repo, phase=PHASE_EVALUATION)
    assert (await commit_slots(repo, 'alice', slots('ace'))).error_code == ERROR_WRONG_PHASE


@pytest.mark.asyncio
async def test_commit_rejects_outsiders_and_eliminated(repo):
    await seat(repo)
    assert (await commit_slots(repo, 'mallory', slots('ace'))).error_code == ERROR_NOT_PARTICIPANT
    assert (await commit_slots(repo, 'carol', slots('ace'))).error_code == ERROR_NOT_ACTIVE


@pytest.mark.asyncio
async def test_commit_only_once_per_round(repo):
    await seat(repo)
    assert (await commit_slots(repo, 'alice', slots('ace'))).success
    result = await commit_slots(repo, 'alice', slots('five'))
    assert result.error_code == ERROR_ALREADY_LOCKED
    assert (await save_draft(repo, 'alice', slots('five'))).error_code == ERROR_ALREADY_LOCKED


@pytest.mark.asyncio
async def test_five_slot_deployment_is_spent_once(repo):
    await seat(repo)
    result = await commit_slots(repo, 'alice', slots('ace', 'five', 'zom_1'))
    assert result.success
    assert (await repo.load_power('alice')).five_slot_round == 1

    await repo.update_state_if_version((await repo.load_state()).version, round=2)
    result = await commit_slots(repo, 'alice', slots('ace', 'five'))
    assert result.error_code == ERROR_POWER_USED


@pytest.mark.asyncio
async def test_draft_is_saved_unlocked(repo):
    await seat(repo)
    result = await save_draft(repo, 'alice', slots(None, 'five', 'ace'))
    assert result.success
    stored = await repo.load_slot('alice', 1)
    assert not stored.locked
    assert stored.slots[1] == FIVE

    assert (await commit_slots(repo, 'alice', slots('five'))).success


@pytest.mark.asyncio
async def test_refresh_replaces_standards_and_keeps_specials(repo):
    await seat(repo)
    await save_draft(repo, 'alice', slots('ace'))

    result = await refresh_hand(repo, 'alice', random.Random(3))

    assert result.success
    hand = await repo.load_hand('alice')
    assert len(hand.cards) == 3
    assert ZOMBIE in hand.cards
    assert 'ace' not in hand.card_ids()
    assert 'five' not in hand.card_ids()
    assert (await repo.load_slot('alice', 1)).filled_count() == 0
    assert (await repo.load_power('alice')).used_refresh

    again = await refresh_hand(repo, 'alice')
    assert again.error_code == ERROR_POWER_USED


@pytest.mark.asyncio
async def test_refresh_needs_a_standard_card(repo):
    await seat(repo, hands={'alice': [ZOMBIE], 'bob': [KING]})
    result = await refresh_hand(repo, 'alice')
    assert result.error_code == ERROR_NO_STANDARD_CARDS


@pytest.mark.asyncio
async def test_detector_reports_hand_sizes_once(repo):
    await seat(repo)

    result = await use_detector(repo, 'bob')

    assert result.success
    assert result.data['hand_sizes'] == {'alice': 3, 'bob': 2, 'carol': 0}
    assert (await use_detector(repo, 'bob')).error_code == ERROR_POWER_USED


def picking_round():
    offer = StealOffer(picker_id='bob', targets=[StealTarget(owner_id='alice', card=ACE)])
    return RoundData(pending_steals=[offer])


@pytest.mark.asyncio
async def test_pick_moves_card_between_hands(repo):
    await seat(repo, phase=PHASE_PICKING, round_data=picking_round())

    result = await pick_card(repo, 'bob', 'ace')

    assert result.success
    assert 'ace' not in (await repo.load_hand('alice')).card_ids()
    assert 'ace' in (await repo.load_hand('bob')).card_ids()
    assert (await pick_card(repo, 'bob', 'ace')).error_code == ERROR_CARD_UNAVAILABLE


@pytest.mark.asyncio
async def test_only_one_pick_per_round(repo):
    await seat(repo, phase=PHASE_PICKING, round_data=picking_round())
    assert (await skip_pick(repo, 'bob')).success
    assert (await pick_card(repo, 'bob', 'ace')).error_code == ERROR_ALREADY_PICKED
    assert 'ace' in (await repo.load_hand('alice')).card_ids()


@pytest.mark.asyncio
async def test_pick_requires_an_offer(repo):
    await seat(repo, phase=PHASE_PICKING, round_data=picking_round())
    assert (await skip_pick(repo, 'alice')).error_code == ERROR_NO_OFFER
    assert (await pick_card(repo, 'bob', 'five')).error_code == ERROR_CARD_UNAVAILABLE


@pytest.mark.asyncio
async def test_admin_actions_require_master(repo):
    await seat(repo, phase=PHASE_IDLE)
    result = await start_session(repo, ALICE)
    assert result.error_code == ERROR_NOT_AUTHORIZED


@pytest.mark.asyncio
async def test_start_arms_idle_session(repo):
    await seat(repo, phase=PHASE_IDLE)
    assert (await start_session(repo, MASTER)).success
    assert (await repo.load_state()).system_start


@pytest.mark.asyncio
async def test_pause_and_resume_preserve_elapsed_time(repo):
    await seat(repo, now=1000.0)

    assert (await pause(repo, MASTER, now=1030.0)).success
    paused = await repo.load_state()
    assert paused.is_paused
    assert paused.time_remaining(5000.0) == 50.0

    assert (await resume(repo, MASTER, now=2000.0)).success
    resumed = await repo.load_state()
    assert not resumed.is_paused
    assert resumed.phase_started_at == 1970.0
    assert resumed.time_remaining(2000.0) == 50.0


@pytest.mark.asyncio
async def test_stop_resets_to_idle_and_bumps_version(repo):
    state = await seat(repo)
    assert (await stop_session(repo, MASTER)).success

    reset = await repo.load_state()
    assert reset.phase == PHASE_IDLE
    assert reset.round == 1
    assert not reset.system_start
    assert reset.version > state.version


@pytest.mark.asyncio
async def test_store_failures_surface_as_errors(repo):
    await seat(repo)
    repo.store.fail_next = 1
    result = await commit_slots(repo, 'alice', slots('ace'))
    assert result.error_code == ERROR_STORE


def test_heal_slots_clears_cards_not_in_hand():
    healed, cleared = heal_slots([ACE, None, KING, None, None], [ACE, FIVE])
    assert healed == [ACE, None, None, None, None]
    assert cleared == [2]
