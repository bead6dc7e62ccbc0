"""
Full-session simulation with greedy bots and several coordinators.
"""

import asyncio

import pytest
from diamonds_engine.actions import start_session
from diamonds_engine.bots.base import BotAction, perform
from diamonds_engine.bots.greedy import GreedyBot
from diamonds_engine.collaborators import Identity, InMemoryDirectory, InMemoryProfileStore
from diamonds_engine.constants import (
    PHASE_END, PHASE_PICKING, PHASE_SLOTTING, ROLE_MASTER, STATUS_ACTIVE,
)
from diamonds_engine.coordinator import PhaseCoordinator
from diamonds_engine.models import GameState, Hand, Player, RoundData, SpecialCard, StandardCard, StealOffer, StealTarget
from diamonds_engine.repository import SessionRepository
from diamonds_engine.rules import create_rules
from diamonds_engine.store import InMemoryStore

MASTER = Identity(player_id='gm', display_name='GM', role=ROLE_MASTER)


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_greedy_bot_leads_with_zombie():
    bot = GreedyBot('a')
    state = GameState(id='s', phase=PHASE_SLOTTING, round=1,
                      participants=[Player(id='a', display_name='A')])
    hand = Hand(player_id='a', cards=[
        StandardCard(id='k', rank='K', suit='clubs'),
        SpecialCard(id='zom_1', special_type='zombie'),
    ])

    action = bot.choose_action(state, hand)

    assert action.type == 'commit'
    assert action.data['card_ids'] == ['zom_1', None, None, None, None]


def test_greedy_bot_deploys_five_in_final_round():
    bot = GreedyBot('a', create_rules(max_rounds=3))
    state = GameState(id='s', phase=PHASE_SLOTTING, round=3,
                      participants=[Player(id='a', display_name='A')])
    cards = [StandardCard(id=f"c{i}", rank=str(i), suit='clubs') for i in range(2, 9)]

    action = bot.choose_action(state, Hand(player_id='a', cards=cards))

    assert action.data['card_ids'] == ['c8', 'c7', 'c6', 'c5', 'c4']


def test_greedy_bot_takes_best_target():
    low = StandardCard(id='low', rank='3', suit='clubs')
    high = StandardCard(id='high', rank='Q', suit='clubs')
    offer = StealOffer(picker_id='a', targets=[StealTarget('b', low), StealTarget('b', high)])
    state = GameState(id='s', phase=PHASE_PICKING, participants=[Player(id='a', display_name='A')],
                      round_data=RoundData(pending_steals=[offer]))

    action = GreedyBot('a').choose_action(state, Hand(player_id='a'))

    assert isinstance(action, BotAction)
    assert action.type == 'pick'
    assert action.data['card_id'] == 'high'


@pytest.mark.asyncio
@pytest.mark.parametrize("player_count", [2, 3, 5])
async def test_bots_play_a_full_session(player_count):
    store = InMemoryStore()
    clock = Clock()
    rules = create_rules()
    directory = InMemoryDirectory()
    profiles = InMemoryProfileStore()
    directory.register('gm-token', MASTER)
    for i in range(player_count):
        directory.register(f"token-{i}", Identity(player_id=f"bot{i}", display_name=f"Bot {i}", is_bot=True))

    coordinators = [
        PhaseCoordinator(SessionRepository(store, 'sim'), rules, registry=directory,
                         profiles=profiles, clock=clock)
        for _ in range(3)
    ]
    repo = SessionRepository(store, 'sim')
    await repo.ensure_state()
    assert (await start_session(repo, MASTER, now=clock.now)).success

    bots = [GreedyBot(f"bot{i}", rules) for i in range(player_count)]
    phases_seen = []

    for _ in range(200):
        state = await repo.load_state()
        if not phases_seen or phases_seen[-1] != (state.phase, state.round):
            phases_seen.append((state.phase, state.round))
        if state.phase == PHASE_END:
            break
        for bot in bots:
            await perform(repo, bot)
        committed = await asyncio.gather(*(c.tick() for c in coordinators))
        assert committed.count(True) <= 1
        if not any(committed):
            clock.now += 100

    final = await repo.load_state()
    assert final.phase == PHASE_END
    assert final.round <= rules.max_rounds
    assert len(final.participants) == player_count
    assert all(p.status != STATUS_ACTIVE for p in final.participants)
    assert set(profiles.scores) == {p.id for p in final.participants}
    assert ('slotting', 1) in phases_seen
    assert ('dealing', 1) in phases_seen
