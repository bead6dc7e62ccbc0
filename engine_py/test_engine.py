#!/usr/bin/env python3
"""Simple smoke test to verify the Diamonds engine deals a session"""

import asyncio

from diamonds_engine.actions import start_session
from diamonds_engine.collaborators import Identity, InMemoryDirectory
from diamonds_engine.constants import PHASE_SLOTTING, ROLE_MASTER
from diamonds_engine.coordinator import PhaseCoordinator
from diamonds_engine.repository import SessionRepository
from diamonds_engine.store import InMemoryStore


async def deal_a_session():
    clock = [0.0]
    directory = InMemoryDirectory()
    master = directory.register("gm", Identity(player_id="gm", display_name="GM", role=ROLE_MASTER))
    for name in ("Alice", "Bob", "Charlie"):
        directory.register(name.lower(), Identity(player_id=name.lower(), display_name=name))

    repo = SessionRepository(InMemoryStore(), "smoke")
    coordinator = PhaseCoordinator(repo, registry=directory, clock=lambda: clock[0])
    await repo.ensure_state()
    await start_session(repo, master, now=clock[0])

    for _ in range(10):
        state = await repo.load_state()
        if state.phase == PHASE_SLOTTING:
            break
        clock[0] += 60
        await coordinator.tick()

    return await repo.load_state(), await repo.load_hands()


def test_basic_game():
    """Test that a session reaches slotting with dealt hands"""
    state, hands = asyncio.run(deal_a_session())

    assert state.phase == PHASE_SLOTTING
    assert [p.id for p in state.participants] == ["alice", "bob", "charlie"]
    assert all(len(hand.cards) == 7 for hand in hands.values())
    assert {p.group_id for p in state.participants} == {1}


if __name__ == "__main__":
    test_basic_game()
    print("Engine is working correctly.")
