"""
Session-scoped access to the shared store.

Hands, slot arrays, power usage and picks are separate rows from the game
state so self-directed player writes never contend with phase transitions.
"""

import logging
import time
from typing import Dict, List, Optional

from .constants import (
    TABLE_EVALUATIONS, TABLE_HANDS, TABLE_PICKS, TABLE_POWERS, TABLE_SLOTS,
)
from .models import EvaluationRecord, GameState, Hand, PowerUsage, SlotAssignment
from .store import InMemoryStore

logger = logging.getLogger(__name__)


def slot_key(player_id: str, round_number: int) -> str:
    return f"{round_number}:{player_id}"


class SessionRepository:
    """Typed reads and writes for one session."""

    def __init__(self, store: InMemoryStore, session_id: str):
        self.store = store
        self.session_id = session_id

    # Game state

    async def load_state(self) -> Optional[GameState]:
        return await self.store.get_state(self.session_id)

    async def ensure_state(self) -> GameState:
        """Load the session state, creating an idle row on first use."""
        state = await self.load_state()
        if state is None:
            await self.store.create_state(GameState(id=self.session_id))
            state = await self.load_state()
        return state

    async def claim_transition(self, observed: GameState, client_id: str,
                               now: Optional[float] = None) -> bool:
        """
        Try to win the election for the observed (phase, round, version).

        Exactly one concurrent caller with the same observation gets a row.
        """
        claim = {
            "client": client_id,
            "phase": observed.phase,
            "round": observed.round,
            "at": now if now is not None else time.time(),
        }
        affected = await self.store.update_state(
            self.session_id,
            {"version": observed.version + 1, "transition_claim": claim},
            expect={"phase": observed.phase, "round": observed.round, "version": observed.version},
        )
        return affected == 1

    async def commit_transition(self, new_state: GameState, claimed_version: int) -> bool:
        """Write the post-transition state if nobody superseded the claim."""
        new_state.version = claimed_version + 1
        new_state.transition_claim = None
        affected = await self.store.replace_state(new_state, expect={"version": claimed_version})
        return affected == 1

    async def update_state_if_version(self, version: int, **changes) -> bool:
        """Apply changes and bump the version, guarded on the observed version."""
        changes["version"] = version + 1
        affected = await self.store.update_state(self.session_id, changes, expect={"version": version})
        return affected == 1

    async def nudge_phase_start(self, observed_start: float, new_start: float) -> bool:
        affected = await self.store.update_state(
            self.session_id,
            {"phase_started_at": new_start},
            expect={"phase_started_at": observed_start, "is_paused": True},
        )
        return affected == 1

    # Hands

    async def load_hands(self) -> Dict[str, Hand]:
        return await self.store.list_rows(self.session_id, TABLE_HANDS)

    async def load_hand(self, player_id: str) -> Hand:
        hand = await self.store.get_row(self.session_id, TABLE_HANDS, player_id)
        return hand or Hand(player_id=player_id)

    async def save_hand(self, hand: Hand) -> bool:
        """Compare-and-swap on the hand version; bumps it on success."""
        expected = hand.version
        hand.version = expected + 1
        affected = await self.store.update_row(self.session_id, TABLE_HANDS, hand.player_id, hand, expected)
        if not affected:
            hand.version = expected
            logger.debug(f"Hand write for {hand.player_id} lost a race at version {expected}")
        return affected == 1

    async def put_hand(self, hand: Hand):
        await self.store.put_row(self.session_id, TABLE_HANDS, hand.player_id, hand)

    # Slot arrays

    async def load_slots(self, round_number: int) -> Dict[str, SlotAssignment]:
        rows = await self.store.list_rows(self.session_id, TABLE_SLOTS)
        return {a.player_id: a for a in rows.values() if a.round == round_number}

    async def load_slot(self, player_id: str, round_number: int) -> Optional[SlotAssignment]:
        return await self.store.get_row(self.session_id, TABLE_SLOTS, slot_key(player_id, round_number))

    async def save_slot(self, assignment: SlotAssignment):
        key = slot_key(assignment.player_id, assignment.round)
        await self.store.put_row(self.session_id, TABLE_SLOTS, key, assignment)

    async def purge_slots_before(self, round_number: int) -> int:
        rows = await self.store.list_rows(self.session_id, TABLE_SLOTS)
        stale = [key for key, a in rows.items() if a.round < round_number]
        if not stale:
            return 0
        return await self.store.delete_rows(self.session_id, TABLE_SLOTS, stale)

    # Powers

    async def load_powers(self) -> Dict[str, PowerUsage]:
        return await self.store.list_rows(self.session_id, TABLE_POWERS)

    async def load_power(self, player_id: str) -> PowerUsage:
        power = await self.store.get_row(self.session_id, TABLE_POWERS, player_id)
        return power or PowerUsage(player_id=player_id)

    async def save_power(self, power: PowerUsage):
        await self.store.put_row(self.session_id, TABLE_POWERS, power.player_id, power)

    # Picks

    async def claim_pick(self, player_id: str, round_number: int, card_id: Optional[str]) -> bool:
        """Record the one pick per player per round. False if already made."""
        return await self.store.insert_row(
            self.session_id, TABLE_PICKS, slot_key(player_id, round_number),
            {"player_id": player_id, "round": round_number, "card_id": card_id},
        )

    async def load_picks(self, round_number: int) -> List[dict]:
        rows = await self.store.list_rows(self.session_id, TABLE_PICKS)
        return [row for row in rows.values() if row["round"] == round_number]

    # Evaluations

    async def load_evaluation(self, round_number: int) -> Optional[EvaluationRecord]:
        return await self.store.get_row(self.session_id, TABLE_EVALUATIONS, str(round_number))

    async def insert_evaluation(self, record: EvaluationRecord) -> bool:
        """Store the round outcome unless one is already recorded."""
        return await self.store.insert_row(self.session_id, TABLE_EVALUATIONS, str(record.round), record)

    async def purge_session_rows(self):
        """Clear hands, slots, powers, picks and evaluations for a fresh session."""
        for table in (TABLE_HANDS, TABLE_SLOTS, TABLE_POWERS, TABLE_PICKS, TABLE_EVALUATIONS):
            await self.store.delete_rows(self.session_id, table)
