"""
Phase coordinator: every client runs one against the shared store.

There is no central driver. When the observed phase times out (or every
active player has committed during slotting) each client tries the same
transition. The store's conditional update on (phase, round, version) lets
exactly one of them win; the winner runs the phase-entry side effects and
commits the new phase with a second update guarded on the claimed version.

Side effects only read persisted state and draw randomness from the session
seed, so whichever client wins computes the same result.
"""

import asyncio
import copy
import logging
import random
import time
import uuid
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Tuple

from .battle import evaluate_round
from .collaborators import PlayerRegistry, ProfileStore
from .constants import (
    EFFECT_CURED, EFFECT_ELIMINATED, EFFECT_INFECTED, PHASE_BRIEFING,
    PHASE_DEALING, PHASE_END, PHASE_EVALUATION, PHASE_IDLE, PHASE_PICKING,
    PHASE_SCORING, PHASE_SHUFFLE, PHASE_SLOTTING, STATUS_ACTIVE,
    STATUS_ELIMINATED, STATUS_SURVIVED,
)
from .actions import heal_slots
from .errors import GameError, StoreError
from .extraction import resolve_steals
from .grouping import assign_groups
from .models import (
    Card, EvaluationRecord, GameState, Hand, Player, RoundData,
    SlotAssignment, SpecialCard, StandardCard, empty_slots, is_zombie,
)
from .repository import SessionRepository
from .rules import RuleConfig, default_rules
from .scoring import apply_scores
from .shuffle import deal_hands, generate_deck, mint_standard_card, mint_zombie_card

logger = logging.getLogger(__name__)

HAND_RETRIES = 5


def next_phase(state: GameState, rules: RuleConfig) -> Tuple[str, int]:
    """The (phase, round) that follows the observed one."""
    phase, round_number = state.phase, state.round

    if phase == PHASE_IDLE:
        return PHASE_BRIEFING, 1
    if phase == PHASE_BRIEFING:
        return PHASE_SHUFFLE, 1
    if phase == PHASE_SHUFFLE:
        return (PHASE_DEALING if round_number == 1 else PHASE_SLOTTING), round_number
    if phase == PHASE_DEALING:
        return PHASE_SLOTTING, round_number
    if phase == PHASE_SLOTTING:
        return PHASE_EVALUATION, round_number
    if phase == PHASE_EVALUATION:
        return PHASE_SCORING, round_number
    if phase == PHASE_SCORING:
        return PHASE_PICKING, round_number
    if phase == PHASE_PICKING:
        if round_number >= rules.max_rounds or not state.active_players():
            return PHASE_END, round_number
        return PHASE_SHUFFLE, round_number + 1
    return PHASE_END, round_number


def phase_rng(state: GameState, phase: str) -> random.Random:
    """Deterministic generator for one phase entry, derived from the session seed."""
    return random.Random(f"{state.seed}:{state.round}:{phase}")


def spend_cards(cards: List[Card], slotted: List[Card]) -> List[Card]:
    """
    Consume the cards that occupied slots last round.

    Standard cards are removed, specials lose a use and are removed at zero.
    Slotted cards that are no longer in the hand are skipped.
    """
    spent_ids = {card.id for card in slotted}
    remaining = []
    for card in cards:
        if card.id not in spent_ids:
            remaining.append(card)
        elif isinstance(card, SpecialCard) and card.uses_remaining > 1:
            remaining.append(replace(card, uses_remaining=card.uses_remaining - 1))
    return remaining


def patch_hand(cards: List[Card], swaps: Dict[str, StandardCard],
               grant: Optional[SpecialCard]) -> List[Card]:
    """
    Replace cured zombie cards and add an infection grant.

    Applying the same patch twice leaves the hand unchanged.
    """
    cards = [swaps.get(card.id, card) for card in cards]
    if grant is not None and not any(is_zombie(card) for card in cards):
        cards.append(grant)
    return cards


def first_card_only(slots: List[Optional[Card]]) -> List[Optional[Card]]:
    kept = False
    truncated = []
    for card in slots:
        if card is not None and not kept:
            truncated.append(card)
            kept = True
        else:
            truncated.append(None)
    return truncated


class PhaseCoordinator:
    """
    Drive the phase state machine for one client.

    Args:
        repo: Session repository over the shared store
        rules: Timing and scoring configuration
        client_id: Identifier recorded on transition claims
        registry: Source of the roster at briefing
        profiles: Carried-over and final scores
        clock: Time source, injectable for tests
    """

    def __init__(
        self,
        repo: SessionRepository,
        rules: Optional[RuleConfig] = None,
        client_id: Optional[str] = None,
        registry: Optional[PlayerRegistry] = None,
        profiles: Optional[ProfileStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.repo = repo
        self.rules = rules or default_rules
        self.client_id = client_id or uuid.uuid4().hex[:8]
        self.registry = registry
        self.profiles = profiles
        self.clock = clock
        self._transitioning = False
        self._stopped = False

    # Loop

    async def run(self):
        """Tick on every store change, or every tick_interval at the latest."""
        queue = self.repo.store.subscribe()
        logger.info(f"Coordinator {self.client_id} running for session {self.repo.session_id}")
        try:
            while not self._stopped:
                await self.tick()
                try:
                    await asyncio.wait_for(queue.get(), timeout=self.rules.tick_interval)
                except asyncio.TimeoutError:
                    pass
                while not queue.empty():
                    queue.get_nowait()
        finally:
            self.repo.store.unsubscribe(queue)
            logger.info(f"Coordinator {self.client_id} stopped")

    def stop(self):
        self._stopped = True

    async def tick(self) -> bool:
        """
        Check the timer and attempt a transition when one is due.

        Returns:
            True if this client committed a transition
        """
        if self._transitioning:
            return False
        try:
            state = await self.repo.load_state()
            if state is None:
                return False
            if state.is_paused:
                await self.nudge(state)
                return False
            if not await self.is_due(state):
                return False
            return await self.advance(state)
        except StoreError as e:
            logger.warning(f"Store unavailable during tick, retrying next tick: {e.message}")
            return False
        except GameError as e:
            logger.error(f"Tick failed with {e.code}: {e.message}")
            return False

    async def is_due(self, state: GameState) -> bool:
        now = self.clock()
        if state.phase == PHASE_END:
            return False
        if state.transition_claim is not None:
            claimed_at = state.transition_claim.get("at", 0)
            if now - claimed_at < self.rules.transition_lease:
                return False
            logger.warning(f"Transition claim by {state.transition_claim.get('client')} expired, re-electing")
        if state.phase == PHASE_IDLE:
            return state.system_start
        if state.time_remaining(now) <= 0:
            return True
        if state.phase == PHASE_SLOTTING:
            return await self.all_committed(state)
        return False

    async def all_committed(self, state: GameState) -> bool:
        active = state.active_players()
        if not active:
            return False
        slots = await self.repo.load_slots(state.round)
        return all(p.id in slots and slots[p.id].locked for p in active)

    async def nudge(self, state: GameState) -> bool:
        """Move phase_started_at forward while paused so the frozen timer stays frozen."""
        if state.phase_started_at is None or state.paused_elapsed is None:
            return False
        drift = self.clock() - state.phase_started_at - state.paused_elapsed
        if drift <= self.rules.pause_nudge:
            return False
        moved = await self.repo.nudge_phase_start(
            state.phase_started_at, state.phase_started_at + self.rules.pause_nudge
        )
        if not moved:
            logger.debug("Pause nudge already applied by another client")
        return moved

    # Election

    async def advance(self, state: GameState) -> bool:
        """Run the election for the observed state and, if won, the transition."""
        self._transitioning = True
        try:
            if not await self.repo.claim_transition(state, self.client_id, self.clock()):
                logger.debug(f"Lost election for {state.phase} round {state.round}")
                return False

            claimed_version = state.version + 1
            phase, round_number = next_phase(state, self.rules)
            new_state = copy.deepcopy(state)
            new_state.phase = phase
            new_state.round = round_number

            await self.enter_phase(new_state)

            new_state.phase_started_at = self.clock()
            new_state.phase_duration = self.rules.duration_for(new_state.phase)
            await self.merge_powers(new_state)

            if not await self.repo.commit_transition(new_state, claimed_version):
                logger.warning(f"Transition to {phase} was superseded, discarding")
                return False

            logger.info(f"Session {new_state.id}: {state.phase} -> {new_state.phase} (round {new_state.round})")
            return True
        finally:
            self._transitioning = False

    async def merge_powers(self, state: GameState):
        powers = await self.repo.load_powers()
        for player in state.participants:
            power = powers.get(player.id)
            if power is None:
                continue
            player.used_refresh = power.used_refresh
            player.used_detector = power.used_detector
            player.five_slot_round = power.five_slot_round
            player.used_five_slot_deployment = power.five_slot_round is not None

    async def enter_phase(self, state: GameState):
        handlers = {
            PHASE_BRIEFING: self.enter_briefing,
            PHASE_SHUFFLE: self.enter_shuffle,
            PHASE_DEALING: self.enter_dealing,
            PHASE_SLOTTING: self.enter_slotting,
            PHASE_EVALUATION: self.enter_evaluation,
            PHASE_SCORING: self.enter_scoring,
            PHASE_PICKING: self.enter_picking,
            PHASE_END: self.enter_end,
        }
        handler = handlers.get(state.phase)
        if handler:
            await handler(state)

    # Phase entry side effects

    async def enter_briefing(self, state: GameState):
        await self.repo.purge_session_rows()

        if self.registry is not None:
            roster = [i for i in await self.registry.eligible_players() if not i.is_master]
            players = []
            for identity in roster:
                score = None
                if self.profiles is not None:
                    score = await self.profiles.fetch_score(identity.player_id)
                players.append(Player(
                    id=identity.player_id,
                    display_name=identity.display_name,
                    score=score if score is not None else self.rules.starting_score,
                ))
        else:
            players = [
                Player(id=p.id, display_name=p.display_name, score=p.score)
                for p in state.participants
            ]
            logger.warning("No player registry configured, reusing existing roster")

        state.participants = players
        state.round = 1
        state.round_data = RoundData()
        state.seed = uuid.uuid4().hex
        state.system_start = False
        logger.info(f"Briefing {len(players)} players with seed {state.seed}")

    async def enter_shuffle(self, state: GameState):
        if state.round > 1:
            previous = await self.repo.load_slots(state.round - 1)
            for player in state.active_players():
                assignment = previous.get(player.id)
                slotted = assignment.cards() if assignment else []
                hand = await self.modify_hand(player.id, lambda cards: spend_cards(cards, slotted))
                if not hand.cards:
                    player.status = STATUS_ELIMINATED
                    logger.info(f"Player {player.id} has no cards left and is eliminated")
                    await self.push_scores([player])

        assign_groups(state.participants, phase_rng(state, PHASE_SHUFFLE))
        state.round_data = RoundData(deck=state.round_data.deck)

    async def enter_dealing(self, state: GameState):
        deck = state.round_data.deck
        if not deck:
            deck = generate_deck(len(state.active_players()), self.rules.hand_size,
                                 phase_rng(state, PHASE_DEALING))
        hands, remaining = deal_hands(deck, state.participants, self.rules.hand_size)
        for player_id, cards in hands.items():
            await self.repo.put_hand(Hand(player_id=player_id, cards=cards))
        state.round_data.deck = remaining

    async def enter_slotting(self, state: GameState):
        purged = await self.repo.purge_slots_before(state.round)
        if purged:
            logger.debug(f"Purged {purged} slot rows from earlier rounds")

    async def enter_evaluation(self, state: GameState):
        record = await self.repo.load_evaluation(state.round)
        if record is None:
            record = await self.evaluate(state)
            if not await self.repo.insert_evaluation(record):
                record = await self.repo.load_evaluation(state.round) or record
                logger.debug(f"Round {state.round} evaluation already recorded by another client")
        else:
            logger.info(f"Reusing recorded evaluation for round {state.round}")
        await self.apply_evaluation(state, record)

    async def evaluate(self, state: GameState) -> EvaluationRecord:
        """Compute the round outcome from the committed arrays without writing anything."""
        rng = phase_rng(state, PHASE_EVALUATION)
        slots = await self.repo.load_slots(state.round)
        hands = await self.repo.load_hands()
        powers = await self.repo.load_powers()

        committed: Dict[str, SlotAssignment] = {}
        for player in state.active_players():
            hand = hands.get(player.id) or Hand(player_id=player.id)
            assignment = slots.get(player.id) or SlotAssignment(player_id=player.id, round=state.round)
            assignment.slots, cleared = heal_slots(assignment.slots, hand.cards)
            if cleared:
                logger.warning(f"Cleared stale slots {cleared} for {player.id}")

            power = powers.get(player.id)
            deployed = power is not None and power.five_slot_round == state.round
            if assignment.filled_count() > 1 and not deployed:
                assignment.slots = first_card_only(assignment.slots)
                logger.warning(f"Truncated multi-card array for {player.id} to its first card")

            if assignment.filled_count() == 0 and hand.cards:
                assignment.slots = empty_slots()
                assignment.slots[0] = rng.choice(hand.cards)
                logger.info(f"Auto-committed {assignment.slots[0].id} for {player.id}")

            assignment.locked = True
            committed[player.id] = assignment

        results = evaluate_round(
            state.participants,
            {pid: a.slots for pid, a in committed.items()},
            {pid: h.cards for pid, h in hands.items()},
            rng=rng,
            shotgun_eliminates=self.rules.shotgun_eliminates,
        )

        swaps: Dict[str, Dict[str, StandardCard]] = {}
        infected: List[str] = []
        for result in results:
            for effect in result.effects:
                if effect.type == EFFECT_CURED:
                    card = mint_standard_card(effect.new_value, rng, prefix='cured')
                    swaps.setdefault(effect.player_id, {})[effect.card_id] = card
                elif effect.type == EFFECT_INFECTED and effect.player_id not in infected:
                    infected.append(effect.player_id)
        grants = {pid: mint_zombie_card(rng) for pid in infected}

        for player_id, cards in swaps.items():
            assignment = committed.get(player_id)
            if assignment:
                assignment.slots = [cards.get(card.id, card) if card else None for card in assignment.slots]

        return EvaluationRecord(round=state.round, results=results, slots=committed,
                                swaps=swaps, grants=grants)

    async def apply_evaluation(self, state: GameState, record: EvaluationRecord):
        """Write cures, infections and eliminations back to players, hands and slots."""
        for result in record.results:
            for effect in result.effects:
                player = state.get_player(effect.player_id)
                if player is None:
                    continue
                if effect.type == EFFECT_CURED:
                    player.is_zombie = False
                elif effect.type == EFFECT_INFECTED:
                    player.is_zombie = True
                elif effect.type == EFFECT_ELIMINATED:
                    player.status = STATUS_ELIMINATED

        for player_id in sorted(set(record.swaps) | set(record.grants)):
            swaps = record.swaps.get(player_id, {})
            grant = record.grants.get(player_id)
            await self.modify_hand(player_id, lambda cards: patch_hand(cards, swaps, grant))

        for assignment in record.slots.values():
            await self.repo.save_slot(assignment)
        state.round_data.results = record.results

    async def enter_scoring(self, state: GameState):
        before = {p.id: p.status for p in state.participants}
        state.participants = apply_scores(state.participants, state.round_data.results, self.rules)

        hands = await self.repo.load_hands()
        for player in state.participants:
            hand = hands.get(player.id)
            if player.is_active and (hand is None or not hand.cards):
                player.status = STATUS_ELIMINATED
                logger.info(f"Player {player.id} is out of cards and eliminated")

        fallen = {pid for result in state.round_data.results for pid in result.eliminated}
        fallen.update(
            p.id for p in state.participants
            if before.get(p.id) == STATUS_ACTIVE and p.status == STATUS_ELIMINATED
        )
        await self.push_scores([p for p in state.participants if p.id in fallen])

    async def enter_picking(self, state: GameState):
        slots = await self.repo.load_slots(state.round)
        state.round_data.pending_steals = resolve_steals(
            state.round_data.results, {pid: a.slots for pid, a in slots.items()}
        )

    async def enter_end(self, state: GameState):
        for player in state.participants:
            if player.is_active:
                player.status = STATUS_SURVIVED
        await self.push_scores(state.participants)
        logger.info(f"Session {state.id} ended with {len(state.participants)} participants")

    async def push_scores(self, players: List[Player]):
        if self.profiles is None:
            return
        for player in players:
            await self.profiles.push_score(player.id, player.score)

    async def modify_hand(self, player_id: str, update: Callable[[List[Card]], List[Card]]) -> Hand:
        """Apply a pure update to a hand with compare-and-swap retries."""
        for _ in range(HAND_RETRIES):
            hand = await self.repo.load_hand(player_id)
            hand.cards = update(list(hand.cards))
            if await self.repo.save_hand(hand):
                return hand
        raise StoreError(f"Could not update hand for {player_id}")
