"""
Player and admin actions.

Each action loads what it needs from the session repository, validates it and
writes only the caller's own rows (admin actions write the state row guarded
by its version). Failures come back as ActionResult errors, never exceptions.
"""

import logging
import random
import time
from typing import Dict, List, Optional, Tuple

from .collaborators import Identity
from .constants import (
    ERROR_ALREADY_LOCKED, ERROR_ALREADY_PICKED, ERROR_CARD_UNAVAILABLE,
    ERROR_CONFLICT, ERROR_INVALID_SLOTS, ERROR_NO_OFFER, ERROR_NO_SESSION,
    ERROR_NO_STANDARD_CARDS, ERROR_NOT_ACTIVE, ERROR_NOT_AUTHORIZED,
    ERROR_NOT_PARTICIPANT, ERROR_OWNERSHIP, ERROR_POWER_USED,
    ERROR_WRONG_PHASE, PHASE_END, PHASE_IDLE, PHASE_PICKING, PHASE_SLOTTING,
    SLOT_COUNT,
)
from .errors import GameError, raise_error
from .extraction import execute_steal, find_target
from .models import (
    Card, GameState, Hand, Player, RoundData, SlotAssignment, Slots,
    StandardCard, empty_slots,
)
from .repository import SessionRepository
from .shuffle import random_standard_card

logger = logging.getLogger(__name__)

ADMIN_RETRIES = 3


class ActionResult:
    """Result of a player or admin action."""

    def __init__(
        self,
        success: bool,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
        data: Optional[Dict] = None
    ):
        self.success = success
        self.error_code = error_code
        self.error_message = error_message
        self.data = data or {}

    @classmethod
    def ok(cls, **data) -> 'ActionResult':
        return cls(success=True, data=data)

    @classmethod
    def error(cls, error_code: str, error_message: str) -> 'ActionResult':
        return cls(success=False, error_code=error_code, error_message=error_message)


def heal_slots(slots: Slots, hand: List[Card]) -> Tuple[Slots, List[int]]:
    """
    Clear slots whose card is no longer in the hand.

    Returns:
        (healed slots, indices that were cleared)
    """
    held = {card.id for card in hand}
    healed = []
    cleared = []
    for index, card in enumerate(slots):
        if card is not None and card.id not in held:
            healed.append(None)
            cleared.append(index)
        else:
            healed.append(card)
    return healed, cleared


async def _load_player(repo: SessionRepository, player_id: str, phase: str) -> Tuple[GameState, Player]:
    state = await repo.load_state()
    if state is None:
        raise_error(ERROR_NO_SESSION, "No session is running")
    if state.phase != phase:
        raise_error(ERROR_WRONG_PHASE, f"Action only allowed during {phase}, current phase is {state.phase}")
    player = state.get_player(player_id)
    if player is None:
        raise_error(ERROR_NOT_PARTICIPANT, "Not a participant in this session")
    if not player.is_active:
        raise_error(ERROR_NOT_ACTIVE, f"Player is {player.status}")
    return state, player


def _resolve_slots(card_ids: List[Optional[str]], hand: Hand) -> Slots:
    """Turn submitted card ids into a slot array drawn from the hand."""
    if len(card_ids) != SLOT_COUNT:
        raise_error(ERROR_INVALID_SLOTS, f"Exactly {SLOT_COUNT} slot positions are required")

    present = [card_id for card_id in card_ids if card_id is not None]
    if len(present) != len(set(present)):
        raise_error(ERROR_INVALID_SLOTS, "A card can only occupy one slot")

    slots: Slots = []
    for card_id in card_ids:
        if card_id is None:
            slots.append(None)
            continue
        card = hand.find(card_id)
        if card is None:
            raise_error(ERROR_OWNERSHIP, f"Card {card_id} is not in your hand")
        slots.append(card)
    return slots


async def save_draft(repo: SessionRepository, player_id: str,
                     card_ids: List[Optional[str]]) -> ActionResult:
    """Persist an unlocked slot arrangement during slotting."""
    try:
        state, _ = await _load_player(repo, player_id, PHASE_SLOTTING)
        existing = await repo.load_slot(player_id, state.round)
        if existing and existing.locked:
            raise_error(ERROR_ALREADY_LOCKED, "Slots are already committed for this round")

        hand = await repo.load_hand(player_id)
        slots = _resolve_slots(card_ids, hand)
        await repo.save_slot(SlotAssignment(player_id=player_id, round=state.round, slots=slots))
        return ActionResult.ok(slots=slots)
    except GameError as e:
        return ActionResult.error(e.code, e.message)


async def commit_slots(repo: SessionRepository, player_id: str,
                       card_ids: List[Optional[str]]) -> ActionResult:
    """
    Validate and lock a slot array for the current round.

    A multi-card array spends the five-slot deployment, which may be used in
    only one round per session.
    """
    try:
        state, _ = await _load_player(repo, player_id, PHASE_SLOTTING)
        existing = await repo.load_slot(player_id, state.round)
        if existing and existing.locked:
            raise_error(ERROR_ALREADY_LOCKED, "Slots are already committed for this round")

        hand = await repo.load_hand(player_id)
        slots = _resolve_slots(card_ids, hand)
        filled = len([card for card in slots if card is not None])
        if filled == 0:
            raise_error(ERROR_INVALID_SLOTS, "Commit at least one card")

        power = await repo.load_power(player_id)
        if filled > 1:
            if power.five_slot_round is not None and power.five_slot_round != state.round:
                raise_error(ERROR_POWER_USED, "Five-slot deployment already used this session")
            if power.five_slot_round is None:
                power.five_slot_round = state.round
                await repo.save_power(power)
                logger.info(f"Player {player_id} spent five-slot deployment in round {state.round}")

        await repo.save_slot(SlotAssignment(player_id=player_id, round=state.round, slots=slots, locked=True))
        logger.info(f"Player {player_id} committed {filled} cards for round {state.round}")
        return ActionResult.ok(slots=slots)
    except GameError as e:
        return ActionResult.error(e.code, e.message)


async def refresh_hand(repo: SessionRepository, player_id: str,
                       rng: Optional[random.Random] = None) -> ActionResult:
    """Once per session: redraw every standard card, keep specials, clear the draft."""
    rng = rng or random.Random()
    try:
        state, _ = await _load_player(repo, player_id, PHASE_SLOTTING)
        power = await repo.load_power(player_id)
        if power.used_refresh:
            raise_error(ERROR_POWER_USED, "Refresh already used this session")

        existing = await repo.load_slot(player_id, state.round)
        if existing and existing.locked:
            raise_error(ERROR_ALREADY_LOCKED, "Slots are already committed for this round")

        hand = await repo.load_hand(player_id)
        if not any(isinstance(card, StandardCard) for card in hand.cards):
            raise_error(ERROR_NO_STANDARD_CARDS, "No standard cards to refresh")

        hand.cards = [
            random_standard_card(rng) if isinstance(card, StandardCard) else card
            for card in hand.cards
        ]
        if not await repo.save_hand(hand):
            raise_error(ERROR_CONFLICT, "Hand changed while refreshing, try again")

        power.used_refresh = True
        await repo.save_power(power)
        await repo.save_slot(SlotAssignment(player_id=player_id, round=state.round, slots=empty_slots()))
        logger.info(f"Player {player_id} refreshed their hand")
        return ActionResult.ok(hand=hand.cards)
    except GameError as e:
        return ActionResult.error(e.code, e.message)


async def use_detector(repo: SessionRepository, player_id: str) -> ActionResult:
    """Once per session: reveal how many cards every participant holds."""
    try:
        state, _ = await _load_player(repo, player_id, PHASE_SLOTTING)
        power = await repo.load_power(player_id)
        if power.used_detector:
            raise_error(ERROR_POWER_USED, "Detector already used this session")

        hands = await repo.load_hands()
        counts = {
            p.id: len(hands[p.id].cards) if p.id in hands else 0
            for p in state.participants
        }
        power.used_detector = True
        await repo.save_power(power)
        logger.info(f"Player {player_id} used the detector")
        return ActionResult.ok(hand_sizes=counts)
    except GameError as e:
        return ActionResult.error(e.code, e.message)


async def pick_card(repo: SessionRepository, player_id: str, card_id: str) -> ActionResult:
    """
    Take one offered card from a loser's hand.

    The pick row is claimed before the hands are touched, so a second pick in
    the same round is refused even if the first one is still writing.
    """
    try:
        state, _ = await _load_player(repo, player_id, PHASE_PICKING)
        offer = state.round_data.offer_for(player_id)
        if offer is None:
            raise_error(ERROR_NO_OFFER, "Nothing to extract this round")
        target = find_target(offer, card_id)
        if target is None:
            raise_error(ERROR_CARD_UNAVAILABLE, f"Card {card_id} is not on offer")

        owner_hand = await repo.load_hand(target.owner_id)
        if owner_hand.find(card_id) is None:
            raise_error(ERROR_CARD_UNAVAILABLE, f"Card {card_id} is no longer held by its owner")

        if not await repo.claim_pick(player_id, state.round, card_id):
            raise_error(ERROR_ALREADY_PICKED, "Already picked this round")

        for _ in range(ADMIN_RETRIES):
            picker_hand = await repo.load_hand(player_id)
            moved = execute_steal(owner_hand.cards, picker_hand.cards, card_id)
            if moved is None:
                raise_error(ERROR_CARD_UNAVAILABLE, f"Card {card_id} is no longer held by its owner")
            owner_hand.cards, new_picker_cards = moved
            if await repo.save_hand(owner_hand):
                picker_hand.cards = new_picker_cards
                while not await repo.save_hand(picker_hand):
                    picker_hand = await repo.load_hand(player_id)
                    picker_hand.cards = picker_hand.cards + [target.card]
                logger.info(f"Player {player_id} extracted {card_id} from {target.owner_id}")
                return ActionResult.ok(card=target.card, owner_id=target.owner_id)
            owner_hand = await repo.load_hand(target.owner_id)

        raise_error(ERROR_CONFLICT, "Owner hand kept changing, extraction abandoned")
    except GameError as e:
        return ActionResult.error(e.code, e.message)


async def skip_pick(repo: SessionRepository, player_id: str) -> ActionResult:
    """Decline the extraction offer for this round."""
    try:
        state, _ = await _load_player(repo, player_id, PHASE_PICKING)
        if state.round_data.offer_for(player_id) is None:
            raise_error(ERROR_NO_OFFER, "Nothing to extract this round")
        if not await repo.claim_pick(player_id, state.round, None):
            raise_error(ERROR_ALREADY_PICKED, "Already picked this round")
        logger.info(f"Player {player_id} skipped extraction")
        return ActionResult.ok()
    except GameError as e:
        return ActionResult.error(e.code, e.message)


# Admin actions

async def _admin_update(repo: SessionRepository, identity: Identity, build_changes) -> ActionResult:
    """Retry a version-guarded state update a few times against fresh reads."""
    if not identity.is_master:
        return ActionResult.error(ERROR_NOT_AUTHORIZED, "Only the game master can do that")
    try:
        for _ in range(ADMIN_RETRIES):
            state = await repo.ensure_state()
            changes = build_changes(state)
            if changes is None:
                return ActionResult.ok(changed=False)
            if await repo.update_state_if_version(state.version, **changes):
                return ActionResult.ok(changed=True)
        return ActionResult.error(ERROR_CONFLICT, "State kept changing, try again")
    except GameError as e:
        return ActionResult.error(e.code, e.message)


async def start_session(repo: SessionRepository, identity: Identity,
                        now: Optional[float] = None) -> ActionResult:
    """Arm the session so the coordinators leave idle for briefing."""
    now = now if now is not None else time.time()

    def changes(state: GameState):
        if state.phase == PHASE_END:
            return {
                "phase": PHASE_IDLE, "round": 1, "system_start": True,
                "phase_started_at": now, "phase_duration": 0,
                "round_data": RoundData(), "transition_claim": None,
            }
        if state.phase != PHASE_IDLE:
            raise_error(ERROR_WRONG_PHASE, "A session is already running")
        if state.system_start:
            return None
        return {"system_start": True, "phase_started_at": now}

    result = await _admin_update(repo, identity, changes)
    if result.success:
        logger.info(f"Session {repo.session_id} started by {identity.player_id}")
    return result


async def stop_session(repo: SessionRepository, identity: Identity,
                       now: Optional[float] = None) -> ActionResult:
    """Forced reset to idle. Bumps the version so in-flight commits fail."""
    now = now if now is not None else time.time()

    def changes(state: GameState):
        return {
            "phase": PHASE_IDLE, "round": 1, "system_start": False,
            "is_paused": False, "paused_elapsed": None, "transition_claim": None,
            "round_data": RoundData(), "phase_started_at": now, "phase_duration": 0,
        }

    result = await _admin_update(repo, identity, changes)
    if result.success:
        logger.warning(f"Session {repo.session_id} reset to idle by {identity.player_id}")
    return result


async def pause(repo: SessionRepository, identity: Identity, now: Optional[float] = None) -> ActionResult:
    now = now if now is not None else time.time()

    def changes(state: GameState):
        if state.is_paused:
            return None
        if state.phase in (PHASE_IDLE, PHASE_END):
            raise_error(ERROR_WRONG_PHASE, "Nothing to pause")
        return {"is_paused": True, "paused_elapsed": state.elapsed(now), "transition_claim": None}

    return await _admin_update(repo, identity, changes)


async def resume(repo: SessionRepository, identity: Identity, now: Optional[float] = None) -> ActionResult:
    now = now if now is not None else time.time()

    def changes(state: GameState):
        if not state.is_paused:
            return None
        return {
            "is_paused": False,
            "paused_elapsed": None,
            "phase_started_at": now - (state.paused_elapsed or 0.0),
        }

    return await _admin_update(repo, identity, changes)
