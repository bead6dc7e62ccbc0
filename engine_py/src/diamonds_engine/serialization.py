"""
State serialization and sanitization utilities.
"""

import time
from typing import Any, Dict, List, Optional

from .constants import REVEAL_PHASES, SPECIAL_TYPES
from .errors import CardFormatError
from .models import (
    BattleResult, Card, GameState, Hand, Player, SlotAssignment, Slots,
    SpecialCard, StandardCard, StealOffer,
)


def serialize_card(card: Optional[Card]) -> Optional[Dict[str, Any]]:
    if card is None:
        return None
    if isinstance(card, StandardCard):
        return {
            "id": card.id,
            "kind": card.kind,
            "rank": card.rank,
            "suit": card.suit,
            "value": card.value,
        }
    if isinstance(card, SpecialCard) and card.special_type in SPECIAL_TYPES:
        return {
            "id": card.id,
            "kind": card.kind,
            "special_type": card.special_type,
            "uses_remaining": card.uses_remaining,
            "value": card.value,
        }
    raise CardFormatError(f"Cannot serialize card: {card!r}")


def serialize_slots(slots: Slots) -> List[Optional[Dict[str, Any]]]:
    return [serialize_card(card) for card in slots]


def serialize_player(player: Player, include_private: bool = False) -> Dict[str, Any]:
    """Public view of a participant; infection and powers only for the owner."""
    data = {
        "id": player.id,
        "display_name": player.display_name,
        "score": player.score,
        "status": player.status,
        "group_id": player.group_id,
        "round_adjustment": player.round_adjustment,
    }
    if include_private:
        data.update({
            "is_zombie": player.is_zombie,
            "used_refresh": player.used_refresh,
            "used_detector": player.used_detector,
            "used_five_slot_deployment": player.used_five_slot_deployment,
        })
    return data


def serialize_result(result: BattleResult) -> Dict[str, Any]:
    return {
        "group_id": result.group_id,
        "players": list(result.players),
        "winners": list(result.winners),
        "losers": list(result.losers),
        "eliminated": list(result.eliminated),
        "totals": dict(result.totals),
        "slots": [
            {
                "index": detail.index,
                "values": dict(detail.values),
                "cards": {pid: serialize_card(card) for pid, card in detail.cards.items()},
                "outcome": detail.outcome,
            }
            for detail in result.slot_details
        ],
        "effects": [
            {
                "player_id": effect.player_id,
                "type": effect.type,
                "reason": effect.reason,
                "card_id": effect.card_id,
                "slot_index": effect.slot_index,
                "new_value": effect.new_value,
            }
            for effect in result.effects
        ],
    }


def serialize_offer(offer: StealOffer) -> Dict[str, Any]:
    return {
        "picker_id": offer.picker_id,
        "can_skip": offer.can_skip,
        "targets": [
            {"owner_id": target.owner_id, "card": serialize_card(target.card)}
            for target in offer.targets
        ],
    }


def sanitize_state(
    state: GameState,
    viewer_id: Optional[str] = None,
    hand: Optional[Hand] = None,
    slots_map: Optional[Dict[str, SlotAssignment]] = None,
    now: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Sanitize game state for one viewer.

    Args:
        state: Game state row
        viewer_id: Player viewing the state (sees their own hand and slots)
        hand: The viewer's hand row
        slots_map: player_id -> SlotAssignment for the current round
        now: Clock used for time_remaining

    Returns:
        Sanitized state dictionary safe for JSON transmission
    """
    now = now if now is not None else time.time()
    slots_map = slots_map or {}
    reveal = state.phase in REVEAL_PHASES

    sanitized = {
        "id": state.id,
        "version": state.version,
        "phase": state.phase,
        "round": state.round,
        "is_paused": state.is_paused,
        "time_remaining": round(state.time_remaining(now), 1),
        "participants": {
            p.id: serialize_player(p, include_private=(p.id == viewer_id))
            for p in state.participants
        },
        "me": None,
        "revealed_slots": {},
        "results": [],
        "offer": None,
    }

    if viewer_id is not None and state.get_player(viewer_id) is not None:
        own = slots_map.get(viewer_id)
        sanitized["me"] = {
            "id": viewer_id,
            "hand": [serialize_card(card) for card in (hand.cards if hand else [])],
            "slots": serialize_slots(own.slots) if own else None,
            "locked": own.locked if own else False,
        }
        offer = state.round_data.offer_for(viewer_id)
        if offer is not None:
            sanitized["offer"] = serialize_offer(offer)

    if reveal:
        sanitized["revealed_slots"] = {
            pid: serialize_slots(assignment.slots)
            for pid, assignment in slots_map.items()
            if assignment.locked
        }
        sanitized["results"] = [serialize_result(r) for r in state.round_data.results]

    return sanitized
