"""Game models and data structures"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .constants import (
    FACE_VALUES, KIND_SPECIAL, KIND_STANDARD, PHASE_IDLE, SLOT_COUNT,
    SPECIAL_ZOMBIE, STATUS_ACTIVE,
)


@dataclass(frozen=True)
class StandardCard:
    id: str
    rank: str  # '2'..'10', 'J', 'Q', 'K', 'A'
    suit: str
    kind: str = field(default=KIND_STANDARD, init=False)

    @property
    def value(self) -> int:
        if self.rank in FACE_VALUES:
            return FACE_VALUES[self.rank]
        return int(self.rank)


@dataclass(frozen=True)
class SpecialCard:
    id: str
    special_type: str  # zombie | injection | shotgun
    uses_remaining: int = 1
    kind: str = field(default=KIND_SPECIAL, init=False)

    @property
    def value(self) -> int:
        return 0


Card = Union[StandardCard, SpecialCard]
Slots = List[Optional[Card]]


def empty_slots() -> Slots:
    return [None] * SLOT_COUNT


def is_special(card: Optional[Card], special_type: str) -> bool:
    return isinstance(card, SpecialCard) and card.special_type == special_type


def is_zombie(card: Optional[Card]) -> bool:
    return is_special(card, SPECIAL_ZOMBIE)


@dataclass
class Player:
    id: str
    display_name: str
    score: int = 0
    status: str = STATUS_ACTIVE  # active | eliminated | survived
    group_id: Optional[int] = None
    is_zombie: bool = False
    used_refresh: bool = False
    used_detector: bool = False
    used_five_slot_deployment: bool = False
    five_slot_round: Optional[int] = None
    round_adjustment: int = 0

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE


@dataclass
class Hand:
    player_id: str
    cards: List[Card] = field(default_factory=list)
    version: int = 0

    def find(self, card_id: str) -> Optional[Card]:
        for card in self.cards:
            if card.id == card_id:
                return card
        return None

    def card_ids(self) -> List[str]:
        return [card.id for card in self.cards]


@dataclass
class SlotAssignment:
    player_id: str
    round: int
    slots: Slots = field(default_factory=empty_slots)
    locked: bool = False

    def cards(self) -> List[Card]:
        return [card for card in self.slots if card is not None]

    def filled_count(self) -> int:
        return len(self.cards())


@dataclass
class PowerUsage:
    player_id: str
    used_refresh: bool = False
    used_detector: bool = False
    five_slot_round: Optional[int] = None


@dataclass
class BattleEffect:
    player_id: str
    type: str  # infected | cured | eliminated
    reason: str
    card_id: Optional[str] = None
    slot_index: Optional[int] = None
    new_value: Optional[int] = None


@dataclass
class SlotDetail:
    index: int
    values: Dict[str, int] = field(default_factory=dict)
    cards: Dict[str, Optional[Card]] = field(default_factory=dict)
    outcome: str = ''


@dataclass
class BattleResult:
    group_id: Optional[int]
    players: List[str]
    winners: List[str] = field(default_factory=list)
    losers: List[str] = field(default_factory=list)
    eliminated: List[str] = field(default_factory=list)
    totals: Dict[str, int] = field(default_factory=dict)
    slot_details: List[SlotDetail] = field(default_factory=list)
    effects: List[BattleEffect] = field(default_factory=list)

    def outcome_for(self, player_id: str) -> Optional[str]:
        if player_id in self.eliminated:
            return 'eliminated'
        if player_id in self.winners:
            return 'winner'
        if player_id in self.losers:
            return 'loser'
        return None


@dataclass
class StealTarget:
    owner_id: str
    card: Card


@dataclass
class StealOffer:
    picker_id: str
    targets: List[StealTarget] = field(default_factory=list)
    can_skip: bool = True


@dataclass
class RoundData:
    deck: List[Card] = field(default_factory=list)
    results: List[BattleResult] = field(default_factory=list)
    pending_steals: List[StealOffer] = field(default_factory=list)

    def offer_for(self, picker_id: str) -> Optional[StealOffer]:
        for offer in self.pending_steals:
            if offer.picker_id == picker_id:
                return offer
        return None


@dataclass
class EvaluationRecord:
    """
    Outcome of one round's evaluation, stored once per round.

    `swaps` maps player -> {zombie card id: cured card}; `grants` holds the
    zombie card given to each newly infected player. `slots` are the final
    locked arrays with swaps already applied.
    """
    round: int
    results: List[BattleResult] = field(default_factory=list)
    slots: Dict[str, SlotAssignment] = field(default_factory=dict)
    swaps: Dict[str, Dict[str, StandardCard]] = field(default_factory=dict)
    grants: Dict[str, SpecialCard] = field(default_factory=dict)


@dataclass
class GameState:
    id: str
    version: int = 0
    phase: str = PHASE_IDLE
    round: int = 1
    participants: List[Player] = field(default_factory=list)
    round_data: RoundData = field(default_factory=RoundData)
    phase_started_at: Optional[float] = None
    phase_duration: int = 0
    is_paused: bool = False
    paused_elapsed: Optional[float] = None
    system_start: bool = False
    seed: Optional[str] = None
    transition_claim: Optional[Dict[str, Any]] = None

    def get_player(self, player_id: str) -> Optional[Player]:
        for player in self.participants:
            if player.id == player_id:
                return player
        return None

    def active_players(self) -> List[Player]:
        return [p for p in self.participants if p.is_active]

    def elapsed(self, now: float) -> float:
        """Seconds spent in the current phase, frozen while paused."""
        if self.is_paused and self.paused_elapsed is not None:
            return self.paused_elapsed
        if self.phase_started_at is None:
            return 0.0
        return max(0.0, now - self.phase_started_at)

    def time_remaining(self, now: float) -> float:
        return max(0.0, self.phase_duration - self.elapsed(now))
