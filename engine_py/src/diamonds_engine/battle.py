"""
Battle resolution for 1v1 and 1v1v1 groups.

Every slot card is classified into one of a closed set of battle roles before
comparison:

    empty      no card in the slot
    standard   a standard card, or a zombie neutralized by a shotgun
    zombie     an un-neutralized zombie (raw value 999)
    injection  cures a zombie in the same slot, otherwise worth 0
    shotgun    always worth 0, neutralizes the opponents' zombies up front

Random cure values come from the `random.Random` passed in, so evaluating the
same arrays with the same seed always yields the same BattleResult.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from .constants import (
    CURE_MAX_VALUE, CURE_MIN_VALUE, EFFECT_CURED, EFFECT_ELIMINATED,
    EFFECT_INFECTED, OUTCOME_CLASH, OUTCOME_DRAW, OUTCOME_ELIMINATED,
    REASON_INJECTION, REASON_SHOTGUN, REASON_ZOMBIE, REASON_ZOMBIE_CLASH,
    SLOT_COUNT, SPECIAL_INJECTION, SPECIAL_SHOTGUN, SPECIAL_ZOMBIE,
    ZOMBIE_VALUE,
)
from .errors import CardFormatError
from .models import (
    BattleEffect, BattleResult, Card, Player, SlotDetail, Slots, SpecialCard,
    StandardCard, empty_slots, is_special, is_zombie,
)

logger = logging.getLogger(__name__)

ROLE_EMPTY = 'empty'
ROLE_STANDARD = 'standard'
ROLE_ZOMBIE = 'zombie'
ROLE_INJECTION = 'injection'
ROLE_SHOTGUN = 'shotgun'


@dataclass
class Combatant:
    """One player's battle input: their slot array and current hand."""
    player_id: str
    slots: Slots = field(default_factory=empty_slots)
    hand: List[Card] = field(default_factory=list)

    def has_shotgun(self) -> bool:
        return any(is_special(card, SPECIAL_SHOTGUN) for card in self.slots)

    def zombie_cards(self) -> List[Tuple[Card, Optional[int]]]:
        """Every zombie held, slotted ones first, paired with their slot index."""
        found = []
        seen = set()
        for index, card in enumerate(self.slots):
            if is_zombie(card) and card.id not in seen:
                found.append((card, index))
                seen.add(card.id)
        for card in self.hand:
            if is_zombie(card) and card.id not in seen:
                found.append((card, None))
                seen.add(card.id)
        return found

    def slot(self, index: int) -> Optional[Card]:
        if index < len(self.slots):
            return self.slots[index]
        return None


def cure_value(rng: random.Random) -> int:
    return rng.randint(CURE_MIN_VALUE, CURE_MAX_VALUE)


def classify(card: Optional[Card], neutralized: Dict[str, int]) -> Tuple[str, int]:
    """
    Map a slot card to its battle role and base value.

    Raises:
        CardFormatError: for anything that is not a known card shape
    """
    if card is None:
        return ROLE_EMPTY, 0
    if isinstance(card, StandardCard):
        return ROLE_STANDARD, card.value
    if isinstance(card, SpecialCard):
        if card.special_type == SPECIAL_ZOMBIE:
            if card.id in neutralized:
                return ROLE_STANDARD, neutralized[card.id]
            return ROLE_ZOMBIE, 0
        if card.special_type == SPECIAL_INJECTION:
            return ROLE_INJECTION, 0
        if card.special_type == SPECIAL_SHOTGUN:
            return ROLE_SHOTGUN, 0
        raise CardFormatError(f"Unknown special card type: {card.special_type}")
    raise CardFormatError(f"Unknown card shape: {card!r}")


class _Resolution:
    """Mutable bookkeeping shared by the duel evaluators."""

    def __init__(self, combatants: List[Combatant], group_id: Optional[int], rng: random.Random):
        self.combatants = combatants
        self.rng = rng
        self.neutralized: Dict[str, int] = {}
        self.result = BattleResult(group_id=group_id, players=[c.player_id for c in combatants])

    def add_effect(self, player_id: str, effect_type: str, reason: str, **kwargs):
        if effect_type == EFFECT_INFECTED:
            # one infection per player per resolution is enough to flag them
            if any(e.player_id == player_id and e.type == EFFECT_INFECTED for e in self.result.effects):
                return
        self.result.effects.append(BattleEffect(player_id=player_id, type=effect_type, reason=reason, **kwargs))

    def is_eliminated(self, player_id: str) -> bool:
        return player_id in self.result.eliminated

    def eliminate(self, player_id: str):
        if not self.is_eliminated(player_id):
            self.result.eliminated.append(player_id)
            self.add_effect(player_id, EFFECT_ELIMINATED, REASON_SHOTGUN)

    def infect(self, player_id: str, reason: str, slot_index: int):
        if not self.is_eliminated(player_id):
            self.add_effect(player_id, EFFECT_INFECTED, reason, slot_index=slot_index)

    def cure(self, combatant: Combatant, card: Card, slot_index: Optional[int], reason: str) -> int:
        value = cure_value(self.rng)
        self.add_effect(
            combatant.player_id, EFFECT_CURED, reason,
            card_id=card.id, slot_index=slot_index, new_value=value,
        )
        return value

    def neutralize_zombies(self):
        """Each shotgun neutralizes every zombie its owner's opponents hold."""
        for shooter in self.combatants:
            if not shooter.has_shotgun() or self.is_eliminated(shooter.player_id):
                continue
            for target in self.combatants:
                if target is shooter or self.is_eliminated(target.player_id):
                    continue
                for card, slot_index in target.zombie_cards():
                    if card.id in self.neutralized:
                        continue
                    value = self.cure(target, card, slot_index, REASON_SHOTGUN)
                    self.neutralized[card.id] = value
                    logger.info(f"Shotgun from {shooter.player_id} neutralized {card.id} of {target.player_id} to {value}")

    def eliminate_zombie_holders(self) -> Set[str]:
        """Shotgun elimination variant: returns shooters credited with a kill."""
        shooters = set()
        for shooter in self.combatants:
            if not shooter.has_shotgun():
                continue
            for target in self.combatants:
                if target is shooter or not target.zombie_cards():
                    continue
                if not self.is_eliminated(target.player_id):
                    self.eliminate(target.player_id)
                    shooters.add(shooter.player_id)
        return shooters

    def roles(self, index: int) -> List[Tuple[str, int]]:
        roles = []
        for combatant in self.combatants:
            if self.is_eliminated(combatant.player_id):
                roles.append((ROLE_EMPTY, 0))
            else:
                roles.append(classify(combatant.slot(index), self.neutralized))
        return roles

    def record_slot(self, index: int, values: List[int], outcome: Optional[str] = None):
        ids = [c.player_id for c in self.combatants]
        if outcome is None:
            top = max(values)
            leaders = [pid for pid, v in zip(ids, values) if v == top]
            outcome = leaders[0] if len(leaders) == 1 else OUTCOME_DRAW
        self.result.slot_details.append(SlotDetail(
            index=index,
            values=dict(zip(ids, values)),
            cards={c.player_id: c.slot(index) for c in self.combatants},
            outcome=outcome,
        ))
        for pid, value in zip(ids, values):
            self.result.totals[pid] = self.result.totals.get(pid, 0) + value


def evaluate_duel(first: Combatant, second: Combatant, rng: Optional[random.Random] = None,
                  group_id: Optional[int] = None, shotgun_eliminates: bool = False) -> BattleResult:
    """
    Resolve a two-player battle.

    Args:
        first, second: Both players' slot arrays and hands
        rng: Source of cure values
        group_id: Group id recorded on the result
        shotgun_eliminates: Use the elimination variant of the shotgun

    Returns:
        BattleResult with winners, losers, per-slot values and effects
    """
    res = _Resolution([first, second], group_id, rng or random.Random())
    result = res.result
    a, b = first.player_id, second.player_id

    if shotgun_eliminates:
        shooters = res.eliminate_zombie_holders()
        if result.eliminated:
            if len(shooters) == 1:
                winner = next(iter(shooters))
                result.winners.append(winner)
                result.losers.append(b if winner == a else a)
            else:
                result.losers.extend([a, b])
            for i in range(SLOT_COUNT):
                res.record_slot(i, [0, 0], OUTCOME_ELIMINATED)
            return result
    else:
        res.neutralize_zombies()

    for i in range(SLOT_COUNT):
        (role1, v1), (role2, v2) = res.roles(i)
        outcome = None

        if role1 == ROLE_ZOMBIE and role2 == ROLE_ZOMBIE:
            v1, v2 = 0, 0
            outcome = OUTCOME_CLASH
        elif role1 == ROLE_ZOMBIE and role2 == ROLE_INJECTION:
            v1, v2 = res.cure(first, first.slot(i), i, REASON_INJECTION), 0
        elif role2 == ROLE_ZOMBIE and role1 == ROLE_INJECTION:
            v1, v2 = 0, res.cure(second, second.slot(i), i, REASON_INJECTION)
        elif role1 == ROLE_ZOMBIE:
            v1, v2 = ZOMBIE_VALUE, 0
            if role2 == ROLE_STANDARD:
                res.infect(b, REASON_ZOMBIE, i)
        elif role2 == ROLE_ZOMBIE:
            v1, v2 = 0, ZOMBIE_VALUE
            if role1 == ROLE_STANDARD:
                res.infect(a, REASON_ZOMBIE, i)

        res.record_slot(i, [v1, v2], outcome)

    total_a = result.totals.get(a, 0)
    total_b = result.totals.get(b, 0)
    if total_a > total_b:
        result.winners.append(a)
        result.losers.append(b)
    elif total_b > total_a:
        result.winners.append(b)
        result.losers.append(a)
    else:
        result.losers.extend([a, b])

    logger.debug(f"Duel {a} vs {b}: {total_a}-{total_b}, winners={result.winners}")
    return result


def evaluate_three_way(first: Combatant, second: Combatant, third: Combatant,
                       rng: Optional[random.Random] = None, group_id: Optional[int] = None,
                       shotgun_eliminates: bool = False) -> BattleResult:
    """
    Resolve a three-player battle.

    Per slot, two or more live zombies clash: every zombie and every standard
    card in the slot scores 0 and the standard owners are infected. A single
    zombie facing an injection is cured by the first injection in player order,
    whose owner is credited as a winner. A single zombie with no injection
    scores 999 and infects every standard card beside it.

    Winners are every non-eliminated player tied at the highest total plus
    any player credited with a cure.
    """
    combatants = [first, second, third]
    res = _Resolution(combatants, group_id, rng or random.Random())
    result = res.result
    ids = [c.player_id for c in combatants]
    credited: List[str] = []

    if shotgun_eliminates:
        credited.extend(pid for pid in ids if pid in res.eliminate_zombie_holders())
    else:
        res.neutralize_zombies()

    for i in range(SLOT_COUNT):
        roles = res.roles(i)
        values = [value if role == ROLE_STANDARD else 0 for role, value in roles]
        zombies = [k for k, (role, _) in enumerate(roles) if role == ROLE_ZOMBIE]
        injections = [k for k, (role, _) in enumerate(roles) if role == ROLE_INJECTION]
        standards = [k for k, (role, _) in enumerate(roles) if role == ROLE_STANDARD]
        outcome = None

        if len(zombies) >= 2:
            for k in zombies + standards:
                values[k] = 0
            for k in standards:
                res.infect(ids[k], REASON_ZOMBIE_CLASH, i)
            outcome = OUTCOME_CLASH
        elif zombies and injections:
            target = zombies[0]
            healer = injections[0]
            values[target] = res.cure(combatants[target], combatants[target].slot(i), i, REASON_INJECTION)
            if ids[healer] not in credited:
                credited.append(ids[healer])
        elif zombies:
            target = zombies[0]
            values[target] = ZOMBIE_VALUE
            for k in standards:
                values[k] = 0
                res.infect(ids[k], REASON_ZOMBIE, i)

        res.record_slot(i, values, outcome)

    contenders = [pid for pid in ids if not res.is_eliminated(pid)]
    if contenders:
        best = max(result.totals.get(pid, 0) for pid in contenders)
        leaders = [pid for pid in contenders if result.totals.get(pid, 0) == best]
    else:
        leaders = []

    result.winners = [pid for pid in ids if pid in credited or pid in leaders]
    result.losers = [pid for pid in ids if pid not in result.winners]

    logger.debug(f"Three-way {ids}: totals={result.totals}, winners={result.winners}")
    return result


def group_players(participants: List[Player]) -> Dict[int, List[Player]]:
    """Active players keyed by group id, in participant order."""
    groups: Dict[int, List[Player]] = {}
    for player in participants:
        if player.is_active and player.group_id is not None:
            groups.setdefault(player.group_id, []).append(player)
    return groups


def evaluate_round(participants: List[Player], slots_map: Dict[str, Slots],
                   hands_map: Dict[str, List[Card]], rng: Optional[random.Random] = None,
                   shotgun_eliminates: bool = False) -> List[BattleResult]:
    """
    Evaluate every group for the round.

    Args:
        participants: Session participants with group ids assigned
        slots_map: player_id -> committed slot array
        hands_map: player_id -> current hand (for shotgun reach)
        rng: Seeded generator; groups are resolved in ascending group id order

    Returns:
        One BattleResult per group with an opponent
    """
    rng = rng or random.Random()
    results = []

    for group_id, members in sorted(group_players(participants).items()):
        combatants = [
            Combatant(
                player_id=p.id,
                slots=list(slots_map.get(p.id) or empty_slots()),
                hand=list(hands_map.get(p.id, [])),
            )
            for p in members
        ]
        if len(combatants) == 2:
            results.append(evaluate_duel(*combatants, rng=rng, group_id=group_id,
                                         shotgun_eliminates=shotgun_eliminates))
        elif len(combatants) == 3:
            results.append(evaluate_three_way(*combatants, rng=rng, group_id=group_id,
                                              shotgun_eliminates=shotgun_eliminates))
        elif len(combatants) == 1:
            logger.info(f"Group {group_id} has no opponent for {combatants[0].player_id}, skipping battle")
        else:
            logger.warning(f"Invalid group size {len(combatants)} for group {group_id}, skipping")

    logger.info(f"Evaluated {len(results)} battles")
    return results
