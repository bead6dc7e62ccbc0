"""
Round scoring: per-battle outcome deltas followed by the team adjustment.
"""

import copy
import logging
from typing import Dict, List, Optional

from .constants import STATUS_ELIMINATED
from .models import BattleResult, Player
from .rules import RuleConfig, default_rules

logger = logging.getLogger(__name__)


def find_result(results: List[BattleResult], player_id: str) -> Optional[BattleResult]:
    for result in results:
        if result.outcome_for(player_id) is not None:
            return result
    return None


def outcome_delta(result: BattleResult, player_id: str, rules: RuleConfig) -> int:
    outcome = result.outcome_for(player_id)
    if outcome == 'eliminated':
        return rules.elimination_points
    if outcome == 'winner':
        return rules.win_points
    if outcome == 'loser':
        return rules.loss_points
    return 0


def team_adjustments(players: List[Player], rules: RuleConfig) -> Dict[str, int]:
    """
    Survivors (not infected) against zombies (infected), active players only.

    The strictly larger side gains `team_win_points` each and the smaller side
    takes `team_loss_points`. Equal sides leave everyone unchanged.
    """
    active = [p for p in players if p.is_active]
    survivors = [p for p in active if not p.is_zombie]
    zombies = [p for p in active if p.is_zombie]

    if len(survivors) == len(zombies):
        return {}

    winning_side, losing_side = (survivors, zombies) if len(survivors) > len(zombies) else (zombies, survivors)
    adjustments = {p.id: rules.team_win_points for p in winning_side}
    adjustments.update({p.id: rules.team_loss_points for p in losing_side})
    return adjustments


def apply_scores(participants: List[Player], results: List[BattleResult],
                 rules: Optional[RuleConfig] = None) -> List[Player]:
    """
    Apply one round of scoring.

    Args:
        participants: Players as they stand after evaluation
        results: BattleResults for the round
        rules: Score deltas to use

    Returns:
        New list of players with updated score, status and round_adjustment
    """
    rules = rules or default_rules
    updated = copy.deepcopy(participants)
    starting = {p.id: p.score for p in participants}

    for player in updated:
        result = find_result(results, player.id)
        if result is None:
            continue
        player.score += outcome_delta(result, player.id, rules)
        if result.outcome_for(player.id) == 'eliminated':
            player.status = STATUS_ELIMINATED
            logger.info(f"Player {player.id} eliminated in battle")

    adjustments = team_adjustments(updated, rules)
    for player in updated:
        player.score += adjustments.get(player.id, 0)
        player.round_adjustment = player.score - starting[player.id]

    if adjustments:
        logger.info(f"Team adjustment applied to {len(adjustments)} players")
    else:
        logger.info("Teams tied, no team adjustment")
    return updated
