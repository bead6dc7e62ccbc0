"""
Round grouping: pairs, with a trio absorbing an odd player.
"""

import logging
import random
from typing import Dict, List, Optional

from .models import Player

logger = logging.getLogger(__name__)


def partition(player_ids: List[str]) -> List[List[str]]:
    """
    Split an already-shuffled list into groups of two.

    When exactly three players remain they form one trio; a single player
    overall forms a solo group.
    """
    groups = []
    i = 0
    while i < len(player_ids):
        remaining = len(player_ids) - i
        if remaining == 3:
            groups.append(player_ids[i:i + 3])
            i += 3
        elif remaining >= 2:
            groups.append(player_ids[i:i + 2])
            i += 2
        else:
            groups.append(player_ids[i:i + 1])
            i += 1
    return groups


def assign_groups(players: List[Player], rng: Optional[random.Random] = None) -> Dict[str, int]:
    """
    Shuffle active players and assign group ids starting at 1.

    Mutates `group_id` on the players: active players receive their new group,
    everyone else is cleared.

    Returns:
        Mapping of player_id to group id
    """
    active_ids = [p.id for p in players if p.is_active]
    (rng or random).shuffle(active_ids)

    group_map: Dict[str, int] = {}
    for group_id, members in enumerate(partition(active_ids), start=1):
        if len(members) == 1:
            logger.warning(f"Lone player {members[0]} assigned to solo group {group_id}")
        elif len(members) == 3:
            logger.info(f"Creating 3-way battle (group {group_id})")
        for player_id in members:
            group_map[player_id] = group_id

    for player in players:
        player.group_id = group_map.get(player.id)

    logger.info(f"Grouped {len(active_ids)} active players into {len(set(group_map.values()))} groups")
    return group_map
