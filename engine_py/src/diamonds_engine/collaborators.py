"""
External collaborators: identity, the player registry and the profile store.

The engine only depends on the small async interfaces below. The in-memory
implementations back the server and the tests.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional

from .constants import PRIVILEGED_ROLES, ROLE_PLAYER

logger = logging.getLogger(__name__)


@dataclass
class Identity:
    player_id: str
    display_name: str
    role: str = ROLE_PLAYER
    is_bot: bool = False

    @property
    def is_master(self) -> bool:
        return self.role in PRIVILEGED_ROLES


class IdentityProvider(ABC):
    @abstractmethod
    async def resolve(self, token: str) -> Optional[Identity]:
        """Map an auth token to an identity, or None if unknown."""


class PlayerRegistry(ABC):
    @abstractmethod
    async def eligible_players(self) -> List[Identity]:
        """Identities that may be seated at briefing."""


class ProfileStore(ABC):
    @abstractmethod
    async def fetch_score(self, player_id: str) -> Optional[int]:
        """Carried-over score, or None for a player with no profile."""

    @abstractmethod
    async def push_score(self, player_id: str, score: int):
        """Persist a final score."""


class InMemoryDirectory(IdentityProvider, PlayerRegistry):
    """Token-keyed identities doubling as the eligible player list."""

    def __init__(self):
        self._by_token: Dict[str, Identity] = {}

    def register(self, token: str, identity: Identity) -> Identity:
        self._by_token[token] = identity
        logger.info(f"Registered {identity.display_name} ({identity.player_id}) as {identity.role}")
        return identity

    async def resolve(self, token: str) -> Optional[Identity]:
        return self._by_token.get(token)

    async def eligible_players(self) -> List[Identity]:
        return list(self._by_token.values())


class InMemoryProfileStore(ProfileStore):
    def __init__(self, scores: Optional[Dict[str, int]] = None):
        self.scores: Dict[str, int] = dict(scores or {})

    async def fetch_score(self, player_id: str) -> Optional[int]:
        return self.scores.get(player_id)

    async def push_score(self, player_id: str, score: int):
        self.scores[player_id] = score
