"""
In-memory shared store with conditional updates and change notifications.

Every call is async and returns deep copies, so callers never hold a live
reference to persisted data. Writes that carry an expectation only apply when
the expectation still holds and report how many rows they affected, which is
what the phase election and the per-row compare-and-swap writes rely on.
"""

import asyncio
import copy
import logging
from typing import Any, Dict, List, Optional, Tuple

from .errors import StoreError
from .models import GameState

logger = logging.getLogger(__name__)

_MISSING = object()


class InMemoryStore:
    """Shared store for game state rows and per-player tables."""

    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self._states: Dict[str, GameState] = {}
        self._tables: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self._subscribers: List[asyncio.Queue] = []
        # Number of upcoming calls that fail with StoreError
        self.fail_next = 0

    async def _io(self):
        if self.fail_next > 0:
            self.fail_next -= 1
            raise StoreError("store unavailable")
        # yield so concurrent clients interleave between read and write
        await asyncio.sleep(self.latency)

    def _notify(self, session_id: str, table: str, key: Optional[str] = None):
        change = {"session_id": session_id, "table": table, "key": key}
        for queue in list(self._subscribers):
            queue.put_nowait(change)

    def subscribe(self) -> asyncio.Queue:
        """Get a queue that receives a change record for every write."""
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue):
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    # Game state

    async def get_state(self, session_id: str) -> Optional[GameState]:
        await self._io()
        state = self._states.get(session_id)
        return copy.deepcopy(state) if state else None

    async def create_state(self, state: GameState) -> bool:
        """Insert a state row unless one already exists."""
        await self._io()
        if state.id in self._states:
            return False
        self._states[state.id] = copy.deepcopy(state)
        self._notify(state.id, 'state')
        return True

    async def update_state(self, session_id: str, changes: Dict[str, Any],
                           expect: Optional[Dict[str, Any]] = None) -> int:
        """
        Apply field changes when every expected field still matches.

        Returns:
            Number of rows affected (0 or 1)
        """
        await self._io()
        state = self._states.get(session_id)
        if state is None:
            return 0
        for name, value in (expect or {}).items():
            if getattr(state, name, _MISSING) != value:
                return 0
        for name, value in changes.items():
            setattr(state, name, copy.deepcopy(value))
        self._notify(session_id, 'state')
        return 1

    async def replace_state(self, state: GameState, expect: Optional[Dict[str, Any]] = None) -> int:
        """Swap in a whole state row when every expected field still matches."""
        await self._io()
        current = self._states.get(state.id)
        if current is None:
            return 0
        for name, value in (expect or {}).items():
            if getattr(current, name, _MISSING) != value:
                return 0
        self._states[state.id] = copy.deepcopy(state)
        self._notify(state.id, 'state')
        return 1

    # Per-player tables

    def _table(self, session_id: str, table: str) -> Dict[str, Any]:
        return self._tables.setdefault((session_id, table), {})

    async def get_row(self, session_id: str, table: str, key: str) -> Optional[Any]:
        await self._io()
        row = self._table(session_id, table).get(key)
        return copy.deepcopy(row) if row is not None else None

    async def list_rows(self, session_id: str, table: str) -> Dict[str, Any]:
        await self._io()
        return copy.deepcopy(self._table(session_id, table))

    async def put_row(self, session_id: str, table: str, key: str, value: Any):
        await self._io()
        self._table(session_id, table)[key] = copy.deepcopy(value)
        self._notify(session_id, table, key)

    async def insert_row(self, session_id: str, table: str, key: str, value: Any) -> bool:
        """Insert-if-absent. Returns False when the key already exists."""
        await self._io()
        rows = self._table(session_id, table)
        if key in rows:
            return False
        rows[key] = copy.deepcopy(value)
        self._notify(session_id, table, key)
        return True

    async def update_row(self, session_id: str, table: str, key: str, value: Any,
                         expected_version: int) -> int:
        """Replace a row only if its `version` attribute equals expected_version."""
        await self._io()
        rows = self._table(session_id, table)
        current = rows.get(key)
        current_version = getattr(current, 'version', 0) if current is not None else 0
        if current_version != expected_version:
            return 0
        rows[key] = copy.deepcopy(value)
        self._notify(session_id, table, key)
        return 1

    async def delete_rows(self, session_id: str, table: str, keys: Optional[List[str]] = None) -> int:
        """Delete the given keys, or the whole table when keys is None."""
        await self._io()
        rows = self._table(session_id, table)
        if keys is None:
            count = len(rows)
            rows.clear()
        else:
            count = 0
            for key in keys:
                if rows.pop(key, None) is not None:
                    count += 1
        if count:
            self._notify(session_id, table)
        return count
