"""
State diff computation for efficient updates.
"""

import copy
from typing import Any, Dict, List, Optional

TOP_LEVEL_FIELDS = ["version", "phase", "round", "is_paused", "time_remaining"]
WHOLE_FIELDS = ["me", "revealed_slots", "results", "offer"]


def compute_diff(
    old_state: Optional[Dict[str, Any]],
    new_state: Dict[str, Any],
) -> List[Dict[str, Any]]:
    """
    Compute a JSON Patch-style diff between two sanitized states.

    Args:
        old_state: Previous sanitized state sent to the viewer
        new_state: New sanitized state for the same viewer

    Returns:
        List of patch operations
    """
    if old_state is None:
        return []

    ops = []

    for field in TOP_LEVEL_FIELDS:
        if old_state.get(field) != new_state.get(field):
            ops.append({"op": "replace", "path": f"/{field}", "value": new_state.get(field)})

    old_players = old_state.get("participants", {})
    new_players = new_state.get("participants", {})

    for player_id in sorted(set(old_players) | set(new_players)):
        old_player = old_players.get(player_id)
        new_player = new_players.get(player_id)

        if old_player is None:
            ops.append({"op": "add", "path": f"/participants/{player_id}", "value": new_player})
        elif new_player is None:
            ops.append({"op": "remove", "path": f"/participants/{player_id}"})
        elif old_player != new_player:
            for field in sorted(set(old_player) | set(new_player)):
                if old_player.get(field) != new_player.get(field):
                    ops.append({
                        "op": "replace",
                        "path": f"/participants/{player_id}/{field}",
                        "value": new_player.get(field),
                    })

    # Nested structures are small enough to resend whole
    for field in WHOLE_FIELDS:
        if old_state.get(field) != new_state.get(field):
            ops.append({"op": "replace", "path": f"/{field}", "value": new_state.get(field)})

    return ops


def apply_diff(state: Dict[str, Any], ops: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Apply a diff to a state dictionary.

    Args:
        state: Current state dictionary
        ops: List of patch operations to apply

    Returns:
        Updated state dictionary
    """
    new_state = copy.deepcopy(state)

    for op in ops:
        path_parts = [p for p in op["path"].split("/") if p]
        if op["op"] in ("replace", "add"):
            _set_nested_value(new_state, path_parts, op.get("value"))
        elif op["op"] == "remove":
            _remove_nested_value(new_state, path_parts)

    return new_state


def _set_nested_value(obj: Dict[str, Any], path: List[str], value: Any):
    """Set a value at a nested path in a dictionary."""
    current = obj
    for key in path[:-1]:
        if not isinstance(current.get(key), dict):
            current[key] = {}
        current = current[key]
    if path:
        current[path[-1]] = value


def _remove_nested_value(obj: Dict[str, Any], path: List[str]):
    """Remove a value at a nested path in a dictionary."""
    current = obj
    for key in path[:-1]:
        if key not in current:
            return
        current = current[key]
    if path and path[-1] in current:
        del current[path[-1]]


def should_send_full_state(ops: List[Dict[str, Any]], threshold: int = 20) -> bool:
    """Send a full state instead of a patch when the patch is large or a phase changed."""
    if len(ops) > threshold:
        return True
    return any(op["path"] in ("/phase", "/round") for op in ops)
