"""Cycle detection for proposed parent assignments: pure functions.

The check always runs against the *effective* parent graph: the persisted
parent map with every proposed assignment of the batch laid over it. Two
moves that are harmless one at a time (A under B, B under A) are caught
together.
"""

from typing import Mapping, Optional, Sequence, Tuple

from ..exceptions import CycleDetectedError

Move = Tuple[str, Optional[str]]


def find_cycle(
    parent_map: Mapping[str, Optional[str]],
    moves: Sequence[Move],
) -> Optional[str]:
    """Return the id of the first moved node that would close a cycle, else None.

    Args:
        parent_map: Persisted ``node id -> parent id`` for the whole kind.
        moves: Proposed ``(node id, new parent id)`` pairs; ``None`` means root.

    A node proposed as its own parent is rejected without walking. For every
    other moved node the walk starts at its new parent and climbs the
    effective graph; reaching the node again means a cycle. The walk is
    bounded by the number of nodes, so pre-existing damage elsewhere in the
    graph cannot make it spin.
    """
    effective = dict(parent_map)
    for node_id, new_parent_id in moves:
        if new_parent_id == node_id:
            return node_id
        effective[node_id] = new_parent_id

    limit = len(effective) + 1
    for node_id, new_parent_id in moves:
        visited = set()
        current = new_parent_id
        steps = 0
        while current is not None and steps < limit:
            if current == node_id:
                return node_id
            if current in visited:
                break
            visited.add(current)
            current = effective.get(current)
            steps += 1
    return None


def validate_moves(
    parent_map: Mapping[str, Optional[str]],
    moves: Sequence[Move],
) -> None:
    """Raise CycleDetectedError naming the node that would close a cycle."""
    offending = find_cycle(parent_map, moves)
    if offending is not None:
        raise CycleDetectedError(offending)
