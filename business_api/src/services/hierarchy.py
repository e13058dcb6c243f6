"""
Team hierarchy resolution over the manager -> report graph.

A team is the root user plus everyone reachable by following manager -> report
edges. The graph comes from user rows and is not guaranteed to be a tree:
cycles and self-managed users occur in real data.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

TeamSet = FrozenSet[int]


@dataclass(frozen=True)
class OrgNode:
    """One user row of the organizational snapshot."""
    user_id: Any
    manager_id: Any = None


# PUBLIC_INTERFACE
def normalize_id(value: Any) -> Optional[int]:
    """
    Coerce a user, role or module id to a positive int, or None when it is not one.

    Accepts ints and integral strings ("12", " 12 "). Booleans, floats with a
    fractional part, zero and negatives are rejected.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float):
        return int(value) if value.is_integer() and value > 0 else None
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.isdecimal():
            parsed = int(stripped)
            return parsed if parsed > 0 else None
    return None


def build_children_map(org_snapshot: Iterable[OrgNode]) -> Dict[int, List[int]]:
    """Index the snapshot as manager_id -> [child ids], skipping invalid edges."""
    children: Dict[int, List[int]] = {}
    for node in org_snapshot:
        manager_id = normalize_id(node.manager_id)
        child_id = normalize_id(node.user_id)
        if manager_id is None or child_id is None:
            continue
        children.setdefault(manager_id, []).append(child_id)
    return children


# PUBLIC_INTERFACE
def compute_team(root_user_id: Any, org_snapshot: Iterable[OrgNode]) -> TeamSet:
    """
    Return the root plus every transitive report of the root.

    Breadth-first over the children map; the visited set guarantees termination
    on cyclic graphs. An invalid root yields an empty set, which callers treat
    as "no visible records".
    """
    root_id = normalize_id(root_user_id)
    if root_id is None:
        return frozenset()

    children = build_children_map(org_snapshot)
    visited = {root_id}
    queue = deque([root_id])
    while queue:
        current = queue.popleft()
        for child_id in children.get(current, ()):
            if child_id not in visited:
                visited.add(child_id)
                queue.append(child_id)
    return frozenset(visited)
