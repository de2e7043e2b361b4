"""Materialized path maintenance after a reparent."""

import logging
from collections import deque
from typing import Dict, Iterable, List, Optional, Set

from ..models import NodeKind
from ..repositories.node_store import ChildrenIndex, NodeStore, TreeNodeModel

PATH_SEPARATOR = "/"

logger = logging.getLogger(__name__)


def build_path(parent_path: Optional[str], node_id: str) -> str:
    """``/<id>`` for roots, ``<parent path>/<id>`` otherwise."""
    if parent_path is None:
        return PATH_SEPARATOR + node_id
    return parent_path + PATH_SEPARATOR + node_id


def path_ids(path: str) -> List[str]:
    """Ancestor chain encoded in a path, root first, the node itself last."""
    return [segment for segment in path.split(PATH_SEPARATOR) if segment]


class PathMaintainer:
    """Rewrites stored paths for a moved node and all of its descendants.

    The children index is built once on first use and reused by every
    recompute call on the same instance, so a batch that moves many nodes
    reads the tree one time. Build a new instance after further moves.
    """

    def __init__(self, store: NodeStore, kind: NodeKind):
        self.store = store
        self.kind = kind
        self._nodes: Optional[Dict[str, TreeNodeModel]] = None
        self._children: Optional[ChildrenIndex] = None

    def _load(self) -> None:
        if self._nodes is None:
            self.store.flush()
            nodes = self.store.list_nodes(self.kind)
            self._nodes = {node.id: node for node in nodes}
            self._children = self.store.children_index(self.kind, nodes)

    def recompute_paths(self, node_id: str) -> Set[str]:
        """Breadth-first from *node_id*; returns ids whose stored path changed.

        Siblings and ancestors of the moved node are never touched.
        """
        self._load()
        start = self._nodes[node_id]
        parent = self._nodes.get(start.parent_id) if start.parent_id else None

        changed: Set[str] = set()
        queue = deque([(start, parent.path if parent is not None else None)])
        while queue:
            node, parent_path = queue.popleft()
            new_path = build_path(parent_path, node.id)
            if node.path != new_path:
                node.path = new_path
                changed.add(node.id)
            for child in self._children.get(node.id, []):
                queue.append((child, new_path))

        if changed:
            logger.debug(
                "Recomputed paths",
                extra={"kind": self.kind.value, "root": node_id, "changed": len(changed)},
            )
        return changed

    def recompute_many(self, node_ids: Iterable[str]) -> Set[str]:
        """Recompute for several moved nodes, walking each affected subtree once.

        A moved node whose ancestor also moved is covered by the ancestor's walk.
        """
        self._load()
        moved = set(node_ids)
        tops = [node_id for node_id in moved if not self._has_moved_ancestor(node_id, moved)]
        changed: Set[str] = set()
        for node_id in sorted(tops):
            changed |= self.recompute_paths(node_id)
        return changed

    def _has_moved_ancestor(self, node_id: str, moved: Set[str]) -> bool:
        seen = {node_id}
        current = self._nodes[node_id].parent_id
        while current is not None and current not in seen:
            if current in moved:
                return True
            seen.add(current)
            parent = self._nodes.get(current)
            current = parent.parent_id if parent is not None else None
        return False
