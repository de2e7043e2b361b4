"""Recursive folder rollups: document count and total byte size per subtree."""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from ..models import Folder, NodeKind
from ..repositories.document_repository import DocumentRepository
from ..repositories.node_store import NodeStore
from .path_maintainer import path_ids

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Stats:
    document_count: int
    total_size: int


class StatsAggregator:
    """Keeps ``Folder.document_count`` / ``Folder.total_size`` current.

    A folder's rollup is its own documents plus the stored rollups of its
    direct children. After a change, only the ancestors of the changed
    folders are recomputed, deepest first, each exactly once; folders
    outside those chains keep their stored values.
    """

    def __init__(self, store: NodeStore, documents: DocumentRepository):
        self.store = store
        self.documents = documents

    def get_stats(self, folder_id: str) -> Stats:
        folder = self.store.get(NodeKind.FOLDER, folder_id)
        return Stats(folder.document_count or 0, folder.total_size or 0)

    def refresh_stats(self, folder_id: str) -> Stats:
        """Recompute one folder from its documents and its children's rollups."""
        folder = self.store.get(NodeKind.FOLDER, folder_id)
        return self._recompute([folder])[folder_id]

    def refresh_ancestors(self, changed_paths: Iterable[Optional[str]]) -> Dict[str, Stats]:
        """Refresh every folder on the given paths, bottom-up.

        Args:
            changed_paths: Materialized paths of folders whose subtree
                membership changed (old and new locations of a moved folder,
                the folder a document entered or left). ``None`` entries are
                ignored.

        Returns:
            The refreshed stats keyed by folder id.
        """
        affected: set = set()
        for path in changed_paths:
            if path:
                affected.update(path_ids(path))
        if not affected:
            return {}

        self.store.flush()
        folders = list(self.store.get_many(NodeKind.FOLDER, affected).values())
        # Deepest first so children are final before their parent sums them.
        folders.sort(key=lambda f: (-len(path_ids(f.path)), f.id))
        return self._recompute(folders)

    def _recompute(self, folders: List[Folder]) -> Dict[str, Stats]:
        ids = [f.id for f in folders]
        direct = self.documents.direct_totals(ids)
        children = self.store.children_of(NodeKind.FOLDER, ids)

        result: Dict[str, Stats] = {}
        for folder in folders:
            count, size = direct.get(folder.id, (0, 0))
            for child in children.get(folder.id, []):
                count += child.document_count or 0
                size += child.total_size or 0
            folder.document_count = count
            folder.total_size = size
            result[folder.id] = Stats(count, size)

        self.store.flush()
        logger.debug("Refreshed folder rollups", extra={"folders": len(result)})
        return result
