"""Business logic services."""

from .bulk_mutation import BulkMutationCoordinator, BatchOutcome, BatchStatus, PlacementOp, placement_ops
from .cycle_guard import find_cycle, validate_moves
from .path_maintainer import PathMaintainer
from .permission_service import can_access, can_create_root, node_access, NodeAccess, AccessDecision
from .stats_aggregator import StatsAggregator, Stats
from .tree_service import TreeService
from .page_service import PageService
from .folder_service import FolderService
from .document_service import DocumentService

__all__ = [
    "BulkMutationCoordinator", "BatchOutcome", "BatchStatus", "PlacementOp", "placement_ops",
    "find_cycle", "validate_moves",
    "PathMaintainer",
    "can_access", "can_create_root", "node_access", "NodeAccess", "AccessDecision",
    "StatsAggregator", "Stats",
    "TreeService",
    "PageService",
    "FolderService",
    "DocumentService",
]
