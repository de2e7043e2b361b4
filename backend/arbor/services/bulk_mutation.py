"""Atomic batch placement: reorder, reparent and show/hide many nodes at once.

State machine of one batch::

    Received -> Validated -> Applying -> Committed
    Received -> Validated(fail) -> Rejected
    Received -> Validated -> Applying(fail) -> RolledBack
    Received -> Validated(tree moved, lock timeout) -> RolledBack

Validation (existence, duplicates, kind, permissions, cycles) never writes.
The write phase, path maintenance and rollup refresh share one transaction;
any failure in there rolls the whole batch back.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set

from sqlalchemy.exc import OperationalError, SQLAlchemyError

from ..exceptions import (
    ArborException,
    ConcurrentModificationError,
    DuplicateInBatchError,
    NodeKindMismatchError,
    NodeNotFoundError,
    PartialBatchFailure,
    PermissionDeniedError,
    ValidationError,
)
from ..models import NodeKind, Operation
from ..repositories.document_repository import DocumentRepository
from ..repositories.node_store import NodeStore, TreeNodeModel
from ..schemas.node import ORDER_MAX, ORDER_MIN
from .cycle_guard import validate_moves
from .path_maintainer import PathMaintainer, path_ids
from .permission_service import can_access, node_access
from .stats_aggregator import StatsAggregator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlacementOp:
    """One desired placement. ``None`` fields are left as they are.

    ``parent_id`` is applied only when ``reparent`` is set, so that
    "move to root" (``parent_id=None, reparent=True``) differs from
    "keep the current parent".
    """

    id: str
    order: Optional[int] = None
    parent_id: Optional[str] = None
    visible: Optional[bool] = None
    reparent: bool = False


class BatchStatus(str, Enum):
    APPLIED = "applied"
    REJECTED = "rejected"
    ROLLED_BACK = "rolled_back"


@dataclass
class BatchOutcome:
    status: BatchStatus
    changed: int = 0
    paths_updated: Set[str] = field(default_factory=set)
    error: Optional[ArborException] = None

    @property
    def applied(self) -> bool:
        return self.status == BatchStatus.APPLIED

    @property
    def status_code(self) -> int:
        if self.applied:
            return 200
        return self.error.status_code if self.error is not None else 500

    def to_dict(self) -> Dict[str, Any]:
        if self.applied:
            return {
                "status": self.status.value,
                "changed": self.changed,
                "paths_updated": sorted(self.paths_updated),
            }
        body = self.error.to_dict() if self.error is not None else {}
        body["status"] = self.status.value
        return body

    def raise_for_status(self) -> "BatchOutcome":
        """Re-raise the failure, for callers that want exceptions."""
        if not self.applied and self.error is not None:
            raise self.error
        return self


class BulkMutationCoordinator:
    """Validates and applies placement batches for one tree kind at a time.

    Public methods:
        apply_batch -- all-or-nothing; returns a BatchOutcome, never raises
                       for validation or write-phase failures
    """

    def __init__(self, store: NodeStore, documents: Optional[DocumentRepository] = None):
        self.store = store
        self.documents = documents or DocumentRepository(store.db)

    def apply_batch(
        self,
        kind: NodeKind,
        ops: Sequence[PlacementOp],
        actor,
        then: Optional[Callable[[], None]] = None,
    ) -> BatchOutcome:
        """Validate then apply *ops* in one transaction.

        ``then`` runs inside that transaction after the placement writes, so a
        caller's own field changes commit with the batch or not at all. An
        ArborException it raises rejects the whole batch.
        """
        if not ops:
            return BatchOutcome(BatchStatus.APPLIED)

        try:
            nodes = self._validate(kind, ops, actor)
        except ArborException as exc:
            # Nothing was written; release the transaction and any locks.
            self.store.db.rollback()
            logger.warning(
                "Batch rejected",
                extra={
                    "kind": kind.value,
                    "ops": len(ops),
                    "error_code": exc.error_code.value,
                    "details": exc.details,
                },
            )
            # A tree that moved under us is worth retrying; anything else is final.
            status = BatchStatus.ROLLED_BACK if exc.retryable else BatchStatus.REJECTED
            return BatchOutcome(status, error=exc)
        except OperationalError as exc:
            # Lock acquisition timed out before any write.
            self.store.db.rollback()
            logger.warning(
                "Batch lock wait timed out",
                extra={"kind": kind.value, "ops": len(ops)},
                exc_info=True,
            )
            return BatchOutcome(BatchStatus.ROLLED_BACK, error=_retryable(exc))

        try:
            with self.store.transaction():
                changed, paths_updated = self._write_phase(kind, ops, nodes)
                if then is not None:
                    then()
                    self.store.flush()
        except ArborException as exc:
            logger.warning(
                "Batch rejected after placement",
                extra={"kind": kind.value, "ops": len(ops), "error_code": exc.error_code.value},
            )
            status = BatchStatus.ROLLED_BACK if exc.retryable else BatchStatus.REJECTED
            return BatchOutcome(status, error=exc)
        except (PartialBatchFailure, SQLAlchemyError) as exc:
            logger.warning(
                "Batch rolled back",
                extra={
                    "kind": kind.value,
                    "ops": len(ops),
                    "node_id": getattr(exc, "node_id", None),
                },
                exc_info=True,
            )
            return BatchOutcome(BatchStatus.ROLLED_BACK, error=_retryable(exc))

        logger.info(
            "Batch committed",
            extra={"kind": kind.value, "changed": changed, "paths_updated": len(paths_updated)},
        )
        return BatchOutcome(BatchStatus.APPLIED, changed=changed, paths_updated=paths_updated)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate(self, kind: NodeKind, ops: Sequence[PlacementOp], actor) -> Dict[str, TreeNodeModel]:
        seen: Set[str] = set()
        for op in ops:
            if op.id in seen:
                raise DuplicateInBatchError(op.id)
            seen.add(op.id)
            if op.order is not None and not ORDER_MIN <= op.order <= ORDER_MAX:
                raise ValidationError(f"Order out of range for {op.id}: {op.order}", field="order")

        nodes, parents = self._load(kind, ops)

        # Serialize against other batches on the same trees, then make sure
        # nothing moved between our first read and the lock.
        roots = self._root_keys(nodes, parents)
        self.store.lock_trees(kind, roots)
        self.store.db.expire_all()
        nodes, parents = self._load(kind, ops)
        if self._root_keys(nodes, parents) != roots:
            raise ConcurrentModificationError()

        self._check_permissions(kind, ops, nodes, parents, actor)

        moves = [(op.id, op.parent_id) for op in ops if op.reparent]
        if moves:
            validate_moves(self.store.parent_map(kind), moves)
        return nodes

    def _load(self, kind: NodeKind, ops: Sequence[PlacementOp]):
        ids = [op.id for op in ops]
        nodes = self.store.get_many(kind, ids)
        self._require_all(kind, ids, nodes)

        parent_ids = [op.parent_id for op in ops if op.reparent and op.parent_id is not None]
        parents = self.store.get_many(kind, parent_ids)
        self._require_all(kind, parent_ids, parents)
        return nodes, parents

    def _require_all(self, kind: NodeKind, ids: List[str], found: Dict[str, TreeNodeModel]) -> None:
        missing = [node_id for node_id in ids if node_id not in found]
        if not missing:
            return
        elsewhere = self.store.kinds_of(missing)
        node_id = missing[0]
        if node_id in elsewhere:
            raise NodeKindMismatchError(node_id, kind.value, elsewhere[node_id].value)
        raise NodeNotFoundError(node_id, kind.value)

    @staticmethod
    def _root_keys(nodes: Dict[str, TreeNodeModel], parents: Dict[str, TreeNodeModel]) -> Set[str]:
        roots = set()
        for node in list(nodes.values()) + list(parents.values()):
            ids = path_ids(node.path)
            roots.add(ids[0] if ids else node.id)
        return roots

    def _check_permissions(
        self,
        kind: NodeKind,
        ops: Sequence[PlacementOp],
        nodes: Dict[str, TreeNodeModel],
        parents: Dict[str, TreeNodeModel],
        actor,
    ) -> None:
        acl = self.store.acl_index(kind, list(nodes) + list(parents))

        def check(node: TreeNodeModel) -> None:
            read, write = acl.get(node.id, ((), ()))
            decision = can_access(actor, node_access(node, read, write), Operation.WRITE)
            if not decision:
                raise PermissionDeniedError(decision.reason, node.id, Operation.WRITE.value)

        for op in ops:
            check(nodes[op.id])
            if op.reparent and op.parent_id is not None:
                check(parents[op.parent_id])

    # ------------------------------------------------------------------
    # Write phase
    # ------------------------------------------------------------------

    def _write_phase(self, kind: NodeKind, ops: Sequence[PlacementOp], nodes: Dict[str, TreeNodeModel]):
        old_paths = {node_id: node.path for node_id, node in nodes.items()}
        changed = 0
        moved: List[str] = []

        for op in ops:
            node = nodes[op.id]
            old_parent = node.parent_id
            try:
                if self._write(node, op):
                    changed += 1
                    if node.parent_id != old_parent:
                        moved.append(op.id)
                self.store.flush()
            except SQLAlchemyError as exc:
                raise PartialBatchFailure(op.id, exc) from exc

        paths_updated: Set[str] = set()
        if moved:
            paths_updated = PathMaintainer(self.store, kind).recompute_many(moved)
            if kind == NodeKind.FOLDER:
                touched = [old_paths[node_id] for node_id in moved]
                touched += [nodes[node_id].path for node_id in moved]
                StatsAggregator(self.store, self.documents).refresh_ancestors(touched)
        self.store.flush()
        return changed, paths_updated

    def _write(self, node: TreeNodeModel, op: PlacementOp) -> bool:
        """Apply one op to one row. True when any column actually changed."""
        dirty = False
        if op.order is not None and node.order != op.order:
            node.order = op.order
            dirty = True
        if op.visible is not None and node.visible != op.visible:
            node.visible = op.visible
            dirty = True
        if op.reparent and node.parent_id != op.parent_id:
            node.parent_id = op.parent_id
            dirty = True
        return dirty


def _retryable(exc: Exception) -> ConcurrentModificationError:
    node_id = getattr(exc, "node_id", None)
    if node_id:
        return ConcurrentModificationError(
            f"Batch rolled back after a failed write on {node_id}; retry the request"
        )
    return ConcurrentModificationError()


def placement_ops(items: Iterable[dict]) -> List[PlacementOp]:
    """Build ops from plain dicts; a present ``parent_id`` key means reparent."""
    return [
        PlacementOp(
            id=item["id"],
            order=item.get("order"),
            parent_id=item.get("parent_id"),
            visible=item.get("visible"),
            reparent="parent_id" in item,
        )
        for item in items
    ]
