"""Read side of both trees: nested trees, ancestor paths and access checks by id.

Page and folder services build on this; routers never assemble trees or
ACL snapshots themselves.
"""

import logging
from typing import Callable, Dict, List, Optional

from ..exceptions import PermissionDeniedError
from ..models import Document, NodeKind, Operation
from ..repositories.document_repository import DocumentRepository
from ..repositories.node_store import ChildrenIndex, NodeStore, TreeNodeModel
from ..schemas.node import TreeNode
from .path_maintainer import path_ids
from .permission_service import AccessDecision, can_access, node_access

logger = logging.getLogger(__name__)

NodeFilter = Callable[[TreeNodeModel], bool]


class TreeService:
    """Tree queries behind a small interface.

    Public methods:
        get_tree      -- nested TreeNode list, sibling-sorted, optionally
                         pruned to what an actor may read
        get_path      -- ancestor chain, root first, the node itself last
        check_access  -- can_access by (kind, id); documents inherit their
                         folder's public flag and grants
        authorize     -- same, for an already loaded node
        require       -- authorize, raising PermissionDeniedError on deny
    """

    def __init__(self, store: NodeStore, documents: Optional[DocumentRepository] = None):
        self.store = store
        self.documents = documents or DocumentRepository(store.db)

    # ------------------------------------------------------------------
    # Trees
    # ------------------------------------------------------------------

    def get_tree(
        self,
        kind: NodeKind,
        root_id: Optional[str] = None,
        actor=None,
        include: Optional[NodeFilter] = None,
    ) -> List[TreeNode]:
        """Build the tree of *kind* from one read of the table.

        Args:
            root_id: Return only this node's subtree (as a one-element list).
            actor: When given, nodes the actor may not read are dropped
                together with their subtrees.
            include: Extra predicate; a node failing it prunes its subtree.
        """
        nodes = self.store.list_nodes(kind)
        children = self.store.children_index(kind, nodes)
        keep = self._filter(kind, actor, include)

        if root_id is not None:
            root = self.store.get(kind, root_id)
            if actor is not None:
                self.require(actor, root, Operation.READ)
            if include is not None and not include(root):
                return []
            return [self._build(root, children, keep)]

        return [
            self._build(node, children, keep)
            for node in children.get(None, [])
            if keep is None or keep(node)
        ]

    def _filter(self, kind: NodeKind, actor, include: Optional[NodeFilter]) -> Optional[NodeFilter]:
        if actor is None:
            return include
        acl = self.store.acl_index(kind)

        def keep(node: TreeNodeModel) -> bool:
            if include is not None and not include(node):
                return False
            read, write = acl.get(node.id, ((), ()))
            return bool(can_access(actor, node_access(node, read, write), Operation.READ))

        return keep

    def _build(self, node: TreeNodeModel, children: ChildrenIndex, keep: Optional[NodeFilter]) -> TreeNode:
        return TreeNode(
            id=node.id,
            kind=node.kind,
            name=node.name,
            label=node.label,
            parent_id=node.parent_id,
            order=node.order,
            path=node.path,
            visible=node.visible,
            is_public=node.is_public,
            status=getattr(node, "status", None),
            children=[
                self._build(child, children, keep)
                for child in children.get(node.id, [])
                if keep is None or keep(child)
            ],
        )

    def get_path(self, kind: NodeKind, node_id: str) -> List[TreeNodeModel]:
        node = self.store.get(kind, node_id)
        ids = path_ids(node.path)
        found = self.store.get_many(kind, ids)
        return [found[ancestor_id] for ancestor_id in ids if ancestor_id in found]

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def check_access(self, actor, kind: NodeKind, node_id: str, operation: Operation) -> AccessDecision:
        if kind == NodeKind.DOCUMENT:
            return self.authorize(actor, self.documents.get_by_id(node_id), operation)
        return self.authorize(actor, self.store.get(kind, node_id), operation)

    def authorize(self, actor, node, operation: Operation) -> AccessDecision:
        if isinstance(node, Document):
            folder = self.store.get(NodeKind.FOLDER, node.folder_id)
            read, write = self.store.acl_sets(NodeKind.FOLDER, folder.id)
            snapshot = node_access(node, read, write, kind=NodeKind.DOCUMENT, is_public=folder.is_public)
        else:
            read, write = self.store.acl_sets(node.kind, node.id)
            snapshot = node_access(node, read, write)
        return can_access(actor, snapshot, operation)

    def require(self, actor, node, operation: Operation) -> AccessDecision:
        decision = self.authorize(actor, node, operation)
        if not decision:
            logger.info(
                "Access denied",
                extra={
                    "actor": actor.id,
                    "node_id": node.id,
                    "operation": operation.value,
                    "reason": decision.reason,
                },
            )
            raise PermissionDeniedError(decision.reason, node.id, operation.value)
        return decision

    def readable_ids(self, kind: NodeKind, nodes: List[TreeNodeModel], actor) -> Dict[str, bool]:
        """Read decision for several nodes with one ACL query."""
        acl = self.store.acl_index(kind, [node.id for node in nodes])
        result = {}
        for node in nodes:
            read, write = acl.get(node.id, ((), ()))
            result[node.id] = bool(can_access(actor, node_access(node, read, write), Operation.READ))
        return result
