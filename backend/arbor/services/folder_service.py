"""Deep module for the document-folder tree.

Owns folder CRUD, ACL replacement, contents listing and rollup reads.
Placement changes go through the BulkMutationCoordinator; rollups are
refreshed by the StatsAggregator in the same transaction as the change.
"""

import logging
import uuid
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from ..exceptions import FolderNotEmptyError, PermissionDeniedError, ValidationError
from ..models import Folder, NodeKind, Operation
from ..repositories.document_repository import DocumentRepository
from ..repositories.node_store import NodeStore
from ..schemas.folder import FolderCreate, FolderUpdate
from ..schemas.node import TreeNode
from .bulk_mutation import BulkMutationCoordinator, PlacementOp
from .path_maintainer import build_path
from .permission_service import can_create_root
from .stats_aggregator import Stats, StatsAggregator
from .tree_service import TreeService

logger = logging.getLogger(__name__)


class FolderService:
    """All folder operations behind a simple interface.

    Public methods:
        create_folder / get_folder / update_folder
        delete_folder       -- hard fail while subfolders or documents remain
        set_permissions     -- replace the read/write ACL (manage-permissions)
        get_contents        -- readable subfolders plus documents
        get_stats           -- stored subtree rollups
        count_subfolders    -- direct subfolder count
        list_public_folders -- folders flagged public, for anonymous browsing
        get_accessible_tree -- folders the actor may read
        get_path
        apply_batch         -- bulk reorder / reparent
    """

    def __init__(self, db: Session, lock_timeout_seconds: float = 5.0):
        self.db = db
        self.store = NodeStore(db, lock_timeout_seconds)
        self.documents = DocumentRepository(db)
        self.tree = TreeService(self.store, self.documents)
        self.stats = StatsAggregator(self.store, self.documents)
        self.coordinator = BulkMutationCoordinator(self.store, self.documents)

    def create_folder(self, data: FolderCreate, actor) -> Folder:
        """Create a folder at the root or under a parent the actor may write."""
        parent_path = None
        if data.parent_id is not None:
            parent = self.store.get(NodeKind.FOLDER, data.parent_id)
            self.tree.require(actor, parent, Operation.WRITE)
            parent_path = parent.path
        else:
            decision = can_create_root(actor, NodeKind.FOLDER)
            if not decision:
                raise PermissionDeniedError(decision.reason, operation=Operation.WRITE.value)

        folder_id = data.id or f"fd-{uuid.uuid4().hex[:12]}"
        if self.store.kind_of(folder_id) is not None:
            raise ValidationError(f"Node id already in use: {folder_id}", field="id")

        folder = Folder(
            id=folder_id,
            name=data.name,
            parent_id=data.parent_id,
            order=data.order,
            path=build_path(parent_path, folder_id),
            is_public=data.is_public,
            owner_id=actor.id,
        )
        self.store.add(folder)
        self.db.commit()
        logger.info("Folder created", extra={"folder_id": folder.id, "parent_id": folder.parent_id})
        return folder

    def get_folder(self, folder_id: str, actor) -> Folder:
        folder = self.store.get(NodeKind.FOLDER, folder_id)
        self.tree.require(actor, folder, Operation.READ)
        return folder

    def update_folder(self, folder_id: str, data: FolderUpdate, actor) -> Folder:
        """Rename, toggle public, or move (``parent_id``) and reorder."""
        fields = data.model_fields_set
        folder = self.store.get(NodeKind.FOLDER, folder_id)
        self.tree.require(actor, folder, Operation.WRITE)

        def apply_fields() -> None:
            if "name" in fields and data.name is not None:
                folder.name = data.name.strip()
            if "is_public" in fields and data.is_public is not None:
                folder.is_public = data.is_public

        if fields & {"parent_id", "order"}:
            op = PlacementOp(
                id=folder_id,
                order=data.order,
                parent_id=data.parent_id,
                reparent="parent_id" in fields,
            )
            self.coordinator.apply_batch(NodeKind.FOLDER, [op], actor, then=apply_fields).raise_for_status()
        else:
            with self.store.transaction():
                apply_fields()
        return folder

    def delete_folder(self, folder_id: str, actor) -> None:
        folder = self.store.get(NodeKind.FOLDER, folder_id)
        self.tree.require(actor, folder, Operation.DELETE)

        subfolders = self.count_subfolders(folder_id)
        documents = self.documents.count_by_folder(folder_id)
        if subfolders or documents:
            raise FolderNotEmptyError(folder_id, subfolders, documents)

        self.store.delete(folder)
        self.db.commit()
        logger.info("Folder deleted", extra={"folder_id": folder_id})

    def set_permissions(self, folder_id: str, read: Iterable[str], write: Iterable[str], actor) -> Folder:
        folder = self.store.get(NodeKind.FOLDER, folder_id)
        self.tree.require(actor, folder, Operation.MANAGE_PERMISSIONS)
        self.store.replace_acl(NodeKind.FOLDER, folder_id, read, write)
        self.db.commit()
        logger.info("Folder permissions replaced", extra={"folder_id": folder_id})
        return folder

    def get_permissions(self, folder_id: str):
        read, write = self.store.acl_sets(NodeKind.FOLDER, folder_id)
        return sorted(read), sorted(write)

    def get_contents(self, folder_id: str, actor):
        """(folder, readable direct subfolders, direct documents)."""
        folder = self.get_folder(folder_id, actor)
        subfolders = self.store.children_of(NodeKind.FOLDER, [folder_id]).get(folder_id, [])
        readable = self.tree.readable_ids(NodeKind.FOLDER, subfolders, actor)
        visible = [sub for sub in subfolders if readable[sub.id]]
        return folder, visible, self.documents.list_by_folder(folder_id)

    def get_stats(self, folder_id: str, actor) -> Stats:
        self.get_folder(folder_id, actor)
        return self.stats.get_stats(folder_id)

    def count_subfolders(self, folder_id: str) -> int:
        return self.store.count_children(NodeKind.FOLDER, folder_id)

    def list_public_folders(self) -> List[Folder]:
        """Every folder flagged public, by name. Needs no actor."""
        return self.store.folders.list_public()

    def get_accessible_tree(self, actor, root_id: Optional[str] = None) -> List[TreeNode]:
        return self.tree.get_tree(NodeKind.FOLDER, root_id=root_id, actor=actor)

    def get_path(self, folder_id: str, actor) -> List[Folder]:
        self.get_folder(folder_id, actor)
        return self.tree.get_path(NodeKind.FOLDER, folder_id)

    def apply_batch(self, ops: List[PlacementOp], actor):
        return self.coordinator.apply_batch(NodeKind.FOLDER, ops, actor)
