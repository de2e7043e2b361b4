"""NodeStore: persisted repository of tree nodes and their ACL entries.

The only component that reads or writes pages, folders and ACL rows. One
instance is built per request around an explicit Session and passed to every
tree component that needs storage.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple, Union

from sqlalchemy import func, or_, select, text
from sqlalchemy.orm import Session

from ..database import is_postgresql
from ..exceptions import NodeKindMismatchError, NodeNotFoundError
from ..models import AclEntry, AclPermission, Folder, NodeKind, Page, PageStatus, TREE_KINDS
from .base import BaseRepository

logger = logging.getLogger(__name__)

TreeNodeModel = Union[Page, Folder]
ChildrenIndex = Dict[Optional[str], List[TreeNodeModel]]

PAGE_SORT_COLUMNS = {
    "updated_at": Page.updated_at,
    "created_at": Page.created_at,
    "published_at": Page.published_at,
    "title": Page.title,
}


class PageRepository(BaseRepository[Page]):
    model_class = Page

    def _not_found(self, entity_id: str) -> NodeNotFoundError:
        return NodeNotFoundError(entity_id, NodeKind.PAGE.value)

    def get_by_slug(self, slug: str) -> Optional[Page]:
        return self.db.query(Page).filter(Page.slug == slug).first()

    def search(
        self,
        status: Optional[PageStatus] = None,
        text_query: Optional[str] = None,
        owner_id: Optional[str] = None,
        readable_by: Optional[str] = None,
        sort_by: str = "updated_at",
        descending: bool = True,
        offset: int = 0,
        limit: int = 10,
    ) -> Tuple[List[Page], int]:
        """One page of matching pages plus the total match count.

        ``readable_by`` restricts to pages that actor owns, holds a grant
        on, or that are published.
        """
        q = self._base_query()
        if status is not None:
            q = q.filter(Page.status == status)
        if owner_id:
            q = q.filter(Page.owner_id == owner_id)
        if text_query:
            pattern = f"%{text_query}%"
            q = q.filter(or_(Page.title.ilike(pattern), Page.slug.ilike(pattern), Page.body.ilike(pattern)))
        if readable_by is not None:
            granted = select(AclEntry.node_id).where(
                AclEntry.node_kind == NodeKind.PAGE, AclEntry.actor_id == readable_by
            )
            q = q.filter(or_(
                Page.owner_id == readable_by,
                Page.status == PageStatus.PUBLISHED,
                Page.id.in_(granted),
            ))

        total = q.count()
        column = PAGE_SORT_COLUMNS[sort_by]
        q = q.order_by(column.desc() if descending else column.asc(), Page.id)
        return q.offset(offset).limit(limit).all(), total


class FolderRepository(BaseRepository[Folder]):
    model_class = Folder

    def _not_found(self, entity_id: str) -> NodeNotFoundError:
        return NodeNotFoundError(entity_id, NodeKind.FOLDER.value)

    def list_public(self) -> List[Folder]:
        return self._base_query().filter(Folder.is_public.is_(True)).order_by(Folder.name, Folder.id).all()


def sort_siblings(nodes: Iterable[TreeNodeModel]) -> List[TreeNodeModel]:
    """Sibling order: ``order`` ascending, newer first on ties, then id.

    Stable multi-pass sort so no two stored states ever read back ambiguously.
    """
    ordered = sorted(nodes, key=lambda n: n.id)
    ordered.sort(key=lambda n: n.created_at or datetime.max, reverse=True)
    ordered.sort(key=lambda n: n.order or 0)
    return ordered


class NodeStore:
    """Storage access for both trees.

    Public methods:
        get / get_many                 -- lookups within one kind
        kind_of                        -- which tree an id lives in, if any
        list_nodes / parent_map        -- whole-kind reads
        children_index                 -- parent id -> sorted children, built once
        count_children                 -- direct child count
        add / delete                   -- single-row writes
        transaction / lock_trees       -- batch boundary and isolation
        acl_sets / acl_index / replace_acl / delete_acl
    """

    def __init__(self, db: Session, lock_timeout_seconds: float = 5.0):
        self.db = db
        self.lock_timeout_seconds = lock_timeout_seconds
        self.pages = PageRepository(db)
        self.folders = FolderRepository(db)
        self._repos = {NodeKind.PAGE: self.pages, NodeKind.FOLDER: self.folders}

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def repo(self, kind: NodeKind) -> BaseRepository:
        if kind not in TREE_KINDS:
            raise ValueError(f"Not a tree kind: {kind}")
        return self._repos[kind]

    def model_for(self, kind: NodeKind):
        return self.repo(kind).model_class

    def get(self, kind: NodeKind, node_id: str) -> TreeNodeModel:
        """Get a node of *kind*. Distinguishes unknown ids from ids of the other tree."""
        node = self.repo(kind).get_by_id_optional(node_id)
        if node is not None:
            return node
        other = self.kind_of(node_id)
        if other is not None:
            raise NodeKindMismatchError(node_id, kind.value, other.value)
        raise NodeNotFoundError(node_id, kind.value)

    def get_many(self, kind: NodeKind, node_ids: Iterable[str]) -> Dict[str, TreeNodeModel]:
        return self.repo(kind).get_many(node_ids)

    def kind_of(self, node_id: str) -> Optional[NodeKind]:
        for kind in TREE_KINDS:
            if self._repos[kind].get_by_id_optional(node_id) is not None:
                return kind
        return None

    def kinds_of(self, node_ids: Iterable[str]) -> Dict[str, NodeKind]:
        """Which tree each id belongs to, for ids found anywhere."""
        ids = list(set(node_ids))
        found: Dict[str, NodeKind] = {}
        for kind in TREE_KINDS:
            for node_id in self._repos[kind].get_many(ids):
                found.setdefault(node_id, kind)
        return found

    def list_nodes(self, kind: NodeKind) -> List[TreeNodeModel]:
        return self.db.query(self.model_for(kind)).all()

    def parent_map(self, kind: NodeKind) -> Dict[str, Optional[str]]:
        """Current persisted parent of every node of *kind*."""
        model = self.model_for(kind)
        rows = self.db.execute(select(model.id, model.parent_id)).all()
        return {row[0]: row[1] for row in rows}

    def children_index(
        self,
        kind: NodeKind,
        nodes: Optional[Iterable[TreeNodeModel]] = None,
    ) -> ChildrenIndex:
        """Map parent id (None for roots) to its sorted children.

        Built once per request from one query; callers reuse it for every
        recursive step instead of rescanning.
        """
        if nodes is None:
            nodes = self.list_nodes(kind)
        index: ChildrenIndex = {}
        for node in nodes:
            index.setdefault(node.parent_id, []).append(node)
        return {parent: sort_siblings(children) for parent, children in index.items()}

    def children_of(self, kind: NodeKind, parent_ids: Iterable[str]) -> ChildrenIndex:
        """Direct children of a few parents, without loading the whole kind."""
        ids = list(set(parent_ids))
        if not ids:
            return {}
        model = self.model_for(kind)
        rows = self.db.query(model).filter(model.parent_id.in_(ids)).all()
        return self.children_index(kind, rows)

    def count_children(self, kind: NodeKind, node_id: str) -> int:
        model = self.model_for(kind)
        return self.db.query(func.count(model.id)).filter(model.parent_id == node_id).scalar() or 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add(self, node: TreeNodeModel) -> TreeNodeModel:
        self.db.add(node)
        self.db.flush()
        return node

    def delete(self, node: TreeNodeModel) -> None:
        self.delete_acl(node.kind, node.id)
        self.db.delete(node)
        self.db.flush()

    def flush(self) -> None:
        self.db.flush()

    # ------------------------------------------------------------------
    # Transactions and isolation
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """One durable transaction: commit on success, roll back everything on error."""
        try:
            yield self.db
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def lock_trees(self, kind: NodeKind, root_ids: Iterable[str]) -> None:
        """Serialize batches that touch the same trees.

        PostgreSQL: transaction-scoped advisory lock per (kind, root id),
        acquired in sorted order, waiting at most ``lock_timeout_seconds``.
        SQLite: the transaction already holds the database write lock
        (``BEGIN IMMEDIATE``), so there is nothing more to take.

        Lock waits that time out raise ``sqlalchemy.exc.OperationalError``.
        """
        if not is_postgresql(self.db.get_bind()):
            return

        timeout_ms = str(int(self.lock_timeout_seconds * 1000))
        self.db.execute(
            text("SELECT set_config('lock_timeout', :timeout, true)"),
            {"timeout": f"{timeout_ms}ms"},
        )
        for root_id in sorted(set(root_ids)):
            self.db.execute(
                text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
                {"key": f"{kind.value}:{root_id}"},
            )
        logger.debug("Acquired tree locks", extra={"kind": kind.value, "roots": sorted(set(root_ids))})

    # ------------------------------------------------------------------
    # ACL
    # ------------------------------------------------------------------

    def acl_sets(self, kind: NodeKind, node_id: str) -> Tuple[frozenset, frozenset]:
        """(read actor ids, write actor ids) granted on one node."""
        return self.acl_index(kind, [node_id]).get(node_id, (frozenset(), frozenset()))

    def acl_index(
        self,
        kind: NodeKind,
        node_ids: Optional[Iterable[str]] = None,
    ) -> Dict[str, Tuple[frozenset, frozenset]]:
        """ACL sets for many nodes (all of *kind* when ``node_ids`` is None)."""
        query = self.db.query(AclEntry).filter(AclEntry.node_kind == kind)
        if node_ids is not None:
            ids = list(set(node_ids))
            if not ids:
                return {}
            query = query.filter(AclEntry.node_id.in_(ids))

        grouped: Dict[str, Tuple[Set[str], Set[str]]] = {}
        for entry in query.all():
            read, write = grouped.setdefault(entry.node_id, (set(), set()))
            if entry.permission == AclPermission.READ:
                read.add(entry.actor_id)
            else:
                write.add(entry.actor_id)
        return {
            node_id: (frozenset(read), frozenset(write))
            for node_id, (read, write) in grouped.items()
        }

    def replace_acl(
        self,
        kind: NodeKind,
        node_id: str,
        read: Iterable[str],
        write: Iterable[str],
    ) -> None:
        self.delete_acl(kind, node_id)
        for permission, actors in ((AclPermission.READ, read), (AclPermission.WRITE, write)):
            for actor_id in sorted(set(actors)):
                self.db.add(AclEntry(
                    node_kind=kind,
                    node_id=node_id,
                    actor_id=actor_id,
                    permission=permission,
                ))
        self.db.flush()

    def delete_acl(self, kind: NodeKind, node_id: str) -> int:
        return (
            self.db.query(AclEntry)
            .filter(AclEntry.node_kind == kind, AclEntry.node_id == node_id)
            .delete(synchronize_session="fetch")
        )
