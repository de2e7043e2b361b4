"""Deep module for content pages: lifecycle, placement, menu and deletion.

Placement changes (parent, order, visibility) always go through the
BulkMutationCoordinator, even for a single page, so the cycle, path and
locking rules are the same everywhere.
"""

import logging
import re
import uuid
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ..exceptions import NodeNotFoundError, PermissionDeniedError, SlugConflictError, ValidationError
from ..models import NodeKind, Operation, Page, PageStatus
from ..models.timestamps import utcnow
from ..repositories.node_store import PAGE_SORT_COLUMNS, NodeStore
from ..schemas.node import TreeNode
from ..schemas.page import PageCreate, PageUpdate
from .bulk_mutation import BulkMutationCoordinator, PlacementOp
from .path_maintainer import PathMaintainer, build_path, path_ids
from .permission_service import can_create_root, role_allows
from .tree_service import TreeService

logger = logging.getLogger(__name__)

_SLUG_STRIP_RE = re.compile(r"[^a-z0-9]+")
# Guards the generated-slug suffix search.
MAX_SLUG_ATTEMPTS = 1000
MAX_PAGE_SIZE = 100


def slugify(text: str) -> str:
    """Lowercase ASCII slug: runs of anything else collapse to one hyphen."""
    slug = _SLUG_STRIP_RE.sub("-", text.lower()).strip("-")
    return slug or "page"


class PageService:
    """All page operations behind a simple interface.

    Public methods:
        create_page / get_page / get_published_by_slug
        list_pages      -- filtered, paginated flat listing
        update_page     -- descriptive fields; placement via the coordinator
        publish / unpublish / archive
        delete_page     -- children move up to the deleted page's parent
        get_tree        -- pages the actor may read
        get_public_menu -- published, visible pages only
        get_path
        apply_batch     -- bulk reorder / reparent / show-hide
    """

    def __init__(self, db: Session, lock_timeout_seconds: float = 5.0):
        self.db = db
        self.store = NodeStore(db, lock_timeout_seconds)
        self.tree = TreeService(self.store)
        self.coordinator = BulkMutationCoordinator(self.store, self.tree.documents)

    # ------------------------------------------------------------------
    # Create / read
    # ------------------------------------------------------------------

    def create_page(self, data: PageCreate, actor) -> Page:
        parent_path = None
        if data.parent_id is not None:
            parent = self.store.get(NodeKind.PAGE, data.parent_id)
            self.tree.require(actor, parent, Operation.WRITE)
            parent_path = parent.path
        else:
            decision = can_create_root(actor, NodeKind.PAGE)
            if not decision:
                raise PermissionDeniedError(decision.reason, operation=Operation.WRITE.value)

        page_id = data.id or f"pg-{uuid.uuid4().hex[:12]}"
        if self.store.kind_of(page_id) is not None:
            raise ValidationError(f"Node id already in use: {page_id}", field="id")

        page = Page(
            id=page_id,
            title=data.title,
            menu_title=data.menu_title,
            slug=self._claim_slug(data.slug, data.title),
            body=data.body,
            parent_id=data.parent_id,
            order=data.order,
            path=build_path(parent_path, page_id),
            visible=data.visible,
            status=PageStatus.DRAFT,
            owner_id=actor.id,
        )
        self.store.add(page)
        self.db.commit()
        logger.info("Page created", extra={"page_id": page.id, "parent_id": page.parent_id})
        return page

    def get_page(self, page_id: str, actor) -> Page:
        page = self.store.get(NodeKind.PAGE, page_id)
        self.tree.require(actor, page, Operation.READ)
        return page

    def get_published_by_slug(self, slug: str) -> Page:
        """Public lookup: unpublished pages are reported as missing."""
        page = self.store.pages.get_by_slug(slug)
        if page is None or page.status != PageStatus.PUBLISHED:
            raise NodeNotFoundError(slug, NodeKind.PAGE.value)
        return page

    def list_pages(
        self,
        actor,
        status: Optional[PageStatus] = None,
        text_query: Optional[str] = None,
        owner_id: Optional[str] = None,
        sort_by: str = "updated_at",
        descending: bool = True,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[Page], int]:
        """Flat, filtered, paginated listing with the total match count.

        Roles that may read every page see everything; anyone else sees their
        own pages, pages granted to them, and published pages.
        """
        if not actor.is_active:
            return [], 0
        if sort_by not in PAGE_SORT_COLUMNS:
            raise ValidationError(f"Cannot sort pages by {sort_by}", field="sort_by")
        page = max(1, page)
        limit = min(MAX_PAGE_SIZE, max(1, limit))
        readable_by = None if role_allows(actor, NodeKind.PAGE, Operation.READ) else actor.id
        return self.store.pages.search(
            status=status,
            text_query=text_query,
            owner_id=owner_id,
            readable_by=readable_by,
            sort_by=sort_by,
            descending=descending,
            offset=(page - 1) * limit,
            limit=limit,
        )

    # ------------------------------------------------------------------
    # Update / lifecycle
    # ------------------------------------------------------------------

    def update_page(self, page_id: str, data: PageUpdate, actor) -> Page:
        """Apply a partial update. Placement and fields commit together or not at all."""
        fields = data.model_fields_set
        page = self.store.get(NodeKind.PAGE, page_id)
        self.tree.require(actor, page, Operation.WRITE)

        def apply_fields() -> None:
            if "title" in fields and data.title is not None:
                page.title = data.title.strip()
            if "menu_title" in fields:
                page.menu_title = data.menu_title
            if "body" in fields and data.body is not None:
                page.body = data.body
            if "slug" in fields and data.slug is not None and data.slug != page.slug:
                page.slug = self._claim_slug(data.slug, page.title, exclude_id=page.id)
            if "status" in fields and data.status is not None:
                self._set_status(page, data.status)

        if fields & {"parent_id", "order", "visible"}:
            op = PlacementOp(
                id=page_id,
                order=data.order,
                parent_id=data.parent_id,
                visible=data.visible,
                reparent="parent_id" in fields,
            )
            self.coordinator.apply_batch(NodeKind.PAGE, [op], actor, then=apply_fields).raise_for_status()
        else:
            with self.store.transaction():
                apply_fields()
        return page

    def publish(self, page_id: str, actor) -> Page:
        return self._transition(page_id, PageStatus.PUBLISHED, actor)

    def unpublish(self, page_id: str, actor) -> Page:
        return self._transition(page_id, PageStatus.DRAFT, actor)

    def archive(self, page_id: str, actor) -> Page:
        return self._transition(page_id, PageStatus.ARCHIVED, actor)

    def _transition(self, page_id: str, status: PageStatus, actor) -> Page:
        page = self.store.get(NodeKind.PAGE, page_id)
        self.tree.require(actor, page, Operation.WRITE)
        self._set_status(page, status)
        self.db.commit()
        logger.info("Page status changed", extra={"page_id": page_id, "status": status.value})
        return page

    @staticmethod
    def _set_status(page: Page, status: PageStatus) -> None:
        if status == PageStatus.PUBLISHED and page.status != PageStatus.PUBLISHED:
            page.published_at = utcnow()
        page.status = status

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_page(self, page_id: str, actor) -> List[str]:
        """Delete a page; its children take its place under its former parent.

        Returns the ids whose stored path changed.
        """
        page = self.store.get(NodeKind.PAGE, page_id)
        self.tree.require(actor, page, Operation.DELETE)

        with self.store.transaction():
            self.store.lock_trees(NodeKind.PAGE, path_ids(page.path)[:1])
            former_parent = page.parent_id
            children = self.store.children_of(NodeKind.PAGE, [page_id]).get(page_id, [])
            for child in children:
                child.parent_id = former_parent
            self.store.flush()

            changed = PathMaintainer(self.store, NodeKind.PAGE).recompute_many(
                [child.id for child in children]
            )
            self.store.delete(page)

        logger.info(
            "Page deleted",
            extra={"page_id": page_id, "children_moved": len(children), "paths_updated": len(changed)},
        )
        return sorted(changed)

    # ------------------------------------------------------------------
    # Trees
    # ------------------------------------------------------------------

    def get_tree(self, actor, root_id: Optional[str] = None) -> List[TreeNode]:
        return self.tree.get_tree(NodeKind.PAGE, root_id=root_id, actor=actor)

    def get_public_menu(self) -> List[TreeNode]:
        """The navigation menu: a hidden or unpublished page hides its subtree."""
        return self.tree.get_tree(
            NodeKind.PAGE,
            include=lambda page: page.visible and page.status == PageStatus.PUBLISHED,
        )

    def get_path(self, page_id: str, actor) -> List[Page]:
        self.get_page(page_id, actor)
        return self.tree.get_path(NodeKind.PAGE, page_id)

    def apply_batch(self, ops: List[PlacementOp], actor):
        return self.coordinator.apply_batch(NodeKind.PAGE, ops, actor)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _claim_slug(self, requested: Optional[str], title: str, exclude_id: Optional[str] = None) -> str:
        """An explicit slug must be free; a generated one gets a numeric suffix."""
        if requested:
            slug = slugify(requested)
            existing = self.store.pages.get_by_slug(slug)
            if existing is not None and existing.id != exclude_id:
                raise SlugConflictError(slug)
            return slug

        base = slugify(title)
        for attempt in range(1, MAX_SLUG_ATTEMPTS + 1):
            slug = base if attempt == 1 else f"{base}-{attempt}"
            existing = self.store.pages.get_by_slug(slug)
            if existing is None or existing.id == exclude_id:
                return slug
        raise SlugConflictError(base)
