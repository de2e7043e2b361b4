"""Page API: content tree, public menu, lifecycle and batch placement.

Thin router; all rules live in PageService.
"""

import logging
import math
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from ..core.auth import Actor, require_actor
from ..models import PageStatus
from ..schemas.batch import BatchResponse
from ..schemas.node import NodeSummary, TreeNode
from ..schemas.page import PageCreate, PageListResponse, PageResponse, PageUpdate, Pagination
from ..services import PageService, PlacementOp
from .dependencies import get_page_service, get_placement_ops

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/pages", tags=["pages"])


# -- Trees ----------------------------------------------------------------

@router.get("/tree", response_model=List[TreeNode])
def get_page_tree(
    root_id: Optional[str] = Query(None),
    service: PageService = Depends(get_page_service),
    actor: Actor = Depends(require_actor),
):
    """Page tree pruned to what the caller may read."""
    return service.get_tree(actor, root_id=root_id)


@router.get("/menu", response_model=List[TreeNode])
def get_public_menu(service: PageService = Depends(get_page_service)):
    """Public navigation menu: published, visible pages only. No auth."""
    return service.get_public_menu()


@router.get("/by-slug/{slug}", response_model=PageResponse)
def get_page_by_slug(slug: str, service: PageService = Depends(get_page_service)):
    """Public page lookup. Drafts and archived pages are 404."""
    return service.get_published_by_slug(slug)


# -- Listing --------------------------------------------------------------

@router.get("", response_model=PageListResponse)
def list_pages(
    status: Optional[PageStatus] = Query(None),
    q: Optional[str] = Query(None, max_length=200, description="Matches title, slug or body"),
    owner_id: Optional[str] = Query(None),
    sort_by: Literal["updated_at", "created_at", "published_at", "title"] = Query("updated_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    service: PageService = Depends(get_page_service),
    actor: Actor = Depends(require_actor),
):
    """Flat page listing for admin screens, newest change first by default."""
    items, total = service.list_pages(
        actor,
        status=status,
        text_query=q,
        owner_id=owner_id,
        sort_by=sort_by,
        descending=sort_order == "desc",
        page=page,
        limit=limit,
    )
    return PageListResponse(
        items=[PageResponse.model_validate(item) for item in items],
        pagination=Pagination(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit)),
    )


# -- Batch ----------------------------------------------------------------

@router.put("/batch", response_model=BatchResponse)
def apply_page_batch(
    ops: List[PlacementOp] = Depends(get_placement_ops),
    service: PageService = Depends(get_page_service),
    actor: Actor = Depends(require_actor),
):
    """Apply reorder / reparent / show-hide operations all-or-nothing."""
    outcome = service.apply_batch(ops, actor)
    return JSONResponse(status_code=outcome.status_code, content=outcome.to_dict())


# -- CRUD -----------------------------------------------------------------

@router.post("", response_model=PageResponse, status_code=201)
def create_page(
    data: PageCreate,
    service: PageService = Depends(get_page_service),
    actor: Actor = Depends(require_actor),
):
    return service.create_page(data, actor)


@router.get("/{page_id}", response_model=PageResponse)
def get_page(
    page_id: str,
    service: PageService = Depends(get_page_service),
    actor: Actor = Depends(require_actor),
):
    return service.get_page(page_id, actor)


@router.put("/{page_id}", response_model=PageResponse)
def update_page(
    page_id: str,
    data: PageUpdate,
    service: PageService = Depends(get_page_service),
    actor: Actor = Depends(require_actor),
):
    return service.update_page(page_id, data, actor)


@router.delete("/{page_id}")
def delete_page(
    page_id: str,
    service: PageService = Depends(get_page_service),
    actor: Actor = Depends(require_actor),
):
    """Delete a page. Its children move up to the deleted page's parent."""
    paths_updated = service.delete_page(page_id, actor)
    return {"deleted": page_id, "paths_updated": paths_updated}


@router.get("/{page_id}/path", response_model=List[NodeSummary])
def get_page_path(
    page_id: str,
    service: PageService = Depends(get_page_service),
    actor: Actor = Depends(require_actor),
):
    """Ancestor chain, root first (breadcrumbs)."""
    return service.get_path(page_id, actor)


# -- Lifecycle ------------------------------------------------------------

@router.post("/{page_id}/publish", response_model=PageResponse)
def publish_page(
    page_id: str,
    service: PageService = Depends(get_page_service),
    actor: Actor = Depends(require_actor),
):
    return service.publish(page_id, actor)


@router.post("/{page_id}/unpublish", response_model=PageResponse)
def unpublish_page(
    page_id: str,
    service: PageService = Depends(get_page_service),
    actor: Actor = Depends(require_actor),
):
    return service.unpublish(page_id, actor)


@router.post("/{page_id}/archive", response_model=PageResponse)
def archive_page(
    page_id: str,
    service: PageService = Depends(get_page_service),
    actor: Actor = Depends(require_actor),
):
    return service.archive(page_id, actor)
