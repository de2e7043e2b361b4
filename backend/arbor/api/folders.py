"""Folder API: tree, CRUD, permissions, contents, stats and batch placement.

Single router for all folder operations. Delegates to FolderService (deep module).
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from ..core.auth import Actor, require_actor
from ..schemas.batch import BatchResponse
from ..schemas.document import DocumentResponse
from ..schemas.folder import (
    FolderContents,
    FolderCreate,
    FolderPermissions,
    FolderResponse,
    FolderStats,
    FolderUpdate,
)
from ..schemas.node import NodeSummary, TreeNode
from ..services import FolderService, PlacementOp
from .dependencies import get_folder_service, get_placement_ops

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/folders", tags=["folders"])


# -- Tree -----------------------------------------------------------------

@router.get("/tree", response_model=List[TreeNode])
def get_folder_tree(
    root_id: Optional[str] = Query(None),
    service: FolderService = Depends(get_folder_service),
    actor: Actor = Depends(require_actor),
):
    """Folders the caller may read; an unreadable folder hides its subtree."""
    return service.get_accessible_tree(actor, root_id=root_id)


@router.get("/public", response_model=List[FolderResponse])
def list_public_folders(service: FolderService = Depends(get_folder_service)):
    """Folders flagged public, by name. No auth."""
    return service.list_public_folders()


# -- Batch ----------------------------------------------------------------

@router.put("/batch", response_model=BatchResponse)
def apply_folder_batch(
    ops: List[PlacementOp] = Depends(get_placement_ops),
    service: FolderService = Depends(get_folder_service),
    actor: Actor = Depends(require_actor),
):
    """Apply reorder / reparent operations all-or-nothing."""
    outcome = service.apply_batch(ops, actor)
    return JSONResponse(status_code=outcome.status_code, content=outcome.to_dict())


# -- CRUD -----------------------------------------------------------------

@router.post("", response_model=FolderResponse, status_code=201)
def create_folder(
    data: FolderCreate,
    service: FolderService = Depends(get_folder_service),
    actor: Actor = Depends(require_actor),
):
    return service.create_folder(data, actor)


@router.get("/{folder_id}", response_model=FolderResponse)
def get_folder(
    folder_id: str,
    service: FolderService = Depends(get_folder_service),
    actor: Actor = Depends(require_actor),
):
    return service.get_folder(folder_id, actor)


@router.put("/{folder_id}", response_model=FolderResponse)
def update_folder(
    folder_id: str,
    data: FolderUpdate,
    service: FolderService = Depends(get_folder_service),
    actor: Actor = Depends(require_actor),
):
    return service.update_folder(folder_id, data, actor)


@router.delete("/{folder_id}", status_code=204)
def delete_folder(
    folder_id: str,
    service: FolderService = Depends(get_folder_service),
    actor: Actor = Depends(require_actor),
):
    """Delete an empty folder; 409 while subfolders or documents remain."""
    service.delete_folder(folder_id, actor)


@router.get("/{folder_id}/path", response_model=List[NodeSummary])
def get_folder_path(
    folder_id: str,
    service: FolderService = Depends(get_folder_service),
    actor: Actor = Depends(require_actor),
):
    return service.get_path(folder_id, actor)


@router.get("/{folder_id}/contents", response_model=FolderContents)
def get_folder_contents(
    folder_id: str,
    service: FolderService = Depends(get_folder_service),
    actor: Actor = Depends(require_actor),
):
    folder, subfolders, documents = service.get_contents(folder_id, actor)
    return FolderContents(
        folder=FolderResponse.model_validate(folder),
        subfolders=[FolderResponse.model_validate(sub) for sub in subfolders],
        documents=[DocumentResponse.model_validate(doc) for doc in documents],
    )


@router.get("/{folder_id}/stats", response_model=FolderStats)
def get_folder_stats(
    folder_id: str,
    service: FolderService = Depends(get_folder_service),
    actor: Actor = Depends(require_actor),
):
    stats = service.get_stats(folder_id, actor)
    return FolderStats(
        document_count=stats.document_count,
        total_size=stats.total_size,
        subfolder_count=service.count_subfolders(folder_id),
    )


@router.put("/{folder_id}/permissions", response_model=FolderPermissions)
def set_folder_permissions(
    folder_id: str,
    data: FolderPermissions,
    service: FolderService = Depends(get_folder_service),
    actor: Actor = Depends(require_actor),
):
    """Replace the folder's ACL. Owner or administrator only."""
    service.set_permissions(folder_id, data.read, data.write, actor)
    read, write = service.get_permissions(folder_id)
    return FolderPermissions(read=read, write=write)
