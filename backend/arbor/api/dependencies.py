"""Per-request service construction.

Each service gets the request's session and the lock timeout from the
settings the application was built with.
"""

from typing import List

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ..database import get_db
from ..exceptions import ValidationError
from ..schemas.batch import BatchRequest
from ..services import DocumentService, FolderService, PageService, PlacementOp, placement_ops


def _lock_timeout(request: Request) -> float:
    return request.app.state.settings.db_lock_timeout_seconds


def get_page_service(request: Request, db: Session = Depends(get_db)) -> PageService:
    return PageService(db, _lock_timeout(request))


def get_folder_service(request: Request, db: Session = Depends(get_db)) -> FolderService:
    return FolderService(db, _lock_timeout(request))


def get_document_service(request: Request, db: Session = Depends(get_db)) -> DocumentService:
    return DocumentService(db, _lock_timeout(request))


def get_placement_ops(body: BatchRequest, request: Request) -> List[PlacementOp]:
    """Batch body as placement ops. An omitted ``parent_id`` keeps the parent."""
    limit = request.app.state.settings.max_batch_operations
    if len(body.operations) > limit:
        raise ValidationError(
            f"Batch has {len(body.operations)} operations; the limit is {limit}",
            field="operations",
        )
    return placement_ops(op.model_dump(exclude_unset=True) for op in body.operations)
