"""Document metadata API. File bytes are uploaded to the storage provider separately."""

from fastapi import APIRouter, Depends

from ..core.auth import Actor, require_actor
from ..schemas.document import DocumentCreate, DocumentMove, DocumentResponse
from ..services import DocumentService
from .dependencies import get_document_service

router = APIRouter(prefix="/api/documents", tags=["documents"])


@router.post("", response_model=DocumentResponse, status_code=201)
def register_document(
    data: DocumentCreate,
    service: DocumentService = Depends(get_document_service),
    actor: Actor = Depends(require_actor),
):
    return service.register_document(data, actor)


@router.get("/{doc_id}", response_model=DocumentResponse)
def get_document(
    doc_id: str,
    service: DocumentService = Depends(get_document_service),
    actor: Actor = Depends(require_actor),
):
    return service.get_document(doc_id, actor)


@router.put("/{doc_id}/move", response_model=DocumentResponse)
def move_document(
    doc_id: str,
    data: DocumentMove,
    service: DocumentService = Depends(get_document_service),
    actor: Actor = Depends(require_actor),
):
    return service.move_document(doc_id, data.folder_id, actor)


@router.delete("/{doc_id}", status_code=204)
def delete_document(
    doc_id: str,
    service: DocumentService = Depends(get_document_service),
    actor: Actor = Depends(require_actor),
):
    service.delete_document(doc_id, actor)
