"""Document metadata inside the folder tree.

Only metadata lives here; bytes belong to an external storage provider keyed
by document id. Every change refreshes the rollups of the folders whose
subtree gained or lost the document, before the commit.
"""

import logging
import uuid

from sqlalchemy.orm import Session

from ..exceptions import ValidationError
from ..models import Document, NodeKind, Operation
from ..repositories.document_repository import DocumentRepository
from ..repositories.node_store import NodeStore
from ..schemas.document import DocumentCreate
from .stats_aggregator import StatsAggregator
from .tree_service import TreeService

logger = logging.getLogger(__name__)


class DocumentService:
    """Register, move and delete documents.

    Public methods:
        register_document -- needs write on the folder
        get_document      -- needs read (inherited from the folder)
        move_document     -- needs write on the document and the target folder
        delete_document   -- needs delete on the document
    """

    def __init__(self, db: Session, lock_timeout_seconds: float = 5.0):
        self.db = db
        self.store = NodeStore(db, lock_timeout_seconds)
        self.repo = DocumentRepository(db)
        self.tree = TreeService(self.store, self.repo)
        self.stats = StatsAggregator(self.store, self.repo)

    def register_document(self, data: DocumentCreate, actor) -> Document:
        folder = self.store.get(NodeKind.FOLDER, data.folder_id)
        self.tree.require(actor, folder, Operation.WRITE)

        doc_id = data.id or f"doc-{uuid.uuid4().hex[:12]}"
        if self.repo.get_by_id_optional(doc_id) is not None:
            raise ValidationError(f"Document id already in use: {doc_id}", field="id")

        doc = Document(
            id=doc_id,
            folder_id=folder.id,
            filename=data.filename,
            title=data.title,
            mime_type=data.mime_type,
            size=data.size,
            uploaded_by=actor.id,
        )
        self.repo.add(doc)
        self.stats.refresh_ancestors([folder.path])
        self.db.commit()
        logger.info(
            "Document registered",
            extra={"doc_id": doc_id, "folder_id": folder.id, "size": data.size},
        )
        return doc

    def get_document(self, doc_id: str, actor) -> Document:
        doc = self.repo.get_by_id(doc_id)
        self.tree.require(actor, doc, Operation.READ)
        return doc

    def move_document(self, doc_id: str, folder_id: str, actor) -> Document:
        doc = self.repo.get_by_id(doc_id)
        self.tree.require(actor, doc, Operation.WRITE)
        target = self.store.get(NodeKind.FOLDER, folder_id)
        self.tree.require(actor, target, Operation.WRITE)

        if doc.folder_id == target.id:
            return doc

        source = self.store.get(NodeKind.FOLDER, doc.folder_id)
        doc.folder_id = target.id
        self.repo.db.flush()
        self.stats.refresh_ancestors([source.path, target.path])
        self.db.commit()
        logger.info(
            "Document moved",
            extra={"doc_id": doc_id, "from_folder": source.id, "to_folder": target.id},
        )
        return doc

    def delete_document(self, doc_id: str, actor) -> None:
        doc = self.repo.get_by_id(doc_id)
        self.tree.require(actor, doc, Operation.DELETE)

        folder = self.store.get(NodeKind.FOLDER, doc.folder_id)
        self.repo.delete(doc)
        self.stats.refresh_ancestors([folder.path])
        self.db.commit()
        logger.info("Document deleted", extra={"doc_id": doc_id, "folder_id": folder.id})
